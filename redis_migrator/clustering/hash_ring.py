import re
import zlib
from bisect import bisect_right

POINTS_PER_NODE = 160

# keys shaped like "{user1000}.following" hash only the part inside braces
KEY_TAG = re.compile(rb"^\{(.+?)\}")


def _to_bytes(value) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


def key_tag(key) -> bytes:
    """Return the portion of ``key`` used for hashing."""
    raw = _to_bytes(key)
    match = KEY_TAG.match(raw)
    return match.group(1) if match else raw


class HashRing:
    """Consistent hashing ring compatible with ``Redis::Distributed``."""

    def __init__(self, points_per_node: int = POINTS_PER_NODE) -> None:
        self.points_per_node = points_per_node
        self._ring = []  # list of (hash_int, node_id)
        self._hashes = []  # hash_int of every entry in _ring, same order
        self._nodes = {}

    def _hash(self, value) -> int:
        return zlib.crc32(_to_bytes(value)) & 0xFFFFFFFF

    def add_node(self, node_id: str, weight: int | None = None) -> None:
        """Add a node with ``weight`` virtual points (default 160)."""
        if weight is None:
            weight = self.points_per_node
        replicas = []
        for i in range(weight):
            h = self._hash(f"{node_id}:{i}")
            replicas.append((h, node_id))
            self._ring.append((h, node_id))
        self._nodes.setdefault(node_id, []).extend(replicas)
        self._ring.sort(key=lambda x: x[0])
        self._hashes = [h for h, _ in self._ring]

    @property
    def nodes(self) -> list[str]:
        return list(self._nodes)

    def get_node(self, key) -> str:
        """Return the node owning ``key``.

        The owner is the last point whose hash is lower or equal to the key
        hash, wrapping around to the last point of the ring.
        """
        if not self._ring:
            raise RuntimeError("hash ring is empty")
        key_hash = self._hash(key_tag(key))
        idx = bisect_right(self._hashes, key_hash) - 1
        return self._ring[idx][1]
