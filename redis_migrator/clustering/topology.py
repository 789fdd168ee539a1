"""Cluster membership: node addresses, key routing and per-node clients."""

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

import redis

from .hash_ring import HashRing

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6379
SCAN_COUNT = 1000
SCHEMES = ("redis", "rediss")


@dataclass(frozen=True)
class NodeDescriptor:
    host: str
    port: int = DEFAULT_PORT
    db: int = 0

    @property
    def url(self) -> str:
        """Canonical ``redis://host:port/db`` form used as the plan key."""
        return f"redis://{self.host}:{self.port}/{self.db}"

    @property
    def address(self) -> tuple[str, int]:
        return self.host, self.port

    @classmethod
    def from_url(cls, url: str) -> "NodeDescriptor":
        return parse_node_url(url)


def parse_node_url(url: str) -> NodeDescriptor:
    """Parse ``scheme://host:port/db`` into a :class:`NodeDescriptor`.

    A missing or non numeric ``db`` falls back to 0.
    """
    parts = urlsplit(url.strip())
    if parts.scheme not in SCHEMES:
        raise ValueError(f"unsupported node url {url!r}")
    try:
        port = parts.port or DEFAULT_PORT
    except ValueError as e:
        raise ValueError(f"invalid port in node url {url!r}") from e
    try:
        db = int(parts.path[1:])
    except ValueError:
        db = 0
    return NodeDescriptor(parts.hostname or DEFAULT_HOST, port, db)


def parse_node_urls(value: str) -> list[str]:
    """Split a comma separated list of node urls."""
    return [item.strip() for item in value.split(",") if item.strip()]


class Topology:
    """A set of Redis nodes plus the ring mapping every key to one of them."""

    def __init__(self, urls: list[str], *, client_factory=redis.Redis) -> None:
        if not urls:
            raise ValueError("topology needs at least one node")
        self.nodes: list[NodeDescriptor] = []
        self.clients: dict[str, redis.Redis] = {}
        self.ring = HashRing()
        for url in urls:
            node = parse_node_url(url)
            if node.url in self.clients:
                continue
            self.nodes.append(node)
            self.clients[node.url] = client_factory(
                host=node.host, port=node.port, db=node.db, decode_responses=False
            )
            self.ring.add_node(node.url)

    @property
    def urls(self) -> list[str]:
        return [n.url for n in self.nodes]

    def node_for(self, key) -> NodeDescriptor:
        return parse_node_url(self.ring.get_node(key))

    def client_for(self, key) -> redis.Redis:
        return self.clients[self.ring.get_node(key)]

    def keys(self, pattern: str = "*"):
        """Yield every key stored on every node of the topology.

        This walks the whole keyspace with ``SCAN`` node by node, so its cost
        grows with the total number of keys.
        """
        for node in self.nodes:
            client = self.clients[node.url]
            logger.debug("scanning keys on %s", node.url)
            yield from client.scan_iter(match=pattern, count=SCAN_COUNT)

    def type(self, key) -> str:
        value = self.client_for(key).type(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def delete(self, key) -> int:
        return self.client_for(key).delete(key)

    def flushdb(self) -> None:
        for client in self.clients.values():
            client.flushdb()

    def close(self) -> None:
        for client in self.clients.values():
            client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()
