import os
import sys
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from redis_migrator.clustering.hash_ring import HashRing, key_tag


NODES = [f"redis://10.0.0.{i}:6379/0" for i in range(1, 4)]


class HashRingTest(unittest.TestCase):
    def _ring(self, nodes=NODES):
        ring = HashRing()
        for n in nodes:
            ring.add_node(n)
        return ring

    def test_same_key_same_node(self):
        a = self._ring()
        b = self._ring(list(reversed(NODES)))
        for i in range(200):
            self.assertEqual(a.get_node(f"k{i}"), b.get_node(f"k{i}"))

    def test_points_per_node(self):
        ring = self._ring()
        self.assertEqual(len(ring._ring), 160 * len(NODES))
        self.assertEqual(ring.nodes, NODES)

    def test_every_node_receives_keys(self):
        ring = self._ring()
        counts = {n: 0 for n in NODES}
        for i in range(3000):
            counts[ring.get_node(f"key:{i}")] += 1
        for c in counts.values():
            self.assertGreater(c, 300)

    def test_key_tag_routes_together(self):
        ring = self._ring()
        self.assertEqual(key_tag("{user1000}.following"), b"user1000")
        self.assertEqual(key_tag(b"plain"), b"plain")
        self.assertEqual(key_tag("a{b}c"), b"a{b}c")
        for suffix in ("following", "followers", "posts"):
            self.assertEqual(
                ring.get_node(f"{{user1000}}.{suffix}"),
                ring.get_node("user1000"),
            )

    def test_adding_node_only_moves_keys_to_it(self):
        ring = self._ring(NODES[:2])
        before = {f"k{i}": ring.get_node(f"k{i}") for i in range(1000)}
        ring.add_node(NODES[2])
        moved = 0
        for key, owner in before.items():
            now = ring.get_node(key)
            if now != owner:
                self.assertEqual(now, NODES[2])
                moved += 1
        self.assertGreater(moved, 0)

    def test_matches_redis_distributed(self):
        ring = self._ring(["redis://a:6379/0", "redis://b:6379/0", "redis://c:6379/0"])
        owners = [ring.get_node(f"key:{i}") for i in range(5)]
        self.assertEqual(
            owners,
            [
                "redis://a:6379/0",
                "redis://a:6379/0",
                "redis://b:6379/0",
                "redis://b:6379/0",
                "redis://c:6379/0",
            ],
        )

    def test_point_hashes_stay_sorted(self):
        ring = self._ring()
        self.assertEqual(ring._hashes, [h for h, _ in ring._ring])
        self.assertEqual(ring._hashes, sorted(ring._hashes))

    def test_lookup_wraps_to_last_point(self):
        ring = HashRing()
        ring._ring = [(10, "a"), (20, "b")]
        ring._hashes = [10, 20]
        ring._nodes = {"a": [(10, "a")], "b": [(20, "b")]}
        with patch.object(ring, "_hash", side_effect=[5, 15, 20, 25]):
            self.assertEqual(ring.get_node("x"), "b")
            self.assertEqual(ring.get_node("x"), "a")
            self.assertEqual(ring.get_node("x"), "b")
            self.assertEqual(ring.get_node("x"), "b")

    def test_empty_ring(self):
        with self.assertRaises(RuntimeError):
            HashRing().get_node("k")


if __name__ == "__main__":
    unittest.main()
