import hashlib
import logging
import threading

import redis

from ..clustering.topology import NodeDescriptor, Topology, parse_node_url
from .channel import RedisCliPipe
from .resp import encode

logger = logging.getLogger(__name__)


def md5_hex(value) -> str:
    return hashlib.md5(str(value).encode("utf-8")).hexdigest()


class Populator:
    """Fills a cluster with synthetic sets to exercise a migration."""

    def __init__(self, hosts: list[str], *, channel_factory=RedisCliPipe, client_factory=redis.Redis) -> None:
        self.cluster = Topology(hosts, client_factory=client_factory)
        self.channel_factory = channel_factory

    def generate_keys(self, num: int) -> dict[str, list[str]]:
        """Return ``num`` set keys grouped by the node that owns them."""
        nodes: dict[str, list[str]] = {}
        for i in range(num):
            key = md5_hex(i)
            nodes.setdefault(self.cluster.node_for(key).url, []).append(key)
        return nodes

    def populate_keys(self, node: NodeDescriptor, keys: list[str], size: int) -> None:
        """Write ``size`` members into every set in ``keys`` on ``node``."""
        members = [md5_hex(f"f{x}") for x in range(size)]
        with self.channel_factory(node) as channel:
            for key in keys:
                for member in members:
                    channel.write(encode(["SADD", key, member]))

    def populate_cluster(self, keys_num: int, size: int) -> dict[str, list[str]]:
        """Flush every node, then create ``keys_num`` sets of ``size`` members."""
        self.cluster.flushdb()
        nodes = self.generate_keys(keys_num)
        threads = []
        for node_url, keys in nodes.items():
            t = threading.Thread(
                target=self.populate_keys,
                args=(parse_node_url(node_url), keys, size),
            )
            threads.append(t)
            t.start()
        for t in threads:
            t.join()
        logger.info("populated %d sets on %d nodes", keys_num, len(nodes))
        return nodes
