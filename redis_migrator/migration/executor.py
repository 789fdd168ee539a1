"""Concurrent migration of changed keys, one worker per destination node."""

import logging
from collections import Counter
from concurrent import futures
from dataclasses import asdict, dataclass, field

import redis

from ..clustering.topology import NodeDescriptor, Topology, parse_node_url
from ..utils.event_logger import EventLogger, emit
from .channel import RedisCliPipe
from .planner import compute_plan, plan_size
from .resp import encode
from .strategies import ValueType, copy_value

logger = logging.getLogger(__name__)


@dataclass
class MigrationOptions:
    # delete keys from their old node once their commands are queued
    remove_source: bool = True
    # follow each copied key with PEXPIRE when it has a TTL
    preserve_ttl: bool = False
    # only delete once the node's channel closed without error
    defer_removal: bool = False


@dataclass
class NodeReport:
    node: str
    migrated: int = 0
    commands: int = 0
    removed: int = 0
    skipped: dict[str, int] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class MigrationReport:
    planned: int = 0
    nodes: list[NodeReport] = field(default_factory=list)

    @property
    def migrated(self) -> int:
        return sum(n.migrated for n in self.nodes)

    @property
    def removed(self) -> int:
        return sum(n.removed for n in self.nodes)

    @property
    def skipped(self) -> dict[str, int]:
        total = Counter()
        for n in self.nodes:
            total.update(n.skipped)
        return dict(total)

    @property
    def failed(self) -> list[str]:
        return [n.node for n in self.nodes if not n.ok]

    def to_dict(self) -> dict:
        return {
            "planned": self.planned,
            "migrated": self.migrated,
            "removed": self.removed,
            "skipped": self.skipped,
            "failed": self.failed,
            "nodes": [asdict(n) for n in self.nodes],
        }


class Migrator:
    """Moves keys whose owner changed between two cluster memberships.

    ``old_hosts`` and ``new_hosts`` are lists of ``redis://host:port/db``
    urls. Each destination node gets its own worker thread, its own
    bulk-load channel and its own source clients.
    """

    def __init__(
        self,
        old_hosts: list[str],
        new_hosts: list[str],
        *,
        channel_factory=RedisCliPipe,
        client_factory=redis.Redis,
        event_logger: EventLogger | None = None,
    ) -> None:
        self.old_hosts = list(old_hosts)
        self.new_hosts = list(new_hosts)
        self.channel_factory = channel_factory
        self.client_factory = client_factory
        self.event_logger = event_logger
        self.old_cluster = Topology(self.old_hosts, client_factory=client_factory)
        self.new_cluster = Topology(self.new_hosts, client_factory=client_factory)

    def close(self) -> None:
        self.old_cluster.close()
        self.new_cluster.close()

    def changed_keys(self) -> dict[str, list]:
        """Return keys that need to move, grouped by destination node url."""
        return compute_plan(self.old_cluster, self.new_cluster)

    def _source_cluster(self) -> Topology:
        # workers never touch self.old_cluster; each gets fresh clients
        return Topology(self.old_hosts, client_factory=self.client_factory)

    def copy_key(self, channel, source: Topology, key, value_type: ValueType, options: MigrationOptions) -> int:
        """Write the commands rebuilding ``key`` to ``channel``."""
        client = source.client_for(key)
        commands = copy_value(value_type, client, channel, key)
        if options.preserve_ttl:
            ttl = client.pttl(key)
            if ttl is not None and ttl > 0:
                channel.write(encode(["PEXPIRE", key, ttl]))
                commands += 1
        return commands

    def migrate_keys(
        self,
        node: NodeDescriptor | str,
        keys,
        options: MigrationOptions | None = None,
        *,
        report: NodeReport | None = None,
    ) -> NodeReport:
        """Stream ``keys`` to ``node`` and remove them from their old owner.

        Keys of unsupported types are skipped and left in place. Unless
        ``options.defer_removal`` is set, a key is deleted right after its
        commands are queued, before the destination has acknowledged them.
        """
        if isinstance(node, str):
            node = parse_node_url(node)
        options = options or MigrationOptions()
        if report is None:
            report = NodeReport(node.url)
        if not keys:
            return report

        source = self._source_cluster()
        try:
            channel = self.channel_factory(node)
            pending = []
            try:
                for key in keys:
                    type_name = source.type(key)
                    value_type = ValueType.parse(type_name)
                    if value_type is None:
                        report.skipped[type_name] = report.skipped.get(type_name, 0) + 1
                        continue
                    report.commands += self.copy_key(channel, source, key, value_type, options)
                    report.migrated += 1
                    if not options.remove_source:
                        continue
                    if options.defer_removal:
                        pending.append(key)
                    else:
                        report.removed += source.delete(key)
            except Exception:
                self._close_after_failure(channel, node)
                raise
            channel.close()
            for key in pending:
                report.removed += source.delete(key)
        finally:
            source.close()
        emit(
            self.event_logger,
            logger,
            f"{report.migrated} keys migrated to {node.url} "
            f"({report.removed} removed, {sum(report.skipped.values())} skipped)",
        )
        return report

    def _close_after_failure(self, channel, node: NodeDescriptor) -> None:
        try:
            channel.close()
        except Exception as e:
            logger.warning("closing channel to %s after failure: %s", node.url, e)

    def _migrate_unit(self, node_url: str, keys, options: MigrationOptions) -> NodeReport:
        report = NodeReport(node_url)
        try:
            self.migrate_keys(parse_node_url(node_url), keys, options, report=report)
        except Exception as e:
            logger.exception("migration to %s failed", node_url)
            emit(self.event_logger, logger, f"migration to {node_url} failed: {e}")
            report.error = str(e)
        return report

    def run(self, options: MigrationOptions | None = None) -> MigrationReport:
        """Run a full migration and wait for every node to finish.

        Failures while planning propagate before any data is written. A
        failing node does not stop the others; it is reported in
        :attr:`MigrationReport.failed`.
        """
        options = options or MigrationOptions()
        plan = self.changed_keys()
        report = MigrationReport(planned=plan_size(plan))
        emit(self.event_logger, logger, f"Migrating {report.planned} keys")
        if not plan:
            return report

        with futures.ThreadPoolExecutor(max_workers=len(plan)) as ex:
            jobs = [
                ex.submit(self._migrate_unit, node_url, keys, options)
                for node_url, keys in plan.items()
            ]
            report.nodes = [job.result() for job in jobs]
        return report
