"""Command line for planning and running Redis cluster migrations.

Usage:
    python migrate.py plan --old URLS --new URLS
    python migrate.py run --old URLS --new URLS [--keep-source] [--preserve-ttl] [--defer-removal]
    python migrate.py populate --hosts URLS [--keys N] [--members N]
    python migrate.py serve [--port P]

URLS is a comma separated list of ``redis://host:port/db`` addresses. Values
default to the environment variables MIGRATOR_OLD_HOSTS, MIGRATOR_NEW_HOSTS,
MIGRATOR_REDIS_CLI, MIGRATOR_EVENT_LOG, MIGRATOR_REMOVE_SOURCE and
MIGRATOR_API_PORT when set.
"""

import argparse
import json
import logging
import sys
from functools import partial
from typing import List

import redis

from redis_migrator.clustering.topology import parse_node_urls
from redis_migrator.config import Settings
from redis_migrator.migration import MigrationOptions, Migrator, Populator, RedisCliPipe
from redis_migrator.utils import EventLogger

logger = logging.getLogger("migrate")


def parse_args(argv: List[str] | None = None, settings: Settings | None = None) -> argparse.Namespace:
    settings = settings or Settings.from_env()
    parser = argparse.ArgumentParser(description="Move keys between Redis cluster memberships")
    parser.add_argument("--redis-cli", default=settings.redis_cli)
    parser.add_argument("--event-log", default=settings.event_log)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_cluster_args(p):
        p.add_argument("--old", type=parse_node_urls, default=settings.old_hosts)
        p.add_argument("--new", type=parse_node_urls, default=settings.new_hosts)

    add_cluster_args(sub.add_parser("plan", help="print keys that must move"))

    run = sub.add_parser("run", help="migrate changed keys")
    add_cluster_args(run)
    run.add_argument(
        "--keep-source",
        dest="remove_source",
        action="store_false",
        default=settings.remove_source,
    )
    run.add_argument("--preserve-ttl", action="store_true")
    run.add_argument("--defer-removal", action="store_true")

    populate = sub.add_parser("populate", help="fill a cluster with test sets")
    populate.add_argument("--hosts", type=parse_node_urls, default=settings.old_hosts)
    populate.add_argument("--keys", type=int, default=1000)
    populate.add_argument("--members", type=int, default=10)

    serve = sub.add_parser("serve", help="start the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=settings.api_port)
    return parser.parse_args(argv)


def _require_hosts(args: argparse.Namespace) -> None:
    if not args.old or not args.new:
        raise SystemExit("both --old and --new node lists are required")


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    channel_factory = partial(RedisCliPipe, cli=args.redis_cli)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("api.main:app", host=args.host, port=args.port)
        return 0

    if args.command == "populate":
        if not args.hosts:
            raise SystemExit("--hosts is required")
        nodes = Populator(args.hosts, channel_factory=channel_factory).populate_cluster(
            args.keys, args.members
        )
        for node_url, keys in nodes.items():
            print(f"{node_url}: {len(keys)} keys")
        return 0

    _require_hosts(args)
    event_logger = EventLogger(args.event_log) if args.event_log else None
    try:
        migrator = Migrator(
            args.old,
            args.new,
            channel_factory=channel_factory,
            event_logger=event_logger,
        )
    except ValueError as e:
        logger.error("invalid node url: %s", e)
        if event_logger is not None:
            event_logger.close()
        return 1
    try:
        if args.command == "plan":
            plan = migrator.changed_keys()
            for node_url, keys in plan.items():
                print(f"{node_url}: {len(keys)} keys")
            return 0

        options = MigrationOptions(
            remove_source=args.remove_source,
            preserve_ttl=args.preserve_ttl,
            defer_removal=args.defer_removal,
        )
        report = migrator.run(options)
        print(json.dumps(report.to_dict(), indent=2))
        return 1 if report.failed else 0
    except redis.RedisError as e:
        logger.error("cannot build migration plan: %s", e)
        return 1
    finally:
        migrator.close()
        if event_logger is not None:
            event_logger.close()


if __name__ == "__main__":
    sys.exit(main())
