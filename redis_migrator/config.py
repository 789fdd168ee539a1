"""Runtime settings read from ``MIGRATOR_*`` environment variables."""

import os
from dataclasses import dataclass, field

from .clustering.topology import parse_node_urls

TRUE_VALUES = {"1", "true", "yes", "on"}


def env_flag(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in TRUE_VALUES


@dataclass
class Settings:
    old_hosts: list[str] = field(default_factory=list)
    new_hosts: list[str] = field(default_factory=list)
    redis_cli: str = "redis-cli"
    event_log: str | None = None
    remove_source: bool = True
    api_port: int = 8000

    @classmethod
    def from_env(cls, env=None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            old_hosts=parse_node_urls(env.get("MIGRATOR_OLD_HOSTS", "")),
            new_hosts=parse_node_urls(env.get("MIGRATOR_NEW_HOSTS", "")),
            redis_cli=env.get("MIGRATOR_REDIS_CLI", "redis-cli"),
            event_log=env.get("MIGRATOR_EVENT_LOG") or None,
            remove_source=env_flag(env.get("MIGRATOR_REMOVE_SOURCE"), True),
            api_port=int(env.get("MIGRATOR_API_PORT", 8000)),
        )
