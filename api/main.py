from functools import partial

import redis
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from redis_migrator.config import Settings
from redis_migrator.migration import MigrationOptions, Migrator, RedisCliPipe
from redis_migrator.utils import EventLogger

app = FastAPI()


class ClusterRequest(BaseModel):
    old_hosts: list[str] | None = None
    new_hosts: list[str] | None = None


class MigrationRequest(ClusterRequest):
    remove_source: bool | None = None
    preserve_ttl: bool = False
    defer_removal: bool = False


def _key_text(key) -> str:
    if isinstance(key, bytes):
        return key.decode("utf-8", errors="backslashreplace")
    return str(key)


def default_migrator_factory(old_hosts, new_hosts) -> Migrator:
    settings = app.state.settings
    return Migrator(
        old_hosts,
        new_hosts,
        channel_factory=partial(RedisCliPipe, cli=settings.redis_cli),
        event_logger=app.state.event_logger,
    )


@app.on_event("startup")
def startup_event() -> None:
    """Load settings and open the event log when the API starts."""
    settings = Settings.from_env()
    app.state.settings = settings
    app.state.event_logger = EventLogger(settings.event_log)
    app.state.migrator_factory = default_migrator_factory


@app.on_event("shutdown")
def shutdown_event() -> None:
    event_logger = getattr(app.state, "event_logger", None)
    if event_logger is not None:
        event_logger.close()


def _build_migrator(req: ClusterRequest) -> Migrator:
    settings = app.state.settings
    old_hosts = req.old_hosts or settings.old_hosts
    new_hosts = req.new_hosts or settings.new_hosts
    if not old_hosts or not new_hosts:
        raise HTTPException(status_code=422, detail="old_hosts and new_hosts are required")
    try:
        return app.state.migrator_factory(old_hosts, new_hosts)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/health")
def health() -> dict:
    settings = app.state.settings
    return {
        "status": "ok",
        "old_hosts": len(settings.old_hosts),
        "new_hosts": len(settings.new_hosts),
    }


@app.post("/plan")
def plan_endpoint(req: ClusterRequest) -> dict:
    """Return the keys that would move, grouped by destination node."""
    migrator = _build_migrator(req)
    try:
        plan = migrator.changed_keys()
    except redis.RedisError as e:
        raise HTTPException(status_code=503, detail=str(e))
    finally:
        migrator.close()
    return {
        "total": sum(len(keys) for keys in plan.values()),
        "plan": {node: [_key_text(k) for k in keys] for node, keys in plan.items()},
    }


@app.post("/migrations")
def run_migration(req: MigrationRequest) -> dict:
    """Run a migration and return its report once every node is done."""
    settings = app.state.settings
    options = MigrationOptions(
        remove_source=settings.remove_source if req.remove_source is None else req.remove_source,
        preserve_ttl=req.preserve_ttl,
        defer_removal=req.defer_removal,
    )
    migrator = _build_migrator(req)
    try:
        report = migrator.run(options)
    except redis.RedisError as e:
        raise HTTPException(status_code=503, detail=str(e))
    finally:
        migrator.close()
    return report.to_dict()


@app.get("/events")
def list_events(offset: int = 0, limit: int | None = None) -> dict:
    """Return recent migration events."""
    event_logger = app.state.event_logger
    event_logger.sync()
    return {"events": event_logger.get_events(offset=offset, limit=limit)}
