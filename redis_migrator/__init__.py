"""Move keys between Redis clusters after a membership change."""

from importlib import import_module

def __getattr__(name):
    module_map = {
        "Migrator": "migration.executor",
        "MigrationOptions": "migration.executor",
        "MigrationReport": "migration.executor",
        "Populator": "migration.populator",
        "Topology": "clustering.topology",
        "Settings": "config",
    }
    if name in module_map:
        mod = import_module(f"{__name__}.{module_map[name]}")
        return getattr(mod, name)
    raise AttributeError(name)
