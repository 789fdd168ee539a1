"""Cluster membership and key routing utilities."""

# Re-export commonly used names lazily, like the other subpackages.
from importlib import import_module

def __getattr__(name):
    module_map = {
        "HashRing": "hash_ring",
        "key_tag": "hash_ring",
        "NodeDescriptor": "topology",
        "Topology": "topology",
        "parse_node_url": "topology",
        "parse_node_urls": "topology",
    }
    if name in module_map:
        mod = import_module(f"{__name__}.{module_map[name]}")
        return getattr(mod, name)
    raise AttributeError(name)
