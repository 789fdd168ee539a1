import logging

from ..clustering.topology import Topology

logger = logging.getLogger(__name__)


def compute_plan(old: Topology, new: Topology, keys=None) -> dict[str, list]:
    """Group keys that must move by the node they belong to under ``new``.

    ``keys`` defaults to a full enumeration of ``old``. A key is moved when
    its owner's host or port changes; a different db index on the same
    host and port is not a move, but the db written to is always the one of
    the ``new`` owner.

    Returns a mapping like::

        {"redis://host1:6379/0": [b"key1", b"key2"],
         "redis://host2:6379/0": [b"key3"]}

    Errors raised while listing keys or resolving owners are not caught.
    """
    if keys is None:
        keys = old.keys()
    plan: dict[str, list] = {}
    for key in keys:
        old_node = old.node_for(key)
        new_node = new.node_for(key)
        if old_node.address != new_node.address:
            plan.setdefault(new_node.url, []).append(key)
    logger.debug("plan covers %d nodes", len(plan))
    return plan


def plan_size(plan: dict[str, list]) -> int:
    """Return the number of keys scheduled across every node."""
    return sum(len(keys) for keys in plan.values())
