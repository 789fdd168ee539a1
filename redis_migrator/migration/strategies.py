"""Per-type reconstruction of a Redis value as a sequence of write commands.

Every strategy reads the whole value from the source client in one call and
then writes one command per element, so very large values are held fully in
memory while they are copied.
"""

from enum import Enum

from .resp import encode


class ValueType(str, Enum):
    STRING = "string"
    LIST = "list"
    HASH = "hash"
    SET = "set"
    ZSET = "zset"

    @classmethod
    def parse(cls, name) -> "ValueType | None":
        """Return the member for a ``TYPE`` reply or ``None`` if unsupported."""
        if isinstance(name, bytes):
            name = name.decode("utf-8", errors="replace")
        try:
            return cls(name)
        except ValueError:
            return None


def copy_string(source, channel, key) -> int:
    value = source.get(key)
    if value is None:
        return 0
    channel.write(encode(["SET", key, value]))
    return 1


def copy_list(source, channel, key) -> int:
    items = source.lrange(key, 0, -1)
    for item in items:
        channel.write(encode(["RPUSH", key, item]))
    return len(items)


def copy_hash(source, channel, key) -> int:
    fields = source.hgetall(key)
    for field, value in fields.items():
        channel.write(encode(["HSET", key, field, value]))
    return len(fields)


def copy_set(source, channel, key) -> int:
    members = source.smembers(key)
    for member in members:
        channel.write(encode(["SADD", key, member]))
    return len(members)


def copy_zset(source, channel, key) -> int:
    members = source.zrange(key, 0, -1, withscores=True)
    for member, score in members:
        channel.write(encode(["ZADD", key, score, member]))
    return len(members)


COPY_STRATEGIES = {
    ValueType.STRING: copy_string,
    ValueType.LIST: copy_list,
    ValueType.HASH: copy_hash,
    ValueType.SET: copy_set,
    ValueType.ZSET: copy_zset,
}


def copy_value(value_type: ValueType, source, channel, key) -> int:
    """Emit the commands rebuilding ``key`` on ``channel``.

    Returns the number of commands written.
    """
    return COPY_STRATEGIES[value_type](source, channel, key)
