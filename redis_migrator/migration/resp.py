"""Request framing for the Redis serialization protocol (RESP2)."""

CRLF = b"\r\n"


def _arg_to_bytes(arg) -> bytes:
    if isinstance(arg, bytes):
        return arg
    if isinstance(arg, (bytearray, memoryview)):
        return bytes(arg)
    if isinstance(arg, float):
        return repr(arg).encode()
    if isinstance(arg, (str, int)):
        return str(arg).encode("utf-8", errors="surrogatepass")
    raise TypeError(f"cannot encode argument of type {type(arg).__name__}")


def encode(parts) -> bytes:
    """Encode ``parts`` as a RESP array of bulk strings.

    Lengths are byte lengths, so multi-byte UTF-8 values are framed
    correctly.
    """
    parts = list(parts)
    out = [b"*%d\r\n" % len(parts)]
    for part in parts:
        b = _arg_to_bytes(part)
        out.append(b"$%d\r\n" % len(b))
        out.append(b + CRLF)
    return b"".join(out)
