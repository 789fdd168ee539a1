import logging
import os
import threading
import time
from collections import deque
from itertools import islice


class EventLogger:
    """Migration event log shared by the CLI and the API.

    Entries are kept in a bounded in-memory buffer. When ``log_path`` is set
    they are also appended to that file, which other processes may write to
    as well. Lines appended by other writers are pulled into the buffer
    before each write and on :meth:`sync`; entries written by this instance
    are recognised by their file offset and not read back twice.
    """

    def __init__(self, log_path: str | None = None, *, max_events: int = 1000) -> None:
        self.log_path = log_path
        self._lock = threading.Lock()
        self._events = deque(maxlen=max_events)
        self._own_offsets = set()
        self._fp = None
        self._read_pos = 0
        if log_path:
            self._fp = self._open(log_path)
            self._read_pos = self._fp.seek(0, os.SEEK_END)

    @staticmethod
    def _open(log_path: str):
        directory = os.path.dirname(log_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        # binary append mode: offsets are byte positions and writes land at EOF
        return open(log_path, "a+b")

    def close(self) -> None:
        with self._lock:
            if self._fp is not None:
                self._fp.close()
                self._fp = None

    def log(self, message: str) -> None:
        """Record ``message`` with a timestamp."""
        entry = "[{}] {}".format(time.strftime("%Y-%m-%d %H:%M:%S"), message)
        with self._lock:
            if self._fp is not None:
                self._read_appended()
                data = (entry + "\n").encode("utf-8")
                self._fp.write(data)
                self._fp.flush()
                self._own_offsets.add(self._fp.tell() - len(data))
            self._events.append(entry)

    def sync(self) -> None:
        """Pull in lines other writers appended to the log file."""
        with self._lock:
            if self._fp is not None:
                self._read_appended()

    def _read_appended(self) -> None:
        self._fp.seek(self._read_pos)
        for line in iter(self._fp.readline, b""):
            if not line.endswith(b"\n"):
                # another writer is mid-line; pick it up on the next read
                break
            start = self._read_pos
            self._read_pos += len(line)
            if start in self._own_offsets:
                self._own_offsets.discard(start)
                continue
            self._events.append(line[:-1].decode("utf-8", errors="replace"))

    def get_events(self, offset: int = 0, limit: int | None = None) -> list[str]:
        """Return buffered entries, oldest first."""
        start = max(offset, 0)
        stop = start + limit if limit is not None else None
        with self._lock:
            return list(islice(self._events, start, stop))


def emit(event_logger: EventLogger | None, logger: logging.Logger, message: str) -> None:
    """Send ``message`` to ``event_logger`` when set, else to ``logger``."""
    if event_logger:
        event_logger.log(message)
    else:
        logger.info(message)
