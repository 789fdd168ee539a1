"""Bulk-load channels that stream pre-encoded commands to one node."""

import logging
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from collections import deque

from ..clustering.topology import NodeDescriptor

logger = logging.getLogger(__name__)

REDIS_CLI = "redis-cli"
OUTPUT_LINES = 50


class ChannelError(RuntimeError):
    """Raised when a bulk-load channel cannot be opened, written or closed."""


class BulkLoadChannel(ABC):
    """Write-only stream of encoded commands bound to one node."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Queue ``data`` for the destination node."""

    @abstractmethod
    def close(self) -> None:
        """Flush pending bytes and end the batch."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RedisCliPipe(BulkLoadChannel):
    """Channel backed by ``redis-cli --pipe``.

    Replies are collected by redis-cli itself. Its stdout and stderr are
    drained by a reader thread while commands are written, so a long run of
    error replies cannot fill the pipe and stall the writer. Only the last
    ``OUTPUT_LINES`` lines are kept for the error message and the summary.
    """

    def __init__(
        self,
        node: NodeDescriptor,
        *,
        cli: str = REDIS_CLI,
        timeout: float | None = None,
    ) -> None:
        self.node = node
        self.timeout = timeout
        self._tail = deque(maxlen=OUTPUT_LINES)
        executable = shutil.which(cli) or cli
        args = [
            executable,
            "-h",
            node.host,
            "-p",
            str(node.port),
            "-n",
            str(node.db),
            "--pipe",
        ]
        try:
            self.process = subprocess.Popen(
                args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise ChannelError(f"cannot start {cli} for {node.url}: {e}") from e
        self._reader = threading.Thread(
            target=self._drain, name=f"redis-cli-output-{node.address}", daemon=True
        )
        self._reader.start()
        self._closed = False

    def _drain(self) -> None:
        for line in self.process.stdout:
            self._tail.append(line)

    @property
    def output(self) -> bytes:
        """Last lines printed by redis-cli."""
        return b"".join(self._tail)

    def write(self, data: bytes) -> None:
        if self._closed:
            raise ChannelError(f"channel to {self.node.url} is closed")
        try:
            self.process.stdin.write(data)
        except (BrokenPipeError, ValueError) as e:
            raise ChannelError(f"pipe to {self.node.url} broke: {e}") from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        broken = None
        try:
            self.process.stdin.close()
        except BrokenPipeError as e:
            broken = e
        try:
            self.process.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            self.process.kill()
            self.process.wait()
            self._reader.join()
            raise ChannelError(f"redis-cli for {self.node.url} timed out") from e
        self._reader.join()
        if broken is not None:
            raise ChannelError(f"pipe to {self.node.url} broke on flush") from broken
        summary = self.output.decode("utf-8", errors="replace").strip()
        if self.process.returncode != 0:
            raise ChannelError(
                f"redis-cli for {self.node.url} exited with {self.process.returncode}: {summary}"
            )
        logger.debug("pipe to %s closed: %s", self.node.url, summary)
