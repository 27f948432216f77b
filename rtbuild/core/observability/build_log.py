"""
Run log — one append-only file shared by every command in a build.

The log is opened once when the run starts and closed when it ends.
Subprocesses write straight into its file descriptor.  In verbose mode
a ``LogTailer`` thread echoes new lines to the terminal while the
build runs.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections import deque
from pathlib import Path
from typing import IO, Callable

logger = logging.getLogger(__name__)

TAIL_LINES = 10


class BuildLog:
    """Append-only run log.

    Usage::

        with BuildLog(path) as log:
            subprocess.run(cmd, stdout=log.stream, stderr=subprocess.STDOUT)
    """

    def __init__(self, path: Path):
        self.path = path
        self._stream: IO[bytes] | None = None

    def open(self) -> BuildLog:
        if self._stream is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._stream = open(self.path, "ab")  # noqa: SIM115
        return self

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def __enter__(self) -> BuildLog:
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def stream(self) -> IO[bytes]:
        """Binary stream suitable for ``subprocess`` stdout/stderr."""
        if self._stream is None:
            raise RuntimeError(f"Run log is not open: {self.path}")
        return self._stream

    def write(self, line: str) -> None:
        """Append one line and flush, so subprocess output stays ordered."""
        self.stream.write(line.rstrip("\n").encode("utf-8", "replace") + b"\n")
        self.stream.flush()

    def flush(self) -> None:
        if self._stream is not None:
            self._stream.flush()

    def tail(self, lines: int = TAIL_LINES) -> list[str]:
        """Return the last ``lines`` lines of the log."""
        self.flush()
        try:
            with open(self.path, encoding="utf-8", errors="replace") as f:
                return [line.rstrip("\n") for line in deque(f, maxlen=lines)]
        except OSError:
            return []


class LogTailer:
    """Echo new run-log lines to the terminal from a background thread.

    Purely observational: the thread only reads the log.  ``stop()``
    drains whatever is left and joins the thread.
    """

    def __init__(
        self,
        path: Path,
        echo: Callable[[str], None] | None = None,
        poll_interval: float = 0.2,
    ):
        self.path = path
        self._echo = echo or _stdout_echo
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="rtbuild-log-tail", daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        position = 0
        pending = b""
        while True:
            stopping = self._stop.is_set()
            try:
                with open(self.path, "rb") as f:
                    f.seek(position)
                    chunk = f.read()
            except OSError:
                chunk = b""
            position += len(chunk)
            if chunk:
                # Only whole lines are decoded; a split UTF-8 sequence waits
                pending += chunk
                *complete, pending = pending.split(b"\n")
                for line in complete:
                    self._echo(_decode(line))
            if stopping:
                if pending:
                    self._echo(_decode(pending))
                return
            self._stop.wait(self._poll_interval)


def _stdout_echo(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def _decode(line: bytes) -> str:
    return line.decode("utf-8", "replace")
