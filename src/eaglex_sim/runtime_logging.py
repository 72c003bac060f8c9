from __future__ import annotations

import datetime as dt
import sys
from pathlib import Path
from typing import Optional, TextIO


class _TeeStream:
    """Writes to the console stream and mirrors every line into the session log."""

    def __init__(self, console: TextIO, log: TextIO) -> None:
        self.console = console
        self.log = log

    def write(self, data: str) -> int:
        self.console.write(data)
        if not self.log.closed:
            self.log.write(data)
        return len(data)

    def flush(self) -> None:
        self.console.flush()
        if not self.log.closed:
            self.log.flush()

    def isatty(self) -> bool:
        return bool(getattr(self.console, "isatty", lambda: False)())

    @property
    def encoding(self) -> str | None:
        return getattr(self.console, "encoding", None)


_log_handle: Optional[TextIO] = None


def configure_runtime_log(log_file: Path) -> Path:
    """Tees stdout/stderr into ``log_file`` (append mode) and returns its resolved path."""
    global _log_handle
    log_path = log_file.expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if _log_handle is not None:
        restore_runtime_log()
    _log_handle = log_path.open("a", encoding="utf-8", buffering=1)
    started = dt.datetime.now().isoformat(timespec="seconds")
    _log_handle.write(f"\n========== EAGLEX session started {started} ==========\n")
    sys.stdout = _TeeStream(sys.stdout, _log_handle)  # type: ignore[assignment]
    sys.stderr = _TeeStream(sys.stderr, _log_handle)  # type: ignore[assignment]
    return log_path


def restore_runtime_log() -> None:
    global _log_handle
    if isinstance(sys.stdout, _TeeStream):
        sys.stdout = sys.stdout.console  # type: ignore[assignment]
    if isinstance(sys.stderr, _TeeStream):
        sys.stderr = sys.stderr.console  # type: ignore[assignment]
    if _log_handle is not None:
        _log_handle.close()
        _log_handle = None
