from __future__ import annotations

import queue
import time
from dataclasses import dataclass
from threading import Lock, Thread
from typing import Any, Callable, Optional

WriteCallback = Callable[[Any], None]

_STOP = object()


@dataclass(slots=True)
class WriteJob:
    label: str
    action: Callable[[], Any]
    on_success: Optional[WriteCallback] = None


class PersistenceWriter:
    """Drains store writes on a background thread so ticks never wait on I/O.

    Jobs go through a bounded queue. A full queue drops the new job instead of
    blocking the caller, and a failing job is logged and skipped.
    """

    def __init__(self, max_pending: int = 256) -> None:
        self.max_pending = max(1, max_pending)
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=self.max_pending)
        self._thread: Optional[Thread] = None
        self._stats_lock = Lock()
        self.completed = 0
        self.failed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = Thread(target=self._drain, name="eaglex-writer", daemon=True)
        self._thread.start()

    def submit(
        self,
        label: str,
        action: Callable[[], Any],
        on_success: Optional[WriteCallback] = None,
    ) -> bool:
        try:
            self._queue.put_nowait(WriteJob(label=label, action=action, on_success=on_success))
        except queue.Full:
            with self._stats_lock:
                self.dropped += 1
            print(f"[PERSIST] queue full ({self.max_pending}), dropped {label}")
            return False
        return True

    def pending(self) -> int:
        return self._queue.qsize()

    def flush(self, timeout_s: float = 5.0) -> bool:
        """Wait until every queued job has been attempted."""
        deadline = time.monotonic() + max(0.0, timeout_s)
        while self._queue.unfinished_tasks > 0:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def close(self, timeout_s: float = 5.0) -> None:
        if self._thread is None:
            return
        self.flush(timeout_s=timeout_s)
        try:
            self._queue.put(_STOP, timeout=max(0.1, timeout_s))
        except queue.Full:
            print("[PERSIST] writer did not drain before shutdown")
        self._thread.join(timeout=max(0.1, timeout_s))
        self._thread = None

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._run(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    def _run(self, job: WriteJob) -> None:
        try:
            result = job.action()
        except Exception as exc:  # noqa: BLE001
            with self._stats_lock:
                self.failed += 1
            print(f"[PERSIST] {job.label} failed: {exc}")
            return
        with self._stats_lock:
            self.completed += 1
        if job.on_success is not None:
            try:
                job.on_success(result)
            except Exception as exc:  # noqa: BLE001
                print(f"[PERSIST] {job.label} callback failed: {exc}")
