from __future__ import annotations

import time
from threading import Event, Lock, Thread
from typing import Callable, Optional

TickCallback = Callable[[], object]

BASE_INTERVAL_S = 0.1


class SimulationClock:
    """Fires ``on_tick`` every ``base_interval / speed_multiplier`` while playing.

    One timer thread per clock. Ticks run on that thread one after another, so
    a slow tick delays the next one instead of overlapping it. ``pause()``
    cancels the pending wait and ``stop()`` ends the thread; neither touches
    simulation state.
    """

    def __init__(
        self,
        on_tick: TickCallback,
        base_interval_s: float = BASE_INTERVAL_S,
        speed_multiplier: float = 1.0,
        tick_limit: int = 0,
    ) -> None:
        if base_interval_s <= 0.0:
            raise ValueError("base interval must be positive")
        self.on_tick = on_tick
        self.base_interval_s = base_interval_s
        self.tick_limit = max(0, tick_limit)
        self._lock = Lock()
        self._playing = Event()
        self._wake = Event()
        self._stopped = Event()
        self._finished = Event()
        self._speed_multiplier = 1.0
        self.set_speed_multiplier(speed_multiplier)
        self._thread: Optional[Thread] = None
        self.ticks_fired = 0
        self.last_error: Optional[BaseException] = None

    @property
    def interval_s(self) -> float:
        return self.base_interval_s / self._speed_multiplier

    @property
    def speed_multiplier(self) -> float:
        return self._speed_multiplier

    @property
    def is_playing(self) -> bool:
        return self._playing.is_set() and not self._stopped.is_set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def set_speed_multiplier(self, value: float) -> None:
        if value <= 0.0:
            raise ValueError("speed multiplier must be positive")
        self._speed_multiplier = float(value)
        self._wake.set()

    def play(self) -> None:
        with self._lock:
            if self._stopped.is_set():
                raise RuntimeError("clock already stopped")
            self._playing.set()
            self._wake.set()
            if self._thread is None:
                self._thread = Thread(target=self._run, name="eaglex-clock", daemon=True)
                self._thread.start()

    def pause(self) -> None:
        self._playing.clear()
        self._wake.set()

    def toggle(self) -> bool:
        if self.is_playing:
            self.pause()
        else:
            self.play()
        return self.is_playing

    def stop(self, timeout_s: float = 2.0) -> None:
        self._stopped.set()
        self._playing.clear()
        self._wake.set()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout_s)
        self._finished.set()

    def wait_finished(self, timeout_s: float | None = None) -> bool:
        """Blocks until the tick limit is hit or the clock is stopped."""
        return self._finished.wait(timeout=timeout_s)

    def __enter__(self) -> "SimulationClock":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _run(self) -> None:
        next_due = time.monotonic() + self.interval_s
        while not self._stopped.is_set():
            if not self._playing.is_set():
                self._wake.clear()
                if not self._playing.is_set() and not self._stopped.is_set():
                    self._wake.wait()
                next_due = time.monotonic() + self.interval_s
                continue

            remaining = next_due - time.monotonic()
            if remaining > 0.0:
                self._wake.clear()
                if self._stopped.is_set() or not self._playing.is_set():
                    continue
                if self._wake.wait(timeout=remaining):
                    # Woken by pause/stop/speed change: re-evaluate the schedule.
                    if self._playing.is_set() and not self._stopped.is_set():
                        next_due = min(next_due, time.monotonic() + self.interval_s)
                    continue

            if self._stopped.is_set() or not self._playing.is_set():
                continue
            try:
                self.on_tick()
            except Exception as exc:  # noqa: BLE001
                self.last_error = exc
                print(f"[CLOCK] tick failed, stopping: {exc!r}")
                self._stopped.set()
                break
            self.ticks_fired += 1
            if self.tick_limit and self.ticks_fired >= self.tick_limit:
                print(f"[CLOCK] tick_limit reached ({self.tick_limit}).")
                self._stopped.set()
                break
            next_due = time.monotonic() + self.interval_s
        self._playing.clear()
        self._finished.set()
