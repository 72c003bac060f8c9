from __future__ import annotations

from collections import defaultdict
from threading import Lock
from typing import Callable, DefaultDict, Dict, List

from eaglex_sim.core.events import Event

EventHandler = Callable[[Event], None]


class EventBus:
    """In-process pub/sub between the engine and its observers."""

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, List[EventHandler]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Event) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event.name, []))
        for handler in handlers:
            handler(event)

    def subscriber_count(self) -> Dict[str, int]:
        with self._lock:
            return {event_name: len(handlers) for event_name, handlers in self._handlers.items()}
