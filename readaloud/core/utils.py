"""Shared utility functions and helpers for ReadAloud."""

import logging
from collections import defaultdict
from collections.abc import Callable, Hashable
from typing import Any

logger = logging.getLogger(__name__)


class EventEmitter:
    """Minimal synchronous listener registry keyed by event name.

    Listeners run in registration order on the caller's thread. A listener
    that raises is logged and does not prevent the others from running.
    """

    def __init__(self) -> None:
        self._listeners: dict[Hashable, list[Callable[..., Any]]] = defaultdict(list)

    def add_listener(self, event: Hashable, listener: Callable[..., Any]) -> Callable[[], None]:
        """Register *listener* for *event* and return a function that removes it."""
        self._listeners[event].append(listener)
        return lambda: self.remove_listener(event, listener)

    def remove_listener(self, event: Hashable, listener: Callable[..., Any]) -> None:
        """Remove *listener*; unknown listeners are ignored."""
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def listener_count(self, event: Hashable) -> int:
        return len(self._listeners[event])

    def emit(self, event: Hashable, *args: Any) -> None:
        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for %s failed", event)


def truncate_text(text: str | None, max_length: int = 50) -> str:
    """Shorten *text* to *max_length* characters with a trailing ellipsis."""
    if not text:
        return ""
    return text[:max_length] + "..." if len(text) > max_length else text
