"""
provider/events.py - Topic keyed publish/subscribe registry.

Topics are either static event names (connect, close, ...) or runtime
subscription ids. Listeners are called in registration order.
"""

from collections import defaultdict
from enum import Enum
from typing import Any, Callable

from core.logging import get_logger

logger = get_logger("provider.events")

Listener = Callable[..., Any]


def _key(topic: Any) -> str:
    """ProviderEvent members map to their value, ids to themselves."""
    if isinstance(topic, Enum):
        return str(topic.value)
    return str(topic)


class EventRegistry:
    """Mapping from topic to an ordered list of callbacks."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, topic: str, listener: Listener) -> None:
        """Register a listener. The same callable may be added twice."""
        if not callable(listener):
            raise TypeError(f"Listener for {topic!r} is not callable")
        self._listeners[_key(topic)].append(listener)

    def off(self, topic: str, listener: Listener) -> bool:
        """Remove the first registration of listener. Returns True if found."""
        listeners = self._listeners.get(_key(topic))
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        if not listeners:
            del self._listeners[_key(topic)]
        return True

    def remove_all_listeners(self, topic: str) -> int:
        """Drop every listener on topic. Returns how many were removed."""
        return len(self._listeners.pop(_key(topic), []))

    def listener_count(self, topic: str) -> int:
        return len(self._listeners.get(_key(topic), []))

    def topics(self) -> list[str]:
        return list(self._listeners)

    def emit(self, topic: str, *args: Any) -> int:
        """
        Call every listener on topic with args.

        A listener that raises is logged and skipped; the rest still run.
        Returns the number of listeners called.
        """
        # Snapshot so listeners may (un)register during delivery
        listeners = list(self._listeners.get(_key(topic), []))
        for listener in listeners:
            try:
                listener(*args)
            except Exception as e:
                logger.error(
                    f"Listener for {_key(topic)} raised: {e}",
                    extra={"context": {"topic": _key(topic)}},
                    exc_info=True,
                )
        return len(listeners)
