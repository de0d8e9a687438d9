"""
cache.py
Per-session read cache where every entry carries a collection tag
("users", "payments", "payment_plans"). A write to a collection publishes
an invalidation for its tag and drops every read tagged with it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


class QueryCache:
    def __init__(self) -> None:
        self._entries: dict[Hashable, tuple[str, Any]] = {}
        self._listeners: list[Listener] = []

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def get_or_load(self, key: Hashable, tag: str, loader: Callable[[], Any]) -> Any:
        if key in self._entries:
            return self._entries[key][1]
        value = loader()
        self._entries[key] = (tag, value)
        return value

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def invalidate(self, tag: str) -> int:
        """Drop every entry tagged `tag`, then notify listeners. Returns the number dropped."""
        stale = [key for key, (entry_tag, _) in self._entries.items() if entry_tag == tag]
        for key in stale:
            del self._entries[key]
        logger.debug("Invalidated %d cached reads tagged %s", len(stale), tag)
        for listener in self._listeners:
            listener(tag)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
