"""Ordered list of callbacks keyed by (handler, key)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

__all__ = ["Callbacks"]


@dataclass
class _Entry:
    handler: Any
    key: Any
    call: Callable[[], Any]


class Callbacks:
    """Callbacks run in registration order and removable by handler and key."""

    def __init__(self) -> None:
        self._entries: list[_Entry] = []

    def add(self, handler: Any, key: Any, callback: Callable[[], Any] | None) -> None:
        """Append a callback; a missing callback is ignored."""
        if callback is None:
            return
        self._entries.append(_Entry(handler, key, callback))

    def remove(self, handler: Any, key: Any) -> None:
        """Remove the first callback registered under handler and key."""
        for index, entry in enumerate(self._entries):
            if entry.handler == handler and entry.key == key:
                del self._entries[index]
                return

    def invoke(self) -> None:
        """Call every callback in order."""
        for entry in list(self._entries):
            entry.call()

    def __len__(self) -> int:
        return len(self._entries)