"""Routers: a class-based router and slice-based handler chains with groups."""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

__all__ = ["RouteError", "BaseRouter", "RouterSlices", "GroupRouter"]

RouterHandler = Callable[[Any], None]


class RouteError(ValueError):
    """Raised on a duplicate route or a message id outside a group's range."""


class BaseRouter:
    """Router with three steps; subclasses override what they need.

    The default pre_handle and post_handle steps run the instance
    attributes ``before`` and ``after`` when they are set to callables.
    """

    before: Optional[RouterHandler] = None
    after: Optional[RouterHandler] = None

    def pre_handle(self, request: Any) -> None:
        """Run before the main handler."""
        hook = self.before
        if hook is not None:
            hook(request)

    def handle(self, request: Any) -> None:
        """Handle the request."""

    def post_handle(self, request: Any) -> None:
        """Run after the main handler."""
        hook = self.after
        if hook is not None:
            hook(request)


class RouterSlices:
    """Maps message ids to handler chains, prefixed by shared handlers."""

    def __init__(self) -> None:
        self.apis: dict[int, list[RouterHandler]] = {}
        self.handlers: list[RouterHandler] = []
        self._lock = threading.RLock()

    def use(self, *handlers: RouterHandler) -> None:
        """Add shared handlers to the front of routes added afterwards."""
        self.handlers.extend(handlers)

    def add_handler(self, msg_id: int, *handlers: RouterHandler) -> None:
        """Register the chain for a message id."""
        with self._lock:
            if msg_id in self.apis:
                raise RouteError(f"repeated api , msgId = {msg_id}")
            self.apis[msg_id] = [*self.handlers, *handlers]

    def get_handlers(self, msg_id: int) -> list[RouterHandler] | None:
        """Return the chain for a message id, or None if there is none."""
        with self._lock:
            return self.apis.get(msg_id)

    def group(self, start: int, end: int, *handlers: RouterHandler) -> GroupRouter:
        """Create a group covering message ids start..end inclusive."""
        return GroupRouter(start, end, self, *handlers)


class GroupRouter:
    """Routes for a range of message ids sharing their own handlers."""

    def __init__(
        self, start: int, end: int, router: RouterSlices, *handlers: RouterHandler
    ) -> None:
        self.start = start
        self.end = end
        self.router = router
        self.handlers: list[RouterHandler] = list(handlers)

    def use(self, *handlers: RouterHandler) -> None:
        """Add handlers shared by routes added to this group afterwards."""
        self.handlers.extend(handlers)

    def add_handler(self, msg_id: int, *handlers: RouterHandler) -> None:
        """Register a chain for a message id inside the group's range."""
        if msg_id < self.start or msg_id > self.end:
            raise RouteError(f"add router to group err in msgId:{msg_id}")
        self.router.add_handler(msg_id, *self.handlers, *handlers)