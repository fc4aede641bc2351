"""Requests dispatched to routers, function requests and a request pool."""

from __future__ import annotations

import enum
import threading
from typing import Any, Callable

from .message import Message, new_message_by_msg_id

__all__ = ["HandleStep", "Request", "FuncRequest", "RequestPool"]

# Index given to copies so that they never run router handlers.
_COPY_INDEX = 127


class HandleStep(enum.IntEnum):
    """Steps of a class-based router call."""

    PRE_HANDLE = 0
    HANDLE = 1
    POST_HANDLE = 2
    HANDLE_OVER = 3


class Request:
    """A message received on a connection, with routing state and context keys."""

    def __init__(
        self,
        conn: Any = None,
        msg: Message | None = None,
        router_slices_mode: bool = False,
    ) -> None:
        self.router_slices_mode = router_slices_mode
        self.router: Any = None
        self.response: Any = None
        self.handlers: list[Callable[[Request], None]] = []
        self._lock = threading.RLock()
        self.reset(conn, msg)

    def reset(self, conn: Any, msg: Message | None) -> None:
        """Prepare the request for a new connection and message."""
        self.steps: int = HandleStep.PRE_HANDLE
        self.conn = conn
        self.msg = msg
        self.need_next = True
        self.index = -1
        self.keys: dict[str, Any] = {}

    @property
    def data(self) -> bytes:
        """Payload of the message."""
        return self.msg.data

    @property
    def msg_id(self) -> int:
        """Id of the message."""
        return self.msg.msg_id

    def copy(self) -> Request:
        """Copy context keys and message for use outside the handler chain.

        The copy has no connection, router or handlers and cannot run routes.
        """
        clone = Request(router_slices_mode=self.router_slices_mode)
        clone.steps = self.steps
        clone.need_next = False
        clone.index = _COPY_INDEX
        with self._lock:
            clone.keys = dict(self.keys)
        clone.msg = new_message_by_msg_id(
            self.msg.msg_id, self.msg.data_len, self.msg.raw_data
        )
        return clone

    def set(self, key: str, value: Any) -> None:
        """Store a context value."""
        with self._lock:
            self.keys[key] = value

    def get(self, key: str) -> Any:
        """Return a context value, or None if it was never set."""
        with self._lock:
            return self.keys.get(key)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self.keys

    def bind_router(self, router: Any) -> None:
        """Attach the class-based router that will handle this request."""
        self.router = router

    def _next(self) -> None:
        if not self.need_next:
            self.need_next = True
            return
        with self._lock:
            self.steps += 1

    def goto(self, step: HandleStep) -> None:
        """Jump to a router step; it runs next instead of the following one."""
        with self._lock:
            self.steps = step
            self.need_next = False

    def call(self) -> None:
        """Run the bound router's pre-handle, handle and post-handle steps."""
        if self.router is None:
            return
        while self.steps < HandleStep.HANDLE_OVER:
            if self.steps == HandleStep.PRE_HANDLE:
                self.router.pre_handle(self)
            elif self.steps == HandleStep.HANDLE:
                self.router.handle(self)
            elif self.steps == HandleStep.POST_HANDLE:
                self.router.post_handle(self)
            self._next()
        self.steps = HandleStep.PRE_HANDLE

    def abort(self) -> None:
        """Stop running the remaining handlers or router steps."""
        if self.router_slices_mode:
            self.index = len(self.handlers)
        else:
            with self._lock:
                self.steps = HandleStep.HANDLE_OVER

    def bind_router_slices(self, handlers: list[Callable[[Request], None]]) -> None:
        """Attach the handler chain that will handle this request."""
        self.handlers = handlers

    def router_slices_next(self) -> None:
        """Run the remaining handlers of the chain in order."""
        self.index += 1
        while self.index < len(self.handlers):
            self.handlers[self.index](self)
            self.index += 1


class FuncRequest:
    """A request that runs a function on a worker instead of a route."""

    def __init__(self, conn: Any, call_func: Callable[[], Any] | None) -> None:
        self.conn = conn
        self._func = call_func

    def call_func(self) -> None:
        """Run the function, if there is one."""
        if self._func is not None:
            self._func()


class RequestPool:
    """Reuses request objects when enabled; otherwise creates fresh ones."""

    def __init__(self, enabled: bool = False, router_slices_mode: bool = False) -> None:
        self.enabled = enabled
        self.router_slices_mode = router_slices_mode
        self._free: list[Request] = []
        self._lock = threading.Lock()

    def acquire(self, conn: Any, msg: Message) -> Request:
        """Return a request initialised for the connection and message."""
        if not self.enabled:
            return Request(conn, msg, self.router_slices_mode)
        with self._lock:
            request = self._free.pop() if self._free else None
        if request is None:
            return Request(conn, msg, self.router_slices_mode)
        request.reset(conn, msg)
        return request

    def release(self, request: Request) -> None:
        """Give a request back for reuse; ignored when pooling is off."""
        if self.enabled:
            with self._lock:
                self._free.append(request)