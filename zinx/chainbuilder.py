"""Interceptor chains that every incoming request passes through."""

from __future__ import annotations

import abc
from typing import Any

__all__ = ["Interceptor", "Chain", "ChainBuilder"]


class Interceptor(abc.ABC):
    """A link of the chain; it may pass the request on or answer itself."""

    @abc.abstractmethod
    def intercept(self, chain: Chain) -> Any:
        """Handle the chain's request, usually ending with ``chain.proceed``."""


class Chain:
    """The remaining interceptors from a position, with the current request."""

    def __init__(self, interceptors: list[Interceptor], position: int, request: Any) -> None:
        self.interceptors = interceptors
        self.position = position
        self.request = request

    def proceed(self, request: Any) -> Any:
        """Pass the request to the next interceptor; past the end, return it."""
        if self.position < len(self.interceptors):
            following = Chain(self.interceptors, self.position + 1, request)
            return self.interceptors[self.position].intercept(following)
        return request


class ChainBuilder:
    """Builds a chain from an optional head, a body and an optional tail."""

    def __init__(self) -> None:
        self.head: Interceptor | None = None
        self.tail: Interceptor | None = None
        self.body: list[Interceptor] = []

    def set_head(self, interceptor: Interceptor) -> None:
        """Set the interceptor that runs first."""
        self.head = interceptor

    def set_tail(self, interceptor: Interceptor) -> None:
        """Set the interceptor that runs last."""
        self.tail = interceptor

    def add_interceptor(self, interceptor: Interceptor) -> None:
        """Append an interceptor to the body."""
        self.body.append(interceptor)

    def execute(self, request: Any) -> Any:
        """Run the request through head, body and tail in order."""
        interceptors = [
            *([self.head] if self.head is not None else []),
            *self.body,
            *([self.tail] if self.tail is not None else []),
        ]
        return Chain(interceptors, 0, request).proceed(request)