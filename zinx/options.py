"""Options applied to servers and clients when they are created."""

from __future__ import annotations

from typing import Any, Callable

__all__ = ["with_packet", "with_packet_client", "with_name_client"]


def with_packet(pack: Any) -> Callable[[Any], None]:
    """Server option: use a custom packet format."""

    def apply(server: Any) -> None:
        server.packet = pack

    return apply


def with_packet_client(pack: Any) -> Callable[[Any], None]:
    """Client option: use a custom packet format."""

    def apply(client: Any) -> None:
        client.packet = pack

    return apply


def with_name_client(name: str) -> Callable[[Any], None]:
    """Client option: set the client's name."""

    def apply(client: Any) -> None:
        client.name = name

    return apply