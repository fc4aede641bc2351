"""Message records exchanged between peers."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "Message",
    "new_msg_package",
    "new_message",
    "new_message_by_msg_id",
]


@dataclass
class Message:
    """A message: its id, declared payload length, payload and raw bytes."""

    msg_id: int = 0
    data_len: int = 0
    data: bytes = b""
    raw_data: bytes = b""

    def init(self, msg_id: int, data: bytes) -> None:
        """Reinitialise the message with a new id and payload."""
        self.msg_id = msg_id
        self.data = data
        self.raw_data = data
        self.data_len = len(data)


def new_msg_package(msg_id: int, data: bytes) -> Message:
    """Build a message whose declared length is the payload length."""
    return Message(msg_id=msg_id, data_len=len(data), data=data, raw_data=data)


def new_message(length: int, data: bytes) -> Message:
    """Build a message with id 0 and an explicit declared length."""
    return Message(data_len=length, data=data, raw_data=data)


def new_message_by_msg_id(msg_id: int, length: int, data: bytes) -> Message:
    """Build a message with an explicit id and declared length."""
    return Message(msg_id=msg_id, data_len=length, data=data, raw_data=data)