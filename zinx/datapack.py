"""Packing and unpacking of message frames with an 8-byte header."""

from __future__ import annotations

import struct

from .message import Message

__all__ = [
    "HEAD_LEN",
    "ZINX_DATA_PACK",
    "ZINX_DATA_PACK_OLD",
    "PacketTooLargeError",
    "DataPack",
    "DataPackLtv",
    "new_pack",
]

HEAD_LEN = 8

ZINX_DATA_PACK = "zinx_pack_tlv_big_endian"
ZINX_DATA_PACK_OLD = "zinx_pack_ltv_little_endian"


class PacketTooLargeError(ValueError):
    """Raised when a header declares more data than the allowed packet size."""


class DataPack:
    """Big-endian frames: message id (4 bytes), data length (4 bytes), data."""

    head_len = HEAD_LEN
    _header = struct.Struct(">II")

    def __init__(self, max_packet_size: int = 0) -> None:
        self.max_packet_size = max_packet_size

    def pack(self, msg: Message) -> bytes:
        """Encode a message as header followed by its payload."""
        try:
            header = self._header.pack(msg.msg_id, msg.data_len)
        except struct.error as exc:
            raise ValueError(f"cannot pack message header: {exc}") from exc
        return header + bytes(msg.data)

    def unpack(self, binary_data: bytes) -> Message:
        """Decode a header into a message without payload."""
        msg_id, data_len = self._header.unpack(self._head(binary_data))
        return self._checked(msg_id, data_len)

    def _head(self, binary_data: bytes) -> bytes:
        if len(binary_data) < HEAD_LEN:
            raise ValueError(
                f"header needs {HEAD_LEN} bytes, got {len(binary_data)}"
            )
        return bytes(binary_data[:HEAD_LEN])

    def _checked(self, msg_id: int, data_len: int) -> Message:
        if self.max_packet_size > 0 and data_len > self.max_packet_size:
            raise PacketTooLargeError("too large msg data received")
        return Message(msg_id=msg_id, data_len=data_len)


class DataPackLtv(DataPack):
    """Little-endian frames: data length (4 bytes), message id (4 bytes), data."""

    _header = struct.Struct("<II")

    def pack(self, msg: Message) -> bytes:
        """Encode a message as length, id, then payload."""
        try:
            header = self._header.pack(msg.data_len, msg.msg_id)
        except struct.error as exc:
            raise ValueError(f"cannot pack message header: {exc}") from exc
        return header + bytes(msg.data)

    def unpack(self, binary_data: bytes) -> Message:
        """Decode a length-first header into a message without payload."""
        data_len, msg_id = self._header.unpack(self._head(binary_data))
        return self._checked(msg_id, data_len)


def new_pack(kind: str = ZINX_DATA_PACK, max_packet_size: int = 0) -> DataPack:
    """Return the packer for a kind; unknown kinds get the default format."""
    if kind == ZINX_DATA_PACK_OLD:
        return DataPackLtv(max_packet_size)
    return DataPack(max_packet_size)