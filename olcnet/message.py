"""Framed messages: a fixed 8-byte header followed by a raw byte body."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

HEADER = struct.Struct("<II")
HEADER_SIZE = HEADER.size

_BYTE_ORDER_MARKS = "@=<>!"


def _normalise(fmt: str) -> str:
    """Use little-endian standard sizes unless the format names a byte order."""
    if fmt and fmt[0] in _BYTE_ORDER_MARKS:
        return fmt
    return "<" + fmt


@dataclass
class Message:
    """A message with an identifier and a body that acts as a stack of packed values."""

    id: Any = 0
    body: bytearray = field(default_factory=bytearray)

    def __post_init__(self) -> None:
        self.body = bytearray(self.body)

    @property
    def size(self) -> int:
        """Total size on the wire: header plus body."""
        return HEADER_SIZE + len(self.body)

    def push(self, fmt: str, *args: Any) -> "Message":
        """Pack ``args`` with the struct format ``fmt`` onto the end of the body."""
        self.body += struct.pack(_normalise(fmt), *args)
        return self

    def pop(self, fmt: str) -> Any:
        """Unpack the last value(s) laid out by ``fmt`` and remove them from the body.

        Returns a single value when the format holds one field, otherwise a tuple.
        """
        layout = struct.Struct(_normalise(fmt))
        if layout.size > len(self.body):
            raise ValueError(
                f"cannot pop {layout.size} bytes from a body of {len(self.body)}"
            )
        start = len(self.body) - layout.size
        values = layout.unpack(bytes(self.body[start:]))
        del self.body[start:]
        return values[0] if len(values) == 1 else values

    def encode_header(self) -> bytes:
        """The 8-byte header: identifier and body length as little-endian uint32."""
        return HEADER.pack(int(self.id), len(self.body))

    def encode(self) -> bytes:
        """Header and body as they go on the wire."""
        return self.encode_header() + bytes(self.body)

    def __str__(self) -> str:
        return f"ID: {int(self.id)}, Size: {len(self.body)}"


def decode_header(
    data: bytes, msg_type: Optional[Callable[[int], Any]] = None
) -> tuple[Any, int]:
    """Decode a header into ``(message id, body length)``.

    ``msg_type`` converts the raw identifier, for instance an ``IntEnum`` class;
    an unknown identifier then raises ``ValueError``.
    """
    if len(data) != HEADER_SIZE:
        raise ValueError(f"header must be {HEADER_SIZE} bytes, got {len(data)}")
    raw_id, body_length = HEADER.unpack(data)
    msg_id = msg_type(raw_id) if msg_type is not None else raw_id
    return msg_id, body_length


@dataclass
class OwnedMessage:
    """A message tagged with the connection it came from (``None`` on a client)."""

    remote: Any = None
    msg: Message = field(default_factory=Message)

    def __str__(self) -> str:
        return str(self.msg)