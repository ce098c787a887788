"""Binary payload handling: the AsBytes capability and base64 descriptors."""

import array
import base64
from dataclasses import dataclass
from typing import Literal, Protocol, TypedDict, runtime_checkable


class BinaryPayload(TypedDict):
    """JSON-safe stand-in for raw bytes."""

    type: str
    encoding: Literal["base64"]
    data: str


@runtime_checkable
class AsBytes(Protocol):
    """A window of ``length`` bytes starting at ``offset`` in a backing store."""

    offset: int
    length: int

    def backing_bytes(self) -> bytes | bytearray | memoryview: ...


@dataclass(frozen=True)
class ByteSlice:
    """A view over part of a shared buffer."""

    buffer: bytes | bytearray
    offset: int = 0
    length: int | None = None

    def __post_init__(self) -> None:
        size = len(self.buffer)
        if not 0 <= self.offset <= size:
            raise ValueError(f"offset {self.offset} outside buffer of {size} bytes")
        if self.length is None:
            object.__setattr__(self, "length", size - self.offset)
        elif not 0 <= self.length <= size - self.offset:
            raise ValueError(f"length {self.length} at offset {self.offset} overruns buffer of {size} bytes")

    def backing_bytes(self) -> bytes | bytearray:
        return self.buffer


BINARY_TYPES = (bytes, bytearray, memoryview, array.array)


def is_binary(value: object) -> bool:
    return isinstance(value, BINARY_TYPES) or isinstance(value, AsBytes)


def view_bytes(value: object) -> bytes:
    """Return exactly the bytes a binary value views, never its whole backing store."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, bytearray):
        return bytes(value)
    if isinstance(value, (memoryview, array.array)):
        return value.tobytes()
    if isinstance(value, AsBytes):
        backing = memoryview(value.backing_bytes())
        if backing.format != "B":
            backing = backing.cast("B")
        start = max(0, min(value.offset, len(backing)))
        end = max(start, min(start + max(0, value.length), len(backing)))
        return backing[start:end].tobytes()
    raise TypeError(f"Not a binary value: {type(value).__name__}")


def to_base64_payload(value: object) -> BinaryPayload:
    """Encode a binary value as a base64 descriptor tagged with its origin type."""
    return {
        "type": type(value).__name__,
        "encoding": "base64",
        "data": base64.b64encode(view_bytes(value)).decode("ascii"),
    }
