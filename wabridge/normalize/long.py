"""64-bit integer wrapper used by WhatsApp protobuf payloads."""

from dataclasses import dataclass

_MASK_32 = 0xFFFFFFFF
_TWO_63 = 1 << 63
_TWO_64 = 1 << 64


def _to_int32(value: int) -> int:
    value &= _MASK_32
    return value - (1 << 32) if value & 0x80000000 else value


@dataclass(frozen=True)
class Long:
    """
    A 64-bit integer split into two signed 32-bit halves.

    Mirrors the wrapper emitted by protobuf decoders on the WhatsApp side
    (timestamps, file lengths, message counters). ``low`` and ``high`` are
    always stored as signed 32-bit values.
    """

    low: int = 0
    high: int = 0
    unsigned: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "low", _to_int32(self.low))
        object.__setattr__(self, "high", _to_int32(self.high))

    @classmethod
    def from_int(cls, value: int, unsigned: bool = False) -> "Long":
        """Build a Long from a Python int, wrapping to 64 bits."""
        value %= _TWO_64
        return cls(low=value & _MASK_32, high=(value >> 32) & _MASK_32, unsigned=unsigned)

    def to_int(self) -> int:
        """Exact integer value."""
        value = ((self.high & _MASK_32) << 32) | (self.low & _MASK_32)
        if not self.unsigned and value >= _TWO_63:
            value -= _TWO_64
        return value

    def to_number(self) -> float:
        """Float value; loses precision outside +/-(2**53 - 1)."""
        return float(self.to_int())

    def __int__(self) -> int:
        return self.to_int()

    def __str__(self) -> str:
        return str(self.to_int())


def is_long(value: object) -> bool:
    """Return True if value is a Long wrapper."""
    return isinstance(value, Long)
