"""
Graph-safe canonicalization of WhatsApp payload objects.

Turns the loosely typed object graphs produced by the WhatsApp protocol layer
(``Long`` wrappers, raw bytes, dates, protobuf messages, possibly cyclic
references) into plain JSON-safe values for logging and persistence.
"""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Iterable, Mapping, Sequence, Set
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

from google.protobuf.message import Message
from google.protobuf.timestamp_pb2 import Timestamp
from loguru import logger

from wabridge.normalize.binary import BinaryPayload, is_binary, to_base64_payload
from wabridge.normalize.long import Long

if TYPE_CHECKING:
    from wabridge.config.schema import NormalizeConfig

MAX_SAFE_INTEGER = 2**53 - 1
DEFAULT_MAX_DEPTH = 128

LargeIntMode = Literal["number", "string"]

CanonicalValue = (
    str
    | int
    | float
    | bool
    | None
    | list["CanonicalValue"]
    | dict[str, "CanonicalValue"]
    | BinaryPayload
)


class _Absent:
    """Marker for a value that should be left out of its parent mapping."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


class ValueKind(enum.Enum):
    """Discriminant used to route a value to its conversion."""

    ABSENT = "absent"
    NULL = "null"
    LONG = "long"
    INTEGER = "integer"
    BINARY = "binary"
    SEQUENCE = "sequence"
    DATE = "date"
    MAPPING = "mapping"
    SCALAR = "scalar"


def classify(value: Any) -> ValueKind:
    """Return the ValueKind of a value. Checks run in conversion precedence order."""
    if value is ABSENT:
        return ValueKind.ABSENT
    if value is None:
        return ValueKind.NULL
    if isinstance(value, Long):
        return ValueKind.LONG
    if isinstance(value, bool):
        return ValueKind.SCALAR
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, (str, float)):
        return ValueKind.SCALAR
    if is_binary(value):
        return ValueKind.BINARY
    if isinstance(value, (Sequence, Set)):
        return ValueKind.SEQUENCE
    if isinstance(value, (datetime, date, Timestamp)):
        return ValueKind.DATE
    if isinstance(value, (Mapping, Message)):
        return ValueKind.MAPPING
    if isinstance(value, enum.Enum) or callable(value):
        return ValueKind.SCALAR
    if dataclasses.is_dataclass(value) or hasattr(value, "__dict__"):
        return ValueKind.MAPPING
    return ValueKind.SCALAR


class VisitedSet:
    """
    Identity-keyed set of the objects seen during one canonicalization call.

    Holds a reference to every member so an id cannot be reused by a new
    object while the call is still running.
    """

    __slots__ = ("_refs",)

    def __init__(self) -> None:
        self._refs: dict[int, Any] = {}

    def __contains__(self, value: object) -> bool:
        return id(value) in self._refs

    def __len__(self) -> int:
        return len(self._refs)

    def add(self, value: object) -> None:
        self._refs[id(value)] = value

    def discard(self, value: object) -> None:
        self._refs.pop(id(value), None)


def format_timestamp(value: datetime | date | Timestamp) -> str:
    """Format a date value as ISO-8601 UTC with milliseconds, e.g. 2024-05-01T12:00:00.000Z."""
    if isinstance(value, Timestamp):
        value = value.ToDatetime(tzinfo=timezone.utc)
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _own_items(value: Any) -> Iterable[tuple[Any, Any]]:
    """Own keys of a mapping-like value, in iteration order."""
    if isinstance(value, Mapping):
        return value.items()
    if isinstance(value, Message):
        # Only fields that are actually set, like own properties on a decoded message.
        return ((field.name, field_value) for field, field_value in value.ListFields())
    if not hasattr(value, "__dict__"):
        return ((field.name, getattr(value, field.name)) for field in dataclasses.fields(value))
    return vars(value).items()


@dataclasses.dataclass
class _Walk:
    """Per-call traversal state."""

    visited: VisitedSet
    truncated: int = 0


class Canonicalizer:
    """
    Converts arbitrary payload graphs into canonical JSON-safe values.

    Instances only hold configuration, so one canonicalizer can be shared by
    any number of threads or tasks; all traversal state lives in the call.

    Integers outside +/-(2**53 - 1) (plain ints and ``Long`` values alike) are
    converted according to ``large_ints``: ``"number"`` turns them into floats,
    which is lossy, and ``"string"`` keeps the exact decimal digits.
    """

    def __init__(
        self,
        large_ints: LargeIntMode = "number",
        max_depth: int | None = DEFAULT_MAX_DEPTH,
    ):
        if large_ints not in ("number", "string"):
            raise ValueError(f"Unknown large_ints mode: {large_ints!r}")
        if max_depth is not None and max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.large_ints = large_ints
        self.max_depth = max_depth

    @classmethod
    def from_config(cls, config: "NormalizeConfig") -> "Canonicalizer":
        return cls(large_ints=config.large_ints, max_depth=config.max_depth)

    def canonicalize(self, value: Any, visited: VisitedSet | None = None) -> CanonicalValue | _Absent:
        """
        Canonicalize a value graph.

        Args:
            value: Any payload value.
            visited: Optional visited set for this call. A fresh one is used if omitted.

        Returns:
            The canonical value, or ABSENT when the value itself is ABSENT
            or already in ``visited``.
        """
        walk = _Walk(visited=visited if visited is not None else VisitedSet())
        result = self._walk(value, walk, 0)
        if walk.truncated:
            logger.warning(
                "Canonicalization dropped {} subtree(s) nested deeper than {} levels",
                walk.truncated,
                self.max_depth,
            )
        return result

    def _walk(self, value: Any, walk: _Walk, depth: int) -> Any:
        kind = classify(value)
        if kind is ValueKind.ABSENT or kind is ValueKind.NULL:
            return value
        if kind is ValueKind.LONG:
            return self._coerce_int(value.to_int())
        if kind is ValueKind.INTEGER:
            return self._coerce_int(value)
        if kind is ValueKind.BINARY:
            return to_base64_payload(value)
        if kind is ValueKind.SEQUENCE:
            return self._walk_sequence(value, walk, depth)
        if kind is ValueKind.DATE:
            try:
                return format_timestamp(value)
            except (ValueError, OverflowError) as e:
                logger.warning("Dropping date value outside the representable range: {}", e)
                return ABSENT
        if kind is ValueKind.MAPPING:
            return self._walk_mapping(value, walk, depth)
        return value

    def _coerce_int(self, value: int) -> int | float | str:
        if -MAX_SAFE_INTEGER <= value <= MAX_SAFE_INTEGER:
            return value
        if self.large_ints == "string":
            return str(value)
        try:
            return float(value)
        except OverflowError:
            return str(value)

    def _too_deep(self, depth: int, walk: _Walk) -> bool:
        if self.max_depth is not None and depth >= self.max_depth:
            walk.truncated += 1
            return True
        return False

    def _walk_sequence(self, value: Any, walk: _Walk, depth: int) -> list[Any] | _Absent:
        # Sequences are only tracked while being walked: a re-entry is a
        # cycle, a second sibling occurrence is not.
        if value in walk.visited or self._too_deep(depth, walk):
            return ABSENT

        walk.visited.add(value)
        try:
            items: list[Any] = []
            for item in value:
                normalized = self._walk(item, walk, depth + 1)
                items.append(None if normalized is ABSENT else normalized)
            return items
        finally:
            walk.visited.discard(value)

    def _walk_mapping(self, value: Any, walk: _Walk, depth: int) -> dict[str, Any] | _Absent:
        if value in walk.visited or self._too_deep(depth, walk):
            return ABSENT

        walk.visited.add(value)
        result: dict[str, Any] = {}
        for key, nested in _own_items(value):
            normalized = self._walk(nested, walk, depth + 1)
            if normalized is not ABSENT:
                result[key if isinstance(key, str) else str(key)] = normalized
        return result


_default_canonicalizer = Canonicalizer()


def canonicalize(value: Any, visited: VisitedSet | None = None) -> CanonicalValue | _Absent:
    """Canonicalize with the default settings (lossy large ints, default depth cap)."""
    return _default_canonicalizer.canonicalize(value, visited)
