"""Payload canonicalization and reply-context helpers."""

from wabridge.normalize.binary import AsBytes, BinaryPayload, ByteSlice, to_base64_payload
from wabridge.normalize.canonical import (
    ABSENT,
    MAX_SAFE_INTEGER,
    CanonicalValue,
    Canonicalizer,
    ValueKind,
    VisitedSet,
    canonicalize,
    classify,
)
from wabridge.normalize.long import Long, is_long
from wabridge.normalize.reply import (
    STORY_MARKER_KEYS,
    ReplyContext,
    build_reply_metadata,
    extract_reply_context,
    has_story_quoted_message,
)

__all__ = [
    "ABSENT",
    "MAX_SAFE_INTEGER",
    "AsBytes",
    "BinaryPayload",
    "ByteSlice",
    "CanonicalValue",
    "Canonicalizer",
    "Long",
    "ReplyContext",
    "STORY_MARKER_KEYS",
    "ValueKind",
    "VisitedSet",
    "build_reply_metadata",
    "canonicalize",
    "classify",
    "extract_reply_context",
    "has_story_quoted_message",
    "is_long",
    "to_base64_payload",
]
