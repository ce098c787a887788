"""Reply-context extraction for WhatsApp message envelopes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from google.protobuf.message import Message

from wabridge.normalize.canonical import ABSENT, CanonicalValue, Canonicalizer, canonicalize

STORY_MARKER_KEYS: tuple[str, ...] = (
    "storyReplyMessage",
    "statusMessage",
    "storyMentionedJidList",
    "storyInvite",
)

# Where a quoting message keeps its contextInfo, tried in order.
_CONTEXT_INFO_PATHS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("extended_text", ("message", "extendedTextMessage", "contextInfo")),
    ("message_context", ("message", "contextInfo")),
    ("envelope_context", ("contextInfo",)),
)

_REPLY_TEXT_LIMIT = 200


@dataclass(frozen=True)
class ReplyContext:
    """What a message is replying to."""

    stanza_id: Any = None
    quoted_message_raw: Any = None
    quoted_message: CanonicalValue = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stanzaId": self.stanza_id,
            "quotedMessageRaw": self.quoted_message_raw,
            "quotedMessage": self.quoted_message,
        }


def _child(node: Any, key: str) -> Any:
    """Read one field from a mapping, protobuf message or attribute object."""
    if node is None or node is ABSENT:
        return None
    if isinstance(node, Mapping):
        value = node.get(key)
    elif isinstance(node, Message):
        try:
            if not node.HasField(key):
                return None
        except ValueError:
            # Unknown or repeated field name.
            return None
        value = getattr(node, key)
    else:
        value = getattr(node, key, None)
    return None if value is ABSENT else value


def _resolve(node: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        node = _child(node, key)
        if node is None:
            return None
    return node


def locate_context_info(envelope: Any) -> tuple[str | None, Any]:
    """
    Find the contextInfo of an envelope.

    Returns:
        (source, context_info) for the first known path that resolves,
        or (None, None).
    """
    if envelope is None or envelope is ABSENT:
        return None, None
    for source, path in _CONTEXT_INFO_PATHS:
        context_info = _resolve(envelope, path)
        if context_info is not None:
            return source, context_info
    return None, None


def _is_present(value: Any) -> bool:
    """Empty strings, zero and False count as no quote; containers always count."""
    if value is None:
        return False
    if isinstance(value, (str, int, float)):
        return bool(value)
    return True


def extract_reply_context(envelope: Any, canonicalizer: Canonicalizer | None = None) -> ReplyContext:
    """Extract the stanza id and quoted message of a reply, canonicalizing the quote."""
    _, context_info = locate_context_info(envelope)
    if context_info is None:
        return ReplyContext()

    quoted_raw = _child(context_info, "quotedMessage")
    normalize = canonicalizer.canonicalize if canonicalizer else canonicalize
    return ReplyContext(
        stanza_id=_child(context_info, "stanzaId"),
        quoted_message_raw=quoted_raw,
        quoted_message=normalize(quoted_raw) if _is_present(quoted_raw) else None,
    )


def has_story_quoted_message(quoted_message: Any) -> bool:
    """Return True if a quoted message carries any story/status marker key."""
    if quoted_message is None or quoted_message is ABSENT:
        return False
    if isinstance(quoted_message, Mapping):
        keys = quoted_message
    elif hasattr(quoted_message, "__dict__"):
        keys = vars(quoted_message)
    else:
        return False
    return any(key in keys for key in STORY_MARKER_KEYS)


def _quoted_text(quoted_message: Any) -> str | None:
    if not isinstance(quoted_message, Mapping):
        return None
    text = quoted_message.get("conversation")
    if not isinstance(text, str):
        extended = quoted_message.get("extendedTextMessage")
        text = extended.get("text") if isinstance(extended, Mapping) else None
    if not isinstance(text, str) or not text.strip():
        return None
    return " ".join(text.split())[:_REPLY_TEXT_LIMIT]


def build_reply_metadata(envelope: Any, canonicalizer: Canonicalizer | None = None) -> dict[str, object]:
    """Flatten the reply context of an envelope into log/event metadata."""
    source, context_info = locate_context_info(envelope)
    if context_info is None:
        return {}

    reply = extract_reply_context(envelope, canonicalizer)
    if reply.stanza_id is None and reply.quoted_message_raw is None:
        return {}

    meta: dict[str, object] = {
        "is_reply": True,
        "reply_source": source,
        "reply_to_message_id": reply.stanza_id,
        "reply_is_story": has_story_quoted_message(reply.quoted_message),
    }
    text = _quoted_text(reply.quoted_message)
    if text:
        meta["reply_to_text"] = text
    return meta
