"""Mirror Chatwoot message edits back to WhatsApp."""

import json
from collections.abc import Mapping
from typing import Any

from loguru import logger

from wabridge.chatwoot.base import InstanceRef, MessageRepository, WhatsAppInstance
from wabridge.normalize.canonical import Canonicalizer, ValueKind, canonicalize, classify
from wabridge.normalize.reply import build_reply_metadata


def _parse_message_id(value: Any) -> int | None:
    """Parse a Chatwoot message id; ints, integral floats and digit strings are accepted."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if not text.isascii() or not text.removeprefix("-").isdigit():
            return None
        return int(text)
    return None


def _summary(data: dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, default=str)


async def handle_message_updated(
    body: Mapping[str, Any] | None,
    instance: InstanceRef,
    repository: MessageRepository,
    wa_instance: WhatsAppInstance | None,
    resolved_instance_id: str | int | None = None,
    canonicalizer: Canonicalizer | None = None,
) -> bool:
    """
    Process a Chatwoot ``message_updated`` webhook and mirror the edit to WhatsApp.

    Returns:
        False when the payload is not an edit. True when the edit was handled
        or safely ignored, so the caller can stop further processing.
    """
    if not isinstance(body, Mapping):
        return False
    content_attributes = body.get("content_attributes")
    if not isinstance(content_attributes, Mapping):
        return False
    if body.get("event") != "message_updated" or not content_attributes.get("edited"):
        return False

    logger.debug(
        "handle_message_updated: received payload {}",
        _summary({
            "chatwootId": body.get("id"),
            "edited": content_attributes.get("edited"),
            "hasNewContent": bool(content_attributes.get("newContent")),
            "instancePayload": instance.instance_id if instance else None,
            "resolvedInstanceId": resolved_instance_id,
        }),
    )

    if not wa_instance:
        logger.warning("handle_message_updated: wa instance not found for message update")
        return True

    new_content = content_attributes.get("newContent")
    if not new_content:
        logger.warning("handle_message_updated: message update received without newContent payload")
        return True

    message_id = _parse_message_id(body.get("id"))
    if message_id is None:
        logger.warning(
            "handle_message_updated: message update payload with invalid id {}",
            _summary({"id": body.get("id")}),
        )
        return True

    raw_instance_id = resolved_instance_id if resolved_instance_id is not None else (
        instance.instance_id if instance else None
    )
    if not raw_instance_id:
        logger.warning(
            "handle_message_updated: message update without valid instanceId {}",
            _summary({
                "payloadId": body.get("id"),
                "instancePayload": instance.instance_id if instance else None,
                "resolvedInstanceId": resolved_instance_id,
            }),
        )
        return True

    instance_id = str(raw_instance_id)
    stored = await repository.find_message(chatwoot_message_id=message_id, instance_id=instance_id)
    if stored is None:
        logger.warning(
            "handle_message_updated: message update target not found {}",
            _summary({"chatwootMessageId": message_id, "instanceId": instance_id}),
        )
        return True

    key = stored.key if isinstance(stored.key, Mapping) else None
    if not key or not key.get("id") or not key.get("remoteJid"):
        logger.warning(
            "handle_message_updated: message update missing key identifiers {}",
            _summary({"key": key, "chatwootMessageId": message_id}),
        )
        return True

    client = wa_instance.client
    if client is None:
        logger.debug("handle_message_updated: wa client not connected, skipping send for {}", key["id"])
    else:
        try:
            logger.debug(
                "handle_message_updated: forwarding edit to WhatsApp {}",
                _summary({"remoteJid": key["remoteJid"], "keyId": key["id"]}),
            )
            await client.send_message(key["remoteJid"], {"text": new_content, "edit": dict(key)})
        except Exception as e:
            logger.error(
                "handle_message_updated: error forwarding edited message to WhatsApp {}",
                _summary({"error": str(e) or type(e).__name__}),
            )
            return True

    existing = stored.message
    normalize = canonicalizer.canonicalize if canonicalizer else canonicalize
    base_message = normalize(existing) if classify(existing) is ValueKind.MAPPING else {}
    reply_meta = build_reply_metadata({"message": existing}, canonicalizer)
    if reply_meta:
        logger.debug("handle_message_updated: edited message is a reply {}", _summary(reply_meta))

    updated_message = {**base_message, "conversation": new_content}

    logger.debug(
        "handle_message_updated: updating message record {}",
        _summary({"instanceId": instance_id, "chatwootMessageId": message_id}),
    )
    await repository.update_message(
        chatwoot_message_id=message_id,
        instance_id=instance_id,
        message=updated_message,
    )
    return True
