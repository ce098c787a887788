"""Chatwoot webhook handlers."""

from wabridge.chatwoot.base import (
    InstanceRef,
    MessageRepository,
    StoredMessage,
    WhatsAppClient,
    WhatsAppInstance,
)
from wabridge.chatwoot.edits import handle_message_updated

__all__ = [
    "InstanceRef",
    "MessageRepository",
    "StoredMessage",
    "WhatsAppClient",
    "WhatsAppInstance",
    "handle_message_updated",
]
