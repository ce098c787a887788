"""Collaborator interfaces used by the Chatwoot handlers."""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class InstanceRef:
    """The WhatsApp instance a webhook was delivered for."""

    instance_name: str = ""
    instance_id: str | None = None


@dataclass
class StoredMessage:
    """A persisted WhatsApp message linked to a Chatwoot message."""

    key: dict[str, Any] | None
    message: Any
    chatwoot_message_id: int | None = None
    instance_id: str | None = None


class MessageRepository(Protocol):
    """Storage for WhatsApp messages, keyed by Chatwoot message id and instance id."""

    async def find_message(self, chatwoot_message_id: int, instance_id: str) -> StoredMessage | None: ...

    async def update_message(
        self, chatwoot_message_id: int, instance_id: str, message: dict[str, Any]
    ) -> None: ...


class WhatsAppClient(Protocol):
    """Outbound side of a WhatsApp connection."""

    async def send_message(self, jid: str, content: dict[str, Any]) -> Any: ...


class WhatsAppInstance(Protocol):
    """A running WhatsApp instance; ``client`` is None while disconnected."""

    client: WhatsAppClient | None
