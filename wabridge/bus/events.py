"""Event types for the webhook bus."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from wabridge.chatwoot.base import InstanceRef


@dataclass
class WebhookEvent:
    """A webhook delivery waiting to be handled."""

    source: str  # chatwoot, whatsapp
    event: str  # e.g. message_updated
    payload: dict[str, Any]
    instance: InstanceRef = field(default_factory=InstanceRef)
    resolved_instance_id: str | int | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def route_key(self) -> str:
        """Key used to look up handlers."""
        return f"{self.source}:{self.event}"
