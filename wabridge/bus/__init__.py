"""Webhook bus for decoupled ingestion and handling."""

from wabridge.bus.events import WebhookEvent
from wabridge.bus.queue import WebhookBus

__all__ = ["WebhookBus", "WebhookEvent"]
