"""Wire the Chatwoot edit mirror into the webhook bus."""

from loguru import logger

from wabridge.bus.events import WebhookEvent
from wabridge.bus.queue import WebhookBus
from wabridge.chatwoot.base import MessageRepository, WhatsAppInstance
from wabridge.chatwoot.edits import handle_message_updated
from wabridge.config.schema import Config
from wabridge.normalize.canonical import Canonicalizer

EDIT_ROUTE_KEY = "chatwoot:message_updated"


def register_edit_sync(
    bus: WebhookBus,
    repository: MessageRepository,
    wa_instance: WhatsAppInstance | None,
    config: Config | None = None,
) -> bool:
    """
    Subscribe the edit mirror to Chatwoot ``message_updated`` events.

    Returns:
        False when edit sync is disabled in the config.
    """
    config = config or Config()
    if not config.chatwoot.edit_sync:
        logger.info("Chatwoot edit sync disabled")
        return False

    canonicalizer = Canonicalizer.from_config(config.normalize)

    async def _on_message_updated(event: WebhookEvent) -> bool:
        return await handle_message_updated(
            body=event.payload,
            instance=event.instance,
            repository=repository,
            wa_instance=wa_instance,
            resolved_instance_id=event.resolved_instance_id,
            canonicalizer=canonicalizer,
        )

    bus.subscribe(EDIT_ROUTE_KEY, _on_message_updated)
    return True
