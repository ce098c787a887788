"""Async webhook queue decoupling HTTP ingestion from event handlers."""

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from wabridge.bus.events import WebhookEvent

WebhookHandler = Callable[[WebhookEvent], Awaitable[bool]]


class WebhookBus:
    """
    Async bus between webhook ingestion and the handlers that act on events.

    The HTTP layer publishes events and returns immediately; a background
    dispatcher hands each event to the handlers subscribed to its route key,
    in subscription order, until one of them reports it as handled.
    """

    def __init__(self):
        self.queue: asyncio.Queue[WebhookEvent] = asyncio.Queue()
        self._handlers: dict[str, list[WebhookHandler]] = {}
        self._running = False

    async def publish(self, event: WebhookEvent) -> None:
        """Queue a webhook event for dispatch."""
        await self.queue.put(event)

    async def consume(self) -> WebhookEvent:
        """Consume the next event (blocks until available)."""
        return await self.queue.get()

    def subscribe(self, route_key: str, handler: WebhookHandler) -> None:
        """Subscribe a handler to events with the given route key (``source:event``)."""
        if route_key not in self._handlers:
            self._handlers[route_key] = []
        self._handlers[route_key].append(handler)

    async def dispatch(self, event: WebhookEvent) -> bool:
        """
        Run the handler chain for one event.

        Returns:
            True if a handler reported the event as handled.
        """
        handlers = self._handlers.get(event.route_key, [])
        if not handlers:
            logger.debug("No handlers for webhook {}", event.route_key)
            return False

        for handler in handlers:
            try:
                if await handler(event):
                    return True
            except Exception as e:
                logger.error("Error handling webhook {}: {}", event.route_key, e)
        return False

    async def run(self) -> None:
        """
        Dispatch queued events until stopped.
        Run this as a background task.
        """
        self._running = True
        while self._running:
            try:
                event = await asyncio.wait_for(self.queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            handled = await self.dispatch(event)
            logger.debug("Webhook {} dispatched (handled={})", event.route_key, handled)

    def stop(self) -> None:
        """Stop the dispatcher loop."""
        self._running = False

    @property
    def pending(self) -> int:
        """Number of queued events."""
        return self.queue.qsize()
