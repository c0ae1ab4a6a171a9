"""
Event bus carried over the shared cache store's pub/sub channel.

This is a broadcast bus, not a durable queue:
- publish is fire-and-forget and succeeds whenever the transport accepts the
  message, even if nobody is listening (the event is then dropped)
- subscribers receive payloads in publish order for the lifetime of their
  subscription, nothing published before they subscribed
"""

from shared.logging import get_logger
from shared.events import DomainEvent


class EventBus:
    """A single named publish/subscribe channel."""

    def __init__(self, store, channel: str = "employee_events"):
        self.store = store
        self.channel = channel
        self.logger = get_logger("shared.event_bus")

    async def publish(self, event: DomainEvent) -> int:
        """Publish an event. Returns the receiver count; raises TransportError."""
        receivers = await self.store.publish(self.channel, event.to_wire())

        if receivers == 0:
            self.logger.warning(
                "Event published with no active subscribers",
                channel=self.channel,
                event_type=event.event_type,
                event_id=event.event_id
            )
        else:
            self.logger.info(
                "Event published",
                channel=self.channel,
                event_type=event.event_type,
                event_id=event.event_id,
                receivers=receivers
            )
        return receivers

    async def subscribe(self):
        """Open a subscription yielding raw payloads; raises TransportError."""
        return await self.store.subscribe(self.channel)
