"""
Long-lived event subscriber for the notifications service.

State machine::

    DISCONNECTED -> CONNECTING -> LISTENING -> (transport error) DISCONNECTED
    CONNECTING or DISCONNECTED -> DEGRADED once the retry ceiling is exhausted
    any state -> STOPPED on stop()

The subscriber runs as one supervised asyncio task. Connecting uses
exponential backoff (``base * 2^attempt``). While listening it waits
cooperatively on the bus with a poll timeout, decodes each payload and
dispatches it by event_type. Malformed payloads and unknown event types are
logged and skipped. A transport failure while listening reconnects with the
same policy, after a backoff delay. Connections that drop before delivering
anything count against one shared budget, so a bus that accepts and then
immediately closes connections ends in DEGRADED. ``stop()`` lets the message
in hand finish, then exits.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from shared.logging import get_logger, set_event_context
from shared.errors import DecodeError, PlatformException, TransportError
from shared.events import DomainEvent, decode_event
from shared.retry import RetryConfig, RetryError, calculate_delay, call_with_retry
from .models import SubscriberState


class _StopRequested(Exception):
    """Raised out of a backoff sleep when stop() is called."""


class EventSubscriber:
    """Consumes domain events from the event bus."""

    def __init__(
        self,
        event_bus,
        handlers: Dict[str, Callable[[DomainEvent], Awaitable]],
        retry_config: Optional[RetryConfig] = None,
        poll_timeout: float = 1.0,
        metrics=None
    ):
        self.event_bus = event_bus
        self.handlers = dict(handlers)
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=1.0, jitter=False)
        self.poll_timeout = poll_timeout
        self.metrics = metrics
        self.logger = get_logger("notifications.subscriber")

        self.state = SubscriberState.DISCONNECTED
        self.processed_events = 0
        self.decode_errors = 0
        self.connect_attempts = 0
        self.disconnects = 0
        self._dropped_connections = 0

        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_listening(self) -> bool:
        return self.state == SubscriberState.LISTENING

    @property
    def is_degraded(self) -> bool:
        return self.state == SubscriberState.DEGRADED

    def health_status(self) -> str:
        return "active" if self.is_listening else "inactive"

    def start(self) -> asyncio.Task:
        """Start the listen task; returns it for supervision."""
        if self._task is not None and not self._task.done():
            return self._task

        self._dropped_connections = 0
        self._stop_event = asyncio.Event()
        self._set_state(SubscriberState.DISCONNECTED)
        self._task = asyncio.create_task(self._run(), name="event-subscriber")
        return self._task

    async def stop(self):
        """Finish the message in hand, close the subscription and exit.

        A task that already died is logged here, not re-raised; ``wait()``
        is where that error surfaces.
        """
        self._stop_event.set()
        if self._task is not None:
            await asyncio.wait({self._task})
            if not self._task.cancelled() and self._task.exception() is not None:
                self.logger.error("Event subscriber had failed before stop", error=str(self._task.exception()))
        self._set_state(SubscriberState.STOPPED)
        self.logger.info("Event subscriber stopped", processed_events=self.processed_events)

    async def wait(self):
        """Wait for the task to end; re-raises anything it died of."""
        if self._task is not None:
            await self._task

    async def _run(self):
        while not self._stop_event.is_set():
            self._set_state(SubscriberState.CONNECTING)
            try:
                subscription = await call_with_retry(
                    self._connect,
                    exceptions=(TransportError,),
                    config=self.retry_config,
                    sleep=self._backoff_sleep,
                    on_retry=self._on_retry
                )
            except _StopRequested:
                return
            except RetryError as e:
                self._degrade(e.attempts, e.last_exception)
                return

            self._set_state(SubscriberState.LISTENING)
            self.logger.info("Notification service listening", channel=self.event_bus.channel)

            lost = None
            try:
                await self._listen(subscription)
            except TransportError as e:
                lost = e
                self.disconnects += 1
                self._dropped_connections += 1
                self._set_state(SubscriberState.DISCONNECTED)
                self.logger.warning("Event bus connection lost; reconnecting", error=e.message, details=e.details)
            finally:
                await self._close(subscription)

            if lost is None or self._stop_event.is_set():
                continue

            # Connections that drop before delivering anything share one budget.
            if self._dropped_connections >= self.retry_config.max_attempts:
                self._degrade(self._dropped_connections, lost)
                return
            delay = calculate_delay(self._dropped_connections, self.retry_config)
            self._on_retry(self._dropped_connections, delay, lost)
            try:
                await self._backoff_sleep(delay)
            except _StopRequested:
                return

    async def _connect(self):
        self.connect_attempts += 1
        return await self.event_bus.subscribe()

    async def _listen(self, subscription):
        while not self._stop_event.is_set():
            raw = await subscription.get_message(timeout=self.poll_timeout)
            self._dropped_connections = 0
            if raw is None:
                continue
            await self.process_message(raw)

    async def process_message(self, raw) -> bool:
        """Decode and dispatch one payload; returns True if a handler ran."""
        try:
            event = decode_event(raw)
        except DecodeError as e:
            self.decode_errors += 1
            if self.metrics is not None:
                self.metrics.increment_counter("event_decode_errors_total")
            self.logger.error("Invalid event payload skipped", error=e.message, details=e.details)
            return False

        handler = self.handlers.get(event.event_type)
        if handler is None:
            self.logger.warning("Unknown event type", event_type=event.event_type, event_id=event.event_id)
            return False

        set_event_context(event.event_id)
        try:
            await handler(event)
        except PlatformException as e:
            self.logger.error(
                "Event handler failed",
                event_type=event.event_type,
                code=e.code,
                error=e.message
            )
            return False
        finally:
            set_event_context(None)

        self.processed_events += 1
        if self.metrics is not None:
            self.metrics.increment_counter("events_processed_total", event_type=event.event_type)
        return True

    async def _close(self, subscription):
        try:
            await subscription.close()
        except TransportError as e:
            self.logger.warning("Subscription close failed", error=e.message)

    async def _backoff_sleep(self, delay: float):
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise _StopRequested()

    def _on_retry(self, attempt: int, delay: float, error: Exception):
        if self.metrics is not None:
            self.metrics.increment_counter("subscriber_reconnects_total")
        self.logger.warning("Redis connection attempt failed", attempt=attempt, delay=delay, error=str(error))

    def _degrade(self, attempts: int, error: Exception):
        self._set_state(SubscriberState.DEGRADED)
        self.logger.error(
            "Event bus unreachable after all attempts; subscriber degraded",
            attempts=attempts,
            error=str(error)
        )

    def _set_state(self, state: SubscriberState):
        if state != self.state:
            self.logger.info("Subscriber state change", previous=self.state.value, state=state.value)
        self.state = state
        if self.metrics is not None:
            for candidate in SubscriberState:
                self.metrics.set_gauge("subscriber_state", 1 if candidate == state else 0, state=candidate.value)
