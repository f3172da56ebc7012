"""
Outbound event publishers.

Ledger services publish after their writes are committed and never wait on
the result: publish_safely() is the only entry point they use, and it logs
and swallows every publisher failure.

Implementations:
- LoggingEventPublisher: writes the event to the structured log (default)
- HttpEventPublisher: POSTs the JSON payload to EVENTS_WEBHOOK_URL (httpx)
- InMemoryEventPublisher: keeps events in a list (tests)
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Type, TypeVar

import httpx

from backend.app.config import Settings, get_settings
from backend.app.logging_config import get_logger
from backend.app.schemas.events import EVBaseEvent

logger = get_logger(__name__)

E = TypeVar("E", bound=EVBaseEvent)


class EventPublisher(ABC):
    """Destination for ledger events."""

    @abstractmethod
    async def publish(self, event: EVBaseEvent) -> None:
        """Deliver event. May raise; callers go through publish_safely()."""
        pass


class LoggingEventPublisher(EventPublisher):
    """Publishes events as structured log lines."""

    async def publish(self, event: EVBaseEvent) -> None:
        logger.info("Event published", **event.model_dump(mode="json"))


class HttpEventPublisher(EventPublisher):
    """
    POSTs each event as JSON to a webhook.

    The event type is also sent as the X-Event-Type header so receivers can
    route without parsing the body.
    """

    def __init__(self, url: str, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def publish(self, event: EVBaseEvent) -> None:
        payload = event.model_dump(mode="json")
        headers = {"X-Event-Type": event.event_type}

        if self._client is not None:
            response = await self._client.post(self.url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            return

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()


class InMemoryEventPublisher(EventPublisher):
    """Collects events in memory."""

    def __init__(self):
        self.events: List[EVBaseEvent] = []

    async def publish(self, event: EVBaseEvent) -> None:
        self.events.append(event)

    def of_type(self, event_cls: Type[E]) -> List[E]:
        """Published events that are instances of event_cls."""
        return [e for e in self.events if isinstance(e, event_cls)]

    def clear(self) -> None:
        self.events.clear()


async def publish_safely(publisher: Optional[EventPublisher], event: EVBaseEvent) -> bool:
    """
    Publish event, logging instead of raising on failure.

    Returns:
        True if the publisher accepted the event
    """
    if publisher is None:
        return False
    try:
        await publisher.publish(event)
        return True
    except Exception as e:
        logger.error(
            "Event publish failed",
            event_type=event.event_type,
            event_id=event.event_id,
            publisher=type(publisher).__name__,
            error=str(e),
            )
        return False


def get_event_publisher(settings: Optional[Settings] = None) -> EventPublisher:
    """Publisher configured by EVENTS_WEBHOOK_URL (logging only when unset)."""
    settings = settings or get_settings()
    if settings.EVENTS_WEBHOOK_URL:
        return HttpEventPublisher(settings.EVENTS_WEBHOOK_URL, timeout=settings.EVENTS_TIMEOUT_SECONDS)
    return LoggingEventPublisher()
