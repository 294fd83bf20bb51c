import json
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from epayco_proxy.metrics import WEBHOOK_STORE_SIZE, WEBHOOKS_RECEIVED_TOTAL

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100

# Header values are a single string, or a list when the header was repeated.
Headers = dict[str, str | list[str]]


@dataclass(frozen=True)
class WebhookEvent:
    id: str
    received_at: datetime
    method: str
    headers: Headers = field(default_factory=dict)
    # Opaque, provider-defined confirmation payload.
    body: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.received_at.isoformat(),
            "method": self.method,
            "headers": self.headers,
            "body": self.body,
        }


class WebhookStore:
    """Bounded, newest-first record of received confirmation callbacks."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._capacity = capacity
        self._events: deque[WebhookEvent] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._events)

    def add_event(self, body: dict[str, Any], headers: Headers, method: str = "POST") -> WebhookEvent:
        event = WebhookEvent(
            id=str(uuid.uuid4()),
            received_at=datetime.now(UTC),
            method=method,
            headers=headers,
            body=body,
        )
        # appendleft on a full deque drops the oldest entry from the right
        self._events.appendleft(event)
        WEBHOOKS_RECEIVED_TOTAL.labels(method=method).inc()
        WEBHOOK_STORE_SIZE.set(len(self._events))
        logger.info(
            "Webhook received id=%s method=%s body=%s",
            event.id,
            method,
            json.dumps(body, default=str),
        )
        return event

    def list_events(self) -> list[WebhookEvent]:
        return list(self._events)

    def get_event(self, event_id: str) -> WebhookEvent | None:
        for event in self._events:
            if event.id == event_id:
                return event
        return None

    def clear(self) -> None:
        self._events.clear()
        WEBHOOK_STORE_SIZE.set(0)
        logger.info("Webhook store cleared")

    def stats(self) -> dict[str, Any]:
        events = self.list_events()
        return {
            "total": len(events),
            "lastEvent": events[0].to_dict() if events else None,
            "allEvents": [event.to_dict() for event in events],
        }
