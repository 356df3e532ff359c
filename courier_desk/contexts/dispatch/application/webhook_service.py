from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from courier_desk.contexts.dispatch.infrastructure.repositories import DeliveryRepository, WebhookEventRepository
from courier_desk.core import DeliveryStatusChanged, EventBus, get_event_bus
from courier_desk.infrastructure.repositories.base import normalize_timestamp
from courier_desk.observability import observe_webhook_event


STATUS_CHANGED_EVENT = "delivery.status_changed"
EVENT_TIME_KEYS = ("created", "timestamp", "occurred_at")


@dataclass(frozen=True)
class WebhookIngestResult:
    event_id: int
    event_type: str | None
    delivery_id: str | None
    outcome: str

    @property
    def applied(self) -> bool:
        return self.outcome == "applied"


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _event_time(body: dict) -> str | None:
    for key in EVENT_TIME_KEYS:
        value = body.get(key)
        if value not in (None, ""):
            return normalize_timestamp(value)
    return None


class WebhookIngestionService:
    """Persist every provider push, then reconcile delivery status changes."""

    def __init__(
        self,
        *,
        events: WebhookEventRepository | None = None,
        deliveries: DeliveryRepository | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.events = events or WebhookEventRepository()
        self.deliveries = deliveries or DeliveryRepository()
        self.event_bus = event_bus or get_event_bus()
        self._logger = logging.getLogger("courier_desk.webhook")

    def ingest(self, db, event: Any) -> WebhookIngestResult:
        body = event if isinstance(event, dict) else {"raw": event}
        delivery_id = _text(body.get("delivery_id"))
        event_type = _text(body.get("event_type"))
        status = _text(body.get("status"))

        event_id = self.events.append(
            db,
            delivery_id=delivery_id,
            event_type=event_type,
            status=status,
            payload=body,
        )
        db.commit()

        if event_type != STATUS_CHANGED_EVENT:
            outcome = "ignored_event_type"
        elif not delivery_id or not status:
            outcome = "missing_status"
        else:
            outcome = self.deliveries.apply_webhook_status(
                db,
                delivery_id,
                status=status,
                raw=body,
                event_at=_event_time(body),
            )
            db.commit()

        observe_webhook_event(event_type or "unknown", outcome)
        self._logger.info(
            "webhook_event_ingested",
            extra={
                "webhook_event_id": event_id,
                "event_type": event_type,
                "delivery_id": delivery_id,
                "outcome": outcome,
            },
        )

        if outcome == "applied":
            self.event_bus.publish(
                DeliveryStatusChanged(provider_delivery_id=delivery_id, status=status, source="webhook")
            )
        return WebhookIngestResult(
            event_id=event_id,
            event_type=event_type,
            delivery_id=delivery_id,
            outcome=outcome,
        )
