from __future__ import annotations

import logging
from dataclasses import asdict

from courier_desk.core import DeliveryCreated, DeliveryStatusChanged, DomainEvent, EventBus, QuotePriced


DISPATCH_EVENT_TYPES = (QuotePriced, DeliveryCreated, DeliveryStatusChanged)


class DomainEventLog:
    """Writes one structured log line per dispatch domain event."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("courier_desk.events")

    def register_event_handlers(self, event_bus: EventBus) -> None:
        for event_type in DISPATCH_EVENT_TYPES:
            event_bus.subscribe(event_type, self._on_domain_event)

    def _on_domain_event(self, event: DomainEvent) -> None:
        fields = asdict(event)
        fields["occurred_at"] = event.occurred_at.isoformat().replace("+00:00", "Z")
        self._logger.info("domain_event", extra={"event_type": type(event).__name__, **fields})


_DOMAIN_EVENT_LOG = DomainEventLog()


def get_domain_event_log() -> DomainEventLog:
    return _DOMAIN_EVENT_LOG
