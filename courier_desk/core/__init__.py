from courier_desk.core.event_bus import (
    DeliveryCreated,
    DeliveryStatusChanged,
    DomainEvent,
    EventBus,
    QuotePriced,
    get_event_bus,
    reset_event_bus_for_tests,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "QuotePriced",
    "DeliveryCreated",
    "DeliveryStatusChanged",
    "get_event_bus",
    "reset_event_bus_for_tests",
]
