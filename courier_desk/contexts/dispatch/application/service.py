from __future__ import annotations

import logging
from typing import Any, Dict

from courier_desk.contexts.dispatch.domain.delivery_request import address_to_text, build_delivery_request
from courier_desk.contexts.dispatch.domain.quote_composition import (
    compose_lines,
    normalize_item_id,
    requested_item_id,
)
from courier_desk.contexts.dispatch.infrastructure.repositories import (
    DeliveryRepository,
    ItemRepository,
    QuoteRepository,
    UserRepository,
)
from courier_desk.contexts.provider.domain.gateway import DeliveryProviderGateway
from courier_desk.core import DeliveryCreated, DeliveryStatusChanged, EventBus, QuotePriced, get_event_bus
from courier_desk.domain.contracts import DeliveryFromQuoteInput, QuoteCreateInput, ServiceOutput
from courier_desk.errors import NotFoundError, ValidationError
from courier_desk.infrastructure.repositories.base import normalize_timestamp, utc_now_iso


def _parse_id(value: Any, *, code: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(code=code, message_key=code)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError(code=code, message_key=code) from exc


def quote_create_input(payload: Dict[str, Any]) -> QuoteCreateInput:
    """Accept snake_case keys and the camelCase ones older clients send."""
    customer_id = payload.get("customer_id", payload.get("customerId"))
    warehouse_id = payload.get("warehouse_id", payload.get("warehouseId"))
    if customer_id in (None, ""):
        raise ValidationError(code="customer_not_found", message_key="customer_not_found")
    if warehouse_id in (None, ""):
        raise ValidationError(code="warehouse_not_found", message_key="warehouse_not_found")
    items = payload.get("items")
    if not isinstance(items, list):
        items = []
    return QuoteCreateInput(
        customer_id=_parse_id(customer_id, code="customer_not_found"),
        warehouse_id=_parse_id(warehouse_id, code="warehouse_not_found"),
        items=items,
    )


def _user_summary(user: dict | None, *, with_address: bool) -> dict | None:
    if user is None:
        return None
    summary = {"id": user["id"], "name": user["name"], "user_type": user["user_type"]}
    if with_address:
        summary["address"] = user.get("address")
        summary["phone_number"] = user.get("phone_number")
    return summary


class DispatchService:
    """Quote pricing and the delivery lifecycle against the delivery provider."""

    def __init__(
        self,
        *,
        users: UserRepository | None = None,
        items: ItemRepository | None = None,
        quotes: QuoteRepository | None = None,
        deliveries: DeliveryRepository | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.users = users or UserRepository()
        self.items = items or ItemRepository()
        self.quotes = quotes or QuoteRepository()
        self.deliveries = deliveries or DeliveryRepository()
        self.event_bus = event_bus or get_event_bus()
        self._logger = logging.getLogger("courier_desk.dispatch")

    # quotes

    def _require_user(self, db, user_id: int, *, user_type: str, role: str) -> dict:
        user = self.users.get_by_id(db, user_id)
        if user is None:
            raise ValidationError(code=f"{role}_not_found", message_key=f"{role}_not_found")
        if user["user_type"] != user_type:
            raise ValidationError(code=f"{role}_type_invalid", message_key=f"{role}_type_invalid")
        return user

    def _compose(self, db, lines: list) -> Any:
        wanted = [
            normalize_item_id(requested_item_id(line)) for line in lines if isinstance(line, dict)
        ]
        wanted = [item_id for item_id in wanted if item_id is not None]
        return compose_lines(lines, self.items.get_many(db, wanted))

    def create_quote(self, db, create_input: QuoteCreateInput) -> ServiceOutput:
        customer = self._require_user(db, create_input.customer_id, user_type="CUSTOMER", role="customer")
        warehouse = self._require_user(db, create_input.warehouse_id, user_type="WAREHOUSE", role="warehouse")
        composed = self._compose(db, create_input.items)

        quote_id = self.quotes.create(
            db,
            customer_id=customer["id"],
            warehouse_id=warehouse["id"],
            pickup_address=warehouse.get("address"),
            dropoff_address=customer.get("address"),
            items=composed.lines_as_dicts(),
            subtotal=composed.subtotal,
        )
        db.commit()
        self._logger.info("quote_created", extra={"quote_id": quote_id, "subtotal": composed.subtotal})
        return ServiceOutput(payload=self.get_quote(db, quote_id), status_code=201)

    def _load_quote(self, db, quote_id: int) -> dict:
        quote = self.quotes.get_by_id(db, quote_id)
        if quote is None:
            raise NotFoundError(code="quote_not_found", message_key="quote_not_found")
        return quote

    def get_quote(self, db, quote_id: int) -> dict:
        quote = self._load_quote(db, quote_id)
        quote["customer"] = _user_summary(self.users.get_by_id(db, quote["customer_id"]), with_address=True)
        quote["warehouse"] = _user_summary(self.users.get_by_id(db, quote["warehouse_id"]), with_address=True)
        return quote

    def list_quotes(self, db) -> list[dict]:
        users = {user["id"]: user for user in self.users.list(db)}
        quotes = self.quotes.list(db)
        for quote in quotes:
            quote["customer"] = _user_summary(users.get(quote["customer_id"]), with_address=False)
            quote["warehouse"] = _user_summary(users.get(quote["warehouse_id"]), with_address=False)
        return quotes

    def update_quote(self, db, quote_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        quote = self._load_quote(db, quote_id)
        if quote["status"] != "draft":
            raise ValidationError(code="quote_locked", message_key="quote_locked")

        payload = payload or {}
        changes: Dict[str, Any] = {}
        customer_id = payload.get("customer_id", payload.get("customerId"))
        if customer_id not in (None, ""):
            customer = self._require_user(
                db, _parse_id(customer_id, code="customer_not_found"), user_type="CUSTOMER", role="customer"
            )
            changes["customer_id"] = customer["id"]
            changes["dropoff_address"] = customer.get("address")
        warehouse_id = payload.get("warehouse_id", payload.get("warehouseId"))
        if warehouse_id not in (None, ""):
            warehouse = self._require_user(
                db, _parse_id(warehouse_id, code="warehouse_not_found"), user_type="WAREHOUSE", role="warehouse"
            )
            changes["warehouse_id"] = warehouse["id"]
            changes["pickup_address"] = warehouse.get("address")
        if "items" in payload:
            lines = payload.get("items") if isinstance(payload.get("items"), list) else []
            composed = self._compose(db, lines)
            changes["items"] = composed.lines_as_dicts()
            changes["subtotal"] = composed.subtotal
        if not changes:
            raise ValidationError(code="no_changes", message_key="no_changes")

        self.quotes.update(db, quote_id, changes)
        db.commit()
        return ServiceOutput(payload=self.get_quote(db, quote_id))

    def delete_quote(self, db, quote_id: int) -> ServiceOutput:
        self.quotes.delete(db, quote_id)
        db.commit()
        return ServiceOutput(payload={"ok": True})

    def request_provider_quote(self, db, quote_id: int, provider: DeliveryProviderGateway) -> ServiceOutput:
        quote = self._load_quote(db, quote_id)
        pickup = address_to_text(quote.get("pickup_address"))
        dropoff = address_to_text(quote.get("dropoff_address"))
        if not pickup or not dropoff:
            raise ValidationError(code="addresses_missing", message_key="addresses_missing")

        priced = provider.request_quote(pickup, dropoff)
        self.quotes.mark_quoted(
            db,
            quote_id,
            provider_quote_id=priced.id,
            fee=priced.fee,
            currency=priced.currency,
            estimated_times=priced.estimated_times,
            raw=priced.raw,
        )
        db.commit()
        self._logger.info(
            "quote_priced",
            extra={"quote_id": quote_id, "provider_quote_id": priced.id, "fee": priced.fee},
        )
        self.event_bus.publish(QuotePriced(quote_id=quote_id, provider_quote_id=priced.id, fee=priced.fee))
        return ServiceOutput(payload=self.get_quote(db, quote_id))

    # deliveries

    def _load_delivery(self, db, delivery_id: int) -> dict:
        delivery = self.deliveries.get_by_id(db, delivery_id)
        if delivery is None:
            raise NotFoundError(code="delivery_not_found", message_key="delivery_not_found")
        return delivery

    def _with_quote(self, db, delivery: dict) -> dict:
        delivery["quote"] = self.quotes.get_by_id(db, delivery["quote_db_id"])
        return delivery

    def get_delivery(self, db, delivery_id: int) -> dict:
        return self._with_quote(db, self._load_delivery(db, delivery_id))

    def list_deliveries(self, db) -> list[dict]:
        quotes = {quote["id"]: quote for quote in self.quotes.list(db)}
        deliveries = self.deliveries.list(db)
        for delivery in deliveries:
            delivery["quote"] = quotes.get(delivery["quote_db_id"])
        return deliveries

    def create_delivery_from_quote(
        self,
        db,
        request: DeliveryFromQuoteInput,
        provider: DeliveryProviderGateway,
        *,
        allow_missing_phone: bool = False,
        default_size: str = "medium",
    ) -> ServiceOutput:
        quote = self._load_quote(db, request.quote_id)
        payload = build_delivery_request(
            quote,
            sender=self.users.get_by_id(db, quote["warehouse_id"]),
            recipient=self.users.get_by_id(db, quote["customer_id"]),
            overrides=request.overrides,
            allow_missing_phone=allow_missing_phone,
            default_size=default_size,
        )

        created = provider.create_delivery(payload)
        delivery_id = self.deliveries.create(
            db,
            provider_delivery_id=created.id,
            external_id=payload["external_id"],
            quote_db_id=quote["id"],
            provider_quote_id=quote["provider_quote_id"],
            status=created.status,
            raw=created.raw,
        )
        db.commit()
        self._logger.info(
            "delivery_created",
            extra={
                "delivery_id": delivery_id,
                "provider_delivery_id": created.id,
                "external_id": payload["external_id"],
            },
        )
        self.event_bus.publish(
            DeliveryCreated(
                delivery_id=delivery_id,
                provider_delivery_id=created.id,
                quote_id=quote["id"],
                external_id=payload["external_id"],
            )
        )
        return ServiceOutput(
            payload={"delivery": self.deliveries.get_by_id(db, delivery_id), "uber_payload_sent": payload},
            status_code=201,
        )

    def refresh_delivery(self, db, delivery_id: int, provider: DeliveryProviderGateway) -> ServiceOutput:
        delivery = self._load_delivery(db, delivery_id)
        current = provider.get_delivery(delivery["provider_delivery_id"])
        return self._store_provider_state(db, delivery, current.status, current.raw, source="refresh")

    def cancel_delivery(self, db, delivery_id: int, provider: DeliveryProviderGateway) -> ServiceOutput:
        delivery = self._load_delivery(db, delivery_id)
        canceled = provider.cancel_delivery(delivery["provider_delivery_id"])
        return self._store_provider_state(db, delivery, canceled.status or "canceled", canceled.raw, source="cancel")

    def _store_provider_state(self, db, delivery: dict, status: str | None, raw: Any, *, source: str) -> ServiceOutput:
        provider_time = normalize_timestamp(raw.get("updated")) if isinstance(raw, dict) else None
        self.deliveries.update_status(
            db,
            delivery["id"],
            status=status,
            raw=raw,
            observed_at=provider_time or utc_now_iso(),
        )
        db.commit()
        if status and status != delivery.get("status"):
            self.event_bus.publish(
                DeliveryStatusChanged(
                    provider_delivery_id=delivery["provider_delivery_id"],
                    status=status,
                    source=source,
                )
            )
        return ServiceOutput(payload=self.deliveries.get_by_id(db, delivery["id"]))

    def delete_delivery(self, db, delivery_id: int) -> ServiceOutput:
        self.deliveries.delete(db, delivery_id)
        db.commit()
        return ServiceOutput(payload={"ok": True})
