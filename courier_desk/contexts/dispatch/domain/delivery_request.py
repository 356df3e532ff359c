from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Mapping

from courier_desk.errors import ValidationError


logger = logging.getLogger("courier_desk.dispatch")

ADDRESS_FIELDS = ("street", "city", "state", "postal_code", "country")

_EXTERNAL_ID_LOCK = threading.Lock()
_LAST_EXTERNAL_ID_MS = 0
_SAME_MS_COUNTER = 0


def address_to_text(address: Any) -> str:
    if not address:
        return ""
    if isinstance(address, str):
        return address.strip()
    if not isinstance(address, Mapping):
        return ""
    parts = [str(address.get(field) or "").strip() for field in ADDRESS_FIELDS]
    return ", ".join(part for part in parts if part)


def extract_name(address: Any, fallback: str = "") -> str:
    if isinstance(address, Mapping):
        return str(address.get("name") or "").strip() or fallback
    return fallback


def extract_phone(address: Any, fallback: str = "") -> str:
    if isinstance(address, Mapping):
        return str(address.get("phone_number") or "").strip() or fallback
    return fallback


def generate_external_id(quote_id: Any, now_ms: int | None = None) -> str:
    global _LAST_EXTERNAL_ID_MS, _SAME_MS_COUNTER

    millis = int(now_ms if now_ms is not None else time.time() * 1000)
    base = f"JOB_{str(quote_id)[-6:]}_{millis}"
    with _EXTERNAL_ID_LOCK:
        if millis == _LAST_EXTERNAL_ID_MS:
            _SAME_MS_COUNTER += 1
            return f"{base}_{_SAME_MS_COUNTER}"
        _LAST_EXTERNAL_ID_MS = millis
        _SAME_MS_COUNTER = 0
    return base


def _user_field(user: Mapping[str, Any] | None, key: str) -> str:
    if not user:
        return ""
    return str(user.get(key) or "").strip()


def _quantity(value: Any) -> float:
    try:
        qty = float(value)
    except (TypeError, ValueError):
        return 1
    if qty <= 0:
        return 1
    return int(qty) if qty.is_integer() else qty


def _price(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def build_delivery_request(
    quote: Mapping[str, Any],
    *,
    sender: Mapping[str, Any] | None,
    recipient: Mapping[str, Any] | None,
    overrides: Mapping[str, Any] | None = None,
    allow_missing_phone: bool = False,
    default_size: str = "medium",
    now_ms: int | None = None,
) -> Dict[str, Any]:
    """Build the provider's create-delivery body from a priced quote.

    ``sender`` is the warehouse user and ``recipient`` the customer. Contact
    data comes from the address snapshots first, then from those users.
    """
    overrides = overrides or {}
    provider_quote_id = str(quote.get("provider_quote_id") or "").strip()
    if quote.get("status") != "quoted" or not provider_quote_id:
        raise ValidationError(code="quote_not_priced", message_key="quote_not_priced")

    pickup = quote.get("pickup_address")
    dropoff = quote.get("dropoff_address")
    pickup_address = address_to_text(pickup)
    dropoff_address = address_to_text(dropoff)
    if not pickup_address or not dropoff_address:
        raise ValidationError(code="addresses_missing", message_key="addresses_missing")

    pickup_phone = extract_phone(pickup, _user_field(sender, "phone_number"))
    dropoff_phone = extract_phone(dropoff, _user_field(recipient, "phone_number"))
    if not pickup_phone or not dropoff_phone:
        missing = [
            role
            for role, phone in (("pickup", pickup_phone), ("dropoff", dropoff_phone))
            if not phone
        ]
        if not allow_missing_phone:
            raise ValidationError(
                code="contact_phone_missing",
                message_key="contact_phone_missing",
                payload={"missing": missing},
            )
        logger.warning("delivery_contact_phone_missing", extra={"quote_id": quote.get("id"), "missing": missing})

    size = str(overrides.get("size") or default_size or "medium")
    manifest_items = [
        {
            "name": line.get("name"),
            "quantity": _quantity(line.get("qty")),
            "size": size,
            "price": _price(line.get("price")),
        }
        for line in quote.get("items") or []
    ]

    external_id = str(overrides.get("external_id") or "").strip() or generate_external_id(quote.get("id"), now_ms)

    return {
        "quote_id": provider_quote_id,
        "pickup_address": pickup_address,
        "pickup_name": extract_name(pickup, _user_field(sender, "name") or "Warehouse"),
        "pickup_phone_number": pickup_phone,
        "dropoff_address": dropoff_address,
        "dropoff_name": extract_name(dropoff, _user_field(recipient, "name") or "Customer"),
        "dropoff_phone_number": dropoff_phone,
        "manifest_items": manifest_items,
        "external_id": external_id,
    }
