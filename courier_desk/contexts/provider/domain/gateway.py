from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict

from courier_desk.errors import UpstreamError


def _fee_amount(value: Any) -> float | None:
    if isinstance(value, dict):
        value = value.get("amount")
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ProviderQuote:
    id: str
    fee: float | None
    currency: str | None
    estimated_times: Dict[str, Any]
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, body: Any) -> "ProviderQuote":
        if not isinstance(body, dict) or not str(body.get("id") or "").strip():
            raise UpstreamError(502, body={"message": "provider quote response has no id", "response": body})
        estimated_times = {
            key: body.get(key)
            for key in ("pickup_duration", "dropoff_eta", "dropoff_deadline", "duration", "expires")
            if body.get(key) is not None
        }
        currency = body.get("currency") or body.get("currency_type")
        return cls(
            id=str(body["id"]),
            fee=_fee_amount(body.get("fee")),
            currency=str(currency) if currency else None,
            estimated_times=estimated_times,
            raw=dict(body),
        )


@dataclass(frozen=True)
class ProviderDelivery:
    id: str
    status: str | None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, body: Any, *, fallback_id: str | None = None, default_status: str | None = None) -> "ProviderDelivery":
        if not isinstance(body, dict):
            body = {"raw": body}
        delivery_id = str(body.get("id") or fallback_id or "").strip()
        if not delivery_id:
            raise UpstreamError(502, body={"message": "provider delivery response has no id", "response": body})
        status = body.get("status") or default_status
        return cls(id=delivery_id, status=str(status) if status else None, raw=dict(body))


class DeliveryProviderGateway(ABC):
    @abstractmethod
    def request_quote(self, pickup_address: str, dropoff_address: str) -> ProviderQuote:
        raise NotImplementedError

    @abstractmethod
    def create_delivery(self, payload: Dict[str, Any]) -> ProviderDelivery:
        raise NotImplementedError

    @abstractmethod
    def get_delivery(self, provider_delivery_id: str) -> ProviderDelivery:
        raise NotImplementedError

    @abstractmethod
    def cancel_delivery(self, provider_delivery_id: str) -> ProviderDelivery:
        raise NotImplementedError
