from __future__ import annotations

import hashlib
import itertools
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Dict

from courier_desk.contexts.provider.domain.gateway import DeliveryProviderGateway, ProviderDelivery, ProviderQuote
from courier_desk.errors import UpstreamError
from courier_desk.observability import observe_provider_call


def _iso(moment: datetime) -> str:
    return moment.replace(microsecond=0).isoformat().replace("+00:00", "Z")


class SimulatedDeliveryProvider(DeliveryProviderGateway):
    """Deterministic stand-in for the delivery provider, used without credentials.

    Fees and ids derive from a seeded hash of the request, so the same inputs
    always price the same way.
    """

    def __init__(self, seed: int = 42) -> None:
        self.seed = int(seed)
        self._lock = Lock()
        self._counter = itertools.count(1)
        self._deliveries: Dict[str, Dict[str, Any]] = {}

    def _digest(self, value: str) -> str:
        return hashlib.sha256(f"{self.seed}:{value}".encode("utf-8")).hexdigest()

    def _bucket(self, value: str) -> int:
        return int(self._digest(value)[:8], 16) % 100

    def request_quote(self, pickup_address: str, dropoff_address: str) -> ProviderQuote:
        key = f"{pickup_address}|{dropoff_address}"
        bucket = self._bucket(key)
        now = datetime.now(timezone.utc)
        body = {
            "kind": "delivery_quote",
            "id": f"dqt_{self._digest(key)[:16]}",
            "fee": 500 + bucket * 10,
            "currency": "usd",
            "currency_type": "USD",
            "created": _iso(now),
            "expires": _iso(now + timedelta(minutes=15)),
            "pickup_duration": 5 + bucket % 10,
            "duration": 20 + bucket % 25,
            "dropoff_eta": _iso(now + timedelta(minutes=20 + bucket % 25)),
        }
        observe_provider_call("request_quote", "simulated", 0.0)
        return ProviderQuote.from_response(body)

    def create_delivery(self, payload: Dict[str, Any]) -> ProviderDelivery:
        external_id = str(payload.get("external_id") or "")
        with self._lock:
            sequence = next(self._counter)
            delivery_id = f"del_{self._digest(f'{external_id}:{sequence}')[:16]}"
            body = {
                "kind": "delivery",
                "id": delivery_id,
                "quote_id": payload.get("quote_id"),
                "external_id": external_id,
                "status": "pending",
                "fee": 500 + self._bucket(external_id) * 10,
                "pickup": {"address": payload.get("pickup_address"), "name": payload.get("pickup_name")},
                "dropoff": {"address": payload.get("dropoff_address"), "name": payload.get("dropoff_name")},
                "manifest_items": list(payload.get("manifest_items") or []),
                "created": _iso(datetime.now(timezone.utc)),
            }
            self._deliveries[delivery_id] = body
        observe_provider_call("create_delivery", "simulated", 0.0)
        return ProviderDelivery.from_response(dict(body))

    def _lookup(self, provider_delivery_id: str) -> Dict[str, Any]:
        body = self._deliveries.get(str(provider_delivery_id))
        if body is None:
            raise UpstreamError(
                404,
                body={"code": "not_found", "message": f"delivery {provider_delivery_id} not found"},
            )
        return body

    def get_delivery(self, provider_delivery_id: str) -> ProviderDelivery:
        with self._lock:
            body = dict(self._lookup(provider_delivery_id))
        observe_provider_call("get_delivery", "simulated", 0.0)
        return ProviderDelivery.from_response(body)

    def cancel_delivery(self, provider_delivery_id: str) -> ProviderDelivery:
        with self._lock:
            body = self._lookup(provider_delivery_id)
            body["status"] = "canceled"
            snapshot = dict(body)
        observe_provider_call("cancel_delivery", "simulated", 0.0)
        return ProviderDelivery.from_response(snapshot)

    def set_status(self, provider_delivery_id: str, status: str) -> None:
        with self._lock:
            self._lookup(provider_delivery_id)["status"] = status
