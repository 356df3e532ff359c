from __future__ import annotations

import logging
import time
import urllib.parse
from typing import Any, Dict

from courier_desk.contexts.provider.domain.gateway import DeliveryProviderGateway, ProviderDelivery, ProviderQuote
from courier_desk.contexts.provider.infrastructure.token_cache import AccessTokenCache
from courier_desk.contexts.provider.infrastructure.transport import TransportError, encode_json, send_request
from courier_desk.errors import ConfigurationError, UpstreamError
from courier_desk.observability import observe_provider_call


logger = logging.getLogger("courier_desk.provider")

ROBO_COURIER_SPECIFICATION = {"robo_courier_specification": {"mode": "auto"}}


class UberDirectClient(DeliveryProviderGateway):
    def __init__(
        self,
        *,
        token_cache: AccessTokenCache,
        customer_id: str | None,
        base_url: str = "https://api.uber.com",
        timeout_seconds: int = 20,
        verify_ssl: bool = True,
    ) -> None:
        self.token_cache = token_cache
        self.customer_id = str(customer_id or "").strip()
        self.base_url = str(base_url or "").rstrip("/")
        self.timeout_seconds = int(timeout_seconds)
        self.verify_ssl = bool(verify_ssl)

    def _url(self, path: str) -> str:
        customer = urllib.parse.quote(self.customer_id, safe="")
        return f"{self.base_url}/v1/customers/{customer}/{path.lstrip('/')}"

    def call(self, method: str, path: str, body: Dict[str, Any] | None = None, *, operation: str | None = None) -> Any:
        operation = operation or path
        if not self.customer_id:
            raise ConfigurationError.missing(["UBER_CUSTOMER_ID"])

        token = self.token_cache.get_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        data = encode_json(body) if body is not None else None

        started = time.perf_counter()
        try:
            response = send_request(
                method,
                self._url(path),
                headers=headers,
                data=data,
                timeout=self.timeout_seconds,
                verify_ssl=self.verify_ssl,
            )
        except TransportError as exc:
            observe_provider_call(operation, "connection_error", (time.perf_counter() - started) * 1000.0)
            logger.warning("provider_call_failed", extra={"operation": operation, "reason": str(exc)})
            raise UpstreamError(502, body={"message": str(exc)}) from exc

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        parsed = response.json_body()
        if not response.ok:
            observe_provider_call(operation, "rejected", elapsed_ms)
            logger.warning(
                "provider_call_rejected",
                extra={"operation": operation, "upstream_status": response.status},
            )
            raise UpstreamError(response.status, body=parsed)

        observe_provider_call(operation, "ok", elapsed_ms)
        return parsed

    def request_quote(self, pickup_address: str, dropoff_address: str) -> ProviderQuote:
        body = self.call(
            "POST",
            "/delivery_quotes",
            {"pickup_address": pickup_address, "dropoff_address": dropoff_address},
            operation="request_quote",
        )
        return ProviderQuote.from_response(body)

    def create_delivery(self, payload: Dict[str, Any]) -> ProviderDelivery:
        body = dict(payload)
        body["test_specifications"] = ROBO_COURIER_SPECIFICATION
        response = self.call("POST", "/deliveries", body, operation="create_delivery")
        return ProviderDelivery.from_response(response)

    def get_delivery(self, provider_delivery_id: str) -> ProviderDelivery:
        delivery_id = urllib.parse.quote(str(provider_delivery_id), safe="")
        response = self.call("GET", f"/deliveries/{delivery_id}", operation="get_delivery")
        return ProviderDelivery.from_response(response, fallback_id=str(provider_delivery_id))

    def cancel_delivery(self, provider_delivery_id: str) -> ProviderDelivery:
        delivery_id = urllib.parse.quote(str(provider_delivery_id), safe="")
        response = self.call("POST", f"/deliveries/{delivery_id}/cancel", operation="cancel_delivery")
        return ProviderDelivery.from_response(
            response,
            fallback_id=str(provider_delivery_id),
            default_status="canceled",
        )
