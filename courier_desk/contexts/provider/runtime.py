from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Flask, current_app

from courier_desk.contexts.provider.domain.gateway import DeliveryProviderGateway
from courier_desk.contexts.provider.infrastructure.client import UberDirectClient
from courier_desk.contexts.provider.infrastructure.simulator import SimulatedDeliveryProvider
from courier_desk.contexts.provider.infrastructure.token_cache import AccessTokenCache
from courier_desk.errors import ConfigurationError


EXTENSION_KEY = "delivery_provider"
PROVIDER_MODES = ("uber", "simulator")

logger = logging.getLogger("courier_desk.provider")


def build_provider_gateway(config: Mapping[str, Any]) -> DeliveryProviderGateway:
    mode = str(config.get("PROVIDER_MODE") or "uber").strip().lower()
    if mode == "simulator":
        return SimulatedDeliveryProvider(seed=int(config.get("PROVIDER_SIMULATOR_SEED") or 42))
    if mode != "uber":
        raise ConfigurationError(
            code="provider_mode_invalid",
            message_key="provider_mode_invalid",
            details=f"PROVIDER_MODE must be one of {', '.join(PROVIDER_MODES)}, got {mode!r}",
            payload={"provider_mode": mode},
        )

    timeout = int(config.get("PROVIDER_TIMEOUT_SECONDS") or 20)
    verify_ssl = bool(config.get("PROVIDER_VERIFY_SSL", True))
    token_cache = AccessTokenCache(
        client_id=config.get("UBER_CLIENT_ID"),
        client_secret=config.get("UBER_CLIENT_SECRET"),
        token_url=str(config.get("UBER_TOKEN_URL") or "https://login.uber.com/oauth/v2/token"),
        scope=str(config.get("UBER_SCOPE") or "eats.deliveries"),
        safety_margin_seconds=int(config.get("TOKEN_EXPIRY_SAFETY_SECONDS", 60)),
        timeout_seconds=timeout,
        verify_ssl=verify_ssl,
    )
    return UberDirectClient(
        token_cache=token_cache,
        customer_id=config.get("UBER_CUSTOMER_ID"),
        base_url=str(config.get("UBER_BASE_URL") or "https://api.uber.com"),
        timeout_seconds=timeout,
        verify_ssl=verify_ssl,
    )


def init_provider(app: Flask) -> DeliveryProviderGateway:
    gateway = build_provider_gateway(app.config)
    app.extensions[EXTENSION_KEY] = gateway
    logger.info("provider_gateway_ready", extra={"provider_mode": app.config.get("PROVIDER_MODE")})
    return gateway


def get_provider_gateway(app: Flask | None = None) -> DeliveryProviderGateway:
    target = app or current_app
    gateway = target.extensions.get(EXTENSION_KEY)
    if gateway is None:
        gateway = init_provider(target)
    return gateway


def set_provider_gateway(app: Flask, gateway: DeliveryProviderGateway) -> None:
    app.extensions[EXTENSION_KEY] = gateway
