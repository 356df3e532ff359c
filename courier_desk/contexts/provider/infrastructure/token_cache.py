from __future__ import annotations

import logging
import time
import urllib.parse
from dataclasses import dataclass
from typing import Callable

from courier_desk.contexts.provider.infrastructure.transport import TransportError, send_request
from courier_desk.errors import ConfigurationError, UpstreamAuthError
from courier_desk.observability import observe_provider_token_refresh


logger = logging.getLogger("courier_desk.provider")


@dataclass
class AccessToken:
    value: str
    expires_at: float


class AccessTokenCache:
    """Single-slot cache for the provider's client-credentials access token.

    The token is reused while ``clock() < expires_at``; ``expires_at`` is the
    provider's ``expires_in`` minus a safety margin so a token is never sent
    right at its expiry. Concurrent refreshes are a benign race: the last
    writer wins and both tokens are valid.
    """

    def __init__(
        self,
        *,
        client_id: str | None,
        client_secret: str | None,
        token_url: str,
        scope: str = "eats.deliveries",
        safety_margin_seconds: int = 60,
        timeout_seconds: int = 20,
        verify_ssl: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = str(client_id or "").strip()
        self.client_secret = str(client_secret or "").strip()
        self.token_url = token_url
        self.scope = scope
        self.safety_margin_seconds = int(safety_margin_seconds)
        self.timeout_seconds = int(timeout_seconds)
        self.verify_ssl = bool(verify_ssl)
        self._clock = clock
        self._token: AccessToken | None = None

    @property
    def cached(self) -> AccessToken | None:
        return self._token

    def invalidate(self) -> None:
        self._token = None

    def get_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError.missing(["UBER_CLIENT_ID", "UBER_CLIENT_SECRET"])

        token = self._token
        if token is not None and self._clock() < token.expires_at:
            return token.value

        return self._refresh()

    def _refresh(self) -> str:
        form = urllib.parse.urlencode(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
                "scope": self.scope,
            }
        ).encode("utf-8")
        try:
            response = send_request(
                "POST",
                self.token_url,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
                data=form,
                timeout=self.timeout_seconds,
                verify_ssl=self.verify_ssl,
            )
        except TransportError as exc:
            observe_provider_token_refresh("error")
            logger.warning("provider_token_refresh_failed", extra={"reason": str(exc)})
            raise UpstreamAuthError(502, body={"message": str(exc)}) from exc

        body = response.json_body()
        if not response.ok:
            observe_provider_token_refresh("rejected")
            logger.warning("provider_token_refresh_rejected", extra={"upstream_status": response.status})
            raise UpstreamAuthError(response.status, body=body)

        access_token = str(body.get("access_token") or "").strip() if isinstance(body, dict) else ""
        if not access_token:
            observe_provider_token_refresh("rejected")
            raise UpstreamAuthError(response.status, body=body, details="token response has no access_token")

        try:
            expires_in = float(body.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0.0
        self._token = AccessToken(
            value=access_token,
            expires_at=self._clock() + expires_in - self.safety_margin_seconds,
        )
        observe_provider_token_refresh("ok")
        logger.info("provider_token_refreshed", extra={"expires_in": expires_in})
        return access_token
