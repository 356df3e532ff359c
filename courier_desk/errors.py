from __future__ import annotations

from typing import Any, Dict, Iterable

from courier_desk.ui_strings import error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        fallback = error_message("unexpected_error", "Could not complete the operation.")
        return error_message(self.message_key, fallback)

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.user_message(),
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class ValidationError(AppError):
    default_code = "validation_error"
    default_message_key = "validation_error"
    default_http_status = 400
    default_critical = False


class NotFoundError(AppError):
    default_code = "not_found"
    default_message_key = "not_found"
    default_http_status = 404
    default_critical = False


class ConfigurationError(AppError):
    """Required provider settings are missing; fails the operation, not the process."""

    default_code = "provider_not_configured"
    default_message_key = "provider_not_configured"
    default_http_status = 400
    default_critical = False

    @classmethod
    def missing(cls, names: Iterable[str]) -> "ConfigurationError":
        missing = [str(name) for name in names]
        return cls(
            details=f"Missing {' / '.join(missing)} in environment",
            payload={"missing": missing},
        )

    def user_message(self) -> str:
        return self.details or super().user_message()


class UpstreamError(AppError):
    """The delivery provider answered with a non-success status.

    ``body`` is the provider's error payload, kept verbatim so the operator can
    read it against the provider documentation.
    """

    default_code = "provider_rejected"
    default_message_key = "provider_rejected"
    default_http_status = 400
    default_critical = False

    def __init__(self, status_code: int, body: Any = None, **kwargs: Any) -> None:
        self.status_code = int(status_code)
        self.body = body
        kwargs.setdefault("details", f"provider HTTP {self.status_code}")
        super().__init__(**kwargs)

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        if isinstance(self.body, dict) and self.body:
            return dict(self.body)
        payload = super().to_response_payload(request_id)
        if self.body not in (None, "", {}):
            payload["message"] = str(self.body)
        payload["upstream_status"] = self.status_code
        return payload


class UpstreamAuthError(UpstreamError):
    default_code = "provider_auth_failed"
    default_message_key = "provider_auth_failed"


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
