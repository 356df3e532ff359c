from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict


class TransportError(RuntimeError):
    pass


@dataclass(frozen=True)
class HttpResponse:
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= int(self.status) < 300

    def json_body(self) -> Any:
        if not self.text:
            return {}
        try:
            return json.loads(self.text)
        except json.JSONDecodeError:
            return self.text


def encode_json(payload: Any) -> bytes:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=True).encode("utf-8")


def send_request(
    method: str,
    url: str,
    *,
    headers: Dict[str, str],
    data: bytes | None = None,
    timeout: int = 20,
    verify_ssl: bool = True,
) -> HttpResponse:
    """Send one HTTP request; non-2xx answers come back as responses, not exceptions."""
    request = urllib.request.Request(url, data=data, headers=headers, method=method.upper())

    context = None
    if not verify_ssl:
        context = ssl._create_unverified_context()

    try:
        with urllib.request.urlopen(request, timeout=timeout, context=context) as response:
            body = response.read().decode("utf-8")
            return HttpResponse(status=int(getattr(response, "status", 200) or 200), text=body)
    except urllib.error.HTTPError as exc:  # noqa: PERF203
        error_body = exc.read().decode("utf-8") if exc.fp else ""
        return HttpResponse(status=int(exc.code), text=error_body)
    except urllib.error.URLError as exc:
        raise TransportError(f"connection error: {exc.reason}") from exc
    except TimeoutError as exc:
        raise TransportError("connection timed out") from exc
