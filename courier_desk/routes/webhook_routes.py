from __future__ import annotations

from flask import Blueprint, current_app, request

from courier_desk.contexts.dispatch.application.webhook_service import WebhookIngestionService
from courier_desk.db import get_db


webhook_bp = Blueprint("webhook", __name__)

_WEBHOOK_SERVICE = WebhookIngestionService()


@webhook_bp.route("/webhook/uber", methods=["POST"])
def uber_webhook():
    event = request.get_json(silent=True)
    if event is None:
        event = request.get_data(as_text=True)
    try:
        _WEBHOOK_SERVICE.ingest(get_db(), event)
    except Exception:  # noqa: BLE001
        # The provider only needs the receipt acknowledged; failures stay in the logs.
        current_app.logger.exception("webhook_ingest_failed", extra={"request_path": request.path})
    return "", 200
