from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from courier_desk.contexts.dispatch.application.service import DispatchService, quote_create_input
from courier_desk.contexts.dispatch.infrastructure.repositories import WebhookEventRepository
from courier_desk.contexts.provider.runtime import get_provider_gateway
from courier_desk.db import get_db
from courier_desk.domain.contracts import DeliveryFromQuoteInput


dispatch_bp = Blueprint("dispatch", __name__)

_DISPATCH_SERVICE = DispatchService()
_WEBHOOK_EVENTS = WebhookEventRepository()


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _parse_int(value, *, default: int, min_value: int, max_value: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return max(min_value, min(max_value, parsed))


@dispatch_bp.route("/api/quotes", methods=["GET", "POST"])
def quotes_api():
    db = get_db()
    if request.method == "POST":
        result = _DISPATCH_SERVICE.create_quote(db, quote_create_input(_json_body()))
        return jsonify(result.payload), result.status_code
    return jsonify(_DISPATCH_SERVICE.list_quotes(db))


@dispatch_bp.route("/api/quotes/<int:quote_id>", methods=["GET", "PATCH", "DELETE"])
def quote_detail_api(quote_id: int):
    db = get_db()
    if request.method == "PATCH":
        result = _DISPATCH_SERVICE.update_quote(db, quote_id, _json_body())
        return jsonify(result.payload), result.status_code
    if request.method == "DELETE":
        result = _DISPATCH_SERVICE.delete_quote(db, quote_id)
        return jsonify(result.payload), result.status_code
    return jsonify(_DISPATCH_SERVICE.get_quote(db, quote_id))


@dispatch_bp.route("/api/quotes/<int:quote_id>/request-uber-quote", methods=["POST"])
def quote_request_provider_api(quote_id: int):
    result = _DISPATCH_SERVICE.request_provider_quote(get_db(), quote_id, get_provider_gateway())
    return jsonify(result.payload), result.status_code


@dispatch_bp.route("/api/deliveries/from-quote/<int:quote_id>", methods=["POST"])
def delivery_from_quote_api(quote_id: int):
    result = _DISPATCH_SERVICE.create_delivery_from_quote(
        get_db(),
        DeliveryFromQuoteInput(quote_id=quote_id, overrides=_json_body()),
        get_provider_gateway(),
        allow_missing_phone=bool(current_app.config.get("ALLOW_MISSING_CONTACT_PHONE", False)),
        default_size=str(current_app.config.get("DEFAULT_MANIFEST_SIZE") or "medium"),
    )
    return jsonify(result.payload), result.status_code


@dispatch_bp.route("/api/deliveries", methods=["GET"])
def deliveries_api():
    return jsonify(_DISPATCH_SERVICE.list_deliveries(get_db()))


@dispatch_bp.route("/api/deliveries/<int:delivery_id>", methods=["GET", "DELETE"])
def delivery_detail_api(delivery_id: int):
    db = get_db()
    if request.method == "DELETE":
        result = _DISPATCH_SERVICE.delete_delivery(db, delivery_id)
        return jsonify(result.payload), result.status_code
    return jsonify(_DISPATCH_SERVICE.get_delivery(db, delivery_id))


@dispatch_bp.route("/api/deliveries/<int:delivery_id>/refresh", methods=["POST"])
def delivery_refresh_api(delivery_id: int):
    result = _DISPATCH_SERVICE.refresh_delivery(get_db(), delivery_id, get_provider_gateway())
    return jsonify(result.payload), result.status_code


@dispatch_bp.route("/api/deliveries/<int:delivery_id>/cancel", methods=["POST"])
def delivery_cancel_api(delivery_id: int):
    result = _DISPATCH_SERVICE.cancel_delivery(get_db(), delivery_id, get_provider_gateway())
    return jsonify(result.payload), result.status_code


@dispatch_bp.route("/api/webhook-events", methods=["GET"])
def webhook_events_api():
    limit = _parse_int(request.args.get("limit"), default=200, min_value=1, max_value=1000)
    delivery_id = (request.args.get("delivery_id") or "").strip() or None
    return jsonify(_WEBHOOK_EVENTS.list(get_db(), delivery_id=delivery_id, limit=limit))
