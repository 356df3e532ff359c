from __future__ import annotations

from flask import Blueprint, jsonify, request

from courier_desk.contexts.dispatch.application.catalog_service import CatalogService
from courier_desk.db import get_db


catalog_bp = Blueprint("catalog", __name__)

_CATALOG_SERVICE = CatalogService()


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@catalog_bp.route("/api/users", methods=["GET", "POST"])
def users_api():
    db = get_db()
    if request.method == "POST":
        result = _CATALOG_SERVICE.create_user(db, _json_body())
        return jsonify(result.payload), result.status_code
    return jsonify(_CATALOG_SERVICE.list_users(db, user_type=request.args.get("user_type")))


@catalog_bp.route("/api/users/<int:user_id>", methods=["GET", "PATCH", "DELETE"])
def user_detail_api(user_id: int):
    db = get_db()
    if request.method == "PATCH":
        result = _CATALOG_SERVICE.update_user(db, user_id, _json_body())
        return jsonify(result.payload), result.status_code
    if request.method == "DELETE":
        result = _CATALOG_SERVICE.delete_user(db, user_id)
        return jsonify(result.payload), result.status_code
    return jsonify(_CATALOG_SERVICE.get_user(db, user_id))


@catalog_bp.route("/api/items", methods=["GET", "POST"])
def items_api():
    db = get_db()
    if request.method == "POST":
        result = _CATALOG_SERVICE.create_item(db, _json_body())
        return jsonify(result.payload), result.status_code
    return jsonify(_CATALOG_SERVICE.list_items(db))


@catalog_bp.route("/api/items/<int:item_id>", methods=["GET", "PATCH", "DELETE"])
def item_detail_api(item_id: int):
    db = get_db()
    if request.method == "PATCH":
        result = _CATALOG_SERVICE.update_item(db, item_id, _json_body())
        return jsonify(result.payload), result.status_code
    if request.method == "DELETE":
        result = _CATALOG_SERVICE.delete_item(db, item_id)
        return jsonify(result.payload), result.status_code
    return jsonify(_CATALOG_SERVICE.get_item(db, item_id))
