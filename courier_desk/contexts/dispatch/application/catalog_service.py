from __future__ import annotations

import math
from typing import Any, Dict

from courier_desk.contexts.dispatch.infrastructure.repositories import ItemRepository, UserRepository
from courier_desk.domain.contracts import ServiceOutput
from courier_desk.errors import NotFoundError, ValidationError
from courier_desk.ui_strings import USER_TYPES


ADDRESS_KEYS = ("street", "city", "state", "postal_code", "country", "name", "phone_number")


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _clean_address(raw: Any) -> Dict[str, str]:
    if not isinstance(raw, dict):
        raise ValidationError(code="address_required", message_key="address_required")
    address = {key: _clean_text(raw.get(key)) for key in ADDRESS_KEYS if _clean_text(raw.get(key))}
    if not any(address.get(key) for key in ("street", "city", "state", "postal_code", "country")):
        raise ValidationError(code="address_required", message_key="address_required")
    return address


def _number(value: Any, *, message_key: str, allow_zero: bool = True) -> float:
    if isinstance(value, bool):
        raise ValidationError(code=message_key, message_key=message_key)
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(code=message_key, message_key=message_key) from exc
    if not math.isfinite(number) or number < 0 or (number == 0 and not allow_zero):
        raise ValidationError(code=message_key, message_key=message_key)
    return number


class CatalogService:
    """Users (customers and warehouses) and inventory items."""

    def __init__(
        self,
        *,
        users: UserRepository | None = None,
        items: ItemRepository | None = None,
    ) -> None:
        self.users = users or UserRepository()
        self.items = items or ItemRepository()

    def _user_fields(self, payload: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if not partial or "user_type" in payload:
            user_type = _clean_text(payload.get("user_type")).upper()
            if user_type not in USER_TYPES:
                raise ValidationError(code="user_type_invalid", message_key="user_type_invalid")
            fields["user_type"] = user_type
        if not partial or "name" in payload:
            name = _clean_text(payload.get("name"))
            if not name:
                raise ValidationError(code="name_required", message_key="name_required")
            fields["name"] = name
        if not partial or "address" in payload:
            fields["address"] = _clean_address(payload.get("address"))
        if not partial or "phone_number" in payload:
            phone_number = _clean_text(payload.get("phone_number"))
            if not phone_number:
                raise ValidationError(code="phone_number_required", message_key="phone_number_required")
            fields["phone_number"] = phone_number
        return fields

    def create_user(self, db, payload: Dict[str, Any]) -> ServiceOutput:
        fields = self._user_fields(payload, partial=False)
        user_id = self.users.create(db, **fields)
        db.commit()
        return ServiceOutput(payload=self.users.get_by_id(db, user_id), status_code=201)

    def get_user(self, db, user_id: int) -> dict:
        user = self.users.get_by_id(db, user_id)
        if user is None:
            raise NotFoundError(code="user_not_found", message_key="user_not_found")
        return user

    def list_users(self, db, *, user_type: str | None = None) -> list[dict]:
        normalized = _clean_text(user_type).upper() or None
        if normalized and normalized not in USER_TYPES:
            raise ValidationError(code="user_type_invalid", message_key="user_type_invalid")
        return self.users.list(db, user_type=normalized)

    def update_user(self, db, user_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        self.get_user(db, user_id)
        fields = self._user_fields(payload or {}, partial=True)
        if not fields:
            raise ValidationError(code="no_changes", message_key="no_changes")
        self.users.update(db, user_id, fields)
        db.commit()
        return ServiceOutput(payload=self.users.get_by_id(db, user_id))

    def delete_user(self, db, user_id: int) -> ServiceOutput:
        self.users.delete(db, user_id)
        db.commit()
        return ServiceOutput(payload={"ok": True})

    def _item_fields(self, payload: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if not partial or "name" in payload:
            name = _clean_text(payload.get("name"))
            if not name:
                raise ValidationError(code="name_required", message_key="name_required")
            fields["name"] = name
        if not partial or "price" in payload:
            fields["price"] = _number(payload.get("price"), message_key="price_invalid")
        if "qty" in payload:
            fields["qty"] = _number(payload.get("qty"), message_key="stock_invalid")
        elif not partial:
            fields["qty"] = 0
        return fields

    def create_item(self, db, payload: Dict[str, Any]) -> ServiceOutput:
        fields = self._item_fields(payload, partial=False)
        item_id = self.items.create(db, **fields)
        db.commit()
        return ServiceOutput(payload=self.items.get_by_id(db, item_id), status_code=201)

    def get_item(self, db, item_id: int) -> dict:
        item = self.items.get_by_id(db, item_id)
        if item is None:
            raise NotFoundError(code="item_not_found", message_key="item_not_found")
        return item

    def list_items(self, db) -> list[dict]:
        return self.items.list(db)

    def update_item(self, db, item_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        self.get_item(db, item_id)
        fields = self._item_fields(payload or {}, partial=True)
        if not fields:
            raise ValidationError(code="no_changes", message_key="no_changes")
        self.items.update(db, item_id, fields)
        db.commit()
        return ServiceOutput(payload=self.items.get_by_id(db, item_id))

    def delete_item(self, db, item_id: int) -> ServiceOutput:
        self.items.delete(db, item_id)
        db.commit()
        return ServiceOutput(payload={"ok": True})
