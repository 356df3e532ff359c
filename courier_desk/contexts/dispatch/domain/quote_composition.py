from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Tuple

from courier_desk.errors import NotFoundError, ValidationError


@dataclass(frozen=True)
class QuoteLine:
    item_id: int
    name: str
    price: float
    qty: float
    line_total: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "price": self.price,
            "qty": self.qty,
            "line_total": self.line_total,
        }


@dataclass(frozen=True)
class ComposedQuote:
    lines: Tuple[QuoteLine, ...]
    subtotal: float

    def lines_as_dicts(self) -> list[dict]:
        return [line.to_dict() for line in self.lines]


def requested_item_id(line: Mapping[str, Any]) -> Any:
    return line.get("item_id", line.get("itemId"))


def normalize_item_id(value: Any) -> int | None:
    """Integral ids arrive as 3, "03" or 3.0; anything else matches no item."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def _parse_qty(raw: Any) -> float:
    if raw is None or raw == "":
        return 1
    if isinstance(raw, bool):
        raise ValidationError(code="quantity_invalid", message_key="quantity_invalid", details=f"invalid qty {raw!r}")
    try:
        qty = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(code="quantity_invalid", message_key="quantity_invalid", details=f"invalid qty {raw!r}") from exc
    if not math.isfinite(qty) or qty <= 0:
        raise ValidationError(code="quantity_invalid", message_key="quantity_invalid", details=f"invalid qty {raw!r}")
    return int(qty) if qty.is_integer() else qty


def compose_lines(requested_lines: Iterable[Mapping[str, Any]] | None, catalog: Iterable[Mapping[str, Any]]) -> ComposedQuote:
    """Resolve requested ``{item_id, qty}`` lines against a catalog snapshot.

    Pure: raises before anything is persisted. An absent qty counts as 1.
    """
    requested = list(requested_lines or [])
    if not requested:
        raise ValidationError(code="items_required", message_key="items_required")

    by_id = {int(item["id"]): item for item in catalog}
    lines = []
    for raw_line in requested:
        if not isinstance(raw_line, Mapping):
            raise ValidationError(code="item_id_required", message_key="item_id_required")
        item_id = requested_item_id(raw_line)
        if item_id is None or str(item_id).strip() == "":
            raise ValidationError(code="item_id_required", message_key="item_id_required")
        item = by_id.get(normalize_item_id(item_id))
        if item is None:
            raise NotFoundError(
                code="item_not_found",
                message_key="item_not_found",
                details=f"item {item_id} not found",
                payload={"item_id": item_id},
            )
        qty = _parse_qty(raw_line.get("qty"))
        price = float(item["price"])
        lines.append(
            QuoteLine(
                item_id=int(item["id"]),
                name=str(item["name"]),
                price=price,
                qty=qty,
                line_total=price * qty,
            )
        )

    # Sorted so the float sum does not depend on line order.
    subtotal = sum(sorted(line.line_total for line in lines))
    return ComposedQuote(lines=tuple(lines), subtotal=subtotal)
