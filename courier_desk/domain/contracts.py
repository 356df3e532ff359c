from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class ServiceOutput:
    payload: Dict[str, Any]
    status_code: int = 200


@dataclass(frozen=True)
class QuoteCreateInput:
    customer_id: int
    warehouse_id: int
    items: List[Dict[str, Any]]


@dataclass(frozen=True)
class DeliveryFromQuoteInput:
    quote_id: int
    overrides: Dict[str, Any] = field(default_factory=dict)
