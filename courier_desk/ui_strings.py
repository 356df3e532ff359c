from __future__ import annotations

from typing import Dict, List


USER_TYPES: List[str] = ["CUSTOMER", "WAREHOUSE"]

QUOTE_STATUSES: List[Dict[str, str]] = [
    {
        "key": "draft",
        "label": "Draft",
        "description": "Lines priced from the catalog, no provider quote yet.",
    },
    {
        "key": "quoted",
        "label": "Quoted",
        "description": "Provider returned a fee and a quote id; ready to dispatch.",
    },
]


MESSAGES: Dict[str, Dict[str, str]] = {
    "error": {
        "address_required": "Address is required.",
        "addresses_missing": "Missing pickup/dropoff address.",
        "contact_phone_missing": "Missing pickup/dropoff phone number.",
        "customer_not_found": "Customer not found.",
        "customer_type_invalid": "customer_id must reference a CUSTOMER.",
        "delivery_not_found": "Delivery not found.",
        "item_id_required": "Each quote line needs an item id.",
        "item_not_found": "Item not found.",
        "items_required": "At least one quote line is required.",
        "name_required": "Name is required.",
        "no_changes": "No changes provided.",
        "not_found": "Record not found.",
        "phone_number_required": "Phone number is required.",
        "price_invalid": "Price must be a non-negative number.",
        "provider_mode_invalid": "Unsupported delivery provider mode.",
        "provider_not_configured": "Delivery provider credentials are not configured.",
        "provider_rejected": "The delivery provider rejected the request.",
        "provider_auth_failed": "Could not authenticate with the delivery provider.",
        "quantity_invalid": "Quantity must be a positive number.",
        "quote_locked": "Quote already has a provider quote and can no longer be edited.",
        "quote_not_found": "Quote not found.",
        "quote_not_priced": "Quote has no Uber quoteId. Request Uber Quote first.",
        "stock_invalid": "Stock quantity must be a non-negative number.",
        "unexpected_error": "Could not complete the operation. Try again shortly.",
        "user_not_found": "User not found.",
        "user_type_invalid": "user_type must be CUSTOMER or WAREHOUSE.",
        "validation_error": "The request is invalid.",
        "warehouse_not_found": "Warehouse not found.",
        "warehouse_type_invalid": "warehouse_id must reference a WAREHOUSE.",
    },
}


def quote_status_keys() -> List[str]:
    return [item["key"] for item in QUOTE_STATUSES]


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)
