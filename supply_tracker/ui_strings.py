from __future__ import annotations

from typing import Dict, List


ORDER_VIEWS: List[Dict[str, str]] = [
    {
        "key": "pipeline",
        "label": "Pipeline",
        "description": "Purchase orders issued and not yet dispatched, received or cancelled.",
    },
    {
        "key": "in_transit",
        "label": "In Transit",
        "description": "Purchase orders dispatched by the vendor and not yet resolved.",
    },
    {
        "key": "business",
        "label": "Business",
        "description": "Purchase orders received at the warehouse or cancelled.",
    },
]


MESSAGES: Dict[str, Dict[str, str]] = {
    "success": {
        "supply_input_created": "Supply Input created successfully.",
        "supply_input_updated": "Supply Input updated successfully.",
        "supply_input_deleted": "Supply Input deleted successfully.",
        "bulk_processed": "Bulk operation processed.",
        "notification_dismissed": "Notification dismissed.",
    },
    "error": {
        "action_invalid": "Invalid action for this operation.",
        "bulk_limit_exceeded": "Too many supply inputs in a single bulk operation.",
        "bulk_operation_invalid": "Bulk operation must be one of create, update or delete.",
        "feed_unavailable": "Could not load purchase requests from the database.",
        "form_invalid": "Some fields of the supply input form are invalid.",
        "json_body_required": "A JSON object body is required.",
        "not_found": "The requested record was not found.",
        "purchase_request_not_found": "Purchase request not found.",
        "supply_input_missing_fields": "Failed to create Supply Input. Missing required fields.",
        "supply_input_not_found": "Supply Input not found.",
        "supply_input_invalid": "Supply Input payload is invalid.",
        "unexpected_error": "Could not complete the operation. Please try again shortly.",
        "view_invalid": "Unknown order view.",
    },
    "notification": {
        "data_error": "Data Error",
    },
}


def order_view_keys() -> List[str]:
    return [item["key"] for item in ORDER_VIEWS]


def order_view_label(key: str, default: str | None = None) -> str:
    for item in ORDER_VIEWS:
        if item["key"] == key:
            return item["label"]
    return default if default is not None else key


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)


def notification_title(key: str, default: str | None = None) -> str:
    return get_message("notification", key, default)
