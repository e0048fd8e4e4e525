from __future__ import annotations

import uuid
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from supply_tracker.domain.supply_input import (
    BULK_OPERATIONS,
    SupplyInput,
    SupplyInputFormData,
    SupplyInputResponse,
)
from supply_tracker.errors import (
    BulkLimitError,
    BulkRequestError,
    OrderViewError,
    PurchaseRequestNotFoundError,
    SupplyInputNotFoundError,
    UserActionError,
    ValidationError,
)
from supply_tracker.services import get_services
from supply_tracker.ui_strings import order_view_label, success_message
from supply_tracker.views.classifier import OrderView


tracker_bp = Blueprint("tracker", __name__, url_prefix="/api")


def _json_object() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise UserActionError(code="json_body_required", message_key="json_body_required")
    return payload


@tracker_bp.route("/purchase-requests", methods=["GET"])
def list_purchase_requests():
    services = get_services()
    items = [purchase_request.to_dict() for purchase_request in services.mirror.snapshot()]
    return jsonify({"loading": services.state.loading.get(), "items": items})


@tracker_bp.route("/purchase-requests/<request_id>", methods=["GET"])
def get_purchase_request(request_id: str):
    purchase_request = get_services().mirror.find_request(request_id)
    if purchase_request is None:
        raise PurchaseRequestNotFoundError(request_id)
    payload = purchase_request.to_dict()
    payload["history"] = [entry.to_dict() for entry in purchase_request.chronological_history()]
    return jsonify(payload)


@tracker_bp.route("/orders", methods=["GET"])
def order_view_summary():
    services = get_services()
    counts = services.order_views().counts()
    views = [
        {"key": view.value, "label": order_view_label(view.value), "count": counts[view.value]}
        for view in OrderView
    ]
    return jsonify({"loading": services.state.loading.get(), "counts": counts, "views": views})


@tracker_bp.route("/orders/<view_slug>", methods=["GET"])
def list_orders(view_slug: str):
    try:
        view = OrderView.from_slug(view_slug)
    except ValueError as exc:
        raise OrderViewError(view_slug) from exc
    records = get_services().order_views().get(view)
    return jsonify(
        {
            "view": view.value,
            "label": order_view_label(view.value),
            "items": [record.to_dict() for record in records],
        }
    )


@tracker_bp.route("/notification", methods=["GET"])
def get_notification():
    return jsonify(get_services().notifications.current.to_dict())


@tracker_bp.route("/notification/dismiss", methods=["POST"])
def dismiss_notification():
    notifications = get_services().notifications
    notifications.dismiss()
    payload = notifications.current.to_dict()
    payload["result"] = success_message("notification_dismissed")
    return jsonify(payload)


@tracker_bp.route("/supply-inputs", methods=["GET"])
def list_supply_inputs():
    items = get_services().supply_inputs.fetch_all()
    return jsonify({"items": [item.to_dict() for item in items]})


@tracker_bp.route("/supply-inputs/<cp_id>", methods=["GET"])
def get_supply_input(cp_id: str):
    context = get_services().supply_inputs.fetch_with_context(cp_id)
    if context is None:
        raise SupplyInputNotFoundError(cp_id)
    return jsonify(context.to_dict())


@tracker_bp.route("/supply-inputs", methods=["POST"])
def create_supply_input():
    payload = _json_object()
    try:
        supply_input = SupplyInput.from_dict(payload)
    except ValueError as exc:
        return jsonify(SupplyInputResponse.invalid(exc).to_dict()), 400
    response = get_services().supply_inputs.create(supply_input)
    return jsonify(response.to_dict()), 201 if response.success else 400


@tracker_bp.route("/supply-inputs/<cp_id>", methods=["PATCH"])
def update_supply_input(cp_id: str):
    payload = _json_object()
    response = get_services().supply_inputs.update(cp_id, payload)
    if response.success:
        return jsonify(response.to_dict()), 200
    return jsonify(response.to_dict()), 400 if response.errors else 404


@tracker_bp.route("/supply-inputs/form", methods=["POST"])
def submit_supply_input_form():
    payload = _json_object()
    supply_input = SupplyInputFormData.from_dict(payload).to_supply_input()
    response = get_services().supply_inputs.create(supply_input)
    return jsonify(response.to_dict()), 201 if response.success else 400


@tracker_bp.route("/supply-inputs/bulk", methods=["POST"])
def bulk_supply_inputs():
    payload = _json_object()
    operation = str(payload.get("operation") or "").strip().lower()
    if operation not in BULK_OPERATIONS:
        raise BulkRequestError(details=f"unsupported bulk operation: {operation or '<empty>'}")

    raw_items = payload.get("supplyInputs")
    if not isinstance(raw_items, list):
        raise ValidationError(details="supplyInputs must be a list")
    limit = int(current_app.config.get("SUPPLY_API_BULK_LIMIT", 500))
    if len(raw_items) > limit:
        raise BulkLimitError(len(raw_items), limit)

    errors: Dict[str, str] = {}
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            errors[str(index)] = "must be an object"
            continue
        try:
            SupplyInput.from_dict(item)
        except ValueError as exc:
            errors[str(index)] = str(exc)
    if errors:
        raise ValidationError(payload={"errors": errors})

    batch_id = str(payload.get("batchId") or "").strip() or f"BATCH-{uuid.uuid4().hex[:8].upper()}"
    result = get_services().supply_inputs.bulk_operation(operation, raw_items, batch_id)
    body = result.to_dict()
    body["message"] = success_message("bulk_processed")
    return jsonify(body)
