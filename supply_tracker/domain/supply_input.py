from __future__ import annotations

import dataclasses
import math
import re
import typing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from supply_tracker.domain.models import SKU, PurchaseOrder, PurchaseRequest, Vendor, VendorStatus
from supply_tracker.errors import ValidationError
from supply_tracker.ui_strings import error_message


class SupplyTeamSegment(str, Enum):
    RETAIL = "Retail"
    WHOLESALE = "Wholesale"


class VendorQRCondition(str, Enum):
    FULLY_INTACT = "Fully Intact on master pack and internal pack"
    SCRATCHED_MASTER = "Scratched on master box but code on internal pack is intact"
    SCRATCHED_BOTH = "Scratched on both inside and outside"


class DemandOrderStatus(str, Enum):
    ORDER_BOOKED = "Order Booked"
    DROPPED = "Dropped"
    ON_HOLD = "On Hold"


class SupplyBookingStatus(str, Enum):
    SUPPLY_BOOKED = "Supply Booked"
    AVAILABLE_SUPPLY = "Available Supply"
    SUPPLY_OOS = "Supply OOS"
    SUPPLY_DISPATCHED = "Supply Dispatched"
    CLOSED_PARTIALLY = "Closed - Partially"


class BookedAgainst(str, Enum):
    INVENTORY = "Inventory"
    ORDER = "Order"
    ORDERS_INVENTORY = "Orders + Inventory"
    ORDERS_PENDENCY = "Orders + Pendency"
    ORDERS_PENDENCY_INVENTORY = "Orders + Pendency + Inventory"
    PENDENCY = "Pendency"


class TypeOfPurchase(str, Enum):
    READY_AT_SELLER_WH = "Ready to move at seller's WH"
    MATERIAL_IN_TRANSIT = "Material in transit towards seller's WH"
    READY_AT_CNF_NOT_BILLED = "Ready to move at company's CnF but not billed yet, To be picked from CnF"
    READY_AT_CNF_PICK_FROM_SELLER = (
        "Ready to move at company's CnF but not billed yet, To be picked from Seller WH"
    )
    NONE_OF_ABOVE = "None of the above"


class BrandInvoiceAlignment(str, Enum):
    ALIGNED = "Aligned"
    NOT_ALIGNED = "Not Aligned"
    NOT_REQUIRED = "Not required for this product"


class DispatchType(str, Enum):
    CRITICAL = "Critical"
    REGULAR = "Regular"


class OpsStatus(str, Enum):
    FTL_ALIGNED = "FTL Aligned"
    EDD_SHARED = "EDD shared by vendor"
    PTL_ALIGNED = "PTL Aligned"
    VENDOR_CONFIRMATION_PENDING = "Vendor Confirmation Pending"
    ORDER_PENDING = "Order Pending"
    PENDING_AT_SUPPLY_OPS = "Pending at Supply Ops"
    DISPATCHED = "Dispatched"
    PARTIAL_DISPATCHED = "Partial Dispatched"
    OOS = "OOS"
    REALIGNED_TO_OTHER_VENDOR = "Realigned to other vendor"
    PENDING_AT_DEMAND = "Pending at Demand"
    PERMANENTLY_CANCELLED = "Permanently Cancelled"
    PARTIAL_DISPATCH_REST_CANCELLED = "Partial Dispatch & Rest Cancelled"
    ORDER_PENDING_FORECAST_FILLED = "Order Pending Forecast Filled"


class ApprovalStatus(str, Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PENDING = "Pending"


_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")


def to_camel(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(lambda match: match.group(1).upper(), name)


def _enum_value(enum_cls: type[Enum], raw: object) -> Enum:
    if isinstance(raw, enum_cls):
        return raw
    normalized = str(raw).strip()
    for member in enum_cls:
        if member.value == normalized or member.name == normalized.upper():
            return member
    raise ValueError(f"invalid {enum_cls.__name__}: {raw}")


def _coerce(kind: Any, raw: object) -> Any:
    if raw is None:
        return None
    if isinstance(kind, type) and issubclass(kind, Enum):
        if raw == "":
            return None
        return _enum_value(kind, raw)
    if kind is bool:
        if isinstance(raw, str):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        return bool(raw)
    if kind is int or kind is float:
        if raw == "":
            return None
        number = _finite_float(raw)
        return int(number) if kind is int else number
    return str(raw)


def _field_kinds(cls: type) -> Dict[str, Any]:
    kinds: Dict[str, Any] = {}
    for name, hint in typing.get_type_hints(cls).items():
        args = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        kinds[name] = args[0] if args else hint
    return kinds


@dataclass
class SupplyInput:
    # basic information
    agm_id: str = ""
    sku_id_sku_module: str = ""
    cp_with_gst: float = 0.0
    quantity_available: int = 0
    description: str | None = None
    supply_poc: str = ""
    supply_team_segment: SupplyTeamSegment = SupplyTeamSegment.RETAIL
    vendor_agm_id: str = ""
    sku_id: str = ""
    pickup_location_same_as_vendor_location: bool = False
    pickup_district: str = ""
    pickup_state: str = ""
    pickup_pin: int = 0
    vendor_qr_condition: VendorQRCondition | None = None
    vendor_moq: int | None = None
    expiry_details: str | None = None
    packaging_condition: str | None = None
    supply_status: str | None = None
    remaining_quantity: int | None = None

    # auto fill
    vendor_name: str = ""
    cp_id: str | None = None
    current_supply_book_status: str | None = None
    vendor_district_si: str | None = None
    vendor_state_si: str | None = None
    vendor_pin_si: int | None = None

    # order
    demand_order_status: DemandOrderStatus | None = None
    estimate_booked_quantity: int | None = None
    estimates: str | None = None
    supply_order_book_time: int | None = None
    supply_order_book_modified_time: int | None = None
    critical_shipping_address: str | None = None
    remarks: str | None = None
    history: str | None = None
    supply_booked_quantity: int | None = None
    supply_booking_status: SupplyBookingStatus | None = None
    booked_against: BookedAgainst | None = None
    type_of_purchase: TypeOfPurchase | None = None
    inventory_quantity: int | None = None
    warehouse_quantity_against_order: int | None = None
    quantity_against_order: int | None = None
    warehouse_name: str | None = None
    pickup_date: int = 0
    advance_amount: float | None = None
    vendor_ready_for_brand_invoice: BrandInvoiceAlignment | None = None
    price_validity: int | None = None
    vendor_ready_for_manifestations: bool | None = None
    company_billing: bool | None = None

    # order status
    dispatch_type: DispatchType | None = None
    ops_status: OpsStatus | None = None
    reason_of_delay_in_pickup: str | None = None
    po_issued: bool | None = None
    revised_pickup_date: int | None = None
    po_number: str | None = None
    supply_ops_remarks: str | None = None

    # approvals
    approval_status: ApprovalStatus | None = None
    approver_remarks: str | None = None
    approved_by: str | None = None
    approval_time: int | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for item in dataclasses.fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            payload[to_camel(item.name)] = value.value if isinstance(value, Enum) else value
        return payload

    @classmethod
    def wire_fields(cls) -> Dict[str, str]:
        return {to_camel(item.name): item.name for item in dataclasses.fields(cls)}

    @classmethod
    def unknown_fields(cls, payload: Dict[str, Any]) -> List[str]:
        known = cls.wire_fields()
        return sorted(key for key in (payload or {}) if key not in known)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SupplyInput":
        kinds = _field_kinds(cls)
        wire = cls.wire_fields()
        values: Dict[str, Any] = {}
        for key, raw in dict(payload or {}).items():
            name = wire.get(key)
            if name is None:
                continue
            try:
                coerced = _coerce(kinds[name], raw)
            except (TypeError, ValueError, OverflowError) as exc:
                raise ValueError(f"{key}: {exc}") from exc
            if coerced is None and not _is_optional(cls, name):
                continue
            values[name] = coerced
        return cls(**values)

    def to_partial_dict(self) -> Dict[str, Any]:
        defaults = SupplyInput().to_dict()
        return {key: value for key, value in self.to_dict().items() if defaults.get(key, None) != value}

    def merged(self, partial: Dict[str, Any]) -> "SupplyInput":
        wire = self.wire_fields()
        changes = {
            key: value
            for key, value in dict(partial or {}).items()
            if value is not None or (key in wire and _is_optional(SupplyInput, wire[key]))
        }
        return SupplyInput.from_dict({**self.to_dict(), **changes})

    def missing_identity_fields(self) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        if not self.agm_id.strip():
            errors["agmId"] = "Required"
        if not self.sku_id.strip():
            errors["skuId"] = "Required"
        return errors


def _is_optional(cls: type, name: str) -> bool:
    hint = typing.get_type_hints(cls)[name]
    return type(None) in typing.get_args(hint)


@dataclass
class EnhancedVendor(Vendor):
    vendor_agm_id: str = ""
    vendor_name: str = ""
    vendor_district: str | None = None
    vendor_state: str | None = None
    vendor_pin: int | None = None
    vendor_moq: int | None = None
    vendor_qr_condition: VendorQRCondition | None = None
    expiry_details: str | None = None
    packaging_condition: str | None = None
    price_validity: int | None = None
    vendor_ready_for_manifestations: bool | None = None
    company_billing: bool | None = None
    advance_amount: float | None = None

    @classmethod
    def from_vendor(cls, vendor: Vendor, supply_input: SupplyInput) -> "EnhancedVendor":
        base = {item.name: getattr(vendor, item.name) for item in dataclasses.fields(Vendor)}
        return cls(
            **base,
            vendor_agm_id=supply_input.vendor_agm_id,
            vendor_name=supply_input.vendor_name,
            vendor_district=supply_input.vendor_district_si or supply_input.pickup_district or None,
            vendor_state=supply_input.vendor_state_si or supply_input.pickup_state or None,
            vendor_pin=supply_input.vendor_pin_si or supply_input.pickup_pin or None,
            vendor_moq=supply_input.vendor_moq,
            vendor_qr_condition=supply_input.vendor_qr_condition,
            expiry_details=supply_input.expiry_details,
            packaging_condition=supply_input.packaging_condition,
            price_validity=supply_input.price_validity,
            vendor_ready_for_manifestations=supply_input.vendor_ready_for_manifestations,
            company_billing=supply_input.company_billing,
            advance_amount=supply_input.advance_amount,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            {
                "vendorAgmId": self.vendor_agm_id,
                "vendorName": self.vendor_name,
                "vendorDistrict": self.vendor_district,
                "vendorState": self.vendor_state,
                "vendorPin": self.vendor_pin,
                "vendorMoq": self.vendor_moq,
                "vendorQrCondition": self.vendor_qr_condition.value if self.vendor_qr_condition else None,
                "expiryDetails": self.expiry_details,
                "packagingCondition": self.packaging_condition,
                "priceValidity": self.price_validity,
                "vendorReadyForManifestations": self.vendor_ready_for_manifestations,
                "companyBilling": self.company_billing,
                "advanceAmount": self.advance_amount,
            }
        )
        return payload


@dataclass
class EnhancedSKU(SKU):
    sku_id_from_module: str = ""
    cp_with_gst: float = 0.0
    quantity_available: int = 0
    expiry_details: str | None = None
    packaging_condition: str | None = None
    inventory_quantity: int | None = None
    warehouse_quantity_against_order: int | None = None
    quantity_against_order: int | None = None

    @classmethod
    def from_sku(cls, sku: SKU, supply_input: SupplyInput) -> "EnhancedSKU":
        base = {item.name: getattr(sku, item.name) for item in dataclasses.fields(SKU)}
        return cls(
            **base,
            sku_id_from_module=supply_input.sku_id_sku_module,
            cp_with_gst=supply_input.cp_with_gst,
            quantity_available=supply_input.quantity_available,
            expiry_details=supply_input.expiry_details,
            packaging_condition=supply_input.packaging_condition,
            inventory_quantity=supply_input.inventory_quantity,
            warehouse_quantity_against_order=supply_input.warehouse_quantity_against_order,
            quantity_against_order=supply_input.quantity_against_order,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            {
                "skuIdFromModule": self.sku_id_from_module,
                "cpWithGst": float(self.cp_with_gst),
                "quantityAvailable": int(self.quantity_available),
                "expiryDetails": self.expiry_details,
                "packagingCondition": self.packaging_condition,
                "inventoryQuantity": self.inventory_quantity,
                "warehouseQuantityAgainstOrder": self.warehouse_quantity_against_order,
                "quantityAgainstOrder": self.quantity_against_order,
            }
        )
        return payload


@dataclass
class SupplyInputWithContext:
    supply_input: SupplyInput
    sku: EnhancedSKU
    vendor: EnhancedVendor
    proposed_wh: str
    initiated_by: str
    created_at: int
    updated_at: int
    purchase_request: PurchaseRequest | None = None
    warehouse_name: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "supplyInput": self.supply_input.to_dict(),
            "purchaseRequest": self.purchase_request.to_dict() if self.purchase_request else None,
            "sku": self.sku.to_dict(),
            "vendor": self.vendor.to_dict(),
            "warehouseName": self.warehouse_name,
            "proposedWh": self.proposed_wh,
            "initiatedBy": self.initiated_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _vendor_from_supply_input(supply_input: SupplyInput) -> Vendor:
    purchase_order = PurchaseOrder.not_issued()
    if supply_input.po_number:
        purchase_order = PurchaseOrder.issued(supply_input.po_number)
    address_parts = [supply_input.pickup_district, supply_input.pickup_state, str(supply_input.pickup_pin or "")]
    vendor_status = VendorStatus.PENDING
    if supply_input.approval_status is not None:
        vendor_status = VendorStatus.from_label(supply_input.approval_status.value)
    return Vendor(
        vendor_id=supply_input.vendor_agm_id,
        vendor_price=supply_input.cp_with_gst,
        supply_poc=supply_input.supply_poc,
        brand_invoice_alignment=(
            supply_input.vendor_ready_for_brand_invoice.value if supply_input.vendor_ready_for_brand_invoice else ""
        ),
        pickup_address=", ".join(part for part in address_parts if part),
        expected_pickup_time=int(supply_input.revised_pickup_date or supply_input.pickup_date or 0),
        vendor_status=vendor_status,
        purchase_order=purchase_order,
    )


def build_supply_input_context(
    supply_input: SupplyInput,
    purchase_request: PurchaseRequest | None = None,
    *,
    now_ms: int | None = None,
) -> SupplyInputWithContext:
    """Reconciles a flattened supply input with the nested request model.

    The SKU is matched on ``skuId`` and the vendor on ``vendorAgmId``; when the
    request does not know them, both are derived from the supply input itself.
    """
    timestamp = int(now_ms if now_ms is not None else _now_ms())
    sku = purchase_request.find_sku(supply_input.sku_id) if purchase_request else None
    if sku is None:
        sku = SKU(
            sku=supply_input.sku_id,
            quantity=supply_input.quantity_available,
            expected_price=supply_input.cp_with_gst,
        )
    vendor = sku.find_vendor(supply_input.vendor_agm_id) or _vendor_from_supply_input(supply_input)

    created_at = purchase_request.created_at if purchase_request else supply_input.supply_order_book_time or timestamp
    updated_at = supply_input.supply_order_book_modified_time or timestamp
    return SupplyInputWithContext(
        supply_input=supply_input,
        purchase_request=purchase_request,
        sku=EnhancedSKU.from_sku(sku, supply_input),
        vendor=EnhancedVendor.from_vendor(vendor, supply_input),
        warehouse_name=supply_input.warehouse_name,
        proposed_wh=purchase_request.proposed_wh if purchase_request else (supply_input.warehouse_name or ""),
        initiated_by=purchase_request.initiated_by if purchase_request else supply_input.supply_poc,
        created_at=int(created_at),
        updated_at=int(updated_at),
    )


def _finite_float(raw: object) -> float:
    number = float(raw)
    if not math.isfinite(number):
        raise ValueError("must be a finite number")
    return number


def _parse_timestamp_text(raw: str) -> int:
    text = raw.strip()
    if re.fullmatch(r"\d+", text):
        return int(text)
    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


@dataclass
class SupplyInputFormData:
    agm_id: str = ""
    sku_id_sku_module: str = ""
    cp_with_gst: str = ""
    quantity_available: str = ""
    supply_poc: str = ""
    supply_team_segment: str = ""
    vendor_agm_id: str = ""
    sku_id: str = ""
    pickup_district: str = ""
    pickup_state: str = ""
    pickup_pin: str = ""
    vendor_name: str = ""
    pickup_date: str = ""

    description: str | None = None
    pickup_location_same_as_vendor_location: bool | None = None
    vendor_qr_condition: str | None = None
    vendor_moq: str | None = None
    expiry_details: str | None = None
    packaging_condition: str | None = None
    supply_status: str | None = None

    REQUIRED = (
        "agm_id",
        "sku_id_sku_module",
        "cp_with_gst",
        "quantity_available",
        "supply_poc",
        "supply_team_segment",
        "vendor_agm_id",
        "sku_id",
        "pickup_district",
        "pickup_state",
        "pickup_pin",
        "vendor_name",
        "pickup_date",
    )

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SupplyInputFormData":
        data = dict(payload or {})
        values: Dict[str, Any] = {}
        for item in dataclasses.fields(cls):
            key = to_camel(item.name)
            if key not in data or data[key] is None:
                continue
            raw = data[key]
            if item.name == "pickup_location_same_as_vendor_location":
                values[item.name] = _coerce(bool, raw)
            else:
                values[item.name] = str(raw)
        return cls(**values)

    def to_supply_input(self) -> SupplyInput:
        errors: Dict[str, str] = {}
        for name in self.REQUIRED:
            if not str(getattr(self, name) or "").strip():
                errors[to_camel(name)] = "Required"

        parsed: Dict[str, Any] = {}
        parsers = {
            "cp_with_gst": _finite_float,
            "quantity_available": lambda raw: int(raw.strip()),
            "pickup_pin": lambda raw: int(raw.strip()),
            "vendor_moq": lambda raw: int(raw.strip()),
            "pickup_date": _parse_timestamp_text,
            "supply_team_segment": lambda raw: _enum_value(SupplyTeamSegment, raw),
            "vendor_qr_condition": lambda raw: _enum_value(VendorQRCondition, raw),
        }
        for name, parser in parsers.items():
            raw = getattr(self, name)
            if raw is None or not str(raw).strip():
                continue
            try:
                parsed[name] = parser(str(raw))
            except (TypeError, ValueError, OverflowError):
                errors.setdefault(to_camel(name), "Invalid value")

        if errors:
            raise ValidationError(
                code="form_invalid",
                message_key="form_invalid",
                payload={"errors": errors},
            )

        return SupplyInput(
            agm_id=self.agm_id.strip(),
            sku_id_sku_module=self.sku_id_sku_module.strip(),
            cp_with_gst=parsed["cp_with_gst"],
            quantity_available=parsed["quantity_available"],
            supply_poc=self.supply_poc.strip(),
            supply_team_segment=parsed["supply_team_segment"],
            vendor_agm_id=self.vendor_agm_id.strip(),
            sku_id=self.sku_id.strip(),
            pickup_district=self.pickup_district.strip(),
            pickup_state=self.pickup_state.strip(),
            pickup_pin=parsed["pickup_pin"],
            vendor_name=self.vendor_name.strip(),
            pickup_date=parsed["pickup_date"],
            description=self.description,
            pickup_location_same_as_vendor_location=bool(self.pickup_location_same_as_vendor_location),
            vendor_qr_condition=parsed.get("vendor_qr_condition"),
            vendor_moq=parsed.get("vendor_moq"),
            expiry_details=self.expiry_details,
            packaging_condition=self.packaging_condition,
            supply_status=self.supply_status,
        )


@dataclass(frozen=True)
class SupplyInputResponse:
    success: bool
    message: str
    data: SupplyInput | None = None
    errors: Dict[str, str] | None = None

    @classmethod
    def invalid(cls, exc: ValueError) -> "SupplyInputResponse":
        field_name, _, detail = str(exc).partition(": ")
        return cls(
            success=False,
            message=error_message("supply_input_invalid"),
            errors={field_name: detail or str(exc)},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data.to_dict()
        if self.errors:
            payload["errors"] = dict(self.errors)
        return payload


BULK_OPERATIONS = ("create", "update", "delete")


@dataclass(frozen=True)
class BulkResults:
    successful: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"successful": self.successful, "failed": self.failed, "errors": list(self.errors)}


@dataclass(frozen=True)
class BulkSupplyInputOperation:
    operation: str
    supply_inputs: List[SupplyInput]
    batch_id: str
    processed_at: int
    results: BulkResults

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "supplyInputs": [item.to_dict() for item in self.supply_inputs],
            "batchId": self.batch_id,
            "processedAt": self.processed_at,
            "results": self.results.to_dict(),
        }
