from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List


REQUEST_CREATED = "Request Created"
PENDING_APPROVAL = "Pending Approval"
APPROVED = "Approved"
APPROVED_PENDING_PO = "Approved - Pending PO Creation"
DISPATCHED = "Dispatched"
COMPLETED = "Completed"
CANCELLED = "Cancelled"

KNOWN_REQUEST_STATUSES = (
    REQUEST_CREATED,
    PENDING_APPROVAL,
    APPROVED,
    APPROVED_PENDING_PO,
    DISPATCHED,
    COMPLETED,
    CANCELLED,
)


def _safe_str(value: object | None) -> str | None:
    if value is None:
        return None
    raw = str(value).strip()
    return raw or None


def _safe_float(value: object | None, default: float = 0.0) -> float:
    if value is None or value == "":
        return float(default)
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def _optional_float(value: object | None) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: object | None, default: int = 0) -> int:
    if value is None or value == "":
        return int(default)
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return int(default)


def _list_of_dicts(value: object | None, field_name: str) -> List[Dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list")
    items: List[Dict[str, Any]] = []
    for item in value:
        if not isinstance(item, dict):
            raise ValueError(f"{field_name} entries must be objects")
        items.append(item)
    return items


class VendorStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @classmethod
    def from_label(cls, raw: object | None) -> "VendorStatus":
        normalized = str(raw or "").strip().lower()
        if not normalized:
            return cls.PENDING
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ValueError(f"unknown vendor status: {raw}")


class PoStatus(str, Enum):
    NOT_ISSUED = "Not Issued"
    ISSUED = "Issued"
    DISPATCHED = "Dispatched"
    RECEIVED_AT_WH = "Received at WH"
    CANCELLED = "Cancelled"

    @classmethod
    def from_label(cls, raw: object | None) -> "PoStatus":
        normalized = str(raw or "").strip().lower()
        if not normalized:
            return cls.NOT_ISSUED
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ValueError(f"unknown purchase order status: {raw}")

    @property
    def is_terminal(self) -> bool:
        return self in (PoStatus.RECEIVED_AT_WH, PoStatus.CANCELLED)


@dataclass(frozen=True)
class PurchaseOrder:
    """Purchase order state of one vendor quote.

    ``NOT_ISSUED`` never carries a number and every other state always does,
    so "no PO yet" is a state of its own rather than an empty string.
    """

    status: PoStatus = PoStatus.NOT_ISSUED
    po_number: str | None = None

    def __post_init__(self) -> None:
        normalized_number = _safe_str(self.po_number)
        if self.status is PoStatus.NOT_ISSUED and normalized_number is not None:
            raise ValueError("a purchase order that is not issued cannot carry a number")
        if self.status is not PoStatus.NOT_ISSUED and normalized_number is None:
            raise ValueError(f"purchase order in status {self.status.value!r} requires a number")
        object.__setattr__(self, "po_number", normalized_number)

    @classmethod
    def not_issued(cls) -> "PurchaseOrder":
        return cls()

    @classmethod
    def issued(cls, po_number: str) -> "PurchaseOrder":
        return cls(status=PoStatus.ISSUED, po_number=po_number)

    @classmethod
    def from_wire(cls, po_number: object | None, po_status: object | None) -> "PurchaseOrder":
        number = _safe_str(po_number)
        status = PoStatus.from_label(po_status)
        if status is PoStatus.NOT_ISSUED and number is not None:
            # Legacy records carry a number with an empty status once the PO exists.
            status = PoStatus.ISSUED
        return cls(status=status, po_number=number)

    @property
    def is_issued(self) -> bool:
        return self.status is not PoStatus.NOT_ISSUED

    def transition(self, status: PoStatus) -> "PurchaseOrder":
        if status is PoStatus.NOT_ISSUED:
            return PurchaseOrder.not_issued()
        return PurchaseOrder(status=status, po_number=self.po_number)

    def wire_number(self) -> str:
        return self.po_number or ""

    def wire_status(self) -> str:
        return "" if self.status is PoStatus.NOT_ISSUED else self.status.value


@dataclass(frozen=True)
class HistoryLog:
    status: str
    user: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "user": self.user, "timestamp": int(self.timestamp)}

    @staticmethod
    def from_dict(payload: Dict[str, Any]) -> "HistoryLog":
        data = dict(payload or {})
        return HistoryLog(
            status=str(data.get("status") or ""),
            user=str(data.get("user") or ""),
            timestamp=_safe_int(data.get("timestamp"), 0),
        )


@dataclass
class Vendor:
    vendor_id: str
    vendor_price: float = 0.0
    supply_poc: str = ""
    vendor_payment_terms: str = ""
    brand_invoice_alignment: str = ""
    pickup_address: str = ""
    flash_sale: bool = False
    expected_pickup_time: int = 0
    vendor_status: VendorStatus = VendorStatus.PENDING
    purchase_order: PurchaseOrder = field(default_factory=PurchaseOrder.not_issued)

    @property
    def po_number(self) -> str | None:
        return self.purchase_order.po_number

    @property
    def po_status(self) -> PoStatus:
        return self.purchase_order.status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vendorId": self.vendor_id,
            "vendorPrice": float(self.vendor_price),
            "supplyPoc": self.supply_poc,
            "vendorPaymentTerms": self.vendor_payment_terms,
            "brandInvoiceAlignment": self.brand_invoice_alignment,
            "pickupAddress": self.pickup_address,
            "flashSale": bool(self.flash_sale),
            "expectedPickupTime": int(self.expected_pickup_time),
            "vendorStatus": self.vendor_status.value,
            "poNumber": self.purchase_order.wire_number(),
            "poStatus": self.purchase_order.wire_status(),
        }

    @staticmethod
    def from_dict(payload: Dict[str, Any]) -> "Vendor":
        data = dict(payload or {})
        vendor_id = _safe_str(data.get("vendorId"))
        if vendor_id is None:
            raise ValueError("vendorId is required")
        return Vendor(
            vendor_id=vendor_id,
            vendor_price=_safe_float(data.get("vendorPrice")),
            supply_poc=str(data.get("supplyPoc") or ""),
            vendor_payment_terms=str(data.get("vendorPaymentTerms") or ""),
            brand_invoice_alignment=str(data.get("brandInvoiceAlignment") or ""),
            pickup_address=str(data.get("pickupAddress") or ""),
            flash_sale=bool(data.get("flashSale")),
            expected_pickup_time=_safe_int(data.get("expectedPickupTime")),
            vendor_status=VendorStatus.from_label(data.get("vendorStatus")),
            purchase_order=PurchaseOrder.from_wire(data.get("poNumber"), data.get("poStatus")),
        )


@dataclass
class SKU:
    sku: str
    quantity: int = 0
    expected_price: float = 0.0
    vendors: List[Vendor] = field(default_factory=list)
    unmasked_product_name: str | None = None
    super_category: str | None = None
    brand: str | None = None
    asv: float | None = None
    seasonality: str | None = None
    season_duration: str | None = None

    def find_vendor(self, vendor_id: str) -> Vendor | None:
        for vendor in self.vendors:
            if vendor.vendor_id == vendor_id:
                return vendor
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sku": self.sku,
            "quantity": int(self.quantity),
            "expectedPrice": float(self.expected_price),
            "vendors": [vendor.to_dict() for vendor in self.vendors],
            "unmaskedProductName": self.unmasked_product_name,
            "superCategory": self.super_category,
            "brand": self.brand,
            "asv": self.asv,
            "seasonality": self.seasonality,
            "seasonDuration": self.season_duration,
        }

    @staticmethod
    def from_dict(payload: Dict[str, Any]) -> "SKU":
        data = dict(payload or {})
        sku_id = _safe_str(data.get("sku"))
        if sku_id is None:
            raise ValueError("sku is required")
        vendors = [Vendor.from_dict(item) for item in _list_of_dicts(data.get("vendors"), "vendors")]
        seen: set[str] = set()
        for vendor in vendors:
            if vendor.vendor_id in seen:
                raise ValueError(f"duplicate vendorId {vendor.vendor_id} in sku {sku_id}")
            seen.add(vendor.vendor_id)
        return SKU(
            sku=sku_id,
            quantity=_safe_int(data.get("quantity")),
            expected_price=_safe_float(data.get("expectedPrice")),
            vendors=vendors,
            unmasked_product_name=_safe_str(data.get("unmaskedProductName")),
            super_category=_safe_str(data.get("superCategory")),
            brand=_safe_str(data.get("brand")),
            asv=_optional_float(data.get("asv")),
            seasonality=_safe_str(data.get("seasonality")),
            season_duration=_safe_str(data.get("seasonDuration")),
        )


@dataclass
class PurchaseRequest:
    id: str
    proposed_wh: str = ""
    skus: List[SKU] = field(default_factory=list)
    status: str = REQUEST_CREATED
    initiated_by: str = ""
    history: List[HistoryLog] = field(default_factory=list)
    created_at: int = 0

    def find_sku(self, sku_id: str) -> SKU | None:
        for sku in self.skus:
            if sku.sku == sku_id:
                return sku
        return None

    def chronological_history(self) -> List[HistoryLog]:
        return sorted(self.history, key=lambda entry: entry.timestamp)

    def append_history(self, status: str, user: str, timestamp: int) -> "PurchaseRequest":
        entry = HistoryLog(status=status, user=user, timestamp=int(timestamp))
        return replace(self, status=status, history=[*self.history, entry])

    def to_document(self) -> Dict[str, Any]:
        return {
            "proposedWh": self.proposed_wh,
            "skus": [sku.to_dict() for sku in self.skus],
            "status": self.status,
            "initiatedBy": self.initiated_by,
            "history": [entry.to_dict() for entry in self.history],
            "createdAt": int(self.created_at),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.to_document()}

    @staticmethod
    def from_document(doc_id: str, payload: Dict[str, Any]) -> "PurchaseRequest":
        """Builds a request from a store document.

        Fields are copied one by one; ``doc_id`` is the identity even when the
        payload carries its own ``id`` key.
        """
        identity = _safe_str(doc_id)
        if identity is None:
            raise ValueError("document identity is required")
        data = dict(payload or {})
        skus = [SKU.from_dict(item) for item in _list_of_dicts(data.get("skus"), "skus")]
        seen: set[str] = set()
        for sku in skus:
            if sku.sku in seen:
                raise ValueError(f"duplicate sku {sku.sku} in request {identity}")
            seen.add(sku.sku)
        return PurchaseRequest(
            id=identity,
            proposed_wh=str(data.get("proposedWh") or ""),
            skus=skus,
            status=str(data.get("status") or ""),
            initiated_by=str(data.get("initiatedBy") or ""),
            history=[HistoryLog.from_dict(item) for item in _list_of_dicts(data.get("history"), "history")],
            created_at=_safe_int(data.get("createdAt")),
        )


@dataclass(frozen=True)
class SupplyOpsPipeline:
    request: PurchaseRequest
    sku: SKU
    vendor: Vendor

    @property
    def po_number(self) -> str | None:
        return self.vendor.po_number

    @property
    def po_status(self) -> PoStatus:
        return self.vendor.po_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request.to_dict(),
            "sku": self.sku.to_dict(),
            "vendor": self.vendor.to_dict(),
            "poNumber": self.vendor.purchase_order.wire_number(),
            "poStatus": self.vendor.purchase_order.wire_status(),
        }


@dataclass(frozen=True)
class SupplyOpsBusiness(SupplyOpsPipeline):
    @classmethod
    def from_pipeline(cls, record: SupplyOpsPipeline) -> "SupplyOpsBusiness":
        return cls(request=record.request, sku=record.sku, vendor=record.vendor)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            {
                "unmaskedProductName": self.sku.unmasked_product_name,
                "superCategory": self.sku.super_category,
                "brand": self.sku.brand,
                "asv": self.sku.asv,
                "seasonality": self.sku.seasonality,
                "seasonDuration": self.sku.season_duration,
                "proposedWh": self.request.proposed_wh,
                "initiatedBy": self.request.initiated_by,
                "history": [entry.to_dict() for entry in self.request.chronological_history()],
            }
        )
        return payload
