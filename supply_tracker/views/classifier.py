from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List

from supply_tracker.domain.models import (
    CANCELLED,
    COMPLETED,
    DISPATCHED,
    PoStatus,
    PurchaseRequest,
    SupplyOpsBusiness,
    SupplyOpsPipeline,
)


class OrderView(str, Enum):
    PIPELINE = "pipeline"
    IN_TRANSIT = "in_transit"
    BUSINESS = "business"

    @classmethod
    def from_slug(cls, raw: object | None) -> "OrderView":
        normalized = str(raw or "").strip().lower().replace("-", "_")
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"unknown order view: {raw}")


_TERMINAL_REQUEST_STATUSES = frozenset({COMPLETED.casefold(), CANCELLED.casefold()})
_DISPATCHED_REQUEST_STATUS = DISPATCHED.casefold()


def _request_status(record: SupplyOpsPipeline) -> str:
    return str(record.request.status or "").strip().casefold()


def is_terminal(record: SupplyOpsPipeline) -> bool:
    return record.po_status.is_terminal or _request_status(record) in _TERMINAL_REQUEST_STATUSES


def is_dispatched(record: SupplyOpsPipeline) -> bool:
    return record.po_status is PoStatus.DISPATCHED or _request_status(record) == _DISPATCHED_REQUEST_STATUS


def is_issued(record: SupplyOpsPipeline) -> bool:
    return record.po_status is PoStatus.ISSUED


def classify_order(record: SupplyOpsPipeline) -> OrderView | None:
    """Returns the single view an order belongs to.

    Terminal states win over dispatch, and dispatch wins over a merely issued
    purchase order. Orders without a purchase order belong to no view.
    """
    if not record.vendor.purchase_order.is_issued:
        return None
    if is_terminal(record):
        return OrderView.BUSINESS
    if is_dispatched(record):
        return OrderView.IN_TRANSIT
    if is_issued(record):
        return OrderView.PIPELINE
    return None


def flatten_orders(requests: Iterable[PurchaseRequest]) -> List[SupplyOpsPipeline]:
    records: List[SupplyOpsPipeline] = []
    for purchase_request in requests:
        for sku in purchase_request.skus:
            for vendor in sku.vendors:
                if not vendor.purchase_order.is_issued:
                    continue
                records.append(SupplyOpsPipeline(request=purchase_request, sku=sku, vendor=vendor))
    return records


@dataclass(frozen=True)
class OrderViews:
    pipeline: List[SupplyOpsPipeline] = field(default_factory=list)
    in_transit: List[SupplyOpsPipeline] = field(default_factory=list)
    business: List[SupplyOpsBusiness] = field(default_factory=list)

    def get(self, view: OrderView) -> List[SupplyOpsPipeline]:
        return list(getattr(self, view.value))

    def counts(self) -> Dict[str, int]:
        return {view.value: len(getattr(self, view.value)) for view in OrderView}

    def to_dict(self) -> Dict[str, Any]:
        return {view.value: [record.to_dict() for record in getattr(self, view.value)] for view in OrderView}


def partition_orders(records: Iterable[SupplyOpsPipeline]) -> OrderViews:
    pipeline: List[SupplyOpsPipeline] = []
    in_transit: List[SupplyOpsPipeline] = []
    business: List[SupplyOpsBusiness] = []
    for record in records:
        view = classify_order(record)
        if view is OrderView.PIPELINE:
            pipeline.append(record)
        elif view is OrderView.IN_TRANSIT:
            in_transit.append(record)
        elif view is OrderView.BUSINESS:
            business.append(SupplyOpsBusiness.from_pipeline(record))
    return OrderViews(pipeline=pipeline, in_transit=in_transit, business=business)


def build_order_views(requests: Iterable[PurchaseRequest]) -> OrderViews:
    return partition_orders(flatten_orders(requests))


def get_pipeline_orders(requests: Iterable[PurchaseRequest]) -> List[SupplyOpsPipeline]:
    return [record for record in flatten_orders(requests) if classify_order(record) is OrderView.PIPELINE]


def get_in_transit_orders(requests: Iterable[PurchaseRequest]) -> List[SupplyOpsPipeline]:
    return [record for record in flatten_orders(requests) if classify_order(record) is OrderView.IN_TRANSIT]


def get_business_orders(requests: Iterable[PurchaseRequest]) -> List[SupplyOpsBusiness]:
    return [
        SupplyOpsBusiness.from_pipeline(record)
        for record in flatten_orders(requests)
        if classify_order(record) is OrderView.BUSINESS
    ]
