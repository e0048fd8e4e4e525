from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from supply_tracker.domain.supply_input import (
    ApprovalStatus,
    BookedAgainst,
    BrandInvoiceAlignment,
    DemandOrderStatus,
    DispatchType,
    OpsStatus,
    SupplyBookingStatus,
    SupplyInput,
    SupplyTeamSegment,
    TypeOfPurchase,
    VendorQRCondition,
)


_HOUR_MS = 3_600_000
_DAY_MS = 24 * _HOUR_MS


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _vendor(
    vendor_id: str,
    price: float,
    *,
    poc: str,
    po_number: str = "",
    po_status: str = "",
    vendor_status: str = "Pending",
    pickup_at: int = 0,
) -> Dict[str, Any]:
    return {
        "vendorId": vendor_id,
        "vendorPrice": price,
        "supplyPoc": poc,
        "vendorPaymentTerms": "NET30",
        "brandInvoiceAlignment": "Aligned",
        "pickupAddress": "123 Industrial Rd, Sector 10, Noida",
        "flashSale": False,
        "expectedPickupTime": pickup_at,
        "vendorStatus": vendor_status,
        "poNumber": po_number,
        "poStatus": po_status,
    }


def _sku(sku_id: str, quantity: int, expected_price: float, vendors: List[Dict[str, Any]], **display) -> Dict[str, Any]:
    return {
        "sku": sku_id,
        "quantity": quantity,
        "expectedPrice": expected_price,
        "vendors": vendors,
        "unmaskedProductName": display.get("name"),
        "superCategory": display.get("category"),
        "brand": display.get("brand"),
        "asv": display.get("asv"),
        "seasonality": display.get("seasonality"),
        "seasonDuration": display.get("season_duration"),
    }


def _history(*entries: tuple[str, str, int]) -> List[Dict[str, Any]]:
    return [{"status": status, "user": user, "timestamp": timestamp} for status, user, timestamp in entries]


def demo_purchase_requests(now_ms: int | None = None) -> Dict[str, Dict[str, Any]]:
    """Demo ``purchaseRequests`` documents keyed by document id."""
    now = int(now_ms if now_ms is not None else _now_ms())
    return {
        "PR-2023-001": {
            "proposedWh": "Warehouse-North",
            "status": "Approved",
            "initiatedBy": "Jane Smith",
            "createdAt": now - 2 * _HOUR_MS,
            "skus": [
                _sku(
                    "SKU-ABC-001",
                    100,
                    160.0,
                    [
                        _vendor(
                            "V001",
                            150.75,
                            poc="Alice Johnson",
                            po_number="PO-789012",
                            po_status="Issued",
                            vendor_status="Approved",
                            pickup_at=now + _DAY_MS,
                        ),
                        _vendor("V002", 158.0, poc="Rahul Mehta"),
                    ],
                    name="Gadget X Pro",
                    category="Electronics",
                    brand="TechGadget",
                    asv=155.5,
                    seasonality="High",
                    season_duration="Q4",
                )
            ],
            # not stored in timestamp order
            "history": _history(
                ("Approved", "Catherine White", now - _HOUR_MS),
                ("Request Created", "Jane Smith", now - 2 * _HOUR_MS),
                ("Pending Approval", "Jane Smith", now - 90 * 60_000),
            ),
        },
        "PR-2023-002": {
            "proposedWh": "Warehouse-South",
            "status": "Cancelled",
            "initiatedBy": "Mark Lee",
            "createdAt": now - 3 * _DAY_MS,
            "skus": [
                _sku(
                    "SKU-XYZ-002",
                    40,
                    520.0,
                    [
                        _vendor(
                            "V003",
                            505.0,
                            poc="Priya Nair",
                            po_number="PO-789013",
                            po_status="Cancelled",
                            vendor_status="Approved",
                        )
                    ],
                    name="Smart Kettle",
                    category="Home",
                    brand="BrewCo",
                )
            ],
            "history": _history(
                ("Request Created", "Mark Lee", now - 3 * _DAY_MS),
                ("Approved", "Catherine White", now - 2 * _DAY_MS),
                ("Cancelled", "Mark Lee", now - _DAY_MS),
            ),
        },
        "PR-2023-003": {
            "proposedWh": "Warehouse-East",
            "status": "Dispatched",
            "initiatedBy": "Jane Smith",
            "createdAt": now - 5 * _DAY_MS,
            "skus": [
                _sku(
                    "SKU-LMN-003",
                    250,
                    42.0,
                    [
                        _vendor(
                            "V004",
                            39.5,
                            poc="Bob Green",
                            po_number="PO-789014",
                            po_status="Dispatched",
                            vendor_status="Approved",
                            pickup_at=now - _DAY_MS,
                        )
                    ],
                    name="Steel Bottle 1L",
                    category="Kitchen",
                    brand="HydraSteel",
                    seasonality="Medium",
                )
            ],
            "history": _history(
                ("Request Created", "Jane Smith", now - 5 * _DAY_MS),
                ("Approved", "Catherine White", now - 4 * _DAY_MS),
                ("Dispatched", "Bob Green", now - _DAY_MS),
            ),
        },
        "PR-2023-004": {
            "proposedWh": "Warehouse-North",
            "status": "Completed",
            "initiatedBy": "Mark Lee",
            "createdAt": now - 10 * _DAY_MS,
            "skus": [
                _sku(
                    "SKU-QRS-004",
                    60,
                    1200.0,
                    [
                        _vendor(
                            "V005",
                            1150.0,
                            poc="Alice Johnson",
                            po_number="PO-789015",
                            po_status="Received at WH",
                            vendor_status="Approved",
                        )
                    ],
                    name="Air Purifier Mini",
                    category="Appliances",
                    brand="PureAir",
                    asv=1175.0,
                )
            ],
            "history": _history(
                ("Request Created", "Mark Lee", now - 10 * _DAY_MS),
                ("Approved", "Catherine White", now - 9 * _DAY_MS),
                ("Dispatched", "Alice Johnson", now - 6 * _DAY_MS),
                ("Completed", "Warehouse-North", now - 4 * _DAY_MS),
            ),
        },
        "PR-2023-005": {
            "proposedWh": "Warehouse-West",
            "status": "Pending Approval",
            "initiatedBy": "Jane Smith",
            "createdAt": now - 30 * 60_000,
            "skus": [
                _sku(
                    "SKU-TUV-005",
                    500,
                    12.0,
                    [_vendor("V006", 11.25, poc="Rahul Mehta")],
                    name="Cotton Face Towel",
                    category="Home",
                )
            ],
            "history": _history(("Request Created", "Jane Smith", now - 30 * 60_000)),
        },
    }


def demo_supply_inputs(now_ms: int | None = None) -> List[SupplyInput]:
    now = int(now_ms if now_ms is not None else _now_ms())
    primary = SupplyInput(
        agm_id="AGM-12345",
        sku_id_sku_module="SKU-MOD-001",
        cp_with_gst=180.0,
        quantity_available=50,
        description="Latest model of Gadget X with advanced features.",
        supply_poc="Bob Green",
        supply_team_segment=SupplyTeamSegment.RETAIL,
        vendor_agm_id="V001",
        sku_id="SKU-ABC-001",
        pickup_location_same_as_vendor_location=True,
        pickup_district="Noida",
        pickup_state="Uttar Pradesh",
        pickup_pin=201301,
        vendor_qr_condition=VendorQRCondition.FULLY_INTACT,
        vendor_moq=10,
        expiry_details="Batch expires Dec 2025",
        packaging_condition="Good",
        supply_status="Available",
        remaining_quantity=50,
        vendor_name="Global Suppliers Inc.",
        cp_id="CP-001",
        current_supply_book_status="Supply Booked",
        vendor_district_si="Noida",
        vendor_state_si="Uttar Pradesh",
        vendor_pin_si=201301,
        demand_order_status=DemandOrderStatus.ORDER_BOOKED,
        estimate_booked_quantity=40,
        estimates="Based on last quarter sales",
        supply_order_book_time=now - 30 * 60_000,
        supply_order_book_modified_time=now - 10 * 60_000,
        critical_shipping_address="Warehouse-South, Bangalore",
        remarks="Urgent requirement for Q4",
        history="Order placed, awaiting pickup.",
        supply_booked_quantity=40,
        supply_booking_status=SupplyBookingStatus.SUPPLY_BOOKED,
        booked_against=BookedAgainst.ORDER,
        type_of_purchase=TypeOfPurchase.READY_AT_SELLER_WH,
        inventory_quantity=0,
        warehouse_quantity_against_order=0,
        quantity_against_order=40,
        warehouse_name="Warehouse-North",
        pickup_date=now + 2 * _DAY_MS,
        advance_amount=1000.0,
        vendor_ready_for_brand_invoice=BrandInvoiceAlignment.ALIGNED,
        price_validity=now + 3 * _DAY_MS,
        vendor_ready_for_manifestations=True,
        company_billing=True,
        dispatch_type=DispatchType.REGULAR,
        ops_status=OpsStatus.FTL_ALIGNED,
        reason_of_delay_in_pickup="",
        po_issued=True,
        revised_pickup_date=now + 2 * _DAY_MS,
        po_number="PO-789012",
        supply_ops_remarks="Pickup scheduled for Friday.",
        approval_status=ApprovalStatus.APPROVED,
        approver_remarks="Approved based on current demand.",
        approved_by="Catherine White",
        approval_time=now - _HOUR_MS,
    )
    secondary = SupplyInput.from_dict({**primary.to_dict(), "agmId": "AGM-54321", "cpId": "CP-002", "quantityAvailable": 75})
    return [primary, secondary]


def seed_store(store, collection: str, now_ms: int | None = None) -> int:
    documents = demo_purchase_requests(now_ms)
    for doc_id, payload in documents.items():
        store.set(collection, doc_id, payload)
    return len(documents)
