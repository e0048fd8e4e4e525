import unittest

from supply_tracker.domain.models import (
    PoStatus,
    PurchaseOrder,
    PurchaseRequest,
    SKU,
    SupplyOpsBusiness,
    SupplyOpsPipeline,
    Vendor,
)
from supply_tracker.fixtures import demo_purchase_requests
from supply_tracker.views import (
    OrderView,
    build_order_views,
    classify_order,
    flatten_orders,
    get_business_orders,
    get_in_transit_orders,
    get_pipeline_orders,
    partition_orders,
)


def _record(request_status: str, po_status: PoStatus, po_number: str | None = "PO-1") -> SupplyOpsPipeline:
    if po_status is PoStatus.NOT_ISSUED:
        po_number = None
    vendor = Vendor(vendor_id="V1", purchase_order=PurchaseOrder(status=po_status, po_number=po_number))
    sku = SKU(sku="SKU-1", vendors=[vendor])
    request = PurchaseRequest(id="PR-X", status=request_status, skus=[sku])
    return SupplyOpsPipeline(request=request, sku=sku, vendor=vendor)


def _demo_requests():
    return [
        PurchaseRequest.from_document(doc_id, payload)
        for doc_id, payload in demo_purchase_requests(now_ms=1_700_000_000_000).items()
    ]


class ClassifyOrderTest(unittest.TestCase):
    def test_precedence_terminal_over_dispatched_over_issued(self) -> None:
        cases = [
            (("Approved", PoStatus.ISSUED), OrderView.PIPELINE),
            (("Approved", PoStatus.DISPATCHED), OrderView.IN_TRANSIT),
            (("Dispatched", PoStatus.ISSUED), OrderView.IN_TRANSIT),
            (("Dispatched", PoStatus.CANCELLED), OrderView.BUSINESS),
            (("Approved", PoStatus.RECEIVED_AT_WH), OrderView.BUSINESS),
            (("Completed", PoStatus.ISSUED), OrderView.BUSINESS),
            (("Cancelled", PoStatus.DISPATCHED), OrderView.BUSINESS),
            (("approved", PoStatus.NOT_ISSUED), None),
        ]
        for (request_status, po_status), expected in cases:
            with self.subTest(request_status=request_status, po_status=po_status):
                self.assertEqual(classify_order(_record(request_status, po_status)), expected)

    def test_request_status_match_ignores_case_and_spacing(self) -> None:
        self.assertIs(classify_order(_record("  dispatched ", PoStatus.ISSUED)), OrderView.IN_TRANSIT)
        self.assertIs(classify_order(_record("CANCELLED", PoStatus.ISSUED)), OrderView.BUSINESS)

    def test_cancelled_po_never_lands_outside_business(self) -> None:
        for request_status in ("Approved", "Dispatched", "Completed", "Pending Approval"):
            views = partition_orders([_record(request_status, PoStatus.CANCELLED)])
            self.assertEqual(views.counts(), {"pipeline": 0, "in_transit": 0, "business": 1})


class OrderViewsTest(unittest.TestCase):
    def test_concrete_pr_2023_scenario(self) -> None:
        requests = [
            PurchaseRequest.from_document(
                "PR-2023-001",
                {
                    "status": "Approved",
                    "skus": [{"sku": "SKU-1", "vendors": [{"vendorId": "V1", "poNumber": "PO-789012", "poStatus": "Issued"}]}],
                },
            ),
            PurchaseRequest.from_document(
                "PR-2023-002",
                {
                    "status": "Cancelled",
                    "skus": [
                        {"sku": "SKU-2", "vendors": [{"vendorId": "V2", "poNumber": "PO-789013", "poStatus": "Cancelled"}]}
                    ],
                },
            ),
        ]

        self.assertEqual([record.request.id for record in get_pipeline_orders(requests)], ["PR-2023-001"])
        self.assertEqual([record.request.id for record in get_business_orders(requests)], ["PR-2023-002"])
        self.assertEqual(get_in_transit_orders(requests), [])

    def test_flatten_skips_vendors_without_purchase_order(self) -> None:
        records = flatten_orders(_demo_requests())

        self.assertTrue(all(record.vendor.purchase_order.is_issued for record in records))
        self.assertNotIn("V002", [record.vendor.vendor_id for record in records])
        self.assertNotIn("PR-2023-005", [record.request.id for record in records])

    def test_views_are_disjoint_and_cover_every_issued_order(self) -> None:
        records = flatten_orders(_demo_requests())
        views = partition_orders(records)

        keys = [
            [(record.request.id, record.sku.sku, record.vendor.vendor_id) for record in views.get(view)]
            for view in OrderView
        ]
        flat = [key for bucket in keys for key in bucket]
        self.assertEqual(len(flat), len(set(flat)))
        self.assertEqual(len(flat), len(records))
        self.assertEqual(views.counts(), {"pipeline": 1, "in_transit": 1, "business": 2})
        self.assertTrue(all(isinstance(record, SupplyOpsBusiness) for record in views.business))

    def test_classification_is_idempotent(self) -> None:
        requests = _demo_requests()
        first = build_order_views(requests)
        second = build_order_views(requests)

        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_single_view_helpers_match_partition(self) -> None:
        requests = _demo_requests()
        views = build_order_views(requests)

        self.assertEqual(get_pipeline_orders(requests), views.pipeline)
        self.assertEqual(get_in_transit_orders(requests), views.in_transit)
        self.assertEqual(get_business_orders(requests), views.business)

    def test_view_slug_parsing(self) -> None:
        self.assertIs(OrderView.from_slug("in-transit"), OrderView.IN_TRANSIT)
        self.assertIs(OrderView.from_slug("Business"), OrderView.BUSINESS)
        with self.assertRaises(ValueError):
            OrderView.from_slug("archive")


if __name__ == "__main__":
    unittest.main()
