import unittest

from supply_tracker.domain.models import PurchaseRequest
from supply_tracker.domain.supply_input import (
    ApprovalStatus,
    SupplyInput,
    SupplyInputFormData,
    SupplyTeamSegment,
    VendorQRCondition,
    build_supply_input_context,
)
from supply_tracker.errors import ValidationError
from supply_tracker.fixtures import demo_purchase_requests, demo_supply_inputs


NOW_MS = 1_700_000_000_000


def _form_payload(**overrides):
    payload = {
        "agmId": "AGM-12345",
        "skuIdSkuModule": "SKU-MOD-001",
        "cpWithGst": "180.00",
        "quantityAvailable": "50",
        "supplyPoc": "Bob Green",
        "supplyTeamSegment": "Retail",
        "vendorAgmId": "V001",
        "skuId": "SKU-ABC-001",
        "pickupDistrict": "Noida",
        "pickupState": "Uttar Pradesh",
        "pickupPin": "201301",
        "vendorName": "Global Suppliers Inc.",
        "pickupDate": str(NOW_MS),
        "vendorQrCondition": "Fully Intact on master pack and internal pack",
        "vendorMoq": "10",
        "pickupLocationSameAsVendorLocation": True,
    }
    payload.update(overrides)
    return payload


class SupplyInputWireTest(unittest.TestCase):
    def test_to_dict_uses_camel_case_and_skips_unset_optionals(self) -> None:
        supply_input = SupplyInput(agm_id="AGM-1", sku_id="SKU-1", supply_team_segment=SupplyTeamSegment.WHOLESALE)
        payload = supply_input.to_dict()

        self.assertEqual(payload["agmId"], "AGM-1")
        self.assertEqual(payload["skuId"], "SKU-1")
        self.assertEqual(payload["supplyTeamSegment"], "Wholesale")
        self.assertNotIn("cpId", payload)
        self.assertNotIn("approvalStatus", payload)

    def test_from_dict_coerces_values_and_ignores_unknown_keys(self) -> None:
        supply_input = SupplyInput.from_dict(
            {
                "agmId": "AGM-1",
                "skuId": "SKU-1",
                "quantityAvailable": "75",
                "cpWithGst": "99.5",
                "approvalStatus": "APPROVED",
                "poIssued": "yes",
                "somethingElse": 1,
            }
        )

        self.assertEqual(supply_input.quantity_available, 75)
        self.assertEqual(supply_input.cp_with_gst, 99.5)
        self.assertIs(supply_input.approval_status, ApprovalStatus.APPROVED)
        self.assertTrue(supply_input.po_issued)
        self.assertEqual(SupplyInput.unknown_fields({"agmId": "x", "somethingElse": 1}), ["somethingElse"])

    def test_from_dict_reports_the_offending_field(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            SupplyInput.from_dict({"agmId": "AGM-1", "opsStatus": "Teleported"})
        self.assertTrue(str(ctx.exception).startswith("opsStatus:"))

    def test_merged_applies_partial_update(self) -> None:
        original = demo_supply_inputs(now_ms=NOW_MS)[0]
        merged = original.merged({"quantityAvailable": 12, "remarks": "Partial pickup"})

        self.assertEqual(merged.quantity_available, 12)
        self.assertEqual(merged.remarks, "Partial pickup")
        self.assertEqual(merged.cp_id, original.cp_id)
        self.assertEqual(original.quantity_available, 50)

    def test_merged_keeps_required_fields_sent_as_null(self) -> None:
        original = demo_supply_inputs(now_ms=NOW_MS)[0]
        merged = original.merged({"agmId": None, "skuId": None, "remarks": None, "quantityAvailable": 7})

        self.assertEqual(merged.agm_id, "AGM-12345")
        self.assertEqual(merged.sku_id, "SKU-ABC-001")
        self.assertEqual(merged.quantity_available, 7)

    def test_partial_dict_carries_only_set_fields(self) -> None:
        partial = SupplyInput(cp_id="CP-001", quantity_available=20).to_partial_dict()
        self.assertEqual(partial, {"cpId": "CP-001", "quantityAvailable": 20})

    def test_non_finite_numbers_are_rejected(self) -> None:
        for raw in (float("inf"), float("-inf"), float("nan"), "1e400"):
            with self.assertRaises(ValueError) as ctx:
                SupplyInput.from_dict({"agmId": "a", "skuId": "b", "quantityAvailable": raw})
            self.assertTrue(str(ctx.exception).startswith("quantityAvailable:"))
        with self.assertRaises(ValueError):
            SupplyInput.from_dict({"agmId": "a", "skuId": "b", "cpWithGst": float("inf")})

    def test_missing_identity_fields(self) -> None:
        self.assertEqual(SupplyInput().missing_identity_fields(), {"agmId": "Required", "skuId": "Required"})
        self.assertEqual(SupplyInput(agm_id="AGM-1").missing_identity_fields(), {"skuId": "Required"})


class SupplyInputFormTest(unittest.TestCase):
    def test_valid_form_builds_supply_input(self) -> None:
        supply_input = SupplyInputFormData.from_dict(_form_payload()).to_supply_input()

        self.assertEqual(supply_input.cp_with_gst, 180.0)
        self.assertEqual(supply_input.quantity_available, 50)
        self.assertEqual(supply_input.pickup_pin, 201301)
        self.assertEqual(supply_input.pickup_date, NOW_MS)
        self.assertIs(supply_input.vendor_qr_condition, VendorQRCondition.FULLY_INTACT)
        self.assertTrue(supply_input.pickup_location_same_as_vendor_location)

    def test_iso_pickup_date_is_accepted(self) -> None:
        supply_input = SupplyInputFormData.from_dict(
            _form_payload(pickupDate="2023-11-14T22:13:20Z")
        ).to_supply_input()
        self.assertEqual(supply_input.pickup_date, NOW_MS)

    def test_form_errors_are_collected_per_field(self) -> None:
        form = SupplyInputFormData.from_dict(_form_payload(agmId=" ", quantityAvailable="many", pickupPin="12a"))

        with self.assertRaises(ValidationError) as ctx:
            form.to_supply_input()

        errors = ctx.exception.payload["errors"]
        self.assertEqual(errors["agmId"], "Required")
        self.assertEqual(errors["quantityAvailable"], "Invalid value")
        self.assertEqual(errors["pickupPin"], "Invalid value")
        self.assertEqual(ctx.exception.code, "form_invalid")

    def test_form_rejects_non_finite_price(self) -> None:
        form = SupplyInputFormData.from_dict(_form_payload(cpWithGst="inf", quantityAvailable="1e400"))

        with self.assertRaises(ValidationError) as ctx:
            form.to_supply_input()

        errors = ctx.exception.payload["errors"]
        self.assertEqual(errors["cpWithGst"], "Invalid value")
        self.assertEqual(errors["quantityAvailable"], "Invalid value")


class SupplyInputContextTest(unittest.TestCase):
    def test_context_reuses_request_sku_and_vendor(self) -> None:
        request = PurchaseRequest.from_document("PR-2023-001", demo_purchase_requests(now_ms=NOW_MS)["PR-2023-001"])
        supply_input = demo_supply_inputs(now_ms=NOW_MS)[0]

        context = build_supply_input_context(supply_input, request, now_ms=NOW_MS)

        self.assertEqual(context.sku.sku, "SKU-ABC-001")
        self.assertEqual(context.sku.unmasked_product_name, "Gadget X Pro")
        self.assertEqual(context.vendor.vendor_id, "V001")
        self.assertEqual(context.vendor.vendor_price, 150.75)
        self.assertEqual(context.vendor.vendor_name, "Global Suppliers Inc.")
        self.assertEqual(context.proposed_wh, "Warehouse-North")
        self.assertEqual(context.to_dict()["purchaseRequest"]["id"], "PR-2023-001")

    def test_context_without_request_derives_vendor_from_supply_input(self) -> None:
        supply_input = SupplyInput(
            agm_id="AGM-9",
            sku_id="SKU-NEW",
            vendor_agm_id="VAGM-9",
            cp_with_gst=42.0,
            po_number="PO-1",
            warehouse_name="Warehouse-West",
        )

        context = build_supply_input_context(supply_input, None, now_ms=NOW_MS)

        self.assertEqual(context.vendor.vendor_id, "VAGM-9")
        self.assertEqual(context.vendor.po_number, "PO-1")
        self.assertEqual(context.sku.expected_price, 42.0)
        self.assertEqual(context.proposed_wh, "Warehouse-West")
        self.assertEqual(context.updated_at, NOW_MS)
        self.assertIsNone(context.to_dict()["purchaseRequest"])


if __name__ == "__main__":
    unittest.main()
