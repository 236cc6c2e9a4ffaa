from __future__ import annotations

from decimal import Decimal

from carpet_inventory.services.pricing import compute_order_totals, line_total, weighted_rating
from carpet_inventory.services.stock_ledger import product_status, recompute_material_status


def test_order_totals_with_gst_included():
    totals = compute_order_totals(1000, 18, True, 50, 500)

    assert totals.subtotal == Decimal("1000.00")
    assert totals.gst_amount == Decimal("180.00")
    assert totals.total_amount == Decimal("1130.00")
    assert totals.outstanding_amount == Decimal("630.00")


def test_order_totals_without_gst():
    totals = compute_order_totals(1000, 18, False, 50, 0)

    assert totals.gst_amount == Decimal("0.00")
    assert totals.total_amount == Decimal("950.00")
    assert totals.outstanding_amount == Decimal("950.00")


def test_order_totals_round_half_up_to_cents():
    totals = compute_order_totals("10.05", 5, True, 0, 0)
    # 10.05 * 5% = 0.5025
    assert totals.gst_amount == Decimal("0.50")
    assert totals.total_amount == Decimal("10.55")


def test_order_totals_overpayment_goes_negative():
    assert compute_order_totals(100, 0, True, 0, 150).outstanding_amount == Decimal("-50.00")


def test_line_total_uses_override_when_given():
    assert line_total(3, 99.99) == Decimal("299.97")
    assert line_total(3, 99.99, 250) == Decimal("250.00")


def test_weighted_rating():
    assert weighted_rating(5, 1, 9) == Decimal("7.0")
    assert weighted_rating(Decimal("8.0"), 0, 6) == Decimal("6.0")
    assert weighted_rating("7.5", 3, 9) == Decimal("7.9")


def test_product_status_bands():
    assert product_status(0, 10) == "out-of-stock"
    assert product_status(10, 10) == "low-stock"
    assert product_status(11, 10) == "in-stock"


def test_material_status_bands():
    assert recompute_material_status(0, 100, 1000) == "out-of-stock"
    assert recompute_material_status(100, 100, 1000) == "low-stock"
    assert recompute_material_status(500, 100, 1000) == "in-stock"
    assert recompute_material_status(1001, 100, 1000) == "overstock"
