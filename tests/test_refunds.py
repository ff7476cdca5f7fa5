"""Tests for cancellation and return refund calculations."""

from datetime import timedelta

import pytest

from use_cases.orders.domain import (
    OrderItem,
    OrderLifecycleEngine,
    OrderRules,
    OrderTotals,
    PaymentStatus,
    ReturnItem,
    ReturnReason,
)


def test_captured_payment_refunds_full_total(engine, paid_order):
    assert engine.calculate_cancellation_refund(paid_order) == 160.8


@pytest.mark.parametrize("payment_status", [
    PaymentStatus.PENDING,
    PaymentStatus.AUTHORIZED,
    PaymentStatus.FAILED,
])
def test_uncaptured_payment_refunds_nothing(engine, make_order, payment_status):
    order = make_order(payment_status=payment_status)

    assert engine.calculate_cancellation_refund(order) == 0.0


def test_changed_mind_charges_restock_fee(engine, delivered_order):
    refund = engine.calculate_return_refund(
        delivered_order, [ReturnItem("line-1", 1)], ReturnReason.CHANGED_MIND
    )

    assert refund.items_total == 50.0
    assert refund.restock_fee == 7.5
    assert refund.shipping_refund == 0.0
    assert refund.final_refund == 42.5
    assert refund.refund_amount == 42.5


def test_defective_return_refunds_shipping(engine, delivered_order):
    refund = engine.calculate_return_refund(
        delivered_order,
        [ReturnItem("line-1", 2), ReturnItem("line-2", 1)],
        ReturnReason.DEFECTIVE,
    )

    assert refund.items_total == 130.0
    assert refund.restock_fee == 0.0
    assert refund.shipping_refund == 10.0
    assert refund.refund_amount == 140.0


@pytest.mark.parametrize("reason", [
    ReturnReason.DEFECTIVE,
    ReturnReason.WRONG_ITEM,
    ReturnReason.NOT_AS_DESCRIBED,
    ReturnReason.DAMAGED_IN_SHIPPING,
])
def test_seller_fault_reasons_refund_shipping(engine, delivered_order, reason):
    refund = engine.calculate_return_refund(delivered_order, [ReturnItem("line-2", 1)], reason)

    assert refund.shipping_refund == 10.0
    assert refund.refund_amount == 40.0


@pytest.mark.parametrize("reason", [
    ReturnReason.QUALITY_ISSUE,
    ReturnReason.WRONG_SIZE,
    ReturnReason.OTHER,
])
def test_neutral_reasons_refund_items_only(engine, delivered_order, reason):
    refund = engine.calculate_return_refund(delivered_order, [ReturnItem("line-2", 1)], reason)

    assert refund.restock_fee == 0.0
    assert refund.shipping_refund == 0.0
    assert refund.refund_amount == 30.0


def test_items_missing_from_order_contribute_nothing(engine, delivered_order):
    refund = engine.calculate_return_refund(
        delivered_order, [ReturnItem("no-such-line", 3)], ReturnReason.DEFECTIVE
    )

    assert refund.items_total == 0.0
    assert refund.refund_amount == 10.0


def test_unit_price_comes_from_line_total(engine, make_order, now):
    # Line total reflects a per-line discount; the refund follows the paid price.
    items = [OrderItem(id="line-1", product_id="p", name="Mug", quantity=3, unit_price=40.0, total=100.0)]
    order = make_order(
        items=items,
        totals=OrderTotals(subtotal=100.0, total=100.0),
        delivered_at=now - timedelta(days=1),
    )

    refund = engine.calculate_return_refund(order, [ReturnItem("line-1", 1)], ReturnReason.CHANGED_MIND)

    assert refund.items_total == 33.33
    assert refund.restock_fee == 5.0
    assert refund.refund_amount == 28.33


def test_full_restock_fee_never_goes_negative(delivered_order):
    engine = OrderLifecycleEngine(OrderRules(restock_fee_percentage=1.0))

    refund = engine.calculate_return_refund(
        delivered_order, [ReturnItem("line-1", 2)], ReturnReason.CHANGED_MIND
    )

    assert refund.refund_amount == 0.0
    assert refund.final_refund == 0.0


def test_refund_is_deterministic(engine, delivered_order):
    items = [ReturnItem("line-1", 1), ReturnItem("line-2", 1)]

    first = engine.calculate_return_refund(delivered_order, items, ReturnReason.CHANGED_MIND)
    second = engine.calculate_return_refund(delivered_order, items, ReturnReason.CHANGED_MIND)

    assert first == second


def test_defective_return_always_ships_free(engine, delivered_order):
    assert engine.is_free_return_shipping(delivered_order, ReturnReason.DEFECTIVE) is True


def test_changed_mind_on_small_order_pays_shipping(engine, delivered_order):
    assert engine.is_free_return_shipping(delivered_order, ReturnReason.CHANGED_MIND) is False


@pytest.mark.parametrize("total, expected", [
    (999.99, False),
    (1000.0, True),
    (1500.0, True),
])
def test_free_return_shipping_threshold(engine, make_order, total, expected):
    order = make_order(totals=OrderTotals(subtotal=total, total=total))

    assert engine.is_free_return_shipping(order, ReturnReason.CHANGED_MIND) is expected


def test_refund_date_estimate(engine, now):
    assert engine.estimate_refund_date(now) == now + timedelta(days=7)


def test_sample_totals_are_consistent(paid_order):
    assert paid_order.totals.is_consistent()
