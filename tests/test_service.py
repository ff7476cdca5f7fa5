"""Tests for OrderService use cases against the in-memory store."""

import logging
from datetime import timedelta

import pytest

from use_cases.orders.domain import (
    CancellationNotFoundError,
    CancellationStatus,
    InvalidStatusTransitionError,
    OrderCancellationError,
    OrderEventType,
    OrderItem,
    OrderNotFoundError,
    OrderPermissionError,
    OrderReturnError,
    OrderStatus,
    OrderTotals,
    OrderValidationError,
    PaymentStatus,
    ReturnNotFoundError,
    ReturnStatus,
)


def _last_event(repository, order_id):
    return repository.orders[order_id].timeline[-1]


# =============================================================================
# UPDATE STATUS
# =============================================================================

def test_admin_moves_paid_order_to_processing(service, repository, admin, paid_order):
    repository.add_order(paid_order)

    new_status = service.update_status(admin, paid_order.id, "PROCESSING")

    assert new_status == OrderStatus.PROCESSING
    assert repository.orders[paid_order.id].status == OrderStatus.PROCESSING
    event = _last_event(repository, paid_order.id)
    assert event.type == OrderEventType.PROCESSING
    assert event.status == OrderStatus.PROCESSING
    assert event.message == "Status changed to PROCESSING"
    assert event.created_by == "ADMIN"
    assert event.metadata == {"previous_status": "PAID"}


def test_status_change_notifies_owner(service, repository, admin, paid_order):
    repository.add_order(paid_order)

    service.update_status(admin, paid_order.id, OrderStatus.PROCESSING, note="Picked in warehouse")

    assert _last_event(repository, paid_order.id).message == "Picked in warehouse"
    assert len(repository.notifications) == 1
    notification = repository.notifications[0]
    assert notification["user_id"] == "user-1"
    assert notification["type"] == "ORDER_UPDATE"
    assert notification["action_url"] == f"/orders/{paid_order.id}"
    assert notification["message"] == "Your order is being processed"


def test_owner_confirms_delivery(service, repository, owner, make_order, now):
    order = repository.add_order(make_order(status=OrderStatus.OUT_FOR_DELIVERY))

    assert service.update_status(owner, order.id, "DELIVERED") == OrderStatus.DELIVERED

    stored = repository.orders[order.id]
    assert stored.status == OrderStatus.DELIVERED
    assert stored.delivered_at == now
    assert _last_event(repository, order.id).created_by == "USER"


def test_non_admin_cannot_set_other_statuses(service, repository, owner, paid_order):
    repository.add_order(paid_order)

    with pytest.raises(OrderPermissionError):
        service.update_status(owner, paid_order.id, "PROCESSING")

    assert repository.writes == 0


def test_only_owner_can_confirm_delivery(service, repository, stranger, make_order):
    order = repository.add_order(make_order(status=OrderStatus.OUT_FOR_DELIVERY))

    with pytest.raises(OrderPermissionError):
        service.update_status(stranger, order.id, "DELIVERED")

    assert repository.orders[order.id].status == OrderStatus.OUT_FOR_DELIVERY


def test_invalid_transition_writes_nothing(service, repository, admin, delivered_order):
    repository.add_order(delivered_order)

    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        service.update_status(admin, delivered_order.id, "PAID")

    assert exc_info.value.current_status == "DELIVERED"
    assert exc_info.value.requested_status == "PAID"
    assert repository.writes == 0
    assert repository.notifications == []
    assert repository.orders[delivered_order.id].status == OrderStatus.DELIVERED


def test_unknown_status_value_is_a_validation_error(service, repository, admin, paid_order):
    repository.add_order(paid_order)

    with pytest.raises(OrderValidationError):
        service.update_status(admin, paid_order.id, "TELEPORTED")


def test_update_status_of_missing_order(service, admin):
    with pytest.raises(OrderNotFoundError):
        service.update_status(admin, "missing", "PROCESSING")


def test_notification_failure_does_not_undo_update(service, repository, admin, paid_order, caplog):
    repository.add_order(paid_order)
    repository.fail_notifications = True

    with caplog.at_level(logging.ERROR):
        new_status = service.update_status(admin, paid_order.id, "PROCESSING")

    assert new_status == OrderStatus.PROCESSING
    assert repository.orders[paid_order.id].status == OrderStatus.PROCESSING
    assert any("Failed to notify" in r.message for r in caplog.records)


# =============================================================================
# CANCELLATIONS
# =============================================================================

def test_check_cancellation_for_missing_order(service, owner):
    decision = service.check_cancellation(owner, "missing")

    assert decision.is_denied
    assert decision.reason == "Order not found"


def test_check_cancellation_uses_clock(service, repository, owner, make_order, now):
    repository.add_order(make_order(created_at=now - timedelta(hours=30)))

    assert service.check_cancellation(owner, "order-1").is_denied


def test_owner_requests_cancellation(service, repository, owner, paid_order, now):
    repository.add_order(paid_order)

    cancellation = service.request_cancellation(owner, paid_order.id, "CHANGED_MIND", "Ordered twice")

    assert cancellation.status == CancellationStatus.PENDING
    assert cancellation.refund_amount == 160.8
    assert cancellation.requested_at == now
    assert cancellation.notes == "Ordered twice"
    assert cancellation.id in repository.cancellations
    # The order itself only changes when the request is approved.
    assert repository.orders[paid_order.id].status == OrderStatus.PAID
    event = _last_event(repository, paid_order.id)
    assert event.type == OrderEventType.NOTE_ADDED
    assert event.metadata["cancellation_id"] == cancellation.id


def test_cancellation_refund_is_zero_without_captured_payment(service, repository, owner, make_order):
    repository.add_order(make_order(payment_status=PaymentStatus.AUTHORIZED))

    cancellation = service.request_cancellation(owner, "order-1", "OTHER")

    assert cancellation.refund_amount == 0.0


def test_stranger_cannot_request_cancellation(service, repository, stranger, paid_order):
    repository.add_order(paid_order)

    with pytest.raises(OrderPermissionError):
        service.request_cancellation(stranger, paid_order.id, "CHANGED_MIND")

    assert repository.writes == 0


def test_cancellation_with_bad_reason(service, repository, owner, paid_order):
    repository.add_order(paid_order)

    with pytest.raises(OrderValidationError) as exc_info:
        service.request_cancellation(owner, paid_order.id, "BORED")

    assert [e.field for e in exc_info.value.errors] == ["reason"]
    assert repository.writes == 0


def test_cancellation_outside_window(service, repository, owner, make_order, now):
    repository.add_order(make_order(created_at=now - timedelta(hours=25)))

    with pytest.raises(OrderCancellationError) as exc_info:
        service.request_cancellation(owner, "order-1", "CHANGED_MIND")

    assert "24 hours" in exc_info.value.message
    assert repository.writes == 0


def test_admin_approves_cancellation(service, repository, owner, admin, paid_order, now):
    repository.add_order(paid_order)
    request = service.request_cancellation(owner, paid_order.id, "FOUND_BETTER_PRICE")

    processed = service.process_cancellation(admin, request.id, approved=True, admin_notes="ok")

    assert processed.status == CancellationStatus.APPROVED
    assert processed.processed_at == now
    assert repository.cancellations[request.id].status == CancellationStatus.APPROVED

    order = repository.orders[paid_order.id]
    assert order.status == OrderStatus.CANCELLED
    assert order.cancelled_at == now
    assert order.payment_status == PaymentStatus.REFUNDED

    cancelled_event, refund_event = order.timeline[-2:]
    assert cancelled_event.type == OrderEventType.CANCELLED
    assert cancelled_event.message == "Order cancelled: FOUND_BETTER_PRICE"
    assert refund_event.type == OrderEventType.REFUNDED
    assert refund_event.message == "Refund processed: $160.80"


def test_admin_rejects_cancellation(service, repository, owner, admin, paid_order):
    repository.add_order(paid_order)
    request = service.request_cancellation(owner, paid_order.id, "CHANGED_MIND")

    processed = service.process_cancellation(admin, request.id, approved=False, admin_notes="Already packed")

    assert processed.status == CancellationStatus.REJECTED
    order = repository.orders[paid_order.id]
    assert order.status == OrderStatus.PAID
    assert order.timeline[-1].message == "Cancellation request rejected: Already packed"


def test_only_admin_processes_cancellations(service, repository, owner, paid_order):
    repository.add_order(paid_order)
    request = service.request_cancellation(owner, paid_order.id, "CHANGED_MIND")

    with pytest.raises(OrderPermissionError):
        service.process_cancellation(owner, request.id, approved=True)


def test_cancellation_processed_once(service, repository, owner, admin, paid_order):
    repository.add_order(paid_order)
    request = service.request_cancellation(owner, paid_order.id, "CHANGED_MIND")
    service.process_cancellation(admin, request.id, approved=False)

    with pytest.raises(OrderCancellationError):
        service.process_cancellation(admin, request.id, approved=True)


def test_approval_rejected_when_order_moved_on(service, repository, owner, admin, paid_order):
    repository.add_order(paid_order)
    request = service.request_cancellation(owner, paid_order.id, "CHANGED_MIND")
    repository.orders[paid_order.id].status = OrderStatus.SHIPPED
    writes_before = repository.writes

    with pytest.raises(InvalidStatusTransitionError):
        service.process_cancellation(admin, request.id, approved=True)

    assert repository.writes == writes_before
    assert repository.cancellations[request.id].status == CancellationStatus.PENDING


def test_process_unknown_cancellation(service, admin):
    with pytest.raises(CancellationNotFoundError):
        service.process_cancellation(admin, "nope", approved=True)


def test_approval_refunds_payment_captured_after_request(service, repository, owner, admin, make_order):
    repository.add_order(make_order(
        status=OrderStatus.PENDING_PAYMENT, payment_status=PaymentStatus.PENDING,
    ))
    request = service.request_cancellation(owner, "order-1", "CHANGED_MIND")
    assert request.refund_amount == 0.0

    repository.orders["order-1"].status = OrderStatus.PAID
    repository.orders["order-1"].payment_status = PaymentStatus.CAPTURED

    processed = service.process_cancellation(admin, request.id, approved=True)

    assert processed.refund_amount == 160.8
    assert repository.cancellations[request.id].refund_amount == 160.8
    order = repository.orders["order-1"]
    assert order.payment_status == PaymentStatus.REFUNDED
    assert [e.type for e in order.timeline[-2:]] == [OrderEventType.CANCELLED, OrderEventType.REFUNDED]
    assert order.timeline[-1].metadata == {"amount": 160.8}


def test_approval_skips_refund_when_payment_no_longer_captured(
    service, repository, owner, admin, paid_order
):
    repository.add_order(paid_order)
    request = service.request_cancellation(owner, paid_order.id, "CHANGED_MIND")
    repository.orders[paid_order.id].payment_status = PaymentStatus.FAILED

    processed = service.process_cancellation(admin, request.id, approved=True)

    assert processed.refund_amount == 0.0
    order = repository.orders[paid_order.id]
    assert order.payment_status == PaymentStatus.FAILED
    assert order.timeline[-1].type == OrderEventType.CANCELLED


def test_check_cancellation_of_someone_elses_order(service, repository, stranger, admin, paid_order):
    repository.add_order(paid_order)

    with pytest.raises(OrderPermissionError):
        service.check_cancellation(stranger, paid_order.id)

    assert service.check_cancellation(admin, paid_order.id).allowed


def test_get_cancellation(service, repository, owner, stranger, admin, paid_order):
    repository.add_order(paid_order)
    request = service.request_cancellation(owner, paid_order.id, "CHANGED_MIND")

    assert service.get_cancellation(owner, request.id).status == CancellationStatus.PENDING
    assert service.get_cancellation(admin, request.id).id == request.id
    with pytest.raises(OrderPermissionError):
        service.get_cancellation(stranger, request.id)
    with pytest.raises(CancellationNotFoundError):
        service.get_cancellation(owner, "nope")


# =============================================================================
# RETURNS
# =============================================================================

def test_owner_requests_return(service, repository, owner, delivered_order, now):
    repository.add_order(delivered_order)

    return_request = service.request_return(
        owner,
        delivered_order.id,
        [{"order_item_id": "line-1", "quantity": 1}],
        "CHANGED_MIND",
        notes="Too loud",
    )

    assert return_request.status == ReturnStatus.REQUESTED
    assert return_request.refund_amount == 42.5
    assert return_request.refund.restock_fee == 7.5
    assert return_request.free_return_shipping is False
    assert return_request.requested_at == now
    assert return_request.id in repository.returns
    assert repository.orders[delivered_order.id].status == OrderStatus.DELIVERED
    assert _last_event(repository, delivered_order.id).metadata["return_id"] == return_request.id


def test_defective_return_with_photos(service, repository, owner, delivered_order):
    repository.add_order(delivered_order)

    return_request = service.request_return(
        owner,
        delivered_order.id,
        [{"order_item_id": "line-2", "quantity": 1, "condition": "DAMAGED"}],
        "DEFECTIVE",
        photos=["https://img.example.com/1.jpg"],
    )

    assert return_request.refund_amount == 40.0
    assert return_request.free_return_shipping is True
    assert return_request.photos == ["https://img.example.com/1.jpg"]


def test_defective_return_without_photos(service, repository, owner, delivered_order):
    repository.add_order(delivered_order)

    with pytest.raises(OrderValidationError) as exc_info:
        service.request_return(
            owner, delivered_order.id, [{"order_item_id": "line-2", "quantity": 1}], "DEFECTIVE"
        )

    assert [e.field for e in exc_info.value.errors] == ["photos"]
    assert repository.writes == 0


def test_return_after_window(service, repository, owner, make_order, now):
    repository.add_order(make_order(
        status=OrderStatus.DELIVERED,
        delivered_at=now - timedelta(days=31),
    ))

    with pytest.raises(OrderReturnError) as exc_info:
        service.request_return(owner, "order-1", [{"order_item_id": "line-1", "quantity": 1}], "WRONG_SIZE")

    assert "expired" in exc_info.value.message
    assert repository.writes == 0


def test_non_returnable_category(service, repository, owner, make_order, now):
    items = [OrderItem(
        id="line-1", product_id="prod-swim", name="Swimsuit",
        quantity=1, unit_price=45.0, total=45.0, category="swimwear",
    )]
    repository.add_order(make_order(
        status=OrderStatus.DELIVERED,
        delivered_at=now - timedelta(days=2),
        items=items,
    ))

    with pytest.raises(OrderReturnError):
        service.request_return(owner, "order-1", [{"order_item_id": "line-1", "quantity": 1}], "WRONG_SIZE")

    assert repository.writes == 0


def test_stranger_cannot_request_return(service, repository, stranger, delivered_order):
    repository.add_order(delivered_order)

    with pytest.raises(OrderPermissionError):
        service.request_return(stranger, delivered_order.id, [{"order_item_id": "line-1", "quantity": 1}], "OTHER")


@pytest.fixture
def open_return(service, repository, owner, delivered_order):
    repository.add_order(delivered_order)
    return service.request_return(
        owner, delivered_order.id, [{"order_item_id": "line-1", "quantity": 2}], "WRONG_SIZE"
    )


def test_admin_approves_return(service, repository, admin, open_return, now):
    updated = service.update_return_status(admin, open_return.id, "APPROVED")

    assert updated.status == ReturnStatus.APPROVED
    assert updated.updated_at == now
    assert repository.returns[open_return.id].status == ReturnStatus.APPROVED
    assert _last_event(repository, open_return.order_id).metadata["return_status"] == "APPROVED"


def test_return_refund_recorded_on_order(service, repository, admin, open_return):
    for status in ("APPROVED", "RECEIVED", "COMPLETED", "REFUNDED"):
        service.update_return_status(admin, open_return.id, status)

    order = repository.orders[open_return.order_id]
    event = order.timeline[-1]
    assert event.type == OrderEventType.REFUNDED
    assert event.status == OrderStatus.PARTIALLY_REFUNDED
    assert event.message == "Refund processed: $100.00"
    assert order.payment_status == PaymentStatus.PARTIALLY_REFUNDED


def test_return_status_skipping_steps_is_rejected(service, repository, admin, open_return):
    writes_before = repository.writes

    with pytest.raises(InvalidStatusTransitionError):
        service.update_return_status(admin, open_return.id, "REFUNDED")

    assert repository.writes == writes_before


def test_only_admin_updates_return_status(service, owner, open_return):
    with pytest.raises(OrderPermissionError):
        service.update_return_status(owner, open_return.id, "APPROVED")


def test_recalculate_return_refund(service, owner, open_return):
    assert service.calculate_return_refund(owner, open_return.id) == open_return.refund


def test_recalculate_unknown_return(service, owner):
    with pytest.raises(ReturnNotFoundError):
        service.calculate_return_refund(owner, "missing")


def test_list_returns_for_caller(service, owner, stranger, open_return):
    assert [r.id for r in service.list_returns(owner)] == [open_return.id]
    assert service.list_returns(stranger) == []


def test_stranger_cannot_read_return_refund(service, stranger, admin, open_return):
    with pytest.raises(OrderPermissionError):
        service.calculate_return_refund(stranger, open_return.id)

    assert service.calculate_return_refund(admin, open_return.id) == open_return.refund


def test_get_return(service, owner, stranger, open_return):
    assert service.get_return(owner, open_return.id).status == ReturnStatus.REQUESTED
    with pytest.raises(OrderPermissionError):
        service.get_return(stranger, open_return.id)
    with pytest.raises(ReturnNotFoundError):
        service.get_return(owner, "missing")


def test_check_return_of_someone_elses_order(service, repository, stranger, delivered_order):
    repository.add_order(delivered_order)

    with pytest.raises(OrderPermissionError):
        service.check_return(stranger, delivered_order.id)


def test_same_unit_cannot_be_returned_twice(service, repository, owner, delivered_order):
    repository.add_order(delivered_order)
    service.request_return(owner, delivered_order.id, [{"order_item_id": "line-2", "quantity": 1}], "WRONG_SIZE")
    writes_before = repository.writes

    with pytest.raises(OrderValidationError) as exc_info:
        service.request_return(
            owner, delivered_order.id, [{"order_item_id": "line-2", "quantity": 1}], "WRONG_SIZE"
        )

    assert [e.code for e in exc_info.value.errors] == ["already_returned"]
    assert len(repository.returns) == 1
    assert repository.writes == writes_before


def test_remaining_units_can_still_be_returned(service, repository, owner, delivered_order):
    repository.add_order(delivered_order)
    service.request_return(owner, delivered_order.id, [{"order_item_id": "line-1", "quantity": 1}], "WRONG_SIZE")

    second = service.request_return(
        owner, delivered_order.id, [{"order_item_id": "line-1", "quantity": 1}], "WRONG_SIZE"
    )

    assert second.refund.items_total == 50.0
    with pytest.raises(OrderValidationError):
        service.request_return(
            owner, delivered_order.id, [{"order_item_id": "line-1", "quantity": 1}], "WRONG_SIZE"
        )


def test_rejected_return_releases_its_units(service, repository, owner, admin, delivered_order):
    repository.add_order(delivered_order)
    first = service.request_return(
        owner, delivered_order.id, [{"order_item_id": "line-2", "quantity": 1}], "WRONG_SIZE"
    )
    service.update_return_status(admin, first.id, "REJECTED")

    again = service.request_return(
        owner, delivered_order.id, [{"order_item_id": "line-2", "quantity": 1}], "WRONG_SIZE"
    )

    assert again.refund_amount == 30.0


# =============================================================================
# SHIPPING
# =============================================================================

def test_tracking_update_moves_order(service, repository, admin, make_order):
    order = repository.add_order(make_order(status=OrderStatus.SHIPPED))

    new_status = service.update_tracking(
        admin, order.id, "JD014600", "DHL", "IN_TRANSIT", location="Monterrey"
    )

    assert new_status == OrderStatus.IN_TRANSIT
    stored = repository.orders[order.id]
    assert stored.status == OrderStatus.IN_TRANSIT
    assert stored.tracking_number == "JD014600"
    assert stored.carrier == "DHL"
    assert "JD014600" in stored.tracking_url
    event = stored.timeline[-1]
    assert event.type == OrderEventType.IN_TRANSIT
    assert event.message == "In transit - Monterrey"
    assert len(repository.notifications) == 1


def test_tracking_delivery_stamps_delivered_at(service, repository, admin, make_order, now):
    order = repository.add_order(make_order(status=OrderStatus.OUT_FOR_DELIVERY))

    service.update_tracking(admin, order.id, "1Z999", "UPS", "DELIVERED")

    assert repository.orders[order.id].delivered_at == now


def test_unreachable_tracking_status_keeps_order_status(service, repository, admin, paid_order, caplog):
    repository.add_order(paid_order)

    with caplog.at_level(logging.WARNING):
        new_status = service.update_tracking(admin, paid_order.id, "X1", "FEDEX", "DELIVERED")

    assert new_status == OrderStatus.PAID
    stored = repository.orders[paid_order.id]
    assert stored.status == OrderStatus.PAID
    assert stored.tracking_number == "X1"
    assert stored.timeline[-1].status == OrderStatus.PAID
    assert any(r.levelno == logging.WARNING for r in caplog.records)
    assert repository.notifications == []


def test_tracking_status_matching_current_is_a_no_op_move(service, repository, admin, make_order, caplog):
    order = repository.add_order(make_order(status=OrderStatus.SHIPPED))

    with caplog.at_level(logging.WARNING):
        new_status = service.update_tracking(admin, order.id, "X1", "DHL", "PICKED_UP")

    assert new_status == OrderStatus.SHIPPED
    assert not any(r.levelno == logging.WARNING for r in caplog.records)
    assert repository.orders[order.id].timeline[-1].message == "Package picked up by DHL"


def test_tracking_with_unknown_carrier(service, repository, admin, make_order):
    repository.add_order(make_order(status=OrderStatus.SHIPPED))

    with pytest.raises(OrderValidationError):
        service.update_tracking(admin, "order-1", "X1", "PIGEON_POST", "IN_TRANSIT")

    assert repository.writes == 0


def test_only_admin_updates_tracking(service, repository, owner, make_order):
    repository.add_order(make_order(status=OrderStatus.SHIPPED))

    with pytest.raises(OrderPermissionError):
        service.update_tracking(owner, "order-1", "X1", "DHL", "IN_TRANSIT")


def test_update_shipping_info(service, repository, admin, make_order):
    order = repository.add_order(make_order(status=OrderStatus.PROCESSING))

    url = service.update_shipping_info(admin, order.id, "FX1", "FEDEX")

    assert url == "https://www.fedex.com/fedextrack/?trknbr=FX1"
    stored = repository.orders[order.id]
    assert stored.carrier == "FEDEX"
    assert stored.tracking_url == url
    assert stored.status == OrderStatus.PROCESSING
    assert stored.timeline[-1].message == "Tracking number added: FEDEX FX1"


# =============================================================================
# ORDER READS AND NOTES
# =============================================================================

def test_get_order_includes_timeline(service, repository, owner, admin, paid_order):
    repository.add_order(paid_order)
    service.update_status(admin, paid_order.id, "PROCESSING")

    order = service.get_order(owner, paid_order.id)

    assert order.status == OrderStatus.PROCESSING
    assert [e.type for e in order.timeline] == [OrderEventType.PROCESSING]


def test_get_order_is_private(service, repository, stranger, paid_order):
    repository.add_order(paid_order)

    with pytest.raises(OrderPermissionError):
        service.get_order(stranger, paid_order.id)
    with pytest.raises(OrderNotFoundError):
        service.get_order(stranger, "missing")


def test_get_tracking_lists_carrier_checkpoints(service, repository, owner, admin, make_order, now):
    order = repository.add_order(make_order(status=OrderStatus.PROCESSING))
    service.update_shipping_info(admin, order.id, "1Z42", "UPS")
    service.update_tracking(admin, order.id, "1Z42", "UPS", "PICKED_UP")
    service.update_tracking(admin, order.id, "1Z42", "UPS", "IN_TRANSIT", location="Dallas, TX")

    tracking = service.get_tracking(owner, order.id)

    assert tracking["status"] == "IN_TRANSIT"
    assert tracking["carrier"] == "UPS"
    assert tracking["tracking_url"] == "https://www.ups.com/track?tracknum=1Z42"
    assert tracking["shipped_at"] == now.isoformat()
    assert tracking["current_location"] == "Dallas, TX"
    assert [c["metadata"]["shipping_status"] for c in tracking["checkpoints"]] == [
        "PICKED_UP", "IN_TRANSIT",
    ]
    assert tracking["last_updated"] == now.isoformat()


def test_get_tracking_is_private(service, repository, stranger, paid_order):
    repository.add_order(paid_order)

    with pytest.raises(OrderPermissionError):
        service.get_tracking(stranger, paid_order.id)


def test_owner_adds_note(service, repository, owner, paid_order):
    repository.add_order(paid_order)

    service.add_note(owner, paid_order.id, "  Please leave at the back door ")

    event = _last_event(repository, paid_order.id)
    assert event.type == OrderEventType.NOTE_ADDED
    assert event.status == OrderStatus.PAID
    assert event.message == "Please leave at the back door"
    assert event.created_by == "USER"


def test_empty_note_is_rejected(service, repository, owner, paid_order):
    repository.add_order(paid_order)

    with pytest.raises(OrderValidationError):
        service.add_note(owner, paid_order.id, "   ")

    assert repository.writes == 0


def test_stranger_cannot_add_note(service, repository, stranger, paid_order):
    repository.add_order(paid_order)

    with pytest.raises(OrderPermissionError):
        service.add_note(stranger, paid_order.id, "hello")

    assert repository.writes == 0


# =============================================================================
# SYSTEM JOBS
# =============================================================================

def test_new_order_gets_number_and_fast_delivery(service, repository, paid_order, now):
    repository.add_order(paid_order)

    order = service.on_order_created(paid_order.id)

    assert order.order_number == "ORD-2025-000001"
    assert order.estimated_delivery_at == now + timedelta(hours=12)
    assert [e.type for e in order.timeline] == [OrderEventType.CREATED]
    assert order.timeline[0].created_by == "SYSTEM"
    assert order.timeline[0].message == "Order created successfully"
    assert "ORD-2025-000001" in repository.notifications[0]["message"]


def test_out_of_stock_order_gets_slow_delivery(service, repository, paid_order, now):
    repository.add_order(paid_order)
    repository.products["prod-shirt"] = 0

    order = service.on_order_created(paid_order.id)

    assert order.estimated_delivery_at == now + timedelta(days=5)


def test_order_numbers_are_sequential(service, repository, make_order):
    repository.add_order(make_order(order_id="order-1"))
    repository.add_order(make_order(order_id="order-2"))

    first = service.on_order_created("order-1")
    second = service.on_order_created("order-2")

    assert first.order_number == "ORD-2025-000001"
    assert second.order_number == "ORD-2025-000002"


def test_order_created_twice_keeps_number(service, repository, paid_order):
    repository.add_order(paid_order)
    service.on_order_created(paid_order.id)

    again = service.on_order_created(paid_order.id)

    assert again.order_number == "ORD-2025-000001"
    assert repository.counter == 1
    assert len(again.timeline) == 1


def test_inconsistent_totals_are_logged(service, repository, make_order, caplog):
    totals = OrderTotals(subtotal=130.0, discount=0.0, shipping_cost=10.0, tax=20.8, total=150.0)
    repository.add_order(make_order(totals=totals))

    with caplog.at_level(logging.WARNING):
        order = service.on_order_created("order-1")

    assert order.order_number == "ORD-2025-000001"
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "totals do not add up" in warnings[0].getMessage()


def test_consistent_totals_log_no_warning(service, repository, paid_order, caplog):
    repository.add_order(paid_order)

    with caplog.at_level(logging.WARNING):
        service.on_order_created(paid_order.id)

    assert not any(r.levelno == logging.WARNING for r in caplog.records)


def test_stale_paid_orders_move_to_processing(service, repository, make_order, now):
    repository.add_order(make_order(order_id="stale", created_at=now - timedelta(hours=30)))
    repository.add_order(make_order(order_id="fresh", created_at=now - timedelta(hours=2)))
    repository.add_order(make_order(
        order_id="busy", status=OrderStatus.PROCESSING, created_at=now - timedelta(hours=48),
    ))

    advanced = service.advance_stale_paid_orders()

    assert advanced == ["stale"]
    assert repository.orders["stale"].status == OrderStatus.PROCESSING
    assert repository.orders["stale"].timeline[-1].created_by == "SYSTEM"
    assert repository.orders["fresh"].status == OrderStatus.PAID
    assert repository.orders["busy"].timeline == []


def test_stale_order_age_can_be_overridden(service, repository, make_order):
    repository.add_order(make_order())

    assert service.advance_stale_paid_orders(max_age_hours=1) == ["order-1"]
