"""
Domain Services - Order Calculations and Lookups.

These services compute refunds, map carrier states onto order states and
build timeline text. They use the policy configuration for constants and
work with pure data structures only.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Mapping, Optional

from core.domain import DomainService

from .models import (
    Order,
    OrderCarrier,
    OrderEvent,
    OrderEventType,
    OrderStatus,
    PaymentStatus,
    RefundBreakdown,
    ReturnItem,
    ReturnReason,
    ShippingStatus,
    coerce_enum,
)
from .policies import PHOTO_REQUIRED_RETURN_REASONS, SELLER_FAULT_RETURN_REASONS
from .rules import OrderRules


def _money(amount: float) -> float:
    return round(amount, 2)


# =============================================================================
# REFUNDS
# =============================================================================

class RefundCalculator(DomainService):
    """
    Calculates refund amounts for cancellations and returns.

    This is pure business logic with no I/O. Calling it twice with the same
    input returns equal results.
    """

    def __init__(self, rules: OrderRules):
        self.rules = rules

    def cancellation_refund(self, order: Order) -> float:
        """Full order total when payment was captured, otherwise nothing."""
        if order.payment_status != PaymentStatus.CAPTURED:
            return 0.0
        return _money(order.totals.total)

    def execute(
        self,
        order: Order,
        items: Iterable[ReturnItem],
        reason: ReturnReason,
    ) -> RefundBreakdown:
        """
        Calculate the refund for a return.

        Args:
            order: The order the items were bought in
            items: Returned items with the quantity being sent back
            reason: The return reason

        Returns:
            RefundBreakdown with each component of the refund
        """
        items_total = 0.0
        for returned in items:
            line = order.find_item(returned.order_item_id)
            if line is None or line.quantity <= 0:
                continue
            items_total += (line.total / line.quantity) * returned.quantity

        restock_fee = 0.0
        if reason == ReturnReason.CHANGED_MIND:
            restock_fee = items_total * self.rules.restock_fee_percentage

        shipping_refund = 0.0
        if reason in SELLER_FAULT_RETURN_REASONS:
            shipping_refund = order.totals.shipping_cost

        final_refund = items_total - restock_fee + shipping_refund

        return RefundBreakdown(
            items_total=_money(items_total),
            restock_fee=_money(restock_fee),
            shipping_refund=_money(shipping_refund),
            final_refund=_money(final_refund),
            refund_amount=_money(max(0.0, final_refund)),
        )

    def is_free_return_shipping(self, order: Order, reason: ReturnReason) -> bool:
        """Free when the seller is at fault or the order reached the threshold."""
        if reason in SELLER_FAULT_RETURN_REASONS:
            return True
        return order.totals.total >= self.rules.free_return_shipping_threshold

    def estimate_refund_date(self, approved_at: datetime) -> datetime:
        return approved_at + timedelta(days=self.rules.refund_processing_days)


# =============================================================================
# TRACKING
# =============================================================================

SHIPPING_TO_ORDER_STATUS: Dict[ShippingStatus, OrderStatus] = {
    ShippingStatus.LABEL_CREATED: OrderStatus.SHIPPED,
    ShippingStatus.PICKED_UP: OrderStatus.SHIPPED,
    ShippingStatus.IN_TRANSIT: OrderStatus.IN_TRANSIT,
    ShippingStatus.OUT_FOR_DELIVERY: OrderStatus.OUT_FOR_DELIVERY,
    ShippingStatus.DELIVERED: OrderStatus.DELIVERED,
    ShippingStatus.RETURNED_TO_SENDER: OrderStatus.CANCELLED,
    ShippingStatus.DELIVERY_ATTEMPTED: OrderStatus.PROCESSING,
    ShippingStatus.EXCEPTION: OrderStatus.PROCESSING,
}

SHIPPING_TO_EVENT_TYPE: Dict[ShippingStatus, OrderEventType] = {
    ShippingStatus.LABEL_CREATED: OrderEventType.SHIPPED,
    ShippingStatus.PICKED_UP: OrderEventType.SHIPPED,
    ShippingStatus.IN_TRANSIT: OrderEventType.IN_TRANSIT,
    ShippingStatus.OUT_FOR_DELIVERY: OrderEventType.OUT_FOR_DELIVERY,
    ShippingStatus.DELIVERED: OrderEventType.DELIVERED,
    ShippingStatus.DELIVERY_ATTEMPTED: OrderEventType.NOTE_ADDED,
    ShippingStatus.EXCEPTION: OrderEventType.NOTE_ADDED,
    ShippingStatus.RETURNED_TO_SENDER: OrderEventType.NOTE_ADDED,
}

TRACKING_URL_TEMPLATES: Dict[OrderCarrier, str] = {
    OrderCarrier.DHL: "https://www.dhl.com/mx-es/home/rastreo.html?tracking-id={tracking_number}",
    OrderCarrier.FEDEX: "https://www.fedex.com/fedextrack/?trknbr={tracking_number}",
    OrderCarrier.ESTAFETA: "https://www.estafeta.com/Rastreo/?wayBill={tracking_number}",
    OrderCarrier.REDPACK: "https://www.redpack.com.mx/es/rastreo/?guias={tracking_number}",
    OrderCarrier.UPS: "https://www.ups.com/track?tracknum={tracking_number}",
    OrderCarrier.PAQUETEXPRESS: "https://www.paquetexpress.com.mx/rastreo/{tracking_number}",
    OrderCarrier.LOCAL_COURIER: "#",
    OrderCarrier.OTHER: "#",
}


class TrackingStatusMapper:
    """Maps carrier-reported shipping states onto order states and event types."""

    FALLBACK_STATUS = OrderStatus.PROCESSING

    def to_order_status(self, shipping_status: Any) -> OrderStatus:
        status = coerce_enum(ShippingStatus, shipping_status)
        if status is None:
            return self.FALLBACK_STATUS
        return SHIPPING_TO_ORDER_STATUS[status]

    def to_event_type(self, shipping_status: Any) -> OrderEventType:
        status = coerce_enum(ShippingStatus, shipping_status)
        if status is None:
            return OrderEventType.NOTE_ADDED
        return SHIPPING_TO_EVENT_TYPE[status]

    def tracking_update_message(
        self,
        shipping_status: Any,
        carrier: Optional[str] = None,
        location: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        status = coerce_enum(ShippingStatus, shipping_status)
        if status == ShippingStatus.LABEL_CREATED:
            return "Shipping label created"
        if status == ShippingStatus.PICKED_UP:
            return f"Package picked up by {carrier or 'the carrier'}"
        if status == ShippingStatus.IN_TRANSIT:
            return f"In transit - {location}" if location else "In transit"
        if status == ShippingStatus.OUT_FOR_DELIVERY:
            return "Out for delivery"
        if status == ShippingStatus.DELIVERED:
            return "Package delivered"
        if status == ShippingStatus.DELIVERY_ATTEMPTED:
            return "Delivery attempt failed"
        if status == ShippingStatus.EXCEPTION:
            return f"Shipping exception: {description or 'see details'}"
        if status == ShippingStatus.RETURNED_TO_SENDER:
            return "Package returned to sender"
        return description or "Tracking update"

    def tracking_url(self, carrier: Any, tracking_number: str) -> str:
        known = coerce_enum(OrderCarrier, carrier) or OrderCarrier.OTHER
        return TRACKING_URL_TEMPLATES[known].format(tracking_number=tracking_number)


# =============================================================================
# TIMELINE TEXT
# =============================================================================

STATUS_DESCRIPTIONS: Dict[OrderStatus, str] = {
    OrderStatus.PENDING_PAYMENT: "Awaiting payment",
    OrderStatus.PAYMENT_FAILED: "Payment failed",
    OrderStatus.PAID: "Payment confirmed",
    OrderStatus.PROCESSING: "Being prepared",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.IN_TRANSIT: "In transit",
    OrderStatus.OUT_FOR_DELIVERY: "Out for delivery",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.RETURN_REQUESTED: "Return requested",
    OrderStatus.RETURNED: "Returned",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.REFUNDED: "Refunded",
    OrderStatus.PARTIALLY_REFUNDED: "Partially refunded",
}


class EventMessageBuilder:
    """Deterministic timeline and notification text."""

    GENERIC_MESSAGE = "Event recorded"

    def event_message(
        self,
        event_type: Any,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> str:
        meta = metadata or {}
        kind = coerce_enum(OrderEventType, event_type)

        if kind == OrderEventType.CREATED:
            return "Order created successfully"
        if kind == OrderEventType.PAYMENT_RECEIVED:
            return "Payment received and confirmed"
        if kind == OrderEventType.PAYMENT_FAILED:
            return f"Payment failed: {meta.get('reason') or 'Unknown error'}"
        if kind == OrderEventType.PROCESSING:
            return "Order is being prepared"
        if kind == OrderEventType.SHIPPED:
            carrier = meta.get("carrier") or "the carrier"
            tracking = meta.get("tracking_number") or "N/A"
            return f"Order shipped with {carrier}. Tracking: {tracking}"
        if kind == OrderEventType.IN_TRANSIT:
            location = meta.get("location")
            return f"In transit - {location}" if location else "In transit"
        if kind == OrderEventType.OUT_FOR_DELIVERY:
            return "Out for delivery"
        if kind == OrderEventType.DELIVERED:
            return "Order delivered successfully"
        if kind == OrderEventType.CANCELLED:
            return f"Order cancelled: {meta.get('reason') or 'Not specified'}"
        if kind == OrderEventType.REFUNDED:
            amount = meta.get("amount", meta.get("refund_amount")) or 0
            return f"Refund processed: ${float(amount):.2f}"
        if kind == OrderEventType.NOTE_ADDED:
            return meta.get("note") or "Note added"
        return self.GENERIC_MESSAGE

    def status_description(self, status: Any) -> str:
        known = coerce_enum(OrderStatus, status)
        if known is None:
            return str(status)
        return STATUS_DESCRIPTIONS[known]

    def order_summary(self, order: Order) -> str:
        count = len(order.items)
        noun = "item" if count == 1 else "items"
        return f"{count} {noun} • Total: ${order.totals.total:.2f}"


class OrderEventFactory:
    """Builds timeline entries; the caller supplies the timestamp."""

    def create(
        self,
        event_type: OrderEventType,
        status: OrderStatus,
        message: str,
        now: datetime,
        metadata: Optional[Dict[str, Any]] = None,
        created_by: Optional[str] = None,
    ) -> OrderEvent:
        # Drop empty values so stored metadata stays compact.
        clean = {k: v for k, v in (metadata or {}).items() if v is not None}
        return OrderEvent(
            type=event_type,
            status=status,
            message=message,
            created_at=now,
            metadata=clean,
            created_by=created_by,
        )


def requires_photos(reason: Any) -> bool:
    return coerce_enum(ReturnReason, reason) in PHOTO_REQUIRED_RETURN_REASONS


def return_policy_text(rules: OrderRules) -> str:
    lines = [
        "Return Policy:",
        f"• You have {rules.return_window_days:g} days from delivery to request a return",
        "• Items must be unused and in their original packaging",
        f"• A {rules.restock_fee_percentage * 100:g}% restocking fee applies when you change your mind",
        "• Return shipping is free for defective items or mistakes on our side",
        f"• Refunds are processed within {rules.refund_processing_days} business days",
    ]
    return "\n".join(lines)
