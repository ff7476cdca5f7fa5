"""
Order Policies - Pure Business Rules.

These policies encapsulate the business rules for cancelling and returning
orders and for moving an order through its lifecycle.
They have NO dependencies on databases or external services.
All data needed for evaluation is passed in as parameters, including the
current time.
"""

from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

from core.domain import (
    PolicyDecision,
    PolicyEngine,
    ValidationError,
    Validator,
    days_since,
    hours_since,
)

from .errors import InvalidStatusTransitionError
from .models import (
    CancellationReason,
    Order,
    OrderStatus,
    ReturnReason,
    ReturnStatus,
    coerce_enum,
)
from .rules import OrderRules


# =============================================================================
# TRANSITION TABLES
# =============================================================================

# Every status has an entry; an empty set marks a terminal status.
ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset({
        OrderStatus.PAID,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAYMENT_FAILED: frozenset({
        OrderStatus.PENDING_PAYMENT,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAID: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({
        OrderStatus.IN_TRANSIT,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
    }),
    OrderStatus.IN_TRANSIT: frozenset({
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
    }),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURN_REQUESTED}),
    OrderStatus.RETURN_REQUESTED: frozenset({OrderStatus.RETURNED, OrderStatus.DELIVERED}),
    OrderStatus.RETURNED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
    OrderStatus.PARTIALLY_REFUNDED: frozenset(),
}

TERMINAL_ORDER_STATUSES = frozenset(
    status for status, targets in ORDER_STATUS_TRANSITIONS.items() if not targets
)

RETURN_STATUS_TRANSITIONS: Dict[ReturnStatus, FrozenSet[ReturnStatus]] = {
    ReturnStatus.REQUESTED: frozenset({
        ReturnStatus.PENDING_APPROVAL,
        ReturnStatus.APPROVED,
        ReturnStatus.REJECTED,
    }),
    ReturnStatus.PENDING_APPROVAL: frozenset({ReturnStatus.APPROVED, ReturnStatus.REJECTED}),
    ReturnStatus.APPROVED: frozenset({
        ReturnStatus.SHIPPING_LABEL_SENT,
        ReturnStatus.IN_TRANSIT,
        ReturnStatus.RECEIVED,
    }),
    ReturnStatus.SHIPPING_LABEL_SENT: frozenset({ReturnStatus.IN_TRANSIT}),
    ReturnStatus.IN_TRANSIT: frozenset({ReturnStatus.RECEIVED}),
    ReturnStatus.RECEIVED: frozenset({ReturnStatus.INSPECTING, ReturnStatus.COMPLETED}),
    ReturnStatus.INSPECTING: frozenset({ReturnStatus.COMPLETED, ReturnStatus.REJECTED}),
    ReturnStatus.COMPLETED: frozenset({ReturnStatus.REFUNDED}),
    ReturnStatus.REJECTED: frozenset(),
    ReturnStatus.REFUNDED: frozenset(),
}

# Reasons where the seller is at fault: shipping is refunded and return
# shipping is free.
SELLER_FAULT_RETURN_REASONS = frozenset({
    ReturnReason.DEFECTIVE,
    ReturnReason.WRONG_ITEM,
    ReturnReason.NOT_AS_DESCRIBED,
    ReturnReason.DAMAGED_IN_SHIPPING,
})

PHOTO_REQUIRED_RETURN_REASONS = frozenset({
    ReturnReason.DEFECTIVE,
    ReturnReason.DAMAGED_IN_SHIPPING,
    ReturnReason.NOT_AS_DESCRIBED,
    ReturnReason.QUALITY_ISSUE,
})


# =============================================================================
# POLICIES
# =============================================================================

class CancellationPolicy(PolicyEngine):
    """
    Decides whether an order may still be cancelled.

    Denied when the order is already cancelled, already delivered (the
    buyer should request a return instead), past the cancellable statuses,
    or older than the cancellation window.
    """

    def __init__(self, rules: OrderRules):
        self.rules = rules

    def evaluate(self, order: Order, now: datetime) -> PolicyDecision:
        if order.status == OrderStatus.CANCELLED:
            return PolicyDecision.deny("The order is already cancelled")

        if order.status == OrderStatus.DELIVERED:
            return PolicyDecision.deny(
                "A delivered order cannot be cancelled. Request a return instead.",
                use_return_flow=True,
            )

        if order.status not in self.rules.cancellable_statuses:
            return PolicyDecision.deny(
                "The order is already being fulfilled and can no longer be cancelled",
                order_status=order.status.value,
            )

        elapsed = hours_since(order.created_at, now)
        window = self.rules.cancellation_window_hours
        if self.rules.exceeds_window(elapsed, window):
            return PolicyDecision.deny(
                f"Orders can only be cancelled within {window:g} hours of purchase",
                hours_since_order=round(elapsed, 2),
            )

        return PolicyDecision.approve(hours_since_order=round(elapsed, 2))


class ReturnEligibilityPolicy(PolicyEngine):
    """
    Decides whether a return may be requested for an order.

    Checks the order status first, then the delivery timestamp, then the
    return window measured from delivery.
    """

    def __init__(self, rules: OrderRules):
        self.rules = rules

    def evaluate(self, order: Order, now: datetime) -> PolicyDecision:
        if order.status not in self.rules.returnable_statuses:
            return PolicyDecision.deny(
                "Only delivered orders can be returned",
                order_status=order.status.value,
            )

        # Reachable only when the returnable set is configured to include them.
        if order.status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            return PolicyDecision.deny("This order was already cancelled or refunded")

        if order.delivered_at is None:
            return PolicyDecision.deny("The order has not been delivered yet")

        elapsed = days_since(order.delivered_at, now)
        window = self.rules.return_window_days
        if self.rules.exceeds_window(elapsed, window):
            return PolicyDecision.deny(
                f"The {window:g}-day return period has expired",
                days_since_delivery=round(elapsed, 2),
            )

        return PolicyDecision.approve(
            days_since_delivery=round(elapsed, 2),
            days_remaining=round(window - elapsed, 2),
        )


class CategoryPolicy:
    """Product categories that can never be returned (case-insensitive)."""

    def __init__(self, rules: OrderRules):
        self.rules = rules

    def is_returnable(self, category: Optional[str]) -> bool:
        if not category:
            return True
        return category.lower() not in self.rules.non_returnable_categories

    def check(self, category: Optional[str]) -> PolicyDecision:
        if self.is_returnable(category):
            return PolicyDecision.approve(category=category)
        return PolicyDecision.deny(
            f"{category.title()} items cannot be returned",
            category=category.lower(),
        )


class StatusTransitionPolicy:
    """Validates order status changes against ``ORDER_STATUS_TRANSITIONS``."""

    def allowed_targets(self, current: OrderStatus) -> FrozenSet[OrderStatus]:
        return ORDER_STATUS_TRANSITIONS[current]

    def can_transition(self, current: OrderStatus, requested: Any) -> bool:
        target = coerce_enum(OrderStatus, requested)
        if target is None:
            return False
        return target in ORDER_STATUS_TRANSITIONS[current]

    def validate(self, current: OrderStatus, requested: Any) -> OrderStatus:
        """
        Return the requested status as an ``OrderStatus``.

        Raises:
            InvalidStatusTransitionError: If the edge is not in the table
        """
        if not self.can_transition(current, requested):
            raise InvalidStatusTransitionError(
                current.value, getattr(requested, "value", str(requested))
            )
        return OrderStatus(requested)

    @staticmethod
    def is_terminal(status: OrderStatus) -> bool:
        return status in TERMINAL_ORDER_STATUSES


class ReturnStatusTransitionPolicy:
    """Validates return-request status changes against ``RETURN_STATUS_TRANSITIONS``."""

    def can_transition(self, current: ReturnStatus, requested: Any) -> bool:
        target = coerce_enum(ReturnStatus, requested)
        if target is None:
            return False
        return target in RETURN_STATUS_TRANSITIONS[current]

    def validate(self, current: ReturnStatus, requested: Any) -> ReturnStatus:
        if not self.can_transition(current, requested):
            raise InvalidStatusTransitionError(
                current.value, getattr(requested, "value", str(requested))
            )
        return ReturnStatus(requested)


# =============================================================================
# VALIDATORS
# =============================================================================

class CancellationRequestValidator(Validator):
    """
    Validates cancellation request data before submission.
    """

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = []

        if not data.get("order_id"):
            errors.append(ValidationError(
                field="order_id",
                message="order_id is required",
                code="required",
            ))

        if coerce_enum(CancellationReason, data.get("reason")) is None:
            errors.append(ValidationError(
                field="reason",
                message="Invalid cancellation reason. Must be one of: "
                + ", ".join(r.value for r in CancellationReason),
                code="invalid_choice",
            ))

        return errors


class ReturnRequestValidator(Validator):
    """
    Validates return request data against the order it refers to.

    Expected keys: ``order`` (Order), ``items`` (list of dicts or ReturnItem),
    ``reason``, ``photos`` and optionally ``returned_quantities``, the units
    per order line already claimed by earlier returns. Quantities are totalled
    per order line, so listing a line twice cannot exceed what was bought.
    """

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = []

        reason = coerce_enum(ReturnReason, data.get("reason"))
        if reason is None:
            errors.append(ValidationError(
                field="reason",
                message="Invalid return reason. Must be one of: "
                + ", ".join(r.value for r in ReturnReason),
                code="invalid_choice",
            ))

        items = data.get("items") or []
        if not items:
            errors.append(ValidationError(
                field="items",
                message="At least one item is required",
                code="min_length",
            ))

        order: Optional[Order] = data.get("order")
        claimed: Dict[str, int] = dict(data.get("returned_quantities") or {})
        seen = set()
        for i, item in enumerate(items):
            order_item_id = _get(item, "order_item_id")
            quantity = _get(item, "quantity") or 0
            order_item = order.find_item(order_item_id) if order else None
            if order_item is None:
                errors.append(ValidationError(
                    field=f"items[{i}].order_item_id",
                    message=f"Item not found in order: {order_item_id}",
                    code="not_found",
                ))
                continue
            if quantity < 1 or quantity > order_item.quantity:
                errors.append(ValidationError(
                    field=f"items[{i}].quantity",
                    message=f"Invalid quantity for item: {order_item.name}",
                    code="out_of_range",
                ))
                continue

            total = claimed.get(order_item_id, 0) + quantity
            if total > order_item.quantity:
                remaining = max(order_item.quantity - claimed.get(order_item_id, 0), 0)
                errors.append(ValidationError(
                    field=f"items[{i}].quantity",
                    message=f"Only {remaining} unit(s) of {order_item.name} can still be returned",
                    code="duplicate" if order_item_id in seen else "already_returned",
                ))
            claimed[order_item_id] = total
            seen.add(order_item_id)

        if reason in PHOTO_REQUIRED_RETURN_REASONS and not data.get("photos"):
            errors.append(ValidationError(
                field="photos",
                message="Photos are required for this type of return",
                code="required",
            ))

        return errors


def _get(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)
