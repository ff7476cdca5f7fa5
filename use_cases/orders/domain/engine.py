"""
Order Lifecycle Rules Engine.

A stateless facade over the order policies and services, bound to one
``OrderRules`` configuration. It holds no mutable state, so one instance
can serve any number of concurrent callers.
"""

from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from core.domain import PolicyDecision, ValidationError

from .models import (
    Order,
    OrderEvent,
    OrderEventType,
    OrderStatus,
    RefundBreakdown,
    ReturnItem,
    ReturnReason,
    ReturnStatus,
)
from .policies import (
    CancellationPolicy,
    CancellationRequestValidator,
    CategoryPolicy,
    ReturnEligibilityPolicy,
    ReturnRequestValidator,
    ReturnStatusTransitionPolicy,
    StatusTransitionPolicy,
)
from .rules import OrderRules
from .services import (
    EventMessageBuilder,
    OrderEventFactory,
    RefundCalculator,
    TrackingStatusMapper,
    requires_photos,
    return_policy_text,
)


class OrderLifecycleEngine:
    """Evaluates order state against the configured business rules."""

    def __init__(self, rules: Optional[OrderRules] = None):
        self.rules = rules or OrderRules()
        self._cancellation = CancellationPolicy(self.rules)
        self._return_eligibility = ReturnEligibilityPolicy(self.rules)
        self._category = CategoryPolicy(self.rules)
        self._transitions = StatusTransitionPolicy()
        self._return_transitions = ReturnStatusTransitionPolicy()
        self._refunds = RefundCalculator(self.rules)
        self._tracking = TrackingStatusMapper()
        self._messages = EventMessageBuilder()
        self._events = OrderEventFactory()
        self._return_validator = ReturnRequestValidator()
        self._cancellation_validator = CancellationRequestValidator()

    # ----- eligibility -----

    def can_cancel(self, order: Order, now: datetime) -> PolicyDecision:
        return self._cancellation.evaluate(order, now)

    def can_return(self, order: Order, now: datetime) -> PolicyDecision:
        return self._return_eligibility.evaluate(order, now)

    def is_product_returnable(self, category: Optional[str]) -> bool:
        return self._category.is_returnable(category)

    def check_product_category(self, category: Optional[str]) -> PolicyDecision:
        return self._category.check(category)

    # ----- refunds -----

    def calculate_cancellation_refund(self, order: Order) -> float:
        return self._refunds.cancellation_refund(order)

    def calculate_return_refund(
        self,
        order: Order,
        items: Iterable[ReturnItem],
        reason: ReturnReason,
    ) -> RefundBreakdown:
        return self._refunds.execute(order, items, reason)

    def is_free_return_shipping(self, order: Order, reason: ReturnReason) -> bool:
        return self._refunds.is_free_return_shipping(order, reason)

    def estimate_refund_date(self, approved_at: datetime) -> datetime:
        return self._refunds.estimate_refund_date(approved_at)

    # ----- status transitions -----

    def can_transition(self, current: OrderStatus, requested: Any) -> bool:
        return self._transitions.can_transition(current, requested)

    def validate_transition(self, current: OrderStatus, requested: Any) -> OrderStatus:
        return self._transitions.validate(current, requested)

    def allowed_transitions(self, current: OrderStatus) -> FrozenSet[OrderStatus]:
        return self._transitions.allowed_targets(current)

    def validate_return_transition(self, current: ReturnStatus, requested: Any) -> ReturnStatus:
        return self._return_transitions.validate(current, requested)

    # ----- tracking -----

    def map_shipping_status(self, shipping_status: Any) -> OrderStatus:
        return self._tracking.to_order_status(shipping_status)

    def map_shipping_status_to_event_type(self, shipping_status: Any) -> OrderEventType:
        return self._tracking.to_event_type(shipping_status)

    def tracking_update_message(self, shipping_status: Any, **details: Optional[str]) -> str:
        return self._tracking.tracking_update_message(shipping_status, **details)

    def generate_tracking_url(self, carrier: Any, tracking_number: str) -> str:
        return self._tracking.tracking_url(carrier, tracking_number)

    # ----- timeline text -----

    def get_event_message(
        self,
        event_type: Any,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> str:
        return self._messages.event_message(event_type, metadata)

    def create_order_event(
        self,
        event_type: OrderEventType,
        status: OrderStatus,
        message: str,
        now: datetime,
        metadata: Optional[Dict[str, Any]] = None,
        created_by: Optional[str] = None,
    ) -> OrderEvent:
        return self._events.create(event_type, status, message, now, metadata, created_by)

    def get_status_description(self, status: Any) -> str:
        return self._messages.status_description(status)

    def generate_order_summary(self, order: Order) -> str:
        return self._messages.order_summary(order)

    def get_return_policy(self) -> str:
        return return_policy_text(self.rules)

    # ----- validation -----

    def requires_photos(self, reason: Any) -> bool:
        return requires_photos(reason)

    def validate_return_request(
        self,
        order: Order,
        items: List[Any],
        reason: Any,
        photos: Optional[List[str]] = None,
        returned_quantities: Optional[Dict[str, int]] = None,
    ) -> List[ValidationError]:
        return self._return_validator.validate({
            "order": order,
            "items": items,
            "reason": reason,
            "photos": photos or [],
            "returned_quantities": returned_quantities or {},
        })

    def validate_cancellation_request(self, order_id: str, reason: Any) -> List[ValidationError]:
        return self._cancellation_validator.validate({"order_id": order_id, "reason": reason})
