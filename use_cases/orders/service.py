"""
Order Service - Order Lifecycle Use Cases.

Coordinates the rules engine with the order repository: every operation
loads the current state, asks the engine for a decision, and only then
writes. Nothing is written when validation, authorization or a transition
check fails.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from auth import SYSTEM_CALLER, Caller
from core.domain import PolicyDecision, format_date

from .data import OrderRepository
from .domain import (
    CancellationNotFoundError,
    CancellationReason,
    CancellationRequest,
    CancellationStatus,
    Order,
    OrderCancellationError,
    OrderCarrier,
    OrderEventType,
    OrderLifecycleEngine,
    OrderNotFoundError,
    OrderPermissionError,
    OrderReturnError,
    OrderStatus,
    OrderValidationError,
    PaymentStatus,
    RefundBreakdown,
    ReturnItem,
    ReturnNotFoundError,
    ReturnReason,
    ReturnRequest,
    ReturnStatus,
)
from .domain.models import coerce_enum

logger = logging.getLogger(__name__)


NOTIFICATION_TYPE = "ORDER_UPDATE"

STATUS_NOTIFICATIONS: Dict[OrderStatus, str] = {
    OrderStatus.PAID: "Your payment has been confirmed",
    OrderStatus.PROCESSING: "Your order is being processed",
    OrderStatus.SHIPPED: "Your order has been shipped",
    OrderStatus.IN_TRANSIT: "Your order is in transit",
    OrderStatus.OUT_FOR_DELIVERY: "Your order is out for delivery",
    OrderStatus.DELIVERED: "Your order has been delivered",
    OrderStatus.CANCELLED: "Your order has been cancelled",
    OrderStatus.REFUNDED: "Your order has been refunded",
}

STATUS_EVENT_TYPES: Dict[OrderStatus, OrderEventType] = {
    OrderStatus.PAID: OrderEventType.PAYMENT_RECEIVED,
    OrderStatus.PAYMENT_FAILED: OrderEventType.PAYMENT_FAILED,
    OrderStatus.PROCESSING: OrderEventType.PROCESSING,
    OrderStatus.SHIPPED: OrderEventType.SHIPPED,
    OrderStatus.IN_TRANSIT: OrderEventType.IN_TRANSIT,
    OrderStatus.OUT_FOR_DELIVERY: OrderEventType.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED: OrderEventType.DELIVERED,
    OrderStatus.CANCELLED: OrderEventType.CANCELLED,
    OrderStatus.REFUNDED: OrderEventType.REFUNDED,
}

# Timestamp field stamped when an order enters the status.
STATUS_TIMESTAMP_FIELDS: Dict[OrderStatus, str] = {
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

IN_STOCK_DELIVERY = timedelta(hours=12)
BACKORDER_DELIVERY = timedelta(days=5)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderService:
    """
    Use cases over orders, cancellations and returns.

    Args:
        repository: Storage port
        engine: Rules engine (default rules when omitted)
        clock: Callable returning the current time; tests pass a fixed clock
        order_expiry_hours: Age after which PAID orders are moved to PROCESSING
    """

    def __init__(
        self,
        repository: OrderRepository,
        engine: Optional[OrderLifecycleEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
        order_expiry_hours: float = 24,
    ):
        self.repository = repository
        self.engine = engine or OrderLifecycleEngine()
        self._clock = clock or _utc_now
        self.order_expiry_hours = order_expiry_hours

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _now(self) -> datetime:
        return self._clock()

    def _get_order(self, order_id: str) -> Order:
        order = self.repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    @staticmethod
    def _require_admin(caller: Caller) -> None:
        if not caller.is_admin:
            raise OrderPermissionError()

    @staticmethod
    def _require_owner_or_admin(caller: Caller, owner_id: str) -> None:
        if not caller.is_admin and owner_id != caller.user_id:
            raise OrderPermissionError()

    def _append_event(
        self,
        order: Order,
        event_type: OrderEventType,
        status: OrderStatus,
        message: str,
        caller: Caller,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        event = self.engine.create_order_event(
            event_type,
            status,
            message,
            now=self._now(),
            metadata=metadata,
            created_by=caller.actor,
        )
        self.repository.append_event(order.id, event)

    def _notify(self, user_id: str, title: str, message: str, order_id: str) -> None:
        """Write an in-app notification. Failures are logged and never undo the update."""
        notification = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "type": NOTIFICATION_TYPE,
            "title": title,
            "message": message,
            "action_url": f"/orders/{order_id}",
            "is_read": False,
            "created_at": self._now().isoformat(),
        }
        try:
            self.repository.add_notification(notification)
        except Exception:
            logger.error(f"Failed to notify user {user_id} about order {order_id}", exc_info=True)

    # =========================================================================
    # ORDERS
    # =========================================================================

    def get_order(self, caller: Caller, order_id: str) -> Order:
        """The order with its full timeline, visible to its owner and to admins."""
        order = self._get_order(order_id)
        self._require_owner_or_admin(caller, order.user_id)
        return order

    def get_tracking(self, caller: Caller, order_id: str) -> Dict[str, Any]:
        """
        Shipping view of an order: carrier, tracking link, delivery dates and
        the carrier checkpoints recorded on the timeline.
        """
        order = self.get_order(caller, order_id)

        checkpoints = [event for event in order.timeline if "shipping_status" in event.metadata]
        current_location = None
        for event in reversed(checkpoints):
            if event.metadata.get("location"):
                current_location = event.metadata["location"]
                break
        last_updated = order.timeline[-1].created_at if order.timeline else order.created_at

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "status": order.status.value,
            "status_description": self.engine.get_status_description(order.status),
            "carrier": order.carrier,
            "tracking_number": order.tracking_number,
            "tracking_url": order.tracking_url,
            "shipped_at": format_date(order.shipped_at),
            "estimated_delivery_at": format_date(order.estimated_delivery_at),
            "delivered_at": format_date(order.delivered_at),
            "current_location": current_location,
            "checkpoints": [event.to_dict() for event in checkpoints],
            "last_updated": format_date(last_updated),
        }

    def add_note(self, caller: Caller, order_id: str, note: str) -> None:
        """Append a free-text note to the order timeline."""
        order = self._get_order(order_id)
        self._require_owner_or_admin(caller, order.user_id)

        note = (note or "").strip()
        if not note:
            raise OrderValidationError("Note must not be empty")

        self._append_event(
            order,
            OrderEventType.NOTE_ADDED,
            order.status,
            note,
            caller,
            metadata={"note": note},
        )
        logger.info(f"Note added to order {order.id} by {caller.actor.lower()}")

    # =========================================================================
    # STATUS
    # =========================================================================

    def update_status(
        self,
        caller: Caller,
        order_id: str,
        status: Any,
        note: Optional[str] = None,
    ) -> OrderStatus:
        """
        Move an order to a new status.

        Admins may set any status the transition table allows. Other callers
        may only confirm delivery of their own orders.

        Raises:
            OrderNotFoundError: Unknown order
            OrderValidationError: ``status`` is not an order status
            OrderPermissionError: Caller may not make this change
            InvalidStatusTransitionError: The edge is not in the table
        """
        order = self._get_order(order_id)

        requested = coerce_enum(OrderStatus, status)
        if requested is None:
            raise OrderValidationError(f"Invalid order status: {status}")

        if not caller.is_admin:
            if requested != OrderStatus.DELIVERED:
                raise OrderPermissionError()
            if order.user_id != caller.user_id:
                raise OrderPermissionError("Only the order owner can confirm delivery")

        new_status = self.engine.validate_transition(order.status, requested)

        now = self._now()
        changes: Dict[str, Any] = {"status": new_status}
        timestamp_field = STATUS_TIMESTAMP_FIELDS.get(new_status)
        if timestamp_field:
            changes[timestamp_field] = now

        self.repository.update_order(order.id, changes)
        self._append_event(
            order,
            STATUS_EVENT_TYPES.get(new_status, OrderEventType.NOTE_ADDED),
            new_status,
            note or f"Status changed to {new_status.value}",
            caller,
            metadata={"previous_status": order.status.value},
        )

        logger.info(
            f"Order {order.id} status updated {order.status.value} -> {new_status.value} "
            f"by {caller.actor.lower()}"
        )
        self._notify(
            order.user_id,
            "Order Update",
            STATUS_NOTIFICATIONS.get(new_status, "Your order status has changed"),
            order.id,
        )
        return new_status

    # =========================================================================
    # CANCELLATIONS
    # =========================================================================

    def check_cancellation(self, caller: Caller, order_id: str) -> PolicyDecision:
        order = self.repository.get_by_id(order_id)
        if order is None:
            return PolicyDecision.deny("Order not found")
        self._require_owner_or_admin(caller, order.user_id)
        return self.engine.can_cancel(order, self._now())

    def get_cancellation(self, caller: Caller, cancellation_id: str) -> CancellationRequest:
        cancellation = self.repository.get_cancellation(cancellation_id)
        if cancellation is None:
            raise CancellationNotFoundError(cancellation_id)
        self._require_owner_or_admin(caller, cancellation.user_id)
        return cancellation

    def request_cancellation(
        self,
        caller: Caller,
        order_id: str,
        reason: Any,
        notes: str = "",
    ) -> CancellationRequest:
        """Open a PENDING cancellation request with the refund the buyer would receive."""
        order = self._get_order(order_id)
        self._require_owner_or_admin(caller, order.user_id)

        errors = self.engine.validate_cancellation_request(order_id, reason)
        if errors:
            raise OrderValidationError("Invalid cancellation request", errors)

        decision = self.engine.can_cancel(order, self._now())
        if decision.is_denied:
            raise OrderCancellationError(decision.reason)

        cancellation = CancellationRequest(
            id=str(uuid.uuid4()),
            order_id=order.id,
            user_id=order.user_id,
            reason=CancellationReason(reason),
            status=CancellationStatus.PENDING,
            refund_amount=self.engine.calculate_cancellation_refund(order),
            requested_at=self._now(),
            notes=notes or "",
        )
        self.repository.create_cancellation(cancellation)
        self._append_event(
            order,
            OrderEventType.NOTE_ADDED,
            order.status,
            f"Cancellation requested: {cancellation.reason.value}",
            caller,
            metadata={"cancellation_id": cancellation.id, "reason": cancellation.reason.value},
        )

        logger.info(f"Cancellation {cancellation.id} requested for order {order.id}")
        return cancellation

    def process_cancellation(
        self,
        caller: Caller,
        cancellation_id: str,
        approved: bool,
        admin_notes: Optional[str] = None,
    ) -> CancellationRequest:
        """
        Approve or reject a pending cancellation request (admin only).

        Approval cancels the order and records the refund on its timeline.
        """
        self._require_admin(caller)

        cancellation = self.repository.get_cancellation(cancellation_id)
        if cancellation is None:
            raise CancellationNotFoundError(cancellation_id)
        if cancellation.status != CancellationStatus.PENDING:
            raise OrderCancellationError(
                f"Cancellation {cancellation_id} has already been {cancellation.status.value.lower()}"
            )

        order = self._get_order(cancellation.order_id)
        now = self._now()

        cancellation.processed_at = now
        cancellation.admin_notes = admin_notes

        if not approved:
            cancellation.status = CancellationStatus.REJECTED
            self.repository.save_cancellation(cancellation)
            self._append_event(
                order,
                OrderEventType.NOTE_ADDED,
                order.status,
                self.engine.get_event_message(
                    OrderEventType.NOTE_ADDED,
                    {"note": f"Cancellation request rejected: {admin_notes or 'No reason given'}"},
                ),
                caller,
                metadata={"cancellation_id": cancellation.id},
            )
            logger.info(f"Cancellation {cancellation.id} rejected for order {order.id}")
            self._notify(
                order.user_id,
                "Cancellation Rejected",
                "Your cancellation request was not approved",
                order.id,
            )
            return cancellation

        new_status = self.engine.validate_transition(order.status, OrderStatus.CANCELLED)

        # Payment may have been captured or voided since the request was made.
        cancellation.refund_amount = self.engine.calculate_cancellation_refund(order)
        cancellation.status = CancellationStatus.APPROVED
        self.repository.save_cancellation(cancellation)

        changes: Dict[str, Any] = {"status": new_status, "cancelled_at": now}
        if cancellation.refund_amount > 0:
            changes["payment_status"] = PaymentStatus.REFUNDED
        self.repository.update_order(order.id, changes)

        self._append_event(
            order,
            OrderEventType.CANCELLED,
            new_status,
            self.engine.get_event_message(
                OrderEventType.CANCELLED, {"reason": cancellation.reason.value}
            ),
            caller,
            metadata={"cancellation_id": cancellation.id, "reason": cancellation.reason.value},
        )
        if cancellation.refund_amount > 0:
            self._append_event(
                order,
                OrderEventType.REFUNDED,
                new_status,
                self.engine.get_event_message(
                    OrderEventType.REFUNDED, {"amount": cancellation.refund_amount}
                ),
                caller,
                metadata={"amount": cancellation.refund_amount},
            )

        logger.info(
            f"Cancellation {cancellation.id} approved; order {order.id} cancelled "
            f"(refund {cancellation.refund_amount:.2f})"
        )
        self._notify(
            order.user_id,
            "Order Cancelled",
            STATUS_NOTIFICATIONS[OrderStatus.CANCELLED],
            order.id,
        )
        return cancellation

    # =========================================================================
    # RETURNS
    # =========================================================================

    def check_return(self, caller: Caller, order_id: str) -> PolicyDecision:
        order = self.repository.get_by_id(order_id)
        if order is None:
            return PolicyDecision.deny("Order not found")
        self._require_owner_or_admin(caller, order.user_id)
        return self.engine.can_return(order, self._now())

    def _get_return(self, return_id: str) -> ReturnRequest:
        return_request = self.repository.get_return(return_id)
        if return_request is None:
            raise ReturnNotFoundError(return_id)
        return return_request

    def get_return(self, caller: Caller, return_id: str) -> ReturnRequest:
        return_request = self._get_return(return_id)
        self._require_owner_or_admin(caller, return_request.user_id)
        return return_request

    def _returned_quantities(self, order_id: str) -> Dict[str, int]:
        """Units per order line already claimed by returns that were not rejected."""
        claimed: Dict[str, int] = {}
        for previous in self.repository.get_returns_for_order(order_id):
            if previous.status == ReturnStatus.REJECTED:
                continue
            for item in previous.items:
                claimed[item.order_item_id] = claimed.get(item.order_item_id, 0) + item.quantity
        return claimed

    def request_return(
        self,
        caller: Caller,
        order_id: str,
        items: List[Any],
        reason: Any,
        notes: str = "",
        photos: Optional[List[str]] = None,
    ) -> ReturnRequest:
        """
        Raise a return request for some or all items of a delivered order.

        ``items`` holds ``ReturnItem`` objects or dicts with ``order_item_id``,
        ``quantity`` and an optional ``condition``. The order status is left
        unchanged until the return is processed.
        """
        order = self._get_order(order_id)
        self._require_owner_or_admin(caller, order.user_id)

        decision = self.engine.can_return(order, self._now())
        if decision.is_denied:
            raise OrderReturnError(decision.reason)

        errors = self.engine.validate_return_request(
            order, items, reason, photos,
            returned_quantities=self._returned_quantities(order.id),
        )
        if errors:
            raise OrderValidationError("Invalid return request", errors)

        return_items = [
            item if isinstance(item, ReturnItem) else ReturnItem.from_dict(item)
            for item in items
        ]
        for returned in return_items:
            line = order.find_item(returned.order_item_id)
            category_check = self.engine.check_product_category(line.category)
            if category_check.is_denied:
                raise OrderReturnError(category_check.reason)

        return_reason = ReturnReason(reason)
        refund = self.engine.calculate_return_refund(order, return_items, return_reason)

        return_request = ReturnRequest(
            id=str(uuid.uuid4()),
            order_id=order.id,
            user_id=order.user_id,
            items=return_items,
            reason=return_reason,
            status=ReturnStatus.REQUESTED,
            refund=refund,
            free_return_shipping=self.engine.is_free_return_shipping(order, return_reason),
            requested_at=self._now(),
            notes=notes or "",
            photos=list(photos or []),
        )
        self.repository.create_return(return_request)
        self._append_event(
            order,
            OrderEventType.NOTE_ADDED,
            order.status,
            f"Return requested: {return_reason.value}",
            caller,
            metadata={
                "return_id": return_request.id,
                "refund_amount": refund.refund_amount,
            },
        )

        logger.info(
            f"Return {return_request.id} requested for order {order.id} "
            f"({len(return_items)} item(s), refund {refund.refund_amount:.2f})"
        )
        self._notify(
            order.user_id,
            "Return Requested",
            f"We received your return request. Estimated refund: ${refund.refund_amount:.2f}",
            order.id,
        )
        return return_request

    def update_return_status(
        self,
        caller: Caller,
        return_id: str,
        status: Any,
        notes: Optional[str] = None,
    ) -> ReturnRequest:
        """Advance a return request through its lifecycle (admin only)."""
        self._require_admin(caller)

        return_request = self._get_return(return_id)
        order = self._get_order(return_request.order_id)

        new_status = self.engine.validate_return_transition(return_request.status, status)
        previous = return_request.status

        return_request.status = new_status
        return_request.updated_at = self._now()
        self.repository.save_return(return_request)

        if new_status == ReturnStatus.REFUNDED:
            self.repository.update_order(
                order.id, {"payment_status": PaymentStatus.PARTIALLY_REFUNDED}
            )
            self._append_event(
                order,
                OrderEventType.REFUNDED,
                OrderStatus.PARTIALLY_REFUNDED,
                self.engine.get_event_message(
                    OrderEventType.REFUNDED, {"amount": return_request.refund_amount}
                ),
                caller,
                metadata={"return_id": return_request.id, "amount": return_request.refund_amount},
            )
        else:
            self._append_event(
                order,
                OrderEventType.NOTE_ADDED,
                order.status,
                notes or f"Return {new_status.value.lower().replace('_', ' ')}",
                caller,
                metadata={"return_id": return_request.id, "return_status": new_status.value},
            )

        logger.info(
            f"Return {return_request.id} status updated {previous.value} -> {new_status.value}"
        )
        self._notify(
            order.user_id,
            "Return Update",
            f"Your return is now {new_status.value.lower().replace('_', ' ')}",
            order.id,
        )
        return return_request

    def calculate_return_refund(self, caller: Caller, return_id: str) -> RefundBreakdown:
        """Recompute the refund breakdown for an existing return."""
        return_request = self.get_return(caller, return_id)
        order = self._get_order(return_request.order_id)
        return self.engine.calculate_return_refund(
            order, return_request.items, return_request.reason
        )

    def list_returns(self, caller: Caller) -> List[ReturnRequest]:
        return self.repository.get_returns_for_user(caller.user_id)

    # =========================================================================
    # SHIPPING
    # =========================================================================

    def update_tracking(
        self,
        caller: Caller,
        order_id: str,
        tracking_number: str,
        carrier: Any,
        status: Any,
        location: Optional[str] = None,
        description: Optional[str] = None,
    ) -> OrderStatus:
        """
        Record a carrier tracking update (admin only).

        The carrier state is mapped to an order status. The order only moves
        when the mapped status differs and the transition table allows it;
        otherwise the current status is kept and the update is still logged
        on the timeline. Returns the order status after the update.
        """
        self._require_admin(caller)
        order = self._get_order(order_id)

        known_carrier = coerce_enum(OrderCarrier, carrier)
        if known_carrier is None:
            raise OrderValidationError(f"Unknown carrier: {carrier}")

        now = self._now()
        changes: Dict[str, Any] = {
            "tracking_number": tracking_number,
            "carrier": known_carrier.value,
            "tracking_url": self.engine.generate_tracking_url(known_carrier, tracking_number),
        }

        mapped = self.engine.map_shipping_status(status)
        new_status = order.status
        if mapped != order.status:
            if self.engine.can_transition(order.status, mapped):
                new_status = mapped
                changes["status"] = mapped
                timestamp_field = STATUS_TIMESTAMP_FIELDS.get(mapped)
                if timestamp_field:
                    changes[timestamp_field] = now
            else:
                logger.warning(
                    f"Tracking update for order {order.id} maps to {mapped.value}, "
                    f"which is not reachable from {order.status.value}; keeping current status"
                )

        self.repository.update_order(order.id, changes)
        self._append_event(
            order,
            self.engine.map_shipping_status_to_event_type(status),
            new_status,
            self.engine.tracking_update_message(
                status,
                carrier=known_carrier.value,
                location=location,
                description=description,
            ),
            caller,
            metadata={
                "tracking_number": tracking_number,
                "carrier": known_carrier.value,
                "shipping_status": getattr(status, "value", status),
                "location": location,
            },
        )

        logger.info(
            f"Tracking updated for order {order.id}: {getattr(status, 'value', status)} "
            f"(order status {new_status.value})"
        )
        if new_status != order.status:
            self._notify(
                order.user_id,
                "Shipping Update",
                STATUS_NOTIFICATIONS.get(new_status, "Your order status has changed"),
                order.id,
            )
        return new_status

    def update_shipping_info(
        self,
        caller: Caller,
        order_id: str,
        tracking_number: str,
        carrier: Any,
    ) -> str:
        """Store the carrier and tracking number (admin only). Returns the tracking URL."""
        self._require_admin(caller)
        order = self._get_order(order_id)

        known_carrier = coerce_enum(OrderCarrier, carrier)
        if known_carrier is None:
            raise OrderValidationError(f"Unknown carrier: {carrier}")
        if not tracking_number:
            raise OrderValidationError("tracking_number is required")

        tracking_url = self.engine.generate_tracking_url(known_carrier, tracking_number)
        self.repository.update_order(order.id, {
            "tracking_number": tracking_number,
            "carrier": known_carrier.value,
            "tracking_url": tracking_url,
        })
        self._append_event(
            order,
            OrderEventType.NOTE_ADDED,
            order.status,
            f"Tracking number added: {known_carrier.value} {tracking_number}",
            caller,
            metadata={"tracking_number": tracking_number, "carrier": known_carrier.value},
        )

        logger.info(f"Shipping info updated for order {order.id}: {known_carrier.value}")
        return tracking_url

    # =========================================================================
    # SYSTEM JOBS
    # =========================================================================

    def on_order_created(self, order_id: str) -> Order:
        """
        Finish setting up a newly placed order.

        Assigns the next ``ORD-<year>-<sequence>`` number, estimates delivery
        from stock levels, seeds the timeline and notifies the buyer. Orders
        that already carry a number are returned unchanged.
        """
        order = self._get_order(order_id)
        if order.order_number:
            logger.info(f"Order {order.id} already initialised as {order.order_number}")
            return order

        if not order.totals.is_consistent():
            totals = order.totals
            logger.warning(
                f"Order {order.id} totals do not add up: subtotal {totals.subtotal:.2f} "
                f"- discount {totals.discount:.2f} + shipping {totals.shipping_cost:.2f} "
                f"+ tax {totals.tax:.2f} != total {totals.total:.2f}"
            )

        now = self._now()
        sequence = self.repository.next_order_sequence()
        order_number = f"ORD-{now.year}-{sequence:06d}"

        if self._all_items_in_stock(order):
            estimated_delivery = now + IN_STOCK_DELIVERY
        else:
            estimated_delivery = now + BACKORDER_DELIVERY

        self.repository.update_order(order.id, {
            "order_number": order_number,
            "estimated_delivery_at": estimated_delivery,
        })
        self._append_event(
            order,
            OrderEventType.CREATED,
            order.status,
            self.engine.get_event_message(OrderEventType.CREATED),
            SYSTEM_CALLER,
            metadata={"order_number": order_number},
        )

        logger.info(f"Order {order_number} created for user {order.user_id}")
        self._notify(
            order.user_id,
            "Order Created",
            f"Your order {order_number} has been created successfully.",
            order.id,
        )
        return self._get_order(order.id)

    def _all_items_in_stock(self, order: Order) -> bool:
        for item in order.items:
            stock = self.repository.get_product_stock(item.product_id)
            if stock is None or stock < item.quantity:
                return False
        return True

    def advance_stale_paid_orders(self, max_age_hours: Optional[float] = None) -> List[str]:
        """
        Move PAID orders older than ``max_age_hours`` to PROCESSING.

        Returns the ids of the orders that were advanced.
        """
        hours = self.order_expiry_hours if max_age_hours is None else max_age_hours
        cutoff = self._now() - timedelta(hours=hours)

        advanced = []
        for order in self.repository.find_orders(OrderStatus.PAID, cutoff):
            new_status = self.engine.validate_transition(order.status, OrderStatus.PROCESSING)
            self.repository.update_order(order.id, {"status": new_status})
            self._append_event(
                order,
                OrderEventType.PROCESSING,
                new_status,
                "Order automatically moved to processing",
                SYSTEM_CALLER,
            )
            self._notify(
                order.user_id,
                "Order Update",
                STATUS_NOTIFICATIONS[new_status],
                order.id,
            )
            advanced.append(order.id)

        logger.info(f"Advanced {len(advanced)} paid order(s) older than {hours:g}h to processing")
        return advanced
