"""
Order Domain Models.

Enumerations and plain records for orders, their timeline, and the
cancellation/return requests raised against them. Records convert to and
from the document shape stored in Cosmos DB; they carry no business rules.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from core.domain import format_date, parse_date


E = TypeVar("E", bound=Enum)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OrderStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    CAPTURED = "CAPTURED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class OrderEventType(str, Enum):
    CREATED = "CREATED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    NOTE_ADDED = "NOTE_ADDED"


class ShippingStatus(str, Enum):
    """State reported by the carrier, distinct from the order's own status."""
    LABEL_CREATED = "LABEL_CREATED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    DELIVERY_ATTEMPTED = "DELIVERY_ATTEMPTED"
    EXCEPTION = "EXCEPTION"
    RETURNED_TO_SENDER = "RETURNED_TO_SENDER"


class OrderCarrier(str, Enum):
    DHL = "DHL"
    FEDEX = "FEDEX"
    ESTAFETA = "ESTAFETA"
    REDPACK = "REDPACK"
    UPS = "UPS"
    PAQUETEXPRESS = "PAQUETEXPRESS"
    LOCAL_COURIER = "LOCAL_COURIER"
    OTHER = "OTHER"


class CancellationReason(str, Enum):
    CHANGED_MIND = "CHANGED_MIND"
    FOUND_BETTER_PRICE = "FOUND_BETTER_PRICE"
    ORDERED_BY_MISTAKE = "ORDERED_BY_MISTAKE"
    DELIVERY_TOO_SLOW = "DELIVERY_TOO_SLOW"
    PAYMENT_ISSUE = "PAYMENT_ISSUE"
    OTHER = "OTHER"


class ReturnReason(str, Enum):
    DEFECTIVE = "DEFECTIVE"
    WRONG_ITEM = "WRONG_ITEM"
    NOT_AS_DESCRIBED = "NOT_AS_DESCRIBED"
    DAMAGED_IN_SHIPPING = "DAMAGED_IN_SHIPPING"
    QUALITY_ISSUE = "QUALITY_ISSUE"
    WRONG_SIZE = "WRONG_SIZE"
    CHANGED_MIND = "CHANGED_MIND"
    OTHER = "OTHER"


class ProductCondition(str, Enum):
    NEW = "NEW"
    OPENED = "OPENED"
    USED = "USED"
    DAMAGED = "DAMAGED"


class CancellationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class ReturnStatus(str, Enum):
    REQUESTED = "REQUESTED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SHIPPING_LABEL_SENT = "SHIPPING_LABEL_SENT"
    IN_TRANSIT = "IN_TRANSIT"
    RECEIVED = "RECEIVED"
    INSPECTING = "INSPECTING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"


def coerce_enum(enum_cls: Type[E], value: Any) -> Optional[E]:
    """Return the enum member for ``value`` or None when it is not a member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


# =============================================================================
# ORDER RECORDS
# =============================================================================

@dataclass
class OrderItem:
    """A line item snapshot taken when the order was placed."""
    id: str
    product_id: str
    name: str
    quantity: int
    unit_price: float
    total: float
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total": self.total,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderItem":
        quantity = int(data.get("quantity", 1))
        unit_price = float(data.get("unit_price", 0))
        return cls(
            id=data["id"],
            product_id=data.get("product_id", ""),
            name=data.get("name", ""),
            quantity=quantity,
            unit_price=unit_price,
            total=float(data.get("total", unit_price * quantity)),
            category=data.get("category"),
        )


@dataclass
class OrderTotals:
    subtotal: float = 0.0
    discount: float = 0.0
    shipping_cost: float = 0.0
    tax: float = 0.0
    total: float = 0.0

    def is_consistent(self) -> bool:
        """True when the grand total equals the sum of its components."""
        expected = self.subtotal - self.discount + self.shipping_cost + self.tax
        return round(expected, 2) == round(self.total, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "shipping_cost": self.shipping_cost,
            "tax": self.tax,
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderTotals":
        return cls(
            subtotal=float(data.get("subtotal", 0)),
            discount=float(data.get("discount", 0)),
            shipping_cost=float(data.get("shipping_cost", 0)),
            tax=float(data.get("tax", 0)),
            total=float(data.get("total", 0)),
        )


@dataclass(frozen=True)
class OrderEvent:
    """A timeline entry. Events are appended, never edited."""
    type: OrderEventType
    status: OrderStatus
    message: str
    created_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "status": self.status.value,
            "message": self.message,
            "created_at": format_date(self.created_at),
            "metadata": dict(self.metadata),
            "created_by": self.created_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderEvent":
        return cls(
            type=OrderEventType(data["type"]),
            status=OrderStatus(data["status"]),
            message=data.get("message", ""),
            created_at=parse_date(data.get("created_at")),
            metadata=dict(data.get("metadata") or {}),
            created_by=data.get("created_by"),
        )


@dataclass
class Order:
    """An order snapshot as read from the store."""
    id: str
    user_id: str
    items: List[OrderItem]
    totals: OrderTotals
    status: OrderStatus
    payment_status: PaymentStatus
    created_at: datetime
    order_number: Optional[str] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    estimated_delivery_at: Optional[datetime] = None
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    tracking_url: Optional[str] = None
    timeline: List[OrderEvent] = field(default_factory=list)

    def find_item(self, order_item_id: str) -> Optional[OrderItem]:
        for item in self.items:
            if item.id == order_item_id:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "items": [item.to_dict() for item in self.items],
            "totals": self.totals.to_dict(),
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "created_at": format_date(self.created_at),
            "delivered_at": format_date(self.delivered_at),
            "cancelled_at": format_date(self.cancelled_at),
            "shipped_at": format_date(self.shipped_at),
            "estimated_delivery_at": format_date(self.estimated_delivery_at),
            "tracking_number": self.tracking_number,
            "carrier": self.carrier,
            "tracking_url": self.tracking_url,
            "timeline": [event.to_dict() for event in self.timeline],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        created_at = parse_date(data.get("created_at"))
        if created_at is None:
            raise ValueError(f"Order {data.get('id')} has a missing or invalid created_at")
        return cls(
            id=data["id"],
            order_number=data.get("order_number"),
            user_id=data.get("user_id", ""),
            items=[OrderItem.from_dict(item) for item in data.get("items", [])],
            totals=OrderTotals.from_dict(data.get("totals") or {}),
            status=OrderStatus(data.get("status", OrderStatus.PENDING_PAYMENT.value)),
            payment_status=PaymentStatus(data.get("payment_status", PaymentStatus.PENDING.value)),
            created_at=created_at,
            delivered_at=parse_date(data.get("delivered_at")),
            cancelled_at=parse_date(data.get("cancelled_at")),
            shipped_at=parse_date(data.get("shipped_at")),
            estimated_delivery_at=parse_date(data.get("estimated_delivery_at")),
            tracking_number=data.get("tracking_number"),
            carrier=data.get("carrier"),
            tracking_url=data.get("tracking_url"),
            timeline=[OrderEvent.from_dict(event) for event in data.get("timeline", [])],
        )


# =============================================================================
# CANCELLATION / RETURN RECORDS
# =============================================================================

@dataclass(frozen=True)
class RefundBreakdown:
    """Itemised refund for a return, kept for audit."""
    items_total: float
    restock_fee: float
    shipping_refund: float
    final_refund: float
    refund_amount: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items_total": self.items_total,
            "restock_fee": self.restock_fee,
            "shipping_refund": self.shipping_refund,
            "final_refund": self.final_refund,
            "refund_amount": self.refund_amount,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefundBreakdown":
        return cls(
            items_total=float(data.get("items_total", 0)),
            restock_fee=float(data.get("restock_fee", 0)),
            shipping_refund=float(data.get("shipping_refund", 0)),
            final_refund=float(data.get("final_refund", 0)),
            refund_amount=float(data.get("refund_amount", 0)),
        )


@dataclass(frozen=True)
class ReturnItem:
    order_item_id: str
    quantity: int
    condition: ProductCondition = ProductCondition.NEW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_item_id": self.order_item_id,
            "quantity": self.quantity,
            "condition": self.condition.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReturnItem":
        return cls(
            order_item_id=data["order_item_id"],
            quantity=int(data.get("quantity", 1)),
            condition=ProductCondition(data.get("condition", ProductCondition.NEW.value)),
        )


@dataclass
class CancellationRequest:
    id: str
    order_id: str
    user_id: str
    reason: CancellationReason
    status: CancellationStatus
    refund_amount: float
    requested_at: datetime
    notes: str = ""
    processed_at: Optional[datetime] = None
    admin_notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "reason": self.reason.value,
            "status": self.status.value,
            "refund_amount": self.refund_amount,
            "requested_at": format_date(self.requested_at),
            "notes": self.notes,
            "processed_at": format_date(self.processed_at),
            "admin_notes": self.admin_notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CancellationRequest":
        return cls(
            id=data["id"],
            order_id=data["order_id"],
            user_id=data.get("user_id", ""),
            reason=CancellationReason(data["reason"]),
            status=CancellationStatus(data.get("status", CancellationStatus.PENDING.value)),
            refund_amount=float(data.get("refund_amount", 0)),
            requested_at=parse_date(data.get("requested_at")),
            notes=data.get("notes", ""),
            processed_at=parse_date(data.get("processed_at")),
            admin_notes=data.get("admin_notes"),
        )


@dataclass
class ReturnRequest:
    id: str
    order_id: str
    user_id: str
    items: List[ReturnItem]
    reason: ReturnReason
    status: ReturnStatus
    refund: RefundBreakdown
    free_return_shipping: bool
    requested_at: datetime
    notes: str = ""
    photos: List[str] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    @property
    def refund_amount(self) -> float:
        return self.refund.refund_amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "items": [item.to_dict() for item in self.items],
            "reason": self.reason.value,
            "status": self.status.value,
            "refund": self.refund.to_dict(),
            "refund_amount": self.refund_amount,
            "free_return_shipping": self.free_return_shipping,
            "requested_at": format_date(self.requested_at),
            "notes": self.notes,
            "photos": list(self.photos),
            "updated_at": format_date(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReturnRequest":
        return cls(
            id=data["id"],
            order_id=data["order_id"],
            user_id=data.get("user_id", ""),
            items=[ReturnItem.from_dict(item) for item in data.get("items", [])],
            reason=ReturnReason(data["reason"]),
            status=ReturnStatus(data.get("status", ReturnStatus.REQUESTED.value)),
            refund=RefundBreakdown.from_dict(data.get("refund") or {}),
            free_return_shipping=bool(data.get("free_return_shipping", False)),
            requested_at=parse_date(data.get("requested_at")),
            notes=data.get("notes", ""),
            photos=list(data.get("photos", [])),
            updated_at=parse_date(data.get("updated_at")),
        )
