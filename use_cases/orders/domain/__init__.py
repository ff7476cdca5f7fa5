"""
Order Lifecycle Domain Layer.

Contains pure business logic for the order lifecycle: eligibility,
refunds, status transitions, tracking maps and timeline text.
No database access or I/O - just business rules.
"""

from .engine import OrderLifecycleEngine
from .errors import (
    CancellationNotFoundError,
    InvalidStatusTransitionError,
    OrderCancellationError,
    OrderError,
    OrderNotFoundError,
    OrderPermissionError,
    OrderReturnError,
    OrderValidationError,
    ReturnNotFoundError,
)
from .models import (
    CancellationReason,
    CancellationRequest,
    CancellationStatus,
    Order,
    OrderCarrier,
    OrderEvent,
    OrderEventType,
    OrderItem,
    OrderStatus,
    OrderTotals,
    PaymentStatus,
    ProductCondition,
    RefundBreakdown,
    ReturnItem,
    ReturnReason,
    ReturnRequest,
    ReturnStatus,
    ShippingStatus,
)
from .rules import OrderRules

__all__ = [
    "OrderLifecycleEngine",
    "OrderRules",
    # Errors
    "CancellationNotFoundError",
    "InvalidStatusTransitionError",
    "OrderCancellationError",
    "OrderError",
    "OrderNotFoundError",
    "OrderPermissionError",
    "OrderReturnError",
    "OrderValidationError",
    "ReturnNotFoundError",
    # Models
    "CancellationReason",
    "CancellationRequest",
    "CancellationStatus",
    "Order",
    "OrderCarrier",
    "OrderEvent",
    "OrderEventType",
    "OrderItem",
    "OrderStatus",
    "OrderTotals",
    "PaymentStatus",
    "ProductCondition",
    "RefundBreakdown",
    "ReturnItem",
    "ReturnReason",
    "ReturnRequest",
    "ReturnStatus",
    "ShippingStatus",
]
