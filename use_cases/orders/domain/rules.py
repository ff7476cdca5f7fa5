"""
Order business rules configuration.

The policy constants (windows, fees, thresholds, status sets) live in a
single immutable object that is handed to each policy at construction.
Tests build their own ``OrderRules`` to vary a window or a fee without
touching process-wide state.
"""

from dataclasses import dataclass, replace
from typing import Any, FrozenSet

from .models import OrderStatus


DEFAULT_NON_RETURNABLE_CATEGORIES = frozenset({
    "underwear",
    "swimwear",
    "cosmetics",
    "earrings",
    "digital-products",
    "gift-cards",
    "clearance",
    "final-sale",
})


@dataclass(frozen=True)
class OrderRules:
    """
    Business-policy constants for the order lifecycle.

    Attributes:
        cancellation_window_hours: Hours after creation during which an order may be cancelled
        return_window_days: Days after delivery during which a return may be requested
        restock_fee_percentage: Fraction of the returned items total kept on CHANGED_MIND returns
        free_return_shipping_threshold: Order total at or above which return shipping is free
        refund_processing_days: Days between return approval and the refund landing
        cancellable_statuses: Statuses from which cancellation may be requested
        returnable_statuses: Statuses from which a return may be requested
        non_returnable_categories: Lower-case product categories that are never returnable
        inclusive_window_boundary: When True, elapsed time exactly equal to a window is still inside it
    """
    cancellation_window_hours: float = 24
    return_window_days: float = 30
    restock_fee_percentage: float = 0.15
    free_return_shipping_threshold: float = 1000.0
    refund_processing_days: int = 7
    cancellable_statuses: FrozenSet[OrderStatus] = frozenset({
        OrderStatus.PENDING_PAYMENT,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.PAID,
        OrderStatus.PROCESSING,
    })
    returnable_statuses: FrozenSet[OrderStatus] = frozenset({OrderStatus.DELIVERED})
    non_returnable_categories: FrozenSet[str] = DEFAULT_NON_RETURNABLE_CATEGORIES
    inclusive_window_boundary: bool = True

    def __post_init__(self):
        if self.cancellation_window_hours < 0:
            raise ValueError("cancellation_window_hours must be >= 0")
        if self.return_window_days < 0:
            raise ValueError("return_window_days must be >= 0")
        if not 0 <= self.restock_fee_percentage <= 1:
            raise ValueError("restock_fee_percentage must be between 0 and 1")
        # Normalise so lookups can lower-case the input only.
        object.__setattr__(
            self,
            "non_returnable_categories",
            frozenset(c.lower() for c in self.non_returnable_categories),
        )

    def exceeds_window(self, elapsed: float, window: float) -> bool:
        """True when ``elapsed`` falls outside ``window`` under the boundary policy."""
        if self.inclusive_window_boundary:
            return elapsed > window
        return elapsed >= window

    def with_overrides(self, **changes: Any) -> "OrderRules":
        return replace(self, **changes)

    @classmethod
    def from_settings(cls, settings: Any) -> "OrderRules":
        """Build rules from the application ``Settings`` object."""
        return cls(
            cancellation_window_hours=settings.cancellation_window_hours,
            return_window_days=settings.return_window_days,
            restock_fee_percentage=settings.restock_fee_percentage,
            free_return_shipping_threshold=settings.free_return_shipping_threshold,
            refund_processing_days=settings.refund_processing_days,
        )
