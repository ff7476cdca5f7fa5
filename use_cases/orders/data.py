"""
Order data port.

The orchestration layer talks to storage only through ``OrderRepository``.
Implementations must provide point reads and writes, append-only timeline
writes, and an atomic counter for order numbers.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.data import Repository

from .domain.models import (
    CancellationRequest,
    Order,
    OrderEvent,
    OrderStatus,
    ReturnRequest,
)


class OrderRepository(Repository[Order]):
    """
    Storage operations needed by ``OrderService``.

    ``update_order`` receives domain values (enums, datetimes); converting
    them to the stored representation is the implementation's job.
    """

    # ----- orders -----

    @abstractmethod
    def update_order(self, order_id: str, changes: Dict[str, Any]) -> None:
        """Set top-level fields on an order document."""
        pass

    @abstractmethod
    def append_event(self, order_id: str, event: OrderEvent) -> None:
        """Append an event to the order timeline. Existing events are never touched."""
        pass

    @abstractmethod
    def next_order_sequence(self) -> int:
        """Atomically increment and return the order counter."""
        pass

    @abstractmethod
    def find_orders(self, status: OrderStatus, created_before: datetime) -> List[Order]:
        """Orders in ``status`` created strictly before ``created_before``."""
        pass

    # ----- cancellations -----

    @abstractmethod
    def create_cancellation(self, cancellation: CancellationRequest) -> CancellationRequest:
        pass

    @abstractmethod
    def get_cancellation(self, cancellation_id: str) -> Optional[CancellationRequest]:
        pass

    @abstractmethod
    def save_cancellation(self, cancellation: CancellationRequest) -> CancellationRequest:
        pass

    # ----- returns -----

    @abstractmethod
    def create_return(self, return_request: ReturnRequest) -> ReturnRequest:
        pass

    @abstractmethod
    def get_return(self, return_id: str) -> Optional[ReturnRequest]:
        pass

    @abstractmethod
    def save_return(self, return_request: ReturnRequest) -> ReturnRequest:
        pass

    @abstractmethod
    def get_returns_for_user(self, user_id: str) -> List[ReturnRequest]:
        """Returns raised by a user, newest first."""
        pass

    @abstractmethod
    def get_returns_for_order(self, order_id: str) -> List[ReturnRequest]:
        """Every return raised against an order, oldest first."""
        pass

    # ----- reference data -----

    @abstractmethod
    def get_product_stock(self, product_id: str) -> Optional[int]:
        """Units on hand, or None when the product does not exist."""
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        pass

    # ----- notifications -----

    @abstractmethod
    def add_notification(self, notification: Dict[str, Any]) -> None:
        pass
