"""Pytest fixtures: fixed clock, sample orders and an in-memory order store."""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from auth import ADMIN_ROLE, Caller
from use_cases.orders.data import OrderRepository
from use_cases.orders.domain import (
    CancellationRequest,
    Order,
    OrderEvent,
    OrderItem,
    OrderLifecycleEngine,
    OrderRules,
    OrderStatus,
    OrderTotals,
    PaymentStatus,
    ReturnRequest,
)
from use_cases.orders.service import OrderService

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class InMemoryOrderRepository(OrderRepository):
    """Dict-backed store. Reads return copies, like a real database."""

    def __init__(self):
        self.orders: Dict[str, Order] = {}
        self.cancellations: Dict[str, CancellationRequest] = {}
        self.returns: Dict[str, ReturnRequest] = {}
        self.products: Dict[str, int] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.notifications: List[Dict[str, Any]] = []
        self.counter = 0
        self.writes = 0
        self.fail_notifications = False

    def add_order(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    # ----- orders -----

    def get_by_id(self, id: str) -> Optional[Order]:
        return copy.deepcopy(self.orders.get(id))

    def update_order(self, order_id: str, changes: Dict[str, Any]) -> None:
        order = self.orders[order_id]
        for field, value in changes.items():
            setattr(order, field, value)
        self.writes += 1

    def append_event(self, order_id: str, event: OrderEvent) -> None:
        self.orders[order_id].timeline.append(event)
        self.writes += 1

    def next_order_sequence(self) -> int:
        self.counter += 1
        return self.counter

    def find_orders(self, status: OrderStatus, created_before: datetime) -> List[Order]:
        return [
            copy.deepcopy(order) for order in self.orders.values()
            if order.status == status and order.created_at < created_before
        ]

    # ----- cancellations -----

    def create_cancellation(self, cancellation: CancellationRequest) -> CancellationRequest:
        self.cancellations[cancellation.id] = copy.deepcopy(cancellation)
        self.writes += 1
        return cancellation

    def get_cancellation(self, cancellation_id: str) -> Optional[CancellationRequest]:
        return copy.deepcopy(self.cancellations.get(cancellation_id))

    def save_cancellation(self, cancellation: CancellationRequest) -> CancellationRequest:
        self.cancellations[cancellation.id] = copy.deepcopy(cancellation)
        self.writes += 1
        return cancellation

    # ----- returns -----

    def create_return(self, return_request: ReturnRequest) -> ReturnRequest:
        self.returns[return_request.id] = copy.deepcopy(return_request)
        self.writes += 1
        return return_request

    def get_return(self, return_id: str) -> Optional[ReturnRequest]:
        return copy.deepcopy(self.returns.get(return_id))

    def save_return(self, return_request: ReturnRequest) -> ReturnRequest:
        self.returns[return_request.id] = copy.deepcopy(return_request)
        self.writes += 1
        return return_request

    def get_returns_for_user(self, user_id: str) -> List[ReturnRequest]:
        matches = [r for r in self.returns.values() if r.user_id == user_id]
        return sorted(matches, key=lambda r: r.requested_at, reverse=True)

    def get_returns_for_order(self, order_id: str) -> List[ReturnRequest]:
        matches = [copy.deepcopy(r) for r in self.returns.values() if r.order_id == order_id]
        return sorted(matches, key=lambda r: r.requested_at)

    # ----- reference data -----

    def get_product_stock(self, product_id: str) -> Optional[int]:
        return self.products.get(product_id)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        for user in self.users.values():
            if user.get("email") == email:
                return user
        return None

    # ----- notifications -----

    def add_notification(self, notification: Dict[str, Any]) -> None:
        if self.fail_notifications:
            raise RuntimeError("notification store unavailable")
        self.notifications.append(notification)


def build_order(
    order_id: str = "order-1",
    user_id: str = "user-1",
    status: OrderStatus = OrderStatus.PAID,
    payment_status: PaymentStatus = PaymentStatus.CAPTURED,
    created_at: Optional[datetime] = None,
    delivered_at: Optional[datetime] = None,
    items: Optional[List[OrderItem]] = None,
    totals: Optional[OrderTotals] = None,
) -> Order:
    """
    Default order: two headphones at 50.00 plus one t-shirt at 30.00,
    10.00 shipping and 20.80 tax for a 160.80 total.
    """
    if items is None:
        items = [
            OrderItem(
                id="line-1", product_id="prod-headphones", name="Headphones",
                quantity=2, unit_price=50.0, total=100.0, category="electronics",
            ),
            OrderItem(
                id="line-2", product_id="prod-shirt", name="T-Shirt",
                quantity=1, unit_price=30.0, total=30.0, category="apparel",
            ),
        ]
    if totals is None:
        totals = OrderTotals(subtotal=130.0, discount=0.0, shipping_cost=10.0, tax=20.8, total=160.8)
    return Order(
        id=order_id,
        user_id=user_id,
        items=items,
        totals=totals,
        status=status,
        payment_status=payment_status,
        created_at=created_at or NOW - timedelta(hours=2),
        delivered_at=delivered_at,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def rules() -> OrderRules:
    return OrderRules()


@pytest.fixture
def engine(rules) -> OrderLifecycleEngine:
    return OrderLifecycleEngine(rules)


@pytest.fixture
def make_order():
    return build_order


@pytest.fixture
def paid_order() -> Order:
    return build_order()


@pytest.fixture
def delivered_order() -> Order:
    return build_order(
        status=OrderStatus.DELIVERED,
        created_at=NOW - timedelta(days=8),
        delivered_at=NOW - timedelta(days=5),
    )


@pytest.fixture
def repository() -> InMemoryOrderRepository:
    repo = InMemoryOrderRepository()
    repo.products = {"prod-headphones": 10, "prod-shirt": 5}
    return repo


@pytest.fixture
def service(repository, engine) -> OrderService:
    return OrderService(repository, engine, clock=lambda: NOW, order_expiry_hours=24)


@pytest.fixture
def owner() -> Caller:
    return Caller(user_id="user-1", email="ana@example.com")


@pytest.fixture
def stranger() -> Caller:
    return Caller(user_id="user-2", email="mark@example.com")


@pytest.fixture
def admin() -> Caller:
    return Caller(user_id="admin-1", email="admin@example.com", role=ADMIN_ROLE)
