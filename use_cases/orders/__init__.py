"""
Order Lifecycle Use Case.

Components:
- OrderLifecycleEngine: Pure rules for cancellation, returns, refunds and status transitions
- OrderService: Use cases that apply those rules to stored orders
- OrderRepository: Storage port the service depends on
- OrderCosmosClient: Cosmos DB implementation of the port

Usage:
    from use_cases.orders import OrderService, get_order_client

    service = OrderService(get_order_client())
    decision = service.check_cancellation("order-123")
"""

from use_cases.orders.domain import OrderLifecycleEngine, OrderRules
from use_cases.orders.data import OrderRepository
from use_cases.orders.service import OrderService
from use_cases.orders.cosmos_client import OrderCosmosClient, get_order_client

__all__ = [
    "OrderLifecycleEngine",
    "OrderRules",
    "OrderRepository",
    "OrderService",
    "OrderCosmosClient",
    "get_order_client",
]
