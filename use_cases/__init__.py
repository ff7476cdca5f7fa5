"""
Use Cases Package.

Each use case is a self-contained module with its own:
- domain/: Pure business logic (models, policies, services)
- data.py: Repository port for data access
- cosmos_client.py: Cosmos DB adapter
- service.py: Orchestration of domain rules over stored data

Available use cases:
- orders: Order lifecycle (cancellations, returns, tracking, status changes)
"""

from use_cases.orders import OrderLifecycleEngine, OrderService, get_order_client

__all__ = [
    "OrderLifecycleEngine",
    "OrderService",
    "get_order_client",
]
