"""
Cosmos DB Client for the Orders Use Case.

Implements ``OrderRepository`` on Azure Cosmos DB.
Uses DefaultAzureCredential for flexible authentication.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from azure.cosmos import CosmosClient
from azure.cosmos.exceptions import CosmosResourceExistsError, CosmosResourceNotFoundError
from azure.identity import DefaultAzureCredential

from core.domain import format_date

# Import shared configuration
from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    ORDER_CONTAINER_NAMES,
    ORDER_COUNTER_ID,
)

from .data import OrderRepository
from .domain.models import (
    CancellationRequest,
    Order,
    OrderEvent,
    OrderStatus,
    ReturnRequest,
)

logger = logging.getLogger(__name__)


def _to_document_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return format_date(value)
    return value


class OrderCosmosClient(OrderRepository):
    """Order storage backed by Cosmos DB containers."""

    def __init__(self, endpoint: str = COSMOS_ENDPOINT, database_name: str = DATABASE_NAME):
        """Initialize the Cosmos DB client."""
        logger.info("Initializing Orders Cosmos DB client...")
        self._credential = DefaultAzureCredential(
            exclude_interactive_browser_credential=False,
            exclude_shared_token_cache_credential=False,
        )
        self._client = CosmosClient(endpoint, credential=self._credential)
        self._database = self._client.get_database_client(database_name)
        self._containers = {}
        logger.info(f"Orders Cosmos DB client initialized: {database_name}")

    def _get_container(self, name: str):
        """Get a container client, caching for reuse."""
        if name not in self._containers:
            container_name = ORDER_CONTAINER_NAMES.get(name, name)
            self._containers[name] = self._database.get_container_client(container_name)
        return self._containers[name]

    def _read(self, container_name: str, item_id: str, partition_key: Optional[str] = None):
        container = self._get_container(container_name)
        try:
            return container.read_item(item=item_id, partition_key=partition_key or item_id)
        except CosmosResourceNotFoundError:
            return None

    # =========================================================================
    # ORDER OPERATIONS
    # =========================================================================

    def get_by_id(self, id: str) -> Optional[Order]:
        """Get a specific order by ID."""
        doc = self._read("orders", id)
        return Order.from_dict(doc) if doc else None

    def update_order(self, order_id: str, changes: Dict[str, Any]) -> None:
        operations = [
            {"op": "set", "path": f"/{field}", "value": _to_document_value(value)}
            for field, value in changes.items()
        ]
        if not operations:
            return
        self._get_container("orders").patch_item(
            item=order_id,
            partition_key=order_id,
            patch_operations=operations,
        )

    def append_event(self, order_id: str, event: OrderEvent) -> None:
        # "add" at "/timeline/-" appends without rewriting earlier entries.
        self._get_container("orders").patch_item(
            item=order_id,
            partition_key=order_id,
            patch_operations=[
                {"op": "add", "path": "/timeline/-", "value": event.to_dict()},
            ],
        )

    def next_order_sequence(self) -> int:
        """Increment the order counter with a server-side ``incr`` patch."""
        container = self._get_container("counters")
        increment = [{"op": "incr", "path": "/count", "value": 1}]
        try:
            doc = container.patch_item(
                item=ORDER_COUNTER_ID,
                partition_key=ORDER_COUNTER_ID,
                patch_operations=increment,
            )
            return int(doc["count"])
        except CosmosResourceNotFoundError:
            pass

        try:
            container.create_item({"id": ORDER_COUNTER_ID, "count": 1})
            return 1
        except CosmosResourceExistsError:
            # Another writer created the counter first.
            doc = container.patch_item(
                item=ORDER_COUNTER_ID,
                partition_key=ORDER_COUNTER_ID,
                patch_operations=increment,
            )
            return int(doc["count"])

    def find_orders(self, status: OrderStatus, created_before: datetime) -> List[Order]:
        container = self._get_container("orders")
        query = "SELECT * FROM c WHERE c.status = @status AND c.created_at < @cutoff"
        params = [
            {"name": "@status", "value": status.value},
            {"name": "@cutoff", "value": format_date(created_before)},
        ]
        docs = container.query_items(query, parameters=params, enable_cross_partition_query=True)
        return [Order.from_dict(doc) for doc in docs]

    # =========================================================================
    # CANCELLATION OPERATIONS
    # =========================================================================

    def create_cancellation(self, cancellation: CancellationRequest) -> CancellationRequest:
        self._get_container("cancellations").create_item(cancellation.to_dict())
        return cancellation

    def get_cancellation(self, cancellation_id: str) -> Optional[CancellationRequest]:
        doc = self._read("cancellations", cancellation_id)
        return CancellationRequest.from_dict(doc) if doc else None

    def save_cancellation(self, cancellation: CancellationRequest) -> CancellationRequest:
        self._get_container("cancellations").upsert_item(cancellation.to_dict())
        return cancellation

    # =========================================================================
    # RETURN OPERATIONS
    # =========================================================================

    def create_return(self, return_request: ReturnRequest) -> ReturnRequest:
        self._get_container("returns").create_item(return_request.to_dict())
        return return_request

    def get_return(self, return_id: str) -> Optional[ReturnRequest]:
        doc = self._read("returns", return_id)
        return ReturnRequest.from_dict(doc) if doc else None

    def save_return(self, return_request: ReturnRequest) -> ReturnRequest:
        self._get_container("returns").upsert_item(return_request.to_dict())
        return return_request

    def get_returns_for_user(self, user_id: str) -> List[ReturnRequest]:
        """Get all returns for a user, newest first."""
        container = self._get_container("returns")
        query = "SELECT * FROM c WHERE c.user_id = @user_id ORDER BY c.requested_at DESC"
        params = [{"name": "@user_id", "value": user_id}]
        docs = container.query_items(query, parameters=params, enable_cross_partition_query=True)
        return [ReturnRequest.from_dict(doc) for doc in docs]

    def get_returns_for_order(self, order_id: str) -> List[ReturnRequest]:
        container = self._get_container("returns")
        query = "SELECT * FROM c WHERE c.order_id = @order_id ORDER BY c.requested_at ASC"
        params = [{"name": "@order_id", "value": order_id}]
        docs = container.query_items(query, parameters=params, enable_cross_partition_query=True)
        return [ReturnRequest.from_dict(doc) for doc in docs]

    # =========================================================================
    # REFERENCE DATA
    # =========================================================================

    def get_product_stock(self, product_id: str) -> Optional[int]:
        doc = self._read("products", product_id)
        if doc is None:
            return None
        return int(doc.get("stock", 0))

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._read("users", user_id)

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Look up a user by email address."""
        container = self._get_container("users")
        query = "SELECT * FROM c WHERE c.email = @email"
        params = [{"name": "@email", "value": email}]

        items = list(container.query_items(query, parameters=params, enable_cross_partition_query=True))
        return items[0] if items else None

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def add_notification(self, notification: Dict[str, Any]) -> None:
        self._get_container("notifications").create_item(notification)


# Singleton instance
_client: Optional[OrderCosmosClient] = None


def get_order_client() -> OrderCosmosClient:
    """Get the singleton Cosmos DB client instance."""
    global _client
    if _client is None:
        _client = OrderCosmosClient()
    return _client
