"""
Cosmos DB Data Population Script for the Order Lifecycle Service.

Populates sample users, products and orders into Azure Cosmos DB using
AzureCliCredential. Order dates are placed relative to the current time so
the samples land inside (and just outside) the cancellation and return
windows.

Usage:
    python scripts/populate_cosmosdb.py

Environment:
    COSMOS_ENDPOINT - Override the default Cosmos DB endpoint
    COSMOS_DATABASE - Override the default database name

Containers Required:
    - Orders              (partition: /id)
    - Counters            (partition: /id)
    - OrderCancellations  (partition: /id)
    - OrderReturns        (partition: /id)
    - Notifications       (partition: /user_id)
    - Users               (partition: /id)
    - Products            (partition: /id)
"""

import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from azure.cosmos import CosmosClient
from azure.cosmos.exceptions import CosmosHttpResponseError
from azure.identity import AzureCliCredential

from auth import ADMIN_ROLE, USER_ROLE, hash_password

# Import configuration from shared module
from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    ORDER_CONTAINERS,
)

from use_cases.orders.domain import (
    Order,
    OrderCarrier,
    OrderItem,
    OrderStatus,
    OrderTotals,
    PaymentStatus,
)

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo123"


# =============================================================================
# SAMPLE DATA
# =============================================================================

def prepare_users() -> List[Dict[str, Any]]:
    """Demo accounts; every account uses DEMO_PASSWORD."""
    users = [
        ("user-001", "ana.lopez@email.com", "Ana Lopez", USER_ROLE),
        ("user-002", "mark.chen@email.com", "Mark Chen", USER_ROLE),
        ("admin-001", "admin@shop.example.com", "Store Admin", ADMIN_ROLE),
    ]
    return [
        {
            "id": user_id,
            "email": email,
            "display_name": name,
            "role": role,
            "password_hash": hash_password(DEMO_PASSWORD),
        }
        for user_id, email, name, role in users
    ]


def prepare_products() -> List[Dict[str, Any]]:
    return [
        {"id": "prod-headphones", "name": "Wireless Headphones", "category": "electronics", "price": 89.99, "stock": 40},
        {"id": "prod-laptop", "name": "14\" Ultrabook", "category": "electronics", "price": 1199.00, "stock": 5},
        {"id": "prod-swimsuit", "name": "One-piece Swimsuit", "category": "swimwear", "price": 45.00, "stock": 12},
        {"id": "prod-jacket", "name": "Rain Jacket", "category": "apparel", "price": 120.00, "stock": 0},
        {"id": "prod-giftcard", "name": "Gift Card $50", "category": "gift-cards", "price": 50.00, "stock": 999},
    ]


def _line(line_id: str, product: Dict[str, Any], quantity: int) -> OrderItem:
    return OrderItem(
        id=line_id,
        product_id=product["id"],
        name=product["name"],
        quantity=quantity,
        unit_price=product["price"],
        total=round(product["price"] * quantity, 2),
        category=product["category"],
    )


def _totals(items: List[OrderItem], shipping_cost: float) -> OrderTotals:
    subtotal = round(sum(item.total for item in items), 2)
    tax = round(subtotal * 0.16, 2)
    return OrderTotals(
        subtotal=subtotal,
        discount=0.0,
        shipping_cost=shipping_cost,
        tax=tax,
        total=round(subtotal + shipping_cost + tax, 2),
    )


def prepare_orders(now: datetime) -> List[Dict[str, Any]]:
    """
    One order per interesting lifecycle state:
    - just paid (cancellable)
    - paid two days ago (outside the cancellation window, picked up by the stale-order job)
    - shipped with tracking
    - delivered last week (returnable)
    - delivered two months ago (return window expired)
    - delivered swimwear (non-returnable category)
    """
    products = {p["id"]: p for p in prepare_products()}
    specs = [
        ("order-1001", "user-001", OrderStatus.PAID, timedelta(hours=2), None,
         [("line-1", "prod-headphones", 1)]),
        ("order-1002", "user-001", OrderStatus.PAID, timedelta(days=2), None,
         [("line-1", "prod-jacket", 2)]),
        ("order-1003", "user-002", OrderStatus.SHIPPED, timedelta(days=3), None,
         [("line-1", "prod-laptop", 1)]),
        ("order-1004", "user-001", OrderStatus.DELIVERED, timedelta(days=9), timedelta(days=7),
         [("line-1", "prod-headphones", 2), ("line-2", "prod-jacket", 1)]),
        ("order-1005", "user-002", OrderStatus.DELIVERED, timedelta(days=65), timedelta(days=60),
         [("line-1", "prod-headphones", 1)]),
        ("order-1006", "user-002", OrderStatus.DELIVERED, timedelta(days=6), timedelta(days=4),
         [("line-1", "prod-swimsuit", 1), ("line-2", "prod-giftcard", 1)]),
    ]

    orders = []
    for order_id, user_id, status, age, delivered_ago, lines in specs:
        items = [_line(line_id, products[pid], qty) for line_id, pid, qty in lines]
        order = Order(
            id=order_id,
            user_id=user_id,
            items=items,
            totals=_totals(items, shipping_cost=9.99),
            status=status,
            payment_status=PaymentStatus.CAPTURED,
            created_at=now - age,
            delivered_at=now - delivered_ago if delivered_ago else None,
        )
        if status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            order.carrier = OrderCarrier.DHL.value
            order.tracking_number = f"DHL{order_id[-4:]}00"
            order.shipped_at = now - age + timedelta(days=1)
        orders.append(order.to_dict())
    return orders


# =============================================================================
# COSMOS DB OPERATIONS
# =============================================================================

def upsert_items(container, items: List[Dict[str, Any]]) -> int:
    """Upsert items into a container."""
    count = 0
    for item in items:
        try:
            container.upsert_item(item)
            count += 1
        except CosmosHttpResponseError as e:
            logger.error(f"Failed to upsert item {item.get('id')}: {e}")
    return count


def main():
    """Main function to populate Cosmos DB with sample order data."""
    logger.info("=" * 60)
    logger.info("Order Lifecycle - Cosmos DB Population Script")
    logger.info("=" * 60)
    logger.info(f"Endpoint: {COSMOS_ENDPOINT}")
    logger.info(f"Database: {DATABASE_NAME}")
    logger.info("Authentication: AzureCliCredential")
    logger.info("=" * 60)

    logger.info("\nAuthenticating with Azure CLI...")
    credential = AzureCliCredential()

    client = CosmosClient(COSMOS_ENDPOINT, credential=credential)

    # Get database
    logger.info(f"Connecting to database '{DATABASE_NAME}'...")
    try:
        database = client.get_database_client(DATABASE_NAME)
        database.read()
        logger.info(f"Database '{DATABASE_NAME}' found")
    except CosmosHttpResponseError as e:
        logger.error(f"Database '{DATABASE_NAME}' not found or access denied: {e}")
        logger.error("Please create the database first or check RBAC permissions")
        return

    now = datetime.now(timezone.utc)
    data_sets = [
        ("users", prepare_users()),
        ("products", prepare_products()),
        ("orders", prepare_orders(now)),
    ]

    logger.info("\n--- Order Containers (pre-created via Azure CLI) ---")
    for key, (container_name, partition_key) in ORDER_CONTAINERS.items():
        logger.info(f"  {container_name} (partition: {partition_key})")

    logger.info("\n--- Populating Sample Data ---")
    total_items = 0
    for key, items in data_sets:
        container_name, _ = ORDER_CONTAINERS[key]
        container = database.get_container_client(container_name)
        count = upsert_items(container, items)
        logger.info(f"  {container_name}: {count} items")
        total_items += count

    logger.info("\n" + "=" * 60)
    logger.info(f"COMPLETE: {total_items} total items populated")
    logger.info(f"Demo password for every account: {DEMO_PASSWORD}")
    logger.info("=" * 60)

    logger.info("\n--- Azure CLI Commands to Create All Containers ---")
    logger.info("# If containers don't exist, run these commands:")
    for key, (container_name, partition_key) in ORDER_CONTAINERS.items():
        logger.info(f'az cosmosdb sql container create --account-name "<account>" --database-name "{DATABASE_NAME}" --name "{container_name}" --partition-key-path "{partition_key}" --resource-group "<resource-group>"')


if __name__ == "__main__":
    main()
