"""
Move stale PAID orders to PROCESSING.

Meant to run on a schedule (for example hourly from cron or an Azure
Container Apps job). Orders that have sat in PAID for longer than
ORDER_EXPIRY_HOURS are advanced and get a SYSTEM timeline entry.

Usage:
    python scripts/advance_paid_orders.py [--max-age-hours 24]
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import settings
from use_cases.orders import OrderLifecycleEngine, OrderRules, OrderService, get_order_client

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logging.getLogger("azure").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--max-age-hours",
        type=float,
        default=settings.order_expiry_hours,
        help="Advance PAID orders older than this many hours",
    )
    args = parser.parse_args()

    service = OrderService(
        get_order_client(),
        OrderLifecycleEngine(OrderRules.from_settings(settings)),
        order_expiry_hours=settings.order_expiry_hours,
    )
    advanced = service.advance_stale_paid_orders(args.max_age_hours)
    for order_id in advanced:
        logger.info(f"  advanced {order_id}")


if __name__ == "__main__":
    main()
