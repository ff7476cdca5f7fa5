"""
Shared modules for the Order Lifecycle Service.

This package contains shared configuration and utilities used across the application.
"""

from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    ORDER_CONTAINERS,
    ORDER_COUNTER_ID,
)

__all__ = [
    "COSMOS_ENDPOINT",
    "DATABASE_NAME",
    "ORDER_CONTAINERS",
    "ORDER_COUNTER_ID",
]
