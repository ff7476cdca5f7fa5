"""
Configuration module for the Order Lifecycle Service.
Loads settings from environment variables and an optional .env file.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_name: str = Field(
        default="E-Commerce Platform",
        alias="APP_NAME",
        description="Application name for notifications"
    )
    app_url: str = Field(
        default="https://shop.example.com",
        alias="APP_URL",
        description="Base URL of the storefront"
    )
    app_host: str = Field(
        default="0.0.0.0",
        alias="APP_HOST",
        description="Host to bind the application"
    )
    app_port: int = Field(
        default=8000,
        alias="APP_PORT",
        description="Port to bind the application"
    )
    support_email: str = Field(
        default="support@shop.example.com",
        alias="SUPPORT_EMAIL",
        description="Support email address"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level"
    )

    # Order Business Rules
    cancellation_window_hours: float = Field(
        default=24,
        alias="CANCELLATION_WINDOW_HOURS",
        description="Hours after purchase during which an order can be cancelled"
    )
    return_window_days: float = Field(
        default=30,
        alias="RETURN_WINDOW_DAYS",
        description="Days after delivery during which a return can be requested"
    )
    restock_fee_percentage: float = Field(
        default=0.15,
        alias="RESTOCK_FEE_PERCENTAGE",
        ge=0,
        le=1,
        description="Fraction of the items total kept when the buyer changed their mind"
    )
    free_return_shipping_threshold: float = Field(
        default=1000.0,
        alias="FREE_RETURN_SHIPPING_THRESHOLD",
        description="Order total at or above which return shipping is free"
    )
    refund_processing_days: int = Field(
        default=7,
        alias="REFUND_PROCESSING_DAYS",
        description="Business days for a refund to be processed"
    )
    order_expiry_hours: float = Field(
        default=24,
        alias="ORDER_EXPIRY_HOURS",
        description="Hours a paid order may wait before it is moved to processing"
    )

    # Sessions
    session_ttl_hours: int = Field(
        default=24,
        alias="SESSION_TTL_HOURS",
        description="Lifetime of a login session"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()
