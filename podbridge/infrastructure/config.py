"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://podbridge:podbridge_dev_password@db:5432/podbridge"
    document_store: str = "memory"  # "memory" or "sql"

    # Authentication
    podbridge_api_key: str = "dev-api-key-change-in-production"
    pubsub_verification_token: str = "dev-pubsub-token-change-in-production"

    # Encryption (Fernet key for merchant access tokens at rest)
    token_encryption_key: str = "ZGV2LWVuY3J5cHRpb24ta2V5LWNoYW5nZS1pdC0xMjM="

    # Shopify
    shopify_api_version: str = "2024-01"
    shopify_timeout: float = 30.0
    pod_shop: str = "bigly-pod"
    pod_access_token: str = ""

    # ShipEngine
    shipengine_url: str = "https://api.shipengine.com/v1"
    shipengine_api_key: str = ""
    shipengine_carrier_ids: list[str] = ["se-3347170"]
    shipengine_preferred_service: str = "USPS Ground Advantage"
    ship_from_name: str = "Bigly POD"
    ship_from_phone: str = "5012406984"
    ship_from_company: str = "Bigly"
    ship_from_address: str = "3049 North College Avenue"
    ship_from_city: str = "Fayetteville"
    ship_from_state: str = "AR"
    ship_from_postal_code: str = "72703"
    ship_from_country: str = "US"

    # Billing
    usage_plan_name: str = "Pay As You Go"
    usage_surcharge: Decimal = Decimal("2.00")
    wholesale_discount_threshold: int = 25
    wholesale_discount_multiplier: Decimal = Decimal("0.95")

    # Orders
    default_item_weight_grams: int = 85
    order_page_size: int = 25
    dispatch_on_create: bool = True

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
