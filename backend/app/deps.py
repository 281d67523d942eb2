"""Dependency providers and settings management."""

from functools import lru_cache
from typing import Callable, List, Optional

from fastapi import HTTPException, status
from pydantic_settings import BaseSettings, SettingsConfigDict

from .services.shopify_client import ShopifyAppConfig, ShopifyClient


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Shopify app credentials (Shopify Partners dashboard)
    SHOPIFY_API_KEY: Optional[str] = None
    SHOPIFY_API_SECRET: Optional[str] = None
    SHOPIFY_SCOPES: str = "read_orders,read_products,read_customers"
    SHOPIFY_API_VERSION: str = "2023-10"

    # Public URL of this backend (OAuth redirect_uri base) and of the dashboard
    APP_URL: Optional[str] = None
    FRONTEND_URL: str = "http://localhost:3000"

    # Outbound call limits
    SHOPIFY_REQUEST_TIMEOUT: float = 30.0
    SHOPIFY_REFUND_CONCURRENCY: int = 10  # 0 = unbounded

    # Reporting
    BUSINESS_TIMEZONE: str = "Asia/Dubai"
    FALLBACK_CURRENCY: str = "CAD"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]

    def missing_shopify_config(self) -> List[str]:
        missing = []
        if not self.SHOPIFY_API_KEY:
            missing.append("SHOPIFY_API_KEY")
        if not self.SHOPIFY_API_SECRET:
            missing.append("SHOPIFY_API_SECRET")
        if not self.APP_URL:
            missing.append("APP_URL")
        return missing

    def shopify_app_config(self) -> ShopifyAppConfig:
        return ShopifyAppConfig(
            client_id=self.SHOPIFY_API_KEY or "",
            client_secret=self.SHOPIFY_API_SECRET or "",
            scopes=self.SHOPIFY_SCOPES,
            redirect_base_url=self.APP_URL or "",
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_shopify_app_config() -> ShopifyAppConfig:
    """Resolve the Shopify app config, failing with 503 when it is incomplete."""
    settings = get_settings()
    missing = settings.missing_shopify_config()
    if missing:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Shopify integration not configured. Missing: {', '.join(missing)}",
        )
    return settings.shopify_app_config()


ShopifyClientFactory = Callable[[str, str], ShopifyClient]


def get_shopify_client_factory() -> ShopifyClientFactory:
    """Return a factory building ShopifyClient instances from (shop_domain, access_token).

    Tests override this dependency to inject an httpx mock transport.
    """
    settings = get_settings()

    def factory(shop_domain: str, access_token: str) -> ShopifyClient:
        return ShopifyClient(
            shop_domain,
            access_token,
            api_version=settings.SHOPIFY_API_VERSION,
            timeout=settings.SHOPIFY_REQUEST_TIMEOUT,
            max_concurrency=settings.SHOPIFY_REFUND_CONCURRENCY or None,
        )

    return factory
