"""
Shop Metrics Exceptions
=======================

Error taxonomy for the OAuth handshake and the metrics pipeline.

WHY THIS FILE EXISTS
--------------------
Each failure mode is handled differently by the callers:
- TokenExchangeFailed: OAuth callback redirects with a generic error code
- OrderFetchFailed: metrics request degrades to an all-zero summary
- StoreNotFound: endpoint responds 404
- InternalFailure: endpoint responds 500

RELATED FILES
-------------
- app/services/shopify_client.py: Raises TokenExchangeFailed, OrderFetchFailed
- app/services/metrics_service.py: Raises StoreNotFound, absorbs OrderFetchFailed
- app/routers/shopify_oauth.py, app/routers/shops.py: Map errors to responses
"""

from typing import Any, Optional


class ShopMetricsError(Exception):
    """
    Base exception for all shop metrics errors.

    Allows catching every domain error with a single except clause
    while still being able to handle specific error types.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TokenExchangeFailed(ShopMetricsError):
    """OAuth authorization code could not be exchanged for an access token."""

    def __init__(self, shop_domain: str):
        super().__init__(f"Failed to exchange authorization code for access token ({shop_domain})")
        self.shop_domain = shop_domain


class OrderFetchFailed(ShopMetricsError):
    """
    The order listing call failed.

    WHAT:
        Carries the upstream HTTP status and response body when Shopify
        answered; both are None on transport errors (DNS, timeout, reset).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[Any] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class StoreNotFound(ShopMetricsError):
    """No connected shop exists for the given identifier."""

    def __init__(self, shop_id: str):
        super().__init__(f"Shop not found: {shop_id}")
        self.shop_id = shop_id


class InternalFailure(ShopMetricsError):
    """Unexpected failure not covered by the other error types."""
