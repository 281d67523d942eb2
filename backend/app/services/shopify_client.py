"""Shopify Admin REST API client and OAuth helpers.

WHAT:
    - Shop domain normalization/validation
    - OAuth authorize URL builder and authorization-code exchange
    - Order listing for a date window, enriched with per-order refunds

WHY:
    Encapsulates every outbound Shopify call so the metrics pipeline and the
    OAuth router only deal with plain dicts and the errors in app/errors.py.

REFERENCES:
    - Shopify OAuth: https://shopify.dev/docs/apps/auth/oauth
    - Orders REST API: https://shopify.dev/docs/api/admin-rest/2023-10/resources/order
    - Refunds REST API: https://shopify.dev/docs/api/admin-rest/2023-10/resources/refund
"""

import asyncio
import logging
import re
import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from app.errors import OrderFetchFailed, TokenExchangeFailed
from app.security import redact_secrets

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2023-10"
SHOP_DOMAIN_SUFFIX = ".myshopify.com"

# Single page only; stores with more orders in the window are truncated
ORDERS_PAGE_LIMIT = 250

# Store name: alphanumeric and hyphens, 3-100 chars
_SHOP_DOMAIN_PATTERN = re.compile(r"^[a-z0-9][a-z0-9\-]{1,98}[a-z0-9]\.myshopify\.com$")


@dataclass(frozen=True)
class ShopifyAppConfig:
    """Credentials and callback settings of the Shopify app.

    Passed explicitly into the token exchange and authorize-URL builder
    so neither reads process state.
    """

    client_id: str
    client_secret: str
    scopes: str
    redirect_base_url: str

    @property
    def redirect_uri(self) -> str:
        return f"{self.redirect_base_url.rstrip('/')}/auth/shopify/callback"


@dataclass(frozen=True)
class TokenGrant:
    """Result of a successful authorization-code exchange."""

    access_token: str
    scope: str


# =============================================================================
# DOMAIN HELPERS
# =============================================================================

def normalize_shop_domain(shop_input: str) -> str:
    """Normalize shop input to the canonical myshopify.com domain.

    Examples:
        'my-store' -> 'my-store.myshopify.com'
        'https://My-Store.myshopify.com/' -> 'my-store.myshopify.com'
        'https://my-store.myshopify.com/admin' -> 'my-store.myshopify.com'
    """
    shop = shop_input.strip().lower()

    shop = re.sub(r"^https?://", "", shop)
    # Remove any path components
    shop = shop.split("/")[0]

    shop = shop.replace(SHOP_DOMAIN_SUFFIX, "")
    return f"{shop}{SHOP_DOMAIN_SUFFIX}"


def validate_shop_domain(shop_domain: str) -> bool:
    """Check that the domain matches {store-name}.myshopify.com."""
    return bool(_SHOP_DOMAIN_PATTERN.match(shop_domain))


# =============================================================================
# OAUTH
# =============================================================================

def build_authorize_url(
    config: ShopifyAppConfig,
    shop_domain: str,
    state: Optional[str] = None,
) -> str:
    """Build the per-shop OAuth consent URL.

    A random state is generated when none is given.
    """
    params = {
        "client_id": config.client_id,
        "scope": config.scopes,  # Shopify uses comma-separated scopes
        "redirect_uri": config.redirect_uri,
        "state": state or secrets.token_urlsafe(16),
    }
    return f"https://{shop_domain}/admin/oauth/authorize?{urlencode(params)}"


async def exchange_code_for_token(
    config: ShopifyAppConfig,
    shop_domain: str,
    code: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> TokenGrant:
    """Exchange a one-time authorization code for an offline access token.

    WHAT:
        Single POST to the shop's token endpoint, no retry.
    WHY:
        Shopify hands back the code on the OAuth callback; the token is what
        every later Admin API call authenticates with.

    Args:
        config: App credentials.
        shop_domain: Canonical, already validated shop domain.
        code: Authorization code from the callback query string.
        client: Optional shared AsyncClient (tests inject a mock transport).

    Raises:
        TokenExchangeFailed: On any network error, non-2xx status or a body
            without an access token. The cause is logged, not re-raised.
    """
    url = f"https://{shop_domain}/admin/oauth/access_token"
    payload = {
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "code": code,
    }

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as owned_client:
                response = await owned_client.post(url, json=payload)
        else:
            response = await client.post(url, json=payload)
        response.raise_for_status()
        token_data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(
            "[SHOPIFY_OAUTH] Token exchange failed for %s: %s",
            shop_domain,
            redact_secrets({"status": e.response.status_code, "body": _safe_body(e.response)}),
        )
        raise TokenExchangeFailed(shop_domain) from e
    except (httpx.HTTPError, ValueError) as e:
        logger.error(
            "[SHOPIFY_OAUTH] Token exchange failed for %s: %s",
            shop_domain,
            redact_secrets(e),
        )
        raise TokenExchangeFailed(shop_domain) from e

    access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
    if not access_token:
        logger.error("[SHOPIFY_OAUTH] Missing access token in response for %s", shop_domain)
        raise TokenExchangeFailed(shop_domain)

    scope = token_data.get("scope", "")
    logger.info("[SHOPIFY_OAUTH] Token exchange successful for %s (scopes: %s)", shop_domain, scope)
    return TokenGrant(access_token=access_token, scope=scope)


def _safe_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


# =============================================================================
# ADMIN API CLIENT
# =============================================================================

class ShopifyClient:
    """REST client for the Shopify Admin API of one shop.

    Usage:
        client = ShopifyClient("mystore.myshopify.com", "shpat_xxx")
        orders = await client.fetch_orders(from_date, to_date)
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        *,
        timeout: float = 30.0,
        max_concurrency: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize Shopify client.

        Args:
            shop_domain: Shopify store domain (e.g., "mystore.myshopify.com")
            access_token: Shopify Admin API access token
            api_version: API version to use
            timeout: Per-request timeout in seconds
            max_concurrency: Cap on simultaneous refund requests (None = unbounded)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            logger: Optional logger; defaults to this module's logger
        """
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.base_url = f"https://{shop_domain}/admin/api/{api_version}"
        self._transport = transport
        self._log = logger if logger is not None else logging.getLogger(__name__)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }

    def _rest_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self.headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def fetch_orders(self, from_date: str, to_date: str) -> List[Dict[str, Any]]:
        """Fetch orders created in [from_date, to_date], each with its refunds.

        WHAT:
            1. One GET to orders.json (status=any, limit=250, no cursor following)
            2. One GET to orders/{id}/refunds.json per order, run concurrently
        WHY:
            The REST order payload does not embed refund amounts in the shape
            the metrics reducer reads, so refunds are fetched per order.

        Returns:
            Orders as returned by Shopify, each a copy with a `refunds` list.
            A failed refund fetch leaves that order with `refunds=[]`.

        Raises:
            OrderFetchFailed: If the order listing itself fails or is not a list of orders.
        """
        params = {
            "created_at_min": from_date,
            "created_at_max": to_date,
            "status": "any",
            "limit": ORDERS_PAGE_LIMIT,
        }
        url = self._rest_url("orders.json")

        async with self._client() as client:
            orders = await self._list_orders(client, url, params)

            semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
            enriched = await asyncio.gather(
                *(self._with_refunds(client, order, semaphore) for order in orders)
            )

        self._log.info(
            "[SHOPIFY_CLIENT] Fetched %d orders with refunds for %s",
            len(enriched),
            self.shop_domain,
        )
        return list(enriched)

    async def _list_orders(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        self._log.info(
            "[SHOPIFY_CLIENT] Fetching orders from Shopify: %s",
            redact_secrets({"url": url, "params": params}),
        )

        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            body = _safe_body(e.response)
            self._log.error(
                "[SHOPIFY_CLIENT] Shopify API error listing orders: %s",
                redact_secrets({"status": status_code, "data": body}),
            )
            raise OrderFetchFailed(
                f"Shopify API Error: {status_code}", status_code=status_code, body=body
            ) from e
        except httpx.HTTPError as e:
            self._log.error(
                "[SHOPIFY_CLIENT] Failed to fetch orders from Shopify: %s", redact_secrets(e)
            )
            raise OrderFetchFailed("Failed to fetch orders from Shopify API") from e
        except ValueError as e:
            self._log.error("[SHOPIFY_CLIENT] Orders response is not valid JSON: %s", e)
            raise OrderFetchFailed(
                "Shopify returned an unreadable orders response",
                status_code=response.status_code,
                body=response.text,
            ) from e

        orders = data.get("orders") if isinstance(data, dict) else None
        if orders is None:
            return []
        if not isinstance(orders, list) or not all(isinstance(order, dict) for order in orders):
            self._log.error(
                "[SHOPIFY_CLIENT] Unexpected orders payload shape: %s",
                redact_secrets({"status": response.status_code, "data": data}),
            )
            raise OrderFetchFailed(
                "Shopify returned a malformed orders list",
                status_code=response.status_code,
                body=data,
            )
        return orders

    async def _with_refunds(
        self,
        client: httpx.AsyncClient,
        order: Dict[str, Any],
        semaphore: Optional[asyncio.Semaphore],
    ) -> Dict[str, Any]:
        if semaphore is None:
            refunds = await self._fetch_refunds(client, order.get("id"))
        else:
            async with semaphore:
                refunds = await self._fetch_refunds(client, order.get("id"))
        return {**order, "refunds": refunds}

    async def _fetch_refunds(self, client: httpx.AsyncClient, order_id: Any) -> List[Dict[str, Any]]:
        """Fetch refunds of one order; any failure degrades to an empty list."""
        try:
            response = await client.get(self._rest_url(f"orders/{order_id}/refunds.json"))
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self._log.error(
                "[SHOPIFY_CLIENT] Failed to fetch refunds for order %s: %s",
                order_id,
                redact_secrets(e),
            )
            return []

        refunds = data.get("refunds") if isinstance(data, dict) else None
        return refunds or []
