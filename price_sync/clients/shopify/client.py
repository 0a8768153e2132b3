"""
Shopify GraphQL Admin API client.
"""

import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from ...db.models import Platform
from ...errors import (
    AuthenticationError, ClientError, FetchError, NotAuthenticatedError, UpdateError
)
from ...processor.rules import format_price, parse_price
from ..base import error_message, parse_retry_after
from ..models import PlatformProduct
from .mutations import PRODUCT_VARIANTS_BULK_UPDATE
from .queries import SHOP_QUERY, VARIANTS_QUERY

logger = logging.getLogger(__name__)


class ShopifyRateLimitError(ClientError):
    """Rate limit exceeded."""


def normalize_shop_domain(shop_domain: str) -> str:
    """
    Reduce any shop reference to "<shop>.myshopify.com".

    Accepts "mystore", "mystore.myshopify.com" or a full admin URL.
    """
    domain = shop_domain.strip().lower()
    domain = re.sub(r"^https?://", "", domain)
    domain = domain.split("/", 1)[0]
    if domain.endswith(".myshopify.com"):
        domain = domain[: -len(".myshopify.com")]
    return f"{domain}.myshopify.com"


class ShopifyClient:
    """
    Async HTTP client for Shopify GraphQL Admin API.

    Variants are exposed as individual priceable units. Throttling is surfaced
    as an error; the next scheduled cycle is the retry.
    """

    platform = Platform.SHOPIFY
    API_VERSION = "2025-01"
    PAGE_SIZE = 250  # Shopify max per page

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Shopify client.

        Args:
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self.shop_domain: Optional[str] = None
        self.graphql_url: Optional[str] = None
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._authenticated = False

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
        self._authenticated = False

    async def authenticate(self, credentials: Dict[str, Any]) -> None:
        """
        Validate the access token with a single shop query.

        Args:
            credentials: {"shop_domain", "access_token"}

        Raises:
            AuthenticationError: Missing credentials, rejected token or failed probe
        """
        shop_domain = str(credentials.get("shop_domain") or "").strip()
        access_token = str(credentials.get("access_token") or "").strip()

        if not shop_domain or not access_token:
            raise AuthenticationError("Shopify credentials not provided")

        await self.close()

        self.shop_domain = normalize_shop_domain(shop_domain)
        self.graphql_url = (
            f"https://{self.shop_domain}/admin/api/{self.API_VERSION}/graphql.json"
        )
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers={
                "Content-Type": "application/json",
                "X-Shopify-Access-Token": access_token,
            },
            transport=self._transport,
        )

        try:
            await self.execute(SHOP_QUERY)
        except ClientError as e:
            await self.close()
            logger.error(f"Shopify authentication failed for {self.shop_domain}: {e}")
            raise AuthenticationError(f"Shopify authentication failed: {e}") from e

        self._authenticated = True
        logger.info(f"Shopify authentication successful for {self.shop_domain}")

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Execute a GraphQL query/mutation.

        Args:
            query: GraphQL query or mutation string
            variables: Optional variables for the query

        Returns:
            The 'data' portion of the GraphQL response

        Raises:
            AuthenticationError: If the token is rejected
            ShopifyRateLimitError: If the request was throttled
            ClientError: For other errors
        """
        if self._client is None or self._client.is_closed:
            raise NotAuthenticatedError(
                "Shopify client not authenticated. Call authenticate() first."
            )

        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = await self._client.post(self.graphql_url, json=payload)
        except httpx.RequestError as e:
            raise ClientError(f"Request error: {error_message(e)}") from e

        # Handle HTTP errors
        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Authentication failed for {self.shop_domain} (HTTP {response.status_code})"
            )

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            message = "Rate limit exceeded"
            if retry_after is not None:
                message += f" (retry after {retry_after:.0f}s)"
            raise ShopifyRateLimitError(message)

        try:
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            raise ClientError(error_message(e)) from e
        except ValueError as e:
            raise ClientError(f"Invalid JSON response: {e}") from e

        # Check for GraphQL errors
        if result.get("errors"):
            error_messages = [
                e.get("message", str(e)) if isinstance(e, dict) else str(e)
                for e in result["errors"]
            ]

            # Check for throttling in GraphQL errors
            if any("throttl" in msg.lower() for msg in error_messages):
                raise ShopifyRateLimitError(f"GraphQL throttled: {'; '.join(error_messages)}")

            raise ClientError(f"GraphQL errors: {'; '.join(error_messages)}")

        # Log rate limit status if available
        cost = result.get("extensions", {}).get("cost")
        if cost:
            available = cost.get("throttleStatus", {}).get("currentlyAvailable", 0)
            if available < 100:
                logger.warning(f"Low rate limit points: {available} available")

        return result.get("data") or {}

    async def get_all_products(self) -> List[PlatformProduct]:
        """
        Fetch every variant of the shop as a priceable unit.

        Raises:
            NotAuthenticatedError: If called before authenticate()
            FetchError: On any HTTP, network or GraphQL error
        """
        self._require_auth()
        units: List[PlatformProduct] = []
        cursor: Optional[str] = None
        pages = 0

        while True:
            variables: Dict[str, Any] = {"first": self.PAGE_SIZE}
            if cursor:
                variables["after"] = cursor

            try:
                data = await self.execute(VARIANTS_QUERY, variables)
            except ClientError as e:
                logger.error(f"Failed to fetch Shopify products (page {pages + 1}): {e}")
                raise FetchError(f"Failed to fetch Shopify products: {e}") from e

            connection = data.get("productVariants") or {}
            edges = connection.get("edges") or []
            for edge in edges:
                units.append(self._to_unit(edge.get("node") or {}))
            pages += 1

            page_info = connection.get("pageInfo") or {}
            if len(edges) < self.PAGE_SIZE or not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor") or edges[-1].get("cursor")
            if not cursor:
                break

        logger.info(f"Fetched {len(units)} Shopify variants from {self.shop_domain} ({pages} pages)")
        return units

    async def update_product_price(
        self,
        product_id: str,
        variant_id: Optional[str],
        price: Decimal,
    ) -> None:
        """
        Set the price of one variant, leaving its other fields untouched.

        Args:
            product_id: Product GID
            variant_id: Variant GID
            price: New price

        Raises:
            NotAuthenticatedError: If called before authenticate()
            UpdateError: Invalid input, throttling, GraphQL or user errors
        """
        self._require_auth()

        if not str(product_id or "").strip():
            raise UpdateError("Invalid product ID")
        if not str(variant_id or "").strip():
            raise UpdateError("Invalid variant ID")

        parsed = parse_price(price)
        if parsed is None or parsed < 0:
            raise UpdateError(f"Invalid price value: {price}")

        formatted = format_price(parsed)

        try:
            data = await self.execute(
                PRODUCT_VARIANTS_BULK_UPDATE,
                variables={
                    "productId": product_id,
                    "variants": [{"id": variant_id, "price": formatted}],
                },
            )
        except ClientError as e:
            logger.warning(f"Failed to update Shopify variant {variant_id}: {e}")
            raise UpdateError(str(e), status_code=429 if isinstance(e, ShopifyRateLimitError) else None) from e

        # Check for user errors
        result = data.get("productVariantsBulkUpdate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            error_msgs = [e.get("message", str(e)) for e in user_errors]
            logger.warning(f"Failed to update Shopify variant {variant_id}: {error_msgs}")
            raise UpdateError("; ".join(error_msgs))

        logger.debug(f"Updated Shopify variant {variant_id} price to {formatted}")

    def _require_auth(self) -> None:
        if not self._authenticated:
            raise NotAuthenticatedError(
                "Shopify client not authenticated. Call authenticate() first."
            )

    def _to_unit(self, variant: Dict[str, Any]) -> PlatformProduct:
        """Convert a variant node, with its parent product, into a PlatformProduct."""
        product = variant.get("product") or {}
        title = product.get("title") or ""
        variant_title = variant.get("title") or ""
        return PlatformProduct(
            id=str(product.get("id") or ""),
            variant_id=str(variant.get("id") or ""),
            sku=variant.get("sku") or "",
            title=title if variant_title in ("", "Default Title") else f"{title} - {variant_title}",
            price=str(variant.get("price") or ""),
            raw=variant,
        )

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
