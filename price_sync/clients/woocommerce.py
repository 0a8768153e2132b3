"""
WooCommerce REST API client (wp-json/wc/v3).
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from ..db.models import Platform
from ..errors import AuthenticationError, FetchError, NotAuthenticatedError, UpdateError
from ..processor.rules import format_price, parse_price
from .base import error_message
from .models import PlatformProduct

logger = logging.getLogger(__name__)


class WooCommerceClient:
    """
    Async HTTP client for the WooCommerce REST API.

    Authenticates with a consumer key/secret pair over HTTP basic auth.
    Products are flat: one priceable unit per product.
    """

    platform = Platform.WOOCOMMERCE
    API_PATH = "/wp-json/wc/v3"
    PAGE_SIZE = 100  # WooCommerce max per_page

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize WooCommerce client.

        Args:
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self.store_url: Optional[str] = None
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._authenticated = False

    async def _get_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, failing if authenticate() has not succeeded."""
        if not self._authenticated or self._client is None or self._client.is_closed:
            raise NotAuthenticatedError(
                "WooCommerce client not authenticated. Call authenticate() first."
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
        self._authenticated = False

    async def authenticate(self, credentials: Dict[str, Any]) -> None:
        """
        Validate credentials with a single one-product probe.

        Args:
            credentials: {"url", "consumer_key", "consumer_secret"}

        Raises:
            AuthenticationError: Missing credentials, rejected keys or failed probe
        """
        url = str(credentials.get("url") or "").strip()
        consumer_key = str(credentials.get("consumer_key") or "").strip()
        consumer_secret = str(credentials.get("consumer_secret") or "").strip()

        if not url or not consumer_key or not consumer_secret:
            raise AuthenticationError("WooCommerce credentials not provided")

        await self.close()

        if not url.startswith(("http://", "https://")):
            url = f"https://{url}"
        self.store_url = url.rstrip("/")

        client = httpx.AsyncClient(
            base_url=f"{self.store_url}{self.API_PATH}",
            auth=(consumer_key, consumer_secret),
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers={"Content-Type": "application/json"},
            transport=self._transport,
        )

        try:
            response = await client.get("/products", params={"per_page": 1})
            response.raise_for_status()
        except httpx.HTTPError as e:
            await client.aclose()
            message = error_message(e)
            logger.error(f"WooCommerce authentication failed for {self.store_url}: {message}")
            raise AuthenticationError(f"WooCommerce authentication failed: {message}") from e

        self._client = client
        self._authenticated = True
        logger.info(f"WooCommerce authentication successful for {self.store_url}")

    async def get_all_products(self) -> List[PlatformProduct]:
        """
        Fetch every product, page by page, until a short page is returned.

        Raises:
            NotAuthenticatedError: If called before authenticate()
            FetchError: On any HTTP or network error
        """
        client = await self._get_client()
        products: List[PlatformProduct] = []
        page = 1

        try:
            while True:
                response = await client.get(
                    "/products",
                    params={"per_page": self.PAGE_SIZE, "page": page},
                )
                response.raise_for_status()
                batch = response.json()
                if not isinstance(batch, list):
                    raise FetchError("Unexpected WooCommerce products response")

                products.extend(self._transform_product(item) for item in batch)

                if len(batch) < self.PAGE_SIZE:
                    break
                page += 1
        except (httpx.HTTPError, ValueError) as e:
            message = error_message(e)
            logger.error(f"Failed to fetch WooCommerce products (page {page}): {message}")
            raise FetchError(f"Failed to fetch WooCommerce products: {message}") from e

        logger.info(f"Fetched {len(products)} WooCommerce products from {self.store_url}")
        return products

    async def update_product_price(
        self,
        product_id: str,
        variant_id: Optional[str],
        price: Decimal,
    ) -> None:
        """
        Set the regular price of a product, leaving every other field untouched.

        Args:
            product_id: WooCommerce product id
            variant_id: Ignored; WooCommerce products are flat
            price: New price

        Raises:
            NotAuthenticatedError: If called before authenticate()
            UpdateError: Invalid input or rejected by WooCommerce
        """
        client = await self._get_client()

        if not str(product_id).strip():
            raise UpdateError("Invalid product ID")

        parsed = parse_price(price)
        if parsed is None or parsed < 0:
            raise UpdateError(f"Invalid price value: {price}")

        formatted = format_price(parsed)

        try:
            response = await client.put(
                f"/products/{product_id}",
                json={"regular_price": formatted},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            message = error_message(e)
            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            logger.warning(f"Failed to update WooCommerce product {product_id}: {message}")
            raise UpdateError(message, status_code=status_code) from e

        logger.debug(f"Updated WooCommerce product {product_id} price to {formatted}")

    def _transform_product(self, product: Dict[str, Any]) -> PlatformProduct:
        """Convert a WooCommerce API product to a PlatformProduct."""
        price = product.get("regular_price") or product.get("price") or ""
        return PlatformProduct(
            id=str(product["id"]),
            sku=product.get("sku") or "",
            title=product.get("name") or "",
            price=str(price),
            raw=product,
        )

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
