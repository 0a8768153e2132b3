"""
StreetPricer API client - the authoritative price source.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..errors import AuthenticationError, FetchError
from ..processor.rules import parse_price
from .base import error_message, parse_retry_after
from .models import SourceProduct

logger = logging.getLogger(__name__)


class _RetryableError(Exception):
    """Internal marker for failures worth another attempt."""

    def __init__(self, cause: Exception, retry_after: Optional[float] = None):
        super().__init__(str(cause))
        self.cause = cause
        self.retry_after = retry_after


def _first(item: Dict[str, Any], *keys: str) -> Any:
    """Return the first non-empty value among several field spellings."""
    for key in keys:
        value = item.get(key)
        if value is not None and value != "":
            return value
    return None


class StreetPricerClient:
    """
    Async HTTP client for the StreetPricer API.

    Aggregates items across every StreetPricer store of the account. Network
    errors, 429 and 5xx responses are retried with exponential backoff.
    """

    BASE_RETRY_DELAY = 2.0  # seconds
    MAX_RETRY_DELAY = 30.0
    BACKOFF_MULTIPLIER = 3
    MAX_PAGES = 1000

    def __init__(
        self,
        api_url: str,
        username: str,
        password: str,
        stores_endpoint: str = "/stores",
        products_endpoint: str = "/products",
        timeout: float = 30.0,
        max_attempts: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize StreetPricer client.

        Args:
            api_url: API base URL (e.g., "https://api.streetpricer.com/api/v1")
            username: API username / key
            password: API password / secret
            stores_endpoint: Endpoint listing the account's stores
            products_endpoint: Fallback endpoint listing all products
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per request before giving up
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = api_url.rstrip("/")
        self.username = username
        self.password = password
        self.stores_endpoint = "/" + stores_endpoint.strip("/")
        self.products_endpoint = "/" + products_endpoint.strip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._token: Optional[str] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
        self._token = None

    async def authenticate(self) -> None:
        """
        Exchange username/password for a bearer token.

        Raises:
            AuthenticationError: Missing or rejected credentials
        """
        if not self.username or not self.password:
            raise AuthenticationError("StreetPricer API credentials not configured")

        client = await self._get_client()
        try:
            response = await client.post(
                "/auth/token",
                data={"username": self.username, "password": self.password},
            )
            response.raise_for_status()
            token = response.json().get("token")
        except (httpx.HTTPError, ValueError) as e:
            self._token = None
            message = error_message(e)
            logger.error(f"StreetPricer authentication failed: {message}")
            raise AuthenticationError(f"StreetPricer authentication failed: {message}") from e

        if not token:
            raise AuthenticationError("StreetPricer authentication failed: no token returned")

        self._token = token
        client.headers["Authorization"] = f"Bearer {token}"
        logger.info("StreetPricer authentication successful")

    async def fetch_all_products(self) -> List[SourceProduct]:
        """
        Fetch the complete authoritative catalogue.

        Raises:
            AuthenticationError: Credentials rejected
            FetchError: Catalogue could not be retrieved completely
        """
        if self._token is None:
            await self.authenticate()

        try:
            products = await self._fetch_products_across_stores()
        except FetchError as e:
            if "HTTP 404" not in str(e):
                raise
            logger.warning(f"Stores endpoint not available, falling back to products endpoint: {e}")
            products = await self._fetch_items(self.products_endpoint)

        logger.info(f"Fetched {len(products)} StreetPricer products")
        return products

    async def _fetch_products_across_stores(self) -> List[SourceProduct]:
        """Aggregate items from every StreetPricer store of the account."""
        data = await self._get(self.stores_endpoint)

        if isinstance(data, list):
            stores = data
        elif isinstance(data, dict):
            stores = data.get("stores") or data.get("items") or []
        else:
            stores = []

        if not stores:
            raise FetchError("No stores returned from StreetPricer")

        products: List[SourceProduct] = []
        for store in stores:
            store_id = _first(store, "id", "storeId", "store_id", "EbayUserID", "SellingPartnerID")
            if store_id is None or not str(store_id).strip():
                logger.warning(f"Skipping StreetPricer store with missing id: {store}")
                continue

            endpoint = f"{self.stores_endpoint}/{quote(str(store_id).strip(), safe='')}/items"
            store_products = await self._fetch_items(endpoint)
            logger.info(f"Fetched {len(store_products)} products from StreetPricer store {store_id}")
            products.extend(store_products)

        return products

    async def _fetch_items(self, endpoint: str) -> List[SourceProduct]:
        """Fetch every page of an items endpoint and validate each item."""
        products: List[SourceProduct] = []
        page = 1

        while page <= self.MAX_PAGES:
            data = await self._get(endpoint, params={"page": page})
            items = data if isinstance(data, list) else (data or {}).get("items") or []

            for item in items:
                product = self._transform_product(item)
                if product is not None:
                    products.append(product)

            if not isinstance(data, dict):
                break

            total_pages = data.get("total_page")
            current_page = data.get("page") if isinstance(data.get("page"), int) else page
            if isinstance(total_pages, int) and current_page < total_pages:
                page = current_page + 1
                continue
            break

        return products

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a JSON document with retry logic.

        A 401 clears the bearer token and logs in again once before giving up.

        Raises:
            AuthenticationError: Credentials rejected while renewing the token
            FetchError: Non-retryable error or all retries exhausted
        """
        client = await self._get_client()
        last_error: Optional[Exception] = None
        renewed = False

        for attempt in range(self.max_attempts):
            try:
                response = await self._send(client, endpoint, params)

                if response.status_code == 401 and not renewed:
                    renewed = True
                    logger.info("StreetPricer token rejected, logging in again")
                    await self._renew_token()
                    response = await self._send(client, endpoint, params)

                if response.status_code == 429 or response.status_code >= 500:
                    try:
                        response.raise_for_status()
                    except httpx.HTTPStatusError as e:
                        raise _RetryableError(
                            e, retry_after=parse_retry_after(response.headers.get("Retry-After"))
                        )

                response.raise_for_status()
                return response.json()

            except _RetryableError as e:
                last_error = e.cause
                if attempt + 1 >= self.max_attempts:
                    break
                delay = min(
                    self.BASE_RETRY_DELAY * (self.BACKOFF_MULTIPLIER ** attempt),
                    self.MAX_RETRY_DELAY,
                )
                if e.retry_after:
                    delay = max(delay, e.retry_after)
                logger.warning(
                    f"StreetPricer request to {endpoint} failed ({error_message(e.cause)}), "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{self.max_attempts})"
                )
                await asyncio.sleep(delay)

            except (httpx.HTTPError, ValueError) as e:
                message = error_message(e)
                logger.error(f"StreetPricer request to {endpoint} failed: {message}")
                raise FetchError(f"Failed to fetch StreetPricer products: {message}") from e

        message = error_message(last_error) if last_error else "Max retries exceeded"
        logger.error(f"StreetPricer request to {endpoint} failed after {self.max_attempts} attempts: {message}")
        raise FetchError(f"Failed to fetch StreetPricer products: {message}") from last_error

    async def _send(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        params: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        try:
            return await client.get(endpoint, params=params)
        except httpx.RequestError as e:
            raise _RetryableError(e)

    async def _renew_token(self) -> None:
        """Drop the rejected token and authenticate again."""
        self._token = None
        if self._client is not None:
            self._client.headers.pop("Authorization", None)
        await self.authenticate()

    def _transform_product(self, item: Any) -> Optional[SourceProduct]:
        """Validate an item and convert it to a SourceProduct, or None if invalid."""
        if not isinstance(item, dict):
            logger.warning(f"StreetPricer item is not an object: {item!r}")
            return None

        product_id = _first(item, "id", "ID", "ItemID", "NewItemID", "IPN")
        if product_id is None:
            logger.warning(f"StreetPricer product missing id: {item}")
            return None

        price = parse_price(_first(item, "price", "Price", "NewPrice", "ConvertedPrice"))
        if price is None or price < 0:
            logger.warning(f"StreetPricer product {product_id} missing or invalid price")
            return None

        last_updated = None
        raw_updated = _first(item, "last_updated", "Modified", "GTINUpdated")
        if raw_updated:
            try:
                last_updated = datetime.fromisoformat(str(raw_updated).replace("Z", "+00:00"))
            except ValueError:
                last_updated = None

        return SourceProduct(
            id=str(product_id),
            sku=str(_first(item, "sku", "SKU") or ""),
            price=price,
            name=str(_first(item, "name", "Title", "ListingTitle") or ""),
            currency=str(_first(item, "currency", "PriceCurr") or "USD"),
            last_updated=last_updated,
        )

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
