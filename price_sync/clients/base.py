"""
Platform client capability and the registry that selects one per store.
"""

import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx

from ..db.models import Platform, Store
from ..errors import ConfigurationError
from .models import PlatformProduct

logger = logging.getLogger(__name__)


class PlatformClient(Protocol):
    """Uniform capability every sales channel client provides."""

    platform: Platform

    async def authenticate(self, credentials: Dict[str, Any]) -> None:
        ...

    async def get_all_products(self) -> List[PlatformProduct]:
        ...

    async def update_product_price(
        self,
        product_id: str,
        variant_id: Optional[str],
        price: Decimal,
    ) -> None:
        ...

    async def close(self) -> None:
        ...


PlatformClientFactory = Callable[[], PlatformClient]


class PlatformClientRegistry:
    """Maps a platform identifier to a factory producing its client."""

    def __init__(self, factories: Optional[Dict[Platform, PlatformClientFactory]] = None):
        self._factories: Dict[Platform, PlatformClientFactory] = dict(factories or {})

    def register(self, platform: Platform, factory: PlatformClientFactory) -> None:
        self._factories[Platform(platform)] = factory

    def platforms(self) -> List[Platform]:
        return list(self._factories)

    def create(self, platform: Platform) -> PlatformClient:
        """
        Build an unauthenticated client for a platform.

        Raises:
            ConfigurationError: If no client is registered for the platform
        """
        try:
            factory = self._factories[Platform(platform)]
        except (KeyError, ValueError):
            raise ConfigurationError(
                f"No client registered for platform '{getattr(platform, 'value', platform)}'"
            ) from None
        return factory()

    async def connect(self, store: Store) -> PlatformClient:
        """
        Build a client for the store and authenticate it with the stored credentials.

        The client is closed again if authentication fails.
        """
        client = self.create(store.platform)
        try:
            await client.authenticate(store.credentials)
        except Exception:
            await client.close()
            raise
        logger.debug(f"Connected {store.platform.value} client for store '{store.name}'")
        return client


def error_message(error: Exception) -> str:
    """
    Normalize an httpx error into a single human readable string.

    Prefers the channel's own message from the JSON body
    (`message`, `error`, `errors` as string/list/dict).
    """
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        detail = None
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict):
            errors = data.get("errors")
            if isinstance(errors, str):
                detail = errors
            elif isinstance(errors, list):
                detail = ", ".join(
                    e.get("message", str(e)) if isinstance(e, dict) else str(e)
                    for e in errors
                )
            elif isinstance(errors, dict):
                detail = "; ".join(
                    f"{key}: {', '.join(map(str, value)) if isinstance(value, list) else value}"
                    for key, value in errors.items()
                )
            if not detail:
                detail = data.get("message") or data.get("error")

        if not detail:
            detail = response.text.strip()[:200] or response.reason_phrase
        return f"HTTP {response.status_code}: {detail}"

    if isinstance(error, httpx.TimeoutException):
        return f"Request timed out: {error}"

    return str(error) or error.__class__.__name__


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Seconds to wait from a Retry-After header.

    Accepts delta-seconds or an HTTP date. Returns None when the header is
    missing or unreadable.
    """
    if not value or not value.strip():
        return None
    value = value.strip()

    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring unreadable Retry-After header: {value!r}")
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = (when - datetime.now(timezone.utc)).total_seconds()

    if not math.isfinite(seconds):
        return None
    return max(seconds, 0.0)
