"""
Platform and source API clients.
"""

from .base import PlatformClient, PlatformClientRegistry, error_message
from .models import PlatformProduct, SourceProduct
from .shopify import ShopifyClient, ShopifyRateLimitError
from .streetpricer import StreetPricerClient
from .woocommerce import WooCommerceClient
from ..db.models import Platform


def default_registry(timeout: float = 30.0) -> PlatformClientRegistry:
    """Registry with the WooCommerce and Shopify clients."""
    return PlatformClientRegistry({
        Platform.WOOCOMMERCE: lambda: WooCommerceClient(timeout=timeout),
        Platform.SHOPIFY: lambda: ShopifyClient(timeout=timeout),
    })


__all__ = [
    "PlatformClient",
    "PlatformClientRegistry",
    "PlatformProduct",
    "SourceProduct",
    "ShopifyClient",
    "ShopifyRateLimitError",
    "StreetPricerClient",
    "WooCommerceClient",
    "default_registry",
    "error_message",
]
