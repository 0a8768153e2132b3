"""
Shopify API module.
"""

from .client import ShopifyClient, ShopifyRateLimitError, normalize_shop_domain
from .mutations import PRODUCT_VARIANTS_BULK_UPDATE
from .queries import SHOP_QUERY, VARIANTS_QUERY

__all__ = [
    "ShopifyClient",
    "ShopifyRateLimitError",
    "normalize_shop_domain",
    "PRODUCT_VARIANTS_BULK_UPDATE",
    "VARIANTS_QUERY",
    "SHOP_QUERY",
]
