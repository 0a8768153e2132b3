"""
Catalogue snapshots returned by the source and platform clients.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SourceProduct:
    """Authoritative priced item from StreetPricer."""

    id: str
    sku: str
    price: Decimal
    name: str = ""
    currency: str = "USD"
    last_updated: Optional[datetime] = None


@dataclass
class PlatformProduct:
    """
    A priceable unit on a sales channel.

    Shopify variants are flattened into one PlatformProduct each: `id` is the
    parent product and `variant_id` the variant. WooCommerce products are flat.
    """

    id: str
    sku: str
    title: str
    price: str
    variant_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def unit_id(self) -> str:
        """Identifier of the unit whose price gets updated."""
        return self.variant_id or self.id
