"""
Product matching between the StreetPricer catalogue and a channel catalogue.

Pure functions only: no network, persistence or logging.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from ..clients.models import PlatformProduct, SourceProduct
from .rules import normalize_sku


EXACT_MATCH_CONFIDENCE = 1.0


@dataclass
class MatchedPair:
    """A source product linked to a platform unit."""

    source_product: SourceProduct
    platform_product: PlatformProduct
    match_confidence: float = EXACT_MATCH_CONFIDENCE


@dataclass
class MatchResult:
    """Output of match_products."""

    matched: List[MatchedPair] = field(default_factory=list)
    unlisted: List[SourceProduct] = field(default_factory=list)
    # Normalized SKUs seen more than once on either side; later copies ignored
    duplicate_skus: List[str] = field(default_factory=list)


def match_products(
    source_products: Sequence[SourceProduct],
    platform_products: Sequence[PlatformProduct],
) -> MatchResult:
    """
    Pair source products with platform units by SKU.

    SKUs are compared trimmed and case-insensitively. Platform units without a
    SKU are never matched. When a SKU repeats (on either side) the first
    occurrence wins. Source products without a SKU or without a counterpart
    are returned as unlisted. Output order follows the source order.

    Args:
        source_products: Authoritative catalogue
        platform_products: Channel catalogue, one entry per priceable unit

    Returns:
        MatchResult with matched pairs, unlisted source products and duplicates
    """
    result = MatchResult()
    duplicates: Dict[str, None] = {}

    by_sku: Dict[str, PlatformProduct] = {}
    for platform_product in platform_products:
        key = normalize_sku(platform_product.sku)
        if not key:
            continue
        if key in by_sku:
            duplicates[key] = None
            continue
        by_sku[key] = platform_product

    seen_source: Dict[str, None] = {}
    for source_product in source_products:
        key = normalize_sku(source_product.sku)
        if not key:
            result.unlisted.append(source_product)
            continue
        if key in seen_source:
            duplicates[key] = None
            continue
        seen_source[key] = None

        platform_product = by_sku.get(key)
        if platform_product is None:
            result.unlisted.append(source_product)
        else:
            result.matched.append(MatchedPair(source_product, platform_product))

    result.duplicate_skus = list(duplicates)
    return result
