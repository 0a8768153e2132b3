"""
Sync processor package.
"""

from .matcher import MatchedPair, MatchResult, match_products
from .rules import format_price, needs_reprice, normalize_sku, parse_price
from .scheduler import SyncScheduler
from .sync import SyncService

__all__ = [
    "MatchedPair",
    "MatchResult",
    "match_products",
    "format_price",
    "needs_reprice",
    "normalize_sku",
    "parse_price",
    "SyncScheduler",
    "SyncService",
]
