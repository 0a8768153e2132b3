"""
Price Sync - keeps WooCommerce and Shopify prices aligned with StreetPricer.
"""

__version__ = "1.0.0"
