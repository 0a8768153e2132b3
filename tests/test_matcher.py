"""
Tests for SKU matching between StreetPricer and channel catalogues.
"""

from price_sync.processor.matcher import EXACT_MATCH_CONFIDENCE, match_products

from fakes import source, unit


class TestMatchProducts:

    def test_exact_sku_match(self):
        result = match_products(
            [source("sp-1", "SKU1", "10.00")],
            [unit("101", "SKU1", "12.00")],
        )

        assert len(result.matched) == 1
        pair = result.matched[0]
        assert pair.source_product.id == "sp-1"
        assert pair.platform_product.id == "101"
        assert pair.match_confidence == EXACT_MATCH_CONFIDENCE
        assert result.unlisted == []

    def test_sku_comparison_trims_and_ignores_case(self):
        result = match_products(
            [source("sp-1", " abc-1 ", "10.00")],
            [unit("101", "ABC-1", "10.00")],
        )

        assert len(result.matched) == 1

    def test_source_without_counterpart_is_unlisted(self):
        result = match_products(
            [source("sp-1", "SKU1", "10.00"), source("sp-2", "SKU2", "5.00")],
            [unit("101", "SKU1", "10.00")],
        )

        assert [p.source_product.id for p in result.matched] == ["sp-1"]
        assert [p.id for p in result.unlisted] == ["sp-2"]

    def test_source_without_sku_is_unlisted(self):
        result = match_products([source("sp-1", "", "10.00")], [unit("101", "", "10.00")])

        assert result.matched == []
        assert [p.id for p in result.unlisted] == ["sp-1"]

    def test_platform_products_without_sku_are_ignored(self):
        result = match_products([], [unit("101", "", "10.00")])

        assert result.matched == []
        assert result.unlisted == []

    def test_platform_only_products_are_not_reported(self):
        result = match_products([], [unit("101", "SKU1", "10.00")])

        assert result.matched == []
        assert result.unlisted == []

    def test_duplicate_platform_sku_first_occurrence_wins(self):
        result = match_products(
            [source("sp-1", "SKU1", "10.00")],
            [unit("101", "SKU1", "9.00"), unit("102", "sku1", "8.00")],
        )

        assert [p.platform_product.id for p in result.matched] == ["101"]
        assert result.duplicate_skus == ["sku1"]

    def test_duplicate_source_sku_first_occurrence_wins(self):
        result = match_products(
            [source("sp-1", "SKU1", "10.00"), source("sp-2", "SKU1", "11.00")],
            [unit("101", "SKU1", "9.00")],
        )

        assert [p.source_product.id for p in result.matched] == ["sp-1"]
        assert result.unlisted == []
        assert result.duplicate_skus == ["sku1"]

    def test_variants_match_individually(self):
        result = match_products(
            [source("sp-1", "TEE-S", "20.00"), source("sp-2", "TEE-M", "21.00")],
            [
                unit("gid://shopify/Product/1", "TEE-S", "20.00", variant_id="gid://shopify/ProductVariant/11"),
                unit("gid://shopify/Product/1", "TEE-M", "20.00", variant_id="gid://shopify/ProductVariant/12"),
            ],
        )

        assert [p.platform_product.unit_id for p in result.matched] == [
            "gid://shopify/ProductVariant/11",
            "gid://shopify/ProductVariant/12",
        ]

    def test_output_follows_source_order(self):
        result = match_products(
            [source("sp-2", "B", "1.00"), source("sp-1", "A", "1.00")],
            [unit("1", "A", "1.00"), unit("2", "B", "1.00")],
        )

        assert [p.source_product.id for p in result.matched] == ["sp-2", "sp-1"]
