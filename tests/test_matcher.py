"""
Tests for catalog matching.
"""

import pytest
from pydantic import ValidationError as SchemaValidationError

from warranty_cert.matcher import (
    MATCH_TIERS,
    REASON_NOT_CONFIGURED,
    REASON_NOT_FOUND,
    find_catalog_product,
    match_products,
)
from warranty_cert.schemas import CatalogProduct, MatchedProduct, ProductLineItem
from warranty_cert.storage import InMemoryCatalog


def item(name, code="UNKNOWN", quantity=1):
    return ProductLineItem(code=code, name=name, quantity=quantity)


class TestFindCatalogProduct:
    """Tests for the lookup tiers."""

    def test_tier_order(self):
        assert [t.name for t in MATCH_TIERS] == [
            "code",
            "exact_name",
            "catalog_contains_name",
            "name_contains_catalog",
        ]

    def test_by_code(self, catalog):
        product = find_catalog_product(item("Anything", code="6427470054321"), catalog)
        assert product.name == "ATV electric Premier Hunter 12V negru"

    def test_by_exact_name_ignores_case(self, catalog):
        product = find_catalog_product(item("atv ELECTRIC premier hunter 12v negru"), catalog)
        assert product.code == "6427470054321"

    def test_catalog_name_contains_extracted(self, catalog):
        product = find_catalog_product(item("Premier Hunter 12V"), catalog)
        assert product.code == "6427470054321"

    def test_extracted_name_contains_catalog(self, catalog):
        product = find_catalog_product(item("1 ATV electric Premier Hunter 12V negru - cadou"), catalog)
        assert product.code == "6427470054321"

    def test_partial_tiers_skip_inactive(self, catalog):
        assert find_catalog_product(item("Premier Farmer 24V"), catalog) is None

    def test_not_found(self, catalog):
        assert find_catalog_product(item("Bicicleta copii 16 inch"), catalog) is None


class TestMatchProducts:
    """Tests for warranty selection and match status."""

    def test_individual_warranty(self, catalog, roadster):
        result = match_products([item(roadster.name)], catalog, is_vat_payer=False)
        assert result[0].matched
        assert result[0].warranty_months == 24
        assert result[0].min_voltage == "10.8"
        assert result[0].reason is None

    def test_company_warranty(self, catalog, roadster):
        result = match_products([item(roadster.name)], catalog, is_vat_payer=True)
        assert result[0].warranty_months == 12

    def test_display_name(self, catalog):
        result = match_products([item("x", code="6427470054321")], catalog, is_vat_payer=False)
        assert result[0].name == "ATV Premier Hunter"
        assert result[0].min_voltage == "11.5"

    def test_not_configured(self, catalog):
        result = match_products([item("y", code="6427470099999")], catalog, is_vat_payer=False)
        assert not result[0].matched
        assert result[0].reason == REASON_NOT_CONFIGURED

    def test_not_found(self, catalog):
        result = match_products([item("Bicicleta copii 16 inch", code="BICICLETA")], catalog, is_vat_payer=False)
        assert not result[0].matched
        assert result[0].reason == REASON_NOT_FOUND
        assert result[0].code == "BICICLETA"

    def test_one_result_per_item_in_order(self, catalog, roadster):
        items = [
            item("Bicicleta copii 16 inch"),
            item(roadster.name, quantity=2),
            item("z", code="6427470054321"),
        ]
        result = match_products(items, catalog, is_vat_payer=False)
        assert [p.matched for p in result] == [False, True, True]
        assert result[1].quantity == 2

    def test_empty(self, catalog):
        assert match_products([], catalog, is_vat_payer=False) == []


@pytest.fixture
def incomplete_catalog():
    return InMemoryCatalog([
        CatalogProduct(
            code="6427470077777",
            name="Motocicleta electrica Premier Racer 12V albastru",
            warranty_months_pf=24,
            warranty_months_pj=12,
            is_active=True,
            needs_configuration=True,
        ),
        CatalogProduct(
            code="6427470088888",
            name="Tractor electric Premier Farmer 12V verde",
            warranty_months_pf=24,
            warranty_months_pj=12,
            is_active=False,
            needs_configuration=False,
        ),
    ])


class TestIncompleteCatalogEntries:
    """Tests for entries found in the catalog but not usable for certificates."""

    def test_active_awaiting_configuration(self, incomplete_catalog):
        result = match_products([item("x", code="6427470077777")], incomplete_catalog, is_vat_payer=False)
        assert not result[0].matched
        assert result[0].reason == REASON_NOT_CONFIGURED
        assert result[0].warranty_months is None

    def test_active_awaiting_configuration_by_partial_name(self, incomplete_catalog):
        line = item("Premier Racer 12V")
        assert find_catalog_product(line, incomplete_catalog).code == "6427470077777"

        result = match_products([line], incomplete_catalog, is_vat_payer=True)
        assert result[0].reason == REASON_NOT_CONFIGURED

    def test_inactive_exact_name(self, incomplete_catalog):
        line = item("tractor electric premier farmer 12v verde")
        assert find_catalog_product(line, incomplete_catalog).code == "6427470088888"

        result = match_products([line], incomplete_catalog, is_vat_payer=False)
        assert not result[0].matched
        assert result[0].reason == REASON_NOT_CONFIGURED


class TestMatchedProductModel:
    """Tests for the matched/reason rule."""

    def test_matched_with_reason_rejected(self):
        with pytest.raises(SchemaValidationError):
            MatchedProduct(code="A", name="B", matched=True, reason="oops")

    def test_unmatched_without_reason_rejected(self):
        with pytest.raises(SchemaValidationError):
            MatchedProduct(code="A", name="B", matched=False)
