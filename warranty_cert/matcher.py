"""
Reconciliation of extracted product lines against the local catalog.

Each product line is looked up in tiers, first hit wins:
1. Exact catalog code
2. Exact name (case-insensitive)
3. Catalog name contains the extracted name (active entries only)
4. Extracted name contains the catalog name (active entries only)

A hit counts as a match only if the catalog entry is active and fully
configured; otherwise the line is reported unmatched with a reason.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .config import logger
from .schemas import CatalogProduct, MatchedProduct, ProductLineItem
from .storage import Catalog


REASON_NOT_CONFIGURED = "Product is not configured"
REASON_NOT_FOUND = "Product does not exist in the catalog"

LookupFn = Callable[[ProductLineItem, Catalog], Optional[CatalogProduct]]


@dataclass(frozen=True)
class MatchTier:
    """A named catalog lookup strategy."""
    name: str
    lookup: LookupFn


def _normalized(value: str) -> str:
    return value.lower().strip()


def lookup_by_code(item: ProductLineItem, catalog: Catalog) -> Optional[CatalogProduct]:
    return catalog.get_by_code(item.code)


def lookup_by_exact_name(item: ProductLineItem, catalog: Catalog) -> Optional[CatalogProduct]:
    name = _normalized(item.name)
    return next((p for p in catalog.get_all(include_inactive=True) if _normalized(p.name) == name), None)


def lookup_catalog_contains_name(item: ProductLineItem, catalog: Catalog) -> Optional[CatalogProduct]:
    name = _normalized(item.name)
    return next(
        (p for p in catalog.get_all(include_inactive=True) if p.is_active and name in p.name.lower()),
        None,
    )


def lookup_name_contains_catalog(item: ProductLineItem, catalog: Catalog) -> Optional[CatalogProduct]:
    name = _normalized(item.name)
    return next(
        (
            p for p in catalog.get_all(include_inactive=True)
            if p.is_active and _normalized(p.name) and _normalized(p.name) in name
        ),
        None,
    )


MATCH_TIERS: list[MatchTier] = [
    MatchTier(name="code", lookup=lookup_by_code),
    MatchTier(name="exact_name", lookup=lookup_by_exact_name),
    MatchTier(name="catalog_contains_name", lookup=lookup_catalog_contains_name),
    MatchTier(name="name_contains_catalog", lookup=lookup_name_contains_catalog),
]


def find_catalog_product(item: ProductLineItem, catalog: Catalog) -> Optional[CatalogProduct]:
    """First catalog entry found by the match tiers, or None."""
    for tier in MATCH_TIERS:
        product = tier.lookup(item, catalog)
        if product is not None:
            logger.info(f"Product {item.name!r} found by {tier.name}: {product.name!r}")
            return product
    logger.info(f"Product {item.name!r} (code {item.code}) not found in catalog")
    return None


def match_products(
    items: list[ProductLineItem],
    catalog: Catalog,
    is_vat_payer: bool,
) -> list[MatchedProduct]:
    """
    Match extracted product lines with the catalog.

    Args:
        items: Product lines extracted from the invoice
        catalog: Catalog lookup
        is_vat_payer: Selects the PJ warranty term instead of the PF one

    Returns:
        One MatchedProduct per input item, in input order
    """
    matched: list[MatchedProduct] = []

    for item in items:
        product = find_catalog_product(item, catalog)

        if product is not None and product.is_active and not product.needs_configuration:
            matched.append(MatchedProduct(
                code=product.code,
                name=product.display_name or product.name,
                warranty_months=product.warranty_months_pj if is_vat_payer else product.warranty_months_pf,
                quantity=item.quantity,
                matched=True,
                min_voltage=product.min_voltage,
            ))
        else:
            matched.append(MatchedProduct(
                code=item.code,
                name=item.name,
                quantity=item.quantity,
                matched=False,
                reason=REASON_NOT_CONFIGURED if product is not None else REASON_NOT_FOUND,
            ))

    return matched
