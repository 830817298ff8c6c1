"""
Storefront catalog queries.

Search, filter and sort for the product gallery, plus the dashboard summary
figures. Everything here is a pure function of a catalog snapshot.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from storefront.models.product import Product, ProductStatus

logger = logging.getLogger(__name__)

ALL = "all"

SORT_OPTIONS = ("newest", "oldest", "price-low", "price-high", "name")


def _matches(product: Product, term: str) -> bool:
    haystacks = (product.name, product.description, product.category)
    return any(term in (text or "").lower() for text in haystacks)


def search_products(
    products: Iterable[Product],
    term: str = "",
    category: str = ALL,
    status: str = ALL,
    sort_by: str = "newest",
) -> list[Product]:
    """
    Filter and sort products for display.

    Args:
        products: Catalog snapshot.
        term: Case-insensitive text matched against name, description and category.
        category: Exact category, or "all".
        status: Status value, or "all".
        sort_by: One of SORT_OPTIONS.

    Returns:
        list[Product]: Matching products in display order.

    Raises:
        ValueError: If ``status`` or ``sort_by`` is unknown.
    """
    if sort_by not in SORT_OPTIONS:
        raise ValueError(f"Unknown sort option: {sort_by}. Expected one of {', '.join(SORT_OPTIONS)}")

    wanted_status: Optional[ProductStatus] = None
    if status and status != ALL:
        wanted_status = ProductStatus.parse(status)

    needle = (term or "").strip().lower()
    result = [
        p
        for p in products
        if (not needle or _matches(p, needle))
        and (not category or category == ALL or p.category == category)
        and (wanted_status is None or p.status == wanted_status)
    ]

    if sort_by == "price-low":
        result.sort(key=lambda p: p.final_price_local)
    elif sort_by == "price-high":
        result.sort(key=lambda p: p.final_price_local, reverse=True)
    elif sort_by == "name":
        result.sort(key=lambda p: p.name.casefold())
    elif sort_by == "oldest":
        result.sort(key=lambda p: p.created_at or datetime.min)
    else:
        result.sort(key=lambda p: p.created_at or datetime.min, reverse=True)

    return result


def list_categories(products: Iterable[Product]) -> list[str]:
    """Unique non-blank categories in first-seen order."""
    seen: dict[str, None] = {}
    for p in products:
        category = (p.category or "").strip()
        if category:
            seen.setdefault(category, None)
    return list(seen)


@dataclass
class CatalogStats:
    """Statistics for dashboard display."""

    total: int = 0
    in_stock: int = 0
    on_order: int = 0
    sold: int = 0
    total_value: float = 0.0
    in_stock_value: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def catalog_stats(products: Iterable[Product]) -> CatalogStats:
    """
    Summarize a catalog snapshot.

    Inventory value is the sum of final prices.
    """
    stats = CatalogStats()
    for p in products:
        stats.total += 1
        stats.total_value += p.final_price_local
        if p.status == ProductStatus.IN_STOCK:
            stats.in_stock += 1
            stats.in_stock_value += p.final_price_local
        elif p.status == ProductStatus.ON_ORDER:
            stats.on_order += 1
        elif p.status == ProductStatus.SOLD:
            stats.sold += 1
    return stats
