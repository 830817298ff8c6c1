"""
Pricing engine module.

Derives the birr price fields of a product from its inputs.

Formulas:
    converted_cost_local = round(source_cost_usd × R)
    final_price_local    = agent_fee_local + margin_local
Where:
- R = active USD to ETB exchange rate
- converted cost is informational only; it never feeds the final price
"""

import logging
import math
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from storefront.models.product import Product

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricingResult:
    """Derived price fields."""

    converted_cost_local: int
    final_price_local: float


def coerce_amount(value: Any) -> float:
    """
    Coerce user input to a non-negative amount.

    Non-numeric, NaN, infinite and negative values become 0.

    Args:
        value: Raw form value (number or string).

    Returns:
        float: A finite amount >= 0.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        amount = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(amount) or amount < 0:
        return 0.0
    return amount


def convert_usd(usd_amount: float, rate: float) -> int:
    """
    Convert a USD amount to whole birr, rounding half up.

    Args:
        usd_amount: Amount in USD.
        rate: USD to ETB rate.

    Returns:
        int: Converted amount.
    """
    try:
        raw = Decimal(str(usd_amount)) * Decimal(str(rate))
    except InvalidOperation:
        return 0
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_pricing(
    source_cost_usd: Any,
    agent_fee_local: Any,
    margin_local: Any,
    rate: float,
) -> PricingResult:
    """
    Compute every derived price field from its inputs.

    This is the only place the formulas live; all setters and bulk
    recomputes go through it.

    Args:
        source_cost_usd: Supplier cost in USD.
        agent_fee_local: Agent fee in birr.
        margin_local: Margin in birr.
        rate: USD to ETB rate.

    Returns:
        PricingResult with converted cost and final price.
    """
    usd = coerce_amount(source_cost_usd)
    agent_fee = coerce_amount(agent_fee_local)
    margin = coerce_amount(margin_local)
    return PricingResult(
        converted_cost_local=convert_usd(usd, rate),
        final_price_local=agent_fee + margin,
    )


def _apply(product: Product, rate: float, **inputs: float) -> Product:
    updated = replace(product, **inputs)
    pricing = compute_pricing(
        updated.source_cost_usd,
        updated.agent_fee_local,
        updated.margin_local,
        rate,
    )
    return replace(
        updated,
        converted_cost_local=pricing.converted_cost_local,
        final_price_local=pricing.final_price_local,
    )


def set_source_cost(product: Product, usd_amount: Any, rate: float) -> Product:
    """Return a copy with a new USD cost and recomputed converted cost."""
    return _apply(product, rate, source_cost_usd=coerce_amount(usd_amount))


def set_agent_fee(product: Product, amount: Any, rate: float) -> Product:
    """Return a copy with a new agent fee and recomputed final price."""
    return _apply(product, rate, agent_fee_local=coerce_amount(amount))


def set_margin(product: Product, amount: Any, rate: float) -> Product:
    """Return a copy with a new margin and recomputed final price."""
    return _apply(product, rate, margin_local=coerce_amount(amount))


def normalize_pricing(product: Product, rate: float) -> Product:
    """
    Return the product with inputs coerced and derived fields recomputed.

    Products that are already consistent are returned unchanged.
    """
    normalized = _apply(
        product,
        rate,
        source_cost_usd=coerce_amount(product.source_cost_usd),
        agent_fee_local=coerce_amount(product.agent_fee_local),
        margin_local=coerce_amount(product.margin_local),
    )
    return product if normalized == product else normalized


def reprice_catalog(products: Iterable[Product], rate: float) -> list[Product]:
    """
    Recompute converted cost for every product at a new rate.

    Args:
        products: Current catalog snapshot.
        rate: New USD to ETB rate.

    Returns:
        list[Product]: New list; input products are not modified.
    """
    repriced = [normalize_pricing(p, rate) for p in products]
    logger.debug(f"Repriced {len(repriced)} products at rate {rate}")
    return repriced


class PricingEngine:
    """
    Prices products at the rate of an FX provider.

    Attributes:
        fx_provider: Source of the active exchange rate.
    """

    def __init__(self, fx_provider) -> None:
        self.fx_provider = fx_provider

    @property
    def rate(self) -> float:
        return self.fx_provider.get_rate()

    def price(self, product: Product) -> Product:
        """Recompute derived fields of a product at the active rate."""
        return normalize_pricing(product, self.rate)

    def get_pricing_summary(self, product: Product) -> str:
        """
        Get a human-readable summary of a product's pricing.

        Args:
            product: Product to summarize.

        Returns:
            str: Formatted pricing breakdown.
        """
        priced = self.price(product)
        return (
            f"USD ${priced.source_cost_usd:.2f} × {self.rate:.2f} = "
            f"ETB {priced.converted_cost_local:,} (cost) | "
            f"agent {priced.agent_fee_local:,.0f} + margin {priced.margin_local:,.0f} = "
            f"ETB {priced.final_price_local:,.0f}"
        )
