"""
Pricing module.

Handles USD→ETB rate retrieval and derivation of product price fields.
Supports live rates from public exchange-rate APIs with a one-hour cache
and fallback to the last known or manual rate.
"""

from storefront.pricing.fx_provider import (
    ExchangeRateState,
    FXProvider,
    RateRefreshResult,
    RateSource,
    fetch_live_rate,
)
from storefront.pricing.pricing_engine import (
    PricingEngine,
    PricingResult,
    coerce_amount,
    compute_pricing,
    reprice_catalog,
)

__all__ = [
    "FXProvider",
    "ExchangeRateState",
    "RateRefreshResult",
    "RateSource",
    "fetch_live_rate",
    "PricingEngine",
    "PricingResult",
    "coerce_amount",
    "compute_pricing",
    "reprice_catalog",
]
