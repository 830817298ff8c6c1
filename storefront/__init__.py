"""
Etsub Online Shopping storefront.

Product catalog priced from USD supplier costs at a live USD to ETB rate,
with a password-gated admin dashboard.
"""

__version__ = "1.0.0"
