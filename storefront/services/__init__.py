"""
Service layer for the storefront and admin dashboard.
"""

from storefront.services.admin_service import AdminService, ProductDraft
from storefront.services.catalog_service import CatalogStats, catalog_stats, list_categories, search_products

__all__ = [
    "AdminService",
    "ProductDraft",
    "CatalogStats",
    "catalog_stats",
    "list_categories",
    "search_products",
]
