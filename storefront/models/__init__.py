"""
Catalog data models.
"""

from storefront.models.product import MAX_IMAGES, MAX_VIDEOS, Product, ProductStatus, new_product_id

__all__ = [
    "Product",
    "ProductStatus",
    "new_product_id",
    "MAX_IMAGES",
    "MAX_VIDEOS",
]
