"""
Catalog storage module.

Owns the authoritative product list. The list is copy-on-write: every
mutation builds a new tuple snapshot and persists it, so readers holding an
older snapshot never observe a half-applied change.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Iterable, Optional

from storefront.exceptions import ProductNotFoundError, ValidationError
from storefront.models.product import MAX_IMAGES, MAX_VIDEOS, Product
from storefront.pricing.pricing_engine import normalize_pricing

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "products"


def validate_product(product: Product) -> None:
    """
    Check the admin form rules for a product record.

    Raises:
        ValidationError: If the name is blank or there are too many media items.
    """
    if not product.name or not product.name.strip():
        raise ValidationError("Product Name is required", details={"field": "name"})
    if len(product.images) > MAX_IMAGES:
        raise ValidationError(
            f"At most {MAX_IMAGES} images are allowed",
            details={"field": "images", "count": len(product.images)},
        )
    if len(product.videos) > MAX_VIDEOS:
        raise ValidationError(
            f"At most {MAX_VIDEOS} video is allowed",
            details={"field": "videos", "count": len(product.videos)},
        )


class CatalogStore:
    """
    Product catalog mirrored to the key-value store.

    Attributes:
        kv_store: Persistence substrate.
        release_media: Called with each image/video reference of a deleted product.
        lock: Held by anything that reads a snapshot and writes back a derived one.
    """

    def __init__(
        self,
        kv_store,
        release_media: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.kv_store = kv_store
        self.release_media = release_media
        self._products: tuple[Product, ...] = ()
        self.lock = threading.RLock()

    @property
    def products(self) -> tuple[Product, ...]:
        """Current snapshot."""
        return self._products

    def __len__(self) -> int:
        return len(self._products)

    def load(self, rate: Optional[float] = None) -> tuple[Product, ...]:
        """
        Load the catalog from storage.

        Malformed JSON or a non-list value loads as an empty catalog; single
        malformed records are skipped. When ``rate`` is given, derived price
        fields are recomputed so stale values never survive a reload.

        Args:
            rate: Active USD rate used to normalize derived fields.

        Returns:
            The loaded snapshot.
        """
        raw = self.kv_store.get_json(PRODUCTS_KEY, default=[])
        if not isinstance(raw, list):
            logger.warning(f"Stored catalog is not a list ({type(raw).__name__}), starting empty")
            raw = []

        products = []
        stamped = 0
        for entry in raw:
            try:
                product = Product.from_dict(entry)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed product record: {e}")
                continue
            if not (entry.get("createdAt") or entry.get("created_at")):
                stamped += 1
            if rate is not None:
                product = normalize_pricing(product, rate)
            products.append(product)

        self._products = tuple(products)
        logger.info(f"Loaded {len(self._products)} products")
        if stamped:
            # Records without a creation time keep the one given at first load
            self.save()
            logger.info(f"Stamped creation time on {stamped} legacy products")
        return self._products

    def save(self) -> None:
        """Persist the current snapshot."""
        self._persist(self._products)

    def _persist(self, products: Iterable[Product]) -> None:
        self.kv_store.set_json(PRODUCTS_KEY, [p.to_dict() for p in products])

    def _commit(self, products: Iterable[Product]) -> None:
        """Persist a new snapshot, then swap it in. A failed write changes nothing."""
        snapshot = tuple(products)
        with self.lock:
            self._persist(snapshot)
            self._products = snapshot

    def get(self, product_id: str) -> Product:
        """
        Get a product by id.

        Raises:
            ProductNotFoundError: If no product has this id.
        """
        for product in self._products:
            if product.id == product_id:
                return product
        raise ProductNotFoundError(product_id)

    def add(self, product: Product) -> Product:
        """Append a new product."""
        validate_product(product)
        with self.lock:
            if any(p.id == product.id for p in self._products):
                raise ValidationError(f"Duplicate product id: {product.id}", details={"product_id": product.id})
            self._commit(self._products + (product,))
        logger.info(f"Added product {product.id} ({product.name})")
        return product

    def update(self, product: Product) -> Product:
        """
        Replace an existing product, keeping its position.

        The stored ``created_at`` is kept regardless of the incoming value.
        """
        validate_product(product)
        with self.lock:
            existing = self.get(product.id)
            if product.created_at != existing.created_at:
                product = replace(product, created_at=existing.created_at)
            self._commit(product if p.id == product.id else p for p in self._products)
        logger.info(f"Updated product {product.id}")
        return product

    def _release(self, product: Product) -> None:
        if not self.release_media:
            return
        for ref in product.media:
            try:
                self.release_media(ref)
            except OSError as e:
                logger.warning(f"Failed to release media for {product.id}: {e}")

    def delete(self, product_id: str) -> Product:
        """Remove a product and release its media references."""
        with self.lock:
            product = self.get(product_id)
            self._commit(p for p in self._products if p.id != product_id)

        self._release(product)
        logger.info(f"Deleted product {product_id} ({len(product.media)} media references released)")
        return product

    def clear(self) -> tuple[Product, ...]:
        """
        Remove every product and release all media references.

        Returns:
            The removed snapshot.
        """
        with self.lock:
            removed = self._products
            self._commit(())

        for product in removed:
            self._release(product)
        logger.info(f"Cleared catalog ({len(removed)} products removed)")
        return removed

    def replace_all(self, products: Iterable[Product]) -> tuple[Product, ...]:
        """Swap in a whole new snapshot in one step (used for bulk repricing)."""
        self._commit(products)
        return self._products
