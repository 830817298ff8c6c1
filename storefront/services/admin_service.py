"""
Admin dashboard service.

Wires the catalog, FX provider and session guard together and owns the
timers of an admin session:
- FX refresh: once at session start, then every hour
- Expiry check: every minute, forces logout once the session runs out

Both timers are cancelled when the session ends.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

from storefront.auth.session_guard import AdminSessionGuard, LoginResult, SessionState
from storefront.exceptions import AuthenticationRequiredError, ValidationError
from storefront.models.product import Product, ProductStatus, new_product_id
from storefront.pricing.fx_provider import ExchangeRateState, FXProvider, RateRefreshResult
from storefront.pricing.pricing_engine import PricingEngine, coerce_amount
from storefront.services.catalog_service import CatalogStats, catalog_stats
from storefront.services.scheduler import Scheduler
from storefront.storage.catalog_store import CatalogStore
from storefront.storage.kv_store import KVStore
from storefront.storage.session_store import SessionStore
from storefront.utils.config_loader import AppConfig

logger = logging.getLogger(__name__)

FX_REFRESH_TASK = "fx-refresh"
SESSION_EXPIRY_TASK = "session-expiry"
BACKUP_FILENAME = "etsub_products_backup.json"


@dataclass
class ProductDraft:
    """Admin form input for adding or editing a product."""

    name: str
    source_cost_usd: Any = 0
    agent_fee_local: Any = 0
    margin_local: Any = 0
    status: Any = ProductStatus.IN_STOCK
    category: str = ""
    size: str = ""
    color: str = ""
    description: str = ""
    images: Iterable[str] = field(default_factory=tuple)
    videos: Iterable[str] = field(default_factory=tuple)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProductDraft":
        return cls(
            name=str(data.get("name") or ""),
            source_cost_usd=data.get("source_cost_usd", 0),
            agent_fee_local=data.get("agent_fee_local", 0),
            margin_local=data.get("margin_local", 0),
            status=data.get("status") or ProductStatus.IN_STOCK,
            category=str(data.get("category") or ""),
            size=str(data.get("size") or ""),
            color=str(data.get("color") or ""),
            description=str(data.get("description") or ""),
            images=tuple(data.get("images") or ()),
            videos=tuple(data.get("videos") or ()),
        )

    def to_product(self, product_id: str, created_at: datetime) -> Product:
        """
        Build a product record from the draft.

        Amounts are coerced; derived price fields are left for the pricing
        engine to fill in.
        """
        try:
            status = ProductStatus.parse(self.status)
        except ValueError:
            raise ValidationError(f"Unknown product status: {self.status}", details={"field": "status"})
        return Product(
            id=product_id,
            name=self.name.strip(),
            source_cost_usd=coerce_amount(self.source_cost_usd),
            agent_fee_local=coerce_amount(self.agent_fee_local),
            margin_local=coerce_amount(self.margin_local),
            status=status,
            category=self.category.strip(),
            size=self.size.strip(),
            color=self.color.strip(),
            description=self.description,
            images=tuple(self.images),
            videos=tuple(self.videos),
            created_at=created_at,
        )


def release_media_file(media_dir: Path) -> Callable[[str], None]:
    """
    Build a media release hook that deletes uploaded files under ``media_dir``.

    References outside the directory (remote URLs, data URIs) are left alone.
    """
    root = Path(media_dir).resolve()

    def release(ref: str) -> None:
        if not ref or "://" in ref or ref.startswith("data:"):
            return
        path = Path(ref)
        if not path.is_absolute():
            path = root / path
        path = path.resolve()
        if root not in path.parents:
            logger.debug(f"Not releasing media outside {root}: {ref}")
            return
        if path.exists():
            path.unlink()
            logger.info(f"Released media file {path}")

    return release


class AdminService:
    """
    Service behind the admin dashboard.

    Attributes:
        config: Application configuration.
        catalog: Product catalog store.
        fx_provider: Exchange-rate provider (reprices the catalog).
        pricing: Pricing engine bound to the FX provider.
        guard: Admin session guard.
        scheduler: Owner of the session timers.
    """

    def __init__(
        self,
        config: AppConfig,
        kv_store: KVStore,
        clock: Callable[[], datetime] = datetime.now,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.config = config
        self.kv_store = kv_store
        self.clock = clock
        self.scheduler = scheduler or Scheduler()

        self.catalog = CatalogStore(
            kv_store,
            release_media=release_media_file(Path(config.paths.media_dir)),
        )
        self.fx_provider = FXProvider(config, kv_store, catalog=self.catalog, clock=clock)
        self.pricing = PricingEngine(self.fx_provider)

        session_store = SessionStore(kv_store, expiry_hours=config.auth.session_seconds / 3600)
        self.guard = AdminSessionGuard.from_config(config, session_store, clock=clock)

    def load(self) -> None:
        """Load the catalog, normalizing derived prices at the active rate."""
        self.catalog.load(rate=self.fx_provider.get_rate())

    def start(self) -> None:
        """Load state and, if a persisted session was resumed, start its timers."""
        self.load()
        if self.guard.authenticated:
            self._start_session_tasks()

    def shutdown(self) -> None:
        """Cancel all timers and stop background work."""
        self.scheduler.cancel_all()
        self.fx_provider.shutdown()

    # =========================================================================
    # Session
    # =========================================================================

    def _start_session_tasks(self) -> None:
        self.scheduler.schedule(
            FX_REFRESH_TASK,
            self.fx_provider.refresh_rate,
            self.config.fx.refresh_interval_seconds,
            run_immediately=True,
        )
        self.scheduler.schedule(
            SESSION_EXPIRY_TASK,
            self.check_session,
            self.config.auth.expiry_check_seconds,
        )
        logger.info("Admin session timers started")

    def _stop_session_tasks(self) -> None:
        cancelled = self.scheduler.cancel_all()
        if cancelled:
            logger.info(f"Cancelled {cancelled} admin session timers")

    def login(self, password: Any) -> LoginResult:
        self.check_session()
        result = self.guard.submit(password)
        if result.success and not self.scheduler.is_scheduled(FX_REFRESH_TASK):
            self._start_session_tasks()
        return result

    def logout(self) -> None:
        self.guard.logout()
        self._stop_session_tasks()

    def check_session(self) -> bool:
        """
        Expire the session if it has run out.

        Returns:
            bool: True if the session was expired by this call.
        """
        expired = self.guard.check_expiry()
        if expired:
            self._stop_session_tasks()
        return expired

    def require_session(self) -> None:
        """
        Raises:
            AuthenticationRequiredError: If the admin is not logged in.
        """
        self.check_session()
        if self.guard.state != SessionState.LOGGED_IN:
            raise AuthenticationRequiredError()

    # =========================================================================
    # Catalog
    # =========================================================================

    def add_product(self, draft: ProductDraft) -> Product:
        self.require_session()
        with self.catalog.lock:
            product = self.pricing.price(draft.to_product(new_product_id(), self.clock()))
            return self.catalog.add(product)

    def update_product(self, product_id: str, draft: ProductDraft) -> Product:
        self.require_session()
        with self.catalog.lock:
            existing = self.catalog.get(product_id)
            product = self.pricing.price(draft.to_product(existing.id, existing.created_at))
            return self.catalog.update(product)

    def set_product_status(self, product_id: str, status: Any) -> Product:
        self.require_session()
        with self.catalog.lock:
            existing = self.catalog.get(product_id)
            try:
                parsed = ProductStatus.parse(status)
            except ValueError:
                raise ValidationError(f"Unknown product status: {status}", details={"field": "status"})
            return self.catalog.update(replace(existing, status=parsed))

    def delete_product(self, product_id: str) -> Product:
        self.require_session()
        return self.catalog.delete(product_id)

    def export_catalog(self) -> list[dict[str, Any]]:
        """
        Back up the catalog.

        Returns:
            Every product in its stored JSON form, in catalog order. Loading
            this list back as the ``products`` value restores the catalog.
        """
        self.require_session()
        products = self.catalog.products
        logger.info(f"Exported {len(products)} products")
        return [p.to_dict() for p in products]

    def clear_catalog(self) -> int:
        """
        Delete every product and its uploaded media.

        Returns:
            int: Number of products removed.
        """
        self.require_session()
        return len(self.catalog.clear())

    def stats(self) -> CatalogStats:
        return catalog_stats(self.catalog.products)

    # =========================================================================
    # Exchange rate
    # =========================================================================

    def rate_state(self) -> ExchangeRateState:
        return self.fx_provider.state

    def refresh_rate(self) -> RateRefreshResult:
        self.require_session()
        return self.fx_provider.refresh_rate()

    def refresh_rate_async(self) -> Future:
        self.require_session()
        return self.fx_provider.refresh_rate_async()

    def set_manual_rate(self, rate: Any) -> ExchangeRateState:
        self.require_session()
        return self.fx_provider.set_manual_rate(rate)
