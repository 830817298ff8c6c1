"""
FX rate provider module.

Keeps the single authoritative USD→ETB rate. The rate comes from, in order:
a fresh cache entry, live public exchange-rate APIs, or the last known value.
Admins can also set it by hand. Every rate change reprices the whole catalog.
"""

import contextlib
import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Tuple

import requests

from storefront.exceptions import StorageError, TransientProviderError, ValidationError
from storefront.pricing.pricing_engine import reprice_catalog
from storefront.storage.kv_store import KVStore
from storefront.storage.rate_cache import RateCache
from storefront.utils.config_loader import AppConfig, RateProviderConfig

logger = logging.getLogger(__name__)

RATE_KEY = "usdRate"
SOURCE_KEY = "rateSource"
LAST_UPDATED_KEY = "rateLastUpdated"

PERSISTED_KEYS = (RATE_KEY, SOURCE_KEY, LAST_UPDATED_KEY)


class RateSource(str, Enum):
    """Where the current rate came from."""

    CACHED = "cached"
    LIVE_FETCH = "live_fetch"
    MANUAL_OVERRIDE = "manual_override"


@dataclass(frozen=True)
class ExchangeRateState:
    """Snapshot of the exchange-rate state."""

    current_rate: float
    source: RateSource
    last_updated_at: Optional[datetime]
    is_loading: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "rate": self.current_rate,
            "source": self.source.value,
            "last_updated_at": self.last_updated_at.isoformat() if self.last_updated_at else None,
            "is_loading": self.is_loading,
        }


@dataclass(frozen=True)
class RateRefreshResult:
    """
    Outcome of a refresh.

    Attributes:
        success: True when a cached or live rate was applied.
        rate: Rate in effect after the refresh.
        source: Source of the rate in effect.
        fetched: True when a provider was actually called and succeeded.
        skipped: True when another refresh was already in flight.
        error: Failure description when no provider succeeded.
    """

    success: bool
    rate: float
    source: RateSource
    fetched: bool = False
    skipped: bool = False
    error: Optional[str] = None


def parse_positive_rate(value: Any) -> Optional[float]:
    """Return value as a finite positive float, or None."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        rate = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(rate) or rate <= 0:
        return None
    return rate


def fetch_provider_rate(
    provider: RateProviderConfig,
    quote_currency: str = "ETB",
    timeout: float = 5,
) -> float:
    """
    Fetch the USD rate from one provider.

    Both supported providers answer with ``{"rates": {"ETB": <rate>, ...}}``.

    Args:
        provider: Provider name and URL.
        quote_currency: Currency code to read from the rates map.
        timeout: Request timeout in seconds.

    Returns:
        float: Positive rate.

    Raises:
        TransientProviderError: On network failure, timeout, HTTP error or bad body.
    """
    logger.info(f"Fetching live FX rate from {provider.name}: {provider.url}")
    try:
        response = requests.get(
            provider.url,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.Timeout:
        raise TransientProviderError(f"{provider.name} request timed out after {timeout}s", provider.name)
    except requests.exceptions.ConnectionError as e:
        raise TransientProviderError(f"Connection error fetching {provider.name}: {e}", provider.name)
    except requests.exceptions.HTTPError as e:
        raise TransientProviderError(f"HTTP error from {provider.name}: {e}", provider.name)
    except (requests.exceptions.RequestException, ValueError) as e:
        raise TransientProviderError(f"Invalid response from {provider.name}: {e}", provider.name)

    rates = data.get("rates") if isinstance(data, dict) else None
    rate = parse_positive_rate(rates.get(quote_currency)) if isinstance(rates, dict) else None
    if rate is None:
        raise TransientProviderError(
            f"No valid {quote_currency} rate in response from {provider.name}", provider.name
        )

    logger.info(f"Successfully fetched {provider.name} rate: {rate}")
    return rate


def fetch_live_rate(config: AppConfig) -> Tuple[Optional[float], str]:
    """
    Try every configured provider in order; the first success wins.

    Args:
        config: Application configuration with FX settings.

    Returns:
        Tuple of (rate, source):
            - (float, provider_name) if a provider succeeded
            - (None, error_message) if all failed
    """
    errors = []
    for provider in config.fx.providers:
        try:
            rate = fetch_provider_rate(
                provider,
                quote_currency=config.fx.quote_currency,
                timeout=config.fx.timeout_seconds,
            )
            return rate, provider.name
        except TransientProviderError as e:
            logger.warning(f"{e.message}; trying next provider")
            errors.append(e.message)

    if not errors:
        return None, "No rate providers configured"
    return None, "All rate providers failed: " + "; ".join(errors)


class FXProvider:
    """
    Provider for the USD to ETB exchange rate.

    Owns the current rate and mirrors it to storage. When a catalog is
    attached, every rate change reprices the catalog and swaps the new
    snapshot in together with the rate.

    Attributes:
        config: Application configuration.
        kv_store: Persistence substrate.
        rate_cache: One-hour cache of provider results.
        catalog: Optional catalog store to reprice on rate changes.
    """

    def __init__(
        self,
        config: AppConfig,
        kv_store: KVStore,
        rate_cache: Optional[RateCache] = None,
        catalog=None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the FX provider from persisted state.

        Args:
            config: Application configuration with FX settings.
            kv_store: Persistence substrate.
            rate_cache: Rate cache; one over ``kv_store`` is created if omitted.
            catalog: Catalog store to reprice on rate changes.
            clock: Returns the current local time.
        """
        self.config = config
        self.kv_store = kv_store
        self.clock = clock
        self.rate_cache = rate_cache or RateCache(
            kv_store,
            ttl_seconds=config.fx.cache_ttl_seconds,
            clock=lambda: self.clock().timestamp(),
        )
        self.catalog = catalog

        self._state_lock = threading.RLock()
        self._fetch_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[Future] = None

        self.current_rate, self.source, self.last_updated_at = self._load_state()

    def _load_state(self) -> Tuple[float, RateSource, Optional[datetime]]:
        """Read the persisted rate; missing or malformed values fall back to defaults."""
        rate = parse_positive_rate(self.kv_store.get_json(RATE_KEY))
        if rate is None:
            rate = self.get_default_rate()

        try:
            source = RateSource(self.kv_store.get(SOURCE_KEY) or RateSource.CACHED.value)
        except ValueError:
            source = RateSource.CACHED

        last_updated = None
        raw_updated = self.kv_store.get(LAST_UPDATED_KEY)
        if raw_updated:
            try:
                last_updated = datetime.fromtimestamp(int(raw_updated) / 1000)
            except (TypeError, ValueError, OverflowError, OSError):
                logger.warning(f"Ignoring malformed {LAST_UPDATED_KEY} value: {raw_updated!r}")

        return rate, source, last_updated

    def get_default_rate(self) -> float:
        """
        Get the default FX rate from configuration.

        Returns:
            float: Default USD to ETB rate.
        """
        return parse_positive_rate(self.config.fx.default_rate) or 154.0

    def get_rate(self) -> float:
        """
        Get the current FX rate.

        Returns:
            float: Current USD to ETB rate (always > 0).
        """
        with self._state_lock:
            return self.current_rate

    @property
    def is_loading(self) -> bool:
        """True while a fetch runs or an async refresh is queued."""
        pending = self._pending
        return self._fetch_lock.locked() or (pending is not None and not pending.done())

    @property
    def state(self) -> ExchangeRateState:
        with self._state_lock:
            return ExchangeRateState(
                current_rate=self.current_rate,
                source=self.source,
                last_updated_at=self.last_updated_at,
                is_loading=self.is_loading,
            )

    def _apply_rate(self, rate: float, source: RateSource) -> None:
        """
        Install a new rate and reprice the catalog in one step.

        The repriced snapshot is built and everything is persisted before the
        in-memory rate changes, so no reader sees the new rate next to stale
        converted costs. If a write fails, the stored rate keys are put back
        and the error propagates with the old rate still in effect. The
        catalog lock is taken before the state lock, matching catalog writers
        that read the rate.
        """
        catalog_lock = self.catalog.lock if self.catalog is not None else contextlib.nullcontext()
        with catalog_lock, self._state_lock:
            repriced = None
            if self.catalog is not None:
                repriced = reprice_catalog(self.catalog.products, rate)

            now = self.clock()
            previous = {key: self.kv_store.get(key) for key in PERSISTED_KEYS}
            try:
                self.kv_store.set_json(RATE_KEY, rate)
                self.kv_store.set(SOURCE_KEY, source.value)
                self.kv_store.set(LAST_UPDATED_KEY, str(int(now.timestamp() * 1000)))
                if repriced is not None:
                    self.catalog.replace_all(repriced)
            except StorageError:
                self._restore_persisted(previous)
                raise

            self.current_rate = rate
            self.source = source
            self.last_updated_at = now

        logger.info(
            f"FX rate set to {rate} ({source.value})"
            + (f", repriced {len(repriced)} products" if repriced is not None else "")
        )

    def _restore_persisted(self, previous: dict) -> None:
        try:
            for key, value in previous.items():
                if value is None:
                    self.kv_store.remove(key)
                else:
                    self.kv_store.set(key, value)
        except StorageError as e:
            logger.error(f"Could not restore stored FX rate after a failed update: {e.message}")

    def set_manual_rate(self, rate: Any) -> ExchangeRateState:
        """
        Set a manual FX rate.

        Args:
            rate: USD to ETB exchange rate (number or numeric string).

        Returns:
            ExchangeRateState after the update.

        Raises:
            ValidationError: If rate is not a positive number. Nothing changes.
        """
        parsed = parse_positive_rate(rate.strip() if isinstance(rate, str) else rate)
        if parsed is None:
            raise ValidationError(
                "Please enter a valid rate.",
                details={"rate": str(rate)},
            )

        self._apply_rate(parsed, RateSource.MANUAL_OVERRIDE)
        return self.state

    def refresh_rate(self) -> RateRefreshResult:
        """
        Refresh the rate from the cache or the live providers.

        A refresh already in flight makes this call a no-op. All provider
        failures are logged and reported in the result; none are raised.

        Returns:
            RateRefreshResult describing what happened.
        """
        if not self._fetch_lock.acquire(blocking=False):
            logger.debug("FX refresh already in progress, skipping")
            return RateRefreshResult(
                success=False,
                rate=self.get_rate(),
                source=self.source,
                skipped=True,
            )

        try:
            cached = self.rate_cache.get_fresh()
            if cached is not None:
                logger.info(f"Using cached FX rate: {cached.rate}")
                if cached.rate != self.get_rate():
                    self._apply_rate(cached.rate, RateSource.CACHED)
                return RateRefreshResult(success=True, rate=self.get_rate(), source=self.source)

            rate, source_or_error = fetch_live_rate(self.config)
            if rate is None:
                logger.warning(f"FX refresh failed ({source_or_error}), keeping rate {self.get_rate()}")
                return RateRefreshResult(
                    success=False,
                    rate=self.get_rate(),
                    source=self.source,
                    error=source_or_error,
                )

            self.rate_cache.store(rate)
            self._apply_rate(rate, RateSource.LIVE_FETCH)
            return RateRefreshResult(
                success=True,
                rate=rate,
                source=RateSource.LIVE_FETCH,
                fetched=True,
            )
        finally:
            self._fetch_lock.release()

    def refresh_rate_async(self) -> Future:
        """
        Run ``refresh_rate`` on a background worker.

        While a refresh is pending, the pending future is returned instead of
        starting a second one.

        Returns:
            Future resolving to a RateRefreshResult.
        """
        with self._state_lock:
            if self._pending is not None and not self._pending.done():
                return self._pending
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fx-refresh")
            self._pending = self._executor.submit(self.refresh_rate)
            return self._pending

    def shutdown(self) -> None:
        """Stop the background worker, waiting for a pending refresh."""
        with self._state_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def get_rate_info(self) -> dict:
        """
        Get information about the current rate.

        Returns:
            dict: Rate value, source, timestamp and cache details.
        """
        info = self.state.to_dict()
        info["is_default"] = self.last_updated_at is None
        info["cache"] = self.rate_cache.get_stats()
        return info
