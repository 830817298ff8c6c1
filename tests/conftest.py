"""
Shared pytest fixtures.
"""

from datetime import datetime, timedelta

import pytest

from storefront.storage.kv_store import InMemoryKVStore
from storefront.utils.config_loader import AppConfig

ADMIN_PASSWORD = "s3cret-pass"


class FakeClock:
    """Settable local clock for time-dependent code."""

    def __init__(self, start: datetime = datetime(2026, 10, 18, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv_store() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest.fixture
def config(tmp_path, monkeypatch) -> AppConfig:
    """Default configuration with a known admin password and temp paths."""
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    config = AppConfig()
    config.paths.data_dir = str(tmp_path / "data")
    config.paths.media_dir = str(tmp_path / "data" / "media")
    return config


@pytest.fixture
def admin_password() -> str:
    return ADMIN_PASSWORD
