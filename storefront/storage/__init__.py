"""
Storage modules for data persistence.
"""

from storefront.storage.kv_store import InMemoryKVStore, JsonFileKVStore, KVStore
from storefront.storage.rate_cache import CachedRate, RateCache
from storefront.storage.session_store import SessionData, SessionStore

__all__ = [
    "KVStore",
    "InMemoryKVStore",
    "JsonFileKVStore",
    "RateCache",
    "CachedRate",
    "SessionStore",
    "SessionData",
]
