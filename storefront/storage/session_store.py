"""
Admin session persistence.

Keeps the admin session token and its expiry in the key-value store so a
restart inside the session window resumes without a new login.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from storefront.storage.kv_store import KVStore

logger = logging.getLogger(__name__)

TOKEN_KEY = "adminSessionToken"
EXPIRY_KEY = "adminSessionExpiry"

# Default session expiry (hours)
DEFAULT_SESSION_EXPIRY_HOURS = 1


def _to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _from_epoch_ms(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000)


@dataclass
class SessionData:
    """Persisted admin session."""

    token: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if session has expired."""
        return (now or datetime.now()) >= self.expires_at


class SessionStore:
    """Stores at most one admin session."""

    def __init__(
        self,
        kv_store: KVStore,
        expiry_hours: float = DEFAULT_SESSION_EXPIRY_HOURS,
    ) -> None:
        """
        Initialize the session store.

        Args:
            kv_store: Persistence substrate.
            expiry_hours: Hours until session expires.
        """
        self.kv_store = kv_store
        self.expiry_hours = expiry_hours

    def create(self, now: Optional[datetime] = None) -> SessionData:
        """Issue and persist a new session token."""
        now = now or datetime.now()
        session = SessionData(
            token=secrets.token_urlsafe(32),
            expires_at=now + timedelta(hours=self.expiry_hours),
        )
        self.kv_store.set(TOKEN_KEY, session.token)
        self.kv_store.set(EXPIRY_KEY, str(_to_epoch_ms(session.expires_at)))
        logger.info(f"Created admin session, expires at {session.expires_at}")
        return session

    def get(self, now: Optional[datetime] = None) -> Optional[SessionData]:
        """
        Get the persisted session.

        A stale, partial or malformed session is removed and None is returned.
        """
        token = self.kv_store.get(TOKEN_KEY)
        expiry_raw = self.kv_store.get(EXPIRY_KEY)

        if not token and expiry_raw is None:
            return None

        try:
            if not token:
                raise ValueError("missing token")
            session = SessionData(token=token, expires_at=_from_epoch_ms(expiry_raw))
        except (TypeError, ValueError, OverflowError, OSError) as e:
            logger.warning(f"Discarding malformed admin session: {e}")
            self.delete()
            return None

        if session.is_expired(now):
            logger.info("Persisted admin session has expired, removing")
            self.delete()
            return None

        return session

    def delete(self) -> None:
        """Remove the session token and expiry."""
        self.kv_store.remove(TOKEN_KEY)
        self.kv_store.remove(EXPIRY_KEY)
