"""
Admin session guard.

A small state machine gating catalog writes behind a password:

    logged_out --good password--> logged_in   (session for 1 hour)
    logged_out --bad password---> logged_out  (failed count + 1)
    logged_out --3rd bad--------> locked_out  (5 minutes)
    locked_out --any password---> locked_out  (rejected, count unchanged)
    locked_out --timeout--------> logged_out  (count reset)
    logged_in  --logout/expiry--> logged_out

The password is compared locally. This is a convenience gate for a shop
owner, not a security boundary.
"""

import hmac
import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional

from storefront.storage.session_store import SessionStore
from storefront.utils.config_loader import AppConfig, get_admin_password

logger = logging.getLogger(__name__)

SESSION_EXPIRED_NOTICE = "Your session has expired. Please log in again."


class SessionState(str, Enum):
    """Admin session states."""

    LOGGED_OUT = "logged_out"
    LOGGED_IN = "logged_in"
    LOCKED_OUT = "locked_out"


@dataclass(frozen=True)
class LoginResult:
    """
    Outcome of a login attempt.

    Attributes:
        success: True if the session is now logged in.
        state: State after the attempt.
        message: User-facing message.
        remaining_seconds: Seconds left in the lockout, 0 when not locked.
        attempts_left: Attempts before lockout, None when not applicable.
    """

    success: bool
    state: SessionState
    message: str
    remaining_seconds: int = 0
    attempts_left: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "state": self.state.value,
            "message": self.message,
            "remaining_seconds": self.remaining_seconds,
            "attempts_left": self.attempts_left,
        }


class AdminSessionGuard:
    """
    Login, lockout and expiry bookkeeping for the admin dashboard.

    Attributes:
        session_store: Persists the session token and expiry.
        max_attempts: Consecutive failures that trigger a lockout.
        lockout_seconds: Lockout duration.
        failed_attempt_count: Consecutive failures since the last reset.
        locked_until: End of the current lockout, if any.
        session_expires_at: End of the current session, if logged in.
        notice: Last notice to surface (e.g. session expired), cleared on read.
    """

    def __init__(
        self,
        password: str,
        session_store: SessionStore,
        max_attempts: int = 3,
        lockout_seconds: int = 300,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if not password:
            raise ValueError("Admin password must not be empty")
        self._password = password
        self.session_store = session_store
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self.clock = clock

        self._lock = threading.RLock()
        self._state = SessionState.LOGGED_OUT
        self.failed_attempt_count = 0
        self.locked_until: Optional[datetime] = None
        self.session_expires_at: Optional[datetime] = None
        self._notice: Optional[str] = None

        self.resume()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        session_store: SessionStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "AdminSessionGuard":
        return cls(
            password=get_admin_password(config),
            session_store=session_store,
            max_attempts=config.auth.max_attempts,
            lockout_seconds=config.auth.lockout_seconds,
            clock=clock,
        )

    def resume(self) -> SessionState:
        """
        Resume a persisted session.

        A stored token that has not expired resumes ``logged_in`` without a
        password; a stale one is discarded by the session store.
        """
        with self._lock:
            session = self.session_store.get(now=self.clock())
            if session is not None:
                self._state = SessionState.LOGGED_IN
                self.session_expires_at = session.expires_at
                logger.info(f"Resumed admin session, expires at {session.expires_at}")
            return self._state

    @property
    def state(self) -> SessionState:
        """Current state, applying a lockout timeout if one has passed."""
        with self._lock:
            self._expire_lockout()
            return self._state

    @property
    def authenticated(self) -> bool:
        return self.state == SessionState.LOGGED_IN

    def _expire_lockout(self) -> None:
        if self._state == SessionState.LOCKED_OUT and self.locked_until is not None:
            if self.clock() >= self.locked_until:
                self._state = SessionState.LOGGED_OUT
                self.failed_attempt_count = 0
                self.locked_until = None
                logger.info("Admin lockout expired")

    def lockout_remaining_seconds(self) -> int:
        """Whole seconds left in the lockout (rounded up), 0 when not locked."""
        with self._lock:
            self._expire_lockout()
            if self._state != SessionState.LOCKED_OUT or self.locked_until is None:
                return 0
            return max(0, math.ceil((self.locked_until - self.clock()).total_seconds()))

    def _check_password(self, candidate: Any) -> bool:
        if not isinstance(candidate, str):
            return False
        return hmac.compare_digest(candidate.encode("utf-8"), self._password.encode("utf-8"))

    def submit(self, password: Any) -> LoginResult:
        """
        Attempt a login.

        Args:
            password: Password entered by the admin.

        Returns:
            LoginResult; a wrong password is a normal result, not an exception.
        """
        with self._lock:
            self.check_expiry()
            state = self.state

            if state == SessionState.LOCKED_OUT:
                remaining = self.lockout_remaining_seconds()
                logger.warning(f"Login rejected during lockout ({remaining}s remaining)")
                return LoginResult(
                    success=False,
                    state=state,
                    message=f"Too many failed attempts. Try again in {remaining} seconds.",
                    remaining_seconds=remaining,
                )

            if state == SessionState.LOGGED_IN:
                if self._check_password(password):
                    return LoginResult(success=True, state=state, message="Already logged in")
                logger.warning("Wrong password submitted during a live admin session")
                return LoginResult(success=False, state=state, message="Incorrect password.")

            if self._check_password(password):
                now = self.clock()
                session = self.session_store.create(now=now)
                self._state = SessionState.LOGGED_IN
                self.failed_attempt_count = 0
                self.locked_until = None
                self.session_expires_at = session.expires_at
                self._notice = None
                logger.info("Admin logged in")
                return LoginResult(success=True, state=self._state, message="Login successful")

            self.failed_attempt_count += 1
            attempts_left = max(0, self.max_attempts - self.failed_attempt_count)
            logger.warning(f"Failed admin login attempt {self.failed_attempt_count}/{self.max_attempts}")

            if self.failed_attempt_count >= self.max_attempts:
                self._state = SessionState.LOCKED_OUT
                self.locked_until = self.clock() + timedelta(seconds=self.lockout_seconds)
                logger.warning(f"Admin login locked until {self.locked_until}")
                return LoginResult(
                    success=False,
                    state=self._state,
                    message=f"Too many failed attempts. Try again in {self.lockout_seconds} seconds.",
                    remaining_seconds=self.lockout_seconds,
                    attempts_left=0,
                )

            return LoginResult(
                success=False,
                state=self._state,
                message=f"Incorrect password. {attempts_left} attempt(s) remaining.",
                attempts_left=attempts_left,
            )

    def logout(self) -> None:
        """End the session and clear the persisted token."""
        with self._lock:
            was_logged_in = self._state == SessionState.LOGGED_IN
            self.session_store.delete()
            if was_logged_in:
                self._state = SessionState.LOGGED_OUT
            self.session_expires_at = None
            if was_logged_in:
                logger.info("Admin logged out")

    def check_expiry(self) -> bool:
        """
        Force a logout when the session has run past its expiry.

        Returns:
            bool: True if the session was expired by this call.
        """
        with self._lock:
            if self._state != SessionState.LOGGED_IN or self.session_expires_at is None:
                return False
            if self.clock() < self.session_expires_at:
                return False

            logger.info("Admin session expired")
            self.logout()
            self._notice = SESSION_EXPIRED_NOTICE
            return True

    def pop_notice(self) -> Optional[str]:
        """Return and clear the pending notice."""
        with self._lock:
            notice, self._notice = self._notice, None
            return notice

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            state = self.state
            return {
                "state": state.value,
                "authenticated": state == SessionState.LOGGED_IN,
                "session_expires_at": self.session_expires_at.isoformat() if self.session_expires_at else None,
                "failed_attempt_count": self.failed_attempt_count,
                "locked_until": self.locked_until.isoformat() if self.locked_until else None,
                "lockout_remaining_seconds": self.lockout_remaining_seconds(),
            }
