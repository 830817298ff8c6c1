"""
Tests for the admin session guard.
"""

from datetime import timedelta

import pytest

from storefront.auth.session_guard import SESSION_EXPIRED_NOTICE, AdminSessionGuard, SessionState
from storefront.storage.kv_store import InMemoryKVStore
from storefront.storage.session_store import EXPIRY_KEY, TOKEN_KEY, SessionStore

PASSWORD = "correct horse"


@pytest.fixture
def session_store(kv_store: InMemoryKVStore) -> SessionStore:
    return SessionStore(kv_store, expiry_hours=1)


@pytest.fixture
def guard(session_store: SessionStore, clock) -> AdminSessionGuard:
    return AdminSessionGuard(PASSWORD, session_store, max_attempts=3, lockout_seconds=300, clock=clock)


class TestLogin:
    """Tests for password submission."""

    def test_starts_logged_out(self, guard: AdminSessionGuard) -> None:
        assert guard.state == SessionState.LOGGED_OUT
        assert not guard.authenticated

    def test_correct_password(self, guard: AdminSessionGuard, kv_store: InMemoryKVStore, clock) -> None:
        result = guard.submit(PASSWORD)
        assert result.success
        assert result.state == SessionState.LOGGED_IN
        assert guard.session_expires_at == clock.now + timedelta(hours=1)
        assert kv_store.get(TOKEN_KEY)
        assert kv_store.get(EXPIRY_KEY) == str(int(guard.session_expires_at.timestamp() * 1000))

    def test_wrong_password_counts(self, guard: AdminSessionGuard) -> None:
        result = guard.submit("x")
        assert not result.success
        assert result.state == SessionState.LOGGED_OUT
        assert result.attempts_left == 2
        assert result.message == "Incorrect password. 2 attempt(s) remaining."
        assert guard.failed_attempt_count == 1

    @pytest.mark.parametrize("candidate", [None, 123, "", PASSWORD.upper()])
    def test_non_matching_inputs_fail(self, guard: AdminSessionGuard, candidate) -> None:
        assert not guard.submit(candidate).success

    def test_success_resets_failed_count(self, guard: AdminSessionGuard) -> None:
        guard.submit("x")
        guard.submit("y")
        guard.submit(PASSWORD)
        assert guard.failed_attempt_count == 0

    def test_submit_while_logged_in(self, guard: AdminSessionGuard) -> None:
        guard.submit(PASSWORD)
        result = guard.submit(PASSWORD)
        assert result.success
        assert result.message == "Already logged in"

    def test_wrong_password_while_logged_in_fails(self, guard: AdminSessionGuard) -> None:
        guard.submit(PASSWORD)
        result = guard.submit("anything")
        assert not result.success
        assert result.state == SessionState.LOGGED_IN
        assert guard.failed_attempt_count == 0

    def test_wrong_password_after_expiry_counts_as_failure(self, guard: AdminSessionGuard, clock) -> None:
        guard.submit(PASSWORD)
        clock.advance(hours=2)
        result = guard.submit("definitely-wrong")
        assert not result.success
        assert result.state == SessionState.LOGGED_OUT
        assert guard.failed_attempt_count == 1
        assert guard.pop_notice() == SESSION_EXPIRED_NOTICE

    def test_correct_password_after_expiry_starts_new_session(self, guard: AdminSessionGuard, clock) -> None:
        guard.submit(PASSWORD)
        clock.advance(hours=2)
        result = guard.submit(PASSWORD)
        assert result.success
        assert result.message == "Login successful"
        assert guard.session_expires_at == clock() + timedelta(hours=1)

    def test_empty_configured_password_rejected(self, session_store: SessionStore) -> None:
        with pytest.raises(ValueError):
            AdminSessionGuard("", session_store)


class TestLockout:
    """Tests for the three-strikes lockout."""

    def test_three_failures_lock_out(self, guard: AdminSessionGuard, clock) -> None:
        for _ in range(3):
            result = guard.submit("x")
        assert result.state == SessionState.LOCKED_OUT
        assert result.remaining_seconds == 300
        assert guard.locked_until == clock.now + timedelta(seconds=300)
        assert guard.state == SessionState.LOCKED_OUT

    def test_correct_password_rejected_during_lockout(self, guard: AdminSessionGuard, clock) -> None:
        for _ in range(3):
            guard.submit("x")
        clock.advance(seconds=10)
        result = guard.submit(PASSWORD)
        assert not result.success
        assert result.state == SessionState.LOCKED_OUT
        assert result.remaining_seconds == 290
        assert result.message == "Too many failed attempts. Try again in 290 seconds."
        assert guard.failed_attempt_count == 3

    def test_remaining_seconds_rounds_up(self, guard: AdminSessionGuard, clock) -> None:
        for _ in range(3):
            guard.submit("x")
        clock.advance(seconds=299, milliseconds=500)
        assert guard.lockout_remaining_seconds() == 1

    def test_lockout_expires(self, guard: AdminSessionGuard, clock) -> None:
        for _ in range(3):
            guard.submit("x")
        clock.advance(seconds=300)
        assert guard.state == SessionState.LOGGED_OUT
        assert guard.failed_attempt_count == 0
        assert guard.lockout_remaining_seconds() == 0
        assert guard.submit(PASSWORD).success

    def test_fresh_attempts_after_lockout(self, guard: AdminSessionGuard, clock) -> None:
        for _ in range(3):
            guard.submit("x")
        clock.advance(minutes=5)
        result = guard.submit("x")
        assert result.state == SessionState.LOGGED_OUT
        assert result.attempts_left == 2


class TestSessionLifecycle:
    """Tests for logout, expiry and resume."""

    def test_logout_clears_token(self, guard: AdminSessionGuard, kv_store: InMemoryKVStore) -> None:
        guard.submit(PASSWORD)
        guard.logout()
        assert guard.state == SessionState.LOGGED_OUT
        assert kv_store.get(TOKEN_KEY) is None
        assert kv_store.get(EXPIRY_KEY) is None

    def test_check_expiry_before_deadline(self, guard: AdminSessionGuard, clock) -> None:
        guard.submit(PASSWORD)
        clock.advance(minutes=59)
        assert guard.check_expiry() is False
        assert guard.authenticated

    def test_check_expiry_forces_logout(self, guard: AdminSessionGuard, kv_store: InMemoryKVStore, clock) -> None:
        guard.submit(PASSWORD)
        clock.advance(hours=1)
        assert guard.check_expiry() is True
        assert guard.state == SessionState.LOGGED_OUT
        assert kv_store.get(TOKEN_KEY) is None
        assert guard.pop_notice() == SESSION_EXPIRED_NOTICE
        assert guard.pop_notice() is None

    def test_check_expiry_when_logged_out(self, guard: AdminSessionGuard) -> None:
        assert guard.check_expiry() is False

    def test_resume_live_session(self, guard: AdminSessionGuard, session_store: SessionStore, clock) -> None:
        guard.submit(PASSWORD)
        clock.advance(minutes=30)
        resumed = AdminSessionGuard(PASSWORD, session_store, clock=clock)
        assert resumed.state == SessionState.LOGGED_IN
        assert resumed.session_expires_at == guard.session_expires_at

    def test_resume_stale_session_discarded(
        self, guard: AdminSessionGuard, session_store: SessionStore, kv_store: InMemoryKVStore, clock
    ) -> None:
        guard.submit(PASSWORD)
        clock.advance(hours=2)
        resumed = AdminSessionGuard(PASSWORD, session_store, clock=clock)
        assert resumed.state == SessionState.LOGGED_OUT
        assert kv_store.get(TOKEN_KEY) is None

    def test_to_dict(self, guard: AdminSessionGuard) -> None:
        guard.submit("x")
        info = guard.to_dict()
        assert info["state"] == "logged_out"
        assert info["authenticated"] is False
        assert info["failed_attempt_count"] == 1
