"""
Admin authentication.

Password gate, lockout and session expiry for the admin dashboard.
"""

from storefront.auth.session_guard import (
    SESSION_EXPIRED_NOTICE,
    AdminSessionGuard,
    LoginResult,
    SessionState,
)

__all__ = [
    "AdminSessionGuard",
    "LoginResult",
    "SessionState",
    "SESSION_EXPIRED_NOTICE",
]
