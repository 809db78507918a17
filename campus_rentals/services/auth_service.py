"""Admin session tokens for the HTTP layer."""

from __future__ import annotations

import secrets
from threading import Lock
from typing import Optional

from campus_rentals.utils.config import Settings, get_settings


class AuthenticationError(Exception):
    """Base authentication failure."""


class AdminTokenNotConfiguredError(AuthenticationError):
    """Raised when ADMIN_TOKEN is missing."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when provided token is invalid."""


class AuthService:
    """Exchanges the configured admin token for bearer session tokens.

    Several admin sessions may be open at once; each login issues a new
    token without revoking earlier ones.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._session_tokens: set[str] = set()
        self._lock = Lock()

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def _expected_token(self) -> str:
        if not self._settings.admin_token:
            raise AdminTokenNotConfiguredError(
                "ADMIN_TOKEN is not configured. Set ADMIN_TOKEN in environment variables."
            )
        return self._settings.admin_token

    def login(self, provided_admin_token: str) -> str:
        expected = self._expected_token()
        if not secrets.compare_digest(provided_admin_token, expected):
            raise InvalidAdminTokenError("Invalid admin token")
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._session_tokens.add(token)
        return token

    def is_admin_session(self, bearer_token: Optional[str]) -> bool:
        if not bearer_token or not self.auth_enabled:
            return False
        with self._lock:
            tokens = list(self._session_tokens)
        return any(secrets.compare_digest(bearer_token, token) for token in tokens)

    def validate_bearer_token(self, bearer_token: Optional[str]) -> None:
        self._expected_token()
        if not self.is_admin_session(bearer_token):
            raise InvalidAdminTokenError("Invalid bearer token")

    def logout(self, bearer_token: str) -> None:
        with self._lock:
            self._session_tokens.discard(bearer_token)
