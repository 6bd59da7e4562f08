"""
Operator session credential.
Passed explicitly into the data access layer instead of being read from
ambient storage, so a missing session is visible at the call site.
"""
from __future__ import annotations

from typing import Callable, Optional

from shared.utils.logging import get_logger

logger = get_logger(__name__)


class SessionCredential:
    """Bearer token holder. ``invalidate()`` forces re-authentication."""

    def __init__(
        self,
        token: Optional[str] = None,
        on_expired: Optional[Callable[[], None]] = None,
    ) -> None:
        self._token = (token or "").strip() or None
        self._on_expired = on_expired
        self.expired = False

    @classmethod
    def from_authorization_header(
        cls,
        header: Optional[str],
        on_expired: Optional[Callable[[], None]] = None,
    ) -> "SessionCredential":
        """Build from an ``Authorization: Bearer <token>`` header value."""
        token = None
        if header:
            scheme, _, value = header.strip().partition(" ")
            if scheme.lower() == "bearer":
                token = value.strip() or None
        return cls(token, on_expired=on_expired)

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_present(self) -> bool:
        return self._token is not None

    def authorization_header(self) -> dict[str, str]:
        if self._token is None:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def invalidate(self) -> None:
        """Drop the token and notify the owner that the operator must log in again."""
        if self.expired:
            return
        self._token = None
        self.expired = True
        logger.warning("session_invalidated")
        if self._on_expired is not None:
            self._on_expired()
