"""Errors raised by the verification data access layer."""
from __future__ import annotations

from typing import Optional

from shared.models.enums import FailureKind


class GatewayError(Exception):
    """
    A gateway read failed. ``kind`` is SESSION_ERROR when the gateway
    rejected the session (HTTP 401/403), NOT_FOUND when a requested acta file
    does not exist, and GENERIC for everything else.
    """

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.GENERIC,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status = status

    @property
    def is_session_error(self) -> bool:
        return self.kind == FailureKind.SESSION_ERROR
