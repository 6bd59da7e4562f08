"""Domain enumerations for the Acta Verification workflow."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class FailureKind(str, Enum):
    """Closed taxonomy of approval failures reported by the record gateway."""
    DATA_INTEGRITY = "data_integrity"
    ALREADY_REVIEWED = "already_reviewed"
    NOT_FOUND = "not_found"
    SESSION_ERROR = "session_error"
    SERVER_ERROR = "server_error"
    GENERIC = "generic"

    @classmethod
    def from_discriminator(cls, raw: object) -> Optional["FailureKind"]:
        """
        Map the gateway's untyped ``errorType`` string onto the taxonomy.

        Returns None when no discriminator is present; any unrecognized value
        falls back to GENERIC.
        """
        if raw is None:
            return None
        value = str(raw).strip().lower()
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return cls.GENERIC


class ActaSide(str, Enum):
    FRONT = "front"
    BACK = "back"

    @classmethod
    def normalize(cls, raw: Any) -> str:
        """Map legacy Spanish tags onto front/back; other tags pass through."""
        value = str(raw if raw is not None else "").strip().lower()
        return _LEGACY_SIDES.get(value, value)


_LEGACY_SIDES: dict[str, str] = {
    "frente": ActaSide.FRONT.value,
    "dorso": ActaSide.BACK.value,
    "front": ActaSide.FRONT.value,
    "back": ActaSide.BACK.value,
}


class ViewState(str, Enum):
    """Render state of a list-fetching view."""
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    READY = "ready"


class DetailState(str, Enum):
    """Approval controller state machine."""
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DetailState.SUCCEEDED, DetailState.FAILED)


class DialogKind(str, Enum):
    SUCCESS = "success"
    INTEGRITY_ALERT = "integrity_alert"
    FAILURE = "failure"


class Screen(str, Enum):
    CHAMPIONSHIPS = "championships"
    MATCHES = "matches"
    DETAIL = "detail"
