"""
Verification data access layer.

Sole point of contact with the ledger/record gateway. Normalizes the
gateway's response shapes into domain models and maps every failure onto
either a GatewayError (list reads) or an ApprovalOutcome (approval writes),
so no httpx exception ever reaches the views.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from shared.config import get_settings
from shared.models.domain import AnchorStatus, ApprovalCheck, ApprovalOutcome, Championship, Match
from shared.models.enums import ActaSide, FailureKind
from shared.utils.http_client import GatewayHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import APPROVAL_OUTCOMES

from verifier import derived
from verifier.config import VerifierSettings, get_verifier_settings
from verifier.errors import GatewayError
from verifier.session import SessionCredential

logger = get_logger(__name__)

SESSION_STATUSES = (401, 403)

SESSION_INVALID_MESSAGE = "Invalid session. Please log in again."
SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."
SERVER_ERROR_FALLBACK = "Internal server error. Please try again."
APPROVAL_SUCCESS_MESSAGE = "Acta verified successfully"


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _body_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None


def _unwrap_list(body: Any) -> Optional[list[Any]]:
    """Accept ``{"success": true, "data": [...]}`` or a bare list."""
    if isinstance(body, dict) and body.get("success") and isinstance(body.get("data"), list):
        return body["data"]
    if isinstance(body, list):
        return body
    return None


class VerificationService:
    """Typed gateway access for the acta verification workflow."""

    def __init__(
        self,
        client: GatewayHTTPClient,
        session: Optional[SessionCredential] = None,
        settings: Optional[VerifierSettings] = None,
        files_base_url: Optional[str] = None,
    ) -> None:
        self._client = client
        self._session = session or SessionCredential()
        self._settings = settings or get_verifier_settings()
        self._files_base_url = files_base_url or get_settings().files_base_url_str

    @property
    def session(self) -> SessionCredential:
        return self._session

    # ── Pending lists ───────────────────────────────────────────────────

    async def list_pending_championships(self) -> list[Championship]:
        """Championships with at least one acta awaiting verification."""
        items = await self._fetch_list(self._settings.championships_path, "list_championships")
        try:
            return [Championship.model_validate(item) for item in items]
        except ValidationError as exc:
            logger.error("championships_payload_invalid", error=str(exc))
            raise GatewayError("The gateway returned malformed championship data") from exc

    async def list_pending_matches(self, championship_id: str) -> list[Match]:
        """Matches of one championship whose acta awaits verification."""
        if not championship_id or not str(championship_id).strip():
            raise ValueError("championship_id is required")
        path = self._settings.matches_path.format(championship_id=championship_id)
        items = await self._fetch_list(path, "list_matches")
        try:
            return [Match.model_validate(item) for item in items]
        except ValidationError as exc:
            logger.error("matches_payload_invalid", championship_id=championship_id, error=str(exc))
            raise GatewayError("The gateway returned malformed match data") from exc

    async def _fetch_list(self, path: str, operation: str) -> list[Any]:
        try:
            resp = await self._client.get(
                path,
                extra_headers=self._session.authorization_header() or None,
                operation=operation,
            )
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in SESSION_STATUSES:
                logger.warning("gateway_session_rejected", operation=operation, status=status)
                self._session.invalidate()
                raise GatewayError(SESSION_EXPIRED_MESSAGE, FailureKind.SESSION_ERROR, status) from exc
            message = _body_message(_json_or_none(exc.response)) or f"The gateway responded with HTTP {status}"
            raise GatewayError(message, FailureKind.GENERIC, status) from exc
        except httpx.HTTPError as exc:
            raise GatewayError(str(exc) or "Could not reach the record gateway") from exc

        body = _json_or_none(resp)
        if body is None:
            logger.error("gateway_payload_unparseable", operation=operation, path=path)
            raise GatewayError("The gateway returned an unreadable response")

        items = _unwrap_list(body)
        if items is None:
            logger.warning("gateway_list_empty", operation=operation, path=path)
            return []
        return items

    # ── Approval ────────────────────────────────────────────────────────

    async def submit_approval(self, match_id: str, comment: Optional[str] = None) -> ApprovalOutcome:
        """
        Approve the acta of one match.

        A blank comment is left out of the request body entirely. Without a
        session token the call short-circuits to a session_error outcome.
        """
        outcome = await self._submit_approval(match_id, comment)
        APPROVAL_OUTCOMES.labels(outcome="ok" if outcome.ok else outcome.type.value).inc()
        logger.info(
            "approval_submitted",
            match_id=match_id,
            ok=outcome.ok,
            outcome=None if outcome.ok else outcome.type.value,
        )
        return outcome

    async def _submit_approval(self, match_id: str, comment: Optional[str]) -> ApprovalOutcome:
        body: dict[str, str] = {}
        trimmed = (comment or "").strip()
        if trimmed:
            body["comment"] = trimmed

        if not self._session.is_present:
            return ApprovalOutcome.failure(FailureKind.SESSION_ERROR, SESSION_INVALID_MESSAGE)

        path = self._settings.approve_path.format(match_id=match_id)
        try:
            resp = await self._client.post(
                path,
                json=body,
                extra_headers=self._session.authorization_header(),
                operation="submit_approval",
            )
        except httpx.HTTPError as exc:
            return ApprovalOutcome.failure(FailureKind.SERVER_ERROR, str(exc) or SERVER_ERROR_FALLBACK)

        data = _json_or_none(resp)
        if resp.is_success and not (isinstance(data, dict) and data.get("success") is False):
            return ApprovalOutcome.success(_body_message(data) or APPROVAL_SUCCESS_MESSAGE, details=data)

        outcome = self._failure_from_response(resp, data)
        if outcome.type == FailureKind.SESSION_ERROR:
            self._session.invalidate()
        return outcome

    def _failure_from_response(self, resp: httpx.Response, data: Any) -> ApprovalOutcome:
        """Body discriminator first, status code as fallback."""
        payload = data if isinstance(data, dict) else {}
        kind = FailureKind.from_discriminator(payload.get("errorType"))
        message = _body_message(payload)
        details = payload.get("details")

        if kind is not None:
            return ApprovalOutcome.failure(kind, message, details)

        if resp.status_code in SESSION_STATUSES:
            return ApprovalOutcome.failure(FailureKind.SESSION_ERROR, SESSION_EXPIRED_MESSAGE)

        transport_message = resp.reason_phrase if not resp.is_success else None
        return ApprovalOutcome.failure(
            FailureKind.SERVER_ERROR,
            message or transport_message or SERVER_ERROR_FALLBACK,
            details,
        )

    # ── Files ───────────────────────────────────────────────────────────

    def file_url(self, path: Optional[str]) -> str:
        return derived.build_file_url(path, self._files_base_url, self._settings.uploads_prefix)

    async def download_acta_file(self, match: Match, side: ActaSide | str) -> tuple[str, bytes]:
        """Fetch one acta scan. Returns (download filename, content)."""
        side_value = ActaSide.normalize(side.value if isinstance(side, ActaSide) else side)
        acta = derived.find_acta_file(match, side_value)
        if acta is None or not acta.has_path:
            raise GatewayError(f"The match has no {side_value} acta file", FailureKind.NOT_FOUND)
        try:
            resp = await self._client.get(self.file_url(acta.path), operation="download_file")
        except httpx.HTTPError as exc:
            logger.error("acta_download_failed", match_id=match.id, side=side_value, error=str(exc))
            raise GatewayError("Could not download the acta file") from exc
        filename = f"acta-{side_value}-{match.team_local}-vs-{match.team_visitor}.jpg"
        return filename, resp.content

    # ── Derived facts ───────────────────────────────────────────────────

    def is_anchored(self, match: Match) -> AnchorStatus:
        return derived.is_anchored(match, self._settings.hash_preview_chars)

    @staticmethod
    def can_approve(match: Match) -> ApprovalCheck:
        return derived.can_approve(match)
