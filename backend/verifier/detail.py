"""
Match detail & approval controller.

Drives the single-match screen through idle -> submitting -> succeeded/failed
-> idle. The submitting state doubles as the submission mutex, and every
terminal state can only be left by acknowledging it, which always routes the
operator back to the match list.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from shared.models.domain import ActaFile, AnchorStatus, ApprovalCheck, ApprovalOutcome, Match
from shared.models.enums import ActaSide, DetailState, DialogKind, FailureKind
from shared.utils.logging import get_logger

from verifier import derived
from verifier.access import VerificationService
from verifier.config import get_verifier_settings

logger = get_logger(__name__)

ApproveHandler = Callable[[str, str], Awaitable[ApprovalOutcome]]

DEFAULT_FAILURE_MESSAGES: dict[FailureKind, str] = {
    FailureKind.DATA_INTEGRITY: "Integrity error: the acta data does not match the integrity ledger",
    FailureKind.ALREADY_REVIEWED: "This acta has already been reviewed",
    FailureKind.NOT_FOUND: "The acta could not be found",
    FailureKind.SESSION_ERROR: "Your session has expired. Please log in again.",
    FailureKind.SERVER_ERROR: "Internal server error. Please try again.",
    FailureKind.GENERIC: "Could not verify the acta",
}
RELOGIN_HINT = "Please log in again."
BLOCKED_FALLBACK = "The acta cannot be approved"
UNEXPECTED_MESSAGE = "Unexpected error while verifying the acta"
SUCCESS_MESSAGE = "Acta verified successfully"


@dataclass(frozen=True)
class DialogSection:
    title: str
    lines: tuple[str, ...]


@dataclass(frozen=True)
class OutcomeDialog:
    """What the operator sees after an approval attempt resolves."""
    kind: DialogKind
    title: str
    message: str
    confirm_label: str
    sections: tuple[DialogSection, ...] = field(default_factory=tuple)


def failure_message(outcome: ApprovalOutcome) -> str:
    kind = outcome.type or FailureKind.GENERIC
    message = outcome.message or DEFAULT_FAILURE_MESSAGES[kind]
    if kind == FailureKind.SESSION_ERROR and "log in" not in message.lower():
        message = f"{message.rstrip('. ')}. {RELOGIN_HINT}"
    return message


def failure_dialog(outcome: ApprovalOutcome) -> OutcomeDialog:
    """Simple failure dialog; used for every kind except data_integrity."""
    title = "Session expired" if outcome.type == FailureKind.SESSION_ERROR else "Verification error"
    return OutcomeDialog(
        kind=DialogKind.FAILURE,
        title=title,
        message=failure_message(outcome),
        confirm_label="Return to list",
    )


class MatchDetailController:
    """Approval state machine for one match."""

    def __init__(
        self,
        match: Match,
        service: VerificationService,
        on_back: Callable[[], None],
        on_approve: Optional[ApproveHandler] = None,
    ) -> None:
        self.match = match
        self._service = service
        self._on_back = on_back
        self._on_approve: ApproveHandler = on_approve or service.submit_approval
        self._settings = get_verifier_settings()

        self.state = DetailState.IDLE
        self.comment = ""
        self.inline_error: Optional[str] = None
        self.outcome: Optional[ApprovalOutcome] = None
        self.dialog: Optional[OutcomeDialog] = None

    # ── Derived view facts ──────────────────────────────────────────────

    @property
    def anchor(self) -> AnchorStatus:
        return self._service.is_anchored(self.match)

    @property
    def approval(self) -> ApprovalCheck:
        return self._service.can_approve(self.match)

    @property
    def front_file(self) -> Optional[ActaFile]:
        return derived.find_acta_file(self.match, ActaSide.FRONT)

    @property
    def back_file(self) -> Optional[ActaFile]:
        return derived.find_acta_file(self.match, ActaSide.BACK)

    def file_url(self, side: ActaSide) -> str:
        acta = derived.find_acta_file(self.match, side)
        return self._service.file_url(acta.path) if acta else ""

    @property
    def schedule_label(self) -> str:
        return f"{derived.format_date(self.match.date)} {self.match.time or ''}".strip()

    @property
    def anchored_at_label(self) -> str:
        return derived.format_datetime(self.match.anchor.timestamp)

    @property
    def can_submit(self) -> bool:
        return self.state == DetailState.IDLE and self.approval.allowed

    @property
    def comment_editable(self) -> bool:
        return self.state != DetailState.SUBMITTING

    # ── Operator actions ────────────────────────────────────────────────

    def set_comment(self, text: str) -> bool:
        if not self.comment_editable:
            return False
        self.comment = text
        return True

    async def approve(self) -> Optional[ApprovalOutcome]:
        """
        Submit the approval once.

        Returns None when nothing was sent: a submission is already in flight,
        a resolved outcome still awaits acknowledgment, or the local
        precondition blocked it (reported through ``inline_error``).
        """
        if self.state != DetailState.IDLE:
            logger.warning("approval_ignored", match_id=self.match.id, state=self.state.value)
            return None

        check = derived.can_approve(self.match)
        if not check.allowed:
            self.inline_error = check.reason or BLOCKED_FALLBACK
            logger.info("approval_blocked", match_id=self.match.id, reason=self.inline_error)
            return None

        self.state = DetailState.SUBMITTING
        self.inline_error = None
        self.outcome = None
        self.dialog = None

        try:
            outcome = await self._on_approve(self.match.id, self.comment.strip())
        except asyncio.CancelledError:
            self.state = DetailState.IDLE
            raise
        except Exception:
            logger.exception("approval_unexpected_error", match_id=self.match.id)
            outcome = ApprovalOutcome.failure(FailureKind.GENERIC, UNEXPECTED_MESSAGE)

        self._resolve(outcome)
        return outcome

    def acknowledge(self) -> bool:
        """Close the outcome dialog and return to the match list."""
        if not self.state.is_terminal:
            return False
        self.state = DetailState.IDLE
        self.dialog = None
        self.outcome = None
        self._on_back()
        return True

    # ── Outcome presentation ────────────────────────────────────────────

    def _resolve(self, outcome: ApprovalOutcome) -> None:
        self.outcome = outcome
        if outcome.ok:
            self.comment = ""
            self.state = DetailState.SUCCEEDED
            self.dialog = self._success_dialog(outcome)
            return
        self.state = DetailState.FAILED
        if outcome.type == FailureKind.DATA_INTEGRITY:
            logger.error("acta_integrity_mismatch", match_id=self.match.id, anchor_hash=self.match.anchor.hash)
            self.dialog = self._integrity_dialog(outcome)
        else:
            self.dialog = failure_dialog(outcome)

    def _success_dialog(self, outcome: ApprovalOutcome) -> OutcomeDialog:
        confirmed = derived.hash_preview(self.match.anchor.hash, self._settings.success_hash_preview_chars)
        return OutcomeDialog(
            kind=DialogKind.SUCCESS,
            title="Acta verified",
            message=outcome.message or SUCCESS_MESSAGE,
            confirm_label="Accept and return",
            sections=(
                DialogSection(
                    title="Verification",
                    lines=(
                        "The match acta has been validated and verified.",
                        "It is authentic and matches the one uploaded by the poll worker.",
                        f"Hash confirmed: {confirmed}",
                    ),
                ),
            ),
        )

    def _integrity_dialog(self, outcome: ApprovalOutcome) -> OutcomeDialog:
        anchor_hash = derived.hash_preview(self.match.anchor.hash, self._settings.alert_hash_preview_chars)
        return OutcomeDialog(
            kind=DialogKind.INTEGRITY_ALERT,
            title="Verification rejected: data altered",
            message=failure_message(outcome),
            confirm_label="Understood, return to list",
            sections=(
                DialogSection(
                    title="What happened?",
                    lines=(
                        "The current data does not match the integrity ledger",
                        "It is not the data recorded by the poll worker",
                        "It may have been altered after it was anchored",
                    ),
                ),
                DialogSection(
                    title="Required action",
                    lines=(
                        "Contact the administrator",
                        "Check the original paper acta",
                        "Report this inconsistency",
                    ),
                ),
                DialogSection(
                    title="Affected match",
                    lines=(
                        f"Match: {self.match.team_local} vs {self.match.team_visitor}",
                        f"Date: {self.schedule_label}",
                        f"Ledger hash: {anchor_hash}",
                    ),
                ),
            ),
        )
