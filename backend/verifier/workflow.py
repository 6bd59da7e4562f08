"""
Acta verification page: championship -> match -> detail.

Exactly one view is mounted at a time. Every transition unmounts the current
view (cancelling its fetch) and mounts a fresh one, and the match list is
keyed by (championship, refresh_key) so returning to it always re-fetches.
Transitions schedule fetches on the running event loop, so they must be
called from inside it.
"""
from __future__ import annotations

from typing import Optional

from shared.models.domain import ApprovalOutcome, Championship, Match
from shared.models.enums import FailureKind, Screen
from shared.utils.logging import get_logger

from verifier.access import VerificationService
from verifier.detail import MatchDetailController
from verifier.selectors import ChampionshipSelector, MatchSelector

logger = get_logger(__name__)

INVALID_MATCH_MESSAGE = "Invalid match id"


class VerificationWorkflow:
    """Owns the selection state and the refresh counter of the verification page."""

    def __init__(self, service: VerificationService) -> None:
        self._service = service
        self.selected_championship: Optional[Championship] = None
        self.selected_match: Optional[Match] = None
        self.refresh_key = 0
        self.approving = False

        self.championship_selector: Optional[ChampionshipSelector] = None
        self.match_selector: Optional[MatchSelector] = None
        self.detail: Optional[MatchDetailController] = None

    # ── Mounting ────────────────────────────────────────────────────────

    @property
    def screen(self) -> Screen:
        if self.selected_match is not None:
            return Screen.DETAIL
        if self.selected_championship is not None:
            return Screen.MATCHES
        return Screen.CHAMPIONSHIPS

    def mount(self) -> None:
        self._remount()

    def _unmount(self) -> None:
        if self.championship_selector is not None:
            self.championship_selector.dispose()
        if self.match_selector is not None:
            self.match_selector.dispose()
        self.championship_selector = None
        self.match_selector = None
        self.detail = None

    def _remount(self) -> None:
        self._unmount()
        screen = self.screen
        match = self.selected_match
        if match is not None:
            self.detail = MatchDetailController(
                match,
                self._service,
                on_back=self.back_to_matches,
                on_approve=self.approve,
            )
        elif self.selected_championship is not None:
            self.match_selector = MatchSelector(
                self._service,
                self.selected_championship,
                on_select=self.select_match,
                on_back=self.back_to_championships,
                refresh_key=self.refresh_key,
            )
            self.match_selector.start()
        else:
            self.championship_selector = ChampionshipSelector(
                self._service,
                on_select=self.select_championship,
            )
            self.championship_selector.start()
        logger.debug("view_mounted", screen=screen.value, refresh_key=self.refresh_key)

    # ── Transitions ─────────────────────────────────────────────────────

    def select_championship(self, championship: Championship) -> None:
        self.selected_championship = championship
        self.selected_match = None
        self._remount()

    def select_match(self, match: Match) -> None:
        self.selected_match = match
        self._remount()

    def back_to_championships(self) -> None:
        self.selected_championship = None
        self.selected_match = None
        self._remount()

    def back_to_matches(self) -> None:
        self.selected_match = None
        self._remount()

    def refresh(self) -> None:
        """Discard the mounted list and fetch it again from scratch."""
        self.refresh_key += 1
        if self.screen != Screen.DETAIL:
            self._remount()

    async def approve(self, match_id: str, comment: str) -> ApprovalOutcome:
        """Approval handler handed to the detail controller."""
        if not match_id:
            return ApprovalOutcome.failure(FailureKind.GENERIC, INVALID_MATCH_MESSAGE)
        self.approving = True
        try:
            outcome = await self._service.submit_approval(match_id, comment)
        finally:
            self.approving = False
        if outcome.ok:
            # the match list re-fetches when the operator returns to it
            self.refresh_key += 1
        return outcome

    # ── Header ──────────────────────────────────────────────────────────

    @property
    def subtitle(self) -> str:
        if self.selected_match is not None:
            return "Match acta validation"
        if self.selected_championship is not None:
            return f"Pending matches - {self.selected_championship.name}"
        return "Championships with pending actas"

    @property
    def breadcrumb(self) -> list[str]:
        crumbs = ["Championships"]
        if self.selected_championship is not None:
            crumbs.append(self.selected_championship.name)
        if self.selected_match is not None:
            crumbs.append(f"Acta #{self.selected_match.id[:8]}")
        return crumbs

    @property
    def session_expired(self) -> bool:
        return self._service.session.expired
