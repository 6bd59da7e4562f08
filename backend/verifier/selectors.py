"""
Championship and match selectors.

Each selector instance owns one fetch and the state it produces. A selection
change never reuses an instance: the workflow disposes the old one (cancelling
its in-flight fetch) and mounts a fresh one, so a stale response can never
overwrite the state of the newly selected championship.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from shared.models.domain import AnchorStatus, ApprovalCheck, Championship, Match
from shared.models.enums import FailureKind, ViewState
from shared.utils.logging import get_logger
from shared.utils.metrics import LIST_FETCH_FAILURES

from verifier import derived
from verifier.access import VerificationService
from verifier.errors import GatewayError

logger = get_logger(__name__)

T = TypeVar("T")

VERIFY_HINT = "Review and verify this acta"


class PendingListView(ABC, Generic[T]):
    """Loading/error/empty/ready state holder around a single list fetch."""

    view_name = "list"

    def __init__(self) -> None:
        self.state = ViewState.LOADING
        self.items: list[T] = []
        self.error: Optional[str] = None
        self.error_kind: Optional[FailureKind] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._disposed = False

    @abstractmethod
    async def _fetch(self) -> list[T]:
        ...

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def load(self) -> None:
        """Run the fetch and move to exactly one of error/empty/ready."""
        if self._disposed:
            return
        self.state = ViewState.LOADING
        self.error = None
        self.error_kind = None
        try:
            items = await self._fetch()
        except GatewayError as exc:
            if self._disposed:
                logger.debug("stale_fetch_discarded", view=self.view_name)
                return
            LIST_FETCH_FAILURES.labels(view=self.view_name, kind=exc.kind.value).inc()
            logger.warning("pending_list_failed", view=self.view_name, kind=exc.kind.value, error=exc.message)
            self.items = []
            self.error = exc.message
            self.error_kind = exc.kind
            self.state = ViewState.ERROR
            return

        if self._disposed:
            logger.debug("stale_fetch_discarded", view=self.view_name)
            return
        self.items = items
        self.state = ViewState.READY if items else ViewState.EMPTY

    def start(self) -> Optional[asyncio.Task[None]]:
        """Mount: schedule the initial fetch on the running loop."""
        if self._disposed:
            return None
        self._task = asyncio.create_task(self.load())
        return self._task

    async def wait(self) -> None:
        """Wait for the mounted fetch to settle (completed or cancelled)."""
        if self._task is not None and not self._task.done():
            await asyncio.wait([self._task])

    async def retry(self) -> None:
        await self.load()

    def dispose(self) -> None:
        """Unmount: cancel the in-flight fetch and refuse any later state writes."""
        self._disposed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


# ── Championships ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class ChampionshipCard:
    championship: Championship
    initial: str
    start_label: str
    end_label: Optional[str]


class ChampionshipSelector(PendingListView[Championship]):
    """Lists championships with at least one acta awaiting verification."""

    view_name = "championships"

    def __init__(
        self,
        service: VerificationService,
        on_select: Callable[[Championship], None],
    ) -> None:
        super().__init__()
        self._service = service
        self._on_select = on_select

    async def _fetch(self) -> list[Championship]:
        return await self._service.list_pending_championships()

    @property
    def championships(self) -> list[Championship]:
        return self.items

    def cards(self) -> list[ChampionshipCard]:
        return [
            ChampionshipCard(
                championship=c,
                initial=c.name[:1].upper(),
                start_label=derived.format_date(c.start_date),
                end_label=derived.format_date(c.end_date) if c.end_date else None,
            )
            for c in self.items
        ]

    def select(self, championship: Championship) -> None:
        """Local transition only: clears the error and hands off to the caller."""
        self.error = None
        self.error_kind = None
        logger.info("championship_selected", championship_id=championship.id)
        self._on_select(championship)


# ── Matches ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MatchRow:
    """Per-match facts computed from the snapshot, independent of network state."""
    match: Match
    files_count: int
    files_label: str
    anchor: AnchorStatus
    approval: ApprovalCheck
    score: derived.ScoreSummary
    date_label: str
    referee: str
    poll_worker: str
    local_logo_url: str
    visitor_logo_url: str

    @property
    def can_verify(self) -> bool:
        return self.approval.allowed

    @property
    def verify_hint(self) -> str:
        """Tooltip for the verify action; explains why it is disabled."""
        return VERIFY_HINT if self.approval.allowed else (self.approval.reason or "")


def build_match_row(match: Match, service: VerificationService) -> MatchRow:
    files_count = derived.count_files(match)
    return MatchRow(
        match=match,
        files_count=files_count,
        files_label=derived.files_label(files_count),
        anchor=service.is_anchored(match),
        approval=service.can_approve(match),
        score=derived.score_summary(match),
        date_label=derived.format_date(match.date),
        referee=derived.referee_display_name(match),
        poll_worker=derived.poll_worker_display_name(match),
        local_logo_url=service.file_url(match.logo_local),
        visitor_logo_url=service.file_url(match.logo_visitor),
    )


class MatchSelector(PendingListView[Match]):
    """
    Pending matches of one championship.

    Bound to a single championship for its whole life; without one it stays
    in the neutral IDLE prompt and never fetches.
    """

    view_name = "matches"

    def __init__(
        self,
        service: VerificationService,
        championship: Optional[Championship],
        on_select: Callable[[Match], None],
        on_back: Optional[Callable[[], None]] = None,
        refresh_key: int = 0,
    ) -> None:
        super().__init__()
        self._service = service
        self.championship = championship
        self._on_select = on_select
        self._on_back = on_back
        self.refresh_key = refresh_key
        if championship is None:
            self.state = ViewState.IDLE

    @property
    def key(self) -> tuple[Optional[str], int]:
        return (self.championship.id if self.championship else None, self.refresh_key)

    async def _fetch(self) -> list[Match]:
        if self.championship is None:
            raise RuntimeError("match selector has no championship to fetch")
        return await self._service.list_pending_matches(self.championship.id)

    def start(self) -> Optional[asyncio.Task[None]]:
        if self.championship is None:
            return None
        return super().start()

    async def load(self) -> None:
        if self.championship is None:
            return
        await super().load()

    @property
    def matches(self) -> list[Match]:
        return self.items

    @property
    def rows(self) -> list[MatchRow]:
        return [build_match_row(m, self._service) for m in self.items]

    def select(self, match: Match) -> None:
        logger.info("match_selected", match_id=match.id)
        self._on_select(match)

    def back(self) -> None:
        if self._on_back is not None:
            self._on_back()
