"""
Presentation facts derived from match snapshots.

Everything here is a pure function over immutable domain values and is
recomputed on every render; nothing is cached on the models.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from shared.models.domain import ActaFile, AnchorStatus, ApprovalCheck, Match
from shared.models.enums import ActaSide

NOT_ANCHORED_MESSAGE = "Not anchored to the integrity ledger"
REASON_NOT_ANCHORED = "The acta is not anchored to the integrity ledger"
REASON_NO_FILES = "There are no acta files"
NOT_ASSIGNED = "Not assigned"
DATE_NOT_SET = "Not set"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_MONTHS_LONG = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


# ── Ledger anchoring ────────────────────────────────────────────────────

def hash_preview(value: Optional[str], chars: int) -> str:
    if not value:
        return ""
    return f"{value[:chars]}..."


def is_anchored(match: Match, preview_chars: int = 12) -> AnchorStatus:
    anchor_hash = match.anchor.hash
    if not anchor_hash:
        return AnchorStatus(anchored=False, message=NOT_ANCHORED_MESSAGE)
    return AnchorStatus(
        anchored=True,
        message=f"Anchored to the integrity ledger (hash: {hash_preview(anchor_hash, preview_chars)})",
    )


# ── Acta files ──────────────────────────────────────────────────────────

def count_files(match: Match) -> int:
    """Number of acta files that actually point at stored content."""
    return sum(1 for f in match.files if f.has_path)


def files_label(count: int) -> str:
    if count == 0:
        return "No files"
    if count == 1:
        return "1 file"
    return f"{count} files"


def find_acta_file(match: Match, side: ActaSide | str) -> Optional[ActaFile]:
    """Find the scan for one side, by tag or by a path naming the side."""
    wanted = ActaSide.normalize(side.value if isinstance(side, ActaSide) else side)
    legacy = {ActaSide.FRONT.value: "frente", ActaSide.BACK.value: "dorso"}.get(wanted, wanted)
    for acta in match.files:
        if acta.tag == wanted:
            return acta
    for acta in match.files:
        path = acta.path.lower()
        if path and (wanted in path or legacy in path):
            return acta
    return None


def build_file_url(path: Optional[str], base_url: str, uploads_prefix: str = "/uploads") -> str:
    """Resolve a stored relative path against the file server; absolute URLs pass through."""
    if not path:
        return ""
    if path.startswith(("http://", "https://")):
        return path
    base = base_url.rstrip("/")
    prefix = "/" + uploads_prefix.strip("/")
    if path.startswith(prefix + "/"):
        return f"{base}{path}"
    if path.startswith(prefix.lstrip("/") + "/"):
        return f"{base}/{path}"
    return f"{base}{prefix}/{path.lstrip('/')}"


# ── Approval precondition ───────────────────────────────────────────────

def can_approve(match: Match) -> ApprovalCheck:
    """A match is approvable iff it is anchored and has at least one stored file."""
    if not match.anchor.hash:
        return ApprovalCheck(allowed=False, reason=REASON_NOT_ANCHORED)
    if count_files(match) == 0:
        return ApprovalCheck(allowed=False, reason=REASON_NO_FILES)
    return ApprovalCheck(allowed=True)


# ── Scores ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoreSummary:
    """Score display. A None score means that team did not present (not 0)."""
    local_absent: bool
    visitor_absent: bool
    score_line: Optional[str]
    summary: str


def score_summary(match: Match) -> ScoreSummary:
    local_absent = match.score_local is None
    visitor_absent = match.score_visitor is None
    if local_absent and visitor_absent:
        summary = "Both teams did not present"
    elif local_absent:
        summary = f"{match.team_local} did not present"
    elif visitor_absent:
        summary = f"{match.team_visitor} did not present"
    else:
        summary = "Final result"
    score_line = None
    if not local_absent and not visitor_absent:
        score_line = f"{match.score_local} - {match.score_visitor}"
    return ScoreSummary(
        local_absent=local_absent,
        visitor_absent=visitor_absent,
        score_line=score_line,
        summary=summary,
    )


# ── Officials ───────────────────────────────────────────────────────────

def official_name(name: Optional[str], surname: Optional[str]) -> str:
    if name and surname:
        return f"{name} {surname}"
    return name or NOT_ASSIGNED


def referee_display_name(match: Match) -> str:
    return official_name(match.referee_name, match.referee_surname)


def poll_worker_display_name(match: Match) -> str:
    return official_name(match.poll_worker_name, match.poll_worker_surname)


# ── Dates ───────────────────────────────────────────────────────────────

def _parse_datetime(value: str) -> Optional[datetime]:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_date(value: Optional[str]) -> str:
    """'2025-03-05' -> '5 Mar 2025'. Unparseable values are returned unchanged."""
    if not value:
        return DATE_NOT_SET
    parsed = _parse_datetime(value)
    if parsed is None:
        return value
    return f"{parsed.day} {_MONTHS[parsed.month - 1]} {parsed.year}"


def format_datetime(value: Optional[str]) -> str:
    """'2025-03-05T18:30:00' -> 'Wednesday, 5 March 2025, 18:30'."""
    if not value:
        return DATE_NOT_SET
    parsed = _parse_datetime(value)
    if parsed is None:
        return value
    return (
        f"{_WEEKDAYS[parsed.weekday()]}, {parsed.day} {_MONTHS_LONG[parsed.month - 1]} "
        f"{parsed.year}, {parsed.hour:02d}:{parsed.minute:02d}"
    )
