"""
Acta verification REST endpoints.

GET  /v1/verification/championships
    Championships with pending actas.
GET  /v1/verification/championships/{id}/matches
    Pending matches with derived facts.
POST /v1/verification/championships/{id}/matches/{match_id}/approve
    Approve one match's acta.
GET  /v1/verification/championships/{id}/matches/{match_id}/files/{side}
    Download an acta scan.

Gateway failures propagate as GatewayError and are rendered by the
exception handler in api.middleware.
"""
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Depends, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shared.models.domain import ApprovalOutcome, Championship, Match
from shared.models.enums import ActaSide, FailureKind, ViewState
from shared.utils.logging import bind_verification_context, get_logger

from api.dependencies import get_service
from verifier.access import VerificationService
from verifier.detail import MatchDetailController, OutcomeDialog, failure_dialog
from verifier.errors import GatewayError
from verifier.selectors import ChampionshipSelector, MatchRow, MatchSelector, PendingListView

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/verification", tags=["verification"])

NOT_PENDING_MESSAGE = "The match is not pending verification"

OUTCOME_STATUS = {
    FailureKind.SESSION_ERROR: 401,
    FailureKind.NOT_FOUND: 404,
}


class ApprovalRequest(BaseModel):
    comment: Optional[str] = None


def _noop(*_args: Any) -> None:
    return None


def _raise_list_error(view: PendingListView[Any]) -> None:
    raise GatewayError(view.error or "The gateway request failed", view.error_kind or FailureKind.GENERIC)


def _row_payload(row: MatchRow) -> dict[str, Any]:
    return {
        "match": row.match.model_dump(mode="json"),
        "files_count": row.files_count,
        "files_label": row.files_label,
        "anchored": row.anchor.anchored,
        "anchor_message": row.anchor.message,
        "can_verify": row.can_verify,
        "verify_hint": row.verify_hint,
        "score": asdict(row.score),
        "date_label": row.date_label,
        "referee": row.referee,
        "poll_worker": row.poll_worker,
        "local_logo_url": row.local_logo_url,
        "visitor_logo_url": row.visitor_logo_url,
    }


def _outcome_response(outcome: ApprovalOutcome, dialog: Optional[OutcomeDialog]) -> JSONResponse:
    status_code = 200 if outcome.ok else OUTCOME_STATUS.get(outcome.type, 200)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            {
                "outcome": outcome.model_dump(mode="json", exclude_none=True),
                "dialog": asdict(dialog) if dialog else None,
                "inline_error": None,
            }
        ),
    )


async def _find_pending_match(
    service: VerificationService, championship_id: str, match_id: str
) -> Optional[Match]:
    matches = await service.list_pending_matches(championship_id)
    return next((m for m in matches if m.id == match_id), None)


@router.get("/championships")
async def list_championships(
    service: VerificationService = Depends(get_service),
) -> dict[str, Any]:
    """Championship selector view: state plus championship cards."""
    selector = ChampionshipSelector(service, on_select=_noop)
    await selector.load()
    if selector.state == ViewState.ERROR:
        _raise_list_error(selector)
    return {
        "state": selector.state.value,
        "championships": [
            {
                **card.championship.model_dump(mode="json"),
                "initial": card.initial,
                "start_label": card.start_label,
                "end_label": card.end_label,
            }
            for card in selector.cards()
        ],
    }


@router.get("/championships/{championship_id}/matches")
async def list_matches(
    championship_id: str,
    service: VerificationService = Depends(get_service),
) -> dict[str, Any]:
    """Match selector view: state plus per-match derived rows."""
    bind_verification_context(championship_id=championship_id)
    selector = MatchSelector(service, Championship(id=championship_id), on_select=_noop)
    await selector.load()
    if selector.state == ViewState.ERROR:
        _raise_list_error(selector)
    return {
        "state": selector.state.value,
        "championship_id": championship_id,
        "matches": [_row_payload(row) for row in selector.rows],
    }


@router.post("/championships/{championship_id}/matches/{match_id}/approve")
async def approve_match(
    championship_id: str,
    match_id: str,
    payload: ApprovalRequest,
    service: VerificationService = Depends(get_service),
) -> JSONResponse:
    """
    Approve one match's acta.

    A pending match goes through the detail controller, which re-checks
    anchoring and files first; a blocked precondition answers 409 with the
    inline error. A match missing from the pending list is still submitted,
    and the gateway's own outcome (already reviewed, not found) is returned.

    Resolved outcomes answer 200, except session_error (401) and not_found
    (404).
    """
    bind_verification_context(championship_id=championship_id, match_id=match_id)
    match = await _find_pending_match(service, championship_id, match_id)
    if match is None:
        logger.info("approval_for_unlisted_match")
        outcome = await service.submit_approval(match_id, payload.comment)
        return _outcome_response(outcome, None if outcome.ok else failure_dialog(outcome))

    controller = MatchDetailController(match, service, on_back=_noop)
    controller.set_comment(payload.comment or "")
    outcome = await controller.approve()

    if outcome is None:
        return JSONResponse(
            status_code=409,
            content={"outcome": None, "dialog": None, "inline_error": controller.inline_error},
        )
    return _outcome_response(outcome, controller.dialog)


@router.get("/championships/{championship_id}/matches/{match_id}/files/{side}")
async def download_acta_file(
    championship_id: str,
    match_id: str,
    side: ActaSide,
    service: VerificationService = Depends(get_service),
) -> Response:
    """Stream one side of the acta scan as an attachment."""
    bind_verification_context(championship_id=championship_id, match_id=match_id)
    match = await _find_pending_match(service, championship_id, match_id)
    if match is None:
        raise GatewayError(NOT_PENDING_MESSAGE, FailureKind.NOT_FOUND)
    filename, content = await service.download_acta_file(match, side)
    return Response(
        content=content,
        media_type="image/jpeg",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
