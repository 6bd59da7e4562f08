"""
Tests for VerificationService against the in-memory gateway: list
envelopes, list failure mapping, approval outcome classification, session
handling and acta file download.
"""
from __future__ import annotations

import httpx
import pytest

from conftest import FILES_URL, TOKEN, FakeGateway, build_service, make_match
from shared.models.domain import Match
from shared.models.enums import ActaSide, FailureKind
from shared.utils.http_client import GatewayHTTPClient
from verifier.access import (
    APPROVAL_SUCCESS_MESSAGE,
    SESSION_INVALID_MESSAGE,
    VerificationService,
)
from verifier.errors import GatewayError
from verifier.session import SessionCredential

CHAMPIONSHIPS = "/verificacion/campeonatos"
MATCHES_C1 = "/verificacion/campeonatos/c-1/actas"
APPROVE_M1 = "/verificacion/actas/m-1/revisar"


# ── Pending lists ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_championships_unwraps_envelope(service: VerificationService) -> None:
    championships = await service.list_pending_championships()
    assert [c.id for c in championships] == ["c-1"]
    assert championships[0].name == "Apertura 2025"


@pytest.mark.asyncio
async def test_list_reads_send_session_token(service: VerificationService, fake_gateway: FakeGateway) -> None:
    await service.list_pending_championships()
    await service.list_pending_matches("c-1")
    headers = [r.headers.get("authorization") for r in fake_gateway.requests]
    assert headers == [f"Bearer {TOKEN}", f"Bearer {TOKEN}"]


@pytest.mark.asyncio
async def test_list_reads_without_token_send_no_authorization(
    gateway_client: GatewayHTTPClient, fake_gateway: FakeGateway
) -> None:
    service = build_service(gateway_client, token=None)
    await service.list_pending_matches("c-1")
    assert "authorization" not in fake_gateway.requests[0].headers


@pytest.mark.asyncio
async def test_list_championships_accepts_bare_list(
    service: VerificationService, fake_gateway: FakeGateway
) -> None:
    fake_gateway.overrides[CHAMPIONSHIPS] = httpx.Response(
        200, json=[{"id_campeonato": 9, "nombre": "Clausura"}]
    )
    championships = await service.list_pending_championships()
    assert [(c.id, c.name) for c in championships] == [("9", "Clausura")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [{"success": True, "data": []}, {"success": False, "data": [{"id": "x"}]}, {"data": None}, {}],
)
async def test_list_without_items_is_empty(
    service: VerificationService, fake_gateway: FakeGateway, body: dict
) -> None:
    fake_gateway.overrides[CHAMPIONSHIPS] = httpx.Response(200, json=body)
    assert await service.list_pending_championships() == []


@pytest.mark.asyncio
async def test_list_matches_parses_rows(service: VerificationService) -> None:
    matches = await service.list_pending_matches("c-1")
    assert len(matches) == 1
    assert isinstance(matches[0], Match)
    assert matches[0].team_local == "Tigres"


@pytest.mark.asyncio
@pytest.mark.parametrize("championship_id", ["", "   "])
async def test_list_matches_rejects_blank_id(
    service: VerificationService, fake_gateway: FakeGateway, championship_id: str
) -> None:
    with pytest.raises(ValueError):
        await service.list_pending_matches(championship_id)
    assert fake_gateway.requests == []


@pytest.mark.asyncio
async def test_list_server_error_is_generic(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides[MATCHES_C1] = httpx.Response(500, json={"message": "Database unavailable"})
    with pytest.raises(GatewayError) as exc_info:
        await service.list_pending_matches("c-1")
    assert exc_info.value.kind == FailureKind.GENERIC
    assert exc_info.value.message == "Database unavailable"
    assert exc_info.value.status == 500
    assert service.session.is_present


@pytest.mark.asyncio
async def test_list_status_without_body_message(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides[CHAMPIONSHIPS] = httpx.Response(404, text="nope")
    with pytest.raises(GatewayError) as exc_info:
        await service.list_pending_championships()
    assert exc_info.value.message == "The gateway responded with HTTP 404"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_list_session_rejection_invalidates(
    service: VerificationService, fake_gateway: FakeGateway, status: int
) -> None:
    fake_gateway.overrides[CHAMPIONSHIPS] = httpx.Response(status, json={"message": "Token expired"})
    with pytest.raises(GatewayError) as exc_info:
        await service.list_pending_championships()
    assert exc_info.value.is_session_error
    assert service.session.expired is True
    assert service.session.is_present is False


@pytest.mark.asyncio
async def test_list_unreadable_body(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides[CHAMPIONSHIPS] = httpx.Response(200, text="<html>proxy error</html>")
    with pytest.raises(GatewayError) as exc_info:
        await service.list_pending_championships()
    assert exc_info.value.kind == FailureKind.GENERIC
    assert "unreadable" in exc_info.value.message


@pytest.mark.asyncio
async def test_list_malformed_item(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides[MATCHES_C1] = httpx.Response(200, json={"success": True, "data": [{"court": "A"}]})
    with pytest.raises(GatewayError):
        await service.list_pending_matches("c-1")


@pytest.mark.asyncio
async def test_list_transport_failure(service: VerificationService, fake_gateway: FakeGateway) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    fake_gateway.overrides[CHAMPIONSHIPS] = refuse
    with pytest.raises(GatewayError) as exc_info:
        await service.list_pending_championships()
    assert exc_info.value.kind == FailureKind.GENERIC
    assert exc_info.value.message == "connection refused"


@pytest.mark.asyncio
async def test_list_retries_server_errors() -> None:
    fake = FakeGateway()
    responses = iter([httpx.Response(503), httpx.Response(200, json={"success": True, "data": []})])
    fake.overrides[CHAMPIONSHIPS] = lambda request: next(responses)
    async with GatewayHTTPClient(
        base_url="http://gateway.test", max_retries=2, transport=httpx.MockTransport(fake.handler)
    ) as client:
        assert await build_service(client).list_pending_championships() == []
    assert len(fake.requests_to(CHAMPIONSHIPS)) == 2


# ── Approval ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_approval_success(service: VerificationService, fake_gateway: FakeGateway) -> None:
    outcome = await service.submit_approval("m-1", "  all good  ")
    assert outcome.ok is True
    assert outcome.type is None
    assert outcome.message == "Acta approved"
    assert fake_gateway.approval_bodies == [{"comment": "all good"}]
    request = fake_gateway.requests_to(APPROVE_M1)[0]
    assert request.headers["authorization"] == "Bearer token-123"


@pytest.mark.asyncio
@pytest.mark.parametrize("comment", [None, "", "   \n"])
async def test_approval_blank_comment_is_omitted(
    service: VerificationService, fake_gateway: FakeGateway, comment: str | None
) -> None:
    await service.submit_approval("m-1", comment)
    assert fake_gateway.approval_bodies == [{}]


@pytest.mark.asyncio
async def test_approval_success_without_message(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(204)
    outcome = await service.submit_approval("m-1")
    assert outcome.ok is True
    assert outcome.message == APPROVAL_SUCCESS_MESSAGE


@pytest.mark.asyncio
async def test_approval_without_token_sends_nothing(
    gateway_client: GatewayHTTPClient, fake_gateway: FakeGateway
) -> None:
    service = build_service(gateway_client, token=None)
    outcome = await service.submit_approval("m-1")
    assert outcome.ok is False
    assert outcome.type == FailureKind.SESSION_ERROR
    assert outcome.message == SESSION_INVALID_MESSAGE
    assert fake_gateway.requests == []


@pytest.mark.asyncio
async def test_approval_data_integrity_outcome(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(
        409, json={"success": False, "errorType": "data_integrity", "message": "hash mismatch"}
    )
    outcome = await service.submit_approval("m-1")
    assert outcome.model_dump(mode="json", exclude_none=True) == {
        "ok": False,
        "type": "data_integrity",
        "message": "hash mismatch",
    }


@pytest.mark.asyncio
async def test_approval_data_integrity_keeps_details(
    service: VerificationService, fake_gateway: FakeGateway
) -> None:
    fake_gateway.integrity_failures.add("m-1")
    outcome = await service.submit_approval("m-1")
    assert outcome.type == FailureKind.DATA_INTEGRITY
    assert outcome.details == {"expected": "0xabc", "actual": "0xdef"}
    assert "m-1" not in fake_gateway.approved


@pytest.mark.asyncio
async def test_approval_generic_is_not_integrity(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(
        400, json={"success": False, "errorType": "generic", "message": "Bad comment"}
    )
    outcome = await service.submit_approval("m-1")
    assert outcome.type == FailureKind.GENERIC
    assert outcome.type != FailureKind.DATA_INTEGRITY


@pytest.mark.asyncio
async def test_approval_unknown_error_type_is_generic(
    service: VerificationService, fake_gateway: FakeGateway
) -> None:
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(
        422, json={"success": False, "errorType": "quota_exceeded", "message": "Slow down"}
    )
    outcome = await service.submit_approval("m-1")
    assert outcome.type == FailureKind.GENERIC
    assert outcome.message == "Slow down"


@pytest.mark.asyncio
async def test_approval_discriminator_wins_over_status(
    service: VerificationService, fake_gateway: FakeGateway
) -> None:
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(
        401, json={"success": False, "errorType": "already_reviewed", "message": "Done already"}
    )
    outcome = await service.submit_approval("m-1")
    assert outcome.type == FailureKind.ALREADY_REVIEWED
    assert service.session.is_present


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_approval_session_status_without_discriminator(
    gateway_client: GatewayHTTPClient, fake_gateway: FakeGateway, status: int
) -> None:
    expired: list[bool] = []
    session = SessionCredential(TOKEN, on_expired=lambda: expired.append(True))
    service = VerificationService(gateway_client, session=session, files_base_url=FILES_URL)
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(status, json={"message": "Unauthorized"})
    outcome = await service.submit_approval("m-1")
    assert outcome.type == FailureKind.SESSION_ERROR
    assert "log in" in (outcome.message or "").lower()
    assert service.session.expired is True
    assert expired == [True]


@pytest.mark.asyncio
async def test_approval_failure_without_discriminator_is_server_error(
    service: VerificationService, fake_gateway: FakeGateway
) -> None:
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(200, json={"success": False, "message": "Rejected"})
    outcome = await service.submit_approval("m-1")
    assert outcome.ok is False
    assert outcome.type == FailureKind.SERVER_ERROR
    assert outcome.message == "Rejected"


@pytest.mark.asyncio
async def test_approval_server_error_falls_back_to_reason(
    service: VerificationService, fake_gateway: FakeGateway
) -> None:
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(502, text="")
    outcome = await service.submit_approval("m-1")
    assert outcome.type == FailureKind.SERVER_ERROR
    assert outcome.message == "Bad Gateway"


@pytest.mark.asyncio
async def test_approval_transport_failure(service: VerificationService, fake_gateway: FakeGateway) -> None:
    def drop(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection reset", request=request)

    fake_gateway.overrides[APPROVE_M1] = drop
    outcome = await service.submit_approval("m-1")
    assert outcome.ok is False
    assert outcome.type == FailureKind.SERVER_ERROR
    assert outcome.message == "connection reset"


@pytest.mark.asyncio
async def test_approval_is_never_retried(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(503, json={"message": "busy"})
    await service.submit_approval("m-1")
    assert len(fake_gateway.requests_to(APPROVE_M1)) == 1


@pytest.mark.asyncio
async def test_second_approval_reports_already_reviewed(
    service: VerificationService, fake_gateway: FakeGateway
) -> None:
    first = await service.submit_approval("m-1")
    second = await service.submit_approval("m-1")
    third = await service.submit_approval("m-1")
    assert first.ok is True
    assert second.type == FailureKind.ALREADY_REVIEWED
    assert third.type == FailureKind.ALREADY_REVIEWED
    assert fake_gateway.approved == {"m-1"}


@pytest.mark.asyncio
async def test_approval_unknown_match(service: VerificationService) -> None:
    outcome = await service.submit_approval("missing")
    assert outcome.type == FailureKind.NOT_FOUND


@pytest.mark.asyncio
async def test_approval_non_json_success_body(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides[APPROVE_M1] = httpx.Response(200, text="OK")
    outcome = await service.submit_approval("m-1")
    assert outcome.ok is True
    assert outcome.message == APPROVAL_SUCCESS_MESSAGE
    assert outcome.details is None


# ── Files ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_file_url_resolves_against_files_server(service: VerificationService) -> None:
    assert service.file_url("/uploads/actas/a.jpg") == "http://files.test/uploads/actas/a.jpg"
    assert service.file_url("logos/tigres.png") == "http://files.test/uploads/logos/tigres.png"
    assert service.file_url(None) == ""


@pytest.mark.asyncio
async def test_download_acta_file(service: VerificationService, fake_gateway: FakeGateway) -> None:
    match = Match.model_validate(make_match())
    filename, content = await service.download_acta_file(match, ActaSide.BACK)
    assert filename == "acta-back-Tigres-vs-Leones.jpg"
    assert content == b"JPEG-BYTES"
    assert fake_gateway.requests[-1].url.path == "/uploads/actas/m-1-back.jpg"


@pytest.mark.asyncio
async def test_download_missing_side(service: VerificationService, fake_gateway: FakeGateway) -> None:
    match = Match.model_validate(make_match(files=[{"tag": "front", "path": "a.jpg"}]))
    with pytest.raises(GatewayError) as exc_info:
        await service.download_acta_file(match, "dorso")
    assert exc_info.value.kind == FailureKind.NOT_FOUND
    assert fake_gateway.requests == []


@pytest.mark.asyncio
async def test_download_failure(service: VerificationService, fake_gateway: FakeGateway) -> None:
    fake_gateway.overrides["/uploads/actas/m-1-front.jpg"] = httpx.Response(404)
    match = Match.model_validate(make_match())
    with pytest.raises(GatewayError) as exc_info:
        await service.download_acta_file(match, ActaSide.FRONT)
    assert exc_info.value.message == "Could not download the acta file"


@pytest.mark.asyncio
async def test_can_approve_and_anchor_status(service: VerificationService) -> None:
    match = Match.model_validate(make_match())
    assert service.can_approve(match).allowed is True
    assert service.is_anchored(match).anchored is True
