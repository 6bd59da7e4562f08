"""
Shared fixtures: an in-memory record gateway served through httpx.MockTransport,
so the real GatewayHTTPClient and VerificationService run end to end without a network.
"""
from __future__ import annotations

import asyncio
import json
import re
from typing import Any, AsyncIterator, Callable, Optional, Union

import httpx
import pytest
import pytest_asyncio

from shared.utils.http_client import GatewayHTTPClient
from verifier.access import VerificationService
from verifier.session import SessionCredential

BASE_URL = "http://gateway.test"
FILES_URL = "http://files.test"
TOKEN = "token-123"
ANCHOR_HASH = "0xabcdef0123456789abcdef0123456789abcdef01"

_MATCHES_PATH = re.compile(r"^/verificacion/campeonatos/(?P<cid>[^/]+)/actas$")
_APPROVE_PATH = re.compile(r"^/verificacion/actas/(?P<mid>[^/]+)/revisar$")

Override = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


def make_match(match_id: str = "m-1", **overrides: Any) -> dict[str, Any]:
    """Wire-format match as the gateway sends it."""
    data: dict[str, Any] = {
        "id": match_id,
        "date": "2025-03-05",
        "time": "18:00",
        "court": "Central",
        "team_local": "Tigres",
        "team_visitor": "Leones",
        "logo_local": "logos/tigres.png",
        "logo_visitor": None,
        "score_local": 2,
        "score_visitor": 1,
        "referee_id": "r-1",
        "referee_name": "Ana",
        "referee_surname": "Paz",
        "poll_worker_id": "v-1",
        "poll_worker_name": "Luis",
        "anchor_hash": ANCHOR_HASH,
        "anchor_timestamp": "2025-03-05T20:00:00Z",
        "files": [
            {"tag": "front", "path": f"/uploads/actas/{match_id}-front.jpg", "file_hash": "h-front"},
            {"tag": "back", "path": f"uploads/actas/{match_id}-back.jpg", "file_hash": "h-back"},
        ],
    }
    data.update(overrides)
    return data


def make_championship(championship_id: str = "c-1", name: str = "Apertura 2025", **overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": championship_id,
        "name": name,
        "start_date": "2025-03-01",
        "end_date": "2025-06-30",
        "pending_count": 1,
    }
    data.update(overrides)
    return data


class FakeGateway:
    """In-memory ledger/record gateway. Approved matches leave the pending lists and stay approved."""

    def __init__(self) -> None:
        self.championships: list[dict[str, Any]] = [make_championship()]
        self.matches: dict[str, list[dict[str, Any]]] = {"c-1": [make_match()]}
        self.approved: set[str] = set()
        self.integrity_failures: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.approval_bodies: list[dict[str, Any]] = []
        self.overrides: dict[str, Override] = {}
        self.gates: dict[str, asyncio.Event] = {}

    def requests_to(self, path_fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if path_fragment in r.url.path]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        override = self.overrides.get(path)
        if override is not None:
            return override(request) if callable(override) else override

        if request.method == "GET" and path == "/verificacion/campeonatos":
            return httpx.Response(200, json={"success": True, "data": self.championships})

        m = _MATCHES_PATH.match(path)
        if request.method == "GET" and m:
            cid = m.group("cid")
            gate = self.gates.get(cid)
            if gate is not None:
                await gate.wait()
            return httpx.Response(200, json={"success": True, "data": self.matches.get(cid, [])})

        m = _APPROVE_PATH.match(path)
        if request.method == "POST" and m:
            return self._approve(request, m.group("mid"))

        if request.method == "GET" and path.startswith("/uploads/"):
            return httpx.Response(200, content=b"JPEG-BYTES", headers={"Content-Type": "image/jpeg"})

        return httpx.Response(404, json={"message": "Not found"})

    def _approve(self, request: httpx.Request, match_id: str) -> httpx.Response:
        if not request.headers.get("authorization", "").startswith("Bearer "):
            return httpx.Response(401, json={"message": "Unauthorized"})
        body = json.loads(request.content or b"{}")
        self.approval_bodies.append(body)

        if match_id in self.approved:
            return httpx.Response(
                409,
                json={"success": False, "errorType": "already_reviewed", "message": "Acta already reviewed"},
            )
        known = any(match["id"] == match_id for matches in self.matches.values() for match in matches)
        if not known:
            return httpx.Response(
                404, json={"success": False, "errorType": "not_found", "message": "Acta not found"}
            )
        if match_id in self.integrity_failures:
            return httpx.Response(
                409,
                json={
                    "success": False,
                    "errorType": "data_integrity",
                    "message": "Stored data does not match the ledger hash",
                    "details": {"expected": "0xabc", "actual": "0xdef"},
                },
            )
        self.approved.add(match_id)
        for cid, matches in self.matches.items():
            self.matches[cid] = [match for match in matches if match["id"] != match_id]
        return httpx.Response(200, json={"success": True, "message": "Acta approved"})


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


def make_client(fake_gateway: FakeGateway) -> GatewayHTTPClient:
    return GatewayHTTPClient(
        base_url=BASE_URL,
        max_retries=1,
        transport=httpx.MockTransport(fake_gateway.handler),
    )


@pytest_asyncio.fixture
async def gateway_client(fake_gateway: FakeGateway) -> AsyncIterator[GatewayHTTPClient]:
    client = make_client(fake_gateway)
    await client.start()
    yield client
    await client.close()


@pytest.fixture
def session() -> SessionCredential:
    return SessionCredential(TOKEN)


@pytest.fixture
def service(gateway_client: GatewayHTTPClient, session: SessionCredential) -> VerificationService:
    return VerificationService(gateway_client, session=session, files_base_url=FILES_URL)


def build_service(
    gateway_client: GatewayHTTPClient, token: Optional[str] = TOKEN
) -> VerificationService:
    return VerificationService(gateway_client, session=SessionCredential(token), files_base_url=FILES_URL)
