"""
Dependency injection for the API service.
Provides the shared gateway client and a per-request verification service to route handlers.
"""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from shared.utils.http_client import GatewayHTTPClient

from verifier.access import VerificationService
from verifier.session import SessionCredential

# Module-level singleton, initialized at startup
_gateway: GatewayHTTPClient | None = None


def init_dependencies(gateway: GatewayHTTPClient) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _gateway
    _gateway = gateway


def get_gateway() -> GatewayHTTPClient:
    """FastAPI dependency: returns the shared GatewayHTTPClient."""
    if _gateway is None:
        raise RuntimeError("GatewayHTTPClient not initialized; call init_dependencies first")
    return _gateway


def get_session(authorization: Optional[str] = Header(default=None)) -> SessionCredential:
    """FastAPI dependency: the operator's bearer credential for this request."""
    return SessionCredential.from_authorization_header(authorization)


def get_service(
    gateway: GatewayHTTPClient = Depends(get_gateway),
    session: SessionCredential = Depends(get_session),
) -> VerificationService:
    """FastAPI dependency: a verification service bound to the request's session."""
    return VerificationService(gateway, session=session)
