"""
Async HTTP client wrapper for record gateway requests.
Includes retry logic for idempotent reads, timeout management, and metrics collection.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import GATEWAY_LATENCY, GATEWAY_REQUESTS

logger = get_logger(__name__)


class GatewayHTTPClient:
    """
    Async HTTP client for the ledger/record gateway.
    GETs are retried on timeouts and 5xx; POSTs are sent exactly once and
    returned unraised so callers can read the gateway's error body.
    """

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.gateway_base_url).rstrip("/")
        self._timeout = timeout_s or settings.gateway_timeout_s
        self._max_retries = max(1, max_retries if max_retries is not None else settings.gateway_max_retries)
        self._default_headers = {"Content-Type": "application/json", **(headers or {})}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GatewayHTTPClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("GatewayHTTPClient not started. Call start() first.")
        return self._client

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
        operation: str = "get",
    ) -> httpx.Response:
        """
        Perform a GET request with retry, metrics, and structured logging.

        Args:
            path: API path relative to base_url, or an absolute URL.
            params: Query parameters.
            extra_headers: Request-specific headers.
            operation: Operation label for metrics.

        Returns:
            httpx.Response

        Raises:
            httpx.HTTPStatusError: On 4xx, or 5xx once retries are exhausted.
            httpx.RequestError: If the transport fails on every attempt.
        """
        client = self._require_client()
        last_exc: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            start_time = time.perf_counter()
            status = "unknown"

            try:
                resp = await client.get(path, params=params, headers=extra_headers)
                status = str(resp.status_code)

                if resp.status_code >= 500 and attempt < self._max_retries:
                    logger.warning(
                        "gateway_server_error",
                        operation=operation,
                        path=path,
                        status=resp.status_code,
                        attempt=attempt,
                    )
                    await asyncio.sleep(0.5 * attempt)
                    continue

                resp.raise_for_status()

                logger.debug(
                    "gateway_request_success",
                    operation=operation,
                    path=path,
                    status=resp.status_code,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return resp

            except httpx.TimeoutException as exc:
                status = "timeout"
                last_exc = exc
                logger.warning("gateway_timeout", operation=operation, path=path, attempt=attempt)
                if attempt < self._max_retries:
                    await asyncio.sleep(0.5 * attempt)
                    continue

            except httpx.HTTPStatusError as exc:
                logger.error(
                    "gateway_http_error",
                    operation=operation,
                    path=path,
                    status=exc.response.status_code,
                    attempt=attempt,
                )
                raise

            except httpx.RequestError as exc:
                status = "error"
                last_exc = exc
                logger.error(
                    "gateway_request_error",
                    operation=operation,
                    path=path,
                    error=str(exc),
                    attempt=attempt,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(0.5 * attempt)
                    continue

            finally:
                GATEWAY_REQUESTS.labels(operation=operation, status=status).inc()
                GATEWAY_LATENCY.labels(operation=operation).observe(time.perf_counter() - start_time)

        if last_exc:
            raise last_exc
        raise RuntimeError(f"Gateway request failed after {self._max_retries} attempts")

    async def post(
        self,
        path: str,
        json: Any = None,
        extra_headers: dict[str, str] | None = None,
        operation: str = "post",
    ) -> httpx.Response:
        """
        Perform a single POST request. Non-2xx responses are returned as-is.

        Raises:
            httpx.RequestError: On transport failure.
        """
        client = self._require_client()
        start_time = time.perf_counter()
        status = "error"
        try:
            resp = await client.post(path, json=json, headers=extra_headers)
            status = str(resp.status_code)
            logger.debug(
                "gateway_post_completed",
                operation=operation,
                path=path,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return resp
        except httpx.RequestError as exc:
            logger.error("gateway_post_error", operation=operation, path=path, error=str(exc))
            raise
        finally:
            GATEWAY_REQUESTS.labels(operation=operation, status=status).inc()
            GATEWAY_LATENCY.labels(operation=operation).observe(time.perf_counter() - start_time)
