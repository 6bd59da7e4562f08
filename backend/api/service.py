"""
Verification API entrypoint (``acta-verification-api``).

Serves ``api.app:app`` through uvicorn. A ``PORT`` variable set by the host
wins over ``AV_API_PORT``; dev runs reload on change with a single worker.
"""
from __future__ import annotations

import os
from typing import Any, Optional

import uvicorn

from shared.config import Environment, Settings, get_settings
from shared.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def uvicorn_options(settings: Settings, port: Optional[int] = None) -> dict[str, Any]:
    """Keyword arguments for ``uvicorn.run``."""
    dev = settings.environment == Environment.DEV
    return {
        "host": settings.api_host,
        "port": port if port is not None else settings.api_port,
        "workers": 1 if dev else max(1, settings.api_workers),
        "reload": dev,
        "log_level": settings.log_level.lower(),
        "access_log": False,
        "timeout_keep_alive": 30,
    }


def main() -> None:
    settings = get_settings()
    setup_logging("api-launcher")
    env_port = os.environ.get("PORT")
    options = uvicorn_options(settings, int(env_port) if env_port else None)
    logger.info(
        "verification_api_starting",
        environment=settings.environment.value,
        gateway=settings.gateway_base_url,
        port=options["port"],
        workers=options["workers"],
    )
    uvicorn.run("api.app:app", **options)


if __name__ == "__main__":
    main()
