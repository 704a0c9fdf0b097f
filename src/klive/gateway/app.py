from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx
from fastapi import FastAPI

from .. import __version__
from ..shared.logging import get_logger, setup_logging
from .config import GatewaySettings, get_settings
from .errors import install_exception_handlers
from .forwarding import BackendForwarder
from .routes import health, knowledge, proxy

logger = get_logger("klive.gateway")


def create_app(
    settings: Optional[GatewaySettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the gateway application.

    ``settings`` is resolved once here and handed to the forwarder; request
    handlers never read the environment. ``transport`` lets tests stand in for
    the backend.
    """

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(settings.log_level)
        timeout = httpx.Timeout(settings.backend_timeout)
        async with httpx.AsyncClient(
            base_url=settings.base_address(), timeout=timeout, transport=transport
        ) as backend, httpx.AsyncClient(
            base_url=settings.proxy_address(), timeout=timeout, transport=transport
        ) as passthrough:
            app.state.forwarder = BackendForwarder(settings, backend, passthrough)
            logger.info(
                "gateway_ready",
                backend_url=settings.base_address(),
                proxy_url=settings.proxy_address(),
                prefix=settings.public_prefix,
                credential_configured=bool(settings.credential()),
            )
            yield
            app.state.forwarder = None

    app = FastAPI(title="KLive Admin Gateway", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    install_exception_handlers(app)

    @app.get("/healthz", tags=["system"])
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    app.include_router(health.router, prefix=settings.public_prefix)
    app.include_router(knowledge.router, prefix=settings.public_prefix)
    # catch-all, must stay last
    app.include_router(proxy.router, prefix=settings.public_prefix)

    return app


__all__ = ["create_app"]
