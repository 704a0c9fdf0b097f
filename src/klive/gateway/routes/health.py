from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from ..forwarding import BackendForwarder
from ..routing import rule_for
from . import get_forwarder

router = APIRouter(tags=["health"])

HEALTH_RULE = rule_for("GET", "/health")


@router.get(HEALTH_RULE.public_path)
async def backend_health(
    request: Request,
    forwarder: BackendForwarder = Depends(get_forwarder),
) -> Response:
    """Relay the backend's dependency health (vector store, LLM provider)."""

    return await forwarder.send(request, HEALTH_RULE)


__all__ = ["router"]
