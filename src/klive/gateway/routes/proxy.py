from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from ..forwarding import BackendForwarder
from ..routing import DEFAULT_RULE, PROXY_METHODS
from . import get_forwarder

router = APIRouter(tags=["proxy"])


@router.api_route(DEFAULT_RULE.public_path, methods=PROXY_METHODS, include_in_schema=False)
async def passthrough(
    path: str,
    request: Request,
    forwarder: BackendForwarder = Depends(get_forwarder),
) -> Response:
    """Plain reverse proxy: prefix rewritten, no credential, no error rewriting."""

    return await forwarder.proxy(request, path)


__all__ = ["router"]
