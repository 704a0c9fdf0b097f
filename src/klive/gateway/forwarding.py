from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime
from typing import Any, AsyncIterator, Awaitable, Dict, Optional, TypeVar

import httpx
from fastapi import Request, Response, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect

from ..shared.logging import get_logger
from .config import GatewaySettings
from .errors import (
    PAYLOAD_TOO_LARGE,
    UploadTooLarge,
    error_response,
    extract_error_message,
    transport_error_message,
)
from .routing import RouteRule, backend_target, filter_headers, proxy_target

logger = get_logger("klive.gateway.forwarding")

# status reported when the browser went away before the backend answered
CLIENT_CLOSED_REQUEST = 499
DISCONNECT_POLL_SECONDS = 0.25

T = TypeVar("T")


def make_correlation_id(prefix: str = "gw") -> str:
    now = datetime.now(tz=UTC).isoformat()
    return f"{prefix}_{now}_{uuid.uuid4().hex[:8]}"


async def cancel_on_disconnect(request: Request, awaitable: Awaitable[T]) -> T:
    """Await ``awaitable`` but cancel it as soon as the inbound client is gone.

    Only safe once the inbound body has been consumed, since polling for the
    disconnect reads from the ASGI receive channel.
    """

    task = asyncio.ensure_future(awaitable)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                raise ClientDisconnect()
    finally:
        if not task.done():
            task.cancel()


async def limited_stream(request: Request, limit: int) -> AsyncIterator[bytes]:
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise UploadTooLarge(limit)
        if chunk:
            yield chunk


class BackendForwarder:
    """Forwards inbound requests to the private backend.

    ``send`` is used by the credentialed handlers: it attaches the bearer
    credential and translates every failure into ``{"error": ...}``.
    ``proxy`` is the pass-through used for everything else.
    """

    def __init__(
        self,
        settings: GatewaySettings,
        backend: httpx.AsyncClient,
        proxy: httpx.AsyncClient,
    ) -> None:
        self._settings = settings
        self._backend = backend
        self._proxy = proxy

    @property
    def settings(self) -> GatewaySettings:
        return self._settings

    async def send(
        self,
        request: Request,
        rule: RouteRule,
        *,
        json_payload: Any = None,
        content: Optional[AsyncIterator[bytes]] = None,
        headers: Optional[Dict[str, str]] = None,
        body_consumed: bool = True,
    ) -> Response:
        correlation_id = make_correlation_id()
        outbound_headers: Dict[str, str] = {"X-Correlation-ID": correlation_id}
        outbound_headers.update(headers or {})
        if rule.credentialed:
            outbound_headers.update(self._settings.auth_headers())

        target = backend_target(rule, request.url.query)
        log = logger.bind(correlation_id=correlation_id, method=rule.method, path=rule.backend_path)
        try:
            outbound = self._backend.build_request(
                rule.method,
                target,
                headers=outbound_headers,
                json=json_payload,
                content=content,
            )
        except (httpx.HTTPError, ValueError) as exc:
            log.error("outbound_request_invalid", error_type=exc.__class__.__name__)
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR, transport_error_message(exc), correlation_id
            )

        try:
            if body_consumed:
                response = await cancel_on_disconnect(request, self._backend.send(outbound))
            else:
                response = await self._backend.send(outbound)
        except UploadTooLarge as exc:
            log.warning("upload_rejected", limit=exc.limit)
            return error_response(PAYLOAD_TOO_LARGE, str(exc), correlation_id)
        except ClientDisconnect:
            log.info("client_disconnected")
            return error_response(CLIENT_CLOSED_REQUEST, "Client closed request", correlation_id)
        except httpx.HTTPError as exc:
            log.error(
                "backend_request_failed",
                error=transport_error_message(exc),
                error_type=exc.__class__.__name__,
            )
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                transport_error_message(exc),
                correlation_id,
            )

        return self._translate(response, correlation_id, log)

    def _translate(self, response: httpx.Response, correlation_id: str, log: Any) -> Response:
        if not response.is_success:
            message = extract_error_message(response)
            log.warning("backend_rejected_request", status_code=response.status_code)
            return error_response(response.status_code, message, correlation_id)

        headers = {"X-Correlation-ID": correlation_id}
        if not response.content:
            return Response(status_code=response.status_code, headers=headers)
        try:
            response.json()
        except ValueError:
            log.error("backend_invalid_json", status_code=response.status_code)
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Backend returned a non-JSON response",
                correlation_id,
            )
        # already-validated JSON is relayed byte for byte
        return Response(
            content=response.content,
            status_code=response.status_code,
            media_type="application/json",
            headers=headers,
        )

    async def proxy(self, request: Request, path: str) -> Response:
        target = proxy_target(self._settings, path, request.url.query)
        headers = filter_headers(request.headers.items())
        has_body = "content-length" in request.headers or "transfer-encoding" in request.headers
        try:
            outbound = self._proxy.build_request(
                request.method,
                target,
                headers=headers,
                content=request.stream() if has_body else None,
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "proxy_request_invalid", method=request.method, error_type=exc.__class__.__name__
            )
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, transport_error_message(exc))
        try:
            upstream = await self._proxy.send(outbound, stream=True)
        except ClientDisconnect:
            logger.info("client_disconnected", method=request.method, path=target)
            return error_response(CLIENT_CLOSED_REQUEST, "Client closed request")
        except httpx.HTTPError as exc:
            logger.error(
                "proxy_request_failed",
                method=request.method,
                path=target,
                error=transport_error_message(exc),
            )
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR, transport_error_message(exc)
            )

        logger.debug("proxy_forwarded", method=request.method, path=target, status_code=upstream.status_code)
        response = StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        # append keeps repeated headers such as Set-Cookie
        for name, value in filter_headers(upstream.headers.multi_items()):
            response.headers.append(name, value)
        return response


__all__ = [
    "BackendForwarder",
    "cancel_on_disconnect",
    "limited_stream",
    "make_correlation_id",
]
