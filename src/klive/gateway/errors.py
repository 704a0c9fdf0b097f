from __future__ import annotations

import json
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..models.contracts import ErrorBody

PAYLOAD_TOO_LARGE = 413
INVALID_OUTBOUND_REQUEST = "Invalid outbound request"

# fields checked, in order, for a readable message in a backend error body
MESSAGE_FIELDS = ("error", "message", "detail")


class UploadTooLarge(Exception):
    def __init__(self, limit: int) -> None:
        super().__init__(f"Upload exceeds the {limit} byte limit")
        self.limit = limit


def error_response(
    status_code: int,
    message: str,
    correlation_id: Optional[str] = None,
) -> JSONResponse:
    headers = {"X-Correlation-ID": correlation_id} if correlation_id else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorBody(error=message).model_dump(),
        headers=headers,
    )


def extract_error_message(response: httpx.Response) -> str:
    """Best readable message from a failed backend response.

    JSON bodies are searched for a string ``error``/``message``/``detail``;
    anything else falls back to the raw text, then to the reason phrase.
    """

    text = response.text
    try:
        payload = json.loads(text)
    except ValueError:
        return text or response.reason_phrase
    if isinstance(payload, dict):
        for key in MESSAGE_FIELDS:
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return text or response.reason_phrase


def describe_validation_error(exc: ValidationError | RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def transport_error_message(exc: Exception) -> str:
    # local protocol errors quote the offending outbound header, credential included
    if isinstance(exc, httpx.LocalProtocolError) or not isinstance(exc, httpx.HTTPError):
        return INVALID_OUTBOUND_REQUEST
    return str(exc) or exc.__class__.__name__


def install_exception_handlers(app: FastAPI) -> None:
    """Render framework-level errors in the uniform ``{"error": ...}`` shape."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else json.dumps(exc.detail)
        return error_response(exc.status_code, detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response(422, describe_validation_error(exc))


__all__ = [
    "INVALID_OUTBOUND_REQUEST",
    "PAYLOAD_TOO_LARGE",
    "UploadTooLarge",
    "describe_validation_error",
    "error_response",
    "extract_error_message",
    "install_exception_handlers",
    "transport_error_message",
]
