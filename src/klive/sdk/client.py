from __future__ import annotations

import json
from typing import Any, List, Optional, Tuple, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from ..models.contracts import (
    ActionResult,
    ChatRequest,
    ChatResult,
    DocumentDetail,
    DocumentFilter,
    DocumentList,
    HealthResult,
    SearchQuery,
    SearchResult,
    UploadFields,
    UploadResult,
)
from ..shared.logging import get_logger
from .errors import FailureKind, RequestFailure

DEFAULT_GATEWAY_URL = "http://localhost:3000/api"

logger = get_logger("klive.sdk")

ResultT = TypeVar("ResultT", bound=BaseModel)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and isinstance(payload.get("error"), str) and payload["error"]:
        return payload["error"]
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def validate_upload(fields: UploadFields) -> UploadFields:
    """Caller-side precondition for :meth:`KnowledgeClient.upload_document`."""

    if not fields.title.strip():
        raise RequestFailure(FailureKind.VALIDATION, "Title is required")
    if fields.file is None and not (fields.content or "").strip():
        raise RequestFailure(FailureKind.VALIDATION, "Please provide content or upload a file")
    return fields


class KnowledgeClient:
    """Typed client for the knowledge-base gateway.

    Every method returns a validated model or raises :class:`RequestFailure`.
    The client never retries; that decision belongs to the caller.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_GATEWAY_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "KnowledgeClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        endpoint: str,
        model: Type[ResultT],
        **kwargs: Any,
    ) -> ResultT:
        url = f"{self._base_url}{endpoint}"
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.DecodingError as exc:
            logger.warning("gateway_body_undecodable", method=method, endpoint=endpoint, error=str(exc))
            raise RequestFailure(
                FailureKind.PROTOCOL, f"Could not decode the response from {endpoint}"
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("gateway_unreachable", method=method, endpoint=endpoint, error=str(exc))
            raise RequestFailure(FailureKind.NETWORK, str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            raise RequestFailure(
                FailureKind.BACKEND,
                _error_message(response),
                status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise RequestFailure(
                FailureKind.PROTOCOL,
                f"Expected a JSON response from {endpoint}",
                status=response.status_code,
            ) from exc
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise RequestFailure(
                FailureKind.PROTOCOL,
                f"Unexpected response shape from {endpoint}: {exc.error_count()} validation error(s)",
                status=response.status_code,
            ) from exc

    def get_health(self) -> HealthResult:
        return self._request("GET", "/health", HealthResult)

    def list_documents(self, filter: Optional[DocumentFilter] = None) -> DocumentList:
        params = (filter or DocumentFilter()).query_params()
        return self._request("GET", "/knowledge/documents", DocumentList, params=params)

    def get_document(self, document_id: str) -> DocumentDetail:
        return self._request(
            "GET", f"/knowledge/documents/{quote(document_id, safe='')}", DocumentDetail
        )

    def upload_document(self, fields: UploadFields) -> UploadResult:
        # plain fields go in as filename-less parts so the body is always multipart
        parts: List[Tuple[str, Tuple[Any, ...]]] = [
            ("title", (None, fields.title.encode("utf-8"))),
            ("category", (None, fields.category.encode("utf-8"))),
            ("tenantSlug", (None, fields.tenant_slug.encode("utf-8"))),
        ]
        if fields.file is not None:
            # a file takes precedence over inline content
            upload = fields.file
            parts.append(("file", (upload.filename, upload.data, upload.content_type)))
        elif fields.content is not None:
            parts.append(("content", (None, fields.content.encode("utf-8"))))
        return self._request("POST", "/knowledge/documents", UploadResult, files=parts)

    def delete_document(self, document_id: str) -> ActionResult:
        return self._request(
            "DELETE", f"/knowledge/documents/{quote(document_id, safe='')}", ActionResult
        )

    def reindex_document(self, document_id: str) -> ActionResult:
        return self._request(
            "POST", f"/knowledge/reindex/{quote(document_id, safe='')}", ActionResult
        )

    def search(self, query: SearchQuery) -> SearchResult:
        return self._request("POST", "/knowledge/search", SearchResult, json=query.to_wire())

    def chat(self, request: ChatRequest) -> ChatResult:
        return self._request("POST", "/chat", ChatResult, json=request.to_wire())


__all__ = ["DEFAULT_GATEWAY_URL", "KnowledgeClient", "validate_upload"]
