from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import ValidationError

from ...models.contracts import SearchQuery
from ..errors import PAYLOAD_TOO_LARGE, describe_validation_error, error_response
from ..forwarding import BackendForwarder, limited_stream
from ..routing import rule_for
from . import get_forwarder

router = APIRouter(tags=["knowledge"])

LIST_DOCUMENTS_RULE = rule_for("GET", "/knowledge/documents")
CREATE_DOCUMENT_RULE = rule_for("POST", "/knowledge/documents")
SEARCH_RULE = rule_for("POST", "/knowledge/search")


@router.get(LIST_DOCUMENTS_RULE.public_path)
async def list_documents(
    request: Request,
    forwarder: BackendForwarder = Depends(get_forwarder),
) -> Response:
    # the query string is relayed as-is, duplicates and ordering included
    return await forwarder.send(request, LIST_DOCUMENTS_RULE)


@router.post(CREATE_DOCUMENT_RULE.public_path)
async def create_document(
    request: Request,
    forwarder: BackendForwarder = Depends(get_forwarder),
) -> Response:
    """Stream a multipart upload to the backend without parsing it."""

    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data"):
        return error_response(
            status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            "Document uploads must be sent as multipart/form-data",
        )

    limit = forwarder.settings.max_upload_bytes
    headers = {"Content-Type": content_type}
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            declared_size = int(declared)
        except ValueError:
            return error_response(status.HTTP_400_BAD_REQUEST, "Invalid Content-Length header")
        if declared_size > limit:
            return error_response(
                PAYLOAD_TOO_LARGE,
                f"Upload exceeds the {limit} byte limit",
            )
        headers["Content-Length"] = declared

    return await forwarder.send(
        request,
        CREATE_DOCUMENT_RULE,
        content=limited_stream(request, limit),
        headers=headers,
        body_consumed=False,
    )


@router.post(SEARCH_RULE.public_path)
async def search(
    request: Request,
    forwarder: BackendForwarder = Depends(get_forwarder),
) -> Response:
    try:
        body = await request.json()
    except ValueError:
        return error_response(status.HTTP_400_BAD_REQUEST, "Request body must be valid JSON")
    try:
        SearchQuery.model_validate(body)
    except ValidationError as exc:
        return error_response(status.HTTP_400_BAD_REQUEST, describe_validation_error(exc))
    # forward the caller's document, not the model dump, so no field is lost
    return await forwarder.send(request, SEARCH_RULE, json_payload=body)


__all__ = ["router"]
