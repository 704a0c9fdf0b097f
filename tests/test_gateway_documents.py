from __future__ import annotations

from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from klive.gateway import create_app

from conftest import API_KEY, make_settings

BOUNDARY = "----klive-test-boundary"
PDF_BYTES = b"%PDF-1.4\n\x00\x01\x02\xff\xfe binary \r\n--not-a-boundary\r\n\x89PNG"


def _multipart_body() -> bytes:
    parts = [
        (b'Content-Disposition: form-data; name="title"', b"Policy"),
        (b'Content-Disposition: form-data; name="category"', b"general"),
        (b'Content-Disposition: form-data; name="tenantSlug"', b"acme"),
        (
            b'Content-Disposition: form-data; name="file"; filename="policy.pdf"\r\n'
            b"Content-Type: application/pdf",
            PDF_BYTES,
        ),
    ]
    body = b""
    for headers, value in parts:
        body += b"--" + BOUNDARY.encode() + b"\r\n" + headers + b"\r\n\r\n" + value + b"\r\n"
    return body + b"--" + BOUNDARY.encode() + b"--\r\n"


def test_list_forwards_query_verbatim(gateway, backend) -> None:
    payload = {
        "documents": [
            {
                "id": "doc-1",
                "title": "Policy",
                "category": "general",
                "status": "indexed",
                "chunkCount": 4,
                "createdAt": "2024-05-01T10:00:00Z",
            }
        ],
        "total": 1,
    }
    backend.respond_with(httpx.Response(200, json=payload))

    response = gateway.get("/api/knowledge/documents?tenantSlug=acme&status=indexed&status=failed")

    assert response.status_code == 200
    assert response.json() == payload
    request = backend.last
    assert request.url.path == "/knowledge/documents"
    assert request.url.query == b"tenantSlug=acme&status=indexed&status=failed"
    assert request.headers["Authorization"] == f"Bearer {API_KEY}"


def test_list_without_query_sends_bare_path(gateway, backend) -> None:
    backend.respond_with(httpx.Response(200, json={"documents": [], "total": 0}))

    gateway.get("/api/knowledge/documents")

    assert str(backend.last.url) == "http://backend.test:3310/knowledge/documents"


def test_backend_json_error_is_relayed_unchanged(gateway, backend) -> None:
    backend.respond_with(httpx.Response(404, json={"error": "not found"}))

    response = gateway.get("/api/knowledge/documents?tenantSlug=ghost")

    assert response.status_code == 404
    assert response.json() == {"error": "not found"}


def test_backend_error_without_error_field_uses_message(gateway, backend) -> None:
    backend.respond_with(httpx.Response(403, json={"statusCode": 403, "message": "Invalid API key"}))

    response = gateway.get("/api/knowledge/documents")

    assert response.status_code == 403
    assert response.json() == {"error": "Invalid API key"}


def test_upload_streams_multipart_bytes_unchanged(gateway, backend) -> None:
    backend.respond_with(
        httpx.Response(
            201, json={"documentId": "doc-9", "status": "pending", "message": "Queued for indexing"}
        )
    )
    body = _multipart_body()
    content_type = f"multipart/form-data; boundary={BOUNDARY}"

    response = gateway.post(
        "/api/knowledge/documents",
        content=body,
        headers={"Content-Type": content_type},
    )

    assert response.status_code == 201
    assert response.json()["documentId"] == "doc-9"

    request = backend.last
    assert request.method == "POST"
    assert request.url.path == "/knowledge/documents"
    assert request.headers["Content-Type"] == content_type
    assert request.headers["Authorization"] == f"Bearer {API_KEY}"
    assert request.content == body
    for name in (b'name="title"', b'name="category"', b'name="tenantSlug"', b'name="file"'):
        assert name in request.content
    assert PDF_BYTES in request.content


def test_upload_rejects_non_multipart(gateway, backend) -> None:
    response = gateway.post("/api/knowledge/documents", json={"title": "Policy"})

    assert response.status_code == 415
    assert "multipart/form-data" in response.json()["error"]
    assert backend.requests == []


@pytest.fixture()
def small_gateway(backend) -> Iterator[TestClient]:
    app = create_app(make_settings(max_upload_bytes=64), transport=backend.transport())
    with TestClient(app) as client:
        yield client


def test_upload_over_declared_limit_is_rejected(small_gateway, backend) -> None:
    response = small_gateway.post(
        "/api/knowledge/documents",
        content=_multipart_body(),
        headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
    )

    assert response.status_code == 413
    assert response.json() == {"error": "Upload exceeds the 64 byte limit"}
    assert backend.requests == []


def test_upload_over_limit_without_length_is_cut_off(small_gateway, backend) -> None:
    body = _multipart_body()

    def chunks() -> Iterator[bytes]:
        for start in range(0, len(body), 32):
            yield body[start : start + 32]

    response = small_gateway.post(
        "/api/knowledge/documents",
        content=chunks(),
        headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
    )

    assert response.status_code == 413
    assert response.json()["error"] == "Upload exceeds the 64 byte limit"


def test_upload_backend_validation_error_keeps_status(gateway, backend) -> None:
    backend.respond_with(httpx.Response(400, json={"error": "content or file is required"}))

    response = gateway.post(
        "/api/knowledge/documents",
        content=_multipart_body(),
        headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "content or file is required"}
