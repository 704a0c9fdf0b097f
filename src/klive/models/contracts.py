from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DocumentStatus = Literal["pending", "indexing", "indexed", "failed"]


class WireModel(BaseModel):
    """Base for payloads sent to the backend; camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RelayedModel(WireModel):
    """Base for payloads received from the backend.

    Unknown fields are kept so a relayed payload is never trimmed.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class ErrorBody(BaseModel):
    """Uniform error shape returned by every failing gateway path."""

    error: str


class HealthResult(RelayedModel):
    status: Literal["ok", "degraded"]
    qdrant: Literal["connected", "disconnected"]
    gemini: Literal["available", "unavailable"]
    timestamp: str


class DocumentSummary(RelayedModel):
    id: str
    title: str
    category: str
    status: DocumentStatus
    chunk_count: int
    created_at: str
    indexed_at: Optional[str] = None
    error_message: Optional[str] = None


class DocumentDetail(DocumentSummary):
    metadata: Optional[Dict[str, Any]] = None
    file_type: str


class DocumentList(RelayedModel):
    documents: List[DocumentSummary]
    total: int


class DocumentFilter(WireModel):
    tenant_slug: Optional[str] = None
    status: Optional[str] = None
    category: Optional[str] = None

    def query_params(self) -> Dict[str, str]:
        """Only the fields that carry a value; empty strings are dropped."""
        return {key: value for key, value in self.to_wire().items() if value != ""}


class UploadFile(BaseModel):
    filename: str
    data: bytes
    content_type: str = "application/octet-stream"


class UploadFields(WireModel):
    title: str
    category: str = "general"
    tenant_slug: str
    content: Optional[str] = None
    file: Optional[UploadFile] = None


class UploadResult(RelayedModel):
    document_id: str
    status: str
    message: str


class ActionResult(RelayedModel):
    success: bool
    message: str


class SearchQuery(WireModel):
    query: str = Field(min_length=1)
    tenant_slug: str = Field(min_length=1)
    category: Optional[str] = None
    top_k: Optional[int] = Field(default=None, ge=1)


class SearchChunk(RelayedModel):
    id: str
    score: float = Field(ge=0.0, le=1.0)
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchResult(RelayedModel):
    chunks: List[SearchChunk]
    max_score: float
    total: int


class ChatTurn(WireModel):
    role: Literal["visitor", "assistant"]
    content: str


class ChatConfig(WireModel):
    response_style: Optional[str] = None
    max_response_length: Optional[int] = Field(default=None, ge=1)
    language: Optional[str] = None
    confidence_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    enabled_categories: Optional[List[str]] = None
    ai_display_name: Optional[str] = None


class ChatRequest(WireModel):
    message: str = Field(min_length=1)
    tenant_slug: str
    conversation_history: Optional[List[ChatTurn]] = None
    config: Optional[ChatConfig] = None


class ChunkRef(RelayedModel):
    chunk_id: str
    score: float
    content: str
    document_title: str


class ChatResult(RelayedModel):
    response: str
    confidence: float = Field(ge=0.0, le=1.0)
    intent: str
    should_escalate: bool
    escalation_reason: Optional[str] = None
    retrieved_chunks: List[ChunkRef] = Field(default_factory=list)
    token_usage: int
    processing_time_ms: int = Field(
        validation_alias=AliasChoices("processingTime", "processingTimeMs", "processing_time_ms"),
        serialization_alias="processingTime",
    )


__all__ = [
    "ActionResult",
    "ChatConfig",
    "ChatRequest",
    "ChatResult",
    "ChatTurn",
    "ChunkRef",
    "DocumentDetail",
    "DocumentFilter",
    "DocumentList",
    "DocumentStatus",
    "DocumentSummary",
    "ErrorBody",
    "HealthResult",
    "SearchChunk",
    "SearchQuery",
    "SearchResult",
    "UploadFields",
    "UploadFile",
    "UploadResult",
]
