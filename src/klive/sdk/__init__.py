from .client import DEFAULT_GATEWAY_URL, KnowledgeClient, validate_upload
from .errors import FailureKind, RequestFailure
from .session import ChatSession

__all__ = [
    "ChatSession",
    "DEFAULT_GATEWAY_URL",
    "FailureKind",
    "KnowledgeClient",
    "RequestFailure",
    "validate_upload",
]
