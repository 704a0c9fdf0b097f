from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    NETWORK = "network"
    BACKEND = "backend"
    PROTOCOL = "protocol"
    VALIDATION = "validation"


class RequestFailure(Exception):
    """Raised by the knowledge client for every unsuccessful call."""

    def __init__(self, kind: FailureKind, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value} error ({self.status}): {self.message}"
        return f"{self.kind.value} error: {self.message}"

    def __repr__(self) -> str:
        return f"RequestFailure(kind={self.kind.value!r}, status={self.status!r}, message={self.message!r})"


__all__ = ["FailureKind", "RequestFailure"]
