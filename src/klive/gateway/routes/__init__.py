from __future__ import annotations

from fastapi import Request

from ..forwarding import BackendForwarder


def get_forwarder(request: Request) -> BackendForwarder:
    forwarder = getattr(request.app.state, "forwarder", None)
    if forwarder is None:
        raise RuntimeError("backend forwarder not initialized")
    return forwarder


__all__ = ["get_forwarder"]
