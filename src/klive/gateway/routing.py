"""Declared forwarding rules for the gateway.

Credentialed endpoints are listed explicitly in ``ROUTE_TABLE``; every other
path under the public prefix falls through to ``DEFAULT_RULE``, the plain
reverse proxy. Keeping both in one table makes it auditable which calls carry
the backend credential.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple

from .config import GatewaySettings


class BodyMode(str, Enum):
    NONE = "none"
    JSON = "json"
    MULTIPART = "multipart"
    STREAM = "stream"


@dataclass(frozen=True)
class RouteRule:
    method: str
    public_path: str
    backend_path: str
    body: BodyMode
    credentialed: bool = True
    forward_query: bool = False


ROUTE_TABLE: Tuple[RouteRule, ...] = (
    RouteRule("GET", "/health", "/health", BodyMode.NONE),
    RouteRule("GET", "/knowledge/documents", "/knowledge/documents", BodyMode.NONE, forward_query=True),
    RouteRule("POST", "/knowledge/documents", "/knowledge/documents", BodyMode.MULTIPART),
    RouteRule("POST", "/knowledge/search", "/knowledge/search", BodyMode.JSON),
)

DEFAULT_RULE = RouteRule(
    "*",
    "/{path:path}",
    "/{path}",
    BodyMode.STREAM,
    credentialed=False,
    forward_query=True,
)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# RFC 7230 section 6.1, plus Host which httpx sets for the outbound hop
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
    }
)


def rule_for(method: str, public_path: str) -> RouteRule:
    for rule in ROUTE_TABLE:
        if rule.method == method and rule.public_path == public_path:
            return rule
    return DEFAULT_RULE


def backend_target(rule: RouteRule, query: str) -> str:
    if rule.forward_query and query:
        return f"{rule.backend_path}?{query}"
    return rule.backend_path


def proxy_target(settings: GatewaySettings, path: str, query: str) -> str:
    target = f"{settings.proxy_backend_prefix}/{path.lstrip('/')}"
    if query:
        target = f"{target}?{query}"
    return target


def filter_headers(headers: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Drop hop-by-hop headers, including any named by ``Connection``."""

    items = list(headers)
    dropped = set(HOP_BY_HOP_HEADERS)
    for name, value in items:
        if name.lower() == "connection":
            dropped.update(token.strip().lower() for token in value.split(",") if token.strip())
    return [(name, value) for name, value in items if name.lower() not in dropped]


__all__ = [
    "BodyMode",
    "DEFAULT_RULE",
    "HOP_BY_HOP_HEADERS",
    "PROXY_METHODS",
    "ROUTE_TABLE",
    "RouteRule",
    "backend_target",
    "filter_headers",
    "proxy_target",
    "rule_for",
]
