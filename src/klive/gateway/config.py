from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

DEFAULT_BACKEND_URL = "http://localhost:3310"
DEFAULT_MAX_UPLOAD_BYTES = 25 * 1024 * 1024


def _default_backend_url() -> str:
    return os.getenv("BACKEND_URL", DEFAULT_BACKEND_URL)


class GatewaySettings(BaseModel):
    """Runtime configuration for the gateway, resolved once at startup."""

    model_config = ConfigDict(frozen=True, hide_input_in_errors=True)

    backend_url: str = Field(default_factory=_default_backend_url)
    api_key: SecretStr = Field(default_factory=lambda: SecretStr(os.getenv("API_KEY", "")))
    public_prefix: str = Field(default_factory=lambda: os.getenv("GATEWAY_PREFIX", "/api"))
    proxy_backend_url: str | None = Field(default_factory=lambda: os.getenv("PROXY_BACKEND_URL"))
    proxy_backend_prefix: str = Field(
        default_factory=lambda: os.getenv("PROXY_BACKEND_PREFIX", "/api")
    )
    backend_timeout: float = Field(
        default_factory=lambda: float(os.getenv("BACKEND_TIMEOUT", "30.0")), gt=0
    )
    max_upload_bytes: int = Field(
        default_factory=lambda: int(os.getenv("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))),
        gt=0,
    )
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @field_validator("api_key", mode="after")
    @classmethod
    def clean_api_key(cls, value: SecretStr) -> SecretStr:
        token = value.get_secret_value().strip()
        # the token goes into a header value; never echo it in the error
        if not token.isascii() or any(ch.isspace() or not ch.isprintable() for ch in token):
            raise ValueError("API_KEY must be printable ASCII without whitespace")
        return SecretStr(token)

    @model_validator(mode="after")
    def normalize_prefixes(self) -> "GatewaySettings":
        # frozen model: write through object.__setattr__
        for name in ("public_prefix", "proxy_backend_prefix"):
            value = getattr(self, name).strip()
            value = "/" + value.strip("/") if value.strip("/") else ""
            object.__setattr__(self, name, value)
        if not self.proxy_backend_url:
            object.__setattr__(self, "proxy_backend_url", self.backend_url)
        return self

    def base_address(self) -> str:
        return self.backend_url.rstrip("/")

    def proxy_address(self) -> str:
        return (self.proxy_backend_url or self.backend_url).rstrip("/")

    def credential(self) -> str:
        return self.api_key.get_secret_value()

    def auth_headers(self) -> dict[str, str]:
        # no credential: forward unauthenticated and let the backend reject
        if not self.credential():
            return {}
        return {"Authorization": f"Bearer {self.credential()}"}


@lru_cache(maxsize=1)
def get_settings() -> GatewaySettings:
    return GatewaySettings()


__all__ = ["DEFAULT_BACKEND_URL", "GatewaySettings", "get_settings"]
