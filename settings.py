"""
Centralized configuration for bundle resolution against a Shopify storefront.
"""
from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from services.errors import ErrorCode, create_error

DEFAULT_API_VERSION: str = "2025-01"

# Cache TTLs in seconds
DEFINITION_CACHE_TTL: int = 5 * 60
INVENTORY_CACHE_TTL: int = 30
PRICE_CACHE_TTL: int = 60

LOW_STOCK_THRESHOLD: int = 5
# Reported as max quantity when no component exposes a stock count
UNBOUNDED_MAX_QUANTITY: int = 99

HTTP_TIMEOUT_SECONDS: float = float(os.getenv("BUNDLE_HTTP_TIMEOUT", "10"))

# Hosted backend endpoints (relative to api_url)
API_ENDPOINTS: dict[str, str] = {
    "bundle": "/api/v1/bundle/{bundle_id}",
    "inventory": "/api/v1/bundle/{bundle_id}/inventory",
    "price": "/api/v1/bundle/{bundle_id}/price",
}

# Environment variables recognised by load_config_from_env.
ENV_FIELDS: tuple[tuple[str, str], ...] = (
    ("BUNDLE_STORE_DOMAIN", "store_domain"),
    ("BUNDLE_API_URL", "api_url"),
    ("BUNDLE_API_KEY", "api_key"),
    ("BUNDLE_STOREFRONT_TOKEN", "storefront_access_token"),
    ("BUNDLE_API_VERSION", "api_version"),
    ("BUNDLE_ENABLE_CACHE", "enable_cache"),
    ("BUNDLE_CACHE_TTL", "cache_ttl"),
)


def sanitize_store_domain(value: Optional[Any]) -> Optional[str]:
    """Normalize raw domains (strip scheme, whitespace and trailing slash, lower-case)."""
    if value is None:
        return None
    text = str(value).strip().lower()
    for prefix in ("https://", "http://"):
        if text.startswith(prefix):
            text = text[len(prefix):]
    text = text.rstrip("/")
    return text or None


class BundleConfig(BaseModel):
    """Configuration supplied by the surrounding application.

    When both ``api_key`` and ``api_url`` are set, resolution, inventory and
    pricing are delegated to the hosted backend. Otherwise the Storefront API
    is queried directly with ``storefront_access_token``.
    """

    store_domain: str = Field(..., alias="storeDomain", min_length=1)
    api_url: Optional[str] = Field(None, alias="apiUrl")
    api_key: Optional[str] = Field(None, alias="apiKey")
    storefront_access_token: Optional[str] = Field(None, alias="storefrontAccessToken")
    api_version: str = Field(DEFAULT_API_VERSION, alias="apiVersion")
    enable_cache: bool = Field(True, alias="enableCache")
    cache_ttl: Optional[int] = Field(None, alias="cacheTtl", ge=0)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("store_domain", mode="before")
    @classmethod
    def _normalize_store_domain(cls, value: Any) -> Any:
        return sanitize_store_domain(value) or ""

    @field_validator("api_url", mode="before")
    @classmethod
    def _strip_api_url(cls, value: Any) -> Any:
        if value is None:
            return None
        text = str(value).strip().rstrip("/")
        return text or None

    @model_validator(mode="after")
    def _check_backend_pair(self) -> "BundleConfig":
        if self.api_key and not self.api_url:
            raise ValueError("api_url is required when api_key is set")
        return self

    @property
    def uses_hosted_backend(self) -> bool:
        return bool(self.api_key and self.api_url)

    @property
    def graphql_url(self) -> str:
        return f"https://{self.store_domain}/api/{self.api_version}/graphql.json"

    @property
    def definition_ttl(self) -> int:
        return self.cache_ttl if self.cache_ttl else DEFINITION_CACHE_TTL


def build_config(values: Optional[Mapping[str, Any]] = None, **overrides: Any) -> BundleConfig:
    """
    Build a BundleConfig from a mapping (camelCase or snake_case keys).
    Raises BundleError(INVALID_CONFIG) instead of pydantic's ValidationError.
    """
    data = dict(values or {})
    data.update(overrides)
    try:
        return BundleConfig(**data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        raise create_error(
            ErrorCode.INVALID_CONFIG,
            details={"field": ".".join(str(p) for p in first.get("loc", ())), "reason": first.get("msg")},
        ) from e


def load_config_from_env(env_file: Optional[str] = None) -> BundleConfig:
    """Read BUNDLE_* variables (after loading a .env file if present)."""
    load_dotenv(env_file)
    values: dict[str, Any] = {}
    for env_name, field_name in ENV_FIELDS:
        raw = os.getenv(env_name)
        if raw is None or raw.strip() == "":
            continue
        if field_name == "enable_cache":
            values[field_name] = raw.strip().lower() not in ("0", "false", "no", "off")
        else:
            values[field_name] = raw.strip()
    return build_config(values)
