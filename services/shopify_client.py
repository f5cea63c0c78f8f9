"""
HTTP clients for the two bundle data sources:

- StorefrontClient: Shopify Storefront GraphQL endpoint
- BundleBackendClient: hosted backend that returns already-normalized bundles

Both accept an injected ``httpx.AsyncClient`` (connection reuse, tests);
without one, a short-lived client is opened per call.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import quote

import httpx

from services.errors import ErrorCode, create_error, parse_api_error, wrap_transport_error
from settings import API_ENDPOINTS, HTTP_TIMEOUT_SECONDS, BundleConfig

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _client_scope(http_client: Optional[httpx.AsyncClient]) -> AsyncIterator[httpx.AsyncClient]:
    if http_client is not None:
        yield http_client
        return
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        yield client


def _parse_json(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def graphql_error_message(body: Dict[str, Any]) -> Optional[str]:
    """First GraphQL error message in a response body, or None when it carries no errors."""
    errors = body.get("errors")
    if not errors:
        return None
    first = errors[0] if isinstance(errors, list) else errors
    if isinstance(first, dict):
        return first.get("message") or "GraphQL error"
    return str(first) or "GraphQL error"


def graphql_data(body: Dict[str, Any]) -> Dict[str, Any]:
    data = body.get("data")
    return data if isinstance(data, dict) else {}


class StorefrontClient:
    """Thin GraphQL transport for the Storefront API."""

    def __init__(
        self,
        config: BundleConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        missing_token_message: Optional[str] = None,
    ):
        self.config = config
        self.http_client = http_client
        self.missing_token_message = missing_token_message or (
            "storefrontAccessToken is required when not using hosted backend"
        )

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Shopify-Storefront-Access-Token": self.config.storefront_access_token or "",
        }

    def require_token(self) -> None:
        """Configuration fault, raised before any request is attempted."""
        if not self.config.storefront_access_token:
            raise create_error(ErrorCode.INVALID_CONFIG, self.missing_token_message)

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        POST a GraphQL document and return the parsed body (``data`` and
        ``errors`` untouched; interpreting GraphQL errors is up to the caller).
        """
        self.require_token()
        payload = {"query": query, "variables": variables or {}}
        try:
            async with _client_scope(self.http_client) as client:
                response = await client.post(self.config.graphql_url, headers=self._get_headers(), json=payload)
        except httpx.HTTPError as e:
            raise wrap_transport_error(e, "storefront_graphql") from e

        if not response.is_success:
            logger.warning(f"Storefront API returned {response.status_code} for {self.config.store_domain}")
            raise create_error(ErrorCode.NETWORK_ERROR, f"Storefront API error: {response.status_code}")

        return _parse_json(response)


class BundleBackendClient:
    """Client for the hosted bundle backend (``X-API-Key`` authenticated)."""

    def __init__(self, config: BundleConfig, http_client: Optional[httpx.AsyncClient] = None):
        if not config.uses_hosted_backend:
            raise create_error(ErrorCode.INVALID_CONFIG, "apiKey and apiUrl are required for the hosted backend")
        self.config = config
        self.base_url = (config.api_url or "").rstrip("/")
        self.http_client = http_client

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-API-Key": self.config.api_key or "",
            "X-Shop-Domain": self.config.store_domain,
        }

    def _url(self, endpoint: str, bundle_id: str) -> str:
        return self.base_url + API_ENDPOINTS[endpoint].format(bundle_id=quote(bundle_id, safe=""))

    async def _request(self, method: str, endpoint: str, bundle_id: str, json_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._url(endpoint, bundle_id)
        try:
            async with _client_scope(self.http_client) as client:
                response = await client.request(method, url, headers=self._get_headers(), json=json_data)
        except httpx.HTTPError as e:
            raise wrap_transport_error(e, f"backend_{endpoint}") from e

        body = _parse_json(response)
        if not response.is_success:
            logger.warning(f"Hosted backend {method} {endpoint} for {bundle_id} returned {response.status_code}")
            raise parse_api_error(response.status_code, body)
        return body

    async def get_bundle(self, bundle_id: str) -> Dict[str, Any]:
        body = await self._request("GET", "bundle", bundle_id)
        return self._unwrap(body, "bundle", bundle_id)

    async def post_inventory(self, bundle_id: str, selected_components: list) -> Dict[str, Any]:
        body = await self._request("POST", "inventory", bundle_id, {"selectedComponents": selected_components})
        return self._unwrap(body, "inventory", bundle_id)

    async def post_price(self, bundle_id: str, selected_components: list) -> Dict[str, Any]:
        body = await self._request("POST", "price", bundle_id, {"selectedComponents": selected_components})
        return self._unwrap(body, "price", bundle_id)

    @staticmethod
    def _unwrap(body: Dict[str, Any], key: str, bundle_id: str) -> Dict[str, Any]:
        value = body.get(key)
        if not isinstance(value, dict):
            if key == "bundle":
                raise create_error(ErrorCode.BUNDLE_NOT_FOUND, details={"bundle_id": bundle_id})
            raise create_error(ErrorCode.UNKNOWN_ERROR, f"Malformed {key} response from bundle backend")
        return value
