"""
Bundle error taxonomy
Every fault raised by the bundle services is a BundleError tagged with an ErrorCode
and carrying a human-readable message (the default for its code unless overridden).
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    BUNDLE_NOT_FOUND = "BUNDLE_NOT_FOUND"
    COMPONENT_OUT_OF_STOCK = "COMPONENT_OUT_OF_STOCK"
    INVALID_SELECTION = "INVALID_SELECTION"
    SELECTION_INCOMPLETE = "SELECTION_INCOMPLETE"
    CART_ERROR = "CART_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_CONFIG = "INVALID_CONFIG"
    PROVIDER_MISSING = "PROVIDER_MISSING"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


DEFAULT_ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.BUNDLE_NOT_FOUND: "Bundle not found.",
    ErrorCode.COMPONENT_OUT_OF_STOCK: "One or more bundle components are out of stock.",
    ErrorCode.INVALID_SELECTION: "Invalid component selection. Please select the required items.",
    ErrorCode.SELECTION_INCOMPLETE: "Please complete your bundle selection.",
    ErrorCode.CART_ERROR: "Failed to add bundle to cart. Please try again.",
    ErrorCode.NETWORK_ERROR: "Network error. Please check your connection.",
    ErrorCode.RATE_LIMITED: "Too many requests. Please wait a moment.",
    ErrorCode.INVALID_CONFIG: "Invalid bundle configuration.",
    ErrorCode.PROVIDER_MISSING: "Bundle configuration must be provided before use.",
    ErrorCode.UNKNOWN_ERROR: "An unexpected error occurred.",
}

# Faults the caller may retry without changing input
RECOVERABLE_CODES = frozenset({
    ErrorCode.NETWORK_ERROR,
    ErrorCode.RATE_LIMITED,
    ErrorCode.CART_ERROR,
})


class BundleError(Exception):
    """Tagged bundle fault with optional component/variant attribution."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = ErrorCode(code)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.component_id: Optional[str] = self.details.get("component_id")
        self.variant_id: Optional[str] = self.details.get("variant_id")

    @property
    def recoverable(self) -> bool:
        return self.code in RECOVERABLE_CODES

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code.value, "error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"BundleError(code={self.code.value!r}, message={self.message!r})"


def create_error(
    code: ErrorCode,
    message: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> BundleError:
    """Create a BundleError, falling back to the default message for its code."""
    code = ErrorCode(code)
    return BundleError(code, message or DEFAULT_ERROR_MESSAGES[code], details)


def _normalize_details(details: Any) -> Dict[str, Any]:
    if not isinstance(details, Mapping):
        return {}
    normalized = dict(details)
    # Hosted backend reports camelCase attribution keys
    if "componentId" in normalized and "component_id" not in normalized:
        normalized["component_id"] = normalized.pop("componentId")
    if "variantId" in normalized and "variant_id" not in normalized:
        normalized["variant_id"] = normalized.pop("variantId")
    return normalized


def parse_api_error(status: int, body: Optional[Mapping[str, Any]] = None) -> BundleError:
    """
    Map a non-2xx hosted backend response to a BundleError.
    Status code wins (404, 429), then the body's ``code`` field, else UNKNOWN_ERROR.
    """
    body = body or {}
    message = body.get("error") if isinstance(body.get("error"), str) else None

    if status == 404:
        return create_error(ErrorCode.BUNDLE_NOT_FOUND, message)
    if status == 429:
        return create_error(ErrorCode.RATE_LIMITED, message)

    body_code = body.get("code")
    if body_code in (ErrorCode.COMPONENT_OUT_OF_STOCK.value, ErrorCode.INVALID_SELECTION.value):
        return create_error(ErrorCode(body_code), message, _normalize_details(body.get("details")))

    return create_error(ErrorCode.UNKNOWN_ERROR, message, {"status": status})


def wrap_transport_error(exc: httpx.HTTPError, operation: str) -> BundleError:
    """Wrap an httpx transport fault as a recoverable NETWORK_ERROR."""
    logger.warning(f"{operation}: transport failure {type(exc).__name__}: {exc}")
    return create_error(ErrorCode.NETWORK_ERROR, details={"operation": operation, "reason": str(exc)})


def get_user_message(error: BaseException) -> str:
    """Resolve any fault to the single string a presentation layer should show."""
    if isinstance(error, BundleError):
        return error.message
    if isinstance(error, httpx.HTTPError):
        return DEFAULT_ERROR_MESSAGES[ErrorCode.NETWORK_ERROR]
    text = str(error)
    if "network" in text.lower() or "connection" in text.lower():
        return DEFAULT_ERROR_MESSAGES[ErrorCode.NETWORK_ERROR]
    return text or DEFAULT_ERROR_MESSAGES[ErrorCode.UNKNOWN_ERROR]


def is_error_code(error: BaseException, code: ErrorCode) -> bool:
    return isinstance(error, BundleError) and error.code == ErrorCode(code)


def is_recoverable_error(error: BaseException) -> bool:
    return isinstance(error, BundleError) and error.recoverable
