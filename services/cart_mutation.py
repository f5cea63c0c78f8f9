"""
Cart-Mutation Builder
Turns a bundle definition plus a selection (or the defaults) into tagged cart
lines, submits them with cartCreate / cartLinesAdd, and maps user errors back
to the component that caused them.

The mutation is not idempotent: a retry after a network fault can duplicate
bundle lines, so nothing here retries.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from schemas.bundle_schemas import (
    AddBundleInput,
    AddBundleResult,
    BundleDefinition,
    BundleType,
    FailedComponent,
    normalize_selections,
)
from services.cart_lines import BundleLineGroup, BundleLineTags, CartLineInput
from services.errors import BundleError, ErrorCode, create_error
from services.graphql_queries import (
    CART_CREATE_MUTATION,
    CART_LINES_ADD_MUTATION,
    CART_LINES_REMOVE_MUTATION,
    CART_QUERY,
)
from services.shopify_client import StorefrontClient, graphql_data, graphql_error_message
from services.validation import validate_bundle_selection
from settings import BundleConfig

logger = logging.getLogger(__name__)

CART_TOKEN_REQUIRED_MESSAGE = "storefrontAccessToken is required for cart operations"
MUTATION_ROOTS = ("cartCreate", "cartLinesAdd", "cartLinesRemove")


def build_bundle_cart_lines(definition: BundleDefinition, add_input: AddBundleInput) -> List[CartLineInput]:
    """
    One tagged line per resolved component, in resolution order.

    Line quantity is the component's per-bundle quantity times the number of
    bundles requested. Every line shares the bundle id and component count.
    """
    bundles = add_input.quantity if add_input.quantity is not None else 1
    resolved = definition.resolve_components(normalize_selections(add_input.selected_components))
    total = len(resolved)
    custom = tuple((str(k), str(v)) for k, v in (add_input.custom_attributes or {}).items())

    return [
        CartLineInput(
            merchandise_id=component.variant_id,
            quantity=component.quantity * bundles,
            tags=BundleLineTags(
                is_parent=True,
                bundle_product_id=definition.id,
                component_index=index,
                total_components=total,
                component_product_id=component.product_id,
            ),
            custom_attributes=custom,
        )
        for index, component in enumerate(resolved)
    ]


def _user_error_line_index(user_error: Dict[str, Any]) -> Optional[int]:
    # Field paths look like ["lines", "0", "merchandiseId"]
    field = user_error.get("field") or []
    if len(field) < 2:
        return None
    try:
        return int(field[1])
    except (TypeError, ValueError):
        return None


def map_user_error(user_error: Dict[str, Any], lines: Sequence[CartLineInput]) -> Optional[FailedComponent]:
    """Attribute a mutation user error to the component line it names, if any."""
    index = _user_error_line_index(user_error)
    if index is None or not 0 <= index < len(lines):
        return None
    line = lines[index]
    product_id = line.tags.component_product_id
    if not product_id:
        return None
    return FailedComponent(
        product_id=product_id,
        variant_id=line.merchandise_id,
        reason=user_error.get("message") or "",
    )


async def _execute_cart_mutation(
    config: BundleConfig,
    mutation: str,
    variables: Dict[str, Any],
    http_client: Optional[httpx.AsyncClient],
) -> Dict[str, Any]:
    client = StorefrontClient(config, http_client, missing_token_message=CART_TOKEN_REQUIRED_MESSAGE)
    body = await client.execute(mutation, variables)

    message = graphql_error_message(body)
    if message:
        raise create_error(ErrorCode.CART_ERROR, message)

    data = graphql_data(body)
    for root in MUTATION_ROOTS:
        if isinstance(data.get(root), dict):
            return data[root]
    return {}


def _user_errors(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [e for e in (payload.get("userErrors") or []) if isinstance(e, dict)]


async def add_bundle_to_cart(
    definition: BundleDefinition,
    config: BundleConfig,
    add_input: AddBundleInput,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> AddBundleResult:
    """
    Add one or more bundles to a cart (a new cart when ``cart_id`` is absent).

    Mix-and-match selections are validated first; an invalid selection returns
    a failed result without touching the network. Faults raised during the
    mutation are reported as ``success=False`` with their message.
    """
    if definition.bundle_type == BundleType.MIX_AND_MATCH:
        validation = validate_bundle_selection(
            definition, normalize_selections(add_input.selected_components or [])
        )
        if not validation.valid:
            return AddBundleResult(success=False, error=validation.error or "Invalid bundle selection")

    lines = build_bundle_cart_lines(definition, add_input)
    graphql_lines = [line.to_graphql() for line in lines]

    try:
        if add_input.cart_id:
            logger.info(f"Adding bundle {definition.id} ({len(lines)} lines) to cart {add_input.cart_id}")
            payload = await _execute_cart_mutation(
                config, CART_LINES_ADD_MUTATION, {"cartId": add_input.cart_id, "lines": graphql_lines}, client
            )
        else:
            logger.info(f"Creating cart with bundle {definition.id} ({len(lines)} lines)")
            payload = await _execute_cart_mutation(
                config, CART_CREATE_MUTATION, {"input": {"lines": graphql_lines}}, client
            )
    except BundleError as e:
        logger.warning(f"Cart mutation for bundle {definition.id} failed: {e.code.value}: {e.message}")
        return AddBundleResult(success=False, error=e.message)

    user_errors = _user_errors(payload)
    if user_errors:
        first = user_errors[0]
        failed = map_user_error(first, lines)
        logger.warning(
            f"Cart rejected bundle {definition.id}: {first.get('message')} "
            f"(component={failed.product_id if failed else None})"
        )
        return AddBundleResult(success=False, error=first.get("message"), failed_component=failed)

    return AddBundleResult(success=True, cart=payload.get("cart"))


async def remove_bundle_from_cart(
    cart_id: str,
    group: BundleLineGroup,
    config: BundleConfig,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> AddBundleResult:
    """Remove every line of a bundle group (as read back from the cart)."""
    line_ids = group.line_ids
    if not line_ids:
        return AddBundleResult(success=False, error=f"No cart lines found for bundle {group.bundle_product_id}")

    try:
        logger.info(f"Removing bundle {group.bundle_product_id} ({len(line_ids)} lines) from cart {cart_id}")
        payload = await _execute_cart_mutation(
            config, CART_LINES_REMOVE_MUTATION, {"cartId": cart_id, "lineIds": line_ids}, client
        )
    except BundleError as e:
        logger.warning(f"Removing bundle {group.bundle_product_id} failed: {e.code.value}: {e.message}")
        return AddBundleResult(success=False, error=e.message)

    user_errors = _user_errors(payload)
    if user_errors:
        return AddBundleResult(success=False, error=user_errors[0].get("message"))
    return AddBundleResult(success=True, cart=payload.get("cart"))


async def fetch_cart(
    cart_id: str,
    config: BundleConfig,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[Dict[str, Any]]:
    """
    Read a cart back from the Storefront API, or None when it no longer exists.

    Lines come back as ``{"nodes": [...]}``; feed them to
    ``split_cart_lines`` to find the bundle groups to remove.
    """
    storefront = StorefrontClient(config, client, missing_token_message=CART_TOKEN_REQUIRED_MESSAGE)
    body = await storefront.execute(CART_QUERY, {"id": cart_id})

    message = graphql_error_message(body)
    if message:
        raise create_error(ErrorCode.CART_ERROR, message)

    cart = graphql_data(body).get("cart")
    if not isinstance(cart, dict):
        logger.info(f"Cart {cart_id} not found")
        return None
    return cart
