"""
Bundle Resolver
Maps a bundle identifier to a normalized BundleDefinition, either by delegating
to the hosted backend (when an API key and URL are configured) or by querying
the Storefront API and normalizing the raw product payload here.

Storefront normalization always yields a fixed bundle: telling a
customer-selectable bundle apart needs metadata the storefront schema does not
expose, so mix-and-match definitions only come from the hosted backend.
"""
from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import httpx

from schemas.bundle_schemas import (
    BundleComponent,
    BundleComponentVariant,
    BundleDefinition,
    BundlePricing,
    BundleResolution,
    BundleType,
    DiscountType,
    FixedBundle,
    MixAndMatchBundle,
    Money,
    NotABundle,
    ProductImage,
)
from services.cache import BundleCache
from services.errors import BundleError, ErrorCode, create_error
from services.graphql_queries import BUNDLE_PRODUCT_BY_HANDLE_QUERY, BUNDLE_PRODUCT_QUERY
from services.money import to_decimal
from services.shopify_client import (
    BundleBackendClient,
    StorefrontClient,
    graphql_data,
    graphql_error_message,
)
from services.validation import is_valid_gid
from settings import BundleConfig

logger = logging.getLogger(__name__)

NOT_A_BUNDLE_MESSAGE = "Product is not a bundle"


def savings_percentage_of(savings: Decimal, original: Decimal) -> Decimal:
    """savings / original * 100, or 0 when there is no original price."""
    if original <= 0:
        return Decimal("0")
    return savings / original * 100


def round_percentage(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# =============================================================================
# NORMALIZATION
# =============================================================================

def _find_bundle_variant(product: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """First variant whose bundleComponents list is non-empty."""
    for variant in (product.get("variants") or {}).get("nodes") or []:
        if ((variant.get("bundleComponents") or {}).get("nodes")):
            return variant
    return None


def _component_from_node(node: Dict[str, Any]) -> BundleComponent:
    product = node.get("product") or {}
    variant = BundleComponentVariant.from_dict(node.get("variant") or {})
    return BundleComponent(
        product_id=product.get("id") or "",
        product_title=product.get("title") or "",
        product_handle=product.get("handle") or "",
        product_image=ProductImage.from_dict(product.get("featuredImage")),
        variants=(variant,),
        default_variant_id=variant.id,
        quantity=int(node.get("quantity") or 1),
        required=True,
    )


def parse_storefront_product(product: Dict[str, Any]) -> Optional[BundleDefinition]:
    """
    Normalize a raw Storefront product into a fixed BundleDefinition.

    Returns None when no variant carries bundle components. Each listed
    sub-item becomes a single-variant component snapshot; pricing is derived
    from the bundle variant's own price:

        original   = sum(unit price x quantity)
        savings    = original - bundle variant price
        percentage = savings / original * 100 (0 when original is 0)

    The discount type is inferred: a whole-number percentage is classified as
    ``percentage`` (value = the percentage), anything else as ``fixed_amount``
    (value = the savings amount).
    """
    bundle_variant = _find_bundle_variant(product)
    if bundle_variant is None:
        return None

    components = tuple(
        _component_from_node(node) for node in bundle_variant["bundleComponents"]["nodes"]
    )

    original = sum(
        (c.variants[0].price.decimal * c.quantity for c in components),
        Decimal("0"),
    )
    bundle_price = Money.from_dict(bundle_variant.get("price")) or Money("0.00")
    currency_code = bundle_price.currency_code
    savings = original - bundle_price.decimal
    percentage = savings_percentage_of(savings, original)

    if percentage == percentage.to_integral_value():
        discount_type, discount_value = DiscountType.PERCENTAGE, percentage
    else:
        discount_type, discount_value = DiscountType.FIXED_AMOUNT, savings

    pricing = BundlePricing(
        discount_type=discount_type,
        discount_value=discount_value,
        currency_code=currency_code,
        original_price=Money.of(original, currency_code),
        bundle_price=bundle_price,
        savings=Money.of(savings, currency_code),
        savings_percentage=round_percentage(percentage),
    )

    return BundleDefinition(
        id=product.get("id") or "",
        title=product.get("title") or "",
        handle=product.get("handle") or "",
        description=product.get("description"),
        bundle_type=BundleType.FIXED,
        components=components,
        pricing=pricing,
        featured_image=ProductImage.from_dict(product.get("featuredImage")),
        available_for_sale=bool(product.get("availableForSale", False)),
        variant_id=bundle_variant.get("id"),
    )


def classify_product(product: Dict[str, Any]) -> BundleResolution:
    """Decide once, at the boundary, what a raw storefront product is."""
    definition = parse_storefront_product(product)
    if definition is None:
        return NotABundle(product_id=product.get("id") or "")
    return FixedBundle(definition)


def classify_definition(definition: BundleDefinition) -> BundleResolution:
    if definition.bundle_type == BundleType.MIX_AND_MATCH:
        return MixAndMatchBundle(definition)
    return FixedBundle(definition)


# =============================================================================
# STRATEGIES
# =============================================================================

async def _resolve_from_backend(
    bundle_id: str, config: BundleConfig, http_client: Optional[httpx.AsyncClient]
) -> BundleDefinition:
    payload = await BundleBackendClient(config, http_client).get_bundle(bundle_id)
    return BundleDefinition.from_dict(payload)


async def _resolve_from_storefront(
    bundle_id: str, config: BundleConfig, http_client: Optional[httpx.AsyncClient]
) -> BundleDefinition:
    client = StorefrontClient(config, http_client)
    if is_valid_gid(bundle_id):
        query, variables = BUNDLE_PRODUCT_QUERY, {"id": bundle_id}
    else:
        query, variables = BUNDLE_PRODUCT_BY_HANDLE_QUERY, {"handle": bundle_id}

    body = await client.execute(query, variables)
    message = graphql_error_message(body)
    if message:
        raise create_error(ErrorCode.UNKNOWN_ERROR, message)

    product = graphql_data(body).get("product")
    if not product:
        raise create_error(ErrorCode.BUNDLE_NOT_FOUND, details={"bundle_id": bundle_id})

    resolution = classify_product(product)
    if isinstance(resolution, NotABundle):
        raise create_error(ErrorCode.BUNDLE_NOT_FOUND, NOT_A_BUNDLE_MESSAGE, {"bundle_id": bundle_id})
    return resolution.definition


async def resolve_bundle(
    bundle_id: str,
    config: BundleConfig,
    *,
    skip_cache: bool = False,
    cache: Optional[BundleCache] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> BundleDefinition:
    """
    Resolve a bundle by product GID or handle.

    Raises:
        BundleError: BUNDLE_NOT_FOUND, INVALID_CONFIG, NETWORK_ERROR,
            RATE_LIMITED or UNKNOWN_ERROR
    """
    use_cache = cache is not None and config.enable_cache
    if use_cache and not skip_cache:
        cached = cache.get_definition(bundle_id)
        if cached is not None:
            return cached

    strategy = "backend" if config.uses_hosted_backend else "storefront"
    logger.info(f"Resolving bundle {bundle_id} via {strategy} for {config.store_domain}")

    if config.uses_hosted_backend:
        definition = await _resolve_from_backend(bundle_id, config, client)
    else:
        definition = await _resolve_from_storefront(bundle_id, config, client)

    if use_cache:
        cache.set_definition(bundle_id, definition, config.definition_ttl)

    logger.info(
        f"Resolved bundle {bundle_id}: {definition.bundle_type.value}, "
        f"{len(definition.components)} components"
    )
    return definition


async def is_bundle(
    product_id: str,
    config: BundleConfig,
    *,
    cache: Optional[BundleCache] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """True if ``product_id`` resolves to a bundle; any bundle fault reads as False."""
    try:
        await resolve_bundle(product_id, config, cache=cache, client=client)
    except BundleError as e:
        logger.debug(f"{product_id} is not a resolvable bundle: {e.code.value}")
        return False
    return True
