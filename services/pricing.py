"""
Bundle Price Calculator
Per-component line totals plus one of four discount models:

- percentage:   original x (1 - value / 100)
- fixed_amount: original - value
- fixed_price:  value, regardless of component prices
- custom:       the definition's pre-supplied bundle price, else original

The bundle price is floored at zero. When a hosted backend is configured its
price result is authoritative and this computation is skipped.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Union

import httpx

from schemas.bundle_schemas import (
    BundleDefinition,
    BundlePriceResult,
    BundlePricing,
    ComponentPrice,
    DiscountType,
    Money,
    normalize_selections,
)
from services.bundle_resolver import resolve_bundle, round_percentage, savings_percentage_of
from services.cache import PRICES, BundleCache, selection_cache_key
from services.shopify_client import BundleBackendClient
from settings import PRICE_CACHE_TTL, BundleConfig

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def apply_discount(pricing: BundlePricing, original: Decimal) -> Decimal:
    """Bundle price for ``original`` under ``pricing``, never below zero."""
    value = pricing.discount_value

    if pricing.discount_type == DiscountType.PERCENTAGE:
        bundle_price = original * (1 - (value or ZERO) / 100)
    elif pricing.discount_type == DiscountType.FIXED_AMOUNT:
        bundle_price = original - (value or ZERO)
    elif pricing.discount_type == DiscountType.FIXED_PRICE:
        bundle_price = value if value is not None else original
    else:
        bundle_price = pricing.bundle_price.decimal if pricing.bundle_price else original

    return max(ZERO, bundle_price)


def calculate_price_from_definition(
    definition: BundleDefinition,
    selected_components: Optional[Iterable[Any]] = None,
) -> BundlePriceResult:
    """
    Price a definition locally.

    Selections replace the default variants; selections naming a product or
    variant the definition does not know are skipped.
    """
    currency = definition.currency_code
    selections = normalize_selections(selected_components)

    component_prices: List[ComponentPrice] = []
    original = ZERO

    for resolved in definition.resolve_components(selections):
        component = definition.find_component(resolved.product_id)
        variant = component.find_variant(resolved.variant_id) if component else None
        if variant is None:
            logger.debug(f"Skipping unknown selection {resolved.product_id}/{resolved.variant_id}")
            continue

        line_total = variant.price.decimal * resolved.quantity
        original += line_total
        component_prices.append(ComponentPrice(
            product_id=resolved.product_id,
            variant_id=resolved.variant_id,
            quantity=resolved.quantity,
            unit_price=Money.of(variant.price.decimal, currency),
            line_total=Money.of(line_total, currency),
        ))

    bundle_price = apply_discount(definition.pricing, original)
    savings = original - bundle_price

    return BundlePriceResult(
        original_price=Money.of(original, currency),
        bundle_price=Money.of(bundle_price, currency),
        savings=Money.of(savings, currency),
        savings_percentage=round_percentage(savings_percentage_of(savings, original)),
        component_prices=tuple(component_prices),
    )


async def calculate_bundle_price(
    bundle: Union[str, BundleDefinition],
    config: BundleConfig,
    *,
    selected_components: Optional[Iterable[Any]] = None,
    skip_cache: bool = False,
    cache: Optional[BundleCache] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> BundlePriceResult:
    """Price a bundle id or definition, through the cache when one is supplied."""
    bundle_id = bundle if isinstance(bundle, str) else bundle.id
    selections = normalize_selections(selected_components)
    key = selection_cache_key(bundle_id, selections)
    use_cache = cache is not None and config.enable_cache

    if use_cache and not skip_cache:
        cached = cache.get(PRICES, key)
        if cached is not None:
            return cached

    if config.uses_hosted_backend:
        logger.info(f"Calculating price for {bundle_id} via backend")
        payload = await BundleBackendClient(config, client).post_price(
            bundle_id, [s.to_dict() for s in selections]
        )
        result = BundlePriceResult.from_dict(payload)
    else:
        definition = bundle
        if isinstance(bundle, str):
            definition = await resolve_bundle(bundle, config, cache=cache, client=client)
        result = calculate_price_from_definition(definition, selections)

    if use_cache:
        cache.set(PRICES, key, result, PRICE_CACHE_TTL)
    return result
