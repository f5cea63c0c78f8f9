"""
Inventory Aggregator
Evaluates per-component stock against the low-stock threshold and reduces it
to one bundle-level verdict: overall status, how many bundles can be added,
and which component limits that number.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import httpx

from schemas.bundle_schemas import (
    AvailabilityStatus,
    BundleDefinition,
    BundleInventory,
    BundleSelection,
    ComponentInventory,
    ResolvedComponent,
    normalize_selections,
)
from services.bundle_resolver import resolve_bundle
from services.cache import INVENTORY, BundleCache, selection_cache_key
from services.errors import ErrorCode, create_error
from services.graphql_queries import VARIANTS_INVENTORY_QUERY
from services.shopify_client import (
    BundleBackendClient,
    StorefrontClient,
    graphql_data,
    graphql_error_message,
)
from settings import INVENTORY_CACHE_TTL, LOW_STOCK_THRESHOLD, UNBOUNDED_MAX_QUANTITY, BundleConfig

logger = logging.getLogger(__name__)


def get_availability_status(available_for_sale: bool, quantity_available: Optional[int]) -> AvailabilityStatus:
    """
    Classify one component:
    not for sale -> out_of_stock; unknown quantity -> available;
    0 -> out_of_stock; <= threshold -> limited; otherwise available.
    """
    if not available_for_sale:
        return AvailabilityStatus.OUT_OF_STOCK
    if quantity_available is None:
        return AvailabilityStatus.AVAILABLE
    if quantity_available <= 0:
        return AvailabilityStatus.OUT_OF_STOCK
    if quantity_available <= LOW_STOCK_THRESHOLD:
        return AvailabilityStatus.LIMITED
    return AvailabilityStatus.AVAILABLE


def max_addable_for(quantity_available: Optional[int], required_quantity: int) -> Optional[int]:
    if quantity_available is None or required_quantity <= 0:
        return None
    return max(quantity_available, 0) // required_quantity


def aggregate_inventory(
    checks: Sequence[ResolvedComponent],
    variant_nodes: Iterable[Optional[Dict[str, Any]]],
) -> BundleInventory:
    """
    Reduce per-variant stock nodes to a BundleInventory.

    Variants absent from ``variant_nodes`` count as not available for sale.
    The limiting component is the first one reaching the smallest maxAddable,
    and is reported only when the bundle is limited or out of stock.
    """
    nodes_by_id = {node["id"]: node for node in variant_nodes if node and node.get("id")}

    components: List[ComponentInventory] = []
    limiting: Optional[ComponentInventory] = None
    min_addable: Optional[int] = None

    for check in checks:
        node = nodes_by_id.get(check.variant_id) or {}
        available_for_sale = bool(node.get("availableForSale", False))
        quantity_available = node.get("quantityAvailable")
        max_addable = max_addable_for(quantity_available, check.quantity)

        component = ComponentInventory(
            product_id=check.product_id,
            variant_id=check.variant_id,
            status=get_availability_status(available_for_sale, quantity_available),
            quantity_available=quantity_available,
            max_addable=max_addable,
        )
        components.append(component)

        if max_addable is not None and (min_addable is None or max_addable < min_addable):
            min_addable = max_addable
            limiting = component

    has_out_of_stock = any(c.status == AvailabilityStatus.OUT_OF_STOCK for c in components)
    has_limited = any(c.status == AvailabilityStatus.LIMITED for c in components)

    if has_out_of_stock:
        status = AvailabilityStatus.OUT_OF_STOCK
    elif has_limited:
        status = AvailabilityStatus.LIMITED
    else:
        status = AvailabilityStatus.AVAILABLE

    return BundleInventory(
        available=not has_out_of_stock,
        status=status,
        max_quantity=min_addable if min_addable is not None else UNBOUNDED_MAX_QUANTITY,
        components=tuple(components),
        limiting_component=limiting if (has_out_of_stock or has_limited) else None,
        cached_at=datetime.now(timezone.utc).isoformat(),
    )


async def _check_from_storefront(
    definition: BundleDefinition,
    config: BundleConfig,
    selections: Sequence[BundleSelection],
    http_client: Optional[httpx.AsyncClient],
) -> BundleInventory:
    checks = definition.resolve_components(selections)
    client = StorefrontClient(config, http_client)
    body = await client.execute(VARIANTS_INVENTORY_QUERY, {"ids": [c.variant_id for c in checks]})

    message = graphql_error_message(body)
    if message:
        raise create_error(ErrorCode.UNKNOWN_ERROR, message)

    nodes = graphql_data(body).get("nodes") or []
    return aggregate_inventory(checks, nodes)


async def check_bundle_inventory(
    bundle: Union[str, BundleDefinition],
    config: BundleConfig,
    *,
    selected_components: Optional[Iterable[Any]] = None,
    skip_cache: bool = False,
    cache: Optional[BundleCache] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> BundleInventory:
    """
    Check inventory for a bundle id or an already-resolved definition.

    Selections, when given, replace the definition's default variants. With a
    hosted backend the verdict comes from the backend as-is.
    """
    bundle_id = bundle if isinstance(bundle, str) else bundle.id
    selections = normalize_selections(selected_components)
    key = selection_cache_key(bundle_id, selections)
    use_cache = cache is not None and config.enable_cache

    if use_cache and not skip_cache:
        cached = cache.get(INVENTORY, key)
        if cached is not None:
            return cached

    if config.uses_hosted_backend:
        logger.info(f"Checking inventory for {bundle_id} via backend")
        payload = await BundleBackendClient(config, client).post_inventory(
            bundle_id, [s.to_dict() for s in selections]
        )
        inventory = BundleInventory.from_dict(payload)
    else:
        definition = bundle
        if isinstance(bundle, str):
            definition = await resolve_bundle(bundle, config, cache=cache, client=client)
        logger.info(f"Checking inventory for {bundle_id} via storefront ({len(selections)} selections)")
        inventory = await _check_from_storefront(definition, config, selections, client)

    if inventory.status != AvailabilityStatus.AVAILABLE:
        logger.info(
            f"Bundle {bundle_id} is {inventory.status.value}, max quantity {inventory.max_quantity}"
        )

    if use_cache:
        cache.set(INVENTORY, key, inventory, INVENTORY_CACHE_TTL)
    return inventory


async def is_bundle_available(
    bundle: Union[str, BundleDefinition],
    config: BundleConfig,
    selected_components: Optional[Iterable[Any]] = None,
    *,
    cache: Optional[BundleCache] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    inventory = await check_bundle_inventory(
        bundle, config, selected_components=selected_components, cache=cache, client=client
    )
    return inventory.available
