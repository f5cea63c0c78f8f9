"""
BundleService
Facade owning one configuration, one cache and (optionally) one shared HTTP
client. Reads are retried on transient faults; cart mutations are not.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Union

import httpx

from schemas.bundle_schemas import (
    AddBundleInput,
    AddBundleResult,
    BundleDefinition,
    BundleInventory,
    BundlePriceResult,
)
from services.bundle_resolver import is_bundle, resolve_bundle
from services.cache import BundleCache
from services.cart_lines import BundleLineGroup
from services.cart_mutation import add_bundle_to_cart, fetch_cart, remove_bundle_from_cart
from services.inventory import check_bundle_inventory
from services.pricing import calculate_bundle_price
from settings import BundleConfig
from utils import retry_async

logger = logging.getLogger(__name__)


class BundleService:
    """Entry point for applications working with a single store configuration."""

    def __init__(
        self,
        config: BundleConfig,
        cache: Optional[BundleCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.cache = cache if cache is not None else BundleCache()
        self.http_client = http_client

    @retry_async(max_retries=2)
    async def resolve(self, bundle_id: str, skip_cache: bool = False) -> BundleDefinition:
        return await resolve_bundle(
            bundle_id, self.config, skip_cache=skip_cache, cache=self.cache, client=self.http_client
        )

    @retry_async(max_retries=2)
    async def check_inventory(
        self,
        bundle: Union[str, BundleDefinition],
        selected_components: Optional[Iterable[Any]] = None,
        skip_cache: bool = False,
    ) -> BundleInventory:
        return await check_bundle_inventory(
            bundle,
            self.config,
            selected_components=selected_components,
            skip_cache=skip_cache,
            cache=self.cache,
            client=self.http_client,
        )

    @retry_async(max_retries=2)
    async def calculate_price(
        self,
        bundle: Union[str, BundleDefinition],
        selected_components: Optional[Iterable[Any]] = None,
        skip_cache: bool = False,
    ) -> BundlePriceResult:
        return await calculate_bundle_price(
            bundle,
            self.config,
            selected_components=selected_components,
            skip_cache=skip_cache,
            cache=self.cache,
            client=self.http_client,
        )

    async def is_available(
        self,
        bundle: Union[str, BundleDefinition],
        selected_components: Optional[Iterable[Any]] = None,
    ) -> bool:
        inventory = await self.check_inventory(bundle, selected_components)
        return inventory.available

    async def is_bundle(self, product_id: str) -> bool:
        return await is_bundle(product_id, self.config, cache=self.cache, client=self.http_client)

    async def add_to_cart(
        self,
        bundle: Union[str, BundleDefinition],
        add_input: Optional[AddBundleInput] = None,
    ) -> AddBundleResult:
        definition = bundle
        if isinstance(bundle, str):
            definition = await self.resolve(bundle)
        result = await add_bundle_to_cart(
            definition, self.config, add_input or AddBundleInput(), client=self.http_client
        )
        if result.success:
            # Stock moved; stale verdicts would overstate availability
            self.cache.clear_bundle(definition.id, keep_definition=True)
        return result

    async def remove_from_cart(self, cart_id: str, group: BundleLineGroup) -> AddBundleResult:
        return await remove_bundle_from_cart(cart_id, group, self.config, client=self.http_client)

    async def get_cart(self, cart_id: str) -> Optional[Dict[str, Any]]:
        return await fetch_cart(cart_id, self.config, client=self.http_client)

    def clear_cache(self, bundle_id: Optional[str] = None) -> None:
        if bundle_id is None:
            self.cache.clear()
        else:
            self.cache.clear_bundle(bundle_id)
        logger.info(f"Cleared bundle cache ({bundle_id or 'all'})")
