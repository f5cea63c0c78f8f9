import json

import httpx
import pytest
import respx

from conftest import BACKEND_URL, FIXED_BUNDLE, GRAPHQL_URL
from schemas.bundle_schemas import AvailabilityStatus, BundleSelection, ResolvedComponent
from services.cache import BundleCache
from services.inventory import (
    aggregate_inventory,
    check_bundle_inventory,
    get_availability_status,
    is_bundle_available,
    max_addable_for,
)
from settings import UNBOUNDED_MAX_QUANTITY

A = ResolvedComponent("gid://shopify/Product/1", "gid://shopify/ProductVariant/11", 2)
B = ResolvedComponent("gid://shopify/Product/2", "gid://shopify/ProductVariant/21", 1)


def _node(variant_id, available=True, quantity=None):
    return {"id": variant_id, "availableForSale": available, "quantityAvailable": quantity}


@pytest.mark.parametrize("available,quantity,expected", [
    (False, 100, AvailabilityStatus.OUT_OF_STOCK),
    (True, None, AvailabilityStatus.AVAILABLE),
    (True, 0, AvailabilityStatus.OUT_OF_STOCK),
    (True, 5, AvailabilityStatus.LIMITED),
    (True, 1, AvailabilityStatus.LIMITED),
    (True, 6, AvailabilityStatus.AVAILABLE),
])
def test_get_availability_status(available, quantity, expected):
    assert get_availability_status(available, quantity) == expected


def test_max_addable_for():
    assert max_addable_for(9, 2) == 4
    assert max_addable_for(-3, 2) == 0
    assert max_addable_for(None, 2) is None
    assert max_addable_for(10, 0) is None


class TestAggregateInventory:
    def test_limited_component_limits_bundle(self):
        inventory = aggregate_inventory([A, B], [_node(A.variant_id, quantity=4), _node(B.variant_id, quantity=50)])

        assert inventory.available is True
        assert inventory.status == AvailabilityStatus.LIMITED
        assert inventory.max_quantity == 2
        assert inventory.limiting_component.product_id == A.product_id
        assert inventory.components[0].max_addable == 2
        assert inventory.components[1].max_addable == 50

    def test_all_available_reports_no_limiting_component(self):
        inventory = aggregate_inventory([A, B], [_node(A.variant_id, quantity=40), _node(B.variant_id, quantity=10)])

        assert inventory.status == AvailabilityStatus.AVAILABLE
        assert inventory.max_quantity == 10
        assert inventory.limiting_component is None

    def test_out_of_stock_wins(self):
        inventory = aggregate_inventory([A, B], [_node(A.variant_id, quantity=3), _node(B.variant_id, quantity=0)])

        assert inventory.available is False
        assert inventory.status == AvailabilityStatus.OUT_OF_STOCK
        assert inventory.max_quantity == 0
        assert inventory.limiting_component.variant_id == B.variant_id

    def test_unknown_quantities_use_sentinel(self):
        inventory = aggregate_inventory([A, B], [_node(A.variant_id), _node(B.variant_id)])

        assert inventory.available is True
        assert inventory.max_quantity == UNBOUNDED_MAX_QUANTITY
        assert inventory.limiting_component is None

    def test_missing_variant_is_out_of_stock(self):
        inventory = aggregate_inventory([A, B], [_node(A.variant_id, quantity=30), None])

        assert inventory.available is False
        assert inventory.components[1].status == AvailabilityStatus.OUT_OF_STOCK
        assert inventory.components[1].max_addable is None
        # Only A has a numeric bound
        assert inventory.limiting_component.variant_id == A.variant_id

    def test_first_minimum_is_limiting(self):
        inventory = aggregate_inventory([A, B], [_node(A.variant_id, quantity=4), _node(B.variant_id, quantity=2)])

        assert inventory.max_quantity == 2
        assert inventory.limiting_component.variant_id == A.variant_id


class TestCheckBundleInventory:
    @pytest.mark.asyncio
    async def test_storefront_path_queries_default_variants(self, fixed_definition, storefront_config):
        nodes = [_node(A.variant_id, quantity=4), _node(B.variant_id, quantity=50)]
        with respx.mock:
            route = respx.post(GRAPHQL_URL).mock(return_value=httpx.Response(200, json={"data": {"nodes": nodes}}))

            inventory = await check_bundle_inventory(fixed_definition, storefront_config)

        sent = json.loads(route.calls.last.request.content)
        assert sent["variables"]["ids"] == [A.variant_id, B.variant_id]
        assert inventory.status == AvailabilityStatus.LIMITED
        assert inventory.max_quantity == 2

    @pytest.mark.asyncio
    async def test_selections_replace_defaults_and_are_cached(self, mix_definition, storefront_config):
        cache = BundleCache()
        selections = [
            BundleSelection("gid://shopify/Product/3", "gid://shopify/ProductVariant/32", 2),
            BundleSelection("gid://shopify/Product/4", "gid://shopify/ProductVariant/41", 1),
        ]
        nodes = [_node("gid://shopify/ProductVariant/32", quantity=9), _node("gid://shopify/ProductVariant/41", quantity=9)]
        with respx.mock:
            route = respx.post(GRAPHQL_URL).mock(return_value=httpx.Response(200, json={"data": {"nodes": nodes}}))

            first = await check_bundle_inventory(
                mix_definition, storefront_config, selected_components=selections, cache=cache
            )
            second = await check_bundle_inventory(
                mix_definition, storefront_config, selected_components=list(reversed(selections)), cache=cache
            )

        assert route.call_count == 1
        assert first is second
        assert first.max_quantity == 4

    @pytest.mark.asyncio
    async def test_resolves_definition_from_id(self, storefront_config):
        product = {
            "id": "gid://shopify/Product/100",
            "title": "Starter Kit",
            "handle": "starter-kit",
            "availableForSale": True,
            "variants": {"nodes": [{
                "id": "gid://shopify/ProductVariant/1000",
                "title": "Default Title",
                "price": {"amount": "30.00", "currencyCode": "USD"},
                "availableForSale": True,
                "bundleComponents": {"nodes": [{
                    "product": {"id": A.product_id, "title": "Shampoo", "handle": "shampoo"},
                    "variant": {"id": A.variant_id, "title": "Default", "availableForSale": True,
                                "price": {"amount": "10.00", "currencyCode": "USD"}},
                    "quantity": 2,
                }]},
            }]},
        }
        responses = [
            httpx.Response(200, json={"data": {"product": product}}),
            httpx.Response(200, json={"data": {"nodes": [_node(A.variant_id, available=False)]}}),
        ]
        with respx.mock:
            respx.post(GRAPHQL_URL).mock(side_effect=responses)

            available = await is_bundle_available(FIXED_BUNDLE["id"], storefront_config)

        assert available is False

    @pytest.mark.asyncio
    async def test_backend_path(self, backend_config):
        payload = {
            "available": True,
            "status": "preorder",
            "maxQuantity": 12,
            "components": [],
        }
        selections = [BundleSelection("gid://shopify/Product/3", "gid://shopify/ProductVariant/31", 2)]
        with respx.mock:
            route = respx.post(f"{BACKEND_URL}/api/v1/bundle/build-your-box/inventory").mock(
                return_value=httpx.Response(200, json={"inventory": payload})
            )

            inventory = await check_bundle_inventory(
                "build-your-box", backend_config, selected_components=selections
            )

        assert inventory.status == AvailabilityStatus.PREORDER
        assert inventory.max_quantity == 12
        assert json.loads(route.calls.last.request.content) == {
            "selectedComponents": [
                {"productId": "gid://shopify/Product/3", "variantId": "gid://shopify/ProductVariant/31", "quantity": 2}
            ]
        }
