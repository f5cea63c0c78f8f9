from decimal import Decimal

import pytest

from conftest import FIXED_BUNDLE, MIX_AND_MATCH_BUNDLE
from schemas.bundle_schemas import (
    AvailabilityStatus,
    BundleComponent,
    BundleDefinition,
    BundleInventory,
    BundlePricing,
    BundleSelection,
    BundleType,
    DiscountType,
    ResolvedComponent,
    normalize_selections,
)


def test_definition_from_dict(fixed_definition):
    assert fixed_definition.bundle_type == BundleType.FIXED
    assert fixed_definition.pricing.discount_type == DiscountType.FIXED_AMOUNT
    assert fixed_definition.pricing.discount_value == Decimal("5")
    assert fixed_definition.currency_code == "USD"
    assert fixed_definition.components[0].variants[0].price.amount == "10.00"
    assert fixed_definition.is_mix_and_match is False


def test_definition_to_dict_keeps_wire_keys(fixed_definition):
    data = fixed_definition.to_dict()

    assert data["bundleType"] == "fixed"
    assert data["components"][1]["productId"] == "gid://shopify/Product/2"
    assert data["pricing"]["discountValue"] == 5.0
    assert BundleDefinition.from_dict(data) == fixed_definition


def test_unknown_enum_values_fall_back():
    data = dict(FIXED_BUNDLE, bundleType="subscription", pricing={"discountType": "bogo"})
    definition = BundleDefinition.from_dict(data)

    assert definition.bundle_type == BundleType.FIXED
    assert definition.pricing.discount_type == DiscountType.CUSTOM
    assert definition.pricing.discount_value is None


def test_availability_status_values():
    assert AvailabilityStatus("preorder") == AvailabilityStatus.PREORDER


def test_inventory_from_dict_tolerates_null_max_quantity():
    inventory = BundleInventory.from_dict({"available": False, "status": "out_of_stock", "maxQuantity": None})

    assert inventory.max_quantity == 0
    assert inventory.status == AvailabilityStatus.OUT_OF_STOCK


def test_selection_from_dict_null_quantity_defaults_to_one():
    assert BundleSelection.from_dict({"productId": "p1", "variantId": "v1", "quantity": None}).quantity == 1


class TestDefaultVariant:
    def test_declared_default(self):
        component = BundleComponent.from_dict(
            dict(MIX_AND_MATCH_BUNDLE["components"][0], defaultVariantId="gid://shopify/ProductVariant/32")
        )
        assert component.default_variant().id == "gid://shopify/ProductVariant/32"

    def test_falls_back_to_first_variant(self, mix_definition):
        assert mix_definition.components[0].default_variant().id == "gid://shopify/ProductVariant/31"

    def test_unknown_declared_default_uses_first(self):
        component = BundleComponent.from_dict({
            "productId": "p1",
            "variants": [{"id": "v1", "title": "A", "price": {"amount": "1.00", "currencyCode": "USD"}}],
            "defaultVariantId": "v9",
        })
        assert component.default_variant().id == "v1"

    def test_no_variants(self):
        assert BundleComponent.from_dict({"productId": "p1"}).default_variant() is None


class TestResolveComponents:
    def test_defaults(self, fixed_definition):
        assert fixed_definition.resolve_components() == [
            ResolvedComponent("gid://shopify/Product/1", "gid://shopify/ProductVariant/11", 2),
            ResolvedComponent("gid://shopify/Product/2", "gid://shopify/ProductVariant/21", 1),
        ]

    def test_selections_replace_defaults(self, mix_definition):
        selections = [BundleSelection("gid://shopify/Product/3", "gid://shopify/ProductVariant/32", 2)]
        assert mix_definition.resolve_components(selections) == [
            ResolvedComponent("gid://shopify/Product/3", "gid://shopify/ProductVariant/32", 2),
        ]


def test_with_pricing_returns_copy(fixed_definition):
    updated = fixed_definition.with_pricing(BundlePricing(DiscountType.PERCENTAGE, Decimal("10")))

    assert updated.pricing.discount_type == DiscountType.PERCENTAGE
    assert fixed_definition.pricing.discount_type == DiscountType.FIXED_AMOUNT


class TestNormalizeSelections:
    def test_mixed_formats(self):
        selections = normalize_selections([
            BundleSelection("p1", "v1", 1),
            {"productId": "p2", "variantId": "v2", "quantity": 2},
            {"product_id": "p3", "variant_id": "v3"},
            ("p4", "v4", "3"),
        ])

        assert selections == (
            BundleSelection("p1", "v1", 1),
            BundleSelection("p2", "v2", 2),
            BundleSelection("p3", "v3", 1),
            BundleSelection("p4", "v4", 3),
        )

    def test_none(self):
        assert normalize_selections(None) == ()

    def test_unsupported(self):
        with pytest.raises(TypeError):
            normalize_selections(["p1:v1:1"])
