import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from schemas.bundle_schemas import BundleDefinition
from settings import build_config

STORE_DOMAIN = "demo-store.myshopify.com"
GRAPHQL_URL = f"https://{STORE_DOMAIN}/api/2025-01/graphql.json"
BACKEND_URL = "https://bundles.example.com"


def _money(amount, currency="USD"):
    return {"amount": amount, "currencyCode": currency}


def _variant(variant_id, price, title="Default Title", **extra):
    data = {"id": variant_id, "title": title, "price": _money(price), "availableForSale": True}
    data.update(extra)
    return data


FIXED_BUNDLE = {
    "id": "gid://shopify/Product/100",
    "title": "Starter Kit",
    "handle": "starter-kit",
    "bundleType": "fixed",
    "availableForSale": True,
    "variantId": "gid://shopify/ProductVariant/1000",
    "components": [
        {
            "productId": "gid://shopify/Product/1",
            "productTitle": "Shampoo",
            "productHandle": "shampoo",
            "variants": [_variant("gid://shopify/ProductVariant/11", "10.00")],
            "defaultVariantId": "gid://shopify/ProductVariant/11",
            "quantity": 2,
            "required": True,
        },
        {
            "productId": "gid://shopify/Product/2",
            "productTitle": "Conditioner",
            "productHandle": "conditioner",
            "variants": [_variant("gid://shopify/ProductVariant/21", "15.00")],
            "defaultVariantId": "gid://shopify/ProductVariant/21",
            "quantity": 1,
            "required": True,
        },
    ],
    "pricing": {"discountType": "fixed_amount", "discountValue": 5, "currencyCode": "USD"},
}

MIX_AND_MATCH_BUNDLE = {
    "id": "gid://shopify/Product/200",
    "title": "Build Your Box",
    "handle": "build-your-box",
    "bundleType": "mix_and_match",
    "availableForSale": True,
    "minSelections": 2,
    "maxSelections": 4,
    "components": [
        {
            "productId": "gid://shopify/Product/3",
            "productTitle": "Dark Roast",
            "productHandle": "dark-roast",
            "variants": [
                _variant("gid://shopify/ProductVariant/31", "12.00", "250g"),
                _variant("gid://shopify/ProductVariant/32", "20.00", "500g"),
            ],
            "quantity": 1,
            "allowQuantitySelection": True,
            "minQuantity": 1,
            "maxQuantity": 3,
        },
        {
            "productId": "gid://shopify/Product/4",
            "productTitle": "Green Tea",
            "productHandle": "green-tea",
            "variants": [_variant("gid://shopify/ProductVariant/41", "8.00")],
            "quantity": 1,
        },
    ],
    "pricing": {"discountType": "percentage", "discountValue": 10, "currencyCode": "USD"},
}


@pytest.fixture
def storefront_config():
    return build_config(storeDomain=STORE_DOMAIN, storefrontAccessToken="storefront-token")


@pytest.fixture
def backend_config():
    return build_config(storeDomain=STORE_DOMAIN, apiUrl=BACKEND_URL, apiKey="secret-key")


@pytest.fixture
def fixed_definition():
    return BundleDefinition.from_dict(FIXED_BUNDLE)


@pytest.fixture
def mix_definition():
    return BundleDefinition.from_dict(MIX_AND_MATCH_BUNDLE)
