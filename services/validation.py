"""
Validation helpers: mix-and-match selection checks plus identifier, config and
domain sanity checks.
"""
import re
from typing import Any, Iterable, Mapping, Optional

from schemas.bundle_schemas import BundleDefinition, BundleSelection, BundleType, SelectionValidation
from utils import sanitize_string

GID_PATTERN = re.compile(r"^gid://shopify/\w+/\d+$")
NUMERIC_ID_PATTERN = re.compile(r"/(\d+)$")
MYSHOPIFY_DOMAIN_PATTERN = re.compile(r"^[\w-]+\.myshopify\.com$")
CUSTOM_DOMAIN_PATTERN = re.compile(r"^[\w.-]+\.[a-z]{2,}$")

MAX_INPUT_LENGTH = 1000


def is_valid_gid(gid: Any) -> bool:
    """``gid://shopify/Product/123`` style global id."""
    if not gid or not isinstance(gid, str):
        return False
    return bool(GID_PATTERN.match(gid))


def extract_numeric_id(gid: Optional[str]) -> Optional[str]:
    if not gid:
        return None
    match = NUMERIC_ID_PATTERN.search(gid)
    return match.group(1) if match else None


def is_valid_config(config: Optional[Mapping[str, Any]]) -> bool:
    """Shape check for a raw config mapping (camelCase or snake_case keys)."""
    if not config:
        return False
    store_domain = config.get("storeDomain", config.get("store_domain"))
    if not store_domain or not isinstance(store_domain, str):
        return False
    api_key = config.get("apiKey", config.get("api_key"))
    api_url = config.get("apiUrl", config.get("api_url"))
    if api_key and not api_url:
        return False
    return True


def is_bundle_product(product: Optional[Mapping[str, Any]]) -> bool:
    """True if any variant of a raw storefront product lists bundle components."""
    if not product:
        return False
    variants = product.get("variants") or []
    if isinstance(variants, Mapping):
        variants = variants.get("nodes") or []
    for variant in variants:
        components = variant.get("bundleComponents") if isinstance(variant, Mapping) else None
        if isinstance(components, Mapping):
            components = components.get("nodes")
        if components:
            return True
    return False


def sanitize_input(value: Any) -> str:
    return sanitize_string(value, max_length=MAX_INPUT_LENGTH)


def is_valid_shop_domain(domain: Any) -> bool:
    if not domain or not isinstance(domain, str):
        return False
    return bool(MYSHOPIFY_DOMAIN_PATTERN.match(domain) or CUSTOM_DOMAIN_PATTERN.match(domain))


def validate_bundle_selection(
    definition: BundleDefinition,
    selections: Iterable[BundleSelection],
) -> SelectionValidation:
    """
    Validate customer selections for a mix-and-match bundle.

    Fixed bundles always pass. Checks run in order (totals against
    min/max selections, then per selection: product exists, variant exists,
    per-component quantity bounds) and the first violation is returned.
    Zero or absent bounds are not enforced.
    """
    if definition.bundle_type == BundleType.FIXED:
        return SelectionValidation(valid=True)

    selections = list(selections or ())
    total = sum(s.quantity for s in selections)

    if definition.min_selections and total < definition.min_selections:
        return SelectionValidation(False, f"Please select at least {definition.min_selections} items.")

    if definition.max_selections and total > definition.max_selections:
        return SelectionValidation(False, f"You can select at most {definition.max_selections} items.")

    for selection in selections:
        component = definition.find_component(selection.product_id)
        if component is None:
            return SelectionValidation(False, f"Invalid product selection: {selection.product_id}")

        if component.find_variant(selection.variant_id) is None:
            return SelectionValidation(False, f"Invalid variant selection for {component.product_title}")

        if component.allow_quantity_selection:
            if component.min_quantity and selection.quantity < component.min_quantity:
                return SelectionValidation(
                    False, f"Minimum quantity for {component.product_title} is {component.min_quantity}"
                )
            if component.max_quantity and selection.quantity > component.max_quantity:
                return SelectionValidation(
                    False, f"Maximum quantity for {component.product_title} is {component.max_quantity}"
                )

    return SelectionValidation(valid=True)
