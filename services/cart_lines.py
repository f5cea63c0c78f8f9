"""
Cart line tag codec
Bundle membership travels on cart lines as opaque key/value attributes. This
module is the only place those strings are produced or parsed: in memory the
tag set is a BundleLineTags value.

Reading a cart back, group_cart_lines_by_bundle() reverses the tagging done by
the cart-mutation builder, preserving line order within each bundle.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from schemas.bundle_schemas import Money
from services.money import DEFAULT_CURRENCY, to_decimal

logger = logging.getLogger(__name__)

# Reserved attribute keys
BUNDLE_PARENT_KEY = "_bundle_parent"
BUNDLE_COMPONENT_OF_KEY = "_bundle_component_of"
BUNDLE_PRODUCT_ID_KEY = "_bundle_product_id"
COMPONENT_INDEX_KEY = "_bundle_component_index"
TOTAL_COMPONENTS_KEY = "_bundle_total_components"
COMPONENT_PRODUCT_ID_KEY = "_bundle_component_product_id"


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class BundleLineTags:
    """Named view of the reserved bundle attributes on one cart line."""
    is_parent: bool = False
    bundle_product_id: Optional[str] = None
    component_index: Optional[int] = None
    total_components: Optional[int] = None
    component_product_id: Optional[str] = None
    component_of: Optional[str] = None  # Reserved; not written by the builder

    def to_attributes(self) -> List[Dict[str, str]]:
        attributes = [{"key": BUNDLE_PARENT_KEY, "value": "true" if self.is_parent else "false"}]
        if self.bundle_product_id is not None:
            attributes.append({"key": BUNDLE_PRODUCT_ID_KEY, "value": self.bundle_product_id})
        if self.component_index is not None:
            attributes.append({"key": COMPONENT_INDEX_KEY, "value": str(self.component_index)})
        if self.total_components is not None:
            attributes.append({"key": TOTAL_COMPONENTS_KEY, "value": str(self.total_components)})
        if self.component_product_id is not None:
            attributes.append({"key": COMPONENT_PRODUCT_ID_KEY, "value": self.component_product_id})
        if self.component_of is not None:
            attributes.append({"key": BUNDLE_COMPONENT_OF_KEY, "value": self.component_of})
        return attributes

    @classmethod
    def from_attributes(cls, attributes: Iterable[Mapping[str, Any]]) -> "BundleLineTags":
        values = _attribute_map(attributes)
        return cls(
            is_parent=values.get(BUNDLE_PARENT_KEY) == "true",
            bundle_product_id=values.get(BUNDLE_PRODUCT_ID_KEY),
            component_index=_parse_int(values.get(COMPONENT_INDEX_KEY)),
            total_components=_parse_int(values.get(TOTAL_COMPONENTS_KEY)),
            component_product_id=values.get(COMPONENT_PRODUCT_ID_KEY),
            component_of=values.get(BUNDLE_COMPONENT_OF_KEY),
        )


@dataclass(frozen=True)
class CartLineInput:
    """One line submitted to cartCreate / cartLinesAdd."""
    merchandise_id: str
    quantity: int
    tags: BundleLineTags
    custom_attributes: Tuple[Tuple[str, str], ...] = ()

    @property
    def attributes(self) -> List[Dict[str, str]]:
        # Custom attributes are appended verbatim, even if they reuse a reserved key
        return self.tags.to_attributes() + [{"key": k, "value": v} for k, v in self.custom_attributes]

    def to_graphql(self) -> Dict[str, Any]:
        return {
            "merchandiseId": self.merchandise_id,
            "quantity": self.quantity,
            "attributes": self.attributes,
        }


@dataclass
class BundleLineGroup:
    bundle_product_id: str
    lines: List[Any] = field(default_factory=list)

    @property
    def line_ids(self) -> List[str]:
        return [line_id for line_id in (_line_field(line, "id") for line in self.lines) if line_id]


# =============================================================================
# Line access (raw API mappings or CartLineInput objects)
# =============================================================================

def _line_field(line: Any, name: str) -> Any:
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


def _line_attributes(line: Any) -> List[Mapping[str, Any]]:
    return list(_line_field(line, "attributes") or [])


def _attribute_map(attributes: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    # First occurrence wins for duplicated keys
    values: Dict[str, str] = {}
    for attr in attributes:
        key = attr.get("key")
        if key is not None and key not in values:
            values[key] = attr.get("value")
    return values


# =============================================================================
# Decoding
# =============================================================================

def is_bundle_line(line: Any) -> bool:
    """True only when the parent attribute is exactly the string "true"."""
    return any(
        attr.get("key") == BUNDLE_PARENT_KEY and attr.get("value") == "true"
        for attr in _line_attributes(line)
    )


def get_bundle_info_from_line(line: Any) -> Dict[str, str]:
    """
    Project the membership attributes present on ``line``.
    Absent attributes are omitted, so the result may be partial.
    """
    info: Dict[str, str] = {}
    for attr in _line_attributes(line):
        key = attr.get("key")
        if key == BUNDLE_PARENT_KEY:
            info["bundle_parent"] = attr.get("value")
        elif key == BUNDLE_PRODUCT_ID_KEY:
            info["bundle_product_id"] = attr.get("value")
        elif key == COMPONENT_INDEX_KEY:
            info["component_index"] = attr.get("value")
    return info


def get_line_tags(line: Any) -> BundleLineTags:
    return BundleLineTags.from_attributes(_line_attributes(line))


def group_cart_lines_by_bundle(lines: Iterable[Any]) -> Dict[str, BundleLineGroup]:
    """
    Group bundle lines by bundle product id, in first-seen order.
    Non-bundle lines and lines without a bundle id are skipped.
    """
    groups: Dict[str, BundleLineGroup] = {}
    for line in lines:
        if not is_bundle_line(line):
            continue
        bundle_id = get_bundle_info_from_line(line).get("bundle_product_id")
        if not bundle_id:
            continue
        if bundle_id not in groups:
            groups[bundle_id] = BundleLineGroup(bundle_product_id=bundle_id)
        groups[bundle_id].lines.append(line)
    return groups


def split_cart_lines(lines: Sequence[Any]) -> Tuple[List[BundleLineGroup], List[Any]]:
    """Split cart lines into bundle groups and ordinary (non-bundle) lines."""
    groups = group_cart_lines_by_bundle(lines)
    grouped_ids = {id(line) for group in groups.values() for line in group.lines}
    others = [line for line in lines if id(line) not in grouped_ids]
    return list(groups.values()), others


def bundle_group_total(group: BundleLineGroup) -> Money:
    """Sum of ``cost.totalAmount`` across the group's cart lines."""
    total = Decimal("0")
    currency = None
    for line in group.lines:
        amount = ((_line_field(line, "cost") or {}).get("totalAmount")) or {}
        total += to_decimal(amount.get("amount"))
        currency = currency or amount.get("currencyCode")
    return Money.of(total, currency or DEFAULT_CURRENCY)
