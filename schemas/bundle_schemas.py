"""
Standardized Bundle Schemas
===========================

This module defines the canonical data structures for resolved bundles and the
artifacts derived from them (inventory verdicts, price results, cart results).

WIRE FORMAT:
------------
The Storefront API and the hosted backend both speak camelCase JSON. The
TypedDicts below describe that wire shape; the frozen dataclasses are the
in-memory model. Conversion happens only in ``from_dict`` / ``to_dict``.

BUNDLE TYPES:
-------------
- fixed: predetermined components, each with a default variant
- mix_and_match: the customer chooses components and quantities within bounds

DISCOUNT TYPES:
---------------
- percentage: bundle = original * (1 - value / 100)
- fixed_amount: bundle = original - value
- fixed_price: bundle = value
- custom: bundle = pre-supplied bundle price (or original when absent)

Definitions are immutable once resolved; recalculation yields new values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, TypedDict, Union

from services.money import DEFAULT_CURRENCY, format_amount, to_decimal

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class BundleType(str, Enum):
    FIXED = "fixed"
    MIX_AND_MATCH = "mix_and_match"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FIXED_PRICE = "fixed_price"
    CUSTOM = "custom"


class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    LIMITED = "limited"  # Low stock
    OUT_OF_STOCK = "out_of_stock"
    PREORDER = "preorder"  # Only reported by the hosted backend


def _enum_value(enum_cls, raw: Any, default):
    try:
        return enum_cls(raw)
    except ValueError:
        logger.warning(f"Unknown {enum_cls.__name__} value {raw!r}, using {default.value}")
        return default


# =============================================================================
# TYPE DEFINITIONS (wire format)
# =============================================================================

class MoneyDict(TypedDict):
    amount: str           # Decimal string, e.g. "29.99"
    currencyCode: str     # ISO 4217 code


class ProductImageDict(TypedDict, total=False):
    url: str
    altText: Optional[str]
    width: Optional[int]
    height: Optional[int]


class ComponentVariantDict(TypedDict, total=False):
    id: str
    title: str
    price: MoneyDict
    compareAtPrice: Optional[MoneyDict]
    sku: Optional[str]
    availableForSale: bool
    quantityAvailable: Optional[int]
    image: Optional[ProductImageDict]
    selectedOptions: List[Dict[str, str]]


class BundleComponentDict(TypedDict, total=False):
    productId: str
    productTitle: str
    productHandle: str
    productImage: Optional[ProductImageDict]
    variants: List[ComponentVariantDict]
    defaultVariantId: Optional[str]
    quantity: int
    allowQuantitySelection: bool
    minQuantity: Optional[int]
    maxQuantity: Optional[int]
    required: bool
    priceOverride: Optional[MoneyDict]


class BundlePricingDict(TypedDict, total=False):
    discountType: str
    discountValue: Optional[float]
    currencyCode: Optional[str]
    originalPrice: Optional[MoneyDict]
    bundlePrice: Optional[MoneyDict]
    savings: Optional[MoneyDict]
    savingsPercentage: Optional[float]


class BundleDefinitionDict(TypedDict, total=False):
    id: str
    title: str
    handle: str
    description: Optional[str]
    bundleType: str
    components: List[BundleComponentDict]
    pricing: BundlePricingDict
    minSelections: Optional[int]
    maxSelections: Optional[int]
    featuredImage: Optional[ProductImageDict]
    availableForSale: bool
    variantId: Optional[str]


class BundleSelectionDict(TypedDict):
    productId: str
    variantId: str
    quantity: int


class ComponentInventoryDict(TypedDict, total=False):
    productId: str
    variantId: str
    status: str
    quantityAvailable: Optional[int]
    maxAddable: Optional[int]


class BundleInventoryDict(TypedDict, total=False):
    available: bool
    status: str
    maxQuantity: int
    limitingComponent: Optional[ComponentInventoryDict]
    components: List[ComponentInventoryDict]
    cachedAt: Optional[str]


class ComponentPriceDict(TypedDict):
    productId: str
    variantId: str
    quantity: int
    unitPrice: MoneyDict
    lineTotal: MoneyDict


class BundlePriceResultDict(TypedDict):
    originalPrice: MoneyDict
    bundlePrice: MoneyDict
    savings: MoneyDict
    savingsPercentage: float
    componentPrices: List[ComponentPriceDict]


# =============================================================================
# DATACLASS DEFINITIONS
# =============================================================================

@dataclass(frozen=True)
class Money:
    """Decimal-string amount tagged with a currency code."""
    amount: str
    currency_code: str = DEFAULT_CURRENCY

    @classmethod
    def of(cls, value: Any, currency_code: Optional[str] = None) -> "Money":
        """Build a Money with exactly two fraction digits."""
        return cls(format_amount(value), currency_code or DEFAULT_CURRENCY)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Money"]:
        """Wire amounts such as "30.0" are normalized to two fraction digits."""
        if not data:
            return None
        return cls.of(data.get("amount"), data.get("currencyCode"))

    @property
    def decimal(self) -> Decimal:
        return to_decimal(self.amount)

    def to_dict(self) -> MoneyDict:
        return {"amount": self.amount, "currencyCode": self.currency_code}


@dataclass(frozen=True)
class ProductImage:
    url: str
    alt_text: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ProductImage"]:
        if not data or not data.get("url"):
            return None
        return cls(
            url=data["url"],
            alt_text=data.get("altText"),
            width=data.get("width"),
            height=data.get("height"),
        )

    def to_dict(self) -> ProductImageDict:
        return {"url": self.url, "altText": self.alt_text, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class BundleComponentVariant:
    """One purchasable variant of a component product."""
    id: str
    title: str
    price: Money
    available_for_sale: bool = True
    compare_at_price: Optional[Money] = None
    sku: Optional[str] = None
    quantity_available: Optional[int] = None
    image: Optional[ProductImage] = None
    selected_options: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BundleComponentVariant":
        options = tuple(
            (str(opt.get("name", "")), str(opt.get("value", "")))
            for opt in (data.get("selectedOptions") or [])
        )
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            price=Money.from_dict(data.get("price")) or Money("0.00"),
            available_for_sale=bool(data.get("availableForSale", False)),
            compare_at_price=Money.from_dict(data.get("compareAtPrice")),
            sku=data.get("sku"),
            quantity_available=data.get("quantityAvailable"),
            image=ProductImage.from_dict(data.get("image")),
            selected_options=options,
        )

    def to_dict(self) -> ComponentVariantDict:
        return {
            "id": self.id,
            "title": self.title,
            "price": self.price.to_dict(),
            "compareAtPrice": self.compare_at_price.to_dict() if self.compare_at_price else None,
            "sku": self.sku,
            "availableForSale": self.available_for_sale,
            "quantityAvailable": self.quantity_available,
            "image": self.image.to_dict() if self.image else None,
            "selectedOptions": [{"name": n, "value": v} for n, v in self.selected_options],
        }


@dataclass(frozen=True)
class BundleComponent:
    """A component product within a bundle.

    ``quantity`` is the number of units of this component in one bundle. The
    mix-and-match controls (``allow_quantity_selection``, ``min_quantity``,
    ``max_quantity``) bound an individual customer selection.
    """
    product_id: str
    product_title: str
    product_handle: str
    variants: Tuple[BundleComponentVariant, ...]
    quantity: int = 1
    product_image: Optional[ProductImage] = None
    default_variant_id: Optional[str] = None
    allow_quantity_selection: bool = False
    min_quantity: Optional[int] = None
    max_quantity: Optional[int] = None
    required: bool = False
    price_override: Optional[Money] = None

    def find_variant(self, variant_id: str) -> Optional[BundleComponentVariant]:
        return next((v for v in self.variants if v.id == variant_id), None)

    def default_variant(self) -> Optional[BundleComponentVariant]:
        """The default variant, or the first variant when none is declared."""
        if self.default_variant_id:
            found = self.find_variant(self.default_variant_id)
            if found:
                return found
        return self.variants[0] if self.variants else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BundleComponent":
        return cls(
            product_id=data["productId"],
            product_title=data.get("productTitle") or "",
            product_handle=data.get("productHandle") or "",
            variants=tuple(BundleComponentVariant.from_dict(v) for v in (data.get("variants") or [])),
            quantity=int(data.get("quantity") or 1),
            product_image=ProductImage.from_dict(data.get("productImage")),
            default_variant_id=data.get("defaultVariantId"),
            allow_quantity_selection=bool(data.get("allowQuantitySelection", False)),
            min_quantity=data.get("minQuantity"),
            max_quantity=data.get("maxQuantity"),
            required=bool(data.get("required", False)),
            price_override=Money.from_dict(data.get("priceOverride")),
        )

    def to_dict(self) -> BundleComponentDict:
        return {
            "productId": self.product_id,
            "productTitle": self.product_title,
            "productHandle": self.product_handle,
            "productImage": self.product_image.to_dict() if self.product_image else None,
            "variants": [v.to_dict() for v in self.variants],
            "defaultVariantId": self.default_variant_id,
            "quantity": self.quantity,
            "allowQuantitySelection": self.allow_quantity_selection,
            "minQuantity": self.min_quantity,
            "maxQuantity": self.max_quantity,
            "required": self.required,
            "priceOverride": self.price_override.to_dict() if self.price_override else None,
        }


@dataclass(frozen=True)
class BundlePricing:
    """Discount model plus the values precomputed at resolution time."""
    discount_type: DiscountType
    discount_value: Optional[Decimal] = None
    currency_code: Optional[str] = None
    original_price: Optional[Money] = None
    bundle_price: Optional[Money] = None
    savings: Optional[Money] = None
    savings_percentage: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BundlePricing":
        data = data or {}
        raw_value = data.get("discountValue")
        return cls(
            discount_type=_enum_value(DiscountType, data.get("discountType"), DiscountType.CUSTOM),
            discount_value=to_decimal(raw_value) if raw_value is not None else None,
            currency_code=data.get("currencyCode"),
            original_price=Money.from_dict(data.get("originalPrice")),
            bundle_price=Money.from_dict(data.get("bundlePrice")),
            savings=Money.from_dict(data.get("savings")),
            savings_percentage=data.get("savingsPercentage"),
        )

    def to_dict(self) -> BundlePricingDict:
        return {
            "discountType": self.discount_type.value,
            "discountValue": float(self.discount_value) if self.discount_value is not None else None,
            "currencyCode": self.currency_code,
            "originalPrice": self.original_price.to_dict() if self.original_price else None,
            "bundlePrice": self.bundle_price.to_dict() if self.bundle_price else None,
            "savings": self.savings.to_dict() if self.savings else None,
            "savingsPercentage": self.savings_percentage,
        }


@dataclass(frozen=True)
class BundleSelection:
    """One customer choice within a mix-and-match bundle."""
    product_id: str
    variant_id: str
    quantity: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BundleSelection":
        quantity = data.get("quantity")
        return cls(
            product_id=data.get("productId") or data.get("product_id") or "",
            variant_id=data.get("variantId") or data.get("variant_id") or "",
            quantity=int(quantity) if quantity is not None else 1,
        )

    def to_dict(self) -> BundleSelectionDict:
        return {"productId": self.product_id, "variantId": self.variant_id, "quantity": self.quantity}


@dataclass(frozen=True)
class ResolvedComponent:
    """A (product, variant, units-per-bundle) triple after applying selections or defaults."""
    product_id: str
    variant_id: str
    quantity: int


@dataclass(frozen=True)
class BundleDefinition:
    """The resolved, normalized bundle."""
    id: str
    title: str
    handle: str
    bundle_type: BundleType
    components: Tuple[BundleComponent, ...]
    pricing: BundlePricing
    available_for_sale: bool = True
    description: Optional[str] = None
    min_selections: Optional[int] = None
    max_selections: Optional[int] = None
    featured_image: Optional[ProductImage] = None
    variant_id: Optional[str] = None

    @property
    def currency_code(self) -> str:
        return self.pricing.currency_code or DEFAULT_CURRENCY

    @property
    def is_mix_and_match(self) -> bool:
        return self.bundle_type == BundleType.MIX_AND_MATCH

    def find_component(self, product_id: str) -> Optional[BundleComponent]:
        return next((c for c in self.components if c.product_id == product_id), None)

    def resolve_components(
        self, selections: Optional[Iterable[BundleSelection]] = None
    ) -> List[ResolvedComponent]:
        """
        The component set an operation acts on: customer selections verbatim when
        any are given, else each component's default (or first) variant.
        """
        chosen = list(selections or ())
        if chosen:
            return [ResolvedComponent(s.product_id, s.variant_id, s.quantity) for s in chosen]

        resolved = []
        for component in self.components:
            variant = component.default_variant()
            if variant is None:
                logger.warning(f"Component {component.product_id} of bundle {self.id} has no variants")
                continue
            resolved.append(ResolvedComponent(component.product_id, variant.id, component.quantity))
        return resolved

    def with_pricing(self, pricing: BundlePricing) -> "BundleDefinition":
        return replace(self, pricing=pricing)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BundleDefinition":
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            handle=data.get("handle") or "",
            bundle_type=_enum_value(BundleType, data.get("bundleType"), BundleType.FIXED),
            components=tuple(BundleComponent.from_dict(c) for c in (data.get("components") or [])),
            pricing=BundlePricing.from_dict(data.get("pricing")),
            available_for_sale=bool(data.get("availableForSale", True)),
            description=data.get("description"),
            min_selections=data.get("minSelections"),
            max_selections=data.get("maxSelections"),
            featured_image=ProductImage.from_dict(data.get("featuredImage")),
            variant_id=data.get("variantId"),
        )

    def to_dict(self) -> BundleDefinitionDict:
        return {
            "id": self.id,
            "title": self.title,
            "handle": self.handle,
            "description": self.description,
            "bundleType": self.bundle_type.value,
            "components": [c.to_dict() for c in self.components],
            "pricing": self.pricing.to_dict(),
            "minSelections": self.min_selections,
            "maxSelections": self.max_selections,
            "featuredImage": self.featured_image.to_dict() if self.featured_image else None,
            "availableForSale": self.available_for_sale,
            "variantId": self.variant_id,
        }


@dataclass(frozen=True)
class ComponentInventory:
    """Per-component availability snapshot."""
    product_id: str
    variant_id: str
    status: AvailabilityStatus
    quantity_available: Optional[int] = None
    max_addable: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComponentInventory":
        return cls(
            product_id=data.get("productId") or "",
            variant_id=data.get("variantId") or "",
            status=_enum_value(AvailabilityStatus, data.get("status"), AvailabilityStatus.OUT_OF_STOCK),
            quantity_available=data.get("quantityAvailable"),
            max_addable=data.get("maxAddable"),
        )

    def to_dict(self) -> ComponentInventoryDict:
        return {
            "productId": self.product_id,
            "variantId": self.variant_id,
            "status": self.status.value,
            "quantityAvailable": self.quantity_available,
            "maxAddable": self.max_addable,
        }


@dataclass(frozen=True)
class BundleInventory:
    """Aggregate inventory verdict over all checked components."""
    available: bool
    status: AvailabilityStatus
    max_quantity: int
    components: Tuple[ComponentInventory, ...] = ()
    limiting_component: Optional[ComponentInventory] = None
    cached_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BundleInventory":
        limiting = data.get("limitingComponent")
        return cls(
            available=bool(data.get("available", False)),
            status=_enum_value(AvailabilityStatus, data.get("status"), AvailabilityStatus.OUT_OF_STOCK),
            max_quantity=int(data.get("maxQuantity") or 0),
            components=tuple(ComponentInventory.from_dict(c) for c in (data.get("components") or [])),
            limiting_component=ComponentInventory.from_dict(limiting) if limiting else None,
            cached_at=data.get("cachedAt"),
        )

    def to_dict(self) -> BundleInventoryDict:
        return {
            "available": self.available,
            "status": self.status.value,
            "maxQuantity": self.max_quantity,
            "limitingComponent": self.limiting_component.to_dict() if self.limiting_component else None,
            "components": [c.to_dict() for c in self.components],
            "cachedAt": self.cached_at,
        }


@dataclass(frozen=True)
class ComponentPrice:
    """Unit price x quantity = line total for one component/variant pair."""
    product_id: str
    variant_id: str
    quantity: int
    unit_price: Money
    line_total: Money

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComponentPrice":
        return cls(
            product_id=data.get("productId") or "",
            variant_id=data.get("variantId") or "",
            quantity=int(data.get("quantity") or 0),
            unit_price=Money.from_dict(data.get("unitPrice")) or Money("0.00"),
            line_total=Money.from_dict(data.get("lineTotal")) or Money("0.00"),
        )

    def to_dict(self) -> ComponentPriceDict:
        return {
            "productId": self.product_id,
            "variantId": self.variant_id,
            "quantity": self.quantity,
            "unitPrice": self.unit_price.to_dict(),
            "lineTotal": self.line_total.to_dict(),
        }


@dataclass(frozen=True)
class BundlePriceResult:
    original_price: Money
    bundle_price: Money
    savings: Money
    savings_percentage: float
    component_prices: Tuple[ComponentPrice, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BundlePriceResult":
        return cls(
            original_price=Money.from_dict(data.get("originalPrice")) or Money("0.00"),
            bundle_price=Money.from_dict(data.get("bundlePrice")) or Money("0.00"),
            savings=Money.from_dict(data.get("savings")) or Money("0.00"),
            savings_percentage=float(data.get("savingsPercentage") or 0),
            component_prices=tuple(ComponentPrice.from_dict(c) for c in (data.get("componentPrices") or [])),
        )

    def to_dict(self) -> BundlePriceResultDict:
        return {
            "originalPrice": self.original_price.to_dict(),
            "bundlePrice": self.bundle_price.to_dict(),
            "savings": self.savings.to_dict(),
            "savingsPercentage": self.savings_percentage,
            "componentPrices": [c.to_dict() for c in self.component_prices],
        }


# =============================================================================
# CART MUTATION INPUT / RESULT
# =============================================================================

@dataclass(frozen=True)
class AddBundleInput:
    """Caller input for adding a bundle to a cart.

    No ``cart_id`` means a new cart is created. ``custom_attributes`` are appended
    verbatim to every generated line.
    """
    selected_components: Tuple[BundleSelection, ...] = ()
    quantity: int = 1
    cart_id: Optional[str] = None
    custom_attributes: Dict[str, str] = field(default_factory=dict)
    bundle_id: Optional[str] = None


@dataclass(frozen=True)
class FailedComponent:
    product_id: str
    variant_id: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"productId": self.product_id, "variantId": self.variant_id, "reason": self.reason}


@dataclass(frozen=True)
class AddBundleResult:
    success: bool
    cart: Optional[Dict[str, Any]] = None  # Pass-through from the Storefront API
    error: Optional[str] = None
    failed_component: Optional[FailedComponent] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "cart": self.cart,
            "error": self.error,
            "failedComponent": self.failed_component.to_dict() if self.failed_component else None,
        }


@dataclass(frozen=True)
class SelectionValidation:
    valid: bool
    error: Optional[str] = None


# =============================================================================
# RESOLUTION RESULT (discriminated)
# =============================================================================

@dataclass(frozen=True)
class NotABundle:
    product_id: str
    reason: str = "Product is not a bundle"


@dataclass(frozen=True)
class FixedBundle:
    definition: BundleDefinition


@dataclass(frozen=True)
class MixAndMatchBundle:
    definition: BundleDefinition


BundleResolution = Union[NotABundle, FixedBundle, MixAndMatchBundle]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def normalize_selections(
    selections: Optional[Iterable[Union[BundleSelection, Dict[str, Any], Tuple[str, str, int]]]],
) -> Tuple[BundleSelection, ...]:
    """
    Normalize selections given as BundleSelection objects, camelCase/snake_case
    dicts, or ``(product_id, variant_id, quantity)`` tuples. Duplicates are kept.
    """
    normalized = []
    for item in selections or ():
        if isinstance(item, BundleSelection):
            normalized.append(item)
        elif isinstance(item, dict):
            normalized.append(BundleSelection.from_dict(item))
        elif isinstance(item, (tuple, list)) and len(item) == 3:
            normalized.append(BundleSelection(str(item[0]), str(item[1]), int(item[2])))
        else:
            raise TypeError(f"Unsupported selection format: {item!r}")
    return tuple(normalized)
