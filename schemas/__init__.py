"""
Bundle Schemas Package
Provides standardized data structures for resolved bundles and derived results.
"""

from .bundle_schemas import (
    # Enumerations
    BundleType,
    DiscountType,
    AvailabilityStatus,

    # Wire format
    MoneyDict,
    ProductImageDict,
    ComponentVariantDict,
    BundleComponentDict,
    BundlePricingDict,
    BundleDefinitionDict,
    BundleSelectionDict,
    ComponentInventoryDict,
    BundleInventoryDict,
    ComponentPriceDict,
    BundlePriceResultDict,

    # Bundle schemas
    Money,
    ProductImage,
    BundleComponentVariant,
    BundleComponent,
    BundlePricing,
    BundleDefinition,
    BundleSelection,
    ResolvedComponent,

    # Derived results
    ComponentInventory,
    BundleInventory,
    ComponentPrice,
    BundlePriceResult,

    # Cart mutation
    AddBundleInput,
    AddBundleResult,
    FailedComponent,
    SelectionValidation,

    # Resolution result
    NotABundle,
    FixedBundle,
    MixAndMatchBundle,
    BundleResolution,

    # Helper functions
    normalize_selections,
)
