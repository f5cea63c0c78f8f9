"""
Storefront API GraphQL documents used for bundle resolution, inventory and cart
mutations. Fragments are composed once per document so no fragment is defined
twice in the same request.
"""

MONEY_FRAGMENT = """
fragment MoneyFragment on MoneyV2 {
  amount
  currencyCode
}
"""

IMAGE_FRAGMENT = """
fragment ImageFragment on Image {
  url
  altText
  width
  height
}
"""

VARIANT_FRAGMENT = """
fragment VariantFragment on ProductVariant {
  id
  title
  sku
  availableForSale
  quantityAvailable
  price {
    ...MoneyFragment
  }
  compareAtPrice {
    ...MoneyFragment
  }
  image {
    ...ImageFragment
  }
  selectedOptions {
    name
    value
  }
}
"""

BUNDLE_COMPONENT_FRAGMENT = """
fragment BundleComponentFragment on BundleComponent {
  product {
    id
    title
    handle
    featuredImage {
      ...ImageFragment
    }
  }
  variant {
    ...VariantFragment
  }
  quantity
}
"""

# bundleComponents is only exposed on variants
BUNDLE_PRODUCT_FRAGMENT = """
fragment BundleProductFragment on Product {
  id
  title
  handle
  description
  productType
  availableForSale
  featuredImage {
    ...ImageFragment
  }
  variants(first: 10) {
    nodes {
      id
      title
      price {
        ...MoneyFragment
      }
      compareAtPrice {
        ...MoneyFragment
      }
      availableForSale
      bundleComponents(first: 30) {
        nodes {
          ...BundleComponentFragment
        }
      }
    }
  }
}
"""

CART_LINE_FRAGMENT = """
fragment CartLineFragment on CartLine {
  id
  quantity
  merchandise {
    ... on ProductVariant {
      id
      title
      sku
      image {
        ...ImageFragment
      }
      price {
        ...MoneyFragment
      }
      product {
        id
        title
        handle
      }
    }
  }
  attributes {
    key
    value
  }
  cost {
    amountPerQuantity {
      ...MoneyFragment
    }
    subtotalAmount {
      ...MoneyFragment
    }
    totalAmount {
      ...MoneyFragment
    }
  }
}
"""

CART_FRAGMENT = """
fragment CartFragment on Cart {
  id
  checkoutUrl
  totalQuantity
  lines(first: 100) {
    nodes {
      ...CartLineFragment
    }
  }
  cost {
    subtotalAmount {
      ...MoneyFragment
    }
    totalAmount {
      ...MoneyFragment
    }
    totalTaxAmount {
      ...MoneyFragment
    }
  }
}
"""

_PRODUCT_FRAGMENTS = (
    MONEY_FRAGMENT + IMAGE_FRAGMENT + VARIANT_FRAGMENT + BUNDLE_COMPONENT_FRAGMENT + BUNDLE_PRODUCT_FRAGMENT
)
_CART_FRAGMENTS = MONEY_FRAGMENT + IMAGE_FRAGMENT + CART_LINE_FRAGMENT + CART_FRAGMENT

_USER_ERRORS = """
    userErrors {
      field
      message
      code
    }
"""

# =============================================================================
# QUERIES
# =============================================================================

BUNDLE_PRODUCT_QUERY = _PRODUCT_FRAGMENTS + """
query BundleProduct($id: ID!) {
  product(id: $id) {
    ...BundleProductFragment
  }
}
"""

BUNDLE_PRODUCT_BY_HANDLE_QUERY = _PRODUCT_FRAGMENTS + """
query BundleProductByHandle($handle: String!) {
  product(handle: $handle) {
    ...BundleProductFragment
  }
}
"""

VARIANTS_INVENTORY_QUERY = """
query VariantsInventory($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on ProductVariant {
      id
      availableForSale
      quantityAvailable
      product {
        id
        title
      }
    }
  }
}
"""

CART_QUERY = _CART_FRAGMENTS + """
query Cart($id: ID!) {
  cart(id: $id) {
    ...CartFragment
  }
}
"""

# =============================================================================
# MUTATIONS
# =============================================================================

CART_CREATE_MUTATION = _CART_FRAGMENTS + """
mutation CartCreate($input: CartInput!) {
  cartCreate(input: $input) {
    cart {
      ...CartFragment
    }""" + _USER_ERRORS + """  }
}
"""

CART_LINES_ADD_MUTATION = _CART_FRAGMENTS + """
mutation CartLinesAdd($cartId: ID!, $lines: [CartLineInput!]!) {
  cartLinesAdd(cartId: $cartId, lines: $lines) {
    cart {
      ...CartFragment
    }""" + _USER_ERRORS + """  }
}
"""

CART_LINES_REMOVE_MUTATION = _CART_FRAGMENTS + """
mutation CartLinesRemove($cartId: ID!, $lineIds: [ID!]!) {
  cartLinesRemove(cartId: $cartId, lineIds: $lineIds) {
    cart {
      ...CartFragment
    }""" + _USER_ERRORS + """  }
}
"""
