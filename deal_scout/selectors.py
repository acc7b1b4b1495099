"""Centralised selectors for Home Depot listing pages."""

BASE_URL = "https://www.homedepot.com"

# ==== CARD DETECTION ====
PRODUCT_PATH_FRAGMENT = "/p/"
ID_ATTRIBUTES = ("data-product-id", "data-sku")
ID_CARD = (
    "div[data-product-id], article[data-product-id], li[data-product-id], "
    "div[data-sku], article[data-sku], li[data-sku]"
)
STRUCTURED_DATA = "script[type='application/ld+json']"
GRID_CONTAINERS = (
    ".sui-grid",
    "[data-testid='product-grid']",
    ".search-results",
    ".browse-search__pod-container",
    ".plp-grid",
)
GRID_CHILD_TAGS = ("div", "article", "li", "section")
PRODUCT_MARKERS = (
    "data-product-id",
    "sui-grid",
    "product-pod",
    "search-results",
    "browse-search",
    "product-card",
    "data-sku",
)

# ==== CARD FIELDS ====
BRAND = "[data-testid='attribute-brandname-inline'], [data-testid='attribute-product-brand']"
LABEL = "[data-testid='attribute-product-label']"
TITLE_FALLBACK_NAMED = "[data-testid*='title'], [data-testid*='name']"
TITLE_FALLBACK_CLASS = ".product-title, .product-name"
HEADINGS = "h1, h2, h3, h4"
PRICE_DOLLARS = ".sui-font-display.sui-text-3xl, .sui-font-display.sui-text-4xl"
PRICE_CENTS = ".sui-font-display.sui-text-xs"
PRICE_FALLBACKS = (
    "[data-testid*='price']",
    ".price",
    ".product-price",
    "[class*='price__current']",
    ".text-price",
)
WAS_PRICE = ".sui-text-subtle .sui-line-through, .sui-line-through span, .sui-line-through"
SAVINGS = ".sui-text-success"
RATING = "[data-testid='rating']"
REVIEW_COUNT = "[data-testid='review-count']"
DETAIL_LINK = f"a[href*='{PRODUCT_PATH_FRAGMENT}']"
PICKUP = (
    "[data-component*='FulfillmentPodStore']",
    "[data-testid*='Pickup']",
    "[data-testid*='Store']",
    ".pickup-availability",
)
DELIVERY = (
    "[data-component*='FulfillmentPodShipping']",
    "[data-testid*='Delivery']",
    "[data-testid*='Shipping']",
    ".delivery-option",
)

# ==== PAGINATION ====
OFFSET_PARAM = "Nao"
PAGINATION_CONTROLS = (
    "[data-testid*='pagination'] a, [data-testid*='pagination'] button, "
    "[data-component*='pagination'] a, .pagination a, .pagination button, "
    "[class*='pagination'] a, [class*='pagination'] button, [class*='pager'] a, "
    "[role='navigation'] a, [aria-label*='page'], a[href*='Nao='], a[href*='nao=']"
)

# ==== RENDER WAITS ====
WAIT_FOR_FIRST_PAGE = ".sui-grid"
WAIT_FOR_PAGINATION = ".sui-grid, [data-product-id], .product-pod, .search-results"
WAIT_FOR_ANY = "body"
