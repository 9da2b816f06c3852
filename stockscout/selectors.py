"""Centralised selectors for Best Buy store setup and search-result scraping."""

# ==== REGION SPLASH ====
REGION_SPLASH_LINK = "a.us-link"
NO_SPLASH_PATH = "/?intl=nosplash"

# ==== STORE CONTEXT (location surface + store finder) ====
STORE_LOCATION_BUTTON = (
    "button[data-lid='hdr_store_finder'], "
    "[data-testid='store-finder-button'], "
    "button.store-display-name, "
    "header button[aria-label*='Store'], header a[aria-label*='Store']"
)
FIND_ANOTHER_STORE = (
    "a:has-text('Find another store'), button:has-text('Find another store'), "
    "a[href*='/site/store-locator']"
)
STORE_SEARCH_INPUT = (
    "input#location, input[name='location'], "
    "input[placeholder*='ZIP'], input[placeholder*='City'], "
    "input[aria-label*='ZIP']"
)
STORE_RESULT_ITEM = (
    "ul.store-list li, [data-testid='store-list'] li, "
    ".locator-results .store"
)
SELECTED_STORE_CARD = (
    "ul.store-list li.selected, [data-testid='store-list'] li[aria-selected='true'], "
    ".locator-results .store.selected, ul.store-list li:first-child"
)
MAKE_MY_STORE_BUTTON = (
    ":scope button:has-text('Make This Your Store'), "
    ":scope button:has-text('Make this my store'), "
    ":scope button.make-this-your-store"
)

# ==== SEARCH RESULTS GRID ====
SEARCH_PATH = "/site/searchpage.jsp"
SEARCH_QUERY_PARAM = "st"
PRODUCT_GRID = (
    "main.product-grid-view-container, ol.sku-item-list, "
    "[data-testid='product-grid']"
)
CARD = "li.product-list-item.product-list-item-gridView, li.sku-item"
SPONSORED_CARD = "div.sponsored-product-wrapper li.product-list-item, li.sponsored-sku-item"
# One query keeps regular and sponsored items in document order.
ITEM_CONTAINER = f"{CARD}, {SPONSORED_CARD}"

# Field alternatives, tried in order; first non-empty value wins.
AVAILABILITY = (
    ":scope .fulfillment p",
    ":scope [data-testid='fulfillment-summary'] p",
    ":scope .fulfillment-fulfillment-summary",
)
TITLE = (
    ":scope h2.product-title",
    ":scope h4.sku-title a",
    ":scope a.product-list-item-link",
)
LINK = (
    ":scope a.product-list-item-link",
    ":scope .product-image a",
    ":scope h4.sku-title a",
)
IMG = (
    ":scope img[data-testid='product-image']",
    ":scope img.product-image",
)
IMG_ATTRIBUTES = ("src", "data-src", "data-lazy", "data-original")
BRAND = (
    ":scope h2.product-title .first-title",
    ":scope [data-testid='product-brand']",
)
PRICE = (
    ":scope [data-testid='medium-customer-price']",
    ":scope #medium-customer-price",
    ":scope .priceView-customer-price span[aria-hidden='true']",
    ":scope [data-testid='open-box-large-customer-price']",
)
RESTRICTED_PRICE = (
    ":scope [data-testid='restricted-price']",
    ":scope #restricted-price",
)
PRICE_REVEAL_BUTTON = (
    ":scope button:has-text('Tap for price')",
    ":scope [data-testid='restricted-price'] button",
)
REVEALED_PRICE = ":scope [data-testid='revealed-customer-price']"

NEXT_PAGE = (
    "a.sku-list-page-next, "
    "[data-testid='pagination-next'] a, [data-testid='pagination-next'] button, "
    "a[aria-label='Next page'], button[aria-label='Next page']"
)
