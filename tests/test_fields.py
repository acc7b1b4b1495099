from deal_scout.extractors.dom_utils import load_markup
from deal_scout.extractors.fields import (
    build_item,
    extract_fulfillment,
    extract_image,
    extract_price,
    extract_savings,
    extract_title,
    identifier_from_url,
)


def _card(markup: str):
    return load_markup(f"<div>{markup}</div>").div


def test_price_from_split_dollars_and_cents() -> None:
    card = _card(
        '<span class="sui-font-display sui-text-xs">$</span>'
        '<span class="sui-font-display sui-text-3xl">1,198</span>'
        '<span class="sui-font-display sui-text-xs">00</span>'
    )
    assert extract_price(card) == "$1,198.00"


def test_price_defaults_missing_cents() -> None:
    card = _card('<span class="sui-font-display sui-text-4xl">749</span>')
    assert extract_price(card) == "$749.00"


def test_price_fallback_regex() -> None:
    assert extract_price(_card('<div data-testid="product-price">Now $58.97 each</div>')) == "$58.97"
    assert extract_price(_card("<p>no price</p>")) == ""


def test_savings_block() -> None:
    card = _card(
        '<div class="sui-text-subtle"><span class="sui-line-through">$1,499.00</span></div>'
        '<div class="sui-text-success">Save $301.00 (20%)</div>'
    )
    assert extract_savings(card) == ("$1,499.00", "$301.00", "20%")
    assert extract_savings(_card("<p>$10.00</p>")) == ("", "", "")


def test_title_prefers_brand_and_label() -> None:
    card = _card(
        '<span data-testid="attribute-brandname-inline">Samsung</span>'
        '<span data-testid="attribute-product-label">28 cu. ft. French Door</span>'
        '<img alt="Alt text">'
    )
    assert extract_title(card) == ("Samsung 28 cu. ft. French Door", "Samsung", "28 cu. ft. French Door")


def test_title_fallbacks() -> None:
    assert extract_title(_card('<img alt="Image Title"><h3>Heading</h3>'))[0] == "Image Title"
    assert extract_title(_card('<img alt="abc"><h3>Heading Title</h3>'))[0] == "Heading Title"
    assert extract_title(_card("<span>?</span>"))[0] == "Unknown Product"


def test_image_from_srcset() -> None:
    card = _card('<img data-srcset="//images.example/a.jpg 1x, //images.example/b.jpg 2x">')
    assert extract_image(card) == "https://images.example/a.jpg"


def test_fulfillment_from_selectors_and_text() -> None:
    card = _card('<div data-component="FulfillmentPodStore">Pickup: Today at Seattle</div>')
    assert extract_fulfillment(card, "pickup") == "Today at Seattle"

    card = _card("<p>Pickup: Free at store</p><p>Delivery: Tomorrow</p>")
    assert extract_fulfillment(card, "pickup") == "Free at store"
    assert extract_fulfillment(card, "delivery") == "Tomorrow"
    assert extract_fulfillment(_card("<p>nothing</p>"), "delivery") == ""


def test_identifier_from_detail_url() -> None:
    assert identifier_from_url("https://www.homedepot.com/p/Samsung-Fridge/318765432") == "318765432"
    assert identifier_from_url("/p/Samsung-Fridge/318765432?store=1") == "318765432"
    assert identifier_from_url("/p/Thing-12") == ""
    assert identifier_from_url("") == ""


def test_build_item_generates_stable_placeholder_id() -> None:
    card = _card("<h3>Mystery Product</h3><span class='price'>$5.00</span>")

    first = build_item(card, 3)
    second = build_item(card, 3)

    assert first.sku.startswith("temp-3-")
    assert first.sku == second.sku
    assert first.has_generated_id
    assert first.is_plausible()
    assert not first.is_valid()
