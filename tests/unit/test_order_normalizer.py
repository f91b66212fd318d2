# tests/unit/test_order_normalizer.py
from datetime import date
from decimal import Decimal

import pytest

from khorders.models.enums import FulfillmentMethod
from khorders.services.order_errors import (
    EMPTY_ITEMS,
    INVALID_ITEM,
    MISSING_ADDRESS,
    MISSING_EMAIL,
    OrderValidationError,
)
from khorders.services.order_normalizer import name_from_email, normalize
from tests.helpers.orders import pickup_payload, shipping_payload


def _code(raw) -> str:
    with pytest.raises(OrderValidationError) as ei:
        normalize(raw)
    return ei.value.code


def test_name_inferred_from_email_local_part():
    d = normalize({"email": "john.doe@example.com", "items": [{"name": "Loaf"}]})
    assert d.customer_name == "John Doe"


@pytest.mark.parametrize(
    "email, expected",
    [
        ("a@b.com", "A"),
        ("mary_ann-smith@x.org", "Mary Ann Smith"),
        ("BOB@x.org", "Bob"),
        ("...@x.org", "Customer"),
    ],
)
def test_name_from_email(email, expected):
    assert name_from_email(email) == expected


@pytest.mark.parametrize(
    "raw",
    [
        {"items": [{"name": "Loaf"}]},
        {"email": "   ", "items": [{"name": "Loaf"}]},
        {"contact": {"phone": "1"}, "items": [{"name": "Loaf"}]},
        {"email": True, "items": [{"name": "Loaf"}]},
    ],
)
def test_missing_email_rejected(raw):
    assert _code(raw) == MISSING_EMAIL


def test_email_found_in_nested_contact():
    d = normalize({"contact": {"email": " pat@example.com ", "name": "Pat"}, "items": [{"name": "Loaf"}]})
    assert d.customer_email == "pat@example.com"
    assert d.customer_name == "Pat"


def test_flat_alias_beats_nested():
    d = normalize(
        {
            "customerEmail": "first@example.com",
            "contact": {"email": "second@example.com"},
            "items": [{"name": "Loaf"}],
        }
    )
    assert d.customer_email == "first@example.com"


@pytest.mark.parametrize("items", [None, {"name": "Loaf"}, "Loaf", [], ["Loaf", 3]])
def test_items_must_be_a_non_empty_list(items):
    raw = {"email": "a@b.com"}
    if items is not None:
        raw["items"] = items
    assert _code(raw) == EMPTY_ITEMS


def test_zero_quantity_lines_are_dropped():
    d = normalize(
        {
            "email": "a@b.com",
            "items": [{"name": "Loaf", "qty": 0}, {"name": "Bagel", "quantity": "3"}],
        }
    )
    assert [(ln.name, ln.quantity) for ln in d.items] == [("Bagel", 3)]


def test_all_zero_lines_means_empty_order():
    assert _code({"email": "a@b.com", "items": [{"name": "Loaf", "qty": 0}]}) == EMPTY_ITEMS


def test_missing_quantity_defaults_to_one():
    d = normalize({"email": "a@b.com", "items": [{"title": "Focaccia"}]})
    assert d.items[0].quantity == 1


@pytest.mark.parametrize(
    "line",
    [
        {"qty": 1},
        {"name": "Loaf", "qty": -1},
        {"name": "Loaf", "qty": 1.5},
        {"name": "Loaf", "qty": "two"},
        {"name": "Loaf", "qty": True},
        {"name": "Loaf", "price": -3},
        {"name": "Loaf", "qty": 1001},
        {"name": "Loaf", "qty": 10**27, "price": 10},
        {"name": "Loaf", "price": "1e30"},
        {"name": "Loaf", "price": "10000.01"},
    ],
)
def test_invalid_item_lines(line):
    assert _code({"email": "a@b.com", "items": [line]}) == INVALID_ITEM


def test_unparseable_price_becomes_unpriced():
    d = normalize({"email": "a@b.com", "items": [{"name": "Loaf", "price": "market"}]})
    assert d.items[0].unit_price is None
    assert d.order_total == Decimal("0.00")


def test_order_total():
    d = normalize(
        {
            "email": "a@b.com",
            "items": [{"name": "Loaf", "qty": 2, "price": 10}, {"name": "Rolls", "qty": 1, "price": 12}],
        }
    )
    assert d.order_total == Decimal("32.00")


def test_order_total_must_fit_stored_precision():
    lines = [{"name": f"Wheel {i}", "qty": 1000, "price": "10000"} for i in range(10)]
    assert _code({"email": "a@b.com", "items": lines}) == INVALID_ITEM

    d = normalize({"email": "a@b.com", "items": lines[:9]})
    assert d.order_total == Decimal("90000000.00")


def test_dollar_prices_accepted():
    d = normalize({"email": "a@b.com", "items": [{"name": "Loaf", "unitPrice": "$9.5"}]})
    assert d.items[0].unit_price == Decimal("9.50")


def test_defaults_to_pickup_and_usa():
    d = normalize({"email": "a@b.com", "items": [{"name": "Loaf"}]})
    assert d.fulfillment_method == FulfillmentMethod.PICKUP
    assert d.country == "USA"


def test_boolean_ship_flag_selects_shipping():
    raw = shipping_payload()
    raw.pop("fulfillmentMethod")
    raw["ship"] = True
    assert normalize(raw).fulfillment_method == FulfillmentMethod.SHIPPING


def test_explicit_fulfillment_wins_over_ship_flag():
    d = normalize(pickup_payload(ship=True))
    assert d.fulfillment_method == FulfillmentMethod.PICKUP


def test_shipping_address_from_nested_shape():
    d = normalize(shipping_payload())
    assert d.fulfillment_method == FulfillmentMethod.SHIPPING
    assert (d.address_line1, d.city, d.state, d.postal_code, d.country) == (
        "12 Mill Rd",
        "Kanarraville",
        "UT",
        "84742",
        "USA",
    )
    assert d.customer_name == "Jane Baker"
    assert d.phone == "435-555-0101"


def test_shipping_requires_full_address():
    raw = shipping_payload(shippingAddress={"line1": "12 Mill Rd", "city": "Kanarraville"})
    with pytest.raises(OrderValidationError) as ei:
        normalize(raw)
    assert ei.value.code == MISSING_ADDRESS
    assert ei.value.context["missing"] == ["state", "postal_code"]


def test_pickup_keeps_address_without_requiring_it():
    d = normalize(pickup_payload(address="99 Canyon Way"))
    assert d.fulfillment_method == FulfillmentMethod.PICKUP
    assert d.address_line1 == "99 Canyon Way"
    assert d.city is None


def test_requested_date_parsing():
    assert normalize(pickup_payload(pickupDate="2026-10-31")).requested_date == date(2026, 10, 31)
    assert normalize(pickup_payload(requested_date="2026-10-31T08:00:00Z")).requested_date == date(2026, 10, 31)
    assert normalize(pickup_payload(requested_date="next saturday")).requested_date is None


def test_normalizing_a_canonical_draft_is_stable():
    first = normalize(shipping_payload(notes="Leave at gate", requestedDate="2026-10-30"))
    again = normalize(first.to_payload())
    assert again == first


def test_numeric_contact_fields_from_json_floats():
    d = normalize(pickup_payload(phone=4355550101.0, postal_code=84719.0, city=float("nan")))
    assert d.phone == "4355550101"
    assert d.postal_code == "84719"
    assert d.city is None
