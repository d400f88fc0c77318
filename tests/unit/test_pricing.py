from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.errors import CouponInvalid, InvalidInput
from storefront.payments.pricing import (
    compute_total,
    discount_amount,
    parse_timestamp,
    to_major_units,
    to_minor_units,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _item(price, qty=1, pid="p1"):
    return {"product_id": pid, "name": "Produit", "unit_price_minor": price, "quantity": qty}


def _coupon(percent=10, active=True, expires=None, owner="u1"):
    return {
        "code": "GIFTABC123",
        "user_id": owner,
        "discount_percentage": percent,
        "is_active": active,
        "expiration_date": (expires or NOW + timedelta(days=5)).isoformat(),
    }


def test_total_without_coupon_is_exact_sum():
    items = [_item(1999, 3), _item(1, 7, "p2"), _item(0, 2, "p3")]
    assert compute_total(items) == 1999 * 3 + 7


def test_ten_percent_coupon_on_10000():
    assert compute_total([_item(5000, 2)], _coupon(), owner_id="u1", now=NOW) == 9000


def test_discount_is_floored_not_rounded():
    # remise = floor(9999 * 10 / 100) = 999
    assert compute_total([_item(9999)], _coupon(), owner_id="u1", now=NOW) == 8999
    assert discount_amount(9999, 10) == 999


def test_full_discount_clamps_to_zero():
    assert compute_total([_item(4321, 3)], _coupon(percent=100), owner_id="u1", now=NOW) == 0


@pytest.mark.parametrize("items", [
    [],
    [_item(-1)],
    [_item(100, 0)],
    [_item(100, -2)],
    [_item(10.5)],
])
def test_invalid_items_rejected(items):
    with pytest.raises(InvalidInput):
        compute_total(items)


@pytest.mark.parametrize("coupon, owner", [
    (_coupon(active=False), "u1"),
    (_coupon(expires=NOW - timedelta(seconds=1)), "u1"),
    (_coupon(expires=NOW), "u1"),
    (_coupon(owner="someone-else"), "u1"),
    (_coupon(), None),
])
def test_unusable_coupon_raises_coupon_invalid(coupon, owner):
    with pytest.raises(CouponInvalid):
        compute_total([_item(5000, 2)], coupon, owner_id=owner, now=NOW)


def test_compute_total_is_deterministic():
    items = [_item(333, 3), _item(1250, 2, "p2")]
    results = {compute_total(items, _coupon(percent=15), owner_id="u1", now=NOW) for _ in range(20)}
    assert results == {3499 - (3499 * 15) // 100}


def test_to_minor_units_avoids_float_errors():
    assert to_minor_units(19.99) == 1999
    assert to_minor_units("0.29") == 29
    assert to_minor_units(Decimal("50")) == 5000
    assert to_minor_units(0.005) == 1


def test_to_minor_units_rejects_garbage():
    with pytest.raises(InvalidInput):
        to_minor_units("abc")


def test_to_major_units():
    assert to_major_units(9000) == 90.0
    assert to_major_units(8999) == 89.99


def test_parse_timestamp_variants():
    assert parse_timestamp("2026-11-18T10:00:00Z") == datetime(2026, 11, 18, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2026-11-18T10:00:00").tzinfo is not None
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None
