import re
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from conftest import TEST_USER_ID, future, past
from storefront.coupons import service as coupons_service
from storefront.coupons.repository import CouponCodeCollision
from storefront.errors import CouponInvalid, CouponIssuanceFailed

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def test_generate_coupon_code_format():
    codes = {coupons_service.generate_coupon_code() for _ in range(50)}
    assert all(re.fullmatch(r"GIFT[A-Z0-9]{6}", c) for c in codes)
    assert len(codes) > 1


def test_issue_loyalty_coupon_replaces_previous(coupon_store):
    coupon_store.add("OLDCODE", discount_percentage=25)
    created = coupons_service.issue_loyalty_coupon(TEST_USER_ID, now=NOW)

    assert created["code"].startswith("GIFT")
    assert created["discount_percentage"] == 10
    assert created["is_active"] is True
    assert created["expiration_date"] == (NOW + timedelta(days=30)).isoformat()
    active = coupon_store.active_for(TEST_USER_ID)
    assert len(active) == 1 and active[0]["code"] == created["code"]


def test_issue_retries_on_code_collision(monkeypatch):
    calls = {"n": 0}

    def replace(user_id, coupon):
        calls["n"] += 1
        if calls["n"] < 3:
            raise CouponCodeCollision(coupon["code"])
        return {**coupon, "user_id": user_id}

    monkeypatch.setattr("storefront.coupons.repository.replace_for_owner", replace)
    created = coupons_service.issue_loyalty_coupon("u1")
    assert calls["n"] == 3
    assert created["user_id"] == "u1"


def test_issue_fails_after_bounded_retries(monkeypatch):
    replace = MagicMock(side_effect=CouponCodeCollision("GIFTAAAAAA"))
    monkeypatch.setattr("storefront.coupons.repository.replace_for_owner", replace)
    monkeypatch.setattr("storefront.config.COUPON_ISSUANCE_MAX_ATTEMPTS", 4)
    with pytest.raises(CouponIssuanceFailed):
        coupons_service.issue_loyalty_coupon("u1")
    assert replace.call_count == 4


def test_issue_wraps_store_errors(monkeypatch):
    monkeypatch.setattr(
        "storefront.coupons.repository.replace_for_owner",
        MagicMock(side_effect=RuntimeError("connection reset")),
    )
    with pytest.raises(CouponIssuanceFailed):
        coupons_service.issue_loyalty_coupon("u1")


def test_validate_coupon_ok_and_normalized(coupon_store):
    coupon_store.add("GIFTVALID1", expiration_date=future())
    coupon = coupons_service.validate_coupon("  giftvalid1 ", TEST_USER_ID)
    assert coupon["code"] == "GIFTVALID1"


@pytest.mark.parametrize("code, setup", [
    ("", None),
    ("UNKNOWN", None),
    ("GIFTOLD001", {"expiration_date": past()}),
    ("GIFTOFF001", {"is_active": False}),
])
def test_validate_coupon_rejects(coupon_store, code, setup):
    if setup is not None:
        coupon_store.add(code, **setup)
    with pytest.raises(CouponInvalid):
        coupons_service.validate_coupon(code, TEST_USER_ID)


def test_get_my_coupon(coupon_store):
    assert coupons_service.get_my_coupon(TEST_USER_ID) is None
    coupon_store.add("GIFTMINE01")
    assert coupons_service.get_my_coupon(TEST_USER_ID)["code"] == "GIFTMINE01"
