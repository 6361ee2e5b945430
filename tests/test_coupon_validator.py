from datetime import timedelta
from decimal import Decimal

from delivery_api.extensions import db
from delivery_api.model import CouponUsage
from delivery_api.services import coupon_service, order_service
from delivery_api.services.coupon_service import FixedRule, PercentageRule, validate_coupon
from delivery_api.utils.dates import utcnow


def test_percentage_discount_is_clamped_to_cap(seed, make_coupon):
    make_coupon("BIG20", value="20", max_discount=Decimal("10.00"))
    check = validate_coupon("BIG20", seed.customer.id, Decimal("100.00"), seed.restaurant.id)
    assert check.valid
    assert check.discount == Decimal("10.00")


def test_percentage_without_cap(seed, make_coupon):
    make_coupon("TEN", value="10")
    check = validate_coupon("TEN", seed.customer.id, Decimal("35.00"), seed.restaurant.id)
    assert check.discount == Decimal("3.50")


def test_below_minimum_reports_the_minimum(seed, make_coupon):
    make_coupon("MIN30", value="10", min_order_subtotal=Decimal("30.00"))
    check = validate_coupon("MIN30", seed.customer.id, Decimal("25.00"), seed.restaurant.id)
    assert not check.valid
    assert check.failure == "BelowMinimum"
    assert "30.00" in check.reason
    assert check.discount is None


def test_minimum_is_inclusive(seed, make_coupon):
    make_coupon("MIN30", value="10", min_order_subtotal=Decimal("30.00"))
    assert validate_coupon("MIN30", seed.customer.id, Decimal("30.00"), seed.restaurant.id).valid


def test_unknown_code(seed):
    check = validate_coupon("NOPE", seed.customer.id, Decimal("10"), seed.restaurant.id)
    assert (check.valid, check.failure) == (False, "CouponNotFound")


def test_code_lookup_is_case_insensitive(seed, make_coupon):
    make_coupon("WELCOME", kind="FIXED", value="5")
    assert validate_coupon("  welcome ", seed.customer.id, Decimal("20"), seed.restaurant.id).valid


def test_inactive_is_reported_before_expired(seed, make_coupon):
    make_coupon("OLD", active=False, expires_at=utcnow() - timedelta(days=1))
    check = validate_coupon("OLD", seed.customer.id, Decimal("50"), seed.restaurant.id)
    assert check.failure == "CouponInactive"


def test_expired(seed, make_coupon):
    make_coupon("OLD", expires_at=utcnow() - timedelta(minutes=1))
    check = validate_coupon("OLD", seed.customer.id, Decimal("50"), seed.restaurant.id)
    assert check.failure == "CouponExpired"


def test_exhausted(seed, make_coupon):
    c = make_coupon("LAST", max_uses=2)
    c.usage_count = 2
    db.session.commit()
    check = validate_coupon("LAST", seed.customer.id, Decimal("50"), seed.restaurant.id)
    assert check.failure == "CouponExhausted"


def test_restaurant_scope(seed, make_coupon):
    make_coupon("CANTINA", restaurant_id=seed.restaurant.id)
    assert validate_coupon("CANTINA", seed.customer.id, Decimal("50"), seed.restaurant.id).valid

    wrong = validate_coupon("CANTINA", seed.customer.id, Decimal("50"), seed.rival_restaurant.id)
    assert wrong.failure == "WrongRestaurant"

    unscoped_request = validate_coupon("CANTINA", seed.customer.id, Decimal("50"))
    assert unscoped_request.failure == "WrongRestaurant"


def test_store_wide_coupon_accepts_any_restaurant(seed, make_coupon):
    make_coupon("ALL")
    assert validate_coupon("ALL", seed.customer.id, Decimal("50"), seed.rival_restaurant.id).valid


def test_first_order_only(seed, make_coupon, basket):
    make_coupon("FIRST", first_order_only=True)
    assert validate_coupon("FIRST", seed.customer.id, Decimal("35"), seed.restaurant.id).valid

    order_service.create_order(seed.customer.id, seed.restaurant.id, seed.address.id, basket)

    check = validate_coupon("FIRST", seed.customer.id, Decimal("35"), seed.restaurant.id)
    assert check.failure == "NotFirstOrder"


def test_per_user_limit(seed, make_coupon, basket):
    make_coupon("ONCE", max_uses_per_user=1)
    order_service.create_order(seed.customer.id, seed.restaurant.id, seed.address.id, basket, coupon_code="ONCE")

    check = validate_coupon("ONCE", seed.customer.id, Decimal("35"), seed.restaurant.id)
    assert check.failure == "PerUserLimitReached"
    # somebody else can still use it
    assert validate_coupon("ONCE", seed.other_customer.id, Decimal("35"), seed.restaurant.id).valid


def test_fixed_discount_is_clamped_to_subtotal(seed, make_coupon):
    make_coupon("FLAT50", kind="FIXED", value="50")
    check = validate_coupon("FLAT50", seed.customer.id, Decimal("20.00"), seed.restaurant.id)
    assert check.valid
    assert check.discount == Decimal("20.00")


def test_validation_is_read_only_and_repeatable(seed, make_coupon):
    c = make_coupon("REPEAT", value="15", max_uses=5)
    first = validate_coupon("REPEAT", seed.customer.id, Decimal("40"), seed.restaurant.id)
    second = validate_coupon("REPEAT", seed.customer.id, Decimal("40"), seed.restaurant.id)

    assert first.as_api() == second.as_api()
    db.session.refresh(c)
    assert c.usage_count == 0
    assert CouponUsage.query.count() == 0


def test_rule_variants():
    assert PercentageRule(Decimal("20"), Decimal("10")).discount_for(Decimal("100")) == Decimal("10.00")
    assert PercentageRule(Decimal("20")).discount_for(Decimal("100")) == Decimal("20.00")
    assert FixedRule(Decimal("7.5")).discount_for(Decimal("100")) == Decimal("7.50")
    assert FixedRule(Decimal("7.5")).discount_for(Decimal("3")) == Decimal("3.00")


def test_canonical_code():
    assert coupon_service.canonical_code("  summer10 ") == "SUMMER10"
    assert coupon_service.canonical_code(None) == ""
