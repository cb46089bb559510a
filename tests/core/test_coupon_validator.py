import pytest
from datetime import timedelta
from sqlalchemy.orm import Session

from orderflow.core.coupon_validator import CouponValidator, compute_discount, validate_coupon
from orderflow.core.exceptions import CouponExpired, CouponNotApproved, CouponNotFound, MinimumNotMet
from orderflow.core.utils import utcnow

pytestmark = pytest.mark.core


def test_percentage_coupon_discounts_pre_tax_subtotal(db_session: Session, make_coupon):
    make_coupon(code="TEN", type="percentage", amount=1000)
    result = CouponValidator().validate(db_session, "TEN", 10000)
    assert result.discount == 1000
    assert result.free_shipping is False


def test_fixed_coupon_is_capped_at_subtotal(db_session: Session, make_coupon):
    make_coupon(code="FLAT50", type="fixed", amount=5000)
    assert CouponValidator().validate(db_session, "FLAT50", 12000).discount == 5000
    assert CouponValidator().validate(db_session, "FLAT50", 3000).discount == 3000


def test_default_coupon_behaves_like_fixed(db_session: Session, make_coupon):
    coupon = make_coupon(code="DEF", type="default", amount=250)
    assert compute_discount(coupon, 1000) == 250
    assert compute_discount(coupon, 0) == 0


def test_free_shipping_coupon_has_no_line_discount(db_session: Session, make_coupon):
    make_coupon(code="SHIPFREE", type="free_shipping", amount=0)
    result = CouponValidator().validate(db_session, "SHIPFREE", 4000)
    assert result.discount == 0
    assert result.free_shipping is True


def test_unknown_code(db_session: Session):
    with pytest.raises(CouponNotFound) as exc_info:
        CouponValidator().validate(db_session, "NOPE", 1000)
    assert exc_info.value.status_code == 404
    assert exc_info.value.code == "coupon_not_found"


def test_outside_window_is_expired(db_session: Session, make_coupon):
    now = utcnow()
    make_coupon(code="OLD", active_from=now - timedelta(days=10), expire_at=now - timedelta(days=1))
    make_coupon(code="SOON", active_from=now + timedelta(days=1), expire_at=now + timedelta(days=10))
    with pytest.raises(CouponExpired):
        CouponValidator().validate(db_session, "OLD", 10000)
    with pytest.raises(CouponExpired):
        CouponValidator().validate(db_session, "SOON", 10000)


def test_invalidated_coupon_is_expired(db_session: Session, make_coupon):
    make_coupon(code="VOID", is_valid=False)
    with pytest.raises(CouponExpired):
        CouponValidator().validate(db_session, "VOID", 10000)


def test_unapproved_coupon(db_session: Session, make_coupon):
    make_coupon(code="PENDING", is_approve=False)
    with pytest.raises(CouponNotApproved) as exc_info:
        CouponValidator().validate(db_session, "PENDING", 10000)
    assert exc_info.value.code == "coupon_not_approved"


def test_minimum_cart_amount(db_session: Session, make_coupon):
    make_coupon(code="BIGCART", minimum_cart_amount=5000)
    with pytest.raises(MinimumNotMet):
        CouponValidator().validate(db_session, "BIGCART", 4999)
    assert CouponValidator().validate(db_session, "BIGCART", 5000).discount == 500


def test_window_bounds_are_inclusive(db_session: Session, make_coupon):
    coupon = make_coupon(code="EDGE")
    assert validate_coupon(coupon, 10000, coupon.active_from).discount == 1000
    assert validate_coupon(coupon, 10000, coupon.expire_at).discount == 1000


def test_same_inputs_same_discount(db_session: Session, make_coupon):
    make_coupon(code="SAME", type="percentage", amount=1250)
    now = utcnow()
    first = CouponValidator().validate(db_session, "SAME", 3333, now)
    second = CouponValidator().validate(db_session, "SAME", 3333, now)
    assert first == second
    assert first.discount == 417  # 12.5% of 33.33, rounded half up
