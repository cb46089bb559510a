import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from orderflow.core.enums import CouponType
from orderflow.core.exceptions import CouponExpired, CouponNotApproved, CouponNotFound, MinimumNotMet
from orderflow.core.money import percentage_of
from orderflow.core.utils import as_naive_utc, utcnow
from orderflow.crud import crud_coupon
from orderflow.models.coupon import Coupon

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscountResult:
    coupon_id: int
    code: str
    discount: int  # minor units, never more than the subtotal
    free_shipping: bool = False


def compute_discount(coupon: Coupon, cart_subtotal: int) -> int:
    """
    Line discount for a pre-tax subtotal. Free-shipping coupons discount nothing here;
    they zero the delivery fee instead.
    """
    if cart_subtotal <= 0:
        return 0
    coupon_type = CouponType(coupon.type)
    if coupon_type == CouponType.FREE_SHIPPING:
        return 0
    if coupon_type == CouponType.PERCENTAGE:
        discount = percentage_of(cart_subtotal, coupon.amount)
    else:
        discount = coupon.amount or 0
    return max(0, min(discount, cart_subtotal))


def validate_coupon(coupon: Coupon, cart_subtotal: int, now: datetime) -> DiscountResult:
    """
    Check an already loaded coupon against the window, flags and minimum, in that order.
    """
    now = as_naive_utc(now)
    if not coupon.is_valid or not (coupon.active_from <= now <= coupon.expire_at):
        raise CouponExpired(f"Coupon {coupon.code} is not active")
    if not coupon.is_approve:
        raise CouponNotApproved(f"Coupon {coupon.code} is not approved")
    if cart_subtotal < (coupon.minimum_cart_amount or 0):
        raise MinimumNotMet(f"Coupon {coupon.code} requires a larger cart")
    return DiscountResult(
        coupon_id=coupon.id,
        code=coupon.code,
        discount=compute_discount(coupon, cart_subtotal),
        free_shipping=coupon.type == CouponType.FREE_SHIPPING.value,
    )


class CouponValidator:
    """Read-only; the only I/O is the coupon lookup."""

    def validate(self, db: Session, code: str, cart_subtotal: int, now: Optional[datetime] = None) -> DiscountResult:
        coupon = crud_coupon.get_coupon_by_code(db, code)
        if coupon is None:
            raise CouponNotFound(code)
        return validate_coupon(coupon, cart_subtotal, now or utcnow())

    def validate_by_id(
        self, db: Session, coupon_id: int, cart_subtotal: int, now: Optional[datetime] = None
    ) -> DiscountResult:
        coupon = crud_coupon.get_coupon(db, coupon_id)
        if coupon is None:
            raise CouponNotFound(coupon_id)
        return validate_coupon(coupon, cart_subtotal, now or utcnow())
