from decimal import Decimal
from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime

from orderflow.core.enums import CouponType
from orderflow.schemas.common import MajorAmount, MoneyIn

# Converted to minor units / basis points on the way into the database
COUPON_MONEY_FIELDS = ("amount", "minimum_cart_amount")


class CouponBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = None
    type: CouponType = CouponType.DEFAULT
    amount: MoneyIn  # currency amount, or a percent for percentage coupons
    minimum_cart_amount: MoneyIn = Decimal("0")
    active_from: datetime
    expire_at: datetime
    is_valid: bool = True
    shop_id: Optional[int] = None
    language: str = Field(default="en", max_length=10)

    @model_validator(mode="after")
    def check_window_and_amount(self):
        if self.active_from > self.expire_at:
            raise ValueError("active_from must not be after expire_at")
        if self.type == CouponType.PERCENTAGE and self.amount > 100:
            raise ValueError("percentage coupons cannot exceed 100")
        return self


class CouponCreate(CouponBase):
    pass


class CouponUpdate(BaseModel):
    description: Optional[str] = None
    type: Optional[CouponType] = None
    amount: Optional[MoneyIn] = None
    minimum_cart_amount: Optional[MoneyIn] = None
    active_from: Optional[datetime] = None
    expire_at: Optional[datetime] = None
    is_valid: Optional[bool] = None
    language: Optional[str] = Field(default=None, max_length=10)


class Coupon(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    type: CouponType
    amount: MajorAmount
    minimum_cart_amount: MajorAmount
    active_from: datetime
    expire_at: datetime
    is_valid: bool
    is_approve: bool
    shop_id: Optional[int] = None
    language: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CouponVerifyRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    subtotal: MoneyIn


class CouponVerifyResponse(BaseModel):
    is_valid: bool
    discount: MajorAmount
    free_shipping: bool
    coupon: Coupon
