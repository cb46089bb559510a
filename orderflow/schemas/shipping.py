from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from orderflow.core.enums import ShippingType
from orderflow.schemas.common import MajorAmount, MoneyIn

SHIPPING_MONEY_FIELDS = ("amount",)


class ShippingBase(BaseModel):
    name: str = Field(..., max_length=100)
    type: ShippingType = ShippingType.FIXED
    amount: MoneyIn = Decimal("0")  # currency amount, or a percent for percentage shipping
    is_global: bool = False
    country: Optional[str] = Field(default=None, max_length=64)
    state: Optional[str] = Field(default=None, max_length=64)
    zip: Optional[str] = Field(default=None, max_length=20)
    city: Optional[str] = Field(default=None, max_length=64)
    priority: int = 0


class ShippingCreate(ShippingBase):
    pass


class ShippingUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    type: Optional[ShippingType] = None
    amount: Optional[MoneyIn] = None
    is_global: Optional[bool] = None
    country: Optional[str] = Field(default=None, max_length=64)
    state: Optional[str] = Field(default=None, max_length=64)
    zip: Optional[str] = Field(default=None, max_length=20)
    city: Optional[str] = Field(default=None, max_length=64)
    priority: Optional[int] = None


class Shipping(ShippingBase):
    id: int
    amount: MajorAmount
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
