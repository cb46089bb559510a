from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from orderflow.schemas.common import MajorAmount, MoneyIn

TAX_MONEY_FIELDS = ("rate",)


class TaxBase(BaseModel):
    name: str = Field(..., max_length=100)
    rate: MoneyIn = Field(..., le=100)  # percent, e.g. 8.25
    is_global: bool = False
    country: Optional[str] = Field(default=None, max_length=64)
    state: Optional[str] = Field(default=None, max_length=64)
    zip: Optional[str] = Field(default=None, max_length=20)
    city: Optional[str] = Field(default=None, max_length=64)
    priority: int = 0
    on_shipping: bool = False


class TaxCreate(TaxBase):
    pass


class TaxUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    rate: Optional[MoneyIn] = Field(default=None, le=100)
    is_global: Optional[bool] = None
    country: Optional[str] = Field(default=None, max_length=64)
    state: Optional[str] = Field(default=None, max_length=64)
    zip: Optional[str] = Field(default=None, max_length=20)
    city: Optional[str] = Field(default=None, max_length=64)
    priority: Optional[int] = None
    on_shipping: Optional[bool] = None


class Tax(TaxBase):
    id: int
    rate: MajorAmount
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
