from pydantic import BaseModel, Field
from typing import List, Optional

from orderflow.schemas.common import Address, MajorAmount


class CartItem(BaseModel):
    product_id: int
    quantity: int = Field(..., gt=0)


class CheckoutVerify(BaseModel):
    items: List[CartItem] = Field(..., min_length=1)
    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    coupon_id: Optional[int] = None


class Quote(BaseModel):
    """Pre-flight totals; createOrder must echo these exactly."""
    subtotal: MajorAmount
    discount: MajorAmount
    tax: MajorAmount
    shipping: MajorAmount
    total: MajorAmount
    currency: str
    free_shipping: bool = False
    unavailable_products: List[int] = []

    class Config:
        from_attributes = True
