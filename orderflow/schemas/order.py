from decimal import Decimal
from pydantic import BaseModel, EmailStr, Field
from typing import Dict, List, Optional
from datetime import datetime

from orderflow.core.enums import OrderStatusType, PaymentGatewayType, PaymentStatusType
from orderflow.schemas.checkout import CartItem
from orderflow.schemas.common import Address, MajorAmount, MoneyIn
from orderflow.schemas.order_status import OrderStatus as OrderStatusLabel


class OrderCreate(BaseModel):
    """
    What the client submits after a checkout quote. The monetary fields must
    match a fresh quote exactly or the order is rejected as stale.
    """
    tracking_number: Optional[str] = Field(default=None, min_length=6, max_length=64)
    items: List[CartItem] = Field(..., min_length=1)
    payment_gateway: PaymentGatewayType
    coupon_id: Optional[int] = None

    amount: MoneyIn
    sales_tax: MoneyIn
    delivery_fee: MoneyIn
    discount: MoneyIn = Decimal("0")
    total: MoneyIn

    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    customer_contact: Optional[str] = Field(default=None, max_length=64)
    delivery_time: Optional[str] = Field(default=None, max_length=100)
    shop_id: Optional[int] = None
    language: str = Field(default="en", max_length=10)


class OrderStatusUpdate(BaseModel):
    """Administrative change; at least one field must be given."""
    order_status: Optional[OrderStatusType] = None
    status_id: Optional[int] = None


class OrderLine(BaseModel):
    product_id: int
    name: Optional[str] = None
    quantity: int
    unit_price: MajorAmount
    subtotal: MajorAmount

    class Config:
        from_attributes = True


class Order(BaseModel):
    id: int
    tracking_number: str
    customer_id: int
    customer_email: EmailStr
    customer_name: Optional[str] = None
    customer_contact: Optional[str] = None
    shop_id: Optional[int] = None

    amount: MajorAmount
    sales_tax: MajorAmount
    discount: MajorAmount
    delivery_fee: MajorAmount
    total: MajorAmount
    paid_total: MajorAmount
    currency: str

    order_status: OrderStatusType
    payment_status: PaymentStatusType
    payment_gateway: PaymentGatewayType
    altered_payment_gateway: Optional[PaymentGatewayType] = None
    coupon_id: Optional[int] = None
    status: Optional[OrderStatusLabel] = None

    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    delivery_time: Optional[str] = None
    language: str
    lines: List[OrderLine] = []

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderStats(BaseModel):
    total: int
    pending: int
    processing: int
    completed: int
    cancelled: int
    revenue: MajorAmount
    by_payment_status: Dict[str, int] = {}
