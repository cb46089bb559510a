from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class PaymentMethodCreate(BaseModel):
    method_key: str = Field(..., min_length=1, max_length=255, description="Card token from the gateway, e.g. pm_...")
    default_card: bool = False


class DefaultCardRequest(BaseModel):
    method_id: str = Field(..., min_length=1, max_length=255)


class PaymentMethod(BaseModel):
    id: int
    method_key: str
    payment_gateway: str
    default_card: bool
    fingerprint: Optional[str] = None
    owner_name: Optional[str] = None
    network: Optional[str] = None
    type: Optional[str] = None
    last4: Optional[str] = None
    expires: Optional[str] = None
    origin: Optional[str] = None
    verification_check: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
