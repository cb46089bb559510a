from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

from orderflow.core.enums import IntentStatus, PaymentGatewayType
from orderflow.schemas.common import MajorAmount


class PaymentIntentCreateRequest(BaseModel):
    tracking_number: str = Field(..., min_length=1, max_length=64)


class PaymentIntentInfo(BaseModel):
    payment_id: str
    client_secret: Optional[str] = None
    redirect_url: Optional[str] = None
    is_redirect: bool


class PaymentIntent(BaseModel):
    tracking_number: str
    payment_gateway: PaymentGatewayType
    status: IntentStatus
    amount: MajorAmount
    currency: str
    payment_intent_info: PaymentIntentInfo


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str


def intent_response(record) -> PaymentIntent:
    """Shape a stored intent the way clients consume it."""
    return PaymentIntent(
        tracking_number=record.tracking_number,
        payment_gateway=record.payment_gateway,
        status=record.status,
        amount=record.amount,
        currency=record.currency,
        payment_intent_info=PaymentIntentInfo(
            payment_id=record.external_id,
            client_secret=record.client_secret,
            redirect_url=record.redirect_url,
            is_redirect=record.is_redirect,
        ),
    )


class PaymentEvent(BaseModel):
    """A verified gateway notification as it was recorded."""
    payment_gateway: PaymentGatewayType
    event_id: str
    event_type: str
    payment_status: Optional[str] = None
    outcome: Optional[str] = None
    event_time: datetime
    received_at: datetime

    class Config:
        from_attributes = True
