import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orderflow.core.dependencies import get_current_customer, get_order_service
from orderflow.core.enums import PaymentGatewayType
from orderflow.core.order_service import OrderService
from orderflow.core.security import CurrentCustomer
from orderflow.db.session import get_db
from orderflow.schemas.order import Order
from orderflow.schemas.payment import PaymentIntent, PaymentIntentCreateRequest, intent_response

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{gateway}/intent", response_model=PaymentIntent, status_code=201)
def create_payment_intent_endpoint(
    gateway: PaymentGatewayType,
    payload: PaymentIntentCreateRequest,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Start (or restart) payment of an order with a specific gateway. Any existing
    intent for that gateway is replaced with a fresh one.
    """
    logger.info(f"Customer {current_customer.id} requesting a {gateway.value} intent for order {payload.tracking_number}")
    record = service.get_payment_intent(db, payload.tracking_number, gateway, current_customer, recall=True)
    return intent_response(record)


@router.post("/paypal/{tracking_number}/capture", response_model=Order)
def capture_paypal_payment(
    tracking_number: str,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Capture a PayPal order the payer has approved and return the reconciled order.
    """
    return service.capture_wallet_payment(db, tracking_number, current_customer)


@router.post("/{gateway}/{tracking_number}/sync", response_model=PaymentIntent)
def sync_payment_intent(
    gateway: PaymentGatewayType,
    tracking_number: str,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Ask the gateway for the current state of an order's intent and apply a settled
    payment result, for when the webhook is late or lost.
    """
    record = service.sync_payment_intent(db, tracking_number, gateway, current_customer)
    return intent_response(record)
