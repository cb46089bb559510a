from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderflow.core.dependencies import get_current_customer, get_order_service
from orderflow.core.enums import PaymentGatewayType
from orderflow.core.order_service import OrderService
from orderflow.core.security import CurrentCustomer
from orderflow.db.session import get_db
from orderflow.schemas.payment import PaymentIntent, intent_response

router = APIRouter()


@router.get("/", response_model=PaymentIntent)
def get_or_create_payment_intent(
    tracking_number: str = Query(..., min_length=1, max_length=64),
    payment_gateway: PaymentGatewayType = Query(...),
    recall_gateway: bool = Query(False, description="Create a fresh intent even if one exists"),
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Payment intent for an order. Repeated calls return the stored intent without
    contacting the gateway unless recall_gateway is set.
    """
    record = service.get_payment_intent(db, tracking_number, payment_gateway, current_customer, recall=recall_gateway)
    return intent_response(record)
