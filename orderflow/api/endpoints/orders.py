from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.core.dependencies import get_current_admin, get_current_customer, get_order_service
from orderflow.core.enums import OrderSortColumn, OrderStatusType, PaymentGatewayType, PaymentStatusType, SortOrder
from orderflow.core.order_service import OrderService
from orderflow.core.security import CurrentCustomer
from orderflow.db.session import get_db
from orderflow.schemas.order import Order, OrderCreate, OrderStats, OrderStatusUpdate
from orderflow.schemas.payment import PaymentEvent

router = APIRouter()


@router.post("/", response_model=Order, status_code=201)
def create_new_order(
    order_in: OrderCreate,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Create an order from a verified checkout quote. The payment intent is created
    (or reused) before the order is stored; resubmitting the same tracking number
    returns the existing order.
    """
    return service.create_order(db, order_in, current_customer)


@router.get("/", response_model=List[Order])
def read_orders(
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
    customer_id: Optional[int] = Query(None, description="Admins only; customers always see their own orders."),
    shop_id: Optional[int] = None,
    tracking_number: Optional[str] = None,
    search: Optional[str] = Query(None, description="Substring of the tracking number"),
    order_status: Optional[OrderStatusType] = None,
    payment_status: Optional[PaymentStatusType] = None,
    payment_gateway: Optional[PaymentGatewayType] = None,
    order_by: OrderSortColumn = OrderSortColumn.CREATED_AT,
    sorted_by: SortOrder = SortOrder.DESC,
    skip: int = Query(0, ge=0),
    limit: int = Query(30, ge=1, le=200),
):
    return service.list_orders(
        db,
        current_customer,
        customer_id=customer_id,
        shop_id=shop_id,
        tracking_number=tracking_number,
        search=search,
        order_status=order_status,
        payment_status=payment_status,
        payment_gateway=payment_gateway,
        order_by=order_by,
        sort_order=sorted_by,
        skip=skip,
        limit=limit,
    )


@router.get("/stats", response_model=OrderStats, tags=["Admin Orders"])
def read_order_stats(
    shop_id: Optional[int] = None,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    return service.stats(db, shop_id=shop_id)


@router.get("/tracking/{tracking_number}", response_model=Order)
def read_order_by_tracking_number(
    tracking_number: str,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    return service.get_order_by_tracking_number(db, tracking_number, current_customer)


@router.get("/{order_id}", response_model=Order)
def read_order_details(
    order_id: int,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Customers can only see their own orders; admins can see any.
    """
    return service.get_order(db, order_id, current_customer)


@router.get("/{order_id}/payment-events", response_model=List[PaymentEvent])
def read_order_payment_events(
    order_id: int,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Gateway notifications recorded for an order, oldest first.
    """
    return service.get_payment_events(db, order_id, current_customer)


@router.patch("/{order_id}/status", response_model=Order, tags=["Admin Orders"])
def update_order_status(
    order_id: int,
    change: OrderStatusUpdate,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    """
    Move an order through PENDING -> PROCESSING -> COMPLETED, or cancel it,
    and/or attach a display status label.
    """
    return service.update_order_status(db, order_id, change)


@router.post("/{order_id}/refund", response_model=Order, tags=["Admin Orders"])
def refund_order(
    order_id: int,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    """
    Record that a paid order was refunded at the gateway.
    """
    order = service.get_order(db, order_id, current_admin)
    service.refund_payment(db, order.tracking_number)
    return service.get_order(db, order_id, current_admin)


@router.delete("/{order_id}", response_model=Order, tags=["Admin Orders"])
def cancel_order(
    order_id: int,
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    """
    Orders are kept for the audit trail; deleting one cancels it.
    """
    return service.cancel_order(db, order_id)
