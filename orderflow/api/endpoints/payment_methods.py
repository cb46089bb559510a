from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from typing import List

from orderflow.core.dependencies import get_current_customer, get_payment_method_service
from orderflow.core.payment_method_service import PaymentMethodService
from orderflow.core.security import CurrentCustomer
from orderflow.db.session import get_db
from orderflow.schemas.payment_method import DefaultCardRequest, PaymentMethod, PaymentMethodCreate

router = APIRouter()


@router.post("/", response_model=PaymentMethod, status_code=201)
def save_payment_method(
    method_in: PaymentMethodCreate,
    db: Session = Depends(get_db),
    service: PaymentMethodService = Depends(get_payment_method_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Save a card the client tokenized with the card gateway. Saving the same
    token again returns the stored card.
    """
    return service.save_payment_method(db, current_customer, method_in.method_key, default_card=method_in.default_card)


@router.get("/", response_model=List[PaymentMethod])
def read_payment_methods(
    db: Session = Depends(get_db),
    service: PaymentMethodService = Depends(get_payment_method_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    return service.list_payment_methods(db, current_customer)


@router.post("/default", response_model=PaymentMethod)
def set_default_card(
    payload: DefaultCardRequest,
    db: Session = Depends(get_db),
    service: PaymentMethodService = Depends(get_payment_method_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    return service.set_default_card(db, current_customer, payload.method_id)


@router.get("/{payment_method_id}", response_model=PaymentMethod)
def read_payment_method(
    payment_method_id: int,
    db: Session = Depends(get_db),
    service: PaymentMethodService = Depends(get_payment_method_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    return service.get_payment_method(db, payment_method_id, current_customer)


@router.delete("/{payment_method_id}", status_code=204)
def delete_payment_method(
    payment_method_id: int,
    db: Session = Depends(get_db),
    service: PaymentMethodService = Depends(get_payment_method_service),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Detach the card at the gateway and forget it locally.
    """
    service.remove_payment_method(db, payment_method_id, current_customer)
    return Response(status_code=204)
