from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orderflow.core.checkout_verifier import CheckoutVerifier
from orderflow.core.dependencies import get_checkout_verifier, get_current_customer
from orderflow.core.security import CurrentCustomer
from orderflow.db.session import get_db
from orderflow.schemas.checkout import CheckoutVerify, Quote

router = APIRouter()


@router.post("/verify", response_model=Quote)
def verify_checkout(
    payload: CheckoutVerify,
    db: Session = Depends(get_db),
    verifier: CheckoutVerifier = Depends(get_checkout_verifier),
    current_customer: CurrentCustomer = Depends(get_current_customer),
):
    """
    Quote a cart: subtotal, discount, tax, shipping and the products that cannot be bought.
    Creates nothing; the order must later be submitted with exactly these totals.
    """
    return verifier.verify(
        db,
        payload.items,
        billing_address=payload.billing_address.model_dump() if payload.billing_address else None,
        shipping_address=payload.shipping_address.model_dump() if payload.shipping_address else None,
        coupon_id=payload.coupon_id,
    )
