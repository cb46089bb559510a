from sqlalchemy.orm import Session
from typing import Any, Dict, Optional

from orderflow.core.enums import IntentStatus
from orderflow.models.payment_intent import PaymentIntent


def get_payment_intent(db: Session, *, tracking_number: str, payment_gateway: str) -> Optional[PaymentIntent]:
    """
    Get the local intent record for (tracking_number, gateway).
    """
    return (
        db.query(PaymentIntent)
        .filter(
            PaymentIntent.tracking_number == tracking_number,
            PaymentIntent.payment_gateway == payment_gateway,
        )
        .first()
    )


def get_payment_intent_by_external_id(
    db: Session, *, payment_gateway: str, external_id: str
) -> Optional[PaymentIntent]:
    """
    Useful for webhooks whose payload only names the gateway's own id.
    """
    return (
        db.query(PaymentIntent)
        .filter(
            PaymentIntent.payment_gateway == payment_gateway,
            PaymentIntent.external_id == external_id,
        )
        .first()
    )


def claim_payment_intent(db: Session, *, tracking_number: str, payment_gateway: str, currency: str) -> PaymentIntent:
    """
    Insert the placeholder row that reserves (tracking_number, gateway).
    Raises IntegrityError when another caller holds the claim.
    """
    db_obj = PaymentIntent(
        tracking_number=tracking_number,
        payment_gateway=payment_gateway,
        currency=currency,
        status=IntentStatus.CREATING.value,
        attempt=0,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def update_payment_intent(db: Session, *, db_obj: PaymentIntent, values: Dict[str, Any]) -> PaymentIntent:
    for field, value in values.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def release_claim(db: Session, *, db_obj: PaymentIntent) -> None:
    """
    Drop a claim that never reached the gateway successfully.
    """
    db.delete(db_obj)
    db.commit()
