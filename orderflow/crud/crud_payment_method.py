from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from orderflow.models.payment_method import PaymentMethod


def get_payment_method(db: Session, payment_method_id: int) -> Optional[PaymentMethod]:
    return db.query(PaymentMethod).filter(PaymentMethod.id == payment_method_id).first()


def get_payment_method_by_key(db: Session, method_key: str) -> Optional[PaymentMethod]:
    return db.query(PaymentMethod).filter(PaymentMethod.method_key == method_key).first()


def get_payment_methods(db: Session, *, customer_id: int) -> List[PaymentMethod]:
    """
    A customer's saved cards, default first, then newest.
    """
    return (
        db.query(PaymentMethod)
        .filter(PaymentMethod.customer_id == customer_id)
        .order_by(PaymentMethod.default_card.desc(), PaymentMethod.id.desc())
        .all()
    )


def create_payment_method(db: Session, *, obj_in: Dict[str, Any]) -> PaymentMethod:
    db_obj = PaymentMethod(**obj_in)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def update_payment_method(db: Session, *, db_obj: PaymentMethod, obj_in: Dict[str, Any]) -> PaymentMethod:
    for field, value in obj_in.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def clear_default_cards(db: Session, *, customer_id: int) -> None:
    """
    Unset the default flag on every card of the customer. Staged only; the caller commits.
    """
    (
        db.query(PaymentMethod)
        .filter(PaymentMethod.customer_id == customer_id, PaymentMethod.default_card.is_(True))
        .update({PaymentMethod.default_card: False}, synchronize_session="fetch")
    )


def delete_payment_method(db: Session, *, db_obj: PaymentMethod) -> None:
    db.delete(db_obj)
    db.commit()
