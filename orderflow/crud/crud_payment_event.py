from datetime import datetime
from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.models.payment_event import PaymentEvent


def get_payment_event(db: Session, *, payment_gateway: str, event_id: str) -> Optional[PaymentEvent]:
    return (
        db.query(PaymentEvent)
        .filter(PaymentEvent.payment_gateway == payment_gateway, PaymentEvent.event_id == event_id)
        .first()
    )


def add_payment_event(
    db: Session,
    *,
    payment_gateway: str,
    event_id: str,
    event_type: str,
    event_time: datetime,
    tracking_number: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> PaymentEvent:
    """
    Stage an event row in the current transaction; the caller commits together
    with the order change so both land or neither does.
    """
    db_obj = PaymentEvent(
        payment_gateway=payment_gateway,
        event_id=event_id,
        event_type=event_type,
        event_time=event_time,
        tracking_number=tracking_number,
        payment_status=payment_status,
    )
    db.add(db_obj)
    return db_obj


def get_events_for_order(db: Session, *, tracking_number: str) -> List[PaymentEvent]:
    return (
        db.query(PaymentEvent)
        .filter(PaymentEvent.tracking_number == tracking_number)
        .order_by(PaymentEvent.event_time.asc(), PaymentEvent.id.asc())
        .all()
    )
