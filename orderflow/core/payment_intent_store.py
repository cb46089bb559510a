import logging
import time
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from orderflow.core.config import INTENT_CLAIM_POLL, INTENT_CLAIM_WAIT
from orderflow.core.enums import IntentStatus, PaymentGatewayType
from orderflow.core.exceptions import ConflictError, GatewayError
from orderflow.crud import crud_payment_intent
from orderflow.gateways import CustomerRef, GatewayRegistry, NormalizedIntent
from orderflow.models.payment_intent import PaymentIntent

logger = logging.getLogger(__name__)


def idempotency_key(gateway: PaymentGatewayType, tracking_number: str, attempt: int) -> str:
    # Same inputs, same key: a retried create collapses into the original at the gateway
    return f"orderflow-{gateway.value}-{tracking_number}-{attempt}"


def customer_of(order) -> CustomerRef:
    return CustomerRef(id=order.customer_id, email=order.customer_email, name=order.customer_name)


class PaymentIntentStore:
    """
    Local record of gateway intents, one per (tracking_number, gateway).

    A placeholder row is inserted before the gateway is called; the unique
    constraint on it decides which concurrent caller talks to the gateway.
    """

    def __init__(
        self,
        gateways: GatewayRegistry,
        claim_wait: float = INTENT_CLAIM_WAIT,
        claim_poll: float = INTENT_CLAIM_POLL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gateways = gateways
        self.claim_wait = claim_wait
        self.claim_poll = claim_poll
        self._sleep = sleep

    def get(self, db: Session, tracking_number: str, gateway) -> Optional[PaymentIntent]:
        return crud_payment_intent.get_payment_intent(
            db, tracking_number=tracking_number, payment_gateway=PaymentGatewayType(gateway).value
        )

    def get_or_create(self, db: Session, tracking_number: str, gateway, *, recall: bool = False, order) -> PaymentIntent:
        """
        Return the intent for (tracking_number, gateway), creating it at the gateway
        only when none exists or ``recall`` is set. ``order`` supplies amount, currency
        and customer and may be transient.
        """
        adapter = self.gateways.get(gateway)
        gateway = adapter.gateway

        record = self._claim(db, tracking_number, gateway, order.currency)
        if record.external_id is not None and not recall:
            logger.info(f"Reusing {gateway.value} intent {record.external_id} for order {tracking_number}")
            return record

        attempt = record.attempt + 1 if (recall and record.external_id is not None) else record.attempt
        key = idempotency_key(gateway, tracking_number, attempt)
        try:
            intent = adapter.create_intent(order, customer_of(order), key)
        except GatewayError:
            logger.error(f"{gateway.value} intent creation failed for order {tracking_number}", exc_info=True)
            if record.external_id is None:
                self._release(db, record)
            raise

        logger.info(f"{gateway.value} intent {intent.id} recorded for order {tracking_number} (attempt {attempt})")
        return self._save(db, record, self._values(intent, attempt))

    def mirror_status(self, db: Session, tracking_number: str, gateway, status: IntentStatus) -> Optional[PaymentIntent]:
        """Stage a status change on the local record; the caller commits."""
        record = self.get(db, tracking_number, gateway)
        if record is not None and record.external_id is not None:
            record.status = status.value
            db.add(record)
        return record

    def refresh(self, db: Session, tracking_number: str, gateway) -> Optional[PaymentIntent]:
        """Re-read the intent from the gateway and store what it says."""
        record = self.get(db, tracking_number, gateway)
        if record is None or record.external_id is None:
            return record
        intent = self.gateways.get(gateway).retrieve_intent(record.external_id)
        return self._save(db, record, self._values(intent, record.attempt))

    def _claim(self, db: Session, tracking_number: str, gateway: PaymentGatewayType, currency: str) -> PaymentIntent:
        deadline = time.monotonic() + self.claim_wait
        while True:
            record = self.get(db, tracking_number, gateway)
            if record is None:
                try:
                    return crud_payment_intent.claim_payment_intent(
                        db, tracking_number=tracking_number, payment_gateway=gateway.value, currency=currency
                    )
                except IntegrityError:
                    db.rollback()
                    if time.monotonic() >= deadline:
                        raise ConflictError(f"Payment intent for {tracking_number} could not be claimed")
                    logger.warning(f"Lost the intent claim race for {tracking_number}/{gateway.value}; re-reading")
                    continue
            if record.external_id is not None:
                return record
            if time.monotonic() >= deadline:
                # The holder is stuck or gone; the shared idempotency key keeps the gateway side single
                logger.warning(f"Taking over stale intent claim for {tracking_number}/{gateway.value}")
                return record
            self._sleep(self.claim_poll)
            db.expire_all()

    def _values(self, intent: NormalizedIntent, attempt: int) -> dict:
        return {
            "external_id": intent.id,
            "client_secret": None if intent.is_redirect else intent.redirect_or_secret,
            "redirect_url": intent.redirect_or_secret if intent.is_redirect else None,
            "amount": intent.amount,
            "currency": intent.currency.upper(),
            "status": intent.status.value,
            "raw_metadata": intent.raw_metadata,
            "attempt": attempt,
        }

    def _save(self, db: Session, record: PaymentIntent, values: dict) -> PaymentIntent:
        # The gateway already holds the intent; losing the local write only costs a repeat call
        for attempt in range(2):
            try:
                return crud_payment_intent.update_payment_intent(db, db_obj=record, values=values)
            except SQLAlchemyError:
                db.rollback()
                logger.error(f"Storing intent {values['external_id']} failed (try {attempt + 1})", exc_info=True)
        return PaymentIntent(
            tracking_number=record.tracking_number, payment_gateway=record.payment_gateway, **values
        )

    def _release(self, db: Session, record: PaymentIntent) -> None:
        try:
            crud_payment_intent.release_claim(db, db_obj=record)
        except SQLAlchemyError:
            db.rollback()
            logger.error(f"Could not release intent claim for {record.tracking_number}", exc_info=True)
