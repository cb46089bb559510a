import logging
from typing import Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderflow.core.exceptions import OrderNotFound
from orderflow.core.order_service import OUTCOME_DUPLICATE, OUTCOME_IGNORED, OrderService
from orderflow.crud import crud_order, crud_payment_event, crud_payment_intent
from orderflow.gateways import GatewayRegistry, PaymentNotification

logger = logging.getLogger(__name__)


class WebhookReceiver:
    """
    Verify, record and apply gateway notifications. Nothing is trusted or
    written before the signature checks out.
    """

    def __init__(self, gateways: GatewayRegistry, orders: OrderService):
        self.gateways = gateways
        self.orders = orders

    def handle(self, db: Session, gateway: str, raw_payload: bytes, headers: Mapping[str, str]) -> str:
        adapter = self.gateways.get(gateway)
        gateway_name = adapter.gateway.value

        event = adapter.verify_webhook(raw_payload, headers)
        notification = adapter.parse_event(event)
        if notification is None:
            logger.info(f"Acknowledged unhandled {gateway_name} event type {event.get('type') or event.get('event_type')}")
            return OUTCOME_IGNORED

        if crud_payment_event.get_payment_event(db, payment_gateway=gateway_name, event_id=notification.event_id):
            logger.info(f"{gateway_name} event {notification.event_id} already processed")
            return OUTCOME_DUPLICATE

        tracking_number = self._resolve_tracking_number(db, gateway_name, notification)
        if tracking_number is None or crud_order.get_order_by_tracking_number(db, tracking_number) is None:
            logger.warning(
                f"{gateway_name} event {notification.event_id} references unknown order "
                f"{tracking_number or notification.external_id}"
            )
            raise OrderNotFound(tracking_number or notification.external_id)

        record = crud_payment_event.add_payment_event(
            db,
            payment_gateway=gateway_name,
            event_id=notification.event_id,
            event_type=notification.event_type,
            event_time=notification.event_time,
            tracking_number=tracking_number,
            payment_status=notification.payment_status.value,
        )
        outcome = self.orders.reconcile_payment(
            db, tracking_number, notification.payment_status, notification.event_time, commit=False
        )
        record.outcome = outcome
        try:
            db.commit()
        except IntegrityError:
            # Same event delivered twice at once; the other delivery did the work
            db.rollback()
            logger.info(f"{gateway_name} event {notification.event_id} recorded concurrently")
            return OUTCOME_DUPLICATE

        logger.info(
            f"{gateway_name} event {notification.event_id} ({notification.event_type}) for order "
            f"{tracking_number}: {outcome}"
        )
        return outcome

    def _resolve_tracking_number(self, db: Session, gateway_name: str, notification: PaymentNotification):
        if notification.tracking_number:
            return notification.tracking_number
        if notification.external_id:
            record = crud_payment_intent.get_payment_intent_by_external_id(
                db, payment_gateway=gateway_name, external_id=notification.external_id
            )
            if record is not None:
                return record.tracking_number
        return None
