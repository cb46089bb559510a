"""
The Order aggregate: creation, administrative status changes and payment
reconciliation.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderflow.core.checkout_verifier import CheckoutVerifier, Quote
from orderflow.core.enums import (
    ORDER_STATUS_TRANSITIONS,
    PAYMENT_STATUS_TRANSITIONS,
    IntentStatus,
    OrderSortColumn,
    OrderStatusType,
    PaymentGatewayType,
    PaymentStatusType,
    SortOrder,
)
from orderflow.core.exceptions import (
    GatewayError,
    InvalidStatusTransition,
    OrderNotFound,
    OrderStatusNotFound,
    PaymentIntentNotFound,
    ProductNotFound,
    ProductUnavailableError,
    StaleQuoteError,
    ValidationError,
)
from orderflow.core.money import to_minor
from orderflow.core.payment_intent_store import PaymentIntentStore
from orderflow.core.security import CurrentCustomer
from orderflow.core.utils import as_naive_utc, generate_tracking_number, utcnow
from orderflow.crud import crud_order, crud_order_status, crud_payment_event
from orderflow.models.order import Order, OrderLine
from orderflow.models.payment_event import PaymentEvent
from orderflow.models.payment_intent import PaymentIntent
from orderflow.schemas.checkout import Quote as QuoteSchema
from orderflow.schemas.order import OrderCreate, OrderStatusUpdate

logger = logging.getLogger(__name__)

OUTCOME_APPLIED = "applied"
OUTCOME_IGNORED = "ignored"
OUTCOME_DUPLICATE = "duplicate"

_INTENT_STATUS_FOR_PAYMENT = {
    PaymentStatusType.SUCCESS: IntentStatus.SUCCEEDED,
    PaymentStatusType.FAILED: IntentStatus.FAILED,
}

_PAYMENT_FOR_INTENT_STATUS = {
    IntentStatus.SUCCEEDED: PaymentStatusType.SUCCESS,
    IntentStatus.FAILED: PaymentStatusType.FAILED,
    IntentStatus.CANCELLED: PaymentStatusType.FAILED,
}


class OrderService:
    def __init__(self, verifier: CheckoutVerifier, intents: PaymentIntentStore):
        self.verifier = verifier
        self.intents = intents

    # --- Creation ---

    def create_order(self, db: Session, order_in: OrderCreate, customer: CurrentCustomer) -> Order:
        """
        Price the cart again, check it against the client's totals, obtain the payment
        intent and only then persist the order. Nothing is stored if any step fails.
        """
        gateway = self.intents.gateways.get(order_in.payment_gateway).gateway
        tracking_number = order_in.tracking_number or generate_tracking_number()

        existing = crud_order.get_order_by_tracking_number(db, tracking_number)
        if existing is not None:
            return self._replayed(existing, customer)

        billing = order_in.billing_address.model_dump() if order_in.billing_address else None
        shipping = order_in.shipping_address.model_dump() if order_in.shipping_address else None
        quote = self.verifier.price_cart(
            db, order_in.items, billing_address=billing, shipping_address=shipping, coupon_id=order_in.coupon_id
        )
        if quote.missing_products:
            raise ProductNotFound(quote.missing_products[0])
        if quote.unavailable_products:
            raise ProductUnavailableError(quote.unavailable_products)

        submitted = {
            "amount": to_minor(order_in.amount),
            "sales_tax": to_minor(order_in.sales_tax),
            "delivery_fee": to_minor(order_in.delivery_fee),
            "discount": to_minor(order_in.discount),
            "total": to_minor(order_in.total),
        }
        if submitted != quote.totals():
            logger.warning(f"Stale quote for order {tracking_number}: submitted {submitted}, current {quote.totals()}")
            raise StaleQuoteError("Order totals no longer match the current quote; verify the cart again", quote=self.render_quote(quote))

        order = self._build_order(tracking_number, order_in, customer, quote, gateway, billing, shipping)
        try:
            self.intents.get_or_create(db, tracking_number, gateway, recall=False, order=order)
        except GatewayError:
            db.rollback()
            raise

        try:
            order = crud_order.create_order(db, db_obj=order)
        except IntegrityError:
            db.rollback()
            logger.warning(f"Order {tracking_number} was created concurrently; returning the stored one")
            existing = crud_order.get_order_by_tracking_number(db, tracking_number)
            if existing is None:
                raise
            return self._replayed(existing, customer)

        logger.info(f"Order {order.tracking_number} created for customer {customer.id}, total {order.total} {order.currency}")
        return order

    def _build_order(self, tracking_number, order_in, customer, quote: Quote, gateway, billing, shipping) -> Order:
        order = Order(
            tracking_number=tracking_number,
            customer_id=customer.id,
            customer_email=customer.email,
            customer_name=customer.name,
            customer_contact=order_in.customer_contact,
            shop_id=order_in.shop_id,
            amount=quote.subtotal,
            sales_tax=quote.tax,
            discount=quote.discount,
            delivery_fee=quote.shipping,
            total=quote.total,
            paid_total=quote.total,
            currency=quote.currency,
            order_status=OrderStatusType.PENDING.value,
            payment_status=PaymentStatusType.PENDING.value,
            payment_gateway=gateway.value,
            # Only the id; assigning the relationship would pull the order into the session early
            coupon_id=quote.coupon.coupon_id if quote.coupon else None,
            billing_address=billing,
            shipping_address=shipping,
            delivery_time=order_in.delivery_time,
            language=order_in.language,
        )
        order.lines = [
            OrderLine(
                product_id=line.product_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=line.subtotal,
            )
            for line in quote.lines
        ]
        return order

    def _replayed(self, existing: Order, customer: CurrentCustomer) -> Order:
        if existing.customer_id != customer.id:
            raise ValidationError(f"Tracking number {existing.tracking_number} is already in use", code="tracking_number_taken")
        logger.info(f"Order {existing.tracking_number} already exists; returning it unchanged")
        return existing

    @staticmethod
    def render_quote(quote: Quote) -> Dict[str, Any]:
        return QuoteSchema.model_validate(quote).model_dump(mode="json")

    # --- Reads ---

    def get_order(self, db: Session, order_id: int, customer: CurrentCustomer) -> Order:
        order = crud_order.get_order(db, order_id)
        return self._visible(order, order_id, customer)

    def get_order_by_tracking_number(self, db: Session, tracking_number: str, customer: CurrentCustomer) -> Order:
        order = crud_order.get_order_by_tracking_number(db, tracking_number)
        return self._visible(order, tracking_number, customer)

    def _visible(self, order: Optional[Order], identifier, customer: CurrentCustomer) -> Order:
        # Someone else's order is reported as missing rather than forbidden
        if order is None or (not customer.is_admin and order.customer_id != customer.id):
            raise OrderNotFound(identifier)
        return order

    def list_orders(
        self,
        db: Session,
        customer: CurrentCustomer,
        *,
        customer_id: Optional[int] = None,
        shop_id: Optional[int] = None,
        tracking_number: Optional[str] = None,
        search: Optional[str] = None,
        order_status: Optional[OrderStatusType] = None,
        payment_status: Optional[PaymentStatusType] = None,
        payment_gateway: Optional[PaymentGatewayType] = None,
        order_by: OrderSortColumn = OrderSortColumn.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
        skip: int = 0,
        limit: int = 30,
    ) -> List[Order]:
        if not customer.is_admin:
            customer_id = customer.id
        return crud_order.get_orders(
            db,
            customer_id=customer_id,
            shop_id=shop_id,
            tracking_number=tracking_number,
            search=search,
            order_status=order_status.value if order_status else None,
            payment_status=payment_status.value if payment_status else None,
            payment_gateway=payment_gateway.value if payment_gateway else None,
            order_by=order_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )

    def stats(self, db: Session, *, shop_id: Optional[int] = None) -> Dict[str, Any]:
        return crud_order.get_order_stats(db, shop_id=shop_id)

    def get_payment_events(self, db: Session, order_id: int, customer: CurrentCustomer) -> List[PaymentEvent]:
        order = self.get_order(db, order_id, customer)
        return crud_payment_event.get_events_for_order(db, tracking_number=order.tracking_number)

    # --- Administrative status ---

    def update_order_status(self, db: Session, order_id: int, change: OrderStatusUpdate) -> Order:
        if change.order_status is None and change.status_id is None:
            raise ValidationError("Provide order_status or status_id")
        order = crud_order.get_order(db, order_id)
        if order is None:
            raise OrderNotFound(order_id)

        if change.status_id is not None:
            label = crud_order_status.get_order_status(db, change.status_id)
            if label is None:
                raise OrderStatusNotFound(change.status_id)
            order.status_id = label.id

        if change.order_status is not None and change.order_status.value != order.order_status:
            current = OrderStatusType(order.order_status)
            if change.order_status not in ORDER_STATUS_TRANSITIONS[current]:
                raise InvalidStatusTransition(current, change.order_status)
            order.order_status = change.order_status.value
            logger.info(f"Order {order.tracking_number}: {current.value} -> {change.order_status.value}")

        return crud_order.save_order(db, db_obj=order)

    def cancel_order(self, db: Session, order_id: int) -> Order:
        """Orders are never deleted; cancelling is the terminal, retained state."""
        order = crud_order.get_order(db, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.order_status == OrderStatusType.CANCELLED.value:
            return order
        return self.update_order_status(db, order_id, OrderStatusUpdate(order_status=OrderStatusType.CANCELLED))

    # --- Payment status ---

    def reconcile_payment(
        self,
        db: Session,
        tracking_number: str,
        new_status: PaymentStatusType,
        event_time: Optional[datetime] = None,
        *,
        commit: bool = True,
    ) -> str:
        """
        Apply a gateway-reported payment status. Repeats are no-ops, events older than
        the last applied one are ignored, and so are transitions the state machine
        does not allow. Refunds go through ``refund_payment``.
        """
        new_status = PaymentStatusType(new_status)
        if new_status == PaymentStatusType.REFUNDED:
            return self.refund_payment(db, tracking_number, event_time, strict=False, commit=commit)
        return self._apply_payment_status(db, tracking_number, new_status, event_time, strict=False, commit=commit)

    def refund_payment(
        self,
        db: Session,
        tracking_number: str,
        event_time: Optional[datetime] = None,
        *,
        strict: bool = True,
        commit: bool = True,
    ) -> str:
        """
        Mark a paid order as refunded. Money movement happens at the gateway; this only
        records it. With strict=True an order that was never paid raises.
        """
        return self._apply_payment_status(
            db, tracking_number, PaymentStatusType.REFUNDED, event_time, strict=strict, commit=commit
        )

    def _apply_payment_status(
        self,
        db: Session,
        tracking_number: str,
        new_status: PaymentStatusType,
        event_time: Optional[datetime],
        *,
        strict: bool,
        commit: bool,
    ) -> str:
        event_time = as_naive_utc(event_time) or utcnow()
        order = crud_order.get_order_by_tracking_number(db, tracking_number, for_update=True)
        if order is None:
            raise OrderNotFound(tracking_number)

        current = PaymentStatusType(order.payment_status)
        if current == new_status:
            logger.info(f"Order {tracking_number} already {current.value}; nothing to apply")
            return OUTCOME_DUPLICATE
        if order.payment_status_updated_at is not None and event_time < order.payment_status_updated_at:
            logger.warning(
                f"Ignoring {new_status.value} for order {tracking_number}: event at {event_time} "
                f"predates last applied status at {order.payment_status_updated_at}"
            )
            return OUTCOME_IGNORED
        if new_status not in PAYMENT_STATUS_TRANSITIONS[current]:
            if strict:
                raise InvalidStatusTransition(current, new_status)
            logger.warning(f"Ignoring {current.value} -> {new_status.value} for order {tracking_number}")
            return OUTCOME_IGNORED

        order.payment_status = new_status.value
        order.payment_status_updated_at = event_time
        if new_status == PaymentStatusType.SUCCESS:
            if order.order_status == OrderStatusType.PENDING.value:
                order.order_status = OrderStatusType.PROCESSING.value
            elif order.order_status == OrderStatusType.CANCELLED.value:
                logger.warning(f"Payment succeeded for cancelled order {tracking_number}")
        intent_status = _INTENT_STATUS_FOR_PAYMENT.get(new_status)
        if intent_status is not None:
            self.intents.mirror_status(
                db, tracking_number, order.altered_payment_gateway or order.payment_gateway, intent_status
            )
        db.add(order)
        if commit:
            db.commit()
            db.refresh(order)
        logger.info(f"Order {tracking_number}: payment {current.value} -> {new_status.value}")
        return OUTCOME_APPLIED

    # --- Payment intents ---

    def get_payment_intent(
        self,
        db: Session,
        tracking_number: str,
        gateway: PaymentGatewayType,
        customer: CurrentCustomer,
        *,
        recall: bool = False,
    ) -> PaymentIntent:
        order = self.get_order_by_tracking_number(db, tracking_number, customer)
        gateway = self.intents.gateways.get(gateway).gateway
        if order.is_frozen or order.payment_status in (PaymentStatusType.SUCCESS.value, PaymentStatusType.REFUNDED.value):
            existing = self.intents.get(db, tracking_number, gateway)
            if existing is None or existing.external_id is None:
                raise ValidationError(f"Order {tracking_number} no longer accepts payment", code="order_not_payable")
            return existing

        record = self.intents.get_or_create(db, tracking_number, gateway, recall=recall, order=order)
        # Only once the gateway holds an intent; a failed switch leaves the order as it was
        if gateway.value != order.payment_gateway and order.altered_payment_gateway != gateway.value:
            order.altered_payment_gateway = gateway.value
            crud_order.save_order(db, db_obj=order)
            logger.info(f"Order {tracking_number} switched payment to {gateway.value}")
        return record

    def sync_payment_intent(
        self, db: Session, tracking_number: str, gateway: PaymentGatewayType, customer: CurrentCustomer
    ) -> PaymentIntent:
        """
        Re-read the intent from the gateway and reconcile a settled result. Covers
        notifications that never arrived.
        """
        self.get_order_by_tracking_number(db, tracking_number, customer)
        gateway = self.intents.gateways.get(gateway).gateway
        record = self.intents.refresh(db, tracking_number, gateway)
        if record is None or record.external_id is None:
            raise PaymentIntentNotFound(f"No {gateway.value} payment started for order {tracking_number}")
        payment_status = _PAYMENT_FOR_INTENT_STATUS.get(IntentStatus(record.status))
        if payment_status is not None:
            outcome = self.reconcile_payment(db, tracking_number, payment_status, utcnow())
            logger.info(f"Synced {gateway.value} intent {record.external_id} for order {tracking_number}: {outcome}")
        return record

    def capture_wallet_payment(self, db: Session, tracking_number: str, customer: CurrentCustomer) -> Order:
        """
        Capture an approved wallet order and reconcile the result straight away;
        the capture webhook that follows becomes a duplicate.
        """
        order = self.get_order_by_tracking_number(db, tracking_number, customer)
        record = self.intents.get(db, tracking_number, PaymentGatewayType.PAYPAL)
        if record is None or record.external_id is None:
            raise PaymentIntentNotFound(f"No wallet payment started for order {tracking_number}")
        adapter = self.intents.gateways.get(PaymentGatewayType.PAYPAL)
        intent = adapter.capture(record.external_id)
        if intent.status == IntentStatus.SUCCEEDED:
            self.reconcile_payment(db, tracking_number, PaymentStatusType.SUCCESS, utcnow())
        elif intent.status in (IntentStatus.FAILED, IntentStatus.CANCELLED):
            self.reconcile_payment(db, tracking_number, PaymentStatusType.FAILED, utcnow())
        db.refresh(order)
        return order
