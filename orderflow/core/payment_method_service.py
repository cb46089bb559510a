"""
Saved cards. The card itself lives at the card gateway; the local row is the
customer's view of it and carries the default flag.
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from orderflow.core.enums import PaymentGatewayType
from orderflow.core.exceptions import GatewayError, PaymentMethodNotFound
from orderflow.core.security import CurrentCustomer
from orderflow.crud import crud_payment_method
from orderflow.gateways import CustomerRef, GatewayRegistry
from orderflow.models.payment_method import PaymentMethod

logger = logging.getLogger(__name__)


def customer_ref(customer: CurrentCustomer) -> CustomerRef:
    return CustomerRef(id=customer.id, email=customer.email, name=customer.name)


class PaymentMethodService:
    gateway = PaymentGatewayType.STRIPE

    def __init__(self, gateways: GatewayRegistry):
        self.gateways = gateways

    @property
    def adapter(self):
        return self.gateways.get(self.gateway)

    def save_payment_method(
        self, db: Session, customer: CurrentCustomer, method_key: str, *, default_card: bool = False
    ) -> PaymentMethod:
        """
        Attach a card the client tokenized at the gateway and keep a local record.
        A customer's first card becomes the default.
        """
        existing = crud_payment_method.get_payment_method_by_key(db, method_key)
        if existing is not None:
            if existing.customer_id != customer.id:
                raise PaymentMethodNotFound(method_key)
            if default_card and not existing.default_card:
                return self._make_default(db, existing)
            return existing

        card = self.adapter.attach_payment_method(method_key, customer_ref(customer))
        make_default = default_card or not crud_payment_method.get_payment_methods(db, customer_id=customer.id)
        if make_default:
            crud_payment_method.clear_default_cards(db, customer_id=customer.id)
        values = card.model_dump(exclude={"id"})
        method = crud_payment_method.create_payment_method(
            db,
            obj_in={
                **values,
                "method_key": card.id,
                "customer_id": customer.id,
                "payment_gateway": self.gateway.value,
                "default_card": make_default,
            },
        )
        logger.info(f"Saved {method.network} card ending {method.last4} for customer {customer.id}")
        return method

    def list_payment_methods(self, db: Session, customer: CurrentCustomer) -> List[PaymentMethod]:
        """
        The customer's cards that the gateway still holds. Cards removed at the
        gateway are dropped from the local store.
        """
        live = {card.id for card in self.adapter.list_payment_methods(customer_ref(customer))}
        stored = crud_payment_method.get_payment_methods(db, customer_id=customer.id)
        kept = []
        for method in stored:
            if method.method_key in live:
                kept.append(method)
            else:
                logger.info(f"Payment method {method.method_key} is gone at the gateway; removing it")
                crud_payment_method.delete_payment_method(db, db_obj=method)
        return kept

    def get_payment_method(self, db: Session, payment_method_id: int, customer: CurrentCustomer) -> PaymentMethod:
        method = crud_payment_method.get_payment_method(db, payment_method_id)
        # Same rule as orders: someone else's card is reported as missing
        if method is None or (not customer.is_admin and method.customer_id != customer.id):
            raise PaymentMethodNotFound(payment_method_id)
        return method

    def set_default_card(self, db: Session, customer: CurrentCustomer, method_key: str) -> PaymentMethod:
        method = crud_payment_method.get_payment_method_by_key(db, method_key)
        if method is None or method.customer_id != customer.id:
            raise PaymentMethodNotFound(method_key)
        return self._make_default(db, method)

    def remove_payment_method(self, db: Session, payment_method_id: int, customer: CurrentCustomer) -> None:
        method = self.get_payment_method(db, payment_method_id, customer)
        try:
            self.adapter.detach_payment_method(method.method_key)
        except GatewayError as e:
            if e.code != "resource_missing":
                raise
            logger.warning(f"Payment method {method.method_key} was already detached at the gateway")
        logger.info(f"Removing payment method {method.method_key} for customer {method.customer_id}")
        crud_payment_method.delete_payment_method(db, db_obj=method)

    def _make_default(self, db: Session, method: PaymentMethod) -> PaymentMethod:
        crud_payment_method.clear_default_cards(db, customer_id=method.customer_id)
        return crud_payment_method.update_payment_method(db, db_obj=method, obj_in={"default_card": True})
