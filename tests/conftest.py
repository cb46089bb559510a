import hashlib
import hmac
import json
import time
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from orderflow.main import app
from orderflow.core.catalog import ProductSnapshot
from orderflow.core.checkout_verifier import CheckoutVerifier
from orderflow.core.dependencies import get_catalog, get_gateway_registry
from orderflow.core.enums import IntentStatus, PaymentGatewayType
from orderflow.core.exceptions import GatewayError
from orderflow.core.money import to_major
from orderflow.core.order_service import OrderService
from orderflow.core.payment_intent_store import PaymentIntentStore
from orderflow.core.payment_method_service import PaymentMethodService
from orderflow.core.security import CurrentCustomer, create_access_token
from orderflow.core.utils import utcnow
from orderflow.core.webhook_receiver import WebhookReceiver
from orderflow.db.base import Base, init_db
from orderflow.db.session import get_db
from orderflow.gateways import CardGatewayAdapter, GatewayRegistry, NormalizedIntent, PaymentGatewayAdapter, SavedCard
from orderflow.models.coupon import Coupon
from orderflow.models.shipping import Shipping
from orderflow.models.tax import Tax
from orderflow.schemas.checkout import CartItem
from orderflow.schemas.order import OrderCreate

# Use a separate SQLite database for testing
TEST_SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
STRIPE_TEST_WEBHOOK_SECRET = "whsec_test_secret"

engine = create_engine(
    TEST_SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


# --- Collaborator fakes ---

class FakeCatalog:
    def __init__(self, products: Optional[Dict[int, ProductSnapshot]] = None):
        self.products = dict(products or {})

    def get_product(self, product_id: int) -> Optional[ProductSnapshot]:
        return self.products.get(product_id)


class RecordingGatewayMixin:
    """Records create_intent calls and, like the real gateways, collapses repeated idempotency keys."""

    def _init_recording(self, prefix: str):
        self.prefix = prefix
        self.create_calls: List[Dict[str, Any]] = []
        self.intents_by_key: Dict[str, NormalizedIntent] = {}
        self.fail_with: Optional[GatewayError] = None
        self.retrieve_status = IntentStatus.PENDING

    def _record(self, order, customer, idempotency_key: str, is_redirect: bool) -> NormalizedIntent:
        self.create_calls.append(
            {"tracking_number": order.tracking_number, "amount": order.paid_total, "customer": customer, "key": idempotency_key}
        )
        if self.fail_with is not None:
            raise self.fail_with
        if idempotency_key not in self.intents_by_key:
            intent_id = f"{self.prefix}_{len(self.intents_by_key) + 1}"
            self.intents_by_key[idempotency_key] = NormalizedIntent(
                id=intent_id,
                status=IntentStatus.PENDING,
                amount=order.paid_total,
                currency=order.currency,
                redirect_or_secret=f"https://wallet.test/approve/{intent_id}" if is_redirect else f"{intent_id}_secret",
                is_redirect=is_redirect,
                raw_metadata={"order_tracking_number": order.tracking_number},
            )
        return self.intents_by_key[idempotency_key]

    def _retrieve(self, external_id: str) -> NormalizedIntent:
        for intent in self.intents_by_key.values():
            if intent.id == external_id:
                return intent.model_copy(update={"status": self.retrieve_status})
        raise GatewayError("resource_missing", f"No such intent {external_id}", self.gateway.value)


class FakeCardGateway(RecordingGatewayMixin, CardGatewayAdapter):
    """Stripe adapter with the network calls replaced; webhook verification stays real."""

    def __init__(self):
        super().__init__(webhook_secret=STRIPE_TEST_WEBHOOK_SECRET, tolerance=300)
        self._init_recording("pi_test")
        self.attached: Dict[str, SavedCard] = {}

    def create_intent(self, order, customer, idempotency_key):
        return self._record(order, customer, idempotency_key, is_redirect=False)

    def retrieve_intent(self, external_id):
        return self._retrieve(external_id)

    def attach_payment_method(self, method_id, customer):
        if self.fail_with is not None:
            raise self.fail_with
        card = SavedCard(
            id=method_id,
            fingerprint=f"fp_{method_id}",
            owner_name=customer.name,
            network="visa",
            last4="4242",
            expires="12/30",
            origin="US",
            verification_check="pass",
        )
        self.attached[method_id] = card
        return card

    def list_payment_methods(self, customer):
        return list(self.attached.values())

    def detach_payment_method(self, method_id):
        card = self.attached.pop(method_id, None)
        if card is None:
            raise GatewayError("resource_missing", f"No such PaymentMethod: {method_id}", self.gateway.value)
        return card


class FakeWalletGateway(RecordingGatewayMixin, PaymentGatewayAdapter):
    gateway = PaymentGatewayType.PAYPAL

    def __init__(self):
        self._init_recording("PAYPAL")
        self.capture_status = IntentStatus.SUCCEEDED

    def create_intent(self, order, customer, idempotency_key):
        return self._record(order, customer, idempotency_key, is_redirect=True)

    def retrieve_intent(self, external_id):
        return self._retrieve(external_id)

    def capture(self, external_id):
        return self._retrieve(external_id).model_copy(update={"status": self.capture_status})

    def verify_webhook(self, raw_payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        return json.loads(raw_payload)

    def parse_event(self, event):
        return None


# --- Fixtures ---

@pytest.fixture(scope="session")
def test_engine():
    init_db(engine)
    yield engine


@pytest.fixture(scope="function")
def db_session(test_engine) -> Session:
    """
    Fresh tables for every test function. Commits made here are visible to API
    calls made through the client in the same test.
    """
    Base.metadata.drop_all(bind=test_engine)
    init_db(test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def catalog() -> FakeCatalog:
    return FakeCatalog(
        {
            1: ProductSnapshot(id=1, name="Trail Runner", price=10000, stock=10),
            2: ProductSnapshot(id=2, name="Socks", price=1250, stock=50),
            42: ProductSnapshot(id=42, name="Sold Out Jacket", price=8900, stock=0),
            7: ProductSnapshot(id=7, name="Draft Item", price=500, stock=5, is_purchasable=False),
        }
    )


@pytest.fixture(scope="function")
def card_gateway() -> FakeCardGateway:
    return FakeCardGateway()


@pytest.fixture(scope="function")
def wallet_gateway() -> FakeWalletGateway:
    return FakeWalletGateway()


@pytest.fixture(scope="function")
def gateways(card_gateway, wallet_gateway) -> GatewayRegistry:
    return GatewayRegistry({PaymentGatewayType.STRIPE: card_gateway, PaymentGatewayType.PAYPAL: wallet_gateway})


@pytest.fixture(scope="function")
def intent_store(gateways) -> PaymentIntentStore:
    return PaymentIntentStore(gateways, claim_wait=0.5, claim_poll=0.01)


@pytest.fixture(scope="function")
def order_service(catalog, intent_store) -> OrderService:
    return OrderService(CheckoutVerifier(catalog), intent_store)


@pytest.fixture(scope="function")
def payment_method_service(gateways) -> PaymentMethodService:
    return PaymentMethodService(gateways)


@pytest.fixture(scope="function")
def client(db_session, catalog, gateways):
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_gateway_registry] = lambda: gateways
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_catalog, None)
    app.dependency_overrides.pop(get_gateway_registry, None)


@pytest.fixture(scope="function")
def customer() -> CurrentCustomer:
    return CurrentCustomer(id=101, email="ada@example.com", name="Ada Customer")


@pytest.fixture(scope="function")
def other_customer() -> CurrentCustomer:
    return CurrentCustomer(id=202, email="bob@example.com", name="Bob Customer")


@pytest.fixture(scope="function")
def admin() -> CurrentCustomer:
    return CurrentCustomer(id=1, email="admin@example.com", name="Admin", is_admin=True)


def _headers_for(person: CurrentCustomer) -> Dict[str, str]:
    token = create_access_token(
        customer_id=person.id,
        email=person.email,
        name=person.name,
        roles=["admin"] if person.is_admin else ["customer"],
        expires_delta=timedelta(minutes=5),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def customer_token_headers(customer) -> Dict[str, str]:
    return _headers_for(customer)


@pytest.fixture(scope="function")
def other_customer_token_headers(other_customer) -> Dict[str, str]:
    return _headers_for(other_customer)


@pytest.fixture(scope="function")
def admin_token_headers(admin) -> Dict[str, str]:
    return _headers_for(admin)


# --- Pricing rules ---

def create_coupon(db: Session, **overrides) -> Coupon:
    now = utcnow()
    values = dict(
        code="SAVE10",
        type="percentage",
        amount=1000,  # 10%
        minimum_cart_amount=0,
        active_from=now - timedelta(days=1),
        expire_at=now + timedelta(days=30),
        is_valid=True,
        is_approve=True,
    )
    values.update(overrides)
    coupon = Coupon(**values)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


def create_tax(db: Session, **overrides) -> Tax:
    values = dict(name="Sales tax", rate=800, is_global=True, priority=0)
    values.update(overrides)
    tax = Tax(**values)
    db.add(tax)
    db.commit()
    db.refresh(tax)
    return tax


def create_shipping(db: Session, **overrides) -> Shipping:
    values = dict(name="Standard", type="fixed", amount=599, is_global=True, priority=0)
    values.update(overrides)
    shipping = Shipping(**values)
    db.add(shipping)
    db.commit()
    db.refresh(shipping)
    return shipping


@pytest.fixture(scope="function")
def standard_rules(db_session):
    """8% global tax and 5.99 global flat shipping."""
    return create_tax(db_session), create_shipping(db_session)


@pytest.fixture(scope="function")
def ten_percent_coupon(db_session) -> Coupon:
    return create_coupon(db_session)


@pytest.fixture(scope="function")
def address() -> Dict[str, str]:
    return {
        "street_address": "1 Main St",
        "country": "US",
        "city": "Springfield",
        "state": "IL",
        "zip": "62701",
    }


@pytest.fixture(scope="function")
def make_coupon(db_session):
    return lambda **overrides: create_coupon(db_session, **overrides)


@pytest.fixture(scope="function")
def make_tax(db_session):
    return lambda **overrides: create_tax(db_session, **overrides)


@pytest.fixture(scope="function")
def make_shipping(db_session):
    return lambda **overrides: create_shipping(db_session, **overrides)


@pytest.fixture(scope="function")
def order_payload(order_service, db_session, address):
    """
    Build an order request whose totals echo a fresh quote, the way a client would
    after calling /checkout/verify.
    """
    def _build(items=None, gateway="stripe", coupon_id=None, tracking_number=None, **extra):
        items = items or [{"product_id": 1, "quantity": 1}]
        quote = order_service.verifier.price_cart(
            db_session, [CartItem(**item) for item in items], shipping_address=address, coupon_id=coupon_id
        )
        payload = {
            "items": items,
            "payment_gateway": gateway,
            "coupon_id": coupon_id,
            "shipping_address": address,
            **{field: str(to_major(value)) for field, value in quote.totals().items()},
        }
        if tracking_number is not None:
            payload["tracking_number"] = tracking_number
        payload.update(extra)
        return payload
    return _build


@pytest.fixture(scope="function")
def place_order(order_service, db_session, customer, order_payload):
    def _place(who: Optional[CurrentCustomer] = None, **kwargs):
        order_in = OrderCreate(**order_payload(**kwargs))
        return order_service.create_order(db_session, order_in, who or customer)
    return _place


@pytest.fixture(scope="function")
def webhook_receiver(gateways, order_service) -> WebhookReceiver:
    return WebhookReceiver(gateways, order_service)


@pytest.fixture(scope="function")
def stripe_event():
    def _event(tracking_number=None, event_type="payment_intent.succeeded", event_id="evt_1", created=None, intent_id="pi_test_1"):
        if event_type.startswith("charge."):
            obj = {"id": "ch_1", "object": "charge", "payment_intent": intent_id, "metadata": {}}
        else:
            obj = {"id": intent_id, "object": "payment_intent", "metadata": {}}
        if tracking_number is not None:
            obj["metadata"]["order_tracking_number"] = tracking_number
        return {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": created if created is not None else int(time.time()),
            "data": {"object": obj},
        }
    return _event


@pytest.fixture(scope="function")
def signed_stripe_webhook():
    """Sign a payload the way Stripe does: HMAC-SHA256 over "<timestamp>.<body>"."""
    def _sign(event: Dict[str, Any], secret: str = STRIPE_TEST_WEBHOOK_SECRET, timestamp: Optional[int] = None):
        payload = json.dumps(event)
        timestamp = timestamp if timestamp is not None else int(time.time())
        signature = hmac.new(
            secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return payload.encode("utf-8"), {"Stripe-Signature": f"t={timestamp},v1={signature}"}
    return _sign
