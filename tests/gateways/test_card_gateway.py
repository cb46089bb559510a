import time
from types import SimpleNamespace

import pytest
import stripe

from orderflow.core.enums import IntentStatus, PaymentStatusType
from orderflow.core.exceptions import GatewayError, MalformedWebhookError, WebhookSignatureError
from orderflow.gateways import CardGatewayAdapter, CustomerRef

pytestmark = pytest.mark.gateways

SECRET = "whsec_test_secret"


@pytest.fixture(scope="function")
def adapter() -> CardGatewayAdapter:
    return CardGatewayAdapter(webhook_secret=SECRET, tolerance=300)


@pytest.fixture(scope="function")
def order():
    return SimpleNamespace(tracking_number="TRK-CARD-1", paid_total=10399, currency="USD")


@pytest.fixture(scope="function")
def buyer() -> CustomerRef:
    return CustomerRef(id=101, email="ada@example.com", name="Ada Customer")


def _stripe_intent(**overrides):
    values = dict(
        id="pi_123",
        status="requires_payment_method",
        amount=10399,
        currency="usd",
        client_secret="pi_123_secret_abc",
        metadata={"order_tracking_number": "TRK-CARD-1"},
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_create_intent_reuses_existing_customer(monkeypatch, adapter, order, buyer):
    calls = {}
    monkeypatch.setattr(stripe.Customer, "list", lambda **kw: SimpleNamespace(data=[SimpleNamespace(id="cus_existing")]))
    monkeypatch.setattr(stripe.Customer, "create", lambda **kw: pytest.fail("customer should not be created"))

    def fake_create(**kwargs):
        calls.update(kwargs)
        return _stripe_intent()

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

    intent = adapter.create_intent(order, buyer, "orderflow-stripe-TRK-CARD-1-0")

    assert calls["amount"] == 10399
    assert calls["currency"] == "usd"
    assert calls["customer"] == "cus_existing"
    assert calls["metadata"] == {"order_tracking_number": "TRK-CARD-1"}
    assert calls["idempotency_key"] == "orderflow-stripe-TRK-CARD-1-0"
    assert intent.id == "pi_123"
    assert intent.status == IntentStatus.PENDING
    assert intent.currency == "USD"
    assert intent.redirect_or_secret == "pi_123_secret_abc"
    assert intent.is_redirect is False
    assert intent.raw_metadata["order_tracking_number"] == "TRK-CARD-1"


def test_create_intent_creates_customer_when_missing(monkeypatch, adapter, order, buyer):
    created = {}
    monkeypatch.setattr(stripe.Customer, "list", lambda **kw: SimpleNamespace(data=[]))

    def fake_customer_create(**kwargs):
        created.update(kwargs)
        return SimpleNamespace(id="cus_new")

    monkeypatch.setattr(stripe.Customer, "create", fake_customer_create)
    monkeypatch.setattr(stripe.PaymentIntent, "create", lambda **kw: _stripe_intent(customer=kw["customer"]))

    adapter.create_intent(order, buyer, "key")

    assert created["email"] == "ada@example.com"
    assert created["metadata"] == {"customer_id": "101"}


def test_card_error_is_translated(monkeypatch, adapter, order, buyer):
    monkeypatch.setattr(stripe.Customer, "list", lambda **kw: SimpleNamespace(data=[SimpleNamespace(id="cus_1")]))

    def declined(**kwargs):
        raise stripe.CardError("Your card was declined.", "card", "card_declined")

    monkeypatch.setattr(stripe.PaymentIntent, "create", declined)

    with pytest.raises(GatewayError) as exc_info:
        adapter.create_intent(order, buyer, "key")
    assert exc_info.value.code == "card_declined"
    assert exc_info.value.gateway == "stripe"
    assert exc_info.value.status_code == 502


def test_connection_error_is_translated(monkeypatch, adapter):
    def unreachable(*args, **kwargs):
        raise stripe.APIConnectionError("Network down")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", unreachable)

    with pytest.raises(GatewayError) as exc_info:
        adapter.retrieve_intent("pi_123")
    assert exc_info.value.code == "network_error"


def test_retrieve_intent_maps_status(monkeypatch, adapter):
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", lambda intent_id: _stripe_intent(id=intent_id, status="succeeded"))
    assert adapter.retrieve_intent("pi_999").status == IntentStatus.SUCCEEDED

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", lambda intent_id: _stripe_intent(id=intent_id, status="canceled"))
    assert adapter.retrieve_intent("pi_999").status == IntentStatus.CANCELLED


# --- Webhooks ---

def test_verify_webhook_accepts_valid_signature(adapter, stripe_event, signed_stripe_webhook):
    raw, headers = signed_stripe_webhook(stripe_event("TRK-CARD-1"))
    event = adapter.verify_webhook(raw, {"stripe-signature": headers["Stripe-Signature"]})
    assert event["type"] == "payment_intent.succeeded"


def test_verify_webhook_rejects_bad_signatures(adapter, stripe_event, signed_stripe_webhook):
    raw, headers = signed_stripe_webhook(stripe_event("TRK-CARD-1"), secret="whsec_someone_else")
    with pytest.raises(WebhookSignatureError):
        adapter.verify_webhook(raw, headers)

    with pytest.raises(WebhookSignatureError):
        adapter.verify_webhook(raw, {})

    # Outside the replay tolerance window
    raw, headers = signed_stripe_webhook(stripe_event("TRK-CARD-1"), timestamp=int(time.time()) - 3600)
    with pytest.raises(WebhookSignatureError):
        adapter.verify_webhook(raw, headers)


def test_verify_webhook_rejects_tampered_body(adapter, stripe_event, signed_stripe_webhook):
    raw, headers = signed_stripe_webhook(stripe_event("TRK-CARD-1"))
    with pytest.raises(WebhookSignatureError):
        adapter.verify_webhook(raw.replace(b"TRK-CARD-1", b"TRK-CARD-2"), headers)


def test_parse_event_statuses(adapter, stripe_event):
    notification = adapter.parse_event(stripe_event("TRK-CARD-1", created=1_700_000_000))
    assert notification.payment_status == PaymentStatusType.SUCCESS
    assert notification.tracking_number == "TRK-CARD-1"
    assert notification.external_id == "pi_test_1"
    assert notification.event_time.year == 2023

    failed = adapter.parse_event(stripe_event("TRK-CARD-1", event_type="payment_intent.payment_failed"))
    assert failed.payment_status == PaymentStatusType.FAILED

    refunded = adapter.parse_event(stripe_event(event_type="charge.refunded", intent_id="pi_42"))
    assert refunded.payment_status == PaymentStatusType.REFUNDED
    assert refunded.external_id == "pi_42"
    assert refunded.tracking_number is None


def test_parse_event_ignores_unrelated_types(adapter, stripe_event):
    assert adapter.parse_event(stripe_event("TRK-CARD-1", event_type="customer.created")) is None


def test_parse_event_rejects_incomplete_events(adapter, stripe_event):
    event = stripe_event("TRK-CARD-1")
    del event["created"]
    with pytest.raises(MalformedWebhookError):
        adapter.parse_event(event)

    orphan = stripe_event(intent_id=None)
    with pytest.raises(MalformedWebhookError):
        adapter.parse_event(orphan)


@pytest.mark.parametrize("obj", ["pi_123", ["pi_123"], {"id": "pi_123", "metadata": "TRK-CARD-1"}, {"id": ["pi_123"]}])
def test_parse_event_rejects_malformed_objects(adapter, stripe_event, obj):
    event = stripe_event("TRK-CARD-1")
    event["data"]["object"] = obj
    with pytest.raises(MalformedWebhookError):
        adapter.parse_event(event)


def _stripe_card(method_id="pm_123", **card_overrides):
    card = dict(
        brand="visa",
        last4="4242",
        exp_month=4,
        exp_year=2031,
        country="US",
        fingerprint="fp_abc",
        checks=SimpleNamespace(cvc_check="pass"),
    )
    card.update(card_overrides)
    return SimpleNamespace(
        id=method_id, type="card", card=SimpleNamespace(**card), billing_details=SimpleNamespace(name="Ada Customer")
    )


def test_attach_payment_method(monkeypatch, adapter, buyer):
    calls = {}
    monkeypatch.setattr(stripe.Customer, "list", lambda **kw: SimpleNamespace(data=[SimpleNamespace(id="cus_existing")]))

    def fake_attach(method_id, **kwargs):
        calls.update(kwargs, method_id=method_id)
        return _stripe_card(method_id)

    monkeypatch.setattr(stripe.PaymentMethod, "attach", fake_attach)

    card = adapter.attach_payment_method("pm_123", buyer)

    assert calls == {"method_id": "pm_123", "customer": "cus_existing"}
    assert card.id == "pm_123"
    assert (card.network, card.last4, card.expires, card.origin) == ("visa", "4242", "04/31", "US")
    assert card.fingerprint == "fp_abc"
    assert card.owner_name == "Ada Customer"
    assert card.verification_check == "pass"


def test_list_payment_methods(monkeypatch, adapter, buyer):
    monkeypatch.setattr(stripe.Customer, "list", lambda **kw: SimpleNamespace(data=[SimpleNamespace(id="cus_existing")]))
    listed = {}

    def fake_list(**kwargs):
        listed.update(kwargs)
        return SimpleNamespace(data=[_stripe_card("pm_1"), _stripe_card("pm_2", last4="0005")])

    monkeypatch.setattr(stripe.PaymentMethod, "list", fake_list)

    cards = adapter.list_payment_methods(buyer)
    assert listed == {"customer": "cus_existing", "type": "card"}
    assert [(c.id, c.last4) for c in cards] == [("pm_1", "4242"), ("pm_2", "0005")]


def test_list_payment_methods_without_customer(monkeypatch, adapter, buyer):
    monkeypatch.setattr(stripe.Customer, "list", lambda **kw: SimpleNamespace(data=[]))
    monkeypatch.setattr(stripe.Customer, "create", lambda **kw: pytest.fail("listing must not create a customer"))
    monkeypatch.setattr(stripe.PaymentMethod, "list", lambda **kw: pytest.fail("nothing to list"))
    assert adapter.list_payment_methods(buyer) == []


def test_detach_payment_method_errors_are_translated(monkeypatch, adapter):
    def fake_detach(method_id):
        raise stripe.InvalidRequestError("No such PaymentMethod: 'pm_gone'", "payment_method", code="resource_missing")

    monkeypatch.setattr(stripe.PaymentMethod, "detach", fake_detach)
    with pytest.raises(GatewayError) as exc_info:
        adapter.detach_payment_method("pm_gone")
    assert exc_info.value.code == "resource_missing"
    assert exc_info.value.gateway == "stripe"
