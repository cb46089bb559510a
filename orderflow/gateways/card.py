# Card payments through Stripe
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import stripe

from orderflow.core.config import STRIPE_WEBHOOK_SECRET, STRIPE_WEBHOOK_TOLERANCE
from orderflow.core.enums import IntentStatus, PaymentGatewayType, PaymentStatusType
from orderflow.core.exceptions import GatewayError, MalformedWebhookError, WebhookSignatureError
from orderflow.core.utils import from_timestamp
from orderflow.gateways.base import (
    CustomerRef,
    NormalizedIntent,
    PaymentGatewayAdapter,
    PaymentNotification,
    SavedCard,
    get_header,
)

logger = logging.getLogger(__name__)

TRACKING_METADATA_KEY = "order_tracking_number"

_STATUS_MAP = {
    "succeeded": IntentStatus.SUCCEEDED,
    "canceled": IntentStatus.CANCELLED,
    "processing": IntentStatus.PROCESSING,
}

_EVENT_STATUS = {
    "payment_intent.succeeded": PaymentStatusType.SUCCESS,
    "payment_intent.payment_failed": PaymentStatusType.FAILED,
    "payment_intent.canceled": PaymentStatusType.FAILED,
    "charge.refunded": PaymentStatusType.REFUNDED,
}


def _metadata_value(metadata: Any, key: str) -> Optional[str]:
    if metadata is None:
        return None
    if isinstance(metadata, dict):
        return metadata.get(key)
    return getattr(metadata, key, None)


class CardGatewayAdapter(PaymentGatewayAdapter):
    gateway = PaymentGatewayType.STRIPE

    def __init__(self, webhook_secret: str = STRIPE_WEBHOOK_SECRET, tolerance: int = STRIPE_WEBHOOK_TOLERANCE):
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def _call(self, func, *args, **kwargs):
        """Run a Stripe SDK call, translating its errors."""
        try:
            return func(*args, **kwargs)
        except stripe.CardError as e:
            raise GatewayError(e.code or "card_declined", e.user_message or str(e), self.gateway.value)
        except stripe.AuthenticationError as e:
            logger.error(f"Stripe authentication failed: {e.user_message or e}")
            raise GatewayError("authentication_failed", "Payment gateway rejected our credentials", self.gateway.value)
        except stripe.RateLimitError as e:
            raise GatewayError("rate_limited", e.user_message or str(e), self.gateway.value)
        except stripe.InvalidRequestError as e:
            raise GatewayError(e.code or "invalid_request", e.user_message or str(e), self.gateway.value)
        except stripe.APIConnectionError as e:
            logger.error(f"Could not reach Stripe: {e}")
            raise GatewayError("network_error", "Payment gateway unreachable", self.gateway.value)
        except stripe.StripeError as e:
            logger.error(f"Stripe API error: {e}", exc_info=True)
            raise GatewayError(e.code or "gateway_error", e.user_message or str(e), self.gateway.value)

    def _find_customer(self, customer: CustomerRef) -> Optional[str]:
        existing = self._call(stripe.Customer.list, email=customer.email, limit=1)
        return existing.data[0].id if existing.data else None

    def _get_or_create_customer(self, customer: CustomerRef) -> str:
        customer_id = self._find_customer(customer)
        if customer_id is not None:
            return customer_id
        created = self._call(
            stripe.Customer.create,
            email=customer.email,
            name=customer.name,
            metadata={"customer_id": str(customer.id)},
            idempotency_key=f"orderflow-customer-{customer.id}",
        )
        logger.info(f"Created Stripe customer {created.id} for customer {customer.id}")
        return created.id

    def _normalize(self, intent) -> NormalizedIntent:
        return NormalizedIntent(
            id=intent.id,
            status=_STATUS_MAP.get(intent.status, IntentStatus.PENDING),
            amount=intent.amount,
            currency=intent.currency.upper(),
            redirect_or_secret=intent.client_secret,
            is_redirect=False,
            raw_metadata={
                "stripe_status": intent.status,
                TRACKING_METADATA_KEY: _metadata_value(getattr(intent, "metadata", None), TRACKING_METADATA_KEY),
            },
        )

    def create_intent(self, order, customer: CustomerRef, idempotency_key: str) -> NormalizedIntent:
        customer_id = self._get_or_create_customer(customer)
        intent = self._call(
            stripe.PaymentIntent.create,
            amount=order.paid_total,
            currency=order.currency.lower(),
            customer=customer_id,
            payment_method_types=["card"],
            metadata={TRACKING_METADATA_KEY: order.tracking_number},
            idempotency_key=idempotency_key,
        )
        logger.info(f"Stripe PaymentIntent {intent.id} created for order {order.tracking_number}")
        return self._normalize(intent)

    def retrieve_intent(self, external_id: str) -> NormalizedIntent:
        # stripe.max_network_retries covers transient failures for this read
        return self._normalize(self._call(stripe.PaymentIntent.retrieve, external_id))

    # --- Saved cards ---

    def _normalize_card(self, method) -> SavedCard:
        card = getattr(method, "card", None)
        billing = getattr(method, "billing_details", None)
        exp_month = getattr(card, "exp_month", None)
        exp_year = getattr(card, "exp_year", None)
        return SavedCard(
            id=method.id,
            fingerprint=getattr(card, "fingerprint", None),
            owner_name=getattr(billing, "name", None),
            network=getattr(card, "brand", None),
            type=getattr(method, "type", None) or "card",
            last4=getattr(card, "last4", None),
            expires=f"{int(exp_month):02d}/{int(exp_year) % 100:02d}" if exp_month and exp_year else None,
            origin=getattr(card, "country", None),
            verification_check=getattr(getattr(card, "checks", None), "cvc_check", None),
        )

    def attach_payment_method(self, method_id: str, customer: CustomerRef) -> SavedCard:
        customer_id = self._get_or_create_customer(customer)
        method = self._call(stripe.PaymentMethod.attach, method_id, customer=customer_id)
        logger.info(f"Attached payment method {method_id} to Stripe customer {customer_id}")
        return self._normalize_card(method)

    def list_payment_methods(self, customer: CustomerRef) -> List[SavedCard]:
        customer_id = self._find_customer(customer)
        if customer_id is None:
            return []
        methods = self._call(stripe.PaymentMethod.list, customer=customer_id, type="card")
        return [self._normalize_card(method) for method in methods.data]

    def detach_payment_method(self, method_id: str) -> SavedCard:
        method = self._call(stripe.PaymentMethod.detach, method_id)
        logger.info(f"Detached payment method {method_id}")
        return self._normalize_card(method)

    def verify_webhook(self, raw_payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        signature = get_header(headers, "Stripe-Signature")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        try:
            payload = raw_payload.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedWebhookError("Webhook body is not UTF-8")
        try:
            stripe.WebhookSignature.verify_header(payload, signature, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Rejected Stripe webhook: {e}")
            raise WebhookSignatureError("Invalid Stripe signature")
        try:
            event = json.loads(payload)
        except ValueError:
            raise MalformedWebhookError("Webhook body is not valid JSON")
        if not isinstance(event, dict):
            raise MalformedWebhookError("Webhook body is not an event object")
        return event

    def parse_event(self, event: Dict[str, Any]) -> Optional[PaymentNotification]:
        event_type = event.get("type")
        status = _EVENT_STATUS.get(event_type)
        if status is None:
            return None
        try:
            obj = event["data"]["object"]
            event_id = event["id"]
            event_time = from_timestamp(int(event["created"]))
        except (KeyError, TypeError, ValueError):
            raise MalformedWebhookError(f"Stripe event {event.get('id')} is missing required fields")
        if not isinstance(obj, dict) or not isinstance(obj.get("metadata") or {}, dict):
            raise MalformedWebhookError(f"Stripe event {event_id} carries no object")

        # Refund events carry the charge; the intent id is what we stored
        external_id = obj.get("payment_intent") if event_type == "charge.refunded" else obj.get("id")
        tracking_number = _metadata_value(obj.get("metadata"), TRACKING_METADATA_KEY)
        if not external_id and not tracking_number:
            raise MalformedWebhookError(f"Stripe event {event_id} references no payment intent")
        if not all(isinstance(value, str) for value in (external_id, tracking_number) if value is not None):
            raise MalformedWebhookError(f"Stripe event {event_id} has malformed identifiers")
        return PaymentNotification(
            event_id=event_id,
            event_type=event_type,
            event_time=event_time,
            payment_status=status,
            tracking_number=tracking_number,
            external_id=external_id,
        )
