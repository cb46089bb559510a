"""
PayPal Orders v2 over its REST API.

Payers are redirected to PayPal to approve; the order is captured afterwards,
either through the capture endpoint or when the capture webhook arrives.
"""
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import httpx

from orderflow.core.config import (
    GATEWAY_MAX_RETRIES,
    GATEWAY_RETRY_BACKOFF,
    GATEWAY_TIMEOUT,
    PAYPAL_BASE_URL,
    PAYPAL_CLIENT_ID,
    PAYPAL_CLIENT_SECRET,
    PAYPAL_WEBHOOK_ID,
    SHOP_URL,
)
from orderflow.core.enums import IntentStatus, PaymentGatewayType, PaymentStatusType
from orderflow.core.exceptions import GatewayError, MalformedWebhookError, WebhookSignatureError
from orderflow.core.money import format_major, to_minor
from orderflow.gateways.base import (
    CustomerRef,
    NormalizedIntent,
    PaymentGatewayAdapter,
    PaymentNotification,
    get_header,
)

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "COMPLETED": IntentStatus.SUCCEEDED,
    "VOIDED": IntentStatus.CANCELLED,
    "APPROVED": IntentStatus.PROCESSING,
}

_EVENT_STATUS = {
    "PAYMENT.CAPTURE.COMPLETED": PaymentStatusType.SUCCESS,
    "PAYMENT.CAPTURE.DENIED": PaymentStatusType.FAILED,
    "PAYMENT.CAPTURE.DECLINED": PaymentStatusType.FAILED,
    "PAYMENT.CAPTURE.REFUNDED": PaymentStatusType.REFUNDED,
    "CHECKOUT.ORDER.VOIDED": PaymentStatusType.FAILED,
}

# Transmission headers PayPal signs every webhook delivery with
_SIGNATURE_HEADERS = {
    "auth_algo": "PAYPAL-AUTH-ALGO",
    "cert_url": "PAYPAL-CERT-URL",
    "transmission_id": "PAYPAL-TRANSMISSION-ID",
    "transmission_sig": "PAYPAL-TRANSMISSION-SIG",
    "transmission_time": "PAYPAL-TRANSMISSION-TIME",
}


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed
    return parsed.astimezone(timezone.utc).replace(tzinfo=None)


def _as_object(value: Any, event_id: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise MalformedWebhookError(f"PayPal event {event_id} has a malformed resource")
    return value


class WalletGatewayAdapter(PaymentGatewayAdapter):
    gateway = PaymentGatewayType.PAYPAL

    def __init__(
        self,
        client_id: str = PAYPAL_CLIENT_ID,
        client_secret: str = PAYPAL_CLIENT_SECRET,
        webhook_id: str = PAYPAL_WEBHOOK_ID,
        base_url: str = PAYPAL_BASE_URL,
        shop_url: str = SHOP_URL,
        timeout: float = GATEWAY_TIMEOUT,
        max_retries: int = GATEWAY_MAX_RETRIES,
        retry_backoff: float = GATEWAY_RETRY_BACKOFF,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.webhook_id = webhook_id
        self.shop_url = shop_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    def close(self) -> None:
        self._client.close()

    # --- HTTP plumbing ---

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            logger.error(f"PayPal {method} {path} timed out")
            raise GatewayError("timeout", "Payment gateway timed out", self.gateway.value)
        except httpx.RequestError as e:
            logger.error(f"PayPal {method} {path} failed: {e}")
            raise GatewayError("network_error", "Payment gateway unreachable", self.gateway.value)

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        try:
            body = resp.json()
        except ValueError:
            body = {}
        code = body.get("name") or body.get("error") or f"http_{resp.status_code}"
        message = body.get("message") or body.get("error_description") or resp.text or "PayPal request failed"
        if resp.status_code == 401:
            self._access_token = None
        raise GatewayError(str(code).lower(), message, self.gateway.value)

    def _token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token
        resp = self._send(
            "POST",
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
        )
        self._raise_for_status(resp)
        body = resp.json()
        self._access_token = body["access_token"]
        # Refresh a minute early
        self._token_expires_at = time.monotonic() + max(int(body.get("expires_in", 0)) - 60, 0)
        return self._access_token

    def _request(self, method: str, path: str, *, retry: bool = False, headers: Optional[Dict[str, str]] = None, **kwargs) -> Dict[str, Any]:
        """
        Authenticated JSON call. With retry=True (idempotent reads only) network
        errors and 5xx responses are retried with exponential backoff.
        """
        attempts = self.max_retries + 1 if retry else 1
        for attempt in range(attempts):
            last = attempt == attempts - 1
            request_headers = {"Authorization": f"Bearer {self._token()}", **(headers or {})}
            try:
                resp = self._send(method, path, headers=request_headers, **kwargs)
            except GatewayError:
                if last:
                    raise
                time.sleep(self.retry_backoff * (2 ** attempt))
                continue
            if resp.status_code >= 500 and not last:
                logger.warning(f"PayPal {method} {path} returned {resp.status_code}, retrying")
                time.sleep(self.retry_backoff * (2 ** attempt))
                continue
            self._raise_for_status(resp)
            return resp.json() if resp.content else {}
        raise GatewayError("gateway_error", "PayPal request failed", self.gateway.value)

    # --- Intents ---

    def _normalize(self, body: Dict[str, Any]) -> NormalizedIntent:
        units = body.get("purchase_units") or [{}]
        unit = units[0]
        amount = unit.get("amount") or {}
        redirect = None
        for link in body.get("links", []):
            if link.get("rel") in ("payer-action", "approve"):
                redirect = link.get("href")
                break
        return NormalizedIntent(
            id=body["id"],
            status=_STATUS_MAP.get(body.get("status"), IntentStatus.PENDING),
            amount=to_minor(amount.get("value", "0")),
            currency=amount.get("currency_code", ""),
            redirect_or_secret=redirect,
            is_redirect=redirect is not None,
            raw_metadata={
                "paypal_status": body.get("status"),
                "order_tracking_number": unit.get("custom_id") or unit.get("reference_id"),
            },
        )

    def create_intent(self, order, customer: CustomerRef, idempotency_key: str) -> NormalizedIntent:
        tracking_number = order.tracking_number
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": tracking_number,
                    "custom_id": tracking_number,
                    "description": f"Order #{tracking_number}",
                    "amount": {"currency_code": order.currency, "value": format_major(order.paid_total)},
                }
            ],
            "payment_source": {
                "paypal": {
                    "email_address": customer.email,
                    "experience_context": {
                        "return_url": f"{self.shop_url}/orders/{tracking_number}/thank-you",
                        "cancel_url": f"{self.shop_url}/orders/{tracking_number}/payment",
                        "user_action": "PAY_NOW",
                    },
                }
            },
        }
        # PayPal-Request-Id makes a retried create return the original order
        body = self._request(
            "POST",
            "/v2/checkout/orders",
            json=payload,
            headers={"PayPal-Request-Id": idempotency_key, "Prefer": "return=representation"},
        )
        intent = self._normalize(body)
        logger.info(f"PayPal order {intent.id} created for order {tracking_number}")
        return intent

    def retrieve_intent(self, external_id: str) -> NormalizedIntent:
        return self._normalize(self._request("GET", f"/v2/checkout/orders/{external_id}", retry=True))

    def capture(self, external_id: str) -> NormalizedIntent:
        body = self._request(
            "POST",
            f"/v2/checkout/orders/{external_id}/capture",
            json={},
            headers={"PayPal-Request-Id": f"orderflow-capture-{external_id}", "Prefer": "return=representation"},
        )
        return self._normalize(body)

    # --- Webhooks ---

    def verify_webhook(self, raw_payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        transmission = {}
        for field, header in _SIGNATURE_HEADERS.items():
            value = get_header(headers, header)
            if not value:
                raise WebhookSignatureError(f"Missing {header} header")
            transmission[field] = value
        try:
            event = json.loads(raw_payload)
        except ValueError:
            raise MalformedWebhookError("Webhook body is not valid JSON")
        if not isinstance(event, dict):
            raise MalformedWebhookError("Webhook body is not an event object")

        result = self._request(
            "POST",
            "/v1/notifications/verify-webhook-signature",
            json={**transmission, "webhook_id": self.webhook_id, "webhook_event": event},
        )
        if result.get("verification_status") != "SUCCESS":
            logger.warning(f"Rejected PayPal webhook {event.get('id')}: {result.get('verification_status')}")
            raise WebhookSignatureError("Invalid PayPal signature")
        return event

    def parse_event(self, event: Dict[str, Any]) -> Optional[PaymentNotification]:
        event_type = event.get("event_type")
        status = _EVENT_STATUS.get(event_type)
        if status is None:
            return None
        try:
            resource = event["resource"]
            event_id = event["id"]
            event_time = _parse_time(event["create_time"])
        except (KeyError, TypeError, ValueError):
            raise MalformedWebhookError(f"PayPal event {event.get('id')} is missing required fields")
        if not isinstance(resource, dict):
            raise MalformedWebhookError(f"PayPal event {event_id} carries no resource")

        if event_type.startswith("CHECKOUT.ORDER."):
            units = resource.get("purchase_units") or [{}]
            unit = _as_object(units[0] if isinstance(units, list) else None, event_id)
            tracking_number = unit.get("custom_id") or unit.get("reference_id")
            external_id = resource.get("id")
        else:
            tracking_number = resource.get("custom_id")
            supplementary = _as_object(resource.get("supplementary_data") or {}, event_id)
            related = _as_object(supplementary.get("related_ids") or {}, event_id)
            external_id = related.get("order_id")
        if not external_id and not tracking_number:
            raise MalformedWebhookError(f"PayPal event {event_id} references no order")
        if not all(isinstance(value, str) for value in (external_id, tracking_number) if value is not None):
            raise MalformedWebhookError(f"PayPal event {event_id} has malformed identifiers")
        return PaymentNotification(
            event_id=event_id,
            event_type=event_type,
            event_time=event_time,
            payment_status=status,
            tracking_number=tracking_number,
            external_id=external_id,
        )
