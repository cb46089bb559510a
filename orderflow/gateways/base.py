"""
Gateway-agnostic payment intent contract.

Adapters translate every SDK or HTTP failure into ``GatewayError``; nothing
gateway-specific leaves this package.
"""
import abc
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel

from orderflow.core.enums import IntentStatus, PaymentGatewayType, PaymentStatusType


class NormalizedIntent(BaseModel):
    id: str
    status: IntentStatus
    amount: int  # minor units
    currency: str
    redirect_or_secret: Optional[str] = None
    is_redirect: bool = False
    raw_metadata: Dict[str, Any] = {}


class SavedCard(BaseModel):
    """A card stored at the gateway for a customer; the number itself never leaves it."""
    id: str
    fingerprint: Optional[str] = None
    owner_name: Optional[str] = None
    network: Optional[str] = None
    type: str = "card"
    last4: Optional[str] = None
    expires: Optional[str] = None  # MM/YY
    origin: Optional[str] = None  # issuing country
    verification_check: Optional[str] = None


@dataclass(frozen=True)
class CustomerRef:
    id: int
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class PaymentNotification:
    """A verified webhook event, reduced to what reconciliation needs."""
    event_id: str
    event_type: str
    event_time: datetime
    payment_status: PaymentStatusType
    tracking_number: Optional[str] = None
    external_id: Optional[str] = None


class PaymentGatewayAdapter(abc.ABC):
    gateway: PaymentGatewayType

    @abc.abstractmethod
    def create_intent(self, order, customer: CustomerRef, idempotency_key: str) -> NormalizedIntent:
        """Create the gateway-side intent for ``order.paid_total``. Must not be retried blindly."""

    @abc.abstractmethod
    def retrieve_intent(self, external_id: str) -> NormalizedIntent:
        """Idempotent read; adapters may retry it."""

    @abc.abstractmethod
    def verify_webhook(self, raw_payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        """Check the gateway's signature and return the decoded event. Raises WebhookSignatureError."""

    @abc.abstractmethod
    def parse_event(self, event: Dict[str, Any]) -> Optional[PaymentNotification]:
        """None for event types that carry no payment status. Raises MalformedWebhookError."""


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup that also works on plain dicts."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None
