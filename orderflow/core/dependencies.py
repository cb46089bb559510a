import threading

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from typing import Optional

from orderflow.core.catalog import CatalogClient, HttpCatalogClient
from orderflow.core.checkout_verifier import CheckoutVerifier
from orderflow.core.order_service import OrderService
from orderflow.core.payment_intent_store import PaymentIntentStore
from orderflow.core.payment_method_service import PaymentMethodService
from orderflow.core.security import CurrentCustomer, decode_access_token
from orderflow.core.webhook_receiver import WebhookReceiver
from orderflow.gateways import GatewayRegistry, build_gateway_registry

# Tokens are issued by the identity service; tokenUrl only feeds the OpenAPI docs
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


def get_current_customer(token: Optional[str] = Depends(oauth2_scheme)) -> CurrentCustomer:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_access_token(token)
    except (JWTError, ValueError):
        raise credentials_exception


def get_current_admin(current_customer: CurrentCustomer = Depends(get_current_customer)) -> CurrentCustomer:
    if not current_customer.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The user doesn't have enough privileges",
        )
    return current_customer


# Service wiring; tests swap these through app.dependency_overrides

def get_catalog() -> CatalogClient:
    return HttpCatalogClient()


_gateway_registry: Optional[GatewayRegistry] = None
_gateway_registry_lock = threading.Lock()


def get_gateway_registry() -> GatewayRegistry:
    """
    One set of adapters per process, so HTTP connections and the PayPal access
    token are reused across requests.
    """
    global _gateway_registry
    with _gateway_registry_lock:
        if _gateway_registry is None:
            _gateway_registry = build_gateway_registry()
        return _gateway_registry


def close_gateway_registry() -> None:
    global _gateway_registry
    with _gateway_registry_lock:
        if _gateway_registry is not None:
            _gateway_registry.close()
            _gateway_registry = None


def get_checkout_verifier(catalog: CatalogClient = Depends(get_catalog)) -> CheckoutVerifier:
    return CheckoutVerifier(catalog)


def get_payment_intent_store(gateways: GatewayRegistry = Depends(get_gateway_registry)) -> PaymentIntentStore:
    return PaymentIntentStore(gateways)


def get_order_service(
    verifier: CheckoutVerifier = Depends(get_checkout_verifier),
    intents: PaymentIntentStore = Depends(get_payment_intent_store),
) -> OrderService:
    return OrderService(verifier, intents)


def get_webhook_receiver(
    gateways: GatewayRegistry = Depends(get_gateway_registry),
    orders: OrderService = Depends(get_order_service),
) -> WebhookReceiver:
    return WebhookReceiver(gateways, orders)


def get_payment_method_service(gateways: GatewayRegistry = Depends(get_gateway_registry)) -> PaymentMethodService:
    return PaymentMethodService(gateways)
