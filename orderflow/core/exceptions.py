"""
Domain errors raised by services and adapters.

Endpoints never build HTTP responses for these by hand; ``orderflow.main``
registers a single handler that renders ``{"detail": ..., "code": ...}``
with the class' ``status_code``.
"""
from typing import Any, Dict, List, Optional


class OrderflowError(Exception):
    status_code: int = 400
    code: str = "error"

    def __init__(self, detail: str, code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, "code": self.code}


# --- NotFound ---
class NotFoundError(OrderflowError):
    status_code = 404
    code = "not_found"


class OrderNotFound(NotFoundError):
    code = "order_not_found"

    def __init__(self, identifier: Any):
        super().__init__(f"Order {identifier} not found")


class OrderStatusNotFound(NotFoundError):
    code = "order_status_not_found"

    def __init__(self, identifier: Any):
        super().__init__(f"Order status {identifier} not found")


class TaxNotFound(NotFoundError):
    code = "tax_not_found"

    def __init__(self, tax_id: int):
        super().__init__(f"Tax with ID {tax_id} not found")


class ShippingNotFound(NotFoundError):
    code = "shipping_not_found"

    def __init__(self, shipping_id: int):
        super().__init__(f"Shipping with ID {shipping_id} not found")


class ProductNotFound(NotFoundError):
    code = "product_not_found"

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found")


class PaymentIntentNotFound(NotFoundError):
    code = "payment_intent_not_found"


class PaymentMethodNotFound(NotFoundError):
    code = "payment_method_not_found"

    def __init__(self, identifier: Any):
        super().__init__(f"Payment method {identifier} not found")


# --- Validation ---
class ValidationError(OrderflowError):
    status_code = 422
    code = "validation_error"


class ProductUnavailableError(ValidationError):
    code = "products_unavailable"

    def __init__(self, product_ids: List[int]):
        super().__init__(f"Products not available: {', '.join(str(p) for p in product_ids)}")
        self.product_ids = product_ids

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["unavailable_products"] = self.product_ids
        return data


class UnsupportedGatewayError(ValidationError):
    code = "unsupported_gateway"

    def __init__(self, gateway: Any):
        super().__init__(f"Payment gateway {gateway} is not supported")


class InvalidStatusTransition(ValidationError):
    status_code = 409
    code = "invalid_status_transition"

    def __init__(self, current: Any, requested: Any):
        super().__init__(f"Cannot move from {getattr(current, 'value', current)} to {getattr(requested, 'value', requested)}")


class FrozenOrderError(ValidationError):
    status_code = 409
    code = "order_frozen"


class OrderInvariantError(ValidationError):
    code = "order_invariant_violated"


# --- Coupons; each reason has its own code ---
class CouponError(OrderflowError):
    status_code = 422
    code = "coupon_error"


class CouponNotFound(CouponError, NotFoundError):
    status_code = 404
    code = "coupon_not_found"

    def __init__(self, identifier: Any):
        super().__init__(f"Coupon {identifier} not found")


class CouponExpired(CouponError):
    code = "coupon_expired"


class CouponNotApproved(CouponError):
    code = "coupon_not_approved"


class MinimumNotMet(CouponError):
    code = "coupon_minimum_not_met"


# --- Gateways ---
class GatewayError(OrderflowError):
    """The only error type allowed to leave a payment gateway adapter."""
    status_code = 502

    def __init__(self, code: str, message: str, gateway: Optional[str] = None):
        super().__init__(message, code=code)
        self.message = message
        self.gateway = gateway
        if code == "timeout":
            self.status_code = 504

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["gateway"] = self.gateway
        return data


class ConflictError(OrderflowError):
    """Unique-constraint race; callers recover by re-reading."""
    status_code = 409
    code = "conflict"


class StaleQuoteError(OrderflowError):
    status_code = 409
    code = "stale_quote"

    def __init__(self, detail: str, quote: Optional[Dict[str, Any]] = None):
        super().__init__(detail)
        self.quote = quote

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["quote"] = self.quote
        return data


# --- Webhooks ---
class WebhookError(OrderflowError):
    status_code = 400
    code = "webhook_rejected"


class WebhookSignatureError(WebhookError):
    code = "webhook_signature_invalid"


class MalformedWebhookError(WebhookError):
    code = "webhook_malformed"


# --- Collaborators ---
class CatalogUnavailableError(OrderflowError):
    status_code = 503
    code = "catalog_unavailable"
