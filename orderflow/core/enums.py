import enum


class OrderStatusType(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatusType(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentGatewayType(str, enum.Enum):
    STRIPE = "stripe"  # card-network processor
    PAYPAL = "paypal"  # wallet processor


class IntentStatus(str, enum.Enum):
    """Gateway-agnostic lifecycle of a payment intent."""
    CREATING = "creating"  # local claim only, gateway not called yet
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CouponType(str, enum.Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    FREE_SHIPPING = "free_shipping"
    DEFAULT = "default"


class ShippingType(str, enum.Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    FREE = "free"


class OrderSortColumn(str, enum.Enum):
    CREATED_AT = "CREATED_AT"
    UPDATED_AT = "UPDATED_AT"
    TOTAL = "TOTAL"
    TRACKING_NUMBER = "TRACKING_NUMBER"


class SortOrder(str, enum.Enum):
    ASC = "ASC"
    DESC = "DESC"


TERMINAL_ORDER_STATUSES = frozenset({OrderStatusType.COMPLETED, OrderStatusType.CANCELLED})

# Administrative transitions; PENDING -> PROCESSING also happens automatically on payment success
ORDER_STATUS_TRANSITIONS = {
    OrderStatusType.PENDING: {OrderStatusType.PROCESSING, OrderStatusType.CANCELLED},
    OrderStatusType.PROCESSING: {OrderStatusType.COMPLETED, OrderStatusType.CANCELLED},
    OrderStatusType.COMPLETED: set(),
    OrderStatusType.CANCELLED: set(),
}

# A failed attempt may still be followed by a successful one on the same order
PAYMENT_STATUS_TRANSITIONS = {
    PaymentStatusType.PENDING: {PaymentStatusType.SUCCESS, PaymentStatusType.FAILED},
    PaymentStatusType.FAILED: {PaymentStatusType.SUCCESS},
    PaymentStatusType.SUCCESS: {PaymentStatusType.REFUNDED},
    PaymentStatusType.REFUNDED: set(),
}
