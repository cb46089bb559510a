from .common import Address
from .checkout import CartItem, CheckoutVerify, Quote
from .order_status import OrderStatusBase, OrderStatusCreate, OrderStatusUpdate, OrderStatus
from .order import OrderCreate, OrderStatusUpdate as OrderStatusChange, OrderLine, Order, OrderStats
from .coupon import CouponBase, CouponCreate, CouponUpdate, Coupon, CouponVerifyRequest, CouponVerifyResponse
from .tax import TaxBase, TaxCreate, TaxUpdate, Tax
from .shipping import ShippingBase, ShippingCreate, ShippingUpdate, Shipping
from .payment import PaymentIntentCreateRequest, PaymentIntentInfo, PaymentIntent, PaymentEvent, WebhookAck, intent_response
from .payment_method import PaymentMethodCreate, DefaultCardRequest, PaymentMethod as SavedPaymentMethod
