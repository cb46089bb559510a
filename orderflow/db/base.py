# Import every model so Base.metadata knows all tables before create_all
from orderflow.db.base_class import Base  # noqa: F401
from orderflow.models.coupon import Coupon  # noqa: F401
from orderflow.models.order import Order, OrderLine  # noqa: F401
from orderflow.models.order_status import OrderStatus  # noqa: F401
from orderflow.models.payment_event import PaymentEvent  # noqa: F401
from orderflow.models.payment_intent import PaymentIntent  # noqa: F401
from orderflow.models.payment_method import PaymentMethod  # noqa: F401
from orderflow.models.shipping import Shipping  # noqa: F401
from orderflow.models.tax import Tax  # noqa: F401


def init_db(bind) -> None:
    """Create all tables on the given engine. Migrations are out of scope."""
    Base.metadata.create_all(bind=bind)
