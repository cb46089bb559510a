from sqlalchemy import Column, Integer, BigInteger, String, DateTime, ForeignKey, JSON, event, inspect
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from orderflow.db.base_class import Base
from orderflow.core.enums import OrderStatusType, PaymentStatusType, TERMINAL_ORDER_STATUSES
from orderflow.core.exceptions import FrozenOrderError, OrderInvariantError

# Frozen once the order reaches a terminal status
MONETARY_FIELDS = ("amount", "sales_tax", "discount", "delivery_fee", "total", "paid_total")


class Order(Base):
    __tablename__ = "order"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_number = Column(String(64), nullable=False, unique=True, index=True)

    customer_id = Column(Integer, nullable=False, index=True)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    customer_contact = Column(String(64), nullable=True)
    shop_id = Column(Integer, nullable=True, index=True)

    # All amounts in minor currency units
    amount = Column(BigInteger, nullable=False)
    sales_tax = Column(BigInteger, nullable=False, default=0)
    discount = Column(BigInteger, nullable=False, default=0)
    delivery_fee = Column(BigInteger, nullable=False, default=0)
    total = Column(BigInteger, nullable=False)
    paid_total = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    order_status = Column(String(20), nullable=False, default=OrderStatusType.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatusType.PENDING.value, index=True)
    # Event time of the last applied payment status; guards against out-of-order webhooks
    payment_status_updated_at = Column(DateTime, nullable=True)

    payment_gateway = Column(String(20), nullable=False)
    altered_payment_gateway = Column(String(20), nullable=True)

    coupon_id = Column(Integer, ForeignKey("coupon.id"), nullable=True)
    status_id = Column(Integer, ForeignKey("order_status.id", ondelete="SET NULL"), nullable=True)

    billing_address = Column(JSON, nullable=True)
    shipping_address = Column(JSON, nullable=True)
    delivery_time = Column(String(100), nullable=True)
    language = Column(String(10), nullable=False, default="en")

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    lines = relationship("OrderLine", back_populates="order", cascade="all, delete-orphan", order_by="OrderLine.id")
    coupon = relationship("Coupon")
    status = relationship("OrderStatus")

    @property
    def is_frozen(self) -> bool:
        return self.order_status in {s.value for s in TERMINAL_ORDER_STATUSES}

    def __repr__(self):
        return f"<Order(id={self.id}, tracking_number='{self.tracking_number}', order_status='{self.order_status}', payment_status='{self.payment_status}')>"


class OrderLine(Base):
    """Line item snapshotted at order time; never re-derived from the catalog."""
    __tablename__ = "order_line"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("order.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(BigInteger, nullable=False)
    subtotal = Column(BigInteger, nullable=False)

    order = relationship("Order", back_populates="lines")

    def __repr__(self):
        return f"<OrderLine(order_id={self.order_id}, product_id={self.product_id}, quantity={self.quantity})>"


# Must run before _check_totals; listeners fire in registration order
@event.listens_for(Order, "before_update")
def _check_frozen(mapper, connection, target: Order):
    state = inspect(target)
    status_history = state.attrs.order_status.history
    previous_status = status_history.deleted[0] if status_history.deleted else target.order_status
    if previous_status not in {s.value for s in TERMINAL_ORDER_STATUSES}:
        return
    changed = [name for name in MONETARY_FIELDS if state.attrs[name].history.has_changes()]
    if changed:
        raise FrozenOrderError(f"Order {target.tracking_number} is {previous_status}; cannot change {', '.join(changed)}")


@event.listens_for(Order, "before_insert")
@event.listens_for(Order, "before_update")
def _check_totals(mapper, connection, target: Order):
    expected = target.amount + (target.sales_tax or 0) + (target.delivery_fee or 0) - (target.discount or 0)
    if target.total != expected:
        raise OrderInvariantError(
            f"Order {target.tracking_number}: total {target.total} != amount + sales_tax + delivery_fee - discount ({expected})"
        )
    if target.paid_total > target.total:
        raise OrderInvariantError(f"Order {target.tracking_number}: paid_total exceeds total")


@event.listens_for(OrderLine, "before_update")
@event.listens_for(OrderLine, "before_delete")
def _check_line_frozen(mapper, connection, target: OrderLine):
    order = target.order
    if order is not None and order.is_frozen:
        raise FrozenOrderError(f"Order {order.tracking_number} is {order.order_status}; line items are frozen")
