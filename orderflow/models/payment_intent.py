from sqlalchemy import Column, Integer, BigInteger, String, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func
from orderflow.db.base_class import Base
from orderflow.core.enums import IntentStatus


class PaymentIntent(Base):
    """
    Local mirror of a gateway payment intent. One row per (tracking_number, gateway);
    the unique constraint is what settles concurrent get-or-create calls.
    """
    __tablename__ = "payment_intent"
    __table_args__ = (
        UniqueConstraint("tracking_number", "payment_gateway", name="uq_payment_intent_tracking_gateway"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_number = Column(String(64), nullable=False, index=True)
    payment_gateway = Column(String(20), nullable=False)
    external_id = Column(String(255), nullable=True, index=True)  # NULL while the claim is in flight
    client_secret = Column(String(255), nullable=True)
    redirect_url = Column(String(1024), nullable=True)
    amount = Column(BigInteger, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=IntentStatus.CREATING.value)
    raw_metadata = Column(JSON, nullable=True)
    attempt = Column(Integer, nullable=False, default=0)  # bumped on explicit recall
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def is_redirect(self) -> bool:
        return self.redirect_url is not None

    def __repr__(self):
        return f"<PaymentIntent(tracking_number='{self.tracking_number}', gateway='{self.payment_gateway}', external_id='{self.external_id}', status='{self.status}')>"
