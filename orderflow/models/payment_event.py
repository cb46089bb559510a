from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from orderflow.db.base_class import Base


class PaymentEvent(Base):
    """Audit log of verified gateway notifications; redelivered events hit the unique constraint."""
    __tablename__ = "payment_event"
    __table_args__ = (
        UniqueConstraint("payment_gateway", "event_id", name="uq_payment_event_gateway_event"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    payment_gateway = Column(String(20), nullable=False)
    event_id = Column(String(255), nullable=False)
    event_type = Column(String(100), nullable=False)
    tracking_number = Column(String(64), nullable=True, index=True)
    payment_status = Column(String(20), nullable=True)
    event_time = Column(DateTime, nullable=False)
    outcome = Column(String(20), nullable=True)  # applied / ignored / duplicate
    received_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<PaymentEvent(gateway='{self.payment_gateway}', event_id='{self.event_id}', type='{self.event_type}')>"
