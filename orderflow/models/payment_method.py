from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from orderflow.db.base_class import Base


class PaymentMethod(Base):
    """A customer's saved card. Only the gateway's reference and display details are kept."""
    __tablename__ = "payment_method"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    customer_id = Column(Integer, nullable=False, index=True)
    payment_gateway = Column(String(20), nullable=False)
    method_key = Column(String(255), unique=True, nullable=False)  # e.g. Stripe pm_...
    default_card = Column(Boolean, nullable=False, default=False)
    fingerprint = Column(String(255), nullable=True, index=True)
    owner_name = Column(String(255), nullable=True)
    network = Column(String(50), nullable=True)
    type = Column(String(50), nullable=True)
    last4 = Column(String(4), nullable=True)
    expires = Column(String(5), nullable=True)
    origin = Column(String(2), nullable=True)
    verification_check = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<PaymentMethod(id={self.id}, customer_id={self.customer_id}, network='{self.network}', last4='{self.last4}')>"
