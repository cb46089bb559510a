from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime
from sqlalchemy.sql import func
from orderflow.db.base_class import Base
from orderflow.core.enums import ShippingType


class Shipping(Base):
    __tablename__ = "shipping"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False, default=ShippingType.FIXED.value)
    amount = Column(BigInteger, nullable=False, default=0)  # minor units, or basis points for percentage
    is_global = Column(Boolean, default=False, nullable=False)
    country = Column(String(64), nullable=True)
    state = Column(String(64), nullable=True)
    zip = Column(String(20), nullable=True)
    city = Column(String(64), nullable=True)
    priority = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Shipping(id={self.id}, name='{self.name}', type='{self.type}')>"
