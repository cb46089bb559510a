from sqlalchemy import Column, Integer, BigInteger, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from orderflow.db.base_class import Base
from orderflow.core.enums import CouponType


class Coupon(Base):
    __tablename__ = "coupon"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default=CouponType.DEFAULT.value)
    # Minor units for fixed/default coupons, basis points for percentage coupons
    amount = Column(BigInteger, nullable=False, default=0)
    minimum_cart_amount = Column(BigInteger, nullable=False, default=0)
    active_from = Column(DateTime, nullable=False)
    expire_at = Column(DateTime, nullable=False)
    is_valid = Column(Boolean, default=True, nullable=False)
    is_approve = Column(Boolean, default=False, nullable=False)
    shop_id = Column(Integer, nullable=True, index=True)
    language = Column(String(10), nullable=False, default="en")
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Coupon(id={self.id}, code='{self.code}', type='{self.type}')>"
