from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from orderflow.db.base_class import Base


class OrderStatus(Base):
    """Display-only status label; the order_status enum on Order is authoritative."""
    __tablename__ = "order_status"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=False)
    serial = Column(Integer, nullable=False, default=0)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    language = Column(String(10), nullable=False, default="en")
    translated_languages = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<OrderStatus(id={self.id}, slug='{self.slug}', serial={self.serial})>"
