from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from orderflow.db.base_class import Base


class Tax(Base):
    __tablename__ = "tax"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    rate = Column(Integer, nullable=False)  # basis points, 800 == 8%
    is_global = Column(Boolean, default=False, nullable=False)
    country = Column(String(64), nullable=True)
    state = Column(String(64), nullable=True)
    zip = Column(String(20), nullable=True)
    city = Column(String(64), nullable=True)
    priority = Column(Integer, default=0, nullable=False)
    on_shipping = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Tax(id={self.id}, name='{self.name}', rate={self.rate})>"
