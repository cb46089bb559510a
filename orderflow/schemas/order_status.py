from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class OrderStatusBase(BaseModel):
    name: str = Field(..., max_length=100)
    color: str = Field(..., max_length=20)
    serial: int = Field(default=0, ge=0)
    slug: str = Field(..., max_length=100, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    language: str = Field(default="en", max_length=10)


class OrderStatusCreate(OrderStatusBase):
    pass


class OrderStatusUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    color: Optional[str] = Field(default=None, max_length=20)
    serial: Optional[int] = Field(default=None, ge=0)
    slug: Optional[str] = Field(default=None, max_length=100, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    language: Optional[str] = Field(default=None, max_length=10)


class OrderStatus(OrderStatusBase):
    id: int
    translated_languages: Optional[List[str]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
