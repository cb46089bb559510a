from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.models.order import Order
from orderflow.models.order_status import OrderStatus
from orderflow.schemas.order_status import OrderStatusCreate, OrderStatusUpdate

_SORT_COLUMNS = {
    "NAME": OrderStatus.name,
    "SERIAL": OrderStatus.serial,
    "CREATED_AT": OrderStatus.created_at,
    "UPDATED_AT": OrderStatus.updated_at,
}


def create_order_status(db: Session, *, obj_in: OrderStatusCreate) -> OrderStatus:
    data = obj_in.model_dump()
    db_obj = OrderStatus(**data, translated_languages=[data["language"]])
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_order_status(db: Session, status_id: int) -> Optional[OrderStatus]:
    return db.query(OrderStatus).filter(OrderStatus.id == status_id).first()


def get_order_status_by_slug(db: Session, slug: str, *, language: Optional[str] = None) -> Optional[OrderStatus]:
    query = db.query(OrderStatus).filter(OrderStatus.slug == slug)
    if language:
        query = query.filter(OrderStatus.language == language)
    return query.first()


def get_order_statuses(
    db: Session,
    *,
    search: Optional[str] = None,
    language: Optional[str] = None,
    order_by: Optional[str] = None,
    ascending: bool = True,
    skip: int = 0,
    limit: int = 30,
) -> List[OrderStatus]:
    """
    List status labels, by serial unless another column is requested.
    """
    query = db.query(OrderStatus)
    if search:
        query = query.filter(OrderStatus.name.like(f"%{search}%"))
    if language:
        query = query.filter(OrderStatus.language == language)
    column = _SORT_COLUMNS.get(order_by or "SERIAL", OrderStatus.serial)
    query = query.order_by(column.asc() if ascending else column.desc())
    return query.offset(skip).limit(limit).all()


def update_order_status(db: Session, *, db_obj: OrderStatus, obj_in: OrderStatusUpdate) -> OrderStatus:
    update_data = obj_in.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def delete_order_status(db: Session, *, db_obj: OrderStatus) -> None:
    # Orders pointing at this label keep their order_status; only the label link goes
    db.query(Order).filter(Order.status_id == db_obj.id).update({Order.status_id: None}, synchronize_session=False)
    db.delete(db_obj)
    db.commit()
