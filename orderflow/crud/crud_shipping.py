from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.models.shipping import Shipping
from orderflow.schemas.common import dump_minor
from orderflow.schemas.shipping import SHIPPING_MONEY_FIELDS, ShippingCreate, ShippingUpdate


def create_shipping(db: Session, *, obj_in: ShippingCreate) -> Shipping:
    db_obj = Shipping(**dump_minor(obj_in, SHIPPING_MONEY_FIELDS))
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_shipping(db: Session, shipping_id: int) -> Optional[Shipping]:
    return db.query(Shipping).filter(Shipping.id == shipping_id).first()


def get_shippings(
    db: Session,
    *,
    search: Optional[str] = None,
    type: Optional[str] = None,
    is_global: Optional[bool] = None,
    skip: int = 0,
    limit: int = 30,
) -> List[Shipping]:
    query = db.query(Shipping)
    if search:
        query = query.filter(Shipping.name.like(f"%{search}%"))
    if type:
        query = query.filter(Shipping.type == type)
    if is_global is not None:
        query = query.filter(Shipping.is_global == is_global)
    return query.order_by(Shipping.created_at.desc(), Shipping.id.desc()).offset(skip).limit(limit).all()


def get_all_shippings(db: Session) -> List[Shipping]:
    return db.query(Shipping).all()


def update_shipping(db: Session, *, db_obj: Shipping, obj_in: ShippingUpdate) -> Shipping:
    update_data = dump_minor(obj_in, SHIPPING_MONEY_FIELDS, exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def delete_shipping(db: Session, *, db_obj: Shipping) -> None:
    db.delete(db_obj)
    db.commit()
