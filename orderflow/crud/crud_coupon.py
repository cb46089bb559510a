from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.core.utils import as_naive_utc
from orderflow.models.coupon import Coupon
from orderflow.schemas.common import dump_minor
from orderflow.schemas.coupon import COUPON_MONEY_FIELDS, CouponCreate, CouponUpdate


def _normalize_window(data: dict) -> dict:
    for field in ("active_from", "expire_at"):
        if data.get(field) is not None:
            data[field] = as_naive_utc(data[field])
    return data


def create_coupon(db: Session, *, obj_in: CouponCreate) -> Coupon:
    """
    Create a coupon. New coupons start unapproved.
    """
    data = _normalize_window(dump_minor(obj_in, COUPON_MONEY_FIELDS))
    db_obj = Coupon(**data, is_approve=False)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_coupon(db: Session, coupon_id: int) -> Optional[Coupon]:
    return db.query(Coupon).filter(Coupon.id == coupon_id).first()


def get_coupon_by_code(db: Session, code: str) -> Optional[Coupon]:
    return db.query(Coupon).filter(Coupon.code == code).first()


def get_coupon_by_id_or_code(db: Session, identifier: str) -> Optional[Coupon]:
    conditions = [Coupon.code == identifier]
    if identifier.isdigit():
        conditions.append(Coupon.id == int(identifier))
    return db.query(Coupon).filter(or_(*conditions)).first()


def get_coupons(
    db: Session,
    *,
    search: Optional[str] = None,
    shop_id: Optional[int] = None,
    language: Optional[str] = None,
    is_approve: Optional[bool] = None,
    skip: int = 0,
    limit: int = 30,
) -> List[Coupon]:
    query = db.query(Coupon)
    if search:
        query = query.filter(Coupon.code.like(f"%{search}%"))
    if shop_id is not None:
        query = query.filter(Coupon.shop_id == shop_id)
    if language:
        query = query.filter(Coupon.language == language)
    if is_approve is not None:
        query = query.filter(Coupon.is_approve == is_approve)
    return query.order_by(Coupon.created_at.desc(), Coupon.id.desc()).offset(skip).limit(limit).all()


def update_coupon(db: Session, *, db_obj: Coupon, obj_in: CouponUpdate) -> Coupon:
    update_data = _normalize_window(dump_minor(obj_in, COUPON_MONEY_FIELDS, exclude_unset=True))
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def set_approval(db: Session, *, db_obj: Coupon, is_approve: bool) -> Coupon:
    db_obj.is_approve = is_approve
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def delete_coupon(db: Session, *, db_obj: Coupon) -> None:
    db.delete(db_obj)
    db.commit()
