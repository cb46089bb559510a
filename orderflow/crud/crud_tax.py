from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.models.tax import Tax
from orderflow.schemas.common import dump_minor
from orderflow.schemas.tax import TAX_MONEY_FIELDS, TaxCreate, TaxUpdate


def create_tax(db: Session, *, obj_in: TaxCreate) -> Tax:
    db_obj = Tax(**dump_minor(obj_in, TAX_MONEY_FIELDS))
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_tax(db: Session, tax_id: int) -> Optional[Tax]:
    return db.query(Tax).filter(Tax.id == tax_id).first()


def get_taxes(db: Session, *, search: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Tax]:
    query = db.query(Tax)
    if search:
        query = query.filter(Tax.name.like(f"%{search}%"))
    return query.order_by(Tax.priority.desc(), Tax.id.asc()).offset(skip).limit(limit).all()


def get_all_taxes(db: Session) -> List[Tax]:
    """
    Every rule; the calculator filters by destination in Python.
    """
    return db.query(Tax).all()


def update_tax(db: Session, *, db_obj: Tax, obj_in: TaxUpdate) -> Tax:
    update_data = dump_minor(obj_in, TAX_MONEY_FIELDS, exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def delete_tax(db: Session, *, db_obj: Tax) -> None:
    db.delete(db_obj)
    db.commit()
