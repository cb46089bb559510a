from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.core.dependencies import get_current_admin
from orderflow.core.enums import ShippingType
from orderflow.core.exceptions import ShippingNotFound
from orderflow.core.security import CurrentCustomer
from orderflow.crud import crud_shipping
from orderflow.db.session import get_db
from orderflow.schemas.shipping import Shipping, ShippingCreate, ShippingUpdate

router = APIRouter()


@router.post("/", response_model=Shipping, status_code=201)
async def create_shipping(
    shipping_in: ShippingCreate,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    return crud_shipping.create_shipping(db, obj_in=shipping_in)


@router.get("/", response_model=List[Shipping])
async def read_shippings(
    db: Session = Depends(get_db),
    search: Optional[str] = None,
    type: Optional[ShippingType] = None,
    is_global: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(30, ge=1, le=200),
):
    return crud_shipping.get_shippings(
        db, search=search, type=type.value if type else None, is_global=is_global, skip=skip, limit=limit
    )


@router.get("/{shipping_id}", response_model=Shipping)
async def read_shipping(shipping_id: int, db: Session = Depends(get_db)):
    db_shipping = crud_shipping.get_shipping(db, shipping_id)
    if db_shipping is None:
        raise ShippingNotFound(shipping_id)
    return db_shipping


@router.put("/{shipping_id}", response_model=Shipping)
async def update_shipping(
    shipping_id: int,
    shipping_in: ShippingUpdate,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_shipping = crud_shipping.get_shipping(db, shipping_id)
    if db_shipping is None:
        raise ShippingNotFound(shipping_id)
    return crud_shipping.update_shipping(db, db_obj=db_shipping, obj_in=shipping_in)


@router.delete("/{shipping_id}", status_code=204)
async def delete_shipping(
    shipping_id: int,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_shipping = crud_shipping.get_shipping(db, shipping_id)
    if db_shipping is None:
        raise ShippingNotFound(shipping_id)
    crud_shipping.delete_shipping(db, db_obj=db_shipping)
