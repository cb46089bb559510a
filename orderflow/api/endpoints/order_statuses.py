from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.core.dependencies import get_current_admin
from orderflow.core.exceptions import OrderStatusNotFound
from orderflow.core.security import CurrentCustomer
from orderflow.crud import crud_order_status
from orderflow.db.session import get_db
from orderflow.schemas.order_status import OrderStatus, OrderStatusCreate, OrderStatusUpdate

router = APIRouter()


@router.post("/", response_model=OrderStatus, status_code=201)
async def create_order_status(
    status_in: OrderStatusCreate,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    if crud_order_status.get_order_status_by_slug(db, status_in.slug):
        raise HTTPException(status_code=400, detail=f"Order status with slug '{status_in.slug}' already exists.")
    return crud_order_status.create_order_status(db, obj_in=status_in)


@router.get("/", response_model=List[OrderStatus])
async def read_order_statuses(
    db: Session = Depends(get_db),
    search: Optional[str] = Query(None, description="Substring of the name"),
    language: Optional[str] = None,
    order_by: Optional[str] = Query(None, pattern="^(NAME|SERIAL|CREATED_AT|UPDATED_AT)$"),
    ascending: bool = True,
    skip: int = Query(0, ge=0),
    limit: int = Query(30, ge=1, le=200),
):
    return crud_order_status.get_order_statuses(
        db, search=search, language=language, order_by=order_by, ascending=ascending, skip=skip, limit=limit
    )


@router.get("/slug/{slug}", response_model=OrderStatus)
async def read_order_status_by_slug(slug: str, language: Optional[str] = None, db: Session = Depends(get_db)):
    db_status = crud_order_status.get_order_status_by_slug(db, slug, language=language)
    if db_status is None:
        raise OrderStatusNotFound(slug)
    return db_status


@router.get("/{status_id}", response_model=OrderStatus)
async def read_order_status(status_id: int, db: Session = Depends(get_db)):
    db_status = crud_order_status.get_order_status(db, status_id)
    if db_status is None:
        raise OrderStatusNotFound(status_id)
    return db_status


@router.put("/{status_id}", response_model=OrderStatus)
async def update_order_status(
    status_id: int,
    status_in: OrderStatusUpdate,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_status = crud_order_status.get_order_status(db, status_id)
    if db_status is None:
        raise OrderStatusNotFound(status_id)
    try:
        return crud_order_status.update_order_status(db, db_obj=db_status, obj_in=status_in)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Order status with slug '{status_in.slug}' already exists.")


@router.delete("/{status_id}", status_code=204)
async def delete_order_status(
    status_id: int,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_status = crud_order_status.get_order_status(db, status_id)
    if db_status is None:
        raise OrderStatusNotFound(status_id)
    crud_order_status.delete_order_status(db, db_obj=db_status)
