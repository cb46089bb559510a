from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.core.dependencies import get_current_admin
from orderflow.core.exceptions import TaxNotFound
from orderflow.core.security import CurrentCustomer
from orderflow.crud import crud_tax
from orderflow.db.session import get_db
from orderflow.schemas.tax import Tax, TaxCreate, TaxUpdate

router = APIRouter()


@router.post("/", response_model=Tax, status_code=201)
async def create_tax(
    tax_in: TaxCreate,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    return crud_tax.create_tax(db, obj_in=tax_in)


@router.get("/", response_model=List[Tax])
async def read_taxes(
    db: Session = Depends(get_db),
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
):
    return crud_tax.get_taxes(db, search=search, skip=skip, limit=limit)


@router.get("/{tax_id}", response_model=Tax)
async def read_tax(tax_id: int, db: Session = Depends(get_db)):
    db_tax = crud_tax.get_tax(db, tax_id)
    if db_tax is None:
        raise TaxNotFound(tax_id)
    return db_tax


@router.put("/{tax_id}", response_model=Tax)
async def update_tax(
    tax_id: int,
    tax_in: TaxUpdate,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_tax = crud_tax.get_tax(db, tax_id)
    if db_tax is None:
        raise TaxNotFound(tax_id)
    return crud_tax.update_tax(db, db_obj=db_tax, obj_in=tax_in)


@router.delete("/{tax_id}", status_code=204)
async def delete_tax(
    tax_id: int,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_tax = crud_tax.get_tax(db, tax_id)
    if db_tax is None:
        raise TaxNotFound(tax_id)
    crud_tax.delete_tax(db, db_obj=db_tax)
