from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from orderflow.core.coupon_validator import CouponValidator
from orderflow.core.dependencies import get_current_admin
from orderflow.core.exceptions import CouponNotFound
from orderflow.core.money import to_minor
from orderflow.core.security import CurrentCustomer
from orderflow.crud import crud_coupon
from orderflow.db.session import get_db
from orderflow.schemas.coupon import Coupon, CouponCreate, CouponUpdate, CouponVerifyRequest, CouponVerifyResponse

router = APIRouter()


@router.post("/", response_model=Coupon, status_code=201)
async def create_coupon(
    coupon_in: CouponCreate,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    """
    Create a coupon. It cannot be redeemed until an admin approves it.
    """
    if crud_coupon.get_coupon_by_code(db, coupon_in.code):
        raise HTTPException(status_code=400, detail=f"Coupon code '{coupon_in.code}' already exists.")
    return crud_coupon.create_coupon(db, obj_in=coupon_in)


@router.get("/", response_model=List[Coupon])
async def read_coupons(
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
    search: Optional[str] = Query(None, description="Substring of the code"),
    shop_id: Optional[int] = None,
    language: Optional[str] = None,
    is_approve: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(30, ge=1, le=200),
):
    return crud_coupon.get_coupons(
        db, search=search, shop_id=shop_id, language=language, is_approve=is_approve, skip=skip, limit=limit
    )


@router.post("/verify", response_model=CouponVerifyResponse)
async def verify_coupon(payload: CouponVerifyRequest, db: Session = Depends(get_db)):
    """
    Check a code against a cart subtotal. Failures come back with the specific reason code.
    """
    result = CouponValidator().validate(db, payload.code, to_minor(payload.subtotal))
    return CouponVerifyResponse(
        is_valid=True,
        discount=result.discount,
        free_shipping=result.free_shipping,
        coupon=Coupon.model_validate(crud_coupon.get_coupon(db, result.coupon_id)),
    )


@router.get("/{identifier}", response_model=Coupon)
async def read_coupon(identifier: str, db: Session = Depends(get_db)):
    """
    Look a coupon up by numeric id or by code.
    """
    db_coupon = crud_coupon.get_coupon_by_id_or_code(db, identifier)
    if db_coupon is None:
        raise CouponNotFound(identifier)
    return db_coupon


@router.put("/{coupon_id}", response_model=Coupon)
async def update_coupon(
    coupon_id: int,
    coupon_in: CouponUpdate,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_coupon = crud_coupon.get_coupon(db, coupon_id)
    if db_coupon is None:
        raise CouponNotFound(coupon_id)
    return crud_coupon.update_coupon(db, db_obj=db_coupon, obj_in=coupon_in)


@router.post("/{coupon_id}/approve", response_model=Coupon)
async def approve_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_coupon = crud_coupon.get_coupon(db, coupon_id)
    if db_coupon is None:
        raise CouponNotFound(coupon_id)
    return crud_coupon.set_approval(db, db_obj=db_coupon, is_approve=True)


@router.post("/{coupon_id}/disapprove", response_model=Coupon)
async def disapprove_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_coupon = crud_coupon.get_coupon(db, coupon_id)
    if db_coupon is None:
        raise CouponNotFound(coupon_id)
    return crud_coupon.set_approval(db, db_obj=db_coupon, is_approve=False)


@router.delete("/{coupon_id}", status_code=204)
async def delete_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    current_admin: CurrentCustomer = Depends(get_current_admin),
):
    db_coupon = crud_coupon.get_coupon(db, coupon_id)
    if db_coupon is None:
        raise CouponNotFound(coupon_id)
    crud_coupon.delete_coupon(db, db_obj=db_coupon)
