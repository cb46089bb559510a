from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload, joinedload
from typing import Dict, List, Optional

from orderflow.core.enums import OrderSortColumn, OrderStatusType, SortOrder
from orderflow.models.order import Order

_SORT_COLUMNS = {
    OrderSortColumn.CREATED_AT: Order.created_at,
    OrderSortColumn.UPDATED_AT: Order.updated_at,
    OrderSortColumn.TOTAL: Order.total,
    OrderSortColumn.TRACKING_NUMBER: Order.tracking_number,
}


def _with_relations(query):
    return query.options(
        selectinload(Order.lines),
        joinedload(Order.status),
    )


def create_order(db: Session, *, db_obj: Order) -> Order:
    """
    Persist a fully built Order (lines attached). Raises IntegrityError if the
    tracking number already exists; callers decide how to recover.
    """
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_order(db: Session, order_id: int) -> Optional[Order]:
    """
    Get a single order by ID, with lines and the status label eagerly loaded.
    """
    return _with_relations(db.query(Order)).filter(Order.id == order_id).first()


def get_order_by_tracking_number(
    db: Session, tracking_number: str, *, for_update: bool = False
) -> Optional[Order]:
    """
    Get a single order by its public tracking number.
    With for_update=True the row is locked until the transaction ends (no-op on SQLite).
    """
    query = db.query(Order).filter(Order.tracking_number == tracking_number)
    if for_update:
        query = query.with_for_update()
    else:
        query = _with_relations(query)
    return query.first()


def get_orders(
    db: Session,
    *,
    customer_id: Optional[int] = None,
    shop_id: Optional[int] = None,
    tracking_number: Optional[str] = None,
    search: Optional[str] = None,
    order_status: Optional[str] = None,
    payment_status: Optional[str] = None,
    payment_gateway: Optional[str] = None,
    order_by: OrderSortColumn = OrderSortColumn.CREATED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    skip: int = 0,
    limit: int = 30,
) -> List[Order]:
    """
    List orders with optional filters. `search` matches tracking numbers by substring,
    `tracking_number` matches exactly.
    """
    query = _with_relations(db.query(Order))
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    if shop_id is not None:
        query = query.filter(Order.shop_id == shop_id)
    if tracking_number:
        query = query.filter(Order.tracking_number == tracking_number)
    elif search:
        query = query.filter(Order.tracking_number.like(f"%{search}%"))
    if order_status:
        query = query.filter(Order.order_status == order_status)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)
    if payment_gateway:
        query = query.filter(Order.payment_gateway == payment_gateway)

    column = _SORT_COLUMNS[order_by]
    query = query.order_by(column.asc() if sort_order == SortOrder.ASC else column.desc(), Order.id.desc())
    return query.offset(skip).limit(limit).all()


def save_order(db: Session, *, db_obj: Order) -> Order:
    """
    Commit pending changes on an already loaded order.
    """
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_order_stats(db: Session, *, shop_id: Optional[int] = None) -> Dict[str, object]:
    """
    Counts per order_status and payment_status, plus revenue from non-cancelled orders.
    """
    base = db.query(Order)
    if shop_id is not None:
        base = base.filter(Order.shop_id == shop_id)

    by_order_status = dict(
        base.with_entities(Order.order_status, func.count(Order.id)).group_by(Order.order_status).all()
    )
    by_payment_status = dict(
        base.with_entities(Order.payment_status, func.count(Order.id)).group_by(Order.payment_status).all()
    )
    revenue = (
        base.filter(Order.order_status != OrderStatusType.CANCELLED.value)
        .with_entities(func.coalesce(func.sum(Order.total), 0))
        .scalar()
    )
    return {
        "total": sum(by_order_status.values()),
        "pending": by_order_status.get(OrderStatusType.PENDING.value, 0),
        "processing": by_order_status.get(OrderStatusType.PROCESSING.value, 0),
        "completed": by_order_status.get(OrderStatusType.COMPLETED.value, 0),
        "cancelled": by_order_status.get(OrderStatusType.CANCELLED.value, 0),
        "revenue": int(revenue or 0),
        "by_payment_status": by_payment_status,
    }
