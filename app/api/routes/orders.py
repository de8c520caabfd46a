import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.api.deps import require_permission
from app.db.database import get_db
from app.models.client import Client
from app.models.inventory import Order, OrderLine, Product
from app.models.user import User
from app.schemas.inventory import MessageOut, OrderCreate, OrderLineIn, OrderLineOut, OrderOut, OrderUpdate
from app.services.references import generate_reference
from app.services.vouchers import ensure_voucher_usable

router = APIRouter(prefix="/orders", tags=["Orders"])

logger = logging.getLogger(__name__)


def _order_out(db: Session, order: Order) -> OrderOut:
    lines = db.scalars(select(OrderLine).where(OrderLine.order_id == order.id).order_by(OrderLine.id.asc())).all()
    return OrderOut(
        id=order.id,
        reference=order.reference,
        created_by_user_id=order.created_by_user_id,
        client_id=order.client_id,
        voucher_reference=order.voucher_reference,
        payment_method=order.payment_method,
        tip=order.tip,
        paid=order.paid,
        total_price=order.total_price,
        created_at=order.created_at,
        updated_at=order.updated_at,
        lines=[OrderLineOut.model_validate(line) for line in lines],
    )


def _get_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


def _ensure_products_exist(db: Session, lines: list[OrderLineIn]) -> None:
    product_ids = {line.product_id for line in lines}
    found = set(db.scalars(select(Product.id).where(Product.id.in_(product_ids))).all())
    missing = sorted(product_ids - found)
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Products not found: {missing}",
        )


def _ensure_client_exists(db: Session, client_id: int) -> None:
    if not db.get(Client, client_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")


def _lines_total(lines: list[OrderLineIn]) -> Decimal:
    return sum((Decimal(line.quantity) * line.price for line in lines), Decimal("0"))


def _add_lines(db: Session, order_id: int, lines: list[OrderLineIn]) -> None:
    for line in lines:
        db.add(
            OrderLine(
                order_id=order_id,
                product_id=line.product_id,
                quantity=line.quantity,
                price=line.price,
            )
        )


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    current_user: User = Depends(require_permission("orders:manage")),
    db: Session = Depends(get_db),
):
    _ensure_products_exist(db, payload.products)
    if payload.client_id is not None:
        _ensure_client_exists(db, payload.client_id)
    if payload.voucher_reference:
        ensure_voucher_usable(db, payload.voucher_reference)

    total = _lines_total(payload.products)
    order = Order(
        reference=generate_reference(),
        created_by_user_id=current_user.id,
        client_id=payload.client_id,
        voucher_reference=payload.voucher_reference,
        payment_method=payload.payment_method,
        tip=payload.tip,
        paid=payload.paid,
        total_price=total,
    )
    db.add(order)
    db.flush()
    _add_lines(db, order.id, payload.products)
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.reference} created with {len(payload.products)} lines, total {total}")
    return _order_out(db, order)


@router.get("", response_model=list[OrderOut])
def list_orders(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _: User = Depends(require_permission("orders:manage")),
    db: Session = Depends(get_db),
):
    orders = db.scalars(select(Order).order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit)).all()
    return [_order_out(db, order) for order in orders]


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    _: User = Depends(require_permission("orders:manage")),
    db: Session = Depends(get_db),
):
    return _order_out(db, _get_order(db, order_id))


@router.put("/{order_id}", response_model=OrderOut)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    _: User = Depends(require_permission("orders:manage")),
    db: Session = Depends(get_db),
):
    order = _get_order(db, order_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"products"})
    if changes.get("client_id") is not None:
        _ensure_client_exists(db, changes["client_id"])
    if changes.get("voucher_reference") and changes["voucher_reference"] != order.voucher_reference:
        ensure_voucher_usable(db, changes["voucher_reference"], order_id=order.id)
    for field, value in changes.items():
        setattr(order, field, value)

    if payload.products is not None:
        _ensure_products_exist(db, payload.products)
        db.execute(delete(OrderLine).where(OrderLine.order_id == order.id))
        _add_lines(db, order.id, payload.products)
        order.total_price = _lines_total(payload.products)

    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.reference} updated: {sorted(payload.model_fields_set)}")
    return _order_out(db, order)


@router.delete("/{order_id}", response_model=MessageOut)
def delete_order(
    order_id: int,
    _: User = Depends(require_permission("orders:manage")),
    db: Session = Depends(get_db),
):
    order = _get_order(db, order_id)
    # lines first, ON DELETE CASCADE is not relied on
    db.execute(delete(OrderLine).where(OrderLine.order_id == order.id))
    db.delete(order)
    db.commit()
    logger.info(f"Order {order_id} deleted")
    return MessageOut(message="Order deleted successfully")
