import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import require_permission
from app.db.database import get_db
from app.models.inventory import Order
from app.models.user import User
from app.models.voucher import Voucher
from app.schemas.inventory import MessageOut
from app.schemas.voucher import VoucherCreate, VoucherOut, VoucherUpdate
from app.services.references import generate_reference

router = APIRouter(prefix="/vouchers", tags=["Vouchers"])

logger = logging.getLogger(__name__)


def _get_voucher(db: Session, voucher_id: int) -> Voucher:
    voucher = db.get(Voucher, voucher_id)
    if not voucher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Voucher not found")
    return voucher


def _is_referenced(db: Session, voucher_reference: str) -> bool:
    return db.scalar(select(Order.id).where(Order.voucher_reference == voucher_reference).limit(1)) is not None


@router.post("", response_model=VoucherOut, status_code=status.HTTP_201_CREATED)
def create_voucher(
    payload: VoucherCreate,
    _: User = Depends(require_permission("vouchers:manage")),
    db: Session = Depends(get_db),
):
    voucher = Voucher(
        voucher_reference=payload.voucher_reference or generate_reference(),
        amount=payload.amount,
        percentage=payload.percentage,
        active=payload.active,
        expired_at=payload.expired_at,
        multiple=payload.multiple,
    )
    db.add(voucher)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Voucher with this reference already exists",
        ) from exc
    db.refresh(voucher)
    logger.info(f"Voucher {voucher.voucher_reference} created")
    return voucher


@router.get("", response_model=list[VoucherOut])
def list_vouchers(
    search: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _: User = Depends(require_permission("vouchers:view")),
    db: Session = Depends(get_db),
):
    query = select(Voucher)
    if search:
        query = query.where(Voucher.voucher_reference.ilike(f"%{search.strip()}%"))
    return list(db.scalars(query.order_by(Voucher.id.desc()).offset(offset).limit(limit)).all())


@router.get("/reference/{voucher_reference}", response_model=VoucherOut)
def get_voucher_by_reference(
    voucher_reference: str,
    _: User = Depends(require_permission("vouchers:view")),
    db: Session = Depends(get_db),
):
    voucher = db.scalar(select(Voucher).where(Voucher.voucher_reference == voucher_reference))
    if not voucher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Voucher not found")
    return voucher


@router.get("/{voucher_id}", response_model=VoucherOut)
def get_voucher(
    voucher_id: int,
    _: User = Depends(require_permission("vouchers:view")),
    db: Session = Depends(get_db),
):
    return _get_voucher(db, voucher_id)


@router.put("/{voucher_id}", response_model=VoucherOut)
def update_voucher(
    voucher_id: int,
    payload: VoucherUpdate,
    _: User = Depends(require_permission("vouchers:manage")),
    db: Session = Depends(get_db),
):
    voucher = _get_voucher(db, voucher_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"amount", "percentage"})
    if "voucher_reference" in changes and changes["voucher_reference"] != voucher.voucher_reference:
        if _is_referenced(db, voucher.voucher_reference):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot rename a voucher referenced by existing orders",
            )
    for field, value in changes.items():
        if value is None and field != "expired_at":
            continue
        setattr(voucher, field, value)
    # one discount kind at a time
    voucher.amount = payload.amount
    voucher.percentage = payload.percentage

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Voucher with this reference already exists",
        ) from exc
    db.refresh(voucher)
    logger.info(f"Voucher {voucher.voucher_reference} updated")
    return voucher


@router.delete("/{voucher_id}", response_model=MessageOut)
def delete_voucher(
    voucher_id: int,
    _: User = Depends(require_permission("vouchers:manage")),
    db: Session = Depends(get_db),
):
    voucher = _get_voucher(db, voucher_id)
    if _is_referenced(db, voucher.voucher_reference):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete a voucher referenced by existing orders",
        )
    db.delete(voucher)
    db.commit()
    logger.info(f"Voucher {voucher_id} deleted")
    return MessageOut(message="Voucher deleted successfully")
