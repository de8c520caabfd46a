import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.inventory import Order
from app.models.voucher import Voucher
from app.services.errors import NotFoundError, VoucherUnavailableError

logger = logging.getLogger(__name__)


def ensure_voucher_usable(db: Session, voucher_reference: str, *, order_id: int | None = None) -> Voucher:
    """Check that ``voucher_reference`` may back an order.

    ``order_id`` is the order being edited, its own use of the voucher does
    not count against a single-use voucher.
    """
    voucher = db.scalar(select(Voucher).where(Voucher.voucher_reference == voucher_reference))
    if not voucher:
        raise NotFoundError(f"Voucher {voucher_reference} not found")
    if not voucher.active:
        raise VoucherUnavailableError(f"Voucher {voucher_reference} is inactive", ids=[voucher.id])
    if voucher.expired_at and voucher.expired_at < datetime.utcnow():
        raise VoucherUnavailableError(f"Voucher {voucher_reference} has expired", ids=[voucher.id])
    if not voucher.multiple:
        query = select(Order.id).where(Order.voucher_reference == voucher_reference)
        if order_id is not None:
            query = query.where(Order.id != order_id)
        if db.scalar(query.limit(1)) is not None:
            raise VoucherUnavailableError(
                f"Voucher {voucher_reference} can only be used once and has already been used",
                ids=[voucher.id],
            )
    logger.debug(f"Voucher {voucher_reference} accepted")
    return voucher
