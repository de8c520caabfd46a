from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class Voucher(Base):
    """Either a fixed ``amount`` or a ``percentage`` off, never both.

    Orders point at a voucher by ``voucher_reference``. A voucher that is
    not ``multiple`` may back a single order.
    """

    __tablename__ = "vouchers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    voucher_reference: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    percentage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    multiple: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
