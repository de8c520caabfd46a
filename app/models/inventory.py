from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class StockStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    LOW_STOCK = "LOW_STOCK"


class ProductUnit(str, Enum):
    PIECE = "PIECE"
    KILOGRAM = "KILOGRAM"
    GRAM = "GRAM"
    LITER = "LITER"
    MILLILITER = "MILLILITER"
    METER = "METER"
    CENTIMETER = "CENTIMETER"
    PACK = "PACK"
    BOX = "BOX"
    BOTTLE = "BOTTLE"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Product(Base):
    """A stockable item.

    ``quantity`` counts bins including the one currently being drawn from,
    ``unit_value`` is what is left in that current bin and
    ``original_unit_value`` is the nominal size of one bin. Derived items
    point at their parent through ``parent_id`` and carry a single bin
    sized to the capacity they were carved out with.
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    reference: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    final_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    status: Mapped[StockStatus] = mapped_column(SQLEnum(StockStatus), default=StockStatus.IN_STOCK, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit: Mapped[ProductUnit | None] = mapped_column(SQLEnum(ProductUnit), default=ProductUnit.PIECE, nullable=True)
    unit_value: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=1, nullable=False)
    original_unit_value: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    show_online: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_derived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"),
        index=True,
        nullable=True,
    )
    expiration_date: Mapped[str | None] = mapped_column(String(30), nullable=True)
    lot: Mapped[str | None] = mapped_column(String(50), nullable=True)
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_allocatable(self) -> bool:
        if self.is_derived:
            return False
        if self.unit is None:
            return False
        return Decimal(self.original_unit_value or 0) > 0 and Decimal(self.unit_price or 0) > 0


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    reference: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    created_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    client_id: Mapped[int | None] = mapped_column(
        ForeignKey("clients.id", ondelete="RESTRICT"),
        index=True,
        nullable=True,
    )
    voucher_reference: Mapped[str | None] = mapped_column(
        ForeignKey("vouchers.voucher_reference", ondelete="RESTRICT"),
        index=True,
        nullable=True,
    )
    payment_method: Mapped[PaymentMethod | None] = mapped_column(SQLEnum(PaymentMethod), nullable=True)
    tip: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )


class OrderLine(Base):
    __tablename__ = "product_orders"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
