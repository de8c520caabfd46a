from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator

from app.models.inventory import PaymentMethod, ProductUnit, StockStatus

_STATUS_ALIASES = {
    "in stock": StockStatus.IN_STOCK,
    "out of stock": StockStatus.OUT_OF_STOCK,
    "low stock": StockStatus.LOW_STOCK,
}


def _normalize_status(value):
    if isinstance(value, str):
        return _STATUS_ALIASES.get(value.strip().lower(), value.strip().upper())
    return value


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)


class CategoryOut(BaseModel):
    id: int
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ProductCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image: str | None = Field(default=None, max_length=500)
    name: str = Field(min_length=1, max_length=50)
    reference: str | None = Field(default=None, max_length=20)
    category_id: int = Field(gt=0)
    base_price: Decimal = Field(default=Decimal("0"), ge=0)
    final_price: Decimal = Field(default=Decimal("0"), ge=0)
    status: StockStatus = StockStatus.IN_STOCK
    quantity: int = Field(default=0, ge=0)
    unit: ProductUnit = ProductUnit.PIECE
    unit_value: Decimal = Field(default=Decimal("1"), gt=0, decimal_places=3)
    original_unit_value: Decimal | None = Field(default=None, gt=0, decimal_places=3)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    show_online: bool = True
    is_derived: bool = Field(default=False, validation_alias=AliasChoices("is_derived", "sub_product"))
    parent_id: int | None = Field(default=None, gt=0)
    expiration_date: str | None = Field(default=None, max_length=30)
    lot: str | None = Field(default=None, max_length=50)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        if value is None:
            return StockStatus.IN_STOCK
        return _normalize_status(value)

    @field_validator("reference")
    @classmethod
    def normalize_reference(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        if stripped and len(stripped) < 3:
            raise ValueError("reference must be at least 3 characters")
        return stripped or None

    @model_validator(mode="after")
    def check_ledger(self):
        if self.is_derived and self.parent_id is None:
            raise ValueError("parent_id is required for a derived product")
        if (
            not self.is_derived
            and self.original_unit_value is not None
            and self.unit_value > self.original_unit_value
        ):
            raise ValueError("unit_value cannot exceed original_unit_value")
        return self


class ProductUpdate(BaseModel):
    image: str | None = Field(default=None, max_length=500)
    name: str | None = Field(default=None, min_length=1, max_length=50)
    reference: str | None = Field(default=None, min_length=3, max_length=20)
    category_id: int | None = Field(default=None, gt=0)
    base_price: Decimal | None = Field(default=None, ge=0)
    final_price: Decimal | None = Field(default=None, ge=0)
    status: StockStatus | None = None
    quantity: int | None = Field(default=None, ge=0)
    unit: ProductUnit | None = None
    unit_value: Decimal | None = Field(default=None, ge=0, decimal_places=3)
    unit_price: Decimal | None = Field(default=None, ge=0)
    show_online: bool | None = None
    expiration_date: str | None = Field(default=None, max_length=30)
    lot: str | None = Field(default=None, max_length=50)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        return _normalize_status(value)


class ProductOut(BaseModel):
    id: int
    reference: str
    name: str
    category_id: int
    base_price: Decimal
    final_price: Decimal
    status: StockStatus
    quantity: int
    unit: ProductUnit | None
    unit_value: Decimal
    original_unit_value: Decimal
    unit_price: Decimal
    show_online: bool
    is_derived: bool
    parent_id: int | None
    is_allocatable: bool
    expiration_date: str | None
    lot: str | None
    image: str | None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductDetailOut(ProductOut):
    derived_items: list[ProductOut] = []


class SubProductCreate(BaseModel):
    reference: str | None = Field(default=None, min_length=3, max_length=20)
    parent_id: int | None = Field(default=None, gt=0)
    unit_value: Decimal = Field(gt=0, decimal_places=3, description="Capacity to carve out of the parent")

    @model_validator(mode="after")
    def require_parent(self):
        if self.reference is None and self.parent_id is None:
            raise ValueError("Provide the parent reference or parent_id")
        return self


class BulkDeleteRequest(BaseModel):
    ids: list[PositiveInt] = Field(min_length=1)


class BulkDeleteOut(BaseModel):
    deleted_count: int


class MessageOut(BaseModel):
    message: str


class OrderLineIn(BaseModel):
    product_id: int = Field(gt=0)
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0)


class OrderCreate(BaseModel):
    products: list[OrderLineIn] = Field(min_length=1)
    client_id: PositiveInt | None = None
    voucher_reference: str | None = Field(default=None, min_length=1, max_length=20)
    payment_method: PaymentMethod | None = None
    tip: Decimal = Field(default=Decimal("0"), ge=0)
    paid: Decimal = Field(default=Decimal("0"), ge=0)


class OrderUpdate(BaseModel):
    """Partial update. ``products`` replaces every line and recomputes the total."""

    products: list[OrderLineIn] | None = Field(default=None, min_length=1)
    client_id: PositiveInt | None = None
    voucher_reference: str | None = Field(default=None, min_length=1, max_length=20)
    payment_method: PaymentMethod | None = None
    tip: Decimal | None = Field(default=None, ge=0)
    paid: Decimal | None = Field(default=None, ge=0)


class OrderLineOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    price: Decimal

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    id: int
    reference: str
    created_by_user_id: int | None
    client_id: int | None
    voucher_reference: str | None
    payment_method: PaymentMethod | None
    tip: Decimal
    paid: Decimal
    total_price: Decimal
    created_at: datetime
    updated_at: datetime
    lines: list[OrderLineOut] = []
