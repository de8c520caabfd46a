from datetime import datetime

from pydantic import BaseModel, Field, model_validator


def _exactly_one_discount(amount, percentage) -> None:
    if (amount is None) == (percentage is None):
        raise ValueError("Provide exactly one of amount or percentage")


class VoucherCreate(BaseModel):
    voucher_reference: str | None = Field(default=None, min_length=1, max_length=20)
    amount: int | None = Field(default=None, ge=1)
    percentage: int | None = Field(default=None, ge=1, le=100)
    active: bool = True
    expired_at: datetime | None = None
    multiple: bool = True

    @model_validator(mode="after")
    def check_discount(self):
        _exactly_one_discount(self.amount, self.percentage)
        return self


class VoucherUpdate(BaseModel):
    """The discount kind is always restated, the other one is cleared."""

    voucher_reference: str | None = Field(default=None, min_length=1, max_length=20)
    amount: int | None = Field(default=None, ge=1)
    percentage: int | None = Field(default=None, ge=1, le=100)
    active: bool | None = None
    expired_at: datetime | None = None
    multiple: bool | None = None

    @model_validator(mode="after")
    def check_discount(self):
        _exactly_one_discount(self.amount, self.percentage)
        return self


class VoucherOut(BaseModel):
    id: int
    voucher_reference: str
    amount: int | None
    percentage: int | None
    active: bool
    expired_at: datetime | None
    multiple: bool
    created_at: datetime

    model_config = {"from_attributes": True}
