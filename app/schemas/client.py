from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PositiveInt, field_validator

from app.models.client import ClientTitle, PhoneType
from app.schemas.user import EMAIL_PATTERN


class AddressIn(BaseModel):
    id: PositiveInt | None = None
    street: str = Field(min_length=1, max_length=100)
    city: str = Field(min_length=1, max_length=50)
    state: str | None = Field(default=None, max_length=50)
    postal_code: str | None = Field(default=None, max_length=20)
    country: str = Field(min_length=1, max_length=50)
    is_primary: bool = False


class PhoneNumberIn(BaseModel):
    id: PositiveInt | None = None
    phone_number: str = Field(min_length=1, max_length=20)
    phone_type: PhoneType = PhoneType.MOBILE
    is_primary: bool = False

    @field_validator("phone_type", mode="before")
    @classmethod
    def normalize_phone_type(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class ClientCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: ClientTitle | None = None
    first_name: str = Field(min_length=1, max_length=30)
    last_name: str = Field(min_length=1, max_length=30)
    email: str = Field(min_length=5, max_length=100, pattern=EMAIL_PATTERN)
    company: str | None = Field(default=None, max_length=50)
    sales: int = Field(default=0, ge=0)
    active: bool = True
    addresses: list[AddressIn] = []
    phone_numbers: list[PhoneNumberIn] = Field(
        default=[],
        validation_alias=AliasChoices("phone_numbers", "phoneNumbers"),
    )


class ClientUpdate(BaseModel):
    """Partial update. ``addresses`` and ``phone_numbers`` replace the stored lists when given."""

    model_config = ConfigDict(populate_by_name=True)

    title: ClientTitle | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=30)
    last_name: str | None = Field(default=None, min_length=1, max_length=30)
    email: str | None = Field(default=None, min_length=5, max_length=100, pattern=EMAIL_PATTERN)
    company: str | None = Field(default=None, max_length=50)
    sales: int | None = Field(default=None, ge=0)
    active: bool | None = None
    addresses: list[AddressIn] | None = None
    phone_numbers: list[PhoneNumberIn] | None = Field(
        default=None,
        validation_alias=AliasChoices("phone_numbers", "phoneNumbers"),
    )


class AddressOut(BaseModel):
    id: int
    street: str
    city: str
    state: str | None
    postal_code: str | None
    country: str
    is_primary: bool

    model_config = {"from_attributes": True}


class PhoneNumberOut(BaseModel):
    id: int
    phone_number: str
    phone_type: PhoneType
    is_primary: bool

    model_config = {"from_attributes": True}


class ClientOut(BaseModel):
    id: int
    title: ClientTitle | None
    first_name: str
    last_name: str
    email: str
    company: str | None
    sales: int
    active: bool
    created_at: datetime
    updated_at: datetime
    addresses: list[AddressOut] = []
    phone_numbers: list[PhoneNumberOut] = []
    order_ids: list[int] = []
