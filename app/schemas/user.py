from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.models.user import UserRole

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserCreate(BaseModel):
    email: str = Field(min_length=5, max_length=100, pattern=EMAIL_PATTERN)
    first_name: str = Field(min_length=1, max_length=30)
    last_name: str = Field(min_length=1, max_length=30)
    password: str = Field(min_length=6, max_length=100)
    role: UserRole = UserRole.CASHIER

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class UserUpdate(BaseModel):
    email: str | None = Field(default=None, min_length=5, max_length=100, pattern=EMAIL_PATTERN)
    first_name: str | None = Field(default=None, min_length=1, max_length=30)
    last_name: str | None = Field(default=None, min_length=1, max_length=30)
    password: str | None = Field(default=None, min_length=6, max_length=100)
    role: UserRole | None = None


class UserOut(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole
    created_at: datetime

    model_config = {"from_attributes": True}
