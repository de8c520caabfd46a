from datetime import datetime

from pydantic import BaseModel, Field


class ConfigurationSet(BaseModel):
    tax: int = Field(ge=0, le=100)


class ConfigurationOut(BaseModel):
    id: int
    tax: int
    updated_at: datetime

    model_config = {"from_attributes": True}
