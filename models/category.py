from pydantic import Field, field_validator

from models.common import CamelModel, normalize_type


class CategoryCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    type: str

    @field_validator("type", mode="before")
    @classmethod
    def uppercase_type(cls, v):
        return normalize_type(v)


class CategoryUpdate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
