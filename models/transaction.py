from pydantic import Field, field_validator
from datetime import datetime, timedelta
from typing import Optional

from models.common import CamelModel, normalize_type, parse_date


class TransactionBase(CamelModel):
    type: str
    amount: float = Field(gt=0)
    category_id: str
    description: Optional[str] = None
    date: datetime

    @field_validator("type", mode="before")
    @classmethod
    def uppercase_type(cls, v):
        return normalize_type(v)

    @field_validator("date", mode="before")
    @classmethod
    def parse_iso_date(cls, v):
        return parse_date(v)


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(TransactionBase):
    pass


class TransactionFilters(CamelModel):
    """Filtres de l'historique des transactions"""
    type: Optional[str] = None
    category_id: Optional[str] = None
    search: Optional[str] = None
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("type", mode="before")
    @classmethod
    def uppercase_type(cls, v):
        return normalize_type(v) if v is not None else None

    @field_validator("start_date", mode="before")
    @classmethod
    def parse_start_date(cls, v):
        return parse_date(v) if v is not None else None

    @field_validator("end_date", mode="before")
    @classmethod
    def parse_end_date(cls, v):
        # Une date seule couvre toute la journée
        if isinstance(v, str) and len(v) == 10:
            return parse_date(v) + timedelta(days=1, microseconds=-1)
        return parse_date(v) if v is not None else None
