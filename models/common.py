from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

TRANSACTION_TYPES = ("INCOME", "EXPENSE")


class CamelModel(BaseModel):
    """Schéma de base: clés JSON en camelCase, snake_case accepté en entrée"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


def normalize_type(value: Any) -> str:
    """Met en majuscules le type (income -> INCOME) et vérifie qu'il est connu"""
    if not isinstance(value, str):
        raise ValueError("type must be a string")
    normalized = value.strip().upper()
    if normalized not in TRANSACTION_TYPES:
        raise ValueError(f"type must be one of {', '.join(TRANSACTION_TYPES)}")
    return normalized


def parse_date(value: Any) -> Any:
    """Accepte YYYY-MM-DD ou un datetime ISO; les dates avec fuseau sont ramenées en UTC naïf"""
    if isinstance(value, str) and len(value) == 10:
        return datetime.strptime(value, "%Y-%m-%d")
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
