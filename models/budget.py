from pydantic import Field
from typing import Optional

from models.common import CamelModel


class BudgetCreate(CamelModel):
    category_id: str
    limit: float = Field(ge=0)
    # Mois/année courants si non précisés
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = None


class BudgetUpdate(CamelModel):
    limit: float = Field(ge=0)
