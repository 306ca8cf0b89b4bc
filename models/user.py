from pydantic import EmailStr
from typing import Optional

from models.common import CamelModel


class UserUpsert(CamelModel):
    # Sujet du fournisseur d'identité, l'identité de la session par défaut
    id: Optional[str] = None
    email: EmailStr
    name: Optional[str] = None
