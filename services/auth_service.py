"""
Authentification des requêtes par jeton de session
Les sessions sont émises par le fournisseur d'identité externe; l'API ne fait que les retrouver
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from database.crud import get_active_auth_session
from database.database import get_db

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    id: str
    email: Optional[str] = None


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extrait le jeton d'un en-tête 'Authorization: Bearer <jeton>'"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> AuthenticatedUser:
    """Dependency: retourne l'utilisateur de la session ou lève une 401"""
    token = extract_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    session = get_active_auth_session(db, token)
    if not session:
        logger.warning("Session inconnue ou expirée")
        raise HTTPException(status_code=401, detail="Unauthorized")

    return AuthenticatedUser(id=session.user_id, email=session.email)
