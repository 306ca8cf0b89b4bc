#!/usr/bin/env python3
"""
Émet une session pour un sujet du fournisseur d'identité et affiche son jeton

L'intégration du fournisseur (webhook de connexion, job de synchronisation) appelle
create_auth_session de la même façon; ce script sert au déploiement et au support.

    python issue_session.py <user_id> --email alice@example.com --ttl-hours 12
"""
import argparse
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from database.crud import create_auth_session
from database.database import SessionLocal, init_db


def main(user_id: str, email: Optional[str] = None, ttl_hours: Optional[float] = None,
         session_factory=SessionLocal) -> str:
    db = session_factory()
    try:
        ttl = timedelta(hours=ttl_hours) if ttl_hours is not None else None
        session = create_auth_session(db, user_id, email, ttl=ttl)
        return session.token
    finally:
        db.close()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Issue an API session token for an identity provider subject.')
    parser.add_argument('user_id', help='Subject id from the identity provider')
    parser.add_argument('--email', default=None)
    parser.add_argument('--ttl-hours', type=float, default=None,
                        help='Session lifetime, SESSION_TTL_HOURS when omitted')
    args = parser.parse_args()
    init_db()
    print(main(args.user_id, args.email, args.ttl_hours))
