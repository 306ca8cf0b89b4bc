import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database.crud import create_auth_session, upsert_user
from database.database import Base, get_db
from database import models  # noqa: F401
from main import app
from models.user import UserUpsert


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def login(session_factory, user_id, email, register=True):
    """Crée une session (et l'utilisateur local) et retourne les en-têtes d'authentification"""
    db = session_factory()
    try:
        session = create_auth_session(db, user_id, email)
        if register:
            upsert_user(db, user_id, UserUpsert(email=email))
        return {'Authorization': f'Bearer {session.token}'}
    finally:
        db.close()


@pytest.fixture
def alice(session_factory):
    return login(session_factory, 'alice-id', 'alice@example.com')


@pytest.fixture
def bob(session_factory):
    return login(session_factory, 'bob-id', 'bob@example.com')


def make_category(client, headers, name='Food', type='expense'):
    response = client.post('/api/categories', json={'name': name, 'type': type}, headers=headers)
    assert response.status_code == 200
    return response.json()


def make_transaction(client, headers, category_id, amount, date, type='expense', description=None):
    response = client.post('/api/transactions', json={
        'type': type,
        'amount': amount,
        'categoryId': category_id,
        'description': description,
        'date': date,
    }, headers=headers)
    assert response.status_code == 200
    return response.json()
