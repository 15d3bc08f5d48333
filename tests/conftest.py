import os

# BD en memoria antes de importar la app
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from db import Base, SessionLocal, engine
from main import app
from models import User


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    def _make(username="hunter", level=1, experience=0):
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash="x",
            level=level,
            experience=experience,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def signup(client):
    def _signup(username="alice", email=None, password="secret1"):
        resp = client.post("/api/auth/signup", json={
            "username": username,
            "email": email or f"{username}@x.com",
            "password": password,
        })
        assert resp.status_code == 200, resp.text
        return resp.json()
    return _signup


@pytest.fixture
def auth_headers(signup):
    token = signup()["token"]
    return {"Authorization": f"Bearer {token}"}
