import itertools
import os
import tempfile

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="uploads-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from database import Base, build_engine, get_db
from main import app

engine = build_engine("sqlite://", poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(client):
    counter = itertools.count(1)

    def _make(role, name=None, city="Pune", state="Maharashtra", **extra):
        n = next(counter)
        payload = {
            "name": name or f"{role.title()} Person{n}",
            "email": f"{role.lower()}{n}@example.com",
            "password": "secret123",
            "role": role,
            "phone": f"98765{n:05d}",
            "city": city,
            "state": state,
        }
        payload.update(extra)
        res = client.post("/api/auth/register", json=payload)
        assert res.status_code == 201, res.text
        body = res.json()
        return {
            "id": body["user"]["id"],
            "token": body["token"],
            "user": body["user"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _make


@pytest.fixture
def verify(db):
    def _verify(account_id, status=models.VerificationStatus.VERIFIED):
        account = db.get(models.Account, account_id)
        account.verification_status = status
        db.commit()

    return _verify
