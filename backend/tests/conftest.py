import os

# must be set before `examhub` is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "dev"
os.environ["JWT_SECRET"] = "test-secret-with-enough-bytes-for-hs256"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from examhub.database import create_db_and_tables, drop_db_and_tables, engine, seed_roles
from examhub.main import app, auth_rate_limiter


@pytest.fixture(autouse=True)
def reset_db():
    """Ensure a fresh in-memory database and throttle state for every test."""
    drop_db_and_tables()
    create_db_and_tables()
    auth_rate_limiter.reset()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def seeded_roles():
    with Session(engine) as session:
        seed_roles(session)


@pytest.fixture
def auth(client):
    """Register an operator account and return its id and auth headers."""
    r = client.post('/register', json={
        'full_name': 'Operator',
        'email': 'operator@example.com',
        'password': 'operator-pass',
    })
    assert r.status_code == 201
    body = r.json()
    return {
        'user_id': body['user']['id'],
        'headers': {'Authorization': f"Bearer {body['token']}"},
    }
