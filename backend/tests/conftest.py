import os

# Point the app at a shared in-memory database before it is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "dev"
os.environ["SEED_ADMINISTRATOR"] = "true"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from noodle.database import drop_db_and_tables, engine
from noodle.main import app, bootstrap, login_limiter

ADMIN = {"username": "administrator", "password": "administrator"}


@pytest.fixture(autouse=True)
def reset_db():
    """Start every test from empty tables plus the seeded administrator."""
    drop_db_and_tables()
    bootstrap()
    login_limiter.reset()
    yield


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def client():
    return TestClient(app)


def login(client, username, password):
    return client.post("/user/login", json={"username": username, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client):
    r = login(client, ADMIN["username"], ADMIN["password"])
    assert r.status_code == 200
    return bearer(r.json()["access_token"])


@pytest.fixture
def make_account(client, admin_headers):
    """Register an account via the API and return its id and auth headers."""
    def _make(username, role="student", password="pw"):
        body = {
            "username": username,
            "password": password,
            "role": role,
            "fullname": f"{username} Name",
            "matriculationNumber": f"M-{username}",
            "mail": f"{username}@x.io",
        }
        r = client.post("/user/register", json=body, headers=admin_headers)
        assert r.status_code == 200, r.text
        token = login(client, username, password).json()["access_token"]
        return r.json()["id"], bearer(token)
    return _make
