import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient()["happy_thoughts_test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    """Sign up a user and return the signup response body."""
    def _signup(name="Alice", email="alice@happythoughts.io", password="secret123"):
        res = client.post("/users/signup", json={"name": name, "email": email, "password": password})
        assert res.status_code == 201, res.text
        return res.json()
    return _signup
