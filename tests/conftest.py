import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app

PASSWORD = "Secr3t!pass"


@pytest.fixture
def db():
    database = mongomock.MongoClient()["shop_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    # no context manager: the lifespan would try to reach a real server
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, name="Ann", email="ann@example.com", password=PASSWORD):
    return client.post("/users/register", json={"name": name, "email": email, "password": password})


def login(client, email="ann@example.com", password=PASSWORD):
    return client.post("/users/login", json={"email": email, "password": password})


@pytest.fixture
def token(client):
    register(client)
    return login(client).json()["data"]["access_token"]


@pytest.fixture
def auth_headers(token):
    return {"x-auth-token": token}
