from mongomock.collection import Collection
from fastapi.testclient import TestClient
from pymongo.errors import OperationFailure

from main import app

MISSING_ID = "64b7f0c2a1b2c3d4e5f60718"


def create_category(client, headers, name="Electronics", description="Gadgets"):
    return client.post("/categories", json={"name": name, "description": description}, headers=headers)


def test_create_category(client, auth_headers):
    res = create_category(client, auth_headers)
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "SUCCESS"
    assert body["msg"] == "New Category is Created!"
    assert body["data"]["name"] == "Electronics"
    assert body["data"]["sub_categories"] == []


def test_create_category_twice(client, auth_headers):
    assert create_category(client, auth_headers).status_code == 201
    res = create_category(client, auth_headers)
    assert res.status_code == 401
    assert res.json() == {"status": "FAILED", "data": None, "msg": "Category is already exists!"}


def test_create_category_without_token(client, db):
    res = create_category(client, {})
    assert res.status_code == 401
    assert res.json()["msg"] == "No Token Provided!"
    assert db["category"].count_documents({}) == 0


def test_create_category_with_bad_token(client):
    res = create_category(client, {"x-auth-token": "not.a.token"})
    assert res.status_code == 401
    assert res.json()["msg"] == "Unauthorized!, its an invalid token"


def test_token_is_checked_before_form(client):
    res = client.post("/categories", json={}, headers={})
    assert res.status_code == 401


def test_create_category_validation(client, auth_headers):
    res = client.post("/categories", json={"name": "  ", "description": ""}, headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["msg"] == "Name is required\nDescription is required"


def test_create_sub_category(client, auth_headers):
    category_id = create_category(client, auth_headers).json()["data"]["id"]
    res = client.post(f"/categories/{category_id}", json={"name": "Phones", "description": "Mobile"}, headers=auth_headers)
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["id"] == category_id
    assert [s["name"] for s in data["sub_categories"]] == ["Phones"]


def test_create_sub_category_unknown_category(client, auth_headers):
    res = client.post(f"/categories/{MISSING_ID}", json={"name": "Phones", "description": "Mobile"}, headers=auth_headers)
    assert res.status_code == 404
    assert res.json()["msg"] == "Category is not exists!"


def test_create_sub_category_twice(client, auth_headers):
    category_id = create_category(client, auth_headers).json()["data"]["id"]
    payload = {"name": "Phones", "description": "Mobile"}
    client.post(f"/categories/{category_id}", json=payload, headers=auth_headers)
    res = client.post(f"/categories/{category_id}", json=payload, headers=auth_headers)
    assert res.status_code == 401
    assert res.json()["msg"] == "SubCategory is already exists!"


def test_list_categories_is_public_and_populated(client, auth_headers):
    category_id = create_category(client, auth_headers).json()["data"]["id"]
    create_category(client, auth_headers, name="Books", description="Paper")
    client.post(f"/categories/{category_id}", json={"name": "Laptops", "description": "Portable"}, headers=auth_headers)
    res = client.get("/categories")
    assert res.status_code == 200
    categories = {c["name"]: c for c in res.json()["data"]}
    assert set(categories) == {"Electronics", "Books"}
    assert categories["Electronics"]["sub_categories"][0]["name"] == "Laptops"
    assert categories["Books"]["sub_categories"] == []


def test_create_category_malformed_json(client, auth_headers):
    res = client.post("/categories", content="{bad", headers={**auth_headers, "Content-Type": "application/json"})
    assert res.status_code == 400
    assert res.json() == {"status": "FAILED", "data": None, "msg": "Invalid JSON body"}


def test_sub_category_removed_when_link_fails(client, auth_headers, db, monkeypatch):
    category_id = create_category(client, auth_headers).json()["data"]["id"]

    def failing_update(self, *args, **kwargs):
        raise OperationFailure("write failed")

    monkeypatch.setattr(Collection, "update_one", failing_update)
    res = TestClient(app, raise_server_exceptions=False).post(
        f"/categories/{category_id}", json={"name": "Phones", "description": "Mobile"}, headers=auth_headers
    )
    assert res.status_code == 500
    assert res.json()["msg"] == "Server Error"
    assert db["subcategory"].count_documents({}) == 0
