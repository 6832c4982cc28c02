from fastapi.testclient import TestClient
import pytest


@pytest.fixture
def client(make_app):
    app = make_app()
    with TestClient(app) as test_client:
        yield test_client


def test_404_not_found(client):
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"


def test_validation_error_structure(client):
    from pydantic import BaseModel

    class Item(BaseModel):
        name: str
        price: int

    @client.app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


def test_custom_exception(client):
    from app.core.exceptions import NotFoundError

    @client.app.get("/test-custom-error")
    def trigger_custom_error():
        raise NotFoundError(message="Item not found")

    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "Item not found"


def test_authorization_error_maps_to_403(client):
    from app.core.exceptions import AuthorizationError

    @client.app.get("/test-denied")
    def trigger_denied():
        raise AuthorizationError()

    response = client.get("/test-denied")
    assert response.status_code == 403
    assert response.json()["code"] == "ACCESS_DENIED"
