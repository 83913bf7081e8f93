from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)

def test_404_not_found():
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"

def test_dashboard_requires_session():
    response = client.get("/api/dashboard/profile")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "code": "UNAUTHORIZED", "details": None}

def test_validation_error_structure():
    # Temporary route with a typed body
    from pydantic import BaseModel

    class Item(BaseModel):
        name: str
        price: int

    @app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0

def test_custom_exception():
    from app.core.exceptions import BadRequestError

    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise BadRequestError(message="Phone number ID is required")

    response = client.get("/test-custom-error")
    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "BAD_REQUEST"
    assert data["error"] == "Phone number ID is required"

def test_live_endpoint():
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}
