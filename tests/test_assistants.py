import json
from datetime import datetime, timedelta

import httpx
import pytest
import respx
from bson import ObjectId

from app.core.exceptions import ResourceNotFoundError
from app.services import assistant_service
from tests.helpers import VAPI_URL


@pytest.fixture
def vapi():
    with respx.mock(base_url=VAPI_URL, assert_all_called=False) as mock:
        yield mock


def _assistant(db, user, **fields):
    document = {
        "_id": ObjectId(),
        "userId": user["_id"],
        "vapiAssistantId": f"asst_{ObjectId()}",
        "name": "Front Desk",
        "description": "",
        "type": "customer_service",
        "status": "active",
        "configuration": {},
        "phoneNumber": None,
        "createdAt": datetime(2024, 5, 1),
        **fields,
    }
    db["assistants"].sync.insert_one(document)
    return document


async def test_list_assistants_with_call_stats(db, user):
    now = datetime(2024, 6, 1, 12, 0, 0)
    busy = _assistant(db, user, name="Busy", createdAt=datetime(2024, 5, 2))
    _assistant(db, user, name="Quiet", status="inactive", createdAt=datetime(2024, 5, 1))
    _assistant(db, {"_id": ObjectId()}, name="Not mine")
    db["calls"].sync.insert_many([
        {"assistantId": busy["_id"], "duration": 95, "outcome": "successful", "createdAt": now - timedelta(hours=2)},
        {"assistantId": busy["_id"], "duration": 25, "outcome": "failed", "createdAt": now - timedelta(days=2)},
    ])

    result = await assistant_service.list_assistants(user, now=now)

    names = [a["name"] for a in result["assistants"]]
    assert names == ["Busy", "Quiet"]
    first = result["assistants"][0]
    assert first["totalCalls"] == 2
    assert first["callsToday"] == 1
    assert first["avgDuration"] == "1:00"
    assert first["successRate"] == 50.0
    assert first["lastActive"] == "2 hours ago"
    assert first["createdAt"] == "2024-05-02"
    quiet = result["assistants"][1]
    assert quiet["lastActive"] == "Never"
    assert quiet["avgDuration"] == "0:00"
    assert result["stats"] == {
        "totalAssistants": 2,
        "activeAssistants": 1,
        "totalCallsToday": 1,
        "avgSuccessRate": 25.0,
    }


def test_create_assistant_requires_name_and_type(client, user, auth_headers):
    response = client.post("/api/dashboard/assistants", json={"name": "Only name"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Name and type are required"


def test_create_assistant_with_phone_line(client, db, user, auth_headers, vapi):
    create = vapi.post("/assistant").mock(return_value=httpx.Response(201, json={"id": "asst_remote"}))
    phone = vapi.post("/phone-number").mock(return_value=httpx.Response(
        201, json={"id": "pn_1", "number": "+15550001111", "status": "active"}
    ))

    response = client.post(
        "/api/dashboard/assistants",
        json={"name": "Front Desk", "type": "customer_service", "configuration": {"voice": "nova"}},
        headers=auth_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Assistant created successfully"
    assert body["assistant"]["status"] == "inactive"
    assert body["assistant"]["phoneNumber"]["number"] == "+15550001111"
    assert "warning" not in body

    sent = json.loads(create.calls.last.request.content)
    assert sent["voice"]["voiceId"] == "nova"
    assert sent["model"]["messages"][0]["content"].startswith("You are Front Desk, a helpful customer service")
    assert create.calls.last.request.headers["Authorization"] == "Bearer vapi_test_key"
    phone_payload = json.loads(phone.calls.last.request.content)
    assert phone_payload["assistantId"] == "asst_remote"
    assert phone_payload["metadata"] == {"userEmail": "jane@acme.com", "userId": str(user["_id"])}

    stored = db["assistants"].sync.find_one({"vapiAssistantId": "asst_remote"})
    assert stored["userId"] == user["_id"]
    assert stored["status"] == "inactive"


def test_create_assistant_phone_failure_becomes_warning(client, db, user, auth_headers, vapi):
    vapi.post("/assistant").mock(return_value=httpx.Response(201, json={"id": "asst_remote"}))
    vapi.post("/phone-number").mock(return_value=httpx.Response(400, text="Free number limit reached"))

    response = client.post(
        "/api/dashboard/assistants",
        json={"name": "Front Desk", "type": "sales"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["assistant"]["phoneNumber"] is None
    assert body["warning"] == (
        "Assistant created but phone number failed: Phone number limit reached (max 10 free numbers)"
    )


def test_create_assistant_vapi_failure_is_500(client, db, user, auth_headers, vapi):
    vapi.post("/assistant").mock(return_value=httpx.Response(401, json={"message": "Invalid key"}))

    response = client.post(
        "/api/dashboard/assistants",
        json={"name": "Front Desk", "type": "sales", "createPhoneNumber": False},
        headers=auth_headers,
    )

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to create assistant in Vapi. Please check your API configuration."
    assert db["assistants"].sync.count_documents({}) == 0


def test_update_assistant_status(client, db, user, auth_headers):
    assistant = _assistant(db, user, status="inactive")

    response = client.patch(
        f"/api/dashboard/assistants/{assistant['_id']}",
        json={"status": "active", "description": "Now live"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["assistant"]["status"] == "active"
    stored = db["assistants"].sync.find_one({"_id": assistant["_id"]})
    assert stored["status"] == "active"
    assert stored["description"] == "Now live"
    assert stored["name"] == "Front Desk"


def test_update_assistant_rejects_unknown_status(client, db, user, auth_headers):
    assistant = _assistant(db, user)

    response = client.patch(
        f"/api/dashboard/assistants/{assistant['_id']}", json={"status": "sleeping"}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid status. Must be: active, inactive, or training"


def test_other_users_assistant_is_not_found(client, db, user, auth_headers):
    foreign = _assistant(db, {"_id": ObjectId()})

    patch = client.patch(f"/api/dashboard/assistants/{foreign['_id']}", json={"name": "x"}, headers=auth_headers)
    delete = client.delete(f"/api/dashboard/assistants/{foreign['_id']}", headers=auth_headers)
    garbage = client.delete("/api/dashboard/assistants/not-an-id", headers=auth_headers)

    assert patch.status_code == delete.status_code == garbage.status_code == 404
    assert delete.json()["error"] == "Assistant not found or access denied"
    assert db["assistants"].sync.count_documents({"_id": foreign["_id"]}) == 1


def test_delete_assistant(client, db, user, auth_headers):
    assistant = _assistant(db, user)

    response = client.delete(f"/api/dashboard/assistants/{assistant['_id']}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"message": "Assistant deleted successfully"}
    assert db["assistants"].sync.count_documents({}) == 0


async def test_import_assistants_skips_known_and_attaches_numbers(db, user, vapi):
    _assistant(db, user, vapiAssistantId="asst_known")
    vapi.get("/assistant").mock(return_value=httpx.Response(200, json=[
        {"id": "asst_known", "name": "Known"},
        {"id": "asst_new", "name": "Imported One", "voice": {"voiceId": "echo"},
         "tools": [{"type": "retrieval"}]},
    ]))
    vapi.get("/phone-number").mock(return_value=httpx.Response(200, json=[
        {"id": "pn_9", "number": "+15559990000", "status": "active", "assistantId": "asst_new"},
    ]))

    result = await assistant_service.import_assistants(user)

    assert result["imported"] == 1
    assert result["message"] == "Successfully imported 1 assistants"
    stored = db["assistants"].sync.find_one({"vapiAssistantId": "asst_new"})
    assert stored["type"] == "knowledge_base"
    assert stored["status"] == "active"
    assert stored["configuration"]["voice"] == "echo"
    assert stored["phoneNumber"]["id"] == "pn_9"


async def test_import_assistants_nothing_new(db, user, vapi):
    _assistant(db, user, vapiAssistantId="asst_known")
    vapi.get("/assistant").mock(return_value=httpx.Response(200, json={"data": [{"id": "asst_known"}]}))

    result = await assistant_service.import_assistants(user)

    assert result == {"message": "No new assistants found to import", "imported": 0}


async def test_get_owned_assistant_rejects_invalid_id(db, user):
    with pytest.raises(ResourceNotFoundError):
        await assistant_service.get_owned_assistant(user, "zzz")
