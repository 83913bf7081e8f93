from datetime import datetime, timedelta

from bson import ObjectId

from app.services.stats_service import get_dashboard_stats, success_rating


def test_success_rating_bands():
    assert success_rating(85)["change"] == "Excellent"
    assert success_rating(60)["change"] == "Good"
    assert success_rating(10) == {"change": "Needs improvement", "changeType": "decrease"}


async def test_dashboard_stats(db, user):
    now = datetime(2024, 6, 1, 15, 0, 0)
    assistant_id = ObjectId()
    db["assistants"].sync.insert_many([
        {"_id": assistant_id, "userId": user["_id"], "vapiAssistantId": "asst_1", "name": "Front Desk",
         "status": "active"},
        {"userId": user["_id"], "vapiAssistantId": "asst_2", "name": "After Hours", "status": "inactive"},
    ])
    db["calls"].sync.insert_many([
        {"userId": user["_id"], "assistantId": assistant_id, "duration": 150, "outcome": "successful",
         "createdAt": now - timedelta(minutes=10)},
        {"userId": user["_id"], "assistantId": assistant_id, "duration": 30, "outcome": "failed",
         "createdAt": now - timedelta(days=1)},
        {"userId": user["_id"], "assistantId": ObjectId(), "duration": 0, "outcome": None,
         "createdAt": now - timedelta(days=3)},
    ])
    db["users"].sync.update_one({"_id": user["_id"]}, {"$set": {"subscription.planName": "Professional Plan"}})
    user = db["users"].sync.find_one({"_id": user["_id"]})

    result = await get_dashboard_stats(user, now=now)

    cards = {card["name"]: card for card in result["stats"]}
    assert cards["Total Calls"]["value"] == "3"
    assert cards["Total Calls"]["change"] == "+1 today"
    assert cards["Minutes Used"]["value"] == "3/250"
    assert cards["Minutes Used"]["change"] == "1% used"
    assert cards["Success Rate"]["value"] == "33%"
    assert cards["Success Rate"]["change"] == "Needs improvement"
    assert cards["Active Assistants"]["value"] == "1"
    assert cards["Active Assistants"]["change"] == "2 total"

    activity = result["recentActivity"]
    assert len(activity) == 3
    assert activity[0]["message"] == "Call completed - 2 minutes with Front Desk"
    assert activity[0]["time"] == "10 minutes ago"
    assert activity[1]["message"] == "Call failed with Front Desk"
    assert activity[2]["message"] == "Call attempted with Unknown Assistant"


def test_stats_route_with_no_data(client, user, auth_headers):
    response = client.get("/api/dashboard/stats", headers=auth_headers)

    assert response.status_code == 200
    cards = {card["name"]: card for card in response.json()["stats"]}
    assert cards["Total Calls"]["change"] == "No calls today"
    assert cards["Minutes Used"]["value"] == "0/0"
    assert cards["Minutes Used"]["change"] == "0% used"
    assert response.json()["recentActivity"] == []
