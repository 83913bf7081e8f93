def test_profile_requires_session(client):
    response = client.get("/api/dashboard/profile")

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "code": "UNAUTHORIZED", "details": None}


def test_profile_rejects_forged_token(client, user):
    import jwt

    token = jwt.encode({"email": user["email"]}, "not-the-secret", algorithm="HS256")
    response = client.get("/api/dashboard/profile", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_profile_unknown_user_is_404(client, db):
    from app.core.security import create_session_token

    headers = {"Authorization": f"Bearer {create_session_token('ghost@nowhere.io')}"}
    response = client.get("/api/dashboard/profile", headers=headers)

    assert response.status_code == 404
    assert response.json()["error"] == "User not found"


def test_get_profile_fills_defaults(client, db, user, auth_headers):
    db["users"].sync.update_one({"_id": user["_id"]}, {"$set": {"profile": None, "notifications": None}})

    response = client.get("/api/dashboard/profile", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == str(user["_id"])
    assert body["email"] == "jane@acme.com"
    assert body["country"] == "United States"
    assert body["timezone"] == "America/New_York"
    assert body["twoFactorEnabled"] is False
    assert body["notifications"]["emailNotifications"] is True
    assert body["notifications"]["marketingEmails"] is False


def test_put_profile_updates_only_given_fields(client, db, user, auth_headers):
    response = client.put(
        "/api/dashboard/profile",
        json={"name": "Jane Q. Doe", "company": "Acme Dental", "notifications": {"smsNotifications": True}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Profile updated successfully"
    assert body["profile"]["name"] == "Jane Q. Doe"
    assert body["profile"]["company"] == "Acme Dental"

    stored = db["users"].sync.find_one({"_id": user["_id"]})
    assert stored["profile"]["company"] == "Acme Dental"
    assert stored["profile"]["country"] == "United States"
    assert stored["notifications"]["smsNotifications"] is True
    assert stored["notifications"]["emailNotifications"] is True


def test_patch_notifications_merges_flags(client, db, user, auth_headers):
    response = client.patch(
        "/api/dashboard/profile",
        json={"type": "notifications", "data": {"emailNotifications": False}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "notifications updated successfully"
    assert body["notifications"] == {
        "emailNotifications": False,
        "smsNotifications": False,
        "callAlerts": True,
        "billingAlerts": True,
        "marketingEmails": False,
    }


def test_patch_notifications_on_user_without_section(client, db, user, auth_headers):
    db["users"].sync.update_one({"_id": user["_id"]}, {"$unset": {"notifications": ""}})

    response = client.patch(
        "/api/dashboard/profile",
        json={"type": "notifications", "data": {"callAlerts": False}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["notifications"] == {"callAlerts": False}


def test_patch_security_and_verification(client, db, user, auth_headers):
    security = client.patch(
        "/api/dashboard/profile",
        json={"type": "security", "data": {"twoFactorEnabled": True}},
        headers=auth_headers,
    )
    verification = client.patch(
        "/api/dashboard/profile",
        json={"type": "verification", "data": {"emailVerified": True}},
        headers=auth_headers,
    )

    assert security.json()["security"] == {"twoFactorEnabled": True}
    assert verification.json()["verification"] == {"emailVerified": True, "phoneVerified": False}
    stored = db["users"].sync.find_one({"_id": user["_id"]})
    assert stored["profile"]["twoFactorEnabled"] is True
    assert stored["profile"]["company"] == ""


def test_patch_unknown_type_is_400(client, user, auth_headers):
    response = client.patch(
        "/api/dashboard/profile",
        json={"type": "billing", "data": {}},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid update type"


def test_patch_notifications_ignores_unknown_keys(client, db, user, auth_headers):
    response = client.patch(
        "/api/dashboard/profile",
        json={"type": "notifications", "data": {"marketingEmails": True, "isAdmin": True, "$set": {"x": 1}}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    stored = db["users"].sync.find_one({"_id": user["_id"]})
    assert stored["notifications"]["marketingEmails"] is True
    assert "isAdmin" not in stored["notifications"]
    assert set(stored["notifications"]) == {
        "emailNotifications", "smsNotifications", "callAlerts", "billingAlerts", "marketingEmails",
    }


def test_patch_rejects_non_boolean_flags(client, db, user, auth_headers):
    response = client.patch(
        "/api/dashboard/profile",
        json={"type": "notifications", "data": {"emailNotifications": "nope"}},
        headers=auth_headers,
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert response.json()["error"] == "emailNotifications must be true or false"
    stored = db["users"].sync.find_one({"_id": user["_id"]})
    assert stored["notifications"]["emailNotifications"] is True
