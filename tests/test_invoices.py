from datetime import datetime

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.services.invoice_service import REFRESH_MESSAGE, upsert_invoice


def _invoice(user_id, stripe_invoice_id, invoice_date, amount=99.0):
    return {
        "userId": user_id,
        "stripeInvoiceId": stripe_invoice_id,
        "number": f"INV-{stripe_invoice_id[:8]}",
        "amount": amount,
        "total": amount,
        "currency": "usd",
        "status": "paid",
        "invoiceDate": invoice_date,
        "metadata": {"source": "stripe_webhook_transaction"},
    }


async def test_upsert_invoice_is_idempotent(db):
    user_id = ObjectId()
    first = await upsert_invoice(_invoice(user_id, "in_same", datetime(2024, 1, 1)))
    second = await upsert_invoice(_invoice(user_id, "in_same", datetime(2024, 1, 1), amount=99.0))

    assert first["_id"] == second["_id"]
    assert first["createdAt"] == second["createdAt"]
    assert db["invoices"].sync.count_documents({}) == 1


def test_get_invoices_returns_stored_newest_first(client, db, user, auth_headers):
    db["invoices"].sync.insert_many([
        _invoice(user["_id"], "in_january", datetime(2024, 1, 10)),
        _invoice(str(user["_id"]), "in_march", datetime(2024, 3, 10)),
        _invoice(ObjectId(), "in_someone_else", datetime(2024, 2, 10)),
    ])

    response = client.get("/api/dashboard/invoices", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert [inv["stripeInvoiceId"] for inv in body["invoices"]] == ["in_march", "in_january"]
    assert "savedCount" not in body


def test_get_invoices_rebuilds_from_client_transactions(client, db, user, auth_headers):
    db["clients"].sync.insert_one({
        "userId": {"$oid": str(user["_id"])},
        "name": "Acme Dental",
        "transactions": [
            {"id": "txn_00000001", "date": "2024-03-01T00:00:00Z", "amount": 99, "status": "succeeded"},
            {"id": "txn_00000002", "date": "not-a-date", "amount": 249},
            {"date": "2024-02-01T00:00:00Z", "amount": 10},
            {"id": "txn_00000003", "amount": 10},
        ],
    })

    response = client.get("/api/dashboard/invoices", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == REFRESH_MESSAGE
    assert body["savedCount"] == 2
    assert body["verifiedCount"] == 2
    by_id = {inv["stripeInvoiceId"]: inv for inv in body["invoices"]}
    assert set(by_id) == {"txn_00000001", "txn_00000002"}
    assert by_id["txn_00000001"]["status"] == "paid"
    assert by_id["txn_00000001"]["number"] == "INV-txn_0000"
    assert by_id["txn_00000001"]["metadata"]["clientName"] == "Acme Dental"
    assert by_id["txn_00000001"]["metadata"]["source"] == "client_transaction"

    stored = db["invoices"].sync.find_one({"stripeInvoiceId": "txn_00000002"})
    assert stored["invoiceDate"].year >= 2025


def test_refresh_invoices_includes_purchases_and_is_repeatable(client, db, user, auth_headers):
    db["clients"].sync.insert_one({
        "email": "jane@acme.com",
        "name": "Acme Dental",
        "purchases": [
            {"sessionId": "cs_live_purchase1", "amount_total": 24900, "payment_status": "paid",
             "created": "2024-04-02T12:00:00Z"},
            {"amount_total": 9900},
        ],
        "transactions": [{"id": "in_transaction1", "date": "2024-05-02T12:00:00Z", "amount": 249}],
    })

    first = client.post("/api/dashboard/invoices", headers=auth_headers)
    second = client.post("/api/dashboard/invoices", headers=auth_headers)

    assert first.status_code == second.status_code == 200
    body = second.json()
    assert body["savedCount"] == 2
    assert body["verifiedCount"] == 2
    assert [inv["stripeInvoiceId"] for inv in body["invoices"]] == ["in_transaction1", "cs_live_purchase1"]
    purchase = body["invoices"][1]
    assert purchase["amount"] == 249.0
    assert purchase["metadata"]["source"] == "client_purchase"
    assert db["invoices"].sync.count_documents({}) == 2


def test_refresh_invoices_uses_email_domain_fallback(client, db, user, auth_headers):
    db["clients"].sync.insert_one({
        "email": "billing@acme.com",
        "transactions": [{"id": "in_domain01", "date": "2024-05-02T12:00:00Z", "amount": 99}],
    })
    db["clients"].sync.insert_one({
        "email": "other@elsewhere.com",
        "transactions": [{"id": "in_other01", "date": "2024-05-02T12:00:00Z", "amount": 99}],
    })

    body = client.post("/api/dashboard/invoices", headers=auth_headers).json()

    assert [inv["stripeInvoiceId"] for inv in body["invoices"]] == ["in_domain01"]


def test_refresh_does_not_take_over_another_users_invoice(client, db, user, auth_headers):
    owner_id = ObjectId()
    db["invoices"].sync.insert_one(_invoice(owner_id, "in_shared01", datetime(2024, 5, 2), amount=99.0))
    db["clients"].sync.insert_one({
        "email": "billing@acme.com",
        "transactions": [{"id": "in_shared01", "date": "2024-05-02T12:00:00Z", "amount": 99}],
    })

    body = client.post("/api/dashboard/invoices", headers=auth_headers).json()

    assert body["invoices"] == []
    assert body["verifiedCount"] == 0
    stored = db["invoices"].sync.find_one({"stripeInvoiceId": "in_shared01"})
    assert stored["userId"] == owner_id
    assert stored["metadata"]["source"] == "stripe_webhook_transaction"


async def test_upsert_keeps_owner_and_source_on_update(db):
    owner_id = ObjectId()
    await upsert_invoice(_invoice(owner_id, "in_keep01", datetime(2024, 1, 1)))

    replay = _invoice(ObjectId(), "in_keep01", datetime(2024, 1, 1), amount=249.0)
    replay["metadata"] = {"source": "client_transaction", "clientName": "Acme Dental"}
    stored = await upsert_invoice(replay)

    assert stored["userId"] == owner_id
    assert stored["amount"] == 249.0
    assert stored["metadata"] == {"source": "stripe_webhook_transaction", "clientName": "Acme Dental"}


async def test_upsert_retries_as_update_after_losing_insert_race(db, monkeypatch):
    user_id = ObjectId()
    invoices = db["invoices"]
    real_update_one = invoices.update_one
    calls = []

    async def racing_update_one(query, update, upsert=False):
        calls.append(upsert)
        if upsert:
            # Another delivery inserts the same invoice first
            invoices.sync.insert_one(_invoice(user_id, "in_race01", datetime(2024, 1, 1), amount=99.0))
            raise DuplicateKeyError("E11000 duplicate key error collection: invoices")
        return await real_update_one(query, update, upsert=upsert)

    monkeypatch.setattr(invoices, "update_one", racing_update_one)

    stored = await upsert_invoice(_invoice(user_id, "in_race01", datetime(2024, 1, 1), amount=249.0))

    assert calls == [True, False]
    assert invoices.sync.count_documents({"stripeInvoiceId": "in_race01"}) == 1
    assert stored["amount"] == 249.0
    assert stored["total"] == 249.0
    assert stored["userId"] == user_id
