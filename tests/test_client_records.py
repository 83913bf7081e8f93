from bson import ObjectId

from app.services.client_records import (
    add_transaction,
    find_client_for_user,
    select_clients_for_user,
)
from utils.id_utils import owner_id_matches, owner_id_query, to_object_id


def test_to_object_id_accepts_all_stored_forms():
    oid = ObjectId()
    assert to_object_id(oid) == oid
    assert to_object_id(str(oid)) == oid
    assert to_object_id({"$oid": str(oid)}) == oid
    assert to_object_id("not-an-id") is None
    assert to_object_id(None) is None


def test_owner_id_query_covers_three_forms():
    oid = ObjectId()
    assert owner_id_query("userId", oid) == {
        "$or": [
            {"userId": oid},
            {"userId": str(oid)},
            {"userId.$oid": str(oid)},
        ]
    }


def test_owner_id_matches():
    oid = ObjectId()
    assert owner_id_matches(oid, oid)
    assert owner_id_matches(str(oid), oid)
    assert owner_id_matches({"$oid": str(oid)}, oid)
    assert not owner_id_matches(str(ObjectId()), oid)
    assert not owner_id_matches(None, oid)


async def test_client_lookup_finds_every_user_id_form(db):
    as_oid, as_str, as_nested = ObjectId(), ObjectId(), ObjectId()
    db["clients"].sync.insert_many([
        {"userId": as_oid, "name": "ObjectId client"},
        {"userId": str(as_str), "name": "String client"},
        {"userId": {"$oid": str(as_nested)}, "name": "Nested client"},
    ])

    assert (await find_client_for_user(as_oid))["name"] == "ObjectId client"
    assert (await find_client_for_user(as_str))["name"] == "String client"
    assert (await find_client_for_user(as_nested))["name"] == "Nested client"
    assert await find_client_for_user(ObjectId()) is None


def test_select_clients_prefers_direct_matches():
    user = {"_id": ObjectId(), "email": "owner@clinic.io"}
    own = {"_id": ObjectId(), "userId": str(user["_id"]), "email": "billing@other.com"}
    by_email = {"_id": ObjectId(), "userId": None, "email": "Owner@Clinic.io"}
    same_domain = {"_id": ObjectId(), "userId": None, "email": "frontdesk@clinic.io"}

    selected = select_clients_for_user([own, by_email, same_domain], user)

    assert selected == [own, by_email]


def test_select_clients_falls_back_to_email_domain():
    user = {"_id": ObjectId(), "email": "owner@clinic.io"}
    same_domain = {"_id": ObjectId(), "email": "frontdesk@clinic.io"}
    unrelated = {"_id": ObjectId(), "email": "someone@elsewhere.com"}

    assert select_clients_for_user([same_domain, unrelated], user) == [same_domain]
    assert select_clients_for_user([unrelated], user) == []


async def test_add_transaction_creates_client_keyed_by_user(db):
    user = {"_id": ObjectId(), "email": "new@clinic.io", "name": "New Owner"}
    transaction = {"id": "in_1", "amount": 99.0, "status": "paid"}

    await add_transaction(user, transaction)
    await add_transaction(user, transaction)

    clients = list(db["clients"].sync.find({}))
    assert len(clients) == 1
    assert clients[0]["userId"] == user["_id"]
    assert clients[0]["name"] == "New Owner"
    assert clients[0]["transactions"] == [transaction]


async def test_add_transaction_replaces_malformed_history(db):
    user = {"_id": ObjectId(), "email": "owner@clinic.io"}
    db["clients"].sync.insert_one({"userId": user["_id"], "name": "Clinic", "transactions": None})

    await add_transaction(user, {"id": "in_2", "amount": 249.0})

    stored = db["clients"].sync.find_one({"userId": user["_id"]})
    assert [t["id"] for t in stored["transactions"]] == ["in_2"]
    assert stored["name"] == "Clinic"
