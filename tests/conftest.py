import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import app.db.mongo as mongo
from app.core.config import settings
from app.core.security import create_session_token
from app.main import app
from app.services.vapi_client import reset_vapi_client

from tests.helpers import PRICE_PROFESSIONAL, PRICE_STARTER, VAPI_URL, WEBHOOK_SECRET


# ==============================================
# ASYNC ADAPTER OVER MONGOMOCK
# ==============================================

class AsyncCursor:
    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def limit(self, count):
        self._cursor = self._cursor.limit(count)
        return self

    async def to_list(self, length=None):
        docs = list(self._cursor)
        return docs if length is None else docs[:length]

    def __aiter__(self):
        self._iter = iter(self._cursor)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class AsyncCollection:
    """Motor-shaped coroutine interface over a mongomock collection."""

    def __init__(self, collection):
        self.sync = collection

    def find(self, *args, **kwargs):
        return AsyncCursor(self.sync.find(*args, **kwargs))

    async def find_one(self, *args, **kwargs):
        return self.sync.find_one(*args, **kwargs)

    async def insert_one(self, *args, **kwargs):
        return self.sync.insert_one(*args, **kwargs)

    async def update_one(self, *args, **kwargs):
        return self.sync.update_one(*args, **kwargs)

    async def update_many(self, *args, **kwargs):
        return self.sync.update_many(*args, **kwargs)

    async def find_one_and_update(self, *args, **kwargs):
        return self.sync.find_one_and_update(*args, **kwargs)

    async def find_one_and_delete(self, *args, **kwargs):
        return self.sync.find_one_and_delete(*args, **kwargs)

    async def delete_one(self, *args, **kwargs):
        return self.sync.delete_one(*args, **kwargs)

    async def count_documents(self, *args, **kwargs):
        return self.sync.count_documents(*args, **kwargs)

    async def create_index(self, *args, **kwargs):
        return self.sync.create_index(*args, **kwargs)

    async def index_information(self):
        return self.sync.index_information()


class AsyncDatabase:
    def __init__(self, database):
        self.sync = database
        self._collections = {}

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = AsyncCollection(self.sync[name])
        return self._collections[name]

    async def list_collection_names(self):
        return self.sync.list_collection_names()


# ==============================================
# FIXTURES
# ==============================================

@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "STRIPE_PRICE_STARTER", PRICE_STARTER)
    monkeypatch.setattr(settings, "STRIPE_PRICE_PROFESSIONAL", PRICE_PROFESSIONAL)
    monkeypatch.setattr(settings, "VAPI_PRIVATE_KEY", "vapi_test_key")
    monkeypatch.setattr(settings, "VAPI_BASE_URL", VAPI_URL)
    monkeypatch.setattr(settings, "VAPI_BYO_CREDENTIAL_ID", None)
    reset_vapi_client()
    yield settings
    reset_vapi_client()


@pytest.fixture
def db(monkeypatch):
    """In-memory database with the same unique indexes as production."""
    database = AsyncDatabase(mongomock.MongoClient()["voicedesk_test"])
    database["invoices"].sync.create_index("stripeInvoiceId", unique=True)
    database["assistants"].sync.create_index("vapiAssistantId", unique=True)
    database["phone_numbers"].sync.create_index("vapiPhoneNumberId", unique=True)
    monkeypatch.setattr(mongo, "_database", database)
    return database


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def user(db):
    """A signed-up user with default profile sections."""
    from app.models.user import new_user_document

    document = new_user_document("jane@acme.com", "Jane Doe")
    document["_id"] = ObjectId()
    db["users"].sync.insert_one(document)
    return document


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_session_token(user['email'])}"}
