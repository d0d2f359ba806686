"""Shared test fixtures: an in-memory Supabase stand-in and a mocked outbound HTTP layer."""

import copy
import uuid
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config.settings import settings
from app.core.http import get_http_client
from app.database.supabase_client import get_service_supabase, get_supabase
from app.main import app
from app.modules.auth.service import clear_auth_cache

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
ADMIN_ID = "33333333-3333-3333-3333-333333333333"


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Enough of the PostgREST builder for the services under test."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_key = None
        self.order_desc = False
        self.limit_count = None
        self.single = False
        self.on_conflict = None

    def select(self, *args, **kwargs):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_key, self.order_desc = column, desc
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def maybe_single(self):
        self.single = True
        return self

    def _matches(self, row):
        return all(check(row) for check in self.filters)

    def execute(self):
        if self.table in self.db.failing_tables:
            raise Exception(f"relation {self.table} is unavailable")
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for row in new_rows:
                row = {"id": str(uuid.uuid4()), **copy.deepcopy(row)}
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResponse(inserted)

        if self.op == "upsert":
            row = copy.deepcopy(self.payload)
            key = self.on_conflict or "id"
            existing = next((r for r in rows if key in row and r.get(key) == row[key]), None)
            if existing:
                existing.update(row)
                return FakeResponse([copy.deepcopy(existing)])
            row = {"id": str(uuid.uuid4()), **row}
            rows.append(row)
            return FakeResponse([copy.deepcopy(row)])

        matched = [r for r in rows if self._matches(r)]

        if self.op == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse([copy.deepcopy(r) for r in matched])

        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse([copy.deepcopy(r) for r in matched])

        if self.order_key:
            matched.sort(key=lambda r: r.get(self.order_key) or 0, reverse=self.order_desc)
        if self.limit_count is not None:
            matched = matched[:self.limit_count]
        matched = [copy.deepcopy(r) for r in matched]
        if self.single:
            # maybe_single() with no rows yields no response at all
            return FakeResponse(matched[0]) if matched else None
        return FakeResponse(matched)


class FakeRpc:
    def __init__(self, db, name, params):
        self.db, self.name, self.params = db, name, params

    def execute(self):
        handler = self.db.rpc_handlers.get(self.name)
        return FakeResponse(handler(self.params) if handler else None)


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name
        self.objects = storage.objects.setdefault(name, {})

    def download(self, path):
        if self.storage.broken:
            raise Exception("storage backend unavailable")
        if path not in self.objects:
            raise Exception("Object not found")
        return self.objects[path]

    def upload(self, path, file, file_options=None):
        if self.storage.broken:
            raise Exception("storage backend unavailable")
        file_options = file_options or {}
        if path in self.objects and file_options.get("upsert") != "true":
            raise Exception("The resource already exists")
        self.objects[path] = file
        self.storage.content_types[(self.name, path)] = file_options.get("content-type")
        return SimpleNamespace(path=path)

    def remove(self, paths):
        if self.storage.fail_remove:
            raise Exception("remove failed")
        for path in paths:
            self.objects.pop(path, None)
        return [{"name": p} for p in paths]

    def get_public_url(self, path):
        return f"https://project.supabase.co/storage/v1/object/public/{self.name}/{path}"


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.content_types = {}
        self.broken = False
        self.fail_remove = False

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeAuth:
    def __init__(self):
        self.users = {}

    def get_user(self, jwt=None):
        user = self.users.get(jwt)
        if user is None:
            raise Exception("invalid JWT: unable to parse or verify signature")
        return SimpleNamespace(user=user)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.failing_tables = set()
        self.rpc_handlers = {}
        self.storage = FakeStorage()
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        return FakeRpc(self, name, params)

    def add_user(self, token, user_id, email, role=None):
        self.auth.users[token] = SimpleNamespace(
            id=user_id,
            email=email,
            user_metadata={},
            app_metadata={"role": role} if role else {},
        )


class MockProvider:
    """Callable MockTransport handler; tests queue responses with respond()."""

    def __init__(self):
        self.requests = []
        self.handler = None

    def respond(self, handler):
        self.handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is None:
            return httpx.Response(500, json={"error": "no mock response configured"})
        return self.handler(request)


@pytest.fixture(autouse=True)
def configured(monkeypatch):
    values = {
        "environment": "test",
        "stripe_secret_key": "sk_test_123",
        "stripe_webhook_secret": "whsec_test_secret",
        "ai_gateway_api_key": "gateway-key",
        "perplexity_api_key": "pplx-key",
        "video_api_key": "video-key",
        "elevenlabs_api_key": "eleven-key",
        "twilio_account_sid": "AC123",
        "twilio_auth_token": "twilio-token",
        "twilio_from_number": "+15550001111",
        "workflow_webhook_secret": None,
        "lindy_webhook_secret": "lindy-secret",
    }
    for name, value in values.items():
        monkeypatch.setattr(settings, name, value)


@pytest.fixture
def db():
    fake = FakeSupabase()
    fake.add_user("user-token", USER_ID, "user@example.com")
    fake.add_user("other-token", OTHER_USER_ID, "other@example.com")
    fake.add_user("admin-token", ADMIN_ID, "admin@example.com", role="admin")
    return fake


@pytest.fixture
def provider():
    return MockProvider()


@pytest.fixture
def client(db, provider):
    def http_client():
        with httpx.Client(transport=httpx.MockTransport(provider)) as c:
            yield c

    app.dependency_overrides[get_service_supabase] = lambda: db
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_http_client] = http_client
    clear_auth_cache()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    clear_auth_cache()


@pytest.fixture
def user_headers():
    return {"Authorization": "Bearer user-token"}


@pytest.fixture
def other_headers():
    return {"Authorization": "Bearer other-token"}


@pytest.fixture
def admin_headers():
    return {"Authorization": "Bearer admin-token"}
