"""
Shared fixtures: every test gets its own SQLite file and media directory.
"""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from chathub.core.config import Settings
from chathub.core.database import Database
from chathub.core.security import compute_signature
from chathub.main import create_app
from chathub.models.user import UserRole
from chathub.realtime.hub import RealtimeHub
from chathub.repositories.users import UserRepository
from chathub.schemas.entities import UserCreate
from chathub.services.media import MediaFetcher
from chathub.services.provider import EvolutionClient

ADMIN_EMAIL = "admin@test.local"
ADMIN_PASSWORD = "admin-pass"
TEST_SECRET = "test-secret-key-12345"
PROVIDER_URL = "https://evolution.test"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        media_root=str(tmp_path / "uploads"),
        session_secret="test-session-secret",
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        admin_name="Admin",
        evolution_api_url=None,
        evolution_api_key=None,
        webhook_secret=None,
        log_level="DEBUG",
        log_format="text",
    )


@pytest.fixture
def database(settings):
    """Standalone database for repository and service tests."""
    db = Database(settings.database_url)
    db.create_all()
    yield db
    db.drop_all()
    db.dispose()


@pytest.fixture
def session(database):
    with database.session() as db:
        yield db


@pytest.fixture
def hub() -> RealtimeHub:
    return RealtimeHub()


class RecordingSubscriber:
    """Hub subscriber that keeps every message it receives."""

    def __init__(self):
        self.messages = []

    def deliver(self, message):
        self.messages.append(message)

    def events(self, name):
        return [m["data"] for m in self.messages if m["event"] == name]


@pytest.fixture
def recorder(hub) -> RecordingSubscriber:
    subscriber = RecordingSubscriber()
    hub.join("admin", subscriber)
    return subscriber


class FakeProvider:
    """
    Routes for an ``httpx.MockTransport`` standing in for the provider.

    ``routes`` maps ``(method, path)`` to ``(status, json_body)``; every
    request is recorded.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get((request.method, request.url.path), (404, {"error": "not found"}))
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def media_fetcher(settings, fake_provider) -> MediaFetcher:
    return MediaFetcher(settings.media_root, transport=fake_provider.transport)


@pytest.fixture
def app(settings, fake_provider):
    application = create_app(settings)
    application.state.media_fetcher = MediaFetcher(settings.media_root, transport=fake_provider.transport)
    application.state.provider = EvolutionClient(PROVIDER_URL, "provider-key", transport=fake_provider.transport)
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def app_session(app, client):
    with app.state.database.session() as db:
        yield db


def login(client: TestClient, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD):
    return client.post("/login", json={"email": email, "password": password})


@pytest.fixture
def admin_client(client):
    response = login(client)
    assert response.status_code == 200
    return client


@pytest.fixture
def client_user(app, client):
    """A client-role account; returns (user, password)."""
    with app.state.database.session() as db:
        user = UserRepository(db).create(UserCreate(
            email="client@test.local",
            password="client-pass",
            name="Client",
            role=UserRole.CLIENT,
        ))
    return user, "client-pass"


def post_webhook(client: TestClient, payload: dict, secret: str = None):
    body = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if secret:
        headers["X-Signature"] = compute_signature(secret, body)
    return client.post("/webhook", content=body, headers=headers)


def message_item(message_id="m1", remote_jid="123@s.whatsapp.net", message_type="conversation", message=None, **extra):
    item = {
        "key": {"id": message_id, "remoteJid": remote_jid, "fromMe": False},
        "pushName": "Ana",
        "messageType": message_type,
        "message": message if message is not None else {"conversation": "hola"},
        "messageTimestamp": 1700000000,
    }
    item.update(extra)
    return item
