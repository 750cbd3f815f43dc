import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")

from types import SimpleNamespace

import pytest
import pytest_asyncio
from beanie import init_beanie
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from clarity.events import EventBus
from clarity.main import create_app
from clarity.models import DOCUMENT_MODELS, Admin, Member, Tenant
from clarity.services import MessageService, ParticipantService, create_access_token


class FakeConnection:
    """Stands in for a websocket: records every frame pushed to it."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def payloads(self, event_type):
        return [frame["payload"] for frame in self.sent if frame["type"] == event_type]


@pytest_asyncio.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["clarity_test"]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    yield database


@pytest_asyncio.fixture
async def gym(db):
    """Two gyms: 'iron' with two admins and two members, 'steel' with one of each."""
    iron = Tenant(name="Iron Gym", slug="iron")
    steel = Tenant(name="Steel Gym", slug="steel")
    await iron.insert()
    await steel.insert()

    admin = Admin(name="Ravi Kumar", email="ravi@iron.example.com", tenantId=str(iron.id))
    admin2 = Admin(name="Priya Nair", email="priya@iron.example.com", tenantId=str(iron.id))
    member = Member(name="Arjun", tenantId=str(iron.id))
    member2 = Member(name="Kiran", tenantId=str(iron.id))
    other_admin = Admin(name="Sam", email="sam@steel.example.com", tenantId=str(steel.id))
    other_member = Member(name="Dev", tenantId=str(steel.id))
    for doc in (admin, admin2, member, member2, other_admin, other_member):
        await doc.insert()

    return SimpleNamespace(
        tenant_id=str(iron.id),
        other_tenant_id=str(steel.id),
        admin_id=str(admin.id),
        admin2_id=str(admin2.id),
        member_id=str(member.id),
        member2_id=str(member2.id),
        other_admin_id=str(other_admin.id),
        other_member_id=str(other_member.id),
    )


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def service(db, events):
    return MessageService(ParticipantService(), events)


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture
def app(db):
    return create_app()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def headers_for():
    def _headers(user_id: str, role: str, tenant_id: str, **extra) -> dict:
        token = create_access_token({"sub": user_id, "role": role, "tenant": tenant_id})
        return {"Authorization": f"Bearer {token}", **extra}
    return _headers
