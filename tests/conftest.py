import io
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="closet-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'closet.db')}"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["AI_GATEWAY_API_KEY"] = "test-key"
os.environ["DB_AUTO_CREATE"] = "false"

import httpx
import pytest
from asgi_lifespan import LifespanManager
from PIL import Image

from closet.auth import deps as auth_deps
from closet.core.db import Base, create_all, dispose_engine, get_engine, get_sessionmaker
from closet.main import app
from closet.services.gateway import ClosetGateway
from closet.services.llm import get_ai_gateway
from closet.services.llm.client import AIGateway
from closet.storage import InMemoryObjectStore, get_object_store
from closet.workflows.functions import FunctionsClient
from tests.fixtures import USER, FakeOpenAI


@pytest.fixture(autouse=True)
def override_auth():
    app.dependency_overrides[auth_deps.get_current_user_id] = lambda: USER
    yield
    app.dependency_overrides.pop(auth_deps.get_current_user_id, None)


@pytest.fixture(autouse=True)
async def db():
    await create_all()
    yield
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await dispose_engine()


@pytest.fixture
def store():
    s = InMemoryObjectStore()
    app.dependency_overrides[get_object_store] = lambda: s
    yield s
    app.dependency_overrides.pop(get_object_store, None)


@pytest.fixture
async def gateway(store):
    async with get_sessionmaker()() as session:
        yield ClosetGateway(session, store)


@pytest.fixture
def fake_ai():
    """Install a fake model behind every AI function; returns the fake client."""

    def install(handler):
        fake = FakeOpenAI(handler if callable(handler) else (lambda kwargs: handler))
        app.dependency_overrides[get_ai_gateway] = lambda: AIGateway(client=fake)
        return fake

    yield install
    app.dependency_overrides.pop(get_ai_gateway, None)


@pytest.fixture
async def client(store):
    async with LifespanManager(app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
            yield ac


@pytest.fixture
def functions(client):
    return FunctionsClient(client, base_url="http://test/v1/functions")


@pytest.fixture
def jpeg_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (16, 16), "white").save(buf, format="JPEG")
    return buf.getvalue()
