import pytest
from fastapi.testclient import TestClient

from parley.ai.manager import AIManager
from parley.database import close_db, create_engine, create_session_factory, init_db
from parley.main import create_app

from .fakes import FakeAIClient, make_settings


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def openai_client():
    return FakeAIClient("openai", reply="Hi from OpenAI")


@pytest.fixture
def google_client():
    return FakeAIClient("google", reply="Hi from Gemini", model="gemini-2.5-flash")


@pytest.fixture
def ai_manager(openai_client, google_client):
    return AIManager({"openai": openai_client, "google": google_client}, default_provider="openai")


@pytest.fixture
def app(settings, ai_manager):
    return create_app(settings, ai_manager)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def db(settings):
    engine = create_engine(settings.database_url)
    await init_db(engine)
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session
    await close_db(engine)
