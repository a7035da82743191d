from pathlib import Path

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from main import create_app
from tests.fakes import FakeOpenAIClient, FakeProvider
from utils.config import Settings


def make_settings(tmp_path: Path, **overrides) -> Settings:
    settings = Settings(
        openai_api_key="test-key",
        openai_assistant_id="asst_test",
        openai_vector_store_id="vs_test",
        run_poll_interval_seconds=0,
        run_max_poll_attempts=10,
        active_run_max_wait_attempts=3,
        keep_alive_every=5,
        deadline_seconds=2.0,
        non_stream_timeout_seconds=2.0,
        chunk_words=5,
        chunk_delay_seconds=0,
        database_dir=str(tmp_path / "db"),
        stamp_catalog_path=str(tmp_path / "catalog.json"),
    )
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings


@pytest.fixture
def app_factory(tmp_path: Path):
    def _factory(
        *,
        provider: FakeProvider | None = None,
        openai_client: FakeOpenAIClient | None = None,
        **settings_overrides,
    ):
        settings = make_settings(tmp_path, **settings_overrides)
        fake_provider = provider or FakeProvider()
        fake_client = openai_client or FakeOpenAIClient()
        app = create_app(settings, overrides={"provider": fake_provider, "openai_client": fake_client})
        return app, fake_provider, fake_client

    return _factory


@pytest.fixture
async def client(app_factory):
    app, provider, openai_client = app_factory()
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as http_client:
            http_client.app = app  # type: ignore[attr-defined]
            http_client.provider = provider  # type: ignore[attr-defined]
            http_client.openai_client = openai_client  # type: ignore[attr-defined]
            yield http_client
