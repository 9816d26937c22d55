from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from storefront.config import Settings
from storefront.database import init_models
from storefront.main import create_app
from storefront.services.seed import seed_store


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}",
        app_env="development",
        default_locale="en-GB",
        locale_policy="fallback",
    )


@pytest.fixture
async def app(test_settings: Settings) -> AsyncGenerator[FastAPI]:
    app = create_app(test_settings)
    await init_models(app.state.engine)
    async with app.state.session_factory() as session:
        await seed_store(session)
    yield app
    await app.state.engine.dispose()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
