from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from scene_director.api.deps import (
    get_app_settings,
    get_batch_scheduler,
    get_db_session,
    get_image_service,
    get_state_store,
    get_ws_manager,
)
from scene_director.config import Settings
from scene_director.main import create_app
from scene_director.models import project  # noqa: F401
from scene_director.services.batch import BatchGenerationScheduler
from scene_director.services.renderer import RenderLocks, SceneRenderer
from scene_director.services.state_store import StateStore
from tests.fixtures import DummyWsManager, FakeImageService


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        image_api_key="test-key",
        batch_item_delay_s=0,
        storage_url=None,
        storage_api_key=None,
    )


@pytest.fixture()
def ws_manager() -> DummyWsManager:
    return DummyWsManager()


@pytest.fixture()
def store() -> StateStore:
    return StateStore(history_limit=10)


@pytest.fixture()
def fake_image() -> FakeImageService:
    return FakeImageService()


@pytest.fixture()
def scheduler() -> BatchGenerationScheduler:
    return BatchGenerationScheduler()


@pytest.fixture()
def renderer(test_settings, store, fake_image, ws_manager) -> SceneRenderer:
    return SceneRenderer(test_settings, store, fake_image, ws_manager, locks=RenderLocks())


@pytest_asyncio.fixture(scope="function")
async def test_session(test_settings: Settings) -> AsyncGenerator[AsyncSession, None]:
    engine = create_async_engine(test_settings.database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def app(
    test_session: AsyncSession,
    test_settings: Settings,
    ws_manager: DummyWsManager,
    store: StateStore,
    fake_image: FakeImageService,
    scheduler: BatchGenerationScheduler,
):
    app = create_app()

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        yield test_session

    async def override_get_settings() -> Settings:
        return test_settings

    async def override_get_ws() -> DummyWsManager:
        return ws_manager

    async def override_get_store() -> StateStore:
        return store

    async def override_get_image() -> FakeImageService:
        return fake_image

    async def override_get_scheduler() -> BatchGenerationScheduler:
        return scheduler

    app.dependency_overrides[get_db_session] = override_get_session
    app.dependency_overrides[get_app_settings] = override_get_settings
    app.dependency_overrides[get_ws_manager] = override_get_ws
    app.dependency_overrides[get_state_store] = override_get_store
    app.dependency_overrides[get_image_service] = override_get_image
    app.dependency_overrides[get_batch_scheduler] = override_get_scheduler
    return app


@pytest_asyncio.fixture(scope="function")
async def async_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
