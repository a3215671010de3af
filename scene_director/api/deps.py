from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from scene_director.config import Settings, get_settings
from scene_director.db.session import get_session
from scene_director.exceptions import ProjectNotFoundError
from scene_director.services.batch import BatchGenerationScheduler, batch_scheduler
from scene_director.services.image import ImageService
from scene_director.services.project_service import load_project
from scene_director.services.renderer import SceneRenderer
from scene_director.services.state_store import StateStore, state_store
from scene_director.services.storage import ObjectStorage
from scene_director.ws.manager import ConnectionManager, ws_manager

logger = logging.getLogger(__name__)


async def get_app_settings() -> Settings:
    return get_settings()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


async def get_ws_manager() -> ConnectionManager:
    return ws_manager


async def get_state_store() -> StateStore:
    return state_store


async def get_batch_scheduler() -> BatchGenerationScheduler:
    return batch_scheduler


async def get_loaded_project_id(
    project_id: str,
    store: StateStore = Depends(get_state_store),
    session: AsyncSession = Depends(get_db_session),
) -> str:
    """内存中没有时从已保存的快照恢复，返回项目 id"""
    if store.exists(project_id):
        return project_id
    state = await load_project(session, project_id)
    if state is None:
        raise ProjectNotFoundError("Project not found", details={"project_id": project_id})
    store.create(state, project_id=project_id)
    logger.info("Restored project %s from saved snapshot", project_id)
    return project_id


async def get_image_service(
    settings: Settings = Depends(get_app_settings),
    x_api_key: str | None = Header(default=None),
) -> ImageService:
    # 请求头里的 key 优先于配置
    return ImageService(settings, api_key=x_api_key)


async def get_storage(settings: Settings = Depends(get_app_settings)) -> ObjectStorage:
    return ObjectStorage(settings)


async def get_renderer(
    settings: Settings = Depends(get_app_settings),
    store: StateStore = Depends(get_state_store),
    image: ImageService = Depends(get_image_service),
    ws: ConnectionManager = Depends(get_ws_manager),
) -> SceneRenderer:
    return SceneRenderer(settings, store, image, ws)


SettingsDep = Depends(get_app_settings)
SessionDep = Depends(get_db_session)
WsManagerDep = Depends(get_ws_manager)
StateStoreDep = Depends(get_state_store)
StorageDep = Depends(get_storage)
RendererDep = Depends(get_renderer)
BatchSchedulerDep = Depends(get_batch_scheduler)
LoadedProjectDep = Depends(get_loaded_project_id)
