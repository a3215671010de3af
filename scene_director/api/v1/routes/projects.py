from __future__ import annotations

import logging

from fastapi import APIRouter, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from scene_director.api.deps import LoadedProjectDep, SessionDep, StateStoreDep, StorageDep, WsManagerDep
from scene_director.schemas.project import ProjectCreated, ProjectRead, ProjectState
from scene_director.services.project_service import save_project
from scene_director.services.state_store import StateStore
from scene_director.services.storage import ObjectStorage, apply_uploaded_urls
from scene_director.ws.manager import ConnectionManager

router = APIRouter()
logger = logging.getLogger(__name__)


def _read(store: StateStore, project_id: str) -> ProjectRead:
    return ProjectRead(
        id=project_id,
        state=store.get(project_id),
        can_undo=store.can_undo(project_id),
        can_redo=store.can_redo(project_id),
    )


async def _broadcast_state(ws: ConnectionManager, store: StateStore, project_id: str) -> None:
    await ws.send_event(
        project_id,
        {
            "type": "state_replaced",
            "data": {
                "project_id": project_id,
                "can_undo": store.can_undo(project_id),
                "can_redo": store.can_redo(project_id),
            },
        },
    )


@router.post("", response_model=ProjectCreated, status_code=status.HTTP_201_CREATED)
async def create_project(payload: ProjectState | None = None, store: StateStore = StateStoreDep):
    state = payload or ProjectState()
    project_id = store.create(state)
    logger.info("Created project %s (%d scenes)", project_id, len(state.scenes))
    return ProjectCreated(id=project_id, state=state)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(project_id: str = LoadedProjectDep, store: StateStore = StateStoreDep):
    return _read(store, project_id)


@router.put("/{project_id}/state", response_model=ProjectRead)
async def replace_state(
    payload: ProjectState,
    project_id: str = LoadedProjectDep,
    store: StateStore = StateStoreDep,
    ws: ConnectionManager = WsManagerDep,
):
    store.replace(project_id, payload)
    await _broadcast_state(ws, store, project_id)
    return _read(store, project_id)


@router.post("/{project_id}/undo", response_model=ProjectRead)
async def undo(
    project_id: str = LoadedProjectDep,
    store: StateStore = StateStoreDep,
    ws: ConnectionManager = WsManagerDep,
):
    store.undo(project_id)
    await _broadcast_state(ws, store, project_id)
    return _read(store, project_id)


@router.post("/{project_id}/redo", response_model=ProjectRead)
async def redo(
    project_id: str = LoadedProjectDep,
    store: StateStore = StateStoreDep,
    ws: ConnectionManager = WsManagerDep,
):
    store.redo(project_id)
    await _broadcast_state(ws, store, project_id)
    return _read(store, project_id)


@router.post("/{project_id}/save", response_model=ProjectRead)
async def save(
    project_id: str = LoadedProjectDep,
    store: StateStore = StateStoreDep,
    storage: ObjectStorage = StorageDep,
    session: AsyncSession = SessionDep,
    ws: ConnectionManager = WsManagerDep,
    x_user_id: str | None = Header(default=None),
):
    """保存快照；带用户 id 且配置了对象存储时，先把内联图片上传替换为 URL"""
    urls = await storage.upload_inline_images(store.get(project_id), x_user_id)
    if urls:
        # 上传期间可能有渲染提交，映射必须应用到当前状态上
        before = store.get(project_id)
        after = store.update_state_and_record(project_id, lambda s: apply_uploaded_urls(s, urls))
        if after is not before:
            await _broadcast_state(ws, store, project_id)

    await save_project(session, project_id, store.get(project_id), owner_id=x_user_id)
    return _read(store, project_id)
