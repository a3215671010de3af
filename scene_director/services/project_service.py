"""项目快照持久化"""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from scene_director.models.project import ProjectRecord, utcnow
from scene_director.schemas.project import ProjectState

logger = logging.getLogger(__name__)


async def save_project(
    session: AsyncSession,
    project_id: str,
    state: ProjectState,
    owner_id: str | None = None,
) -> ProjectRecord:
    record = await session.get(ProjectRecord, project_id)
    payload = state.model_dump_json()
    if record is None:
        record = ProjectRecord(id=project_id, name=state.project_name, owner_id=owner_id, state_json=payload)
    else:
        record.name = state.project_name
        record.state_json = payload
        record.updated_at = utcnow()
        if owner_id:
            record.owner_id = owner_id
    session.add(record)
    await session.commit()
    await session.refresh(record)
    logger.info("Saved project %s (%d bytes)", project_id, len(payload))
    return record


async def load_project(session: AsyncSession, project_id: str) -> ProjectState | None:
    record = await session.get(ProjectRecord, project_id)
    if record is None:
        return None
    return ProjectState.model_validate_json(record.state_json)
