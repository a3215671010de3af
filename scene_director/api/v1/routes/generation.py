from __future__ import annotations

import logging

from fastapi import APIRouter, status

from scene_director.api.deps import BatchSchedulerDep, LoadedProjectDep, RendererDep
from scene_director.schemas.generation import BatchStatus, GenerationPreview, ProductMasterRequest, RenderSceneRequest
from scene_director.schemas.project import Character, Product, Scene, SceneGroup
from scene_director.services.batch import BatchGenerationScheduler
from scene_director.services.renderer import SceneRenderer

router = APIRouter(prefix="/projects")
logger = logging.getLogger(__name__)


@router.post("/{project_id}/scenes/{scene_id}/generate", response_model=Scene)
async def generate_scene(
    scene_id: str,
    payload: RenderSceneRequest | None = None,
    project_id: str = LoadedProjectDep,
    renderer: SceneRenderer = RendererDep,
):
    """单场景渲染；图像服务失败时返回带 error 的场景而不是错误响应"""
    payload = payload or RenderSceneRequest()
    return await renderer.render_scene(
        project_id,
        scene_id,
        refinement_prompt=payload.refinement_prompt,
        is_end_frame=payload.is_end_frame,
    )


@router.post("/{project_id}/scenes/{scene_id}/preview", response_model=GenerationPreview)
async def preview_scene(
    scene_id: str,
    payload: RenderSceneRequest | None = None,
    project_id: str = LoadedProjectDep,
    renderer: SceneRenderer = RendererDep,
):
    request = renderer.preview_request(project_id, scene_id, payload.refinement_prompt if payload else None)
    return GenerationPreview(
        prompt_text=request.prompt_text,
        model=request.model,
        aspect_ratio=request.aspect_ratio,
        attachments=[a.summary() for a in request.attachments],
    )


@router.post("/{project_id}/groups/{group_id}/concept", response_model=SceneGroup)
async def generate_group_concept(
    group_id: str,
    project_id: str = LoadedProjectDep,
    renderer: SceneRenderer = RendererDep,
):
    return await renderer.generate_group_concept(project_id, group_id)


@router.post("/{project_id}/characters/{character_id}/sheets", response_model=Character)
async def generate_character_sheets(
    character_id: str,
    project_id: str = LoadedProjectDep,
    renderer: SceneRenderer = RendererDep,
):
    return await renderer.generate_character_sheets(project_id, character_id)


@router.post("/{project_id}/products/{product_id}/master", response_model=Product)
async def generate_product_master(
    product_id: str,
    payload: ProductMasterRequest | None = None,
    project_id: str = LoadedProjectDep,
    renderer: SceneRenderer = RendererDep,
):
    return await renderer.generate_product_master(project_id, product_id, payload.description if payload else None)


@router.post("/{project_id}/generate-all", response_model=BatchStatus, status_code=status.HTTP_202_ACCEPTED)
async def generate_all(
    project_id: str = LoadedProjectDep,
    renderer: SceneRenderer = RendererDep,
    scheduler: BatchGenerationScheduler = BatchSchedulerDep,
):
    batch = scheduler.start(project_id, renderer)
    logger.info("Batch generation requested for project %s: %d scenes", project_id, batch.total)
    return batch


@router.post("/{project_id}/stop", response_model=BatchStatus)
async def stop_generation(project_id: str, scheduler: BatchGenerationScheduler = BatchSchedulerDep):
    if not scheduler.stop_batch_generation(project_id):
        logger.info("Stop requested for project %s but no batch is running", project_id)
    return scheduler.status(project_id)


@router.get("/{project_id}/batch", response_model=BatchStatus)
async def get_batch_status(project_id: str, scheduler: BatchGenerationScheduler = BatchSchedulerDep):
    return scheduler.status(project_id)
