"""批量生成调度

状态机：idle -> running -> (stopping) -> idle

严格串行：连续性锚点依赖前一个场景的图片已经提交到状态中，所以
每个场景都要等上一个渲染完成后才开始。停止是协作式的：只在每一项
开始之前检查停止标志，无法中断正在进行的渲染。
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from scene_director.exceptions import BatchAlreadyRunningError, ProviderError, SceneBusyError, SceneNotFoundError
from scene_director.schemas.generation import BatchStatus
from scene_director.schemas.project import ProjectState
from scene_director.services.renderer import SceneRenderer

logger = logging.getLogger(__name__)


def eligible_scene_ids(state: ProjectState) -> list[str]:
    """还没有图片、但有描述的场景，按列表顺序"""
    return [s.id for s in state.scenes if not s.generated_image and s.context_description.strip()]


@dataclass
class BatchRun:
    status: BatchStatus
    stop_requested: bool = False
    task: asyncio.Task | None = field(default=None, repr=False)


def _retrieve_task_error(task: asyncio.Task) -> None:
    # 后台任务没有人 await，这里取走异常；_run 内部已经记录过
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Batch task finished with %s", type(exc).__name__)


class BatchGenerationScheduler:
    def __init__(self) -> None:
        # project_id -> run
        self._runs: dict[str, BatchRun] = {}

    def status(self, project_id: str) -> BatchStatus:
        run = self._runs.get(project_id)
        if run is None:
            return BatchStatus(project_id=project_id)
        return run.status.model_copy()

    def is_running(self, project_id: str) -> bool:
        run = self._runs.get(project_id)
        return run is not None and run.status.state != "idle"

    def stop_batch_generation(self, project_id: str) -> bool:
        """翻转停止标志；没有运行中的批次时返回 False"""
        run = self._runs.get(project_id)
        if run is None or run.status.state != "running":
            return False
        run.stop_requested = True
        run.status.state = "stopping"
        logger.info("Batch stop requested for project %s", project_id)
        return True

    def start(self, project_id: str, renderer: SceneRenderer) -> BatchStatus:
        """启动后台批量生成，立即返回初始状态"""
        if self.is_running(project_id):
            raise BatchAlreadyRunningError("Batch generation already running", details={"project_id": project_id})

        renderer.image.ensure_credentials()
        scene_ids = eligible_scene_ids(renderer.store.get(project_id))
        run = BatchRun(status=BatchStatus(project_id=project_id, total=len(scene_ids)))
        if not scene_ids:
            run.status.stop_reason = "completed"
            self._runs[project_id] = run
            return run.status.model_copy()

        run.status.state = "running"
        self._runs[project_id] = run
        run.task = asyncio.create_task(self._run(project_id, scene_ids, renderer, run))
        run.task.add_done_callback(_retrieve_task_error)
        return run.status.model_copy()

    async def wait(self, project_id: str) -> BatchStatus:
        run = self._runs.get(project_id)
        if run is not None and run.task is not None:
            await asyncio.shield(run.task)
        return self.status(project_id)

    async def run_batch(self, project_id: str, renderer: SceneRenderer) -> BatchStatus:
        """前台执行整个批次（等待结束）"""
        self.start(project_id, renderer)
        return await self.wait(project_id)

    async def _run(self, project_id: str, scene_ids: list[str], renderer: SceneRenderer, run: BatchRun) -> None:
        settings = renderer.settings
        status = run.status
        await renderer.ws.send_event(
            project_id, {"type": "batch_started", "data": {"project_id": project_id, "total": status.total}}
        )

        try:
            for i, scene_id in enumerate(scene_ids):
                if run.stop_requested:
                    status.stop_reason = "stopped"
                    break

                # 列表是启动时计算的，渲染前按当前状态再确认一次
                _, scene = renderer.store.get(project_id).find_scene(scene_id)
                if scene is None or scene.generated_image:
                    status.skipped += 1
                    continue

                status.current_scene_id = scene_id
                try:
                    await renderer.render_scene(project_id, scene_id, raise_errors=True)
                except SceneBusyError:
                    logger.warning("Skipping scene %s: already generating", scene_id)
                    status.skipped += 1
                    continue
                except (ProviderError, SceneNotFoundError) as exc:
                    status.failed += 1
                    status.last_error = getattr(exc, "message", str(exc))
                    if settings.batch_failure_policy == "abort":
                        logger.error("Batch aborted at scene %s: %s", scene_id, status.last_error)
                        status.stop_reason = "error"
                        break
                    logger.warning("Scene %s failed, continuing batch: %s", scene_id, status.last_error)
                    continue
                finally:
                    status.current_scene_id = None

                status.completed += 1
                await renderer.ws.send_event(
                    project_id,
                    {
                        "type": "batch_progress",
                        "data": {
                            "project_id": project_id,
                            "scene_id": scene_id,
                            "completed": status.completed,
                            "total": status.total,
                            "progress": (i + 1) / status.total,
                        },
                    },
                )

                # 成功渲染之间固定间隔，规避限流
                if i < len(scene_ids) - 1 and settings.batch_item_delay_s > 0:
                    await asyncio.sleep(settings.batch_item_delay_s)
            else:
                status.stop_reason = "completed"
        except Exception as exc:
            logger.error("Batch generation crashed for project %s: %s", project_id, exc, exc_info=True)
            status.last_error = str(exc)
            status.stop_reason = "error"
            raise
        finally:
            status.state = "idle"
            status.current_scene_id = None
            run.stop_requested = False
            event_type = {"stopped": "batch_stopped", "error": "batch_failed"}.get(
                status.stop_reason or "", "batch_completed"
            )
            await renderer.ws.send_event(project_id, {"type": event_type, "data": status.model_dump()})


# 全局单例
batch_scheduler = BatchGenerationScheduler()
