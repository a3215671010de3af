from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import AsyncIterator
from typing import Any, Protocol

from scene_director.compiler.assembler import (
    build_character_sheet_prompts,
    build_concept_prompt,
    build_product_master_prompt,
    compile_render_request,
)
from scene_director.compiler.references import PRIMARY, ModelCapabilities, make_attachment, resolve_capabilities
from scene_director.config import Settings
from scene_director.exceptions import (
    CharacterNotFoundError,
    GroupNotFoundError,
    MissingSourceError,
    ProductNotFoundError,
    ProviderError,
    SceneBusyError,
    SceneNotFoundError,
)
from scene_director.schemas.generation import GenerationRequest
from scene_director.schemas.project import (
    Character,
    EditHistoryEntry,
    Product,
    ProjectState,
    Scene,
    SceneGroup,
    replace_character,
    replace_group,
    replace_product,
    replace_scene,
)
from scene_director.services.image import ImageService
from scene_director.services.state_store import StateStore

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    async def send_event(self, project_id: str, event: dict[str, Any]) -> None: ...


class RenderLocks:
    """场景组级别的互斥锁

    is_generating 只能阻止同一场景的并发渲染；组内不同场景的渲染如果并发，
    后一个会读不到前一个刚提交的图片，连续性锚点就会失效。
    没有渲染持有或等待的组锁会被移除。
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        # 持有 + 等待的渲染数
        self._users: dict[tuple[str, str], int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @contextlib.asynccontextmanager
    async def hold(self, project_id: str, group_id: str) -> AsyncIterator[None]:
        key = (project_id, group_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


# 全局单例
render_locks = RenderLocks()


def scene_payload(scene: Scene) -> dict[str, Any]:
    return {
        "id": scene.id,
        "scene_number": scene.scene_number,
        "group_id": scene.group_id,
        "generated_image": scene.generated_image,
        "end_frame_image": scene.end_frame_image,
        "is_generating": scene.is_generating,
        "error": scene.error,
    }


class SceneRenderer:
    """单场景渲染：编译请求 -> 调用图像服务 -> 提交结果"""

    def __init__(
        self,
        settings: Settings,
        store: StateStore,
        image: ImageService,
        ws: EventSink,
        locks: RenderLocks | None = None,
    ):
        self.settings = settings
        self.store = store
        self.image = image
        self.ws = ws
        self.locks = locks if locks is not None else render_locks

    def capabilities(self, state: ProjectState) -> ModelCapabilities:
        return resolve_capabilities(self._model(state), self.settings.high_capability_models)

    def _model(self, state: ProjectState) -> str:
        return state.image_model or self.settings.image_model

    def _group_lock(self, project_id: str, group_id: str | None):
        if group_id and self.settings.serialize_group_renders:
            return self.locks.hold(project_id, group_id)
        return contextlib.nullcontext()

    def preview_request(self, project_id: str, scene_id: str, refinement_prompt: str | None = None) -> GenerationRequest:
        """只编译不调用图像服务"""
        state = self.store.get(project_id)
        return compile_render_request(
            state,
            scene_id,
            refinement=refinement_prompt,
            capabilities=self.capabilities(state),
            model=self._model(state),
        )

    async def _publish_scene(self, project_id: str, scene_id: str) -> None:
        _, scene = self.store.get(project_id).find_scene(scene_id)
        if scene is not None:
            await self.ws.send_event(project_id, {"type": "scene_updated", "data": {"scene": scene_payload(scene)}})

    def _commit_failure(self, project_id: str, scene_id: str, message: str) -> None:
        self.store.update_state_and_record(
            project_id, lambda s: replace_scene(s, scene_id, is_generating=False, error=message)
        )

    def _commit_image(
        self,
        project_id: str,
        scene_id: str,
        image_uri: str,
        *,
        is_end_frame: bool,
        prompt: str | None,
    ) -> None:
        def _apply(state: ProjectState) -> ProjectState:
            _, current = state.find_scene(scene_id)
            if current is None:
                return state
            target = "end_frame_image" if is_end_frame else "generated_image"
            changes: dict[str, Any] = {target: image_uri, "is_generating": False, "error": None}
            previous = getattr(current, target)
            if self.settings.record_edit_history and previous and not is_end_frame:
                entry = EditHistoryEntry(id=uuid.uuid4().hex, image=previous, prompt=prompt or "")
                changes["edit_history"] = [*current.edit_history, entry]
            return replace_scene(state, scene_id, **changes)

        self.store.update_state_and_record(project_id, _apply)

    async def render_scene(
        self,
        project_id: str,
        scene_id: str,
        *,
        refinement_prompt: str | None = None,
        is_end_frame: bool = False,
        raise_errors: bool = False,
    ) -> Scene:
        """渲染一个场景并返回更新后的场景。

        Args:
            refinement_prompt: 重新生成时的修正指令（最高优先级）
            is_end_frame: 结果写入 end_frame_image 而不是 generated_image
            raise_errors: 图像服务失败时是否继续抛出（批量生成路径使用）；
                无论是否抛出，错误都会写入 scene.error
        """
        self.image.ensure_credentials()

        state = self.store.get(project_id)
        _, scene = state.find_scene(scene_id)
        if scene is None:
            raise SceneNotFoundError(f"Scene {scene_id} not found", details={"scene_id": scene_id})
        if scene.is_generating:
            raise SceneBusyError("Scene is already generating", details={"scene_id": scene_id})

        # 检查与加锁之间没有 await，在事件循环中是原子的
        self.store.update_state_and_record(
            project_id, lambda s: replace_scene(s, scene_id, is_generating=True, error=None)
        )

        try:
            await self._publish_scene(project_id, scene_id)
            async with self._group_lock(project_id, scene.group_id):
                # 拿到锁之后再取快照，保证组内前面的图片已经提交
                snapshot = self.store.get(project_id)
                request = compile_render_request(
                    snapshot,
                    scene_id,
                    refinement=refinement_prompt,
                    capabilities=self.capabilities(snapshot),
                    model=self._model(snapshot),
                )
                image = await self.image.generate_image(request)
                # 在锁内提交，组内下一个渲染编译时才能读到这张图
                self._commit_image(
                    project_id,
                    scene_id,
                    image.to_data_uri(),
                    is_end_frame=is_end_frame,
                    prompt=refinement_prompt,
                )
        except asyncio.CancelledError:
            logger.warning("Render of scene %s cancelled", scene_id)
            self._commit_failure(project_id, scene_id, "cancelled")
            raise
        except ProviderError as exc:
            logger.warning("Image generation failed for scene %s: %s", scene_id, exc.message, exc_info=True)
            self._commit_failure(project_id, scene_id, exc.message)
            await self._publish_scene(project_id, scene_id)
            if raise_errors:
                raise
            _, failed = self.store.get(project_id).find_scene(scene_id)
            return failed or scene
        except Exception as exc:
            self._commit_failure(project_id, scene_id, str(exc))
            await self._publish_scene(project_id, scene_id)
            raise

        await self._publish_scene(project_id, scene_id)
        _, updated = self.store.get(project_id).find_scene(scene_id)
        return updated or scene

    async def generate_group_concept(self, project_id: str, group_id: str) -> SceneGroup:
        """为场景组生成环境概念图（moodboard）并保存到组上"""
        self.image.ensure_credentials()

        state = self.store.get(project_id)
        group = state.find_group(group_id)
        if group is None:
            raise GroupNotFoundError("Scene group not found", details={"group_id": group_id})

        prompt = build_concept_prompt(
            state,
            group.name,
            group.description,
            style_override=group.style_prompt,
            custom_style_override=group.custom_style_instruction,
        )
        image = await self.image.generate_from_prompt(
            prompt, model=self._model(state), aspect_ratio=state.aspect_ratio or "16:9"
        )

        updated_state = self.store.update_state_and_record(
            project_id, lambda s: replace_group(s, group_id, concept_image=image.to_data_uri())
        )
        updated = updated_state.find_group(group_id) or group
        await self.ws.send_event(
            project_id,
            {"type": "group_updated", "data": {"group": {"id": updated.id, "concept_image": updated.concept_image}}},
        )
        return updated

    async def generate_character_sheets(self, project_id: str, character_id: str) -> Character:
        """以角色主图为参考生成 FACE ID 与 FULL BODY 两个身份视图"""
        self.image.ensure_credentials()

        state = self.store.get(project_id)
        character = state.find_character(character_id)
        if character is None:
            raise CharacterNotFoundError("Character not found", details={"character_id": character_id})
        if not character.master_image:
            raise MissingSourceError("Character has no master image", details={"character_id": character_id})

        label = f"MASTER VISUAL: {character.name.upper()} {PRIMARY}"
        reference = make_attachment(
            "character",
            PRIMARY,
            label,
            f"[{label}]: Reference for {character.name or 'the character'}. Keep face, hair and clothing identical.",
            character.master_image,
        )
        face_prompt, body_prompt = build_character_sheet_prompts(state, character)
        model = self._model(state)
        face, body = await asyncio.gather(
            self.image.generate_image(
                GenerationRequest(prompt_text=face_prompt, attachments=[reference], model=model, aspect_ratio="1:1")
            ),
            self.image.generate_image(
                GenerationRequest(prompt_text=body_prompt, attachments=[reference], model=model, aspect_ratio="9:16")
            ),
        )

        updated_state = self.store.update_state_and_record(
            project_id,
            lambda s: replace_character(
                s, character_id, face_image=face.to_data_uri(), body_image=body.to_data_uri()
            ),
        )
        updated = updated_state.find_character(character_id) or character
        logger.info("Generated identity views for character %s", character_id)
        await self.ws.send_event(
            project_id,
            {"type": "character_updated", "data": {"character": {"id": updated.id, "name": updated.name}}},
        )
        return updated

    async def generate_product_master(
        self, project_id: str, product_id: str, description: str | None = None
    ) -> Product:
        """根据文字描述生成产品主图（白底棚拍）"""
        self.image.ensure_credentials()

        state = self.store.get(project_id)
        product = state.find_product(product_id)
        if product is None:
            raise ProductNotFoundError("Product not found", details={"product_id": product_id})
        description = (description or product.description).strip()
        if not description:
            raise MissingSourceError("Product description is empty", details={"product_id": product_id})

        image = await self.image.generate_from_prompt(
            build_product_master_prompt(description), model=self._model(state), aspect_ratio="1:1"
        )

        updated_state = self.store.update_state_and_record(
            project_id, lambda s: replace_product(s, product_id, master_image=image.to_data_uri())
        )
        updated = updated_state.find_product(product_id) or product
        await self.ws.send_event(
            project_id,
            {"type": "product_updated", "data": {"product": {"id": updated.id, "name": updated.name}}},
        )
        return updated
