"""项目状态数据模型

ProjectState 是唯一的数据源。所有模型都是 frozen 的，修改只能通过
model_copy(update=...) 生成新对象（copy-on-write），从不原地修改。
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class EditHistoryEntry(_Frozen):
    id: str
    image: str
    prompt: str = ""


class Character(_Frozen):
    """角色：身份视图 + 主图兜底"""

    id: str
    name: str = ""
    description: str = ""
    master_image: str | None = None
    face_image: str | None = None
    body_image: str | None = None
    side_image: str | None = None
    back_image: str | None = None
    edit_history: list[EditHistoryEntry] = Field(default_factory=list)


class ProductViews(_Frozen):
    front: str | None = None
    back: str | None = None
    left: str | None = None
    right: str | None = None
    top: str | None = None


class Product(_Frozen):
    """产品/道具"""

    id: str
    name: str = ""
    description: str = ""
    master_image: str | None = None
    views: ProductViews = Field(default_factory=ProductViews)
    edit_history: list[EditHistoryEntry] = Field(default_factory=list)


class SceneGroup(_Frozen):
    """场景组：一个物理场景/地点，连续性只在组内计算"""

    id: str
    name: str = ""
    description: str = ""
    style_prompt: str | None = None  # 组级风格覆盖
    custom_style_instruction: str | None = None
    concept_image: str | None = None  # 概念图（moodboard）


class Scene(_Frozen):
    """场景：对应一张生成图片"""

    id: str
    scene_number: str = ""
    group_id: str | None = None
    context_description: str = ""
    character_ids: list[str] = Field(default_factory=list)
    product_ids: list[str] = Field(default_factory=list)

    # 分镜覆盖（逐场景）
    camera_angle_override: str | None = None
    custom_camera_angle: str | None = None
    lens_override: str | None = None
    custom_lens_override: str | None = None

    generated_image: str | None = None
    end_frame_image: str | None = None
    edit_history: list[EditHistoryEntry] = Field(default_factory=list)

    is_generating: bool = False  # 逐场景互斥锁
    error: str | None = None


class ScriptPreset(_Frozen):
    id: str
    name: str = ""
    category: str = "custom"  # film|documentary|commercial|music-video|custom


class ProjectState(_Frozen):
    project_name: str = ""
    style_prompt: str = "cinematic-realistic"
    custom_style_instruction: str | None = None
    image_model: str = "gemini-3-pro-image-preview"
    aspect_ratio: str = "16:9"

    # 全局摄影设置
    camera_model: str | None = None
    custom_camera_model: str | None = None
    default_lens: str | None = None
    custom_default_lens: str | None = None
    custom_meta_tokens: str | None = None

    active_script_preset: str = "film-animation"
    custom_script_presets: list[ScriptPreset] = Field(default_factory=list)

    characters: list[Character] = Field(default_factory=list)
    products: list[Product] = Field(default_factory=list)
    scenes: list[Scene] = Field(default_factory=list)
    scene_groups: list[SceneGroup] = Field(default_factory=list)

    def find_scene(self, scene_id: str) -> tuple[int, Scene | None]:
        for idx, scene in enumerate(self.scenes):
            if scene.id == scene_id:
                return idx, scene
        return -1, None

    def find_group(self, group_id: str | None) -> SceneGroup | None:
        if not group_id:
            return None
        return next((g for g in self.scene_groups if g.id == group_id), None)

    def find_character(self, character_id: str) -> Character | None:
        return next((c for c in self.characters if c.id == character_id), None)

    def find_product(self, product_id: str) -> Product | None:
        return next((p for p in self.products if p.id == product_id), None)


def replace_scene(state: ProjectState, scene_id: str, **changes) -> ProjectState:
    """返回替换了指定场景字段的新状态"""
    scenes = [s.model_copy(update=changes) if s.id == scene_id else s for s in state.scenes]
    return state.model_copy(update={"scenes": scenes})


def replace_group(state: ProjectState, group_id: str, **changes) -> ProjectState:
    """返回替换了指定场景组字段的新状态"""
    groups = [g.model_copy(update=changes) if g.id == group_id else g for g in state.scene_groups]
    return state.model_copy(update={"scene_groups": groups})



def replace_character(state: ProjectState, character_id: str, **changes) -> ProjectState:
    characters = [c.model_copy(update=changes) if c.id == character_id else c for c in state.characters]
    return state.model_copy(update={"characters": characters})


def replace_product(state: ProjectState, product_id: str, **changes) -> ProjectState:
    products = [p.model_copy(update=changes) if p.id == product_id else p for p in state.products]
    return state.model_copy(update={"products": products})

class ProjectCreated(BaseModel):
    id: str
    state: ProjectState


class ProjectRead(BaseModel):
    id: str
    state: ProjectState
    can_undo: bool = False
    can_redo: bool = False
