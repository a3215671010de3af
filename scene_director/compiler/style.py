from __future__ import annotations

from dataclasses import dataclass

from scene_director.compiler.presets import (
    CUSTOM,
    DEFAULT_META_TOKENS,
    GLOBAL_STYLES,
    REALISTIC_STYLES,
    SCRIPT_PRESET_CATEGORIES,
)
from scene_director.schemas.project import ProjectState, SceneGroup


@dataclass(frozen=True)
class ResolvedStyle:
    style_id: str
    instruction: str

    @property
    def is_realistic(self) -> bool:
        return self.style_id in REALISTIC_STYLES


def resolve_style_instruction(style_id: str | None, custom_text: str | None) -> str:
    """custom 返回原始文本；否则查表，查不到返回空字符串"""
    if style_id == CUSTOM:
        return custom_text or ""
    return GLOBAL_STYLES.get(style_id or "", "")


def resolve_style(state: ProjectState, group: SceneGroup | None = None) -> ResolvedStyle:
    """解析场景的生效风格。

    场景组定义了风格覆盖时整体以组为准（id 和自定义文本都来自组），
    否则回退到项目级风格。
    """
    if group is not None and group.style_prompt:
        style_id = group.style_prompt
        custom_text = group.custom_style_instruction
    else:
        style_id = state.style_prompt
        custom_text = state.custom_style_instruction
    return ResolvedStyle(style_id=style_id or "", instruction=resolve_style_instruction(style_id, custom_text))


def resolve_meta_tokens(state: ProjectState) -> str:
    if state.custom_meta_tokens:
        return state.custom_meta_tokens

    category = SCRIPT_PRESET_CATEGORIES.get(state.active_script_preset)
    if category is None:
        custom = next((p for p in state.custom_script_presets if p.id == state.active_script_preset), None)
        category = custom.category if custom else "custom"
    return DEFAULT_META_TOKENS.get(category) or DEFAULT_META_TOKENS["custom"]
