"""场景描述清洗

1. 去除文本生成阶段遗留的连续性元指令（英文 / 越南语两种）
2. 去除未被选中角色的名字（整词、忽略大小写）
3. 空白归一化

清洗反复执行直到结果不再变化，因此 sanitize(sanitize(x)) == sanitize(x)。
"""
from __future__ import annotations

import re
from collections.abc import Iterable

from scene_director.schemas.project import ProjectState, Scene

_META_PATTERNS = (
    re.compile(r"Referencing environment from.*?(consistency|logic|group|refgroup|nhất quán)\.?", re.IGNORECASE),
    re.compile(r"Tham chiếu bối cảnh từ.*?(nhất quán|consistency)\.?", re.IGNORECASE),
)
_WHITESPACE = re.compile(r"\s+")


def strip_meta_phrases(text: str) -> str:
    for pattern in _META_PATTERNS:
        text = pattern.sub("", text)
    return text


def strip_names(text: str, names: Iterable[str]) -> str:
    for name in names:
        name = name.strip()
        if not name:
            continue
        # 用 \w 边界代替 \b，名字以标点结尾（如 "Dr."）时也能整词匹配
        pattern = re.compile(rf"(?<!\w){re.escape(name)}(?!\w)", re.IGNORECASE)
        text = pattern.sub("", text)
    return text


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def sanitize(text: str | None, excluded_names: Iterable[str] = ()) -> str:
    names = list(excluded_names)
    cleaned = text or ""
    while True:
        updated = normalize_whitespace(strip_names(strip_meta_phrases(cleaned), names))
        if updated == cleaned:
            return cleaned
        cleaned = updated


def unselected_character_names(state: ProjectState, scene: Scene) -> list[str]:
    selected = set(scene.character_ids)
    return [c.name for c in state.characters if c.id not in selected and c.name]


def sanitize_scene_context(state: ProjectState, scene: Scene) -> str:
    return sanitize(scene.context_description, unselected_character_names(state, scene))
