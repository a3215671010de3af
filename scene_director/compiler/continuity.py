"""场景组连续性锚点

每次渲染都基于当前状态快照重新计算，不做缓存：
- Master Anchor：组内已有图片、scene_number 数值最小的场景（“场景锁”）
- Last-Shot Anchor：目标场景之前（按列表位置）最近的、组内已有图片的场景，
  与 Master Anchor 相同则不重复附带
两者都不存在时，退而使用场景组的概念图（moodboard）。

正确性依赖于前面场景的 generated_image 已经提交到状态中，
所以批量生成必须严格串行。
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from scene_director.compiler.references import make_attachment
from scene_director.schemas.generation import Attachment
from scene_director.schemas.project import Scene, SceneGroup

SET_LOCK_LABEL = "SCENE_MASTER_LOCK (Set Anchor)"
LAST_SHOT_LABEL = "SHOT_CONTINUITY_ANCHOR (Last Shot)"
MOODBOARD_LABEL = "MOODBOARD REFERENCE"

PERSPECTIVE_SHIFT = "CAMERA PERSPECTIVE SHIFT: Only change the camera angle. Everything else is LOCKED."

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class ContinuityAnchors:
    master: Scene | None = None
    last_shot: Scene | None = None


@dataclass
class ContinuityResult:
    attachments: list[Attachment] = field(default_factory=list)
    instruction: str = ""


def parse_scene_number(value: str | None) -> int | None:
    """取开头的整数部分（"12a" -> 12），无法解析返回 None"""
    match = _LEADING_INT.match(value or "")
    return int(match.group(1)) if match else None


def _order_key(indexed: tuple[int, Scene]) -> tuple[int, int, int]:
    idx, scene = indexed
    number = parse_scene_number(scene.scene_number)
    # 无法解析的编号排在最后；相同编号按列表位置
    if number is None:
        return (1, 0, idx)
    return (0, number, idx)


def select_anchors(group_id: str | None, scenes: Sequence[Scene], target_index: int) -> ContinuityAnchors:
    if not group_id:
        return ContinuityAnchors()

    rendered = [(idx, s) for idx, s in enumerate(scenes) if s.group_id == group_id and s.generated_image]
    if not rendered:
        return ContinuityAnchors()

    master = min(rendered, key=_order_key)[1]

    last_shot = None
    for idx, scene in reversed(rendered):
        if idx < target_index:
            last_shot = scene
            break
    if last_shot is not None and last_shot.id == master.id:
        last_shot = None

    return ContinuityAnchors(master=master, last_shot=last_shot)


def build_continuity(group: SceneGroup | None, anchors: ContinuityAnchors) -> ContinuityResult:
    result = ContinuityResult()
    if group is None:
        return result

    markers: list[str] = []

    if anchors.master is not None and anchors.master.generated_image:
        text = (
            f"[{SET_LOCK_LABEL}]: AUTHORITATIVE STRICT BACKGROUND for the physical environment. "
            "Match the architecture, props, weather, and lighting EXACTLY. This is a TIGHT SET LOCK. "
            "IGNORE the action in this reference, only follow its GEOMETRY and LIGHTING."
        )
        attachment = make_attachment("continuity", "SCENE_MASTER_LOCK", SET_LOCK_LABEL, text, anchors.master.generated_image)
        if attachment is not None:
            result.attachments.append(attachment)
            markers.append(f"(STRICT SET LOCK: Follow {SET_LOCK_LABEL})")

    if anchors.last_shot is not None and anchors.last_shot.generated_image:
        text = (
            f"[{LAST_SHOT_LABEL}]: Match character clothing, hair state, and immediate action from this "
            "previous shot. Note: This shot is a PERSPECTIVE SHIFT from the Master Lock."
        )
        attachment = make_attachment(
            "continuity", "SHOT_CONTINUITY_ANCHOR", LAST_SHOT_LABEL, text, anchors.last_shot.generated_image
        )
        if attachment is not None:
            result.attachments.append(attachment)
            markers.append(f"(SHOT CONTINUITY: Follow {LAST_SHOT_LABEL})")
    elif anchors.master is None and group.concept_image:
        text = f"[{MOODBOARD_LABEL}]: Match lighting, color palette, and architectural style."
        attachment = make_attachment("continuity", "MOODBOARD", MOODBOARD_LABEL, text, group.concept_image)
        if attachment is not None:
            result.attachments.append(attachment)
            markers.append("(CONCEPT LOCK)")

    if markers:
        result.instruction = f"{PERSPECTIVE_SHIFT} {' '.join(markers)}"
    return result
