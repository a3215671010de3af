from __future__ import annotations

from dataclasses import dataclass

from scene_director.compiler.presets import CAMERA_ANGLES, CAMERA_MODELS, CUSTOM, LENS_OPTIONS
from scene_director.schemas.project import ProjectState, Scene


@dataclass(frozen=True)
class Cinematography:
    camera: str = ""
    lens: str = ""
    angle: str = ""

    @property
    def combined(self) -> str:
        return ", ".join(part for part in (self.camera, self.lens, self.angle) if part)


def resolve_camera(state: ProjectState) -> str:
    # 机身没有逐场景覆盖，只看项目全局设置
    if state.camera_model == CUSTOM:
        return f"Shot on {state.custom_camera_model}" if state.custom_camera_model else ""
    return CAMERA_MODELS.get(state.camera_model or "", "")


def resolve_lens(state: ProjectState, scene: Scene) -> str:
    effective = scene.lens_override or state.default_lens or ""
    if effective == CUSTOM:
        return scene.custom_lens_override or state.custom_default_lens or ""
    return LENS_OPTIONS.get(effective, "")


def resolve_angle(scene: Scene) -> str:
    # 没有项目级回退：未设置时为空，由 PromptAssembler 使用默认的广角镜头
    override = scene.camera_angle_override or ""
    if override == CUSTOM:
        return scene.custom_camera_angle or ""
    return CAMERA_ANGLES.get(override, "")


def resolve_cinematography(state: ProjectState, scene: Scene) -> Cinematography:
    return Cinematography(
        camera=resolve_camera(state),
        lens=resolve_lens(state, scene),
        angle=resolve_angle(scene),
    )
