"""渲染请求编译

把风格、摄影、清洗后的描述、身份参考和连续性锚点按固定优先级
合并为一个 GenerationRequest（prompt + 有序附件）。纯函数，不修改状态。
"""
from __future__ import annotations

from dataclasses import dataclass

from scene_director.compiler.cinematography import Cinematography, resolve_cinematography
from scene_director.compiler.continuity import build_continuity, select_anchors
from scene_director.compiler.references import (
    ModelCapabilities,
    resolve_capabilities,
    resolve_references,
    selected_characters,
)
from scene_director.compiler.sanitizer import sanitize_scene_context
from scene_director.compiler.style import ResolvedStyle, resolve_meta_tokens, resolve_style, resolve_style_instruction
from scene_director.exceptions import SceneNotFoundError
from scene_director.schemas.generation import GenerationRequest
from scene_director.schemas.project import Character, ProjectState, SceneGroup

ACTION_DELIMITER = "->"

REALISTIC_NEGATIVE = (
    "!!! STRICT NEGATIVE: NO ANIME, NO CARTOON, NO 2D, NO DRAWING, NO ILLUSTRATION, NO PAINTING, NO CGI-LOOK !!!"
)
NO_HUMANS_NEGATIVE = (
    "STRICT NEGATIVE: NO PEOPLE, NO CHARACTERS, NO HUMANS, NO FACES, NO BODY PARTS. "
    "EXPLICITLY REMOVE ALL HUMAN ELEMENTS."
)
DEFAULT_SHOT_SCALE = "CINEMATIC WIDE SHOT."


@dataclass(frozen=True)
class PromptParts:
    style: ResolvedStyle
    cinematography: Cinematography
    context: str
    characters: list[Character]
    meta_tokens: str
    group: SceneGroup | None = None
    continuity_instruction: str = ""
    refinement: str | None = None


def extract_core_action(context: str) -> str:
    """取最后一个 "->" 之后的部分作为动作重点；没有分隔符时返回全文"""
    if ACTION_DELIMITER in context:
        return context.split(ACTION_DELIMITER)[-1].strip()
    return context


def style_clause(style: ResolvedStyle) -> str:
    negative = REALISTIC_NEGATIVE if style.is_realistic else ""
    if not style.instruction:
        return negative
    return f"AUTHORITATIVE STYLE: {style.instruction.upper()}. {negative}".strip()


def character_clause(characters: list[Character], context: str) -> str:
    if characters:
        described = " ".join(f"[{c.name}: {c.description}]" for c in characters)
        return f"Appearing Characters: {described}"
    # 空场景（风景/特写）明确禁止出现人物，避免图像服务凭空加人
    return f"{NO_HUMANS_NEGATIVE} FOCUS ONLY ON {context.upper() or 'ENVIRONMENT'}."


def assemble_prompt(parts: PromptParts) -> str:
    angle = parts.cinematography.angle
    scale = f"SHOT SCALE: {angle.upper()}." if angle else DEFAULT_SHOT_SCALE
    core_action = (
        f"CORE ACTION: {extract_core_action(parts.context).upper()}. "
        "(Ensure high dynamic energy, motion blur if applicable, realistic physics)."
    )
    group_anchor = f"GLOBAL SETTING: {parts.group.description.upper()}." if parts.group and parts.group.description else ""
    camera = parts.cinematography.combined or "High Quality"

    fragments = [
        style_clause(parts.style),
        scale,
        core_action,
        group_anchor,
        character_clause(parts.characters, parts.context),
        f"FULL SCENE VISUALS: {parts.context}.",
        f"STYLE DETAILS: {parts.meta_tokens}.",
        f"TECHNICAL: (STRICT CAMERA: {camera}).",
    ]
    prompt = " ".join(f for f in fragments if f).strip()

    if parts.refinement:
        prompt = f"REFINEMENT: {parts.refinement}. BASE PROMPT: {prompt}"
    # 连续性指令最后前置，保证它始终位于最前
    if parts.continuity_instruction:
        prompt = f"{parts.continuity_instruction.strip()} {prompt}"
    return prompt


def compile_render_request(
    state: ProjectState,
    scene_id: str,
    *,
    refinement: str | None = None,
    capabilities: ModelCapabilities | None = None,
    model: str | None = None,
) -> GenerationRequest:
    """根据当前项目状态为指定场景编译一次渲染请求"""
    target_index, scene = state.find_scene(scene_id)
    if scene is None:
        raise SceneNotFoundError(f"Scene {scene_id} not found", details={"scene_id": scene_id})

    model = model or state.image_model
    if capabilities is None:
        capabilities = resolve_capabilities(model)

    group = state.find_group(scene.group_id)
    context = sanitize_scene_context(state, scene)

    continuity = build_continuity(group, select_anchors(scene.group_id, state.scenes, target_index))
    references = resolve_references(state, scene, capabilities)

    prompt = assemble_prompt(
        PromptParts(
            style=resolve_style(state, group),
            cinematography=resolve_cinematography(state, scene),
            context=context,
            characters=selected_characters(state, scene),
            meta_tokens=resolve_meta_tokens(state),
            group=group,
            continuity_instruction=continuity.instruction,
            refinement=refinement,
        )
    )

    return GenerationRequest(
        prompt_text=prompt,
        attachments=[*continuity.attachments, *references],
        model=model,
        aspect_ratio=state.aspect_ratio or "16:9",
    )


def build_concept_prompt(
    state: ProjectState,
    group_name: str,
    group_description: str,
    style_override: str | None = None,
    custom_style_override: str | None = None,
) -> str:
    """场景组概念图 prompt：纯环境，禁止人物"""
    if style_override:
        instruction = resolve_style_instruction(style_override, custom_style_override)
    else:
        instruction = resolve_style_instruction(state.style_prompt, state.custom_style_instruction)
    meta_tokens = resolve_meta_tokens(state)
    return (
        f'STRICT ENVIRONMENT CONCEPT ART: Location "{group_name}". DESCRIPTION: {group_description}. '
        f"STYLE: {instruction} {meta_tokens}. MANDATORY: Cinematic landscape/interior, architectural focus, "
        "atmospheric lighting. !!! ABSOLUTELY NO PEOPLE, NO HUMANS, NO CHARACTERS, NO FACES !!! "
        "focus purely on set design."
    ).strip()


DEFAULT_SHEET_STYLE = "Cinematic photorealistic, 8k, high quality"


def build_character_sheet_prompts(state: ProjectState, character: Character) -> tuple[str, str]:
    """身份视图 prompt：(FACE ID 特写, FULL BODY 全身)，白底，沿用项目风格"""
    style = resolve_style_instruction(state.style_prompt, state.custom_style_instruction) or DEFAULT_SHEET_STYLE
    consistency = (
        "**MANDATORY CONSISTENCY:** "
        "- BACKGROUND: MUST be a Pure Solid White Studio Background. "
        "- CHARACTER: The character's face, hair, and clothing MUST be exactly as seen in the reference. "
        f'- MASTER REFERENCE STYLE: You must strictly adhere to the following artistic style for all character details: "{style}". '
        "- LIGHTING: Professional studio lighting with rim lights for clear character silhouette. "
        "- QUALITY: 8K resolution, hyper-detailed, clean sharp focus."
    )
    description = character.description or "Character"
    face = (
        f"{consistency}\n\n(STRICT CAMERA: EXTREME CLOSE-UP - FACE ID ON WHITE BACKGROUND) "
        f"Generate a highly detailed Face ID close-up of this character: {description}. "
        "Focus on capturing the exact facial features and expression from the reference. "
        "The background must be pure solid white."
    )
    body = (
        f"{consistency}\n\n(STRICT CAMERA: FULL BODY HEAD-TO-TOE WIDE SHOT ON WHITE BACKGROUND) "
        "Generate a Full Body character design sheet (Front View, T-Pose or A-Pose). "
        f"MUST CAPTURE HEAD-TO-TOE INCLUDING VISIBLE FEET. Description: {description}. "
        "The clothing must match the reference image's color and texture exactly. "
        "The background must be pure solid white."
    )
    return face, body


def build_product_master_prompt(description: str) -> str:
    return (
        f"Professional product photography of {description}. Studio lighting, white background, "
        "8K detail, centered, front view, high quality product shot."
    )
