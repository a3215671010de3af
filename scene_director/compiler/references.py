"""身份参考图解析

为场景中选中的角色 / 产品挑选身份视图，生成有序的参考附件列表。
附件顺序（先角色后产品，各自按 character_ids / product_ids 的声明顺序）
决定了图像服务的隐式注意力优先级，必须保持稳定。
"""
from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import lru_cache

from scene_director.compiler.media import is_remote_url, split_data_uri
from scene_director.schemas.generation import Attachment, AttachmentKind
from scene_director.schemas.project import Character, Product, ProjectState, Scene

HIGH_CAPABILITY_MODELS = frozenset({"gemini-3-pro-image-preview"})


@dataclass(frozen=True)
class ModelCapabilities:
    """模型能力：每个角色 / 产品最多附带多少个身份视图"""

    max_character_views: int
    max_product_views: int


STANDARD_CAPABILITIES = ModelCapabilities(max_character_views=2, max_product_views=2)
HIGH_CAPABILITIES = ModelCapabilities(max_character_views=4, max_product_views=4)


@lru_cache(maxsize=32)
def _resolve(model: str, high_models: frozenset[str]) -> ModelCapabilities:
    return HIGH_CAPABILITIES if model in high_models else STANDARD_CAPABILITIES


def resolve_capabilities(model: str | None, high_capability_models: Iterable[str] | None = None) -> ModelCapabilities:
    high = frozenset(high_capability_models) if high_capability_models is not None else HIGH_CAPABILITY_MODELS
    return _resolve(model or "", high)


# (视图名, 取图函数)，按优先级排列；模型能力决定截取前几个
CHARACTER_VIEWS: tuple[tuple[str, Callable[[Character], str | None]], ...] = (
    ("FACE ID", lambda c: c.face_image),
    ("FULL BODY", lambda c: c.body_image),
    ("SIDE VIEW", lambda c: c.side_image),
    ("BACK VIEW", lambda c: c.back_image),
)

PRODUCT_VIEWS: tuple[tuple[str, Callable[[Product], str | None]], ...] = (
    ("FRONT VIEW", lambda p: p.views.front),
    ("SIDE VIEW", lambda p: p.views.left or p.views.right),
    ("BACK VIEW", lambda p: p.views.back),
    ("TOP VIEW", lambda p: p.views.top),
)

PRIMARY = "PRIMARY"


def make_attachment(kind: AttachmentKind, role: str, label: str, text: str, image: str) -> Attachment | None:
    """把存储的图片（data URI / URL / 裸 base64）包装为附件"""
    if not image:
        return None
    if is_remote_url(image):
        return Attachment(kind=kind, role=role, label=label, text=text, url=image)
    mime_type, data = split_data_uri(image)
    return Attachment(kind=kind, role=role, label=label, text=text, mime_type=mime_type, data=data)


def character_views(character: Character, capabilities: ModelCapabilities) -> list[tuple[str, str]]:
    views = [
        (role, image)
        for role, getter in CHARACTER_VIEWS[: capabilities.max_character_views]
        if (image := getter(character))
    ]
    if not views and character.master_image:
        views.append((PRIMARY, character.master_image))
    return views


def product_views(product: Product, capabilities: ModelCapabilities) -> list[tuple[str, str]]:
    views = [
        (role, image)
        for role, getter in PRODUCT_VIEWS[: capabilities.max_product_views]
        if (image := getter(product))
    ]
    if not views and product.master_image:
        views.append((PRIMARY, product.master_image))
    return views


def character_attachments(character: Character, capabilities: ModelCapabilities) -> list[Attachment]:
    attachments: list[Attachment] = []
    for role, image in character_views(character, capabilities):
        label = f"MASTER VISUAL: {character.name.upper()} {role}"
        text = (
            f"[{label}]: AUTHORITATIVE identity anchor for {character.name}. Match these exact face features. "
            f"For clothing and pose, defer to SCENE_LOCK_REFERENCE if present. Description: {character.description}"
        )
        attachment = make_attachment("character", role, label, text, image)
        if attachment is not None:
            attachments.append(attachment)
    return attachments


def product_attachments(product: Product, capabilities: ModelCapabilities) -> list[Attachment]:
    attachments: list[Attachment] = []
    for role, image in product_views(product, capabilities):
        label = f"MASTER VISUAL: {product.name.upper()} {role}"
        text = (
            f"[{label}]: AUTHORITATIVE visual anchor for {product.name}. "
            "Match the design, colors, and branding from this image exactly."
        )
        attachment = make_attachment("product", role, label, text, image)
        if attachment is not None:
            attachments.append(attachment)
    return attachments


def selected_characters(state: ProjectState, scene: Scene) -> list[Character]:
    by_id = {c.id: c for c in state.characters}
    return [by_id[cid] for cid in dict.fromkeys(scene.character_ids) if cid in by_id]


def selected_products(state: ProjectState, scene: Scene) -> list[Product]:
    by_id = {p.id: p for p in state.products}
    return [by_id[pid] for pid in dict.fromkeys(scene.product_ids) if pid in by_id]


def resolve_references(state: ProjectState, scene: Scene, capabilities: ModelCapabilities) -> list[Attachment]:
    attachments: list[Attachment] = []
    for character in selected_characters(state, scene):
        attachments.extend(character_attachments(character, capabilities))
    for product in selected_products(state, scene):
        attachments.extend(product_attachments(product, capabilities))
    return attachments
