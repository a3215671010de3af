"""对象存储服务

把内联的 base64 图片上传到存储桶，用公开 URL 替换，减小云端保存的项目体积。
未登录（没有 user_id）时跳过，图片保持内联。
"""
from __future__ import annotations

import base64
import binascii
import logging
import time

import httpx

from scene_director.compiler.media import is_data_uri, split_data_uri
from scene_director.config import Settings
from scene_director.exceptions import StorageError
from scene_director.schemas.project import ProjectState

logger = logging.getLogger(__name__)

_EXTENSIONS = {"image/png": "png", "image/webp": "webp", "image/gif": "gif"}

CHARACTER_IMAGE_FIELDS = ("master_image", "face_image", "body_image", "side_image", "back_image")
PRODUCT_VIEW_FIELDS = ("front", "back", "left", "right", "top")
SCENE_IMAGE_FIELDS = ("generated_image", "end_frame_image")


class ObjectStorage:
    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._transport = transport

    def is_configured(self) -> bool:
        return self.settings.use_storage()

    async def upload_data_uri(self, data_uri: str, path: str) -> str:
        """上传 data URI 图片，返回公开 URL"""
        mime_type, payload = split_data_uri(data_uri)
        try:
            body = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise StorageError(f"Invalid image data for {path}", details={"path": path}) from exc

        base = (self.settings.storage_url or "").rstrip("/")
        url = f"{base}/storage/v1/object/{self.settings.storage_bucket}/{path}"
        async with httpx.AsyncClient(timeout=self.settings.request_timeout_s, transport=self._transport) as client:
            try:
                res = await client.post(url, headers=self.settings.storage_headers(mime_type), content=body)
                res.raise_for_status()
            except httpx.HTTPError as exc:
                logger.error("Storage upload failed for path %s: %s", path, exc)
                raise StorageError(f"Upload failed for path {path}: {exc}", details={"path": path}) from exc
        return self.settings.build_public_url(path)

    async def upload_inline_images(self, state: ProjectState, user_id: str | None) -> dict[str, str]:
        """上传状态中的所有内联图片，返回 data URI -> 公开 URL 的映射

        不修改状态；调用方用 apply_uploaded_urls 把映射应用到（可能已经变化的）当前状态上。
        """
        if not user_id or not self.is_configured():
            return {}

        stamp = int(time.time() * 1000)
        uploaded: dict[str, str] = {}
        for value, key in _inline_images(state):
            if value in uploaded:
                continue
            mime_type, _ = split_data_uri(value)
            ext = _EXTENSIONS.get(mime_type, "jpg")
            uploaded[value] = await self.upload_data_uri(value, f"{user_id}/{stamp}/{key}.{ext}")

        if uploaded:
            logger.info("Offloaded %d inline images for user %s", len(uploaded), user_id)
        return uploaded

    async def offload_project_images(self, state: ProjectState, user_id: str | None) -> ProjectState:
        """返回一个新状态：所有内联图片替换为公开 URL"""
        return apply_uploaded_urls(state, await self.upload_inline_images(state, user_id))


def _inline_images(state: ProjectState) -> list[tuple[str, str]]:
    """(data URI, 存储文件名) 列表"""
    found: list[tuple[str, str]] = []

    def _add(value: str | None, key: str) -> None:
        if is_data_uri(value):
            found.append((value, key))

    for c in state.characters:
        for f in CHARACTER_IMAGE_FIELDS:
            _add(getattr(c, f), f"char_{c.id}_{f}")
    for p in state.products:
        _add(p.master_image, f"prod_{p.id}_master")
        for f in PRODUCT_VIEW_FIELDS:
            _add(getattr(p.views, f), f"prod_{p.id}_{f}")
    for s in state.scenes:
        for f in SCENE_IMAGE_FIELDS:
            _add(getattr(s, f), f"scene_{s.id}_{f}")
    for g in state.scene_groups:
        _add(g.concept_image, f"group_{g.id}_concept")
    return found


def _swap(model, fields: tuple[str, ...], urls: dict[str, str]):
    # 只替换当前值仍是那张已上传图片的字段
    changes = {f: urls[v] for f in fields if (v := getattr(model, f)) in urls}
    return model.model_copy(update=changes) if changes else model


def apply_uploaded_urls(state: ProjectState, urls: dict[str, str]) -> ProjectState:
    """把上传映射应用到状态上；没有字段变化时返回原对象"""
    if not urls:
        return state

    characters = [_swap(c, CHARACTER_IMAGE_FIELDS, urls) for c in state.characters]
    products = []
    for p in state.products:
        views = _swap(p.views, PRODUCT_VIEW_FIELDS, urls)
        product = _swap(p, ("master_image",), urls)
        if views is not p.views:
            product = product.model_copy(update={"views": views})
        products.append(product)
    scenes = [_swap(s, SCENE_IMAGE_FIELDS, urls) for s in state.scenes]
    groups = [_swap(g, ("concept_image",), urls) for g in state.scene_groups]

    changed = any(
        new is not old
        for new, old in zip(
            [*characters, *products, *scenes, *groups],
            [*state.characters, *state.products, *state.scenes, *state.scene_groups],
        )
    )
    if not changed:
        return state
    return state.model_copy(
        update={"characters": characters, "products": products, "scenes": scenes, "scene_groups": groups}
    )
