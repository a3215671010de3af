from __future__ import annotations

import httpx
import pytest

from scene_director.config import Settings
from scene_director.exceptions import StorageError
from scene_director.schemas.project import replace_scene
from scene_director.services.storage import ObjectStorage, apply_uploaded_urls
from tests.factories import create_character, create_group, create_scene, create_state, png_data_uri


def _settings(**overrides) -> Settings:
    fields = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "storage_url": "https://store.test",
        "storage_api_key": "service-key",
    }
    fields.update(overrides)
    return Settings(**fields)


def _state():
    return create_state(
        [create_scene("s1", "1", image=png_data_uri())],
        groups=[create_group(concept_image=png_data_uri((0, 0, 200)))],
        characters=[create_character(master_image=png_data_uri((1, 2, 3)), face_image="https://cdn.test/face.png")],
    )


@pytest.mark.asyncio
async def test_offload_skipped_without_user_or_config():
    state = _state()
    assert await ObjectStorage(_settings()).offload_project_images(state, None) is state
    unconfigured = ObjectStorage(_settings(storage_url=None))
    assert await unconfigured.offload_project_images(state, "user-1") is state


@pytest.mark.asyncio
async def test_offload_replaces_inline_images_with_public_urls():
    uploads: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["authorization"] == "Bearer service-key"
        assert request.headers["content-type"] == "image/png"
        uploads.append(request.url.path)
        return httpx.Response(200, json={"Key": request.url.path})

    state = _state()
    storage = ObjectStorage(_settings(), transport=httpx.MockTransport(handler))
    result = await storage.offload_project_images(state, "user-1")

    assert len(uploads) == 3
    assert all(path.startswith("/storage/v1/object/project-assets/user-1/") for path in uploads)

    public = "https://store.test/storage/v1/object/public/project-assets/user-1/"
    assert result.characters[0].master_image.startswith(public)
    assert result.characters[0].master_image.endswith("char_c1_master_image.png")
    assert result.characters[0].face_image == "https://cdn.test/face.png"
    assert result.scenes[0].generated_image.startswith(public)
    assert result.scene_groups[0].concept_image.startswith(public)
    # 原状态不变
    assert state.scenes[0].generated_image.startswith("data:")


@pytest.mark.asyncio
async def test_upload_failure_raises_storage_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "bucket missing"})

    storage = ObjectStorage(_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(StorageError):
        await storage.upload_data_uri(png_data_uri(), "user-1/x.png")


def test_apply_uploaded_urls_only_swaps_unchanged_fields():
    uploaded = png_data_uri()
    state = create_state([create_scene("s1", "1", image=uploaded), create_scene("s2", "2", image=uploaded)])
    # 上传期间 s2 被重新渲染
    current = replace_scene(state, "s2", generated_image=png_data_uri((9, 9, 9)))

    result = apply_uploaded_urls(current, {uploaded: "https://cdn.test/s.png"})

    assert result.scenes[0].generated_image == "https://cdn.test/s.png"
    assert result.scenes[1].generated_image == current.scenes[1].generated_image
    assert apply_uploaded_urls(current, {}) is current
    assert apply_uploaded_urls(current, {"data:image/png;base64,AAAA": "https://cdn.test/x.png"}) is current


@pytest.mark.asyncio
async def test_identical_images_uploaded_once():
    uploads: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        uploads.append(request.url.path)
        return httpx.Response(200, json={})

    image = png_data_uri()
    state = create_state([create_scene("s1", "1", image=image), create_scene("s2", "2", image=image)])
    urls = await ObjectStorage(_settings(), transport=httpx.MockTransport(handler)).upload_inline_images(state, "user-1")

    assert len(uploads) == 1
    assert list(urls) == [image]
