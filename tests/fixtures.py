from __future__ import annotations

import asyncio
from collections.abc import Callable

from scene_director.exceptions import MissingCredentialError, ProviderError
from scene_director.schemas.generation import GeneratedImage, GenerationRequest
from tests.factories import png_base64


class FakeImageService:
    """记录收到的请求；按调用序号（从 1 开始）注入失败"""

    def __init__(
        self,
        *,
        api_key: str | None = "test-key",
        fail_calls: set[int] | None = None,
        gate: asyncio.Event | None = None,
        on_call: Callable[[int, GenerationRequest], None] | None = None,
    ):
        self.api_key = api_key
        self.fail_calls = fail_calls or set()
        self.gate = gate
        self.on_call = on_call
        self.requests: list[GenerationRequest] = []
        self.prompts: list[str] = []

    @property
    def count(self) -> int:
        return len(self.requests)

    def ensure_credentials(self) -> None:
        if not self.api_key:
            raise MissingCredentialError("Missing Credentials (API Key)")

    async def generate_image(self, request: GenerationRequest) -> GeneratedImage:
        self.requests.append(request)
        call = len(self.requests)
        if self.on_call is not None:
            self.on_call(call, request)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if call in self.fail_calls:
            raise ProviderError("quota exceeded", details={"status_code": 429})
        return GeneratedImage(base64=png_base64((call * 10 % 256, 90, 90)), mime_type="image/png")

    async def generate_from_prompt(self, prompt: str, *, model: str, aspect_ratio: str) -> GeneratedImage:
        self.prompts.append(prompt)
        return GeneratedImage(base64=png_base64((10, 10, 200)), mime_type="image/png")


class DummyWsManager:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    async def send_event(self, project_id: str, event: dict) -> None:
        self.events.append((project_id, event))

    def types(self) -> list[str]:
        return [event["type"] for _, event in self.events]
