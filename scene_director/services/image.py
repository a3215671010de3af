from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from scene_director.compiler.media import sniff_mime
from scene_director.config import Settings
from scene_director.exceptions import MalformedResponseError, MissingCredentialError, ProviderError
from scene_director.schemas.generation import Attachment, GeneratedImage, GenerationRequest

logger = logging.getLogger(__name__)


class ImageService:
    """图像生成服务（Gemini generateContent 接口）

    没有自动重试：失败直接抛出，由调用方写入 scene.error，用户手动重新生成。
    """

    def __init__(
        self,
        settings: Settings,
        *,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.api_key = (api_key or settings.image_api_key or "").strip() or None
        self._transport = transport

    def has_credentials(self) -> bool:
        return self.api_key is not None

    def ensure_credentials(self) -> None:
        """缺少 API Key 时在任何网络请求之前短路"""
        if not self.has_credentials():
            raise MissingCredentialError("Missing Credentials (API Key)")

    def _build_url(self, model: str) -> str:
        base = self.settings.image_base_url.rstrip("/")
        return f"{base}/models/{model}:generateContent"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.request_timeout_s, transport=self._transport)

    async def _inline_part(self, client: httpx.AsyncClient, attachment: Attachment) -> dict[str, Any]:
        if attachment.data is not None:
            return {"inlineData": {"mimeType": attachment.mime_type, "data": attachment.data}}

        # 已上传到对象存储的图片：下载后内联
        try:
            res = await client.get(attachment.url or "")
            res.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Failed to fetch reference image for {attachment.label}: {exc}",
                details={"url": attachment.url},
            ) from exc
        mime_type = res.headers.get("content-type", "").split(";")[0].strip() or attachment.mime_type
        return {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(res.content).decode("utf-8")}}

    async def build_payload(self, client: httpx.AsyncClient, request: GenerationRequest) -> dict[str, Any]:
        """附件按编译顺序展开为 (说明文字, 图片) 对，prompt 放在最后"""
        parts: list[dict[str, Any]] = []
        for attachment in request.attachments:
            parts.append({"text": attachment.text})
            parts.append(await self._inline_part(client, attachment))
        if request.prompt_text:
            parts.append({"text": request.prompt_text})

        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": request.aspect_ratio or "16:9"},
            },
        }

    @staticmethod
    def _error_message(res: httpx.Response) -> str:
        try:
            body = res.json()
        except ValueError:
            return res.text[:300] or f"HTTP {res.status_code}"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return f"HTTP {res.status_code}"

    @staticmethod
    def _extract_image(data: dict[str, Any]) -> GeneratedImage:
        candidates = data.get("candidates") or []
        first = candidates[0] if candidates and isinstance(candidates[0], dict) else {}
        parts = (first.get("content") or {}).get("parts") or []
        for part in parts:
            inline = part.get("inlineData") or part.get("inline_data") if isinstance(part, dict) else None
            if not isinstance(inline, dict) or not inline.get("data"):
                continue
            payload = inline["data"]
            sniffed = sniff_mime(payload)
            if sniffed is None:
                raise MalformedResponseError("Image API returned data that is not a decodable image")
            return GeneratedImage(base64=payload, mime_type=inline.get("mimeType") or inline.get("mime_type") or sniffed)

        reason = first.get("finishReason") if isinstance(first, dict) else None
        raise MalformedResponseError(
            "Image API response contained no image",
            details={"finish_reason": reason} if reason else None,
        )

    async def generate_image(self, request: GenerationRequest) -> GeneratedImage:
        self.ensure_credentials()
        url = self._build_url(request.model or self.settings.image_model)
        headers = self.settings.image_headers(self.api_key)

        async with self._client() as client:
            payload = await self.build_payload(client, request)
            logger.info(
                "Requesting image: model=%s attachments=%d prompt_chars=%d",
                request.model,
                len(request.attachments),
                len(request.prompt_text),
            )
            try:
                res = await client.post(url, headers=headers, json=payload)
            except httpx.HTTPError as exc:
                raise ProviderError(f"Image generation request failed: {exc}") from exc

            if res.is_error:
                raise ProviderError(
                    self._error_message(res),
                    details={"status_code": res.status_code},
                )
            try:
                data = res.json()
            except ValueError as exc:
                raise MalformedResponseError("Image API returned a non-JSON response") from exc

        return self._extract_image(data if isinstance(data, dict) else {})

    async def generate_from_prompt(self, prompt: str, *, model: str, aspect_ratio: str) -> GeneratedImage:
        """纯文本生成（无参考图），用于场景组概念图"""
        return await self.generate_image(
            GenerationRequest(prompt_text=prompt, attachments=[], model=model, aspect_ratio=aspect_ratio)
        )
