from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

AttachmentKind = Literal["continuity", "character", "product"]


class Attachment(BaseModel):
    """一个参考附件：说明文字 + 图片（内联 base64 或 URL）"""

    model_config = ConfigDict(frozen=True)

    kind: AttachmentKind
    role: str
    label: str
    text: str
    mime_type: str = "image/jpeg"
    data: str | None = None  # base64（不含 data: 前缀）
    url: str | None = None

    def summary(self) -> dict[str, Any]:
        """不含图片数据的摘要（用于预览/日志）"""
        return {
            "kind": self.kind,
            "role": self.role,
            "label": self.label,
            "text": self.text,
            "mime_type": self.mime_type,
            "url": self.url,
            "has_inline_data": self.data is not None,
        }


class GenerationRequest(BaseModel):
    """单次渲染请求：每次调用新建，从不保存"""

    model_config = ConfigDict(frozen=True)

    prompt_text: str
    attachments: list[Attachment] = Field(default_factory=list)
    model: str
    aspect_ratio: str = "16:9"


class GeneratedImage(BaseModel):
    base64: str
    mime_type: str = "image/png"

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


class RenderSceneRequest(BaseModel):
    refinement_prompt: str | None = None
    is_end_frame: bool = False


class ProductMasterRequest(BaseModel):
    description: str | None = None  # 为空时使用产品自身的描述


class GenerationPreview(BaseModel):
    prompt_text: str
    model: str
    aspect_ratio: str
    attachments: list[dict[str, Any]]


BatchState = Literal["idle", "running", "stopping"]


class BatchStatus(BaseModel):
    project_id: str
    state: BatchState = "idle"
    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    current_scene_id: str | None = None
    last_error: str | None = None
    stop_reason: Literal["completed", "stopped", "error"] | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_batch_generating(self) -> bool:
        return self.state != "idle"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_stopping(self) -> bool:
        return self.state == "stopping"
