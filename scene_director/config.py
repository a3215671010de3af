from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Note: do not hardcode env_file here; tests instantiate Settings() directly and
    # should not implicitly read the repo's .env. Runtime uses get_settings().
    model_config = SettingsConfigDict(extra="ignore")

    app_name: str = "scene-director-backend"
    environment: str = Field(default="dev", description="dev|staging|prod")
    log_level: str = Field(default="INFO", description="包日志级别")

    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # 数据库（项目快照的本地持久化）
    database_url: str = Field(default="sqlite+aiosqlite:///./scene_director.db")
    db_echo: bool = False

    # ============================================
    # 图像生成服务 (Gemini generateContent 接口)
    # ============================================
    image_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="图像生成服务基础地址",
    )
    image_api_key: str | None = None
    image_model: str = Field(
        default="gemini-3-pro-image-preview",
        description="项目未指定模型时使用的图像模型",
    )
    high_capability_models: list[str] = Field(
        default_factory=lambda: ["gemini-3-pro-image-preview"],
        description="可附带完整参考视图（侧面/背面/顶部）的模型",
    )
    request_timeout_s: float = 300.0

    # ============================================
    # 批量生成
    # ============================================
    batch_item_delay_s: float = Field(
        default=0.5,
        description="两次成功渲染之间的间隔（秒），用于规避限流",
    )
    batch_failure_policy: Literal["abort", "continue"] = Field(
        default="abort",
        description="单个场景失败时：abort（终止整个批次）或 continue（跳过继续）",
    )

    # ============================================
    # 并发与历史
    # ============================================
    serialize_group_renders: bool = Field(
        default=True,
        description="同一场景组内的渲染串行执行，保证连续性锚点读取到已提交的图片",
    )
    record_edit_history: bool = Field(
        default=True,
        description="覆盖 generated_image 时把旧图写入 edit_history",
    )
    history_limit: int = Field(default=50, description="撤销历史的最大长度")

    # ============================================
    # 对象存储（Supabase Storage 兼容接口）
    # ============================================
    storage_url: str | None = Field(
        default=None,
        description="对象存储服务地址，例如 https://xyz.supabase.co",
    )
    storage_api_key: str | None = None
    storage_bucket: str = "project-assets"

    def use_storage(self) -> bool:
        """是否配置了对象存储"""
        return bool(self.storage_url and self.storage_api_key)

    def image_headers(self, api_key: str | None = None) -> dict[str, str]:
        """图像服务请求头"""
        headers: dict[str, str] = {
            "User-Agent": self.app_name,
            "Content-Type": "application/json",
        }
        key = api_key or self.image_api_key
        if key:
            headers["x-goog-api-key"] = key.strip()
        return headers

    def storage_headers(self, content_type: str | None = None) -> dict[str, str]:
        """对象存储请求头"""
        headers: dict[str, str] = {"User-Agent": self.app_name, "x-upsert": "true"}
        if self.storage_api_key:
            headers["Authorization"] = f"Bearer {self.storage_api_key}"
            headers["apikey"] = self.storage_api_key
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def build_public_url(self, path: str) -> str:
        """将存储桶内路径转换为公开访问 URL"""
        base = (self.storage_url or "").rstrip("/")
        return f"{base}/storage/v1/object/public/{self.storage_bucket}/{path.lstrip('/')}"


@lru_cache
def get_settings() -> Settings:
    return Settings(_env_file=".env", _env_file_encoding="utf-8")
