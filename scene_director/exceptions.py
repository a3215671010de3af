"""应用异常定义

所有业务异常都继承 AppException，由 main.py 中的全局处理器统一转换为
{"error": {"code", "message", "details"}} 响应。
"""
from __future__ import annotations

from typing import Any


class AppException(Exception):
    code: str = "APP_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}


class ProjectNotFoundError(AppException):
    code = "PROJECT_NOT_FOUND"
    status_code = 404


class SceneNotFoundError(AppException):
    code = "SCENE_NOT_FOUND"
    status_code = 404


class GroupNotFoundError(AppException):
    code = "GROUP_NOT_FOUND"
    status_code = 404


class MissingCredentialError(AppException):
    """未配置图像服务的 API Key，在发起任何网络请求之前抛出"""

    code = "MISSING_CREDENTIAL"
    status_code = 401


class SceneBusyError(AppException):
    """场景正在生成中（is_generating=True），拒绝第二个并发渲染"""

    code = "SCENE_BUSY"
    status_code = 409


class BatchAlreadyRunningError(AppException):
    code = "BATCH_ALREADY_RUNNING"
    status_code = 409


class ProviderError(AppException):
    """图像服务网络/校验错误"""

    code = "PROVIDER_FAILURE"
    status_code = 502


class MalformedResponseError(ProviderError):
    """图像服务返回中没有可用的图片"""

    code = "MALFORMED_RESPONSE"


class StorageError(AppException):
    code = "STORAGE_FAILURE"
    status_code = 502


class CharacterNotFoundError(AppException):
    code = "CHARACTER_NOT_FOUND"
    status_code = 404


class ProductNotFoundError(AppException):
    code = "PRODUCT_NOT_FOUND"
    status_code = 404


class MissingSourceError(AppException):
    """生成所需的来源（主图 / 描述）为空"""

    code = "MISSING_SOURCE"
    status_code = 422
