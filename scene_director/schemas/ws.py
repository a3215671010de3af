from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel


WsEventType = Literal[
    "connected",
    "pong",
    "error",
    "state_replaced",    # 整体状态替换（PUT / 撤销 / 重做）
    "scene_updated",     # 场景更新（开始生成/生成完成/失败）
    "group_updated",     # 场景组更新（概念图生成）
    "character_updated", # 角色身份视图生成
    "product_updated",   # 产品主图生成
    "batch_started",
    "batch_progress",
    "batch_completed",
    "batch_stopped",     # 用户停止
    "batch_failed",      # 出错终止
]


class WsEvent(BaseModel):
    type: WsEventType
    data: dict[str, Any] = {}
