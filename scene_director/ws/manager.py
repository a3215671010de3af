from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from scene_director.schemas.ws import WsEvent

logger = logging.getLogger(__name__)


class ConnectionManager:
    """按项目分组的 WebSocket 连接，渲染/批量进度通过它推送给前端"""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    def subscriber_count(self, project_id: str) -> int:
        return len(self._subscribers.get(project_id, ()))

    async def connect(self, project_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._subscribers[project_id].add(websocket)
        logger.debug("WebSocket subscribed to project %s (%d open)", project_id, self.subscriber_count(project_id))

    async def disconnect(self, project_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._subscribers.get(project_id)
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                del self._subscribers[project_id]

    async def send_event(self, project_id: str, event: dict[str, Any] | WsEvent) -> None:
        message = event if isinstance(event, WsEvent) else WsEvent.model_validate(event)
        payload = message.model_dump(mode="json")

        stale: list[WebSocket] = []
        for ws in list(self._subscribers.get(project_id, ())):
            if ws.client_state != WebSocketState.CONNECTED:
                stale.append(ws)
                continue
            try:
                await ws.send_json(payload)
            except Exception as exc:
                logger.debug("Dropping websocket for project %s: %s", project_id, exc)
                stale.append(ws)

        for ws in stale:
            await self.disconnect(project_id, ws)


ws_manager = ConnectionManager()
