from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.websockets import WebSocketDisconnect

from scene_director.api.v1.router import api_router
from scene_director.config import get_settings
from scene_director.db.session import init_db
from scene_director.exceptions import AppException
from scene_director.services.state_store import state_store
from scene_director.ws.manager import ws_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    logging.getLogger("scene_director").setLevel(settings.log_level.upper())
    state_store.history_limit = settings.history_limit
    await init_db()
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_v1_prefix)

    # 全局异常处理器
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        """处理自定义应用异常"""
        logger.error(
            f"AppException: {exc.code} - {exc.message}",
            extra={
                "code": exc.code,
                "status_code": exc.status_code,
                "details": exc.details,
                "path": request.url.path,
                "method": request.method,
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                    "details": exc.details,
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """处理未捕获的异常"""
        logger.exception(
            f"Unhandled exception: {exc}",
            extra={"path": request.url.path, "method": request.method},
        )
        # 开发环境返回详细错误
        details = {"error": str(exc)} if settings.environment == "dev" else {}
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "服务器内部错误，请稍后重试",
                    "details": details,
                }
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.websocket("/ws/projects/{project_id}")
    async def ws_projects(websocket: WebSocket, project_id: str):
        await ws_manager.connect(project_id, websocket)
        try:
            await ws_manager.send_event(project_id, {"type": "connected", "data": {"project_id": project_id}})
            while True:
                msg = await websocket.receive_json()
                if msg.get("type") == "ping":
                    await ws_manager.send_event(project_id, {"type": "pong", "data": {}})
                else:
                    await ws_manager.send_event(
                        project_id,
                        {
                            "type": "error",
                            "data": {"code": "WS_UNKNOWN_MESSAGE", "message": f"Unsupported message type: {msg.get('type')}"},
                        },
                    )
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected for project {project_id}")
        finally:
            await ws_manager.disconnect(project_id, websocket)

    return app


app = create_app()
