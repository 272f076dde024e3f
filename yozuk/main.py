"""HTTP 服务入口：组装 FastAPI 应用、请求 ID 中间件、健康检查与 v1 路由。"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response

from yozuk.api.router import api_router
from yozuk.application.container import get_engine, get_session_sweeper, shutdown_container_resources
from yozuk.config import get_settings
from yozuk.infra.logging.context import bind_log_context
from yozuk.infra.logging.setup import configure_logging, shutdown_logging

REQUEST_ID_HEADER = "X-Request-Id"

settings = get_settings()
configure_logging(settings, process_role="api")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """启动时预建引擎（技能编码冲突直接终止启动）并拉起会话清理线程。"""
    logger.info("api startup begin", extra={"event": "api.startup.started"})
    engine = get_engine()
    get_session_sweeper().start()
    logger.info(
        "api startup ready",
        extra={"event": "api.startup.succeeded", "payload_preview": {"skills": engine.skill_codes()}},
    )
    try:
        yield
    finally:
        logger.info("api shutdown begin", extra={"event": "api.shutdown.started"})
        shutdown_container_resources()
        shutdown_logging()


app = FastAPI(title=settings.app_name, lifespan=lifespan)


def _log_request(request: Request, started: float, response: Response | None, exc: Exception | None = None) -> None:
    extra = {
        "op": f"{request.method} {request.url.path}",
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
    }
    if exc is not None:
        extra.update(event="http.request.failed", error_type=type(exc).__name__, error=str(exc))
        logger.exception("http request failed", extra=extra)
    elif response is not None:
        extra.update(event="http.request.completed", status_code=response.status_code)
        logger.info("http request completed", extra=extra)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    """沿用调用方的请求 ID，缺失时生成新 ID，并写回响应头。"""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    started = time.perf_counter()
    with bind_log_context(request_id=request_id):
        try:
            response = await call_next(request)
        except Exception as exc:
            _log_request(request, started, None, exc)
            raise
        _log_request(request, started, response)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(api_router)


def serve() -> None:
    """命令行入口：以 uvicorn 运行 HTTP 服务，日志沿用本进程配置。"""
    import uvicorn

    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)
