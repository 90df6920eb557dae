from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware
from common.mongo.client import close_client

from .api.health import router as health_router
from .api.v1 import api_router


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - framework hook
    """종료 시 Mongo 클라이언트를 닫는다. 인덱스는 첫 연결 시 get_client 가 보장한다."""

    try:
        yield
    finally:
        close_client()


def create_app() -> FastAPI:
    setup_logger(name="mission-service")
    app = FastAPI(
        title="Mission Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestTraceMiddleware)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    port = int(os.getenv("MISSION_SERVICE_PORT", "8003"))
    uvicorn.run(
        "mission_service.app.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
