import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response


REQUEST_ID_HEADER = "X-Request-Id"

# 헬스체크는 로그에서 제외
IGNORED_LOG_PATHS: set[str] = {"/health"}


class RequestTraceMiddleware(BaseHTTPMiddleware):
    """요청 단위 request_id 부여 및 완료 로그 미들웨어.

    - X-Request-Id 헤더가 없으면 새로 만들고, 응답 헤더에 같은 값을 돌려준다.
    - 라우팅이 끝난 뒤 path 파라미터에 business_id / mission_id 가 있으면 로그에 함께 남긴다.
    """

    def __init__(self, app, logger: logging.Logger | None = None) -> None:  # type: ignore[override]
        super().__init__(app)
        self._logger = logger or logging.getLogger("request_trace")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        should_log = request.url.path not in IGNORED_LOG_PATHS
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            if should_log:
                self._logger.exception(
                    "request failed",
                    extra=self._build_log_extra(
                        request, request_id, duration=time.monotonic() - start
                    ),
                )
            raise

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)

        if should_log:
            self._logger.info(
                "completed request",
                extra=self._build_log_extra(
                    request,
                    request_id,
                    status=response.status_code,
                    duration=time.monotonic() - start,
                ),
            )
        return response

    def _build_log_extra(
        self,
        request: Request,
        request_id: str,
        status: int | None = None,
        duration: float | None = None,
    ) -> dict[str, object]:
        extra: dict[str, object] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }

        # Router 가 scope 에 채워 넣은 path 파라미터
        path_params = request.scope.get("path_params") or {}
        for key in ("business_id", "mission_id", "user_id"):
            if key in path_params:
                extra[key] = path_params[key]

        if status is not None:
            extra["status"] = status
        if duration is not None:
            extra["duration"] = f"{duration * 1000:.3f}ms"
        return extra
