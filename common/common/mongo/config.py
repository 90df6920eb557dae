from __future__ import annotations

import os


MONGO_URI_ENV = "MONGO_URI"
MONGO_DB_NAME_ENV = "MONGO_DB_NAME"


def get_mongo_uri() -> str:
    """MongoDB 연결 URI 를 환경 변수에서 읽는다.

    설정되지 않은 경우 서비스가 기동 단계에서 바로 실패하도록 RuntimeError 를 발생시킨다.
    """

    value = os.getenv(MONGO_URI_ENV, "").strip()
    if not value:
        raise RuntimeError(
            f"{MONGO_URI_ENV} environment variable is required for MongoDB",
        )
    return value


def get_mongo_db_name() -> str | None:
    """사용할 데이터베이스 이름. 비어 있으면 None (URI 의 기본 DB 사용)."""

    value = os.getenv(MONGO_DB_NAME_ENV, "").strip()
    return value or None


MONGO_TIMEOUT_MS_ENV = "MONGO_SERVER_SELECTION_TIMEOUT_MS"
DEFAULT_MONGO_TIMEOUT_MS = 5000


def get_mongo_timeout_ms() -> int:
    """서버 선택 타임아웃(ms). 정수가 아니면 RuntimeError, 0 이하이면 기본값."""

    raw = os.getenv(MONGO_TIMEOUT_MS_ENV, "").strip()
    if not raw:
        return DEFAULT_MONGO_TIMEOUT_MS
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(
            f"invalid {MONGO_TIMEOUT_MS_ENV}: {raw!r}",
        ) from exc
    return value if value > 0 else DEFAULT_MONGO_TIMEOUT_MS
