from __future__ import annotations

import logging
import threading
from typing import Optional, cast

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from .config import get_mongo_db_name, get_mongo_timeout_ms, get_mongo_uri


logger = logging.getLogger(__name__)


ENERGY_POOLS_COLLECTION = "mission_energy_pools"
ENERGY_CONSUMPTION_COLLECTION = "mission_energy_consumption"
MISSION_ACTIVATIONS_COLLECTION = "mission_activations"
USERS_COLLECTION = "users"


_client: Optional[MongoClient] = None
_db: Optional[Database] = None
_lock = threading.Lock()


def get_client() -> MongoClient:
    """전역 MongoClient 싱글톤을 반환한다.

    - MONGO_URI 에서 URI 를 읽어온다.
    - ping 으로 연결을 검증한다.
    - 사용할 DB 를 결정하고 필요한 인덱스를 한 번만 생성한다.
    """

    global _client, _db

    if _client is not None:
        return _client

    with _lock:
        if _client is not None:
            return _client

        client: MongoClient = MongoClient(
            get_mongo_uri(),
            serverSelectionTimeoutMS=get_mongo_timeout_ms(),
            tz_aware=True,
        )

        try:
            client.admin.command("ping")
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(f"failed to connect to MongoDB: {exc}") from exc

        # MONGO_DB_NAME 우선, 없으면 URI 의 기본 DB
        db_name = get_mongo_db_name()
        try:
            db = client[db_name] if db_name else client.get_default_database()
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(
                "MongoDB database name must be specified via MONGO_DB_NAME or in MONGO_URI (mongodb://.../db_name)",
            ) from exc

        try:
            ensure_indexes(db)
        except Exception as exc:  # noqa: BLE001
            client.close()
            logger.error("failed to ensure MongoDB indexes: %s", exc)
            raise

        _client = client
        _db = db

        safe_db = cast(Database, _db)
        logger.info("MongoDB connected and indexes ensured (db=%s)", safe_db.name)
        return _client


def get_database() -> Database:
    """전역 기본 Database 객체를 반환한다. FastAPI Depends 에서도 사용한다."""

    if _db is None:
        get_client()
    assert _db is not None  # get_client 가 실패했다면 이미 예외가 발생했어야 한다.
    return _db


def close_client() -> None:
    """애플리케이션 종료 시 커넥션을 정리한다."""

    global _client, _db

    with _lock:
        if _client is not None:
            _client.close()
        _client = None
        _db = None


def ensure_indexes(db: Database) -> None:
    """미션 에너지/활성화 컬렉션의 인덱스를 생성한다.

    풀과 활성화 레코드는 결정적인 _id(business_id, business_id_mission_id)를 사용하므로
    별도의 유니크 인덱스가 필요 없다. create_index 는 idempotent 하다.
    """

    pools = db[ENERGY_POOLS_COLLECTION]
    pools.create_index([("cycle_end", ASCENDING)], name="idx_cycle_end")
    pools.create_index(
        [("subscription_tier", ASCENDING)],
        name="idx_subscription_tier",
    )

    ledger = db[ENERGY_CONSUMPTION_COLLECTION]
    ledger.create_index(
        [("business_id", ASCENDING), ("timestamp", DESCENDING), ("_id", DESCENDING)],
        name="idx_business_timestamp_desc",
    )
    ledger.create_index(
        [("business_id", ASCENDING), ("mission_id", ASCENDING)],
        name="idx_business_mission",
    )

    activations = db[MISSION_ACTIVATIONS_COLLECTION]
    activations.create_index(
        [("business_id", ASCENDING), ("is_active", ASCENDING)],
        name="idx_business_active",
    )

