"""미션 에너지 레포지토리 구현체.

잔액을 바꾸는 연산은 모두 find_one_and_update 한 번으로 처리한다.
조건(remaining >= 비용)을 필터에 넣어 같은 비즈니스의 동시 소비 요청 중
감당 가능한 만큼만 성공하도록 한다.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from common.mongo.client import ENERGY_CONSUMPTION_COLLECTION, ENERGY_POOLS_COLLECTION

from ..models.energy import EnergyConsumptionRecord, EnergyPool, SubscriptionTier
from .documents.energy_document import EnergyConsumptionDocument, EnergyPoolDocument
from .interfaces import (
    EnergyConsumptionRepositoryInterface,
    EnergyPoolRepositoryInterface,
)


logger = logging.getLogger(__name__)


class EnergyPoolRepository(EnergyPoolRepositoryInterface):
    """mission_energy_pools 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[ENERGY_POOLS_COLLECTION]

    @staticmethod
    def _from_document(doc: dict | None) -> EnergyPool | None:
        if not doc:
            return None
        return EnergyPoolDocument.model_validate(doc).to_domain()

    def find(self, business_id: str) -> EnergyPool | None:
        return self._from_document(self._col.find_one({"_id": business_id}))

    def save(self, pool: EnergyPool) -> EnergyPool:
        payload = EnergyPoolDocument.from_domain(pool).to_mongo_record()
        self._col.replace_one({"_id": pool.business_id}, payload, upsert=True)
        return pool

    def insert_if_absent(self, pool: EnergyPool) -> EnergyPool:
        payload = EnergyPoolDocument.from_domain(pool).to_mongo_record()
        payload.pop("_id")
        try:
            doc = self._col.find_one_and_update(
                {"_id": pool.business_id},
                {"$setOnInsert": payload},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # 동시에 다른 요청이 먼저 생성함 -> 그 풀을 사용한다.
            doc = self._col.find_one({"_id": pool.business_id})
        result = self._from_document(doc)
        if result is None:
            raise RuntimeError(
                f"energy pool vanished right after upsert (business_id={pool.business_id})"
            )
        return result

    def try_consume(
        self, business_id: str, amount: int, now: datetime
    ) -> EnergyPool | None:
        # 1. 제한 풀: 잔액 조건을 필터에 넣어 원자적으로 차감
        doc = self._col.find_one_and_update(
            {
                "_id": business_id,
                "is_unlimited": False,
                "remaining": {"$gte": amount},
            },
            {
                "$inc": {"used": amount, "remaining": -amount},
                "$set": {"updated_at": now},
            },
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            return self._from_document(doc)

        # 2. 무제한 풀: 분석용으로 used 만 누적
        doc = self._col.find_one_and_update(
            {"_id": business_id, "is_unlimited": True},
            {"$inc": {"used": amount}, "$set": {"updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return self._from_document(doc)

    def refund(self, business_id: str, amount: int, now: datetime) -> EnergyPool | None:
        # 파이프라인 업데이트: 두 번째 $set 은 첫 번째 $set 이후의 used 를 본다.
        doc = self._col.find_one_and_update(
            {"_id": business_id},
            [
                {
                    "$set": {
                        "used": {"$max": [0, {"$subtract": ["$used", amount]}]},
                        "updated_at": now,
                    }
                },
                {
                    "$set": {
                        "remaining": {
                            "$cond": [
                                "$is_unlimited",
                                "$remaining",
                                {
                                    "$max": [
                                        0,
                                        {"$subtract": ["$monthly_limit", "$used"]},
                                    ]
                                },
                            ]
                        }
                    }
                },
            ],
            return_document=ReturnDocument.AFTER,
        )
        return self._from_document(doc)

    def reset(
        self,
        business_id: str,
        monthly_limit: int,
        cycle_start: datetime,
        cycle_end: datetime,
        now: datetime,
    ) -> EnergyPool | None:
        doc = self._col.find_one_and_update(
            {"_id": business_id},
            {
                "$set": {
                    "monthly_limit": monthly_limit,
                    "used": 0,
                    "remaining": monthly_limit,
                    "cycle_start": cycle_start,
                    "cycle_end": cycle_end,
                    "last_reset": now,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return self._from_document(doc)

    def update_tier(
        self,
        business_id: str,
        tier: SubscriptionTier,
        monthly_limit: int,
        is_unlimited: bool,
        now: datetime,
    ) -> EnergyPool | None:
        remaining: object
        if is_unlimited:
            remaining = monthly_limit
        else:
            remaining = {"$max": [0, {"$subtract": [monthly_limit, "$used"]}]}

        doc = self._col.find_one_and_update(
            {"_id": business_id},
            [
                {
                    "$set": {
                        "subscription_tier": tier.value,
                        "monthly_limit": monthly_limit,
                        "is_unlimited": is_unlimited,
                        "remaining": remaining,
                        "updated_at": now,
                    }
                }
            ],
            return_document=ReturnDocument.AFTER,
        )
        return self._from_document(doc)

    def list_business_ids(self) -> list[str]:
        return [doc["_id"] for doc in self._col.find({}, projection={"_id": 1})]


class EnergyConsumptionRepository(EnergyConsumptionRepositoryInterface):
    """mission_energy_consumption 컬렉션에 대한 MongoDB 접근 레이어 (append-only)."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[ENERGY_CONSUMPTION_COLLECTION]

    def create(self, record: EnergyConsumptionRecord) -> EnergyConsumptionRecord:
        payload = EnergyConsumptionDocument.from_domain(record).to_mongo_record()
        result = self._col.insert_one(payload)
        return record.model_copy(update={"id": str(result.inserted_id)})

    def list_by_business(
        self, business_id: str, page: int, page_size: int
    ) -> tuple[list[EnergyConsumptionRecord], int]:
        if page <= 0:
            page = 1
        if page_size <= 0 or page_size > 100:
            page_size = 20

        skip = (page - 1) * page_size

        total = self._col.count_documents({"business_id": business_id})
        cursor = self._col.find(
            {"business_id": business_id},
            sort=[("timestamp", -1), ("_id", -1)],
            skip=skip,
            limit=page_size,
        )

        items = [EnergyConsumptionDocument.model_validate(raw).to_domain() for raw in cursor]
        return items, total
