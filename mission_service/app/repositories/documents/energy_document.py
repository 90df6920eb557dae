"""미션 에너지 MongoDB 도큐먼트.

풀은 business_id 를 _id 로 쓰고, 원장은 Mongo 가 ObjectId 를 생성한다.
"""

from __future__ import annotations

from common.mongo.types import (
    KeyedDocument,
    MongoDateTime,
    ObjectIdDocument,
    from_object_id,
)

from ...models.energy import (
    EnergyConsumptionRecord,
    EnergyLedgerKind,
    EnergyPool,
    SubscriptionTier,
)


class EnergyPoolDocument(KeyedDocument):
    """MongoDB mission_energy_pools 컬렉션 도큐먼트 모델."""

    subscription_tier: SubscriptionTier
    monthly_limit: int
    used: int
    remaining: int
    is_unlimited: bool = False
    cycle_start: MongoDateTime
    cycle_end: MongoDateTime
    last_reset: MongoDateTime

    @classmethod
    def from_domain(cls, pool: EnergyPool) -> "EnergyPoolDocument":
        data = pool.model_dump()
        data["_id"] = data.pop("business_id")
        return cls.model_validate(data)

    def to_domain(self) -> EnergyPool:
        return EnergyPool(
            business_id=self.id,
            subscription_tier=self.subscription_tier,
            monthly_limit=self.monthly_limit,
            used=self.used,
            remaining=self.remaining,
            is_unlimited=self.is_unlimited,
            cycle_start=self.cycle_start,
            cycle_end=self.cycle_end,
            last_reset=self.last_reset,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class EnergyConsumptionDocument(ObjectIdDocument):
    """MongoDB mission_energy_consumption 컬렉션 도큐먼트 모델."""

    business_id: str
    mission_id: str
    mission_type: str
    mission_title: str = ""
    kind: EnergyLedgerKind = EnergyLedgerKind.CONSUME
    amount: int
    timestamp: MongoDateTime

    @classmethod
    def from_domain(cls, record: EnergyConsumptionRecord) -> "EnergyConsumptionDocument":
        data = record.model_dump(exclude={"id"})
        # 원장은 수정되지 않으므로 created_at/updated_at 모두 기록 시각이다.
        data["created_at"] = record.timestamp
        data["updated_at"] = record.timestamp
        if record.id:
            data["_id"] = record.id
        return cls.model_validate(data)

    def to_domain(self) -> EnergyConsumptionRecord:
        return EnergyConsumptionRecord(
            id=from_object_id(self.id),
            business_id=self.business_id,
            mission_id=self.mission_id,
            mission_type=self.mission_type,
            mission_title=self.mission_title,
            kind=self.kind,
            amount=self.amount,
            timestamp=self.timestamp,
        )
