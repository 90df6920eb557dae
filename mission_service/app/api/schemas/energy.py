from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from common.types.datetime import UtcDateTime

from ...models.energy import (
    EnergyConsumptionRecord,
    EnergyLedgerKind,
    EnergyPool,
    SubscriptionTier,
)


class EnergyPoolResponse(BaseModel):
    """비즈니스 에너지 풀 현황."""

    business_id: str
    subscription_tier: SubscriptionTier
    monthly_limit: int
    used: int
    remaining: int
    is_unlimited: bool
    cycle_start: UtcDateTime
    cycle_end: UtcDateTime
    last_reset: UtcDateTime
    is_cycle_expired: bool = False

    @classmethod
    def from_domain(cls, pool: EnergyPool, now: datetime | None = None) -> "EnergyPoolResponse":
        return cls(
            business_id=pool.business_id,
            subscription_tier=pool.subscription_tier,
            monthly_limit=pool.monthly_limit,
            used=pool.used,
            remaining=pool.remaining,
            is_unlimited=pool.is_unlimited,
            cycle_start=pool.cycle_start,
            cycle_end=pool.cycle_end,
            last_reset=pool.last_reset,
            is_cycle_expired=pool.is_expired(now),
        )


class InitializePoolRequest(BaseModel):
    tier: SubscriptionTier = SubscriptionTier.STARTER


class UpdateTierRequest(BaseModel):
    tier: SubscriptionTier


class ConsumeEnergyRequest(BaseModel):
    """미션 타입 비용만큼 에너지 소비 요청."""

    mission_id: str
    mission_type: str
    mission_title: str = ""


class RefundEnergyRequest(BaseModel):
    """이전 소비를 취소하는 환불 요청."""

    mission_id: str
    mission_type: str


class EnergyChangeResponse(BaseModel):
    """소비/환불 결과."""

    amount: int
    pool: EnergyPoolResponse


class EnergyLedgerItem(BaseModel):
    id: str | None
    mission_id: str
    mission_type: str
    mission_title: str
    kind: EnergyLedgerKind
    amount: int
    timestamp: UtcDateTime

    @classmethod
    def from_domain(cls, record: EnergyConsumptionRecord) -> "EnergyLedgerItem":
        return cls(
            id=record.id,
            mission_id=record.mission_id,
            mission_type=record.mission_type,
            mission_title=record.mission_title,
            kind=record.kind,
            amount=record.amount,
            timestamp=record.timestamp,
        )
