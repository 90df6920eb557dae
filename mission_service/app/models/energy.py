"""미션 에너지 도메인 모델.

비즈니스마다 월 단위 에너지 풀을 하나씩 가지며, 미션을 활성화할 때마다 미션 타입별
비용만큼 차감된다. 매월 1일 배치로 초기화된다. 고객에게는 노출되지 않는 내부 지표다.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SubscriptionTier(StrEnum):
    STARTER = "STARTER"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class EnergyCostLevel(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class EnergyLedgerKind(StrEnum):
    CONSUME = "consume"
    REFUND = "refund"


class EnergyErrorCode(StrEnum):
    POOL_NOT_INITIALIZED = "POOL_NOT_INITIALIZED"
    INSUFFICIENT_ENERGY = "INSUFFICIENT_ENERGY"


class MissionEnergyCost(BaseModel):
    """미션 타입 하나의 에너지 비용."""

    model_config = ConfigDict(frozen=True)

    cost: int = Field(gt=0)
    level: EnergyCostLevel


class EnergyPool(BaseModel):
    """비즈니스별 월간 에너지 풀.

    제한 풀은 항상 ``remaining == max(0, monthly_limit - used)`` 를 만족한다.
    월 중 다운그레이드로 used 가 한도를 넘으면 remaining 은 0 으로 고정된다.
    PLATINUM(무제한) 풀은 remaining 을 소프트 상한으로 유지하고 used 만 누적한다.
    """

    business_id: str
    subscription_tier: SubscriptionTier
    monthly_limit: int = Field(gt=0)
    used: int = Field(ge=0)
    remaining: int = Field(ge=0)
    is_unlimited: bool = False
    cycle_start: datetime
    cycle_end: datetime
    last_reset: datetime
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _check_balance(self) -> "EnergyPool":
        if self.cycle_end <= self.cycle_start:
            raise ValueError("cycle_end must be after cycle_start")
        if self.is_unlimited:
            return self
        expected = max(0, self.monthly_limit - self.used)
        if self.remaining != expected:
            raise ValueError(
                f"energy pool out of balance: used={self.used} remaining={self.remaining} "
                f"limit={self.monthly_limit}"
            )
        return self

    def is_expired(self, now: datetime | None = None) -> bool:
        """사이클 종료 시각이 지났는지 여부. 초기화는 배치가 담당한다."""
        now = now or datetime.now(timezone.utc)
        return now > self.cycle_end


class EnergyConsumptionRecord(BaseModel):
    """에너지 원장 항목. 한 번 기록되면 수정/삭제하지 않는다.

    환불은 원래 consume 항목을 고치지 않고 refund 항목을 새로 남긴다.
    """

    id: str | None = None
    business_id: str
    mission_id: str
    mission_type: str
    mission_title: str = ""
    kind: EnergyLedgerKind = EnergyLedgerKind.CONSUME
    amount: int = Field(gt=0)
    timestamp: datetime


class MissionTypeSuggestion(BaseModel):
    """에너지 부족 시 대신 활성화할 수 있는 미션 타입."""

    mission_type: str
    cost: int
    level: EnergyCostLevel
    description: str = ""


class EnergyError(BaseModel):
    code: EnergyErrorCode
    message: str
    required: int | None = None
    remaining: int | None = None
    shortfall: int | None = None
    cycle_reset_at: datetime | None = None
    alternatives: list[MissionTypeSuggestion] = Field(default_factory=list)


class EnergyCheckResult(BaseModel):
    """읽기 전용 잔액 확인 결과."""

    can_activate: bool
    required: int
    remaining: int
    shortfall: int = 0
    reason: str | None = None
    error_code: EnergyErrorCode | None = None
    cycle_reset_at: datetime | None = None
    alternatives: list[MissionTypeSuggestion] = Field(default_factory=list)
    affordable_types: list[MissionTypeSuggestion] = Field(default_factory=list)


class EnergyResult(BaseModel):
    """consume / refund / reset 의 성공/실패 결과."""

    success: bool
    amount: int = 0
    pool: EnergyPool | None = None
    error: EnergyError | None = None

    @property
    def remaining(self) -> int:
        return self.pool.remaining if self.pool is not None else 0


class EnergyResetSummary(BaseModel):
    total_pools: int = 0
    success_count: int = 0
    failed_count: int = 0
    errors: list[str] = Field(default_factory=list)


class EnergyUsageStats(BaseModel):
    business_id: str
    tier: SubscriptionTier
    total_used: int
    remaining: int
    monthly_limit: int
    percentage: float
    is_unlimited: bool
    is_low: bool
    is_depleted: bool
    is_cycle_expired: bool
    cycle_end: datetime
