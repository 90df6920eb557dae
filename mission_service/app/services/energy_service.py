"""미션 에너지 서비스.

비즈니스별 월간 에너지 예산으로 미션 활성화 횟수와 종류를 제한한다.
- 미션 타입마다 비용이 다르고(체크인 15 ~ 추천 60), 등급별 월 한도가 있다.
- 소비는 저장소의 조건부 원자적 업데이트로 처리하며 사전 예약 단계는 없다.
- 월 초기화는 외부 배치(reset_all)가 호출한다. 조회 시 자동 초기화하지 않는다.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database
from common.types.datetime import calendar_month_bounds

from ..config import DEFAULT_MISSION_TYPE, AppConfig, EnergyConfig, get_app_config
from ..models.energy import (
    EnergyCheckResult,
    EnergyConsumptionRecord,
    EnergyCostLevel,
    EnergyError,
    EnergyErrorCode,
    EnergyLedgerKind,
    EnergyPool,
    EnergyResetSummary,
    EnergyResult,
    EnergyUsageStats,
    MissionEnergyCost,
    MissionTypeSuggestion,
    SubscriptionTier,
)
from ..repositories.energy_repository import (
    EnergyConsumptionRepository,
    EnergyPoolRepository,
)
from ..repositories.interfaces import (
    EnergyConsumptionRepositoryInterface,
    EnergyPoolRepositoryInterface,
)


logger = logging.getLogger(__name__)


MAX_SUGGESTIONS = 3

ENERGY_LEVEL_DESCRIPTIONS: dict[EnergyCostLevel, str] = {
    EnergyCostLevel.LOW: "Low energy mission - Great for frequent use",
    EnergyCostLevel.MEDIUM: "Medium energy mission - Balanced choice",
    EnergyCostLevel.HIGH: "High energy mission - High engagement value",
    EnergyCostLevel.VERY_HIGH: "Very high energy mission - Premium engagement",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pool_not_initialized(business_id: str) -> EnergyError:
    return EnergyError(
        code=EnergyErrorCode.POOL_NOT_INITIALIZED,
        message=f"Energy pool not initialized for business {business_id}",
    )


class EnergyPoolManager:
    """비즈니스별 월간 미션 에너지 풀 관리.

    - Repository 인터페이스에만 의존하고, Mongo 세부 구현은 알지 않는다.
    - 등급 한도/비용표(EnergyConfig)는 생성 시 주입받는다.
    """

    def __init__(
        self,
        pool_repo: EnergyPoolRepositoryInterface,
        ledger_repo: EnergyConsumptionRepositoryInterface,
        config: EnergyConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._pool_repo = pool_repo
        self._ledger_repo = ledger_repo
        self._config = config or EnergyConfig()
        self._clock = clock

    @property
    def config(self) -> EnergyConfig:
        return self._config

    # -------- 비용표 --------

    def get_energy_cost(self, mission_type: str | None) -> MissionEnergyCost:
        """미션 타입의 비용. 비용표에 없는 타입은 DEFAULT 비용으로 처리한다."""

        cost = self._config.find_cost(mission_type)
        if cost is None:
            logger.warning(
                "unmapped mission type %r, charging default cost %d",
                mission_type,
                self._config.default_cost.cost,
                extra={"mission_type": mission_type},
            )
            return self._config.default_cost
        return cost


    @staticmethod
    def describe_level(level: EnergyCostLevel) -> str:
        return ENERGY_LEVEL_DESCRIPTIONS[level]

    def _affordable_types(self, budget: int) -> list[MissionTypeSuggestion]:
        """budget 안에서 활성화 가능한 타입. 비용 내림차순 (가장 근접한 대안이 먼저)."""

        affordable = [
            MissionTypeSuggestion(
                mission_type=name,
                cost=item.cost,
                level=item.level,
                description=self.describe_level(item.level),
            )
            for name, item in self._config.mission_costs.items()
            if name != DEFAULT_MISSION_TYPE and item.cost <= budget
        ]
        # sorted 는 안정 정렬이므로 같은 비용은 비용표 순서를 유지한다.
        return sorted(affordable, key=lambda s: s.cost, reverse=True)

    # -------- 풀 생성/조회 --------

    def _new_pool(self, business_id: str, tier: SubscriptionTier) -> EnergyPool:
        now = self._clock()
        start, end = calendar_month_bounds(now)
        limit = self._config.limit_for(tier)
        return EnergyPool(
            business_id=business_id,
            subscription_tier=tier,
            monthly_limit=limit,
            used=0,
            remaining=limit,
            is_unlimited=self._config.is_unlimited(tier),
            cycle_start=start,
            cycle_end=end,
            last_reset=now,
            created_at=now,
            updated_at=now,
        )

    def initialize(
        self, business_id: str, tier: SubscriptionTier = SubscriptionTier.STARTER
    ) -> EnergyPool:
        """이번 달 사이클로 가득 찬 풀을 만든다. 기존 풀이 있으면 덮어쓴다."""

        pool = self._pool_repo.save(self._new_pool(business_id, tier))
        logger.info(
            "initialized energy pool (tier=%s, limit=%d)",
            tier,
            pool.monthly_limit,
            extra={"business_id": business_id},
        )
        return pool

    def ensure_pool(
        self, business_id: str, tier: SubscriptionTier = SubscriptionTier.STARTER
    ) -> EnergyPool:
        """풀이 없을 때만 생성한다. 동시에 호출돼도 하나의 풀로 수렴한다."""

        existing = self._pool_repo.find(business_id)
        if existing is not None:
            return existing
        pool = self._pool_repo.insert_if_absent(self._new_pool(business_id, tier))
        logger.info(
            "lazily created energy pool (tier=%s)",
            pool.subscription_tier,
            extra={"business_id": business_id},
        )
        return pool

    def get(self, business_id: str) -> EnergyPool | None:
        """풀 조회. 사이클이 지난 풀도 그대로 반환한다 (pool.is_expired 로 확인)."""

        pool = self._pool_repo.find(business_id)
        if pool is None:
            logger.warning(
                "energy pool not found", extra={"business_id": business_id}
            )
            return None
        if pool.is_expired(self._clock()):
            logger.info(
                "energy pool cycle expired, waiting for monthly reset",
                extra={"business_id": business_id},
            )
        return pool

    # -------- 잔액 확인 / 소비 / 환불 --------

    def check_availability(self, business_id: str, mission_type: str) -> EnergyCheckResult:
        """읽기 전용 잔액 확인. 부족하면 부족분과 대안 미션 타입을 함께 돌려준다."""

        cost = self.get_energy_cost(mission_type).cost
        pool = self._pool_repo.find(business_id)
        if pool is None:
            error = _pool_not_initialized(business_id)
            return EnergyCheckResult(
                can_activate=False,
                required=cost,
                remaining=0,
                shortfall=cost,
                reason=error.message,
                error_code=error.code,
            )

        if pool.is_unlimited:
            return EnergyCheckResult(
                can_activate=True, required=cost, remaining=pool.remaining
            )

        if pool.remaining < cost:
            affordable = self._affordable_types(pool.remaining)
            return EnergyCheckResult(
                can_activate=False,
                required=cost,
                remaining=pool.remaining,
                shortfall=cost - pool.remaining,
                reason=f"Insufficient mission energy. Need {cost}, have {pool.remaining}.",
                error_code=EnergyErrorCode.INSUFFICIENT_ENERGY,
                cycle_reset_at=pool.cycle_end,
                alternatives=affordable[:MAX_SUGGESTIONS],
                affordable_types=affordable,
            )

        return EnergyCheckResult(
            can_activate=True, required=cost, remaining=pool.remaining
        )

    def consume(
        self,
        business_id: str,
        mission_id: str,
        mission_type: str,
        mission_title: str = "",
    ) -> EnergyResult:
        """에너지 차감. 사전 check_availability 결과를 믿지 않고 저장소에서 다시 확인한다."""

        cost = self.get_energy_cost(mission_type).cost
        now = self._clock()

        pool = self._pool_repo.try_consume(business_id, cost, now)
        if pool is None:
            current = self._pool_repo.find(business_id)
            if current is None:
                return EnergyResult(success=False, error=_pool_not_initialized(business_id))

            affordable = self._affordable_types(current.remaining)
            logger.info(
                "insufficient energy (required=%d, remaining=%d)",
                cost,
                current.remaining,
                extra={"business_id": business_id, "mission_id": mission_id},
            )
            return EnergyResult(
                success=False,
                pool=current,
                error=EnergyError(
                    code=EnergyErrorCode.INSUFFICIENT_ENERGY,
                    message=f"Insufficient energy. Need {cost}, have {current.remaining}.",
                    required=cost,
                    remaining=current.remaining,
                    shortfall=max(0, cost - current.remaining),
                    cycle_reset_at=current.cycle_end,
                    alternatives=affordable[:MAX_SUGGESTIONS],
                ),
            )

        try:
            self._ledger_repo.create(
                EnergyConsumptionRecord(
                    business_id=business_id,
                    mission_id=mission_id,
                    mission_type=mission_type,
                    mission_title=mission_title,
                    kind=EnergyLedgerKind.CONSUME,
                    amount=cost,
                    timestamp=now,
                )
            )
        except Exception:
            # 원장 기록이 없는 차감은 남기지 않는다. 풀만 되돌리고 다시 던진다.
            logger.exception(
                "failed to record energy consumption, restoring pool",
                extra={"business_id": business_id, "mission_id": mission_id},
            )
            self._pool_repo.refund(business_id, cost, now)
            raise

        logger.info(
            "consumed %d energy (remaining=%d)",
            cost,
            pool.remaining,
            extra={"business_id": business_id, "mission_id": mission_id},
        )
        return EnergyResult(success=True, amount=cost, pool=pool)

    def refund(self, business_id: str, mission_id: str, mission_type: str) -> EnergyResult:
        """소비 취소. remaining 은 한도를 넘지 않고 used 는 0 아래로 내려가지 않는다.

        원래 consume 원장 항목은 그대로 두고 refund 항목을 새로 남긴다.
        """

        cost = self.get_energy_cost(mission_type).cost
        now = self._clock()

        pool = self._pool_repo.refund(business_id, cost, now)
        if pool is None:
            return EnergyResult(success=False, error=_pool_not_initialized(business_id))

        self._ledger_repo.create(
            EnergyConsumptionRecord(
                business_id=business_id,
                mission_id=mission_id,
                mission_type=mission_type,
                kind=EnergyLedgerKind.REFUND,
                amount=cost,
                timestamp=now,
            )
        )
        logger.info(
            "refunded %d energy (remaining=%d)",
            cost,
            pool.remaining,
            extra={"business_id": business_id, "mission_id": mission_id},
        )
        return EnergyResult(success=True, amount=cost, pool=pool)

    # -------- 월 초기화 / 등급 변경 --------

    def reset_one(self, business_id: str) -> EnergyResult:
        pool = self._pool_repo.find(business_id)
        if pool is None:
            return EnergyResult(success=False, error=_pool_not_initialized(business_id))

        now = self._clock()
        start, end = calendar_month_bounds(now)
        limit = self._config.limit_for(pool.subscription_tier)
        updated = self._pool_repo.reset(business_id, limit, start, end, now)
        if updated is None:
            return EnergyResult(success=False, error=_pool_not_initialized(business_id))

        logger.info("reset energy pool", extra={"business_id": business_id})
        return EnergyResult(success=True, pool=updated)

    def reset_all(self) -> EnergyResetSummary:
        """모든 풀을 이번 달 사이클로 초기화한다.

        풀마다 독립적으로 처리하며, 한 풀의 실패가 나머지 초기화를 막지 않는다.
        """

        now = self._clock()
        start, end = calendar_month_bounds(now)
        business_ids = self._pool_repo.list_business_ids()
        summary = EnergyResetSummary(total_pools=len(business_ids))

        for business_id in business_ids:
            try:
                pool = self._pool_repo.find(business_id)
                if pool is None:
                    raise LookupError("pool disappeared during reset")
                limit = self._config.limit_for(pool.subscription_tier)
                updated = self._pool_repo.reset(business_id, limit, start, end, now)
                if updated is None:
                    raise LookupError("pool disappeared during reset")
            except Exception as exc:  # noqa: BLE001
                summary.failed_count += 1
                summary.errors.append(f"{business_id}: {exc}")
                logger.exception(
                    "failed to reset energy pool", extra={"business_id": business_id}
                )
                continue
            summary.success_count += 1

        logger.info(
            "monthly energy reset complete (%d/%d succeeded, %d failed)",
            summary.success_count,
            summary.total_pools,
            summary.failed_count,
        )
        return summary

    def update_tier(self, business_id: str, new_tier: SubscriptionTier) -> EnergyPool:
        """구독 등급 변경. 이번 사이클 사용량은 유지하고 remaining 만 새 한도로 다시 계산한다."""

        limit = self._config.limit_for(new_tier)
        updated = self._pool_repo.update_tier(
            business_id,
            new_tier,
            limit,
            self._config.is_unlimited(new_tier),
            self._clock(),
        )
        if updated is None:
            return self.initialize(business_id, new_tier)

        logger.info(
            "updated energy tier to %s (limit=%d, remaining=%d)",
            new_tier,
            updated.monthly_limit,
            updated.remaining,
            extra={"business_id": business_id},
        )
        return updated

    # -------- 통계 / 이력 --------

    def get_usage_stats(self, business_id: str) -> EnergyUsageStats | None:
        pool = self._pool_repo.find(business_id)
        if pool is None:
            return None

        percentage = 0.0 if pool.is_unlimited else pool.used / pool.monthly_limit * 100
        return EnergyUsageStats(
            business_id=business_id,
            tier=pool.subscription_tier,
            total_used=pool.used,
            remaining=pool.remaining,
            monthly_limit=pool.monthly_limit,
            percentage=round(percentage, 2),
            is_unlimited=pool.is_unlimited,
            is_low=not pool.is_unlimited and percentage >= self._config.low_usage_percent,
            is_depleted=not pool.is_unlimited and pool.remaining <= 0,
            is_cycle_expired=pool.is_expired(self._clock()),
            cycle_end=pool.cycle_end,
        )

    def get_history(
        self, business_id: str, page: int = 1, page_size: int = 20
    ) -> tuple[list[EnergyConsumptionRecord], int]:
        """에너지 원장 이력 조회 (최신순)."""
        return self._ledger_repo.list_by_business(business_id, page, page_size)


def get_energy_pool_manager(
    db: Database = Depends(get_database),
    app_config: AppConfig = Depends(get_app_config),
) -> EnergyPoolManager:
    """FastAPI DI용 EnergyPoolManager 팩토리."""

    return EnergyPoolManager(
        pool_repo=EnergyPoolRepository(db),
        ledger_repo=EnergyConsumptionRepository(db),
        config=app_config.energy,
    )
