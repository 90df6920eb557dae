from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

import pytest

from mission_service.app.catalog import build_default_catalog
from mission_service.app.config import EnergyConfig
from mission_service.app.models.account import AccountConnections
from mission_service.app.models.activation import MissionActivation
from mission_service.app.models.energy import (
    EnergyConsumptionRecord,
    EnergyPool,
    SubscriptionTier,
)
from mission_service.app.services.activation_service import MissionActivationGate
from mission_service.app.services.energy_service import EnergyPoolManager


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeEnergyPoolRepository:
    """Mongo 조건부 업데이트와 같은 의미를 락으로 흉내 내는 인메모리 풀 저장소."""

    def __init__(self) -> None:
        self.pools: dict[str, EnergyPool] = {}
        self._lock = threading.Lock()

    def _replace(self, pool: EnergyPool, **changes: object) -> EnergyPool:
        # model_validate 로 다시 만들어 잔액 불변식을 매번 검증한다.
        updated = EnergyPool.model_validate({**pool.model_dump(), **changes})
        self.pools[pool.business_id] = updated
        return updated

    def find(self, business_id: str) -> EnergyPool | None:
        with self._lock:
            return self.pools.get(business_id)

    def save(self, pool: EnergyPool) -> EnergyPool:
        with self._lock:
            self.pools[pool.business_id] = pool
            return pool

    def insert_if_absent(self, pool: EnergyPool) -> EnergyPool:
        with self._lock:
            return self.pools.setdefault(pool.business_id, pool)

    def try_consume(
        self, business_id: str, amount: int, now: datetime
    ) -> EnergyPool | None:
        with self._lock:
            pool = self.pools.get(business_id)
            if pool is None:
                return None
            if pool.is_unlimited:
                return self._replace(pool, used=pool.used + amount, updated_at=now)
            if pool.remaining < amount:
                return None
            return self._replace(
                pool,
                used=pool.used + amount,
                remaining=pool.remaining - amount,
                updated_at=now,
            )

    def refund(self, business_id: str, amount: int, now: datetime) -> EnergyPool | None:
        with self._lock:
            pool = self.pools.get(business_id)
            if pool is None:
                return None
            used = max(0, pool.used - amount)
            remaining = (
                pool.remaining
                if pool.is_unlimited
                else max(0, pool.monthly_limit - used)
            )
            return self._replace(pool, used=used, remaining=remaining, updated_at=now)

    def reset(
        self,
        business_id: str,
        monthly_limit: int,
        cycle_start: datetime,
        cycle_end: datetime,
        now: datetime,
    ) -> EnergyPool | None:
        with self._lock:
            pool = self.pools.get(business_id)
            if pool is None:
                return None
            return self._replace(
                pool,
                monthly_limit=monthly_limit,
                used=0,
                remaining=monthly_limit,
                cycle_start=cycle_start,
                cycle_end=cycle_end,
                last_reset=now,
                updated_at=now,
            )

    def update_tier(
        self,
        business_id: str,
        tier: SubscriptionTier,
        monthly_limit: int,
        is_unlimited: bool,
        now: datetime,
    ) -> EnergyPool | None:
        with self._lock:
            pool = self.pools.get(business_id)
            if pool is None:
                return None
            remaining = (
                monthly_limit if is_unlimited else max(0, monthly_limit - pool.used)
            )
            return self._replace(
                pool,
                subscription_tier=tier,
                monthly_limit=monthly_limit,
                is_unlimited=is_unlimited,
                remaining=remaining,
                updated_at=now,
            )

    def list_business_ids(self) -> list[str]:
        with self._lock:
            return list(self.pools)


class FakeEnergyConsumptionRepository:
    def __init__(self) -> None:
        self.created: list[EnergyConsumptionRecord] = []
        self.fail_on_create: Exception | None = None
        self._lock = threading.Lock()

    def create(self, record: EnergyConsumptionRecord) -> EnergyConsumptionRecord:
        if self.fail_on_create is not None:
            raise self.fail_on_create
        with self._lock:
            saved = record.model_copy(update={"id": f"ledger-{len(self.created) + 1}"})
            self.created.append(saved)
            return saved

    def list_by_business(
        self, business_id: str, page: int, page_size: int
    ) -> tuple[list[EnergyConsumptionRecord], int]:
        items = [r for r in self.created if r.business_id == business_id]
        items.sort(key=lambda r: r.timestamp, reverse=True)
        start = (page - 1) * page_size
        return items[start : start + page_size], len(items)


class FakeMissionActivationRepository:
    def __init__(self) -> None:
        self.activations: dict[str, MissionActivation] = {}
        self.fail_on_save: Exception | None = None
        self.save_calls = 0

    def find(self, business_id: str, mission_id: str) -> MissionActivation | None:
        return self.activations.get(MissionActivation.build_id(business_id, mission_id))

    def save_if_not_active(self, activation: MissionActivation) -> MissionActivation | None:
        self.save_calls += 1
        if self.fail_on_save is not None:
            raise self.fail_on_save
        existing = self.activations.get(activation.id)
        if existing is not None and existing.is_active:
            return None
        self.activations[activation.id] = activation
        return activation

    def deactivate(
        self, business_id: str, mission_id: str, now: datetime
    ) -> MissionActivation | None:
        key = MissionActivation.build_id(business_id, mission_id)
        existing = self.activations.get(key)
        if existing is None:
            return None
        updated = existing.model_copy(
            update={"is_active": False, "deactivated_at": now, "updated_at": now}
        )
        self.activations[key] = updated
        return updated

    def list_active_by_business(self, business_id: str) -> list[MissionActivation]:
        return [
            a
            for a in self.activations.values()
            if a.business_id == business_id and a.is_active
        ]


class FakeAccountConnectionsRepository:
    def __init__(self) -> None:
        self.accounts: dict[str, AccountConnections] = {}

    def add(self, account_id: str, **flags: object) -> AccountConnections:
        account = AccountConnections(account_id=account_id, **flags)
        self.accounts[account_id] = account
        return account

    def find(self, account_id: str) -> AccountConnections | None:
        return self.accounts.get(account_id)


@dataclass
class MissionFixture:
    energy: EnergyPoolManager
    gate: MissionActivationGate
    pool_repo: FakeEnergyPoolRepository
    ledger_repo: FakeEnergyConsumptionRepository
    activation_repo: FakeMissionActivationRepository
    account_repo: FakeAccountConnectionsRepository


def _fixed_clock() -> datetime:
    return NOW


def build_fixture(
    energy_config: EnergyConfig | None = None,
    clock: Callable[[], datetime] = _fixed_clock,
) -> MissionFixture:
    config = energy_config or EnergyConfig()
    pool_repo = FakeEnergyPoolRepository()
    ledger_repo = FakeEnergyConsumptionRepository()
    activation_repo = FakeMissionActivationRepository()
    account_repo = FakeAccountConnectionsRepository()
    energy = EnergyPoolManager(
        pool_repo=pool_repo, ledger_repo=ledger_repo, config=config, clock=clock
    )
    gate = MissionActivationGate(
        catalog=build_default_catalog(config),
        activation_repo=activation_repo,
        account_repo=account_repo,
        energy=energy,
        clock=clock,
    )
    return MissionFixture(
        energy=energy,
        gate=gate,
        pool_repo=pool_repo,
        ledger_repo=ledger_repo,
        activation_repo=activation_repo,
        account_repo=account_repo,
    )


@pytest.fixture
def fixture() -> MissionFixture:
    return build_fixture()
