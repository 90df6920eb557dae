from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..models.account import AccountConnections
from ..models.activation import MissionActivation
from ..models.energy import EnergyConsumptionRecord, EnergyPool, SubscriptionTier


class EnergyPoolRepositoryInterface(Protocol):
    """EnergyPoolRepository가 따라야 할 최소한의 계약.

    - 풀 하나는 business_id 를 키로 하는 단일 도큐먼트다.
    - 잔액이 바뀌는 연산은 모두 도큐먼트 단위 원자적 업데이트로 구현해야 한다.
    - 풀이 없으면 None 을 반환한다.
    """

    def find(self, business_id: str) -> EnergyPool | None:  # pragma: no cover - Protocol
        ...

    def save(self, pool: EnergyPool) -> EnergyPool:  # pragma: no cover - Protocol
        """풀 전체를 덮어쓴다 (없으면 생성)."""
        ...

    def insert_if_absent(
        self, pool: EnergyPool
    ) -> EnergyPool:  # pragma: no cover - Protocol
        """풀이 없을 때만 생성하고, 이미 있으면 기존 풀을 반환한다."""
        ...

    def try_consume(
        self, business_id: str, amount: int, now: datetime
    ) -> EnergyPool | None:  # pragma: no cover - Protocol
        """remaining >= amount 일 때만 차감한다 (무제한 풀은 used 만 증가).

        조건을 만족하지 못했거나 풀이 없으면 None.
        """
        ...

    def refund(
        self, business_id: str, amount: int, now: datetime
    ) -> EnergyPool | None:  # pragma: no cover - Protocol
        """used 를 0 아래로 내리지 않고, remaining 을 한도 위로 올리지 않는다."""
        ...

    def reset(
        self,
        business_id: str,
        monthly_limit: int,
        cycle_start: datetime,
        cycle_end: datetime,
        now: datetime,
    ) -> EnergyPool | None:  # pragma: no cover - Protocol
        ...

    def update_tier(
        self,
        business_id: str,
        tier: SubscriptionTier,
        monthly_limit: int,
        is_unlimited: bool,
        now: datetime,
    ) -> EnergyPool | None:  # pragma: no cover - Protocol
        """used 는 유지하고 remaining 을 새 한도 기준으로 다시 계산한다."""
        ...

    def list_business_ids(self) -> list[str]:  # pragma: no cover - Protocol
        ...


class EnergyConsumptionRepositoryInterface(Protocol):
    """append-only 에너지 원장."""

    def create(
        self, record: EnergyConsumptionRecord
    ) -> EnergyConsumptionRecord:  # pragma: no cover - Protocol
        ...

    def list_by_business(
        self, business_id: str, page: int, page_size: int
    ) -> tuple[list[EnergyConsumptionRecord], int]:  # pragma: no cover - Protocol
        ...


class MissionActivationRepositoryInterface(Protocol):
    """mission_activations 컬렉션 계약. 키는 ``{business_id}_{mission_id}``."""

    def find(
        self, business_id: str, mission_id: str
    ) -> MissionActivation | None:  # pragma: no cover - Protocol
        ...

    def save_if_not_active(
        self, activation: MissionActivation
    ) -> MissionActivation | None:  # pragma: no cover - Protocol
        """같은 키의 활성 레코드가 없을 때만 저장(덮어쓰기)한다.

        이미 활성 레코드가 있으면 None.
        """
        ...

    def deactivate(
        self, business_id: str, mission_id: str, now: datetime
    ) -> MissionActivation | None:  # pragma: no cover - Protocol
        ...

    def list_active_by_business(
        self, business_id: str
    ) -> list[MissionActivation]:  # pragma: no cover - Protocol
        ...


class AccountConnectionsRepositoryInterface(Protocol):
    """비즈니스/고객 계정의 외부 연동 상태를 읽기만 한다."""

    def find(
        self, account_id: str
    ) -> AccountConnections | None:  # pragma: no cover - Protocol
        ...
