"""미션 활성화 게이트.

비즈니스가 카탈로그 미션을 켤 수 있는지(연동 + 에너지), 고객이 켜진 미션을 완료할 수 있는지
(고객 연동)를 판단한다. 예상 가능한 실패는 예외 대신 ActivationResult 로 돌려준다.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database
from common.types.datetime import to_utc

from ..catalog import MissionCatalog, build_default_catalog, get_connection_setup_instructions
from ..config import ActivationConfig, AppConfig, get_app_config
from ..models.account import AccountConnections
from ..models.activation import (
    ActivationError,
    ActivationErrorCode,
    ActivationResult,
    CompletionCheck,
    ConnectionRequirement,
    ConnectionSetupInstructions,
    ConnectionType,
    MissionActivation,
    MissionActivationConfig,
)
from ..models.energy import EnergyErrorCode, SubscriptionTier
from ..repositories.account_repository import AccountConnectionsRepository
from ..repositories.activation_repository import MissionActivationRepository
from ..repositories.interfaces import (
    AccountConnectionsRepositoryInterface,
    MissionActivationRepositoryInterface,
)
from .energy_service import EnergyPoolManager, get_energy_pool_manager


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _failure(
    code: ActivationErrorCode, message: str, **details: object
) -> ActivationResult:
    return ActivationResult(
        success=False, error=ActivationError(code=code, message=message, **details)
    )


def is_business_connected(account: AccountConnections, conn_type: ConnectionType) -> bool:
    """비즈니스 측 연동 여부. 구글은 소셜 계정과 Business Profile 연동이 모두 필요하다."""

    if conn_type is ConnectionType.GOOGLE_GBP:
        return account.google and account.google_business
    return is_user_connected(account, conn_type)


def is_user_connected(account: AccountConnections, conn_type: ConnectionType) -> bool:
    if conn_type is ConnectionType.GOOGLE_GBP:
        return account.google
    if conn_type is ConnectionType.INSTAGRAM:
        return account.instagram
    if conn_type is ConnectionType.FACEBOOK:
        return account.facebook
    if conn_type is ConnectionType.TIKTOK:
        return account.tiktok
    return False


class MissionActivationGate:
    """미션 활성화/비활성화와 고객 완료 가능 여부 판단."""

    def __init__(
        self,
        catalog: MissionCatalog,
        activation_repo: MissionActivationRepositoryInterface,
        account_repo: AccountConnectionsRepositoryInterface,
        energy: EnergyPoolManager,
        config: ActivationConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._catalog = catalog
        self._activation_repo = activation_repo
        self._account_repo = account_repo
        self._energy = energy
        self._config = config or ActivationConfig()
        self._clock = clock

    # -------- 검증 --------

    def validate_config(self, config: MissionActivationConfig) -> ActivationError | None:
        """설정 범위 검증. 첫 번째 위반 필드만 보고한다."""

        bounds = self._config
        if config.reward < bounds.reward_min:
            return ActivationError(
                code=ActivationErrorCode.INVALID_CONFIG,
                message=f"Reward must be at least {bounds.reward_min} points",
                field="reward",
            )
        if config.reward > bounds.reward_max:
            return ActivationError(
                code=ActivationErrorCode.INVALID_CONFIG,
                message=f"Reward cannot exceed {bounds.reward_max} points",
                field="reward",
            )
        if config.max_participants < bounds.max_participants_min:
            return ActivationError(
                code=ActivationErrorCode.INVALID_CONFIG,
                message=f"Max participants must be at least {bounds.max_participants_min}",
                field="max_participants",
            )
        if config.max_participants > bounds.max_participants_max:
            return ActivationError(
                code=ActivationErrorCode.INVALID_CONFIG,
                message=f"Max participants cannot exceed {bounds.max_participants_max:,}",
                field="max_participants",
            )
        if config.valid_until is not None and to_utc(config.valid_until) <= self._clock():
            return ActivationError(
                code=ActivationErrorCode.INVALID_CONFIG,
                message="Valid until date must be in the future",
                field="valid_until",
            )
        return None

    @staticmethod
    def _first_missing(
        account: AccountConnections,
        requirements: tuple[ConnectionRequirement, ...] | list[ConnectionRequirement],
        is_connected: Callable[[AccountConnections, ConnectionType], bool],
    ) -> ConnectionRequirement | None:
        # 선언 순서대로 확인하고 처음 빠진 연동에서 멈춘다.
        for requirement in requirements:
            if not is_connected(account, requirement.type):
                return requirement
        return None

    # -------- 활성화 --------

    def activate(
        self,
        business_id: str,
        mission_id: str,
        config: MissionActivationConfig,
        requested_by: str | None = None,
    ) -> ActivationResult:
        """카탈로그 미션을 활성화한다.

        모든 사전 조건(카탈로그, 설정, 비즈니스 연동, 중복 활성화)을 통과한 뒤에만 에너지를
        소비한다. 레코드 저장이 실패하면 소비한 에너지를 환불한다.
        """

        log_extra = {"business_id": business_id, "mission_id": mission_id}

        if requested_by is not None and requested_by != business_id:
            return _failure(
                ActivationErrorCode.UNAUTHORIZED,
                "Only the business owner can activate its missions",
            )

        template = self._catalog.get(mission_id)
        if template is None:
            return _failure(
                ActivationErrorCode.MISSION_NOT_FOUND,
                f'Mission with ID "{mission_id}" not found in catalog',
            )

        config_error = self.validate_config(config)
        if config_error is not None:
            return ActivationResult(success=False, error=config_error)

        requirements = self._catalog.requirements_for(mission_id)

        account = self._account_repo.find(business_id)
        if requirements.business:
            if account is None:
                return _failure(
                    ActivationErrorCode.BUSINESS_NOT_FOUND,
                    f"Business {business_id} not found",
                )
            missing = self._first_missing(account, requirements.business, is_business_connected)
            if missing is not None:
                logger.info(
                    "business missing required connection %s", missing.type, extra=log_extra
                )
                return _failure(
                    ActivationErrorCode.MISSING_BUSINESS_CONNECTION,
                    f"{missing.display_name} must be connected to activate this mission. "
                    f"{missing.description}",
                    required_connection=missing,
                )

        existing = self._activation_repo.find(business_id, mission_id)
        if existing is not None and existing.is_active:
            return _failure(
                ActivationErrorCode.ALREADY_ACTIVE,
                "This mission is already active for your business",
            )

        # 첫 활성화 시도에서 풀을 만든다.
        tier = account.subscription_tier if account is not None else SubscriptionTier.STARTER
        self._energy.ensure_pool(business_id, tier)

        energy_result = self._energy.consume(
            business_id, mission_id, template.energy_mission_type, template.name
        )
        if not energy_result.success:
            energy_error = energy_result.error
            code = (
                ActivationErrorCode.POOL_NOT_INITIALIZED
                if energy_error is not None
                and energy_error.code is EnergyErrorCode.POOL_NOT_INITIALIZED
                else ActivationErrorCode.INSUFFICIENT_ENERGY
            )
            return _failure(
                code,
                energy_error.message if energy_error else "Failed to consume energy",
                energy=energy_error,
            )

        now = self._clock()
        activation = MissionActivation(
            id=MissionActivation.build_id(business_id, mission_id),
            business_id=business_id,
            mission_id=mission_id,
            mission_name=template.name,
            energy_mission_type=template.energy_mission_type,
            energy_cost=energy_result.amount,
            is_active=True,
            config=config,
            required_connections_business=list(requirements.business),
            required_connections_user=list(requirements.user),
            activated_at=now,
            deactivated_at=None,
            current_participants=0,
            created_at=existing.created_at if existing is not None else now,
            updated_at=now,
        )

        try:
            saved = self._activation_repo.save_if_not_active(activation)
        except Exception:
            logger.exception(
                "failed to persist activation, refunding energy", extra=log_extra
            )
            self._energy.refund(business_id, mission_id, template.energy_mission_type)
            raise

        if saved is None:
            # 동시에 들어온 다른 요청이 먼저 활성화함
            self._energy.refund(business_id, mission_id, template.energy_mission_type)
            return _failure(
                ActivationErrorCode.ALREADY_ACTIVE,
                "This mission is already active for your business",
            )

        logger.info(
            "mission activated (energy_cost=%d)", energy_result.amount, extra=log_extra
        )
        return ActivationResult(
            success=True,
            activation=saved,
            user_requirements=list(requirements.user),
        )

    def deactivate(
        self,
        business_id: str,
        mission_id: str,
        requested_by: str | None = None,
    ) -> ActivationResult:
        """비활성화. 에너지는 자동 환불하지 않는다 (필요하면 호출자가 refund 를 호출)."""

        if requested_by is not None and requested_by != business_id:
            return _failure(
                ActivationErrorCode.UNAUTHORIZED,
                "Only the business owner can deactivate its missions",
            )

        activation = self._activation_repo.deactivate(business_id, mission_id, self._clock())
        if activation is None:
            return _failure(
                ActivationErrorCode.ACTIVATION_NOT_FOUND,
                f"Mission {mission_id} was never activated for business {business_id}",
            )

        logger.info(
            "mission deactivated",
            extra={"business_id": business_id, "mission_id": mission_id},
        )
        return ActivationResult(success=True, activation=activation)

    # -------- 조회 --------

    def get_activation(self, business_id: str, mission_id: str) -> MissionActivation | None:
        return self._activation_repo.find(business_id, mission_id)

    def list_active_missions(self, business_id: str) -> list[MissionActivation]:
        return self._activation_repo.list_active_by_business(business_id)

    def can_user_complete_mission(
        self, user_id: str, mission_id: str, business_id: str
    ) -> CompletionCheck:
        """고객 측 연동 요구사항 확인. 활성화 시점에 스냅샷한 요구사항을 기준으로 한다."""

        activation = self._activation_repo.find(business_id, mission_id)
        if activation is None or not activation.is_active:
            return CompletionCheck(can_complete=False, reason="Mission is not active")

        if not activation.required_connections_user:
            return CompletionCheck(can_complete=True)

        account = self._account_repo.find(user_id)
        if account is None:
            return CompletionCheck(can_complete=False, reason="User not found")

        missing = self._first_missing(
            account, activation.required_connections_user, is_user_connected
        )
        if missing is not None:
            return CompletionCheck(
                can_complete=False,
                missing_connection=missing,
                reason=f"{missing.display_name} must be connected to complete this mission",
            )
        return CompletionCheck(can_complete=True)

    @staticmethod
    def get_connection_setup_instructions(
        requirement: ConnectionRequirement,
    ) -> ConnectionSetupInstructions:
        return get_connection_setup_instructions(requirement)


def get_mission_catalog(app_config: AppConfig = Depends(get_app_config)) -> MissionCatalog:
    return build_default_catalog(app_config.energy)


def get_mission_activation_gate(
    db: Database = Depends(get_database),
    app_config: AppConfig = Depends(get_app_config),
    catalog: MissionCatalog = Depends(get_mission_catalog),
    energy: EnergyPoolManager = Depends(get_energy_pool_manager),
) -> MissionActivationGate:
    """FastAPI DI용 MissionActivationGate 팩토리."""

    return MissionActivationGate(
        catalog=catalog,
        activation_repo=MissionActivationRepository(db),
        account_repo=AccountConnectionsRepository(db),
        energy=energy,
        config=app_config.activation,
    )
