"""미션 활성화 도메인 모델.

비즈니스가 카탈로그 미션을 켜면 (business_id, mission_id) 조합마다 활성화 레코드가 하나 생긴다.
비활성화해도 레코드는 이력용으로 남고, 재활성화하면 같은 키에 덮어쓴다.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from .energy import EnergyError


class ConnectionType(StrEnum):
    GOOGLE_GBP = "google_gbp"
    INSTAGRAM = "instagram"
    FACEBOOK = "facebook"
    TIKTOK = "tiktok"


class CheckInMethod(StrEnum):
    QR_ONLY = "QR_ONLY"
    GPS = "GPS"
    BOTH = "BOTH"


class ActivationErrorCode(StrEnum):
    MISSION_NOT_FOUND = "MISSION_NOT_FOUND"
    INVALID_CONFIG = "INVALID_CONFIG"
    MISSING_BUSINESS_CONNECTION = "MISSING_BUSINESS_CONNECTION"
    ALREADY_ACTIVE = "ALREADY_ACTIVE"
    BUSINESS_NOT_FOUND = "BUSINESS_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    INSUFFICIENT_ENERGY = "INSUFFICIENT_ENERGY"
    POOL_NOT_INITIALIZED = "POOL_NOT_INITIALIZED"
    ACTIVATION_NOT_FOUND = "ACTIVATION_NOT_FOUND"


class ConnectionRequirement(BaseModel):
    """미션 활성화/완료 전에 연결되어 있어야 하는 외부 연동."""

    model_config = ConfigDict(frozen=True)

    type: ConnectionType
    display_name: str
    description: str
    setup_url: str | None = None


class ConnectionRequirements(BaseModel):
    model_config = ConfigDict(frozen=True)

    business: tuple[ConnectionRequirement, ...] = ()
    user: tuple[ConnectionRequirement, ...] = ()


class ConnectionSetupInstructions(BaseModel):
    title: str
    steps: list[str]
    estimated_time: str


class MissionActivationConfig(BaseModel):
    """활성화 요청 설정. 범위 검증은 게이트가 필드 단위로 수행한다."""

    reward: int
    max_participants: int
    valid_until: datetime | None = None
    cooldown_period: int = 0
    requires_approval: bool = False
    check_in_method: CheckInMethod = CheckInMethod.QR_ONLY


class MissionActivation(BaseModel):
    id: str
    business_id: str
    mission_id: str
    mission_name: str
    energy_mission_type: str
    energy_cost: int = 0
    is_active: bool
    config: MissionActivationConfig
    required_connections_business: list[ConnectionRequirement] = Field(
        default_factory=list
    )
    required_connections_user: list[ConnectionRequirement] = Field(
        default_factory=list
    )
    activated_at: datetime
    deactivated_at: datetime | None = None
    current_participants: int = 0
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def build_id(business_id: str, mission_id: str) -> str:
        return f"{business_id}_{mission_id}"


class ActivationError(BaseModel):
    code: ActivationErrorCode
    message: str
    field: str | None = None
    required_connection: ConnectionRequirement | None = None
    energy: EnergyError | None = None


class ActivationResult(BaseModel):
    success: bool
    activation: MissionActivation | None = None
    user_requirements: list[ConnectionRequirement] = Field(default_factory=list)
    error: ActivationError | None = None


class CompletionCheck(BaseModel):
    """고객이 활성화된 미션을 완료할 수 있는지 여부."""

    can_complete: bool
    missing_connection: ConnectionRequirement | None = None
    reason: str | None = None
