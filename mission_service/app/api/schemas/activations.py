from __future__ import annotations

from pydantic import BaseModel, Field

from ...models.activation import (
    CompletionCheck,
    ConnectionRequirement,
    ConnectionSetupInstructions,
    MissionActivation,
    MissionActivationConfig,
)
from ...models.catalog import MissionTemplate


class ActivateMissionRequest(BaseModel):
    config: MissionActivationConfig


class ActivateMissionResponse(BaseModel):
    """활성화 성공 응답. 고객 측 연동 요구사항을 함께 돌려준다."""

    activation: MissionActivation
    user_requirements: list[ConnectionRequirement] = Field(default_factory=list)


class ActiveMissionsResponse(BaseModel):
    total: int
    items: list[MissionActivation]


class EligibilityResponse(BaseModel):
    """고객의 미션 완료 가능 여부. 연동이 빠졌으면 설정 안내를 포함한다."""

    check: CompletionCheck
    setup_instructions: ConnectionSetupInstructions | None = None


class CatalogResponse(BaseModel):
    total: int
    items: list[MissionTemplate]
