from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from .energy import SubscriptionTier


class MissionTemplate(BaseModel):
    """잠긴(locked) 미션 카탈로그의 템플릿 하나.

    energy_mission_type 은 에너지 비용표의 키이며 카탈로그 생성 시점에 검증된다.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    business_need: str
    energy_mission_type: str
    default_reward: int
    requires_business_confirmation: bool = False
    min_subscription_tier: SubscriptionTier | None = None
