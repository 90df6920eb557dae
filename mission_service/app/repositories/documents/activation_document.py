from __future__ import annotations

from common.mongo.types import KeyedDocument, MongoDateTime, OptionalMongoDateTime

from ...models.activation import (
    ConnectionRequirement,
    MissionActivation,
    MissionActivationConfig,
)


class MissionActivationDocument(KeyedDocument):
    """MongoDB mission_activations 컬렉션 도큐먼트 모델.

    연동 요구사항은 활성화 시점의 카탈로그 값을 그대로 스냅샷으로 저장한다.
    """

    business_id: str
    mission_id: str
    mission_name: str
    energy_mission_type: str
    energy_cost: int = 0
    is_active: bool
    config: MissionActivationConfig
    required_connections_business: list[ConnectionRequirement] = []
    required_connections_user: list[ConnectionRequirement] = []
    activated_at: MongoDateTime
    deactivated_at: OptionalMongoDateTime = None
    current_participants: int = 0

    @classmethod
    def from_domain(cls, activation: MissionActivation) -> "MissionActivationDocument":
        data = activation.model_dump()
        data["_id"] = data.pop("id")
        return cls.model_validate(data)

    def to_domain(self) -> MissionActivation:
        return MissionActivation(
            id=self.id,
            business_id=self.business_id,
            mission_id=self.mission_id,
            mission_name=self.mission_name,
            energy_mission_type=self.energy_mission_type,
            energy_cost=self.energy_cost,
            is_active=self.is_active,
            config=self.config,
            required_connections_business=list(self.required_connections_business),
            required_connections_user=list(self.required_connections_user),
            activated_at=self.activated_at,
            deactivated_at=self.deactivated_at,
            current_participants=self.current_participants,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
