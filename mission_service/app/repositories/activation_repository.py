from __future__ import annotations

from datetime import datetime

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from common.mongo.client import MISSION_ACTIVATIONS_COLLECTION

from ..models.activation import MissionActivation
from .documents.activation_document import MissionActivationDocument
from .interfaces import MissionActivationRepositoryInterface


class MissionActivationRepository(MissionActivationRepositoryInterface):
    """mission_activations 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[MISSION_ACTIVATIONS_COLLECTION]

    @staticmethod
    def _from_document(doc: dict | None) -> MissionActivation | None:
        if not doc:
            return None
        return MissionActivationDocument.model_validate(doc).to_domain()

    def find(self, business_id: str, mission_id: str) -> MissionActivation | None:
        activation_id = MissionActivation.build_id(business_id, mission_id)
        return self._from_document(self._col.find_one({"_id": activation_id}))

    def save_if_not_active(self, activation: MissionActivation) -> MissionActivation | None:
        """활성 레코드가 없을 때만 덮어쓴다 (Atomic).

        - 비활성 레코드가 있으면 필터에 매칭되어 새 사이클로 덮어쓴다.
        - 레코드가 없으면 upsert 로 생성한다.
        - 활성 레코드가 있으면 필터 매칭에 실패하고, 같은 _id 로 insert 를 시도하다
          DuplicateKeyError 가 발생한다 -> None (이미 활성).
        """

        payload = MissionActivationDocument.from_domain(activation).to_mongo_record()
        payload.pop("_id")
        try:
            self._col.update_one(
                {"_id": activation.id, "is_active": {"$ne": True}},
                {"$set": payload},
                upsert=True,
            )
        except DuplicateKeyError:
            return None
        return activation

    def deactivate(
        self, business_id: str, mission_id: str, now: datetime
    ) -> MissionActivation | None:
        activation_id = MissionActivation.build_id(business_id, mission_id)
        doc = self._col.find_one_and_update(
            {"_id": activation_id},
            {"$set": {"is_active": False, "deactivated_at": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return self._from_document(doc)

    def list_active_by_business(self, business_id: str) -> list[MissionActivation]:
        cursor = self._col.find(
            {"business_id": business_id, "is_active": True},
            sort=[("activated_at", -1)],
        )
        return [MissionActivationDocument.model_validate(doc).to_domain() for doc in cursor]
