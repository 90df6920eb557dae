from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


def ensure_utc_datetime(value: datetime) -> datetime:
    """datetime 값을 UTC 기준으로 정규화한다.

    - tzinfo 가 없으면 UTC 로 간주해 tzinfo=UTC 를 부여
    - tzinfo 가 있으면 UTC 로 변환
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _ensure_optional_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_utc_datetime(value)


def to_object_id(value: Any) -> ObjectId:
    """str, ObjectId 등을 MongoDB ObjectId 로 변환한다."""

    if isinstance(value, ObjectId):
        return value
    if value is None:
        raise TypeError("ObjectId cannot be None")
    return ObjectId(str(value))


def from_object_id(value: Optional[ObjectId]) -> Optional[str]:
    if value is None:
        return None
    return str(value)


PyObjectId = Annotated[ObjectId, BeforeValidator(to_object_id)]
MongoDateTime = Annotated[datetime, BeforeValidator(ensure_utc_datetime)]
OptionalMongoDateTime = Annotated[
    Optional[datetime], BeforeValidator(_ensure_optional_utc)
]


class BaseDocument(BaseModel):
    """MongoDB 도큐먼트용 공통 베이스 모델.

    - ObjectId 같은 임의 타입을 허용
    - alias 기반 직렬화(by_alias)를 사용할 수 있도록 한다.
    - Mongo 가 추가하는 알 수 없는 필드는 무시한다.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True, populate_by_name=True, extra="ignore"
    )

    created_at: MongoDateTime
    updated_at: MongoDateTime

    def to_mongo_record(self) -> dict[str, Any]:
        """MongoDB 저장에 사용할 표준 레코드(dict) 직렬화.

        - by_alias=True 로 id -> _id 등의 Mongo 필드 이름과 일치시킨다.
        - exclude_none=True 로 _id=None 같은 필드를 제거해 Mongo가 ObjectId 를 생성하도록 한다.
        """

        return self.model_dump(by_alias=True, exclude_none=True)


class ObjectIdDocument(BaseDocument):
    """Mongo 가 ObjectId 를 생성하는 append-only 컬렉션용 베이스."""

    id: Optional[PyObjectId] = Field(default=None, alias="_id")


class KeyedDocument(BaseDocument):
    """결정적인 문자열 키(_id)를 사용하는 컬렉션용 베이스.

    business_id 나 business_id_mission_id 처럼 호출자가 키를 만든다.
    """

    id: str = Field(alias="_id")

    def to_mongo_record(self) -> dict[str, Any]:
        # None 값도 명시적으로 저장해야 재활성화 시 deactivated_at 등이 초기화된다.
        return self.model_dump(by_alias=True)
