from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated

from pydantic.functional_serializers import PlainSerializer


def to_utc(value: datetime) -> datetime:
    """naive datetime 은 UTC 로 간주하고, aware datetime 은 UTC 로 변환한다."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize_datetime_to_utc_iso8601(value: datetime) -> str:
    """모든 datetime을 UTC 기준 ISO8601(+타임존) 문자열로 직렬화한다."""
    return to_utc(value).isoformat()


def calendar_month_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """moment 가 속한 달(UTC)의 첫 순간과 마지막 순간을 반환한다.

    마지막 순간은 다음 달 1일 00:00 에서 1 마이크로초를 뺀 값이다.
    """
    moment = to_utc(moment)
    start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        next_start = start.replace(year=start.year + 1, month=1)
    else:
        next_start = start.replace(month=start.month + 1)
    return start, next_start - timedelta(microseconds=1)


UtcDateTime = Annotated[
    datetime,
    PlainSerializer(
        serialize_datetime_to_utc_iso8601,
        return_type=str,
        when_used="json",
    ),
]
