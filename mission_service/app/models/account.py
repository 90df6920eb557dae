"""외부 연동 연결 상태(읽기 전용) 도메인 모델."""

from __future__ import annotations

from pydantic import BaseModel

from .energy import SubscriptionTier


class AccountConnections(BaseModel):
    """users 컬렉션에서 읽어 온 비즈니스/고객 계정의 연동 상태.

    - google: 소셜 계정으로 구글이 연결됨 (socialAccounts.google.connected)
    - google_business: Google Business Profile 연동 (integrations.googleBusiness.connected)
    """

    account_id: str
    subscription_tier: SubscriptionTier = SubscriptionTier.STARTER
    google: bool = False
    google_business: bool = False
    instagram: bool = False
    facebook: bool = False
    tiktok: bool = False
