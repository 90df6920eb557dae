from __future__ import annotations

import logging
from typing import Any

from pymongo.database import Database

from common.mongo.client import USERS_COLLECTION

from ..models.account import AccountConnections
from ..models.energy import SubscriptionTier
from .interfaces import AccountConnectionsRepositoryInterface


logger = logging.getLogger(__name__)


_PROJECTION = {
    "subscriptionLevel": 1,
    "socialAccounts": 1,
    "integrations": 1,
}


def _is_connected(section: Any, key: str) -> bool:
    if not isinstance(section, dict):
        return False
    entry = section.get(key)
    return isinstance(entry, dict) and entry.get("connected") is True


def _parse_tier(raw: Any, account_id: str) -> SubscriptionTier:
    if not raw:
        return SubscriptionTier.STARTER
    try:
        return SubscriptionTier(str(raw).upper())
    except ValueError:
        logger.warning(
            "unknown subscription level %r, falling back to STARTER",
            raw,
            extra={"business_id": account_id},
        )
        return SubscriptionTier.STARTER


class AccountConnectionsRepository(AccountConnectionsRepositoryInterface):
    """users 컬렉션에서 연동 플래그만 읽어오는 MongoDB 접근 레이어.

    계정 도큐먼트의 _id 가 곧 business_id / user_id 다.

    - socialAccounts.{google,instagram,facebook,tiktok}.connected
    - integrations.googleBusiness.connected
    OAuth/토큰 관리는 다른 서비스가 담당하며 여기서는 쓰지 않는다.
    """

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[USERS_COLLECTION]

    def find(self, account_id: str) -> AccountConnections | None:
        doc = self._col.find_one({"_id": account_id}, projection=_PROJECTION)
        if not doc:
            return None

        social = doc.get("socialAccounts") or {}
        integrations = doc.get("integrations") or {}
        return AccountConnections(
            account_id=account_id,
            subscription_tier=_parse_tier(doc.get("subscriptionLevel"), account_id),
            google=_is_connected(social, "google"),
            google_business=_is_connected(integrations, "googleBusiness"),
            instagram=_is_connected(social, "instagram"),
            facebook=_is_connected(social, "facebook"),
            tiktok=_is_connected(social, "tiktok"),
        )
