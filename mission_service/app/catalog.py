"""잠긴(locked) 미션 카탈로그와 미션별 연동 요구사항 테이블.

카탈로그는 기동 시 한 번 만들어 게이트에 주입하는 읽기 전용 참조 데이터다.
모든 미션은 에너지 비용표의 미션 타입에 명시적으로 매핑되어야 하며,
매핑이 비어 있으면 MissionCatalog 생성 시점에 CatalogConfigError 가 발생한다.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from .config import EnergyConfig
from .exceptions import CatalogConfigError
from .models.activation import (
    ConnectionRequirement,
    ConnectionRequirements,
    ConnectionSetupInstructions,
    ConnectionType,
)
from .models.catalog import MissionTemplate
from .models.energy import SubscriptionTier


LOCKED_MISSIONS: tuple[MissionTemplate, ...] = (
    MissionTemplate(
        id="GOOGLE_REVIEW_TEXT",
        name="Leave a Google Review",
        description="Write a Google review about your experience",
        business_need="REPUTATION",
        energy_mission_type="GOOGLE_REVIEW",
        default_reward=150,
        requires_business_confirmation=True,
        min_subscription_tier=SubscriptionTier.SILVER,
    ),
    MissionTemplate(
        id="GOOGLE_REVIEW_PHOTOS",
        name="Google Review with Photos",
        description="Write a Google review and upload photos of your experience",
        business_need="REPUTATION",
        energy_mission_type="TAKE_PHOTO",
        default_reward=250,
        requires_business_confirmation=True,
        min_subscription_tier=SubscriptionTier.GOLD,
    ),
    MissionTemplate(
        id="VISIT_CHECKIN",
        name="Visit & Check-In",
        description="Visit our location and check in via QR code or GPS",
        business_need="TRAFFIC",
        energy_mission_type="CHECK_IN",
        default_reward=50,
    ),
    MissionTemplate(
        id="CONSULTATION_REQUEST",
        name="Book a Consultation",
        description="Request a consultation or schedule an appointment",
        business_need="CONVERSION",
        energy_mission_type="DEFAULT",
        default_reward=200,
        requires_business_confirmation=True,
        min_subscription_tier=SubscriptionTier.SILVER,
    ),
    MissionTemplate(
        id="REDEEM_OFFER",
        name="Redeem Special Offer",
        description="Redeem a special offer in-store or online",
        business_need="CONVERSION",
        energy_mission_type="SCAN_QR",
        default_reward=100,
    ),
    MissionTemplate(
        id="FIRST_PURCHASE",
        name="Make Your First Purchase",
        description="Complete your first purchase with us",
        business_need="CONVERSION",
        energy_mission_type="DEFAULT",
        default_reward=300,
        requires_business_confirmation=True,
    ),
    MissionTemplate(
        id="REFER_PAYING_CUSTOMER",
        name="Refer a Paying Customer",
        description="Invite a friend who makes a purchase",
        business_need="GROWTH",
        energy_mission_type="REFER_FRIEND",
        default_reward=500,
        requires_business_confirmation=True,
        min_subscription_tier=SubscriptionTier.GOLD,
    ),
    MissionTemplate(
        id="BRING_A_FRIEND",
        name="Bring a Friend",
        description="Visit together with a friend who is new to us",
        business_need="GROWTH",
        energy_mission_type="INVITE_FRIENDS",
        default_reward=200,
        requires_business_confirmation=True,
    ),
    MissionTemplate(
        id="UGC_PHOTO_UPLOAD",
        name="Share Your Experience (Photo)",
        description="Upload a photo of your experience",
        business_need="CONTENT",
        energy_mission_type="TAKE_PHOTO",
        default_reward=100,
    ),
    MissionTemplate(
        id="UGC_VIDEO_UPLOAD",
        name="Create a Video Review",
        description="Record a short video about your experience",
        business_need="CONTENT",
        energy_mission_type="CREATE_VIDEO",
        default_reward=250,
        min_subscription_tier=SubscriptionTier.SILVER,
    ),
    MissionTemplate(
        id="STORY_POST_TAG",
        name="Share to Your Story",
        description="Post an Instagram story that tags our business",
        business_need="AWARENESS",
        energy_mission_type="POST_STORY",
        default_reward=150,
    ),
    MissionTemplate(
        id="FEED_REEL_POST_TAG",
        name="Post on Your Feed",
        description="Publish a feed post or reel that tags our business",
        business_need="AWARENESS",
        energy_mission_type="SHARE_POST",
        default_reward=250,
        min_subscription_tier=SubscriptionTier.SILVER,
    ),
    MissionTemplate(
        id="REPEAT_PURCHASE_VISIT",
        name="Loyalty Rewards",
        description="Come back for a repeat purchase or visit",
        business_need="RETENTION",
        energy_mission_type="VISIT_STORE",
        default_reward=75,
    ),
    MissionTemplate(
        id="INSTAGRAM_FOLLOW",
        name="Follow on Instagram",
        description="Follow our Instagram account",
        business_need="AWARENESS",
        energy_mission_type="DEFAULT",
        default_reward=50,
    ),
)


_GOOGLE_BUSINESS = ConnectionRequirement(
    type=ConnectionType.GOOGLE_GBP,
    display_name="Google Business Profile",
    description="Your Google Business Profile must be connected to verify reviews",
    setup_url="/settings/integrations/google",
)
_GOOGLE_USER = ConnectionRequirement(
    type=ConnectionType.GOOGLE_GBP,
    display_name="Google Account",
    description="Users must connect their Google account to leave reviews",
    setup_url="/settings/connections",
)
_INSTAGRAM_BUSINESS = ConnectionRequirement(
    type=ConnectionType.INSTAGRAM,
    display_name="Instagram Business",
    description="Your Instagram Business account must be connected to verify posts",
    setup_url="/settings/integrations/instagram",
)
_INSTAGRAM_USER = ConnectionRequirement(
    type=ConnectionType.INSTAGRAM,
    display_name="Instagram Account",
    description="Users must connect their Instagram account to post",
    setup_url="/settings/connections",
)

# 테이블에 없는 미션은 연동이 필요 없다 (스크린샷/수동 증빙).
MISSION_CONNECTION_REQUIREMENTS: Mapping[str, ConnectionRequirements] = MappingProxyType(
    {
        "GOOGLE_REVIEW_TEXT": ConnectionRequirements(
            business=(_GOOGLE_BUSINESS,), user=(_GOOGLE_USER,)
        ),
        "GOOGLE_REVIEW_PHOTOS": ConnectionRequirements(
            business=(_GOOGLE_BUSINESS,), user=(_GOOGLE_USER,)
        ),
        "STORY_POST_TAG": ConnectionRequirements(
            business=(_INSTAGRAM_BUSINESS,), user=(_INSTAGRAM_USER,)
        ),
        "FEED_REEL_POST_TAG": ConnectionRequirements(
            business=(_INSTAGRAM_BUSINESS,), user=(_INSTAGRAM_USER,)
        ),
        "INSTAGRAM_FOLLOW": ConnectionRequirements(business=(_INSTAGRAM_BUSINESS,)),
    }
)

NO_REQUIREMENTS = ConnectionRequirements()


CONNECTION_SETUP_INSTRUCTIONS: Mapping[ConnectionType, ConnectionSetupInstructions] = (
    MappingProxyType(
        {
            ConnectionType.GOOGLE_GBP: ConnectionSetupInstructions(
                title="Connect Google Business Profile",
                steps=[
                    "Go to Settings → Integrations",
                    'Click "Connect Google Business Profile"',
                    "Sign in with your business Google account",
                    "Select your business location",
                    "Grant permissions to verify reviews",
                ],
                estimated_time="2-3 minutes",
            ),
            ConnectionType.INSTAGRAM: ConnectionSetupInstructions(
                title="Connect Instagram Business",
                steps=[
                    "Go to Settings → Connections",
                    'Click "Connect Instagram"',
                    "Ensure your Instagram is a Business account",
                    "Ensure it's linked to a Facebook Page",
                    "Sign in and grant permissions",
                ],
                estimated_time="3-5 minutes",
            ),
            ConnectionType.FACEBOOK: ConnectionSetupInstructions(
                title="Connect Facebook",
                steps=[
                    "Go to Settings → Connections",
                    'Click "Connect Facebook"',
                    "Sign in with Facebook",
                    "Grant permissions",
                ],
                estimated_time="1-2 minutes",
            ),
            ConnectionType.TIKTOK: ConnectionSetupInstructions(
                title="Connect TikTok",
                steps=[
                    "Go to Settings → Connections",
                    'Click "Connect TikTok"',
                    "Sign in with TikTok",
                    "Grant permissions",
                ],
                estimated_time="2-3 minutes",
            ),
        }
    )
)


class MissionCatalog:
    """미션 템플릿과 연동 요구사항 조회기."""

    def __init__(
        self,
        templates: Iterable[MissionTemplate],
        energy_config: EnergyConfig,
        connection_requirements: Mapping[str, ConnectionRequirements] | None = None,
    ) -> None:
        self._templates: dict[str, MissionTemplate] = {}
        unmapped: list[str] = []
        for template in templates:
            if template.id in self._templates:
                raise CatalogConfigError(f"duplicate mission id in catalog: {template.id}")
            if not energy_config.is_known_mission_type(template.energy_mission_type):
                unmapped.append(f"{template.id} -> {template.energy_mission_type}")
            self._templates[template.id] = template
        if unmapped:
            raise CatalogConfigError(
                "catalog missions mapped to unknown energy mission types: "
                + ", ".join(unmapped)
            )

        requirements = (
            MISSION_CONNECTION_REQUIREMENTS
            if connection_requirements is None
            else connection_requirements
        )
        unknown = sorted(set(requirements) - set(self._templates))
        if unknown:
            raise CatalogConfigError(
                f"connection requirements for missions not in catalog: {unknown}"
            )
        self._requirements = requirements

    def get(self, mission_id: str) -> MissionTemplate | None:
        return self._templates.get(mission_id)

    def list(self) -> list[MissionTemplate]:
        return list(self._templates.values())

    def requirements_for(self, mission_id: str) -> ConnectionRequirements:
        return self._requirements.get(mission_id, NO_REQUIREMENTS)


def build_default_catalog(energy_config: EnergyConfig) -> MissionCatalog:
    return MissionCatalog(LOCKED_MISSIONS, energy_config)


def get_connection_setup_instructions(
    requirement: ConnectionRequirement,
) -> ConnectionSetupInstructions:
    instructions = CONNECTION_SETUP_INSTRUCTIONS.get(requirement.type)
    if instructions is None:
        return ConnectionSetupInstructions(
            title="Connect Account",
            steps=["Follow the setup wizard"],
            estimated_time="A few minutes",
        )
    return instructions
