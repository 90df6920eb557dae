"""mission-service 설정.

에너지 한도/비용표와 활성화 설정 범위는 기동 시 한 번 읽어 불변(frozen) 객체로 만들고,
서비스 생성자에 주입한다. config.yaml 이 없으면 내장 기본값을 사용한다.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models.energy import EnergyCostLevel, MissionEnergyCost, SubscriptionTier


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_FILE_NAME = "config.yaml"
DEFAULT_MISSION_TYPE = "DEFAULT"

_WHITESPACE_RE = re.compile(r"\s+")


DEFAULT_TIER_LIMITS: Mapping[SubscriptionTier, int] = MappingProxyType(
    {
        SubscriptionTier.STARTER: 100,
        SubscriptionTier.SILVER: 300,
        SubscriptionTier.GOLD: 800,
    }
)

DEFAULT_MISSION_COSTS: Mapping[str, MissionEnergyCost] = MappingProxyType(
    {
        # 체크인 계열
        "VISIT_STORE": MissionEnergyCost(cost=15, level=EnergyCostLevel.LOW),
        "CHECK_IN": MissionEnergyCost(cost=15, level=EnergyCostLevel.LOW),
        "SCAN_QR": MissionEnergyCost(cost=15, level=EnergyCostLevel.LOW),
        # 리뷰 계열
        "GOOGLE_REVIEW": MissionEnergyCost(cost=25, level=EnergyCostLevel.MEDIUM),
        "WRITE_REVIEW": MissionEnergyCost(cost=25, level=EnergyCostLevel.MEDIUM),
        "LEAVE_FEEDBACK": MissionEnergyCost(cost=25, level=EnergyCostLevel.MEDIUM),
        # 사진/영상 계열
        "TAKE_PHOTO": MissionEnergyCost(cost=40, level=EnergyCostLevel.HIGH),
        "POST_STORY": MissionEnergyCost(cost=40, level=EnergyCostLevel.HIGH),
        "CREATE_VIDEO": MissionEnergyCost(cost=45, level=EnergyCostLevel.HIGH),
        "SHARE_POST": MissionEnergyCost(cost=40, level=EnergyCostLevel.HIGH),
        # 추천 계열
        "REFER_FRIEND": MissionEnergyCost(cost=60, level=EnergyCostLevel.VERY_HIGH),
        "INVITE_FRIENDS": MissionEnergyCost(cost=60, level=EnergyCostLevel.VERY_HIGH),
        "SHARE_REFERRAL": MissionEnergyCost(cost=60, level=EnergyCostLevel.VERY_HIGH),
    }
)


def normalize_mission_type(mission_type: str | None) -> str:
    """'check in' -> 'CHECK_IN' 처럼 비용표 키 형식으로 정규화한다."""

    if not mission_type:
        return DEFAULT_MISSION_TYPE
    return _WHITESPACE_RE.sub("_", mission_type.strip()).upper()


@dataclass(frozen=True, slots=True)
class EnergyConfig:
    tier_limits: Mapping[SubscriptionTier, int] = field(
        default_factory=lambda: DEFAULT_TIER_LIMITS
    )
    mission_costs: Mapping[str, MissionEnergyCost] = field(
        default_factory=lambda: DEFAULT_MISSION_COSTS
    )
    default_cost: MissionEnergyCost = field(
        default_factory=lambda: MissionEnergyCost(cost=20, level=EnergyCostLevel.MEDIUM)
    )
    unlimited_tiers: frozenset[SubscriptionTier] = frozenset(
        {SubscriptionTier.PLATINUM}
    )
    # 무제한 등급도 사용량 분석을 위해 유한한 소프트 상한으로 표현한다.
    unlimited_ceiling: int = 10_000
    low_usage_percent: float = 80.0

    def is_unlimited(self, tier: SubscriptionTier) -> bool:
        return tier in self.unlimited_tiers

    def limit_for(self, tier: SubscriptionTier) -> int:
        if self.is_unlimited(tier):
            return self.unlimited_ceiling
        if tier in self.tier_limits:
            return self.tier_limits[tier]
        return self.tier_limits[SubscriptionTier.STARTER]

    def find_cost(self, mission_type: str | None) -> MissionEnergyCost | None:
        """정규화 후 정확히 일치하는 키만 찾는다. 없으면 None."""

        key = normalize_mission_type(mission_type)
        if key == DEFAULT_MISSION_TYPE:
            return self.default_cost
        return self.mission_costs.get(key)

    def is_known_mission_type(self, mission_type: str) -> bool:
        return self.find_cost(mission_type) is not None


@dataclass(frozen=True, slots=True)
class ActivationConfig:
    reward_min: int = 25
    reward_max: int = 500
    max_participants_min: int = 1
    max_participants_max: int = 10_000


@dataclass(frozen=True, slots=True)
class AppConfig:
    """mission-service 전체 설정 루트."""

    energy: EnergyConfig = field(default_factory=EnergyConfig)
    activation: ActivationConfig = field(default_factory=ActivationConfig)


def _find_config_path() -> Path | None:
    """현재 작업 디렉토리 기준으로 상위로 올라가며 config.yaml 을 찾는다."""

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def _as_int(value: Any, name: str, path: Path | str) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:  # noqa: TRY003
        raise ConfigError(f"invalid {name} in {path}: {value!r}") from exc
    if result <= 0:
        raise ConfigError(f"{name} must be positive in {path}: {value!r}")
    return result


def _parse_energy(raw: dict, path: Path | str) -> EnergyConfig:
    defaults = EnergyConfig()

    tier_limits: dict[SubscriptionTier, int] = dict(defaults.tier_limits)
    for tier_name, limit in (raw.get("tier_limits") or {}).items():
        try:
            tier = SubscriptionTier(str(tier_name).upper())
        except ValueError as exc:
            raise ConfigError(f"unknown subscription tier in {path}: {tier_name!r}") from exc
        tier_limits[tier] = _as_int(limit, f"energy.tier_limits.{tier_name}", path)

    mission_costs: dict[str, MissionEnergyCost] = dict(defaults.mission_costs)
    for type_name, item in (raw.get("mission_costs") or {}).items():
        if not isinstance(item, dict):
            raise ConfigError(f"energy.mission_costs.{type_name} must be a mapping in {path}")
        try:
            level = EnergyCostLevel(str(item.get("level", "")).upper())
        except ValueError as exc:
            raise ConfigError(
                f"invalid energy level for {type_name} in {path}: {item.get('level')!r}"
            ) from exc
        mission_costs[normalize_mission_type(str(type_name))] = MissionEnergyCost(
            cost=_as_int(item.get("cost"), f"energy.mission_costs.{type_name}.cost", path),
            level=level,
        )

    default_cost = defaults.default_cost
    if raw.get("default_cost") is not None:
        default_cost = MissionEnergyCost(
            cost=_as_int(raw["default_cost"], "energy.default_cost", path),
            level=defaults.default_cost.level,
        )

    ceiling = defaults.unlimited_ceiling
    if raw.get("unlimited_ceiling") is not None:
        ceiling = _as_int(raw["unlimited_ceiling"], "energy.unlimited_ceiling", path)

    low_usage = float(raw.get("low_usage_percent", defaults.low_usage_percent))

    return EnergyConfig(
        tier_limits=MappingProxyType(tier_limits),
        mission_costs=MappingProxyType(mission_costs),
        default_cost=default_cost,
        unlimited_tiers=defaults.unlimited_tiers,
        unlimited_ceiling=ceiling,
        low_usage_percent=low_usage,
    )


def _parse_activation(raw: dict, path: Path | str) -> ActivationConfig:
    defaults = ActivationConfig()
    config = ActivationConfig(
        reward_min=_as_int(raw.get("reward_min", defaults.reward_min), "activation.reward_min", path),
        reward_max=_as_int(raw.get("reward_max", defaults.reward_max), "activation.reward_max", path),
        max_participants_min=_as_int(
            raw.get("max_participants_min", defaults.max_participants_min),
            "activation.max_participants_min",
            path,
        ),
        max_participants_max=_as_int(
            raw.get("max_participants_max", defaults.max_participants_max),
            "activation.max_participants_max",
            path,
        ),
    )
    if config.reward_min > config.reward_max:
        raise ConfigError(f"activation.reward_min > reward_max in {path}")
    if config.max_participants_min > config.max_participants_max:
        raise ConfigError(f"activation.max_participants_min > max_participants_max in {path}")
    return config


def parse_config(data: dict, source: Path | str = "<memory>") -> AppConfig:
    energy = data.get("energy") or {}
    activation = data.get("activation") or {}
    if not isinstance(energy, dict) or not isinstance(activation, dict):
        raise ConfigError(f"energy/activation sections must be mappings in {source}")
    return AppConfig(
        energy=_parse_energy(energy, source),
        activation=_parse_activation(activation, source),
    )


def load_config(path: Path | None = None) -> AppConfig:
    """config.yaml 을 읽어 AppConfig 로 반환한다. 파일이 없으면 기본값."""

    path = path or _find_config_path()
    if path is None:
        logger.info("%s not found, using built-in defaults", DEFAULT_CONFIG_FILE_NAME)
        return AppConfig()

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return parse_config(data, path)


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """FastAPI DI 용 설정 싱글톤."""

    return load_config()
