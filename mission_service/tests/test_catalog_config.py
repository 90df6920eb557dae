from __future__ import annotations

from pathlib import Path

import pytest

from mission_service.app.catalog import (
    LOCKED_MISSIONS,
    MissionCatalog,
    build_default_catalog,
)
from mission_service.app.config import (
    DEFAULT_MISSION_COSTS,
    DEFAULT_TIER_LIMITS,
    EnergyConfig,
    load_config,
    normalize_mission_type,
    parse_config,
)
from mission_service.app.exceptions import CatalogConfigError, ConfigError
from mission_service.app.models.catalog import MissionTemplate
from mission_service.app.models.energy import SubscriptionTier


def test_default_catalog_maps_every_mission_to_known_energy_type() -> None:
    catalog = build_default_catalog(EnergyConfig())

    assert len(catalog.list()) == 14
    assert catalog.get("VISIT_CHECKIN").energy_mission_type == "CHECK_IN"
    assert catalog.get("NOPE") is None
    assert catalog.requirements_for("VISIT_CHECKIN").business == ()


def test_catalog_rejects_unknown_energy_type() -> None:
    broken = MissionTemplate(
        id="BROKEN",
        name="Broken",
        description="",
        business_need="TRAFFIC",
        energy_mission_type="TELEPORT",
        default_reward=10,
    )

    with pytest.raises(CatalogConfigError):
        MissionCatalog([*LOCKED_MISSIONS, broken], EnergyConfig())


def test_catalog_rejects_duplicate_ids() -> None:
    with pytest.raises(CatalogConfigError):
        MissionCatalog([LOCKED_MISSIONS[0], LOCKED_MISSIONS[0]], EnergyConfig())


def test_normalize_mission_type() -> None:
    assert normalize_mission_type("  visit  store ") == "VISIT_STORE"
    assert normalize_mission_type("") == "DEFAULT"


def test_limit_for_tiers() -> None:
    config = EnergyConfig()

    assert config.limit_for(SubscriptionTier.STARTER) == 100
    assert config.limit_for(SubscriptionTier.SILVER) == 300
    assert config.limit_for(SubscriptionTier.GOLD) == 800
    assert config.limit_for(SubscriptionTier.PLATINUM) == 10_000
    assert config.is_unlimited(SubscriptionTier.PLATINUM)


def test_default_tables_are_shared_read_only_mappings() -> None:
    first, second = EnergyConfig(), EnergyConfig()

    assert first.tier_limits is DEFAULT_TIER_LIMITS
    assert second.mission_costs is DEFAULT_MISSION_COSTS
    assert first.default_cost.cost == 20
    with pytest.raises(TypeError):
        first.tier_limits[SubscriptionTier.STARTER] = 1  # type: ignore[index]


def test_parse_config_overrides_defaults() -> None:
    config = parse_config(
        {
            "energy": {
                "tier_limits": {"starter": 150},
                "mission_costs": {"check in": {"cost": 10, "level": "low"}},
                "default_cost": 30,
            },
            "activation": {"reward_min": 10},
        }
    )

    assert config.energy.limit_for(SubscriptionTier.STARTER) == 150
    assert config.energy.limit_for(SubscriptionTier.GOLD) == 800
    assert config.energy.find_cost("CHECK_IN").cost == 10
    assert config.energy.default_cost.cost == 30
    assert config.activation.reward_min == 10
    assert config.activation.reward_max == 500


@pytest.mark.parametrize(
    "data",
    [
        {"energy": {"tier_limits": {"DIAMOND": 10}}},
        {"energy": {"tier_limits": {"GOLD": 0}}},
        {"energy": {"mission_costs": {"X": {"cost": 5, "level": "EXTREME"}}}},
        {"activation": {"reward_min": 600}},
    ],
)
def test_parse_config_rejects_invalid_values(data: dict) -> None:
    with pytest.raises(ConfigError):
        parse_config(data)


def test_load_config_reads_yaml_file(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("energy:\n  tier_limits:\n    SILVER: 350\n", encoding="utf-8")

    config = load_config(path)

    assert config.energy.limit_for(SubscriptionTier.SILVER) == 350
