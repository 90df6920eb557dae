from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from conftest import (
    NOW,
    FakeEnergyConsumptionRepository,
    FakeEnergyPoolRepository,
    build_fixture,
)

from mission_service.app.models.energy import (
    EnergyErrorCode,
    EnergyLedgerKind,
    EnergyPool,
    SubscriptionTier,
)
from mission_service.app.services.energy_service import EnergyPoolManager


def _assert_balanced(pool: EnergyPool) -> None:
    assert pool.used + pool.remaining == pool.monthly_limit


def test_initialize_creates_full_pool_for_current_calendar_month(fixture) -> None:
    pool = fixture.energy.initialize("biz-1", SubscriptionTier.STARTER)

    assert pool.monthly_limit == 100
    assert pool.used == 0
    assert pool.remaining == 100
    assert pool.is_unlimited is False
    assert pool.cycle_start == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert pool.cycle_end == datetime(2026, 3, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)
    assert fixture.pool_repo.pools["biz-1"] == pool


def test_ensure_pool_keeps_existing_pool(fixture) -> None:
    fixture.energy.initialize("biz-1", SubscriptionTier.SILVER)
    fixture.energy.consume("biz-1", "m-1", "CHECK_IN")

    pool = fixture.energy.ensure_pool("biz-1", SubscriptionTier.STARTER)

    assert pool.subscription_tier == SubscriptionTier.SILVER
    assert pool.used == 15


def test_consume_deducts_cost_and_appends_ledger_entry(fixture) -> None:
    fixture.energy.initialize("biz-1")

    result = fixture.energy.consume("biz-1", "m-1", "GOOGLE_REVIEW", "Leave a review")

    assert result.success is True
    assert result.amount == 25
    assert result.remaining == 75
    _assert_balanced(result.pool)
    assert len(fixture.ledger_repo.created) == 1
    entry = fixture.ledger_repo.created[0]
    assert entry.kind == EnergyLedgerKind.CONSUME
    assert entry.mission_type == "GOOGLE_REVIEW"
    assert entry.mission_title == "Leave a review"
    assert entry.amount == 25
    assert entry.timestamp == NOW


def test_unmapped_mission_type_costs_default(fixture) -> None:
    fixture.energy.initialize("biz-1")

    result = fixture.energy.consume("biz-1", "m-1", "SOMETHING_NEW")

    assert result.success is True
    assert result.amount == 20
    assert result.remaining == 80


def test_mission_type_lookup_is_normalized_exact_match(fixture) -> None:
    assert fixture.energy.get_energy_cost("check in").cost == 15
    # 부분 문자열 매칭은 하지 않는다.
    assert fixture.energy.get_energy_cost("CHECK_IN_TWICE").cost == 20
    assert fixture.energy.get_energy_cost(None).cost == 20


def test_consume_without_pool_fails_with_pool_not_initialized(fixture) -> None:
    result = fixture.energy.consume("missing", "m-1", "CHECK_IN")

    assert result.success is False
    assert result.error is not None
    assert result.error.code == EnergyErrorCode.POOL_NOT_INITIALIZED
    assert fixture.ledger_repo.created == []


def test_failed_ledger_write_restores_pool_and_reraises(fixture) -> None:
    fixture.energy.initialize("biz-1")
    fixture.ledger_repo.fail_on_create = RuntimeError("ledger unavailable")

    with pytest.raises(RuntimeError):
        fixture.energy.consume("biz-1", "m-1", "TAKE_PHOTO")

    pool = fixture.pool_repo.pools["biz-1"]
    assert pool.used == 0
    assert pool.remaining == 100
    assert fixture.ledger_repo.created == []


def test_consume_then_refund_restores_balance(fixture) -> None:
    before = fixture.energy.initialize("biz-1")
    fixture.energy.consume("biz-1", "m-1", "CHECK_IN")
    consumed = fixture.energy.consume("biz-1", "m-2", "TAKE_PHOTO")

    refunded = fixture.energy.refund("biz-1", "m-2", "TAKE_PHOTO")

    assert consumed.remaining == 45
    assert refunded.success is True
    assert refunded.pool.used == 15
    assert refunded.pool.remaining == 85
    assert before.monthly_limit == refunded.pool.monthly_limit
    _assert_balanced(refunded.pool)
    kinds = [entry.kind for entry in fixture.ledger_repo.created]
    assert kinds == [
        EnergyLedgerKind.CONSUME,
        EnergyLedgerKind.CONSUME,
        EnergyLedgerKind.REFUND,
    ]
    # 원래 consume 항목은 그대로 남는다.
    assert fixture.ledger_repo.created[1].amount == 40


def test_refund_is_capped_at_limit_and_floored_at_zero(fixture) -> None:
    fixture.energy.initialize("biz-1")

    result = fixture.energy.refund("biz-1", "m-1", "REFER_FRIEND")

    assert result.success is True
    assert result.pool.used == 0
    assert result.pool.remaining == 100


def test_concurrent_consume_only_one_succeeds_when_budget_covers_one(fixture) -> None:
    fixture.energy.initialize("biz-1")
    fixture.energy.consume("biz-1", "m-0", "REFER_FRIEND")  # remaining 40

    results = []
    barrier = threading.Barrier(2)

    def worker(mission_id: str) -> None:
        barrier.wait()
        results.append(fixture.energy.consume("biz-1", mission_id, "TAKE_PHOTO"))

    threads = [threading.Thread(target=worker, args=(f"m-{i}",)) for i in (1, 2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    successes = [r for r in results if r.success]
    failures = [r for r in results if not r.success]
    assert len(successes) == 1
    assert len(failures) == 1
    assert failures[0].error.code == EnergyErrorCode.INSUFFICIENT_ENERGY
    pool = fixture.pool_repo.pools["biz-1"]
    assert pool.used == 100
    assert pool.remaining == 0


def test_many_concurrent_consumers_never_overdraw(fixture) -> None:
    fixture.energy.initialize("biz-1")
    results = []

    def worker(i: int) -> None:
        results.append(fixture.energy.consume("biz-1", f"m-{i}", "CHECK_IN"))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(1 for r in results if r.success) == 6
    pool = fixture.pool_repo.pools["biz-1"]
    assert pool.used == 90
    assert pool.remaining == 10
    assert len(fixture.ledger_repo.created) == 6


def test_starter_scenario_refer_friend_fails_and_suggests_affordable_types(fixture) -> None:
    fixture.energy.initialize("biz-1", SubscriptionTier.STARTER)
    for i in range(3):
        assert fixture.energy.consume("biz-1", f"visit-{i}", "VISIT_STORE").success

    check = fixture.energy.check_availability("biz-1", "REFER_FRIEND")
    result = fixture.energy.consume("biz-1", "refer-1", "REFER_FRIEND")

    assert check.can_activate is False
    assert check.required == 60
    assert check.remaining == 55
    assert check.shortfall == 5
    assert check.error_code == EnergyErrorCode.INSUFFICIENT_ENERGY
    assert check.cycle_reset_at == fixture.pool_repo.pools["biz-1"].cycle_end

    affordable = [s.mission_type for s in check.affordable_types]
    for cheap in ("VISIT_STORE", "CHECK_IN", "SCAN_QR"):
        assert cheap in affordable
    assert "REFER_FRIEND" not in affordable
    assert all(s.cost <= 55 for s in check.affordable_types)
    assert [s.mission_type for s in check.alternatives] == [
        "CREATE_VIDEO",
        "TAKE_PHOTO",
        "POST_STORY",
    ]
    assert check.alternatives[0].description.startswith("High energy")

    assert result.success is False
    assert result.error.code == EnergyErrorCode.INSUFFICIENT_ENERGY
    assert result.error.shortfall == 5
    assert fixture.pool_repo.pools["biz-1"].remaining == 55


def test_check_availability_without_pool(fixture) -> None:
    check = fixture.energy.check_availability("missing", "CHECK_IN")

    assert check.can_activate is False
    assert check.error_code == EnergyErrorCode.POOL_NOT_INITIALIZED
    assert check.shortfall == 15


def test_tier_upgrade_keeps_usage_and_recomputes_remaining(fixture) -> None:
    fixture.energy.initialize("biz-1", SubscriptionTier.STARTER)
    fixture.energy.consume("biz-1", "m-1", "REFER_FRIEND")
    fixture.energy.consume("biz-1", "m-2", "DEFAULT")

    pool = fixture.energy.update_tier("biz-1", SubscriptionTier.GOLD)

    assert pool.subscription_tier == SubscriptionTier.GOLD
    assert pool.monthly_limit == 800
    assert pool.used == 80
    assert pool.remaining == 720


def test_tier_downgrade_below_usage_pins_remaining_at_zero(fixture) -> None:
    fixture.energy.initialize("biz-1", SubscriptionTier.SILVER)
    for i in range(4):
        fixture.energy.consume("biz-1", f"m-{i}", "REFER_FRIEND")  # used 240

    pool = fixture.energy.update_tier("biz-1", SubscriptionTier.STARTER)

    assert pool.used == 240
    assert pool.remaining == 0
    assert fixture.energy.consume("biz-1", "m-9", "CHECK_IN").success is False


def test_update_tier_without_pool_initializes_one(fixture) -> None:
    pool = fixture.energy.update_tier("biz-new", SubscriptionTier.SILVER)

    assert pool.monthly_limit == 300
    assert pool.remaining == 300


def test_platinum_pool_never_blocks_and_tracks_usage(fixture) -> None:
    fixture.energy.initialize("biz-vip", SubscriptionTier.PLATINUM)

    for i in range(200):
        assert fixture.energy.consume("biz-vip", f"m-{i}", "REFER_FRIEND").success

    pool = fixture.pool_repo.pools["biz-vip"]
    assert pool.is_unlimited is True
    assert pool.used == 12_000
    assert pool.remaining == 10_000
    assert fixture.energy.check_availability("biz-vip", "REFER_FRIEND").can_activate


def test_get_does_not_reset_expired_pool(fixture) -> None:
    fixture.energy.initialize("biz-1")
    fixture.energy.consume("biz-1", "m-1", "CHECK_IN")
    later = build_fixture(clock=lambda: datetime(2026, 4, 2, tzinfo=timezone.utc))
    later.pool_repo.pools = fixture.pool_repo.pools

    pool = later.energy.get("biz-1")

    assert pool is not None
    assert pool.is_expired(datetime(2026, 4, 2, tzinfo=timezone.utc))
    assert pool.used == 15
    assert pool.remaining == 85


def test_reset_one_refills_pool(fixture) -> None:
    fixture.energy.initialize("biz-1")
    fixture.energy.consume("biz-1", "m-1", "CREATE_VIDEO")

    result = fixture.energy.reset_one("biz-1")

    assert result.success is True
    assert result.pool.used == 0
    assert result.pool.remaining == 100
    assert result.pool.last_reset == NOW


class FlakyResetPoolRepository(FakeEnergyPoolRepository):
    def __init__(self, failing_id: str) -> None:
        super().__init__()
        self.failing_id = failing_id

    def reset(self, business_id, monthly_limit, cycle_start, cycle_end, now):
        if business_id == self.failing_id:
            raise RuntimeError("write conflict")
        return super().reset(business_id, monthly_limit, cycle_start, cycle_end, now)


def test_reset_all_continues_past_failing_pool() -> None:
    flaky = FlakyResetPoolRepository(failing_id="biz-3")
    manager = EnergyPoolManager(
        pool_repo=flaky, ledger_repo=FakeEnergyConsumptionRepository(), clock=lambda: NOW
    )
    for i in range(1, 6):
        manager.initialize(f"biz-{i}")
        manager.consume(f"biz-{i}", "m-1", "CHECK_IN")

    summary = manager.reset_all()

    assert summary.total_pools == 5
    assert summary.success_count == 4
    assert summary.failed_count == 1
    assert len(summary.errors) == 1
    assert summary.errors[0].startswith("biz-3")
    for i in (1, 2, 4, 5):
        assert flaky.pools[f"biz-{i}"].remaining == 100
    assert flaky.pools["biz-3"].remaining == 85


def test_usage_stats_flags_low_balance(fixture) -> None:
    fixture.energy.initialize("biz-1")
    fixture.energy.consume("biz-1", "m-1", "REFER_FRIEND")
    fixture.energy.consume("biz-1", "m-2", "DEFAULT")

    stats = fixture.energy.get_usage_stats("biz-1")

    assert stats is not None
    assert stats.total_used == 80
    assert stats.percentage == 80.0
    assert stats.is_low is True
    assert stats.is_depleted is False
    assert fixture.energy.get_usage_stats("missing") is None


def test_history_lists_consume_and_refund_entries(fixture) -> None:
    fixture.energy.initialize("biz-1")
    fixture.energy.consume("biz-1", "m-1", "CHECK_IN")
    fixture.energy.refund("biz-1", "m-1", "CHECK_IN")

    items, total = fixture.energy.get_history("biz-1", page=1, page_size=10)

    assert total == 2
    assert {item.kind for item in items} == {
        EnergyLedgerKind.CONSUME,
        EnergyLedgerKind.REFUND,
    }
