"""
Functional tests: end-to-end project reward scenarios.

Each test registers a project, settles it through the public API and
checks profiles, the audit log and the ledger reconciliation.
"""

import pytest
from datetime import date

from points_ledger import (
    distribute_project_points, stage_project_distribution,
    get_point_profile, get_project,
    list_point_transactions, project_payouts, verify_ledger,
    operator_message, AlreadyDistributed, NoBudgetConfigured,
    POINT_PROFILES, POINT_TRANSACTIONS,
)

from tests.conftest import new_store, add_project, snapshot, DEADLINE


def _assert_consistent(store):
    result = verify_ledger(store)
    assert result['valid'], result['discrepancies']


class TestProjectScenarios:
    """Concrete settlement scenarios."""

    def test_on_time_full_award(self):
        store = new_store()
        add_project(store, budget=300, team=("A", "B", "C"))

        result = distribute_project_points(store, "proj-1", date(2024, 6, 1))

        assert result.awarded == 300
        assert result.per_member == 100
        assert result.penalty_percent == 0
        for member in ("A", "B", "C"):
            profile = get_point_profile(store, member)
            assert profile.balance == 100
            assert profile.total_earned == 100
        assert project_payouts(store, "proj-1") == {"A": 100, "B": 100, "C": 100}
        _assert_consistent(store)

    def test_ten_days_late(self):
        store = new_store()
        add_project(store, budget=300, team=("A", "B", "C"))

        result = distribute_project_points(store, "proj-1", date(2024, 6, 11))

        assert result.overdue_days == 10
        assert result.penalty_percent == 10
        assert result.awarded == 270
        assert result.per_member == 90
        assert get_point_profile(store, "B").balance == 90
        _assert_consistent(store)

    def test_forfeited_settlement_is_final(self):
        store = new_store()
        add_project(store, budget=300, team=("A", "B"))

        result = distribute_project_points(store, "proj-1", date(2024, 9, 15))

        assert result.overdue_days == 106
        assert result.awarded == 0
        assert result.per_member == 0
        assert store.list_documents(POINT_PROFILES) == {}
        assert store.list_documents(POINT_TRANSACTIONS) == {}
        assert get_project(store, "proj-1").points_distributed is True
        with pytest.raises(AlreadyDistributed):
            distribute_project_points(store, "proj-1", DEADLINE)
        _assert_consistent(store)

    def test_uneven_split_breakage(self):
        store = new_store()
        add_project(store, budget=100, team=("A", "B", "C"))

        result = distribute_project_points(store, "proj-1", date(2024, 6, 1))

        assert result.per_member == 33
        assert result.total_paid == 99
        assert result.breakage == 1
        assert sum(project_payouts(store, "proj-1").values()) == 99
        for member in ("A", "B", "C"):
            assert get_point_profile(store, member).balance == 33
        _assert_consistent(store)

    @pytest.mark.parametrize("second_date", [date(2024, 6, 1), date(2024, 5, 1), date(2024, 12, 31)])
    def test_second_settlement_rejected(self, second_date):
        store = new_store()
        add_project(store, budget=300, team=("A", "B", "C"))
        distribute_project_points(store, "proj-1", date(2024, 6, 1))
        before = snapshot(store)
        commits = len(store.commit_log)

        with pytest.raises(AlreadyDistributed) as info:
            distribute_project_points(store, "proj-1", second_date)

        assert snapshot(store) == before
        assert len(store.commit_log) == commits
        assert operator_message(info.value) == (
            "Points for this project have already been distributed."
        )

    @pytest.mark.parametrize("budget", [None, 0])
    def test_missing_budget_reads_no_profiles(self, budget):
        store = new_store()
        add_project(store, budget=budget, team=("A", "B", "C"))
        txn_reads = []

        def settle(txn):
            try:
                return stage_project_distribution(txn, "proj-1", date(2024, 6, 1))
            finally:
                txn_reads.extend(txn.read_keys)

        with pytest.raises(NoBudgetConfigured):
            store.run_transaction(settle)
        assert all(collection != POINT_PROFILES for collection, _ in txn_reads)
        assert operator_message(NoBudgetConfigured(), "mn") == "Энэ төсөлд оноо тохируулаагүй байна"


class TestMultipleProjects:
    """Several projects settling into shared profiles."""

    def test_earnings_accumulate_across_projects(self):
        store = new_store()
        add_project(store, "proj-1", budget=300, team=("A", "B", "C"))
        add_project(store, "proj-2", budget=120, team=("B", "C"), end_date=date(2024, 7, 1))

        distribute_project_points(store, "proj-1", date(2024, 6, 1))
        distribute_project_points(store, "proj-2", date(2024, 7, 6))

        # proj-2: 5 days late, floor(120 * 0.95) = 114, 57 each
        assert get_point_profile(store, "A").total_earned == 100
        assert get_point_profile(store, "B").total_earned == 157
        assert get_point_profile(store, "C").balance == 157
        assert len(list_point_transactions(store, user_id="B")) == 2
        _assert_consistent(store)
