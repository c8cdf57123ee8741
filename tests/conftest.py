"""
conftest.py - Shared pytest fixtures for points ledger tests

Provides common fixtures and helpers used across unit and functional tests:
- Stores (empty, with a standard three-person project)
- Project factory
- State snapshot and comparison utilities
"""

import pytest
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

from points_ledger import (
    DocumentStore, Project, register_project,
    PROJECTS, POINT_PROFILES, POINT_TRANSACTIONS,
)

from tests.fake_view import FakeView


START_TIME = datetime(2024, 6, 1, 9, 0)
DEADLINE = date(2024, 6, 1)
TEAM = ("alice", "bob", "carol")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def new_store(name: str = "test", initial_time: Optional[datetime] = None) -> DocumentStore:
    """Create a quiet test-mode store."""
    return DocumentStore(name, initial_time or START_TIME, verbose=False, test_mode=True)


def add_project(
    store: DocumentStore,
    project_id: str = "proj-1",
    budget: Optional[int] = 300,
    team: Iterable[str] = TEAM,
    end_date: Any = DEADLINE,
    name: Optional[str] = "Payroll migration",
) -> Project:
    """Register a project through a normal transaction."""
    return register_project(store, Project(
        id=project_id,
        name=name,
        end_date=end_date,
        team_member_ids=tuple(team),
        point_budget=budget,
    ))


def snapshot(store: DocumentStore) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Deep copy of every collection the ledger touches."""
    return {
        collection: store.list_documents(collection)
        for collection in (PROJECTS, POINT_PROFILES, POINT_TRANSACTIONS)
    }


def store_state_equals(store1: DocumentStore, store2: DocumentStore) -> bool:
    """Check that two stores hold identical documents."""
    return snapshot(store1) == snapshot(store2)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def empty_store():
    """A store with no documents."""
    return new_store()


@pytest.fixture
def project_store():
    """A store holding proj-1: budget 300, deadline 2024-06-01, team alice/bob/carol."""
    store = new_store()
    add_project(store)
    return store


@pytest.fixture
def profile_view():
    """A read-only view with two profiles and four audit entries."""
    return FakeView(
        documents={
            POINT_PROFILES: {
                "alice": {"userId": "alice", "balance": 150, "monthlyAllowance": 20,
                          "totalEarned": 190, "totalGiven": 40,
                          "lastAllowanceResetMonth": "2024-06"},
                "bob": {"userId": "bob", "balance": 90, "totalEarned": 90},
            },
            POINT_TRANSACTIONS: {
                "tx-2": {"userId": "alice", "amount": 100, "type": "RECEIVED",
                         "refId": "proj-1", "projectId": "proj-1",
                         "createdAt": datetime(2024, 6, 2)},
                "tx-1": {"userId": "alice", "amount": 90, "type": "RECEIVED",
                         "refId": "post-7", "createdAt": datetime(2024, 6, 1)},
                "tx-3": {"userId": "bob", "amount": 90, "type": "RECEIVED",
                         "refId": "proj-2", "projectId": "proj-2",
                         "createdAt": datetime(2024, 6, 3)},
                "tx-4": {"userId": "alice", "amount": -40, "type": "REDEEMED",
                         "refId": "redeem-1", "createdAt": datetime(2024, 6, 4)},
            },
            PROJECTS: {
                "proj-1": {"id": "proj-1", "endDate": date(2024, 6, 1), "pointBudget": 100,
                           "teamMemberIds": ["alice"], "pointsDistributed": True,
                           "completedAt": date(2024, 6, 1)},
            },
        },
        time=START_TIME,
    )
