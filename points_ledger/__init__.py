"""
points_ledger - Employee Points Ledger and Project Reward Engine

Per-employee point wallets, a one-time project completion reward with an
overdue penalty, and an append-only audit trail, all kept in a transactional
document store.

Usage:
    from datetime import date
    from points_ledger import (
        DocumentStore, Project, register_project,
        distribute_project_points, get_point_profile,
    )

    store = DocumentStore("hr")
    register_project(store, Project(
        id="proj-42",
        name="Payroll migration",
        end_date=date(2024, 6, 1),
        team_member_ids=("alice", "bob", "carol"),
        point_budget=300,
    ))

    result = distribute_project_points(store, "proj-42", date(2024, 6, 11))
    # 10 days late: 10% penalty, 270 awarded, 90 each
    get_point_profile(store, "alice").balance  # 90
"""

# Core types
from .core import (
    StoreView,
    Project,
    PointProfile,
    PointTransaction,
    PenaltyResult,
    DistributionResult,
    LedgerError,
    DistributionError,
    NotFound,
    AlreadyDistributed,
    NoBudgetConfigured,
    NoTeamMembers,
    StoreError,
    TransactionConflict,
    StoreUnavailable,
    TransactionError,
    operator_message,
    to_calendar_date,
    month_token,
    PROJECTS,
    POINT_PROFILES,
    POINT_TRANSACTIONS,
    APPEND_ONLY_COLLECTIONS,
    TRANSACTION_TYPE_RECEIVED,
    TRANSACTION_TYPE_GIVEN,
    TRANSACTION_TYPE_REDEEMED,
    TRANSACTION_TYPE_ADJUSTMENT,
    TRANSACTION_TYPE_PENALTY,
    PENALTY_PERCENT_PER_DAY,
    FORFEITURE_DAYS,
    EARNED_FIELDS,
    GIVING_FIELDS,
    SERVER_TIMESTAMP,
)

# Store
from .store import (
    DocumentStore,
    StoreTransaction,
    CommitRecord,
    DocumentWrite,
)

# Penalty
from .penalty import (
    calculate_project_points,
    overdue_days,
)

# Distribution
from .distribution import (
    stage_project_distribution,
    distribute_project_points,
    retry_on_conflict,
    describe_award,
)

# Projects
from .projects import register_project

# Read side
from .queries import (
    get_project,
    get_point_profile,
    list_point_transactions,
    project_payouts,
    verify_ledger,
)

__all__ = [
    # Core
    'StoreView', 'Project', 'PointProfile', 'PointTransaction',
    'PenaltyResult', 'DistributionResult',
    'LedgerError', 'DistributionError', 'NotFound', 'AlreadyDistributed',
    'NoBudgetConfigured', 'NoTeamMembers', 'StoreError', 'TransactionConflict',
    'StoreUnavailable', 'TransactionError',
    'operator_message', 'to_calendar_date', 'month_token',
    'PROJECTS', 'POINT_PROFILES', 'POINT_TRANSACTIONS', 'APPEND_ONLY_COLLECTIONS',
    'TRANSACTION_TYPE_RECEIVED', 'TRANSACTION_TYPE_GIVEN', 'TRANSACTION_TYPE_REDEEMED',
    'TRANSACTION_TYPE_ADJUSTMENT', 'TRANSACTION_TYPE_PENALTY',
    'PENALTY_PERCENT_PER_DAY', 'FORFEITURE_DAYS', 'EARNED_FIELDS', 'GIVING_FIELDS',
    'SERVER_TIMESTAMP',
    # Store
    'DocumentStore', 'StoreTransaction', 'CommitRecord', 'DocumentWrite',
    # Penalty
    'calculate_project_points', 'overdue_days',
    # Distribution
    'stage_project_distribution', 'distribute_project_points', 'retry_on_conflict',
    'describe_award',
    # Projects
    'register_project',
    # Read side
    'get_project', 'get_point_profile', 'list_point_transactions',
    'project_payouts', 'verify_ledger',
]

__version__ = '1.0.0'
