"""
distribution.py - Project Completion Reward Distribution

Settles a completed project exactly once: splits its point budget (after the
overdue penalty) evenly across the team, credits every member's profile,
appends one audit entry per member and flips the project's terminal
pointsDistributed flag. All of it happens in a single store transaction.

Phases inside the transaction:
    1. Reads   - project, then every team member's profile (exactly the team)
    2. Compute - penalty and per-member share
    3. Writes  - profiles, audit entries, project settlement

The integer remainder of awarded / team size is breakage: it is not paid
to anyone and is reported on the result.

Functions:
    stage_project_distribution() - do the work against an open transaction
    distribute_project_points()  - open, stage and commit in one call
    retry_on_conflict()          - caller-side retry wrapper (opt-in)
"""

from __future__ import annotations
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from .core import (
    # Records
    Project, DistributionResult, Document,
    # Constants
    PROJECTS, POINT_PROFILES, POINT_TRANSACTIONS,
    TRANSACTION_TYPE_RECEIVED, SERVER_TIMESTAMP, DEFAULT_LANGUAGE,
    # Exceptions
    NotFound, AlreadyDistributed, NoBudgetConfigured, NoTeamMembers,
    TransactionConflict,
    # Helpers
    is_positive_integer, month_token, to_calendar_date,
)
from .penalty import calculate_project_points
from .store import DocumentStore, StoreTransaction

T = TypeVar("T")


_DESCRIPTIONS: Dict[str, Dict[str, str]] = {
    "en": {
        "on_time": '"{name}" project completed on time',
        "overdue": '"{name}" project completed ({days} days overdue, {percent}% deducted)',
    },
    "mn": {
        "on_time": '"{name}" төсөл амжилттай дууссан',
        "overdue": '"{name}" төсөл дууссан ({days} хоног хоцорсон, {percent}% хасагдсан)',
    },
}


def describe_award(project_name: str, overdue_days: int, penalty_percent: int,
                   language: str = DEFAULT_LANGUAGE) -> str:
    """Audit description recording whether the project finished on time or late."""
    templates = _DESCRIPTIONS.get(language, _DESCRIPTIONS[DEFAULT_LANGUAGE])
    if overdue_days > 0:
        return templates["overdue"].format(name=project_name, days=overdue_days, percent=penalty_percent)
    return templates["on_time"].format(name=project_name)


def _check_preconditions(project_id: str, document: Optional[Document]) -> Project:
    """Validate a project document. Order matters: existence, settlement, budget, team."""
    if document is None:
        raise NotFound(f"Project {project_id} not found")

    if document.get("pointsDistributed"):
        raise AlreadyDistributed(f"Points for project {project_id} were already distributed")

    if not is_positive_integer(document.get("pointBudget")):
        raise NoBudgetConfigured(
            f"Project {project_id} has no point budget (got {document.get('pointBudget')!r})"
        )

    if not document.get("teamMemberIds"):
        raise NoTeamMembers(f"Project {project_id} has no team members")

    return Project.from_document(project_id, document)


def _credit_profile(
    txn: StoreTransaction,
    member_id: str,
    profile: Optional[Document],
    amount: int,
) -> None:
    """Create or credit a member's profile. Only balance and totalEarned change."""
    if profile is None:
        txn.set(POINT_PROFILES, member_id, {
            "userId": member_id,
            "balance": amount,
            "monthlyAllowance": 0,
            "totalEarned": amount,
            "totalGiven": 0,
            "lastAllowanceResetMonth": month_token(txn.current_time),
        })
    else:
        txn.update(POINT_PROFILES, member_id, {
            "balance": (profile.get("balance") or 0) + amount,
            "totalEarned": (profile.get("totalEarned") or 0) + amount,
        })


def stage_project_distribution(
    txn: StoreTransaction,
    project_id: str,
    completion_date: Any,
    language: str = DEFAULT_LANGUAGE,
) -> DistributionResult:
    """
    Stage a project's point distribution on an open transaction.

    Nothing is visible until the transaction is committed. If a precondition
    fails, an exception is raised before anything is staged.

    Args:
        txn: Open transaction with no reads or writes yet for this project
        project_id: Project to settle
        completion_date: Actual completion date (date, datetime or ISO string)
        language: Language of the audit descriptions ("en" or "mn")

    Returns:
        DistributionResult describing the settlement

    Raises:
        NotFound: Project does not exist
        AlreadyDistributed: Project already settled
        NoBudgetConfigured: No positive point budget
        NoTeamMembers: Empty team
    """
    completed: date = to_calendar_date(completion_date)

    # Phase 1: reads
    project = _check_preconditions(project_id, txn.get(PROJECTS, project_id))
    member_ids = project.team_member_ids
    profiles = [txn.get(POINT_PROFILES, member_id) for member_id in member_ids]

    # Phase 2: compute
    penalty = calculate_project_points(project.point_budget, project.end_date, completed)
    per_member = penalty.awarded // len(member_ids)

    # Phase 3: writes
    transaction_ids: List[str] = []
    if per_member > 0:
        description = describe_award(
            project.display_name, penalty.overdue_days, penalty.penalty_percent, language
        )
        for member_id, profile in zip(member_ids, profiles):
            _credit_profile(txn, member_id, profile, per_member)

            tx_id = txn.new_id(POINT_TRANSACTIONS)
            txn.create(POINT_TRANSACTIONS, tx_id, {
                "userId": member_id,
                "amount": per_member,
                "type": TRANSACTION_TYPE_RECEIVED,
                "refId": project_id,
                "projectId": project_id,
                "description": description,
                "createdAt": SERVER_TIMESTAMP,
            })
            transaction_ids.append(tx_id)

    txn.update(PROJECTS, project_id, {
        "pointsDistributed": True,
        "completedAt": completed,
        "updatedAt": SERVER_TIMESTAMP,
    })

    return DistributionResult(
        project_id=project_id,
        total_budget=project.point_budget,
        awarded=penalty.awarded,
        per_member=per_member,
        overdue_days=penalty.overdue_days,
        penalty_percent=penalty.penalty_percent,
        member_count=len(member_ids),
        completion_date=completed,
        transaction_ids=tuple(transaction_ids),
    )


def distribute_project_points(
    store: DocumentStore,
    project_id: str,
    completion_date: Any,
    language: str = DEFAULT_LANGUAGE,
) -> DistributionResult:
    """
    Settle a completed project's point budget across its team, atomically.

    Either every profile credit, every audit entry and the settlement flag
    land together, or nothing does. This function does not retry; wrap it
    in retry_on_conflict() if the caller wants that.

    Example:
        result = distribute_project_points(store, "proj-42", date(2024, 6, 11))
        print(result.per_member, result.penalty_percent)

    Raises:
        NotFound, AlreadyDistributed, NoBudgetConfigured, NoTeamMembers:
            Precondition failures (nothing written)
        TransactionConflict: A read document changed before commit (nothing written)
        StoreUnavailable: The store could not complete the operation
    """
    return store.run_transaction(
        lambda txn: stage_project_distribution(txn, project_id, completion_date, language)
    )


def retry_on_conflict(
    operation: Callable[[], T],
    max_attempts: int = 5,
    retry_on: Tuple[Type[BaseException], ...] = (TransactionConflict,),
) -> T:
    """
    Call operation, re-invoking it when it raises one of retry_on.

    Precondition failures are not retried: after a lost race, the retry
    sees the winner's settlement and raises AlreadyDistributed.

    Raises:
        ValueError: If max_attempts < 1
        The last retry_on exception once attempts are exhausted.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    attempt = 1
    while True:
        try:
            return operation()
        except retry_on:
            if attempt >= max_attempts:
                raise
            attempt += 1
