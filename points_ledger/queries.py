"""
queries.py - Read Side of the Points Ledger

Pure functions over a StoreView. Dashboards use these to render wallet
widgets and histories; auditors use verify_ledger() to check that profile
counters agree with the append-only transaction log.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Any, Dict, List, Optional

from .core import (
    StoreView, Project, PointProfile, PointTransaction,
    PROJECTS, POINT_PROFILES, POINT_TRANSACTIONS,
    TRANSACTION_TYPE_RECEIVED,
    is_positive_integer, transactions_sorted,
)


def get_project(view: StoreView, project_id: str) -> Optional[Project]:
    """Return the project record, or None if it does not exist."""
    document = view.get(PROJECTS, project_id)
    if document is None:
        return None
    return Project.from_document(project_id, document)


def get_point_profile(view: StoreView, user_id: str) -> PointProfile:
    """
    Return an employee's point profile.

    Employees who have never received points get an all-zero profile;
    nothing is written.
    """
    document = view.get(POINT_PROFILES, user_id)
    if document is None:
        return PointProfile(user_id=user_id)
    return PointProfile.from_document(user_id, document)


def list_point_transactions(
    view: StoreView,
    user_id: Optional[str] = None,
    project_id: Optional[str] = None,
) -> List[PointTransaction]:
    """
    Return audit entries, oldest first, optionally filtered by user and/or project.
    """
    entries = []
    for key, document in view.list_documents(POINT_TRANSACTIONS).items():
        if user_id is not None and document.get("userId") != user_id:
            continue
        if project_id is not None and document.get("projectId") != project_id:
            continue
        entries.append(PointTransaction.from_document(key, document))
    return transactions_sorted(entries)


def project_payouts(view: StoreView, project_id: str) -> Dict[str, int]:
    """Points credited to each member by a project's settlement."""
    payouts: Dict[str, int] = defaultdict(int)
    for entry in list_point_transactions(view, project_id=project_id):
        if entry.type == TRANSACTION_TYPE_RECEIVED:
            payouts[entry.user_id] += entry.amount
    return dict(payouts)


def verify_ledger(view: StoreView) -> Dict[str, Any]:
    """
    Reconcile profile counters and project settlements against the audit log.

    Checks:
    1. For every profile, totalEarned equals the sum of its RECEIVED entries.
       Every RECEIVED entry, from any subsystem, must come with a matching
       totalEarned credit.
    2. For every settled project with a budget, the total paid out does not
       exceed the budget and every member received the same amount.
    3. Unsettled projects have no payouts.

    Returns:
        Dict with keys:
        - 'valid': bool - True if no discrepancies were found
        - 'earned': Dict[str, int] - RECEIVED total per user from the log
        - 'discrepancies': List[Dict] - one entry per violation

    Example:
        result = verify_ledger(store)
        assert result['valid'], result['discrepancies']
    """
    earned: Dict[str, int] = defaultdict(int)
    by_project: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    for key, document in view.list_documents(POINT_TRANSACTIONS).items():
        if document.get("type") != TRANSACTION_TYPE_RECEIVED:
            continue
        amount = int(document.get("amount", 0))
        earned[document["userId"]] += amount
        if document.get("projectId"):
            by_project[document["projectId"]][document["userId"]] += amount

    discrepancies: List[Dict[str, Any]] = []

    profiles = view.list_documents(POINT_PROFILES)
    for user_id in sorted(set(profiles) | set(earned)):
        profile = profiles.get(user_id)
        recorded = int(profile.get("totalEarned") or 0) if profile else 0
        logged = earned.get(user_id, 0)
        if recorded != logged:
            discrepancies.append({
                'kind': 'total_earned',
                'user_id': user_id,
                'expected': logged,
                'actual': recorded,
                'difference': recorded - logged,
            })

    projects = view.list_documents(PROJECTS)
    for project_id in sorted(set(projects) | set(by_project)):
        document = projects.get(project_id) or {}
        payouts = by_project.get(project_id, {})
        total_paid = sum(payouts.values())

        if not document.get("pointsDistributed"):
            if payouts:
                discrepancies.append({
                    'kind': 'unsettled_payout',
                    'project_id': project_id,
                    'total_paid': total_paid,
                })
            continue

        budget = document.get("pointBudget")
        if is_positive_integer(budget) and total_paid > budget:
            discrepancies.append({
                'kind': 'over_budget',
                'project_id': project_id,
                'budget': budget,
                'total_paid': total_paid,
            })
        if len(set(payouts.values())) > 1:
            discrepancies.append({
                'kind': 'uneven_split',
                'project_id': project_id,
                'payouts': dict(payouts),
            })

    return {
        'valid': len(discrepancies) == 0,
        'earned': dict(earned),
        'discrepancies': discrepancies,
    }
