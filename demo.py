#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Project Rewards Step by Step

Walks through the points ledger: registering a project, settling it on
time and late, what happens to the remainder of an uneven split, why a
project cannot be paid twice, and how two racing settlements resolve.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation   - The store, a project, an on-time settlement
  4-6:  Penalties    - Late completion, forfeiture, breakage
  7-9:  Safety       - Idempotency, preconditions, concurrent settlements
  10:   Audit        - History, time travel and reconciliation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Tuple
import sys

from points_ledger import (
    # Store
    DocumentStore,
    # Records
    Project,
    # Operations
    register_project, distribute_project_points, stage_project_distribution,
    retry_on_conflict, calculate_project_points,
    # Read side
    get_point_profile, list_point_transactions, verify_ledger,
    # Errors
    LedgerError, TransactionConflict, operator_message,
    POINT_PROFILES,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2024, 6, 1, 9, 0, 0)
    deadline: date = date(2024, 6, 1)
    team: Tuple[str, ...] = field(default_factory=lambda: ("alice", "bob", "carol"))
    budget: int = 300
    language: str = "en"


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show_profiles(store: DocumentStore, members):
    for member in members:
        profile = get_point_profile(store, member)
        print(f"  {member:8s} balance={profile.balance:5d}  totalEarned={profile.total_earned:5d}")


def new_project(store: DocumentStore, project_id: str, name: str,
                budget=None, team=None) -> Project:
    return register_project(store, Project(
        id=project_id,
        name=name,
        end_date=CONFIG.deadline,
        team_member_ids=tuple(team or CONFIG.team),
        point_budget=CONFIG.budget if budget is None else budget,
    ))


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_empty_store():
    step_header(1, "The Empty Store",
        "See the transactional store the ledger lives in.")

    print("""
    Everything is kept in three collections:

      projects           - what was promised, and whether it was paid
      point_profiles     - one wallet per employee
      point_transactions - append-only audit entries

    Writes happen only inside transactions. A transaction reads first,
    then writes, and commits only if nothing it read has changed.
    """)

    store = DocumentStore("tutorial", initial_time=CONFIG.start_time, verbose=True, test_mode=True)
    section_header("Initial State")
    print(f"Store name:   {store.name}")
    print(f"Current time: {store.current_time}")
    print(f"Commit log:   {len(store.commit_log)} entries")
    return store


def step_02_register_project(store: DocumentStore):
    step_header(2, "Registering a Project",
        "Create a project with a deadline, a team and a point budget.")

    print(">>> register_project(store, Project(id='proj-1', ..., point_budget=300))")
    new_project(store, "proj-1", "Payroll migration")
    return store


def step_03_on_time(store: DocumentStore):
    step_header(3, "On-Time Settlement",
        "Finishing by the deadline pays the whole budget, split evenly.")

    result = distribute_project_points(store, "proj-1", CONFIG.deadline, CONFIG.language)
    section_header("Result")
    print(result.to_dict())
    section_header("Profiles")
    show_profiles(store, CONFIG.team)
    return store


# ============================================================================
# PHASE 2: PENALTIES
# ============================================================================

def step_04_late(store: DocumentStore):
    step_header(4, "Late Completion",
        "Each overdue calendar day forfeits one percent of the budget.")

    new_project(store, "proj-2", "Benefits portal")
    store.advance_time(CONFIG.start_time + timedelta(days=10))
    result = distribute_project_points(store, "proj-2", CONFIG.deadline + timedelta(days=10))
    print(f"\n10 days late: {result.penalty_percent}% penalty, "
          f"{result.awarded} awarded, {result.per_member} each")
    return store


def step_05_forfeiture(store: DocumentStore):
    step_header(5, "Forfeiture",
        "100 or more days late pays nothing, but the project is still settled.")

    for days in (50, 99, 100, 106):
        penalty = calculate_project_points(CONFIG.budget, CONFIG.deadline,
                                           CONFIG.deadline + timedelta(days=days))
        print(f"  {days:3d} days late -> {penalty.awarded:3d} points ({penalty.penalty_percent}%)")

    new_project(store, "proj-3", "Legacy cleanup", team=("alice", "bob"))
    result = distribute_project_points(store, "proj-3", date(2024, 9, 15))
    print(f"\nproj-3 settled with {result.awarded} points; no profile was written")
    return store


def step_06_breakage(store: DocumentStore):
    step_header(6, "Breakage",
        "Integer division leaves a remainder that is paid to no one.")

    new_project(store, "proj-4", "Onboarding kit", budget=100)
    result = distribute_project_points(store, "proj-4", CONFIG.deadline)
    print(f"\n100 points / 3 members = {result.per_member} each, "
          f"{result.total_paid} paid, {result.breakage} point of breakage")
    return store


# ============================================================================
# PHASE 3: SAFETY
# ============================================================================

def step_07_idempotency(store: DocumentStore):
    step_header(7, "Paid Exactly Once",
        "A second settlement of the same project is refused.")

    try:
        distribute_project_points(store, "proj-1", CONFIG.deadline)
    except LedgerError as e:
        print(f"\nOperator sees: {operator_message(e)}")
        print(f"In Mongolian:  {operator_message(e, 'mn')}")
    return store


def step_08_preconditions(store: DocumentStore):
    step_header(8, "Preconditions",
        "Missing projects, budgets and teams fail before anything is written.")

    store.put("projects", "proj-5", {"endDate": CONFIG.deadline, "teamMemberIds": list(CONFIG.team)})
    store.put("projects", "proj-6", {"endDate": CONFIG.deadline, "pointBudget": 50, "teamMemberIds": []})
    for project_id in ("ghost", "proj-5", "proj-6"):
        try:
            distribute_project_points(store, project_id, CONFIG.deadline)
        except LedgerError as e:
            print(f"  {project_id:7s} -> {type(e).__name__}: {operator_message(e)}")
    return store


def step_09_race(store: DocumentStore):
    step_header(9, "Racing Settlements",
        "Two operators settle the same project at once; one wins.")

    new_project(store, "proj-7", "Security audit")
    first = store.begin()
    second = store.begin()
    stage_project_distribution(first, "proj-7", CONFIG.deadline)
    stage_project_distribution(second, "proj-7", CONFIG.deadline)

    store.commit(first)
    try:
        store.commit(second)
    except TransactionConflict as e:
        print(f"\nSecond commit rejected: {e}")

    try:
        retry_on_conflict(lambda: distribute_project_points(store, "proj-7", CONFIG.deadline))
    except LedgerError as e:
        print(f"Retry after the race: {type(e).__name__}")
    return store


# ============================================================================
# PHASE 4: AUDIT
# ============================================================================

def step_10_audit(store: DocumentStore):
    step_header(10, "Audit Trail",
        "Every credit has an audit entry, and the past can be reconstructed.")

    section_header("alice's history")
    for entry in list_point_transactions(store, user_id="alice"):
        print(f"  {entry.created_at}  +{entry.amount:4d}  {entry.description}")

    section_header("Before the late settlement")
    past = store.clone_at(CONFIG.start_time)
    print(f"  alice balance then: {get_point_profile(past, 'alice').balance}")
    print(f"  alice balance now:  {get_point_profile(store, 'alice').balance}")

    section_header("Reconciliation")
    result = verify_ledger(store)
    print(f"  valid: {result['valid']}")
    print(f"  earned: {result['earned']}")
    print(f"  profiles: {sorted(store.list_documents(POINT_PROFILES))}")
    return store


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       POINTS LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    steps = [
        step_02_register_project, step_03_on_time,
        step_04_late, step_05_forfeiture, step_06_breakage,
        step_07_idempotency, step_08_preconditions, step_09_race,
        step_10_audit,
    ]
    store = step_01_empty_store()
    wait_for_enter()
    for step in steps:
        store = step(store)
        wait_for_enter()

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:
      - Settlements are atomic: all credits and the flag, or nothing
      - The penalty is one percent per overdue day, floored, with forfeiture at 100
      - Breakage is reported, never paid
      - pointsDistributed makes settlement happen at most once

    Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
