"""
penalty.py - Overdue Penalty for Project Rewards

Pure functions mapping (budget, deadline, completion date) to the number of
points a completed project actually awards.

Rules:
    - On time (completion <= deadline): full budget, 0% penalty
    - Overdue: 1 percentage point forfeited per overdue calendar day
    - FORFEITURE_DAYS (100) or more days overdue: nothing awarded, 100% penalty

Only calendar days count. Time of day and timezone offsets are dropped
before the difference is taken.
"""

from __future__ import annotations
from datetime import date
from decimal import Decimal, ROUND_FLOOR
from typing import Any

from .core import (
    PenaltyResult, to_calendar_date,
    PENALTY_PERCENT_PER_DAY, FORFEITURE_DAYS,
)


def overdue_days(deadline: Any, completion_date: Any) -> int:
    """
    Whole calendar days by which completion_date is past deadline (never negative).

    Example:
        overdue_days(date(2024, 6, 1), date(2024, 6, 11))  # 10
        overdue_days(date(2024, 6, 1), date(2024, 5, 20))  # 0
    """
    end: date = to_calendar_date(deadline)
    completed: date = to_calendar_date(completion_date)
    return max(0, (completed - end).days)


def calculate_project_points(budget: int, deadline: Any, completion_date: Any) -> PenaltyResult:
    """
    Compute the points a project awards after the overdue penalty.

    Args:
        budget: Configured point budget (non-negative integer)
        deadline: Committed end date (date, datetime or ISO string)
        completion_date: Actual completion date (date, datetime or ISO string)

    Returns:
        PenaltyResult with awarded points, overdue day count and penalty percent.
        awarded is floor(budget * (1 - overdue_days/100)), clamped at 0.
        The floor is taken in exact Decimal arithmetic: 100 points at 7 days
        late award 93, where binary floats (1 - 7*0.01) would give 92.

    Example:
        calculate_project_points(300, "2024-06-01", "2024-06-11")
        # PenaltyResult(awarded=270, overdue_days=10, penalty_percent=10)
    """
    days = overdue_days(deadline, completion_date)

    if days == 0:
        return PenaltyResult(awarded=max(0, int(budget)), overdue_days=0, penalty_percent=0)

    if days >= FORFEITURE_DAYS:
        return PenaltyResult(awarded=0, overdue_days=days, penalty_percent=100)

    penalty_percent = days * PENALTY_PERCENT_PER_DAY
    remaining = (Decimal(100) - Decimal(penalty_percent)) / Decimal(100)
    awarded = int((Decimal(int(budget)) * remaining).to_integral_value(rounding=ROUND_FLOOR))

    return PenaltyResult(awarded=max(0, awarded), overdue_days=days, penalty_percent=penalty_percent)
