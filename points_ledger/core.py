"""
Core types and pure functions for the points ledger.

This module provides the foundational data structures and protocols:
1. Protocols: StoreView for read-only store access
2. Immutable records: Project, PointProfile, PointTransaction, PenaltyResult, DistributionResult
3. Exceptions: LedgerError and the distribution/store error families
4. Constants: collection names, transaction types, penalty parameters
5. Helpers: calendar date coercion, operator-facing error messages

Records convert to and from the persisted document shape (camelCase keys)
with to_document() / from_document(). Nothing in this module touches the store.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_EVEN, getcontext
from numbers import Integral
from typing import (
    Dict, List, Optional, Any, Protocol, Tuple, runtime_checkable,
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Penalty arithmetic is done in Decimal so that floor() is exact.
# Floor rounding is requested explicitly at the call site; the context
# default stays banker's rounding.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Collection names in the document store.
PROJECTS = "projects"
POINT_PROFILES = "point_profiles"
POINT_TRANSACTIONS = "point_transactions"

# Documents in these collections are written once and never changed.
APPEND_ONLY_COLLECTIONS = frozenset({POINT_TRANSACTIONS})

# Point transaction types. This core only writes RECEIVED; the others are
# written by the recognition and redemption subsystems.
TRANSACTION_TYPE_RECEIVED = "RECEIVED"
TRANSACTION_TYPE_GIVEN = "GIVEN"
TRANSACTION_TYPE_REDEEMED = "REDEEMED"
TRANSACTION_TYPE_ADJUSTMENT = "ADJUSTMENT"
TRANSACTION_TYPE_PENALTY = "PENALTY"

TRANSACTION_TYPES = frozenset({
    TRANSACTION_TYPE_RECEIVED,
    TRANSACTION_TYPE_GIVEN,
    TRANSACTION_TYPE_REDEEMED,
    TRANSACTION_TYPE_ADJUSTMENT,
    TRANSACTION_TYPE_PENALTY,
})

# Linear decay: one percentage point per overdue day, total forfeiture at 100.
PENALTY_PERCENT_PER_DAY = 1
FORFEITURE_DAYS = 100

# Profile field ownership. The distribution path writes EARNED_FIELDS only;
# GIVING_FIELDS belong to the peer-recognition and allowance subsystems.
EARNED_FIELDS = ("balance", "totalEarned")
GIVING_FIELDS = ("monthlyAllowance", "totalGiven", "lastAllowanceResetMonth")

DEFAULT_LANGUAGE = "en"
SUPPORTED_LANGUAGES = ("en", "mn")


class _ServerTimestamp:
    """Sentinel replaced by the store's commit time when a write lands."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    def __deepcopy__(self, memo):
        return self


SERVER_TIMESTAMP = _ServerTimestamp()


# ============================================================================
# TYPE ALIASES
# ============================================================================

# A stored document: field name -> value.
Document = Dict[str, Any]

# Address of a document in the store.
DocumentKey = Tuple[str, str]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class StoreView(Protocol):
    """
    Read-only interface to the document store.

    Query functions accept a StoreView to declare read-only intent.
    DocumentStore implements this protocol; tests use FakeView.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the store."""
        ...

    def get(self, collection: str, key: str) -> Optional[Document]:
        """Return a copy of a document, or None if it does not exist."""
        ...

    def list_documents(self, collection: str) -> Dict[str, Document]:
        """Return copies of every document in a collection, keyed by id."""
        ...


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all points ledger errors."""
    code = "LEDGER_ERROR"


class DistributionError(LedgerError):
    """A project failed a distribution precondition. Nothing was written."""
    code = "DISTRIBUTION_ERROR"


class NotFound(DistributionError):
    """Raised when the referenced project does not exist."""
    code = "NOT_FOUND"


class AlreadyDistributed(DistributionError):
    """Raised when the project has already been settled."""
    code = "ALREADY_DISTRIBUTED"


class NoBudgetConfigured(DistributionError):
    """Raised when the project has no positive point budget."""
    code = "NO_BUDGET_CONFIGURED"


class NoTeamMembers(DistributionError):
    """Raised when the project has an empty team."""
    code = "NO_TEAM_MEMBERS"


class StoreError(LedgerError):
    """Base exception for document store failures."""
    code = "STORE_ERROR"


class TransactionConflict(StoreError):
    """Raised at commit when a document in the read set changed concurrently."""
    code = "TRANSACTION_CONFLICT"


class StoreUnavailable(StoreError):
    """Raised when the store cannot complete the operation."""
    code = "STORE_UNAVAILABLE"


class TransactionError(StoreError):
    """Raised when the transaction API is misused (read after write, double commit, ...)."""
    code = "TRANSACTION_ERROR"


_OPERATOR_MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        NotFound.code: "Project not found.",
        AlreadyDistributed.code: "Points for this project have already been distributed.",
        NoBudgetConfigured.code: "No point budget is set for this project.",
        NoTeamMembers.code: "No team members are assigned to this project.",
        TransactionConflict.code: "The data changed while saving. Please try again.",
        StoreUnavailable.code: "The database is unavailable. Please try again later.",
    },
    "mn": {
        NotFound.code: "Төсөл олдсонгүй",
        AlreadyDistributed.code: "Энэ төслийн оноо аль хэдийн хуваарилагдсан байна",
        NoBudgetConfigured.code: "Энэ төсөлд оноо тохируулаагүй байна",
        NoTeamMembers.code: "Төслийн багийн гишүүд олдсонгүй",
        TransactionConflict.code: "Өгөгдөл өөрчлөгдсөн байна. Дахин оролдоно уу",
        StoreUnavailable.code: "Өгөгдлийн сан түр ажиллахгүй байна. Дараа дахин оролдоно уу",
    },
}


def operator_message(error: BaseException, language: str = DEFAULT_LANGUAGE) -> str:
    """
    Return the message shown to the HR operator for an error.

    Known error kinds map to a fixed, actionable sentence in the requested
    language. Anything else falls back to str(error).
    """
    code = getattr(error, "code", None)
    messages = _OPERATOR_MESSAGES.get(language, _OPERATOR_MESSAGES[DEFAULT_LANGUAGE])
    if code in messages:
        return messages[code]
    return str(error)


# ============================================================================
# DATE HELPERS
# ============================================================================

def to_calendar_date(value: Any) -> date:
    """
    Reduce a date-like value to a calendar date.

    Accepts date, datetime (time of day and offset are dropped) and ISO-8601
    strings ("2024-06-01" or a full timestamp).

    Raises:
        TypeError: If value is not date-like
        ValueError: If a string is not valid ISO-8601
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()
    raise TypeError(f"Expected a date, datetime or ISO string, got {type(value).__name__}")


def month_token(value: Any) -> str:
    """Return the "YYYY-MM" token for a date-like value."""
    d = to_calendar_date(value)
    return f"{d.year:04d}-{d.month:02d}"


def is_positive_integer(value: Any) -> bool:
    """True for integers > 0. Booleans are not integers here."""
    return isinstance(value, Integral) and not isinstance(value, bool) and value > 0


def _int_field(document: Document, name: str) -> int:
    value = document.get(name)
    return int(value) if value else 0


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Project:
    """
    The subset of a project that the reward engine reads and settles.

    Attributes:
        id: Opaque project identifier.
        end_date: Committed deadline (calendar date).
        team_member_ids: Ordered set of employee ids. Duplicates collapse on construction.
        point_budget: Total points earmarked; None means no reward configured.
        points_distributed: Terminal settlement flag.
        completed_at: Completion date recorded at settlement.
        name: Display name, used in audit descriptions.
    """
    id: str
    end_date: date
    team_member_ids: Tuple[str, ...] = ()
    point_budget: Optional[int] = None
    points_distributed: bool = False
    completed_at: Optional[date] = None
    name: Optional[str] = None

    def __post_init__(self):
        if not self.id or not str(self.id).strip():
            raise ValueError("Project id cannot be empty")
        object.__setattr__(self, 'end_date', to_calendar_date(self.end_date))
        if self.completed_at is not None:
            object.__setattr__(self, 'completed_at', to_calendar_date(self.completed_at))
        object.__setattr__(self, 'team_member_ids', unique_members(self.team_member_ids))

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def to_document(self) -> Document:
        doc: Document = {
            "id": self.id,
            "endDate": self.end_date,
            "teamMemberIds": list(self.team_member_ids),
            "pointsDistributed": self.points_distributed,
        }
        if self.point_budget is not None:
            doc["pointBudget"] = self.point_budget
        if self.completed_at is not None:
            doc["completedAt"] = self.completed_at
        if self.name is not None:
            doc["name"] = self.name
        return doc

    @classmethod
    def from_document(cls, key: str, document: Document) -> Project:
        completed = document.get("completedAt")
        end_date = document.get("endDate")
        if end_date is None:
            raise ValueError(f"Project {key} has no endDate")
        return cls(
            id=document.get("id") or key,
            end_date=end_date,
            team_member_ids=tuple(document.get("teamMemberIds") or ()),
            point_budget=document.get("pointBudget"),
            points_distributed=bool(document.get("pointsDistributed", False)),
            completed_at=completed if completed else None,
            name=document.get("name"),
        )


def unique_members(member_ids: Any) -> Tuple[str, ...]:
    """Collapse duplicate member ids, keeping first-occurrence order."""
    if not member_ids:
        return ()
    return tuple(dict.fromkeys(member_ids))


@dataclass(frozen=True, slots=True)
class PointProfile:
    """
    Per-employee point wallet.

    balance and total_earned are written by the distribution path (credit only).
    monthly_allowance, total_given and last_allowance_reset_month are owned by
    the recognition and allowance subsystems.
    """
    user_id: str
    balance: int = 0
    monthly_allowance: int = 0
    total_earned: int = 0
    total_given: int = 0
    last_allowance_reset_month: Optional[str] = None

    def __post_init__(self):
        if not self.user_id or not str(self.user_id).strip():
            raise ValueError("PointProfile user_id cannot be empty")
        for name in ("balance", "monthly_allowance", "total_earned", "total_given"):
            if getattr(self, name) < 0:
                raise ValueError(f"PointProfile {name} cannot be negative, got {getattr(self, name)}")

    def to_document(self) -> Document:
        doc: Document = {
            "userId": self.user_id,
            "balance": self.balance,
            "monthlyAllowance": self.monthly_allowance,
            "totalEarned": self.total_earned,
            "totalGiven": self.total_given,
        }
        if self.last_allowance_reset_month is not None:
            doc["lastAllowanceResetMonth"] = self.last_allowance_reset_month
        return doc

    @classmethod
    def from_document(cls, key: str, document: Document) -> PointProfile:
        return cls(
            user_id=document.get("userId") or key,
            balance=_int_field(document, "balance"),
            monthly_allowance=_int_field(document, "monthlyAllowance"),
            total_earned=_int_field(document, "totalEarned"),
            total_given=_int_field(document, "totalGiven"),
            last_allowance_reset_month=document.get("lastAllowanceResetMonth"),
        )


@dataclass(frozen=True, slots=True)
class PointTransaction:
    """
    Append-only audit entry for one balance change.

    Attributes:
        id: Store-generated document id.
        user_id: Employee whose balance changed.
        amount: Signed point amount (positive for RECEIVED).
        type: One of TRANSACTION_TYPES.
        ref_id: Triggering record (project id for project awards).
        project_id: Project id for project distributions, else None.
        description: Human-readable, localized explanation.
        created_at: Commit time of the write.
    """
    id: str
    user_id: str
    amount: int
    type: str
    ref_id: str
    project_id: Optional[str] = None
    description: str = ""
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.type not in TRANSACTION_TYPES:
            raise ValueError(f"Unknown point transaction type: {self.type}")
        if not self.user_id:
            raise ValueError("PointTransaction user_id cannot be empty")

    @classmethod
    def from_document(cls, key: str, document: Document) -> PointTransaction:
        return cls(
            id=key,
            user_id=document["userId"],
            amount=int(document["amount"]),
            type=document["type"],
            ref_id=document.get("refId", ""),
            project_id=document.get("projectId"),
            description=document.get("description", ""),
            created_at=document.get("createdAt"),
        )


@dataclass(frozen=True, slots=True)
class PenaltyResult:
    """Output of the penalty calculator."""
    awarded: int
    overdue_days: int
    penalty_percent: int


@dataclass(frozen=True, slots=True)
class DistributionResult:
    """
    Outcome of a project settlement, enough for the caller to explain the
    numbers without re-deriving them.
    """
    project_id: str
    total_budget: int
    awarded: int
    per_member: int
    overdue_days: int
    penalty_percent: int
    member_count: int
    completion_date: date
    transaction_ids: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def breakage(self) -> int:
        """Points lost to integer division. Never paid to anyone."""
        return self.awarded - self.per_member * self.member_count

    @property
    def total_paid(self) -> int:
        return self.per_member * self.member_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "projectId": self.project_id,
            "totalBudget": self.total_budget,
            "actualPoints": self.awarded,
            "pointsPerMember": self.per_member,
            "overdueDays": self.overdue_days,
            "penaltyPercent": self.penalty_percent,
            "memberCount": self.member_count,
            "breakage": self.breakage,
        }


def transactions_sorted(transactions: List[PointTransaction]) -> List[PointTransaction]:
    """Order transactions by (created_at, id); entries without a time sort first."""
    return sorted(
        transactions,
        key=lambda t: (t.created_at is not None, t.created_at or datetime.min, t.id),
    )
