"""Pydantic schemas for tickets, users, categories and knowledge-base articles.

Entities returned by the repositories are plain value copies: they hold no
reference back to the graph and can be mutated freely by callers.
"""

import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


class TicketStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    AGENT = "AGENT"
    CUSTOMER = "CUSTOMER"


# =============================================================================
# IDENTITY
# =============================================================================

_ID_ALPHABET = string.ascii_uppercase + string.digits

TICKET_ID_PATTERN = re.compile(r"^TKT-[A-Z0-9]{8}$")
CATEGORY_ID_PATTERN = re.compile(r"^CAT(\d{3,})$")


def _random_suffix(length: int = 8) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def generate_ticket_id() -> str:
    """New ticket id: TKT- followed by 8 uppercase alphanumerics."""
    return f"TKT-{_random_suffix()}"


def generate_user_id() -> str:
    return f"USR-{_random_suffix()}"


def generate_article_id() -> str:
    return f"KB-{_random_suffix()}"


def format_category_id(sequence: int) -> str:
    """Category id for a sequence number: 7 -> CAT007."""
    return f"CAT{sequence:03d}"


def parse_category_sequence(category_id: str) -> Optional[int]:
    """Sequence number of a CATnnn id, or None if it is not in that format."""
    m = CATEGORY_ID_PATTERN.match(category_id or "")
    return int(m.group(1)) if m else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive datetimes are treated as UTC so comparisons never mix kinds
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENTITIES
# =============================================================================

class Ticket(BaseModel):
    """A support ticket.

    ``category_id`` is the single canonical category reference. ``category``
    is an alias for it; the store receives both property names.
    """
    id: Optional[str] = None
    title: str = ""
    description: str = ""
    status: TicketStatus = TicketStatus.OPEN
    priority: Priority = Priority.MEDIUM
    category_id: str = Field(
        default="",
        validation_alias=AliasChoices("category_id", "categoryId", "category"),
    )
    assigned_to: str = ""
    created_by: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @field_validator("description", "assigned_to", "created_by", "category_id", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("created_at", "updated_at", "due_date", "resolved_at")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @model_validator(mode="after")
    def _check_timeline(self) -> "Ticket":
        if self.updated_at is None:
            self.updated_at = self.created_at
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not precede created_at")
        if self.resolved_at is not None and self.resolved_at < self.created_at:
            raise ValueError("resolved_at must not precede created_at")
        return self

    @property
    def category(self) -> str:
        return self.category_id

    @category.setter
    def category(self, value: str) -> None:
        self.category_id = value or ""

    def touch(self, now: Optional[datetime] = None) -> None:
        """Refresh updated_at, never moving it before created_at."""
        now = _as_utc(now) or utcnow()
        self.updated_at = max(now, self.created_at)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """True if the ticket has a due date, is unresolved and the date has passed."""
        if self.due_date is None or self.resolved_at is not None:
            return False
        if self.status in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
            return False
        return (_as_utc(now) or utcnow()) > self.due_date

    @property
    def sla_met(self) -> Optional[bool]:
        """None when no due date is set; otherwise resolved at or before it."""
        if self.due_date is None:
            return None
        return self.resolved_at is not None and self.resolved_at <= self.due_date


class User(BaseModel):
    """A system user. ``password_hash`` never leaves the process via to_public_dict."""
    id: Optional[str] = None
    username: str
    email: str
    password_hash: str = Field(default="", repr=False)
    full_name: str = ""
    role: UserRole = UserRole.CUSTOMER
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("email")
    @classmethod
    def _email_shape(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v:
            raise ValueError(f"Invalid email address: {v!r}")
        return v.lower()

    def to_public_dict(self) -> dict:
        return self.model_dump(exclude={"password_hash"})


HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class Category(BaseModel):
    """A ticket category. ``ticket_count`` is a cached snapshot for display."""
    id: Optional[str] = None
    name: str
    description: str = ""
    color: str = "#95a5a6"
    ticket_count: int = 0

    @field_validator("color")
    @classmethod
    def _hex_color(cls, v: str) -> str:
        if not HEX_COLOR.match(v):
            raise ValueError(f"Color must be #RRGGBB, got {v!r}")
        return v.lower()


class Article(BaseModel):
    """A knowledge-base article."""
    id: Optional[str] = None
    title: str
    content: str = ""
    category_id: str = ""
    tags: list[str] = Field(default_factory=list)
    views: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @model_validator(mode="after")
    def _default_updated(self) -> "Article":
        if self.updated_at is None or self.updated_at < self.created_at:
            self.updated_at = self.created_at
        return self


# =============================================================================
# REPOSITORY RESULTS
# =============================================================================

T = TypeVar("T")


class ResultStatus(str, Enum):
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


@dataclass
class RepoResult(Generic[T]):
    """Outcome of a repository call: success, not-found or store failure."""
    status: ResultStatus
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "RepoResult[T]":
        return cls(ResultStatus.OK, value=value)

    @classmethod
    def missing(cls) -> "RepoResult[T]":
        return cls(ResultStatus.NOT_FOUND)

    @classmethod
    def failure(cls, error: str) -> "RepoResult[T]":
        return cls(ResultStatus.ERROR, error=error)

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.OK

    @property
    def not_found(self) -> bool:
        return self.status == ResultStatus.NOT_FOUND

    @property
    def failed(self) -> bool:
        return self.status == ResultStatus.ERROR

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default


# =============================================================================
# AGGREGATES
# =============================================================================

class StatusCounts(BaseModel):
    """Live ticket count for every status."""
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0

    @classmethod
    def from_mapping(cls, counts: dict) -> "StatusCounts":
        return cls(**{s.value.lower(): int(counts.get(s, 0)) for s in TicketStatus})

    def as_dict(self) -> dict[TicketStatus, int]:
        return {s: getattr(self, s.value.lower()) for s in TicketStatus}

    @property
    def total(self) -> int:
        return sum(self.as_dict().values())


class PriorityCounts(BaseModel):
    """Live ticket count for every priority."""
    low: int = 0
    medium: int = 0
    high: int = 0
    critical: int = 0

    @classmethod
    def from_mapping(cls, counts: dict) -> "PriorityCounts":
        return cls(**{p.value.lower(): int(counts.get(p, 0)) for p in Priority})

    def as_dict(self) -> dict[Priority, int]:
        return {p: getattr(self, p.value.lower()) for p in Priority}

    @property
    def total(self) -> int:
        return sum(self.as_dict().values())


class DashboardMetrics(BaseModel):
    total_tickets: int = 0
    open_tickets: int = 0
    in_progress_tickets: int = 0
    resolved_tickets: int = 0
    closed_tickets: int = 0
    sla_tracked_tickets: int = 0
    sla_met_tickets: int = 0
    sla_compliance_rate: float = 0.0  # percent, 0.0 when nothing is tracked


class SearchStatistics(BaseModel):
    total_tickets: int = 0
    total_kb_articles: int = 0
    total_users: int = 0


class SearchResults(BaseModel):
    keyword: str = ""
    tickets: list[Ticket] = Field(default_factory=list)
    articles: list[Article] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.tickets) + len(self.articles) + len(self.users)
