"""Pin entity invariants: ids, category sync, timeline, SLA helpers, results."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from ticketgraph.models import (
    Category,
    PriorityCounts,
    Priority,
    RepoResult,
    StatusCounts,
    Ticket,
    TicketStatus,
    User,
    CATEGORY_ID_PATTERN,
    TICKET_ID_PATTERN,
    format_category_id,
    generate_ticket_id,
    parse_category_sequence,
)

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestIdentity:
    def test_ticket_id_format(self):
        for _ in range(50):
            assert TICKET_ID_PATTERN.match(generate_ticket_id())

    def test_ticket_ids_unique(self):
        assert len({generate_ticket_id() for _ in range(500)}) == 500

    @pytest.mark.parametrize("seq,expected", [(1, "CAT001"), (42, "CAT042"), (999, "CAT999")])
    def test_category_id_format(self, seq, expected):
        assert format_category_id(seq) == expected
        assert CATEGORY_ID_PATTERN.match(expected)

    def test_parse_category_sequence(self):
        assert parse_category_sequence("CAT010") == 10
        assert parse_category_sequence("TKT-1") is None
        assert parse_category_sequence(None) is None


class TestCategorySync:
    def test_setting_category_sets_category_id(self):
        t = Ticket(title="x")
        t.category = "CAT002"
        assert t.category_id == "CAT002"

    def test_setting_category_id_sets_category(self):
        t = Ticket(title="x")
        t.category_id = "CAT003"
        assert t.category == "CAT003"

    @pytest.mark.parametrize("key", ["category", "categoryId", "category_id"])
    def test_constructor_accepts_either_name(self, key):
        assert Ticket(title="x", **{key: "CAT004"}).category == "CAT004"


class TestTimeline:
    def test_defaults(self):
        t = Ticket(title="x")
        assert t.status == TicketStatus.OPEN
        assert t.priority == Priority.MEDIUM
        assert t.updated_at >= t.created_at
        assert t.created_at.tzinfo is not None

    def test_updated_before_created_rejected(self):
        with pytest.raises(ValidationError):
            Ticket(title="x", created_at=T0, updated_at=T0 - timedelta(seconds=1))

    def test_resolved_before_created_rejected(self):
        with pytest.raises(ValidationError):
            Ticket(title="x", created_at=T0, resolved_at=T0 - timedelta(days=1))

    def test_naive_datetimes_are_utc(self):
        t = Ticket(title="x", created_at=datetime(2025, 1, 1, 12, 0))
        assert t.created_at == T0

    def test_touch_moves_forward(self):
        t = Ticket(title="x", created_at=T0)
        t.touch()
        assert t.updated_at > T0

    def test_touch_never_precedes_created(self):
        t = Ticket(title="x", created_at=T0)
        t.touch(T0 - timedelta(days=3))
        assert t.updated_at == T0

    def test_none_text_fields(self):
        t = Ticket(title="x", description=None, assigned_to=None)
        assert t.description == ""
        assert t.assigned_to == ""


class TestSla:
    def test_no_due_date(self):
        assert Ticket(title="x").sla_met is None

    def test_resolved_on_time(self):
        t = Ticket(title="x", created_at=T0, due_date=T0 + timedelta(days=1),
                   resolved_at=T0 + timedelta(days=1))
        assert t.sla_met is True

    def test_resolved_late(self):
        t = Ticket(title="x", created_at=T0, due_date=T0 + timedelta(days=1),
                   resolved_at=T0 + timedelta(days=2))
        assert t.sla_met is False

    def test_overdue(self):
        t = Ticket(title="x", created_at=T0, due_date=T0 + timedelta(hours=4))
        assert t.is_overdue(T0 + timedelta(hours=5))
        assert not t.is_overdue(T0 + timedelta(hours=3))

    def test_closed_is_not_overdue(self):
        t = Ticket(title="x", created_at=T0, due_date=T0, status=TicketStatus.CLOSED)
        assert not t.is_overdue(T0 + timedelta(days=1))


class TestOtherEntities:
    def test_category_color_validated(self):
        with pytest.raises(ValidationError):
            Category(name="Bad", color="red")
        assert Category(name="Ok", color="#E74C3C").color == "#e74c3c"

    def test_user_email_validated(self):
        with pytest.raises(ValidationError):
            User(username="x", email="not-an-email")


class TestRepoResult:
    def test_states(self):
        assert RepoResult.success(1).ok
        assert RepoResult.missing().not_found
        assert RepoResult.failure("e").failed

    def test_unwrap_or(self):
        assert RepoResult.success(0).unwrap_or(5) == 0
        assert RepoResult.missing().unwrap_or(5) == 5
        assert RepoResult.failure("e").unwrap_or(5) == 5


class TestCounts:
    def test_status_counts_cover_all(self):
        counts = StatusCounts.from_mapping({TicketStatus.OPEN: 2})
        assert counts.as_dict() == {
            TicketStatus.OPEN: 2, TicketStatus.IN_PROGRESS: 0,
            TicketStatus.RESOLVED: 0, TicketStatus.CLOSED: 0,
        }
        assert counts.total == 2

    def test_priority_counts_accept_string_keys(self):
        counts = PriorityCounts.from_mapping({"HIGH": 3})
        assert counts.high == 3
        assert counts.total == 3

    def test_priority_rank(self):
        assert Priority.LOW.rank < Priority.MEDIUM.rank < Priority.HIGH.rank < Priority.CRITICAL.rank
