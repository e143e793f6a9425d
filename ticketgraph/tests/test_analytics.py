"""AnalyticsService tests against mocked repositories."""

from unittest.mock import MagicMock

import pytest

from ticketgraph.logic.analytics import AnalyticsService, percentage
from ticketgraph.models import Category, Priority, RepoResult, TicketStatus


STATUS_COUNTS = {
    TicketStatus.OPEN: 5,
    TicketStatus.IN_PROGRESS: 2,
    TicketStatus.RESOLVED: 2,
    TicketStatus.CLOSED: 1,
}


@pytest.fixture
def tickets():
    repo = MagicMock()
    repo.count.return_value = RepoResult.success(10)
    repo.count_by_status.side_effect = lambda s: RepoResult.success(STATUS_COUNTS[TicketStatus(s)])
    repo.count_by_priority.side_effect = lambda p: RepoResult.success(
        {Priority.HIGH: 4, Priority.MEDIUM: 6}.get(Priority(p), 0))
    repo.sla_counts.return_value = RepoResult.success((3, 2))
    return repo


@pytest.fixture
def service(tickets):
    categories = MagicMock()
    categories.find_all_with_live_counts.return_value = RepoResult.success([
        Category(id="CAT001", name="Technical", ticket_count=7),
        Category(id="CAT002", name="Payment", ticket_count=0),
    ])
    return AnalyticsService(tickets, categories)


class TestPercentage:
    def test_rounds_to_one_decimal(self):
        assert percentage(2, 3) == 66.7

    def test_zero_denominator_is_zero(self):
        assert percentage(0, 0) == 0.0


class TestDashboardMetrics:
    def test_counts(self, service):
        m = service.get_dashboard_metrics()
        assert m.total_tickets == 10
        assert m.open_tickets == 5
        assert m.resolved_tickets == 2
        assert m.in_progress_tickets == 2
        assert m.closed_tickets == 1

    def test_sla_rate(self, service):
        m = service.get_dashboard_metrics()
        assert m.sla_tracked_tickets == 3
        assert m.sla_met_tickets == 2
        assert m.sla_compliance_rate == 66.7

    def test_no_due_dates_gives_sentinel(self, service, tickets):
        tickets.sla_counts.return_value = RepoResult.success((0, 0))
        assert service.get_dashboard_metrics().sla_compliance_rate == 0.0

    def test_sla_failure_degrades_to_sentinel(self, service, tickets):
        tickets.sla_counts.return_value = RepoResult.failure("boom")
        assert service.get_dashboard_metrics().sla_compliance_rate == 0.0

    def test_count_consistency(self, service):
        m = service.get_dashboard_metrics()
        statuses = service.get_tickets_by_status()
        assert m.total_tickets == statuses.total


class TestBreakdowns:
    def test_every_status_present(self, service, tickets):
        tickets.count_by_status.side_effect = lambda s: RepoResult.success(
            3 if TicketStatus(s) == TicketStatus.OPEN else 0)
        counts = service.get_tickets_by_status().as_dict()
        assert set(counts) == set(TicketStatus)
        assert counts[TicketStatus.CLOSED] == 0
        assert counts[TicketStatus.OPEN] == 3

    def test_every_priority_present(self, service):
        counts = service.get_tickets_by_priority().as_dict()
        assert set(counts) == set(Priority)
        assert counts[Priority.CRITICAL] == 0
        assert counts[Priority.HIGH] == 4

    def test_failed_count_is_zero(self, service, tickets):
        tickets.count_by_status.side_effect = lambda s: RepoResult.failure("x")
        assert service.get_tickets_by_status().total == 0

    def test_by_category(self, service):
        assert service.get_tickets_by_category() == {"Technical": 7, "Payment": 0}

    def test_by_category_without_repository(self, tickets):
        assert AnalyticsService(tickets).get_tickets_by_category() == {}

    def test_resolution_rate(self, service):
        assert service.get_resolution_rate() == 30.0
