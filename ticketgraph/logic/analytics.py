"""Dashboard analytics composed from repository count queries.

Counting happens in the store; this module only combines the numbers. A
failed count (already logged by the repository) contributes zero.
"""

import logging
from typing import Optional

from ..models import DashboardMetrics, Priority, PriorityCounts, StatusCounts, TicketStatus
from ..repositories import CategoryRepository, TicketRepository

logger = logging.getLogger(__name__)

RATE_PRECISION = 1


def percentage(part: int, whole: int) -> float:
    """part / whole as a percentage rounded to RATE_PRECISION; 0.0 when whole is 0."""
    if whole <= 0:
        return 0.0
    return round(part * 100.0 / whole, RATE_PRECISION)


class AnalyticsService:
    def __init__(self, tickets: TicketRepository, categories: Optional[CategoryRepository] = None):
        self.tickets = tickets
        self.categories = categories

    def get_dashboard_metrics(self) -> DashboardMetrics:
        """Totals per headline status plus SLA compliance.

        SLA compliance is the share of tickets with a due date that were
        resolved at or before it. With no due dates at all the rate is 0.0.
        """
        by_status = self.get_tickets_by_status()
        tracked, met = self.tickets.sla_counts().unwrap_or((0, 0))

        metrics = DashboardMetrics(
            total_tickets=self.tickets.count().unwrap_or(0),
            open_tickets=by_status.open,
            in_progress_tickets=by_status.in_progress,
            resolved_tickets=by_status.resolved,
            closed_tickets=by_status.closed,
            sla_tracked_tickets=tracked,
            sla_met_tickets=met,
            sla_compliance_rate=percentage(met, tracked),
        )
        logger.debug(f"Dashboard metrics: {metrics.model_dump()}")
        return metrics

    def get_tickets_by_status(self) -> StatusCounts:
        """Live count for every status, zeros included."""
        return StatusCounts.from_mapping({
            status: self.tickets.count_by_status(status).unwrap_or(0)
            for status in TicketStatus
        })

    def get_tickets_by_priority(self) -> PriorityCounts:
        return PriorityCounts.from_mapping({
            priority: self.tickets.count_by_priority(priority).unwrap_or(0)
            for priority in Priority
        })

    def get_tickets_by_category(self) -> dict[str, int]:
        """Category name -> live ticket count, in category id order."""
        if self.categories is None:
            return {}
        categories = self.categories.find_all_with_live_counts().unwrap_or([])
        return {c.name: c.ticket_count for c in categories}

    def get_resolution_rate(self) -> float:
        """Resolved and closed tickets as a percentage of all tickets."""
        by_status = self.get_tickets_by_status()
        return percentage(by_status.resolved + by_status.closed, by_status.total)
