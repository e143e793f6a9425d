"""Classification, analytics and search built on the repositories."""

from .analytics import AnalyticsService
from .classifier import (
    Classification,
    TicketClassifier,
    analyze,
    classify_ticket,
    extract_keywords,
    suggest_priority,
)
from .search import SearchService

__all__ = [
    'AnalyticsService',
    'SearchService',
    'TicketClassifier',
    'Classification',
    'classify_ticket',
    'suggest_priority',
    'extract_keywords',
    'analyze',
]
