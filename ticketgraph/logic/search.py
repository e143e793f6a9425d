"""Cross-entity search and search-term suggestions."""

import logging
from typing import Optional

from ..models import SearchResults, SearchStatistics
from ..repositories import ArticleRepository, CategoryRepository, TicketRepository, UserRepository
from .classifier import TicketClassifier, get_classifier

logger = logging.getLogger(__name__)


class SearchService:
    def __init__(self, tickets: TicketRepository, articles: ArticleRepository,
                 users: UserRepository, categories: Optional[CategoryRepository] = None,
                 classifier: Optional[TicketClassifier] = None):
        self.tickets = tickets
        self.articles = articles
        self.users = users
        self.categories = categories
        self.classifier = classifier or get_classifier()

    def get_search_statistics(self) -> SearchStatistics:
        return SearchStatistics(
            total_tickets=self.tickets.count().unwrap_or(0),
            total_kb_articles=self.articles.count().unwrap_or(0),
            total_users=self.users.count().unwrap_or(0),
        )

    def search_all(self, keyword: str) -> SearchResults:
        """Keyword search across tickets, articles and users.

        A blank keyword returns empty results instead of everything.
        """
        keyword = (keyword or "").strip()
        if not keyword:
            return SearchResults(keyword="")

        results = SearchResults(
            keyword=keyword,
            tickets=self.tickets.search(keyword).unwrap_or([]),
            articles=self.articles.search(keyword).unwrap_or([]),
            users=self.users.search(keyword).unwrap_or([]),
        )
        logger.info(f"Search '{keyword}': {len(results.tickets)} tickets, "
                    f"{len(results.articles)} articles, {len(results.users)} users")
        return results

    def get_suggested_search_terms(self, fragment: str, limit: int = 10) -> list[str]:
        """Terms containing the fragment, case-insensitively.

        Candidates are the keywords of each ticket title (newest ticket
        first), then category names. Terms are unique and kept in order of
        first appearance; a blank fragment yields no suggestions.
        """
        needle = (fragment or "").strip().lower()
        if not needle:
            return []

        candidates = []
        for title in self.tickets.find_titles().unwrap_or([]):
            candidates.extend(self.classifier.extract_keywords(title, top_n=None))
        if self.categories is not None:
            candidates.extend(c.name.lower() for c in self.categories.find_all().unwrap_or([]))

        suggestions = []
        seen = set()
        for term in candidates:
            if needle in term and term not in seen:
                seen.add(term)
                suggestions.append(term)
                if limit and len(suggestions) >= limit:
                    break
        return suggestions
