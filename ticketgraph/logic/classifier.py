"""Rule-based ticket classification.

Maps free text to a category label, a priority level and a ranked keyword
list. Everything here is a pure function of the input text and the rule
tables loaded by config_loader: no store access, no state kept between
calls, and no input can make it raise. The worst case is the default
category, the default priority and an empty keyword list.

Matching policy (both tables):
    text is lower-cased, rules are tried in declaration order, a rule
    matches when any of its keywords occurs as a whole word or phrase
    (optionally with a plain -s/-es/-d/-ed/-ing ending), and the first
    match wins. "down" matches "down" and "downs" but not "download".
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..config_loader import ClassificationRules, get_rules, load_settings
from ..models import Category, Priority

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[\W_]+")
_INFLECTION = r"(?:s|es|d|ed|ing)?"

# Sentinel distinguishing "use the configured limit" from an explicit None
_CONFIGURED = object()


@dataclass
class Classification:
    """Everything the classifier infers from one piece of text."""
    category: str
    priority: Priority
    keywords: list[str] = field(default_factory=list)


def _normalize(text) -> str:
    if text is None:
        return ""
    if not isinstance(text, str):
        try:
            text = str(text)
        except Exception:
            return ""
    return text.lower()


def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(keyword)}{_INFLECTION}\b")


def _compile_table(rules) -> list[tuple[str, list[re.Pattern]]]:
    return [(label, [_keyword_pattern(k) for k in keywords]) for label, keywords in rules]


def _first_match(text: str, table: Iterable[tuple[str, list[re.Pattern]]]) -> Optional[str]:
    for label, patterns in table:
        if any(p.search(text) for p in patterns):
            return label
    return None


class TicketClassifier:
    def __init__(self, rules: Optional[ClassificationRules] = None):
        self.rules = rules or get_rules(load_settings().rules_path)
        self._category_table = _compile_table((r.label, r.keywords) for r in self.rules.categories)
        self._priority_table = _compile_table((r.level, r.keywords) for r in self.rules.priorities)
        self._stop_words = self.rules.stop_words

    def classify_ticket(self, text) -> str:
        """Category label for the text, or the default category."""
        label = _first_match(_normalize(text), self._category_table)
        return label or self.rules.default_category

    def suggest_priority(self, text) -> Priority:
        """Priority for the text, or the default priority when no rule fires."""
        level = _first_match(_normalize(text), self._priority_table)
        return Priority(level or self.rules.default_priority)

    def extract_keywords(self, text, top_n=_CONFIGURED) -> list[str]:
        """Content words ranked by frequency, ties broken by first occurrence.

        Args:
            text: Any input; non-strings are converted with str().
            top_n: Maximum number of keywords. Defaults to the configured
                ``max_keywords``; None, 0 or a negative value returns every
                keyword.
        """
        if top_n is _CONFIGURED:
            top_n = self.rules.keywords.max_keywords

        min_length = self.rules.keywords.min_token_length
        tokens = [
            tok for tok in _TOKEN_SPLIT.split(_normalize(text))
            if tok and len(tok) >= min_length and tok not in self._stop_words
        ]

        counts = Counter(tokens)
        first_seen = {}
        for position, tok in enumerate(tokens):
            first_seen.setdefault(tok, position)

        ranked = sorted(counts, key=lambda tok: (-counts[tok], first_seen[tok]))
        if top_n and top_n > 0:
            ranked = ranked[:top_n]
        return ranked

    def analyze(self, text) -> Classification:
        return Classification(
            category=self.classify_ticket(text),
            priority=self.suggest_priority(text),
            keywords=self.extract_keywords(text),
        )

    @staticmethod
    def category_id_for(label: str, categories: Iterable[Category]) -> Optional[str]:
        """Id of the category whose name matches the label (case-insensitive)."""
        wanted = (label or "").strip().lower()
        for category in categories:
            if category.name.strip().lower() == wanted:
                return category.id
        return None


_default_classifier: Optional[TicketClassifier] = None


def get_classifier() -> TicketClassifier:
    """Classifier for the configured rule file (TICKETGRAPH_RULES), created on first use."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = TicketClassifier()
    return _default_classifier


def classify_ticket(text) -> str:
    return get_classifier().classify_ticket(text)


def suggest_priority(text) -> Priority:
    return get_classifier().suggest_priority(text)


def extract_keywords(text, top_n=_CONFIGURED) -> list[str]:
    return get_classifier().extract_keywords(text, top_n)


def analyze(text) -> Classification:
    return get_classifier().analyze(text)
