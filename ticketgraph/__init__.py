"""Graph-backed support ticket persistence and rule-based classification."""

__version__ = "0.1.0"
