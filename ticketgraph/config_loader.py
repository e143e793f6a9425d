"""Configuration loader for the ticket graph backend.

Two kinds of configuration live here:

1. Connection settings, read from the environment (a ``.env`` file is loaded
   first if present).
2. Classification rule tables, externalized to YAML and validated with
   pydantic so that the classifier never has to deal with malformed data.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

RULES_DIR = Path(__file__).resolve().parent / "rules"
DEFAULT_RULES_PATH = RULES_DIR / "default.yaml"

PRIORITY_LEVELS = ("LOW", "MEDIUM", "HIGH", "CRITICAL")


# =============================================================================
# CONNECTION SETTINGS
# =============================================================================

class Settings(BaseModel):
    """Neo4j connection settings."""
    uri: str = "bolt://localhost:7687"
    user: str = "neo4j"
    password: str = ""
    database: str = "neo4j"
    max_connection_pool_size: int = 50
    connection_acquisition_timeout: float = 30.0
    rules_path: Optional[str] = None

    def masked(self) -> dict:
        """Settings as a dict with the password hidden, safe for logging."""
        data = self.model_dump()
        data["password"] = "***" if self.password else ""
        return data


def load_settings() -> Settings:
    """Build Settings from environment variables."""
    return Settings(
        uri=os.getenv("NEO4J_URI", "bolt://localhost:7687"),
        user=os.getenv("NEO4J_USER", "neo4j"),
        password=os.getenv("NEO4J_PASSWORD", ""),
        database=os.getenv("NEO4J_DATABASE", "neo4j"),
        max_connection_pool_size=int(os.getenv("NEO4J_MAX_POOL_SIZE", "50")),
        connection_acquisition_timeout=float(os.getenv("NEO4J_ACQUISITION_TIMEOUT", "30")),
        rules_path=os.getenv("TICKETGRAPH_RULES") or None,
    )


# =============================================================================
# PYDANTIC MODELS FOR RULE TABLES
# =============================================================================

class CategoryRule(BaseModel):
    """Routes text containing any keyword to a category label."""
    label: str
    keywords: list[str] = Field(default_factory=list)

    @field_validator("keywords")
    @classmethod
    def _lowercase(cls, v: list[str]) -> list[str]:
        return [k.lower() for k in v if k]


class PriorityRule(BaseModel):
    """Routes text containing any keyword to a priority level."""
    level: str
    keywords: list[str] = Field(default_factory=list)

    @field_validator("level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.upper()
        if v not in PRIORITY_LEVELS:
            raise ValueError(f"Unknown priority level '{v}'")
        return v

    @field_validator("keywords")
    @classmethod
    def _lowercase(cls, v: list[str]) -> list[str]:
        return [k.lower() for k in v if k]


class KeywordConfig(BaseModel):
    """Keyword extraction parameters."""
    max_keywords: Optional[int] = 10
    min_token_length: int = 1
    stop_words: list[str] = Field(default_factory=list)

    @field_validator("stop_words")
    @classmethod
    def _lowercase(cls, v: list[str]) -> list[str]:
        return [w.lower() for w in v]


class ClassificationRules(BaseModel):
    """Complete rule set consumed by the classifier."""
    version: str = "1.0"
    default_category: str = "Other"
    default_priority: str = "MEDIUM"
    categories: list[CategoryRule] = Field(default_factory=list)
    priorities: list[PriorityRule] = Field(default_factory=list)
    keywords: KeywordConfig = Field(default_factory=KeywordConfig)

    @field_validator("default_priority")
    @classmethod
    def _known_default(cls, v: str) -> str:
        v = v.upper()
        if v not in PRIORITY_LEVELS:
            raise ValueError(f"Unknown default priority '{v}'")
        return v

    @property
    def stop_words(self) -> frozenset:
        return frozenset(self.keywords.stop_words)


# =============================================================================
# LOADING
# =============================================================================

def load_rules(rules_path: Optional[str] = None) -> ClassificationRules:
    """Load and validate classification rules from a YAML file.

    Args:
        rules_path: Path to the rules file. If None, uses the bundled default.

    Returns:
        Validated ClassificationRules.

    Raises:
        ValueError: If the file has no ``rules`` section or fails validation.
    """
    path = Path(rules_path) if rules_path else DEFAULT_RULES_PATH

    with open(path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    section = raw.get("rules")
    if not isinstance(section, dict):
        raise ValueError(f"Rules file {path} has no 'rules' section")

    return ClassificationRules(**section)


_rules: dict[str, ClassificationRules] = {}


def get_rules(rules_path: Optional[str] = None) -> ClassificationRules:
    """Get cached classification rules for a path (default rules if None)."""
    key = str(rules_path or DEFAULT_RULES_PATH)
    if key not in _rules:
        _rules[key] = load_rules(rules_path)
    return _rules[key]


def reload_rules(rules_path: Optional[str] = None) -> ClassificationRules:
    """Force reload of a rules file, replacing the cached copy."""
    key = str(rules_path or DEFAULT_RULES_PATH)
    _rules[key] = load_rules(rules_path)
    return _rules[key]
