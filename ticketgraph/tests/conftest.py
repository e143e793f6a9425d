"""Shared fixtures for the ticketgraph test suite.

Repository tests run against a GraphConnection wired to a mocked Neo4j
driver: each test inspects the Cypher and parameters passed to
``session.run`` and feeds rows back through ``session.run.return_value``.
Rows may be plain dicts; records_to_dicts accepts both dicts and records.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from ticketgraph.config_loader import Settings, get_rules
from ticketgraph.database import GraphConnection
from ticketgraph.logic.classifier import TicketClassifier


# =============================================================================
# DRIVER / CONNECTION FIXTURES
# =============================================================================

@pytest.fixture
def mock_driver():
    """Mock Neo4j driver with session context manager."""
    driver = MagicMock()
    session = MagicMock()
    session.run.return_value = []
    driver.session.return_value.__enter__ = MagicMock(return_value=session)
    driver.session.return_value.__exit__ = MagicMock(return_value=False)
    return driver, session


@pytest.fixture
def session(mock_driver):
    return mock_driver[1]


@pytest.fixture
def db(mock_driver):
    """GraphConnection using the mocked driver (no network)."""
    driver, _ = mock_driver
    return GraphConnection(Settings(password="s3cret"), driver=driver)


# =============================================================================
# NODE FIXTURES
# =============================================================================

@pytest.fixture
def created():
    return datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def ticket_node(created):
    """Ticket node properties as the store returns them."""
    return {
        "id": "TKT-AB12CD34",
        "title": "Login fails",
        "description": "Users cannot login after the update",
        "status": "OPEN",
        "priority": "HIGH",
        "category": "CAT001",
        "categoryId": "CAT001",
        "assignedTo": "USR-AGENT001",
        "createdBy": "USR-CUST0001",
        "createdAt": created,
        "updatedAt": created,
    }


@pytest.fixture
def user_node(created):
    return {
        "id": "USR-AGENT001",
        "username": "john_doe",
        "email": "john@example.com",
        "passwordHash": "",
        "fullName": "John Doe",
        "role": "AGENT",
        "active": True,
        "createdAt": created,
    }


@pytest.fixture
def category_node():
    return {
        "id": "CAT001",
        "name": "Technical",
        "description": "Technical issues and bugs",
        "color": "#e74c3c",
        "ticketCount": 45,
    }


# =============================================================================
# CLASSIFIER
# =============================================================================

@pytest.fixture
def rules():
    """Bundled default rule tables (not mocked)."""
    return get_rules()


@pytest.fixture
def classifier(rules):
    return TicketClassifier(rules)
