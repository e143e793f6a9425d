"""Neo4j connection management.

A single GraphConnection is built at process start and handed to every
repository. It owns the driver (created lazily on first use) and hands out
one session per unit of work.
"""

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from neo4j import GraphDatabase
from neo4j.exceptions import AuthError, ServiceUnavailable, SessionExpired

from .config_loader import Settings, load_settings

logger = logging.getLogger(__name__)

# Failures that mean the store itself cannot be reached
CONNECTIVITY_ERRORS = (ServiceUnavailable, SessionExpired, AuthError)


class ConnectivityError(Exception):
    """The graph store is unreachable; fatal to the calling operation."""


class PersistenceError(Exception):
    """A single query failed. Repositories log it and return an ERROR result."""


SCHEMA_STATEMENTS = [
    "CREATE CONSTRAINT ticket_id IF NOT EXISTS FOR (t:Ticket) REQUIRE t.id IS UNIQUE",
    "CREATE CONSTRAINT user_id IF NOT EXISTS FOR (u:User) REQUIRE u.id IS UNIQUE",
    "CREATE CONSTRAINT user_username IF NOT EXISTS FOR (u:User) REQUIRE u.username IS UNIQUE",
    "CREATE CONSTRAINT user_email IF NOT EXISTS FOR (u:User) REQUIRE u.email IS UNIQUE",
    "CREATE CONSTRAINT category_id IF NOT EXISTS FOR (c:Category) REQUIRE c.id IS UNIQUE",
    "CREATE CONSTRAINT article_id IF NOT EXISTS FOR (a:Article) REQUIRE a.id IS UNIQUE",
    "CREATE INDEX ticket_status IF NOT EXISTS FOR (t:Ticket) ON (t.status)",
    "CREATE INDEX ticket_priority IF NOT EXISTS FOR (t:Ticket) ON (t.priority)",
    "CREATE INDEX ticket_assignee IF NOT EXISTS FOR (t:Ticket) ON (t.assignedTo)",
    "CREATE INDEX ticket_created IF NOT EXISTS FOR (t:Ticket) ON (t.createdAt)",
    "CREATE FULLTEXT INDEX ticket_text IF NOT EXISTS FOR (t:Ticket) ON EACH [t.title, t.description]",
]


class GraphConnection:
    def __init__(self, settings: Optional[Settings] = None, driver=None):
        self.settings = settings or load_settings()
        self.database = self.settings.database
        self.driver = driver

    def connect(self):
        if not self.driver:
            logger.info(f"Opening Neo4j driver: {self.settings.masked()}")
            try:
                self.driver = GraphDatabase.driver(
                    self.settings.uri,
                    auth=(self.settings.user, self.settings.password),
                    max_connection_pool_size=self.settings.max_connection_pool_size,
                    connection_acquisition_timeout=self.settings.connection_acquisition_timeout,
                    keep_alive=True,
                )
            except CONNECTIVITY_ERRORS as e:
                raise ConnectivityError(f"Cannot create Neo4j driver: {e}") from e
            except ValueError as e:
                # Malformed URI or auth tuple
                raise ConnectivityError(f"Invalid Neo4j settings: {e}") from e
        return self.driver

    @contextmanager
    def session(self) -> Iterator:
        """Scoped session for one unit of work, always closed on exit.

        Raises:
            ConnectivityError: the store could not be reached, either while
                opening the session or while the session was in use.
        """
        driver = self.connect()
        try:
            with driver.session(database=self.database) as session:
                yield session
        except CONNECTIVITY_ERRORS as e:
            logger.error(f"Neo4j unavailable: {e}")
            raise ConnectivityError(str(e)) from e

    def verify_connection(self) -> bool:
        """Run a trivial query; True when the store answers."""
        with self.session() as session:
            record = session.run("RETURN 1 AS test").single()
            return record is not None and record["test"] == 1

    def warmup(self) -> float:
        """Pre-connect the pool. Returns the elapsed seconds."""
        t = time.time()
        self.verify_connection()
        elapsed = time.time() - t
        logger.info(f"Neo4j connection warmed up in {elapsed:.2f}s")
        return elapsed

    def ensure_schema(self) -> None:
        """Create the uniqueness constraints and indexes the repositories rely on."""
        with self.session() as session:
            for statement in SCHEMA_STATEMENTS:
                session.run(statement)
        logger.info(f"Ensured {len(SCHEMA_STATEMENTS)} schema statements")

    def get_node_count(self, label: Optional[str] = None) -> int:
        query = f"MATCH (n:{label}) RETURN count(n) AS count" if label else "MATCH (n) RETURN count(n) AS count"
        with self.session() as session:
            record = session.run(query).single()
            return record["count"] if record else 0

    def reconnect(self):
        """Force reconnection by closing the existing driver and creating a new one."""
        self.close()
        return self.connect()

    def close(self):
        if self.driver:
            try:
                self.driver.close()
            finally:
                self.driver = None

    def __enter__(self) -> "GraphConnection":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
