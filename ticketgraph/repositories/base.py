"""Shared query execution for the entity repositories.

Every repository call runs one parameterized Cypher statement in its own
session. Store failures are logged and turned into ERROR results; only
ConnectivityError escapes, so callers can tell "store down" from "query
failed" from "nothing there".
"""

import logging
from typing import Callable, Optional

from neo4j.exceptions import DriverError, Neo4jError

from ..database import ConnectivityError, GraphConnection, PersistenceError
from ..db_result_helpers import records_to_dicts, rows_value
from ..models import RepoResult

logger = logging.getLogger(__name__)

# ValueError covers records that fail model validation while mapping
STORE_ERRORS = (Neo4jError, DriverError, ValueError, TypeError, KeyError)


class GraphRepository:
    """Base class: holds the connection and wraps query execution."""

    label = ""

    def __init__(self, db: GraphConnection):
        self.db = db

    def _run_query(self, cypher: str, params: dict = None) -> list[dict]:
        """Execute a Cypher statement and return its rows as dicts."""
        with self.db.session() as session:
            result = session.run(cypher, params or {})
            return records_to_dicts(result)

    def _execute(self, operation: str, cypher: str, params: dict = None,
                 mapper: Optional[Callable[[list[dict]], object]] = None) -> RepoResult:
        """Run a statement and wrap the mapped rows in a RepoResult.

        Raises:
            ConnectivityError: propagated untouched.
        """
        try:
            rows = self._run_query(cypher, params)
            value = mapper(rows) if mapper else rows
        except ConnectivityError:
            raise
        except STORE_ERRORS as e:
            error = PersistenceError(f"{self.label}.{operation} failed: {e}")
            logger.error(str(error))
            return RepoResult.failure(str(error))
        return RepoResult.success(value)

    def _fetch_one(self, operation: str, cypher: str, params: dict,
                   mapper: Callable[[dict], object], key: str) -> RepoResult:
        """Run a single-entity lookup: OK with the entity, or NOT_FOUND."""
        result = self._execute(operation, cypher, params,
                               lambda rows: mapper(rows[0][key]) if rows else None)
        if result.ok and result.value is None:
            return RepoResult.missing()
        return result

    def _fetch_many(self, operation: str, cypher: str, params: dict,
                    mapper: Callable[[dict], object], key: str) -> RepoResult:
        result = self._execute(operation, cypher, params,
                               lambda rows: [mapper(row[key]) for row in rows])
        if result.ok:
            logger.debug(f"{self.label}.{operation}: {len(result.value)} rows")
        return result

    def _count(self, operation: str, cypher: str, params: dict = None) -> RepoResult:
        return self._execute(operation, cypher, params,
                             lambda rows: int(rows_value(rows, "count", 0)))
