"""Neo4j result conversion helpers.

Repository queries return nodes (``RETURN t``) and scalar projections
(``RETURN count(t) AS count``). ``Record.data()`` already turns nodes into
property dicts; these helpers finish the job by normalizing temporal values
and pulling scalars out of row lists.

Usage:
    rows  = records_to_dicts(result)          # [record.data() for record in result]
    props = node_properties(rows[0]["t"])     # dict of node properties
    when  = to_native_datetime(props.get("createdAt"))
    total = rows_value(rows, "count", 0)
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def records_to_dicts(result) -> list[dict]:
    """Convert a Neo4j Result (or any iterable of records) to list[dict]."""
    rows = []
    for record in result:
        if isinstance(record, dict):
            rows.append(dict(record))
        else:
            rows.append(record.data())
    return rows


def node_properties(val) -> dict:
    """Property dict for a node value.

    Handles plain dicts (what ``Record.data()`` yields) as well as raw
    ``neo4j.graph.Node`` objects, which behave like read-only mappings.
    """
    if val is None:
        return {}
    if isinstance(val, dict):
        return dict(val)
    if hasattr(val, "items"):
        return dict(val.items())
    raise TypeError(f"Cannot read properties from {type(val).__name__}")


def rows_value(rows: list[dict], key: str, default=None):
    """Extract a single value from the first row.

    Replaces patterns like: record["count"] if record else 0
    """
    if not rows:
        return default
    value = rows[0].get(key, default)
    return default if value is None else value


def to_native_datetime(val) -> datetime | None:
    """Convert a stored temporal value to an aware ``datetime`` in UTC.

    Accepts ``neo4j.time.DateTime``/``Date`` (anything with ``to_native``),
    Python ``datetime``/``date``, ISO-8601 strings and None.
    """
    if val is None:
        return None
    if hasattr(val, "to_native"):
        val = val.to_native()
    if isinstance(val, str):
        text = val.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        val = datetime.fromisoformat(text)
    if isinstance(val, datetime):
        if val.tzinfo is None:
            return val.replace(tzinfo=timezone.utc)
        return val.astimezone(timezone.utc)
    if isinstance(val, date):
        return datetime(val.year, val.month, val.day, tzinfo=timezone.utc)
    raise TypeError(f"Not a temporal value: {val!r}")


def to_store_datetime(val: datetime | None) -> str | None:
    """ISO-8601 string for a ``datetime($param)`` Cypher call, or None."""
    if val is None:
        return None
    if val.tzinfo is None:
        val = val.replace(tzinfo=timezone.utc)
    return val.isoformat()
