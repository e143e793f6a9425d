"""Ticket repository: CRUD, indexed lookups, counts and search over (:Ticket) nodes.

Graph shape:
    (:Ticket)-[:IN_CATEGORY]->(:Category)
    (:Ticket)-[:ASSIGNED_TO]->(:User)
    (:User)-[:CREATED]->(:Ticket)

Relationships are only drawn when the referenced node exists; the id
properties on the ticket (category, assignedTo, createdBy) remain the
source of truth, so users and categories are never deleted with a ticket.
"""

import logging
from datetime import datetime
from typing import Optional

from ..db_result_helpers import node_properties, to_native_datetime, to_store_datetime
from ..models import (
    Priority,
    RepoResult,
    Ticket,
    TicketStatus,
    generate_ticket_id,
    utcnow,
)
from .base import GraphRepository

logger = logging.getLogger(__name__)

CLOSED_STATUSES = [TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value]

# Appended after a write; re-links the ticket to existing Category/User nodes
_LINK_CLAUSES = """
    WITH t
    OPTIONAL MATCH (t)-[old:IN_CATEGORY|ASSIGNED_TO]->()
    DELETE old
    WITH DISTINCT t
    OPTIONAL MATCH (c:Category {id: $category})
    FOREACH (_ IN CASE WHEN c IS NOT NULL THEN [1] ELSE [] END |
        MERGE (t)-[:IN_CATEGORY]->(c)
    )
    WITH t
    OPTIONAL MATCH (a:User {id: $assignedTo})
    FOREACH (_ IN CASE WHEN a IS NOT NULL THEN [1] ELSE [] END |
        MERGE (t)-[:ASSIGNED_TO]->(a)
    )
"""

CREATE_TICKET = """
    CREATE (t:Ticket {
        id: $id,
        title: $title,
        description: $description,
        status: $status,
        priority: $priority,
        category: $category,
        categoryId: $category,
        assignedTo: $assignedTo,
        createdBy: $createdBy,
        createdAt: datetime($createdAt),
        updatedAt: datetime($updatedAt),
        dueDate: datetime($dueDate),
        resolvedAt: datetime($resolvedAt)
    })
""" + _LINK_CLAUSES + """
    WITH t
    OPTIONAL MATCH (u:User {id: $createdBy})
    FOREACH (_ IN CASE WHEN u IS NOT NULL THEN [1] ELSE [] END |
        MERGE (u)-[:CREATED]->(t)
    )
    RETURN t
"""

UPDATE_TICKET = """
    MATCH (t:Ticket {id: $id})
    SET t.title = $title,
        t.description = $description,
        t.status = $status,
        t.priority = $priority,
        t.category = $category,
        t.categoryId = $category,
        t.assignedTo = $assignedTo,
        t.updatedAt = datetime($updatedAt),
        t.dueDate = datetime($dueDate),
        t.resolvedAt = CASE
            WHEN $status IN $closed THEN coalesce(t.resolvedAt, datetime($resolvedAt))
            ELSE null
        END
""" + _LINK_CLAUSES + """
    RETURN t
"""


def to_ticket(node) -> Ticket:
    """Map a Ticket node to the entity.

    Null text fields become "". A null updatedAt keeps the default. A null
    createdAt keeps the default (now) unless the record carries an earlier
    timestamp, in which case that earliest timestamp is used.
    """
    props = node_properties(node)
    fields = {
        "id": props["id"],
        "title": props.get("title") or "",
        "description": props.get("description") or "",
        "status": props.get("status") or TicketStatus.OPEN.value,
        "priority": props.get("priority") or Priority.MEDIUM.value,
        "category_id": props.get("categoryId") or props.get("category") or "",
        "assigned_to": props.get("assignedTo") or "",
        "created_by": props.get("createdBy") or "",
        "due_date": to_native_datetime(props.get("dueDate")),
        "resolved_at": to_native_datetime(props.get("resolvedAt")),
    }

    created_at = to_native_datetime(props.get("createdAt"))
    updated_at = to_native_datetime(props.get("updatedAt"))
    if created_at is None:
        recorded = [d for d in (updated_at, fields["resolved_at"]) if d is not None]
        if recorded:
            created_at = min(recorded + [utcnow()])
    if created_at is not None:
        fields["created_at"] = created_at
    if updated_at is not None:
        fields["updated_at"] = updated_at

    return Ticket(**fields)


def _stamp_resolution(ticket: Ticket) -> None:
    """Give a RESOLVED/CLOSED ticket a resolution time if it has none."""
    if ticket.status in (TicketStatus.RESOLVED, TicketStatus.CLOSED) and ticket.resolved_at is None:
        ticket.resolved_at = ticket.updated_at


def _to_params(ticket: Ticket) -> dict:
    return {
        "id": ticket.id,
        "title": ticket.title,
        "description": ticket.description,
        "status": TicketStatus(ticket.status).value,
        "priority": Priority(ticket.priority).value,
        "category": ticket.category_id,
        "assignedTo": ticket.assigned_to,
        "createdBy": ticket.created_by,
        "createdAt": to_store_datetime(ticket.created_at),
        "updatedAt": to_store_datetime(ticket.updated_at),
        "dueDate": to_store_datetime(ticket.due_date),
        "resolvedAt": to_store_datetime(ticket.resolved_at),
        "closed": CLOSED_STATUSES,
    }


class TicketRepository(GraphRepository):
    label = "Ticket"

    # =========================================================================
    # WRITES
    # =========================================================================

    def create(self, ticket: Ticket) -> RepoResult[Ticket]:
        """Persist a new ticket, assigning an id when it has none."""
        ticket = ticket.model_copy()
        if not ticket.id:
            ticket.id = generate_ticket_id()
        _stamp_resolution(ticket)

        result = self._fetch_one("create", CREATE_TICKET, _to_params(ticket), to_ticket, "t")
        if result.ok:
            logger.info(f"Ticket created: {ticket.id}")
        return result

    def update(self, ticket: Ticket) -> RepoResult[Ticket]:
        """Overwrite every mutable field of an existing ticket.

        ``createdAt`` and ``createdBy`` are fixed at creation. A RESOLVED or
        CLOSED ticket keeps the resolvedAt already stored, or gets one now;
        any other status clears it. A missing id yields NOT_FOUND and no node
        is created.
        """
        if not ticket.id:
            return RepoResult.missing()
        ticket = ticket.model_copy()
        ticket.touch()
        _stamp_resolution(ticket)

        result = self._fetch_one("update", UPDATE_TICKET, _to_params(ticket), to_ticket, "t")
        if result.ok:
            logger.info(f"Ticket updated: {ticket.id}")
        elif result.not_found:
            logger.warning(f"Ticket update skipped, no ticket with id {ticket.id}")
        return result

    def save(self, ticket: Ticket) -> RepoResult[Ticket]:
        """Create or update.

        The existence check and the write are separate round trips, so two
        concurrent saves of the same new id race; the last write wins.
        """
        if not ticket.id:
            return self.create(ticket)

        existing = self.find_by_id(ticket.id)
        if existing.failed:
            return existing
        if existing.not_found:
            return self.create(ticket)
        return self.update(ticket)

    def delete(self, ticket_id: str) -> RepoResult[bool]:
        """Remove the ticket and its relationships. Deleting a missing id is a no-op."""
        result = self._execute("delete", """
            MATCH (t:Ticket {id: $id})
            DETACH DELETE t
        """, {"id": ticket_id}, lambda rows: True)
        if result.ok:
            logger.info(f"Ticket deleted: {ticket_id}")
        return result

    def assign(self, ticket_id: str, user_id: str) -> RepoResult[Ticket]:
        """Set the assignee and move the ASSIGNED_TO relationship."""
        return self._fetch_one("assign", """
            MATCH (t:Ticket {id: $id})
            SET t.assignedTo = $assignedTo,
                t.updatedAt = datetime($now)
            WITH t
            OPTIONAL MATCH (t)-[old:ASSIGNED_TO]->()
            DELETE old
            WITH DISTINCT t
            OPTIONAL MATCH (a:User {id: $assignedTo})
            FOREACH (_ IN CASE WHEN a IS NOT NULL THEN [1] ELSE [] END |
                MERGE (t)-[:ASSIGNED_TO]->(a)
            )
            RETURN t
        """, {"id": ticket_id, "assignedTo": user_id or "", "now": to_store_datetime(utcnow())},
            to_ticket, "t")

    def update_status(self, ticket_id: str, status: TicketStatus) -> RepoResult[Ticket]:
        """Change status, stamping resolvedAt on the first move to RESOLVED/CLOSED.

        Re-opening a ticket clears resolvedAt.
        """
        return self._fetch_one("update_status", """
            MATCH (t:Ticket {id: $id})
            SET t.status = $status,
                t.updatedAt = datetime($now),
                t.resolvedAt = CASE
                    WHEN $status IN $closed AND t.resolvedAt IS NULL THEN datetime($now)
                    WHEN $status IN $closed THEN t.resolvedAt
                    ELSE null
                END
            RETURN t
        """, {
            "id": ticket_id,
            "status": TicketStatus(status).value,
            "closed": CLOSED_STATUSES,
            "now": to_store_datetime(utcnow()),
        }, to_ticket, "t")

    # =========================================================================
    # READS
    # =========================================================================

    def find_by_id(self, ticket_id: str) -> RepoResult[Ticket]:
        return self._fetch_one("find_by_id", "MATCH (t:Ticket {id: $id}) RETURN t",
                               {"id": ticket_id}, to_ticket, "t")

    def find_all(self) -> RepoResult[list[Ticket]]:
        """All tickets, newest first."""
        return self._fetch_many("find_all", "MATCH (t:Ticket) RETURN t ORDER BY t.createdAt DESC",
                                {}, to_ticket, "t")

    def find_by_status(self, status: TicketStatus) -> RepoResult[list[Ticket]]:
        return self._fetch_many("find_by_status", """
            MATCH (t:Ticket {status: $status})
            RETURN t ORDER BY t.createdAt DESC
        """, {"status": TicketStatus(status).value}, to_ticket, "t")

    def find_by_priority(self, priority: Priority) -> RepoResult[list[Ticket]]:
        return self._fetch_many("find_by_priority", """
            MATCH (t:Ticket {priority: $priority})
            RETURN t ORDER BY t.createdAt DESC
        """, {"priority": Priority(priority).value}, to_ticket, "t")

    def find_by_assignee(self, user_id: str) -> RepoResult[list[Ticket]]:
        return self._fetch_many("find_by_assignee", """
            MATCH (t:Ticket {assignedTo: $assigneeId})
            RETURN t ORDER BY t.createdAt DESC
        """, {"assigneeId": user_id}, to_ticket, "t")

    def find_by_category(self, category_id: str) -> RepoResult[list[Ticket]]:
        return self._fetch_many("find_by_category", """
            MATCH (t:Ticket)
            WHERE coalesce(t.categoryId, t.category) = $categoryId
            RETURN t ORDER BY t.createdAt DESC
        """, {"categoryId": category_id}, to_ticket, "t")

    def find_overdue(self, now: Optional[datetime] = None) -> RepoResult[list[Ticket]]:
        """Unresolved tickets whose due date has passed, most overdue first."""
        return self._fetch_many("find_overdue", """
            MATCH (t:Ticket)
            WHERE t.dueDate IS NOT NULL
              AND t.dueDate < datetime($now)
              AND t.resolvedAt IS NULL
              AND NOT t.status IN $closed
            RETURN t ORDER BY t.dueDate ASC
        """, {"now": to_store_datetime(now or utcnow()), "closed": CLOSED_STATUSES},
            to_ticket, "t")

    def recent(self, limit: int = 10) -> RepoResult[list[Ticket]]:
        return self._fetch_many("recent", """
            MATCH (t:Ticket)
            RETURN t ORDER BY t.createdAt DESC
            LIMIT $limit
        """, {"limit": int(limit)}, to_ticket, "t")

    def find_titles(self) -> RepoResult[list[str]]:
        """Ticket titles, newest first."""
        return self._execute("find_titles", """
            MATCH (t:Ticket)
            WHERE t.title IS NOT NULL
            RETURN t.title AS title
            ORDER BY t.createdAt DESC
        """, {}, lambda rows: [row["title"] for row in rows])

    # =========================================================================
    # SEARCH
    # =========================================================================

    def search(self, keyword: str) -> RepoResult[list[Ticket]]:
        """Case-insensitive substring match on title or description, newest first.

        An empty keyword matches every ticket with non-null text.
        """
        return self._fetch_many("search", """
            MATCH (t:Ticket)
            WHERE toLower(t.title) CONTAINS toLower($keyword)
               OR toLower(t.description) CONTAINS toLower($keyword)
            RETURN t
            ORDER BY t.createdAt DESC
        """, {"keyword": keyword}, to_ticket, "t")

    def full_text_search(self, query: str, limit: int = 25) -> RepoResult[list[Ticket]]:
        """Lucene query against the ticket_text full-text index, best match first."""
        return self._fetch_many("full_text_search", """
            CALL db.index.fulltext.queryNodes('ticket_text', $query) YIELD node, score
            RETURN node AS t, score
            ORDER BY score DESC
            LIMIT $limit
        """, {"query": query, "limit": int(limit)}, to_ticket, "t")

    # =========================================================================
    # COUNTS
    # =========================================================================

    def count(self) -> RepoResult[int]:
        return self._count("count", "MATCH (t:Ticket) RETURN count(t) AS count")

    def count_by_status(self, status: TicketStatus) -> RepoResult[int]:
        return self._count("count_by_status",
                           "MATCH (t:Ticket {status: $status}) RETURN count(t) AS count",
                           {"status": TicketStatus(status).value})

    def count_by_priority(self, priority: Priority) -> RepoResult[int]:
        return self._count("count_by_priority",
                           "MATCH (t:Ticket {priority: $priority}) RETURN count(t) AS count",
                           {"priority": Priority(priority).value})

    def count_by_category(self, category_id: str) -> RepoResult[int]:
        return self._count("count_by_category", """
            MATCH (t:Ticket)
            WHERE coalesce(t.categoryId, t.category) = $categoryId
            RETURN count(t) AS count
        """, {"categoryId": category_id})

    def sla_counts(self) -> RepoResult[tuple[int, int]]:
        """(tickets with a due date, of those resolved at or before it)."""
        def _map(rows):
            if not rows:
                return 0, 0
            return int(rows[0].get("tracked") or 0), int(rows[0].get("met") or 0)

        return self._execute("sla_counts", """
            MATCH (t:Ticket)
            WHERE t.dueDate IS NOT NULL
            RETURN count(t) AS tracked,
                   count(CASE WHEN t.resolvedAt IS NOT NULL AND t.resolvedAt <= t.dueDate
                              THEN 1 END) AS met
        """, {}, _map)
