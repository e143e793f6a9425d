"""Category repository over (:Category) nodes.

``ticketCount`` on the node is a cached snapshot. Use
find_all_with_live_counts or refresh_ticket_count when the live number
matters; delete_if_unused checks the live count before deleting.
"""

import logging

from ..db_result_helpers import node_properties
from ..models import Category, RepoResult, format_category_id, parse_category_sequence
from .base import GraphRepository

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    Category(id="CAT001", name="Technical", description="Technical issues and bugs", color="#e74c3c"),
    Category(id="CAT002", name="Payment", description="Payment and billing issues", color="#f39c12"),
    Category(id="CAT003", name="UI/UX", description="User interface problems", color="#3498db"),
    Category(id="CAT004", name="Email", description="Email and notification issues", color="#9b59b6"),
    Category(id="CAT005", name="Database", description="Database related problems", color="#e67e22"),
    Category(id="CAT006", name="Security", description="Security concerns", color="#c0392b"),
    Category(id="CAT007", name="Performance", description="Performance issues", color="#16a085"),
    Category(id="CAT008", name="Feature", description="Feature requests", color="#27ae60"),
    Category(id="CAT009", name="Bug", description="Software bugs", color="#d35400"),
    Category(id="CAT010", name="Other", description="Other issues", color="#95a5a6"),
]

_LIVE_COUNT = """
    OPTIONAL MATCH (t:Ticket)
    WHERE coalesce(t.categoryId, t.category) = c.id
    WITH c, count(t) AS live
"""


def to_category(node, live_count: int = None) -> Category:
    props = node_properties(node)
    count = props.get("ticketCount") or 0
    return Category(
        id=props["id"],
        name=props.get("name") or "",
        description=props.get("description") or "",
        color=props.get("color") or "#95a5a6",
        ticket_count=int(live_count if live_count is not None else count),
    )


def _to_params(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "color": category.color,
    }


class CategoryRepository(GraphRepository):
    label = "Category"

    def next_id(self) -> RepoResult[str]:
        """The next free CATnnn id (one past the highest sequence in use)."""
        def _map(rows):
            sequences = [parse_category_sequence(row["id"]) for row in rows]
            return format_category_id(max([s for s in sequences if s is not None], default=0) + 1)

        return self._execute("next_id", """
            MATCH (c:Category)
            WHERE c.id STARTS WITH 'CAT'
            RETURN c.id AS id
        """, {}, _map)

    def create(self, category: Category) -> RepoResult[Category]:
        """Persist a new category.

        ticketCount starts at the live ticket count; the caller's
        ticket_count is ignored.
        """
        category = category.model_copy()
        if not category.id:
            next_id = self.next_id()
            if not next_id.ok:
                return next_id
            category.id = next_id.value

        result = self._fetch_one("create", """
            CREATE (c:Category {
                id: $id,
                name: $name,
                description: $description,
                color: $color
            })
            WITH c
        """ + _LIVE_COUNT + """
            SET c.ticketCount = live
            RETURN c
        """, _to_params(category), to_category, "c")
        if result.ok:
            logger.info(f"Category created: {category.id} ({category.name})")
        return result

    def update(self, category: Category) -> RepoResult[Category]:
        if not category.id:
            return RepoResult.missing()
        return self._fetch_one("update", """
            MATCH (c:Category {id: $id})
            SET c.name = $name,
                c.description = $description,
                c.color = $color
            RETURN c
        """, _to_params(category), to_category, "c")

    def refresh_ticket_count(self, category_id: str) -> RepoResult[Category]:
        """Recompute the cached ticketCount from the live tickets."""
        return self._fetch_one("refresh_ticket_count", """
            MATCH (c:Category {id: $id})
        """ + _LIVE_COUNT + """
            SET c.ticketCount = live
            RETURN c
        """, {"id": category_id}, to_category, "c")

    def seed_defaults(self) -> RepoResult[int]:
        """MERGE the default categories; existing ones are left untouched."""
        result = self._execute("seed_defaults", """
            UNWIND $categories AS cat
            MERGE (c:Category {id: cat.id})
            ON CREATE SET c.name = cat.name,
                          c.description = cat.description,
                          c.color = cat.color,
                          c.ticketCount = 0
            RETURN count(c) AS count
        """, {"categories": [_to_params(c) for c in DEFAULT_CATEGORIES]},
            lambda rows: int(rows[0]["count"]) if rows else 0)
        if result.ok:
            logger.info(f"Seeded {result.value} default categories")
        return result

    def delete(self, category_id: str) -> RepoResult[bool]:
        """Remove the category node. Idempotent; does not check for tickets."""
        result = self._execute("delete", """
            MATCH (c:Category {id: $id})
            DETACH DELETE c
        """, {"id": category_id}, lambda rows: True)
        if result.ok:
            logger.info(f"Category deleted: {category_id}")
        return result

    def delete_if_unused(self, category_id: str) -> RepoResult[bool]:
        """Delete only when no ticket references the category."""
        live = self.count_tickets(category_id)
        if not live.ok:
            return live
        if live.value > 0:
            message = f"Category {category_id} still has {live.value} tickets"
            logger.warning(message)
            return RepoResult.failure(message)
        return self.delete(category_id)

    def count_tickets(self, category_id: str) -> RepoResult[int]:
        return self._count("count_tickets", """
            MATCH (t:Ticket)
            WHERE coalesce(t.categoryId, t.category) = $id
            RETURN count(t) AS count
        """, {"id": category_id})

    def find_by_id(self, category_id: str) -> RepoResult[Category]:
        return self._fetch_one("find_by_id", "MATCH (c:Category {id: $id}) RETURN c",
                               {"id": category_id}, to_category, "c")

    def find_by_name(self, name: str) -> RepoResult[Category]:
        return self._fetch_one("find_by_name", """
            MATCH (c:Category)
            WHERE toLower(c.name) = toLower($name)
            RETURN c
            ORDER BY c.id
            LIMIT 1
        """, {"name": name}, to_category, "c")

    def find_all(self) -> RepoResult[list[Category]]:
        """All categories by id, with ticket_count as cached on the node."""
        return self._fetch_many("find_all", "MATCH (c:Category) RETURN c ORDER BY c.id",
                                {}, to_category, "c")

    def find_all_with_live_counts(self) -> RepoResult[list[Category]]:
        return self._execute("find_all_with_live_counts", """
            MATCH (c:Category)
        """ + _LIVE_COUNT + """
            RETURN c, live
            ORDER BY c.id
        """, {}, lambda rows: [to_category(row["c"], row["live"]) for row in rows])

    def count(self) -> RepoResult[int]:
        return self._count("count", "MATCH (c:Category) RETURN count(c) AS count")
