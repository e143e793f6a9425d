"""CategoryRepository unit tests: CATnnn ids, live counts, guarded delete."""

import pytest
from neo4j.exceptions import ClientError

from ticketgraph.models import Category
from ticketgraph.repositories.categories import DEFAULT_CATEGORIES, CategoryRepository


@pytest.fixture
def repo(db):
    return CategoryRepository(db)


class TestIds:
    def test_next_id_after_highest(self, repo, session):
        session.run.return_value = [{"id": "CAT001"}, {"id": "CAT010"}, {"id": "CAT002"}]
        assert repo.next_id().value == "CAT011"

    def test_next_id_ignores_foreign_formats(self, repo, session):
        session.run.return_value = [{"id": "CATX"}, {"id": "CAT003"}]
        assert repo.next_id().value == "CAT004"

    def test_first_id(self, repo, session):
        session.run.return_value = []
        assert repo.next_id().value == "CAT001"

    def test_create_assigns_sequence_id(self, repo, session, category_node):
        session.run.side_effect = [
            [{"id": "CAT001"}, {"id": "CAT002"}],
            [{"c": dict(category_node, id="CAT003", name="Hardware", ticketCount=0)}],
        ]
        result = repo.create(Category(name="Hardware", color="#123456"))
        params = session.run.call_args[0][1]
        assert params["id"] == "CAT003"
        assert params["color"] == "#123456"
        assert result.value.id == "CAT003"

    def test_create_ignores_caller_ticket_count(self, repo, session, category_node):
        session.run.return_value = [{"c": dict(category_node, id="CAT011", ticketCount=0)}]
        result = repo.create(Category(id="CAT011", name="Hardware", ticket_count=999))
        cypher, params = session.run.call_args[0]
        assert "ticketCount" not in params
        assert "SET c.ticketCount = live" in cypher
        assert result.value.ticket_count == 0

    def test_create_fails_when_id_lookup_fails(self, repo, session):
        session.run.side_effect = ClientError("down")
        result = repo.create(Category(name="Hardware"))
        assert result.failed
        assert session.run.call_count == 1


class TestCounts:
    def test_find_all_uses_cached_count(self, repo, session, category_node):
        session.run.return_value = [{"c": category_node}]
        assert repo.find_all().value[0].ticket_count == 45

    def test_live_counts_override_snapshot(self, repo, session, category_node):
        session.run.return_value = [{"c": category_node, "live": 3}]
        categories = repo.find_all_with_live_counts().value
        assert categories[0].ticket_count == 3
        assert "count(t) AS live" in session.run.call_args[0][0]

    def test_refresh_ticket_count_writes_live_count(self, repo, session, category_node):
        session.run.return_value = [{"c": dict(category_node, ticketCount=2)}]
        result = repo.refresh_ticket_count("CAT001")
        assert "SET c.ticketCount = live" in session.run.call_args[0][0]
        assert result.value.ticket_count == 2


class TestDelete:
    def test_delete_if_unused_refuses_with_tickets(self, repo, session):
        session.run.return_value = [{"count": 2}]
        result = repo.delete_if_unused("CAT001")
        assert result.failed
        assert "still has 2 tickets" in result.error
        assert session.run.call_count == 1

    def test_delete_if_unused_deletes_empty(self, repo, session):
        session.run.side_effect = [[{"count": 0}], []]
        assert repo.delete_if_unused("CAT001").ok
        assert "DETACH DELETE c" in session.run.call_args[0][0]

    def test_plain_delete_is_idempotent(self, repo, session):
        assert repo.delete("CAT999").ok
        assert repo.delete("CAT999").ok


class TestSeed:
    def test_seed_merges_defaults(self, repo, session):
        session.run.return_value = [{"count": 10}]
        assert repo.seed_defaults().value == 10
        cypher, params = session.run.call_args[0]
        assert "MERGE (c:Category {id: cat.id})" in cypher
        assert [c["id"] for c in params["categories"]] == [f"CAT{i:03d}" for i in range(1, 11)]

    def test_default_names_cover_classifier_labels(self, rules):
        names = {c.name for c in DEFAULT_CATEGORIES}
        assert rules.default_category in names
        assert {r.label for r in rules.categories} <= names


class TestFindByName:
    def test_case_insensitive(self, repo, session, category_node):
        session.run.return_value = [{"c": category_node}]
        result = repo.find_by_name("technical")
        assert result.value.id == "CAT001"
        assert "toLower(c.name) = toLower($name)" in session.run.call_args[0][0]
