"""Knowledge-base article repository over (:Article) nodes."""

import logging

from ..db_result_helpers import node_properties, to_native_datetime, to_store_datetime
from ..models import Article, RepoResult, generate_article_id, utcnow
from .base import GraphRepository

logger = logging.getLogger(__name__)


def to_article(node) -> Article:
    props = node_properties(node)
    fields = {
        "id": props["id"],
        "title": props.get("title") or "",
        "content": props.get("content") or "",
        "category_id": props.get("categoryId") or "",
        "tags": list(props.get("tags") or []),
        "views": int(props.get("views") or 0),
    }
    created_at = to_native_datetime(props.get("createdAt"))
    updated_at = to_native_datetime(props.get("updatedAt"))
    if created_at is not None:
        fields["created_at"] = created_at
    if updated_at is not None:
        fields["updated_at"] = updated_at
    return Article(**fields)


def _to_params(article: Article) -> dict:
    return {
        "id": article.id,
        "title": article.title,
        "content": article.content,
        "categoryId": article.category_id,
        "tags": list(article.tags),
        "views": article.views,
        "createdAt": to_store_datetime(article.created_at),
        "updatedAt": to_store_datetime(article.updated_at),
    }


class ArticleRepository(GraphRepository):
    label = "Article"

    def create(self, article: Article) -> RepoResult[Article]:
        article = article.model_copy()
        if not article.id:
            article.id = generate_article_id()

        result = self._fetch_one("create", """
            CREATE (a:Article {
                id: $id,
                title: $title,
                content: $content,
                categoryId: $categoryId,
                tags: $tags,
                views: $views,
                createdAt: datetime($createdAt),
                updatedAt: datetime($updatedAt)
            })
            WITH a
            OPTIONAL MATCH (c:Category {id: $categoryId})
            FOREACH (_ IN CASE WHEN c IS NOT NULL THEN [1] ELSE [] END |
                MERGE (a)-[:IN_CATEGORY]->(c)
            )
            RETURN a
        """, _to_params(article), to_article, "a")
        if result.ok:
            logger.info(f"Article created: {article.id}")
        return result

    def update(self, article: Article) -> RepoResult[Article]:
        if not article.id:
            return RepoResult.missing()
        article = article.model_copy()
        article.updated_at = max(utcnow(), article.created_at)
        return self._fetch_one("update", """
            MATCH (a:Article {id: $id})
            SET a.title = $title,
                a.content = $content,
                a.categoryId = $categoryId,
                a.tags = $tags,
                a.updatedAt = datetime($updatedAt)
            RETURN a
        """, _to_params(article), to_article, "a")

    def increment_views(self, article_id: str) -> RepoResult[Article]:
        return self._fetch_one("increment_views", """
            MATCH (a:Article {id: $id})
            SET a.views = coalesce(a.views, 0) + 1
            RETURN a
        """, {"id": article_id}, to_article, "a")

    def delete(self, article_id: str) -> RepoResult[bool]:
        return self._execute("delete", """
            MATCH (a:Article {id: $id})
            DETACH DELETE a
        """, {"id": article_id}, lambda rows: True)

    def find_by_id(self, article_id: str) -> RepoResult[Article]:
        return self._fetch_one("find_by_id", "MATCH (a:Article {id: $id}) RETURN a",
                               {"id": article_id}, to_article, "a")

    def find_all(self) -> RepoResult[list[Article]]:
        return self._fetch_many("find_all", "MATCH (a:Article) RETURN a ORDER BY a.createdAt DESC",
                                {}, to_article, "a")

    def search(self, keyword: str) -> RepoResult[list[Article]]:
        """Case-insensitive substring match on title, content or any tag."""
        return self._fetch_many("search", """
            MATCH (a:Article)
            WHERE toLower(a.title) CONTAINS toLower($keyword)
               OR toLower(a.content) CONTAINS toLower($keyword)
               OR any(tag IN coalesce(a.tags, []) WHERE toLower(tag) CONTAINS toLower($keyword))
            RETURN a
            ORDER BY a.views DESC, a.createdAt DESC
        """, {"keyword": keyword}, to_article, "a")

    def count(self) -> RepoResult[int]:
        return self._count("count", "MATCH (a:Article) RETURN count(a) AS count")
