from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import aiosqlite
import orjson

from .base import BaseRepository, escape_like

logger = logging.getLogger(__name__)

POST_TYPES = ("recipe", "short", "video", "image")

SORT_NEWEST = "newest"
SORT_TRENDING = "trending"
SORT_RELEVANCE = "relevance"


@dataclass(slots=True)
class PostQuery:
    """Filters for listing active posts."""

    type: str = "recipe"
    text_like: str | None = None
    id_sets: list[list[str]] = field(default_factory=list)
    approach_id: str | None = None
    diet_tags: Sequence[str] = ()
    sort: str = SORT_RELEVANCE
    has_text: bool = False
    limit: int = 12
    offset: int = 0


@dataclass(slots=True)
class VoteTally:
    net: int = 0
    trending: int = 0


class PostsRepository(BaseRepository):
    """Query posts, approaches and votes for the structured search surface."""

    async def approach_id_for_slug(self, slug: str) -> str | None:
        async with self._connection() as conn:
            cursor = await conn.execute(
                "SELECT id FROM approaches WHERE slug = ?",
                (slug,),
            )
            row = await cursor.fetchone()
        return row["id"] if row else None

    def _where(self, query: PostQuery) -> tuple[str, list[Any]]:
        clauses = ["p.status = 'active'", "p.type = ?"]
        params: list[Any] = [query.type]
        if query.text_like:
            pattern = f"%{escape_like(query.text_like)}%"
            clauses.append(
                "(p.title LIKE ? ESCAPE '\\' OR coalesce(p.summary, '') LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern])
        for ids in query.id_sets:
            placeholders = ", ".join("?" for _ in ids) or "NULL"
            clauses.append(f"p.id IN ({placeholders})")
            params.extend(ids)
        if query.approach_id:
            clauses.append("p.approach_id = ?")
            params.append(query.approach_id)
        for tag in query.diet_tags:
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(p.diet_tags) WHERE value = ?)"
            )
            params.append(tag)
        return " AND ".join(clauses), params

    @staticmethod
    def _order(query: PostQuery) -> str:
        if query.sort in (SORT_NEWEST, SORT_TRENDING):
            return "p.created_at DESC"
        if not query.has_text:
            return "p.quality_score IS NULL, p.quality_score DESC, p.created_at DESC"
        return "p.created_at DESC"

    async def list_posts(self, query: PostQuery) -> tuple[list[aiosqlite.Row], int]:
        """Return one page of matching posts and the total match count."""

        where, params = self._where(query)
        async with self._connection() as conn:
            cursor = await conn.execute(
                f"SELECT COUNT(*) AS total FROM posts p WHERE {where}",
                params,
            )
            count_row = await cursor.fetchone()
            cursor = await conn.execute(
                f"""
                SELECT
                    p.id, p.slug, p.title, p.summary, p.hero_image_url,
                    p.approach_id, p.is_tested, p.quality_score, p.diet_tags,
                    p.food_tags, p.type, p.status, p.created_at, p.created_by,
                    a.name AS approach_name, a.slug AS approach_slug
                FROM posts p
                LEFT JOIN approaches a ON a.id = p.approach_id
                WHERE {where}
                ORDER BY {self._order(query)}
                LIMIT ? OFFSET ?
                """,
                [*params, int(query.limit), int(query.offset)],
            )
            rows = list(await cursor.fetchall())
        total = int(count_row["total"]) if count_row else 0
        return rows, total

    async def vote_tallies(
        self, post_ids: Sequence[str], since: str
    ) -> dict[str, VoteTally]:
        """Return net votes and net votes cast at or after ``since`` per post."""

        unique = list(dict.fromkeys(post_ids))
        if not unique:
            return {}
        placeholders = ", ".join("?" for _ in unique)
        async with self._connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT
                    post_id,
                    coalesce(SUM(value), 0) AS net,
                    coalesce(SUM(CASE WHEN created_at >= ? THEN value ELSE 0 END), 0)
                        AS trending
                FROM votes
                WHERE post_id IN ({placeholders})
                GROUP BY post_id
                """,
                [since, *unique],
            )
            rows = await cursor.fetchall()
        return {
            row["post_id"]: VoteTally(net=int(row["net"]), trending=int(row["trending"]))
            for row in rows
        }

    async def upsert_approach(self, approach: Mapping[str, Any]) -> None:
        async with self._connection() as conn:

            async def _tx() -> None:
                await conn.execute(
                    """
                    INSERT INTO approaches (id, name, slug, description)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name=excluded.name,
                        slug=excluded.slug,
                        description=excluded.description
                    """,
                    (
                        str(approach["id"]),
                        approach.get("name") or str(approach["id"]),
                        approach.get("slug") or str(approach["id"]),
                        approach.get("description"),
                    ),
                )

            await self._run_in_transaction(conn, _tx)

    async def upsert_post(self, post: Mapping[str, Any]) -> None:
        async with self._connection() as conn:

            async def _tx() -> None:
                await conn.execute(
                    """
                    INSERT INTO posts (
                        id, slug, title, summary, hero_image_url, type, status,
                        approach_id, is_tested, quality_score, diet_tags, food_tags,
                        created_by, created_at
                    ) VALUES (
                        ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                        coalesce(?, CURRENT_TIMESTAMP)
                    )
                    ON CONFLICT(id) DO UPDATE SET
                        slug=excluded.slug,
                        title=excluded.title,
                        summary=excluded.summary,
                        hero_image_url=excluded.hero_image_url,
                        type=excluded.type,
                        status=excluded.status,
                        approach_id=excluded.approach_id,
                        is_tested=excluded.is_tested,
                        quality_score=excluded.quality_score,
                        diet_tags=excluded.diet_tags,
                        food_tags=excluded.food_tags,
                        created_by=excluded.created_by
                    """,
                    (
                        str(post["id"]),
                        post.get("slug"),
                        post.get("title") or "",
                        post.get("summary"),
                        post.get("hero_image_url"),
                        post.get("type") or "recipe",
                        post.get("status") or "active",
                        post.get("approach_id"),
                        1 if post.get("is_tested") else 0,
                        post.get("quality_score"),
                        orjson.dumps(list(post.get("diet_tags") or [])).decode(),
                        orjson.dumps(list(post.get("food_tags") or [])).decode(),
                        orjson.dumps(dict(post.get("created_by") or {})).decode(),
                        post.get("created_at"),
                    ),
                )

            await self._run_in_transaction(conn, _tx)

    async def record_vote(
        self, post_id: str, user_id: str, value: int, created_at: str | None = None
    ) -> None:
        async with self._connection() as conn:

            async def _tx() -> None:
                await conn.execute(
                    """
                    INSERT INTO votes (post_id, user_id, value, created_at)
                    VALUES (?, ?, ?, coalesce(?, CURRENT_TIMESTAMP))
                    ON CONFLICT(post_id, user_id) DO UPDATE SET
                        value=excluded.value,
                        created_at=excluded.created_at
                    """,
                    (post_id, user_id, 1 if value > 0 else -1, created_at),
                )

            await self._run_in_transaction(conn, _tx)


__all__ = [
    "POST_TYPES",
    "PostQuery",
    "PostsRepository",
    "SORT_NEWEST",
    "SORT_RELEVANCE",
    "SORT_TRENDING",
    "VoteTally",
]
