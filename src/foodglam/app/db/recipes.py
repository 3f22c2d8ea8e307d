from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import aiosqlite
import orjson
from aiosqlitepool import SQLiteConnectionPool

from foodglam.app.util.text import WORD_PATTERN, fold
from .base import BaseRepository

logger = logging.getLogger(__name__)

RECIPE_COLUMNS = "id, title, summary, recipe_json, hero_image_url"

# Column weights for bm25(): title, summary, ingredients.
BM25_WEIGHTS = (10.0, 4.0, 2.0)


def fts_query(term: str) -> str:
    """Build an FTS5 MATCH expression requiring every word of ``term``.

    Words are quoted so FTS5 operators in user input are treated as text.
    """

    tokens = WORD_PATTERN.findall(fold(term))
    return " ".join(f'"{token}"' for token in tokens)


class RecipesRepository(BaseRepository):
    """Read and write recipes plus their full-text index."""

    def __init__(
        self, pool: SQLiteConnectionPool | None, *, trigram_threshold: float = 0.5
    ) -> None:
        super().__init__(pool)
        self._trigram_threshold = float(trigram_threshold)

    async def search_full_text(self, term: str, limit: int) -> list[dict[str, Any]]:
        """Return ``{id, rank}`` hits ordered by weighted bm25 relevance."""

        match = fts_query(term)
        if not match:
            return []
        weights = ", ".join(str(weight) for weight in BM25_WEIGHTS)
        async with self._connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT r.id AS id, -bm25(recipes_fts, {weights}) AS rank
                FROM recipes_fts
                JOIN recipes r ON r.rowid = recipes_fts.rowid
                WHERE recipes_fts MATCH ?
                ORDER BY bm25(recipes_fts, {weights}), r.created_at DESC
                LIMIT ?
                """,
                (match, int(limit)),
            )
            rows = await cursor.fetchall()
        return [{"id": row["id"], "rank": row["rank"]} for row in rows]

    async def search_trigram(self, term: str, limit: int) -> list[dict[str, Any]]:
        """Return ``{id, rank}`` hits whose title resembles ``term``."""

        if not term.strip():
            return []
        async with self._connection() as conn:
            cursor = await conn.execute(
                """
                SELECT id, rank FROM (
                    SELECT id, created_at, word_similarity(?, title) AS rank
                    FROM recipes
                )
                WHERE rank >= ?
                ORDER BY rank DESC, created_at DESC
                LIMIT ?
                """,
                (term, self._trigram_threshold, int(limit)),
            )
            rows = await cursor.fetchall()
        return [{"id": row["id"], "rank": row["rank"]} for row in rows]

    async def search_title_contains(self, term: str, limit: int) -> list[aiosqlite.Row]:
        """Return rows whose folded title contains the folded ``term``."""

        needle = fold(term)
        if not needle:
            return []
        async with self._connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT {RECIPE_COLUMNS}
                FROM recipes
                WHERE instr(fold(title), ?) > 0
                ORDER BY created_at DESC
                LIMIT ?
                """,
                (needle, int(limit)),
            )
            return list(await cursor.fetchall())

    async def fetch_by_ids(self, ids: Sequence[str]) -> list[aiosqlite.Row]:
        """Return display rows for ``ids`` in no particular order."""

        unique = list(dict.fromkeys(str(recipe_id) for recipe_id in ids))
        if not unique:
            return []
        placeholders = ", ".join("?" for _ in unique)
        async with self._connection() as conn:
            cursor = await conn.execute(
                f"SELECT {RECIPE_COLUMNS} FROM recipes WHERE id IN ({placeholders})",
                unique,
            )
            return list(await cursor.fetchall())

    async def browse(self, limit: int) -> list[aiosqlite.Row]:
        """Return the most recent recipes without ranking."""

        async with self._connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT {RECIPE_COLUMNS}
                FROM recipes
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (int(limit),),
            )
            return list(await cursor.fetchall())

    async def get_recipe(self, recipe_id: str) -> aiosqlite.Row | None:
        async with self._connection() as conn:
            cursor = await conn.execute(
                f"SELECT {RECIPE_COLUMNS} FROM recipes WHERE id = ?",
                (str(recipe_id),),
            )
            return await cursor.fetchone()

    async def ping(self) -> bool:
        async with self._connection() as conn:
            cursor = await conn.execute("SELECT 1")
            row = await cursor.fetchone()
        return row is not None

    async def upsert_recipe(self, recipe: Mapping[str, Any]) -> None:
        """Insert or replace a recipe; triggers keep the FTS index in sync."""

        recipe_json = recipe.get("recipe_json") or {}
        if not isinstance(recipe_json, (str, bytes)):
            recipe_json = orjson.dumps(recipe_json).decode()
        elif isinstance(recipe_json, bytes):
            recipe_json = recipe_json.decode()

        async with self._connection() as conn:

            async def _tx() -> None:
                await conn.execute(
                    """
                    INSERT INTO recipes (
                        id, post_id, title, summary, recipe_json, hero_image_url,
                        cuisine_id, food_style_id, cookbook_id, chapter_id, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, coalesce(?, CURRENT_TIMESTAMP))
                    ON CONFLICT(id) DO UPDATE SET
                        post_id=excluded.post_id,
                        title=excluded.title,
                        summary=excluded.summary,
                        recipe_json=excluded.recipe_json,
                        hero_image_url=excluded.hero_image_url,
                        cuisine_id=excluded.cuisine_id,
                        food_style_id=excluded.food_style_id,
                        cookbook_id=excluded.cookbook_id,
                        chapter_id=excluded.chapter_id
                    """,
                    (
                        str(recipe["id"]),
                        recipe.get("post_id"),
                        recipe.get("title") or "",
                        recipe.get("summary"),
                        recipe_json,
                        recipe.get("hero_image_url"),
                        recipe.get("cuisine_id"),
                        recipe.get("food_style_id"),
                        recipe.get("cookbook_id"),
                        recipe.get("chapter_id"),
                        recipe.get("created_at"),
                    ),
                )

            await self._run_in_transaction(conn, _tx)

    async def post_ids_for_recipes(self, recipe_ids: Sequence[str]) -> list[str]:
        """Map recipe ids to their owning post ids, keeping the input order."""

        unique = list(dict.fromkeys(str(recipe_id) for recipe_id in recipe_ids))
        if not unique:
            return []
        placeholders = ", ".join("?" for _ in unique)
        async with self._connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT id, post_id FROM recipes
                WHERE id IN ({placeholders}) AND post_id IS NOT NULL
                """,
                unique,
            )
            rows = await cursor.fetchall()
        by_recipe = {row["id"]: row["post_id"] for row in rows}
        return list(
            dict.fromkeys(by_recipe[rid] for rid in unique if rid in by_recipe)
        )

    async def post_ids_for_hierarchy(self, filters: Mapping[str, str]) -> list[str]:
        """Return post ids whose recipes match every hierarchy column in ``filters``."""

        allowed = ("cuisine_id", "food_style_id", "cookbook_id", "chapter_id")
        clauses: list[str] = []
        params: list[str] = []
        for column in allowed:
            value = filters.get(column)
            if value:
                clauses.append(f"{column} = ?")
                params.append(str(value))
        if not clauses:
            return []
        async with self._connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT DISTINCT post_id FROM recipes
                WHERE post_id IS NOT NULL AND {' AND '.join(clauses)}
                """,
                params,
            )
            rows = await cursor.fetchall()
        return [row["post_id"] for row in rows]


__all__ = ["RecipesRepository", "fts_query", "BM25_WEIGHTS"]
