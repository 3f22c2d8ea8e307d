import logging
from pathlib import Path
from typing import Any, Mapping, Sequence, TypeVar, cast

import aiosqlite
from aiosqlitepool import SQLiteConnectionPool
from aiosqlitepool.protocols import Connection as SQLitePoolConnection

from foodglam.settings import settings
from foodglam.util import resolve_data_path

from foodglam.app.db.base import run_in_transaction
from foodglam.app.db.posts import PostsRepository
from foodglam.app.db.recipes import RecipesRepository
from foodglam.app.services.search_pipeline.exceptions import StoreUnavailable
from foodglam.app.util import fold, word_similarity


logger = logging.getLogger(__name__)

RepositoryT = TypeVar("RepositoryT")


SCHEMA_PATH = resolve_data_path(
    "sql/schema.sql",
    fallback_dir=Path(__file__).resolve().parents[1] / "sql",
)


class LocalDB:
    """Facade around SQLite repositories with shared connection pooling.

    The facade doubles as the recipe store used by the search pipeline. Store
    calls made before :meth:`init` or after :meth:`close` raise
    :class:`StoreUnavailable` so callers can degrade gracefully.
    """

    def __init__(self, db_path: str | None = None):
        raw_path = Path(db_path or settings.DATABASE.path)
        self.db_path = raw_path.expanduser().resolve(strict=False)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.pool: SQLiteConnectionPool | None = None
        self._recipes: RecipesRepository | None = None
        self._posts: PostsRepository | None = None

    async def __aenter__(self) -> "LocalDB":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def init(self) -> None:
        if self.pool is not None:
            return

        is_new = not self.db_path.exists()
        acquisition_timeout = int(settings.DATABASE.pool_acquire_timeout)

        async def _connection_factory() -> SQLitePoolConnection:
            return cast(SQLitePoolConnection, await self._create_connection())

        pool = SQLiteConnectionPool(
            _connection_factory,
            pool_size=int(settings.DATABASE.pool_size),
            acquisition_timeout=acquisition_timeout,
        )
        self.pool = pool
        try:
            await self._ensure_schema(is_new)
            self._configure_repositories()
        except Exception:
            await pool.close()
            self.pool = None
            self._recipes = None
            self._posts = None
            raise

    async def close(self) -> None:
        if self.pool is not None:
            try:
                await self.pool.close()
            finally:
                self.pool = None
        self._recipes = None
        self._posts = None

    async def _create_connection(self) -> aiosqlite.Connection:
        try:
            conn = await aiosqlite.connect(
                self.db_path, timeout=float(settings.DATABASE.timeout)
            )
        except (aiosqlite.Error, OSError) as exc:
            raise StoreUnavailable(f"Unable to open {self.db_path}: {exc}") from exc
        await conn.execute(
            f"PRAGMA busy_timeout = {int(settings.DATABASE.busy_timeout)}"
        )
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute("PRAGMA synchronous = NORMAL")
        await conn.execute("PRAGMA temp_store = MEMORY")
        await conn.create_function(
            "word_similarity", 2, word_similarity, deterministic=True
        )
        await conn.create_function("fold", 1, fold, deterministic=True)
        conn.row_factory = aiosqlite.Row
        return conn

    async def _ensure_schema(self, is_new: bool) -> None:
        if is_new:
            logger.info("Creating new database at %s", self.db_path)
        if not self.pool:
            raise RuntimeError("Connection pool not initialized")
        schema_sql = SCHEMA_PATH.read_text()
        async with self.pool.connection() as conn:
            await run_in_transaction(
                conn,
                conn.executescript,
                schema_sql,
            )

    def _configure_repositories(self) -> None:
        if not self.pool:
            raise RuntimeError("Connection pool not initialized")
        self._recipes = RecipesRepository(
            self.pool,
            trigram_threshold=float(settings.SEARCH.fuzzy.threshold),
        )
        self._posts = PostsRepository(self.pool)

    def _require_repository(
        self, repository: RepositoryT | None, name: str
    ) -> RepositoryT:
        if repository is None:
            raise StoreUnavailable(
                f"{name} repository is not initialised; call init() before accessing it."
            )
        return repository

    @property
    def recipes(self) -> RecipesRepository:
        """Return the recipes repository."""

        return self._require_repository(self._recipes, "Recipes")

    @property
    def posts(self) -> PostsRepository:
        """Return the posts repository."""

        return self._require_repository(self._posts, "Posts")

    async def ping(self) -> bool:
        """Return whether the store answers a trivial query."""

        try:
            return await self.recipes.ping()
        except (StoreUnavailable, aiosqlite.Error):
            logger.debug("Recipe store health check failed", exc_info=True)
            return False

    async def search_full_text(self, term: str, limit: int) -> list[dict[str, Any]]:
        return await self.recipes.search_full_text(term, limit)

    async def search_trigram(self, term: str, limit: int) -> list[dict[str, Any]]:
        return await self.recipes.search_trigram(term, limit)

    async def search_title_contains(self, term: str, limit: int) -> list[aiosqlite.Row]:
        return await self.recipes.search_title_contains(term, limit)

    async def fetch_by_ids(self, ids: Sequence[str]) -> list[aiosqlite.Row]:
        return await self.recipes.fetch_by_ids(ids)

    async def browse(self, limit: int) -> list[aiosqlite.Row]:
        return await self.recipes.browse(limit)

    async def get_recipe(self, recipe_id: str) -> aiosqlite.Row | None:
        return await self.recipes.get_recipe(recipe_id)

    async def seed(
        self,
        recipes: Sequence[Mapping[str, Any]],
        posts: Sequence[Mapping[str, Any]] = (),
        approaches: Sequence[Mapping[str, Any]] = (),
    ) -> None:
        """Insert or update approaches, posts and recipes in dependency order."""

        for approach in approaches:
            await self.posts.upsert_approach(approach)
        for post in posts:
            await self.posts.upsert_post(post)
        for recipe in recipes:
            await self.recipes.upsert_recipe(recipe)
        logger.info(
            "Seeded %d approaches, %d posts and %d recipes",
            len(approaches),
            len(posts),
            len(recipes),
        )
