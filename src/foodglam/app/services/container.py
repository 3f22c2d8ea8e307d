"""Application service and lifecycle helpers."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass

import aiosqlite

from foodglam.persistence.local_db import LocalDB
from foodglam.app.api.search import SearchAPI
from foodglam.app.services.fallback_corpus import FallbackCorpus
from foodglam.app.services.post_search import PostSearchService
from foodglam.app.services.search_cache import SearchResultCache
from foodglam.app.services.search_config import SearchConfig
from foodglam.app.services.similar_recipes import SimilarRecipesService
from foodglam.app.services.taxonomy import Taxonomy
from foodglam.app.services.search_pipeline import (
    AliasDictionary,
    AliasExpander,
    DefaultSearchNormalizer,
    DefaultSearchReranker,
    GeoCourseFilter,
    RecipeScorer,
    RetrievalChain,
    SearchPipeline,
    SearchPipelineComponents,
    StoreUnavailable,
)
from foodglam.settings import settings


logger = logging.getLogger(__name__)

EXTENSION_KEY = "foodglam"


@dataclass(slots=True)
class AppServices:
    """Bundle long-lived application services."""

    db: LocalDB
    taxonomy: Taxonomy
    aliases: AliasDictionary
    corpus: FallbackCorpus
    cache: SearchResultCache
    search_api: SearchAPI

    @classmethod
    def create(cls, db: LocalDB | None = None) -> "AppServices":
        db = db or LocalDB()
        search_config = SearchConfig.from_settings(settings)
        taxonomy = Taxonomy.load(settings.DATA.taxonomy)
        aliases = AliasDictionary.load(settings.DATA.aliases)
        corpus = FallbackCorpus.load(settings.DATA.fallback_corpus)
        cache = SearchResultCache(
            maxsize=search_config.cache.maxsize,
            default_ttl=search_config.cache.ttl,
        )

        expander = AliasExpander(aliases)
        reranker = DefaultSearchReranker(RecipeScorer(expander))
        pipeline = SearchPipeline(
            SearchPipelineComponents(
                normalizer=DefaultSearchNormalizer(search_config),
                expander=expander,
                retrieval=RetrievalChain(
                    db, browse_limit=search_config.limits.browse_limit
                ),
                post_filter=GeoCourseFilter(taxonomy),
                reranker=reranker,
                cache=cache,
                corpus=corpus,
            ),
            cache_ttl=search_config.cache.ttl,
        )
        search_api = SearchAPI(
            pipeline,
            PostSearchService(db, corpus, cache, search_config.posts),
            SimilarRecipesService(db, corpus, reranker, cache, search_config.similar),
            config=search_config,
            cache=cache,
        )
        return cls(
            db=db,
            taxonomy=taxonomy,
            aliases=aliases,
            corpus=corpus,
            cache=cache,
            search_api=search_api,
        )


class AppLifecycle:
    """Manage startup and shutdown of long-lived application services."""

    def __init__(self, services: AppServices) -> None:
        self._services = services
        self._lock = asyncio.Lock()
        self._started = False

    async def __aenter__(self) -> "AppLifecycle":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def start(self) -> None:
        """Open the database and start the search API."""

        async with self._lock:
            if self._started:
                return

            logger.debug("Starting application lifecycle: db.init -> search_api.start")
            db_initialised = False
            try:
                try:
                    await self._services.db.init()
                    db_initialised = True
                except (StoreUnavailable, aiosqlite.Error, OSError):
                    # Searches keep working from the fallback corpus.
                    logger.warning(
                        "Recipe store could not be opened; serving fallback corpus",
                        exc_info=True,
                    )
                await self._services.search_api.start()
            except Exception:
                logger.debug(
                    "Startup failed; rolling back initialised services", exc_info=True
                )
                with suppress(Exception):
                    if db_initialised:
                        logger.debug("Rollback: closing database after startup failure")
                        await self._services.db.close()
                raise

            self._started = True
            logger.info("Application lifecycle started")

    async def stop(self) -> None:
        """Stop the search API and close the database."""

        async with self._lock:
            if not self._started:
                return
            self._started = False

        logger.debug("Stopping application lifecycle: search_api.stop -> db.close")
        errors: list[Exception] = []

        try:
            await self._services.search_api.stop()
        except Exception as exc:
            logger.exception("Failed to stop search API cleanly")
            errors.append(exc)

        try:
            await self._services.db.close()
        except Exception as exc:
            logger.exception("Failed to close database cleanly")
            errors.append(exc)

        if errors:
            raise errors[0]

        logger.info("Application lifecycle stopped")

    @property
    def services(self) -> AppServices:
        return self._services


def get_services() -> AppServices:
    """Return the :class:`AppServices` container of the running app."""

    from quart import current_app

    services = current_app.extensions.get(EXTENSION_KEY)
    if services is None:
        raise RuntimeError("App services container is not initialised")
    return services


def get_search_api() -> SearchAPI:
    """Convenience accessor for the search API service."""

    return get_services().search_api
