import logging
from typing import Any, Mapping

from foodglam.app.services.post_search import PostSearchService
from foodglam.app.services.search_cache import SearchResultCache
from foodglam.app.services.search_config import SearchConfig
from foodglam.app.services.similar_recipes import SimilarRecipesService
from foodglam.app.services.search_pipeline import (
    InvalidSearchQuery,
    RankedResultSet,
    SearchPipeline,
)


logger = logging.getLogger(__name__)


class SearchAPI:
    """High level search interface shared by the HTTP routes."""

    def __init__(
        self,
        pipeline: SearchPipeline,
        post_search: PostSearchService,
        similar_recipes: SimilarRecipesService,
        *,
        config: SearchConfig,
        cache: SearchResultCache | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.post_search = post_search
        self.similar_recipes = similar_recipes
        self._config = config
        self._cache = cache

    @property
    def config(self) -> SearchConfig:
        return self._config

    async def start(self) -> None:
        logger.info(
            "Search API ready (page size %d, cache ttl %ss, browse limit %d)",
            self._config.limits.default_page_size,
            self._config.cache.ttl,
            self._config.limits.browse_limit,
        )

    async def stop(self) -> None:
        if self._cache is not None:
            self._cache.clear()
        logger.debug("Search API stopped")

    async def search(self, raw: Any) -> RankedResultSet:
        """Run the free-text pipeline for a request body.

        Raises :class:`InvalidSearchQuery` for malformed bodies.
        """

        return await self.pipeline.execute(raw)

    async def search_posts(self, args: Mapping[str, Any]) -> dict[str, Any]:
        filters = self.post_search.parse(args)
        return await self.post_search.search(filters)

    async def similar(self, recipe_id: str) -> list[dict[str, Any]]:
        return await self.similar_recipes.similar(recipe_id)


__all__ = ["SearchAPI", "InvalidSearchQuery"]
