"""Similar recipe suggestions built on the search scorer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from foodglam.app.services.fallback_corpus import FallbackCorpus
from foodglam.app.services.search_cache import SearchCache
from foodglam.app.services.search_config import SimilarConfig
from foodglam.app.services.search_pipeline.documents import CandidateDocument
from foodglam.app.services.search_pipeline.exceptions import StoreUnavailable
from foodglam.app.services.search_pipeline.reranker import BaseSearchReranker

if TYPE_CHECKING:
    from foodglam.persistence.local_db import LocalDB

logger = logging.getLogger(__name__)


def similarity_query(doc: CandidateDocument) -> str:
    """Query made of the recipe name, or title, and its first ingredient."""

    name = doc.name or doc.title
    ingredients = doc.ingredients
    first = ingredients[0] if ingredients else ""
    return f"{name} {first}".strip()


class SimilarRecipesService:
    def __init__(
        self,
        db: "LocalDB",
        corpus: FallbackCorpus,
        reranker: BaseSearchReranker,
        cache: SearchCache,
        config: SimilarConfig,
    ) -> None:
        self._db = db
        self._corpus = corpus
        self._reranker = reranker
        self._cache = cache
        self._config = config

    async def _load(
        self, recipe_id: str
    ) -> tuple[CandidateDocument | None, list[CandidateDocument]]:
        try:
            row = await self._db.get_recipe(recipe_id)
            if row is None:
                return None, []
            rows = await self._db.browse(self._config.pool_limit)
        except StoreUnavailable as exc:
            logger.info("Recipe store unavailable, using fallback corpus: %s", exc)
            return self._corpus.document(recipe_id), list(self._corpus.documents)
        pool = [CandidateDocument.from_row(item) for item in rows]
        return CandidateDocument.from_row(row), pool

    async def similar(self, recipe_id: str) -> list[dict[str, Any]]:
        cache_key = f"similar:{recipe_id}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        target, pool = await self._load(recipe_id)
        if target is None:
            return []

        others = [doc for doc in pool if doc.id != target.id]
        query = similarity_query(target)
        matched = self._reranker.matching(others, query)
        ranked = self._reranker.rank(matched, query, self._config.limit)
        results = [doc.as_dict() for doc in ranked]
        self._cache.set(cache_key, results, self._config.cache_ttl)
        return results


__all__ = ["SimilarRecipesService", "similarity_query"]
