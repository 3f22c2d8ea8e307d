"""Composable pipeline orchestration for free-text recipe search."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from foodglam.app.services.search_cache import SearchCache

from .alias_expander import AliasExpander
from .candidate_generator import RetrievalChain, RetrievalOutcome, RetrievalStrategyName
from .documents import CandidateDocument
from .exceptions import StoreUnavailable
from .normalizer import BaseSearchNormalizer, SearchRequest
from .post_filter import BasePostFilter
from .reranker import BaseSearchReranker

if TYPE_CHECKING:
    from foodglam.app.services.fallback_corpus import FallbackCorpus

logger = logging.getLogger(__name__)

MOCK_FALLBACK = "mock"


@dataclass(slots=True)
class SearchPipelineComponents:
    """Concrete pipeline step implementations."""

    normalizer: BaseSearchNormalizer
    expander: AliasExpander
    retrieval: RetrievalChain
    post_filter: BasePostFilter
    reranker: BaseSearchReranker
    cache: SearchCache
    corpus: "FallbackCorpus"


@dataclass(slots=True, frozen=True)
class RankedResultSet:
    """One page of ranked documents plus the metadata describing how it was built."""

    documents: tuple[CandidateDocument, ...]
    total: int
    page: int
    page_size: int
    has_more: bool
    fallback: str | None
    expanded_terms: tuple[str, ...] | None
    strategy: RetrievalStrategyName

    def as_payload(self) -> dict[str, Any]:
        return {
            "results": [doc.as_dict() for doc in self.documents],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "hasMore": self.has_more,
            "fallback": self.fallback,
            "expandedTerms": list(self.expanded_terms) if self.expanded_terms else None,
        }


@dataclass(slots=True)
class SearchPipeline:
    """Execute the configured search pipeline components in order."""

    components: SearchPipelineComponents
    cache_ttl: float = 30

    def _mock_pool(self, request: SearchRequest) -> list[CandidateDocument]:
        documents = list(self.components.corpus.documents)
        if request.is_browse:
            return documents
        matched = self.components.reranker.matching(documents, request.text)
        return matched or documents

    async def _retrieve(
        self, terms: list[str], limit: int
    ) -> RetrievalOutcome | None:
        try:
            return await self.components.retrieval.retrieve(terms, limit)
        except StoreUnavailable as exc:
            logger.info("Recipe store unavailable, serving fallback corpus: %s", exc)
            return None

    async def execute(self, raw: Any) -> RankedResultSet:
        """Validate, expand, retrieve, filter, rank and paginate ``raw``.

        Raises :class:`InvalidSearchQuery` for malformed requests. Results are
        cached under the request signature and a cached result is returned
        unchanged.
        """

        comps = self.components

        request = comps.normalizer.normalize(raw)
        cache_key = request.cache_key()
        cached = comps.cache.get(cache_key)
        if cached is not None:
            return cached

        terms = [] if request.is_browse else comps.expander.expand(request.text)
        limit = request.window_end + request.page_size

        outcome = await self._retrieve(terms, limit)
        if outcome:
            pool = list(outcome.documents)
            fallback = outcome.fallback
            strategy = outcome.strategy
        else:
            pool = self._mock_pool(request)
            fallback = MOCK_FALLBACK
            strategy = outcome.strategy if outcome is not None else RetrievalStrategyName.NONE
            logger.info(
                "Substituting %d fallback recipes for query %r", len(pool), request.text
            )

        pool = comps.post_filter.apply(
            pool,
            region=request.region,
            country=request.country,
            course=request.course,
        )

        if not request.is_browse:
            pool = comps.reranker.rank(pool, request.text)

        total = len(pool)
        result = RankedResultSet(
            documents=tuple(pool[request.offset : request.window_end]),
            total=total,
            page=request.page,
            page_size=request.page_size,
            has_more=total > request.window_end,
            fallback=fallback,
            expanded_terms=tuple(terms) or None,
            strategy=strategy,
        )
        comps.cache.set(cache_key, result, self.cache_ttl)
        return result


__all__ = [
    "MOCK_FALLBACK",
    "RankedResultSet",
    "SearchPipeline",
    "SearchPipelineComponents",
]
