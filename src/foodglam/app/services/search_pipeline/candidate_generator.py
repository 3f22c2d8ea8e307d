"""Candidate retrieval for the search pipeline.

Retrieval runs an ordered chain of strategies against the recipe store. The
loop is strategy-major: every expanded term is tried with the ranked
full-text strategy before any term is tried with the fuzzy one, and so on.
The first attempt that produces documents ends the chain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence

from .documents import CandidateDocument, row_get
from .exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class RecipeStore(Protocol):
    """Query surface the retrieval chain needs from the recipe store."""

    async def search_full_text(self, term: str, limit: int) -> Sequence[Any]:
        """Return ranked ``{id, rank}`` hits, best first."""

        ...

    async def search_trigram(self, term: str, limit: int) -> Sequence[Any]:
        """Return ``{id, rank}`` hits ordered by trigram similarity."""

        ...

    async def search_title_contains(self, term: str, limit: int) -> Sequence[Any]:
        ...

    async def fetch_by_ids(self, ids: Sequence[str]) -> Sequence[Any]:
        ...

    async def browse(self, limit: int) -> Sequence[Any]:
        ...


class RetrievalStrategyName(str, Enum):
    PRIMARY = "primary"
    FUZZY = "fuzzy"
    SUBSTRING = "substring"
    NONE = "none"
    BROWSE = "browse"


FALLBACK_LABELS: Mapping[RetrievalStrategyName, str | None] = {
    RetrievalStrategyName.PRIMARY: None,
    RetrievalStrategyName.FUZZY: "trigram",
    RetrievalStrategyName.SUBSTRING: "ilike",
    RetrievalStrategyName.NONE: None,
    RetrievalStrategyName.BROWSE: None,
}


@dataclass(slots=True, frozen=True)
class RetrievalOutcome:
    """Documents found by the chain and the strategy that found them."""

    documents: tuple[CandidateDocument, ...]
    strategy: RetrievalStrategyName

    @property
    def fallback(self) -> str | None:
        return FALLBACK_LABELS[self.strategy]

    def __bool__(self) -> bool:
        return bool(self.documents)


def _coerce_documents(rows: Sequence[Any] | None) -> list[CandidateDocument]:
    documents: list[CandidateDocument] = []
    for row in rows or ():
        try:
            documents.append(CandidateDocument.from_row(row))
        except ValueError:
            logger.debug("Skipping store row without id: %r", row)
    return documents


async def _hydrate(
    store: RecipeStore, hits: Sequence[Any], limit: int
) -> list[CandidateDocument]:
    """Fetch display rows for ranked ``hits`` keeping the hit order and rank."""

    ordered: list[tuple[str, Any]] = []
    seen: set[str] = set()
    for hit in hits:
        raw_id = row_get(hit, "id")
        if raw_id is None or raw_id == "":
            continue
        hit_id = str(raw_id)
        if hit_id in seen:
            continue
        seen.add(hit_id)
        ordered.append((hit_id, row_get(hit, "rank")))
        if len(ordered) >= limit:
            break
    if not ordered:
        return []

    rows = await store.fetch_by_ids([hit_id for hit_id, _ in ordered])
    by_id: dict[str, Any] = {}
    for row in rows or ():
        raw_id = row_get(row, "id")
        if raw_id is not None:
            by_id[str(raw_id)] = row

    documents: list[CandidateDocument] = []
    for hit_id, rank in ordered:
        row = by_id.get(hit_id)
        if row is None:
            continue
        documents.append(CandidateDocument.from_row(row, rank=rank))
    return documents


class RetrievalStrategy(Protocol):
    """One retrieval technique tried for a single expanded term."""

    name: RetrievalStrategyName

    async def attempt(
        self, store: RecipeStore, term: str, limit: int
    ) -> list[CandidateDocument]:
        ...


class FullTextStrategy:
    """Ranked full-text search, the most precise strategy."""

    name = RetrievalStrategyName.PRIMARY

    async def attempt(
        self, store: RecipeStore, term: str, limit: int
    ) -> list[CandidateDocument]:
        hits = await store.search_full_text(term, limit)
        return await _hydrate(store, hits, limit)


class TrigramStrategy:
    """Trigram similarity search that tolerates typos and inflection."""

    name = RetrievalStrategyName.FUZZY

    async def attempt(
        self, store: RecipeStore, term: str, limit: int
    ) -> list[CandidateDocument]:
        hits = await store.search_trigram(term, limit)
        return await _hydrate(store, hits, limit)


class SubstringStrategy:
    """Case-insensitive title containment. Results carry no rank."""

    name = RetrievalStrategyName.SUBSTRING

    async def attempt(
        self, store: RecipeStore, term: str, limit: int
    ) -> list[CandidateDocument]:
        rows = await store.search_title_contains(term, limit)
        return [doc.with_rank(None) for doc in _coerce_documents(rows)][:limit]


DEFAULT_STRATEGIES: tuple[RetrievalStrategy, ...] = (
    FullTextStrategy(),
    TrigramStrategy(),
    SubstringStrategy(),
)


class RetrievalChain:
    """Try each strategy for each term in order until one yields documents."""

    def __init__(
        self,
        store: RecipeStore,
        *,
        browse_limit: int = 200,
        strategies: Sequence[RetrievalStrategy] | None = None,
    ) -> None:
        self._store = store
        self._browse_limit = browse_limit
        self._strategies = tuple(strategies or DEFAULT_STRATEGIES)

    @property
    def strategies(self) -> tuple[RetrievalStrategy, ...]:
        return self._strategies

    async def retrieve(self, terms: Sequence[str], limit: int) -> RetrievalOutcome:
        """Return the first non-empty result of the strategy chain.

        An empty ``terms`` sequence means browse-all and returns an unranked
        page of recent documents. :class:`StoreUnavailable` propagates; any
        other failure only ends the current attempt.
        """

        if not terms:
            try:
                rows = await self._store.browse(self._browse_limit)
            except StoreUnavailable:
                raise
            except Exception:
                logger.debug("Browse retrieval failed", exc_info=True)
                rows = []
            documents = _coerce_documents(rows)[: self._browse_limit]
            logger.debug("Browse retrieval returned %d documents", len(documents))
            return RetrievalOutcome(tuple(documents), RetrievalStrategyName.BROWSE)

        for strategy in self._strategies:
            for term in terms:
                try:
                    documents = await strategy.attempt(self._store, term, limit)
                except StoreUnavailable:
                    raise
                except Exception:
                    logger.debug(
                        "Strategy %s failed for term %r",
                        strategy.name.value,
                        term,
                        exc_info=True,
                    )
                    continue
                if documents:
                    logger.debug(
                        "Strategy %s matched %d documents for term %r",
                        strategy.name.value,
                        len(documents),
                        term,
                    )
                    return RetrievalOutcome(tuple(documents), strategy.name)

        logger.debug("Retrieval chain exhausted for terms %r", list(terms))
        return RetrievalOutcome((), RetrievalStrategyName.NONE)


__all__ = [
    "DEFAULT_STRATEGIES",
    "FALLBACK_LABELS",
    "FullTextStrategy",
    "RecipeStore",
    "RetrievalChain",
    "RetrievalOutcome",
    "RetrievalStrategy",
    "RetrievalStrategyName",
    "SubstringStrategy",
    "TrigramStrategy",
]
