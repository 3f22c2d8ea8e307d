"""Search pipeline component interfaces and defaults."""
from __future__ import annotations

from .exceptions import InvalidSearchQuery, StoreUnavailable
from .documents import CandidateDocument
from .alias_expander import AliasDictionary, AliasExpander
from .normalizer import BaseSearchNormalizer, DefaultSearchNormalizer, SearchRequest
from .candidate_generator import (
    FullTextStrategy,
    RecipeStore,
    RetrievalChain,
    RetrievalOutcome,
    RetrievalStrategyName,
    SubstringStrategy,
    TrigramStrategy,
)
from .post_filter import BasePostFilter, GeoCourseFilter
from .reranker import BaseSearchReranker, DefaultSearchReranker, RecipeScorer
from .pipeline import (
    MOCK_FALLBACK,
    RankedResultSet,
    SearchPipeline,
    SearchPipelineComponents,
)

__all__ = [
    "InvalidSearchQuery",
    "StoreUnavailable",
    "CandidateDocument",
    "AliasDictionary",
    "AliasExpander",
    "BaseSearchNormalizer",
    "DefaultSearchNormalizer",
    "SearchRequest",
    "FullTextStrategy",
    "RecipeStore",
    "RetrievalChain",
    "RetrievalOutcome",
    "RetrievalStrategyName",
    "SubstringStrategy",
    "TrigramStrategy",
    "BasePostFilter",
    "GeoCourseFilter",
    "BaseSearchReranker",
    "DefaultSearchReranker",
    "RecipeScorer",
    "MOCK_FALLBACK",
    "RankedResultSet",
    "SearchPipeline",
    "SearchPipelineComponents",
]
