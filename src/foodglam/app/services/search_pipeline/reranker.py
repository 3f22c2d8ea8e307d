from __future__ import annotations

"""Result reranking component for the search pipeline."""

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

import ahocorasick

from foodglam.app.util.text import fold

from .alias_expander import AliasExpander
from .documents import CandidateDocument

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 12.0
NAME_WEIGHT = 9.0
SUMMARY_WEIGHT = 4.0
INGREDIENT_WEIGHT = 3.0
MATCH_BONUS = 2.0
EXACT_TITLE_BONUS = 30.0
RANK_WEIGHT = 2.0


@dataclass(slots=True)
class _FieldHits:
    title: set[str]
    name: set[str]
    summary: set[str]
    ingredients: set[str]

    @property
    def matched(self) -> set[str]:
        return self.title | self.name | self.summary | self.ingredients


class RecipeScorer:
    """Field-weighted, IDF-damped term overlap scorer.

    Query tokens are the alias expansion of the query. Each token that occurs
    in many documents of the pool counts for less, so rare ingredient hits
    outrank common ones.
    """

    def __init__(self, expander: AliasExpander | None = None) -> None:
        self._expander = expander

    def tokens(self, query: str) -> list[str]:
        if self._expander is not None:
            terms = self._expander.expand(query)
        else:
            terms = [query]
        return [token for token in dict.fromkeys(fold(term) for term in terms) if token]

    @staticmethod
    def _automaton(tokens: Sequence[str]) -> ahocorasick.Automaton:
        automaton = ahocorasick.Automaton()
        for token in tokens:
            automaton.add_word(token, token)
        automaton.make_automaton()
        return automaton

    @staticmethod
    def _hits(automaton: ahocorasick.Automaton, text: str) -> set[str]:
        if not text:
            return set()
        return {token for _end, token in automaton.iter(text)}

    def _field_hits(
        self, automaton: ahocorasick.Automaton, doc: CandidateDocument
    ) -> _FieldHits:
        return _FieldHits(
            title=self._hits(automaton, fold(doc.title)),
            name=self._hits(automaton, fold(doc.name)),
            summary=self._hits(automaton, fold(doc.summary)),
            ingredients=self._hits(automaton, fold(" ".join(doc.ingredients))),
        )

    def score_many(
        self, documents: Sequence[CandidateDocument], query: str
    ) -> list[float]:
        """Score every document in ``documents`` against ``query``.

        Token frequencies are counted over ``documents`` itself.
        """

        tokens = self.tokens(query)
        if not documents:
            return []
        if not tokens:
            return [0.0 for _ in documents]

        automaton = self._automaton(tokens)
        hits = [self._field_hits(automaton, doc) for doc in documents]
        frequency = {token: 0 for token in tokens}
        for doc_hits in hits:
            for token in doc_hits.matched:
                frequency[token] += 1

        folded_query = fold(query)
        scores: list[float] = []
        for doc, doc_hits in zip(documents, hits):
            score = 0.0
            for token in tokens:
                idf = 1.0 / max(1, frequency[token])
                if token in doc_hits.title:
                    score += TITLE_WEIGHT * idf
                if token in doc_hits.name:
                    score += NAME_WEIGHT * idf
                if token in doc_hits.summary:
                    score += SUMMARY_WEIGHT * idf
                if token in doc_hits.ingredients:
                    score += INGREDIENT_WEIGHT * idf
            score += MATCH_BONUS * len(doc_hits.matched)
            if folded_query and fold(doc.title) == folded_query:
                score += EXACT_TITLE_BONUS
            if doc.rank is not None:
                score += RANK_WEIGHT * doc.rank
            scores.append(score)
        return scores

    def score(self, doc: CandidateDocument, query: str) -> float:
        return self.score_many([doc], query)[0]


class BaseSearchReranker(Protocol):
    """Interface for producing the final ordered search results."""

    def rank(
        self,
        documents: Sequence[CandidateDocument],
        query: str,
        limit: int | None = None,
    ) -> list[CandidateDocument]:
        """Return ``documents`` ordered by descending relevance."""

    def matching(
        self, documents: Sequence[CandidateDocument], query: str
    ) -> list[CandidateDocument]:
        """Return the documents that score above zero, in input order."""


class DefaultSearchReranker:
    """Use the recipe scorer to order candidates."""

    def __init__(self, scorer: RecipeScorer | None = None) -> None:
        self._scorer = scorer or RecipeScorer()

    @property
    def scorer(self) -> RecipeScorer:
        """Expose the underlying :class:`RecipeScorer`."""

        return self._scorer

    def rank(
        self,
        documents: Sequence[CandidateDocument],
        query: str,
        limit: int | None = None,
    ) -> list[CandidateDocument]:
        if not documents:
            logger.debug("Reranker received no candidates for query %r", query)
            return []
        scores = self._scorer.score_many(documents, query)
        # sorted() is stable with reverse=True, so ties keep their input order.
        order = sorted(range(len(documents)), key=lambda idx: scores[idx], reverse=True)
        ranked = [documents[idx] for idx in order]
        if limit is not None:
            ranked = ranked[: max(limit, 0)]
        logger.debug("Reranker returning %d results", len(ranked))
        return ranked

    def matching(
        self, documents: Sequence[CandidateDocument], query: str
    ) -> list[CandidateDocument]:
        scores = self._scorer.score_many(documents, query)
        return [doc for doc, score in zip(documents, scores) if score > 0]


__all__ = [
    "BaseSearchReranker",
    "DefaultSearchReranker",
    "RecipeScorer",
]
