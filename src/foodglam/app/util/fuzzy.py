"""Typo-tolerant title similarity backed by rapidfuzz."""

from __future__ import annotations

from rapidfuzz import fuzz, process

from .text import words


def word_similarity(query: str, text: str | None) -> float:
    """Return how closely the words of ``query`` match words of ``text``.

    Every folded query word is paired with its best scoring word in ``text``
    by :func:`rapidfuzz.fuzz.ratio`. The result is the mean of those scores
    scaled to ``0.0 .. 1.0``.
    """

    query_words = words(query or "")
    text_words = words(text or "")
    if not query_words or not text_words:
        return 0.0
    total = 0.0
    for word in query_words:
        best = process.extractOne(word, text_words, scorer=fuzz.ratio)
        if best is not None:
            total += best[1]
    return total / (100.0 * len(query_words))


__all__ = ["word_similarity"]
