"""Text folding helpers shared by query expansion and matching."""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache

WORD_PATTERN = re.compile(r"\w+")
_WHITESPACE = re.compile(r"\s+")


@lru_cache(maxsize=4096)
def fold(value: str) -> str:
    """Lowercase ``value``, strip diacritics and collapse whitespace."""

    decomposed = unicodedata.normalize("NFKD", value or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped.lower()).strip()


def words(value: str) -> list[str]:
    """Return the folded word tokens of ``value`` in order, without duplicates."""

    return list(dict.fromkeys(WORD_PATTERN.findall(fold(value))))


def slugify(value: str) -> str:
    return _WHITESPACE.sub("-", (value or "").strip().lower())


__all__ = ["WORD_PATTERN", "fold", "words", "slugify"]
