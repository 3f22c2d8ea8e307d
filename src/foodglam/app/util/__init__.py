"""Utility helpers for application-wide functionality."""

from .fuzzy import word_similarity
from .number import coerce_float, coerce_int
from .text import fold, slugify, words

__all__ = [
    "coerce_float",
    "coerce_int",
    "fold",
    "slugify",
    "words",
    "word_similarity",
]
