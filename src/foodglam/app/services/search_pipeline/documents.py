"""Candidate document projection shared by retrieval, filtering and ranking."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

import orjson

logger = logging.getLogger(__name__)


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _coerce_recipe_json(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, (bytes, bytearray, memoryview, str)):
        try:
            value = orjson.loads(value)
        except orjson.JSONDecodeError:
            logger.debug("Discarding undecodable recipe body")
            return {}
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _coerce_rank(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def row_get(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    try:
        return row[key]
    except (IndexError, KeyError):
        return getattr(row, key, None)


@dataclass(slots=True, frozen=True)
class CandidateDocument:
    """Denormalised recipe projection built fresh for every request."""

    id: str
    title: str = ""
    summary: str = ""
    recipe_json: dict[str, Any] = field(default_factory=dict, compare=False)
    hero_image_url: str | None = None
    rank: float | None = None

    @classmethod
    def from_row(cls, row: Any, rank: Any = None) -> "CandidateDocument":
        """Coerce a store row, mapping or corpus record into a document.

        ``rank`` overrides any rank present on the row itself.
        """

        raw_id = row_get(row, "id")
        if raw_id is None or raw_id == "":
            raise ValueError("Candidate rows require an id")
        hero = row_get(row, "hero_image_url")
        return cls(
            id=str(raw_id),
            title=_coerce_text(row_get(row, "title")),
            summary=_coerce_text(row_get(row, "summary")),
            recipe_json=_coerce_recipe_json(row_get(row, "recipe_json")),
            hero_image_url=str(hero) if hero else None,
            rank=_coerce_rank(rank if rank is not None else row_get(row, "rank")),
        )

    def with_rank(self, rank: float | None) -> "CandidateDocument":
        return replace(self, rank=rank)

    @property
    def name(self) -> str:
        return _coerce_text(self.recipe_json.get("name"))

    @property
    def ingredients(self) -> list[str]:
        raw = self.recipe_json.get("recipeIngredient")
        if isinstance(raw, (list, tuple)):
            return [str(item) for item in raw if item is not None]
        if raw:
            return [str(raw)]
        return []

    @property
    def searchable_text(self) -> str:
        """Lowercased title, summary and ingredients used by post-filters."""

        parts = [self.title, self.summary, " ".join(self.ingredients)]
        return " ".join(part for part in parts if part).lower()

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "recipe_json": self.recipe_json,
            "hero_image_url": self.hero_image_url,
            "rank": self.rank,
        }


__all__ = ["CandidateDocument", "row_get"]
