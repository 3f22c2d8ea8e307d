"""Static recipe corpus served when the recipe store is unavailable."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Sequence

import orjson

from foodglam.app.services.search_pipeline.documents import CandidateDocument
from foodglam.util import resolve_data_path

logger = logging.getLogger(__name__)


def _as_list(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return []


def record_to_document(record: Mapping[str, Any]) -> CandidateDocument:
    """Project a corpus record onto the shape of a store row."""

    ingredients = list(
        dict.fromkeys(_as_list(record.get("foodTags")) + _as_list(record.get("ingredients")))
    )
    return CandidateDocument.from_row(
        {
            "id": record.get("id"),
            "title": record.get("title"),
            "summary": record.get("summary"),
            "hero_image_url": record.get("hero_image_url"),
            "recipe_json": {
                "name": record.get("title") or "",
                "recipeIngredient": ingredients,
            },
        }
    )


@dataclass(slots=True, frozen=True)
class FallbackCorpus:
    """Immutable list of seed records with their document projections."""

    records: tuple[Mapping[str, Any], ...]
    documents: tuple[CandidateDocument, ...]

    @classmethod
    def from_records(cls, records: Sequence[Mapping[str, Any]]) -> "FallbackCorpus":
        kept: list[Mapping[str, Any]] = []
        for record in records:
            if record.get("id") in (None, ""):
                logger.warning(
                    "Skipping fallback recipe without id: %r", record.get("title")
                )
                continue
            kept.append(MappingProxyType(dict(record)))
        frozen = tuple(kept)
        return cls(
            records=frozen,
            documents=tuple(record_to_document(record) for record in frozen),
        )

    @classmethod
    def load(cls, path: str | Path) -> "FallbackCorpus":
        resolved = resolve_data_path(str(path))
        raw = orjson.loads(resolved.read_bytes())
        if not isinstance(raw, list):
            raise ValueError(f"Fallback corpus at {resolved} must be a JSON array")
        corpus = cls.from_records([item for item in raw if isinstance(item, Mapping)])
        logger.info("Loaded %d fallback recipes from %s", len(corpus), resolved)
        return corpus

    def __len__(self) -> int:
        return len(self.records)

    def record(self, recipe_id: str) -> Mapping[str, Any] | None:
        for record in self.records:
            if str(record.get("id")) == str(recipe_id):
                return record
        return None

    def document(self, recipe_id: str) -> CandidateDocument | None:
        for doc in self.documents:
            if doc.id == str(recipe_id):
                return doc
        return None


__all__ = ["FallbackCorpus", "record_to_document"]
