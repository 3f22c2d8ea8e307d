"""Multilingual ingredient alias expansion for free-text queries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import orjson

from foodglam.app.util.text import fold, words
from foodglam.util import resolve_data_path

logger = logging.getLogger(__name__)

LANGUAGES: tuple[str, ...] = ("en", "ro", "fr", "es", "it", "de")
BROWSE_ALL = "*"


@dataclass(slots=True, frozen=True)
class AliasDictionary:
    """Immutable canonical-ingredient table with a folded reverse index."""

    entries: Mapping[str, Mapping[str, tuple[str, ...]]]
    _reverse: Mapping[str, tuple[str, ...]] = field(repr=False, compare=False)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "AliasDictionary":
        entries: dict[str, Mapping[str, tuple[str, ...]]] = {}
        reverse: dict[str, list[str]] = {}

        def _index(alias: str, canonical: str) -> None:
            key = fold(alias)
            if not key:
                return
            bucket = reverse.setdefault(key, [])
            if canonical not in bucket:
                bucket.append(canonical)

        for raw_name, languages in raw.items():
            canonical = fold(str(raw_name))
            if not canonical:
                continue
            per_language: dict[str, tuple[str, ...]] = {}
            if isinstance(languages, Mapping):
                for lang in LANGUAGES:
                    values = languages.get(lang) or ()
                    if isinstance(values, str):
                        values = (values,)
                    per_language[lang] = tuple(
                        fold(str(value)) for value in values if str(value).strip()
                    )
            entries[canonical] = MappingProxyType(per_language)
            _index(canonical, canonical)
            for aliases in per_language.values():
                for alias in aliases:
                    _index(alias, canonical)

        return cls(
            entries=MappingProxyType(entries),
            _reverse=MappingProxyType(
                {key: tuple(value) for key, value in reverse.items()}
            ),
        )

    @classmethod
    def load(cls, path: str | Path) -> "AliasDictionary":
        """Load the dictionary from a JSON file resolved like other data paths."""

        resolved = resolve_data_path(str(path))
        raw = orjson.loads(resolved.read_bytes())
        if not isinstance(raw, Mapping):
            raise ValueError(f"Alias dictionary at {resolved} must be a JSON object")
        dictionary = cls.from_mapping(raw)
        logger.info(
            "Loaded %d ingredient alias entries from %s", len(dictionary), resolved
        )
        return dictionary

    def __len__(self) -> int:
        return len(self.entries)

    def canonicals_for(self, alias: str) -> tuple[str, ...]:
        """Return every canonical name whose alias list contains ``alias``."""

        return self._reverse.get(fold(alias), ())

    def resolve(self, name: str) -> str | None:
        """Return the canonical English name for ``name`` or ``None``."""

        matches = self.canonicals_for(name)
        return matches[0] if matches else None

    def english_variants(self, canonical: str) -> tuple[str, ...]:
        entry = self.entries.get(canonical)
        if entry is None:
            return ()
        return entry.get("en", ())


class AliasExpander:
    """Expand a query phrase into an ordered, raw-first list of search terms."""

    def __init__(self, dictionary: AliasDictionary) -> None:
        self._dictionary = dictionary

    @property
    def dictionary(self) -> AliasDictionary:
        return self._dictionary

    def _aliases(self, phrase: str) -> Iterable[str]:
        for canonical in self._dictionary.canonicals_for(phrase):
            yield canonical
            yield from self._dictionary.english_variants(canonical)

    def expand(self, term: str | None) -> list[str]:
        raw = " ".join((term or "").split()).lower()
        if not raw or raw == BROWSE_ALL:
            return []

        expanded: dict[str, None] = {raw: None}
        for alias in self._aliases(raw):
            expanded.setdefault(alias, None)

        tokens = words(raw)
        if len(tokens) > 1:
            for token in tokens:
                expanded.setdefault(token, None)
                for alias in self._aliases(token):
                    expanded.setdefault(alias, None)

        return list(expanded)


__all__ = ["AliasDictionary", "AliasExpander", "BROWSE_ALL", "LANGUAGES"]
