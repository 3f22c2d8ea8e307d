"""Geographic and course narrowing applied after retrieval."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, Sequence

from foodglam.app.services.taxonomy import Taxonomy

from .documents import CandidateDocument

logger = logging.getLogger(__name__)

ALL_COURSES = "all"


class BasePostFilter(Protocol):
    def apply(
        self,
        documents: Sequence[CandidateDocument],
        region: str | None = None,
        country: str | None = None,
        course: str | None = None,
    ) -> list[CandidateDocument]:
        ...


def _matching(
    documents: Sequence[CandidateDocument], keywords: Iterable[str]
) -> list[CandidateDocument]:
    needles = tuple(keyword for keyword in keywords if keyword)
    if not needles:
        return list(documents)
    return [
        doc
        for doc in documents
        if any(needle in doc.searchable_text for needle in needles)
    ]


class GeoCourseFilter:
    """Narrow documents by region, country and course keywords.

    Each step is advisory: a step that would leave nothing from a non-empty
    input is skipped and the previous set is kept.
    """

    def __init__(self, taxonomy: Taxonomy) -> None:
        self._taxonomy = taxonomy

    @property
    def taxonomy(self) -> Taxonomy:
        return self._taxonomy

    def _step(
        self,
        label: str,
        documents: list[CandidateDocument],
        keywords: Sequence[str],
    ) -> list[CandidateDocument]:
        narrowed = _matching(documents, keywords)
        if documents and not narrowed:
            logger.debug(
                "Reverting %s filter that would remove all %d documents",
                label,
                len(documents),
            )
            return documents
        return narrowed

    def apply(
        self,
        documents: Sequence[CandidateDocument],
        region: str | None = None,
        country: str | None = None,
        course: str | None = None,
    ) -> list[CandidateDocument]:
        current = list(documents)
        taxonomy = self._taxonomy

        found_region = taxonomy.region(region)
        found_country = taxonomy.country(country)
        if found_region is not None and found_country is not None:
            if found_country.region_id != found_region.id:
                logger.debug(
                    "Ignoring country %s outside region %s",
                    found_country.id,
                    found_region.id,
                )
                found_country = None

        if found_region is not None and found_country is None:
            current = self._step(f"region {found_region.id}", current, found_region.keywords)
        elif found_country is not None:
            current = self._step(
                f"country {found_country.id}", current, found_country.food_tags
            )

        found_course = taxonomy.course(course)
        if found_course is not None and found_course.id != ALL_COURSES:
            current = self._step(f"course {found_course.id}", current, found_course.tags)

        return current


__all__ = ["ALL_COURSES", "BasePostFilter", "GeoCourseFilter"]
