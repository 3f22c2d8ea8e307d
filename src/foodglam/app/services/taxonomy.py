"""Region, country and course reference tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import orjson

from foodglam.util import resolve_data_path

logger = logging.getLogger(__name__)


def _tags(values: Any) -> tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = (values,)
    return tuple(
        dict.fromkeys(str(value).strip().lower() for value in values if str(value).strip())
    )


@dataclass(slots=True, frozen=True)
class Country:
    id: str
    label: str
    region_id: str
    food_tags: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class Region:
    id: str
    label: str
    description: str = ""
    countries: tuple[Country, ...] = ()

    @property
    def keywords(self) -> tuple[str, ...]:
        """Every country food tag in the region followed by the region label."""

        merged: dict[str, None] = {}
        for country in self.countries:
            for tag in country.food_tags:
                merged.setdefault(tag, None)
        if self.label:
            merged.setdefault(self.label.lower(), None)
        return tuple(merged)


@dataclass(slots=True, frozen=True)
class Course:
    id: str
    label: str
    tags: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class Taxonomy:
    """Read-only lookup tables loaded once per process and injected."""

    regions: Mapping[str, Region]
    courses: Mapping[str, Course]
    _countries: Mapping[str, Country] = field(repr=False, compare=False)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Taxonomy":
        regions: dict[str, Region] = {}
        countries: dict[str, Country] = {}

        for raw_region in raw.get("regions") or ():
            region_id = str(raw_region["id"]).strip().lower()
            region_countries: list[Country] = []
            for raw_country in raw_region.get("countries") or ():
                country_id = str(raw_country["id"]).strip().lower()
                if country_id in countries:
                    raise ValueError(
                        f"Country {country_id!r} is listed under both "
                        f"{countries[country_id].region_id!r} and {region_id!r}"
                    )
                country = Country(
                    id=country_id,
                    label=str(raw_country.get("label") or country_id),
                    region_id=region_id,
                    food_tags=_tags(raw_country.get("food_tags")),
                )
                countries[country_id] = country
                region_countries.append(country)
            regions[region_id] = Region(
                id=region_id,
                label=str(raw_region.get("label") or region_id),
                description=str(raw_region.get("description") or ""),
                countries=tuple(region_countries),
            )

        courses: dict[str, Course] = {}
        for raw_course in raw.get("courses") or ():
            course_id = str(raw_course["id"]).strip().lower()
            courses[course_id] = Course(
                id=course_id,
                label=str(raw_course.get("label") or course_id),
                tags=_tags(raw_course.get("tags")),
            )

        return cls(
            regions=MappingProxyType(regions),
            courses=MappingProxyType(courses),
            _countries=MappingProxyType(countries),
        )

    @classmethod
    def load(cls, path: str | Path) -> "Taxonomy":
        resolved = resolve_data_path(str(path))
        raw = orjson.loads(resolved.read_bytes())
        if not isinstance(raw, Mapping):
            raise ValueError(f"Taxonomy at {resolved} must be a JSON object")
        taxonomy = cls.from_mapping(raw)
        logger.info(
            "Loaded taxonomy with %d regions, %d countries and %d courses",
            len(taxonomy.regions),
            len(taxonomy._countries),
            len(taxonomy.courses),
        )
        return taxonomy

    def region(self, region_id: str | None) -> Region | None:
        if not region_id:
            return None
        return self.regions.get(region_id.strip().lower())

    def country(self, country_id: str | None) -> Country | None:
        if not country_id:
            return None
        return self._countries.get(country_id.strip().lower())

    def course(self, course_id: str | None) -> Course | None:
        if not course_id:
            return None
        return self.courses.get(course_id.strip().lower())


__all__ = ["Country", "Course", "Region", "Taxonomy"]
