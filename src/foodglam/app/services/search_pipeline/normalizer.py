from __future__ import annotations

"""Request normalization component for the search pipeline."""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from foodglam.app.services.search_config import SearchConfig
from foodglam.app.util.number import coerce_int

from .alias_expander import BROWSE_ALL
from .exceptions import InvalidSearchQuery

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SearchRequest:
    """Validated, immutable representation of a free-text search request."""

    text: str = ""
    page: int = 1
    page_size: int = 10
    region: str | None = None
    country: str | None = None
    course: str | None = None

    @property
    def is_browse(self) -> bool:
        return not self.text or self.text == BROWSE_ALL

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def window_end(self) -> int:
        return self.page * self.page_size

    def cache_key(self) -> str:
        """Return the deterministic cache signature for this request."""

        return "search:dbfts:{}:{}:{}:{}:{}:{}".format(
            self.text,
            self.region or "",
            self.country or "",
            self.course or "",
            self.page,
            self.page_size,
        )


class BaseSearchNormalizer(Protocol):
    """Interface for request normalization components."""

    def normalize(self, raw: Any) -> SearchRequest:
        """Normalize ``raw`` or raise :class:`InvalidSearchQuery`."""

        ...


def _optional_filter(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip().lower()
    return cleaned or None


class DefaultSearchNormalizer:
    """Normalize requests using the application search configuration limits."""

    def __init__(self, config: SearchConfig) -> None:
        self._config = config

    def normalize(self, raw: Any) -> SearchRequest:
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise InvalidSearchQuery("Search request body must be a JSON object")

        query = raw.get("q", "")
        if not isinstance(query, str):
            logger.info("Rejecting search query of type %s", type(query).__name__)
            raise InvalidSearchQuery("Search query must be a string")

        limits = self._config.limits
        text = query.strip()
        if len(text) > limits.max_search_query_length:
            logger.info(
                "Truncating overlong search query (len=%d, limit=%d)",
                len(text),
                limits.max_search_query_length,
            )
            text = text[: limits.max_search_query_length].rstrip()

        page = (
            coerce_int(
                raw.get("page"), default=1, minimum=1, maximum=limits.browse_limit
            )
            or 1
        )
        page_size = (
            coerce_int(
                raw.get("pageSize", raw.get("page_size")),
                default=limits.default_page_size,
                minimum=1,
                maximum=limits.max_page_size,
            )
            or limits.default_page_size
        )

        return SearchRequest(
            text=text,
            page=page,
            page_size=page_size,
            region=_optional_filter(raw.get("region")),
            country=_optional_filter(raw.get("country")),
            course=_optional_filter(raw.get("course")),
        )


__all__ = ["SearchRequest", "BaseSearchNormalizer", "DefaultSearchNormalizer"]
