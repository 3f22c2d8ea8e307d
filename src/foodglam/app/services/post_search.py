"""Structured post search with taxonomy, hierarchy and vote-based sorting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Mapping, Sequence

import orjson

from foodglam.app.db.posts import (
    POST_TYPES,
    SORT_NEWEST,
    SORT_RELEVANCE,
    SORT_TRENDING,
    PostQuery,
    VoteTally,
)
from foodglam.app.services.fallback_corpus import FallbackCorpus
from foodglam.app.services.search_cache import SearchCache
from foodglam.app.services.search_config import PostSearchConfig
from foodglam.app.services.search_pipeline.documents import row_get
from foodglam.app.services.search_pipeline.exceptions import StoreUnavailable
from foodglam.app.util.number import coerce_float, coerce_int
from foodglam.app.util.text import slugify

if TYPE_CHECKING:
    from foodglam.persistence.local_db import LocalDB

logger = logging.getLogger(__name__)

SORTS = (SORT_RELEVANCE, SORT_TRENDING, SORT_NEWEST)
HIERARCHY_FIELDS = ("cuisine_id", "food_style_id", "cookbook_id", "chapter_id")
DEFAULT_HERO_IMAGE = (
    "https://images.unsplash.com/photo-1504674900247-0877df9cc836"
    "?auto=format&fit=crop&w=400&q=80"
)
MOCK_NOTE = "Using mock data - recipe store not reachable"


def _split_tags(raw: Any) -> tuple[str, ...]:
    if not raw or not isinstance(raw, str):
        return ()
    return tuple(tag.strip() for tag in raw.split(",") if tag.strip())


def _text(args: Mapping[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str):
        return ""
    return value.strip()


@dataclass(slots=True, frozen=True)
class PostSearchFilters:
    """Parsed query parameters of the structured search endpoint."""

    q: str = ""
    approach: str = ""
    diet_tags: tuple[str, ...] = ()
    food_tags: tuple[str, ...] = ()
    type: str = "recipe"
    sort: str = SORT_RELEVANCE
    cuisine_id: str = ""
    food_style_id: str = ""
    cookbook_id: str = ""
    chapter_id: str = ""
    is_tested: bool = False
    tag: str = ""
    quality_min: float = 0.0
    cal_max: int = 0
    page: int = 1
    per_page: int = 12

    @classmethod
    def from_args(
        cls, args: Mapping[str, Any], config: PostSearchConfig
    ) -> "PostSearchFilters":
        post_type = _text(args, "type")
        sort = _text(args, "sort") or SORT_RELEVANCE
        page = coerce_int(args.get("page"), default=1) or 1
        per_page = coerce_int(args.get("per_page"), default=config.default_per_page)
        if not per_page:
            per_page = config.default_per_page
        return cls(
            q=_text(args, "q"),
            approach=_text(args, "approach") or _text(args, "region"),
            diet_tags=_split_tags(args.get("diet_tags")),
            food_tags=_split_tags(args.get("food_tags")),
            type=post_type if post_type in POST_TYPES else "recipe",
            sort=sort,
            cuisine_id=_text(args, "cuisine_id"),
            food_style_id=_text(args, "food_style_id"),
            cookbook_id=_text(args, "cookbook_id"),
            chapter_id=_text(args, "chapter_id"),
            is_tested=args.get("is_tested") == "true",
            tag=_text(args, "tag"),
            quality_min=coerce_float(args.get("quality_min"), default=0.0) or 0.0,
            cal_max=coerce_int(args.get("cal_max"), default=0) or 0,
            page=max(1, page),
            per_page=min(config.max_per_page, max(1, per_page)),
        )

    @property
    def hierarchy(self) -> dict[str, str]:
        return {
            name: getattr(self, name) for name in HIERARCHY_FIELDS if getattr(self, name)
        }

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def cache_key(self) -> str:
        parts = [
            self.q,
            self.approach,
            ",".join(self.diet_tags),
            ",".join(self.food_tags),
            self.type,
            self.sort,
            self.cuisine_id,
            self.food_style_id,
            self.cookbook_id,
            self.chapter_id,
            "1" if self.is_tested else "0",
            self.tag,
            repr(self.quality_min),
            str(self.cal_max),
            str(self.page),
            str(self.per_page),
        ]
        return "search:recipes:" + ":".join(parts)

    def as_dict(self) -> dict[str, Any]:
        return {
            "q": self.q,
            "approach": self.approach,
            "diet_tags": list(self.diet_tags),
            "food_tags": list(self.food_tags),
            "type": self.type,
            "sort": self.sort,
            "cuisine_id": self.cuisine_id,
            "food_style_id": self.food_style_id,
            "cookbook_id": self.cookbook_id,
            "chapter_id": self.chapter_id,
            "is_tested": self.is_tested,
            "tag": self.tag,
            "quality_min": self.quality_min,
        }


def popularity_tag(net_votes: int, is_tested: bool) -> str:
    if net_votes > 50:
        return "Trending"
    if net_votes > 20:
        return "Popular"
    if is_tested:
        return "Tested"
    return "New"


def popularity_badges(net_votes: int, is_tested: bool) -> list[str]:
    badges: list[str] = []
    if is_tested:
        badges.append("Tested")
    if net_votes > 30:
        badges.append("Popular")
    return badges


def _decode_json(raw: Any, default: Any) -> Any:
    if raw is None:
        return default
    if isinstance(raw, (str, bytes)):
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            return default
    return raw


def format_post(row: Any, tally: VoteTally) -> dict[str, Any]:
    """Shape a post row plus its vote tally into a result card."""

    is_tested = bool(row_get(row, "is_tested"))
    creator = _decode_json(row_get(row, "created_by"), {})
    if not isinstance(creator, Mapping):
        creator = {}
    card: dict[str, Any] = {
        "id": row_get(row, "id"),
        "slug": row_get(row, "slug"),
        "title": row_get(row, "title"),
        "summary": row_get(row, "summary"),
        "hero_image_url": row_get(row, "hero_image_url") or DEFAULT_HERO_IMAGE,
        "region": row_get(row, "approach_name") or "International",
        "approach_slug": row_get(row, "approach_slug") or "",
        "votes": tally.net,
        "trending_votes": tally.trending,
        "comments": 0,
        "tag": popularity_tag(tally.net, is_tested),
        "dietTags": _decode_json(row_get(row, "diet_tags"), []),
        "foodTags": _decode_json(row_get(row, "food_tags"), []),
        "is_tested": is_tested,
        "quality_score": row_get(row, "quality_score"),
        "created_at": row_get(row, "created_at"),
        "created_by": {
            "id": creator.get("id") or "",
            "display_name": creator.get("display_name") or "Unknown",
            "handle": creator.get("handle") or "",
            "avatar_url": creator.get("avatar_url") or None,
        },
        "is_saved": False,
    }
    badges = popularity_badges(tally.net, is_tested)
    if badges:
        card["badges"] = badges
    return card


def filter_records(
    records: Sequence[Mapping[str, Any]], filters: PostSearchFilters
) -> list[dict[str, Any]]:
    """Apply the structured filters and sort to in-memory corpus records."""

    filtered = [dict(record) for record in records]
    if filters.q:
        needle = filters.q.lower()
        filtered = [
            r
            for r in filtered
            if needle in str(r.get("title") or "").lower()
            or needle in str(r.get("summary") or "").lower()
        ]
    if filters.approach:
        wanted = filters.approach.lower()
        filtered = [r for r in filtered if slugify(str(r.get("region") or "")) == wanted]
    if filters.diet_tags:
        filtered = [
            r
            for r in filtered
            if any(tag in (r.get("dietTags") or ()) for tag in filters.diet_tags)
        ]
    if filters.food_tags:
        filtered = [
            r
            for r in filtered
            if any(tag in (r.get("foodTags") or ()) for tag in filters.food_tags)
        ]
    if filters.is_tested:
        filtered = [r for r in filtered if r.get("is_tested")]
    if filters.tag:
        wanted_tag = filters.tag.lower()
        filtered = [r for r in filtered if str(r.get("tag") or "").lower() == wanted_tag]
    if filters.quality_min > 0:
        filtered = [
            r for r in filtered if float(r.get("quality_score") or 0) >= filters.quality_min
        ]
    if filters.cal_max > 0:

        def _calories(record: Mapping[str, Any]) -> float:
            nutrition = record.get("nutrition_per_serving") or {}
            calories = nutrition.get("calories")
            return float("inf") if calories is None else float(calories)

        filtered = [r for r in filtered if _calories(r) <= filters.cal_max]

    if filters.sort == SORT_TRENDING:
        filtered.sort(key=lambda r: int(r.get("votes") or 0), reverse=True)
    elif filters.sort != SORT_NEWEST:
        filtered.sort(key=lambda r: float(r.get("quality_score") or 0), reverse=True)
    return filtered


class PostSearchService:
    """Serve the structured search endpoint from the store or the fallback corpus."""

    def __init__(
        self,
        db: "LocalDB",
        corpus: FallbackCorpus,
        cache: SearchCache,
        config: PostSearchConfig,
        *,
        now=None,
    ) -> None:
        self._db = db
        self._corpus = corpus
        self._cache = cache
        self._config = config
        self._now = now or (lambda: datetime.now(timezone.utc))

    @property
    def config(self) -> PostSearchConfig:
        return self._config

    def parse(self, args: Mapping[str, Any]) -> PostSearchFilters:
        return PostSearchFilters.from_args(args, self._config)

    async def search(self, filters: PostSearchFilters) -> dict[str, Any]:
        if not await self._db.ping():
            logger.info("Recipe store not responding, using fallback search results")
            return self.mock_search(filters)

        cache_key = filters.cache_key()
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            payload = await self._search_store(filters)
        except StoreUnavailable as exc:
            logger.info("Recipe store became unavailable during search: %s", exc)
            return self.mock_search(filters)

        self._cache.set(cache_key, payload, self._config.cache_ttl)
        return payload

    def mock_search(self, filters: PostSearchFilters) -> dict[str, Any]:
        filtered = filter_records(self._corpus.records, filters)
        total = len(filtered)
        return {
            "recipes": filtered[filters.offset : filters.offset + filters.per_page],
            "total": total,
            "page": filters.page,
            "per_page": filters.per_page,
            "has_more": filters.page * filters.per_page < total,
            "filters": filters.as_dict(),
            "_note": MOCK_NOTE,
        }

    def _empty(self, filters: PostSearchFilters) -> dict[str, Any]:
        return {
            "recipes": [],
            "total": 0,
            "page": filters.page,
            "per_page": filters.per_page,
            "has_more": False,
            "filters": filters.as_dict(),
        }

    async def _text_post_ids(self, filters: PostSearchFilters) -> list[str]:
        limit = filters.per_page * filters.page + filters.per_page
        try:
            hits = await self._db.recipes.search_full_text(filters.q, limit)
            if not hits:
                return []
            return await self._db.recipes.post_ids_for_recipes(
                [str(row_get(hit, "id")) for hit in hits]
            )
        except StoreUnavailable:
            raise
        except Exception:
            logger.debug("Full-text lookup failed for %r", filters.q, exc_info=True)
            return []

    async def _search_store(self, filters: PostSearchFilters) -> dict[str, Any]:
        posts = self._db.posts
        query = PostQuery(type=filters.type, sort=filters.sort, has_text=bool(filters.q))

        if filters.q:
            post_ids = await self._text_post_ids(filters)
            if post_ids:
                query.id_sets.append(post_ids)
            else:
                query.text_like = filters.q

        if filters.approach:
            approach_id = await posts.approach_id_for_slug(filters.approach)
            if approach_id:
                query.approach_id = approach_id

        query.diet_tags = filters.diet_tags

        hierarchy = filters.hierarchy
        if hierarchy:
            matched = await self._db.recipes.post_ids_for_hierarchy(hierarchy)
            if not matched:
                return self._empty(filters)
            query.id_sets.append(matched)

        trending = filters.sort == SORT_TRENDING
        if trending:
            query.limit = min(self._config.trending_fetch_cap, filters.per_page * 5)
            query.offset = 0
        else:
            query.limit = filters.per_page
            query.offset = filters.offset

        rows, total = await posts.list_posts(query)
        if not rows:
            return self._empty(filters)

        since = (
            self._now() - timedelta(days=self._config.trending_window_days)
        ).strftime("%Y-%m-%d %H:%M:%S")
        tallies = await posts.vote_tallies([row["id"] for row in rows], since)
        cards = [format_post(row, tallies.get(row["id"], VoteTally())) for row in rows]

        if trending:
            cards.sort(
                key=lambda card: (card["trending_votes"], card["votes"]), reverse=True
            )
            cards = cards[filters.offset : filters.offset + filters.per_page]

        return {
            "recipes": cards,
            "total": total,
            "page": filters.page,
            "per_page": filters.per_page,
            "has_more": filters.page * filters.per_page < total,
            "filters": filters.as_dict(),
        }


__all__ = [
    "PostSearchFilters",
    "PostSearchService",
    "filter_records",
    "format_post",
    "popularity_badges",
    "popularity_tag",
]
