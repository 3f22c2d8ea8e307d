from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class SearchLimits:
    """Limits applied to free-text search requests."""

    browse_limit: int
    default_page_size: int
    max_page_size: int
    max_search_query_length: int
    fuzzy_threshold: float

    def as_dict(self) -> dict[str, Any]:
        """Return the limits as a plain dictionary."""

        return asdict(self)


@dataclass(slots=True, frozen=True)
class CacheConfig:
    """Sizing and expiry for the search result cache."""

    maxsize: int
    ttl: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class PostSearchConfig:
    """Configuration for the structured post search surface."""

    default_per_page: int
    max_per_page: int
    cache_ttl: int
    trending_fetch_cap: int
    trending_window_days: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class SimilarConfig:
    """Configuration for similar recipe lookups."""

    limit: int
    pool_limit: int
    cache_ttl: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class SearchConfig:
    """Aggregate search configuration used across services."""

    limits: SearchLimits
    cache: CacheConfig
    posts: PostSearchConfig
    similar: SimilarConfig

    @classmethod
    def from_settings(cls, settings: Any) -> "SearchConfig":
        """Construct a :class:`SearchConfig` from application settings."""

        search_settings = settings.SEARCH
        limits = SearchLimits(
            browse_limit=int(search_settings.browse_limit),
            default_page_size=int(search_settings.default_page_size),
            max_page_size=int(search_settings.max_page_size),
            max_search_query_length=int(settings.LIMITS.max_search_query_length),
            fuzzy_threshold=float(search_settings.fuzzy.threshold),
        )
        cache = CacheConfig(
            maxsize=int(search_settings.cache.maxsize),
            ttl=int(search_settings.cache.ttl),
        )
        posts_settings = search_settings.posts
        posts = PostSearchConfig(
            default_per_page=int(posts_settings.default_per_page),
            max_per_page=int(posts_settings.max_per_page),
            cache_ttl=int(posts_settings.cache_ttl),
            trending_fetch_cap=int(posts_settings.trending_fetch_cap),
            trending_window_days=int(posts_settings.trending_window_days),
        )
        similar_settings = search_settings.similar
        similar = SimilarConfig(
            limit=int(similar_settings.limit),
            pool_limit=int(similar_settings.pool_limit),
            cache_ttl=int(similar_settings.cache_ttl),
        )
        return cls(limits=limits, cache=cache, posts=posts, similar=similar)

    @classmethod
    def defaults(cls) -> "SearchConfig":
        """Return the built-in configuration without consulting settings."""

        return cls(
            limits=SearchLimits(
                browse_limit=200,
                default_page_size=10,
                max_page_size=50,
                max_search_query_length=200,
                fuzzy_threshold=0.5,
            ),
            cache=CacheConfig(maxsize=1024, ttl=30),
            posts=PostSearchConfig(
                default_per_page=12,
                max_per_page=48,
                cache_ttl=15,
                trending_fetch_cap=200,
                trending_window_days=7,
            ),
            similar=SimilarConfig(limit=10, pool_limit=500, cache_ttl=60),
        )

    def as_dict(self) -> dict[str, Any]:
        """Return the full configuration as a dictionary."""

        return {
            "limits": self.limits.as_dict(),
            "cache": self.cache.as_dict(),
            "posts": self.posts.as_dict(),
            "similar": self.similar.as_dict(),
        }


__all__ = [
    "CacheConfig",
    "PostSearchConfig",
    "SearchConfig",
    "SearchLimits",
    "SimilarConfig",
]
