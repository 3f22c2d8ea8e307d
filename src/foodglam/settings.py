from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf

PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_DIR.parent


def _resolve_config_dir() -> Path:
    env_override = os.environ.get("FOODGLAM_CONFIG_DIR")
    candidates: list[Path] = []

    if env_override:
        candidates.append(Path(env_override).expanduser())

    candidates.append(PROJECT_ROOT / "config")
    candidates.append(PROJECT_ROOT.parent / "config")
    candidates.append(Path.cwd() / "config")

    for candidate in candidates:
        expanded = candidate.expanduser()
        if expanded.is_dir():
            return expanded.resolve()

    searched = ", ".join(str(path) for path in candidates)
    message = f"Unable to locate configuration directory. Searched: {searched}."
    if env_override:
        message += " Set FOODGLAM_CONFIG_DIR to a valid directory."
    raise RuntimeError(message)


CONFIG_DIR = _resolve_config_dir()


DEFAULTS: dict[str, Any] = {
    "APP_NAME": "FoodGlam Search",
    "LOG_LEVEL": "INFO",
    "APP": {
        "host": "127.0.0.1",
        "port": 5000,
    },
    "LIMITS": {
        "max_search_query_length": 200,
    },
    "SEARCH": {
        "browse_limit": 200,
        "default_page_size": 10,
        "max_page_size": 50,
        "cache": {
            "maxsize": 1024,
            "ttl": 30,
        },
        "fuzzy": {
            "threshold": 0.5,
        },
        "posts": {
            "default_per_page": 12,
            "max_per_page": 48,
            "cache_ttl": 15,
            "trending_fetch_cap": 200,
            "trending_window_days": 7,
        },
        "similar": {
            "limit": 10,
            "pool_limit": 500,
            "cache_ttl": 60,
        },
    },
    "DATABASE": {
        "path": "data/recipes.sqlite3",
        "pool_size": 10,
        "pool_acquire_timeout": 5,
        "timeout": 5.0,
        "busy_timeout": 5000,
    },
    "DATA": {
        "aliases": "ingredient_aliases.json",
        "taxonomy": "taxonomy.json",
        "fallback_corpus": "fallback_recipes.json",
    },
}

settings = Dynaconf(
    envvar_prefix="FOODGLAM",
    settings_files=[
        CONFIG_DIR / "settings.toml",
        CONFIG_DIR / ".secrets.toml",
        CONFIG_DIR / "settings.local.toml",
    ],
    environments=True,
    env_switcher="FOODGLAM_ENV",
    load_dotenv=True,
    envvar_parse_values=True,
    merge_enabled=True,
    defaults=DEFAULTS,
)


_MISSING = object()


def _ensure_defaults(prefix: str, defaults: dict[str, Any]) -> None:
    for key, value in defaults.items():
        dotted = f"{prefix}.{key}" if prefix else key
        existing = settings.get(dotted, _MISSING)

        if isinstance(value, dict):
            if existing is _MISSING:
                settings.set(dotted, value.copy())
                existing = settings.get(dotted, _MISSING)
            # Only recurse into mappings so user-provided primitives survive.
            if isinstance(existing, Mapping):
                _ensure_defaults(dotted, value)
            continue

        if existing is _MISSING:
            settings.set(dotted, value)


_ensure_defaults("", DEFAULTS)


def _coerce_positive_int(dotted: str, default: int) -> None:
    raw = settings.get(dotted, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = default
    if value <= 0:
        value = default
    settings.set(dotted, value)


_coerce_positive_int("SEARCH.browse_limit", DEFAULTS["SEARCH"]["browse_limit"])
_coerce_positive_int(
    "SEARCH.default_page_size", DEFAULTS["SEARCH"]["default_page_size"]
)
_coerce_positive_int("SEARCH.max_page_size", DEFAULTS["SEARCH"]["max_page_size"])
_coerce_positive_int("SEARCH.cache.maxsize", DEFAULTS["SEARCH"]["cache"]["maxsize"])
_coerce_positive_int("DATABASE.pool_size", DEFAULTS["DATABASE"]["pool_size"])

__all__ = ["settings"]
