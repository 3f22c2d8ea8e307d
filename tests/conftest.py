from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

import pytest

from foodglam.app.services.fallback_corpus import FallbackCorpus
from foodglam.app.services.search_cache import NullSearchCache
from foodglam.app.services.search_config import SearchConfig
from foodglam.app.services.search_pipeline import (
    AliasDictionary,
    AliasExpander,
    DefaultSearchNormalizer,
    DefaultSearchReranker,
    GeoCourseFilter,
    RecipeScorer,
    RetrievalChain,
    SearchPipeline,
    SearchPipelineComponents,
    StoreUnavailable,
)
from foodglam.app.services.taxonomy import Taxonomy


ALIASES: dict[str, Any] = {
    "tomato": {"en": ["tomatoes"], "ro": ["rosii"], "fr": ["tomate"]},
    "pepper": {"en": ["bell pepper"], "ro": ["ardei"], "es": ["pimiento"]},
    "red": {"en": [], "ro": ["rosii"], "fr": ["rouge"]},
    "chickpea": {"en": ["chickpeas"], "es": ["garbanzo"]},
}

TAXONOMY: dict[str, Any] = {
    "regions": [
        {
            "id": "south-asia",
            "label": "South Asia",
            "countries": [
                {"id": "indian", "label": "Indian", "food_tags": ["indian", "curry", "masala"]},
                {"id": "pakistani", "label": "Pakistani", "food_tags": ["pakistani", "biryani"]},
            ],
        },
        {
            "id": "western-europe",
            "label": "Western Europe",
            "countries": [
                {"id": "italian", "label": "Italian", "food_tags": ["italian", "pizza", "pasta"]},
                {"id": "french", "label": "French", "food_tags": ["french", "croissant"]},
            ],
        },
        {
            "id": "southeast-asia",
            "label": "Southeast Asia",
            "countries": [
                {"id": "thai", "label": "Thai", "food_tags": ["thai", "pad thai"]},
            ],
        },
    ],
    "courses": [
        {"id": "all", "label": "All Courses", "tags": []},
        {"id": "soup", "label": "Soup", "tags": ["soup", "stew"]},
        {"id": "dessert", "label": "Dessert", "tags": ["dessert", "cake"]},
    ],
}


def _recipe(
    recipe_id: str, title: str, summary: str, ingredients: Sequence[str]
) -> dict[str, Any]:
    return {
        "id": recipe_id,
        "title": title,
        "summary": summary,
        "recipe_json": {"name": title, "recipeIngredient": list(ingredients)},
        "hero_image_url": f"https://img.example/{recipe_id}.jpg",
    }


DOCS: list[dict[str, Any]] = [
    _recipe("r1", "Margherita Pizza", "Italian classic with basil", ["pizza dough", "tomato", "mozzarella"]),
    _recipe("r2", "Pepperoni Pizza", "Spicy and cheesy", ["pizza dough", "pepperoni"]),
    _recipe("r3", "Pizza Bianca", "White pie without sauce", ["pizza dough", "ricotta"]),
    _recipe("r4", "Butter Chicken", "Creamy curry with warm spices", ["chicken", "butter", "cream"]),
    _recipe("r5", "Chana Masala", "Chickpea stew from Punjab", ["chickpeas", "tomato", "onion"]),
    _recipe("r6", "Pad Thai", "Thai noodles with shrimp", ["rice noodles", "shrimp", "peanuts"]),
    _recipe("r7", "Tomato Soup", "Warm and simple", ["tomato", "onion", "stock"]),
]

CORPUS: list[dict[str, Any]] = [
    {
        "id": "mock-1",
        "title": "Classic Margherita Pizza",
        "summary": "Traditional Italian pizza with mozzarella",
        "region": "western-europe",
        "votes": 42,
        "tag": "Popular",
        "dietTags": ["vegetarian"],
        "foodTags": ["italian", "pizza"],
        "ingredients": ["pizza dough", "tomato sauce"],
        "is_tested": True,
        "quality_score": 4.5,
        "nutrition_per_serving": {"calories": 480},
    },
    {
        "id": "mock-2",
        "title": "Authentic Pad Thai",
        "summary": "Thai street food classic with rice noodles",
        "region": "southeast-asia",
        "votes": 67,
        "tag": "Trending",
        "dietTags": ["pescatarian"],
        "foodTags": ["thai", "noodles"],
        "ingredients": ["rice noodles", "shrimp"],
        "is_tested": True,
        "quality_score": 4.7,
        "nutrition_per_serving": {"calories": 520},
    },
    {
        "id": "mock-3",
        "title": "Creamy Butter Chicken",
        "summary": "Rich tomato curry",
        "region": "south-asia",
        "votes": 12,
        "tag": "New",
        "dietTags": [],
        "foodTags": ["indian", "curry"],
        "ingredients": ["chicken", "butter"],
        "is_tested": False,
        "quality_score": 4.2,
        "nutrition_per_serving": {"calories": 650},
    },
    {
        "id": "mock-4",
        "title": "Vegan Lentil Soup",
        "summary": "Hearty soup for cold days",
        "region": "eastern-europe",
        "votes": 30,
        "tag": "Tested",
        "dietTags": ["vegan", "vegetarian"],
        "foodTags": ["soup", "lentils"],
        "ingredients": ["lentils", "carrot"],
        "is_tested": True,
        "quality_score": 3.9,
        "nutrition_per_serving": {"calories": 310},
    },
]


class StubStore:
    """In-memory recipe store that records every call it receives."""

    def __init__(
        self,
        docs: Iterable[Mapping[str, Any]] = (),
        *,
        full_text: Mapping[str, Sequence[tuple[str, float]]] | None = None,
        trigram: Mapping[str, Sequence[tuple[str, float]]] | None = None,
        failing: Iterable[tuple[str, str]] = (),
        unavailable: bool = False,
    ) -> None:
        self.docs = {str(doc["id"]): dict(doc) for doc in docs}
        self.full_text = dict(full_text or {})
        self.trigram = dict(trigram or {})
        self.failing = set(failing)
        self.unavailable = unavailable
        self.calls: list[tuple[str, Any, Any]] = []

    def _record(self, method: str, arg: Any = None, limit: Any = None) -> None:
        self.calls.append((method, arg, limit))
        if self.unavailable:
            raise StoreUnavailable("store offline")
        if (method, arg) in self.failing:
            raise RuntimeError(f"{method} failed for {arg}")

    def methods(self) -> list[str]:
        return [method for method, _, _ in self.calls]

    async def search_full_text(self, term: str, limit: int) -> list[dict[str, Any]]:
        self._record("search_full_text", term, limit)
        return [{"id": i, "rank": r} for i, r in self.full_text.get(term, ())][:limit]

    async def search_trigram(self, term: str, limit: int) -> list[dict[str, Any]]:
        self._record("search_trigram", term, limit)
        return [{"id": i, "rank": r} for i, r in self.trigram.get(term, ())][:limit]

    async def search_title_contains(self, term: str, limit: int) -> list[dict[str, Any]]:
        self._record("search_title_contains", term, limit)
        return [
            dict(doc) for doc in self.docs.values() if term.lower() in doc["title"].lower()
        ][:limit]

    async def fetch_by_ids(self, ids: Sequence[str]) -> list[dict[str, Any]]:
        self._record("fetch_by_ids", tuple(ids))
        # Reversed on purpose so callers must restore the hit order.
        return [dict(self.docs[i]) for i in reversed(list(ids)) if i in self.docs]

    async def browse(self, limit: int) -> list[dict[str, Any]]:
        self._record("browse", None, limit)
        return [dict(doc) for doc in self.docs.values()][:limit]

    async def get_recipe(self, recipe_id: str) -> dict[str, Any] | None:
        self._record("get_recipe", recipe_id)
        doc = self.docs.get(recipe_id)
        return dict(doc) if doc else None

    async def ping(self) -> bool:
        return not self.unavailable


@pytest.fixture
def aliases() -> AliasDictionary:
    return AliasDictionary.from_mapping(ALIASES)


@pytest.fixture
def expander(aliases: AliasDictionary) -> AliasExpander:
    return AliasExpander(aliases)


@pytest.fixture
def taxonomy() -> Taxonomy:
    return Taxonomy.from_mapping(TAXONOMY)


@pytest.fixture
def corpus() -> FallbackCorpus:
    return FallbackCorpus.from_records(CORPUS)


@pytest.fixture
def reranker(expander: AliasExpander) -> DefaultSearchReranker:
    return DefaultSearchReranker(RecipeScorer(expander))


@pytest.fixture
def search_config() -> SearchConfig:
    return SearchConfig.defaults()


@pytest.fixture
def build_pipeline(expander, taxonomy, corpus, reranker, search_config):
    def _build(store, *, cache=None, browse_limit=None) -> SearchPipeline:
        limit = browse_limit or search_config.limits.browse_limit
        return SearchPipeline(
            SearchPipelineComponents(
                normalizer=DefaultSearchNormalizer(search_config),
                expander=expander,
                retrieval=RetrievalChain(store, browse_limit=limit),
                post_filter=GeoCourseFilter(taxonomy),
                reranker=reranker,
                cache=cache if cache is not None else NullSearchCache(),
                corpus=corpus,
            ),
            cache_ttl=search_config.cache.ttl,
        )

    return _build
