from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from foodglam.app.db.posts import PostQuery
from foodglam.app.services.post_search import MOCK_NOTE, PostSearchService
from foodglam.app.services.search_cache import NullSearchCache, SearchResultCache
from foodglam.app.services.search_pipeline import (
    CandidateDocument,
    RetrievalStrategyName,
    StoreUnavailable,
)
from foodglam.persistence.local_db import LocalDB


APPROACHES = [
    {"id": "western-europe", "name": "Western Europe", "slug": "western-europe"},
]

POSTS = [
    {
        "id": "p1",
        "title": "Margherita Pizza",
        "summary": "Italian classic",
        "approach_id": "western-europe",
        "is_tested": True,
        "quality_score": 4.5,
        "diet_tags": ["vegetarian"],
        "created_at": "2026-01-01 08:00:00",
    },
    {
        "id": "p2",
        "title": "Garlic Bread",
        "summary": "Crusty side for pizza night",
        "approach_id": "western-europe",
        "quality_score": 3.0,
        "diet_tags": ["vegetarian", "vegan"],
        "created_at": "2026-01-02 08:00:00",
    },
    {
        "id": "p3",
        "title": "Crème Brûlée",
        "summary": "French dessert",
        "created_at": "2026-01-03 08:00:00",
    },
    {
        "id": "p4",
        "title": "Knife skills",
        "type": "short",
        "created_at": "2026-01-04 08:00:00",
    },
]


def _recipe(recipe_id, title, summary, ingredients, created_at, **extra):
    return {
        "id": recipe_id,
        "title": title,
        "summary": summary,
        "recipe_json": {"name": title, "recipeIngredient": ingredients},
        "created_at": created_at,
        **extra,
    }


RECIPES = [
    _recipe(
        "r1",
        "Margherita Pizza",
        "Italian classic",
        ["pizza dough", "tomato", "mozzarella"],
        "2026-01-01 08:00:00",
        post_id="p1",
        cuisine_id="italian",
        cookbook_id="weeknight",
    ),
    _recipe(
        "r2",
        "Garlic Bread",
        "Crusty side for pizza night",
        ["baguette", "garlic", "butter"],
        "2026-01-02 08:00:00",
        post_id="p2",
        cuisine_id="italian",
    ),
    _recipe(
        "r3",
        "Crème Brûlée",
        "French dessert",
        ["cream", "sugar", "eggs"],
        "2026-01-03 08:00:00",
        post_id="p3",
        cuisine_id="french",
    ),
    _recipe("r4", "100% Rye Bread", "Dense loaf", ["rye flour", "water"], "2026-01-04 08:00:00"),
    _recipe("r5", "1000 Island Dressing", "Salad dressing", ["mayonnaise"], "2026-01-05 08:00:00"),
]

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db(tmp_path):
    local = LocalDB(str(tmp_path / "recipes.sqlite3"))
    await local.init()
    await local.seed(RECIPES, posts=POSTS, approaches=APPROACHES)
    for user in ("u1", "u2"):
        await local.posts.record_vote("p1", user, 1, "2026-01-05 10:00:00")
    await local.posts.record_vote("p1", "u3", 1, "2026-03-09 09:00:00")
    for user in ("u1", "u2", "u3"):
        await local.posts.record_vote("p2", user, 1, "2026-03-09 10:00:00")
    await local.posts.record_vote("p2", "u4", -1, "2026-03-09 11:00:00")
    yield local
    await local.close()


def _post_service(db, corpus, search_config, cache=None) -> PostSearchService:
    return PostSearchService(
        db, corpus, cache if cache is not None else NullSearchCache(), search_config.posts, now=lambda: NOW
    )


def _ids(rows) -> list[str]:
    return [row["id"] for row in rows]


@pytest.mark.asyncio
async def test_full_text_prefers_title_matches(db) -> None:
    hits = await db.search_full_text("pizza", 10)

    assert _ids(hits) == ["r1", "r2"]
    assert hits[0]["rank"] > hits[1]["rank"] > 0


@pytest.mark.asyncio
async def test_full_text_requires_every_word_and_ignores_diacritics(db) -> None:
    assert _ids(await db.search_full_text("pizza dough", 10)) == ["r1"]
    assert _ids(await db.search_full_text("creme brulee", 10)) == ["r3"]
    assert _ids(await db.search_full_text("Crème", 10)) == ["r3"]


@pytest.mark.asyncio
async def test_full_text_treats_operators_as_text(db) -> None:
    assert await db.search_full_text('pizza OR "', 10) == []
    assert await db.search_full_text("   ", 10) == []


@pytest.mark.asyncio
async def test_trigram_tolerates_typos(db) -> None:
    hits = await db.search_trigram("piza", 10)

    assert _ids(hits) == ["r1"]
    assert hits[0]["rank"] == pytest.approx(8 / 9)
    assert await db.search_trigram("zzz qqq", 10) == []


@pytest.mark.asyncio
async def test_title_contains_escapes_wildcards(db) -> None:
    assert _ids(await db.search_title_contains("100%", 10)) == ["r4"]
    assert _ids(await db.search_title_contains("DRESS", 10)) == ["r5"]


@pytest.mark.asyncio
async def test_title_contains_folds_case_and_diacritics(db) -> None:
    await db.recipes.upsert_recipe(
        _recipe("r6", "CIORBĂ DE PERIȘOARE", "Sour meatball soup", ["pork"], None)
    )

    assert _ids(await db.search_title_contains("ciorbă", 10)) == ["r6"]
    assert _ids(await db.search_title_contains("perisoare", 10)) == ["r6"]
    assert _ids(await db.search_title_contains("brûl", 10)) == ["r3"]


@pytest.mark.asyncio
async def test_browse_and_lookups(db) -> None:
    assert _ids(await db.browse(3)) == ["r5", "r4", "r3"]
    assert sorted(_ids(await db.fetch_by_ids(["r2", "r1", "missing"]))) == ["r1", "r2"]
    assert await db.get_recipe("missing") is None

    row = await db.get_recipe("r1")
    doc = CandidateDocument.from_row(row)
    assert doc.name == "Margherita Pizza"
    assert doc.ingredients == ["pizza dough", "tomato", "mozzarella"]


@pytest.mark.asyncio
async def test_updating_a_recipe_reindexes_it(db) -> None:
    await db.recipes.upsert_recipe(
        _recipe("r5", "Ranch Dressing", "Salad dressing", ["buttermilk"], None)
    )

    assert await db.search_full_text("island", 10) == []
    assert _ids(await db.search_full_text("ranch", 10)) == ["r5"]


@pytest.mark.asyncio
async def test_closed_store_reports_unavailable(db) -> None:
    assert await db.ping() is True

    await db.close()

    assert await db.ping() is False
    with pytest.raises(StoreUnavailable):
        await db.search_full_text("pizza", 10)


@pytest.mark.asyncio
async def test_pipeline_strategies_against_sqlite(db, build_pipeline) -> None:
    pipeline = build_pipeline(db)

    primary = await pipeline.execute({"q": "pizza"})
    fuzzy = await pipeline.execute({"q": "piza"})
    substring = await pipeline.execute({"q": "ghe"})

    assert primary.strategy is RetrievalStrategyName.PRIMARY
    assert [doc.id for doc in primary.documents] == ["r1", "r2"]
    assert fuzzy.fallback == "trigram"
    assert substring.fallback == "ilike"
    assert [doc.id for doc in substring.documents] == ["r1"]


@pytest.mark.asyncio
async def test_huge_page_still_queries_the_store(db, build_pipeline) -> None:
    pipeline = build_pipeline(db)

    result = await pipeline.execute({"q": "pizza", "page": 10**19})

    assert result.strategy is RetrievalStrategyName.PRIMARY
    assert result.fallback is None
    assert result.documents == ()


@pytest.mark.asyncio
async def test_list_posts_orders_by_quality_without_text(db) -> None:
    rows, total = await db.posts.list_posts(PostQuery())

    assert total == 3
    assert _ids(rows) == ["p1", "p2", "p3"]
    assert rows[0]["approach_name"] == "Western Europe"


@pytest.mark.asyncio
async def test_list_posts_diet_tags_must_all_match(db) -> None:
    rows, total = await db.posts.list_posts(PostQuery(diet_tags=("vegetarian", "vegan")))

    assert total == 1
    assert _ids(rows) == ["p2"]


@pytest.mark.asyncio
async def test_vote_tallies_split_recent_votes(db) -> None:
    tallies = await db.posts.vote_tallies(["p1", "p2", "p3"], "2026-03-03 12:00:00")

    assert (tallies["p1"].net, tallies["p1"].trending) == (3, 1)
    assert (tallies["p2"].net, tallies["p2"].trending) == (2, 2)
    assert "p3" not in tallies


@pytest.mark.asyncio
async def test_approach_lookup(db) -> None:
    assert await db.posts.approach_id_for_slug("western-europe") == "western-europe"
    assert await db.posts.approach_id_for_slug("atlantis") is None


@pytest.mark.asyncio
async def test_post_search_text_and_filters(db, corpus, search_config) -> None:
    service = _post_service(db, corpus, search_config)

    async def search(**args):
        return await service.search(service.parse(args))

    pizza = await search(q="pizza")
    assert sorted(_ids(pizza["recipes"])) == ["p1", "p2"]
    assert "_note" not in pizza

    assert _ids((await search(q="brulee"))["recipes"]) == ["p3"]
    assert (await search(q="zzz"))["total"] == 0
    assert _ids((await search(approach="western-europe"))["recipes"]) == ["p1", "p2"]
    assert _ids((await search(diet_tags="vegan"))["recipes"]) == ["p2"]
    assert _ids((await search(cuisine_id="french"))["recipes"]) == ["p3"]
    assert (await search(cuisine_id="thai"))["recipes"] == []
    assert _ids((await search(type="short"))["recipes"]) == ["p4"]


@pytest.mark.asyncio
async def test_post_search_trending_uses_recent_votes(db, corpus, search_config) -> None:
    service = _post_service(db, corpus, search_config)

    payload = await service.search(service.parse({"sort": "trending"}))
    cards = payload["recipes"]

    assert _ids(cards) == ["p2", "p1", "p3"]
    assert cards[1]["votes"] == 3
    assert cards[1]["tag"] == "Tested"
    assert cards[1]["badges"] == ["Tested"]
    assert cards[1]["region"] == "Western Europe"
    assert cards[2]["region"] == "International"


@pytest.mark.asyncio
async def test_post_search_results_are_cached(db, corpus, search_config) -> None:
    service = _post_service(db, corpus, search_config, cache=SearchResultCache())
    filters = service.parse({"q": "pizza"})

    first = await service.search(filters)
    second = await service.search(filters)

    assert second is first


@pytest.mark.asyncio
async def test_post_search_falls_back_when_store_closes(db, corpus, search_config) -> None:
    service = _post_service(db, corpus, search_config)
    await db.close()

    payload = await service.search(service.parse({}))

    assert payload["_note"] == MOCK_NOTE
    assert payload["total"] == len(corpus)
