from __future__ import annotations

from foodglam.app.services.search_pipeline import (
    CandidateDocument,
    DefaultSearchReranker,
    RecipeScorer,
)

from tests.conftest import DOCS


def _doc(doc_id: str, title: str = "", summary: str = "", ingredients=(), rank=None):
    return CandidateDocument(
        id=doc_id,
        title=title,
        summary=summary,
        recipe_json={"recipeIngredient": list(ingredients)},
        rank=rank,
    )


def _ids(docs) -> list[str]:
    return [doc.id for doc in docs]


def test_exact_title_match_ranks_first() -> None:
    docs = [CandidateDocument.from_row(row) for row in DOCS]

    ranked = DefaultSearchReranker().rank(docs, "Tomato Soup")

    assert ranked[0].id == "r7"


def test_title_hit_outranks_ingredient_hit() -> None:
    docs = [
        _doc("ingredient", title="Garden salad", ingredients=["basil"]),
        _doc("title", title="Basil pesto"),
    ]

    assert _ids(DefaultSearchReranker().rank(docs, "basil")) == ["title", "ingredient"]


def test_ties_keep_input_order() -> None:
    docs = [_doc("a", "One"), _doc("b", "Two"), _doc("c", "Three")]

    assert _ids(DefaultSearchReranker().rank(docs, "zzz")) == ["a", "b", "c"]


def test_adding_a_matched_field_never_lowers_the_score() -> None:
    scorer = RecipeScorer()
    plain = _doc("a", title="Lentil soup")
    richer = _doc("a", title="Lentil soup", summary="Hearty lentil stew")

    assert scorer.score(richer, "lentil") > scorer.score(plain, "lentil")


def test_store_rank_breaks_otherwise_equal_scores() -> None:
    docs = [
        _doc("low", title="Pizza", rank=0.5),
        _doc("high", title="Pizza", rank=4.0),
    ]

    assert _ids(DefaultSearchReranker().rank(docs, "pizza")) == ["high", "low"]


def test_rare_tokens_weigh_more_than_common_ones(expander) -> None:
    scorer = RecipeScorer(expander)
    docs = [
        _doc("common1", summary="pepper"),
        _doc("common2", summary="pepper"),
        _doc("rare", summary="tomato"),
    ]

    scores = scorer.score_many(docs, "pepper tomato")

    assert scores[2] > scores[0] == scores[1]


def test_aliases_are_used_for_matching(expander) -> None:
    reranker = DefaultSearchReranker(RecipeScorer(expander))
    docs = [
        _doc("plain", title="Plain rice"),
        _doc("tomato", title="Stewed tomatoes"),
    ]

    assert _ids(reranker.matching(docs, "rosii")) == ["tomato"]
    assert _ids(reranker.rank(docs, "rosii")) == ["tomato", "plain"]


def test_limit_truncates_ranked_results() -> None:
    docs = [CandidateDocument.from_row(row) for row in DOCS]

    ranked = DefaultSearchReranker().rank(docs, "pizza", limit=2)

    assert len(ranked) == 2
    assert {doc.id for doc in ranked} <= {"r1", "r2", "r3"}


def test_ranking_is_deterministic() -> None:
    docs = [CandidateDocument.from_row(row) for row in DOCS]
    reranker = DefaultSearchReranker()

    assert _ids(reranker.rank(docs, "pizza dough")) == _ids(
        reranker.rank(list(docs), "pizza dough")
    )


def test_empty_inputs() -> None:
    reranker = DefaultSearchReranker()

    assert reranker.rank([], "pizza") == []
    assert reranker.scorer.score_many([_doc("a", "Pizza")], "   ") == [0.0]
