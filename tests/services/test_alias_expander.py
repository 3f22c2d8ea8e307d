from __future__ import annotations

import pytest

from foodglam.app.services.search_pipeline import AliasDictionary, AliasExpander


def test_raw_term_comes_first_then_canonical_and_english_variants(expander) -> None:
    assert expander.expand("Rosii") == ["rosii", "tomato", "tomatoes", "red"]


def test_diacritics_are_folded_for_lookup_but_raw_is_kept(expander) -> None:
    assert expander.expand("Roșii") == ["roșii", "tomato", "tomatoes", "red"]


def test_multi_word_query_expands_each_word_in_order(expander) -> None:
    assert expander.expand("ardei rosii") == [
        "ardei rosii",
        "ardei",
        "pepper",
        "bell pepper",
        "rosii",
        "tomato",
        "tomatoes",
        "red",
    ]


def test_phrase_alias_is_matched_before_words_and_duplicates_dropped(expander) -> None:
    assert expander.expand("Bell  Pepper") == ["bell pepper", "pepper", "bell"]


def test_unknown_term_expands_to_itself(expander) -> None:
    assert expander.expand("  Quinoa ") == ["quinoa"]


@pytest.mark.parametrize("term", ["", "   ", "*", None])
def test_blank_and_wildcard_terms_mean_browse(expander, term) -> None:
    assert expander.expand(term) == []


def test_whitespace_is_collapsed_in_the_raw_term(expander) -> None:
    assert expander.expand("  Pad   Thai ")[:3] == ["pad thai", "pad", "thai"]


def test_resolve_returns_canonical_name(aliases) -> None:
    assert aliases.resolve("ARDEI") == "pepper"
    assert aliases.resolve("garbanzo") == "chickpea"
    assert aliases.resolve("chickpea") == "chickpea"
    assert aliases.resolve("nothing") is None


def test_alias_shared_by_two_canonicals_maps_to_both(aliases) -> None:
    assert aliases.canonicals_for("rosii") == ("tomato", "red")


def test_unsupported_languages_and_blank_entries_are_ignored() -> None:
    dictionary = AliasDictionary.from_mapping(
        {
            "basil": {"en": "sweet basil", "xx": ["ignored"], "it": ["basilico", " "]},
            "": {"en": ["nothing"]},
        }
    )

    assert len(dictionary) == 1
    assert dictionary.english_variants("basil") == ("sweet basil",)
    assert dictionary.resolve("ignored") is None
    assert AliasExpander(dictionary).expand("Basilico") == [
        "basilico",
        "basil",
        "sweet basil",
    ]
