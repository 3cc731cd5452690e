from __future__ import annotations

import pytest

from statement_import.matcher import (
    HistoryIndex,
    find_unassigned,
    match,
    normalize_description,
)
from statement_import.models import Category, Confidence, HistoricalTransaction, MatchResult


def _index(*pairs: tuple[str, str]) -> HistoryIndex:
    return HistoryIndex.build(HistoricalTransaction(description=d, category_id=c) for d, c in pairs)


def test_normalize_description():
    assert normalize_description("  Café  *Niddo* 24/7 ") == "cafe niddo 247"
    assert normalize_description("PAGO   TARJETA\tCRÉDITO") == "pago tarjeta credito"
    assert normalize_description("***") == ""


def test_history_index_build_rules():
    idx = _index(("ab", "c-x"), ("Café Niddo", "c-a"), ("CAFE NIDDO", "c-b"), ("Oxxo", "c-o"))
    assert len(idx) == 2
    assert "ab" not in idx
    assert idx.lookup("cafe niddo") == "c-b"
    assert [k for k, _ in idx.items()] == ["cafe niddo", "oxxo"]
    with pytest.raises(TypeError):
        idx.entries["new"] = "c-z"  # type: ignore[index]


def test_exact_history_match(categories):
    result = match("Mercadona Valencia", categories, _index(("MERCADONA VALENCIA", "c-coffee")))
    assert result == MatchResult("c-coffee", Confidence.HIGH, "history")


def test_history_outranks_keywords(categories):
    # the dictionary would say streaming; the user's own decision wins
    result = match("NETFLIX.COM", categories, _index(("NETFLIX.COM", "c-amazon")))
    assert result.category_id == "c-amazon"
    assert result.source == "history"


def test_partial_history_substring(categories):
    result = match("PEMEX GAS 1234 CDMX", categories, _index(("PEMEX GAS 1234", "c-coffee")))
    assert result == MatchResult("c-coffee", Confidence.HIGH, "history")


def test_partial_history_first_tokens(categories):
    result = match("OXXO SUC CENTRO 002", categories, _index(("OXXO SUC CENTRO 001", "c-coffee")))
    assert result == MatchResult("c-coffee", Confidence.HIGH, "history")


def test_short_description_skips_partial_history(categories):
    result = match("AB", categories, _index(("AB CD EF", "c-coffee")))
    assert result == MatchResult(None, Confidence.LOW, None)


def test_history_for_deleted_category_is_ignored(categories):
    result = match("OXXO TIENDA", categories, _index(("OXXO TIENDA", "c-deleted")))
    assert result == MatchResult("c-groceries", Confidence.MEDIUM, "keyword")


def test_keyword_confidence_scales_with_length(categories):
    empty = HistoryIndex.empty()
    assert match("MERCADONA VALENCIA", categories, empty) == MatchResult(
        "c-groceries", Confidence.HIGH, "keyword"
    )
    assert match("SHELL ESTACION 12", categories, empty) == MatchResult(
        "c-fuel", Confidence.MEDIUM, "keyword"
    )


def test_longest_keyword_wins(categories):
    result = match("NETFLIX AMAZON PRIME", categories, HistoryIndex.empty())
    assert result == MatchResult("c-streaming", Confidence.HIGH, "keyword")


def test_keywords_match_whole_tokens(categories):
    # "dia" is a grocery keyword but must not fire inside "diagnostico"
    assert match("DIAGNOSTICO", categories, HistoryIndex.empty()).category_id is None


def test_keyword_without_user_category_gives_nothing(categories):
    # restaurants are in the dictionary but the user has no such category
    assert match("UBER EATS", categories, HistoryIndex.empty()) == MatchResult(
        None, Confidence.LOW, None
    )


def test_first_category_in_list_order_wins():
    cats = [
        Category(id="c-1", top_level_label="Supermercado"),
        Category(id="c-2", top_level_label="Gastos", sub_label="Supermercado"),
    ]
    assert match("LIDL", cats, HistoryIndex.empty()).category_id == "c-1"


def test_unassigned_category_is_never_a_keyword_target():
    cats = [Category(id="c-u", top_level_label="Sin Asignar")]
    assert match("MERCADONA", cats, HistoryIndex.empty()).category_id is None


def test_match_is_deterministic(categories):
    idx = _index(("OXXO SUC CENTRO 001", "c-coffee"), ("PEMEX", "c-fuel"))
    first = match("OXXO SUC CENTRO 009", categories, idx)
    assert all(match("OXXO SUC CENTRO 009", categories, idx) == first for _ in range(5))


def test_empty_description_has_no_match(categories):
    assert match("  ***  ", categories, _index(("OXXO", "c-groceries"))) == MatchResult(
        None, Confidence.LOW, None
    )


def test_find_unassigned(categories):
    assert find_unassigned(categories).id == "c-unassigned"
    assert find_unassigned([Category(id="u", top_level_label="Uncategorized")]).id == "u"
    assert find_unassigned([c for c in categories if c.id != "c-unassigned"]) is None
