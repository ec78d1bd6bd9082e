from __future__ import annotations

import pytest

from support_session.services.knowledge_base import DEFAULT_ENTRIES, KnowledgeBase


@pytest.fixture
def kb() -> KnowledgeBase:
    return KnowledgeBase()


def test_exact_match_is_case_insensitive(kb):
    response = kb.lookup("Comment acheter des stocks")
    assert response is not None
    assert response.startswith("Pour acheter des stocks sur MyLb")


def test_input_containing_a_question_matches(kb):
    response = kb.lookup("  Bonjour, comment vendre mes actions svp  ")
    assert response == DEFAULT_ENTRIES[1][1]


def test_input_contained_in_a_question_matches(kb):
    assert kb.lookup("vérifier mon solde") == DEFAULT_ENTRIES[2][1]


def test_question_mark_is_ignored_on_second_pass(kb):
    assert kb.lookup("support?") == DEFAULT_ENTRIES[5][1]


def test_second_pass_strips_only_the_first_question_mark():
    kb = KnowledgeBase([("aide", "réponse")])
    assert kb.lookup("ai?de") == "réponse"
    assert kb.lookup("a?i?de") is None


def test_unknown_input_returns_none(kb):
    assert kb.lookup("xyz123") is None


def test_blank_input_never_matches(kb):
    assert kb.lookup("   ") is None


def test_first_entry_in_declared_order_wins_on_overlap():
    kb = KnowledgeBase([
        ("ouvrir un compte", "first"),
        ("compte", "second"),
    ])
    # "compte" is contained by the input and by the first key
    assert kb.lookup("compte") == "first"
    assert kb.lookup("je veux ouvrir un compte") == "first"

    reordered = KnowledgeBase([
        ("compte", "second"),
        ("ouvrir un compte", "first"),
    ])
    assert reordered.lookup("je veux ouvrir un compte") == "second"


def test_short_prefix_matches_first_default_entry(kb):
    # "comment" is a substring of several keys; declaration order decides
    assert kb.lookup("comment") == DEFAULT_ENTRIES[0][1]


def test_fallback_quotes_the_input(kb):
    text = kb.fallback("  xyz123 ")
    assert '"xyz123"' in text
    assert kb.respond("xyz123") == text
