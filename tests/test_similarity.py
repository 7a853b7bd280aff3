import pytest
from rapidfuzz import fuzz

from config import TokenWeights
from knowledge import InvalidArgument
from similarity import normalize_text, score, significant_tokens, token_overlap, tokenize


def test_identical_question_scores_one():
    assert score("How do I reset my password?", "How do I reset my password?") == 1.0


def test_case_and_whitespace_are_ignored():
    assert score("  Reset   PASSWORD ", "reset password") == 1.0


def test_punctuation_only_difference_scores_one():
    assert score("how do i reset my password", "How do I reset my password?") == pytest.approx(1.0)


def test_blank_candidate_scores_zero():
    assert score("refund policy", "   ") == 0.0


def test_blank_query_is_rejected():
    with pytest.raises(InvalidArgument):
        score("  \t ", "refund policy")


def test_non_string_candidate_raises_type_error():
    with pytest.raises(TypeError):
        score("refund policy", None)


def test_no_shared_tokens_and_no_shared_characters_scores_zero():
    assert score("abc", "xyz") == 0.0


def test_paraphrase_clears_default_threshold():
    value = score("how can I reset my password", "How do I reset my password?")
    assert 0.45 <= value < 1.0


def test_unrelated_question_stays_below_threshold():
    assert score("what is the weather today", "Refund policy") < 0.45


def test_partial_overlap_is_positive_and_proportionate():
    partial = score("reset password", "reset password for email account")
    unrelated = score("reset password", "update email account")
    assert 0.0 < partial < 1.0
    assert partial > unrelated


def test_overlap_term_is_jaccard_over_significant_tokens():
    overlap_only = TokenWeights(overlap=1.0, fuzzy=0.0)
    assert score("reset password", "reset password email account", overlap_only) == pytest.approx(0.5)


def test_fuzzy_term_uses_normalized_indel_ratio():
    fuzzy_only = TokenWeights(overlap=0.0, fuzzy=1.0)
    expected = fuzz.ratio("password", "passwrod") / 100.0
    assert score("password", "passwrod", fuzzy_only) == pytest.approx(expected)


def test_typo_still_scores_close():
    assert score("how do I reset my pasword", "How do I reset my password?") > 0.45


@pytest.mark.parametrize(
    "query, candidate",
    [
        ("refund", "What is your refund policy?"),
        ("shipping to canada", "Do you ship internationally?"),
        ("?", "What?"),
        ("a", "a very long question about many different unrelated topics at once"),
        ("Ünïcödé quéstion", "unicode question"),
    ],
)
def test_scores_stay_in_unit_interval(query, candidate):
    assert 0.0 <= score(query, candidate) <= 1.0


def test_all_stopword_question_keeps_its_tokens():
    assert significant_tokens(["who", "are", "you"]) == frozenset({"who", "are", "you"})


def test_significant_tokens_drop_stopwords():
    assert significant_tokens(tokenize("How do I reset my password?")) == frozenset({"reset", "password"})


def test_token_overlap_of_empty_sets_is_zero():
    assert token_overlap(frozenset(), frozenset()) == 0.0


def test_normalize_text_collapses_whitespace():
    assert normalize_text("  Hello\n\tWORLD  ") == "hello world"


def test_negative_weights_are_rejected():
    with pytest.raises(InvalidArgument):
        TokenWeights(overlap=-1.0, fuzzy=1.0)
    with pytest.raises(InvalidArgument):
        TokenWeights(overlap=0.0, fuzzy=0.0)
