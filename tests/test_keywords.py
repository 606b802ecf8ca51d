"""
Keyword matcher tests.

Tests cover the evaluation order: complexity override, arithmetic, exact and
partial FAQ matches, courtesy replies and the model fallback.
"""

import pytest

from tutor_api.routing.keywords import FAQ, AlwaysUseModel, Deterministic, classify, keyword_confidence


@pytest.mark.parametrize(
    "query,expected",
    [
        ("what is 7 + 5", "7 + 5 = 12"),
        ("what is 7 - 5", "7 - 5 = 2"),
        ("what is 7 * 5", "7 × 5 = 35"),
        ("what is 10 / 4", "10 ÷ 4 = 2.500"),
        ("what is 10 / 5", "10 ÷ 5 = 2"),
        ("What is 2+2?", "2 + 2 = 4"),
        ("what   is 9 -3", "9 - 3 = 6"),
    ],
)
def test_arithmetic(query, expected):
    match = classify(query)
    assert isinstance(match, Deterministic)
    assert match.match_type == "simple_math"
    assert match.response == expected


def test_division_by_zero_is_text():
    match = classify("what is 8 / 0")
    assert isinstance(match, Deterministic)
    assert match.response == "8 ÷ 0 = Infinity"


def test_zero_over_zero_is_nan():
    assert classify("what is 0 / 0").response == "0 ÷ 0 = NaN"


def test_complexity_keyword_overrides_arithmetic():
    match = classify("solve what is 7 + 5")
    assert isinstance(match, AlwaysUseModel)
    assert match.reason == "Complex query requires AI"


def test_complexity_keyword_overrides_faq():
    assert isinstance(classify("compare algebra and calculus"), AlwaysUseModel)


def test_exact_faq_match():
    match = classify("What is algebra?")
    assert isinstance(match, Deterministic)
    assert match.match_type == "exact_keyword"
    assert match.response == FAQ["what is algebra"]
    assert match.confidence is None


def test_partial_faq_match():
    match = classify("tell me about the major scale please")
    assert isinstance(match, Deterministic)
    assert match.match_type == "partial_keyword"
    assert match.response == FAQ["major scale"]
    assert match.confidence == 1.0


@pytest.mark.parametrize("query", ["thanks", "OK", "yes!", "thank you"])
def test_courtesy_reply(query):
    match = classify(query)
    assert isinstance(match, Deterministic)
    assert match.match_type == "simple_response"


def test_no_match_uses_model():
    match = classify("describe photosynthesis in plants")
    assert isinstance(match, AlwaysUseModel)
    assert match.reason == "No keyword match found"


def test_keyword_confidence_counts_contained_words():
    assert keyword_confidence("about the major scale", "major scale") == 1.0
    assert keyword_confidence("major chords", "major scale") == 0.5


def test_solve_request_goes_to_model():
    assert isinstance(classify("please solve this equation"), AlwaysUseModel)
