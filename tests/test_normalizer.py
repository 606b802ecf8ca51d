"""
Query normalizer tests.

Tests cover canonicalization, fingerprint stability and word-set similarity.
"""

from tutor_api.routing.normalizer import fingerprint, normalize, similarity


def test_normalize_strips_case_punctuation_and_whitespace():
    assert normalize("  What IS   Algebra?! ") == "what is algebra"
    assert normalize("Hello,\tworld\n") == "hello world"


def test_normalize_is_idempotent():
    for text in ["What's 2+2?", "  spaced   out  ", "Ünïcode Wörds!", ""]:
        once = normalize(text)
        assert normalize(once) == once


def test_normalize_empty():
    assert normalize("") == ""
    assert normalize("?!...") == ""


def test_fingerprint_is_deterministic_and_order_sensitive():
    assert fingerprint("what is algebra") == fingerprint("what is algebra")
    assert fingerprint("ab") != fingerprint("ba")


def test_fingerprint_known_values():
    assert fingerprint("") == "0"
    # "a" -> 97 -> "2p" in base 36
    assert fingerprint("a") == "2p"


def test_fingerprint_counts_astral_characters_as_surrogate_pairs():
    # U+1F600 is D83D DE00 in UTF-16: 0xD83D * 31 + 0xDE00 = 1772899
    assert fingerprint("\U0001F600") == "11zz7"


def test_fingerprint_is_base36():
    key = fingerprint("a fairly long query that overflows thirty two bits many times over")
    assert key
    assert all(c in "0123456789abcdefghijklmnopqrstuvwxyz" for c in key)


def test_similarity_identical_and_symmetric():
    assert similarity("what is algebra", "What is algebra?") == 1.0
    a, b = "what is algebra", "what is calculus"
    assert similarity(a, b) == similarity(b, a)
    # {what, is} shared out of {what, is, algebra, calculus}
    assert similarity(a, b) == 0.5


def test_similarity_empty_is_zero():
    assert similarity("", "") == 0.0
    assert similarity("", "algebra") == 0.0
