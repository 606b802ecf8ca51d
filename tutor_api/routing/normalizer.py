"""
Query canonicalization for cache keys and similarity checks.
"""

import re
import struct

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize(text: str) -> str:
    """
    Lower-case, strip punctuation and collapse whitespace.

    Idempotent: ``normalize(normalize(x)) == normalize(x)``.

    Examples:
        >>> normalize("  What IS   Algebra?! ")
        'what is algebra'
    """
    text = _NON_WORD.sub("", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def fingerprint(normalized_query: str) -> str:
    """
    Order-sensitive 32-bit rolling hash (``h * 31 + c``) rendered in base 36.

    Characters are hashed as UTF-16 code units (astral characters count as
    two surrogates) and the arithmetic wraps to a signed 32-bit integer, so
    keys stay stable across processes and deployments.
    """
    data = normalized_query.encode("utf-16-le")
    h = 0
    for unit in struct.unpack(f"<{len(data) // 2}H", data):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def similarity(query_a: str, query_b: str) -> float:
    """
    Jaccard similarity of the word sets of two normalized queries.

    Returns 0.0 when both queries are empty so the result is always comparable
    against a threshold.
    """
    words_a = set(normalize(query_a).split())
    words_b = set(normalize(query_b).split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)
