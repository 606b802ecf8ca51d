"""
Keyword shortcut for common questions.

This module decides whether a query can be answered without a model call:
simple arithmetic, a small FAQ table and courtesy acknowledgements. Queries
that look like real tutoring work always go to a model.

Evaluation order (first match wins):
    1. complexity keyword present      -> AlwaysUseModel
    2. "what is A <op> B" arithmetic   -> Deterministic(simple_math)
    3. exact FAQ key                   -> Deterministic(exact_keyword)
    4. FAQ key contained in the query  -> Deterministic(partial_keyword)
    5. short acknowledgement           -> Deterministic(simple_response)
    6. anything else                   -> AlwaysUseModel

Keywords and canned answers are loaded from keywords.yaml next to this file.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml

from tutor_api.routing.normalizer import normalize


def _load_keywords() -> dict:
    """
    Load keyword tables from the YAML file shipped with the package.

    Raises:
        RuntimeError: If the keywords file cannot be loaded
    """
    keywords_file = Path(__file__).parent / "keywords.yaml"
    try:
        with open(keywords_file, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise RuntimeError(f"keywords.yaml not found at {keywords_file}")
    except Exception as e:
        raise RuntimeError(f"Failed to load keyword tables: {e}")


# Load keywords once at module import time
_KEYWORDS = _load_keywords()

COMPLEXITY_KEYWORDS: list[str] = _KEYWORDS.get("complexity_keywords", [])
FAQ: dict[str, str] = _KEYWORDS.get("faq", {})
ACKNOWLEDGEMENTS: list[str] = _KEYWORDS.get("acknowledgements", [])
ACKNOWLEDGEMENT_RESPONSE: str = _KEYWORDS.get("acknowledgement_response", "")

_ARITHMETIC = re.compile(r"what is (\d+) ?([+\-*/]) ?(\d+)")
_OPERATOR_SYMBOLS = {"+": "+", "-": "-", "*": "×", "/": "÷"}


@dataclass(frozen=True)
class AlwaysUseModel:
    reason: str


@dataclass(frozen=True)
class Deterministic:
    response: str
    match_type: str
    confidence: Optional[float] = None


KeywordMatch = Union[AlwaysUseModel, Deterministic]


def _format_quotient(a: int, b: int) -> str:
    if b == 0:
        return "NaN" if a == 0 else "Infinity"
    if a % b == 0:
        return str(a // b)
    return f"{a / b:.3f}"


def _match_arithmetic(query: str) -> Optional[str]:
    # Operators are punctuation, so match on the raw text with whitespace collapsed
    text = re.sub(r"\s+", " ", query.lower()).strip()
    match = _ARITHMETIC.search(text)
    if not match:
        return None

    left, op, right = match.groups()
    a, b = int(left), int(right)
    if op == "+":
        result = str(a + b)
    elif op == "-":
        result = str(a - b)
    elif op == "*":
        result = str(a * b)
    else:
        result = _format_quotient(a, b)

    return f"{left} {_OPERATOR_SYMBOLS[op]} {right} = {result}"


def keyword_confidence(query: str, keyword: str) -> float:
    """
    Fraction of the keyword's words found in the query.

    A keyword word counts when it contains, or is contained in, any query word.
    """
    query_words = query.split(" ")
    keyword_words = keyword.split(" ")
    matching = [w for w in keyword_words if any(w in q or q in w for q in query_words)]
    return len(matching) / len(keyword_words)


def classify(query: str) -> KeywordMatch:
    """
    Classify a query as answerable without a model or not.

    Args:
        query: Raw user query

    Returns:
        Deterministic with the canned or computed answer, or AlwaysUseModel

    Examples:
        >>> classify("what is 7 + 5")
        Deterministic(response='7 + 5 = 12', match_type='simple_math', confidence=None)
        >>> classify("please solve this equation")
        AlwaysUseModel(reason='Complex query requires AI')
    """
    normalized = normalize(query)

    if any(keyword in normalized for keyword in COMPLEXITY_KEYWORDS):
        return AlwaysUseModel(reason="Complex query requires AI")

    arithmetic = _match_arithmetic(query)
    if arithmetic is not None:
        return Deterministic(response=arithmetic, match_type="simple_math")

    if normalized in FAQ:
        return Deterministic(response=FAQ[normalized], match_type="exact_keyword")

    for keyword, response in FAQ.items():
        if keyword in normalized:
            return Deterministic(
                response=response,
                match_type="partial_keyword",
                confidence=keyword_confidence(normalized, keyword),
            )

    if len(normalized) < 10 and normalized in ACKNOWLEDGEMENTS:
        return Deterministic(response=ACKNOWLEDGEMENT_RESPONSE, match_type="simple_response")

    return AlwaysUseModel(reason="No keyword match found")
