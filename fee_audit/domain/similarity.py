"""
String, amount and time similarity primitives.

All functions are pure and total: they return a score in [0, 1] for any
well-formed input and never raise. The composite `transaction_similarity`
accepts any object exposing `amount`, `description` and `date`, so bank
transactions and ledger entries can be compared with the same code.
"""

import math
import re
from datetime import date
from typing import Set

from rapidfuzz.distance import Levenshtein

from fee_audit.domain.thresholds import SimilarityWeights

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

DEFAULT_WEIGHTS = SimilarityWeights()


def edit_distance(first: str, second: str) -> int:
    """Minimum number of single-character insertions, deletions or substitutions"""
    return Levenshtein.distance(first, second)


def string_similarity(first: str, second: str) -> float:
    """1 - distance / longest length, on lower-cased trimmed strings"""
    s1 = first.lower().strip()
    s2 = second.lower().strip()

    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    return 1.0 - edit_distance(s1, s2) / max(len(s1), len(s2))


def tokenize(text: str) -> Set[str]:
    """Lower-case word tokens, punctuation stripped, single characters dropped"""
    cleaned = _NON_WORD.sub(" ", text.lower())
    return {token for token in _WHITESPACE.split(cleaned) if len(token) > 1}


def jaccard_similarity(tokens1: Set[str], tokens2: Set[str]) -> float:
    if not tokens1 and not tokens2:
        return 1.0
    if not tokens1 or not tokens2:
        return 0.0
    return len(tokens1 & tokens2) / len(tokens1 | tokens2)


def token_similarity(first: str, second: str) -> float:
    """Jaccard index of the two descriptions' token sets"""
    return jaccard_similarity(tokenize(first), tokenize(second))


def amount_similarity(amount1: float, amount2: float, tolerance: float = 0.01) -> float:
    """
    Compare absolute amounts.

    1 when both are zero or the relative difference is within `tolerance`,
    0 when exactly one is zero, otherwise `max(0, 1 - relative difference)`.
    """
    abs1 = abs(amount1)
    abs2 = abs(amount2)

    if abs1 == 0 and abs2 == 0:
        return 1.0
    if abs1 == 0 or abs2 == 0:
        return 0.0

    ratio = abs(abs1 - abs2) / max(abs1, abs2)
    if ratio <= tolerance:
        return 1.0

    return max(0.0, 1.0 - ratio)


def time_similarity(date1: date, date2: date, max_days: float = 7) -> float:
    """Exponential decay exp(-gap / (max_days / 3)); 0 once the gap reaches max_days"""
    gap = abs((date1 - date2).days)

    if gap == 0:
        return 1.0
    if gap >= max_days:
        return 0.0

    return math.exp(-gap / (max_days / 3))


def transaction_similarity(
    first,
    second,
    weights: SimilarityWeights = DEFAULT_WEIGHTS,
    amount_tolerance: float = 0.01,
    max_days: float = 7,
) -> float:
    """Weighted sum of amount, description-token and time similarity"""
    amount_sim = amount_similarity(first.amount, second.amount, amount_tolerance)
    description_sim = token_similarity(first.description, second.description)
    time_sim = time_similarity(first.date, second.date, max_days)

    return (
        amount_sim * weights.amount
        + description_sim * weights.description
        + time_sim * weights.time
    )
