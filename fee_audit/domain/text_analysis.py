"""
Information-entropy helpers for fee descriptions.

Typical Shannon entropy of a bank label:
- < 2.0: repetitive or very short ("FRAIS")
- 2.0 - 3.5: ordinary wording
- > 3.5: random-looking or machine generated references
"""

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import List

from fee_audit.domain.patterns import COMMON_WORDS, ROUND_AMOUNT_STEPS, VAGUE_FEE_PATTERNS

_NON_WORD = re.compile(r"[^\w\s]")
_ALPHA = re.compile(r"[a-zA-Z]")
_DIGIT = re.compile(r"\d")
_SPECIAL = re.compile(r"[^a-zA-Z0-9\s]")
_REPEATING = re.compile(r"(.{2,})\1{2,}")


def _entropy(counts: Counter, total: int) -> float:
    result = 0.0
    for count in counts.values():
        probability = count / total
        result -= probability * math.log2(probability)
    return result


def shannon_entropy(text: str) -> float:
    """Character-level entropy in bits"""
    if not text:
        return 0.0
    clean = text.lower()
    return _entropy(Counter(clean), len(clean))


def word_entropy(text: str) -> float:
    words = [w for w in _NON_WORD.sub(" ", text.lower()).split() if w]
    if not words:
        return 0.0
    return _entropy(Counter(words), len(words))


def normalized_entropy(text: str) -> float:
    if not text or len(text) <= 1:
        return 0.0
    return shannon_entropy(text) / math.log2(len(text))


@dataclass
class RandomnessAnalysis:
    is_random: bool
    entropy: float
    normalized_entropy: float
    confidence: float
    reasons: List[str] = field(default_factory=list)


def has_common_words(text: str) -> bool:
    words = text.lower().split()
    return any(word == common or common in word for common in COMMON_WORDS for word in words)


def analyze_randomness(text: str) -> RandomnessAnalysis:
    """Heuristic check for descriptions that look randomly generated"""
    reasons: List[str] = []
    score = 0.0
    entropy = shannon_entropy(text)
    length = len(text) or 1

    if entropy > 4.0:
        score += 0.3
        reasons.append("High character entropy")

    alpha_ratio = len(_ALPHA.findall(text)) / length
    digit_ratio = len(_DIGIT.findall(text)) / length
    special_ratio = len(_SPECIAL.findall(text)) / length

    if digit_ratio > 0.3 and alpha_ratio > 0.3:
        score += 0.2
        reasons.append("Unusual mix of digits and letters")

    if special_ratio > 0.2:
        score += 0.2
        reasons.append("Too many special characters")

    if _REPEATING.search(text):
        score -= 0.1

    if not has_common_words(text):
        score += 0.2
        reasons.append("No common banking words")

    confidence = min(max(score, 0.0), 1.0)
    return RandomnessAnalysis(
        is_random=confidence > 0.5,
        entropy=entropy,
        normalized_entropy=normalized_entropy(text),
        confidence=confidence,
        reasons=reasons,
    )


def fee_description_suspicion(description: str) -> float:
    """0-1 score of how vague or generic a fee label is"""
    score = sum(weight for weight, pattern in VAGUE_FEE_PATTERNS if pattern.search(description))

    if len(description) < 15:
        score += 0.15

    if len(description) < 25 and word_entropy(description) < 1.5:
        score += 0.1

    if analyze_randomness(description).is_random:
        score += 0.2

    return min(score, 1.0)


def is_round_amount(amount: float) -> bool:
    absolute = abs(amount)
    return any(absolute >= step and absolute % step == 0 for step in ROUND_AMOUNT_STEPS)
