"""Unit tests for similarity primitives"""

import math
from datetime import date

import pytest

from fee_audit.domain.similarity import (
    amount_similarity,
    edit_distance,
    string_similarity,
    time_similarity,
    token_similarity,
    tokenize,
    transaction_similarity,
)
from fee_audit.domain.thresholds import SimilarityWeights


def test_edit_distance_classic_example():
    """Test edit distance on the kitten/sitting example"""
    assert edit_distance("kitten", "sitting") == 3


@pytest.mark.parametrize("text", ["FRAIS", "virement national", "a"])
def test_string_similarity_identity(text):
    """Test string similarity of a string with itself"""
    assert string_similarity(text, text) == 1.0


def test_string_similarity_is_symmetric_and_case_insensitive():
    """Test string similarity symmetry and case"""
    assert string_similarity("Frais SMS", "frais sms") == 1.0
    assert string_similarity("frais tenue", "frais carte") == string_similarity("frais carte", "frais tenue")


def test_string_similarity_empty_input():
    """Test string similarity with empty input"""
    assert string_similarity("", "abc") == 0.0
    assert string_similarity("", "") == 1.0


def test_tokenize_strips_punctuation_and_single_characters():
    """Test tokenizer cleanup"""
    assert tokenize("Frais: VIR. a b national!") == {"frais", "vir", "national"}


def test_token_similarity_jaccard():
    """Test token similarity as Jaccard index"""
    # {frais, virement, salaire} vs {virement, salaire, dupont}: 2 shared of 4
    assert token_similarity("FRAIS VIREMENT SALAIRE", "VIREMENT SALAIRE DUPONT") == pytest.approx(0.5)


def test_token_similarity_empty_sets():
    """Test token similarity of empty descriptions"""
    assert token_similarity("", "") == 1.0
    assert token_similarity("a", "frais") == 0.0


def test_amount_similarity_identity_and_tolerance():
    """Test amount similarity inside tolerance"""
    assert amount_similarity(-5000, -5000) == 1.0
    assert amount_similarity(1000, 1005, tolerance=0.01) == 1.0
    assert amount_similarity(0, 0) == 1.0
    assert amount_similarity(0, 10) == 0.0


def test_amount_similarity_decays_monotonically():
    """Test amount similarity decays with the gap"""
    scores = [amount_similarity(1000, other) for other in (1100, 1300, 1600, 2500)]
    assert scores == sorted(scores, reverse=True)
    assert scores[0] == pytest.approx(1 - 100 / 1100)


def test_time_similarity_decay():
    """Test exponential time decay"""
    day = date(2024, 5, 1)
    assert time_similarity(day, day, 5) == 1.0
    assert time_similarity(day, date(2024, 5, 2), 6) == pytest.approx(math.exp(-1 / 2))
    assert time_similarity(day, date(2024, 5, 6), 5) == 0.0


def test_transaction_similarity_weights(make_transaction):
    """Test weighted composite transaction similarity"""
    first = make_transaction(-5000, "FRAIS", day=date(2024, 5, 1))
    second = make_transaction(-5000, "FRAIS", day=date(2024, 5, 1))

    assert transaction_similarity(first, second) == pytest.approx(1.0)
    only_amount = SimilarityWeights(amount=1.0, description=0.0, time=0.0)
    other = make_transaction(-5000, "COMMISSION", day=date(2024, 5, 30))
    assert transaction_similarity(first, other, weights=only_amount) == pytest.approx(1.0)
