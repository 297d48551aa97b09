"""Unit tests for description entropy and suspicion heuristics"""

import pytest

from fee_audit.domain.text_analysis import (
    analyze_randomness,
    fee_description_suspicion,
    is_round_amount,
    shannon_entropy,
    word_entropy,
)


def test_shannon_entropy():
    """Test Shannon entropy"""
    assert shannon_entropy("") == 0.0
    assert shannon_entropy("aaaa") == 0.0
    assert shannon_entropy("ab") == pytest.approx(1.0)
    assert shannon_entropy("AB") == shannon_entropy("ab")


def test_word_entropy_counts_repeated_words_once():
    """Test word entropy counts repeated words once"""
    assert word_entropy("frais frais") == 0.0
    assert word_entropy("frais tenue") == pytest.approx(1.0)


def test_bare_fee_label_is_highly_suspicious():
    """Test bare fee label is highly suspicious"""
    # ^frais$ (0.3) + short (0.15) + low word entropy (0.1)
    assert fee_description_suspicion("FRAIS") == pytest.approx(0.55)


def test_descriptive_label_scores_low():
    """Test descriptive label scores low"""
    assert fee_description_suspicion("FRAIS VIREMENT NATIONAL VERS DUPONT SARL") < 0.3


def test_random_reference_is_flagged_as_random():
    """Test random reference is flagged"""
    analysis = analyze_randomness("X7#K9!Q2@Z5$W8%")
    assert analysis.is_random
    assert "No common banking words" in analysis.reasons


def test_banking_wording_is_not_random():
    """Test banking wording is not random"""
    assert not analyze_randomness("Frais de tenue de compte").is_random


@pytest.mark.parametrize(
    "amount, expected",
    [(-5000, True), (2500, True), (100, True), (1234, False), (50, False), (-150, False)],
)
def test_is_round_amount(amount, expected):
    """Test round amount rule"""
    assert is_round_amount(amount) is expected
