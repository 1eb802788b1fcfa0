"""Tests for strength / confidence buckets and the significance proxy."""

from __future__ import annotations

import pytest

from src.analytics.base import CorrelationConfidence, CorrelationStrength
from src.analytics.classifier import (
    classify_confidence,
    classify_strength,
    is_reportable,
    samples_needed,
    significance_proxy,
)


class TestClassifyStrength:
    @pytest.mark.parametrize(
        ("coefficient", "expected"),
        [
            (1.0, CorrelationStrength.STRONG),
            (0.7, CorrelationStrength.STRONG),
            (-0.7, CorrelationStrength.STRONG),
            (0.69, CorrelationStrength.MODERATE),
            (0.3, CorrelationStrength.MODERATE),
            (-0.45, CorrelationStrength.MODERATE),
            (0.29, CorrelationStrength.WEAK),
            (0.0, CorrelationStrength.WEAK),
        ],
    )
    def test_default_buckets(self, coefficient: float, expected: CorrelationStrength) -> None:
        assert classify_strength(coefficient) is expected

    def test_custom_thresholds(self) -> None:
        assert classify_strength(0.75, strong=0.8, moderate=0.5) is CorrelationStrength.MODERATE
        assert classify_strength(0.45, strong=0.8, moderate=0.5) is CorrelationStrength.WEAK


class TestClassifyConfidence:
    @pytest.mark.parametrize(
        ("n", "expected"),
        [
            (45, CorrelationConfidence.HIGH),
            (20, CorrelationConfidence.HIGH),
            (19, CorrelationConfidence.MEDIUM),
            (10, CorrelationConfidence.MEDIUM),
            (9, CorrelationConfidence.LOW),
            (3, CorrelationConfidence.LOW),
        ],
    )
    def test_default_buckets(self, n: int, expected: CorrelationConfidence) -> None:
        assert classify_confidence(n) is expected


class TestReportability:
    def test_minimum_sample_size(self) -> None:
        assert not is_reportable(2)
        assert is_reportable(3)
        assert is_reportable(4, min_reportable=4)

    def test_samples_needed_never_negative(self) -> None:
        assert samples_needed(1, 3) == 2
        assert samples_needed(5, 3) == 0


class TestSignificanceProxy:
    def test_too_few_points(self) -> None:
        assert significance_proxy(0.9, 2) == 1.0
        assert significance_proxy(0.9, 0) == 1.0

    def test_perfect_correlation(self) -> None:
        assert significance_proxy(1.0, 10) == 0.0
        assert significance_proxy(-1.0, 10) == 0.0

    def test_no_correlation(self) -> None:
        assert significance_proxy(0.0, 30) == pytest.approx(1.0)

    def test_more_samples_is_more_credible(self) -> None:
        assert significance_proxy(0.5, 40) < significance_proxy(0.5, 10)

    def test_stronger_is_more_credible(self) -> None:
        assert significance_proxy(0.8, 15) < significance_proxy(0.4, 15)

    def test_bounded(self) -> None:
        for rho in (-0.99, -0.5, 0.1, 0.6, 0.999999):
            for n in (3, 10, 100):
                assert 0.0 <= significance_proxy(rho, n) <= 1.0
