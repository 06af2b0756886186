"""Tests for blood-pressure and temperature classification."""

from __future__ import annotations

import pytest

from daycare.classifier import (
    BPCategory,
    TempCategory,
    bp_status,
    classify_bp,
    classify_temperature,
    is_fever,
    temperature_status,
)


class TestClassifyBP:
    @pytest.mark.parametrize(
        "systolic, diastolic, expected",
        [
            (120, 80, BPCategory.NORMAL),
            (139, 89, BPCategory.NORMAL),
            (140, 80, BPCategory.HIGH),
            (120, 90, BPCategory.HIGH),
            (89, 70, BPCategory.LOW),
            (110, 59, BPCategory.LOW),
            (90, 60, BPCategory.NORMAL),
        ],
    )
    def test_thresholds(self, systolic, diastolic, expected):
        assert classify_bp(systolic, diastolic) is expected

    def test_low_rule_checked_before_high(self):
        # 150/55 trips both rules; low is evaluated first.
        assert classify_bp(150, 55) is BPCategory.LOW

    def test_total_over_a_grid(self):
        for s in range(60, 200, 7):
            for d in range(40, 120, 7):
                assert classify_bp(s, d) in (BPCategory.LOW, BPCategory.NORMAL, BPCategory.HIGH)

    @pytest.mark.parametrize("systolic, diastolic", [(None, 80), (120, None), ("abc", 80), (120, float("nan"))])
    def test_missing_or_non_numeric_is_unknown(self, systolic, diastolic):
        assert classify_bp(systolic, diastolic) is BPCategory.UNKNOWN

    def test_numeric_strings_accepted(self):
        assert classify_bp("150", "95") is BPCategory.HIGH

    def test_status_colors(self):
        assert bp_status(150, 95).color == "#E74C3C"
        assert bp_status(85, 55).color == "#3498DB"
        assert bp_status(118, 76).color == "#27AE60"
        assert bp_status(None, None).label == "-"


class TestClassifyTemperature:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (34.9, TempCategory.LOW),
            (35.0, TempCategory.SLIGHTLY_LOW),
            (35.9, TempCategory.SLIGHTLY_LOW),
            (36.0, TempCategory.NORMAL),
            (36.5, TempCategory.NORMAL),
            (37.4, TempCategory.NORMAL),
            (37.5, TempCategory.MILD_FEVER),
            (38.0, TempCategory.MILD_FEVER),
            (38.2, TempCategory.FEVER),
        ],
    )
    def test_thresholds(self, value, expected):
        assert classify_temperature(value) is expected

    def test_missing_is_unknown(self):
        assert classify_temperature(None) is TempCategory.UNKNOWN
        assert classify_temperature("warm") is TempCategory.UNKNOWN

    def test_fever_covers_mild_fever(self):
        assert is_fever(TempCategory.MILD_FEVER)
        assert is_fever(TempCategory.FEVER)
        assert not is_fever(TempCategory.NORMAL)

    def test_status_labels(self):
        assert temperature_status(38.2).label == "發燒"
        assert temperature_status(37.6).icon == "🟡"
