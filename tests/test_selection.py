"""Tests for top-class selection and confidence rounding."""

from __future__ import annotations

import numpy as np
import pytest

from skinsense.ml.results import ClassificationFailure, ClassificationResult
from skinsense.ml.selection import argmax, round_confidence, select


class TestSelect:
    def test_picks_highest(self) -> None:
        assert select([0.1, 0.7, 0.2], ["a", "b", "c"]) == ClassificationResult(label="b", confidence=0.7)

    def test_tie_first_wins(self) -> None:
        assert select([0.5, 0.5], ["x", "y"]) == ClassificationResult(label="x", confidence=0.5)

    def test_later_equal_value_does_not_replace(self) -> None:
        result = select([0.2, 0.4, 0.4, 0.0], ["a", "b", "c", "d"])
        assert isinstance(result, ClassificationResult)
        assert result.label == "b"

    def test_all_zero_is_no_selection(self) -> None:
        result = select([0.0, 0.0], ["x", "y"])
        assert isinstance(result, ClassificationFailure)
        assert result.kind == "no_selection"
        assert not result.ok

    def test_all_negative_is_no_selection(self) -> None:
        result = select([-1.5, -0.2], ["x", "y"])
        assert isinstance(result, ClassificationFailure)
        assert result.kind == "no_selection"

    def test_empty_vector_is_no_selection(self) -> None:
        result = select([], ["x"])
        assert isinstance(result, ClassificationFailure)
        assert result.kind == "no_selection"

    def test_index_beyond_labels_is_shape_mismatch(self) -> None:
        result = select([0.1, 0.2, 0.7], ["a", "b"])
        assert isinstance(result, ClassificationFailure)
        assert result.kind == "shape_mismatch"
        assert "out of range" in result.error

    def test_argmax_within_labels_when_vector_longer(self) -> None:
        assert select([0.9, 0.05, 0.05], ["a", "b"]) == ClassificationResult(label="a", confidence=0.9)

    def test_accepts_float32_array(self) -> None:
        result = select(np.array([0.05, 0.25, 0.7], dtype=np.float32), ("a", "b", "c"))
        assert result == ClassificationResult(label="c", confidence=0.7)

    def test_custom_decimals(self) -> None:
        result = select([0.12345, 0.0], ["a", "b"], decimals=3)
        assert isinstance(result, ClassificationResult)
        assert result.confidence == 0.123

    @pytest.mark.parametrize(
        "probs",
        [[float("inf"), 0.0, 0.0], [0.2, float("nan"), 0.1], [0.3, float("-inf"), 0.6]],
        ids=["inf", "nan", "neg-inf"],
    )
    def test_non_finite_scores_are_inference_error(self, probs: list[float]) -> None:
        result = select(probs, ["a", "b", "c"])
        assert isinstance(result, ClassificationFailure)
        assert result.kind == "inference_error"
        assert "non-finite" in result.error

    def test_score_above_one_is_inference_error(self) -> None:
        result = select([0.1, 3.7, 0.2], ["a", "b", "c"])
        assert isinstance(result, ClassificationFailure)
        assert result.kind == "inference_error"

    def test_score_rounding_to_one_accepted(self) -> None:
        assert select([1.0000001, 0.0], ["a", "b"]) == ClassificationResult(label="a", confidence=1.0)

    def test_confidence_percent(self) -> None:
        result = select([0.1, 0.7, 0.2], ["a", "b", "c"])
        assert isinstance(result, ClassificationResult)
        assert result.ok
        assert result.confidence_percent == "70.0%"


class TestArgmax:
    def test_returns_index_and_value(self) -> None:
        assert argmax([0.3, 0.6, 0.1]) == (1, 0.6)

    def test_no_positive_value(self) -> None:
        assert argmax([0.0, -1.0]) == (-1, 0.0)


class TestRoundConfidence:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0.125, 0.13),  # exact binary half rounds away from zero
            (0.375, 0.38),
            (0.745, 0.74),  # 0.745 is stored slightly below the half
            (0.999, 1.0),
            (0.004, 0.0),
        ],
    )
    def test_two_places(self, value: float, expected: float) -> None:
        assert round_confidence(value) == expected

    def test_zero_decimals(self) -> None:
        assert round_confidence(0.5, 0) == 1.0
