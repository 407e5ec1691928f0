"""Tests for criterion normalization: curves, vetoes, clamping."""

import math

import pytest
from pydantic import ValidationError

from src.models.category import (
    BooleanNormalization,
    LinearNormalization,
    LogNormalNormalization,
    OrdinalNormalization,
    SigmoidNormalization,
)
from src.models.common import Direction, NormalizationMethod
from src.scoring.normalizer import _SCORERS, coerce_number, normalize, ordinal_score

VP = 0.01


class TestDispatchTable:
    def test_every_method_has_a_scorer(self) -> None:
        assert set(_SCORERS) == set(NormalizationMethod)


class TestCoerceNumber:
    """coerce_number: numeric coercion, NaN when unusable."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(5, 5.0), (2.5, 2.5), ("120 Hz", 120.0), ("  -3.5dB", -3.5), (".5", 0.5), ("1e3", 1000.0)],
    )
    def test_numbers(self, raw, expected) -> None:
        assert coerce_number(raw) == expected

    @pytest.mark.parametrize("raw", [True, False, None, "abc", "", [1], {"a": 1}])
    def test_unusable(self, raw) -> None:
        assert math.isnan(coerce_number(raw))

    def test_huge_int_is_infinite(self) -> None:
        assert coerce_number(10**400) == math.inf


class TestLinear:
    """linear: clamp to [min, max] and scale onto 0-10."""

    def test_maximize_midpoint(self, make_criterion) -> None:
        c = make_criterion(normalization=LinearNormalization(min=0, max=100))
        assert normalize(50, c, VP).value == pytest.approx(5.0)

    def test_minimize_midpoint(self, make_criterion) -> None:
        c = make_criterion(
            direction=Direction.MINIMIZE,
            normalization=LinearNormalization(min=40, max=80),
        )
        assert normalize(50, c, VP).value == pytest.approx(7.5)

    def test_clamps_above_max(self, make_criterion) -> None:
        c = make_criterion(normalization=LinearNormalization(min=0, max=100))
        assert normalize(500, c, VP).value == 10.0

    def test_floor_is_veto_penalty(self, make_criterion) -> None:
        c = make_criterion(normalization=LinearNormalization(min=0, max=100))
        assert normalize(-20, c, VP).value == VP

    def test_string_with_unit(self, make_criterion) -> None:
        c = make_criterion(normalization=LinearNormalization(min=0, max=200))
        assert normalize("120 Hz", c, VP).value == pytest.approx(6.0)

    def test_infinite_input_clamps(self, make_criterion) -> None:
        c = make_criterion(normalization=LinearNormalization(min=0, max=100))
        assert normalize(10**400, c, VP).value == 10.0

    def test_monotone_maximize(self, make_criterion) -> None:
        c = make_criterion(normalization=LinearNormalization(min=0, max=100))
        values = [normalize(x, c, VP).value for x in range(-10, 120, 5)]
        assert values == sorted(values)

    def test_monotone_minimize(self, make_criterion) -> None:
        c = make_criterion(
            direction=Direction.MINIMIZE,
            normalization=LinearNormalization(min=0, max=100),
        )
        values = [normalize(x, c, VP).value for x in range(-10, 120, 5)]
        assert values == sorted(values, reverse=True)


class TestSigmoid:
    """sigmoid: 10 / (1 + e^(-k'(val - x0)))."""

    def test_midpoint_is_five(self, make_criterion) -> None:
        c = make_criterion(normalization=SigmoidNormalization(k=0.5, x0=20))
        assert normalize(20, c, VP).value == pytest.approx(5.0)

    def test_minimize_uses_negative_steepness(self, make_criterion) -> None:
        up = make_criterion(normalization=SigmoidNormalization(k=0.5, x0=20))
        down = make_criterion(
            direction=Direction.MINIMIZE,
            normalization=SigmoidNormalization(k=0.5, x0=20),
        )
        assert normalize(24, up, VP).value > 5.0
        assert normalize(24, down, VP).value < 5.0
        assert normalize(24, up, VP).value + normalize(24, down, VP).value == pytest.approx(10.0)

    @pytest.mark.parametrize("raw", [1e308, -1e308, 10**400])
    def test_extreme_inputs_stay_finite(self, make_criterion, raw) -> None:
        c = make_criterion(normalization=SigmoidNormalization(k=5.0, x0=0))
        value = normalize(raw, c, VP).value
        assert VP <= value <= 10.0

    @pytest.mark.parametrize("k", [0.0, -1.0])
    def test_non_positive_steepness_rejected(self, k) -> None:
        with pytest.raises(ValidationError):
            SigmoidNormalization(k=k, x0=5)

    def test_non_positive_steepness_rejected_from_json(self, make_criterion) -> None:
        with pytest.raises(ValidationError):
            make_criterion(normalization={"method": "sigmoid", "k": -1, "x0": 5})

    def test_maximize_never_decreases(self, make_criterion) -> None:
        c = make_criterion(normalization=SigmoidNormalization(k=1.0, x0=5))
        assert normalize(8, c, VP).value >= normalize(2, c, VP).value

    def test_monotone(self, make_criterion) -> None:
        c = make_criterion(normalization=SigmoidNormalization(k=0.3, x0=10))
        values = [normalize(x, c, VP).value for x in range(-20, 40)]
        assert values == sorted(values)


class TestLogNormal:
    """log_normal: ln-scaled position within [min, max]."""

    def test_geometric_midpoint(self, make_criterion) -> None:
        c = make_criterion(normalization=LogNormalNormalization(min=10, max=1000))
        assert normalize(100, c, VP).value == pytest.approx(5.0)

    def test_minimize_complement(self, make_criterion) -> None:
        c = make_criterion(
            direction=Direction.MINIMIZE,
            normalization=LogNormalNormalization(min=10, max=1000),
        )
        assert normalize(10, c, VP).value == pytest.approx(10.0)
        assert normalize(1000, c, VP).value == VP

    def test_below_min_clamps(self, make_criterion) -> None:
        c = make_criterion(normalization=LogNormalNormalization(min=10, max=1000))
        assert normalize(0, c, VP).value == VP

    def test_monotone(self, make_criterion) -> None:
        c = make_criterion(normalization=LogNormalNormalization(min=1, max=500))
        values = [normalize(x, c, VP).value for x in range(0, 600, 10)]
        assert values == sorted(values)


class TestOrdinal:
    """ordinal: label lookup, case-insensitive fallback, unmatched -> 0."""

    SPEC = OrdinalNormalization(scale={"LiDAR": 10, "gyro": 4})

    def test_exact(self) -> None:
        assert ordinal_score("LiDAR", self.SPEC) == 10

    def test_case_insensitive(self) -> None:
        assert ordinal_score(" lidar ", self.SPEC) == 10

    def test_unmatched(self) -> None:
        assert ordinal_score("random", self.SPEC) == 0.0

    def test_unmatched_clamps_to_floor(self, make_criterion) -> None:
        c = make_criterion(normalization=self.SPEC)
        assert normalize("random", c, VP).value == VP


class TestBoolean:
    def test_true_and_false(self, make_criterion) -> None:
        c = make_criterion(normalization=BooleanNormalization())
        assert normalize(True, c, VP).value == 10.0
        assert normalize(False, c, VP).value == 5.0

    def test_truthiness(self, make_criterion) -> None:
        c = make_criterion(normalization=BooleanNormalization(true_value=9, false_value=2))
        assert normalize("yes", c, VP).value == 9.0
        assert normalize(0, c, VP).value == 2.0


class TestVeto:
    """Veto: exactly veto_penalty with is_vetoed, before the curve."""

    def test_maximize_below_threshold(self, make_criterion) -> None:
        c = make_criterion(veto_threshold=3.0)
        result = normalize(2.9, c, VP)
        assert result.value == VP
        assert result.is_vetoed is True

    def test_threshold_itself_passes(self, make_criterion) -> None:
        c = make_criterion(veto_threshold=3.0)
        assert normalize(3.0, c, VP).is_vetoed is False

    def test_minimize_above_threshold(self, make_criterion) -> None:
        c = make_criterion(
            direction=Direction.MINIMIZE,
            veto_threshold=70,
            normalization=LinearNormalization(min=40, max=80),
        )
        assert normalize(71, c, VP).is_vetoed is True
        assert normalize(69, c, VP).is_vetoed is False

    def test_veto_compares_mapped_ordinal_score(self, make_criterion) -> None:
        c = make_criterion(
            veto_threshold=5.0,
            normalization=OrdinalNormalization(scale={"good": 8, "poor": 3}),
        )
        assert normalize("poor", c, VP).is_vetoed is True
        assert normalize("good", c, VP).is_vetoed is False

    def test_nan_is_not_a_veto(self, make_criterion) -> None:
        c = make_criterion(veto_threshold=3.0)
        result = normalize("n/a", c, VP)
        assert result.value == VP
        assert result.is_vetoed is False


class TestPurity:
    def test_repeated_calls_identical(self, make_criterion) -> None:
        c = make_criterion(normalization=SigmoidNormalization(k=0.2, x0=5))
        assert normalize(7.3, c, VP) == normalize(7.3, c, VP)

    @pytest.mark.parametrize("raw", [-1e9, -1, 0, 3.3, 9.99, 1e9, "7", None, True, "x"])
    def test_range(self, make_criterion, raw) -> None:
        c = make_criterion()
        assert VP <= normalize(raw, c, VP).value <= 10.0
