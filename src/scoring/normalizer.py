"""Criterion normalizer -- raw attribute value to 0-10 utility.

Each normalization method is a tagged variant of ``NormalizationSpec``
with one pure scoring function, dispatched through ``_SCORERS``:

    linear      clamp to [min, max], scale to [0, 10]
    sigmoid     10 / (1 + e^(-k'(val - x0))), k > 0, k' = -k when minimizing
    log_normal  clamp to [min, max], scale ln(val) to [0, 10]
    ordinal     label -> configured score
    boolean     truthy -> true_value, else false_value

A configured ``veto_threshold`` is checked on the working number before
the curve is applied; a vetoed criterion scores exactly ``veto_penalty``.

Deterministic -- no I/O.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from typing import Any

from src.models.category import (
    BooleanNormalization,
    CriterionConfig,
    LinearNormalization,
    LogNormalNormalization,
    NormalizationSpec,
    OrdinalNormalization,
    SigmoidNormalization,
)
from src.models.common import Direction, NormalizationMethod, SCORE_CEILING
from src.models.result import NormalizeResult

# Leading numeric literal of a string, e.g. "120 Hz" -> "120".
_LEADING_NUMBER = re.compile(r"^\s*[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")


# ---------------------------------------------------------------------------
# Step 1: working number
# ---------------------------------------------------------------------------


def coerce_number(raw: Any) -> float:
    """Numeric coercion of a raw fact; NaN when unusable.

    Booleans, None and containers are not numbers. Strings are read up to
    the first non-numeric character.
    """
    if isinstance(raw, bool):
        return math.nan
    if isinstance(raw, int):
        try:
            return float(raw)
        except OverflowError:
            return math.inf if raw > 0 else -math.inf
    if isinstance(raw, float):
        return raw
    if isinstance(raw, str):
        match = _LEADING_NUMBER.match(raw)
        return float(match.group()) if match else math.nan
    return math.nan


def ordinal_score(raw: Any, spec: OrdinalNormalization) -> float:
    """Exact label match, then case-insensitive match; unmatched -> 0."""
    label = raw if isinstance(raw, str) else str(raw)
    if label in spec.scale:
        return spec.scale[label]

    folded = label.strip().casefold()
    for key, score in spec.scale.items():
        if key.strip().casefold() == folded:
            return score
    return 0.0


def _working_value(raw: Any, spec: NormalizationSpec) -> float:
    if isinstance(spec, OrdinalNormalization):
        return ordinal_score(raw, spec)
    if isinstance(spec, BooleanNormalization):
        return spec.true_value if raw else spec.false_value
    return coerce_number(raw)


# ---------------------------------------------------------------------------
# Step 3: scoring functions (one per variant)
# ---------------------------------------------------------------------------


def _logistic(z: float) -> float:
    """Overflow-free 1 / (1 + e^-z)."""
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    ez = math.exp(z)
    return ez / (1.0 + ez)


def _score_linear(val: float, spec: LinearNormalization, direction: Direction) -> float:
    clamped = min(max(val, spec.min), spec.max)
    span = spec.max - spec.min
    if direction == Direction.MINIMIZE:
        return (spec.max - clamped) / span * SCORE_CEILING
    return (clamped - spec.min) / span * SCORE_CEILING


def _score_sigmoid(val: float, spec: SigmoidNormalization, direction: Direction) -> float:
    k = spec.k if direction == Direction.MAXIMIZE else -spec.k
    z = k * (val - spec.x0)
    if math.isnan(z):
        return math.nan
    return SCORE_CEILING * _logistic(z)


def _score_log_normal(val: float, spec: LogNormalNormalization, direction: Direction) -> float:
    clamped = min(max(val, spec.min), spec.max)
    log_min = math.log(spec.min)
    ratio = (math.log(clamped) - log_min) / (math.log(spec.max) - log_min)
    if direction == Direction.MINIMIZE:
        ratio = 1.0 - ratio
    return ratio * SCORE_CEILING


def _score_mapped(val: float, spec: NormalizationSpec, direction: Direction) -> float:
    # Ordinal and boolean values are already on the 0-10 scale.
    return val


_SCORERS: dict[NormalizationMethod, Callable[[float, Any, Direction], float]] = {
    NormalizationMethod.LINEAR: _score_linear,
    NormalizationMethod.SIGMOID: _score_sigmoid,
    NormalizationMethod.LOG_NORMAL: _score_log_normal,
    NormalizationMethod.ORDINAL: _score_mapped,
    NormalizationMethod.BOOLEAN: _score_mapped,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def clamp_score(score: float, veto_penalty: float) -> float:
    """Clamp into [veto_penalty, 10]; NaN collapses to the floor."""
    if math.isnan(score):
        return veto_penalty
    return min(max(score, veto_penalty), SCORE_CEILING)


def is_vetoed(val: float, criterion: CriterionConfig) -> bool:
    """Whether the working number crosses the criterion's veto threshold."""
    if criterion.veto_threshold is None:
        return False
    if criterion.direction == Direction.MINIMIZE:
        return val > criterion.veto_threshold
    return val < criterion.veto_threshold


def normalize(
    raw_value: Any,
    criterion: CriterionConfig,
    veto_penalty: float,
) -> NormalizeResult:
    """Map one raw attribute value onto [veto_penalty, 10].

    Unusable (NaN) input scores ``veto_penalty`` without being flagged as a
    veto; a crossed veto threshold scores ``veto_penalty`` and sets
    ``is_vetoed``.
    """
    spec = criterion.normalization
    val = _working_value(raw_value, spec)
    if math.isnan(val):
        return NormalizeResult(value=veto_penalty, is_vetoed=False)

    if is_vetoed(val, criterion):
        return NormalizeResult(value=veto_penalty, is_vetoed=True)

    scorer = _SCORERS[NormalizationMethod(spec.method)]
    score = scorer(val, spec, criterion.direction)
    return NormalizeResult(value=clamp_score(score, veto_penalty), is_vetoed=False)
