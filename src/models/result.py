"""Scoring outputs: per-criterion normalization, breakdowns, unified results.

``NormalizeResult`` is a frozen dataclass (hot path, one per criterion);
everything returned to external collaborators is a frozen Pydantic model
so it serializes cleanly for explanation UIs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import Field

from src.models.common import (
    FrozenEngineBase,
    PenaltySource,
    SCORE_CEILING,
    WeightingMethod,
)


# ---------------------------------------------------------------------------
# Frozen dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizeResult:
    """Normalized value of one criterion, in [veto_penalty, 10]."""

    value: float
    is_vetoed: bool = False


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class ResolvedWeights(FrozenEngineBase):
    """Final per-criterion weights for a category (sum to 1)."""

    weights: dict[str, float]
    objective_weights: dict[str, float] | None = None
    method: WeightingMethod = WeightingMethod.SUBJECTIVE
    sample_size: int = 0


class BreakdownEntry(FrozenEngineBase):
    """Explanation of one criterion's part in a product score."""

    criterion_id: str
    label: str
    raw_value: Any = None
    normalized_value: float = Field(ge=0.0, le=SCORE_CEILING)
    weight: float = Field(ge=0.0)
    is_vetoed: bool = False
    is_imputed: bool = False
    contribution: float = Field(ge=0.0)


class Penalty(FrozenEngineBase):
    """A veto or context rule that pulled the score down."""

    source: PenaltySource
    reason: str
    multiplier: float = Field(ge=0.0, le=1.0)
    criterion_id: str | None = None
    context_id: str | None = None


class AggregationResult(FrozenEngineBase):
    """Base (context-free) score of one product."""

    score: float
    breakdown: tuple[BreakdownEntry, ...] = ()
    excluded_criteria: tuple[str, ...] = ()
    penalties: tuple[Penalty, ...] = ()
    strengths: tuple[BreakdownEntry, ...] = ()
    weaknesses: tuple[BreakdownEntry, ...] = ()
    warnings: tuple[str, ...] = ()


class ContextScore(FrozenEngineBase):
    """Adjusted score of a product under one selected context."""

    context_id: str
    name: str
    score: float
    weight: float
    penalties: tuple[Penalty, ...] = ()
    fatal_reasons: tuple[str, ...] = ()


class UnifiedScoringResult(FrozenEngineBase):
    """Final answer of one scoring request."""

    final_score: float
    base_score: float
    contextual_score: float
    delta: float = 0.0
    context_ids: tuple[str, ...] = ()
    context_names: tuple[str, ...] = ()
    is_fatal: bool = False
    fatal_reason: str | None = None
    fatal_reasons: tuple[str, ...] = ()
    breakdown: tuple[BreakdownEntry, ...] = ()
    penalties: tuple[Penalty, ...] = ()
    strengths: tuple[BreakdownEntry, ...] = ()
    weaknesses: tuple[BreakdownEntry, ...] = ()
    context_scores: tuple[ContextScore, ...] = ()
    excluded_criteria: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    weighting: WeightingMethod | None = None


class RankedProduct(FrozenEngineBase):
    """A product's position within a ranked batch."""

    rank: int = Field(ge=1)
    product_id: str
    result: UnifiedScoringResult


class ContextComparison(FrozenEngineBase):
    """One product scored under each context of its category alone."""

    base_score: float
    results: dict[str, UnifiedScoringResult] = Field(default_factory=dict)
    best_context_id: str | None = None
    worst_context_id: str | None = None
