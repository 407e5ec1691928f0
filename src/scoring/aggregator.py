"""Utility aggregator -- weighted multiplicative utility (HMUM).

    u_j = x'_j / 10        U = prod_j u_j ^ w_j        score = 10 * U

The product form is the deal-breaker mechanism: one criterion sitting at
``veto_penalty`` caps the whole score at ``10 * veto_penalty ^ w_j`` no
matter how well every other criterion does.

Missing attributes follow each criterion's strategy:
- impute_penalty:  score ``impute_value`` in place of the fact;
- ignore_reweight: drop the criterion and redistribute its weight
  proportionally across the criteria that remain.

Deterministic -- no I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from src.models.category import CategoryConfig
from src.models.common import MissingStrategy, PenaltySource, SCORE_CEILING
from src.models.result import AggregationResult, BreakdownEntry, Penalty
from src.scoring.config import ScoringConfig
from src.scoring.facts import ProductFacts, resolve_field
from src.scoring.normalizer import normalize
from src.scoring.weights import reweight

logger = logging.getLogger(__name__)


def contribution_factor(normalized_value: float, weight: float) -> float:
    """Factor ``(x' / 10) ^ w`` one criterion contributes to U."""
    return (normalized_value / SCORE_CEILING) ** weight


def multiplicative_utility(pairs: Iterable[tuple[float, float]]) -> float:
    """Score ``10 * prod (x'/10)^w`` over (normalized_value, weight) pairs.

    Weights are expected to sum to 1. An empty iterable yields 10.
    """
    utility = 1.0
    for value, weight in pairs:
        utility *= contribution_factor(value, weight)
    return SCORE_CEILING * utility


def select_strengths(
    breakdown: Sequence[BreakdownEntry],
    config: ScoringConfig,
) -> tuple[BreakdownEntry, ...]:
    """Non-vetoed high scorers, heaviest ``weight * value`` first."""
    candidates = [
        e for e in breakdown
        if not e.is_vetoed and e.normalized_value >= config.strength_threshold
    ]
    candidates.sort(key=lambda e: e.weight * e.normalized_value, reverse=True)
    return tuple(candidates[: config.max_highlights])


def select_weaknesses(
    breakdown: Sequence[BreakdownEntry],
    config: ScoringConfig,
) -> tuple[BreakdownEntry, ...]:
    """Vetoed or low scorers, most damaging (lowest contribution) first."""
    candidates = [
        e for e in breakdown
        if e.is_vetoed or e.normalized_value <= config.weakness_threshold
    ]
    candidates.sort(key=lambda e: e.contribution)
    return tuple(candidates[: config.max_highlights])


class UtilityAggregator:
    """Computes the context-free base score of a product."""

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self._config = config or ScoringConfig()

    def aggregate(
        self,
        facts: ProductFacts,
        category: CategoryConfig,
        weights: Mapping[str, float],
    ) -> AggregationResult:
        """Normalize every criterion, then combine multiplicatively.

        Args:
            facts: Raw product attributes.
            category: Read-only category rule set.
            weights: Resolved criterion weights (sum to 1 over all criteria).

        Returns:
            AggregationResult with score in [0, 10], per-criterion
            breakdown, excluded criteria and warnings.
        """
        vp = category.veto_penalty
        warnings: list[str] = []
        excluded: list[str] = []
        scored = []

        total = sum(weights.get(cid, 0.0) for cid in category.criterion_ids)
        if abs(total - 1.0) > self._config.weight_tolerance:
            logger.warning(
                "%s: weights sum to %.6f, outside tolerance %g; renormalizing",
                category.category_id, total, self._config.weight_tolerance,
            )
            warnings.append(f"weights sum to {total:.6f}, not 1; renormalized")

        for criterion in category.criteria:
            lookup = resolve_field(facts, criterion.data_field)
            is_imputed = False
            if lookup.is_missing:
                if criterion.missing_strategy == MissingStrategy.IGNORE_REWEIGHT:
                    excluded.append(criterion.id)
                    warnings.append(
                        f"'{criterion.id}' missing ({criterion.data_field}); "
                        "weight redistributed"
                    )
                    continue
                raw_value = criterion.impute_value
                is_imputed = True
                warnings.append(
                    f"'{criterion.id}' missing ({criterion.data_field}); "
                    f"imputed {criterion.impute_value!r}"
                )
            else:
                raw_value = lookup.value

            result = normalize(raw_value, criterion, vp)
            logger.debug(
                "%s/%s: raw=%r normalized=%.4f vetoed=%s",
                category.category_id, criterion.id, raw_value, result.value, result.is_vetoed,
            )
            scored.append((criterion, raw_value, result, is_imputed))

        if not scored:
            warnings.append("no scorable criteria; score set to veto penalty")
            return AggregationResult(
                score=vp,
                excluded_criteria=tuple(excluded),
                warnings=tuple(warnings),
            )

        active = reweight(weights, [criterion.id for criterion, *_ in scored])

        breakdown: list[BreakdownEntry] = []
        penalties: list[Penalty] = []
        for criterion, raw_value, result, is_imputed in scored:
            weight = active[criterion.id]
            contribution = contribution_factor(result.value, weight)
            entry = BreakdownEntry(
                criterion_id=criterion.id,
                label=criterion.label,
                raw_value=raw_value,
                normalized_value=result.value,
                weight=weight,
                is_vetoed=result.is_vetoed,
                is_imputed=is_imputed,
                contribution=contribution,
            )
            breakdown.append(entry)
            if result.is_vetoed:
                logger.info(
                    "%s: veto on '%s' (raw=%r, threshold=%s)",
                    category.category_id, criterion.id, raw_value, criterion.veto_threshold,
                )
                penalties.append(
                    Penalty(
                        source=PenaltySource.VETO,
                        reason=f"{criterion.label} crosses veto threshold {criterion.veto_threshold}",
                        multiplier=contribution,
                        criterion_id=criterion.id,
                    )
                )

        score = multiplicative_utility((e.normalized_value, e.weight) for e in breakdown)

        return AggregationResult(
            score=score,
            breakdown=tuple(breakdown),
            excluded_criteria=tuple(excluded),
            penalties=tuple(penalties),
            strengths=select_strengths(breakdown, self._config),
            weaknesses=select_weaknesses(breakdown, self._config),
            warnings=tuple(warnings),
        )
