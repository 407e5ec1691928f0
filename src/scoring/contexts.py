"""Context adjustment layer -- re-scoring under selected usage contexts.

Pipeline for a selection of context ids:
  0. clean the selection (dedupe, drop the base context, drop unknown ids);
  1. reject mutually exclusive selections before anything is computed;
  2. per context, apply weight multipliers and value deltas to the base
     breakdown and recompute the multiplicative utility s_i, then apply
     the context's veto rules and soft rules;
  3. any fatal rule (or eliminating veto rule) zeroes the final score;
  4. otherwise combine the s_i by weighted geometric mean.

``MutualExclusionError`` is the only exception raised while scoring.

Deterministic -- no I/O.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from src.models.common import ConditionOperator, PenaltySource, VetoAction, VetoRuleKind
from src.models.context import Context, ContextVetoRule, FactCondition
from src.models.result import (
    BreakdownEntry,
    ContextScore,
    Penalty,
    UnifiedScoringResult,
)
from src.scoring.aggregator import multiplicative_utility
from src.scoring.config import ScoringConfig
from src.scoring.facts import ProductFacts, resolve_field
from src.scoring.normalizer import clamp_score
from src.scoring.weights import renormalize

logger = logging.getLogger(__name__)


class MutualExclusionError(ValueError):
    """Two or more selected contexts cannot be combined."""

    def __init__(self, conflicting_contexts: Sequence[str]) -> None:
        self.conflicting_contexts = list(conflicting_contexts)
        super().__init__(
            "Mutually exclusive contexts selected: "
            + ", ".join(self.conflicting_contexts)
        )


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def clean_selection(
    selected_context_ids: Iterable[str] | None,
    category_contexts: Sequence[Context],
    base_context_id: str = "general_use",
) -> tuple[list[str], list[str]]:
    """Dedupe (order kept), drop the base context and unknown ids.

    Returns:
        (context ids, warnings)
    """
    known = {ctx.id for ctx in category_contexts}
    cleaned: list[str] = []
    warnings: list[str] = []
    for context_id in selected_context_ids or ():
        if context_id == base_context_id or context_id in cleaned:
            continue
        if context_id not in known:
            logger.warning("Unknown context '%s' ignored", context_id)
            warnings.append(f"unknown context '{context_id}' ignored")
            continue
        cleaned.append(context_id)
    return cleaned, warnings


def find_conflicts(
    selected_context_ids: Sequence[str],
    category_contexts: Sequence[Context],
) -> list[str]:
    """Every selected id that conflicts with another, in selection order."""
    by_id = {ctx.id: ctx for ctx in category_contexts}
    selected = [by_id[cid] for cid in selected_context_ids if cid in by_id]

    conflicting: set[str] = set()
    for i, first in enumerate(selected):
        for second in selected[i + 1:]:
            shares_group = bool(set(first.exclusion_groups) & set(second.exclusion_groups))
            linked = (
                second.id in first.mutually_exclusive_with
                or first.id in second.mutually_exclusive_with
            )
            if shares_group or linked:
                conflicting.update((first.id, second.id))

    return [ctx.id for ctx in selected if ctx.id in conflicting]


def check_mutual_exclusion(
    selected_context_ids: Sequence[str],
    category_contexts: Sequence[Context],
) -> None:
    """Raise MutualExclusionError when the selection cannot be combined."""
    conflicting = find_conflicts(selected_context_ids, category_contexts)
    if conflicting:
        raise MutualExclusionError(conflicting)


def prepare_selection(
    selected_context_ids: Iterable[str] | None,
    category_contexts: Sequence[Context],
    base_context_id: str = "general_use",
) -> tuple[list[str], list[str]]:
    """Clean then validate a selection; raises MutualExclusionError."""
    cleaned, warnings = clean_selection(selected_context_ids, category_contexts, base_context_id)
    check_mutual_exclusion(cleaned, category_contexts)
    return cleaned, warnings


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _values_equal(left: Any, right: Any) -> bool | None:
    """Equality across compatible types; None when incomparable."""
    if _is_number(left) and _is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left.strip().casefold() == right.strip().casefold()
    if isinstance(left, bool) and isinstance(right, bool):
        return left == right
    return None


def _compare_ordered(left: Any, right: Any, operator: ConditionOperator) -> bool:
    if not (
        (_is_number(left) and _is_number(right))
        or (isinstance(left, str) and isinstance(right, str))
    ):
        return False
    if operator == ConditionOperator.LT:
        return left < right
    if operator == ConditionOperator.LE:
        return left <= right
    if operator == ConditionOperator.GT:
        return left > right
    return left >= right


def _membership(fact: Any, options: Any) -> bool | None:
    """Whether ``fact`` (or any element of a list fact) is in ``options``."""
    if not isinstance(options, list):
        return None
    candidates = fact if isinstance(fact, list) else [fact]
    comparable = False
    for candidate in candidates:
        for option in options:
            equal = _values_equal(candidate, option)
            if equal is None:
                continue
            comparable = True
            if equal:
                return True
    return False if comparable else None


def evaluate_condition(
    condition: FactCondition,
    facts: ProductFacts | None,
    user_settings: Mapping[str, Any] | None = None,
) -> bool:
    """Evaluate a structured condition against product facts.

    Missing fields, missing settings and incomparable types make the
    condition false, except for the ``missing`` operator.
    """
    lookup = resolve_field(facts or {}, condition.field)
    operator = condition.operator

    if lookup.is_missing:
        return operator == ConditionOperator.MISSING
    fact = lookup.value

    if not condition.is_binary:
        if operator == ConditionOperator.TRUTHY:
            return bool(fact)
        if operator == ConditionOperator.FALSY:
            return not fact
        return operator == ConditionOperator.PRESENT

    if condition.setting is not None:
        operand = (user_settings or {}).get(condition.setting)
        if operand is None:
            return False
    else:
        operand = condition.value

    if operator in (ConditionOperator.EQ, ConditionOperator.NE):
        equal = _values_equal(fact, operand)
        if equal is None:
            return False
        return equal if operator == ConditionOperator.EQ else not equal
    if operator in (ConditionOperator.IN, ConditionOperator.NOT_IN):
        member = _membership(fact, operand)
        if member is None:
            return False
        return member if operator == ConditionOperator.IN else not member
    return _compare_ordered(fact, operand, operator)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def weighted_geometric_mean(pairs: Sequence[tuple[float, float]]) -> float:
    """``prod s_i ^ (w_i / sum w)`` over (score, weight) pairs."""
    total = sum(weight for _, weight in pairs)
    if not pairs or total <= 0.0:
        return 0.0
    log_sum = 0.0
    for score, weight in pairs:
        if score <= 0.0:
            return 0.0
        log_sum += (weight / total) * math.log(score)
    return math.exp(log_sum)


def _rule_violated(rule: ContextVetoRule, value: float) -> bool:
    if rule.kind == VetoRuleKind.MAX_THRESHOLD:
        return value > rule.threshold
    return value < rule.threshold


def score_context(
    context: Context,
    base_score: float,
    breakdown: Sequence[BreakdownEntry],
    *,
    facts: ProductFacts | None = None,
    user_settings: Mapping[str, Any] | None = None,
    veto_penalty: float,
) -> ContextScore:
    """Re-score the base breakdown under a single context."""
    weights = {e.criterion_id: e.weight for e in breakdown}
    values = {e.criterion_id: e.normalized_value for e in breakdown}
    vetoed = {e.criterion_id for e in breakdown if e.is_vetoed}

    for adjustment in context.adjustments:
        cid = adjustment.criterion_id
        if cid not in values:
            continue
        if adjustment.when is not None and not evaluate_condition(
            adjustment.when, facts, user_settings
        ):
            continue
        weights[cid] *= adjustment.weight_multiplier
        if cid not in vetoed:
            values[cid] = clamp_score(values[cid] + adjustment.value_delta, veto_penalty)

    if breakdown:
        weights = renormalize(weights)
        score = multiplicative_utility((values[cid], weights[cid]) for cid in values)
    else:
        score = base_score

    penalties: list[Penalty] = []
    fatal_reasons: list[str] = []
    base_values = {e.criterion_id: e.normalized_value for e in breakdown}

    for rule in context.veto_rules:
        value = base_values.get(rule.criterion_id)
        if value is None or not _rule_violated(rule, value):
            continue
        if rule.action == VetoAction.ELIMINATE:
            fatal_reasons.append(rule.description)
            continue
        score = max(score * rule.penalty_multiplier, veto_penalty)
        penalties.append(
            Penalty(
                source=PenaltySource.CONTEXT,
                reason=rule.description,
                multiplier=rule.penalty_multiplier,
                criterion_id=rule.criterion_id,
                context_id=context.id,
            )
        )

    for soft in context.soft_rules:
        if not evaluate_condition(soft.condition, facts, user_settings):
            continue
        score = max(score * soft.factor, veto_penalty)
        penalties.append(
            Penalty(
                source=PenaltySource.CONTEXT,
                reason=soft.reason,
                multiplier=soft.factor,
                context_id=context.id,
            )
        )

    for fatal in context.fatal_rules:
        if evaluate_condition(fatal.condition, facts, user_settings):
            fatal_reasons.append(fatal.reason)

    if fatal_reasons:
        logger.info("Context '%s' is fatal: %s", context.id, "; ".join(fatal_reasons))

    return ContextScore(
        context_id=context.id,
        name=context.name,
        score=score,
        weight=context.weight,
        penalties=tuple(penalties),
        fatal_reasons=tuple(fatal_reasons),
    )


def apply_contexts(
    base_score: float,
    breakdown: Sequence[BreakdownEntry],
    selected_context_ids: Iterable[str] | None,
    category_contexts: Sequence[Context],
    *,
    facts: ProductFacts | None = None,
    user_settings: Mapping[str, Any] | None = None,
    veto_penalty: float,
    base_penalties: Sequence[Penalty] = (),
    config: ScoringConfig | None = None,
) -> UnifiedScoringResult:
    """Combine the base score with the selected contexts.

    Raises:
        MutualExclusionError: If the selection contains conflicting contexts.
    """
    config = config or ScoringConfig()
    selected, warnings = prepare_selection(
        selected_context_ids, category_contexts, config.base_context_id
    )
    by_id = {ctx.id: ctx for ctx in category_contexts}
    return combine_contexts(
        base_score,
        breakdown,
        [by_id[cid] for cid in selected],
        facts=facts,
        user_settings=user_settings,
        veto_penalty=veto_penalty,
        base_penalties=base_penalties,
        warnings=warnings,
    )


def combine_contexts(
    base_score: float,
    breakdown: Sequence[BreakdownEntry],
    contexts: Sequence[Context],
    *,
    facts: ProductFacts | None = None,
    user_settings: Mapping[str, Any] | None = None,
    veto_penalty: float,
    base_penalties: Sequence[Penalty] = (),
    warnings: Sequence[str] = (),
) -> UnifiedScoringResult:
    """Score and combine an already cleaned, conflict-free context list."""
    context_scores = [
        score_context(
            ctx,
            base_score,
            breakdown,
            facts=facts,
            user_settings=user_settings,
            veto_penalty=veto_penalty,
        )
        for ctx in contexts
    ]

    penalties = list(base_penalties)
    fatal_reasons: list[str] = []
    for cs in context_scores:
        penalties.extend(cs.penalties)
        fatal_reasons.extend(cs.fatal_reasons)

    if fatal_reasons:
        contextual = 0.0
    elif not context_scores:
        contextual = base_score
    elif len(context_scores) == 1:
        contextual = context_scores[0].score
    else:
        contextual = weighted_geometric_mean([(cs.score, cs.weight) for cs in context_scores])

    return UnifiedScoringResult(
        final_score=contextual,
        base_score=base_score,
        contextual_score=contextual,
        delta=contextual - base_score,
        context_ids=tuple(ctx.id for ctx in contexts),
        context_names=tuple(ctx.name for ctx in contexts),
        is_fatal=bool(fatal_reasons),
        fatal_reason=fatal_reasons[0] if fatal_reasons else None,
        fatal_reasons=tuple(fatal_reasons),
        breakdown=tuple(breakdown),
        penalties=tuple(penalties),
        context_scores=tuple(context_scores),
        warnings=tuple(warnings),
    )
