"""Decision engine -- orchestrates normalize -> weights -> aggregate -> contexts.

Three entry points:
  score(facts, category, context_ids)     one product, full pipeline
  rank(products, category, context_ids)   a batch, best first
  compare_contexts(facts, category)       one product under each context alone

The context selection is validated before any scoring work is done, so a
conflicting selection raises ``MutualExclusionError`` and returns nothing.

Deterministic -- no I/O, no shared mutable state.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from src.models.category import CategoryConfig
from src.models.context import Context
from src.models.result import (
    ContextComparison,
    RankedProduct,
    ResolvedWeights,
    UnifiedScoringResult,
)
from src.scoring.aggregator import UtilityAggregator
from src.scoring.config import ScoringConfig
from src.scoring.contexts import combine_contexts, prepare_selection
from src.scoring.facts import ProductFacts, resolve_field
from src.scoring.weights import WeightResolver

logger = logging.getLogger(__name__)


class DecisionEngine:
    """Scores products of a category into ``UnifiedScoringResult`` values."""

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self._config = config or ScoringConfig()
        self._resolver = WeightResolver()
        self._aggregator = UtilityAggregator(self._config)

    @property
    def config(self) -> ScoringConfig:
        return self._config

    def resolve_weights(
        self,
        category: CategoryConfig,
        sample: Sequence[ProductFacts] | None = None,
    ) -> ResolvedWeights:
        return self._resolver.resolve(category, sample)

    def score(
        self,
        facts: ProductFacts,
        category: CategoryConfig,
        context_ids: Iterable[str] | None = None,
        *,
        sample: Sequence[ProductFacts] | None = None,
        weights: ResolvedWeights | None = None,
        user_settings: Mapping[str, Any] | None = None,
    ) -> UnifiedScoringResult:
        """Score one product, optionally under a set of contexts.

        Args:
            facts: Raw product attributes.
            category: Category rule set.
            context_ids: Selected usage contexts (``general_use`` = none).
            sample: Comparison products for CRITIC weighting.
            weights: Pre-resolved weights; skips weight resolution.
            user_settings: User/regional settings read by context conditions.

        Raises:
            MutualExclusionError: If the selected contexts conflict.
        """
        contexts, warnings = self._select(context_ids, category)
        resolved = weights or self.resolve_weights(category, sample)
        return self._score_resolved(
            facts, category, contexts, resolved, user_settings, warnings,
        )

    def rank(
        self,
        products: Sequence[ProductFacts],
        category: CategoryConfig,
        context_ids: Iterable[str] | None = None,
        *,
        sample: Sequence[ProductFacts] | None = None,
        user_settings: Mapping[str, Any] | None = None,
        id_field: str = "id",
    ) -> list[RankedProduct]:
        """Score a batch and order it best first.

        The batch itself is the CRITIC sample unless ``sample`` is given.
        Fatal products sort after every non-fatal one; ties keep input order.
        """
        contexts, warnings = self._select(context_ids, category)
        resolved = self.resolve_weights(category, products if sample is None else sample)

        scored: list[tuple[str, UnifiedScoringResult]] = []
        for index, facts in enumerate(products):
            lookup = resolve_field(facts, id_field)
            product_id = str(index) if lookup.is_missing else str(lookup.value)
            result = self._score_resolved(
                facts, category, contexts, resolved, user_settings, warnings,
            )
            scored.append((product_id, result))

        scored.sort(key=lambda item: (item[1].is_fatal, -item[1].final_score))
        logger.info(
            "Ranked %d %s products (weighting=%s)",
            len(scored), category.category_id, resolved.method,
        )
        return [
            RankedProduct(rank=position, product_id=product_id, result=result)
            for position, (product_id, result) in enumerate(scored, start=1)
        ]

    def compare_contexts(
        self,
        facts: ProductFacts,
        category: CategoryConfig,
        *,
        sample: Sequence[ProductFacts] | None = None,
        user_settings: Mapping[str, Any] | None = None,
    ) -> ContextComparison:
        """Score the product under each of the category's contexts alone."""
        resolved = self.resolve_weights(category, sample)
        base = self._aggregator.aggregate(facts, category, resolved.weights)

        results: dict[str, UnifiedScoringResult] = {}
        for ctx in category.contexts:
            if ctx.id == self._config.base_context_id:
                continue
            results[ctx.id] = self._score_resolved(
                facts, category, [ctx], resolved, user_settings,
            )

        viable = [(cid, r.final_score) for cid, r in results.items() if not r.is_fatal]
        best = max(viable, key=lambda item: item[1])[0] if viable else None
        worst = min(viable, key=lambda item: item[1])[0] if viable else None
        return ContextComparison(
            base_score=base.score,
            results=results,
            best_context_id=best,
            worst_context_id=worst,
        )

    def _select(
        self,
        context_ids: Iterable[str] | None,
        category: CategoryConfig,
    ) -> tuple[list[Context], list[str]]:
        """Clean and validate the selection once per call."""
        selected, warnings = prepare_selection(
            context_ids, category.contexts, self._config.base_context_id
        )
        by_id = {ctx.id: ctx for ctx in category.contexts}
        return [by_id[cid] for cid in selected], warnings

    def _score_resolved(
        self,
        facts: ProductFacts,
        category: CategoryConfig,
        contexts: Sequence[Context],
        resolved: ResolvedWeights,
        user_settings: Mapping[str, Any] | None,
        selection_warnings: Sequence[str] = (),
    ) -> UnifiedScoringResult:
        base = self._aggregator.aggregate(facts, category, resolved.weights)
        unified = combine_contexts(
            base.score,
            base.breakdown,
            contexts,
            facts=facts,
            user_settings=user_settings,
            veto_penalty=category.veto_penalty,
            base_penalties=base.penalties,
            warnings=selection_warnings,
        )
        return unified.model_copy(update={
            "strengths": base.strengths,
            "weaknesses": base.weaknesses,
            "excluded_criteria": base.excluded_criteria,
            "warnings": base.warnings + unified.warnings,
            "weighting": resolved.method,
        })
