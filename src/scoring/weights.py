"""Weight resolver -- CRITIC objective weights blended with expert weights.

CRITIC (CRiteria Importance Through Intercriteria Correlation):

    C_j = sigma_j * sum_k (1 - r_jk)        o_j = C_j / sum(C)

where sigma_j is the sample standard deviation of criterion j's
normalized values over a comparison sample and r_jk the Pearson
correlation between criteria j and k. The final weight is

    w_j = alpha * o_j + (1 - alpha) * subjective_j

renormalized to sum to 1.

Degenerate samples are handled explicitly:
- fewer than 2 products: no objective weights, subjective only;
- zero-variance criterion: sigma_j = 0 and every r it takes part in is 0;
- all C_j = 0 (e.g. every criterion constant): subjective only.

Deterministic -- NumPy only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

import numpy as np

from src.models.category import CategoryConfig, CriterionConfig
from src.models.common import MissingStrategy, WeightingMethod
from src.models.result import ResolvedWeights
from src.scoring.facts import ProductFacts, resolve_field
from src.scoring.normalizer import normalize

logger = logging.getLogger(__name__)

# Standard deviations below this are treated as exactly zero variance.
_ZERO_VARIANCE_TOL = 1e-12

MIN_CRITIC_SAMPLE = 2


# ---------------------------------------------------------------------------
# Pure weight arithmetic
# ---------------------------------------------------------------------------


def renormalize(weights: Mapping[str, float]) -> dict[str, float]:
    """Scale weights to sum to 1; equal split when they sum to 0."""
    if not weights:
        return {}
    total = float(sum(weights.values()))
    if total <= 0.0:
        equal = 1.0 / len(weights)
        return {key: equal for key in weights}
    return {key: float(w) / total for key, w in weights.items()}


def reweight(weights: Mapping[str, float], active_ids: Iterable[str]) -> dict[str, float]:
    """Redistribute weight proportionally onto the ``active_ids`` subset."""
    return renormalize({cid: weights.get(cid, 0.0) for cid in active_ids})


def blend_weights(
    objective: Mapping[str, float] | None,
    subjective: Mapping[str, float],
    alpha: float,
) -> dict[str, float]:
    """Hybrid blend alpha * objective + (1 - alpha) * subjective, renormalized.

    Subjective weights are renormalized first so that alpha means the same
    thing whatever scale the expert weights were authored in.
    """
    subjective_n = renormalize(subjective)
    if objective is None:
        return subjective_n

    blended = {
        cid: alpha * objective.get(cid, 0.0) + (1.0 - alpha) * subjective_n[cid]
        for cid in subjective_n
    }
    return renormalize(blended)


def correlation_matrix(matrix: np.ndarray, sigma: np.ndarray) -> np.ndarray:
    """Pearson correlations with zero-variance columns held at r = 0."""
    n_criteria = matrix.shape[1]
    corr = np.zeros((n_criteria, n_criteria), dtype=np.float64)

    varying = sigma > 0.0
    if not np.any(varying):
        return corr

    sub = matrix[:, varying]
    centered = sub - sub.mean(axis=0)
    cov = centered.T @ centered / (matrix.shape[0] - 1)
    s = sigma[varying]
    r = np.clip(cov / np.outer(s, s), -1.0, 1.0)
    corr[np.ix_(varying, varying)] = r
    diagonal = np.flatnonzero(varying)
    corr[diagonal, diagonal] = 1.0
    return corr


def critic_weights(matrix: np.ndarray) -> np.ndarray | None:
    """Objective CRITIC weights for a (products x criteria) value matrix.

    Returns:
        Weights summing to 1, or None when the sample cannot support them
        (fewer than 2 rows, or no criterion carries information).

    Raises:
        ValueError: If the matrix is not two-dimensional.
    """
    X = np.asarray(matrix, dtype=np.float64)
    if X.ndim != 2:
        msg = f"CRITIC needs a 2-D matrix, got shape {X.shape}."
        raise ValueError(msg)

    n_products, n_criteria = X.shape
    if n_products < MIN_CRITIC_SAMPLE or n_criteria == 0:
        return None

    sigma = X.std(axis=0, ddof=1)
    sigma = np.where(sigma > _ZERO_VARIANCE_TOL, sigma, 0.0)

    corr = correlation_matrix(X, sigma)
    conflict = (1.0 - corr).sum(axis=1)
    information = sigma * conflict

    total = float(information.sum())
    if not np.isfinite(total) or total <= 0.0:
        return None
    return information / total


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class WeightResolver:
    """Resolves the final criterion weights of a category.

    With a comparison sample of at least two products the objective CRITIC
    weights are blended in at ``category.hybrid_alpha``; otherwise the
    subjective weights are used, renormalized.
    """

    def resolve(
        self,
        category: CategoryConfig,
        sample: Sequence[ProductFacts] | None = None,
    ) -> ResolvedWeights:
        subjective = {c.id: c.weight_subjective for c in category.criteria}
        products = list(sample or [])

        objective: dict[str, float] | None = None
        if len(products) >= MIN_CRITIC_SAMPLE:
            matrix = self.sample_matrix(category, products)
            critic = critic_weights(matrix)
            if critic is not None:
                objective = {
                    cid: float(w) for cid, w in zip(category.criterion_ids, critic)
                }
            else:
                logger.debug(
                    "CRITIC degenerate for %s (n=%d); using subjective weights",
                    category.category_id,
                    len(products),
                )

        weights = blend_weights(objective, subjective, category.hybrid_alpha)
        method = WeightingMethod.HYBRID if objective is not None else WeightingMethod.SUBJECTIVE
        return ResolvedWeights(
            weights=weights,
            objective_weights=objective,
            method=method,
            sample_size=len(products),
        )

    def sample_matrix(
        self,
        category: CategoryConfig,
        sample: Sequence[ProductFacts],
    ) -> np.ndarray:
        """Normalized values of every sample product, one column per criterion.

        Missing cells are imputed with ``impute_value`` (impute_penalty) or
        with the mean of the criterion's present values (ignore_reweight).
        """
        columns = [
            self._sample_column(criterion, sample, category.veto_penalty)
            for criterion in category.criteria
        ]
        return np.column_stack(columns) if columns else np.empty((len(sample), 0))

    def _sample_column(
        self,
        criterion: CriterionConfig,
        sample: Sequence[ProductFacts],
        veto_penalty: float,
    ) -> np.ndarray:
        values: list[float | None] = []
        for facts in sample:
            lookup = resolve_field(facts, criterion.data_field)
            if not lookup.is_missing:
                values.append(normalize(lookup.value, criterion, veto_penalty).value)
            elif criterion.missing_strategy == MissingStrategy.IMPUTE_PENALTY:
                values.append(normalize(criterion.impute_value, criterion, veto_penalty).value)
            else:
                values.append(None)

        present = [v for v in values if v is not None]
        fill = float(np.mean(present)) if present else veto_penalty
        return np.array([fill if v is None else v for v in values], dtype=np.float64)
