"""Category scoring configuration: criteria, normalization curves, contexts.

A ``CategoryConfig`` is authored once per product category and loaded at
process start. All models here are frozen so a loaded category can be
shared across concurrent scoring calls without copying.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field, model_validator

from src.models.common import (
    Direction,
    FrozenEngineBase,
    MissingStrategy,
    SCORE_CEILING,
)
from src.models.context import Context


# ---------------------------------------------------------------------------
# Normalization variants (tagged on ``method``)
# ---------------------------------------------------------------------------


class LinearNormalization(FrozenEngineBase):
    """Min-max scaling of a bounded numeric attribute."""

    method: Literal["linear"] = "linear"
    min: float = 0.0
    max: float = SCORE_CEILING

    @model_validator(mode="after")
    def _validate_range(self) -> "LinearNormalization":
        if self.max <= self.min:
            raise ValueError(
                f"linear normalization requires max > min (got {self.min}..{self.max})."
            )
        return self


class SigmoidNormalization(FrozenEngineBase):
    """Logistic S-curve for specs with diminishing returns.

    ``x0`` is the inflection point (score 5.0) and ``k`` the steepness;
    the curve rises for maximize and falls for minimize.
    """

    method: Literal["sigmoid"] = "sigmoid"
    k: float = Field(default=1.0, gt=0.0)
    x0: float = 0.0


class OrdinalNormalization(FrozenEngineBase):
    """Categorical label mapped onto a 0-10 score."""

    method: Literal["ordinal"] = "ordinal"
    scale: dict[str, float] = Field(min_length=1)


class BooleanNormalization(FrozenEngineBase):
    """Feature present / absent."""

    method: Literal["boolean"] = "boolean"
    true_value: float = SCORE_CEILING
    false_value: float = 5.0


class LogNormalNormalization(FrozenEngineBase):
    """Logarithmic scaling, typically for price sensitivity."""

    method: Literal["log_normal"] = "log_normal"
    min: float = Field(gt=0.0)
    max: float

    @model_validator(mode="after")
    def _validate_range(self) -> "LogNormalNormalization":
        if self.max <= self.min:
            raise ValueError(
                f"log_normal normalization requires max > min (got {self.min}..{self.max})."
            )
        return self


NormalizationSpec = Annotated[
    Union[
        LinearNormalization,
        SigmoidNormalization,
        OrdinalNormalization,
        BooleanNormalization,
        LogNormalNormalization,
    ],
    Field(discriminator="method"),
]


# ---------------------------------------------------------------------------
# Criteria and categories
# ---------------------------------------------------------------------------


class CriterionConfig(FrozenEngineBase):
    """One scored dimension of a category."""

    id: str = Field(min_length=1)
    label: str
    data_field: str = Field(min_length=1)
    weight_subjective: float = Field(ge=0.0)
    direction: Direction = Direction.MAXIMIZE
    missing_strategy: MissingStrategy = MissingStrategy.IMPUTE_PENALTY
    impute_value: float | str | bool = 0.0
    veto_threshold: float | None = None
    normalization: NormalizationSpec


class CategoryConfig(FrozenEngineBase):
    """A category's full scoring rule set."""

    category_id: str = Field(min_length=1)
    name: str | None = None
    aliases: tuple[str, ...] = ()
    hybrid_alpha: float = Field(default=0.5, ge=0.0, le=1.0)
    veto_penalty: float = Field(default=0.01, gt=0.0, lt=SCORE_CEILING)
    criteria: tuple[CriterionConfig, ...] = Field(min_length=1)
    contexts: tuple[Context, ...] = ()

    @model_validator(mode="after")
    def _validate_references(self) -> "CategoryConfig":
        """Ids are unique and every context rule names a known criterion."""
        criterion_ids = [c.id for c in self.criteria]
        duplicates = sorted({cid for cid in criterion_ids if criterion_ids.count(cid) > 1})
        if duplicates:
            raise ValueError(f"duplicate criterion ids: {duplicates}")

        context_ids = [ctx.id for ctx in self.contexts]
        duplicates = sorted({cid for cid in context_ids if context_ids.count(cid) > 1})
        if duplicates:
            raise ValueError(f"duplicate context ids: {duplicates}")

        known = set(criterion_ids)
        for ctx in self.contexts:
            referenced = {adj.criterion_id for adj in ctx.adjustments}
            referenced |= {rule.criterion_id for rule in ctx.veto_rules}
            unknown = sorted(referenced - known)
            if unknown:
                raise ValueError(
                    f"context '{ctx.id}' references unknown criteria: {unknown}"
                )
        return self

    @property
    def criterion_ids(self) -> list[str]:
        return [c.id for c in self.criteria]
