"""Usage-context configuration: delta rules, veto rules, fatal rules.

A context is a user-selectable scenario ("apartment", "pet owners") that
re-weights or shifts criterion values, can penalize (by criterion value or
by a fact condition) or eliminate a product,
and may be mutually exclusive with other contexts of the same category.
"""

from __future__ import annotations

from pydantic import Field, model_validator

from src.models.common import (
    ConditionOperator,
    FrozenEngineBase,
    VetoAction,
    VetoRuleKind,
)

# Operators that compare the field against a value or a user setting.
_BINARY_OPERATORS: frozenset[ConditionOperator] = frozenset({
    ConditionOperator.EQ,
    ConditionOperator.NE,
    ConditionOperator.LT,
    ConditionOperator.LE,
    ConditionOperator.GT,
    ConditionOperator.GE,
    ConditionOperator.IN,
    ConditionOperator.NOT_IN,
})

ConditionValue = bool | float | str | list[bool | float | str] | None


class FactCondition(FrozenEngineBase):
    """Structured predicate over a product fact.

    The right-hand side is either a literal ``value`` or the name of a
    ``setting`` supplied by the caller (e.g. the user's ``voltage``).
    """

    field: str = Field(min_length=1)
    operator: ConditionOperator
    value: ConditionValue = None
    setting: str | None = None

    @model_validator(mode="after")
    def _validate_operand(self) -> "FactCondition":
        if self.is_binary:
            if self.value is None and self.setting is None:
                raise ValueError(
                    f"operator '{self.operator}' requires a value or a setting."
                )
            if self.value is not None and self.setting is not None:
                raise ValueError("use either value or setting, not both.")
        return self

    @property
    def is_binary(self) -> bool:
        return self.operator in _BINARY_OPERATORS


class CriterionAdjustment(FrozenEngineBase):
    """Per-criterion delta applied while a context is selected."""

    criterion_id: str
    weight_multiplier: float = Field(default=1.0, ge=0.0)
    value_delta: float = 0.0
    when: FactCondition | None = None


class ContextVetoRule(FrozenEngineBase):
    """Threshold on a criterion's normalized value within a context."""

    id: str
    description: str
    criterion_id: str
    kind: VetoRuleKind = VetoRuleKind.MIN_THRESHOLD
    threshold: float
    action: VetoAction = VetoAction.PENALIZE
    penalty_multiplier: float = Field(default=0.5, ge=0.0, le=1.0)


class SoftRule(FrozenEngineBase):
    """Condition-triggered multiplicative penalty, e.g. a fact clashing with a user setting."""

    id: str
    reason: str
    condition: FactCondition
    factor: float = Field(ge=0.0, le=1.0)


class FatalRule(FrozenEngineBase):
    """Hard incompatibility: the product is unusable in this context."""

    id: str
    reason: str
    condition: FactCondition


class Context(FrozenEngineBase):
    """One selectable usage scenario of a category."""

    id: str = Field(min_length=1)
    name: str
    description: str | None = None
    exclusion_groups: tuple[str, ...] = ()
    mutually_exclusive_with: tuple[str, ...] = ()
    weight: float = Field(default=1.0, gt=0.0)
    adjustments: tuple[CriterionAdjustment, ...] = ()
    veto_rules: tuple[ContextVetoRule, ...] = ()
    soft_rules: tuple[SoftRule, ...] = ()
    fatal_rules: tuple[FatalRule, ...] = ()
