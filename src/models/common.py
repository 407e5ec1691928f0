"""Shared types, enums, and base models used across the decision engine models."""

from enum import StrEnum

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

# Upper bound of every normalized criterion value and of the displayed score.
SCORE_CEILING = 10.0


# --- Shared enums ---


class Direction(StrEnum):
    """Whether higher raw values are better or worse for a criterion."""

    MAXIMIZE = "maximize"
    MINIMIZE = "minimize"


class MissingStrategy(StrEnum):
    """How a criterion is handled when the product lacks its field."""

    IMPUTE_PENALTY = "impute_penalty"
    IGNORE_REWEIGHT = "ignore_reweight"


class NormalizationMethod(StrEnum):
    """Curve used to map a raw attribute onto the 0-10 utility scale."""

    LINEAR = "linear"
    SIGMOID = "sigmoid"
    ORDINAL = "ordinal"
    BOOLEAN = "boolean"
    LOG_NORMAL = "log_normal"


class ConditionOperator(StrEnum):
    """Comparison operators available to context conditions."""

    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LE = "le"
    GT = "gt"
    GE = "ge"
    IN = "in"
    NOT_IN = "not_in"
    MISSING = "missing"
    PRESENT = "present"
    TRUTHY = "truthy"
    FALSY = "falsy"


class VetoRuleKind(StrEnum):
    """Which side of the threshold violates a context veto rule."""

    MIN_THRESHOLD = "min_threshold"
    MAX_THRESHOLD = "max_threshold"


class VetoAction(StrEnum):
    """What a violated context veto rule does to the product."""

    ELIMINATE = "eliminate"
    PENALIZE = "penalize"


class PenaltySource(StrEnum):
    """Origin of a penalty reported on a scoring result."""

    VETO = "veto"
    CONTEXT = "context"


class WeightingMethod(StrEnum):
    """How the final criterion weights were obtained."""

    HYBRID = "hybrid"
    SUBJECTIVE = "subjective"


# --- Base model ---


class EngineBase(BaseModel):
    """Base model with common configuration for all decision engine models.

    Fields are populated by their Python name or by the camelCase alias
    used in category JSON (``dataField``, ``weightSubjective``, ...).
    """

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
        "protected_namespaces": (),
    }


class FrozenEngineBase(EngineBase, frozen=True):
    """Immutable variant used for configuration shared across calls."""
