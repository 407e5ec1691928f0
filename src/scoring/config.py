"""Decision engine tuning configuration.

Controls how breakdowns are summarized into strengths and weaknesses,
which context id denotes the unadjusted base score, and the tolerance of
the weight-sum invariant. Defaults can be overridden per engine instance.

Deterministic -- no I/O.
"""

from __future__ import annotations

from pydantic import Field, model_validator

from src.models.common import EngineBase, SCORE_CEILING


class ScoringConfig(EngineBase):
    """Configuration for the decision engine."""

    strength_threshold: float = Field(default=8.5, ge=0.0, le=SCORE_CEILING)
    weakness_threshold: float = Field(default=6.5, ge=0.0, le=SCORE_CEILING)
    max_highlights: int = Field(default=3, ge=0)

    # Selecting this id is the same as selecting no context.
    base_context_id: str = "general_use"

    weight_tolerance: float = Field(default=1e-6, gt=0.0)

    @model_validator(mode="after")
    def _validate_thresholds(self) -> "ScoringConfig":
        if self.weakness_threshold >= self.strength_threshold:
            raise ValueError(
                f"weakness_threshold ({self.weakness_threshold}) must be below "
                f"strength_threshold ({self.strength_threshold})."
            )
        return self
