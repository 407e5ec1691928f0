"""Tests for engine and category configuration models."""

import pytest
from pydantic import ValidationError

from src.models.category import CategoryConfig, LinearNormalization, OrdinalNormalization
from src.models.context import Context, CriterionAdjustment, ContextVetoRule
from src.scoring.config import ScoringConfig


class TestScoringConfig:
    def test_defaults(self) -> None:
        config = ScoringConfig()
        assert config.strength_threshold == 8.5
        assert config.weakness_threshold == 6.5
        assert config.max_highlights == 3
        assert config.base_context_id == "general_use"

    def test_camel_case_aliases(self) -> None:
        config = ScoringConfig.model_validate({"strengthThreshold": 9.0, "maxHighlights": 5})
        assert config.strength_threshold == 9.0
        assert config.max_highlights == 5

    def test_weakness_must_be_below_strength(self) -> None:
        with pytest.raises(ValidationError, match="weakness_threshold"):
            ScoringConfig(strength_threshold=6.0, weakness_threshold=6.0)


class TestNormalizationSpecs:
    def test_linear_requires_max_above_min(self) -> None:
        with pytest.raises(ValidationError):
            LinearNormalization(min=10, max=10)

    def test_ordinal_requires_labels(self) -> None:
        with pytest.raises(ValidationError):
            OrdinalNormalization(scale={})

    def test_discriminator_selects_variant(self, make_criterion) -> None:
        criterion = make_criterion(normalization={"method": "sigmoid", "k": 2.0, "x0": 1.0})
        assert criterion.normalization.method == "sigmoid"
        assert criterion.normalization.k == 2.0

    def test_unknown_method_rejected(self, make_criterion) -> None:
        with pytest.raises(ValidationError):
            make_criterion(normalization={"method": "cubic"})


class TestCategoryConfigValidation:
    def test_duplicate_criterion_ids(self, make_criterion) -> None:
        with pytest.raises(ValidationError, match="duplicate criterion ids"):
            CategoryConfig(category_id="x", criteria=(make_criterion("a"), make_criterion("a")))

    def test_duplicate_context_ids(self, make_criterion) -> None:
        with pytest.raises(ValidationError, match="duplicate context ids"):
            CategoryConfig(
                category_id="x",
                criteria=(make_criterion("a"),),
                contexts=(Context(id="k", name="K"), Context(id="k", name="K2")),
            )

    def test_adjustment_on_unknown_criterion(self, make_criterion) -> None:
        context = Context(
            id="k", name="K", adjustments=(CriterionAdjustment(criterion_id="zzz"),),
        )
        with pytest.raises(ValidationError, match="unknown criteria"):
            CategoryConfig(category_id="x", criteria=(make_criterion("a"),), contexts=(context,))

    def test_veto_rule_on_unknown_criterion(self, make_criterion) -> None:
        rule = ContextVetoRule(id="r", description="r", criterion_id="zzz", threshold=5)
        context = Context(id="k", name="K", veto_rules=(rule,))
        with pytest.raises(ValidationError, match="unknown criteria"):
            CategoryConfig(category_id="x", criteria=(make_criterion("a"),), contexts=(context,))

    @pytest.mark.parametrize("veto_penalty", [0.0, 10.0, -1.0])
    def test_veto_penalty_range(self, make_criterion, veto_penalty) -> None:
        with pytest.raises(ValidationError):
            CategoryConfig(
                category_id="x", veto_penalty=veto_penalty, criteria=(make_criterion("a"),),
            )

    def test_needs_a_criterion(self) -> None:
        with pytest.raises(ValidationError):
            CategoryConfig(category_id="x", criteria=())

    def test_frozen(self, two_criterion_category) -> None:
        with pytest.raises(ValidationError):
            two_criterion_category.hybrid_alpha = 0.9

    def test_criterion_ids(self, two_criterion_category) -> None:
        assert two_criterion_category.criterion_ids == ["c1", "c2"]
