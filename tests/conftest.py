"""Shared pytest fixtures for the decision engine test suite.

Provides:
- make_criterion: factory for CriterionConfig with sensible defaults
- two_criterion_category: minimal category used by deal-breaker tests
- vacuum_category: the bundled robot vacuum config loaded from JSON
- vacuum_products: the bundled robot vacuum sample products
- engine: DecisionEngine with default ScoringConfig
"""

import json
from pathlib import Path

import pytest

from src.models.category import CategoryConfig, CriterionConfig, LinearNormalization
from src.scoring.engine import DecisionEngine
from src.scoring.registry import CategoryRegistry

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@pytest.fixture
def make_criterion():
    """Build a linear 0-10 maximize criterion; keyword overrides apply."""

    def _make(criterion_id: str = "c1", **overrides) -> CriterionConfig:
        fields = {
            "id": criterion_id,
            "label": criterion_id.upper(),
            "data_field": criterion_id,
            "weight_subjective": 1.0,
            "normalization": LinearNormalization(min=0.0, max=10.0),
        }
        fields.update(overrides)
        return CriterionConfig(**fields)

    return _make


@pytest.fixture
def two_criterion_category(make_criterion) -> CategoryConfig:
    """c1 (w=0.3, veto below 3) and c2 (w=0.7), both linear 0-10."""
    return CategoryConfig(
        category_id="two_criteria",
        name="Two criteria",
        hybrid_alpha=0.5,
        veto_penalty=0.01,
        criteria=(
            make_criterion("c1", weight_subjective=0.3, veto_threshold=3.0),
            make_criterion("c2", weight_subjective=0.7),
        ),
    )


@pytest.fixture
def vacuum_category() -> CategoryConfig:
    registry = CategoryRegistry.load_from_json(DATA_DIR / "categories" / "robot_vacuum.json")
    return registry["robot_vacuum"]


@pytest.fixture
def vacuum_products() -> list[dict]:
    with open(DATA_DIR / "products" / "robot_vacuums.json", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def engine() -> DecisionEngine:
    return DecisionEngine()
