"""Rank a JSON file of products within a category.

Usage:
    python -m scripts.score_products robot_vacuum data/products/robot_vacuums.json
    python -m scripts.score_products robot_vacuum data/products/robot_vacuums.json \\
        --context apartment --context pet_owners --setting voltage=230
    python -m scripts.score_products robovac products.json \\
        --config data/categories --json

Exit status: 0 on success, 1 on invalid input, 2 when the selected
contexts are mutually exclusive.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from src.config.logging import configure_logging
from src.config.settings import get_settings
from src.models.result import RankedProduct
from src.scoring.contexts import MutualExclusionError
from src.scoring.engine import DecisionEngine
from src.scoring.facts import validate_facts
from src.scoring.registry import CategoryRegistry, load_default_registry

EXIT_INVALID_INPUT = 1
EXIT_CONTEXT_CONFLICT = 2


def parse_setting(text: str) -> tuple[str, Any]:
    """Parse ``KEY=VALUE``; VALUE is read as JSON when it parses, else kept as text."""
    key, sep, raw = text.partition("=")
    if not sep or not key.strip():
        msg = f"expected KEY=VALUE, got {text!r}"
        raise argparse.ArgumentTypeError(msg)
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key.strip(), value


def load_products(path: Path) -> list[dict[str, Any]]:
    """Read and validate a JSON product object or list of them."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        msg = f"{path}: expected a product object or a list of them."
        raise ValueError(msg)
    return [validate_facts(item, path=f"[{i}]") for i, item in enumerate(data)]


def _print_ranking(category_name: str, ranked: list[RankedProduct]) -> None:
    """Print ranked products as a table."""
    w = 72
    print("=" * w)
    print(f"  {category_name}")
    if ranked and ranked[0].result.context_ids:
        print(f"  Contexts: {', '.join(ranked[0].result.context_names)}")
    print("=" * w)
    print(f"  {'#':>3} {'Product':<24} {'Final':>7} {'Base':>7} {'Delta':>7}  Notes")
    print(f"  {'-' * 3} {'-' * 24} {'-' * 7} {'-' * 7} {'-' * 7}  {'-' * 16}")
    for item in ranked:
        r = item.result
        if r.is_fatal:
            note = f"FATAL: {r.fatal_reason}"
        elif r.weaknesses:
            note = "weak: " + ", ".join(e.criterion_id for e in r.weaknesses)
        else:
            note = ""
        print(
            f"  {item.rank:>3} {item.product_id:<24} {r.final_score:>7.2f}"
            f" {r.base_score:>7.2f} {r.delta:>+7.2f}  {note}"
        )
    print("=" * w)


def main(argv: list[str] | None = None) -> None:
    """Rank products and print the result."""
    parser = argparse.ArgumentParser(
        description="Rank products within a category using the decision engine",
    )
    parser.add_argument("category", help="Category id or alias")
    parser.add_argument("products_path", type=Path, help="Path to products JSON")
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Category config JSON file or directory (default: CATEGORY_CONFIG_PATH)",
    )
    parser.add_argument(
        "--context", dest="contexts", action="append", default=[],
        help="Usage context id; repeat for several",
    )
    parser.add_argument(
        "--setting", dest="settings", action="append", default=[],
        type=parse_setting, help="User setting KEY=VALUE read by context rules",
    )
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    args = parser.parse_args(argv)

    log = configure_logging(get_settings())

    try:
        registry = (
            CategoryRegistry.load_from_json(args.config)
            if args.config is not None
            else load_default_registry()
        )
        category = registry[args.category]
        products = load_products(args.products_path)
    except KeyError as exc:
        print(f"  ERROR: {exc.args[0]}", file=sys.stderr)
        sys.exit(EXIT_INVALID_INPUT)
    except (OSError, ValueError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        sys.exit(EXIT_INVALID_INPUT)

    engine = DecisionEngine()
    try:
        ranked = engine.rank(
            products,
            category,
            args.contexts,
            user_settings=dict(args.settings),
        )
    except MutualExclusionError as exc:
        log.warning("context_conflict", conflicting=exc.conflicting_contexts)
        print(f"  ERROR: {exc}", file=sys.stderr)
        sys.exit(EXIT_CONTEXT_CONFLICT)

    log.info("ranked", category=category.category_id, products=len(ranked))
    if args.json:
        payload = [item.model_dump(mode="json", by_alias=True) for item in ranked]
        print(json.dumps(payload, indent=2))
    else:
        _print_ranking(category.name or category.category_id, ranked)
    sys.exit(0)


if __name__ == "__main__":
    main()
