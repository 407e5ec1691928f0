"""Category registry -- read-only table of category configurations.

Built once from JSON (a single file, or every ``*.json`` in a directory)
and never mutated afterwards, so it can be shared across threads. Lookups
accept the category id or any alias, compared after lower-casing and
stripping ``-``, ``_`` and whitespace ("Robot Vacuum" == "robot_vacuum").
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType

from src.config.settings import get_settings
from src.models.category import CategoryConfig

logger = logging.getLogger(__name__)

_KEY_NOISE = re.compile(r"[-_\s]+")


def normalize_key(key: str) -> str:
    """Lookup key for a category id or alias."""
    return _KEY_NOISE.sub("", key).lower()


class CategoryRegistry(Mapping[str, CategoryConfig]):
    """Immutable mapping of category id (or alias) to CategoryConfig.

    Iteration yields canonical category ids only.
    """

    def __init__(self, categories: Iterable[CategoryConfig]) -> None:
        by_id: dict[str, CategoryConfig] = {}
        index: dict[str, str] = {}
        for category in categories:
            if category.category_id in by_id:
                msg = f"Duplicate category id '{category.category_id}'."
                raise ValueError(msg)
            by_id[category.category_id] = category

            for key in (category.category_id, *category.aliases):
                normalized = normalize_key(key)
                owner = index.get(normalized)
                if owner is not None and owner != category.category_id:
                    msg = (
                        f"Alias '{key}' of '{category.category_id}' collides "
                        f"with category '{owner}'."
                    )
                    raise ValueError(msg)
                index[normalized] = category.category_id

        self._categories = MappingProxyType(by_id)
        self._index = MappingProxyType(index)

    def resolve_id(self, key: str) -> str:
        """Canonical category id for an id or alias; KeyError if unknown."""
        category_id = self._index.get(normalize_key(key))
        if category_id is None:
            msg = f"Unknown category '{key}'."
            raise KeyError(msg)
        return category_id

    def __getitem__(self, key: str) -> CategoryConfig:
        return self._categories[self.resolve_id(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    @classmethod
    def load_from_json(cls, path: str | Path) -> CategoryRegistry:
        """Load categories from a JSON file or a directory of JSON files.

        Each file holds one category object or a list of them.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            ValueError: If a file holds neither an object nor a list.
            pydantic.ValidationError: If a category config is invalid.
        """
        path = Path(path)
        if not path.exists():
            msg = f"Category config path not found: {path}"
            raise FileNotFoundError(msg)

        files = sorted(path.glob("*.json")) if path.is_dir() else [path]
        categories: list[CategoryConfig] = []
        for file in files:
            with open(file, encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                data = [data]
            if not isinstance(data, list):
                msg = f"{file}: expected a category object or a list of them."
                raise ValueError(msg)
            categories.extend(CategoryConfig.model_validate(item) for item in data)

        logger.info("Loaded %d categories from %s", len(categories), path)
        return cls(categories)


@lru_cache(maxsize=1)
def load_default_registry() -> CategoryRegistry:
    """Registry from ``Settings.CATEGORY_CONFIG_PATH``, loaded once per process."""
    return CategoryRegistry.load_from_json(get_settings().CATEGORY_CONFIG_PATH)
