"""Product facts: dynamic value variant and dot-path field resolution.

Product attributes arrive from the catalog as loosely-typed nested maps.
``resolve_field`` walks a dot-path and reports an explicit "not found"
instead of raising, so missing data can be routed through each
criterion's missing-data strategy.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# Dynamic value variant: number | string | boolean | null | list | nested map.
FactValue = bool | int | float | str | None | list[Any] | dict[str, Any]

ProductFacts = Mapping[str, Any]

_PATH_SEPARATOR = "."


@dataclass(frozen=True)
class FieldLookup:
    """Outcome of a dot-path lookup.

    ``found`` is False when any path segment is absent or lands on a
    non-mapping value.
    """

    found: bool
    value: Any = None

    @property
    def is_missing(self) -> bool:
        """Absent, null, or empty string all count as missing data."""
        if not self.found or self.value is None:
            return True
        return isinstance(self.value, str) and self.value.strip() == ""


NOT_FOUND = FieldLookup(found=False)


def resolve_field(facts: ProductFacts, path: str) -> FieldLookup:
    """Walk ``path`` (e.g. ``"specs.noise_db"``) into ``facts``."""
    current: Any = facts
    for segment in path.split(_PATH_SEPARATOR):
        if not isinstance(current, Mapping) or segment not in current:
            return NOT_FOUND
        current = current[segment]
    return FieldLookup(found=True, value=current)


def validate_facts(obj: object, path: str = "") -> dict[str, Any]:
    """Check an untrusted object against the FactValue variant.

    Returns a plain ``dict`` copy. Raises ValueError naming the first
    offending dot-path (non-string keys, NaN, unsupported value types).
    """
    if not isinstance(obj, Mapping):
        where = path or "<root>"
        msg = f"product facts at '{where}' must be a mapping, got {type(obj).__name__}."
        raise ValueError(msg)

    validated: dict[str, Any] = {}
    for key, value in obj.items():
        if not isinstance(key, str):
            msg = f"product facts key {key!r} under '{path or '<root>'}' is not a string."
            raise ValueError(msg)
        child_path = f"{path}{_PATH_SEPARATOR}{key}" if path else key
        validated[key] = _validate_value(value, child_path)
    return validated


def _validate_value(value: object, path: str) -> Any:
    if value is None or isinstance(value, (bool, str, int)):
        return value
    if isinstance(value, float):
        if math.isnan(value):
            msg = f"product fact '{path}' is NaN."
            raise ValueError(msg)
        return value
    if isinstance(value, Mapping):
        return validate_facts(value, path)
    if isinstance(value, (list, tuple)):
        return [_validate_value(item, f"{path}[{i}]") for i, item in enumerate(value)]
    msg = f"product fact '{path}' has unsupported type {type(value).__name__}."
    raise ValueError(msg)
