"""Validation for values folded into the ``understanding`` mapping.

Answers are persisted to YAML and sent back to the model as JSON, so
only plain JSON-compatible shapes are accepted:

- ``None``, ``bool``, ``int``, ``float``, ``str``
- lists of the above (nested arbitrarily)
- mappings with ``str`` keys and values of the above
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SCALARS = (type(None), bool, int, float, str)


class UnderstandingValueError(ValueError):
    """Raised when a value cannot be stored in ``understanding``."""


def validate_answer_value(value: Any, path: str = "value") -> Any:
    """Return *value* normalised to plain built-ins, or raise.

    Tuples are accepted and converted to lists; mappings are copied into
    plain dicts so callers cannot mutate stored answers through aliases.
    """
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, (list, tuple)):
        return [validate_answer_value(item, f"{path}[{i}]") for i, item in enumerate(value)]
    if isinstance(value, Mapping):
        result: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise UnderstandingValueError(f"{path}: mapping keys must be strings, got {type(key).__name__}")
            result[key] = validate_answer_value(item, f"{path}.{key}")
        return result
    raise UnderstandingValueError(f"{path}: unsupported type {type(value).__name__}")


def validate_understanding(mapping: Any) -> dict[str, Any]:
    """Validate a whole ``understanding`` mapping (used when restoring sessions)."""
    if not isinstance(mapping, Mapping):
        raise UnderstandingValueError(f"understanding must be a mapping, got {type(mapping).__name__}")
    return validate_answer_value(mapping, "understanding")
