# dl4j_inspector/reporting/json_reporter.py
"""
JSON reporting utilities.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from dl4j_inspector.observability import to_dict

# Bulky fields left out unless explicitly requested.
_VALUE_FIELDS = frozenset({"kernel_values", "bias_values", "raw_config_json"})


def to_json_dict(result, *, include_values: bool = False) -> Dict[str, Any]:
    """Convert an ImportResult to a JSON-serializable dict."""
    return to_dict(result, exclude=frozenset() if include_values else _VALUE_FIELDS)


def write_json(result, path: str, *, include_values: bool = False) -> None:
    """Write the result to a file as pretty JSON."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_json_dict(result, include_values=include_values), f, indent=2)
