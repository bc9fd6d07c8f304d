"""Serialization utilities for loregraph.

Attribute maps and provenance are persisted as JSON text; these helpers keep
NumPy scalars and arrays from leaking into the encoder.
"""

import json
from typing import Any, Dict, Optional

import numpy as np


def convert_numpy_types(obj: Any) -> Any:
    """Convert NumPy types to Python native types.

    Args:
        obj: Object to convert

    Returns:
        Converted object
    """
    if isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, dict):
        return {k: convert_numpy_types(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_numpy_types(item) for item in obj]
    elif isinstance(obj, tuple):
        return [convert_numpy_types(item) for item in obj]
    else:
        return obj


def dump_json(data: Optional[Dict[str, Any]]) -> str:
    """Encode an attribute map for storage.

    Args:
        data: Map to encode (None is stored as an empty object)

    Returns:
        JSON text

    Raises:
        TypeError: If a value cannot be represented in JSON
        ValueError: If a float value is NaN or infinite
    """
    return json.dumps(convert_numpy_types(data or {}), allow_nan=False)


def load_json(text: Optional[str]) -> Dict[str, Any]:
    """Decode a stored attribute map.

    Args:
        text: JSON text (None or empty yields an empty map)

    Returns:
        Decoded map
    """
    if not text:
        return {}
    return json.loads(text)


def json_equal(left: Any, right: Any) -> bool:
    """Compare two decoded JSON values.

    Numbers compare by value, but booleans never equal numbers.

    Args:
        left: First value
        right: Second value

    Returns:
        True if both values denote the same JSON document
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(json_equal(left[k], right[k]) for k in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(json_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, (dict, list, tuple)) or isinstance(right, (dict, list, tuple)):
        return False
    return left == right


def contains_attributes(attributes: Dict[str, Any], query: Dict[str, Any]) -> bool:
    """Check that every key of ``query`` is present in ``attributes`` with an equal value."""
    return all(
        key in attributes and json_equal(attributes[key], value)
        for key, value in query.items()
    )
