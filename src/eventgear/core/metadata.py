# src/eventgear/core/metadata.py
"""Deep structural comparison and snapshotting of event metadata.

Metadata is opaque user data. Change detection compares canonical JSON
(RFC 8785 via the rfc8785 package) so that key order and int/float
spelling do not count as a change. Values that have no JSON form fall back
to Python structural equality.
"""

from __future__ import annotations

import copy
import math
from typing import Any

import numpy as np
import rfc8785
import structlog

logger = structlog.get_logger(__name__)


def _normalize_value(obj: Any) -> Any:
    """Convert numpy scalars/arrays and sets to JSON-safe primitives.

    Raises:
        ValueError: On NaN or Infinity (no canonical JSON form).
    """
    if isinstance(obj, float | np.floating):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot canonicalize non-finite float: {obj}")
        return float(obj)
    if obj is None or isinstance(obj, str | int | bool):
        return obj
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return [_normalize_value(x) for x in obj.tolist()]
    return obj


def _normalize(data: Any) -> Any:
    if isinstance(data, dict):
        return {str(k): _normalize(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize(v) for v in data]
    if isinstance(data, set | frozenset):
        return sorted((_normalize(v) for v in data), key=repr)
    return _normalize_value(data)


def canonical_json(obj: Any) -> str:
    """Canonical JSON text of ``obj`` (sorted keys, no whitespace).

    Raises:
        ValueError: If data contains NaN or Infinity.
        TypeError: If data contains types that cannot be serialized.
    """
    result: bytes = rfc8785.dumps(_normalize(obj))
    return result.decode("utf-8")


def metadata_equal(left: Any, right: Any) -> bool:
    """Deep structural equality, independent of object identity."""
    if left is right:
        return True
    try:
        return canonical_json(left) == canonical_json(right)
    except (TypeError, ValueError):
        pass
    try:
        return bool(left == right)
    except (TypeError, ValueError):
        # e.g. objects whose __eq__ returns an ambiguous array
        return False


def snapshot_metadata(value: Any) -> Any:
    """Deep copy ``value`` so later mutation by the caller cannot alter it.

    Values that cannot be deep-copied (locks, sockets) are kept by reference.
    """
    if value is None or isinstance(value, str | int | float | bool):
        return value
    try:
        return copy.deepcopy(value)
    except (TypeError, copy.Error) as e:
        logger.debug("Metadata kept by reference", value_type=type(value).__name__, error=str(e))
        return value
