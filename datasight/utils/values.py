# datasight/utils/values.py
"""Coercion helpers shared by the profiling and insight agents."""
import math
import numbers
from datetime import date, datetime
from typing import Any, Hashable, Optional, Tuple

import numpy as np
import pandas as pd

MISSING_TOKENS = frozenset({'', 'null', 'undefined'})
BOOLEAN_TOKENS = frozenset({'true', 'false', '0', '1', 'yes', 'no', 'y', 'n'})


def is_missing(value: Any) -> bool:
    """True for None, NaN/NaT, empty strings and the 'null'/'undefined' sentinels"""
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, str):
        return value in MISSING_TOKENS
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def to_number(value: Any) -> Optional[float]:
    """Convert ``value`` to a finite float, or None when it is not numeric.

    Booleans are not numbers here, and strings must parse completely.
    """
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, numbers.Real):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def is_boolean_like(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return True
    if isinstance(value, numbers.Real):
        return value == 0 or value == 1
    if isinstance(value, str):
        return value.strip().lower() in BOOLEAN_TOKENS
    return False


def to_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Permissive date parse; None when ``value`` is not a date"""
    if isinstance(value, (bool, np.bool_)) or is_missing(value):
        return None
    if isinstance(value, (datetime, date, np.datetime64)):
        parsed = pd.Timestamp(value)
        return None if parsed is pd.NaT else parsed
    try:
        parsed = pd.to_datetime(str(value))
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is pd.NaT:
        return None
    return parsed


def distinct_key(value: Any) -> Tuple[bool, Hashable]:
    """Hashable identity for distinct-value counting.

    Keeps True apart from 1 while letting 1 and 1.0 collapse together.
    """
    if isinstance(value, (bool, np.bool_)):
        return True, bool(value)
    if isinstance(value, Hashable):
        return False, value
    return False, repr(value)


def to_python(value: Any) -> Any:
    """Unbox numpy scalars and turn NaN/NaT into None"""
    if isinstance(value, np.datetime64):
        value = pd.Timestamp(value)
    elif isinstance(value, np.generic):
        value = value.item()
    if value is pd.NaT:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def drop_empty_records(records: list) -> list:
    """Remove rows in which every value is missing"""
    return [row for row in records if any(not is_missing(value) for value in row.values())]
