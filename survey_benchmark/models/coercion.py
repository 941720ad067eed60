"""
Numeric coercion shared by the row normalizer and the request models.

Uploaded survey cells and user-entered compensation figures arrive as strings,
numbers or blanks. Both go through coerce_number(), so a bad value counts as 0
instead of failing the row or the request.

Dependencies:
    - pandas: to_numeric(errors='coerce') for heterogeneous values
    - numpy: finiteness checks
"""

from typing import Any

import numpy as np
import pandas as pd


_CURRENCY_CHARACTERS = ('$', ',')


def coerce_number(value: Any) -> float:
    """
    Coerce a raw value to a float.

    Strips '$' and ',' from strings; returns 0.0 for missing, non-numeric,
    NaN or infinite input.
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, str):
        cleaned = value.strip()
        for character in _CURRENCY_CHARACTERS:
            cleaned = cleaned.replace(character, '')
        if not cleaned:
            return 0.0
        value = cleaned

    try:
        number = float(pd.to_numeric(value, errors='coerce'))
    except (TypeError, ValueError):
        return 0.0
    if not np.isfinite(number):
        return 0.0
    return number


__all__ = ['coerce_number']
