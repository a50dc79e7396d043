"""
_utils.py
=========
General-purpose numeric helpers for phylodex.

These are standalone functions that don't depend on the main classes
and are shared by several index modules.
"""

from typing import Optional


# Digits kept by truncate_ratio.  Contribution scores are compared across
# runs, so floating point noise below this precision is cut off.
TRUNCATE_SCALE = 1e11


def safe_ratio(numerator, denominator) -> Optional[float]:
    """
    Divide, returning ``None`` when the denominator is zero or undefined.

    Parameters
    ----------
    numerator : float or None
    denominator : float or None

    Returns
    -------
    float or None

    Examples
    --------
    >>> safe_ratio(3, 6)
    0.5
    >>> safe_ratio(3, 0) is None
    True
    >>> safe_ratio(None, 2) is None
    True
    """
    if numerator is None or not denominator:
        return None
    return numerator / denominator


def truncate_ratio(value, total) -> Optional[float]:
    """
    Return ``value / total`` truncated towards zero at 1e-11 precision.

    Returns ``None`` when *total* is zero or undefined.

    Examples
    --------
    >>> truncate_ratio(1, 3)
    0.33333333333
    >>> truncate_ratio(2, 0) is None
    True
    """
    if value is None or not total:
        return None
    return int(TRUNCATE_SCALE * value / total) / TRUNCATE_SCALE

