"""Median rules shared by the price aggregation paths.

- median(): the two-level reconciliation rule. Odd length returns the middle
  element, even length the mean of the two middle elements, empty returns 0.
- upper_median(): element at index ``len // 2`` of the sorted values, used by
  single-source integer aggregation.
- median_of_three(): branch-free median for exactly three values, used by
  the three-source pair script.

All of them refuse NaN instead of silently ordering it.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from statistics import median as _median
from statistics import median_high

from .errors import NonComparableValueError


def _checked(values: Iterable[float]) -> list[float]:
    items = list(values)
    for value in items:
        if isinstance(value, float) and math.isnan(value):
            raise NonComparableValueError(value)
    return items


def median(values: Iterable[float]) -> float:
    """Compute the median of a list of numbers.

    :param values: Numbers to aggregate.
    :returns: The median, or 0.0 for an empty input.
    :raises NonComparableValueError: If any value is NaN.

    .. code-block:: python

        >>> median([3.0, 1.0, 2.0])
        2.0
        >>> median([1.0, 2.0, 3.0, 4.0])
        2.5
        >>> median([])
        0.0
    """
    items = _checked(values)
    if not items:
        return 0.0
    return float(_median(items))


def upper_median(values: Iterable[int]) -> int:
    """Return the element at index ``len // 2`` of the sorted values.

    :param values: Non-empty collection of integers.
    :returns: The upper median.
    :raises ValueError: If values is empty.
    """
    items = _checked(values)
    if not items:
        raise ValueError("upper_median() requires at least one value")
    return median_high(items)


def median_of_three(a: float, b: float, c: float) -> float:
    """Median of exactly three values.

    :raises NonComparableValueError: If any value is NaN.
    """
    _checked((a, b, c))
    return max(min(a, b), min(max(a, b), c))
