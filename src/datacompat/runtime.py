"""Helpers imported by generated modules."""

from __future__ import annotations

import dataclasses
import math
import numbers

_HASH_MASK = (1 << 64) - 1
_HASH_SIGN = 1 << 63
_NAN_HASH = 0x7FF8000000000000


def compare_floats(left: float, right: float) -> int:
    """Compare two floats under a total order.

    NaN equals NaN and sorts above every other value, and ``-0.0`` sorts
    below ``0.0``. Every other pair compares numerically.
    """
    if left < right:
        return -1
    if left > right:
        return 1
    left_nan = math.isnan(left)
    right_nan = math.isnan(right)
    if left_nan or right_nan:
        if left_nan and right_nan:
            return 0
        return 1 if left_nan else -1
    left_sign = math.copysign(1.0, left)
    right_sign = math.copysign(1.0, right)
    if left_sign == right_sign:
        return 0
    return -1 if left_sign < right_sign else 1


def _signed(value: int) -> int:
    value &= _HASH_MASK
    if value & _HASH_SIGN:
        value -= 1 << 64
    return value


def _is_nan(value: object) -> bool:
    if isinstance(value, numbers.Rational) or not isinstance(value, numbers.Real):
        return False
    return math.isnan(value)


def _hash_item(value: object) -> int:
    if value is None:
        return 0
    if _is_nan(value):
        return _NAN_HASH
    if isinstance(value, (list, tuple)):
        return combine_hash(*value)
    if isinstance(value, (set, frozenset)):
        return _signed(sum(_hash_item(item) for item in value))
    if isinstance(value, dict):
        return _signed(sum(_hash_item(key) ^ _hash_item(item) for key, item in value.items()))
    try:
        return hash(value)
    except TypeError:
        # eq without hash: equal values must still hash alike
        if dataclasses.is_dataclass(value):
            return combine_hash(
                *(getattr(value, item.name) for item in dataclasses.fields(value))
            )
        return hash(type(value))


def combine_hash(*values: object) -> int:
    """Order-sensitive hash of ``values`` (``31 * h + hash(v)`` per item).

    Lists, tuples, sets and dicts are hashed by content so that mutable
    containers can be used as field values. Every real NaN, including numpy
    scalars, hashes alike. Other unhashable values fall back to their
    dataclass fields, or to their type.
    """
    result = 1
    for value in values:
        result = (31 * result + _hash_item(value)) & _HASH_MASK
    return _signed(result)


__all__ = ["combine_hash", "compare_floats"]
