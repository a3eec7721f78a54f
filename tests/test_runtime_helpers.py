from __future__ import annotations

import math
from dataclasses import dataclass, field

import pytest

from datacompat.runtime import combine_hash, compare_floats


def test_compare_floats_orders_numbers() -> None:
    assert compare_floats(1.0, 2.0) == -1
    assert compare_floats(2.0, 1.0) == 1
    assert compare_floats(1.5, 1.5) == 0


def test_compare_floats_treats_nan_as_equal_and_largest() -> None:
    nan = float("nan")
    assert compare_floats(nan, float("nan")) == 0
    assert compare_floats(nan, math.inf) == 1
    assert compare_floats(math.inf, nan) == -1


def test_compare_floats_distinguishes_signed_zero() -> None:
    assert compare_floats(-0.0, 0.0) == -1
    assert compare_floats(0.0, -0.0) == 1
    assert compare_floats(-0.0, -0.0) == 0


def test_combine_hash_is_order_sensitive_and_stable() -> None:
    assert combine_hash("a", 1) == combine_hash("a", 1)
    assert combine_hash("a", 1) != combine_hash(1, "a")
    assert combine_hash() == 1
    assert combine_hash(None) == 31


def test_combine_hash_handles_nan_and_containers() -> None:
    assert combine_hash(float("nan")) == combine_hash(float("nan"))
    assert combine_hash(["x", "y"]) == combine_hash(["x", "y"])
    assert combine_hash({"k": [1]}) == combine_hash({"k": [1]})
    assert combine_hash({1, 2}) == combine_hash({2, 1})


def test_combine_hash_stays_in_signed_64_bit_range() -> None:
    value = combine_hash(*range(100))
    assert -(1 << 63) <= value < (1 << 63)


def test_numpy_nan_hashes_like_every_other_nan() -> None:
    np = pytest.importorskip("numpy")
    assert combine_hash(np.float32("nan")) == combine_hash(np.float32("nan"))
    assert combine_hash(np.float64("nan")) == combine_hash(float("nan"))
    assert combine_hash(np.float32(1.5)) == combine_hash(1.5)


@dataclass
class _Tally:
    counts: list = field(default_factory=list)


def test_unhashable_values_fall_back_to_content() -> None:
    assert combine_hash(_Tally([1, 2])) == combine_hash(_Tally([1, 2]))
    assert combine_hash(_Tally([1, 2])) != combine_hash(_Tally([2, 1]))
    assert combine_hash(bytearray(b"ab")) == combine_hash(bytearray(b"ab"))
