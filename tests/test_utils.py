# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import math

import numpy as np
import pytest

from linstore.utils import (
    DOUBLE_PRECISION,
    EPS,
    almost_equal,
    almost_equal_relative,
    hypotenuse,
    magnitude,
    scale_tol,
)


def test_scale_tol():
    assert scale_tol(np.zeros((0, 0))) == EPS
    assert scale_tol(np.eye(3) * 0.5) == EPS
    assert math.isclose(scale_tol(np.full((2, 2), 10.0)), EPS * 20.0)


def test_hypotenuse_no_overflow():
    assert hypotenuse(3.0, 4.0) == 5.0
    assert math.isfinite(hypotenuse(1e200, 1e200))


@pytest.mark.parametrize(
    "value, expected",
    [(0.0, 0), (3.2, 0), (150.0, 2), (-150.0, 2), (0.05, -2), (0.5, -1)],
)
def test_magnitude(value, expected):
    assert magnitude(value) == expected


class TestAlmostEqualRelative:
    def test_equal_and_close(self):
        assert almost_equal_relative(1.0, 1.0, 15)
        assert almost_equal_relative(1.0, 1.0 + 1e-16, 15)
        assert not almost_equal_relative(1.0, 1.0 + 1e-10, 15)

    def test_near_zero_is_absolute(self):
        assert almost_equal_relative(0.0, 1e-20, 15)
        assert not almost_equal_relative(0.0, 1e-10, 15)

    def test_magnitudes_too_far_apart(self):
        assert not almost_equal_relative(1.0, 1000.0, 0)

    def test_special_values(self):
        assert not almost_equal_relative(float("nan"), 1.0, 5)
        assert almost_equal_relative(float("inf"), float("inf"), 5)
        assert not almost_equal_relative(float("inf"), 1.0, 5)

    def test_negative_places(self):
        with pytest.raises(ValueError):
            almost_equal_relative(1.0, 1.0, -1)


def test_almost_equal():
    assert almost_equal(0.0, DOUBLE_PRECISION)
    assert not almost_equal(0.0, 1e-10)
    assert almost_equal(1.0, 1.0 + 1e-16)
    assert almost_equal(1.0 + 1.0j, 1.0 + 1.0j)
