# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import math

import numpy as np

EPS: float = 1e-12

# unit roundoff, 2^-53 and 2^-24
DOUBLE_PRECISION: float = 2.0**-53
SINGLE_PRECISION: float = 2.0**-24


def scale_tol(A: np.ndarray) -> float:
    """Return an absolute tolerance scaled to the matrix magnitude."""
    if A.size == 0:
        return EPS
    return EPS * max(1.0, float(np.linalg.norm(A, ord=np.inf)))


def hypotenuse(a: float, b: float) -> float:
    """sqrt(a**2 + b**2) without destructive underflow or overflow."""
    return float(np.hypot(a, b))


def magnitude(value: float) -> int:
    """
    Decimal order of magnitude of `value`, e.g. 0 for 3.2, 2 for 150.

    Zero has magnitude 0. Values with a negative log10 are truncated
    one step further from zero, so 0.05 has magnitude -2.
    """
    if value == 0.0:
        return 0
    m = math.log10(abs(value))
    if m < 0:
        return int(math.trunc(m - 1))
    return int(math.trunc(m))


def almost_equal_relative(a: float, b: float, decimal_places: int) -> bool:
    """
    Compare two reals to `decimal_places` significant decimal places.

    Values within unit roundoff of zero are compared absolutely,
    everything else relative to the larger decimal magnitude.

    Parameters
    ----------
    a, b : float
    decimal_places : int
        Number of matching places, must be >= 0.

    Returns
    -------
    bool
    """
    if decimal_places < 0:
        raise ValueError("decimal_places must be non-negative")
    if math.isnan(a) or math.isnan(b):
        return False
    if math.isinf(a) or math.isinf(b):
        return a == b
    if a == b:
        return True

    diff = a - b
    if abs(a) < DOUBLE_PRECISION or abs(b) < DOUBLE_PRECISION:
        return abs(diff) < 10.0 ** (-decimal_places) * 0.5

    mag_a = magnitude(a)
    mag_b = magnitude(b)
    mag_max = max(mag_a, mag_b)
    if mag_max > min(mag_a, mag_b) + 1:
        return False
    return abs(diff) < 10.0 ** (mag_max - decimal_places) * 0.5


def almost_equal(a: complex, b: complex, precision: float = DOUBLE_PRECISION) -> bool:
    """
    Relative comparison with ten units of roundoff slack.

    Used to decide when a singular value or eigenvalue counts as zero.
    """
    accuracy = 10.0 * precision
    if (a == 0 and abs(b) < accuracy) or (b == 0 and abs(a) < accuracy):
        return True
    return abs(a - b) < accuracy * max(abs(a), abs(b))
