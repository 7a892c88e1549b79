# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Numeric element abstraction.

One `Scalar` instance exists per supported element kind. Storage and
factorization code never switches on the dtype directly; it asks the
scalar for zero/one, conjugation, magnitude, square root and logarithm.

The complex kinds are named after the precision of their components:
COMPLEX64 holds two 64-bit floats (numpy complex128), COMPLEX32 two
32-bit floats (numpy complex64).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np

from .exceptions import ValidationError
from .utils import DOUBLE_PRECISION, SINGLE_PRECISION


class ScalarKind(Enum):
    REAL64 = "real64"
    REAL32 = "real32"
    COMPLEX64 = "complex64"
    COMPLEX32 = "complex32"


@dataclass(frozen=True)
class Scalar:
    kind: ScalarKind
    dtype: np.dtype
    precision: float

    @property
    def is_complex(self) -> bool:
        return np.issubdtype(self.dtype, np.complexfloating)

    @property
    def zero(self):
        return self.dtype.type(0)

    @property
    def one(self):
        return self.dtype.type(1)

    @property
    def real_dtype(self) -> np.dtype:
        """dtype of |x| for this kind (float64 or float32)."""
        return np.dtype(np.float32 if self.precision == SINGLE_PRECISION else np.float64)

    @property
    def complex_kind(self) -> ScalarKind:
        """Kind used for eigenvalues of matrices of this kind."""
        if self.precision == SINGLE_PRECISION:
            return ScalarKind.COMPLEX32
        return ScalarKind.COMPLEX64

    def coerce(self, value):
        """Convert `value` to this kind, refusing to drop an imaginary part."""
        if not self.is_complex and np.iscomplexobj(value):
            if np.imag(value) != 0:
                raise ValidationError(
                    f"Cannot store complex value {value!r} in a {self.kind.value} matrix"
                )
            value = np.real(value)
        return self.dtype.type(value)

    def coerce_array(self, values) -> np.ndarray:
        """Array version of `coerce`; always returns a fresh array."""
        arr = np.asarray(values)
        if not self.is_complex and np.iscomplexobj(arr):
            if np.any(np.imag(arr) != 0):
                raise ValidationError(
                    f"Cannot store complex values in a {self.kind.value} matrix"
                )
            arr = np.real(arr)
        return np.array(arr, dtype=self.dtype)

    def is_zero(self, value) -> bool:
        return value == 0

    def add(self, a, b):
        return self.dtype.type(a + b)

    def multiply(self, a, b):
        return self.dtype.type(a * b)

    def conjugate(self, x):
        return np.conj(x) if self.is_complex else x

    def magnitude(self, x) -> float:
        return float(np.abs(x))

    def sqrt(self, x):
        return np.sqrt(self.dtype.type(x))

    def log(self, x):
        return np.log(self.dtype.type(x))


_SCALARS = {
    ScalarKind.REAL64: Scalar(ScalarKind.REAL64, np.dtype(np.float64), DOUBLE_PRECISION),
    ScalarKind.REAL32: Scalar(ScalarKind.REAL32, np.dtype(np.float32), SINGLE_PRECISION),
    ScalarKind.COMPLEX64: Scalar(
        ScalarKind.COMPLEX64, np.dtype(np.complex128), DOUBLE_PRECISION
    ),
    ScalarKind.COMPLEX32: Scalar(
        ScalarKind.COMPLEX32, np.dtype(np.complex64), SINGLE_PRECISION
    ),
}

_BY_DTYPE = {s.dtype: s for s in _SCALARS.values()}


def scalar_for(kind: Union[ScalarKind, str, np.dtype, type, "Scalar"]) -> Scalar:
    """
    Resolve a `Scalar` from a kind, a kind name or a numpy dtype.

    >>> scalar_for("real64").dtype
    dtype('float64')
    """
    if isinstance(kind, Scalar):
        return kind
    if isinstance(kind, ScalarKind):
        return _SCALARS[kind]
    if isinstance(kind, str):
        try:
            return _SCALARS[ScalarKind(kind.lower())]
        except ValueError:
            pass
    try:
        dtype = np.dtype(kind)
    except TypeError as err:
        raise ValidationError(f"Unsupported scalar kind: {kind!r}") from err
    if dtype not in _BY_DTYPE:
        raise ValidationError(f"Unsupported scalar kind: {kind!r}")
    return _BY_DTYPE[dtype]
