# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Exception hierarchy for linstore.

Every error raised by the package derives from `LinstoreError`. Each class
also subclasses the closest builtin so that callers that only know about
`ValueError` / `IndexError` / `ArithmeticError` still catch them.

Usage errors (shape, index) and numerical errors (non-convergence,
not positive definite) live on separate branches of the tree.
"""

from typing import Optional, Tuple


class LinstoreError(Exception):
    """Base exception for all linstore errors."""


class ValidationError(LinstoreError, ValueError):
    """An argument failed a validation check."""


class DimensionError(ValidationError):
    """
    Operand shapes disagree.

    Attributes
    ----------
    expected, actual : tuple | int | None
        The shape the operation needed and the shape it got.
    """

    def __init__(
        self,
        message: str,
        expected: Optional[Tuple[int, ...]] = None,
        actual: Optional[Tuple[int, ...]] = None,
    ):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class NotSquareError(DimensionError):
    """The operation is only defined for square matrices."""


class IndexOutOfRangeError(LinstoreError, IndexError):
    """
    Index outside the valid bounds, or a write to a coordinate the
    storage cannot hold (off-diagonal of a diagonal matrix, lower
    triangle of a packed symmetric matrix).
    """

    def __init__(
        self, message: str, row: Optional[int] = None, column: Optional[int] = None
    ):
        super().__init__(message)
        self.row = row
        self.column = column


class NumericalError(LinstoreError, ArithmeticError):
    """A numerical precondition of an algorithm does not hold."""


class NotPositiveDefiniteError(NumericalError):
    """
    Cholesky met a non-positive pivot.

    Attributes
    ----------
    pivot_index : int | None
        Row at which the diagonal intermediate dropped to <= 0.
    """

    def __init__(self, message: str, pivot_index: Optional[int] = None):
        super().__init__(message)
        self.pivot_index = pivot_index


class RankDeficientError(NumericalError):
    """Gram-Schmidt found a column with (numerically) zero residual norm."""

    def __init__(self, message: str, column: Optional[int] = None):
        super().__init__(message)
        self.column = column


class ConvergenceError(NumericalError):
    """
    An iterative sweep hit its iteration cap without deflating.

    Attributes
    ----------
    iterations : int
        Iterations spent on the block that failed.
    max_iterations : int | None
        The cap that was exceeded.
    """

    def __init__(
        self, message: str, iterations: int = 0, max_iterations: Optional[int] = None
    ):
        super().__init__(message)
        self.iterations = iterations
        self.max_iterations = max_iterations


class NotSupportedError(LinstoreError, NotImplementedError):
    """The storage/algorithm combination is deliberately left unimplemented."""


class InvalidOperationError(LinstoreError, RuntimeError):
    """The object is not in a state that allows the operation."""
