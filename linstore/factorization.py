# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Common machinery for the factorizations.

A factorization is built once from a `Matrix` and never changes
afterwards. `solve` accepts a `Matrix` or a `Vector` right-hand side
and optionally an output object of the right shape, which is filled
and also returned.
"""

import logging
from typing import Optional, Union

import numpy as np

from .matrix import Matrix, Vector
from .matrix_storage import DenseColumnMajorMatrixStorage
from .scalar import Scalar
from .validation import check_solve_dimensions
from .vector_storage import DenseVectorStorage

logger = logging.getLogger(__name__)


def is_dense(matrix: Matrix) -> bool:
    """True when the dense (provider) variant applies."""
    return isinstance(matrix.storage, DenseColumnMajorMatrixStorage)


def dense_copy(matrix: Matrix) -> DenseColumnMajorMatrixStorage:
    """Dense column-major copy of any matrix, in the matrix's kind."""
    return DenseColumnMajorMatrixStorage(
        matrix.row_count, matrix.column_count, matrix.scalar, matrix.to_column_major_array()
    )


class Factorization:
    """Base class: shape handling for `solve`."""

    # shape and kind of the factored matrix
    _rows: int
    _cols: int
    _scalar: Scalar

    def solve(self, input: Union[Matrix, Vector], result: Optional[Union[Matrix, Vector]] = None):
        """
        Solve A X = B.

        Parameters
        ----------
        input : Matrix | Vector
            Right-hand side B; must have as many rows as A.
        result : Matrix | Vector | None
            Optional output of shape (A.column_count, B.column_count)
            (length A.column_count for a vector). Filled in place.

        Returns
        -------
        Matrix | Vector
            The solution X (`result` itself when given).
        """
        if isinstance(input, Vector):
            result_shape = None if result is None else (result.count, 1)
            check_solve_dimensions(self._rows, self._cols, input.count, result_shape, 1)
            B = Matrix(
                DenseColumnMajorMatrixStorage(input.count, 1, input.scalar, input.to_array())
            )
            X = self._solve(self._in_kind(B))
            values = X.to_column_major_array()
            if result is None:
                return Vector(DenseVectorStorage(self._cols, X.scalar, values))
            for i in range(result.count):
                result.set_at(i, result.scalar.coerce(values[i]))
            return result

        result_shape = None if result is None else (result.row_count, result.column_count)
        check_solve_dimensions(self._rows, self._cols, input.row_count, result_shape, input.column_count)
        X = self._solve(self._in_kind(input))
        if result is None:
            return X
        X.copy_to(result)
        return result

    def _solve(self, B: Matrix) -> Matrix:
        raise NotImplementedError

    def _in_kind(self, B: Matrix) -> Matrix:
        """B converted to the factored matrix's kind (no copy if it already is)."""
        if B.scalar == self._scalar:
            return B
        data = self._scalar.coerce_array(B.to_column_major_array())
        return Matrix(DenseColumnMajorMatrixStorage(B.row_count, B.column_count, self._scalar, data))

    @staticmethod
    def _result_like(B: Matrix, rows: int, values: np.ndarray) -> Matrix:
        """Wrap a 2-D solution array in storage similar to B."""
        storage = B.storage.same_as(rows, B.column_count, fully_mutable=True)
        DenseColumnMajorMatrixStorage.of_array(values, storage.scalar).copy_to(storage)
        return Matrix(storage)
