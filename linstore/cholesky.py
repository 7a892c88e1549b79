# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Cholesky factorization A = L L^H of a Hermitian positive-definite matrix.

Dense input is factored by the configured provider; any other layout
runs the row-oriented algorithm element by element on a fully mutable
copy of the input's layout.
"""

import logging

import numpy as np

from .exceptions import NotPositiveDefiniteError
from .factorization import Factorization, dense_copy, is_dense
from .matrix import Matrix
from .matrix_storage import DenseColumnMajorMatrixStorage
from .providers import get_provider
from .validation import check_square

logger = logging.getLogger(__name__)


class Cholesky(Factorization):
    """
    Attributes
    ----------
    factor : Matrix
        Lower-triangular L.
    """

    def __init__(self, factor: Matrix):
        self.factor = factor
        self._rows = self._cols = factor.row_count
        self._scalar = factor.scalar

    @classmethod
    def create(cls, matrix: Matrix) -> "Cholesky":
        """
        Factor `matrix`; the input is not modified.

        Raises
        ------
        NotSquareError
            If the matrix is not square.
        NotPositiveDefiniteError
            If a diagonal intermediate is not strictly positive.
        """
        check_square(matrix.storage, "matrix")
        if is_dense(matrix):
            logger.debug("cholesky: dense %dx%d via provider", matrix.row_count, matrix.column_count)
            return DenseCholesky.factorize(matrix)
        logger.debug("cholesky: generic %s", type(matrix.storage).__name__)
        return UserCholesky.factorize(matrix)

    def _diagonal(self) -> np.ndarray:
        return self.factor.diagonal().to_array()

    @property
    def determinant(self):
        """prod(L[i, i]^2)"""
        d = self._diagonal()
        return np.prod(d * d)

    @property
    def determinant_ln(self):
        """sum(2 ln L[i, i]); stays finite where `determinant` would overflow."""
        return np.sum(2.0 * np.log(self._diagonal()))


class DenseCholesky(Cholesky):
    @classmethod
    def factorize(cls, matrix: Matrix) -> "DenseCholesky":
        storage = dense_copy(matrix)
        get_provider().cholesky_factor(storage.data, storage.row_count)
        return cls(Matrix(storage))

    def _solve(self, B: Matrix) -> Matrix:
        order = self._rows
        columns = B.column_count
        b = B.to_column_major_array()
        get_provider().cholesky_solve_factored(self.factor.storage.data, order, b, columns)
        return Matrix(DenseColumnMajorMatrixStorage(order, columns, self._scalar, b))


class UserCholesky(Cholesky):
    @classmethod
    def factorize(cls, matrix: Matrix) -> "UserCholesky":
        n = matrix.row_count
        conj = matrix.scalar.conjugate
        factor = matrix.create(fully_mutable=True)

        for j in range(n):
            d = matrix.scalar.zero
            for k in range(j):
                s = matrix.scalar.zero
                for i in range(k):
                    s += factor.at(j, i) * conj(factor.at(k, i))
                s = (matrix.at(j, k) - s) / factor.at(k, k)
                factor.set_at(j, k, s)
                d += s * conj(s)
            d = matrix.at(j, j) - d
            if np.real(d) <= 0.0:
                raise NotPositiveDefiniteError("Matrix must be positive definite.", pivot_index=j)
            factor.set_at(j, j, matrix.scalar.sqrt(d))
            # upper triangle stays zero: the factor starts empty
        return cls(factor)

    def _solve(self, B: Matrix) -> Matrix:
        n = self._rows
        L = self.factor
        conj = self._scalar.conjugate
        X = B.clone_fully_mutable()

        for c in range(B.column_count):
            for i in range(n):
                s = X.at(i, c)
                for k in range(i):
                    s -= L.at(i, k) * X.at(k, c)
                X.set_at(i, c, s / L.at(i, i))
            for i in reversed(range(n)):
                s = X.at(i, c)
                for k in range(i + 1, n):
                    s -= conj(L.at(k, i)) * X.at(k, c)
                X.set_at(i, c, s / conj(L.at(i, i)))
        return X
