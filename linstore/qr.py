# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
QR decompositions: Householder (full or thin) and modified Gram-Schmidt.

A = QR

For Householder, each reflector is H = I - w w^H with ||w||^2 = 2, so
det(H) = -1 and det(A) = (-1)^n prod(diag(R)) for square A.
"""

import logging
from typing import List

import numpy as np

from .exceptions import DimensionError, NotSquareError, RankDeficientError
from .factorization import Factorization, dense_copy, is_dense
from .matrix import Matrix
from .matrix_storage import DenseColumnMajorMatrixStorage
from .options import QRMethod
from .providers import get_provider, householder_vector
from .utils import scale_tol

logger = logging.getLogger(__name__)


def _check_tall(matrix: Matrix) -> None:
    if matrix.row_count < matrix.column_count:
        raise DimensionError(
            f"Matrix row count must be >= column count, got {matrix.row_count}x{matrix.column_count}",
            actual=matrix.shape,
        )


class QR(Factorization):
    """
    Attributes
    ----------
    q : Matrix
        rows x rows (FULL) or rows x cols (THIN); orthonormal columns.
    r : Matrix
        rows x cols (FULL) or cols x cols (THIN); upper triangular.
    method : QRMethod
    """

    def __init__(self, q: Matrix, r: Matrix, method: QRMethod):
        self.q = q
        self.r = r
        self.method = method
        self._rows = q.row_count
        self._cols = r.column_count
        self._scalar = r.scalar

    @classmethod
    def create(cls, matrix: Matrix, method: QRMethod = QRMethod.FULL) -> "QR":
        """
        Householder QR of a matrix with at least as many rows as columns.

        Raises
        ------
        DimensionError
            If ``row_count < column_count``.
        """
        _check_tall(matrix)
        if is_dense(matrix):
            logger.debug("qr: dense %s %dx%d via provider", method.value, *matrix.shape)
            return DenseQR.factorize(matrix, method)
        logger.debug("qr: generic %s on %s", method.value, type(matrix.storage).__name__)
        return UserQR.factorize(matrix, method)

    @property
    def is_full_rank(self) -> bool:
        """No exactly-zero entry on the diagonal of R."""
        n = min(self.r.row_count, self.r.column_count)
        return all(self.r.at(i, i) != 0 for i in range(n))

    @property
    def determinant(self):
        if self._rows != self._cols:
            raise NotSquareError(
                f"determinant needs a square matrix, got {self._rows}x{self._cols}",
                actual=(self._rows, self._cols),
            )
        n = self._cols
        d = np.prod([self.r.at(i, i) for i in range(n)])
        return d if n % 2 == 0 else -d

    def _solve(self, B: Matrix) -> Matrix:
        if is_dense(self.q) and is_dense(self.r):
            return self._solve_dense(B)
        return self._solve_generic(B)

    def _solve_dense(self, B: Matrix) -> Matrix:
        rows, cols, columns = self._rows, self._cols, B.column_count
        x = np.zeros(cols * columns, dtype=self._scalar.dtype)
        get_provider().qr_solve_factored(
            self.q.storage.data,
            self.r.storage.data,
            rows,
            cols,
            B.to_column_major_array(),
            columns,
            x,
            self.method,
        )
        return Matrix(DenseColumnMajorMatrixStorage(cols, columns, self._scalar, x))

    def _solve_generic(self, B: Matrix) -> Matrix:
        rows, cols = self._rows, self._cols
        Q, R = self.q, self.r
        conj = self._scalar.conjugate
        X = B.create(cols, B.column_count, fully_mutable=True)

        for c in range(B.column_count):
            # y = Q^H b, first `cols` entries
            y = [
                sum((conj(Q.at(k, i)) * B.at(k, c) for k in range(rows)), self._scalar.zero)
                for i in range(cols)
            ]
            x = [self._scalar.zero] * cols
            for i in reversed(range(cols)):
                s = y[i]
                for k in range(i + 1, cols):
                    s -= R.at(i, k) * x[k]
                x[i] = s / R.at(i, i)
            for i in range(cols):
                X.set_at(i, c, x[i])
        return X


class DenseQR(QR):
    @classmethod
    def factorize(cls, matrix: Matrix, method: QRMethod) -> "DenseQR":
        rows, cols = matrix.shape
        provider = get_provider()
        tau = np.zeros(min(rows, cols), dtype=matrix.scalar.dtype)
        if method is QRMethod.FULL:
            r = dense_copy(matrix)
            q = DenseColumnMajorMatrixStorage(rows, rows, matrix.scalar)
            provider.qr_factor(r.data, rows, cols, q.data, tau)
        else:
            q = dense_copy(matrix)
            r = DenseColumnMajorMatrixStorage(cols, cols, matrix.scalar)
            provider.thin_qr_factor(q.data, rows, cols, r.data, tau)
        return cls(Matrix(q), Matrix(r), method)


class UserQR(QR):
    @classmethod
    def factorize(cls, matrix: Matrix, method: QRMethod) -> "UserQR":
        rows, cols = matrix.shape
        R = matrix.clone_fully_mutable()
        Q = matrix.create(rows, rows, fully_mutable=True)
        for i in range(rows):
            Q.set_at(i, i, matrix.scalar.one)

        reflectors: List[np.ndarray] = []
        for i in range(min(rows, cols)):
            u = cls._generate_column(R, i, rows)
            cls._apply(u, R, i, rows, i + 1, cols)
            reflectors.append(u)

        for i in reversed(range(len(reflectors))):
            cls._apply(reflectors[i], Q, i, rows, i, rows)

        if method is QRMethod.THIN:
            q_thin = matrix.create(rows, cols, fully_mutable=True)
            Q.storage.copy_sub_matrix_to(q_thin.storage, 0, 0, rows, 0, 0, cols)
            r_thin = matrix.create(cols, cols, fully_mutable=True)
            R.storage.copy_sub_matrix_to(r_thin.storage, 0, 0, cols, 0, 0, cols)
            Q, R = q_thin, r_thin
        return cls(Q, R, method)

    @staticmethod
    def _generate_column(a: Matrix, row_start: int, rows: int) -> np.ndarray:
        """Take column `row_start` below the diagonal, zero it and leave the new diagonal in place."""
        column = row_start
        x = np.array([a.at(i, column) for i in range(row_start, rows)], dtype=a.scalar.dtype)
        u, diagonal = householder_vector(x)
        for i in range(row_start + 1, rows):
            a.set_at(i, column, a.scalar.zero)
        a.set_at(row_start, column, diagonal)
        return u

    @staticmethod
    def _apply(u: np.ndarray, a: Matrix, row_start: int, row_end: int, column_start: int, column_end: int) -> None:
        """a[i, j] -= conj(u[i]) * sum_k(u[k] a[k, j]) over the given block (ends exclusive)."""
        if row_end <= row_start or column_end <= column_start:
            return
        conj_u = np.conj(u)
        for j in range(column_start, column_end):
            v = sum(u[i - row_start] * a.at(i, j) for i in range(row_start, row_end))
            for i in range(row_start, row_end):
                a.set_at(i, j, a.at(i, j) - conj_u[i - row_start] * v)


class GramSchmidt(QR):
    """
    Modified Gram-Schmidt: Q is rows x cols with orthonormal columns,
    R is cols x cols upper triangular.
    """

    @classmethod
    def create(cls, matrix: Matrix) -> "GramSchmidt":
        """
        Raises
        ------
        DimensionError
            If ``row_count < column_count``.
        RankDeficientError
            If a column is (numerically) in the span of the previous ones.
        """
        _check_tall(matrix)
        A = matrix.to_array()
        m, n = A.shape
        Q = np.zeros_like(A)
        R = np.zeros((n, n), dtype=A.dtype)
        tol = scale_tol(A)

        for j in range(n):
            v = A[:, j].copy()
            for k in range(j):
                R[k, j] = np.vdot(Q[:, k], v)
                v -= R[k, j] * Q[:, k]
            R[j, j] = np.linalg.norm(v)
            if abs(R[j, j]) < tol:
                raise RankDeficientError("Matrix must not be rank deficient.", column=j)
            Q[:, j] = v / R[j, j]

        if is_dense(matrix):
            q = Matrix(DenseColumnMajorMatrixStorage.of_array(Q, matrix.scalar))
            r = Matrix(DenseColumnMajorMatrixStorage.of_array(R, matrix.scalar))
        else:
            q = cls._result_like(matrix, m, Q)
            r = cls._result_like(matrix.create(n, n, fully_mutable=True), n, R)
        return cls(q, r, QRMethod.THIN)
