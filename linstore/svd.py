# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Singular value decomposition A = U W V^H.

The generic variant reduces A to bidiagonal form with alternating column
and row reflectors, makes the bidiagonal real by phase scaling and then
runs the implicit-shift QR sweep of LINPACK's ``zsvdc``. Each pass of the
sweep is one of four cases:

1. the last value is negligible: deflate it with rotations from the right;
2. an interior value is negligible: split there with rotations from the left;
3. no split: one shifted QR step chasing the bulge down the band;
4. the last super-diagonal is negligible: the value has converged, make it
   non-negative and move it into descending order.

>>> import numpy as np
>>> from linstore.builder import MatrixBuilder
>>> A = MatrixBuilder("real64").sparse_of_array(np.array([[3.0, 0.0], [0.0, -2.0]]))
>>> [float(v) for v in A.svd().s]
[3.0, 2.0]
"""

import logging
import math
from typing import Optional

import numpy as np

from .exceptions import ConvergenceError, InvalidOperationError, NotSquareError
from .factorization import Factorization, dense_copy, is_dense
from .matrix import Matrix, Vector
from .matrix_storage import DenseColumnMajorMatrixStorage, DiagonalMatrixStorage
from .providers import get_provider
from .utils import almost_equal, almost_equal_relative
from .vector_storage import DenseVectorStorage

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 1000


class Svd(Factorization):
    """
    Attributes
    ----------
    s : Vector
        Singular values, non-negative and non-increasing, length min(rows, cols).
    u : Matrix | None
        Left singular vectors, rows x rows.
    vt : Matrix | None
        V^H, cols x cols.
    vectors_computed : bool
    """

    def __init__(self, s: Vector, u: Optional[Matrix], vt: Optional[Matrix], rows: int, cols: int, scalar):
        self.s = s
        self.u = u
        self.vt = vt
        self.vectors_computed = u is not None
        self._rows = rows
        self._cols = cols
        self._scalar = scalar

    @classmethod
    def create(cls, matrix: Matrix, compute_vectors: bool = True) -> "Svd":
        """
        Decompose `matrix`; any shape is accepted.

        Raises
        ------
        ConvergenceError
            If a singular value fails to converge within 1000 QR steps.
        """
        if is_dense(matrix):
            logger.debug("svd: dense %dx%d via provider", *matrix.shape)
            return DenseSvd.factorize(matrix, compute_vectors)
        logger.debug("svd: generic on %s", type(matrix.storage).__name__)
        return UserSvd.factorize(matrix, compute_vectors)

    def _values(self) -> np.ndarray:
        return np.abs(self.s.to_array())

    def _is_zero(self, value) -> bool:
        return almost_equal(value, 0.0, self._scalar.precision)

    @property
    def rank(self) -> int:
        """Number of singular values that are not almost zero."""
        return sum(1 for v in self._values() if not self._is_zero(v))

    @property
    def norm2(self) -> float:
        """Largest singular value."""
        return float(self._values()[0])

    l2_norm = norm2

    @property
    def condition_number(self) -> float:
        values = self._values()
        smallest = values[min(self._rows, self._cols) - 1]
        if smallest == 0:
            return math.inf
        return float(values[0] / smallest)

    @property
    def determinant(self):
        """Product of the singular values; zero when any of them is almost zero."""
        if self._rows != self._cols:
            raise NotSquareError(
                f"determinant needs a square matrix, got {self._rows}x{self._cols}",
                actual=(self._rows, self._cols),
            )
        det = 1.0
        for v in self._values():
            if self._is_zero(v):
                return 0.0
            det *= v
        return det

    @property
    def w(self) -> Matrix:
        """Singular values as a rows x cols diagonal matrix."""
        return Matrix(DiagonalMatrixStorage(self._rows, self._cols, self._scalar, self.s.to_array()))

    def _solve(self, B: Matrix) -> Matrix:
        """X = V W^+ U^H B, skipping singular values that are almost zero."""
        if not self.vectors_computed:
            raise InvalidOperationError("The singular vectors were not computed.")
        U = self.u.to_array()
        Vt = self.vt.to_array()
        values = self._values()
        mn = min(self._rows, self._cols)

        y = np.conj(U[:, :mn]).T @ B.to_array()
        inverse = np.array([0.0 if self._is_zero(v) else 1.0 / v for v in values[:mn]])
        z = np.zeros((self._cols, B.column_count), dtype=y.dtype)
        z[:mn, :] = inverse[:, np.newaxis] * y
        X = np.conj(Vt).T @ z
        X = self._scalar.coerce_array(X)
        if is_dense(B):
            return Matrix(DenseColumnMajorMatrixStorage.of_array(X, self._scalar))
        return self._result_like(B, self._cols, X)


class DenseSvd(Svd):
    @classmethod
    def factorize(cls, matrix: Matrix, compute_vectors: bool) -> "DenseSvd":
        rows, cols = matrix.shape
        scalar = matrix.scalar
        a = dense_copy(matrix)
        s = np.zeros(min(rows, cols), dtype=scalar.dtype)
        if compute_vectors:
            u = DenseColumnMajorMatrixStorage(rows, rows, scalar)
            vt = DenseColumnMajorMatrixStorage(cols, cols, scalar)
            get_provider().svd_factor(True, a.data, rows, cols, s, u.data, vt.data)
            return cls(Vector(DenseVectorStorage(s.shape[0], scalar, s)), Matrix(u), Matrix(vt), rows, cols, scalar)
        empty = np.zeros(0, dtype=scalar.dtype)
        get_provider().svd_factor(False, a.data, rows, cols, s, empty, empty)
        return cls(Vector(DenseVectorStorage(s.shape[0], scalar, s)), None, None, rows, cols, scalar)


def _csign(z1, z2):
    """|z1| with the phase of z2."""
    return abs(z1) * (z2 / abs(z2))


def _srotg(da: float, db: float):
    """
    Givens rotation zeroing `db`.

    Returns ``(r, z, c, s)`` as BLAS ``srotg`` leaves them in
    ``(da, db, c, s)``.
    """
    absda, absdb = abs(da), abs(db)
    roe = da if absda > absdb else db
    scale = absda + absdb
    if scale == 0.0:
        return 0.0, 0.0, 1.0, 0.0
    r = scale * math.sqrt((da / scale) ** 2 + (db / scale) ** 2)
    if roe < 0.0:
        r = -r
    c = da / r
    s = db / r
    z = 1.0
    if absda > absdb:
        z = s
    if absdb >= absda and c != 0.0:
        z = 1.0 / c
    return r, z, c, s


def _nrm2_column(a: Matrix, rows: int, column: int, row_start: int) -> float:
    return math.sqrt(sum(abs(a.at(i, column)) ** 2 for i in range(row_start, rows)))


def _dotc(a: Matrix, rows: int, column_a: int, column_b: int, row_start: int):
    conj = a.scalar.conjugate
    return sum(
        (conj(a.at(i, column_a)) * a.at(i, column_b) for i in range(row_start, rows)),
        a.scalar.zero,
    )


def _scale_column(a: Matrix, rows: int, column: int, row_start: int, z) -> None:
    for i in range(row_start, rows):
        a.set_at(i, column, a.at(i, column) * z)


def _add_column(a: Matrix, rows: int, target: int, source: int, row_start: int, t) -> None:
    """a[:, target] += t * a[:, source] from `row_start` down."""
    if t == 0:
        return
    for i in range(row_start, rows):
        a.set_at(i, target, a.at(i, target) + t * a.at(i, source))


def _rotate(a: Matrix, rows: int, column_a: int, column_b: int, c: float, s: float) -> None:
    for i in range(rows):
        x, y = a.at(i, column_a), a.at(i, column_b)
        a.set_at(i, column_b, c * y - s * x)
        a.set_at(i, column_a, c * x + s * y)


def _swap(a: Matrix, rows: int, column_a: int, column_b: int) -> None:
    for i in range(rows):
        x = a.at(i, column_a)
        a.set_at(i, column_a, a.at(i, column_b))
        a.set_at(i, column_b, x)


class UserSvd(Svd):
    @classmethod
    def factorize(cls, matrix: Matrix, compute_vectors: bool) -> "UserSvd":
        a = matrix.clone_fully_mutable()
        rows, cols = a.shape
        scalar = a.scalar
        dtype = scalar.dtype

        nm = min(rows + 1, cols)
        s = np.zeros(nm, dtype=dtype)
        e = np.zeros(cols, dtype=dtype)
        work = np.zeros(rows, dtype=dtype)
        u = a.create(rows, rows, fully_mutable=True) if compute_vectors else None
        v = a.create(cols, cols, fully_mutable=True) if compute_vectors else None

        cls._bidiagonalize(a, s, e, work, u, v)

        m = min(cols, rows + 1)
        nct = min(rows - 1, cols)
        nrt = max(0, min(cols - 2, rows))
        if nct < cols:
            s[nct] = a.at(nct, nct)
        if rows < m:
            s[m - 1] = 0
        if nrt + 1 < m:
            e[nrt] = a.at(nrt, m - 1)
        e[m - 1] = 0

        if compute_vectors:
            cls._generate_u(u, s, rows, nct)
            cls._generate_v(v, e, cols, nrt)

        # make s and e real
        for i in range(m):
            if abs(s[i]) != 0.0:
                t = abs(s[i])
                r = s[i] / t
                s[i] = t
                if i < m - 1:
                    e[i] = e[i] / r
                if compute_vectors and i < rows:
                    _scale_column(u, rows, i, 0, r)
            if i == m - 1:
                break
            if abs(e[i]) != 0.0:
                t = abs(e[i])
                r = t / e[i]
                e[i] = t
                s[i + 1] = s[i + 1] * r
                if compute_vectors:
                    _scale_column(v, cols, i + 1, 0, r)

        sweeps = cls._diagonalize(s, e, m, u, v, rows, cols)
        logger.debug("svd: converged after %d QR steps", sweeps)

        vt = v.conjugate_transpose() if compute_vectors else None
        n = min(rows, cols)
        values = scalar.coerce_array(np.real(s[:n]))
        return cls(Vector(DenseVectorStorage(n, scalar, values)), u, vt, rows, cols, scalar)

    @staticmethod
    def _bidiagonalize(a: Matrix, s, e, work, u: Optional[Matrix], v: Optional[Matrix]) -> None:
        """Diagonal into `s`, super-diagonal into `e`; reflectors into u and v."""
        rows, cols = a.shape
        conj = a.scalar.conjugate
        nct = min(rows - 1, cols)
        nrt = max(0, min(cols - 2, rows))

        for l in range(max(nct, nrt)):
            lp1 = l + 1
            if l < nct:
                # column reflector; l-th diagonal into s[l]
                s[l] = _nrm2_column(a, rows, l, l)
                if abs(s[l]) != 0.0:
                    if abs(a.at(l, l)) != 0.0:
                        s[l] = _csign(s[l], a.at(l, l))
                    _scale_column(a, rows, l, l, 1.0 / s[l])
                    a.set_at(l, l, 1.0 + a.at(l, l))
                s[l] = -s[l]

            for j in range(lp1, cols):
                if l < nct and abs(s[l]) != 0.0:
                    t = -_dotc(a, rows, l, j, l) / a.at(l, l)
                    _add_column(a, rows, j, l, l, t)
                e[j] = conj(a.at(l, j))

            if u is not None and l < nct:
                for i in range(l, rows):
                    u.set_at(i, l, a.at(i, l))

            if l >= nrt:
                continue

            # row reflector; l-th super-diagonal into e[l]
            e[l] = math.sqrt(float(np.sum(np.abs(e[lp1:]) ** 2)))
            if abs(e[l]) != 0.0:
                if abs(e[lp1]) != 0.0:
                    e[l] = _csign(e[l], e[lp1])
                e[lp1:] = e[lp1:] * (1.0 / e[l])
                e[lp1] = 1.0 + e[lp1]
            e[l] = -conj(e[l])

            if lp1 < rows and abs(e[l]) != 0.0:
                work[lp1:] = 0
                for j in range(lp1, cols):
                    if e[j] != 0:
                        for ii in range(lp1, rows):
                            work[ii] += e[j] * a.at(ii, j)
                for j in range(lp1, cols):
                    ww = conj(-e[j] / e[lp1])
                    if ww != 0:
                        for ii in range(lp1, rows):
                            a.set_at(ii, j, a.at(ii, j) + ww * work[ii])

            if v is not None:
                for i in range(lp1, cols):
                    v.set_at(i, l, e[i])

    @staticmethod
    def _generate_u(u: Matrix, s, rows: int, nct: int) -> None:
        one, zero = u.scalar.one, u.scalar.zero
        for j in range(nct, rows):
            for i in range(rows):
                u.set_at(i, j, zero)
            u.set_at(j, j, one)

        for l in reversed(range(nct)):
            if abs(s[l]) != 0.0:
                for j in range(l + 1, rows):
                    t = -_dotc(u, rows, l, j, l) / u.at(l, l)
                    _add_column(u, rows, j, l, l, t)
                _scale_column(u, rows, l, l, -1.0)
                u.set_at(l, l, 1.0 + u.at(l, l))
                for i in range(l):
                    u.set_at(i, l, zero)
            else:
                for i in range(rows):
                    u.set_at(i, l, zero)
                u.set_at(l, l, one)

    @staticmethod
    def _generate_v(v: Matrix, e, cols: int, nrt: int) -> None:
        one, zero = v.scalar.one, v.scalar.zero
        for l in reversed(range(cols)):
            lp1 = l + 1
            if l < nrt and abs(e[l]) != 0.0:
                for j in range(lp1, cols):
                    t = -_dotc(v, cols, l, j, lp1) / v.at(lp1, l)
                    _add_column(v, cols, j, l, l, t)
            for i in range(cols):
                v.set_at(i, l, zero)
            v.set_at(l, l, one)

    @staticmethod
    def _diagonalize(s, e, m: int, u: Optional[Matrix], v: Optional[Matrix], rows: int, cols: int) -> int:
        """
        QR sweep on the real bidiagonal (s, e) of order `m`.

        Returns the total number of QR steps taken.
        """
        mn = m
        iterations = 0
        total = 0
        while m > 0:
            if iterations >= MAX_ITERATIONS:
                logger.warning("svd: no convergence after %d iterations", iterations)
                raise ConvergenceError(
                    "SVD did not converge.", iterations=iterations, max_iterations=MAX_ITERATIONS
                )

            for l in range(m - 2, -1, -1):
                test = abs(s[l]) + abs(s[l + 1])
                ztest = test + abs(e[l])
                if almost_equal_relative(ztest, test, 15):
                    e[l] = 0
                    break
            else:
                l = -1

            if l == m - 2:
                kase = 4
            else:
                for ls in range(m - 1, l, -1):
                    test = 0.0
                    if ls != m - 1:
                        test += abs(e[ls])
                    if ls != l + 1:
                        test += abs(e[ls - 1])
                    ztest = test + abs(s[ls])
                    if almost_equal_relative(ztest, test, 15):
                        s[ls] = 0
                        break
                else:
                    ls = l

                if ls == l:
                    kase = 3
                elif ls == m - 1:
                    kase = 1
                else:
                    kase = 2
                    l = ls

            l += 1

            if kase == 1:
                # deflate negligible s[m - 1]
                f = e[m - 2].real
                e[m - 2] = 0
                for kk in range(l, m - 1):
                    k = m - 2 - kk + l
                    t1, f, cs, sn = _srotg(s[k].real, f)
                    s[k] = t1
                    if k != l:
                        f = -sn * e[k - 1].real
                        e[k - 1] = cs * e[k - 1]
                    if v is not None:
                        _rotate(v, cols, k, m - 1, cs, sn)

            elif kase == 2:
                # split at negligible s[l - 1]
                f = e[l - 1].real
                e[l - 1] = 0
                for k in range(l, m):
                    t1, f, cs, sn = _srotg(s[k].real, f)
                    s[k] = t1
                    f = -sn * e[k].real
                    e[k] = cs * e[k]
                    if u is not None and k < rows:
                        _rotate(u, rows, k, l - 1, cs, sn)

            elif kase == 3:
                scale = max(abs(s[m - 1]), abs(s[m - 2]), abs(e[m - 2]), abs(s[l]), abs(e[l]))
                sm = s[m - 1].real / scale
                smm1 = s[m - 2].real / scale
                emm1 = e[m - 2].real / scale
                sl = s[l].real / scale
                el = e[l].real / scale
                b = ((smm1 + sm) * (smm1 - sm) + emm1 * emm1) / 2.0
                c = (sm * emm1) ** 2
                shift = 0.0
                if b != 0.0 or c != 0.0:
                    shift = math.sqrt(b * b + c)
                    if b < 0.0:
                        shift = -shift
                    shift = c / (b + shift)
                f = (sl + sm) * (sl - sm) + shift
                g = sl * el

                # chase zeros
                for k in range(l, m - 1):
                    f, g, cs, sn = _srotg(f, g)
                    if k != l:
                        e[k - 1] = f
                    f = cs * s[k].real + sn * e[k].real
                    e[k] = cs * e[k] - sn * s[k]
                    g = sn * s[k + 1].real
                    s[k + 1] = cs * s[k + 1]
                    if v is not None:
                        _rotate(v, cols, k, k + 1, cs, sn)

                    f, g, cs, sn = _srotg(f, g)
                    s[k] = f
                    f = cs * e[k].real + sn * s[k + 1].real
                    s[k + 1] = -sn * e[k] + cs * s[k + 1]
                    g = sn * e[k + 1].real
                    e[k + 1] = cs * e[k + 1]
                    if u is not None and k + 1 < rows:
                        _rotate(u, rows, k, k + 1, cs, sn)

                e[m - 2] = f
                iterations += 1
                total += 1

            else:
                # converged: make s[l] non-negative and sort it into place
                if s[l].real < 0.0:
                    s[l] = -s[l]
                    if v is not None:
                        _scale_column(v, cols, l, 0, -1.0)

                while l != mn - 1:
                    if s[l].real >= s[l + 1].real:
                        break
                    s[l], s[l + 1] = s[l + 1], s[l]
                    if v is not None and l + 1 < cols:
                        _swap(v, cols, l, l + 1)
                    if u is not None and l + 1 < rows:
                        _swap(u, rows, l, l + 1)
                    l += 1

                iterations = 0
                m -= 1
        return total
