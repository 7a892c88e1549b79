# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Eigenvalue decomposition A = V D V^-1.

Symmetric / Hermitian input
    Householder reduction to a real symmetric tridiagonal (tred2; the
    complex case records the phases in `tau`), implicit QL iterations
    (tql2) and, for complex input, the back transformation. V is
    orthonormal (unitary) and the eigenvalues are real and ascending.

Non-symmetric input
    Orthogonal (unitary) reduction to Hessenberg form, then the real
    Schur form by the double-shift QR algorithm (hqr2) or, for complex
    input, the complex Schur form by single-shift QR. Eigenvectors come
    from back substitution on the triangular form.

For real non-symmetric input a complex pair lambda = a +/- bi occupies two
columns of V (real and imaginary parts) and a 2x2 block [[a, b], [-b, a]]
of D.

The sweeps work on float64 / complex128 copies for every element kind.

>>> import numpy as np
>>> from linstore.builder import MatrixBuilder
>>> A = MatrixBuilder("real64").sparse_of_array(np.array([[2.0, 1.0], [1.0, 2.0]]))
>>> [round(float(v.real), 10) for v in A.evd().eigen_values]
[1.0, 3.0]
"""

import cmath
import logging
import math

import numpy as np

from .exceptions import ConvergenceError, NotSupportedError
from .factorization import Factorization, dense_copy, is_dense
from .matrix import Matrix, Vector
from .matrix_storage import DenseColumnMajorMatrixStorage
from .options import Symmetricity
from .providers import get_provider
from .scalar import scalar_for
from .utils import DOUBLE_PRECISION, almost_equal, hypotenuse
from .validation import check_square
from .vector_storage import DenseVectorStorage

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 1000

EPS = DOUBLE_PRECISION


def _no_convergence(stage: str, iterations: int) -> ConvergenceError:
    logger.warning("evd: %s did not converge after %d iterations", stage, iterations)
    return ConvergenceError(
        f"Eigenvalue decomposition did not converge ({stage}).",
        iterations=iterations,
        max_iterations=MAX_ITERATIONS,
    )


class Evd(Factorization):
    """
    Attributes
    ----------
    eigen_values : Vector
        Complex eigenvalues (COMPLEX64, or COMPLEX32 for single kinds).
    eigen_vectors : Matrix
        V, in the kind of the input.
    d : Matrix
        Block diagonal eigenvalue matrix.
    is_symmetric : bool
    """

    def __init__(self, eigen_vectors: Matrix, eigen_values: Vector, d: Matrix, is_symmetric: bool):
        self.eigen_vectors = eigen_vectors
        self.eigen_values = eigen_values
        self.d = d
        self.is_symmetric = is_symmetric
        self._rows = self._cols = eigen_vectors.row_count
        self._scalar = eigen_vectors.scalar

    @classmethod
    def create(cls, matrix: Matrix, symmetricity: Symmetricity = Symmetricity.UNKNOWN) -> "Evd":
        """
        Decompose a square matrix.

        Parameters
        ----------
        matrix : Matrix
        symmetricity : Symmetricity
            ``UNKNOWN`` runs the exact test ``A[i, j] == conj(A[j, i])``;
            the other values are trusted as given.

        Raises
        ------
        NotSquareError
        ConvergenceError
            If an eigenvalue needs more than 1000 iterations.
        """
        check_square(matrix.storage, "matrix")
        if symmetricity is Symmetricity.UNKNOWN:
            is_symmetric = matrix.is_hermitian()
        else:
            is_symmetric = symmetricity in (Symmetricity.SYMMETRIC, Symmetricity.HERMITIAN)

        if is_dense(matrix):
            logger.debug("evd: dense order %d via provider, symmetric=%s", matrix.row_count, is_symmetric)
            return DenseEvd.factorize(matrix, is_symmetric)
        logger.debug("evd: generic on %s, symmetric=%s", type(matrix.storage).__name__, is_symmetric)
        return UserEvd.factorize(matrix, is_symmetric)

    def _eigen_values(self) -> np.ndarray:
        return self.eigen_values.to_array()

    def _is_zero(self, value) -> bool:
        return almost_equal(value, 0.0, self._scalar.precision)

    @property
    def determinant(self):
        """Product of the eigenvalues (real for real input)."""
        det = np.prod(self._eigen_values())
        if self._scalar.is_complex:
            return det
        return float(det.real)

    @property
    def rank(self) -> int:
        return sum(1 for v in self._eigen_values() if not self._is_zero(abs(v)))

    @property
    def is_full_rank(self) -> bool:
        return self.rank == self._rows

    @property
    def condition_number(self) -> float:
        magnitudes = np.abs(self._eigen_values())
        return float(magnitudes.max() / magnitudes.min())

    def _solve(self, B: Matrix) -> Matrix:
        """X = V inv(Lambda) V^H B."""
        if not self.is_symmetric:
            raise NotSupportedError("Matrix must be symmetric.")
        V = self.eigen_vectors.to_array()
        values = self._eigen_values().real
        tmp = (np.conj(V).T @ B.to_array()) / values[:, np.newaxis]
        X = self._scalar.coerce_array(V @ tmp)
        if is_dense(B):
            return Matrix(DenseColumnMajorMatrixStorage.of_array(X, self._scalar))
        return self._result_like(B, self._cols, X)


class DenseEvd(Evd):
    @classmethod
    def factorize(cls, matrix: Matrix, is_symmetric: bool) -> "DenseEvd":
        order = matrix.row_count
        scalar = matrix.scalar
        complex_scalar = scalar_for(scalar.complex_kind)
        a = dense_copy(matrix)
        vectors = DenseColumnMajorMatrixStorage(order, order, scalar)
        d = DenseColumnMajorMatrixStorage(order, order, scalar)
        values = np.zeros(order, dtype=complex_scalar.dtype)
        get_provider().eigen_decomp(is_symmetric, order, a.data, vectors.data, values, d.data)
        return cls(
            Matrix(vectors), Vector(DenseVectorStorage(order, complex_scalar, values)), Matrix(d), is_symmetric
        )


class UserEvd(Evd):
    @classmethod
    def factorize(cls, matrix: Matrix, is_symmetric: bool) -> "UserEvd":
        order = matrix.row_count
        scalar = matrix.scalar
        complex_scalar = scalar_for(scalar.complex_kind)
        A = matrix.to_array()

        if scalar.is_complex:
            A = A.astype(np.complex128)
            if is_symmetric:
                V, values = cls._hermitian(A)
            else:
                V, values = cls._complex_nonsymmetric(A)
            D = np.diag(values)
        else:
            A = A.astype(np.float64)
            d = np.zeros(order)
            e = np.zeros(order)
            if is_symmetric:
                V = A.copy()
                d[:] = V[order - 1, :]
                tridiagonalize(V, d, e)
                sweeps = diagonalize(V, d, e)
                logger.debug("evd: QL converged after %d iterations", sweeps)
            else:
                V = np.zeros((order, order))
                H = A.copy()
                reduce_to_hessenberg(H, V)
                sweeps = real_schur(H, V, d, e)
                logger.debug("evd: real Schur converged after %d iterations", sweeps)
            values = d + 1j * e
            D = np.zeros((order, order))
            for i in range(order):
                D[i, i] = d[i]
                if e[i] > 0:
                    D[i, i + 1] = e[i]
                elif e[i] < 0:
                    D[i, i - 1] = e[i]

        eigen_vectors = cls._result_like(matrix, order, scalar.coerce_array(V))
        block_diagonal = cls._result_like(matrix, order, scalar.coerce_array(D))
        eigen_values = Vector(DenseVectorStorage(order, complex_scalar, complex_scalar.coerce_array(values)))
        return cls(eigen_vectors, eigen_values, block_diagonal, is_symmetric)

    @staticmethod
    def _hermitian(A: np.ndarray):
        order = A.shape[0]
        d = np.zeros(order)
        e = np.zeros(order)
        tau = np.zeros(order, dtype=np.complex128)
        hermitian_tridiagonalize(A, d, e, tau)
        V = np.eye(order)
        sweeps = diagonalize(V, d, e)
        logger.debug("evd: QL converged after %d iterations", sweeps)
        return hermitian_untridiagonalize(A, V, tau), d.astype(np.complex128)

    @staticmethod
    def _complex_nonsymmetric(A: np.ndarray):
        order = A.shape[0]
        V = np.zeros((order, order), dtype=np.complex128)
        values = np.zeros(order, dtype=np.complex128)
        complex_reduce_to_hessenberg(A, V)
        sweeps = complex_schur(A, V, values)
        logger.debug("evd: complex Schur converged after %d iterations", sweeps)
        return V, values


# symmetric ------------------------------------------------------------


def tridiagonalize(V: np.ndarray, d: np.ndarray, e: np.ndarray) -> None:
    """
    Householder reduction of a real symmetric matrix (JAMA tred2).

    On entry V holds A and d its last row; on exit d and e hold the
    tridiagonal and V the accumulated transformation.
    """
    n = V.shape[0]
    for i in range(n - 1, 0, -1):
        scale = float(np.sum(np.abs(d[:i])))
        h = 0.0
        if scale == 0.0:
            e[i] = d[i - 1]
            d[:i] = V[i - 1, :i]
            V[i, :i] = 0.0
            V[:i, i] = 0.0
        else:
            d[:i] /= scale
            h = float(d[:i] @ d[:i])
            f = d[i - 1]
            g = math.sqrt(h)
            if f > 0:
                g = -g
            e[i] = scale * g
            h -= f * g
            d[i - 1] = f - g
            e[:i] = 0.0

            for j in range(i):
                f = d[j]
                V[j, i] = f
                g = e[j] + V[j, j] * f + V[j + 1 : i, j] @ d[j + 1 : i]
                e[j + 1 : i] += V[j + 1 : i, j] * f
                e[j] = g

            e[:i] /= h
            f = float(e[:i] @ d[:i])
            hh = f / (h + h)
            e[:i] -= hh * d[:i]

            for j in range(i):
                f = d[j]
                g = e[j]
                V[j:i, j] -= f * e[j:i] + g * d[j:i]
                d[j] = V[i - 1, j]
                V[i, j] = 0.0
        d[i] = h

    # accumulate transformations
    for i in range(n - 1):
        V[n - 1, i] = V[i, i]
        V[i, i] = 1.0
        h = d[i + 1]
        if h != 0.0:
            d[: i + 1] = V[: i + 1, i + 1] / h
            for j in range(i + 1):
                g = V[: i + 1, i + 1] @ V[: i + 1, j]
                V[: i + 1, j] -= g * d[: i + 1]
        V[: i + 1, i + 1] = 0.0

    d[:] = V[n - 1, :]
    V[n - 1, :] = 0.0
    V[n - 1, n - 1] = 1.0
    e[0] = 0.0


def diagonalize(V: np.ndarray, d: np.ndarray, e: np.ndarray) -> int:
    """
    Implicit QL on the tridiagonal (d, e) (JAMA tql2), rotating the
    columns of V; sorts the eigenvalues ascending.

    Returns the total number of QL iterations.
    """
    n = d.shape[0]
    e[:-1] = e[1:]
    e[n - 1] = 0.0

    f = 0.0
    tst1 = 0.0
    total = 0
    for l in range(n):
        tst1 = max(tst1, abs(d[l]) + abs(e[l]))
        m = l
        while m < n:
            if abs(e[m]) <= EPS * tst1:
                break
            m += 1

        if m > l:
            iterations = 0
            while True:
                iterations += 1

                # implicit shift
                g = d[l]
                p = (d[l + 1] - g) / (2.0 * e[l])
                r = hypotenuse(p, 1.0)
                if p < 0:
                    r = -r
                d[l] = e[l] / (p + r)
                d[l + 1] = e[l] * (p + r)
                dl1 = d[l + 1]
                h = g - d[l]
                d[l + 2 :] -= h
                f += h

                p = d[m]
                c = c2 = c3 = 1.0
                el1 = e[l + 1]
                s = s2 = 0.0
                for i in range(m - 1, l - 1, -1):
                    c3 = c2
                    c2 = c
                    s2 = s
                    g = c * e[i]
                    h = c * p
                    r = hypotenuse(p, e[i])
                    e[i + 1] = s * r
                    s = e[i] / r
                    c = p / r
                    p = c * d[i] - s * g
                    d[i + 1] = h + s * (c * g + s * d[i])

                    column = V[:, i + 1].copy()
                    V[:, i + 1] = s * V[:, i] + c * column
                    V[:, i] = c * V[:, i] - s * column

                p = -s * s2 * c3 * el1 * e[l] / dl1
                e[l] = s * p
                d[l] = c * p
                if abs(e[l]) <= EPS * tst1:
                    break
                if iterations >= MAX_ITERATIONS:
                    raise _no_convergence("QL", iterations)
            total += iterations

        d[l] += f
        e[l] = 0.0

    for i in range(n - 1):
        k = i + int(np.argmin(d[i:]))
        if k != i:
            d[i], d[k] = d[k], d[i]
            V[:, [i, k]] = V[:, [k, i]]
    return total


def hermitian_tridiagonalize(A: np.ndarray, d: np.ndarray, e: np.ndarray, tau: np.ndarray) -> None:
    """
    Unitary reduction of a Hermitian matrix to a real symmetric
    tridiagonal (d, e).

    The Householder vectors stay in the lower triangle of A, with their
    norms in the imaginary part of its diagonal, and `tau` collects the
    phases that make the off-diagonal real.
    """
    n = A.shape[0]
    tau[n - 1] = 1.0
    d[:] = A.diagonal().real

    for i in range(n - 1, 0, -1):
        scale = float(np.sum(np.abs(A[i, :i].real) + np.abs(A[i, :i].imag)))
        h = 0.0
        if scale == 0.0:
            tau[i - 1] = 1.0
            e[i] = 0.0
        else:
            A[i, :i] /= scale
            h = float(np.sum(np.abs(A[i, :i]) ** 2))
            g = math.sqrt(h)
            e[i] = scale * g

            f = A[i, i - 1]
            f_abs = abs(f)
            if f_abs != 0:
                temp = -(np.conj(A[i, i - 1]) * np.conj(tau[i])) / f_abs
                h += f_abs * g
                g = 1.0 + g / f_abs
                A[i, i - 1] *= g
            else:
                temp = -np.conj(tau[i])
                A[i, i - 1] = g

            if f_abs == 0 or i != 1:
                f = 0j
                for j in range(i):
                    # element of A*U, then of P
                    tmp = A[j, : j + 1] @ np.conj(A[i, : j + 1]) + np.conj(A[j + 1 : i, j]) @ np.conj(A[i, j + 1 : i])
                    tau[j] = tmp / h
                    f += tmp / h * A[i, j]
                hh = f.real / (h + h)

                for j in range(i):
                    f = np.conj(A[i, j])
                    g = tau[j] - hh * f
                    tau[j] = np.conj(g)
                    A[j, : j + 1] -= f * tau[: j + 1] + g * A[i, : j + 1]

            A[i, :i] *= scale
            tau[i - 1] = np.conj(temp)

        hh = d[i]
        d[i] = A[i, i].real
        A[i, i] = complex(hh, scale * math.sqrt(h))

    hh = d[0]
    d[0] = A[0, 0].real
    A[0, 0] = hh
    e[0] = 0.0


def hermitian_untridiagonalize(A: np.ndarray, V: np.ndarray, tau: np.ndarray) -> np.ndarray:
    """Eigenvectors of the Hermitian matrix from those of its tridiagonal."""
    n = A.shape[0]
    W = V * np.conj(tau)[:, np.newaxis]
    for i in range(1, n):
        h = A[i, i].imag
        if h != 0:
            s = (A[i, :i] @ W[:i, :]) / h / h
            W[:i, :] -= np.outer(np.conj(A[i, :i]), s)
    return W


# non-symmetric, real ----------------------------------------------------


def reduce_to_hessenberg(H: np.ndarray, V: np.ndarray) -> None:
    """Orthogonal similarity reduction to upper Hessenberg form (JAMA orthes)."""
    n = H.shape[0]
    ort = np.zeros(n)
    for m in range(1, n - 1):
        scale = float(np.sum(np.abs(H[m:, m - 1])))
        if scale != 0.0:
            ort[m:] = H[m:, m - 1] / scale
            h = float(ort[m:] @ ort[m:])
            g = math.sqrt(h)
            if ort[m] > 0:
                g = -g
            h -= ort[m] * g
            ort[m] -= g

            # H = (I - u u' / h) H (I - u u' / h)
            f = (ort[m:] @ H[m:, m:]) / h
            H[m:, m:] -= np.outer(ort[m:], f)
            f = (H[:, m:] @ ort[m:]) / h
            H[:, m:] -= np.outer(f, ort[m:])

            ort[m] *= scale
            H[m, m - 1] = scale * g

    V[:, :] = np.eye(n)
    for m in range(n - 2, 0, -1):
        if H[m, m - 1] != 0.0:
            ort[m + 1 :] = H[m + 1 :, m - 1]
            # double division avoids possible underflow
            g = (ort[m:] @ V[m:, m:]) / ort[m] / H[m, m - 1]
            V[m:, m:] += np.outer(ort[m:], g)


def real_schur(H: np.ndarray, V: np.ndarray, d: np.ndarray, e: np.ndarray) -> int:
    """
    Hessenberg to real Schur form by double-shift QR (JAMA hqr2), then
    eigenvectors by back substitution.

    Returns the total number of QR iterations.
    """
    nn = H.shape[0]
    n = nn - 1
    exshift = 0.0
    p = q = r = s = z = 0.0
    x = y = w = 0.0

    norm = 0.0
    for i in range(nn):
        norm += float(np.sum(np.abs(H[i, max(i - 1, 0) :])))

    iterations = 0
    total = 0
    while n >= 0:
        # look for a single small sub-diagonal element
        l = n
        while l > 0:
            s = abs(H[l - 1, l - 1]) + abs(H[l, l])
            if s == 0.0:
                s = norm
            if abs(H[l, l - 1]) < EPS * s:
                break
            l -= 1

        if l == n:
            # one root
            H[n, n] += exshift
            d[n] = H[n, n]
            e[n] = 0.0
            n -= 1
            iterations = 0

        elif l == n - 1:
            # two roots
            w = H[n, n - 1] * H[n - 1, n]
            p = (H[n - 1, n - 1] - H[n, n]) / 2.0
            q = p * p + w
            z = math.sqrt(abs(q))
            H[n, n] += exshift
            H[n - 1, n - 1] += exshift
            x = H[n, n]

            if q >= 0:
                # real pair
                z = p + z if p >= 0 else p - z
                d[n - 1] = x + z
                d[n] = d[n - 1]
                if z != 0.0:
                    d[n] = x - w / z
                e[n - 1] = 0.0
                e[n] = 0.0
                x = H[n, n - 1]
                s = abs(x) + abs(z)
                p = x / s
                q = z / s
                r = math.sqrt(p * p + q * q)
                p /= r
                q /= r

                row = H[n - 1, n - 1 :].copy()
                H[n - 1, n - 1 :] = q * row + p * H[n, n - 1 :]
                H[n, n - 1 :] = q * H[n, n - 1 :] - p * row

                column = H[: n + 1, n - 1].copy()
                H[: n + 1, n - 1] = q * column + p * H[: n + 1, n]
                H[: n + 1, n] = q * H[: n + 1, n] - p * column

                column = V[:, n - 1].copy()
                V[:, n - 1] = q * column + p * V[:, n]
                V[:, n] = q * V[:, n] - p * column
            else:
                # complex pair
                d[n - 1] = x + p
                d[n] = x + p
                e[n - 1] = z
                e[n] = -z
            n -= 2
            iterations = 0

        else:
            if iterations >= MAX_ITERATIONS:
                raise _no_convergence("real Schur", iterations)

            # form shift
            x = H[n, n]
            y = 0.0
            w = 0.0
            if l < n:
                y = H[n - 1, n - 1]
                w = H[n, n - 1] * H[n - 1, n]

            # Wilkinson's ad hoc shift
            if iterations == 10:
                exshift += x
                H[range(n + 1), range(n + 1)] -= x
                s = abs(H[n, n - 1]) + abs(H[n - 1, n - 2])
                x = y = 0.75 * s
                w = -0.4375 * s * s

            # MATLAB's new ad hoc shift
            if iterations == 30:
                s = (y - x) / 2.0
                s = s * s + w
                if s > 0:
                    s = math.sqrt(s)
                    if y < x:
                        s = -s
                    s = x - w / ((y - x) / 2.0 + s)
                    H[range(n + 1), range(n + 1)] -= s
                    exshift += s
                    x = y = w = 0.964

            iterations += 1
            total += 1

            # look for two consecutive small sub-diagonal elements
            m = n - 2
            while m >= l:
                z = H[m, m]
                r = x - z
                s = y - z
                p = (r * s - w) / H[m + 1, m] + H[m, m + 1]
                q = H[m + 1, m + 1] - z - r - s
                r = H[m + 2, m + 1]
                s = abs(p) + abs(q) + abs(r)
                p /= s
                q /= s
                r /= s
                if m == l:
                    break
                if abs(H[m, m - 1]) * (abs(q) + abs(r)) < EPS * (
                    abs(p) * (abs(H[m - 1, m - 1]) + abs(z) + abs(H[m + 1, m + 1]))
                ):
                    break
                m -= 1

            for i in range(m + 2, n + 1):
                H[i, i - 2] = 0.0
                if i > m + 2:
                    H[i, i - 3] = 0.0

            # double QR step on rows l..n and columns m..n
            for k in range(m, n):
                notlast = k != n - 1
                if k != m:
                    p = H[k, k - 1]
                    q = H[k + 1, k - 1]
                    r = H[k + 2, k - 1] if notlast else 0.0
                    x = abs(p) + abs(q) + abs(r)
                    if x != 0.0:
                        p /= x
                        q /= x
                        r /= x
                if x == 0.0:
                    break

                s = math.sqrt(p * p + q * q + r * r)
                if p < 0:
                    s = -s
                if s == 0:
                    continue

                if k != m:
                    H[k, k - 1] = -s * x
                elif l != m:
                    H[k, k - 1] = -H[k, k - 1]
                p += s
                x = p / s
                y = q / s
                z = r / s
                q /= p
                r /= p

                # row modification
                pr = H[k, k:] + q * H[k + 1, k:]
                if notlast:
                    pr = pr + r * H[k + 2, k:]
                    H[k + 2, k:] -= pr * z
                H[k, k:] -= pr * x
                H[k + 1, k:] -= pr * y

                # column modification
                top = min(n, k + 3) + 1
                pc = x * H[:top, k] + y * H[:top, k + 1]
                if notlast:
                    pc = pc + z * H[:top, k + 2]
                    H[:top, k + 2] -= pc * r
                H[:top, k] -= pc
                H[:top, k + 1] -= pc * q

                # accumulate
                pv = x * V[:, k] + y * V[:, k + 1]
                if notlast:
                    pv = pv + z * V[:, k + 2]
                    V[:, k + 2] -= pv * r
                V[:, k] -= pv
                V[:, k + 1] -= pv * q

    if norm == 0.0:
        return total

    # back substitute to find vectors of the upper triangular form
    for n in range(nn - 1, -1, -1):
        p = d[n]
        q = e[n]

        if q == 0:
            # real vector
            l = n
            H[n, n] = 1.0
            for i in range(n - 1, -1, -1):
                w = H[i, i] - p
                r = float(H[i, l : n + 1] @ H[l : n + 1, n])
                if e[i] < 0.0:
                    z = w
                    s = r
                    continue
                l = i
                if e[i] == 0.0:
                    H[i, n] = -r / w if w != 0.0 else -r / (EPS * norm)
                else:
                    x = H[i, i + 1]
                    y = H[i + 1, i]
                    q = (d[i] - p) * (d[i] - p) + e[i] * e[i]
                    t = (x * s - z * r) / q
                    H[i, n] = t
                    if abs(x) > abs(z):
                        H[i + 1, n] = (-r - w * t) / x
                    else:
                        H[i + 1, n] = (-s - y * t) / z

                # overflow control
                t = abs(H[i, n])
                if (EPS * t) * t > 1:
                    H[i : n + 1, n] /= t

        elif q < 0:
            # complex vector, last component imaginary
            l = n - 1
            if abs(H[n, n - 1]) > abs(H[n - 1, n]):
                H[n - 1, n - 1] = q / H[n, n - 1]
                H[n - 1, n] = -(H[n, n] - p) / H[n, n - 1]
            else:
                c = complex(0.0, -H[n - 1, n]) / complex(H[n - 1, n - 1] - p, q)
                H[n - 1, n - 1] = c.real
                H[n - 1, n] = c.imag
            H[n, n - 1] = 0.0
            H[n, n] = 1.0

            for i in range(n - 2, -1, -1):
                ra = float(H[i, l : n + 1] @ H[l : n + 1, n - 1])
                sa = float(H[i, l : n + 1] @ H[l : n + 1, n])
                w = H[i, i] - p
                if e[i] < 0.0:
                    z = w
                    r = ra
                    s = sa
                    continue
                l = i
                if e[i] == 0:
                    c = complex(-ra, -sa) / complex(w, q)
                    H[i, n - 1] = c.real
                    H[i, n] = c.imag
                else:
                    x = H[i, i + 1]
                    y = H[i + 1, i]
                    vr = (d[i] - p) * (d[i] - p) + e[i] * e[i] - q * q
                    vi = (d[i] - p) * 2.0 * q
                    if vr == 0.0 and vi == 0.0:
                        vr = EPS * norm * (abs(w) + abs(q) + abs(x) + abs(y) + abs(z))
                    c = complex(x * r - z * ra + q * sa, x * s - z * sa - q * ra) / complex(vr, vi)
                    H[i, n - 1] = c.real
                    H[i, n] = c.imag
                    if abs(x) > abs(z) + abs(q):
                        H[i + 1, n - 1] = (-ra - w * H[i, n - 1] + q * H[i, n]) / x
                        H[i + 1, n] = (-sa - w * H[i, n] - q * H[i, n - 1]) / x
                    else:
                        c = complex(-r - y * H[i, n - 1], -s - y * H[i, n]) / complex(z, q)
                        H[i + 1, n - 1] = c.real
                        H[i + 1, n] = c.imag

                t = max(abs(H[i, n - 1]), abs(H[i, n]))
                if (EPS * t) * t > 1:
                    H[i : n + 1, n - 1] /= t
                    H[i : n + 1, n] /= t

    # back transformation
    for j in range(nn - 1, -1, -1):
        V[:, j] = V[:, : j + 1] @ H[: j + 1, j]
    return total


# non-symmetric, complex -------------------------------------------------


def complex_reduce_to_hessenberg(H: np.ndarray, V: np.ndarray) -> None:
    """
    Unitary reduction to upper Hessenberg form with a real sub-diagonal
    (EISPACK corth plus the accumulation of comqr2).
    """
    n = H.shape[0]
    ort = np.zeros(n, dtype=np.complex128)
    for m in range(1, n - 1):
        scale = float(np.sum(np.abs(H[m:, m - 1].real) + np.abs(H[m:, m - 1].imag)))
        if scale == 0.0:
            continue
        ort[m:] = H[m:, m - 1] / scale
        h = float(np.sum(np.abs(ort[m:]) ** 2))
        g = math.sqrt(h)
        if abs(ort[m]) != 0:
            h += abs(ort[m]) * g
            g /= abs(ort[m])
            ort[m] = (1.0 + g) * ort[m]
        else:
            ort[m] = g
            H[m, m - 1] = scale

        f = (np.conj(ort[m:]) @ H[m:, m:]) / h
        H[m:, m:] -= np.outer(ort[m:], f)
        f = (H[:, m:] @ ort[m:]) / h
        H[:, m:] -= np.outer(f, np.conj(ort[m:]))

        ort[m] *= scale
        H[m, m - 1] *= -g

    V[:, :] = np.eye(n)
    for m in range(n - 2, 0, -1):
        if H[m, m - 1] != 0 and ort[m] != 0:
            norm = H[m, m - 1].real * ort[m].real + H[m, m - 1].imag * ort[m].imag
            ort[m + 1 :] = H[m + 1 :, m - 1]
            g = (np.conj(ort[m:]) @ V[m:, m:]) / norm
            V[m:, m:] += np.outer(ort[m:], g)

    # make the sub-diagonal real
    for i in range(1, n):
        if H[i, i - 1].imag != 0.0:
            y = H[i, i - 1] / abs(H[i, i - 1])
            H[i, i - 1] = abs(H[i, i - 1])
            H[i, i:] *= np.conj(y)
            H[: min(i + 1, n - 1) + 1, i] *= y
            V[:, i] *= y


def complex_schur(H: np.ndarray, V: np.ndarray, values: np.ndarray) -> int:
    """
    Complex Schur form by single-shift QR, then eigenvectors by back
    substitution.

    Returns the total number of QR iterations.
    """
    order = H.shape[0]
    n = order - 1
    exshift = 0j
    iterations = 0
    total = 0

    while n >= 0:
        l = n
        while l > 0:
            tst1 = (
                abs(H[l - 1, l - 1].real)
                + abs(H[l - 1, l - 1].imag)
                + abs(H[l, l].real)
                + abs(H[l, l].imag)
            )
            if abs(H[l, l - 1].real) < EPS * tst1:
                break
            l -= 1

        if l == n:
            H[n, n] += exshift
            values[n] = H[n, n]
            n -= 1
            iterations = 0
            continue

        if iterations >= MAX_ITERATIONS:
            raise _no_convergence("complex Schur", iterations)

        # form shift
        if iterations != 10 and iterations != 20:
            s = H[n, n]
            x = H[n - 1, n] * H[n, n - 1].real
            if x != 0:
                y = (H[n - 1, n - 1] - s) / 2.0
                z = cmath.sqrt(y * y + x)
                if y.real * z.real + y.imag * z.imag < 0.0:
                    z = -z
                x /= y + z
                s -= x
        else:
            # exceptional shift
            s = abs(H[n, n - 1].real)
            if n >= 2:
                s += abs(H[n - 1, n - 2].real)

        H[range(n + 1), range(n + 1)] -= s
        exshift += s
        iterations += 1
        total += 1

        # reduce to triangle (rows)
        for i in range(l + 1, n + 1):
            s = H[i, i - 1].real
            norm = hypotenuse(abs(H[i - 1, i - 1]), s)
            x = H[i - 1, i - 1] / norm
            values[i - 1] = x
            H[i - 1, i - 1] = norm
            sn = s / norm
            H[i, i - 1] = complex(0.0, sn)

            y = H[i - 1, i:].copy()
            z = H[i, i:].copy()
            H[i - 1, i:] = np.conj(x) * y + sn * z
            H[i, i:] = x * z - sn * y

        s = H[n, n]
        if s.imag != 0.0:
            s /= abs(H[n, n])
            H[n, n] = abs(H[n, n])
            H[n, n + 1 :] *= np.conj(s)

        # inverse operation (columns)
        for j in range(l + 1, n + 1):
            x = values[j - 1]
            sn = H[j, j - 1].imag
            for i in range(j + 1):
                z = H[i, j]
                if i != j:
                    y = H[i, j - 1]
                    H[i, j - 1] = x * y + sn * z
                else:
                    y = H[i, j - 1].real
                    H[i, j - 1] = complex(x.real * y + sn * z.real, H[i, j - 1].imag)
                H[i, j] = np.conj(x) * z - sn * y

            y = V[:, j - 1].copy()
            z = V[:, j].copy()
            V[:, j - 1] = x * y + sn * z
            V[:, j] = np.conj(x) * z - sn * y

        if s.imag != 0.0:
            H[: n + 1, n] *= s
            V[:, n] *= s

    # back substitute to find vectors of the upper triangular form
    norm = 0.0
    for i in range(order):
        norm = max(norm, float(np.max(np.abs(H[i, i:].real) + np.abs(H[i, i:].imag))))
    if order == 1 or norm == 0.0:
        return total

    for n in range(order - 1, 0, -1):
        x = values[n]
        H[n, n] = 1.0
        for i in range(n - 1, -1, -1):
            z = H[i, i + 1 : n + 1] @ H[i + 1 : n + 1, n]
            y = x - values[i]
            if y == 0:
                y = EPS * norm
            H[i, n] = z / y

            # overflow control
            tr = abs(H[i, n].real) + abs(H[i, n].imag)
            if (EPS * tr) * tr > 1:
                H[i : n + 1, n] /= tr

    # back transformation
    for j in range(order - 1, 0, -1):
        V[:, j] = V[:, : j + 1] @ H[: j + 1, j]
    return total
