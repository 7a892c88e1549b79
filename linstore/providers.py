# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Linear-algebra providers.

Dense factorizations do not run their own loops; they hand flat
column-major buffers to a provider. The default ``"managed"`` provider
runs vectorized numpy kernels for Cholesky and Householder QR and calls
LAPACK through `numpy.linalg` for SVD and eigen-decomposition.

>>> from linstore.providers import get_provider
>>> get_provider().name
'managed'
"""

import logging
from typing import Dict, List, Protocol

import numpy as np

from .config import Control, ProviderConfig
from .exceptions import ConvergenceError, NotPositiveDefiniteError, NotSupportedError
from .options import QRMethod

logger = logging.getLogger(__name__)


class LinearAlgebraProvider(Protocol):
    """Operations a provider must implement; every buffer is flat and column-major."""

    name: str

    def cholesky_factor(self, a: np.ndarray, order: int) -> None: ...

    def cholesky_solve_factored(self, a: np.ndarray, order: int, b: np.ndarray, columns: int) -> None: ...

    def qr_factor(self, r: np.ndarray, rows: int, cols: int, q: np.ndarray, tau: np.ndarray) -> None: ...

    def thin_qr_factor(self, a: np.ndarray, rows: int, cols: int, r: np.ndarray, tau: np.ndarray) -> None: ...

    def qr_solve_factored(
        self,
        q: np.ndarray,
        r: np.ndarray,
        rows: int,
        cols: int,
        b: np.ndarray,
        columns: int,
        x: np.ndarray,
        method: QRMethod = QRMethod.FULL,
    ) -> None: ...

    def svd_factor(
        self,
        compute_vectors: bool,
        a: np.ndarray,
        rows: int,
        cols: int,
        s: np.ndarray,
        u: np.ndarray,
        vt: np.ndarray,
    ) -> None: ...

    def eigen_decomp(
        self,
        is_symmetric: bool,
        order: int,
        a: np.ndarray,
        vectors: np.ndarray,
        values: np.ndarray,
        d: np.ndarray,
    ) -> None: ...


def _view(buffer: np.ndarray, rows: int, cols: int) -> np.ndarray:
    """Fortran-ordered 2-D view of a flat column-major buffer."""
    return buffer.reshape((rows, cols), order="F")


def forward_substitute(L: np.ndarray, B: np.ndarray) -> np.ndarray:
    """Solve L X = B in place for lower-triangular L; B is (n, k)."""
    n = L.shape[0]
    for i in range(n):
        B[i, :] = (B[i, :] - L[i, :i] @ B[:i, :]) / L[i, i]
    return B


def back_substitute(U: np.ndarray, B: np.ndarray) -> np.ndarray:
    """
    Solve U X = B in place for upper-triangular U.

    Parameters
    ----------
    U : (n, n) ndarray
    B : (n, k) ndarray
        Right-hand sides; overwritten with the solution.
    """
    n = U.shape[0]
    for i in reversed(range(n)):
        B[i, :] = (B[i, :] - U[i, i + 1 :] @ B[i + 1 :, :]) / U[i, i]
    return B


def householder_vector(x: np.ndarray):
    """
    Reflector for one column.

    Returns ``(u, diagonal)`` where applying ``a -= conj(u) (u^T a)``
    to the column `x` leaves ``diagonal`` in its first entry and zeros
    below it.
    """
    u = x.copy()
    norm = np.sqrt(np.sum(np.abs(u) ** 2))
    if u.shape[0] == 1 or norm == 0:
        diagonal = -u[0]
        u[0] = np.sqrt(2.0)
        return u, diagonal
    if u[0] != 0:
        norm = norm * (u[0] / np.abs(u[0]))
    diagonal = -norm
    u /= norm
    u[0] += 1.0
    s = np.sqrt(1.0 / u[0])
    return np.conj(u) * s, diagonal


def apply_householder(u: np.ndarray, A: np.ndarray) -> None:
    """A -= conj(u) (u^T A), in place; A has ``len(u)`` rows."""
    if A.shape[1] == 0:
        return
    v = u @ A
    A -= np.outer(np.conj(u), v)


class ManagedLinearAlgebraProvider:
    """numpy-backed provider."""

    name = "managed"

    # Cholesky ---------------------------------------------------------

    def cholesky_factor(self, a: np.ndarray, order: int) -> None:
        """
        Overwrite `a` with its lower Cholesky factor (left-looking).

        Only the lower triangle of `a` is read; the upper triangle is
        zeroed on return.
        """
        A = _view(a, order, order)
        for j in range(order):
            row = A[j, :j]
            d = A[j, j] - np.vdot(row, row)
            if np.real(d) <= 0:
                raise NotPositiveDefiniteError(
                    "Matrix must be positive definite.", pivot_index=j
                )
            A[j, j] = np.sqrt(d)
            if j + 1 < order:
                A[j + 1 :, j] = (A[j + 1 :, j] - A[j + 1 :, :j] @ np.conj(row)) / A[j, j]
        A[np.triu_indices(order, 1)] = 0

    def cholesky_solve_factored(self, a: np.ndarray, order: int, b: np.ndarray, columns: int) -> None:
        L = _view(a, order, order)
        B = _view(b, order, columns)
        forward_substitute(L, B)
        back_substitute(np.conj(L.T), B)

    # QR ---------------------------------------------------------------

    def qr_factor(self, r: np.ndarray, rows: int, cols: int, q: np.ndarray, tau: np.ndarray) -> None:
        """
        Householder QR.

        `r` (rows x cols) is overwritten with R, `q` (rows x rows) with
        Q, and ``tau[i]`` receives the i-th diagonal of R.
        """
        R = _view(r, rows, cols)
        Q = _view(q, rows, rows)
        reflectors = self._reduce(R, rows, cols, tau)
        Q[:, :] = np.eye(rows, dtype=Q.dtype)
        for i in reversed(range(len(reflectors))):
            apply_householder(reflectors[i], Q[i:, i:])

    def thin_qr_factor(self, a: np.ndarray, rows: int, cols: int, r: np.ndarray, tau: np.ndarray) -> None:
        """`a` (rows x cols) becomes the thin Q; `r` (cols x cols) the square R."""
        A = _view(a, rows, cols)
        work = A.copy()
        reflectors = self._reduce(work, rows, cols, tau)
        _view(r, cols, cols)[:, :] = work[:cols, :]
        Q = np.eye(rows, cols, dtype=A.dtype)
        for i in reversed(range(len(reflectors))):
            apply_householder(reflectors[i], Q[i:, i:])
        A[:, :] = Q

    @staticmethod
    def _reduce(R: np.ndarray, rows: int, cols: int, tau: np.ndarray) -> List[np.ndarray]:
        reflectors = []
        for i in range(min(rows, cols)):
            u, diagonal = householder_vector(R[i:, i])
            R[i:, i] = 0
            R[i, i] = diagonal
            tau[i] = diagonal
            apply_householder(u, R[i:, i + 1 :])
            reflectors.append(u)
        return reflectors

    def qr_solve_factored(self, q, r, rows, cols, b, columns, x, method=QRMethod.FULL) -> None:
        q_cols = rows if method is QRMethod.FULL else cols
        r_rows = rows if method is QRMethod.FULL else cols
        Q = _view(q, rows, q_cols)
        R = _view(r, r_rows, cols)
        B = _view(b, rows, columns)
        y = (np.conj(Q.T) @ B)[:cols, :]
        _view(x, cols, columns)[:, :] = back_substitute(R[:cols, :cols], y)

    # SVD / EVD --------------------------------------------------------

    def svd_factor(self, compute_vectors, a, rows, cols, s, u, vt) -> None:
        A = _view(a, rows, cols)
        try:
            if compute_vectors:
                U, S, Vh = np.linalg.svd(A, full_matrices=True)
                _view(u, rows, rows)[:, :] = U
                _view(vt, cols, cols)[:, :] = Vh
            else:
                S = np.linalg.svd(A, compute_uv=False)
        except np.linalg.LinAlgError as err:
            logger.warning("SVD did not converge: %s", err)
            raise ConvergenceError("SVD did not converge.") from err
        s[: S.shape[0]] = S

    def eigen_decomp(self, is_symmetric, order, a, vectors, values, d) -> None:
        """
        Eigen-decomposition of the square matrix in `a`.

        `values` receives complex eigenvalues, `vectors` the eigenvectors
        (for real non-symmetric input, a complex pair occupies two
        columns holding the real and imaginary parts), and `d` the block
        diagonal eigenvalue matrix.
        """
        A = _view(a, order, order)
        V = _view(vectors, order, order)
        D = _view(d, order, order)
        D[:, :] = 0
        try:
            if is_symmetric:
                w, X = np.linalg.eigh(A)
                V[:, :] = X
                values[:] = w
                D[np.diag_indices(order)] = w
                return
            w, X = np.linalg.eig(A)
        except np.linalg.LinAlgError as err:
            logger.warning("Eigen-decomposition did not converge: %s", err)
            raise ConvergenceError("Eigen-decomposition did not converge.") from err

        values[:] = w
        if np.iscomplexobj(A):
            V[:, :] = X
            D[np.diag_indices(order)] = w
            return

        # real input: complex pairs as (real, imaginary) column blocks
        j = 0
        while j < order:
            D[j, j] = w[j].real
            if w[j].imag == 0:
                V[:, j] = X[:, j].real
                j += 1
                continue
            V[:, j] = X[:, j].real
            V[:, j + 1] = X[:, j].imag
            D[j + 1, j + 1] = w[j].real
            D[j, j + 1] = w[j].imag
            D[j + 1, j] = w[j + 1].imag
            j += 2


_PROVIDERS: Dict[str, LinearAlgebraProvider] = {"managed": ManagedLinearAlgebraProvider()}


def register_provider(name: str, provider: LinearAlgebraProvider) -> None:
    _PROVIDERS[name.lower()] = provider
    logger.debug("registered provider %r", name)


def get_provider() -> LinearAlgebraProvider:
    """The provider named by ``Control.provider.name``."""
    name = Control.provider.name
    try:
        return _PROVIDERS[name]
    except KeyError:
        raise NotSupportedError(
            f"Unknown linear algebra provider {name!r}; available: {sorted(_PROVIDERS)}"
        ) from None


def use_provider(name: str) -> None:
    """Make `name` the global provider."""
    name = name.lower()
    if name not in _PROVIDERS:
        raise NotSupportedError(f"Unknown linear algebra provider {name!r}; available: {sorted(_PROVIDERS)}")
    Control.provider = ProviderConfig(name=name)
