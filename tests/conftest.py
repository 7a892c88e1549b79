# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest

from linstore.builder import MatrixBuilder
from linstore.config import Control
from linstore.scalar import ScalarKind, scalar_for

ALL_KINDS = list(ScalarKind)
DOUBLE_KINDS = [ScalarKind.REAL64, ScalarKind.COMPLEX64]


def tol(kind):
    """Comparison tolerance for results computed in `kind`."""
    return 1e-3 if scalar_for(kind).real_dtype == np.float32 else 1e-9


def random_matrix(rng, rows, cols, kind):
    A = rng.standard_normal((rows, cols))
    if scalar_for(kind).is_complex:
        A = A + 1j * rng.standard_normal((rows, cols))
    return A


def random_spd(rng, n, kind):
    """Hermitian positive definite matrix with a comfortable diagonal."""
    G = random_matrix(rng, n, n, kind)
    A = G @ np.conj(G.T) + n * np.eye(n)
    # exact symmetry, so is_hermitian() holds bit for bit
    return (A + np.conj(A.T)) / 2


def random_hermitian(rng, n, kind):
    G = random_matrix(rng, n, n, kind)
    return (G + np.conj(G.T)) / 2


def layouts(kind, A):
    """The same values as dense, sparse and Knuth-linked matrices; only the first takes the provider path."""
    M = MatrixBuilder(kind)
    return M.dense_of_array(A), M.sparse_of_array(A), M.knuth_of_array(A)


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture(params=ALL_KINDS, ids=lambda k: k.value)
def kind(request):
    return request.param


@pytest.fixture(autouse=True)
def _reset_control():
    Control.reset()
    yield
    Control.reset()
