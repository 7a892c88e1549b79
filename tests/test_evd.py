# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging

import numpy as np
import pytest

from conftest import layouts, random_hermitian, random_matrix, random_spd, tol
from linstore.builder import MatrixBuilder, VectorBuilder
from linstore.evd import DenseEvd, Evd, UserEvd
from linstore.exceptions import ConvergenceError, NotSquareError, NotSupportedError
from linstore.options import Symmetricity
from linstore.scalar import ScalarKind

logger = logging.getLogger(__name__)


@pytest.mark.parametrize("layout", [0, 1, 2], ids=["dense", "sparse", "knuth"])
def test_known_values(layout):
    A = np.array([[2.0, 1.0], [1.0, 2.0]])
    evd = layouts("real64", A)[layout].evd()
    assert evd.is_symmetric
    assert np.allclose(evd.eigen_values.to_array(), [1.0, 3.0])
    assert np.isclose(evd.determinant, 3.0)
    assert evd.rank == 2 and evd.is_full_rank
    assert np.isclose(evd.condition_number, 3.0)


def test_variant_follows_storage():
    dense, sparse, knuth = layouts("real64", np.eye(2))
    assert isinstance(dense.evd(), DenseEvd)
    assert isinstance(sparse.evd(), UserEvd)
    assert isinstance(knuth.evd(), UserEvd)


@pytest.mark.parametrize("n", [1, 2, 5, 8])
def test_symmetric(rng, kind, n):
    A = random_hermitian(rng, n, kind)
    expected = np.linalg.eigvalsh(A)
    for m in layouts(kind, A):
        evd = m.evd()
        V, D = evd.eigen_vectors.to_array(), evd.d.to_array()
        values = evd.eigen_values.to_array()
        assert evd.is_symmetric
        assert np.allclose(values.imag, 0.0)
        assert np.allclose(values.real, expected, atol=tol(kind) * 10)
        assert np.allclose(np.conj(V.T) @ V, np.eye(n), atol=tol(kind) * 10)
        assert np.allclose(V @ D @ np.conj(V.T), A, atol=tol(kind) * 10)


@pytest.mark.parametrize("n", [2, 5, 8])
def test_real_nonsymmetric(rng, n):
    A = rng.standard_normal((n, n))
    expected = np.sort_complex(np.linalg.eigvals(A))
    for m in layouts("real64", A):
        evd = m.evd()
        V, D = evd.eigen_vectors.to_array(), evd.d.to_array()
        assert not evd.is_symmetric
        assert np.allclose(np.sort_complex(evd.eigen_values.to_array()), expected)
        assert np.allclose(A @ V, V @ D)
        assert np.isclose(evd.determinant, np.linalg.det(A))


def test_real_complex_pair_block():
    # rotation by 90 degrees: eigenvalues +/- i
    A = np.array([[0.0, -1.0], [1.0, 0.0]])
    for m in layouts("real64", A):
        evd = m.evd()
        D = evd.d.to_array()
        assert np.allclose(np.sort_complex(evd.eigen_values.to_array()), [-1j, 1j])
        assert np.allclose(np.diagonal(D), 0.0)
        assert np.isclose(abs(D[0, 1]), 1.0) and np.isclose(D[0, 1], -D[1, 0])
        assert np.allclose(A @ evd.eigen_vectors.to_array(), evd.eigen_vectors.to_array() @ D)


@pytest.mark.parametrize("n", [2, 5])
def test_complex_nonsymmetric(rng, n):
    A = random_matrix(rng, n, n, "complex64")
    expected = np.sort_complex(np.linalg.eigvals(A))
    for m in layouts("complex64", A):
        evd = m.evd()
        V, D = evd.eigen_vectors.to_array(), evd.d.to_array()
        assert np.allclose(np.sort_complex(evd.eigen_values.to_array()), expected)
        assert np.allclose(D, np.diag(evd.eigen_values.to_array()))
        assert np.allclose(A @ V, V @ D)


def test_single_precision_kinds():
    A = np.array([[2.0, 1.0], [1.0, 2.0]])
    evd = MatrixBuilder("real32").sparse_of_array(A).evd()
    assert evd.eigen_values.scalar.kind is ScalarKind.COMPLEX32
    assert evd.eigen_vectors.scalar.kind is ScalarKind.REAL32
    assert np.allclose(evd.eigen_values.to_array(), [1.0, 3.0], atol=1e-5)


def test_symmetricity_override(rng):
    A = random_hermitian(rng, 4, "real64")
    evd = Evd.create(MatrixBuilder().sparse_of_array(A), Symmetricity.ASYMMETRIC)
    assert not evd.is_symmetric
    assert np.allclose(np.sort(evd.eigen_values.to_array().real), np.linalg.eigvalsh(A))
    assert Evd.create(MatrixBuilder().dense_of_array(A), Symmetricity.SYMMETRIC).is_symmetric


def test_not_square():
    with pytest.raises(NotSquareError):
        MatrixBuilder().sparse(2, 3).evd()


def test_singular_rank():
    evd = MatrixBuilder().sparse_of_array(np.diag([3.0, 0.0, 1.0])).evd()
    assert evd.rank == 2
    assert not evd.is_full_rank
    assert np.isclose(evd.determinant, 0.0)


class TestSolve:
    def test_symmetric(self, rng, kind):
        A = random_spd(rng, 4, kind)
        b = random_matrix(rng, 4, 1, kind).ravel()
        for m in layouts(kind, A):
            x = m.evd().solve(VectorBuilder(kind).dense_of_array(b))
            assert np.allclose(A @ x.to_array(), b, atol=tol(kind) * 100)

    def test_matrix_right_hand_side(self, rng):
        A = random_spd(rng, 3, "real64")
        B = rng.standard_normal((3, 2))
        for m in layouts("real64", A):
            X = m.evd().solve(MatrixBuilder().sparse_of_array(B))
            assert np.allclose(A @ X.to_array(), B)

    def test_nonsymmetric_not_supported(self, rng):
        A = rng.standard_normal((3, 3))
        for m in layouts("real64", A):
            with pytest.raises(NotSupportedError, match="symmetric"):
                m.evd().solve(VectorBuilder().dense(3))


@pytest.mark.parametrize(
    "kind, build",
    [
        ("real64", random_spd),
        ("complex64", random_hermitian),
        ("real64", random_matrix),
        ("complex64", random_matrix),
    ],
    ids=["ql-real", "ql-hermitian", "real-schur", "complex-schur"],
)
def test_generic_sweeps_are_capped(rng, monkeypatch, kind, build):
    monkeypatch.setattr("linstore.evd.MAX_ITERATIONS", 0)
    if build is random_matrix:
        A = build(rng, 4, 4, kind)
    else:
        A = build(rng, 4, kind)
    with pytest.raises(ConvergenceError) as info:
        MatrixBuilder(kind).sparse_of_array(A).evd()
    assert info.value.max_iterations == 0
    assert info.value.iterations >= 0
