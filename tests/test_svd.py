# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging
import math
import warnings

import numpy as np
import pytest

from conftest import layouts, random_matrix, tol
from linstore.builder import MatrixBuilder, VectorBuilder
from linstore.exceptions import ConvergenceError, InvalidOperationError, NotSquareError
from linstore.matrix_storage import DiagonalMatrixStorage
from linstore.svd import DenseSvd, Svd, UserSvd

logger = logging.getLogger(__name__)

SHAPES = [(1, 1), (3, 3), (5, 3), (3, 5), (4, 1), (1, 4)]


@pytest.mark.parametrize("layout", [0, 1, 2], ids=["dense", "sparse", "knuth"])
def test_known_values(layout):
    A = np.array([[3.0, 0.0], [0.0, -2.0]])
    svd = layouts("real64", A)[layout].svd()
    assert np.allclose(svd.s.to_array(), [3.0, 2.0])
    assert svd.rank == 2
    assert np.isclose(svd.norm2, 3.0)
    assert np.isclose(svd.condition_number, 1.5)
    assert np.isclose(svd.determinant, 6.0)


def test_variant_follows_storage():
    dense, sparse, knuth = layouts("real64", np.eye(2))
    assert isinstance(dense.svd(), DenseSvd)
    assert isinstance(sparse.svd(), UserSvd)
    assert isinstance(knuth.svd(), UserSvd)
    assert isinstance(Svd.create(MatrixBuilder().diagonal_identity(2)), UserSvd)


@pytest.mark.parametrize("rows, cols", SHAPES)
def test_reconstruction(rng, kind, rows, cols):
    A = random_matrix(rng, rows, cols, kind)
    expected = np.linalg.svd(A, compute_uv=False)
    for m in layouts(kind, A):
        svd = m.svd()
        U, W, Vt = svd.u.to_array(), svd.w.to_array(), svd.vt.to_array()
        assert U.shape == (rows, rows) and W.shape == (rows, cols) and Vt.shape == (cols, cols)
        assert np.allclose(np.conj(U.T) @ U, np.eye(rows), atol=tol(kind) * 10)
        assert np.allclose(Vt @ np.conj(Vt.T), np.eye(cols), atol=tol(kind) * 10)
        assert np.allclose(U @ W @ Vt, A, atol=tol(kind) * 10)
        s = np.abs(svd.s.to_array())
        assert np.all(np.diff(s) <= tol(kind))
        assert np.allclose(s, expected, atol=tol(kind) * 10)


def test_dense_and_generic_agree(rng):
    A = rng.standard_normal((6, 4))
    dense, sparse, knuth = layouts("real64", A)
    assert np.allclose(dense.svd().s.to_array(), sparse.svd().s.to_array())
    assert np.allclose(dense.svd().s.to_array(), knuth.svd().s.to_array())


def test_values_only(rng):
    A = rng.standard_normal((4, 3))
    for m in layouts("real64", A):
        svd = m.svd(compute_vectors=False)
        assert not svd.vectors_computed
        assert svd.u is None and svd.vt is None
        assert np.allclose(svd.s.to_array(), np.linalg.svd(A, compute_uv=False))
        with pytest.raises(InvalidOperationError):
            svd.solve(VectorBuilder().dense(4))


def test_rank_deficient():
    for m in layouts("real64", np.diag([3.0, 2.0, 0.0])):
        svd = m.svd()
        assert svd.rank == 2
        assert svd.determinant == 0.0
    assert MatrixBuilder().diagonal(3, 3, [3.0, 2.0, 0.0]).svd().rank == 2


def test_w_is_diagonal():
    svd = MatrixBuilder().sparse_of_array(np.array([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0]])).svd()
    assert isinstance(svd.w.storage, DiagonalMatrixStorage)
    assert svd.w.shape == (2, 3)


def test_determinant_needs_square(rng):
    with pytest.raises(NotSquareError):
        MatrixBuilder().dense_of_array(rng.standard_normal((3, 2))).svd().determinant


def test_determinant_is_absolute(rng):
    A = rng.standard_normal((4, 4))
    for m in layouts("real64", A):
        assert np.isclose(m.svd().determinant, abs(np.linalg.det(A)))


def test_l2_norm_and_condition(rng):
    A = rng.standard_normal((5, 3))
    for m in layouts("real64", A):
        svd = m.svd(compute_vectors=False)
        assert svd.l2_norm == svd.norm2
        assert np.isclose(svd.l2_norm, np.linalg.norm(A, 2))
        assert np.isclose(svd.condition_number, np.linalg.cond(A))


class TestSolve:
    def test_least_squares(self, rng):
        A = rng.standard_normal((7, 3))
        b = rng.standard_normal(7)
        x_np, *_ = np.linalg.lstsq(A, b, rcond=None)
        for m in layouts("real64", A):
            x = m.svd().solve(VectorBuilder().dense_of_array(b))
            assert np.allclose(x.to_array(), x_np)

    def test_singular_uses_pseudo_inverse(self):
        A = np.diag([2.0, 0.0])
        B = np.array([[4.0], [1.0]])
        for m in layouts("real64", A):
            X = m.svd().solve(MatrixBuilder().sparse_of_array(B))
            assert np.allclose(X.to_array(), [[2.0], [0.0]])

    def test_complex(self, rng):
        A = random_matrix(rng, 4, 4, "complex64")
        b = random_matrix(rng, 4, 1, "complex64").ravel()
        for m in layouts("complex64", A):
            x = m.svd().solve(VectorBuilder("complex64").dense_of_array(b))
            assert np.allclose(A @ x.to_array(), b)


def test_condition_number_of_singular_matrix():
    svd = MatrixBuilder().sparse_of_array(np.diag([3.0, 2.0, 0.0])).svd()
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert svd.condition_number == math.inf
    assert np.isclose(MatrixBuilder().sparse_of_array(np.diag([3.0, 2.0, 1.0])).svd().condition_number, 3.0)


def test_generic_sweep_is_capped(rng, monkeypatch):
    monkeypatch.setattr("linstore.svd.MAX_ITERATIONS", 0)
    with pytest.raises(ConvergenceError) as info:
        MatrixBuilder().sparse_of_array(rng.standard_normal((4, 3))).svd()
    assert info.value.iterations == 0
    assert info.value.max_iterations == 0
