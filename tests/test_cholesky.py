# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging

import numpy as np
import pytest

from conftest import layouts, random_matrix, random_spd, tol
from linstore.builder import MatrixBuilder, VectorBuilder
from linstore.cholesky import Cholesky, DenseCholesky, UserCholesky
from linstore.exceptions import DimensionError, NotPositiveDefiniteError, NotSquareError
from linstore.knuth_storage import KnuthLinkedMatrixStorage
from linstore.matrix_storage import DenseColumnMajorMatrixStorage, SparseCompressedRowMatrixStorage

logger = logging.getLogger(__name__)


@pytest.mark.parametrize("layout", [0, 1, 2], ids=["dense", "sparse", "knuth"])
def test_known_factor(layout):
    A = np.array([[4.0, 2.0], [2.0, 3.0]])
    chol = layouts("real64", A)[layout].cholesky()
    assert np.allclose(chol.factor.to_array(), [[2.0, 0.0], [1.0, np.sqrt(2.0)]])
    assert np.isclose(chol.determinant, 8.0)
    assert np.isclose(chol.determinant_ln, np.log(8.0))


def test_variant_follows_storage():
    A = np.array([[4.0, 2.0], [2.0, 3.0]])
    dense, sparse, knuth = layouts("real64", A)
    assert isinstance(dense.cholesky(), DenseCholesky)
    user = sparse.cholesky()
    assert isinstance(user, UserCholesky)
    assert isinstance(user.factor.storage, SparseCompressedRowMatrixStorage)
    assert isinstance(knuth.cholesky().factor.storage, KnuthLinkedMatrixStorage)


@pytest.mark.parametrize("n", [1, 3, 6])
def test_reconstruction(rng, kind, n):
    A = random_spd(rng, n, kind)
    for m in layouts(kind, A):
        L = m.cholesky().factor.to_array()
        assert np.allclose(np.triu(L, 1), 0.0)
        assert np.allclose(L @ np.conj(L.T), A, atol=tol(kind) * n)
        assert np.isclose(m.cholesky().determinant, np.linalg.det(A), rtol=tol(kind) * 10)


def test_dense_and_generic_agree(rng, kind):
    A = random_spd(rng, 5, kind)
    dense, sparse, knuth = layouts(kind, A)
    assert np.allclose(dense.cholesky().factor.to_array(), sparse.cholesky().factor.to_array(), atol=tol(kind))
    assert np.allclose(dense.cholesky().factor.to_array(), knuth.cholesky().factor.to_array(), atol=tol(kind))


def test_input_is_not_modified():
    A = np.array([[4.0, 2.0], [2.0, 3.0]])
    for m in layouts("real64", A):
        m.cholesky()
        assert np.array_equal(m.to_array(), A)


@pytest.mark.parametrize("layout", [0, 1, 2], ids=["dense", "sparse", "knuth"])
def test_not_positive_definite(layout):
    A = np.array([[1.0, 2.0], [2.0, 1.0]])
    with pytest.raises(NotPositiveDefiniteError) as info:
        layouts("real64", A)[layout].cholesky()
    assert info.value.pivot_index == 1


def test_not_square():
    with pytest.raises(NotSquareError):
        MatrixBuilder().sparse(2, 3).cholesky()


class TestSolve:
    def test_vector(self, rng, kind):
        A = random_spd(rng, 4, kind)
        b = random_matrix(rng, 4, 1, kind).ravel()
        for m in layouts(kind, A):
            x = m.cholesky().solve(VectorBuilder(kind).dense_of_array(b))
            assert np.allclose(A @ x.to_array(), b, atol=tol(kind) * 10)

    def test_matrix_with_result(self, rng):
        A = random_spd(rng, 4, "real64")
        B = rng.standard_normal((4, 3))
        for m in layouts("real64", A):
            result = MatrixBuilder().dense(4, 3)
            out = m.cholesky().solve(MatrixBuilder().sparse_of_array(B), result)
            assert out is result
            assert np.allclose(A @ result.to_array(), B)

    def test_right_hand_side_kind_is_converted(self, rng):
        A = random_spd(rng, 3, "real64")
        b = np.array([1.0, 2.0, 3.0], dtype=np.float32)
        x = Cholesky.create(MatrixBuilder().dense_of_array(A)).solve(VectorBuilder("real32").dense_of_array(b))
        assert x.scalar.dtype == np.float64
        assert np.allclose(A @ x.to_array(), b)

    def test_dimension_errors(self):
        chol = MatrixBuilder().dense_identity(3).cholesky()
        with pytest.raises(DimensionError):
            chol.solve(VectorBuilder().dense(2))
        with pytest.raises(DimensionError):
            chol.solve(MatrixBuilder().dense(3, 2), MatrixBuilder().dense(3, 3))


def test_structured_storage_inputs(rng):
    M = MatrixBuilder()
    A = random_spd(rng, 4, "real64")
    B = M.diagonal(4, 4, [1.0, 2.0, 3.0, 4.0])
    for m in (M.symmetric_of_array(A), M.knuth_of_array(A)):
        chol = m.cholesky()
        assert isinstance(chol, UserCholesky)
        L = chol.factor.to_array()
        assert np.allclose(L @ L.T, A)
        X = chol.solve(B)
        assert X.storage.is_fully_mutable
        assert np.allclose(A @ X.to_array(), B.to_array())

    chol = M.diagonal(3, 3, [4.0, 9.0, 16.0]).cholesky()
    assert np.allclose(chol.factor.to_array(), np.diag([2.0, 3.0, 4.0]))
    assert np.isclose(chol.determinant, 576.0)
