# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest

from conftest import layouts, random_matrix, tol
from linstore.builder import MatrixBuilder, VectorBuilder
from linstore.exceptions import DimensionError, IndexOutOfRangeError, NotSquareError
from linstore.matrix import Matrix, Vector
from linstore.matrix_storage import (
    DenseColumnMajorMatrixStorage,
    DiagonalMatrixStorage,
    SparseCompressedRowMatrixStorage,
)
from linstore.options import ZeroPolicy
from linstore.vector_storage import DenseVectorStorage, SparseVectorStorage

M = MatrixBuilder()
V = VectorBuilder()


class TestVector:
    @pytest.mark.parametrize("make", [V.dense_of_array, V.sparse_of_array])
    def test_negate_map(self, make):
        v = make([1.0, 2.0, 0.0, 4.0])
        assert np.array_equal(v.map(lambda x: -x).to_array(), [-1.0, -2.0, 0.0, -4.0])
        assert np.array_equal((-v).to_array(), [-1.0, -2.0, 0.0, -4.0])

    def test_sparse_map_stays_sparse_when_zero_preserving(self):
        v = V.sparse_of_array([1.0, 0.0])
        assert isinstance(v.map(lambda x: 3 * x).storage, SparseVectorStorage)
        assert isinstance(v.map(lambda x: x + 1).storage, DenseVectorStorage)
        assert isinstance(v.map(abs, ZeroPolicy.INCLUDE).storage, DenseVectorStorage)

    def test_arithmetic(self):
        a = V.dense_of_array([1.0, 2.0, 3.0])
        b = V.sparse_of_array([0.0, 1.0, 0.0])
        assert np.array_equal((a + b).to_array(), [1.0, 3.0, 3.0])
        assert np.array_equal((a - b).to_array(), [1.0, 1.0, 3.0])
        assert np.array_equal((2 * a).to_array(), [2.0, 4.0, 6.0])
        assert a * b == 2.0
        assert a.sum() == 6.0
        assert np.isclose(a.l2_norm(), np.sqrt(14.0))
        with pytest.raises(DimensionError):
            a + V.dense(2)

    def test_conjugate_dot(self):
        W = VectorBuilder("complex64")
        a = W.dense_of_array([1j, 1.0])
        b = W.dense_of_array([1j, 2.0])
        assert a.conjugate_dot(b) == 3.0
        assert a.dot(b) == 1.0

    def test_access_and_copies(self):
        v = V.sparse(3)
        v[1] = 5.0
        assert v[1] == 5.0 and len(v) == 3 and v.count == 3
        assert list(v) == [0.0, 5.0, 0.0]
        w = v.clone()
        w[1] = 1.0
        assert v[1] == 5.0
        assert v != w
        v.copy_to(w)
        assert v == w
        with pytest.raises(IndexOutOfRangeError):
            v[3]


class TestMatrixBasics:
    def test_access(self):
        m = M.sparse(2, 2)
        m[0, 1] = 3.0
        assert m[0, 1] == 3.0 and m.at(1, 1) == 0.0
        assert m.shape == (2, 2) and m.row_count == 2 and m.column_count == 2
        with pytest.raises(IndexOutOfRangeError):
            m[2, 0] = 1.0

    def test_clone_and_create(self):
        m = M.diagonal(2, 2, [1.0, 2.0])
        c = m.clone()
        assert isinstance(c.storage, DiagonalMatrixStorage)
        assert c == m
        f = m.clone_fully_mutable()
        f[0, 1] = 1.0
        assert f.at(0, 1) == 1.0
        assert m.create(3, 4).shape == (3, 4)

    def test_transpose(self, rng, kind):
        A = random_matrix(rng, 3, 2, kind)
        for m in layouts(kind, A):
            assert np.allclose(m.transpose().to_array(), A.T, atol=tol(kind))
            assert np.allclose(m.conjugate_transpose().to_array(), np.conj(A.T), atol=tol(kind))

    def test_rows_columns_diagonal(self):
        m = M.sparse_of_array(np.array([[1.0, 2.0, 0.0], [0.0, 3.0, 4.0]]))
        assert np.array_equal(m.row(1).to_array(), [0.0, 3.0, 4.0])
        assert np.array_equal(m.column(1).to_array(), [2.0, 3.0])
        assert np.array_equal(m.diagonal().to_array(), [1.0, 3.0])
        m.set_diagonal(V.dense_of_array([5.0, 6.0]))
        assert np.array_equal(m.diagonal().to_array(), [5.0, 6.0])
        with pytest.raises(DimensionError):
            m.set_diagonal(V.dense(3))
        with pytest.raises(IndexOutOfRangeError):
            m.row(2)


class TestMatrixMapping:
    @pytest.mark.parametrize("make", [M.dense_of_array, M.sparse_of_array, M.knuth_of_array])
    def test_map(self, make):
        A = np.array([[1.0, 0.0], [0.0, -4.0]])
        m = make(A)
        assert np.array_equal(m.map(lambda x: -x).to_array(), -A)
        assert np.array_equal(m.map(lambda x: x + 1.0).to_array(), A + 1.0)
        m.map_inplace(abs)
        assert np.array_equal(m.to_array(), np.abs(A))

    def test_map_indexed(self):
        m = M.sparse_of_array(np.array([[0.0, 2.0], [3.0, 0.0]]))
        out = m.map_indexed(lambda r, c, x: x * (r + 1))
        assert np.array_equal(out.to_array(), [[0.0, 2.0], [6.0, 0.0]])

    def test_fold2(self):
        a = M.sparse_of_array(np.array([[1.0, 0.0], [0.0, 2.0]]))
        b = M.dense_of_array(np.array([[3.0, 1.0], [1.0, 4.0]]))
        assert a.fold2(b, lambda acc, x, y: acc + x * y, 0.0) == 11.0


class TestMatrixArithmetic:
    def test_add_subtract(self):
        A = np.array([[1.0, 0.0], [2.0, 0.0]])
        B = np.array([[0.0, 1.0], [-2.0, 0.0]])
        s = M.sparse_of_array(A) + M.sparse_of_array(B)
        assert isinstance(s.storage, SparseCompressedRowMatrixStorage)
        assert np.array_equal(s.to_array(), A + B)
        d = M.dense_of_array(A) - M.sparse_of_array(B)
        assert isinstance(d.storage, DenseColumnMajorMatrixStorage)
        assert np.array_equal(d.to_array(), A - B)
        assert np.array_equal(M.sparse_of_array(A).pointwise_multiply(M.dense_of_array(B)).to_array(), A * B)
        with pytest.raises(DimensionError):
            M.dense(2, 2) + M.dense(2, 3)

    def test_diagonal_plus_sparse_is_mutable(self):
        d = M.diagonal_identity(2)
        s = M.sparse_of_array(np.array([[0.0, 1.0], [0.0, 0.0]]))
        assert np.array_equal((d + s).to_array(), [[1.0, 1.0], [0.0, 1.0]])

    def test_multiply(self, rng):
        A = rng.standard_normal((3, 4))
        B = rng.standard_normal((4, 2))
        x = rng.standard_normal(4)
        for a in layouts("real64", A):
            for b in layouts("real64", B):
                assert np.allclose((a @ b).to_array(), A @ B)
            assert np.allclose((a @ V.dense_of_array(x)).to_array(), A @ x)
            assert np.allclose((a * 2.0).to_array(), 2 * A)
            assert np.allclose((0.5 * a).to_array(), 0.5 * A)
        with pytest.raises(DimensionError):
            M.dense_of_array(A) @ M.dense_of_array(A)
        with pytest.raises(DimensionError):
            M.dense_of_array(A) @ V.dense(3)

    def test_diagonal_product_stays_diagonal(self):
        d = M.diagonal(2, 2, [2.0, 3.0])
        p = d @ d
        assert isinstance(p.storage, DiagonalMatrixStorage)
        assert np.array_equal(p.to_array(), np.diag([4.0, 9.0]))


class TestMatrixPredicates:
    def test_symmetric_and_hermitian(self):
        S = np.array([[1.0, 2.0], [2.0, 1.0]])
        assert M.sparse_of_array(S).is_symmetric()
        assert not M.sparse_of_array(S + np.triu(np.ones((2, 2)), 1)).is_symmetric()
        assert not M.dense(2, 3).is_symmetric()
        H = np.array([[1.0, 1 + 1j], [1 - 1j, 2.0]])
        C = MatrixBuilder("complex64")
        assert C.dense_of_array(H).is_hermitian()
        assert not C.dense_of_array(H).is_symmetric()
        assert M.symmetric_of_array(S).is_symmetric()

    def test_equality(self):
        A = np.array([[1.0, 0.0], [0.0, 2.0]])
        assert M.dense_of_array(A) == M.sparse_of_array(A)
        assert M.dense_of_array(A) == M.diagonal(2, 2, [1.0, 2.0])
        assert M.dense_of_array(A) != M.dense_of_array(2 * A)
        assert "2x2" in repr(M.dense_of_array(A))


class TestDerivedValues:
    def test_rank(self):
        for m in (M.diagonal(3, 3, [3.0, 2.0, 0.0]), M.sparse_of_array(np.diag([3.0, 2.0, 0.0]))):
            assert m.rank() == 2
        assert M.dense_of_array(np.diag([3.0, 2.0, 0.0])).rank() == 2

    def test_norm_and_condition(self, rng):
        A = rng.standard_normal((4, 3))
        for m in layouts("real64", A):
            assert np.isclose(m.l2_norm(), np.linalg.norm(A, 2))
            assert np.isclose(m.condition_number(), np.linalg.cond(A))

    def test_determinant(self, rng):
        A = rng.standard_normal((4, 4))
        for m in layouts("real64", A):
            assert np.isclose(m.determinant(), np.linalg.det(A))
        with pytest.raises(NotSquareError):
            M.dense(2, 3).determinant()
