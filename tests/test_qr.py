# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging

import numpy as np
import pytest

from conftest import layouts, random_matrix, tol
from linstore.builder import MatrixBuilder, VectorBuilder
from linstore.exceptions import DimensionError, NotSquareError, RankDeficientError
from linstore.options import QRMethod
from linstore.qr import QR, DenseQR, GramSchmidt, UserQR

logger = logging.getLogger(__name__)

SHAPES = [(1, 1), (3, 3), (6, 4), (5, 1)]


@pytest.mark.parametrize("rows, cols", SHAPES)
def test_full(rng, kind, rows, cols):
    A = random_matrix(rng, rows, cols, kind)
    for m in layouts(kind, A):
        qr = m.qr()
        Q, R = qr.q.to_array(), qr.r.to_array()
        assert Q.shape == (rows, rows) and R.shape == (rows, cols)
        assert np.allclose(np.tril(R, -1), 0.0, atol=tol(kind))
        assert np.allclose(np.conj(Q.T) @ Q, np.eye(rows), atol=tol(kind))
        assert np.allclose(Q @ R, A, atol=tol(kind) * 10)


@pytest.mark.parametrize("rows, cols", SHAPES)
def test_thin(rng, kind, rows, cols):
    A = random_matrix(rng, rows, cols, kind)
    for m in layouts(kind, A):
        qr = m.qr(QRMethod.THIN)
        Q, R = qr.q.to_array(), qr.r.to_array()
        assert Q.shape == (rows, cols) and R.shape == (cols, cols)
        assert np.allclose(np.conj(Q.T) @ Q, np.eye(cols), atol=tol(kind))
        assert np.allclose(Q @ R, A, atol=tol(kind) * 10)


def test_variant_follows_storage(rng):
    dense, sparse, knuth = layouts("real64", rng.standard_normal((3, 2)))
    assert isinstance(dense.qr(), DenseQR)
    assert isinstance(sparse.qr(), UserQR)
    assert isinstance(knuth.qr(), UserQR)


def test_dense_and_generic_agree(rng):
    A = rng.standard_normal((5, 3))
    dense, sparse, knuth = layouts("real64", A)
    assert np.allclose(dense.qr().r.to_array(), sparse.qr().r.to_array())
    assert np.allclose(dense.qr().q.to_array(), sparse.qr().q.to_array())
    assert np.allclose(dense.qr().r.to_array(), knuth.qr().r.to_array())


def test_wide_matrix_rejected():
    with pytest.raises(DimensionError):
        MatrixBuilder().dense(2, 3).qr()
    with pytest.raises(DimensionError):
        QR.create(MatrixBuilder().sparse(2, 3))


def test_determinant(rng):
    A = rng.standard_normal((4, 4))
    for m in layouts("real64", A):
        assert np.isclose(m.qr().determinant, np.linalg.det(A))
    with pytest.raises(NotSquareError):
        MatrixBuilder().dense_of_array(rng.standard_normal((3, 2))).qr().determinant


def test_is_full_rank():
    assert MatrixBuilder().dense_identity(3).qr().is_full_rank
    singular = MatrixBuilder().sparse_of_array(np.array([[1.0, 0.0], [0.0, 0.0]]))
    assert not singular.qr().is_full_rank


@pytest.mark.parametrize("method", list(QRMethod))
def test_least_squares(rng, method):
    A = rng.standard_normal((8, 3))
    b = rng.standard_normal(8)
    x_np, *_ = np.linalg.lstsq(A, b, rcond=None)
    for m in layouts("real64", A):
        x = m.qr(method).solve(VectorBuilder().dense_of_array(b))
        res_np = np.linalg.norm(A @ x_np - b, ord=np.inf)
        res = np.linalg.norm(A @ x.to_array() - b, ord=np.inf)
        assert res <= res_np * (1 + 1e-8)


def test_solve_complex(rng):
    A = random_matrix(rng, 4, 4, "complex64")
    B = random_matrix(rng, 4, 2, "complex64")
    for m in layouts("complex64", A):
        X = m.qr().solve(MatrixBuilder("complex64").dense_of_array(B))
        assert np.allclose(A @ X.to_array(), B)


class TestGramSchmidt:
    def test_factor(self, rng, kind):
        A = random_matrix(rng, 6, 3, kind)
        for m in layouts(kind, A):
            gs = m.gram_schmidt()
            Q, R = gs.q.to_array(), gs.r.to_array()
            assert gs.method is QRMethod.THIN
            assert Q.shape == (6, 3) and R.shape == (3, 3)
            assert np.allclose(np.conj(Q.T) @ Q, np.eye(3), atol=tol(kind))
            assert np.allclose(Q @ R, A, atol=tol(kind) * 10)
            assert np.allclose(np.diagonal(R).imag, 0.0)

    def test_solve(self, rng):
        A = rng.standard_normal((4, 4))
        b = rng.standard_normal(4)
        x = GramSchmidt.create(MatrixBuilder().sparse_of_array(A)).solve(VectorBuilder().dense_of_array(b))
        assert np.allclose(A @ x.to_array(), b)

    def test_rank_deficient(self):
        A = np.array([[1.0, 2.0], [2.0, 4.0], [3.0, 6.0]])
        for m in layouts("real64", A):
            with pytest.raises(RankDeficientError) as info:
                m.gram_schmidt()
            assert info.value.column == 1

    def test_wide_matrix_rejected(self):
        with pytest.raises(DimensionError):
            MatrixBuilder().dense(2, 3).gram_schmidt()
