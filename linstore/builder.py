# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Factories for `Matrix` and `Vector`, one builder per element kind.

>>> from linstore.builder import MatrixBuilder
>>> M = MatrixBuilder("real64")
>>> float(M.dense_identity(3).to_array().trace())
3.0
"""

from typing import Callable, Iterable, Optional, Tuple, Union

import numpy as np

from .exceptions import DimensionError
from .knuth_storage import KnuthLinkedMatrixStorage
from .matrix import Matrix, Vector
from .matrix_storage import (
    DenseColumnMajorMatrixStorage,
    DiagonalMatrixStorage,
    SparseCompressedRowMatrixStorage,
    SymmetricPackedUpperMatrixStorage,
)
from .scalar import ScalarKind, scalar_for
from .vector_storage import DenseVectorStorage, SparseVectorStorage


class MatrixBuilder:
    def __init__(self, kind=ScalarKind.REAL64):
        self.scalar = scalar_for(kind)

    @property
    def zero(self):
        return self.scalar.zero

    @property
    def one(self):
        return self.scalar.one

    # dense ------------------------------------------------------------

    def dense(self, rows: int, cols: int, value=None) -> Matrix:
        if value is None:
            return Matrix(DenseColumnMajorMatrixStorage(rows, cols, self.scalar))
        return Matrix(DenseColumnMajorMatrixStorage.of_value(rows, cols, value, self.scalar))

    def dense_of_array(self, array) -> Matrix:
        return Matrix(DenseColumnMajorMatrixStorage.of_array(array, self.scalar))

    def dense_of_column_major(self, rows: int, cols: int, data) -> Matrix:
        return Matrix(DenseColumnMajorMatrixStorage.of_column_major_array(rows, cols, data, self.scalar))

    def dense_of_row_major(self, rows: int, cols: int, data) -> Matrix:
        return Matrix(DenseColumnMajorMatrixStorage.of_row_major_array(rows, cols, data, self.scalar))

    def dense_of_column_arrays(self, columns) -> Matrix:
        return Matrix(DenseColumnMajorMatrixStorage.of_column_arrays(columns, self.scalar))

    def dense_of_row_arrays(self, rows) -> Matrix:
        return Matrix(DenseColumnMajorMatrixStorage.of_row_arrays(rows, self.scalar))

    def dense_init(self, rows: int, cols: int, init: Callable[[int, int], object]) -> Matrix:
        return Matrix(DenseColumnMajorMatrixStorage.of_init(rows, cols, init, self.scalar))

    def dense_identity(self, order: int) -> Matrix:
        return self.dense_of_array(np.eye(order))

    def dense_of_matrix(self, matrix: Matrix) -> Matrix:
        return Matrix(DenseColumnMajorMatrixStorage.of_matrix(matrix.storage))

    def dense_of_indexed(self, rows: int, cols: int, triples: Iterable[Tuple[int, int, object]]) -> Matrix:
        return Matrix(DenseColumnMajorMatrixStorage.of_indexed_enumerable(rows, cols, triples, self.scalar))

    # sparse -----------------------------------------------------------

    def sparse(self, rows: int, cols: int) -> Matrix:
        return Matrix(SparseCompressedRowMatrixStorage(rows, cols, self.scalar))

    def sparse_of_array(self, array) -> Matrix:
        return Matrix(SparseCompressedRowMatrixStorage.of_array(array, self.scalar))

    def sparse_of_indexed(self, rows: int, cols: int, triples: Iterable[Tuple[int, int, object]]) -> Matrix:
        return Matrix(SparseCompressedRowMatrixStorage.of_indexed_enumerable(rows, cols, triples, self.scalar))

    def sparse_init(self, rows: int, cols: int, init: Callable[[int, int], object]) -> Matrix:
        return Matrix(SparseCompressedRowMatrixStorage.of_init(rows, cols, init, self.scalar))

    def sparse_of_matrix(self, matrix: Matrix) -> Matrix:
        return Matrix(SparseCompressedRowMatrixStorage.of_matrix(matrix.storage))

    def sparse_of_compressed_sparse_row(
        self, rows: int, cols: int, value_count: int, row_pointers, column_indices, values
    ) -> Matrix:
        return Matrix(
            SparseCompressedRowMatrixStorage.of_compressed_sparse_row_format(
                rows, cols, value_count, row_pointers, column_indices, values, self.scalar
            )
        )

    # diagonal / symmetric / knuth -------------------------------------

    def diagonal(self, rows: int, cols: int, values=None) -> Matrix:
        return Matrix(DiagonalMatrixStorage(rows, cols, self.scalar, values))

    def diagonal_identity(self, order: int) -> Matrix:
        return Matrix(DiagonalMatrixStorage.of_value(order, order, 1, self.scalar))

    def symmetric(self, order: int) -> Matrix:
        return Matrix(SymmetricPackedUpperMatrixStorage(order, self.scalar))

    def symmetric_of_array(self, array) -> Matrix:
        return Matrix(SymmetricPackedUpperMatrixStorage.of_array(array, self.scalar))

    def knuth(self, rows: int, cols: int) -> Matrix:
        return Matrix(KnuthLinkedMatrixStorage(rows, cols, self.scalar))

    def knuth_of_array(self, array) -> Matrix:
        return Matrix(KnuthLinkedMatrixStorage.of_array(array, self.scalar))

    def same_as(
        self,
        matrix: Matrix,
        rows: Optional[int] = None,
        cols: Optional[int] = None,
        fully_mutable: bool = False,
    ) -> Matrix:
        return Matrix(matrix.storage.same_as(rows, cols, fully_mutable))


class VectorBuilder:
    def __init__(self, kind=ScalarKind.REAL64):
        self.scalar = scalar_for(kind)

    @property
    def zero(self):
        return self.scalar.zero

    @property
    def one(self):
        return self.scalar.one

    def dense(self, length: int, value=None) -> Vector:
        if value is None:
            return Vector(DenseVectorStorage(length, self.scalar))
        return Vector(DenseVectorStorage.of_value(length, value, self.scalar))

    def dense_of_array(self, values) -> Vector:
        return Vector(DenseVectorStorage.of_enumerable(np.asarray(values).ravel(), self.scalar))

    def dense_init(self, length: int, init: Callable[[int], object]) -> Vector:
        return Vector(DenseVectorStorage.of_init(length, init, self.scalar))

    def dense_of_indexed(self, length: int, pairs: Iterable[Tuple[int, object]]) -> Vector:
        return Vector(DenseVectorStorage.of_indexed_enumerable(length, pairs, self.scalar))

    def sparse(self, length: int) -> Vector:
        return Vector(SparseVectorStorage(length, self.scalar))

    def sparse_of_array(self, values) -> Vector:
        return Vector(SparseVectorStorage.of_enumerable(np.asarray(values).ravel(), self.scalar))

    def sparse_of_indexed(self, length: int, pairs: Iterable[Tuple[int, object]]) -> Vector:
        return Vector(SparseVectorStorage.of_indexed_enumerable(length, pairs, self.scalar))

    def sparse_init(self, length: int, init: Callable[[int], object]) -> Vector:
        return Vector(SparseVectorStorage.of_init(length, init, self.scalar))

    def same_as(self, like: Union[Vector, Matrix], length: int) -> Vector:
        """Empty vector: sparse when `like` is sparse, dense otherwise."""
        if length <= 0:
            raise DimensionError(f"length must be positive, got {length}")
        if like.storage.is_dense:
            return self.dense(length)
        return self.sparse(length)
