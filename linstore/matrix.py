# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
`Matrix` and `Vector`: thin wrappers that put arithmetic, mapping and
the factorizations on top of a storage object.

Arithmetic picks the result layout from the operands: dense if either
operand is dense, otherwise the left operand's layout (fully mutable
when the result may not fit it, e.g. a product of two diagonal
matrices stays diagonal, but a diagonal plus a sparse matrix is CSR).

Example
-------
>>> import numpy as np
>>> from linstore.builder import MatrixBuilder
>>> A = MatrixBuilder("real64").dense_of_array(np.array([[4.0, 2.0], [2.0, 3.0]]))
>>> round(float(A.cholesky().determinant), 12)
8.0
"""

import logging
from numbers import Number
from typing import Callable, Optional

import numpy as np

from . import combinators
from .exceptions import DimensionError
from .matrix_storage import (
    DenseColumnMajorMatrixStorage,
    DiagonalMatrixStorage,
    MatrixStorage,
    SymmetricPackedUpperMatrixStorage,
)
from .options import QRMethod, Symmetricity, ZeroPolicy
from .scalar import Scalar
from .validation import check_index, check_multiplicable, check_same_length, check_same_shape, check_square
from .vector_storage import DenseVectorStorage, VectorStorage

logger = logging.getLogger(__name__)


def _processes_zeros(f, zeros, scalar) -> bool:
    return zeros is ZeroPolicy.INCLUDE or f(scalar.zero) != 0


class Vector:
    def __init__(self, storage: VectorStorage):
        self.storage = storage

    @property
    def count(self) -> int:
        return self.storage.length

    @property
    def scalar(self) -> Scalar:
        return self.storage.scalar

    def at(self, index: int):
        return self.storage.at(index)

    def set_at(self, index: int, value) -> None:
        self.storage.set_at(index, value)

    def __getitem__(self, index: int):
        return self.storage[index]

    def __setitem__(self, index: int, value) -> None:
        self.storage[index] = value

    def __len__(self) -> int:
        return self.count

    def __iter__(self):
        return self.storage.enumerate()

    def create(self, length: Optional[int] = None) -> "Vector":
        """Empty vector of the same layout."""
        cls = type(self.storage)
        return Vector(cls(length or self.count, self.scalar))

    def clone(self) -> "Vector":
        result = self.create()
        self.storage.copy_to(result.storage)
        return result

    def copy_to(self, target: "Vector") -> None:
        self.storage.copy_to(target.storage)

    def to_array(self) -> np.ndarray:
        return self.storage.to_array()

    # arithmetic -------------------------------------------------------

    def _binary_target(self, other: "Vector") -> "Vector":
        if self.storage.is_dense or other.storage.is_dense:
            return Vector(DenseVectorStorage(self.count, self.scalar))
        return self.create()

    def map(self, f: Callable, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP) -> "Vector":
        if _processes_zeros(f, zeros, self.scalar):
            result = Vector(DenseVectorStorage(self.count, self.scalar))
        else:
            result = self.create()
        combinators.map_to(self.storage, result.storage, f, zeros)
        return result

    def map_inplace(self, f: Callable, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP) -> None:
        combinators.map_inplace(self.storage, f, zeros)

    def map2(self, other: "Vector", f: Callable, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP) -> "Vector":
        check_same_length(self.storage, other.storage)
        result = self._binary_target(other)
        combinators.map2_to(self.storage, other.storage, result.storage, f, zeros)
        return result

    def add(self, other: "Vector") -> "Vector":
        return self.map2(other, lambda a, b: a + b)

    def subtract(self, other: "Vector") -> "Vector":
        return self.map2(other, lambda a, b: a - b)

    def negate(self) -> "Vector":
        return self.map(lambda x: -x)

    def multiply(self, scalar) -> "Vector":
        s = self.scalar.coerce(scalar)
        return self.map(lambda x: x * s)

    def dot(self, other: "Vector"):
        return combinators.fold2(
            self.storage, other.storage, lambda acc, a, b: acc + a * b, self.scalar.zero
        )

    def conjugate_dot(self, other: "Vector"):
        """sum(conj(self[i]) * other[i])"""
        conj = self.scalar.conjugate
        return combinators.fold2(
            self.storage, other.storage, lambda acc, a, b: acc + conj(a) * b, self.scalar.zero
        )

    def sum(self):
        return self.to_array().sum()

    def l2_norm(self) -> float:
        return float(np.linalg.norm(self.to_array()))

    def __add__(self, other):
        return self.add(other)

    def __sub__(self, other):
        return self.subtract(other)

    def __neg__(self):
        return self.negate()

    def __mul__(self, other):
        if isinstance(other, Vector):
            return self.dot(other)
        return self.multiply(other)

    __rmul__ = __mul__

    def __eq__(self, other) -> bool:
        if not isinstance(other, Vector):
            return NotImplemented
        return self.storage == other.storage

    __hash__ = None

    def __repr__(self) -> str:
        return f"Vector({self.to_array()!r})"


class Matrix:
    def __init__(self, storage: MatrixStorage):
        self.storage = storage

    @property
    def row_count(self) -> int:
        return self.storage.row_count

    @property
    def column_count(self) -> int:
        return self.storage.column_count

    @property
    def shape(self):
        return self.storage.shape

    @property
    def scalar(self) -> Scalar:
        return self.storage.scalar

    # element access ---------------------------------------------------

    def at(self, row: int, column: int):
        return self.storage.at(row, column)

    def set_at(self, row: int, column: int, value) -> None:
        self.storage.set_at(row, column, value)

    def __getitem__(self, key):
        return self.storage[key]

    def __setitem__(self, key, value) -> None:
        self.storage[key] = value

    # copies -----------------------------------------------------------

    def create(self, row_count: Optional[int] = None, column_count: Optional[int] = None, fully_mutable=False):
        """Empty matrix of the most similar layout."""
        return Matrix(self.storage.same_as(row_count, column_count, fully_mutable))

    def clone(self) -> "Matrix":
        result = self.create()
        self.storage.copy_to(result.storage)
        return result

    def clone_fully_mutable(self) -> "Matrix":
        """Copy that accepts writes at every coordinate."""
        if self.storage.is_fully_mutable:
            return self.clone()
        result = self.create(fully_mutable=True)
        self.storage.copy_to(result.storage)
        return result

    def copy_to(self, target: "Matrix") -> None:
        self.storage.copy_to(target.storage)

    def to_array(self) -> np.ndarray:
        return self.storage.to_array()

    def to_column_major_array(self) -> np.ndarray:
        return self.storage.to_column_major_array()

    def to_row_major_array(self) -> np.ndarray:
        return self.storage.to_row_major_array()

    # structure --------------------------------------------------------

    def transpose(self) -> "Matrix":
        result = self.create(self.column_count, self.row_count)
        self.storage.transpose_to(result.storage)
        return result

    def conjugate_transpose(self) -> "Matrix":
        result = self.transpose()
        if self.scalar.is_complex:
            result.map_inplace(np.conj)
        return result

    def diagonal(self) -> Vector:
        n = min(self.row_count, self.column_count)
        return Vector(DenseVectorStorage(n, self.scalar, np.array([self.at(i, i) for i in range(n)], dtype=self.scalar.dtype)))

    def set_diagonal(self, values: Vector) -> None:
        n = min(self.row_count, self.column_count)
        if values.count != n:
            raise DimensionError(
                f"diagonal needs {n} values, got {values.count}", expected=(n,), actual=(values.count,)
            )
        for i in range(n):
            self.set_at(i, i, values.at(i))

    def row(self, index: int) -> Vector:
        check_index(index, self.row_count, "row")
        result = Vector(DenseVectorStorage(self.column_count, self.scalar))
        self.storage.copy_row_to(result.storage, index)
        return result

    def column(self, index: int) -> Vector:
        check_index(index, self.column_count, "column")
        result = Vector(DenseVectorStorage(self.row_count, self.scalar))
        self.storage.copy_column_to(result.storage, index)
        return result

    # mapping ----------------------------------------------------------

    def map(self, f: Callable, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP) -> "Matrix":
        result = self.create(fully_mutable=_processes_zeros(f, zeros, self.scalar))
        combinators.map_to(self.storage, result.storage, f, zeros)
        return result

    def map_inplace(self, f: Callable, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP) -> None:
        combinators.map_inplace(self.storage, f, zeros)

    def map_indexed(self, f: Callable, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP) -> "Matrix":
        """``f(row, column, value)`` at every position (stored ones only under ALLOW_SKIP)."""
        result = self.create(fully_mutable=True)
        combinators.map_indexed_to(self.storage, result.storage, f, zeros)
        return result

    def fold2(self, other: "Matrix", f: Callable, state, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP):
        return combinators.fold2(self.storage, other.storage, f, state, zeros)

    # arithmetic -------------------------------------------------------

    def _binary_target(self, other: "Matrix") -> "Matrix":
        if self.storage.is_dense or other.storage.is_dense:
            return Matrix(DenseColumnMajorMatrixStorage(self.row_count, self.column_count, self.scalar))
        if type(self.storage) is type(other.storage):
            return self.create()
        return self.create(fully_mutable=True)

    def _map2(self, other: "Matrix", f: Callable) -> "Matrix":
        check_same_shape(self.storage, other.storage)
        result = self._binary_target(other)
        combinators.map2_to(self.storage, other.storage, result.storage, f)
        return result

    def add(self, other: "Matrix") -> "Matrix":
        return self._map2(other, lambda a, b: a + b)

    def subtract(self, other: "Matrix") -> "Matrix":
        return self._map2(other, lambda a, b: a - b)

    def pointwise_multiply(self, other: "Matrix") -> "Matrix":
        return self._map2(other, lambda a, b: a * b)

    def negate(self) -> "Matrix":
        return self.map(lambda x: -x)

    def multiply(self, other):
        """
        Product with a scalar, a `Vector` or a `Matrix`.

        Vector results are dense. Matrix products are dense when either
        factor is dense, diagonal for two diagonal factors, and otherwise
        take the left operand's fully mutable layout.
        """
        if isinstance(other, Vector):
            if other.count != self.column_count:
                raise DimensionError(
                    f"Matrix dimensions must agree: op1 is {self.row_count}x{self.column_count}, "
                    f"op2 is {other.count}.",
                    expected=(self.column_count,),
                    actual=(other.count,),
                )
            values = self.to_array() @ other.to_array()
            return Vector(DenseVectorStorage(self.row_count, self.scalar, self.scalar.coerce_array(values)))
        if isinstance(other, Matrix):
            check_multiplicable(self.storage, other.storage)
            values = self.scalar.coerce_array(self.to_array() @ other.to_array())
            if self.storage.is_dense or other.storage.is_dense:
                return Matrix(DenseColumnMajorMatrixStorage.of_array(values, self.scalar))
            if isinstance(self.storage, DiagonalMatrixStorage) and isinstance(other.storage, DiagonalMatrixStorage):
                result = self.create(self.row_count, other.column_count)
            else:
                result = self.create(self.row_count, other.column_count, fully_mutable=True)
            DenseColumnMajorMatrixStorage.of_array(values, self.scalar).copy_to(result.storage)
            return result
        if isinstance(other, Number) or np.isscalar(other):
            s = self.scalar.coerce(other)
            return self.map(lambda x: x * s)
        return NotImplemented

    def __add__(self, other):
        return self.add(other)

    def __sub__(self, other):
        return self.subtract(other)

    def __neg__(self):
        return self.negate()

    def __matmul__(self, other):
        if not isinstance(other, (Matrix, Vector)):
            return NotImplemented
        return self.multiply(other)

    def __mul__(self, other):
        if isinstance(other, (Matrix, Vector)):
            return NotImplemented
        return self.multiply(other)

    __rmul__ = __mul__

    # predicates -------------------------------------------------------

    def is_symmetric(self) -> bool:
        """Exact test A[i, j] == A[j, i]."""
        if self.row_count != self.column_count:
            return False
        if isinstance(self.storage, SymmetricPackedUpperMatrixStorage) and not self.scalar.is_complex:
            return True
        a = self.to_array()
        return bool(np.array_equal(a, a.T))

    def is_hermitian(self) -> bool:
        """Exact test A[i, j] == conj(A[j, i])."""
        if self.row_count != self.column_count:
            return False
        a = self.to_array()
        return bool(np.array_equal(a, np.conj(a.T)))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.storage == other.storage

    __hash__ = None

    def __repr__(self) -> str:
        return f"Matrix({type(self.storage).__name__}, {self.row_count}x{self.column_count})"

    # factorizations ---------------------------------------------------

    def cholesky(self):
        from .cholesky import Cholesky

        return Cholesky.create(self)

    def qr(self, method: QRMethod = QRMethod.FULL):
        from .qr import QR

        return QR.create(self, method)

    def gram_schmidt(self):
        from .qr import GramSchmidt

        return GramSchmidt.create(self)

    def svd(self, compute_vectors: bool = True):
        from .svd import Svd

        return Svd.create(self, compute_vectors)

    def evd(self, symmetricity: Symmetricity = Symmetricity.UNKNOWN):
        from .evd import Evd

        return Evd.create(self, symmetricity)

    # derived values ---------------------------------------------------

    def rank(self) -> int:
        return self.svd(compute_vectors=False).rank

    def condition_number(self) -> float:
        return self.svd(compute_vectors=False).condition_number

    def l2_norm(self) -> float:
        return self.svd(compute_vectors=False).l2_norm

    def determinant(self):
        check_square(self.storage)
        return self.qr().determinant
