# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Matrix storage layouts.

=============================  ==========================================
layout                         element (r, c) lives at
=============================  ==========================================
DenseColumnMajor               ``data[c * row_count + r]``
SparseCompressedRow            ``values[k]`` with ``row_pointers[r] <= k <
                               row_pointers[r + 1]`` and
                               ``column_indices[k] == c``
Diagonal                       ``data[r]`` when ``r == c``, else zero
SymmetricPackedUpper           ``data[c * (c + 1) // 2 + r]`` for ``r <= c``
=============================  ==========================================

The Knuth-linked layout lives in `linstore.knuth_storage`.

All layouts keep one invariant: `at(r, c)` returns the value of the
last successful write to (r, c), or zero. Diagonal and packed symmetric
storage cannot hold every coordinate; a write they cannot represent
raises `IndexOutOfRangeError`.
"""

import logging
from typing import Callable, Iterable, Iterator, Optional, Sequence, Tuple

import numpy as np

from .exceptions import DimensionError, IndexOutOfRangeError, ValidationError
from .options import ExistingData, ZeroPolicy
from .scalar import Scalar, ScalarKind, scalar_for
from .validation import (
    check_length,
    check_range,
    check_same_shape,
    check_square,
    check_sub_matrix_range,
    check_transposed_shape,
)
from .vector_storage import DenseVectorStorage, grow_size, should_shrink

logger = logging.getLogger(__name__)


def check_writable(target: "MatrixStorage", writes: Iterable[Tuple[int, int, object]]) -> None:
    """
    Raise `IndexOutOfRangeError` if `target` cannot take every (row, column, value) write.

    A coordinate outside the target's structure only takes a value that
    leaves it unchanged. Run this before the first write so a rejected
    copy leaves the target as it was.
    """
    for r, c, v in writes:
        if target.is_mutable_at(r, c) or (v == 0 and target.at(r, c) == 0):
            continue
        raise IndexOutOfRangeError(
            f"Cannot write {v!r} to ({r}, {c}) of {type(target).__name__}", row=r, column=c
        )


class MatrixStorage:
    """Abstract base for matrix layouts."""

    is_dense = False
    is_fully_mutable = True

    def __init__(self, row_count: int, column_count: int, kind=ScalarKind.REAL64):
        if row_count <= 0:
            raise ValidationError(f"row_count must be positive, got {row_count}")
        if column_count <= 0:
            raise ValidationError(f"column_count must be positive, got {column_count}")
        self.row_count = row_count
        self.column_count = column_count
        self.scalar: Scalar = scalar_for(kind)

    @property
    def dtype(self) -> np.dtype:
        return self.scalar.dtype

    @property
    def shape(self) -> Tuple[int, int]:
        return self.row_count, self.column_count

    def is_mutable_at(self, row: int, column: int) -> bool:
        return True

    # element access ---------------------------------------------------

    def at(self, row: int, column: int):
        raise NotImplementedError

    def set_at(self, row: int, column: int, value) -> None:
        raise NotImplementedError

    def __getitem__(self, key):
        row, column = key
        check_range(row, column, self.row_count, self.column_count)
        return self.at(row, column)

    def __setitem__(self, key, value) -> None:
        row, column = key
        check_range(row, column, self.row_count, self.column_count)
        self.set_at(row, column, self.scalar.coerce(value))

    # clearing ---------------------------------------------------------

    def clear(self) -> None:
        for r, c, _ in list(self.enumerate_non_zero_indexed()):
            self.set_at(r, c, self.scalar.zero)

    def clear_range(self, row_index: int, row_count: int, column_index: int, column_count: int) -> None:
        if row_count < 1 or column_count < 1:
            return
        check_range(row_index, column_index, self.row_count, self.column_count)
        check_range(
            row_index + row_count - 1, column_index + column_count - 1, self.row_count, self.column_count
        )
        for c in range(column_index, column_index + column_count):
            for r in range(row_index, row_index + row_count):
                self.set_at(r, c, self.scalar.zero)

    def clear_rows(self, row_indices: Sequence[int]) -> None:
        for r in row_indices:
            self.clear_range(r, 1, 0, self.column_count)

    def clear_columns(self, column_indices: Sequence[int]) -> None:
        for c in column_indices:
            self.clear_range(0, self.row_count, c, 1)

    # copying ----------------------------------------------------------

    def copy_to(self, target: "MatrixStorage", existing_data=ExistingData.CLEAR) -> None:
        check_same_shape(self, target, "target")
        if target is self:
            return
        self._copy_to(target, existing_data)

    def _copy_to(self, target, existing_data) -> None:
        entries = list(self.enumerate_non_zero_indexed())
        check_writable(target, entries)
        if existing_data is ExistingData.CLEAR:
            target.clear()
        for r, c, v in entries:
            target.set_at(r, c, v)

    def copy_sub_matrix_to(
        self,
        target: "MatrixStorage",
        source_row: int,
        target_row: int,
        row_count: int,
        source_column: int,
        target_column: int,
        column_count: int,
        existing_data=ExistingData.CLEAR,
    ) -> None:
        check_sub_matrix_range(
            self, target, source_row, target_row, row_count, source_column, target_column, column_count
        )
        # read the whole window first; source and target may overlap
        writes = [
            (target_row + i, target_column + j, self.at(source_row + i, source_column + j))
            for i in range(row_count)
            for j in range(column_count)
        ]
        if existing_data is not ExistingData.CLEAR:
            writes = [w for w in writes if w[2] != 0]
        check_writable(target, writes)
        for r, c, v in writes:
            if target.is_mutable_at(r, c):
                target.set_at(r, c, v)

    def copy_row_to(self, target, row_index: int, existing_data=ExistingData.CLEAR) -> None:
        check_range(row_index, 0, self.row_count, self.column_count)
        check_length(target, self.column_count, "target")
        for c in range(self.column_count):
            v = self.at(row_index, c)
            if existing_data is ExistingData.CLEAR or v != 0:
                target.set_at(c, v)

    def copy_column_to(self, target, column_index: int, existing_data=ExistingData.CLEAR) -> None:
        check_range(0, column_index, self.row_count, self.column_count)
        check_length(target, self.row_count, "target")
        for r in range(self.row_count):
            v = self.at(r, column_index)
            if existing_data is ExistingData.CLEAR or v != 0:
                target.set_at(r, v)

    def transpose_to(self, target: "MatrixStorage", existing_data=ExistingData.CLEAR) -> None:
        """
        Write the transpose into `target`.

        When `target` is this storage the matrix must be square and is
        transposed in place.
        """
        if target is self:
            check_square(self)
            self._transpose_in_place()
            return
        check_transposed_shape(self, target)
        entries = [(c, r, v) for r, c, v in self.enumerate_non_zero_indexed()]
        check_writable(target, entries)
        if existing_data is ExistingData.CLEAR:
            target.clear()
        for r, c, v in entries:
            target.set_at(r, c, v)

    def _transpose_in_place(self) -> None:
        for c in range(self.column_count):
            for r in range(c):
                upper = self.at(r, c)
                self.set_at(r, c, self.at(c, r))
                self.set_at(c, r, upper)

    # extraction -------------------------------------------------------

    def to_array(self) -> np.ndarray:
        """2-D array with ``out[r, c] == at(r, c)``."""
        out = np.zeros((self.row_count, self.column_count), dtype=self.dtype)
        for r, c, v in self.enumerate_non_zero_indexed():
            out[r, c] = v
        return out

    def to_column_major_array(self) -> np.ndarray:
        return self.to_array().ravel(order="F")

    def to_row_major_array(self) -> np.ndarray:
        return self.to_array().ravel(order="C")

    # enumeration ------------------------------------------------------

    def enumerate(self) -> Iterator:
        for _, _, v in self.enumerate_indexed():
            yield v

    def enumerate_indexed(self) -> Iterator[Tuple[int, int, object]]:
        """Every coordinate in column-major order."""
        for c in range(self.column_count):
            for r in range(self.row_count):
                yield r, c, self.at(r, c)

    def enumerate_non_zero_indexed(self) -> Iterator[Tuple[int, int, object]]:
        for r, c, v in self.enumerate_indexed():
            if v != 0:
                yield r, c, v

    def find(self, predicate: Callable[[object], bool], zeros=ZeroPolicy.ALLOW_SKIP):
        """First (row, column, value) satisfying `predicate`, or None."""
        for r, c, v in self.enumerate_indexed():
            if predicate(v):
                return r, c, v
        return None

    # construction of similar storages ---------------------------------

    def same_as(
        self, row_count: Optional[int] = None, column_count: Optional[int] = None, fully_mutable: bool = False
    ) -> "MatrixStorage":
        """Empty storage of the most similar layout."""
        raise NotImplementedError

    # equality ---------------------------------------------------------

    def __eq__(self, other) -> bool:
        if not isinstance(other, MatrixStorage):
            return NotImplemented
        if self is other:
            return True
        if self.shape != other.shape:
            return False
        from .combinators import find2

        return find2(self, other, lambda a, b: a != b, ZeroPolicy.ALLOW_SKIP) is None

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.row_count}x{self.column_count}, "
            f"kind={self.scalar.kind.value})"
        )


class DenseColumnMajorMatrixStorage(MatrixStorage):
    """
    Flat column-major buffer.

    `data` is the 1-D buffer; `as_2d()` returns a Fortran-ordered 2-D
    view of the same memory.
    """

    is_dense = True

    def __init__(self, row_count: int, column_count: int, kind=ScalarKind.REAL64, data=None):
        super().__init__(row_count, column_count, kind)
        size = row_count * column_count
        if data is None:
            self.data = np.zeros(size, dtype=self.dtype)
        else:
            data = np.asarray(data)
            if data.shape != (size,):
                raise DimensionError(
                    f"data must have {size} elements, got shape {data.shape}",
                    expected=(size,),
                    actual=data.shape,
                )
            if data.dtype != self.dtype:
                data = self.scalar.coerce_array(data)
            self.data = data

    def as_2d(self) -> np.ndarray:
        return self.data.reshape((self.row_count, self.column_count), order="F")

    def at(self, row, column):
        return self.data[column * self.row_count + row]

    def set_at(self, row, column, value) -> None:
        self.data[column * self.row_count + row] = value

    def clear(self) -> None:
        self.data[:] = 0

    def clear_range(self, row_index, row_count, column_index, column_count) -> None:
        if row_count < 1 or column_count < 1:
            return
        check_range(row_index, column_index, self.row_count, self.column_count)
        check_range(
            row_index + row_count - 1, column_index + column_count - 1, self.row_count, self.column_count
        )
        self.as_2d()[row_index : row_index + row_count, column_index : column_index + column_count] = 0

    def clear_rows(self, row_indices) -> None:
        self.as_2d()[list(row_indices), :] = 0

    def clear_columns(self, column_indices) -> None:
        self.as_2d()[:, list(column_indices)] = 0

    def _copy_to(self, target, existing_data) -> None:
        if isinstance(target, DenseColumnMajorMatrixStorage):
            target.data[:] = self.data
            return
        super()._copy_to(target, existing_data)

    def copy_sub_matrix_to(
        self, target, source_row, target_row, row_count, source_column, target_column, column_count,
        existing_data=ExistingData.CLEAR,
    ) -> None:
        if not isinstance(target, DenseColumnMajorMatrixStorage):
            super().copy_sub_matrix_to(
                target, source_row, target_row, row_count, source_column, target_column, column_count,
                existing_data,
            )
            return
        check_sub_matrix_range(
            self, target, source_row, target_row, row_count, source_column, target_column, column_count
        )
        block = self.as_2d()[source_row : source_row + row_count, source_column : source_column + column_count]
        target.as_2d()[target_row : target_row + row_count, target_column : target_column + column_count] = (
            block.copy()
        )

    def copy_row_to(self, target, row_index, existing_data=ExistingData.CLEAR) -> None:
        if isinstance(target, DenseVectorStorage):
            check_range(row_index, 0, self.row_count, self.column_count)
            check_length(target, self.column_count, "target")
            target.data[:] = self.as_2d()[row_index, :]
            return
        super().copy_row_to(target, row_index, existing_data)

    def copy_column_to(self, target, column_index, existing_data=ExistingData.CLEAR) -> None:
        if isinstance(target, DenseVectorStorage):
            check_range(0, column_index, self.row_count, self.column_count)
            check_length(target, self.row_count, "target")
            start = column_index * self.row_count
            target.data[:] = self.data[start : start + self.row_count]
            return
        super().copy_column_to(target, column_index, existing_data)

    def transpose_to(self, target, existing_data=ExistingData.CLEAR) -> None:
        if target is self:
            check_square(self)
            view = self.as_2d()
            view[:, :] = view.T.copy()
            return
        if isinstance(target, DenseColumnMajorMatrixStorage):
            check_transposed_shape(self, target)
            target.as_2d()[:, :] = self.as_2d().T
            return
        super().transpose_to(target, existing_data)

    def to_array(self) -> np.ndarray:
        return self.as_2d().copy()

    def to_column_major_array(self) -> np.ndarray:
        return self.data.copy()

    def enumerate_indexed(self):
        rows = self.row_count
        for k, v in enumerate(self.data):
            yield k % rows, k // rows, v

    def enumerate_non_zero_indexed(self):
        rows = self.row_count
        for k in np.flatnonzero(self.data):
            yield int(k % rows), int(k // rows), self.data[k]

    def same_as(self, row_count=None, column_count=None, fully_mutable=False):
        return DenseColumnMajorMatrixStorage(
            row_count or self.row_count, column_count or self.column_count, self.scalar
        )

    # constructors -----------------------------------------------------

    @classmethod
    def of_matrix(cls, source: MatrixStorage) -> "DenseColumnMajorMatrixStorage":
        return cls(source.row_count, source.column_count, source.scalar, source.to_column_major_array())

    @classmethod
    def of_value(cls, row_count: int, column_count: int, value, kind=ScalarKind.REAL64):
        s = scalar_for(kind)
        return cls(row_count, column_count, s, np.full(row_count * column_count, s.coerce(value), dtype=s.dtype))

    @classmethod
    def of_init(cls, row_count: int, column_count: int, init: Callable[[int, int], object], kind=ScalarKind.REAL64):
        s = scalar_for(kind)
        values = [init(r, c) for c in range(column_count) for r in range(row_count)]
        return cls(row_count, column_count, s, s.coerce_array(values))

    @classmethod
    def of_array(cls, array, kind=ScalarKind.REAL64) -> "DenseColumnMajorMatrixStorage":
        s = scalar_for(kind)
        arr = s.coerce_array(array)
        if arr.ndim != 2:
            raise DimensionError(f"expected a 2-D array, got {arr.ndim}-D", actual=arr.shape)
        rows, cols = arr.shape
        return cls(rows, cols, s, arr.ravel(order="F"))

    @classmethod
    def of_column_major_array(cls, row_count: int, column_count: int, data, kind=ScalarKind.REAL64):
        s = scalar_for(kind)
        return cls(row_count, column_count, s, s.coerce_array(data).ravel())

    @classmethod
    def of_row_major_array(cls, row_count: int, column_count: int, data, kind=ScalarKind.REAL64):
        s = scalar_for(kind)
        flat = s.coerce_array(data).ravel()
        if flat.shape[0] != row_count * column_count:
            raise DimensionError(
                f"data must have {row_count * column_count} elements, got {flat.shape[0]}",
                expected=(row_count * column_count,),
                actual=flat.shape,
            )
        return cls(row_count, column_count, s, flat.reshape((row_count, column_count)).ravel(order="F"))

    @classmethod
    def of_column_arrays(cls, columns: Sequence, kind=ScalarKind.REAL64):
        s = scalar_for(kind)
        cols = [s.coerce_array(c).ravel() for c in columns]
        if not cols or len({c.shape[0] for c in cols}) != 1:
            raise DimensionError("all column arrays must have the same non-zero length")
        return cls(cols[0].shape[0], len(cols), s, np.concatenate(cols))

    @classmethod
    def of_row_arrays(cls, rows: Sequence, kind=ScalarKind.REAL64):
        s = scalar_for(kind)
        rs = [s.coerce_array(r).ravel() for r in rows]
        if not rs or len({r.shape[0] for r in rs}) != 1:
            raise DimensionError("all row arrays must have the same non-zero length")
        return cls.of_array(np.vstack(rs), s)

    @classmethod
    def of_indexed_enumerable(
        cls, row_count: int, column_count: int, triples: Iterable[Tuple[int, int, object]], kind=ScalarKind.REAL64
    ):
        storage = cls(row_count, column_count, kind)
        for r, c, v in triples:
            check_range(r, c, row_count, column_count)
            storage.set_at(r, c, storage.scalar.coerce(v))
        return storage


class SparseCompressedRowMatrixStorage(MatrixStorage):
    """
    Compressed sparse row layout.

    Attributes
    ----------
    row_pointers : ndarray of int64, length ``row_count + 1``
        Row r occupies ``[row_pointers[r], row_pointers[r + 1])``; the
        last entry equals `value_count`.
    column_indices : ndarray of int64
        Strictly increasing within each row.
    values : ndarray
    """

    def __init__(self, row_count: int, column_count: int, kind=ScalarKind.REAL64):
        super().__init__(row_count, column_count, kind)
        self.row_pointers = np.zeros(row_count + 1, dtype=np.int64)
        self.column_indices = np.zeros(0, dtype=np.int64)
        self.values = np.zeros(0, dtype=self.dtype)

    @property
    def value_count(self) -> int:
        return int(self.row_pointers[-1])

    @property
    def capacity(self) -> int:
        return self.values.shape[0]

    def _search(self, row: int, column: int) -> Tuple[int, bool]:
        start = int(self.row_pointers[row])
        end = int(self.row_pointers[row + 1])
        k = start + int(np.searchsorted(self.column_indices[start:end], column))
        return k, k < end and self.column_indices[k] == column

    def find_item(self, row: int, column: int) -> int:
        """Position of (row, column) in `values`, or -1 if not stored."""
        k, found = self._search(row, column)
        return k if found else -1

    def at(self, row, column):
        k, found = self._search(row, column)
        return self.values[k] if found else self.scalar.zero

    def set_at(self, row, column, value) -> None:
        k, found = self._search(row, column)
        if found:
            if value == 0:
                self._remove_at(k, row)
            else:
                self.values[k] = value
        elif value != 0:
            self._insert_at(k, row, column, value)

    def _insert_at(self, k: int, row: int, column: int, value) -> None:
        n = self.value_count
        if n == self.capacity:
            size = max(grow_size(self.capacity, self.row_count * self.column_count), n + 1)
            logger.debug("csr grow %d -> %d", self.capacity, size)
            self.column_indices = np.resize(self.column_indices, size)
            self.values = np.resize(self.values, size)
        self.column_indices[k + 1 : n + 1] = self.column_indices[k:n]
        self.values[k + 1 : n + 1] = self.values[k:n]
        self.column_indices[k] = column
        self.values[k] = value
        self.row_pointers[row + 1 :] += 1

    def _remove_at(self, k: int, row: int) -> None:
        n = self.value_count
        self.column_indices[k : n - 1] = self.column_indices[k + 1 : n]
        self.values[k : n - 1] = self.values[k + 1 : n]
        self.row_pointers[row + 1 :] -= 1
        if should_shrink(n - 1, self.capacity):
            logger.debug("csr shrink %d -> %d", self.capacity, n - 1)
            self.column_indices = self.column_indices[: n - 1].copy()
            self.values = self.values[: n - 1].copy()

    def _row_index_array(self) -> np.ndarray:
        """Row of each live entry."""
        return np.repeat(np.arange(self.row_count), np.diff(self.row_pointers))

    def _rebuild(self, rows: np.ndarray, columns: np.ndarray, values: np.ndarray) -> None:
        """Replace all entries; triples must already be in row-major order."""
        counts = np.bincount(rows.astype(np.int64), minlength=self.row_count)
        self.row_pointers = np.concatenate(([0], np.cumsum(counts))).astype(np.int64)
        self.column_indices = np.array(columns, dtype=np.int64)
        self.values = np.array(values, dtype=self.dtype)

    def _keep(self, mask: np.ndarray) -> None:
        n = self.value_count
        rows = self._row_index_array()
        self._rebuild(rows[mask], self.column_indices[:n][mask], self.values[:n][mask])

    # normalization ----------------------------------------------------

    def normalize_ordering(self) -> None:
        """Sort the entries of each row by column index."""
        n = self.value_count
        rows = self._row_index_array()
        order = np.lexsort((self.column_indices[:n], rows))
        self.column_indices[:n] = self.column_indices[:n][order]
        self.values[:n] = self.values[:n][order]

    def normalize_duplicates(self) -> None:
        """Merge repeated (row, column) entries by summing them. Assumes ordered rows."""
        n = self.value_count
        if n == 0:
            return
        rows = self._row_index_array()
        cols = self.column_indices[:n]
        starts = np.ones(n, dtype=bool)
        starts[1:] = (rows[1:] != rows[:-1]) | (cols[1:] != cols[:-1])
        group = np.cumsum(starts) - 1
        summed = np.zeros(int(group[-1]) + 1, dtype=self.dtype)
        np.add.at(summed, group, self.values[:n])
        self._rebuild(rows[starts], cols[starts], summed)

    def normalize_zeros(self) -> None:
        """Drop explicitly stored zeros."""
        self._keep(self.values[: self.value_count] != 0)

    # bulk -------------------------------------------------------------

    def clear(self) -> None:
        self.row_pointers[:] = 0
        if self.capacity > 1024:
            self.column_indices = np.zeros(0, dtype=np.int64)
            self.values = np.zeros(0, dtype=self.dtype)

    def clear_range(self, row_index, row_count, column_index, column_count) -> None:
        if row_count < 1 or column_count < 1:
            return
        check_range(row_index, column_index, self.row_count, self.column_count)
        check_range(
            row_index + row_count - 1, column_index + column_count - 1, self.row_count, self.column_count
        )
        rows = self._row_index_array()
        cols = self.column_indices[: self.value_count]
        inside = (
            (rows >= row_index)
            & (rows < row_index + row_count)
            & (cols >= column_index)
            & (cols < column_index + column_count)
        )
        self._keep(~inside)

    def clear_rows(self, row_indices) -> None:
        self._keep(~np.isin(self._row_index_array(), list(row_indices)))

    def clear_columns(self, column_indices) -> None:
        self._keep(~np.isin(self.column_indices[: self.value_count], list(column_indices)))

    def _copy_to(self, target, existing_data) -> None:
        n = self.value_count
        if isinstance(target, SparseCompressedRowMatrixStorage):
            target.row_pointers = self.row_pointers.copy()
            target.column_indices = self.column_indices[:n].copy()
            target.values = self.values[:n].copy()
            return
        if isinstance(target, DenseColumnMajorMatrixStorage):
            if existing_data is ExistingData.CLEAR:
                target.data[:] = 0
            rows = self._row_index_array()
            target.data[self.column_indices[:n] * self.row_count + rows] = self.values[:n]
            return
        super()._copy_to(target, existing_data)

    def transpose_to(self, target, existing_data=ExistingData.CLEAR) -> None:
        if target is self or not isinstance(target, SparseCompressedRowMatrixStorage):
            super().transpose_to(target, existing_data)
            return
        check_transposed_shape(self, target)
        n = self.value_count
        rows = self._row_index_array()
        cols = self.column_indices[:n]
        order = np.lexsort((rows, cols))
        target._rebuild(cols[order], rows[order], self.values[:n][order])

    def to_array(self) -> np.ndarray:
        out = np.zeros((self.row_count, self.column_count), dtype=self.dtype)
        n = self.value_count
        out[self._row_index_array(), self.column_indices[:n]] = self.values[:n]
        return out

    def enumerate_indexed(self):
        """Every coordinate in row-major order."""
        for r in range(self.row_count):
            start, end = int(self.row_pointers[r]), int(self.row_pointers[r + 1])
            k = start
            for c in range(self.column_count):
                if k < end and self.column_indices[k] == c:
                    yield r, c, self.values[k]
                    k += 1
                else:
                    yield r, c, self.scalar.zero

    def enumerate_non_zero_indexed(self):
        for r in range(self.row_count):
            for k in range(int(self.row_pointers[r]), int(self.row_pointers[r + 1])):
                if self.values[k] != 0:
                    yield r, int(self.column_indices[k]), self.values[k]

    def find(self, predicate, zeros=ZeroPolicy.ALLOW_SKIP):
        if zeros is ZeroPolicy.INCLUDE and self.value_count < self.row_count * self.column_count:
            return super().find(predicate, zeros)
        for r, c, v in self.enumerate_non_zero_indexed():
            if predicate(v):
                return r, c, v
        return None

    def same_as(self, row_count=None, column_count=None, fully_mutable=False):
        return SparseCompressedRowMatrixStorage(
            row_count or self.row_count, column_count or self.column_count, self.scalar
        )

    # constructors -----------------------------------------------------

    @classmethod
    def of_array(cls, array, kind=ScalarKind.REAL64) -> "SparseCompressedRowMatrixStorage":
        s = scalar_for(kind)
        arr = s.coerce_array(array)
        if arr.ndim != 2:
            raise DimensionError(f"expected a 2-D array, got {arr.ndim}-D", actual=arr.shape)
        storage = cls(arr.shape[0], arr.shape[1], s)
        rows, cols = np.nonzero(arr)
        storage._rebuild(rows, cols, arr[rows, cols])
        return storage

    @classmethod
    def of_init(cls, row_count, column_count, init: Callable[[int, int], object], kind=ScalarKind.REAL64):
        s = scalar_for(kind)
        arr = s.coerce_array([[init(r, c) for c in range(column_count)] for r in range(row_count)])
        return cls.of_array(arr, s)

    @classmethod
    def of_matrix(cls, source: MatrixStorage) -> "SparseCompressedRowMatrixStorage":
        storage = cls(source.row_count, source.column_count, source.scalar)
        source.copy_to(storage)
        return storage

    @classmethod
    def of_indexed_enumerable(
        cls, row_count, column_count, triples: Iterable[Tuple[int, int, object]], kind=ScalarKind.REAL64
    ):
        """Triples in any order; the last write to a coordinate wins, zeros are dropped."""
        storage = cls(row_count, column_count, kind)
        latest = {}
        for r, c, v in triples:
            check_range(r, c, row_count, column_count)
            latest[(r, c)] = storage.scalar.coerce(v)
        keys = sorted(k for k, v in latest.items() if v != 0)
        rows = np.array([k[0] for k in keys], dtype=np.int64)
        cols = np.array([k[1] for k in keys], dtype=np.int64)
        storage._rebuild(rows, cols, np.array([latest[k] for k in keys], dtype=storage.dtype))
        return storage

    @classmethod
    def of_compressed_sparse_row_format(
        cls,
        row_count: int,
        column_count: int,
        value_count: int,
        row_pointers,
        column_indices,
        values,
        kind=ScalarKind.REAL64,
    ) -> "SparseCompressedRowMatrixStorage":
        """
        Build from raw CSR arrays.

        `row_pointers` may hold ``row_count`` entries (the trailing
        `value_count` is implied) or ``row_count + 1``. Rows are sorted,
        duplicates summed and zeros dropped.
        """
        storage = cls(row_count, column_count, kind)
        pointers = np.asarray(row_pointers, dtype=np.int64)
        if pointers.shape[0] == row_count:
            pointers = np.append(pointers, value_count)
        if pointers.shape[0] != row_count + 1 or pointers[-1] != value_count:
            raise DimensionError(
                f"row_pointers must have {row_count} or {row_count + 1} entries ending at {value_count}",
                expected=(row_count + 1,),
                actual=pointers.shape,
            )
        if np.any(np.diff(pointers) < 0) or pointers[0] != 0:
            raise ValidationError("row_pointers must be non-decreasing and start at 0")
        cols = np.asarray(column_indices, dtype=np.int64)[:value_count]
        if cols.shape[0] != value_count:
            raise DimensionError(
                f"expected {value_count} column indices, got {cols.shape[0]}",
                expected=(value_count,),
                actual=cols.shape,
            )
        if value_count and (cols.min() < 0 or cols.max() >= column_count):
            raise IndexOutOfRangeError("column index out of range")
        vals = storage.scalar.coerce_array(values).ravel()[:value_count]
        if vals.shape[0] != value_count:
            raise DimensionError(
                f"expected {value_count} values, got {vals.shape[0]}",
                expected=(value_count,),
                actual=vals.shape,
            )
        storage.row_pointers = pointers
        storage.column_indices = cols.copy()
        storage.values = vals
        storage.normalize_ordering()
        storage.normalize_duplicates()
        storage.normalize_zeros()
        return storage


class DiagonalMatrixStorage(MatrixStorage):
    """Only the main diagonal is stored; off-diagonal writes must be zero."""

    is_fully_mutable = False

    def __init__(self, row_count: int, column_count: int, kind=ScalarKind.REAL64, data=None):
        super().__init__(row_count, column_count, kind)
        n = min(row_count, column_count)
        if data is None:
            self.data = np.zeros(n, dtype=self.dtype)
        else:
            data = self.scalar.coerce_array(data).ravel()
            if data.shape != (n,):
                raise DimensionError(
                    f"diagonal must have {n} elements, got {data.shape[0]}", expected=(n,), actual=data.shape
                )
            self.data = data

    def is_mutable_at(self, row, column) -> bool:
        return row == column

    def at(self, row, column):
        return self.data[row] if row == column else self.scalar.zero

    def set_at(self, row, column, value) -> None:
        if row == column:
            self.data[row] = value
        elif value != 0:
            raise IndexOutOfRangeError(
                f"Cannot write non-zero value to off-diagonal ({row}, {column}) of a diagonal matrix",
                row=row,
                column=column,
            )

    def clear(self) -> None:
        self.data[:] = 0

    def clear_range(self, row_index, row_count, column_index, column_count) -> None:
        if row_count < 1 or column_count < 1:
            return
        check_range(row_index, column_index, self.row_count, self.column_count)
        check_range(
            row_index + row_count - 1, column_index + column_count - 1, self.row_count, self.column_count
        )
        lo = max(row_index, column_index)
        hi = min(row_index + row_count, column_index + column_count)
        if hi > lo:
            self.data[lo:hi] = 0

    def _copy_to(self, target, existing_data) -> None:
        if isinstance(target, DiagonalMatrixStorage):
            target.data[:] = self.data
            return
        if isinstance(target, DenseColumnMajorMatrixStorage):
            if existing_data is ExistingData.CLEAR:
                target.data[:] = 0
            n = self.data.shape[0]
            target.data[np.arange(n) * (self.row_count + 1)] = self.data
            return
        super()._copy_to(target, existing_data)

    def transpose_to(self, target, existing_data=ExistingData.CLEAR) -> None:
        if target is self:
            check_square(self)
            return
        if isinstance(target, DiagonalMatrixStorage):
            check_transposed_shape(self, target)
            target.data[:] = self.data
            return
        super().transpose_to(target, existing_data)

    def to_array(self) -> np.ndarray:
        out = np.zeros((self.row_count, self.column_count), dtype=self.dtype)
        n = self.data.shape[0]
        out[np.arange(n), np.arange(n)] = self.data
        return out

    def enumerate_non_zero_indexed(self):
        for i in np.flatnonzero(self.data):
            yield int(i), int(i), self.data[i]

    def find(self, predicate, zeros=ZeroPolicy.ALLOW_SKIP):
        if zeros is ZeroPolicy.INCLUDE and self.row_count * self.column_count > self.data.shape[0]:
            return super().find(predicate, zeros)
        for i, v in enumerate(self.data):
            if predicate(v):
                return i, i, v
        return None

    def same_as(self, row_count=None, column_count=None, fully_mutable=False):
        rows, cols = row_count or self.row_count, column_count or self.column_count
        if fully_mutable:
            return SparseCompressedRowMatrixStorage(rows, cols, self.scalar)
        return DiagonalMatrixStorage(rows, cols, self.scalar)

    @classmethod
    def of_value(cls, row_count, column_count, value, kind=ScalarKind.REAL64):
        s = scalar_for(kind)
        return cls(row_count, column_count, s, np.full(min(row_count, column_count), s.coerce(value)))

    @classmethod
    def of_init(cls, row_count, column_count, init: Callable[[int], object], kind=ScalarKind.REAL64):
        n = min(row_count, column_count)
        return cls(row_count, column_count, kind, [init(i) for i in range(n)])


class SymmetricPackedUpperMatrixStorage(MatrixStorage):
    """
    Upper triangle packed column by column.

    Reads below the diagonal mirror the upper triangle (conjugated for
    complex kinds, so complex storage represents a Hermitian matrix).
    Writes below the diagonal raise.
    """

    is_fully_mutable = False

    def __init__(self, order: int, kind=ScalarKind.REAL64, data=None):
        super().__init__(order, order, kind)
        size = order * (order + 1) // 2
        if data is None:
            self.data = np.zeros(size, dtype=self.dtype)
        else:
            data = self.scalar.coerce_array(data).ravel()
            if data.shape != (size,):
                raise DimensionError(
                    f"packed data must have {size} elements, got {data.shape[0]}",
                    expected=(size,),
                    actual=data.shape,
                )
            self.data = data

    @property
    def order(self) -> int:
        return self.row_count

    @staticmethod
    def packed_index(row: int, column: int) -> int:
        return column * (column + 1) // 2 + row

    def is_mutable_at(self, row, column) -> bool:
        return row <= column

    def at(self, row, column):
        if row <= column:
            return self.data[self.packed_index(row, column)]
        return self.scalar.conjugate(self.data[self.packed_index(column, row)])

    def set_at(self, row, column, value) -> None:
        if row > column:
            raise IndexOutOfRangeError(
                f"Cannot write below the diagonal ({row}, {column}) of a packed symmetric matrix",
                row=row,
                column=column,
            )
        self.data[self.packed_index(row, column)] = value

    def clear(self) -> None:
        self.data[:] = 0

    def clear_range(self, row_index, row_count, column_index, column_count) -> None:
        if row_count < 1 or column_count < 1:
            return
        check_range(row_index, column_index, self.row_count, self.column_count)
        check_range(
            row_index + row_count - 1, column_index + column_count - 1, self.row_count, self.column_count
        )
        window = [
            (r, c)
            for c in range(column_index, column_index + column_count)
            for r in range(row_index, row_index + row_count)
        ]
        inside = set(window)
        # a lower coordinate clears only if its mirror is inside the window
        for r, c in window:
            if r > c and (c, r) not in inside and self.at(r, c) != 0:
                raise IndexOutOfRangeError(
                    f"Cannot clear ({r}, {c}) without touching its mirror", row=r, column=c
                )
        for r, c in window:
            if r <= c:
                self.data[self.packed_index(r, c)] = 0

    def _copy_to(self, target, existing_data) -> None:
        if isinstance(target, SymmetricPackedUpperMatrixStorage):
            target.data[:] = self.data
            return
        if isinstance(target, DenseColumnMajorMatrixStorage):
            target.as_2d()[:, :] = self.to_array()
            return
        super()._copy_to(target, existing_data)

    def _transpose_in_place(self) -> None:
        if self.scalar.is_complex:
            self.data[:] = np.conj(self.data)

    def transpose_to(self, target, existing_data=ExistingData.CLEAR) -> None:
        if target is not self and isinstance(target, SymmetricPackedUpperMatrixStorage):
            check_transposed_shape(self, target)
            target.data[:] = self.scalar.conjugate(self.data)
            return
        super().transpose_to(target, existing_data)

    def to_array(self) -> np.ndarray:
        n = self.order
        out = np.zeros((n, n), dtype=self.dtype)
        rows, cols = np.triu_indices(n)
        out[rows, cols] = self.data[cols * (cols + 1) // 2 + rows]
        lower = np.tril_indices(n, -1)
        out[lower] = self.scalar.conjugate(out.T[lower])
        return out

    def enumerate_non_zero_indexed(self):
        full = self.to_array()
        columns, rows = np.nonzero(full.T)
        for r, c in zip(rows, columns):
            yield int(r), int(c), full[r, c]

    def same_as(self, row_count=None, column_count=None, fully_mutable=False):
        rows, cols = row_count or self.row_count, column_count or self.column_count
        if fully_mutable or rows != cols:
            return DenseColumnMajorMatrixStorage(rows, cols, self.scalar)
        return SymmetricPackedUpperMatrixStorage(rows, self.scalar)

    @classmethod
    def of_array(cls, array, kind=ScalarKind.REAL64) -> "SymmetricPackedUpperMatrixStorage":
        """Pack the upper triangle of a square array; the lower triangle is ignored."""
        s = scalar_for(kind)
        arr = s.coerce_array(array)
        if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
            raise DimensionError(f"expected a square 2-D array, got shape {arr.shape}", actual=arr.shape)
        n = arr.shape[0]
        rows, cols = np.triu_indices(n)
        data = np.zeros(n * (n + 1) // 2, dtype=s.dtype)
        data[cols * (cols + 1) // 2 + rows] = arr[rows, cols]
        return cls(n, s, data)
