# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Element-wise combinators over vector and matrix storage.

Public API
~~~~~~~~~~
- `map_to`, `map_indexed_to`, `map_inplace`
- `map2_to`
- `fold2`, `find2`

Every combinator dispatches on the runtime layout of its operands.
Dense/dense pairs run a chunked loop on the flat buffers (through
`parallel_for` above the configured grain), sparse/sparse pairs merge
their stored indices, and everything else goes through a dense
intermediate that is written to the target in one pass.

A sparse operand "processes zeros" when ``zeros is ZeroPolicy.INCLUDE``
or the function does not map zero to zero; only then are implicit zeros
visited.

Example
-------
>>> from linstore.vector_storage import SparseVectorStorage
>>> v = SparseVectorStorage.of_enumerable([1.0, 2.0, 0.0, 4.0])
>>> map_to(v, v, lambda x: -x)
>>> v.to_array()
array([-1., -2.,  0., -4.])
"""

import logging
from typing import Callable

import numpy as np

from .exceptions import IndexOutOfRangeError
from .matrix_storage import (
    DenseColumnMajorMatrixStorage,
    DiagonalMatrixStorage,
    MatrixStorage,
    SparseCompressedRowMatrixStorage,
    SymmetricPackedUpperMatrixStorage,
    check_writable,
)
from .options import ExistingData, ZeroPolicy
from .parallel import parallel_for
from .validation import check_same_length, check_same_shape
from .vector_storage import DenseVectorStorage, SparseVectorStorage, VectorStorage

logger = logging.getLogger(__name__)

__all__ = [
    "ZeroPolicy",
    "ExistingData",
    "map_to",
    "map_indexed_to",
    "map_inplace",
    "map2_to",
    "fold2",
    "find2",
]


def _processes_zeros(zeros: ZeroPolicy, f, *zero_args) -> bool:
    return zeros is ZeroPolicy.INCLUDE or f(*zero_args) != 0


def _check_shapes(source, other, target=None) -> None:
    if isinstance(source, VectorStorage):
        check_same_length(source, other)
        if target is not None:
            check_same_length(source, target, "target")
    else:
        check_same_shape(source, other)
        if target is not None:
            check_same_shape(source, target, "target")


def _dense_map(src: np.ndarray, out: np.ndarray, f, scalar) -> None:
    def body(lo, hi):
        out[lo:hi] = scalar.coerce_array([f(x) for x in src[lo:hi]])

    parallel_for(0, src.shape[0], body)


def _dense_map2(a: np.ndarray, b: np.ndarray, out: np.ndarray, f, scalar) -> None:
    def body(lo, hi):
        out[lo:hi] = scalar.coerce_array([f(x, y) for x, y in zip(a[lo:hi], b[lo:hi])])

    parallel_for(0, a.shape[0], body)


# writing full results ----------------------------------------------------


def _store_vector(target: VectorStorage, values: np.ndarray) -> None:
    if isinstance(target, DenseVectorStorage):
        target.data[:] = values
    elif isinstance(target, SparseVectorStorage):
        target._assign_from_dense(values)
    else:
        for i, v in enumerate(values):
            target.set_at(i, v)


def _store_matrix(target: MatrixStorage, values: np.ndarray) -> None:
    """
    Overwrite `target` with a full 2-D result.

    Diagonal and packed symmetric targets accept the result only if it
    fits their structure; otherwise `IndexOutOfRangeError` is raised
    before anything is written.
    """
    if isinstance(target, DenseColumnMajorMatrixStorage):
        target.as_2d()[:, :] = values
        return
    if isinstance(target, SparseCompressedRowMatrixStorage):
        rows, cols = np.nonzero(values)
        target._rebuild(rows, cols, values[rows, cols])
        return
    if isinstance(target, SymmetricPackedUpperMatrixStorage):
        lower = np.tril_indices(target.order, -1)
        mismatch = np.flatnonzero(values[lower] != target.scalar.conjugate(values.T[lower]))
        if mismatch.shape[0]:
            r, c = int(lower[0][mismatch[0]]), int(lower[1][mismatch[0]])
            raise IndexOutOfRangeError(
                f"Result is not symmetric at ({r}, {c}); cannot store it in packed symmetric storage",
                row=r,
                column=c,
            )
        target.data[:] = SymmetricPackedUpperMatrixStorage.of_array(values, target.scalar).data
        return

    rows, cols = np.nonzero(values)
    check_writable(target, [(int(r), int(c), values[r, c]) for r, c in zip(rows, cols)])
    if isinstance(target, DiagonalMatrixStorage):
        target.data[:] = np.diagonal(values)
        return
    target.clear()
    for r, c in zip(rows, cols):
        target.set_at(int(r), int(c), values[r, c])


def _log_densify(target, op: str) -> None:
    if not target.is_dense:
        logger.debug("%s into %s through a dense intermediate", op, type(target).__name__)


# map ----------------------------------------------------------------------


def map_to(
    source,
    target,
    f: Callable,
    zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP,
    existing_data: ExistingData = ExistingData.CLEAR,
) -> None:
    """
    target[i] = f(source[i]) for every position.

    Parameters
    ----------
    source, target : VectorStorage | MatrixStorage
        Same shape; may be the same object.
    f : callable
        Scalar function.
    zeros : ZeroPolicy
    existing_data : ExistingData
        Whether positions the map skips must be cleared in `target`.
    """
    if isinstance(source, VectorStorage):
        _map_vector(source, target, f, zeros, existing_data)
    else:
        _map_matrix(source, target, f, zeros, existing_data)


def map_inplace(storage, f: Callable, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP) -> None:
    map_to(storage, storage, f, zeros, ExistingData.ASSUME_ZEROS)


def _map_vector(source, target, f, zeros, existing_data) -> None:
    check_same_length(source, target, "target")
    scalar = target.scalar

    if isinstance(source, DenseVectorStorage) and isinstance(target, DenseVectorStorage):
        _dense_map(source.data, target.data, f, scalar)
        return

    process_zeros = _processes_zeros(zeros, f, source.scalar.zero)
    if isinstance(source, SparseVectorStorage) and not process_zeros:
        n = source.value_count
        idx = source.indices[:n].copy()
        mapped = scalar.coerce_array([f(x) for x in source.values[:n]])
        if isinstance(target, SparseVectorStorage):
            keep = mapped != 0
            target._assign(idx[keep], mapped[keep])
            return
        if isinstance(target, DenseVectorStorage):
            if existing_data is ExistingData.CLEAR:
                target.data[:] = 0
            target.data[idx] = mapped
            return

    _log_densify(target, "map")
    values = scalar.coerce_array([f(x) for x in source.enumerate()])
    _store_vector(target, values)


def _map_matrix(source, target, f, zeros, existing_data) -> None:
    check_same_shape(source, target, "target")
    scalar = target.scalar

    if isinstance(source, DenseColumnMajorMatrixStorage) and isinstance(target, DenseColumnMajorMatrixStorage):
        _dense_map(source.data, target.data, f, scalar)
        return

    process_zeros = _processes_zeros(zeros, f, source.scalar.zero)
    if not process_zeros:
        if isinstance(source, DiagonalMatrixStorage) and isinstance(target, DiagonalMatrixStorage):
            target.data[:] = scalar.coerce_array([f(x) for x in source.data])
            return
        if isinstance(source, SparseCompressedRowMatrixStorage):
            n = source.value_count
            rows = source._row_index_array()
            cols = source.column_indices[:n].copy()
            mapped = scalar.coerce_array([f(x) for x in source.values[:n]])
            if isinstance(target, SparseCompressedRowMatrixStorage):
                keep = mapped != 0
                target._rebuild(rows[keep], cols[keep], mapped[keep])
                return
            if isinstance(target, DenseColumnMajorMatrixStorage):
                if existing_data is ExistingData.CLEAR:
                    target.data[:] = 0
                target.data[cols * source.row_count + rows] = mapped
                return
        out = np.zeros(source.shape, dtype=scalar.dtype)
        for r, c, v in source.enumerate_non_zero_indexed():
            out[r, c] = scalar.coerce(f(v))
        _log_densify(target, "map")
        _store_matrix(target, out)
        return

    _log_densify(target, "map")
    out = np.empty(source.shape, dtype=scalar.dtype)
    src = source.to_array()
    for (r, c), v in np.ndenumerate(src):
        out[r, c] = scalar.coerce(f(v))
    _store_matrix(target, out)


def map_indexed_to(
    source,
    target,
    f: Callable,
    zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP,
    existing_data: ExistingData = ExistingData.CLEAR,
) -> None:
    """
    Like `map_to`, but `f` also receives the position: ``f(i, x)`` for
    vectors and ``f(row, column, x)`` for matrices.

    With ALLOW_SKIP the caller promises ``f(..., 0) == 0``, so implicit
    zeros of sparse sources are not visited.
    """
    scalar = target.scalar
    skip = zeros is ZeroPolicy.ALLOW_SKIP and not source.is_dense
    if isinstance(source, VectorStorage):
        check_same_length(source, target, "target")
        values = np.zeros(source.length, dtype=scalar.dtype)
        items = source.enumerate_non_zero_indexed() if skip else source.enumerate_indexed()
        for i, v in items:
            values[i] = scalar.coerce(f(i, v))
        _log_densify(target, "map_indexed")
        _store_vector(target, values)
        return

    check_same_shape(source, target, "target")
    out = np.zeros(source.shape, dtype=scalar.dtype)
    items = source.enumerate_non_zero_indexed() if skip else source.enumerate_indexed()
    for r, c, v in items:
        out[r, c] = scalar.coerce(f(r, c, v))
    _log_densify(target, "map_indexed")
    _store_matrix(target, out)


# map2 ---------------------------------------------------------------------


def _stored_keys(storage) -> np.ndarray:
    """Sorted linear keys of the stored non-zeros (column-major for matrices)."""
    if isinstance(storage, DenseVectorStorage):
        return np.flatnonzero(storage.data)
    if isinstance(storage, SparseVectorStorage):
        return storage.indices[: storage.value_count].copy()
    if isinstance(storage, VectorStorage):
        return np.array([i for i, _ in storage.enumerate_non_zero_indexed()], dtype=np.int64)
    if isinstance(storage, DenseColumnMajorMatrixStorage):
        return np.flatnonzero(storage.data)
    rows = storage.row_count
    return np.unique(
        np.array([c * rows + r for r, c, _ in storage.enumerate_non_zero_indexed()], dtype=np.int64)
    )


def _values_at(storage, keys: np.ndarray) -> np.ndarray:
    if isinstance(storage, (DenseVectorStorage, DenseColumnMajorMatrixStorage)):
        return storage.data[keys]
    if isinstance(storage, SparseVectorStorage):
        n = storage.value_count
        idx = storage.indices[:n]
        pos = np.searchsorted(idx, keys)
        out = np.zeros(keys.shape[0], dtype=storage.dtype)
        hit = pos < n
        hit[hit] = idx[pos[hit]] == keys[hit]
        out[hit] = storage.values[pos[hit]]
        return out
    if isinstance(storage, VectorStorage):
        return np.array([storage.at(int(k)) for k in keys], dtype=storage.dtype)
    rows = storage.row_count
    return np.array([storage.at(int(k % rows), int(k // rows)) for k in keys], dtype=storage.dtype)


def map2_to(
    source,
    other,
    target,
    f: Callable,
    zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP,
    existing_data: ExistingData = ExistingData.CLEAR,
) -> None:
    """target[i] = f(source[i], other[i]) for every position."""
    _check_shapes(source, other, target)
    scalar = target.scalar
    dense_types = (DenseVectorStorage, DenseColumnMajorMatrixStorage)

    if all(isinstance(s, dense_types) for s in (source, other, target)):
        _dense_map2(source.data, other.data, target.data, f, scalar)
        return

    process_zeros = _processes_zeros(zeros, f, source.scalar.zero, other.scalar.zero)
    if not process_zeros and not source.is_dense and not other.is_dense:
        if all(isinstance(s, DiagonalMatrixStorage) for s in (source, other, target)):
            target.data[:] = scalar.coerce_array([f(x, y) for x, y in zip(source.data, other.data)])
            return
        # merge by stored position; positions where both are zero stay zero
        keys = np.union1d(_stored_keys(source), _stored_keys(other))
        a = _values_at(source, keys)
        b = _values_at(other, keys)
        mapped = scalar.coerce_array([f(x, y) for x, y in zip(a, b)]).reshape(-1)
        keep = mapped != 0
        if isinstance(target, SparseVectorStorage):
            target._assign(keys[keep], mapped[keep])
            return
        if isinstance(source, VectorStorage):
            values = np.zeros(source.length, dtype=scalar.dtype)
            values[keys] = mapped
            _store_vector(target, values)
            return
        rows = source.row_count
        out = np.zeros(source.shape, dtype=scalar.dtype)
        out[keys % rows, keys // rows] = mapped
        _store_matrix(target, out)
        return

    _log_densify(target, "map2")
    a = source.to_array()
    b = other.to_array()
    out = np.empty(a.shape, dtype=scalar.dtype)
    for pos in np.ndindex(*a.shape):
        out[pos] = scalar.coerce(f(a[pos], b[pos]))
    if isinstance(source, VectorStorage):
        _store_vector(target, out)
    else:
        _store_matrix(target, out)


# fold2 / find2 -------------------------------------------------------------


def _positions(source, other, include_all: bool) -> np.ndarray:
    if include_all or source.is_dense or other.is_dense:
        size = source.length if isinstance(source, VectorStorage) else source.row_count * source.column_count
        return np.arange(size)
    return np.union1d(_stored_keys(source), _stored_keys(other)).astype(np.int64)


def fold2(source, other, f: Callable, state, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP):
    """
    Fold ``state = f(state, source[i], other[i])`` over the positions.

    With ALLOW_SKIP, sparse pairs only visit positions where at least
    one operand stores a value. Positions are visited in ascending
    order (column-major for matrices).
    """
    _check_shapes(source, other)
    keys = _positions(source, other, zeros is ZeroPolicy.INCLUDE)
    a = _values_at(source, keys)
    b = _values_at(other, keys)
    for x, y in zip(a, b):
        state = f(state, x, y)
    return state


def find2(source, other, predicate: Callable, zeros: ZeroPolicy = ZeroPolicy.ALLOW_SKIP):
    """
    First position where ``predicate(source[i], other[i])`` holds.

    Returns ``(index, a, b)`` for vectors, ``(row, column, a, b)`` for
    matrices, or None.
    """
    _check_shapes(source, other)
    include_all = zeros is ZeroPolicy.INCLUDE or bool(
        predicate(source.scalar.zero, other.scalar.zero)
    )
    keys = _positions(source, other, include_all)
    a = _values_at(source, keys)
    b = _values_at(other, keys)
    for k, x, y in zip(keys, a, b):
        if predicate(x, y):
            if isinstance(source, VectorStorage):
                return int(k), x, y
            rows = source.row_count
            return int(k % rows), int(k // rows), x, y
    return None
