# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Vector storage.

Two layouts share the `VectorStorage` interface:

- `DenseVectorStorage`: a numpy buffer of exactly `length` elements.
- `SparseVectorStorage`: sorted `indices` plus `values`, of which the
  first `value_count` slots are live. Zero is never stored; writing
  zero removes the entry.

`at` / `set_at` skip bounds checks. Indexing with ``v[i]`` checks and
raises `IndexOutOfRangeError`.
"""

import logging
from typing import Callable, Iterable, Iterator, Optional, Tuple

import numpy as np

from .exceptions import DimensionError, ValidationError
from .options import ExistingData, ZeroPolicy
from .scalar import Scalar, ScalarKind, scalar_for
from .validation import check_index, check_same_length, check_sub_vector_range

logger = logging.getLogger(__name__)


def grow_size(capacity: int, limit: int) -> int:
    """
    Next buffer capacity for a full sparse buffer.

    +32 up to 64, +128 up to 256, +512 up to 1024, then +25%; never
    more than `limit` (the number of addressable positions).
    """
    if capacity > 1024:
        size = capacity + capacity // 4
    elif capacity > 256:
        size = capacity + 512
    elif capacity > 64:
        size = capacity + 128
    else:
        size = capacity + 32
    return min(size, limit)


def should_shrink(value_count: int, capacity: int) -> bool:
    return value_count > 1024 and value_count < capacity // 2


class VectorStorage:
    """Abstract base for vector layouts."""

    is_dense = False

    def __init__(self, length: int, kind=ScalarKind.REAL64):
        if length < 1:
            raise ValidationError(f"length must be positive, got {length}")
        self.length = length
        self.scalar: Scalar = scalar_for(kind)

    @property
    def dtype(self) -> np.dtype:
        return self.scalar.dtype

    # element access ---------------------------------------------------

    def at(self, index: int):
        raise NotImplementedError

    def set_at(self, index: int, value) -> None:
        raise NotImplementedError

    def __getitem__(self, index: int):
        check_index(index, self.length)
        return self.at(index)

    def __setitem__(self, index: int, value) -> None:
        check_index(index, self.length)
        self.set_at(index, self.scalar.coerce(value))

    def __len__(self) -> int:
        return self.length

    # bulk -------------------------------------------------------------

    def clear(self) -> None:
        for i in range(self.length):
            self.set_at(i, self.scalar.zero)

    def clear_range(self, index: int, count: int) -> None:
        if count < 1:
            return
        if index < 0 or index + count > self.length:
            check_index(index + count - 1, self.length)
            check_index(index, self.length)
        for i in range(index, index + count):
            self.set_at(i, self.scalar.zero)

    def to_array(self) -> np.ndarray:
        out = np.zeros(self.length, dtype=self.dtype)
        for i, v in self.enumerate_non_zero_indexed():
            out[i] = v
        return out

    def copy_to(self, target: "VectorStorage", existing_data=ExistingData.CLEAR) -> None:
        check_same_length(self, target, "target")
        if target is self:
            return
        self._copy_to(target, existing_data)

    def _copy_to(self, target, existing_data) -> None:
        if existing_data is ExistingData.CLEAR:
            target.clear()
        for i, v in self.enumerate_non_zero_indexed():
            target.set_at(i, v)

    def copy_sub_vector_to(
        self,
        target: "VectorStorage",
        source_index: int,
        target_index: int,
        count: int,
        existing_data=ExistingData.CLEAR,
    ) -> None:
        check_sub_vector_range(self, target, source_index, target_index, count)
        if target is self and source_index == target_index:
            return
        values = [self.at(source_index + k) for k in range(count)]
        for k, v in enumerate(values):
            if existing_data is ExistingData.CLEAR or v != 0:
                target.set_at(target_index + k, v)

    # enumeration ------------------------------------------------------

    def enumerate(self) -> Iterator:
        for i in range(self.length):
            yield self.at(i)

    def enumerate_indexed(self) -> Iterator[Tuple[int, object]]:
        for i in range(self.length):
            yield i, self.at(i)

    def enumerate_non_zero_indexed(self) -> Iterator[Tuple[int, object]]:
        for i in range(self.length):
            v = self.at(i)
            if v != 0:
                yield i, v

    def find(
        self, predicate: Callable[[object], bool], zeros=ZeroPolicy.ALLOW_SKIP
    ) -> Optional[Tuple[int, object]]:
        """First (index, value) satisfying `predicate`, or None."""
        for i, v in self.enumerate_indexed():
            if predicate(v):
                return i, v
        return None

    def __eq__(self, other) -> bool:
        if not isinstance(other, VectorStorage):
            return NotImplemented
        if self is other:
            return True
        if self.length != other.length:
            return False
        from .combinators import find2

        return find2(self, other, lambda a, b: a != b, ZeroPolicy.ALLOW_SKIP) is None

    __hash__ = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(length={self.length}, kind={self.scalar.kind.value})"


class DenseVectorStorage(VectorStorage):
    """Contiguous numpy buffer."""

    is_dense = True

    def __init__(self, length: int, kind=ScalarKind.REAL64, data=None):
        super().__init__(length, kind)
        if data is None:
            self.data = np.zeros(length, dtype=self.dtype)
        else:
            data = np.asarray(data)
            if data.shape != (length,):
                raise DimensionError(
                    f"data must have shape ({length},), got {data.shape}",
                    expected=(length,),
                    actual=data.shape,
                )
            if data.dtype != self.dtype:
                data = self.scalar.coerce_array(data)
            self.data = data

    def at(self, index: int):
        return self.data[index]

    def set_at(self, index: int, value) -> None:
        self.data[index] = value

    def clear(self) -> None:
        self.data[:] = 0

    def clear_range(self, index: int, count: int) -> None:
        if count < 1:
            return
        check_index(index, self.length)
        check_index(index + count - 1, self.length)
        self.data[index : index + count] = 0

    def to_array(self) -> np.ndarray:
        return self.data.copy()

    def _copy_to(self, target, existing_data) -> None:
        if isinstance(target, DenseVectorStorage):
            target.data[:] = self.data
            return
        if isinstance(target, SparseVectorStorage):
            target._assign_from_dense(self.data)
            return
        super()._copy_to(target, existing_data)

    def copy_sub_vector_to(
        self, target, source_index, target_index, count, existing_data=ExistingData.CLEAR
    ) -> None:
        if isinstance(target, DenseVectorStorage):
            check_sub_vector_range(self, target, source_index, target_index, count)
            target.data[target_index : target_index + count] = self.data[
                source_index : source_index + count
            ]
            return
        super().copy_sub_vector_to(target, source_index, target_index, count, existing_data)

    def enumerate(self) -> Iterator:
        return iter(self.data)

    def enumerate_non_zero_indexed(self):
        for i in np.flatnonzero(self.data):
            yield int(i), self.data[i]

    # constructors -----------------------------------------------------

    @classmethod
    def of_value(cls, length: int, value, kind=ScalarKind.REAL64) -> "DenseVectorStorage":
        s = scalar_for(kind)
        return cls(length, s, np.full(length, s.coerce(value), dtype=s.dtype))

    @classmethod
    def of_init(cls, length: int, init: Callable[[int], object], kind=ScalarKind.REAL64):
        s = scalar_for(kind)
        return cls(length, s, s.coerce_array([init(i) for i in range(length)]))

    @classmethod
    def of_enumerable(cls, values: Iterable, kind=ScalarKind.REAL64) -> "DenseVectorStorage":
        s = scalar_for(kind)
        data = s.coerce_array(list(values)).ravel()
        return cls(data.shape[0], s, data)

    @classmethod
    def of_indexed_enumerable(cls, length: int, pairs: Iterable[Tuple[int, object]], kind=ScalarKind.REAL64):
        storage = cls(length, kind)
        for i, v in pairs:
            check_index(i, length)
            storage.data[i] = storage.scalar.coerce(v)
        return storage

    @classmethod
    def of_vector(cls, source: VectorStorage) -> "DenseVectorStorage":
        return cls(source.length, source.scalar, source.to_array())


class SparseVectorStorage(VectorStorage):
    """
    Sorted index/value pairs.

    Attributes
    ----------
    indices : ndarray of int64
        Strictly increasing in ``[:value_count]``.
    values : ndarray
        Non-zero in ``[:value_count]``.
    value_count : int
    """

    def __init__(self, length: int, kind=ScalarKind.REAL64):
        super().__init__(length, kind)
        self.indices = np.zeros(0, dtype=np.int64)
        self.values = np.zeros(0, dtype=self.dtype)
        self.value_count = 0

    @property
    def capacity(self) -> int:
        return self.values.shape[0]

    def _search(self, index: int) -> int:
        return int(np.searchsorted(self.indices[: self.value_count], index))

    def at(self, index: int):
        k = self._search(index)
        if k < self.value_count and self.indices[k] == index:
            return self.values[k]
        return self.scalar.zero

    def set_at(self, index: int, value) -> None:
        k = self._search(index)
        if k < self.value_count and self.indices[k] == index:
            if value == 0:
                self._remove_at(k)
            else:
                self.values[k] = value
        elif value != 0:
            self._insert_at(k, index, value)

    def _insert_at(self, k: int, index: int, value) -> None:
        n = self.value_count
        if n == self.capacity:
            size = max(grow_size(self.capacity, self.length), n + 1)
            logger.debug("sparse vector grow %d -> %d", self.capacity, size)
            self.indices = np.resize(self.indices, size)
            self.values = np.resize(self.values, size)
        self.indices[k + 1 : n + 1] = self.indices[k:n]
        self.values[k + 1 : n + 1] = self.values[k:n]
        self.indices[k] = index
        self.values[k] = value
        self.value_count = n + 1

    def _remove_at(self, k: int) -> None:
        n = self.value_count
        self.indices[k : n - 1] = self.indices[k + 1 : n]
        self.values[k : n - 1] = self.values[k + 1 : n]
        self.value_count = n - 1
        if should_shrink(self.value_count, self.capacity):
            logger.debug("sparse vector shrink %d -> %d", self.capacity, self.value_count)
            self.indices = self.indices[: self.value_count].copy()
            self.values = self.values[: self.value_count].copy()

    def _assign(self, indices: np.ndarray, values: np.ndarray) -> None:
        """Replace all entries; `indices` sorted and `values` non-zero."""
        self.indices = np.array(indices, dtype=np.int64)
        self.values = np.array(values, dtype=self.dtype)
        self.value_count = self.indices.shape[0]

    def _assign_from_dense(self, data: np.ndarray) -> None:
        nz = np.flatnonzero(data)
        self._assign(nz, data[nz])

    # bulk -------------------------------------------------------------

    def clear(self) -> None:
        self.value_count = 0
        if self.capacity > 1024:
            self.indices = np.zeros(0, dtype=np.int64)
            self.values = np.zeros(0, dtype=self.dtype)

    def clear_range(self, index: int, count: int) -> None:
        if count < 1:
            return
        check_index(index, self.length)
        check_index(index + count - 1, self.length)
        idx = self.indices[: self.value_count]
        keep = (idx < index) | (idx >= index + count)
        self._assign(idx[keep], self.values[: self.value_count][keep])

    def to_array(self) -> np.ndarray:
        out = np.zeros(self.length, dtype=self.dtype)
        n = self.value_count
        out[self.indices[:n]] = self.values[:n]
        return out

    def _copy_to(self, target, existing_data) -> None:
        n = self.value_count
        if isinstance(target, SparseVectorStorage):
            target._assign(self.indices[:n], self.values[:n])
            return
        if isinstance(target, DenseVectorStorage):
            if existing_data is ExistingData.CLEAR:
                target.data[:] = 0
            target.data[self.indices[:n]] = self.values[:n]
            return
        super()._copy_to(target, existing_data)

    def copy_sub_vector_to(
        self, target, source_index, target_index, count, existing_data=ExistingData.CLEAR
    ) -> None:
        check_sub_vector_range(self, target, source_index, target_index, count)
        if target is self:
            super().copy_sub_vector_to(target, source_index, target_index, count, existing_data)
            return
        idx = self.indices[: self.value_count]
        lo = int(np.searchsorted(idx, source_index))
        hi = int(np.searchsorted(idx, source_index + count))
        if existing_data is ExistingData.CLEAR:
            target.clear_range(target_index, count)
        shift = target_index - source_index
        for k in range(lo, hi):
            target.set_at(int(idx[k]) + shift, self.values[k])

    def enumerate(self) -> Iterator:
        k = 0
        n = self.value_count
        for i in range(self.length):
            if k < n and self.indices[k] == i:
                yield self.values[k]
                k += 1
            else:
                yield self.scalar.zero

    def enumerate_indexed(self):
        for i, v in enumerate(self.enumerate()):
            yield i, v

    def enumerate_non_zero_indexed(self):
        for k in range(self.value_count):
            yield int(self.indices[k]), self.values[k]

    def find(self, predicate, zeros=ZeroPolicy.ALLOW_SKIP):
        if zeros is ZeroPolicy.INCLUDE and self.value_count < self.length:
            return super().find(predicate, zeros)
        for i, v in self.enumerate_non_zero_indexed():
            if predicate(v):
                return i, v
        return None

    # constructors -----------------------------------------------------

    @classmethod
    def of_value(cls, length: int, value, kind=ScalarKind.REAL64) -> "SparseVectorStorage":
        storage = cls(length, kind)
        value = storage.scalar.coerce(value)
        if value != 0:
            storage._assign(np.arange(length), np.full(length, value))
        return storage

    @classmethod
    def of_init(cls, length: int, init: Callable[[int], object], kind=ScalarKind.REAL64):
        storage = cls(length, kind)
        data = storage.scalar.coerce_array([init(i) for i in range(length)])
        storage._assign_from_dense(data)
        return storage

    @classmethod
    def of_enumerable(cls, values: Iterable, kind=ScalarKind.REAL64) -> "SparseVectorStorage":
        s = scalar_for(kind)
        data = s.coerce_array(list(values)).ravel()
        storage = cls(data.shape[0], s)
        storage._assign_from_dense(data)
        return storage

    @classmethod
    def of_indexed_enumerable(cls, length: int, pairs: Iterable[Tuple[int, object]], kind=ScalarKind.REAL64):
        """Pairs may arrive in any order; the last write to an index wins and zeros are dropped."""
        storage = cls(length, kind)
        latest = {}
        for i, v in pairs:
            check_index(i, length)
            latest[i] = storage.scalar.coerce(v)
        order = sorted(i for i, v in latest.items() if v != 0)
        storage._assign(np.array(order, dtype=np.int64), np.array([latest[i] for i in order]))
        return storage

    @classmethod
    def of_vector(cls, source: VectorStorage) -> "SparseVectorStorage":
        storage = cls(source.length, source.scalar)
        source.copy_to(storage)
        return storage
