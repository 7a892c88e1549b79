# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Knuth's orthogonally linked sparse matrix.

Every stored element is a node on two circular lists, one for its row
(linked through `left`) and one for its column (linked through `up`).
Nodes live in a flat arena and refer to each other by index:

- nodes ``0 .. row_count - 1`` are the row heads,
- nodes ``row_count .. row_count + column_count - 1`` the column heads,
- everything after that is an element node, or a free slot.

Following `left` from a row head visits the row in descending column
order; following `up` from a column head visits the column in
descending row order. Writing zero unlinks the node and puts its slot on
the free list.
"""

import logging
from typing import Iterator, List, Tuple

import numpy as np

from .matrix_storage import MatrixStorage
from .options import ZeroPolicy
from .scalar import ScalarKind, scalar_for

logger = logging.getLogger(__name__)


class KnuthLinkedMatrixStorage(MatrixStorage):
    def __init__(self, row_count: int, column_count: int, kind=ScalarKind.REAL64):
        super().__init__(row_count, column_count, kind)
        self._reset()

    def _reset(self) -> None:
        heads = self.row_count + self.column_count
        self._row: List[int] = list(range(self.row_count)) + [-1] * self.column_count
        self._col: List[int] = [-1] * self.row_count + list(range(self.column_count))
        self._left: List[int] = list(range(heads))
        self._up: List[int] = list(range(heads))
        self._val: list = [self.scalar.zero] * heads
        self._free: List[int] = []

    def _row_head(self, row: int) -> int:
        return row

    def _column_head(self, column: int) -> int:
        return self.row_count + column

    @property
    def node_count(self) -> int:
        """Number of stored (non-zero) elements."""
        return len(self._val) - self.row_count - self.column_count - len(self._free)

    # list walks -------------------------------------------------------

    def _row_predecessor(self, row: int, column: int) -> int:
        """Last node in the row walk whose successor has column <= `column`."""
        head = self._row_head(row)
        node = head
        while self._left[node] != head and self._col[self._left[node]] > column:
            node = self._left[node]
        return node

    def _column_predecessor(self, row: int, column: int) -> int:
        head = self._column_head(column)
        node = head
        while self._up[node] != head and self._row[self._up[node]] > row:
            node = self._up[node]
        return node

    def _find(self, row: int, column: int) -> int:
        prev = self._row_predecessor(row, column)
        node = self._left[prev]
        if node != self._row_head(row) and self._col[node] == column:
            return node
        return -1

    # element access ---------------------------------------------------

    def at(self, row, column):
        node = self._find(row, column)
        return self._val[node] if node >= 0 else self.scalar.zero

    def set_at(self, row, column, value) -> None:
        if value == 0:
            self._delete(row, column)
            return
        row_prev = self._row_predecessor(row, column)
        node = self._left[row_prev]
        if node != self._row_head(row) and self._col[node] == column:
            self._val[node] = value
            return

        node = self._allocate(row, column, value)
        self._left[node] = self._left[row_prev]
        self._left[row_prev] = node
        col_prev = self._column_predecessor(row, column)
        self._up[node] = self._up[col_prev]
        self._up[col_prev] = node

    def _allocate(self, row: int, column: int, value) -> int:
        if self._free:
            node = self._free.pop()
            self._row[node] = row
            self._col[node] = column
            self._val[node] = value
            return node
        self._row.append(row)
        self._col.append(column)
        self._val.append(value)
        self._left.append(-1)
        self._up.append(-1)
        return len(self._val) - 1

    def _delete(self, row: int, column: int) -> None:
        row_prev = self._row_predecessor(row, column)
        node = self._left[row_prev]
        if node == self._row_head(row) or self._col[node] != column:
            return
        col_prev = self._column_predecessor(row, column)
        self._left[row_prev] = self._left[node]
        self._up[col_prev] = self._up[node]
        self._row[node] = self._col[node] = -1
        self._val[node] = self.scalar.zero
        self._left[node] = self._up[node] = node
        self._free.append(node)

    def clear(self) -> None:
        self._reset()

    # traversal --------------------------------------------------------

    def enumerate_row(self, row: int) -> Iterator[Tuple[int, object]]:
        """(column, value) pairs of `row`, descending by column."""
        head = self._row_head(row)
        node = self._left[head]
        while node != head:
            yield self._col[node], self._val[node]
            node = self._left[node]

    def enumerate_column(self, column: int) -> Iterator[Tuple[int, object]]:
        """(row, value) pairs of `column`, descending by row."""
        head = self._column_head(column)
        node = self._up[head]
        while node != head:
            yield self._row[node], self._val[node]
            node = self._up[node]

    def enumerate_non_zero_indexed(self):
        for r in range(self.row_count):
            for c, v in self.enumerate_row(r):
                yield r, c, v

    def to_array(self) -> np.ndarray:
        out = np.zeros((self.row_count, self.column_count), dtype=self.dtype)
        for r, c, v in self.enumerate_non_zero_indexed():
            out[r, c] = v
        return out

    def find(self, predicate, zeros=ZeroPolicy.ALLOW_SKIP):
        if zeros is ZeroPolicy.INCLUDE and self.node_count < self.row_count * self.column_count:
            return super().find(predicate, zeros)
        for r, c, v in self.enumerate_non_zero_indexed():
            if predicate(v):
                return r, c, v
        return None

    def structurally_equals(self, other: "KnuthLinkedMatrixStorage") -> bool:
        """Same shape and the same nodes, in the same order, on every row and column list."""
        if self.shape != other.shape:
            return False
        for r in range(self.row_count):
            if list(self.enumerate_row(r)) != list(other.enumerate_row(r)):
                return False
        for c in range(self.column_count):
            if list(self.enumerate_column(c)) != list(other.enumerate_column(c)):
                return False
        return True

    def copy(self) -> "KnuthLinkedMatrixStorage":
        result = KnuthLinkedMatrixStorage(self.row_count, self.column_count, self.scalar)
        self._copy_to(result, None)
        return result

    def _copy_to(self, target, existing_data) -> None:
        if isinstance(target, KnuthLinkedMatrixStorage):
            target._reset()
            # ascending columns always link directly after the row head
            for r in range(self.row_count):
                for c, v in reversed(list(self.enumerate_row(r))):
                    target.set_at(r, c, v)
            return
        super()._copy_to(target, existing_data)

    def same_as(self, row_count=None, column_count=None, fully_mutable=False):
        return KnuthLinkedMatrixStorage(
            row_count or self.row_count, column_count or self.column_count, self.scalar
        )

    # constructors -----------------------------------------------------

    @classmethod
    def of_array(cls, array, kind=ScalarKind.REAL64) -> "KnuthLinkedMatrixStorage":
        s = scalar_for(kind)
        arr = s.coerce_array(array)
        storage = cls(arr.shape[0], arr.shape[1], s)
        for r, c in zip(*np.nonzero(arr)):
            storage.set_at(int(r), int(c), arr[r, c])
        return storage

    @classmethod
    def of_matrix(cls, source: MatrixStorage) -> "KnuthLinkedMatrixStorage":
        storage = cls(source.row_count, source.column_count, source.scalar)
        source.copy_to(storage)
        return storage
