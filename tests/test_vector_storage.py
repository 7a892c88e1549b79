# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest

from linstore.exceptions import DimensionError, IndexOutOfRangeError, ValidationError
from linstore.options import ExistingData, ZeroPolicy
from linstore.vector_storage import (
    DenseVectorStorage,
    SparseVectorStorage,
    grow_size,
    should_shrink,
)

LAYOUTS = [DenseVectorStorage, SparseVectorStorage]


@pytest.mark.parametrize(
    "capacity, limit, expected",
    [(0, 1000, 32), (64, 1000, 96), (100, 1000, 228), (300, 10000, 812), (2000, 10000, 2500), (60, 70, 70)],
)
def test_grow_size(capacity, limit, expected):
    assert grow_size(capacity, limit) == expected


def test_should_shrink():
    assert not should_shrink(10, 100)
    assert should_shrink(1100, 4000)
    assert not should_shrink(1100, 2000)


@pytest.mark.parametrize("cls", LAYOUTS)
def test_length_must_be_positive(cls):
    with pytest.raises(ValidationError):
        cls(0)


@pytest.mark.parametrize("cls", LAYOUTS)
def test_checked_access(cls, kind):
    v = cls(4, kind)
    v[2] = 3
    assert v[2] == 3
    assert v[0] == 0
    with pytest.raises(IndexOutOfRangeError):
        v[4]
    with pytest.raises(IndexOutOfRangeError):
        v[-1] = 1.0


def test_real_storage_refuses_complex():
    v = DenseVectorStorage(2)
    with pytest.raises(ValidationError):
        v[0] = 1 + 1j


class TestSparse:
    def test_sorted_and_zero_free(self):
        v = SparseVectorStorage(10)
        for i in (7, 2, 5, 2):
            v.set_at(i, float(i))
        assert v.value_count == 3
        assert list(v.indices[: v.value_count]) == [2, 5, 7]
        v.set_at(5, 0.0)
        assert v.value_count == 2
        assert list(v.indices[: v.value_count]) == [2, 7]
        v.set_at(4, 0.0)
        assert v.value_count == 2

    def test_growth(self):
        v = SparseVectorStorage(200)
        for i in range(40):
            v.set_at(i, 1.0)
        assert v.value_count == 40
        assert v.capacity >= 40
        assert np.array_equal(v.to_array()[:41], [1.0] * 40 + [0.0])

    def test_indexed_enumerable_last_write_wins(self):
        v = SparseVectorStorage.of_indexed_enumerable(5, [(3, 1.0), (1, 2.0), (3, 4.0), (0, 0.0)])
        assert np.array_equal(v.to_array(), [0.0, 2.0, 0.0, 4.0, 0.0])
        assert v.value_count == 2

    def test_clear_range(self):
        v = SparseVectorStorage.of_enumerable([1.0, 2.0, 3.0, 4.0, 5.0])
        v.clear_range(1, 3)
        assert np.array_equal(v.to_array(), [1.0, 0.0, 0.0, 0.0, 5.0])
        with pytest.raises(IndexOutOfRangeError):
            v.clear_range(3, 5)


@pytest.mark.parametrize("cls", LAYOUTS)
def test_constructors(cls, kind):
    assert np.array_equal(cls.of_value(3, 2, kind).to_array(), [2, 2, 2])
    assert np.array_equal(cls.of_init(4, lambda i: i * i, kind).to_array(), [0, 1, 4, 9])
    v = cls.of_enumerable([0, 1, 0, 2], kind)
    assert v.dtype == v.scalar.dtype
    assert np.array_equal(v.to_array(), [0, 1, 0, 2])
    assert np.array_equal(cls.of_vector(v).to_array(), [0, 1, 0, 2])


@pytest.mark.parametrize("src_cls", LAYOUTS)
@pytest.mark.parametrize("dst_cls", LAYOUTS)
def test_copy_to(src_cls, dst_cls):
    src = src_cls.of_enumerable([1.0, 0.0, 3.0])
    dst = dst_cls.of_enumerable([9.0, 9.0, 9.0])
    src.copy_to(dst)
    assert np.array_equal(dst.to_array(), [1.0, 0.0, 3.0])
    assert src == dst
    with pytest.raises(DimensionError):
        src.copy_to(dst_cls(4))


@pytest.mark.parametrize("src_cls", LAYOUTS)
@pytest.mark.parametrize("dst_cls", LAYOUTS)
def test_copy_sub_vector(src_cls, dst_cls):
    src = src_cls.of_enumerable([1.0, 0.0, 3.0, 4.0, 5.0])
    dst = dst_cls.of_enumerable([9.0, 9.0, 9.0, 9.0])
    src.copy_sub_vector_to(dst, 1, 0, 3)
    assert np.array_equal(dst.to_array(), [0.0, 3.0, 4.0, 9.0])
    with pytest.raises(IndexOutOfRangeError):
        src.copy_sub_vector_to(dst, 3, 0, 3)


def test_copy_sub_vector_assume_zeros_keeps_target():
    src = DenseVectorStorage.of_enumerable([0.0, 2.0])
    dst = SparseVectorStorage.of_enumerable([7.0, 7.0, 7.0])
    src.copy_sub_vector_to(dst, 0, 1, 2, ExistingData.ASSUME_ZEROS)
    assert np.array_equal(dst.to_array(), [7.0, 7.0, 2.0])


@pytest.mark.parametrize("cls", LAYOUTS)
def test_enumeration_and_find(cls):
    v = cls.of_enumerable([0.0, 5.0, 0.0, -1.0])
    assert [float(x) for x in v.enumerate()] == [0.0, 5.0, 0.0, -1.0]
    assert [(i, float(x)) for i, x in v.enumerate_non_zero_indexed()] == [(1, 5.0), (3, -1.0)]
    assert v.find(lambda x: x < 0)[0] == 3
    assert v.find(lambda x: x > 10) is None
    assert v.find(lambda x: x == 0, ZeroPolicy.INCLUDE)[0] == 0


def test_equality_across_layouts():
    a = DenseVectorStorage.of_enumerable([1.0, 0.0, 2.0])
    b = SparseVectorStorage.of_enumerable([1.0, 0.0, 2.0])
    c = SparseVectorStorage.of_enumerable([1.0, 0.0, 3.0])
    assert a == b
    assert b != c
    assert a != DenseVectorStorage(4)
