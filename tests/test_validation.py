# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import pytest

from linstore.exceptions import DimensionError, IndexOutOfRangeError, NotSquareError, ValidationError
from linstore.matrix_storage import DenseColumnMajorMatrixStorage
from linstore.validation import (
    check_index,
    check_multiplicable,
    check_non_negative,
    check_positive,
    check_range,
    check_same_length,
    check_same_shape,
    check_solve_dimensions,
    check_square,
    check_sub_matrix_range,
    check_sub_vector_range,
    check_transposed_shape,
)
from linstore.vector_storage import DenseVectorStorage


def m(rows, cols):
    return DenseColumnMajorMatrixStorage(rows, cols)


def test_counts():
    check_positive(1, "n")
    check_non_negative(0, "n")
    with pytest.raises(ValidationError, match="n must be positive"):
        check_positive(0, "n")
    with pytest.raises(ValidationError):
        check_non_negative(-1, "n")


def test_indices():
    check_index(2, 3)
    check_range(1, 2, 2, 3)
    with pytest.raises(IndexOutOfRangeError):
        check_index(3, 3)
    with pytest.raises(IndexOutOfRangeError) as info:
        check_range(0, 3, 2, 3)
    assert (info.value.row, info.value.column) == (0, 3)


def test_shapes():
    check_same_shape(m(2, 3), m(2, 3))
    check_transposed_shape(m(2, 3), m(3, 2))
    check_multiplicable(m(2, 3), m(3, 4))
    with pytest.raises(DimensionError, match="Matrix dimensions must agree"):
        check_same_shape(m(2, 3), m(3, 2))
    with pytest.raises(DimensionError):
        check_transposed_shape(m(2, 3), m(2, 3))
    with pytest.raises(DimensionError) as info:
        check_multiplicable(m(2, 3), m(2, 3))
    assert info.value.actual == (2, 3)


def test_square():
    check_square(m(2, 2))
    with pytest.raises(NotSquareError):
        check_square(m(2, 3))


def test_lengths():
    check_same_length(DenseVectorStorage(3), DenseVectorStorage(3))
    with pytest.raises(DimensionError, match="same dimensionality"):
        check_same_length(DenseVectorStorage(3), DenseVectorStorage(4))


def test_sub_ranges():
    check_sub_matrix_range(m(4, 4), m(2, 2), 2, 0, 2, 2, 0, 2)
    with pytest.raises(IndexOutOfRangeError):
        check_sub_matrix_range(m(4, 4), m(2, 2), 3, 0, 2, 0, 0, 2)
    with pytest.raises(ValidationError):
        check_sub_matrix_range(m(4, 4), m(2, 2), 0, 0, 0, 0, 0, 2)
    check_sub_vector_range(DenseVectorStorage(5), DenseVectorStorage(3), 2, 0, 3)
    with pytest.raises(IndexOutOfRangeError):
        check_sub_vector_range(DenseVectorStorage(5), DenseVectorStorage(3), 2, 1, 3)


def test_solve_dimensions():
    check_solve_dimensions(4, 3, 4, (3, 2), 2)
    with pytest.raises(DimensionError):
        check_solve_dimensions(4, 3, 3)
    with pytest.raises(DimensionError):
        check_solve_dimensions(4, 3, 4, (4, 2), 2)
