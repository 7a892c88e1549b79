# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Shared shape and bounds checks.

Each function validates one thing and raises immediately; none of them
coerce or fix up their input. Storage classes and factorizations call
these before any mutation starts, so a failed check never leaves a
half-written target behind.
"""

from .exceptions import DimensionError, IndexOutOfRangeError, NotSquareError, ValidationError


def _shape(obj):
    return (obj.row_count, obj.column_count)


def check_positive(value: int, name: str) -> None:
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}")


def check_non_negative(value: int, name: str) -> None:
    if value < 0:
        raise ValidationError(f"{name} must not be negative, got {value}")


def check_index(index: int, length: int, name: str = "index") -> None:
    if index < 0 or index >= length:
        raise IndexOutOfRangeError(f"{name} {index} is outside [0, {length})")


def check_range(row: int, column: int, row_count: int, column_count: int) -> None:
    """Bounds check for a matrix coordinate."""
    if row < 0 or row >= row_count:
        raise IndexOutOfRangeError(
            f"row {row} is outside [0, {row_count})", row=row, column=column
        )
    if column < 0 or column >= column_count:
        raise IndexOutOfRangeError(
            f"column {column} is outside [0, {column_count})", row=row, column=column
        )


def check_same_shape(a, b, name: str = "other") -> None:
    """Both operands must have identical row and column counts."""
    if _shape(a) != _shape(b):
        raise DimensionError(
            f"Matrix dimensions must agree: op1 is {a.row_count}x{a.column_count}, "
            f"{name} is {b.row_count}x{b.column_count}.",
            expected=_shape(a),
            actual=_shape(b),
        )


def check_transposed_shape(a, b, name: str = "target") -> None:
    if (a.row_count, a.column_count) != (b.column_count, b.row_count):
        raise DimensionError(
            f"Matrix dimensions must agree: op1 is {a.row_count}x{a.column_count}, "
            f"{name} is {b.row_count}x{b.column_count}.",
            expected=(a.column_count, a.row_count),
            actual=_shape(b),
        )


def check_same_length(a, b, name: str = "other") -> None:
    if a.length != b.length:
        raise DimensionError(
            f"All vectors must have the same dimensionality: op1 is {a.length}, "
            f"{name} is {b.length}.",
            expected=(a.length,),
            actual=(b.length,),
        )


def check_length(vector, length: int, name: str = "vector") -> None:
    if vector.length != length:
        raise DimensionError(
            f"{name} must have length {length}, got {vector.length}",
            expected=(length,),
            actual=(vector.length,),
        )


def check_square(matrix, name: str = "matrix") -> None:
    if matrix.row_count != matrix.column_count:
        raise NotSquareError(
            f"{name} must be square, got {matrix.row_count}x{matrix.column_count}",
            actual=_shape(matrix),
        )


def check_multiplicable(a, b) -> None:
    if a.column_count != b.row_count:
        raise DimensionError(
            f"Matrix dimensions must agree: op1 is {a.row_count}x{a.column_count}, "
            f"op2 is {b.row_count}x{b.column_count}.",
            expected=(a.column_count, b.column_count),
            actual=_shape(b),
        )


def check_sub_matrix_range(
    source,
    target,
    source_row: int,
    target_row: int,
    row_count: int,
    source_column: int,
    target_column: int,
    column_count: int,
) -> None:
    """All four windows of a sub-matrix copy must fit their storages."""
    check_positive(row_count, "row_count")
    check_positive(column_count, "column_count")
    if source_row < 0 or source_row + row_count > source.row_count:
        raise IndexOutOfRangeError(f"source rows [{source_row}, {source_row + row_count}) out of range")
    if source_column < 0 or source_column + column_count > source.column_count:
        raise IndexOutOfRangeError(
            f"source columns [{source_column}, {source_column + column_count}) out of range"
        )
    if target_row < 0 or target_row + row_count > target.row_count:
        raise IndexOutOfRangeError(f"target rows [{target_row}, {target_row + row_count}) out of range")
    if target_column < 0 or target_column + column_count > target.column_count:
        raise IndexOutOfRangeError(
            f"target columns [{target_column}, {target_column + column_count}) out of range"
        )


def check_sub_vector_range(source, target, source_index: int, target_index: int, count: int) -> None:
    check_positive(count, "count")
    if source_index < 0 or source_index + count > source.length:
        raise IndexOutOfRangeError(f"source range [{source_index}, {source_index + count}) out of range")
    if target_index < 0 or target_index + count > target.length:
        raise IndexOutOfRangeError(f"target range [{target_index}, {target_index + count}) out of range")


def check_solve_dimensions(
    order_rows: int, order_columns: int, input_rows: int, result_shape=None, input_columns: int = 1
) -> None:
    """
    Shape rules for X = A \\ B.

    Parameters
    ----------
    order_rows, order_columns : int
        Shape of the factored matrix A.
    input_rows : int
        Rows of B; must equal the rows of A.
    result_shape : tuple | None
        (rows, columns) of a caller-supplied X, must be
        (order_columns, input_columns).
    input_columns : int
        Columns of B (1 for a vector).
    """
    if input_rows != order_rows:
        raise DimensionError(
            f"Matrix row dimensions must agree: factor has {order_rows} rows, "
            f"input has {input_rows}.",
            expected=(order_rows,),
            actual=(input_rows,),
        )
    if result_shape is not None and tuple(result_shape) != (order_columns, input_columns):
        raise DimensionError(
            f"Result must be {order_columns}x{input_columns}, got "
            f"{result_shape[0]}x{result_shape[1]}.",
            expected=(order_columns, input_columns),
            actual=tuple(result_shape),
        )
