# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import pytest

from linstore.exceptions import (
    ConvergenceError,
    DimensionError,
    IndexOutOfRangeError,
    InvalidOperationError,
    LinstoreError,
    NotPositiveDefiniteError,
    NotSquareError,
    NotSupportedError,
    NumericalError,
    RankDeficientError,
    ValidationError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls, builtin",
        [
            (ValidationError, ValueError),
            (DimensionError, ValueError),
            (NotSquareError, ValueError),
            (IndexOutOfRangeError, IndexError),
            (NumericalError, ArithmeticError),
            (NotPositiveDefiniteError, ArithmeticError),
            (RankDeficientError, ArithmeticError),
            (ConvergenceError, ArithmeticError),
            (NotSupportedError, NotImplementedError),
            (InvalidOperationError, RuntimeError),
        ],
    )
    def test_builtin_base(self, cls, builtin):
        assert issubclass(cls, LinstoreError)
        assert issubclass(cls, builtin)

    def test_usage_and_numerical_branches_are_separate(self):
        assert not issubclass(NumericalError, ValidationError)
        assert not issubclass(DimensionError, NumericalError)
        assert issubclass(NotSquareError, DimensionError)


class TestAttributes:
    def test_dimension_error(self):
        err = DimensionError("bad", expected=(2, 2), actual=(2, 3))
        assert str(err) == "bad"
        assert err.expected == (2, 2)
        assert err.actual == (2, 3)

    def test_index_error(self):
        err = IndexOutOfRangeError("off-diagonal", row=0, column=1)
        assert (err.row, err.column) == (0, 1)

    def test_not_positive_definite(self):
        with pytest.raises(NumericalError) as info:
            raise NotPositiveDefiniteError("Matrix must be positive definite.", pivot_index=3)
        assert info.value.pivot_index == 3

    def test_convergence(self):
        err = ConvergenceError("stuck", iterations=1000, max_iterations=1000)
        assert err.iterations == err.max_iterations == 1000

    def test_rank_deficient(self):
        assert RankDeficientError("dependent", column=2).column == 2
