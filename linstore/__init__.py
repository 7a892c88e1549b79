# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
linstore
========

Dense and sparse matrix storage with the factorizations that run on top
of it.

Public API
~~~~~~~~~~
- Building matrices and vectors
    - `MatrixBuilder`, `VectorBuilder`, `Matrix`, `Vector`
- Storage layouts
    - `DenseColumnMajorMatrixStorage`, `SparseCompressedRowMatrixStorage`,
      `DiagonalMatrixStorage`, `SymmetricPackedUpperMatrixStorage`,
      `KnuthLinkedMatrixStorage`, `DenseVectorStorage`, `SparseVectorStorage`
- Factorizations
    - `Cholesky`, `QR`, `GramSchmidt`, `Svd`, `Evd`
- Runtime settings
    - `Control`, `get_provider`, `register_provider`, `use_provider`

Everything else lives in sub-modules and is **not** considered part of the
stable interface.

Example
-------
>>> import numpy as np, linstore as ls
>>> A = ls.MatrixBuilder("real64").sparse_of_array(np.array([[4.0, 2.0], [2.0, 3.0]]))
>>> round(float(A.cholesky().determinant), 12)
8.0
"""

from importlib.metadata import version as _pkg_version

from .builder import MatrixBuilder, VectorBuilder
from .cholesky import Cholesky
from .config import Control, ParallelConfig, ProviderConfig
from .evd import Evd
from .exceptions import (
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
from .knuth_storage import KnuthLinkedMatrixStorage
from .matrix import Matrix, Vector
from .matrix_storage import (
    DenseColumnMajorMatrixStorage,
    DiagonalMatrixStorage,
    SparseCompressedRowMatrixStorage,
    SymmetricPackedUpperMatrixStorage,
)
from .options import ExistingData, QRMethod, Symmetricity, ZeroPolicy
from .providers import get_provider, register_provider, use_provider
from .qr import QR, GramSchmidt
from .scalar import ScalarKind
from .svd import Svd
from .vector_storage import DenseVectorStorage, SparseVectorStorage

__all__ = [
    "MatrixBuilder",
    "VectorBuilder",
    "Matrix",
    "Vector",
    "DenseColumnMajorMatrixStorage",
    "SparseCompressedRowMatrixStorage",
    "DiagonalMatrixStorage",
    "SymmetricPackedUpperMatrixStorage",
    "KnuthLinkedMatrixStorage",
    "DenseVectorStorage",
    "SparseVectorStorage",
    "Cholesky",
    "QR",
    "GramSchmidt",
    "Svd",
    "Evd",
    "ScalarKind",
    "ZeroPolicy",
    "ExistingData",
    "QRMethod",
    "Symmetricity",
    "Control",
    "ParallelConfig",
    "ProviderConfig",
    "get_provider",
    "register_provider",
    "use_provider",
    "LinstoreError",
    "ValidationError",
    "DimensionError",
    "NotSquareError",
    "IndexOutOfRangeError",
    "NumericalError",
    "NotPositiveDefiniteError",
    "RankDeficientError",
    "ConvergenceError",
    "NotSupportedError",
    "InvalidOperationError",
]

# ---------------------------------------------------------------------
# Version string (helps "pip show linstore", Sphinx, etc.)
# ---------------------------------------------------------------------
try:  # installed via pip / build backend
    __version__ = _pkg_version(__name__)
except Exception:  # running from a checkout
    __version__ = "0.0.0.dev0"

# ---------------------------------------------------------------------
# Library logging stays silent unless the application configures it.
# ---------------------------------------------------------------------
import logging as _logging

_logging.getLogger(__name__).addHandler(_logging.NullHandler())
