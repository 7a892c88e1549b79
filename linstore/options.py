# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""Option enums shared by the storage, combinator and factorization layers."""

from enum import Enum


class ZeroPolicy(Enum):
    """
    INCLUDE sends every position, implicit sparse zeros included, through
    the function. ALLOW_SKIP lets an implementation skip implicit zeros
    when the function maps zero to zero.
    """

    INCLUDE = "include"
    ALLOW_SKIP = "allow_skip"


class ExistingData(Enum):
    """What a copy or map may assume about the target's current contents."""

    CLEAR = "clear"
    ASSUME_ZEROS = "assume_zeros"


class QRMethod(Enum):
    FULL = "full"
    THIN = "thin"


class Symmetricity(Enum):
    UNKNOWN = "unknown"
    SYMMETRIC = "symmetric"
    HERMITIAN = "hermitian"
    ASYMMETRIC = "asymmetric"
