#!/usr/bin/python3
# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Timing report: provider (dense) and generic (sparse-backed) factorizations
against numpy.

    python -m linstore.benchmark

`residual` is the infinity norm of the reconstruction error, e.g.
||L L^H - A|| for Cholesky.
"""

import logging
import time
from typing import Iterable, Tuple

import numpy as np
import pandas as pd

from .builder import MatrixBuilder

logger = logging.getLogger(__name__)

REPEATS = 3  # best of 3 runs
SIZES = (8, 16, 32)
COLUMNS = ["kernel", "size", "sec", "sec/numpy", "residual"]


def wall(f, *args, **kwargs):
    t0 = time.perf_counter()
    f(*args, **kwargs)
    return time.perf_counter() - t0


def best(f, repeats: int) -> float:
    return min(wall(f) for _ in range(repeats))


def _residual(A: np.ndarray, approx: np.ndarray) -> float:
    return float(np.linalg.norm(approx - A, np.inf))


def _layouts(A: np.ndarray) -> Iterable[Tuple[str, object]]:
    M = MatrixBuilder("real64")
    yield "dense", M.dense_of_array(A)
    yield "sparse", M.sparse_of_array(A)


def run(sizes: Iterable[int] = SIZES, repeats: int = REPEATS, seed: int = 0) -> pd.DataFrame:
    """
    Time Cholesky, Householder QR and SVD for each size.

    Returns
    -------
    pandas.DataFrame
        One row per (kernel, size) with columns kernel, size, sec,
        sec/numpy and residual.
    """
    rng = np.random.default_rng(seed)
    records = []
    for n in sizes:
        G = rng.standard_normal((n, n))
        spd = G @ G.T + n * np.eye(n)
        A = rng.standard_normal((n + n // 2, n))
        size = f"{n}x{n}"
        tall = f"{A.shape[0]}x{n}"

        t_np = best(lambda: np.linalg.cholesky(spd), repeats)
        for layout, m in _layouts(spd):
            t = best(m.cholesky, repeats)
            L = m.cholesky().factor.to_array()
            records.append((f"cholesky-{layout}", size, t, t / t_np, _residual(spd, L @ L.T)))

        t_np = best(lambda: np.linalg.qr(A), repeats)
        for layout, m in _layouts(A):
            t = best(m.qr, repeats)
            qr = m.qr()
            records.append((f"qr-{layout}", tall, t, t / t_np, _residual(A, qr.q.to_array() @ qr.r.to_array())))

        t_np = best(lambda: np.linalg.svd(A), repeats)
        for layout, m in _layouts(A):
            t = best(m.svd, repeats)
            svd = m.svd()
            approx = svd.u.to_array() @ svd.w.to_array() @ svd.vt.to_array()
            records.append((f"svd-{layout}", tall, t, t / t_np, _residual(A, approx)))

        logger.debug("benchmark: size %d done", n)

    return pd.DataFrame(records, columns=COLUMNS)


def main() -> None:
    df = run()
    print(df.to_string(index=False))


if __name__ == "__main__":
    main()
