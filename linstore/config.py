# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Runtime configuration.

A single module-level `Control` instance holds the parallel-execution
and provider settings. Values can be changed globally, or per thread
with the `Control.local(...)` context manager:

>>> from linstore.config import Control, ParallelConfig
>>> with Control.local(parallel=ParallelConfig(max_degree_of_parallelism=1)):
...     pass

Two environment variables, ``LINSTORE_MAX_WORKERS`` and
``LINSTORE_PROVIDER``, are applied at import and again by every
`Control.reset()`.
"""

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass
class ParallelConfig:
    """Fork-join settings for bulk element loops."""

    max_degree_of_parallelism: int = os.cpu_count() or 1
    parallelize_elements: int = 4096  # grain below which loops run inline


@dataclass
class ProviderConfig:
    """Which linear-algebra provider dense factorizations delegate to."""

    name: str = "managed"


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return None
    if value < 1:
        logger.warning("Ignoring %s=%r: must be >= 1", name, raw)
        return None
    return value


class LinstoreControl:
    """Global settings with thread-local overrides."""

    def __init__(self):
        self._local = threading.local()
        self.reset()

    def reset(self) -> None:
        """Restore defaults, then apply environment overrides."""
        self._global_parallel = ParallelConfig()
        self._global_provider = ProviderConfig()

        workers = _env_int("LINSTORE_MAX_WORKERS")
        if workers is not None:
            self._global_parallel.max_degree_of_parallelism = workers
        provider = os.environ.get("LINSTORE_PROVIDER")
        if provider:
            self._global_provider.name = provider.strip().lower()

    @property
    def parallel(self) -> ParallelConfig:
        local = getattr(self._local, "parallel", None)
        return local if local is not None else self._global_parallel

    @parallel.setter
    def parallel(self, value: ParallelConfig) -> None:
        self._global_parallel = value

    @property
    def provider(self) -> ProviderConfig:
        local = getattr(self._local, "provider", None)
        return local if local is not None else self._global_provider

    @provider.setter
    def provider(self, value: ProviderConfig) -> None:
        self._global_provider = value

    @property
    def max_degree_of_parallelism(self) -> int:
        return self.parallel.max_degree_of_parallelism

    def use_single_thread(self) -> None:
        self._global_parallel = replace(self._global_parallel, max_degree_of_parallelism=1)

    def use_multi_threading(self) -> None:
        self._global_parallel = replace(
            self._global_parallel, max_degree_of_parallelism=os.cpu_count() or 1
        )

    @contextmanager
    def local(
        self,
        parallel: Optional[ParallelConfig] = None,
        provider: Optional[ProviderConfig] = None,
    ) -> Iterator["LinstoreControl"]:
        """Override settings for the current thread inside a `with` block."""
        previous = (
            getattr(self._local, "parallel", None),
            getattr(self._local, "provider", None),
        )
        if parallel is not None:
            self._local.parallel = parallel
        if provider is not None:
            self._local.provider = provider
        try:
            yield self
        finally:
            self._local.parallel, self._local.provider = previous


Control = LinstoreControl()
