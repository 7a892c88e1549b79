# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import os
import threading

from linstore.config import Control, LinstoreControl, ParallelConfig, ProviderConfig


def test_defaults():
    control = LinstoreControl()
    assert control.provider.name == "managed"
    assert control.max_degree_of_parallelism >= 1
    assert control.parallel.parallelize_elements == 4096


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LINSTORE_MAX_WORKERS", "3")
    monkeypatch.setenv("LINSTORE_PROVIDER", " Custom ")
    control = LinstoreControl()
    assert control.max_degree_of_parallelism == 3
    assert control.provider.name == "custom"


def test_bad_environment_is_ignored(monkeypatch, caplog):
    monkeypatch.setenv("LINSTORE_MAX_WORKERS", "many")
    control = LinstoreControl()
    assert control.max_degree_of_parallelism == (os.cpu_count() or 1)
    assert "LINSTORE_MAX_WORKERS" in caplog.text

    monkeypatch.setenv("LINSTORE_MAX_WORKERS", "0")
    control.reset()
    assert control.max_degree_of_parallelism == (os.cpu_count() or 1)


def test_single_and_multi_threading():
    Control.use_single_thread()
    assert Control.max_degree_of_parallelism == 1
    Control.use_multi_threading()
    assert Control.max_degree_of_parallelism == (os.cpu_count() or 1)


def test_local_override_is_per_thread():
    seen = {}

    def worker():
        seen["other"] = Control.max_degree_of_parallelism

    with Control.local(parallel=ParallelConfig(max_degree_of_parallelism=1), provider=ProviderConfig("x")):
        assert Control.max_degree_of_parallelism == 1
        assert Control.provider.name == "x"
        t = threading.Thread(target=worker)
        t.start()
        t.join()

    assert seen["other"] == (os.cpu_count() or 1)
    assert Control.provider.name == "managed"


def test_local_restores_after_error():
    try:
        with Control.local(parallel=ParallelConfig(max_degree_of_parallelism=2)):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert Control.parallel is not None
    assert Control.max_degree_of_parallelism == (os.cpu_count() or 1)


def test_reset_rereads_environment(monkeypatch):
    monkeypatch.delenv("LINSTORE_MAX_WORKERS", raising=False)
    control = LinstoreControl()
    monkeypatch.setenv("LINSTORE_MAX_WORKERS", "2")
    assert control.max_degree_of_parallelism == (os.cpu_count() or 1)
    control.reset()
    assert control.max_degree_of_parallelism == 2
