"""
tests/test_context.py
=====================
Tests for the context managers and backend queries.

Each context manager must restore the state it changed on exit, including
when the with-block raises.
"""

import logging
import os
import sys
import warnings

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from phylodex import (
    InconsistentSubtreeWarning,
    PhyloCalculator,
    get_available_backends,
    get_backend_info,
    quiet,
    silent_benchmark,
    suppress_logger,
    suppress_warnings,
    use_backend,
)
from phylodex._backend import get_best_backend, resolve_backend
from phylodex._context import get_backend_override


class TestLoggingContexts:
    def test_suppress_logger_restores_level(self):
        logger = logging.getLogger("phylodex._basedata")
        before = logger.level
        with suppress_logger("phylodex._basedata", logging.ERROR):
            assert logger.level == logging.ERROR
        assert logger.level == before

    def test_suppress_logger_restores_on_error(self):
        logger = logging.getLogger("phylodex._basedata")
        before = logger.level
        with pytest.raises(RuntimeError):
            with suppress_logger("phylodex._basedata"):
                raise RuntimeError("boom")
        assert logger.level == before

    def test_quiet_targets_package_logger(self):
        before = logging.getLogger("phylodex").level
        with quiet():
            assert logging.getLogger("phylodex").level == logging.CRITICAL
        assert logging.getLogger("phylodex").level == before

    def test_quiet_silences_warnings_too(self, caplog):
        with caplog.at_level(logging.INFO):
            with quiet():
                PhyloCalculator("(A:1,B:1)r;", {"g1": {"A": 1, "Q": 1}}).labels_not_on_tree
        assert not [r for r in caplog.records if r.name.startswith("phylodex")]


class TestWarningContexts:
    def test_suppress_category(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            with suppress_warnings(InconsistentSubtreeWarning):
                warnings.warn("hidden", InconsistentSubtreeWarning)
                warnings.warn("shown", UserWarning)
        assert [str(w.message) for w in caught] == ["shown"]

    def test_suppress_all(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            with suppress_warnings():
                warnings.warn("hidden", UserWarning)
        assert caught == []


class TestBackendContexts:
    def test_use_backend_sets_and_restores(self):
        assert get_backend_override() is None
        with use_backend("python"):
            assert get_backend_override() == "python"
        assert get_backend_override() is None

    def test_use_backend_nested(self):
        with use_backend("python"):
            with use_backend("best"):
                assert get_backend_override() == "best"
            assert get_backend_override() == "python"

    def test_use_backend_invalid(self):
        with pytest.raises(ValueError, match="not available"):
            with use_backend("gpu"):
                pass
        assert get_backend_override() is None

    def test_invalid_inside_valid_keeps_outer(self):
        with use_backend("python"):
            with pytest.raises(ValueError, match="not available"):
                with use_backend("gpu"):
                    pass
            assert get_backend_override() == "python"

    def test_override_beats_argument(self):
        with use_backend("python"):
            calc = PhyloCalculator("(A:1,B:1)r;", {"g1": {"A": 1}}, backend="best")
        assert calc.backend == "python"

    def test_silent_benchmark(self, caplog):
        with caplog.at_level(logging.INFO):
            with silent_benchmark("python"):
                assert get_backend_override() == "python"
                warnings.warn("hidden", InconsistentSubtreeWarning)
                PhyloCalculator("(A:1,B:1)r;", {"g1": {"A": 1}})
        assert get_backend_override() is None
        assert not [r for r in caplog.records if r.name.startswith("phylodex")]


class TestBackendQueries:
    def test_python_always_available(self):
        assert get_available_backends()[0] == "python"

    def test_best_is_last(self):
        assert get_best_backend() == get_available_backends()[-1]

    def test_resolve(self):
        assert resolve_backend("best") == get_best_backend()
        assert resolve_backend("python") == "python"
        with pytest.raises(ValueError, match="not available"):
            resolve_backend("gpu")

    def test_backend_info(self):
        info = get_backend_info()
        assert set(info) == {
            "numba_available",
            "backends",
            "best_backend",
            "cpu_kernels_available",
        }
        assert info["backends"] == get_available_backends()
        if info["cpu_kernels_available"]:
            assert "cpu-parallel" in info["backends"]
