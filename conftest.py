"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Custom marks
------------
large_scale
    Applied to tests that build trees or basedata tables large enough to
    take several seconds on a single CPU core.  Opt in with ``-m large_scale``.

    Registration here suppresses PytestUnknownMarkWarning and makes the mark
    visible in ``pytest --markers``.

Warning filters
---------------
NumbaPerformanceWarning messages are filtered out during tests.  The small
test trees leave the parallel kernels under-utilised, which says nothing
about correctness.
"""

import pytest
import warnings


def pytest_configure(config):
    """
    Configure pytest before test collection begins.

    This runs before any test modules are imported, so the filter is in
    place before the numba kernels compile.
    """
    config.addinivalue_line(
        "markers",
        "large_scale: tests on large trees or many groups "
        "(slow, opt in with -m large_scale)",
    )

    # Must happen before any kernels are compiled
    try:
        from numba.core.errors import NumbaPerformanceWarning
        warnings.filterwarnings('ignore', category=NumbaPerformanceWarning)
    except ImportError:
        # Numba not available, no warnings to suppress
        pass


def pytest_unconfigure(config):
    """Restore default warning behavior."""
    warnings.resetwarnings()
