"""
_context.py
===========
Context managers for phylodex.

Runtime configuration lives here rather than in constructor flags: which
loggers speak, which warnings surface, and which backend new calculators
pick up.  Every manager restores the previous state in a ``finally``
clause.
"""

import logging
import warnings
from contextlib import contextmanager
from typing import Optional, Type

from phylodex._backend import resolve_backend

# Name passed to the innermost active use_backend(), or None
_backend_override = None


# ============================================================================ #
# Logging Context Managers
# ============================================================================ #


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Set one logger's level for the duration of a with-block.

    Parameters
    ----------
    logger_name : str
        Dotted logger name, e.g. ``'phylodex._basedata'`` to hide the table
        statistics while leaving trimming and range messages alone.
    level : int, default logging.CRITICAL
        Level held while the block runs.

    Examples
    --------
    >>> import logging
    >>> from phylodex import BaseData
    >>> before = logging.getLogger('phylodex._logging').level
    >>> with suppress_logger('phylodex._logging'):
    ...     bd = BaseData({'g1': {'A': 1}})
    >>> logging.getLogger('phylodex._logging').level == before
    True

    Notes
    -----
    The previous level is put back in a ``finally`` clause, so nested blocks
    and blocks that raise both leave the logger as they found it.
    """
    logger = logging.getLogger(logger_name)
    original_level = logger.level

    try:
        logger.setLevel(level)
        yield
    finally:
        logger.setLevel(original_level)


@contextmanager
def quiet(level: int = logging.CRITICAL):
    """
    Temporarily suppress all phylodex logging.

    Every module logger lives under the ``phylodex`` package logger, so
    raising that one level silences them all.

    Parameters
    ----------
    level : int, default logging.CRITICAL
        Temporary logging level for the package logger.

    Yields
    ------
    None

    Examples
    --------
    >>> from phylodex import PhyloCalculator
    >>> with quiet():
    ...     calc = PhyloCalculator('(A:1,B:2)r;', {'g1': {'A': 1, 'Q': 1}})
    >>> # Show only warnings, such as labels missing from the tree
    >>> with quiet(logging.WARNING):
    ...     calc.calculate(['calc_pd'], ['g1'])['PD']
    1.0
    """
    with suppress_logger("phylodex", level):
        yield


# ============================================================================ #
# Warning Context Managers
# ============================================================================ #


@contextmanager
def suppress_warnings(category: Optional[Type[Warning]] = None):
    """
    Ignore warnings of one category (or all) inside a with-block.

    Parameters
    ----------
    category : Type[Warning] or None, default None
        Category to ignore; ``None`` ignores everything.  phylodex issues
        :class:`InconsistentSubtreeWarning` when labels name internal nodes,
        and numba may issue ``NumbaPerformanceWarning`` on first compile.

    Examples
    --------
    >>> import warnings
    >>> from phylodex import InconsistentSubtreeWarning
    >>> with warnings.catch_warnings(record=True) as caught:
    ...     warnings.simplefilter('always')
    ...     with suppress_warnings(InconsistentSubtreeWarning):
    ...         warnings.warn('label is internal', InconsistentSubtreeWarning)
    >>> caught
    []

    Notes
    -----
    Built on ``warnings.catch_warnings()``, so the filter list is restored
    on exit.
    """
    with warnings.catch_warnings():
        if category is None:
            warnings.simplefilter("ignore")
        else:
            warnings.filterwarnings("ignore", category=category)
        yield


# ============================================================================ #
# Backend Context Managers
# ============================================================================ #


@contextmanager
def use_backend(backend: str):
    """
    Make calculators built inside the with-block use *backend*.

    The override wins over the ``backend=`` argument of
    :class:`PhyloCalculator`.  It is read once, at construction, so a
    calculator keeps its backend after the block exits.

    Parameters
    ----------
    backend : str
        ``'python'`` (numpy reference), ``'cpu-parallel'`` (numba kernels)
        or ``'best'``.

    Yields
    ------
    None

    Raises
    ------
    ValueError
        If *backend* is not one of :func:`get_available_backends`.

    Examples
    --------
    >>> from phylodex import PhyloCalculator
    >>> with use_backend('python'):
    ...     calc = PhyloCalculator('(A:1,B:2)r;', {'g1': {'A': 1}})
    >>> calc.backend
    'python'

    Notes
    -----
    The override is module state and is shared by every thread.  Pass
    ``backend=`` to the constructor when calculators are built concurrently.
    """
    global _backend_override

    # validate before touching the override so a bad name leaves it alone
    resolve_backend(backend)

    previous = _backend_override
    _backend_override = backend
    try:
        yield
    finally:
        _backend_override = previous


def get_backend_override() -> Optional[str]:
    """
    Name set by the innermost active :func:`use_backend`, or ``None``.

    Examples
    --------
    >>> get_backend_override() is None
    True
    >>> with use_backend('python'):
    ...     print(get_backend_override())
    python
    """
    return _backend_override


# ============================================================================ #
# Combined Context Managers
# ============================================================================ #


@contextmanager
def silent_benchmark(backend: str = "best"):
    """
    Run with *backend* forced and no phylodex log output or warnings.

    Examples
    --------
    Timing each backend on the same inputs (illustrative; timings vary)::

        for backend in get_available_backends():
            with silent_benchmark(backend):
                start = time.perf_counter()
                PhyloCalculator(tree, basedata).node_ranges
                print(f"{backend}: {time.perf_counter() - start:.3f}s")
    """
    with quiet():
        with use_backend(backend):
            with suppress_warnings():
                yield
