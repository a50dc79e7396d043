"""
_backend.py
===========
Backend detection and selection for phylodex.

This module detects available execution backends (numpy reference, and
LLVM-compiled kernels via numba) and provides functions to query and select
the best backend.

Functions in this module have NO side effects - they only query system state.
Logging is done by the calling code, not here.
"""

from typing import List, Optional, Tuple


# ============================================================================ #
# Backend Detection (No Side Effects)
# ============================================================================ #


def check_numba_available() -> bool:
    """
    Check if numba is available for compiled kernels.

    Returns
    -------
    bool
        True if numba can be imported, False otherwise.
    """
    try:
        import numba  # noqa: F401

        return True
    except ImportError:
        return False


def get_available_backends() -> List[str]:
    """
    Get list of available execution backends.

    Returns
    -------
    list[str]
        Available backends in preference order.
        Always includes 'python'.
        Includes 'cpu-parallel' if numba and the compiled kernels import.

    Examples
    --------
    >>> get_available_backends()
    ['python']  # No numba installed

    >>> get_available_backends()
    ['python', 'cpu-parallel']
    """
    backends = ["python"]
    if check_numba_available() and import_cpu_kernels()[0]:
        backends.append("cpu-parallel")
    return backends


def get_best_backend() -> str:
    """
    Get the most optimized available backend.

    Returns
    -------
    str
        'cpu-parallel' if available, otherwise 'python'.
    """
    return get_available_backends()[-1]


def resolve_backend(backend: str) -> str:
    """
    Resolve a requested backend name to an actual backend.

    Parameters
    ----------
    backend : str
        Requested backend:
        - 'best': Use the best available backend
        - 'python', 'cpu-parallel': Use specific backend

    Returns
    -------
    str
        Resolved backend name.

    Raises
    ------
    ValueError
        If requested backend is not available.
    """
    if backend == "best":
        return get_best_backend()

    available = get_available_backends()
    if backend not in available:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(available)}"
        )
    return backend


# ============================================================================ #
# Kernel Import Helpers
# ============================================================================ #


def import_cpu_kernels() -> Tuple[
    bool, Optional[object], Optional[object], Optional[object]
]:
    """
    Try to import CPU kernels from the _cpu_kernels module.

    Returns
    -------
    tuple
        (success, range_kernel, subtree_sum_kernel, distinctiveness_kernel)
        - success: Whether import succeeded
        - range_kernel: _node_range_njit function or None
        - subtree_sum_kernel: _subtree_sum_njit function or None
        - distinctiveness_kernel: _distinctiveness_njit function or None
    """
    try:
        from phylodex._cpu_kernels import (
            _node_range_njit,
            _subtree_sum_njit,
            _distinctiveness_njit,
        )

        return (True, _node_range_njit, _subtree_sum_njit, _distinctiveness_njit)
    except ImportError:
        return (False, None, None, None)


# ============================================================================ #
# Module-Level State Query (Read-Only)
# ============================================================================ #


def get_backend_info() -> dict:
    """
    Get comprehensive backend information.

    Returns
    -------
    dict
        Dictionary with keys:
        - 'numba_available': bool
        - 'backends': list[str]
        - 'best_backend': str
        - 'cpu_kernels_available': bool

    Examples
    --------
    >>> info = get_backend_info()
    >>> info['backends']
    ['python', 'cpu-parallel']
    """
    cpu_kernels_ok = import_cpu_kernels()[0]
    return {
        "numba_available": check_numba_available(),
        "backends": get_available_backends(),
        "best_backend": get_best_backend(),
        "cpu_kernels_available": cpu_kernels_ok,
    }
