"""
_logging.py
===========
Logging functions for phylodex.

All functions in this module have NO side effects except logging. They take
computed data as parameters and format/emit log messages.

This separation ensures:
- Logging can be easily disabled/mocked in tests
- Computation is separate from presentation
"""

import logging
from typing import List, Sequence


logger = logging.getLogger(__name__)


# ============================================================================ #
# System and Backend Logging (called at module import time)
# ============================================================================ #


def log_optimization_status(numba_available: bool) -> None:
    """
    Log system capabilities and optimization library availability at INFO level.

    Called once at module import time. Reports CPU count, memory, numba version
    (if available), LLVM info, and threading configuration.

    Parameters
    ----------
    numba_available : bool
        Whether numba was successfully imported.
    """
    import os
    import platform

    cpu_count = os.cpu_count() or 1
    logger.info(
        f"System: {platform.machine()} ({platform.system()}), "
        f"{cpu_count} CPU cores, Python {platform.python_version()}"
    )

    # Memory info (optional psutil)
    try:
        import psutil

        mem = psutil.virtual_memory()
        logger.info(
            f"Memory: {mem.total / (1024**3):.1f} GB total, "
            f"{mem.available / (1024**3):.1f} GB available"
        )
    except ImportError:
        pass  # psutil not required

    if numba_available:
        import numba

        logger.info(f"Numba {numba.__version__} loaded successfully")

        try:
            import llvmlite

            logger.info(f"LLVM backend: llvmlite {llvmlite.__version__}")
        except (ImportError, AttributeError):
            pass

        try:
            num_threads = numba.get_num_threads()
            logger.info(f"Numba threading: {num_threads} threads available")
        except Exception:
            pass  # Threading info unavailable in some configs
    else:
        logger.info("Numba not installed, tree kernels will run on numpy only")
        logger.info("Install numba for faster range and distinctiveness builds")


def install_numba_warning_filter(numba_available: bool) -> None:
    """
    Capture NumbaPerformanceWarning and route it through our logger.

    numba issues performance warnings (e.g. "parallel=True but no prange
    found") via Python's warnings module. This filter intercepts them and logs
    them at WARNING level so they appear in the same stream as other phylodex
    diagnostics.

    Parameters
    ----------
    numba_available : bool
        Whether numba was successfully imported.
    """
    import warnings

    if not numba_available:
        return

    try:
        from numba.core.errors import NumbaPerformanceWarning
    except ImportError:
        return

    original_showwarning = warnings.showwarning

    def custom_showwarning(message, category, filename, lineno, file=None, line=None):
        if issubclass(category, NumbaPerformanceWarning):
            logger.warning(f"Numba performance issue: {message}")
            logger.warning(f"  at {filename}:{lineno}")
            return
        original_showwarning(message, category, filename, lineno, file, line)

    warnings.showwarning = custom_showwarning


def log_backend_availability(backends_available: List[str]) -> None:
    """
    Log which execution backends are available for the tree kernels.

    Parameters
    ----------
    backends_available : List[str]
        Available backends in preference order (e.g. ['python', 'cpu-parallel']).
    """
    logger.info(f"Available backends: {', '.join(backends_available)}")

    if "cpu-parallel" in backends_available:
        logger.info("  cpu-parallel: LLVM-compiled kernels (numba.njit + prange)")
    if "python" in backends_available:
        logger.info("  python: numpy reference implementation")

    best = backends_available[-1]
    logger.info(f"Default backend='best' will use: {best}")


# ============================================================================ #
# Data Logging (called during construction of tables and indexes)
# ============================================================================ #


def log_basedata_statistics(
    n_groups: int,
    n_labels: int,
    n_records: int,
    labels_per_group_mean: float,
    groups_per_label_mean: float,
) -> None:
    """
    Log the size and overlap of an abundance table.

    Parameters
    ----------
    n_groups : int
        Number of groups (sampling units).
    n_labels : int
        Number of distinct labels.
    n_records : int
        Number of (group, label) observations.
    labels_per_group_mean : float
        Average richness per group.
    groups_per_label_mean : float
        Average range per label.
    """
    logger.info(
        f"Basedata built: {n_groups} groups, {n_labels} labels, "
        f"{n_records} group/label records"
    )
    logger.info(
        f"Label overlap: {labels_per_group_mean:.1f} labels/group (avg), "
        f"{groups_per_label_mean:.1f} groups/label (avg)"
    )
    if n_groups == 0:
        logger.warning("Basedata has no groups; every index will be undefined.")


def log_trim_summary(
    n_terminals: int, n_removed: int, n_nodes_before: int, n_nodes_after: int
) -> None:
    """
    Log the outcome of trimming a tree to the basedata labels.

    Parameters
    ----------
    n_terminals : int
        Terminals in the source tree.
    n_removed : int
        Terminals with no matching basedata label.
    n_nodes_before, n_nodes_after : int
        Node counts of the source and trimmed trees.
    """
    if n_removed == 0:
        logger.info("Tree terminals are all basedata labels, no need to trim")
        return

    logger.info(
        f"Trimmed tree: removed {n_removed} of {n_terminals} terminals not present "
        f"in the basedata ({n_nodes_before} → {n_nodes_after} nodes)"
    )
    if n_removed > n_terminals // 2:
        logger.warning(
            f"More than half the tree terminals ({n_removed} of {n_terminals}) are "
            f"absent from the basedata. Check that label names match the tree."
        )


def log_labels_not_on_tree(n_not_on_tree: int, n_labels: int, examples: Sequence) -> None:
    """
    Log basedata labels that have no matching tree node.

    Parameters
    ----------
    n_not_on_tree : int
        Number of labels missing from the tree.
    n_labels : int
        Total labels in the basedata.
    examples : Sequence
        A few of the missing labels, for the message.
    """
    if n_not_on_tree == 0:
        return
    shown = ", ".join(repr(x) for x in list(examples)[:5])
    more = "" if n_not_on_tree <= 5 else f" (+{n_not_on_tree - 5} more)"
    logger.warning(
        f"{n_not_on_tree} of {n_labels} basedata labels are not on the tree: "
        f"{shown}{more}"
    )


def log_node_range_statistics(
    n_nodes: int, n_groups: int, n_full_range: int, memory_bytes: int, backend: str
) -> None:
    """
    Log the node range index build: size, saturation and memory footprint.

    Parameters
    ----------
    n_nodes : int
        Nodes in the trimmed tree.
    n_groups : int
        Groups in the basedata.
    n_full_range : int
        Nodes whose range covers every group.
    memory_bytes : int
        Size of the membership matrix.
    backend : str
        Backend that built the index.
    """
    logger.info(
        f"Node ranges built (backend={backend!r}): {n_nodes} nodes × {n_groups} "
        f"groups, {n_full_range} node(s) span every group"
    )

    mem_mb = memory_bytes / (1024**2)
    mem_gb = memory_bytes / (1024**3)
    if mem_gb >= 1.0:
        logger.info(f"Node range memory footprint: {mem_gb:.2f} GB")
    else:
        logger.info(f"Node range memory footprint: {mem_mb:.1f} MB")

    # Default threshold: 80% of a 16 GB system
    system_threshold_gb = 16 * 0.8
    if mem_gb > system_threshold_gb:
        logger.warning(
            f"Node range matrix ({mem_gb:.2f} GB) exceeds typical system memory "
            f"threshold ({system_threshold_gb:.1f} GB = 80% of 16 GB). Consider "
            f"trimming the tree or aggregating groups."
        )


def log_inconsistent_subtree(n_terminals: int, n_expected: int) -> None:
    """
    Log a mismatch between subtree terminals and the labels that built it.

    Parameters
    ----------
    n_terminals : int
        Terminals found in the induced subtree.
    n_expected : int
        Labels on the tree that seeded the subtree.
    """
    logger.warning(
        f"Subtree has {n_terminals} terminal(s) but {n_expected} label(s) on the "
        f"tree; some labels name internal nodes"
    )
