"""
_abc.py
=======
Decomposition of the branches of two paths into shared and unique parts.

For paths P1, P2 (``{node name: length}``):

    A = Σ length over branches in both
    B = Σ length over branches only in P1
    C = Σ length over branches only in P2

A + B + C is the total length of the union.  The phylogenetic dissimilarity
indices are simple functions of (A, B, C).
"""

from typing import Any, Dict, Optional, Tuple


# ============================================================================ #
# Decomposition
# ============================================================================ #


def phylo_abc(paths1: Dict[str, float], paths2: Dict[str, float]) -> Tuple[float, float, float]:
    """
    General-mode decomposition by hash intersection and difference.

    Returns
    -------
    (A, B, C) : tuple of float
    """
    a = b = c = 0.0
    for name, length in paths1.items():
        if name in paths2:
            a += length
        else:
            b += length
    for name, length in paths2.items():
        if name not in paths1:
            c += length
    return a, b, c


def phylo_abc_pairwise(
    paths1: Dict[str, float],
    paths2: Dict[str, float],
    key1: Any,
    key2: Any,
    branch_sums: Dict[Any, float],
) -> Tuple[float, float, float]:
    """
    Pairwise-mode decomposition for two single-group paths.

    The total length of each group's path is cached in *branch_sums* under
    the group key, so only the shared length A needs computing.  A is summed
    by iterating the smaller path.

    Parameters
    ----------
    paths1, paths2 : dict
    key1, key2 : hashable
        The single group of each side.
    branch_sums : dict
        ``{group: total path length}``; updated in place.

    Returns
    -------
    (A, B, C) : tuple of float
        B = total1 − A and C = total2 − A.
    """
    sum1 = branch_sums.get(key1)
    if sum1 is None:
        sum1 = branch_sums[key1] = sum(paths1.values())
    sum2 = branch_sums.get(key2)
    if sum2 is None:
        sum2 = branch_sums[key2] = sum(paths2.values())

    if len(paths1) <= len(paths2):
        small, large = paths1, paths2
    else:
        small, large = paths2, paths1
    a = 0.0
    for name, length in small.items():
        if name in large:
            a += length

    return a, sum1 - a, sum2 - a


def phylo_abc_lists(paths1: Dict[str, float], paths2: Dict[str, float]) -> Dict[str, Dict[str, float]]:
    """
    The branches behind A, B and C.

    Returns
    -------
    dict
        ``PHYLO_A_LIST`` (shared), ``PHYLO_B_LIST`` (only in *paths1*) and
        ``PHYLO_C_LIST`` (only in *paths2*), each ``{node name: length}``.
    """
    a_list = {}
    b_list = {}
    for name, length in paths1.items():
        if name in paths2:
            a_list[name] = length
        else:
            b_list[name] = length
    c_list = {name: length for name, length in paths2.items() if name not in paths1}
    return {
        "PHYLO_A_LIST": a_list,
        "PHYLO_B_LIST": b_list,
        "PHYLO_C_LIST": c_list,
    }


def abc_results(a: float, b: float, c: float) -> Dict[str, float]:
    return {
        "PHYLO_A": a,
        "PHYLO_B": b,
        "PHYLO_C": c,
        "PHYLO_ABC": a + b + c,
    }


# ============================================================================ #
# Dissimilarity indices
# ============================================================================ #
#
# All three are undefined when nothing is shared and one side is empty.


def _defined(a: float, b: float, c: float) -> bool:
    return bool(a or (b and c))


def phylo_sorenson(a: float, b: float, c: float) -> Optional[float]:
    """Phylo Sorenson dissimilarity, ``1 − 2A / (2A + B + C)``."""
    if not _defined(a, b, c):
        return None
    return 1 - (2 * a) / (2 * a + b + c)


def phylo_jaccard(a: float, b: float, c: float) -> Optional[float]:
    """Phylo Jaccard dissimilarity, ``1 − A / (A + B + C)``."""
    if not _defined(a, b, c):
        return None
    return 1 - a / (a + b + c)


def phylo_s2(a: float, b: float, c: float) -> Optional[float]:
    """
    Phylo S2 dissimilarity, ``1 − A / (A + min(B, C))``.

    Insensitive to differences in the total branch length of the two sides.
    """
    if not _defined(a, b, c):
        return None
    return 1 - a / (a + min(b, c))
