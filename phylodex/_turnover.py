"""
_turnover.py
============
Range-weighted turnover (Laffan et al. 2016), taxonomic and phylogenetic.

Both variants split a set of weights into A (shared by the two neighbour
sets), B (set 1 only) and C (set 2 only) and report

    RW = 1 − A / (A + B + C)

which is undefined (``None``) unless ``(A or B) and (A or C)``.
"""

from typing import Any, Dict, Iterable, Optional, Sequence


def _rw_results(prefix: str, a: float, b: float, c: float) -> Dict[str, Optional[float]]:
    valid = (a or b) and (a or c)
    return {
        f"{prefix}_A": a,
        f"{prefix}_B": b,
        f"{prefix}_C": c,
        prefix: 1 - a / (a + b + c) if valid else None,
    }


def endemism_weights(
    label_hash_all: Dict, element_list_all: Iterable, basedata
) -> Dict[Any, float]:
    """
    Whole-set endemism weight of each label: the fraction of its range that
    falls within the neighbour sets, ``local range / global range``.
    """
    groups = set(element_list_all)
    weights = {}
    for label in label_hash_all:
        label_groups = basedata.groups_with_label(label)
        weights[label] = len(label_groups & groups) / len(label_groups)
    return weights


def rw_turnover(
    weights: Dict[Any, float], label_hash1: Dict, label_hash2: Dict
) -> Dict[str, Optional[float]]:
    """
    Taxonomic range-weighted turnover over per-label endemism weights.

    Returns
    -------
    dict
        ``RW_TURNOVER``, ``RW_TURNOVER_A``, ``RW_TURNOVER_B``,
        ``RW_TURNOVER_C``.
    """
    a = b = c = 0.0
    for label, wt in weights.items():
        if label in label_hash1:
            if label in label_hash2:
                a += wt
            else:
                b += wt
        elif label in label_hash2:
            c += wt
    return _rw_results("RW_TURNOVER", a, b, c)


def phylo_rw_turnover(
    weights: Dict[str, float],
    ranges,
    parent_hash: Dict[str, Optional[str]],
    element_list1: Sequence,
    element_list2: Sequence,
    pairwise_mode: bool = False,
) -> Dict[str, Optional[float]]:
    """
    Phylogenetic range-weighted turnover.

    Parameters
    ----------
    weights : dict
        ``PE_WTLIST`` of the pair: ``{node: range-weighted length}``.
    ranges : NodeRangeIndex
        Global group membership of each node.
    parent_hash : dict
        Parent names of the trimmed tree, root → ``None``.
    element_list1, element_list2 : sequence
        Groups of each neighbour set.
    pairwise_mode : bool
        Both sides hold exactly one group; membership is a direct lookup.

    Notes
    -----
    A node in both sets implies all its ancestors are too, so their weights
    go to A as well and they are marked done without a membership test.

    Returns
    -------
    dict
        ``PHYLO_RW_TURNOVER`` and its ``_A``, ``_B``, ``_C`` components.
    """
    pairwise_mode = pairwise_mode or (
        len(element_list1) == 1 and len(element_list2) == 1
    )
    if pairwise_mode:
        el1 = element_list1[0]
        el2 = element_list2[0]

    a = b = c = 0.0
    done = set()

    for node, wt in weights.items():
        if node in done:
            continue

        range_set = ranges.range_set(node)
        if pairwise_mode:
            in_set1 = el1 in range_set
            in_set2 = el2 in range_set
        else:
            in_set1 = any(el in range_set for el in element_list1)
            in_set2 = any(el in range_set for el in element_list2)

        if in_set1:
            done.add(node)
            if in_set2:
                a += wt
                pnode = parent_hash.get(node)
                while pnode is not None and pnode not in done:
                    a += weights.get(pnode, 0.0)
                    done.add(pnode)
                    pnode = parent_hash.get(pnode)
            else:
                b += wt
        elif in_set2:
            c += wt
            done.add(node)

    return _rw_results("PHYLO_RW_TURNOVER", a, b, c)
