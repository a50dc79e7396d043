"""
_clades.py
==========
Clade-level contribution and loss scores over a subtree.

Given per-node weights (branch lengths for PD, endemism weights for PE) and
the subtree spanned by a neighbour set:

  clade score    own weight + clade scores of the subtree children
  clade loss     score lost if the clade were removed, which also removes
                 every ancestor left with no other descendant in the set
  ancestral loss the part of the loss due to those ancestors

Clade scores are built by descending depth, so every child is finished
before its parent.
"""

from typing import Dict, List, Optional

from phylodex._utils import truncate_ratio


def clade_contributions(
    weights: Dict[str, float],
    total_score: Optional[float],
    subtree: Dict[str, List[str]],
    depth_hash: Dict[str, int],
    tree_length: float,
    prefix: str,
) -> Dict[str, Dict[str, Optional[float]]]:
    """
    Score of each clade in *subtree* and its share of the total.

    Parameters
    ----------
    weights : dict
        ``{node name: weight}``.  Subtree nodes without a weight count 0.
    total_score : float or None
        The neighbour set's index value (PD or PE).
    subtree : dict
        From :func:`phylodex._subtree.sub_tree_as_hash`.
    depth_hash : dict
        ``{node name: depth}`` of the tree the subtree came from.
    tree_length : float
        Total branch length of that tree.
    prefix : str
        Result key prefix, ``'PD_'`` or ``'PE_'``.

    Returns
    -------
    dict
        ``{prefix}CLADE_SCORE``, ``{prefix}CLADE_CONTR`` (score / total,
        truncated at 1e-11) and ``{prefix}CLADE_CONTR_P`` (score / tree
        length), each keyed by node name.  Ratios are ``None`` when the
        denominator is zero or undefined.
    """
    by_depth: Dict[int, List[str]] = {}
    for name in subtree:
        by_depth.setdefault(depth_hash[name], []).append(name)

    clade_score: Dict[str, float] = {}
    contr: Dict[str, Optional[float]] = {}
    contr_p: Dict[str, Optional[float]] = {}

    for depth in sorted(by_depth, reverse=True):
        for name in by_depth[depth]:
            wt_sum = weights.get(name, 0.0)
            for child in subtree[name]:
                wt_sum += clade_score[child]
            clade_score[name] = wt_sum
            contr[name] = truncate_ratio(wt_sum, total_score)
            contr_p[name] = truncate_ratio(wt_sum, tree_length)

    return {
        f"{prefix}CLADE_SCORE": clade_score,
        f"{prefix}CLADE_CONTR": contr,
        f"{prefix}CLADE_CONTR_P": contr_p,
    }


def clade_loss(
    contributions: Dict[str, Dict[str, Optional[float]]],
    subtree: Dict[str, List[str]],
    parent_hash: Dict[str, Optional[str]],
    prefix: str,
) -> Dict[str, Dict[str, Optional[float]]]:
    """
    Score lost from the neighbour set if each clade were removed.

    Removing a clade also removes each ancestor whose only subtree child is
    on the removed path.  From each node, walk root-ward while the parent
    has at most one subtree child; every node on the walk shares the scores
    of the last node reached.  The root is its own removal point.

    Parameters
    ----------
    contributions : dict
        Output of :func:`clade_contributions` with the same *prefix*.
    subtree : dict
    parent_hash : dict
        ``{node name: parent name}``, root → ``None``.
    prefix : str

    Returns
    -------
    dict
        ``{prefix}CLADE_LOSS_SCORE``, ``{prefix}CLADE_LOSS_CONTR``,
        ``{prefix}CLADE_LOSS_CONTR_P``.
    """
    score = contributions[f"{prefix}CLADE_SCORE"]
    contr = contributions[f"{prefix}CLADE_CONTR"]
    contr_p = contributions[f"{prefix}CLADE_CONTR_P"]

    loss_score: Dict[str, Optional[float]] = {}
    loss_contr: Dict[str, Optional[float]] = {}
    loss_contr_p: Dict[str, Optional[float]] = {}

    for name in subtree:
        if name in loss_score:
            continue
        ancestors = [name]
        parent_name = parent_hash.get(name)
        while parent_name is not None:
            if len(subtree[parent_name]) > 1:
                break
            ancestors.append(parent_name)
            parent_name = parent_hash.get(parent_name)

        last = ancestors[-1]
        for node_name in ancestors:
            loss_score[node_name] = score[last]
            loss_contr[node_name] = contr[last]
            loss_contr_p[node_name] = contr_p[last]

    return {
        f"{prefix}CLADE_LOSS_SCORE": loss_score,
        f"{prefix}CLADE_LOSS_CONTR": loss_contr,
        f"{prefix}CLADE_LOSS_CONTR_P": loss_contr_p,
    }


def clade_loss_ancestral(
    contributions: Dict[str, Dict[str, Optional[float]]],
    loss: Dict[str, Dict[str, Optional[float]]],
    prefix: str,
) -> Dict[str, Dict[str, float]]:
    """
    The part of each clade's loss contributed by its ancestral branches.

    ``ANC = loss − clade score``; ``ANC_P = ANC / loss`` (0 when the loss
    is 0).
    """
    score = contributions[f"{prefix}CLADE_SCORE"]
    loss_score = loss[f"{prefix}CLADE_LOSS_SCORE"]

    anc: Dict[str, float] = {}
    anc_p: Dict[str, float] = {}
    for name, clade in score.items():
        lost = loss_score[name]
        value = lost - clade
        anc[name] = value
        anc_p[name] = value / lost if lost else 0
    return {
        f"{prefix}CLADE_LOSS_ANC": anc,
        f"{prefix}CLADE_LOSS_ANC_P": anc_p,
    }
