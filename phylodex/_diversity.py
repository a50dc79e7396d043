"""
_diversity.py
=============
Phylogenetic diversity, endemism and distinctiveness indices.

Every function here is a pure computation over its explicit inputs (paths,
weight lists, range lists, global tables).  ``PhyloCalculator`` decides which
tree each input was built from, memoizes intermediate results per neighbour
set pair, and assembles the flat result dictionaries.

Undefined results are ``None``: empty paths, zero totals and zero tree
lengths are all guarded explicitly.

Index families
--------------
PD            path length spanned by the labels (Faith 1992)
PD local      PD below the last shared ancestor
PE            range-weighted PD (Rosauer et al. 2009)
PE central    PE restricted to branches of neighbour set 1
PD endemism   PD of branches wholly confined to the neighbour sets
AED           abundance-weighted evolutionary distinctiveness (Cadotte et
              al. 2010)
"""

from typing import Any, Dict, Iterable, List, Optional

from phylodex._utils import safe_ratio


# ============================================================================ #
# Labels on / not on the tree
# ============================================================================ #


def labels_not_on_tree(label_names: Iterable, tree) -> Dict[Any, int]:
    """``{label: 1}`` for basedata labels that are not nodes of *tree*."""
    return {label: 1 for label in label_names if label not in tree}


def labels_on_tree(label_hash_all: Dict, not_on_tree: Dict) -> Dict:
    """Restrict *label_hash_all* to labels present on the tree."""
    return {k: v for k, v in label_hash_all.items() if k not in not_on_tree}


def labels_not_on_tree_results(label_hash_all: Dict, not_on_tree: Dict) -> Dict[str, Any]:
    missing = {k: v for k, v in label_hash_all.items() if k in not_on_tree}
    n = len(missing)
    richness = len(label_hash_all)
    return {
        "PHYLO_LABELS_NOT_ON_TREE": missing,
        "PHYLO_LABELS_NOT_ON_TREE_N": n,
        "PHYLO_LABELS_NOT_ON_TREE_P": n / richness if richness else 0,
    }


# ============================================================================ #
# PD
# ============================================================================ #


def pd_scores(path: Dict[str, float], richness: int, tree_length: float) -> Dict[str, Any]:
    """
    Phylogenetic diversity of a collated path.

    Parameters
    ----------
    path : dict
        ``{node name: length}`` spanned by the labels on the tree.
    richness : int
        Number of labels on the tree.
    tree_length : float
        Total branch length of the tree.

    Returns
    -------
    dict
        ``PD``, ``PD_P``, ``PD_per_taxon``, ``PD_P_per_taxon`` and
        ``PD_INCLUDED_NODE_LIST``.
    """
    pd = sum(path.values()) if path else None
    pd_p = safe_ratio(pd, tree_length) if pd else None
    return {
        "PD": pd,
        "PD_P": pd_p,
        "PD_per_taxon": safe_ratio(pd, richness),
        "PD_P_per_taxon": safe_ratio(pd_p, richness),
        "PD_INCLUDED_NODE_LIST": path,
    }


def pd_terminal_node_list(node_list: Dict[str, float], tree) -> Dict[str, float]:
    """Entries of *node_list* that are terminals of *tree*."""
    is_terminal = tree.is_terminal
    return {
        name: length
        for name, length in node_list.items()
        if is_terminal[tree.node_id(name)]
    }


def pd_local(pd: Optional[float], pd_p: Optional[float], tree, ancestor: str) -> Dict[str, Any]:
    """
    PD with the branches from the last shared ancestor to the root removed.

    Single-lineage sets (ancestor is a terminal) keep their full PD.
    """
    if pd:
        node_id = tree.node_id(ancestor)
        if not tree.is_terminal[node_id]:
            pd = pd - tree.path_length_to_root(node_id)
            pd_p = pd / tree.total_length if pd else 0
    return {"PD_LOCAL": pd, "PD_LOCAL_P": pd_p}


def last_shared_ancestor_props(
    tree, ancestor: Optional[str], subtree: Dict[str, List[str]], label_hash_all: Dict
) -> Dict[str, Any]:
    """
    Position of the last shared ancestor between the root and the tips.

    Returns
    -------
    dict
        ``LAST_SHARED_ANCESTOR_DEPTH``, ``_LENGTH``, ``_DIST_TO_ROOT``
        (inclusive of the ancestor's own branch; 0 at the root),
        ``_DIST_TO_TIP`` (longest root path of a labelled terminal of the
        subtree, less the ancestor's own root path) and ``_POS_REL``
        (root / (root + tip)).  All ``None`` when there is no ancestor.
    """
    if ancestor is None or ancestor not in tree:
        return {
            "LAST_SHARED_ANCESTOR_POS_REL": None,
            "LAST_SHARED_ANCESTOR_LENGTH": None,
            "LAST_SHARED_ANCESTOR_DEPTH": None,
            "LAST_SHARED_ANCESTOR_DIST_TO_TIP": None,
            "LAST_SHARED_ANCESTOR_DIST_TO_ROOT": None,
        }

    node = tree.node(ancestor)
    dist_to_tips = 0.0
    if not node.is_terminal:
        own = 0.0 if node.is_root else tree.path_length_to_root(node.id)
        for label in label_hash_all:
            if label in subtree:
                dist_to_tips = max(dist_to_tips, tree.path_length_to_root(label))
        dist_to_tips -= own

    dist_to_root = 0.0 if node.is_root else tree.path_length_to_root(node.id)
    if dist_to_root or dist_to_tips:
        rel_pos = dist_to_root / (dist_to_root + dist_to_tips)
    else:
        rel_pos = 0

    return {
        "LAST_SHARED_ANCESTOR_POS_REL": rel_pos,
        "LAST_SHARED_ANCESTOR_LENGTH": node.length,
        "LAST_SHARED_ANCESTOR_DEPTH": node.depth,
        "LAST_SHARED_ANCESTOR_DIST_TO_TIP": dist_to_tips,
        "LAST_SHARED_ANCESTOR_DIST_TO_ROOT": dist_to_root,
    }


# ============================================================================ #
# PE
# ============================================================================ #


def pe_group_results(
    path: Dict[str, float],
    inverse_weights: Dict[str, float],
    range_counts: Dict[str, int],
) -> Dict[str, Any]:
    """
    Endemism contribution of a single group.

    Parameters
    ----------
    path : dict
        The group's path on the trimmed tree.
    inverse_weights : dict
        ``{node: length / global range}``.
    range_counts : dict
        ``{node: global range}``.

    Returns
    -------
    dict
        ``PE_WTLIST``, ``PE_WE`` and ``PE_RANGELIST`` for this group.
    """
    wts = {name: inverse_weights[name] for name in path if name in inverse_weights}
    return {
        "PE_WTLIST": wts,
        "PE_WE": sum(wts.values()),
        "PE_RANGELIST": {name: range_counts[name] for name in wts},
    }


def pe_totals(group_results: Iterable[Dict[str, Any]], tree_length: float) -> Dict[str, Any]:
    """
    Combine per-group endemism results over a neighbour set pair.

    Each branch's weight accumulates once per group that contains it, so
    ``PE_WTLIST[node] = length × local range / global range``.

    Returns
    -------
    dict
        ``PE_WE``, ``PE_WE_P``, ``PE_WTLIST``, ``PE_RANGELIST`` and
        ``PE_LOCAL_RANGELIST``.
    """
    pe: Optional[float] = None
    wt_list: Dict[str, float] = {}
    local_ranges: Dict[str, int] = {}
    ranges: Dict[str, int] = {}

    for res in group_results:
        if not res["PE_WTLIST"]:
            continue
        pe = (pe or 0.0) + res["PE_WE"]
        for name, wt in res["PE_WTLIST"].items():
            wt_list[name] = wt_list.get(name, 0.0) + wt
            local_ranges[name] = local_ranges.get(name, 0) + 1
        ranges.update(res["PE_RANGELIST"])

    return {
        "PE_WE": pe,
        "PE_WE_P": safe_ratio(pe, tree_length) if pe else None,
        "PE_WTLIST": wt_list,
        "PE_RANGELIST": ranges,
        "PE_LOCAL_RANGELIST": local_ranges,
    }


def pe_single(range_list: Dict[str, int], tree) -> Dict[str, Optional[float]]:
    """
    PE with every branch weighted by its global range only:
    ``Σ length / global range`` over the branches in *range_list*.
    """
    lengths = tree.node_length_hash()
    value = None
    for name, rng in range_list.items():
        value = (value or 0.0) + lengths[name] / rng
    return {
        "PE_WE_SINGLE": value,
        "PE_WE_SINGLE_P": safe_ratio(value, tree.total_length),
    }


def pe_central(
    pe: Optional[float],
    wt_list: Dict[str, float],
    c_list: Dict[str, float],
    tree_length: float,
) -> Dict[str, Optional[float]]:
    """
    PE of neighbour set 1 using local ranges from both sets: the PE total
    less the weights of branches found only in set 2.
    """
    if pe is None:
        return {"PEC_WE": None, "PEC_WE_P": None}
    pec = pe - sum(wt_list.get(name, 0.0) for name in c_list)
    return {
        "PEC_WE": pec,
        "PEC_WE_P": safe_ratio(pec, tree_length) if pec else None,
    }


def pe_central_lists(
    wt_list: Dict[str, float],
    local_ranges: Dict[str, int],
    ranges: Dict[str, int],
    abc_lists: Dict[str, Dict[str, float]],
) -> Dict[str, Dict]:
    """
    PE lists restricted to the branches of neighbour set 1 (A ∪ B).

    Returned unchanged when no branch is unique to set 2.
    """
    if not abc_lists["PHYLO_C_LIST"]:
        return {
            "PEC_WTLIST": wt_list,
            "PEC_LOCAL_RANGELIST": local_ranges,
            "PEC_RANGELIST": ranges,
        }
    keep = [
        name
        for part in (abc_lists["PHYLO_A_LIST"], abc_lists["PHYLO_B_LIST"])
        for name in part
        if name in wt_list
    ]
    return {
        "PEC_WTLIST": {name: wt_list[name] for name in keep},
        "PEC_LOCAL_RANGELIST": {name: local_ranges[name] for name in keep},
        "PEC_RANGELIST": {name: ranges[name] for name in keep},
    }


def pe_central_cwe(
    pec: Optional[float], pec_wt_list: Dict[str, float], pd_node_list: Dict[str, float]
) -> Dict[str, Optional[float]]:
    """Central PE divided by the PD of the branches it covers."""
    pd = (
        sum(pd_node_list.get(name, 0.0) for name in pec_wt_list)
        if pec_wt_list
        else None
    )
    return {
        "PEC_CWE": safe_ratio(pec, pd),
        "PEC_CWE_PD": pd,
    }


def pd_endemism(
    wt_list: Dict[str, float],
    ranges: Dict[str, int],
    local_ranges: Dict[str, int],
    tree_length: float,
) -> Dict[str, Any]:
    """
    PD of branches whose whole range lies within the neighbour sets, i.e.
    local range equals global range.
    """
    value = None
    wts = {}
    for name, wt in wt_list.items():
        if ranges[name] != local_ranges[name]:
            continue
        value = (value or 0.0) + wt
        wts[name] = wt
    return {
        "PD_ENDEMISM": value,
        "PD_ENDEMISM_P": safe_ratio(value, tree_length),
        "PD_ENDEMISM_WTS": wts,
    }


def pe_cwe(pe: Optional[float], pd: Optional[float]) -> Dict[str, Optional[float]]:
    """Corrected weighted endemism, ``PE / PD``."""
    return {"PE_CWE": safe_ratio(pe, pd)}


# ============================================================================ #
# Evolutionary distinctiveness
# ============================================================================ #


def phylo_aed_lists(label_hash_all: Dict, scores: Dict[str, Dict[str, float]]) -> Dict[str, Dict]:
    """ES, ED and AED scores of the labels in the neighbour sets."""
    es_scores = scores["ES_SCORES"]
    ed_scores = scores["ED_SCORES"]
    aed_scores = scores["AED_SCORES"]
    es, ed, aed = {}, {}, {}
    for label in label_hash_all:
        if label not in aed_scores:
            continue
        es[label] = es_scores[label]
        ed[label] = ed_scores[label]
        aed[label] = aed_scores[label]
    return {
        "PHYLO_ES_LIST": es,
        "PHYLO_ED_LIST": ed,
        "PHYLO_AED_LIST": aed,
    }


def phylo_aed_t(label_hash_all: Dict, aed_list: Dict[str, float]) -> Dict[str, Any]:
    """
    Abundance-weighted AED total, ``Σ local abundance × AED``, with the
    per-label weights.
    """
    aed_t = None
    wts = {}
    for label, abundance in label_hash_all.items():
        if label not in aed_list:
            continue
        weight = abundance * aed_list[label]
        wts[label] = weight
        aed_t = (aed_t or 0.0) + weight
    return {"PHYLO_AED_T": aed_t, "PHYLO_AED_T_WTLIST": wts}


def phylo_aed_t_wtlists(wt_list: Dict[str, float], aed_t: Optional[float]) -> Dict[str, Dict]:
    return {
        "PHYLO_AED_T_WTLIST": wt_list,
        "PHYLO_AED_T_WTLIST_P": {
            label: safe_ratio(wt, aed_t) for label, wt in wt_list.items()
        },
    }


def phylo_rarity_cwr(aed_t: Optional[float], pd: Optional[float]) -> Dict[str, Optional[float]]:
    """Corrected weighted rarity, ``AED_T / PD``."""
    return {"PHYLO_RARITY_CWR": safe_ratio(aed_t, pd)}


def phylo_abundance(
    labels: Dict, label_hash_all: Dict, tree, path_cache
) -> Dict[str, Any]:
    """
    Branch lengths weighted by the abundance of the labels below them.

    Each label on the tree adds ``abundance × length`` to every branch on
    its path to the root.

    Parameters
    ----------
    labels : dict
        Labels on the tree.
    label_hash_all : dict
        ``{label: summed sample count}`` over both neighbour sets.
    tree : Tree
    path_cache : PathLengthCache
        Supplies the per-label root paths.
    """
    total = None
    branch_hash: Dict[str, float] = {}
    for label in labels:
        abundance = label_hash_all[label]
        path = path_cache.path_lengths([label], tree, no_cache=True)
        for name, length in path.items():
            val = abundance * length
            branch_hash[name] = branch_hash.get(name, 0.0) + val
            total = (total or 0.0) + val
    return {
        "PHYLO_ABUNDANCE": total,
        "PHYLO_ABUNDANCE_BRANCH_HASH": branch_hash,
    }
