"""
_ranges.py
==========
Tree-wide, per-node tables computed once per (trimmed tree, basedata) pair:

  NodeRangeIndex              groups in which each node's descendants occur
  terminal_counts             terminals below each node
  node_abundance              summed sample counts of the terminals below
  inverse_range_weighted_lengths   length / range, the endemism weights
  distinctiveness_scores      ES / ED / AED per terminal

Every table is filled bottom-up by walking ``Tree.depth_order`` (terminals
first, root last), so a node is visited only after all of its children.

Backends
--------
'cpu-parallel' runs the numba kernels from ``_cpu_kernels.py``.
'python' runs the numpy reference code in this module.  Both produce
identical arrays; ``tests/test_backend_agreement.py`` checks this.
"""

import logging
from typing import Any, Dict, FrozenSet, List

import numpy as np

from phylodex._backend import import_cpu_kernels
from phylodex._logging import log_node_range_statistics

logger = logging.getLogger(__name__)

_cpu_import_ok, _node_range_njit, _subtree_sum_njit, _distinctiveness_njit = (
    import_cpu_kernels()
)

# Track first calls to kernels for compilation logging
_kernel_first_call = {
    "node-range": True,
    "subtree-sum": True,
    "distinctiveness": True,
}


def _note_kernel_call(kernel_key: str) -> None:
    """**Private.**  Log the first (compiling) call of a numba kernel."""
    if _kernel_first_call.get(kernel_key, False):
        logger.info(f"  Compiling {kernel_key} kernel (cached for future calls)")
        _kernel_first_call[kernel_key] = False


# ============================================================================ #
# Node ranges
# ============================================================================ #


class NodeRangeIndex:
    """
    Group membership of every node of a tree.

    A terminal's range is the set of groups containing its label; an internal
    node's range is the union of its children's ranges.  Terminals whose name
    is not a basedata label have an empty range.

    Parameters
    ----------
    tree : Tree
        Usually the trimmed tree.
    basedata : BaseData
    backend : str, default 'python'
        Already-resolved backend name.

    Attributes
    ----------
    membership : bool ndarray (n_nodes, n_groups)
    counts     : int64 ndarray (n_nodes,)
    """

    def __init__(self, tree, basedata, backend: str = "python") -> None:
        self.tree = tree
        self.basedata = basedata

        n_nodes = tree.n_nodes
        n_groups = basedata.n_groups

        leaf_label = np.full(n_nodes, -1, dtype=np.int64)
        for node_id in tree.terminal_ids:
            name = tree.names[node_id]
            if basedata.has_label(name):
                leaf_label[node_id] = basedata.label_index(name)

        label_groups = np.ascontiguousarray(basedata.label_present.T)
        membership = np.zeros((n_nodes, n_groups), dtype=np.bool_)
        counts = np.zeros(n_nodes, dtype=np.int64)

        if backend == "cpu-parallel" and _cpu_import_ok:
            _note_kernel_call("node-range")
            _node_range_njit(
                tree.depth_order,
                tree.child_offsets,
                tree.child_ids,
                leaf_label,
                label_groups,
                membership,
                counts,
            )
        else:
            _node_range_numpy(tree, leaf_label, label_groups, membership, counts)

        self.membership = membership
        self.counts = counts
        self._set_cache: Dict[int, FrozenSet] = {}

        log_node_range_statistics(
            n_nodes,
            n_groups,
            int(np.count_nonzero(counts == n_groups)) if n_groups else 0,
            membership.nbytes,
            backend,
        )

    def range_count(self, node) -> int:
        """Number of groups in the range of *node* (name or ID)."""
        return int(self.counts[self.tree.node_id(node)])

    def range_list(self, node) -> List[Any]:
        """Groups in the range of *node*, in basedata order."""
        node_id = self.tree.node_id(node)
        names = self.basedata.group_names
        return [names[g] for g in np.flatnonzero(self.membership[node_id])]

    def range_set(self, node) -> FrozenSet:
        """Groups in the range of *node* as a frozenset; cached per node."""
        node_id = self.tree.node_id(node)
        cached = self._set_cache.get(node_id)
        if cached is None:
            cached = frozenset(self.range_list(node_id))
            self._set_cache[node_id] = cached
        return cached

    def as_counts(self) -> Dict[str, int]:
        """``{node name: range}`` for every node with a non-empty range."""
        names = self.tree.names
        return {names[i]: int(self.counts[i]) for i in np.flatnonzero(self.counts)}

    def as_sets(self) -> Dict[str, FrozenSet]:
        """``{node name: frozenset of groups}`` for every node with a range."""
        names = self.tree.names
        return {names[i]: self.range_set(int(i)) for i in np.flatnonzero(self.counts)}

    def __repr__(self) -> str:
        return (
            f"NodeRangeIndex(n_nodes={self.membership.shape[0]}, "
            f"n_groups={self.membership.shape[1]})"
        )


def _node_range_numpy(tree, leaf_label, label_groups, membership, counts) -> None:
    """
    **Private.**  numpy reference for ``_node_range_njit``.

    Processes one depth level at a time: every node at depth d ORs its row
    into its parent's row, after all deeper levels are finished.
    """
    terminals = tree.terminal_ids
    labelled = terminals[leaf_label[terminals] >= 0]
    membership[labelled] = label_groups[leaf_label[labelled]]

    parent = tree.parent
    depth = tree.depth
    for d in range(tree.max_depth, 0, -1):
        ids = np.flatnonzero(depth == d)
        np.logical_or.at(membership, parent[ids], membership[ids])

    counts[:] = membership.sum(axis=1)


# ============================================================================ #
# Subtree sums: terminal counts and node abundance
# ============================================================================ #


def _subtree_sum(tree, leaf_values: np.ndarray, backend: str) -> np.ndarray:
    """
    **Private.**  Sum *leaf_values* over the terminals below every node.

    Values stored at internal nodes are ignored.
    """
    leaf_values = np.asarray(leaf_values, dtype=np.float64)
    out = np.zeros(tree.n_nodes, dtype=np.float64)

    if backend == "cpu-parallel" and _cpu_import_ok:
        _note_kernel_call("subtree-sum")
        _subtree_sum_njit(
            tree.depth_order, tree.child_offsets, tree.child_ids, leaf_values, out
        )
        return out

    out[tree.is_terminal] = leaf_values[tree.is_terminal]
    parent = tree.parent
    depth = tree.depth
    for d in range(tree.max_depth, 0, -1):
        ids = np.flatnonzero(depth == d)
        np.add.at(out, parent[ids], out[ids])
    return out


def terminal_counts(tree, backend: str = "python") -> np.ndarray:
    """
    Number of terminals below each node (1 for a terminal).

    Returns
    -------
    float64 ndarray (n_nodes,)
    """
    return _subtree_sum(tree, np.ones(tree.n_nodes, dtype=np.float64), backend)


def node_abundance(tree, basedata, backend: str = "python") -> np.ndarray:
    """
    Global abundance of each node: the summed basedata sample counts of the
    terminals below it.  Terminals that are not basedata labels count 0.

    Returns
    -------
    float64 ndarray (n_nodes,)
    """
    leaf_values = np.zeros(tree.n_nodes, dtype=np.float64)
    for node_id in tree.terminal_ids:
        name = tree.names[node_id]
        if basedata.has_label(name):
            leaf_values[node_id] = basedata.label_sample_count(name)
    return _subtree_sum(tree, leaf_values, backend)


def inverse_range_weighted_lengths(tree, ranges: NodeRangeIndex) -> Dict[str, float]:
    """
    ``{node name: length / range}`` for every node with a non-empty range.

    These are the per-group weights of phylogenetic endemism: a branch is
    shared equally among the groups in which it occurs.
    """
    names = tree.names
    length = tree.length
    counts = ranges.counts
    return {
        names[i]: float(length[i] / counts[i]) for i in np.flatnonzero(counts)
    }


# ============================================================================ #
# Evolutionary distinctiveness
# ============================================================================ #


def distinctiveness_scores(
    tree, n_terminals_below: np.ndarray, abundance: np.ndarray, backend: str = "python"
) -> Dict[str, Dict[str, float]]:
    """
    Equal-splits (ES), fair-proportion (ED) and abundance-weighted (AED)
    evolutionary distinctiveness for every terminal of *tree*.

    Walking from a terminal to the root, each ancestor's branch length is
    shared out:

    - ES: divided by the child count of every node passed so far
      (cumulative);
    - ED: divided by the number of terminals below the ancestor;
    - AED: divided by the global abundance of the ancestor.

    The terminal's own branch counts in full for ES and ED, and divided by
    its own abundance for AED.  Zero-abundance nodes add nothing to AED.

    Parameters
    ----------
    tree : Tree
    n_terminals_below : float64 ndarray, from :func:`terminal_counts`
    abundance : float64 ndarray, from :func:`node_abundance`
    backend : str

    Returns
    -------
    dict
        ``{'ES_SCORES': {name: es}, 'ED_SCORES': {...}, 'AED_SCORES': {...}}``
    """
    terminals = tree.terminal_ids
    n = terminals.shape[0]
    es = np.zeros(n, dtype=np.float64)
    ed = np.zeros(n, dtype=np.float64)
    aed = np.zeros(n, dtype=np.float64)

    if backend == "cpu-parallel" and _cpu_import_ok:
        _note_kernel_call("distinctiveness")
        _distinctiveness_njit(
            terminals,
            tree.parent,
            tree.length,
            tree.n_children,
            n_terminals_below,
            abundance,
            es,
            ed,
            aed,
        )
    else:
        parent = tree.parent
        length = tree.length
        n_children = tree.n_children
        for k, t in enumerate(terminals.tolist()):
            ln = length[t]
            es_sum = ln
            ed_sum = ln
            aed_sum = ln / abundance[t] if abundance[t] > 0 else 0.0
            es_wt = 1.0
            node = parent[t]
            while node >= 0:
                ln = length[node]
                es_wt /= n_children[node]
                es_sum += ln * es_wt
                ed_sum += ln / n_terminals_below[node]
                if abundance[node] > 0:
                    aed_sum += ln / abundance[node]
                node = parent[node]
            es[k] = es_sum
            ed[k] = ed_sum
            aed[k] = aed_sum

    names = [tree.names[t] for t in terminals]
    return {
        "ES_SCORES": dict(zip(names, es.tolist())),
        "ED_SCORES": dict(zip(names, ed.tolist())),
        "AED_SCORES": dict(zip(names, aed.tolist())),
    }
