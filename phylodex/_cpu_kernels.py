"""
_cpu_kernels.py
===============
CPU-accelerated tree kernels using Numba.

This module contains ONLY numba-accelerated code and should not import other
project modules to avoid import-time complications.  Importing it requires
numba; ``_backend.import_cpu_kernels`` reports failure when numba is absent
and the numpy reference paths in ``_ranges.py`` are used instead.

Exported Functions
------------------
_node_range_njit : njit function
    Group membership of every node, built bottom-up over the depth order.

_subtree_sum_njit : njit function
    Sum of per-terminal values over the subtree of every node.

_distinctiveness_njit : njit function
    Parallel equal-splits, fair-proportion and abundance-weighted
    distinctiveness scores for every terminal.

Notes
-----
- Trees are passed as the flat arrays of ``Tree`` (CSR child layout,
  parent pointers, ``depth_order`` with terminals first and the root last)
- cache=True persists compiled binary to disk for faster subsequent runs
"""

from numba import njit, prange


# ======================================================================== #
# CPU Kernels                                                               #
# ======================================================================== #


@njit(cache=True)
def _node_range_njit(depth_order,
                     child_offsets,
                     child_ids,
                     leaf_label,
                     label_groups,
                     membership,
                     counts):
    """
    Fill the group membership matrix for every node.

    Parameters
    ----------
    depth_order   : int32[n_nodes]
        Node IDs by descending depth; children precede their parent.
    child_offsets : int64[n_nodes+1]
    child_ids     : int32[n_nodes-1]
    leaf_label    : int64[n_nodes]
        Basedata label index of each terminal, or -1.
    label_groups  : bool[n_labels, n_groups]
        Transposed presence matrix of the basedata.
    membership    : bool[n_nodes, n_groups]   (output, zero-initialised)
    counts        : int64[n_nodes]            (output)

    Notes
    -----
    A node's union stops early once it covers every group.
    """
    n_groups = membership.shape[1]
    for k in range(depth_order.shape[0]):
        node = depth_order[k]
        start = child_offsets[node]
        end = child_offsets[node + 1]

        if start == end:
            li = leaf_label[node]
            n = 0
            if li >= 0:
                for g in range(n_groups):
                    if label_groups[li, g]:
                        membership[node, g] = True
                        n += 1
            counts[node] = n
            continue

        n = 0
        for j in range(start, end):
            c = child_ids[j]
            if counts[c] == 0:
                continue
            for g in range(n_groups):
                if membership[c, g] and not membership[node, g]:
                    membership[node, g] = True
                    n += 1
            if n == n_groups:
                break
        counts[node] = n


@njit(cache=True)
def _subtree_sum_njit(depth_order, child_offsets, child_ids, leaf_values, out):
    """
    out[v] = leaf_values[v] for terminals, else the sum over v's children.

    Parameters
    ----------
    depth_order   : int32[n_nodes]
    child_offsets : int64[n_nodes+1]
    child_ids     : int32[n_nodes-1]
    leaf_values   : float64[n_nodes]
    out           : float64[n_nodes]   (output)
    """
    for k in range(depth_order.shape[0]):
        node = depth_order[k]
        start = child_offsets[node]
        end = child_offsets[node + 1]
        if start == end:
            out[node] = leaf_values[node]
        else:
            s = 0.0
            for j in range(start, end):
                s += out[child_ids[j]]
            out[node] = s


@njit(parallel=True, cache=True)
def _distinctiveness_njit(terminals,
                          parent,
                          length,
                          n_children,
                          terminal_counts,
                          abundance,
                          es_out,
                          ed_out,
                          aed_out):
    """
    Distinctiveness scores for each terminal, walking its path to the root.

    For terminal t with ancestors p1 … root:

        ES(t)  = len(t) + Σ len(p) · Π_{q ≤ p} 1 / n_children(q)
        ED(t)  = len(t) + Σ len(p) / n_terminals(p)
        AED(t) = len(t) / abund(t) + Σ len(p) / abund(p)

    Nodes with zero abundance add nothing to AED.

    Parameters
    ----------
    terminals       : int32[n_terminals]
    parent          : int32[n_nodes]
    length          : float64[n_nodes]
    n_children      : int32[n_nodes]
    terminal_counts : float64[n_nodes]
    abundance       : float64[n_nodes]
    es_out, ed_out, aed_out : float64[n_terminals]   (outputs)
    """
    for k in prange(terminals.shape[0]):
        t = terminals[k]
        ln = length[t]
        es = ln
        ed = ln
        aed = ln / abundance[t] if abundance[t] > 0 else 0.0
        es_wt = 1.0
        node = parent[t]
        while node >= 0:
            ln = length[node]
            es_wt /= n_children[node]
            es += ln * es_wt
            ed += ln / terminal_counts[node]
            if abundance[node] > 0:
                aed += ln / abundance[node]
            node = parent[node]
        es_out[k] = es
        ed_out[k] = ed
        aed_out[k] = aed
