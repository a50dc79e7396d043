"""
_subtree.py
===========
The part of a tree spanned by a set of labels, and its last shared ancestor.

``sub_tree_as_hash`` is the light-weight form used by the clade and
ancestor calculations: ``{node name: [child names within the subtree]}``.
``extract_sub_tree`` returns a full :class:`Tree` for callers that need one.
"""

from typing import Dict, Iterable, List, Optional


def sub_tree_as_hash(
    labels: Iterable, parent_hash: Dict[str, Optional[str]]
) -> Dict[str, List[str]]:
    """
    Build the subtree spanned by *labels* as a child-list mapping.

    Parameters
    ----------
    labels : iterable
        Node names.  Names missing from *parent_hash* are skipped.
    parent_hash : dict
        ``{node name: parent name}`` with ``None`` for the root.

    Returns
    -------
    dict
        ``{node name: [child names]}`` holding every node on a path from a
        label to the root.  Terminals of the subtree map to ``[]``.

    Examples
    --------
    >>> ph = {'A': 'AB', 'B': 'AB', 'C': 'root', 'AB': 'root', 'root': None}
    >>> sub_tree_as_hash(['A', 'B'], ph)
    {'A': [], 'AB': ['A', 'B'], 'root': ['AB'], 'B': []}
    """
    subtree: Dict[str, List[str]] = {}
    for label in labels:
        # already recorded as an ancestor of an earlier label
        if label not in parent_hash or label in subtree:
            continue
        subtree[label] = []
        node_name = label
        parent_name = parent_hash[label]
        while parent_name is not None:
            seen = parent_name in subtree
            subtree.setdefault(parent_name, []).append(node_name)
            if seen:
                break
            node_name = parent_name
            parent_name = parent_hash[node_name]
    return subtree


def last_shared_ancestor(subtree: Dict[str, List[str]], root_name: str) -> str:
    """
    The deepest node of *subtree* that is an ancestor of all its terminals.

    Descends from the root while the current node has exactly one child.
    An empty subtree gives the root.
    """
    current = root_name
    if subtree:
        children = subtree[current]
        while len(children) == 1:
            current = children[0]
            children = subtree[current]
    return current


def count_subtree_terminals(subtree: Dict[str, List[str]]) -> int:
    """Number of nodes with no children in *subtree*."""
    return sum(1 for children in subtree.values() if not children)


def extract_sub_tree(labels: Iterable, tree):
    """
    Return a new :class:`Tree` holding the paths from *labels* to the root.

    Names, lengths and depths of the kept nodes are unchanged.

    Raises
    ------
    ValueError   if none of *labels* is a node of *tree*.
    """
    return tree.trim(labels)
