"""
_paths.py
=========
Path-length collation: the set of branches connecting a set of labels to
the root of a tree, as ``{node name: branch length}``.

Two caches keep repeated queries cheap when many overlapping label sets are
collated against the same tree:

  ancestors   per tree, per node ID: the node names from that node to the
              root.  Shared by every query against the tree.
  by_group    per single group: the finished path of that group's labels.
              Only consulted when the query is for exactly one group and
              the cache is switched on.
"""

import logging
from typing import Any, Dict, Iterable, List, Sequence

logger = logging.getLogger(__name__)


class PathLengthCache:
    """
    Collate root-ward paths for label sets.

    Parameters
    ----------
    use_group_cache : bool, default False
        Store the path of single-group queries, keyed by the group.

    Notes
    -----
    Mappings handed back from the group cache are shared; callers treat
    them as read-only.
    """

    def __init__(self, use_group_cache: bool = False) -> None:
        self.use_group_cache = use_group_cache
        self.ancestors: Dict[Any, Dict[int, List[str]]] = {}
        self.by_group: Dict[Any, Dict[str, float]] = {}

    def path_lengths(
        self,
        labels: Iterable,
        tree,
        el_list: Sequence = (),
        no_cache: bool = False,
    ) -> Dict[str, float]:
        """
        Return ``{node name: length}`` for the union of the paths from each
        of *labels* to the root of *tree*.

        Labels that are not nodes of *tree* are skipped.  Each branch appears
        once.

        Parameters
        ----------
        labels : iterable
            Labels (node names) to collate.
        tree : Tree
        el_list : sequence, optional
            Groups the labels came from.  With exactly one group, and the
            group cache on, the result is cached under that group.
        no_cache : bool, default False
            Bypass the group cache for this call.

        Returns
        -------
        dict
        """
        use_cache = self.use_group_cache and not no_cache and len(el_list) == 1
        if use_cache:
            cached = self.by_group.get(el_list[0])
            if cached is not None:
                return cached

        tree_cache = self.ancestors.get(tree)
        if tree_cache is None:
            tree_cache = self.ancestors[tree] = {}
        lengths = tree.node_length_hash()

        path: Dict[str, float] = {}
        for label in labels:
            if label not in tree:
                continue
            node_id = tree.node_id(label)
            names = tree_cache.get(node_id)
            if names is None:
                names = tree_cache[node_id] = tree.path_names_to_root(node_id)
            # the rest of the path is already present once a name repeats
            for name in names:
                if name in path:
                    break
                path[name] = lengths[name]

        if use_cache:
            self.by_group[el_list[0]] = path
            logger.debug(
                f"Cached path for group {el_list[0]!r} ({len(path)} branches)"
            )
        return path

    def clear(self) -> None:
        self.ancestors.clear()
        self.by_group.clear()
