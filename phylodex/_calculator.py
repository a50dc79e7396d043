"""
_calculator.py
==============
Phylogenetic index calculation over pairs of neighbour sets.

Public API
----------
  PhyloCalculator(tree, basedata, pairwise_mode=False, backend='best',
                  use_path_length_cache_by_group=None)
      Constructor.  Accepts a Tree (or NEWICK string) and a BaseData (or
      ``{group: {label: count}}`` dict).

  .neighbour_sets(element_list1, element_list2=None) -> NeighbourSets
      Validate the groups and collate their labels.

  .calculate(calculations, element_list1, element_list2=None) -> dict
      Run the named ``calc_*`` indices and return one flat dict of results.

  .calc_*(neighbour_sets) -> dict
      Each index is also a public method.  ``PhyloCalculator.CALCULATIONS``
      lists them.

Global pre-calculations
-----------------------
Computed on first use and kept for the calculator's lifetime:

  trimmed_tree                    tree restricted to the basedata labels
  labels_not_on_tree              basedata labels with no tree node
  node_ranges                     NodeRangeIndex over the trimmed tree
  inverse_range_weighted_lengths  {node: length / range}
  node_abundance                  {node: summed sample count below}
  aed_scores                      ES / ED / AED per trimmed-tree terminal
  trimmed_parent_name_hash        {node: parent name}

Caching
-------
Intermediate results are memoized at two levels:

  CalculationCache   owned by the calculator; survives across pairs.
                     Root paths per tree node, per-group paths, per-group
                     endemism results, per-group branch sums.
  NeighbourSets.memo owned by one pair; discarded with it.  Holds PD, PE,
                     subtree and ABC results shared by several indices.

Logging
-------
The module uses Python's standard logging framework.  All loggers live
under the ``phylodex`` package logger:

  INFO level:    System capabilities (CPU, memory, numba version),
                 backend availability, trimming, node range builds.
  WARNING level: Labels missing from the tree, inconsistent subtrees,
                 high memory usage, numba performance warnings.
  DEBUG level:   Per-pair calculation and cache activity.

    import logging
    logging.getLogger('phylodex').setLevel(logging.WARNING)
"""

import logging
import warnings
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np

from phylodex._tree import Tree
from phylodex._basedata import BaseData
from phylodex._paths import PathLengthCache
from phylodex._errors import MissingArgumentError, InconsistentSubtreeWarning

from phylodex import _abc, _clades, _diversity, _turnover
from phylodex._subtree import (
    sub_tree_as_hash,
    last_shared_ancestor,
    count_subtree_terminals,
)
from phylodex._ranges import (
    NodeRangeIndex,
    terminal_counts,
    node_abundance,
    inverse_range_weighted_lengths,
    distinctiveness_scores,
)

from phylodex._logging import (
    log_optimization_status,
    install_numba_warning_filter,
    log_backend_availability,
    log_trim_summary,
    log_labels_not_on_tree,
    log_inconsistent_subtree,
)
from phylodex._backend import (
    check_numba_available,
    get_available_backends,
    get_best_backend,
    resolve_backend,
)
from phylodex._context import get_backend_override

_NUMBA_AVAILABLE = check_numba_available()
_BACKENDS_AVAILABLE = get_available_backends()

logger = logging.getLogger(__name__)

# Log system info and backend availability on module import
log_optimization_status(_NUMBA_AVAILABLE)
log_backend_availability(_BACKENDS_AVAILABLE)
install_numba_warning_filter(_NUMBA_AVAILABLE)


# Index families that share intermediate results.  Combining a PE index with
# a PD or ABC-list index is what makes the per-group path cache pay off.
_PE_CALCS = frozenset({
    "calc_pe",
    "calc_pe_lists",
    "calc_pe_central",
    "calc_pe_central_lists",
    "calc_pe_central_cwe",
    "calc_pe_clade_contributions",
    "calc_pe_clade_loss",
    "calc_pe_clade_loss_ancestral",
    "calc_pe_single",
    "calc_pd_endemism",
    "calc_phylo_corrected_weighted_endemism",
    "calc_phylo_rw_turnover",
})
_PD_CALCS = frozenset({
    "calc_pd",
    "calc_pd_local",
    "calc_pd_node_list",
    "calc_pd_terminal_node_list",
    "calc_pd_terminal_node_count",
    "calc_pd_clade_contributions",
    "calc_pd_clade_loss",
    "calc_pd_clade_loss_ancestral",
    "calc_pe_central_cwe",
    "calc_phylo_corrected_weighted_endemism",
    "calc_phylo_corrected_weighted_rarity",
})
_ABC_LIST_CALCS = frozenset({
    "calc_pe_central",
    "calc_pe_central_lists",
    "calc_pe_central_cwe",
})


class CalculationCache:
    """
    Caches that outlive a single neighbour-set pair.

    Attributes
    ----------
    paths : PathLengthCache
        Root paths per tree node and, when enabled, per single group.
    abc_paths : dict
        ``{group: path}`` on the trimmed tree, used by the ABC indices.
    pairwise_branch_sums : dict
        ``{group: total path length}`` for pairwise ABC.
    pe_results : dict
        ``{group: per-group endemism results}``.
    """

    def __init__(self, use_group_cache: bool = False) -> None:
        self.paths = PathLengthCache(use_group_cache=use_group_cache)
        self.abc_paths: Dict[Any, Dict[str, float]] = {}
        self.pairwise_branch_sums: Dict[Any, float] = {}
        self.pe_results: Dict[Any, Dict[str, Any]] = {}

    def clear(self) -> None:
        self.paths.clear()
        self.abc_paths.clear()
        self.pairwise_branch_sums.clear()
        self.pe_results.clear()


class NeighbourSets:
    """
    One pair of neighbour sets and their collated labels.

    Attributes
    ----------
    element_list1, element_list2, element_list_all : list
        Groups of set 1, set 2 and both (duplicates removed, order kept).
    label_hash1, label_hash2, label_hash_all : dict
        ``{label: summed sample count}`` over the corresponding groups.
    memo : dict
        Intermediate results for this pair.
    """

    def __init__(self, basedata: BaseData, element_list1, element_list2=None) -> None:
        if element_list1 is None:
            raise MissingArgumentError("element_list1 is required.")
        if isinstance(element_list1, (str, bytes)):
            element_list1 = [element_list1]
        if isinstance(element_list2, (str, bytes)):
            element_list2 = [element_list2]

        self.element_list1 = list(dict.fromkeys(element_list1))
        self.element_list2 = list(dict.fromkeys(element_list2 or ()))
        self.element_list_all = list(
            dict.fromkeys(self.element_list1 + self.element_list2)
        )
        for group in self.element_list_all:
            basedata.group_index(group)

        self.label_hash1 = basedata.label_hash(self.element_list1)
        self.label_hash2 = basedata.label_hash(self.element_list2)
        self.label_hash_all = basedata.label_hash(self.element_list_all)
        self.memo: Dict[str, Any] = {}

    def __repr__(self) -> str:
        return (
            f"NeighbourSets({self.element_list1!r}, {self.element_list2!r}, "
            f"n_labels={len(self.label_hash_all)})"
        )


class PhyloCalculator:
    """
    Phylogenetic diversity, endemism, distinctiveness and turnover indices
    for neighbour sets drawn from one basedata and one tree.

    Parameters
    ----------
    tree : Tree or str
        The phylogeny, or a NEWICK string.
    basedata : BaseData or dict
        The abundance table, or ``{group: {label: count}}``.
    pairwise_mode : bool, default False
        Every query compares exactly one group against exactly one group,
        as when building a dissimilarity matrix.  Enables the pairwise ABC
        fast path and per-group path caching.
    backend : str, default 'best'
        'python', 'cpu-parallel' or 'best'.  A ``use_backend`` context
        active at construction takes precedence.
    use_path_length_cache_by_group : bool or None, default None
        Force the per-group path cache on or off.  ``None`` decides per
        ``calculate`` call from the requested indices.

    Raises
    ------
    MissingArgumentError
        If *tree* or *basedata* is None.

    Examples
    --------
    >>> calc = PhyloCalculator('((A:1,B:1)AB:1,(C:1,D:1)CD:1)root:0;',
    ...                        {'g1': {'A': 1, 'B': 1}, 'g2': {'C': 1, 'D': 1}})
    >>> calc.calculate(['calc_pd'], ['g1'])['PD']
    3.0
    """

    CALCULATIONS = (
        "calc_pd",
        "calc_pd_local",
        "calc_last_shared_ancestor_props",
        "calc_pd_node_list",
        "calc_pd_terminal_node_list",
        "calc_pd_terminal_node_count",
        "calc_pe",
        "calc_pe_lists",
        "calc_pe_single",
        "calc_pe_central",
        "calc_pe_central_lists",
        "calc_pe_central_cwe",
        "calc_pd_endemism",
        "calc_pd_clade_contributions",
        "calc_pe_clade_contributions",
        "calc_pd_clade_loss",
        "calc_pe_clade_loss",
        "calc_pd_clade_loss_ancestral",
        "calc_pe_clade_loss_ancestral",
        "calc_labels_on_tree",
        "calc_count_labels_on_tree",
        "calc_labels_not_on_tree",
        "calc_phylo_abc",
        "calc_phylo_sorenson",
        "calc_phylo_jaccard",
        "calc_phylo_s2",
        "calc_phylo_corrected_weighted_endemism",
        "calc_phylo_corrected_weighted_rarity",
        "calc_phylo_aed",
        "calc_phylo_aed_t",
        "calc_phylo_aed_t_wtlists",
        "calc_phylo_abundance",
        "calc_rw_turnover",
        "calc_phylo_rw_turnover",
    )

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(
        self,
        tree,
        basedata,
        pairwise_mode: bool = False,
        backend: str = "best",
        use_path_length_cache_by_group: Optional[bool] = None,
    ) -> None:
        if tree is None:
            raise MissingArgumentError("A tree is required.")
        if basedata is None:
            raise MissingArgumentError("A basedata table is required.")
        if isinstance(tree, str):
            tree = Tree(tree)
        if isinstance(basedata, dict):
            basedata = BaseData(basedata)

        self.tree = tree
        self.basedata = basedata
        self.pairwise_mode = bool(pairwise_mode)

        # ── Resolve backend once ─────────────────────────────────────
        backend_override = get_backend_override()
        if backend_override is not None:
            backend = backend_override
        try:
            self.backend = resolve_backend(backend)
        except ValueError as e:
            logger.warning(str(e))
            self.backend = get_best_backend()

        self._auto_group_cache = use_path_length_cache_by_group is None
        if self._auto_group_cache:
            use_group_cache = self.pairwise_mode
        else:
            use_group_cache = bool(use_path_length_cache_by_group)
        self.cache = CalculationCache(use_group_cache=use_group_cache)

        # Global pre-calculations, built on first use
        self._trimmed_tree = None
        self._labels_not_on_tree = None
        self._node_ranges = None
        self._range_counts = None
        self._inverse_weights = None
        self._node_abundance = None
        self._aed_scores = None

        logger.info(
            f"PhyloCalculator: {tree.n_terminals} terminals, "
            f"{basedata.n_groups} groups, {basedata.n_labels} labels, "
            f"pairwise_mode={self.pairwise_mode}, backend={self.backend!r}"
        )

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def neighbour_sets(self, element_list1, element_list2=None) -> NeighbourSets:
        """
        Build the :class:`NeighbourSets` for one pair of group lists.

        Raises
        ------
        MissingArgumentError
            If *element_list1* is None.
        KeyError
            If a group is not in the basedata.
        ValueError
            In pairwise mode, if either side does not hold exactly one group.
        """
        ns = NeighbourSets(self.basedata, element_list1, element_list2)
        if self.pairwise_mode and not (
            len(ns.element_list1) == 1 and len(ns.element_list2) == 1
        ):
            raise ValueError(
                "pairwise_mode requires exactly one group in each neighbour "
                f"set; got {len(ns.element_list1)} and {len(ns.element_list2)}."
            )
        return ns

    def calculate(
        self, calculations: Iterable[str], element_list1, element_list2=None
    ) -> Dict[str, Any]:
        """
        Run several indices for one pair of neighbour sets.

        Parameters
        ----------
        calculations : iterable of str
            Names from :attr:`CALCULATIONS`.
        element_list1 : sequence
            Groups of neighbour set 1.
        element_list2 : sequence, optional
            Groups of neighbour set 2.

        Returns
        -------
        dict
            Index name → scalar, ``None`` (undefined) or node-keyed mapping.

        Raises
        ------
        KeyError
            For an unknown calculation or group name.
        """
        if isinstance(calculations, str):
            calculations = [calculations]
        calculations = list(dict.fromkeys(calculations))
        unknown = [c for c in calculations if c not in self.CALCULATIONS]
        if unknown:
            raise KeyError(
                f"Unknown calculation(s): {', '.join(unknown)}. "
                f"See PhyloCalculator.CALCULATIONS."
            )

        if self._auto_group_cache and not self.pairwise_mode:
            requested = set(calculations)
            self.cache.paths.use_group_cache = bool(
                requested & _PE_CALCS and requested & (_PD_CALCS | _ABC_LIST_CALCS)
            )

        ns = self.neighbour_sets(element_list1, element_list2)
        logger.debug(
            f"calculate({len(calculations)} indices, "
            f"{len(ns.element_list1)} + {len(ns.element_list2)} groups, "
            f"{len(ns.label_hash_all)} labels)"
        )

        results: Dict[str, Any] = {}
        for name in calculations:
            results.update(getattr(self, name)(ns))
        return results

    # ---- Global pre-calculations --------------------------------------- #

    @property
    def trimmed_tree(self) -> Tree:
        """
        The tree restricted to paths from basedata labels to the root.

        The original tree is returned when every terminal is a basedata
        label.
        """
        if self._trimmed_tree is None:
            tree = self.tree
            bd = self.basedata
            n_removed = sum(1 for name in tree.terminal_names if not bd.has_label(name))
            if n_removed == 0:
                trimmed = tree
            else:
                trimmed = tree.trim(bd.label_names)
            log_trim_summary(tree.n_terminals, n_removed, tree.n_nodes, trimmed.n_nodes)
            self._trimmed_tree = trimmed
        return self._trimmed_tree

    @property
    def labels_not_on_tree(self) -> Dict[Any, int]:
        if self._labels_not_on_tree is None:
            missing = _diversity.labels_not_on_tree(self.basedata.label_names, self.tree)
            log_labels_not_on_tree(len(missing), self.basedata.n_labels, list(missing))
            self._labels_not_on_tree = missing
        return self._labels_not_on_tree

    @property
    def node_ranges(self) -> NodeRangeIndex:
        if self._node_ranges is None:
            self._node_ranges = NodeRangeIndex(
                self.trimmed_tree, self.basedata, backend=self.backend
            )
        return self._node_ranges

    @property
    def inverse_range_weighted_lengths(self) -> Dict[str, float]:
        if self._inverse_weights is None:
            self._inverse_weights = inverse_range_weighted_lengths(
                self.trimmed_tree, self.node_ranges
            )
        return self._inverse_weights

    @property
    def node_abundance(self) -> Dict[str, float]:
        """``{node name: summed sample count of the terminals below}``."""
        tree = self.trimmed_tree
        return dict(zip(tree.names, self._node_abundance_array().tolist()))

    @property
    def aed_scores(self) -> Dict[str, Dict[str, float]]:
        """``ES_SCORES``, ``ED_SCORES`` and ``AED_SCORES`` per terminal."""
        if self._aed_scores is None:
            tree = self.trimmed_tree
            self._aed_scores = distinctiveness_scores(
                tree,
                terminal_counts(tree, backend=self.backend),
                self._node_abundance_array(),
                backend=self.backend,
            )
        return self._aed_scores

    @property
    def trimmed_parent_name_hash(self) -> Dict[str, Optional[str]]:
        return self.trimmed_tree.parent_name_hash()

    def clear_caches(self) -> None:
        """Drop cached paths and per-group results; globals are kept."""
        self.cache.clear()

    def __repr__(self) -> str:
        return (
            f"PhyloCalculator(tree={self.tree!r}, basedata={self.basedata!r}, "
            f"pairwise_mode={self.pairwise_mode}, backend={self.backend!r})"
        )

    # ================================================================== #
    # Index calculations                                                   #
    # ================================================================== #

    # ---- PD ------------------------------------------------------------- #

    def calc_pd(self, ns: NeighbourSets) -> Dict[str, Any]:
        """Phylogenetic diversity: ``PD``, ``PD_P``, ``PD_per_taxon``, ``PD_P_per_taxon``."""
        pd = self._calc_pd(ns)
        return {k: pd[k] for k in ("PD", "PD_P", "PD_per_taxon", "PD_P_per_taxon")}

    def calc_pd_node_list(self, ns: NeighbourSets) -> Dict[str, Any]:
        return {"PD_INCLUDED_NODE_LIST": self._calc_pd(ns)["PD_INCLUDED_NODE_LIST"]}

    def calc_pd_terminal_node_list(self, ns: NeighbourSets) -> Dict[str, Any]:
        return {"PD_INCLUDED_TERMINAL_NODE_LIST": self._pd_terminal_node_list(ns)}

    def calc_pd_terminal_node_count(self, ns: NeighbourSets) -> Dict[str, Any]:
        return {"PD_INCLUDED_TERMINAL_NODE_COUNT": len(self._pd_terminal_node_list(ns))}

    def calc_pd_local(self, ns: NeighbourSets) -> Dict[str, Any]:
        """
        PD below the last shared ancestor of the labels (``PD_LOCAL``,
        ``PD_LOCAL_P``).
        """
        pd = self._calc_pd(ns)
        return _diversity.pd_local(
            pd["PD"], pd["PD_P"], self.tree, self._last_shared_ancestor(ns)
        )

    def calc_last_shared_ancestor_props(self, ns: NeighbourSets) -> Dict[str, Any]:
        return _diversity.last_shared_ancestor_props(
            self.tree,
            self._last_shared_ancestor(ns),
            self._subtree(ns),
            ns.label_hash_all,
        )

    # ---- PE ------------------------------------------------------------- #

    def calc_pe(self, ns: NeighbourSets) -> Dict[str, Any]:
        """Phylogenetic endemism, ``PE_WE`` and ``PE_WE_P``."""
        pe = self._calc_pe(ns)
        return {"PE_WE": pe["PE_WE"], "PE_WE_P": pe["PE_WE_P"]}

    def calc_pe_lists(self, ns: NeighbourSets) -> Dict[str, Any]:
        pe = self._calc_pe(ns)
        return {k: pe[k] for k in ("PE_WTLIST", "PE_RANGELIST", "PE_LOCAL_RANGELIST")}

    def calc_pe_single(self, ns: NeighbourSets) -> Dict[str, Any]:
        return _diversity.pe_single(self._calc_pe(ns)["PE_RANGELIST"], self.trimmed_tree)

    def calc_pe_central(self, ns: NeighbourSets) -> Dict[str, Any]:
        """
        PE using the labels of neighbour set 1 and local ranges from both
        sets.  Identical to PE when set 2 is empty.
        """
        return self._memo(ns, "pe_central", lambda: _diversity.pe_central(
            self._calc_pe(ns)["PE_WE"],
            self._calc_pe(ns)["PE_WTLIST"],
            self._abc_lists(ns)["PHYLO_C_LIST"],
            self.trimmed_tree.total_length,
        ))

    def calc_pe_central_lists(self, ns: NeighbourSets) -> Dict[str, Any]:
        return self._memo(ns, "pe_central_lists", lambda: _diversity.pe_central_lists(
            self._calc_pe(ns)["PE_WTLIST"],
            self._calc_pe(ns)["PE_LOCAL_RANGELIST"],
            self._calc_pe(ns)["PE_RANGELIST"],
            self._abc_lists(ns),
        ))

    def calc_pe_central_cwe(self, ns: NeighbourSets) -> Dict[str, Any]:
        return _diversity.pe_central_cwe(
            self.calc_pe_central(ns)["PEC_WE"],
            self.calc_pe_central_lists(ns)["PEC_WTLIST"],
            self._calc_pd(ns)["PD_INCLUDED_NODE_LIST"],
        )

    def calc_pd_endemism(self, ns: NeighbourSets) -> Dict[str, Any]:
        pe = self._calc_pe(ns)
        return _diversity.pd_endemism(
            pe["PE_WTLIST"],
            pe["PE_RANGELIST"],
            pe["PE_LOCAL_RANGELIST"],
            self.trimmed_tree.total_length,
        )

    def calc_phylo_corrected_weighted_endemism(self, ns: NeighbourSets) -> Dict[str, Any]:
        return _diversity.pe_cwe(self._calc_pe(ns)["PE_WE"], self._calc_pd(ns)["PD"])

    # ---- Clades --------------------------------------------------------- #

    def calc_pd_clade_contributions(self, ns: NeighbourSets) -> Dict[str, Any]:
        return self._clade_contributions(ns, "PD_")

    def calc_pe_clade_contributions(self, ns: NeighbourSets) -> Dict[str, Any]:
        return self._clade_contributions(ns, "PE_")

    def calc_pd_clade_loss(self, ns: NeighbourSets) -> Dict[str, Any]:
        return self._clade_loss(ns, "PD_")

    def calc_pe_clade_loss(self, ns: NeighbourSets) -> Dict[str, Any]:
        return self._clade_loss(ns, "PE_")

    def calc_pd_clade_loss_ancestral(self, ns: NeighbourSets) -> Dict[str, Any]:
        return _clades.clade_loss_ancestral(
            self._clade_contributions(ns, "PD_"), self._clade_loss(ns, "PD_"), "PD_"
        )

    def calc_pe_clade_loss_ancestral(self, ns: NeighbourSets) -> Dict[str, Any]:
        return _clades.clade_loss_ancestral(
            self._clade_contributions(ns, "PE_"), self._clade_loss(ns, "PE_"), "PE_"
        )

    # ---- Labels --------------------------------------------------------- #

    def calc_labels_on_tree(self, ns: NeighbourSets) -> Dict[str, Any]:
        return {"PHYLO_LABELS_ON_TREE": self._labels_on_tree(ns)}

    def calc_count_labels_on_tree(self, ns: NeighbourSets) -> Dict[str, Any]:
        return {"PHYLO_LABELS_ON_TREE_COUNT": len(self._labels_on_tree(ns))}

    def calc_labels_not_on_tree(self, ns: NeighbourSets) -> Dict[str, Any]:
        return _diversity.labels_not_on_tree_results(
            ns.label_hash_all, self.labels_not_on_tree
        )

    # ---- Dissimilarity -------------------------------------------------- #

    def calc_phylo_abc(self, ns: NeighbourSets) -> Dict[str, Any]:
        """Shared (A) and unique (B, C) branch lengths of the two sets."""
        return _abc.abc_results(*self._abc(ns))

    def calc_phylo_sorenson(self, ns: NeighbourSets) -> Dict[str, Any]:
        return {"PHYLO_SORENSON": _abc.phylo_sorenson(*self._abc(ns))}

    def calc_phylo_jaccard(self, ns: NeighbourSets) -> Dict[str, Any]:
        return {"PHYLO_JACCARD": _abc.phylo_jaccard(*self._abc(ns))}

    def calc_phylo_s2(self, ns: NeighbourSets) -> Dict[str, Any]:
        return {"PHYLO_S2": _abc.phylo_s2(*self._abc(ns))}

    # ---- Distinctiveness and abundance ---------------------------------- #

    def calc_phylo_aed(self, ns: NeighbourSets) -> Dict[str, Any]:
        """ES, ED and AED scores of the labels in the neighbour sets."""
        return self._aed_lists(ns)

    def calc_phylo_aed_t(self, ns: NeighbourSets) -> Dict[str, Any]:
        return {"PHYLO_AED_T": self._aed_t(ns)["PHYLO_AED_T"]}

    def calc_phylo_aed_t_wtlists(self, ns: NeighbourSets) -> Dict[str, Any]:
        aed_t = self._aed_t(ns)
        return _diversity.phylo_aed_t_wtlists(
            aed_t["PHYLO_AED_T_WTLIST"], aed_t["PHYLO_AED_T"]
        )

    def calc_phylo_corrected_weighted_rarity(self, ns: NeighbourSets) -> Dict[str, Any]:
        return _diversity.phylo_rarity_cwr(
            self._aed_t(ns)["PHYLO_AED_T"], self._calc_pd(ns)["PD"]
        )

    def calc_phylo_abundance(self, ns: NeighbourSets) -> Dict[str, Any]:
        return _diversity.phylo_abundance(
            self._labels_on_tree(ns),
            ns.label_hash_all,
            self.trimmed_tree,
            self.cache.paths,
        )

    # ---- Turnover ------------------------------------------------------- #

    def calc_rw_turnover(self, ns: NeighbourSets) -> Dict[str, Any]:
        """Range-weighted turnover of the labels (no tree)."""
        weights = _turnover.endemism_weights(
            ns.label_hash_all, ns.element_list_all, self.basedata
        )
        return _turnover.rw_turnover(weights, ns.label_hash1, ns.label_hash2)

    def calc_phylo_rw_turnover(self, ns: NeighbourSets) -> Dict[str, Any]:
        """Range-weighted turnover of the branches, weighted by ``PE_WTLIST``."""
        return _turnover.phylo_rw_turnover(
            self._calc_pe(ns)["PE_WTLIST"],
            self.node_ranges,
            self.trimmed_parent_name_hash,
            ns.element_list1,
            ns.element_list2,
            pairwise_mode=self.pairwise_mode,
        )

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    @staticmethod
    def _memo(ns: NeighbourSets, key: str, compute: Callable[[], Any]) -> Any:
        """**Private.**  Return ``ns.memo[key]``, computing it on first use."""
        try:
            return ns.memo[key]
        except KeyError:
            value = ns.memo[key] = compute()
            return value

    def _node_abundance_array(self) -> np.ndarray:
        if self._node_abundance is None:
            self._node_abundance = node_abundance(
                self.trimmed_tree, self.basedata, backend=self.backend
            )
        return self._node_abundance

    def _range_counts_hash(self) -> Dict[str, int]:
        if self._range_counts is None:
            self._range_counts = self.node_ranges.as_counts()
        return self._range_counts

    def _labels_on_tree(self, ns: NeighbourSets) -> Dict:
        return self._memo(ns, "labels_on_tree", lambda: _diversity.labels_on_tree(
            ns.label_hash_all, self.labels_not_on_tree
        ))

    def _calc_pd(self, ns: NeighbourSets) -> Dict[str, Any]:
        """
        **Private.**  PD over the labels on the (untrimmed) tree.

        The group cache is consulted only when the pair holds one group in
        total.
        """
        def compute():
            labels = self._labels_on_tree(ns)
            el_list: Sequence = ()
            if len(ns.element_list1) + len(ns.element_list2) == 1:
                el_list = ns.element_list1 + ns.element_list2
            path = self.cache.paths.path_lengths(labels, self.tree, el_list)
            return _diversity.pd_scores(path, len(labels), self.tree.total_length)

        return self._memo(ns, "pd", compute)

    def _pd_terminal_node_list(self, ns: NeighbourSets) -> Dict[str, float]:
        return self._memo(ns, "pd_terminals", lambda: _diversity.pd_terminal_node_list(
            self._calc_pd(ns)["PD_INCLUDED_NODE_LIST"], self.tree
        ))

    def _calc_pe(self, ns: NeighbourSets) -> Dict[str, Any]:
        """
        **Private.**  Endemism results summed over every group of the pair.

        Per-group results are kept in ``cache.pe_results`` for reuse by
        later pairs.
        """
        def compute():
            tree = self.trimmed_tree
            pe_cache = self.cache.pe_results
            group_results = []
            for group in ns.element_list_all:
                res = pe_cache.get(group)
                if res is None:
                    path = self.cache.paths.path_lengths(
                        self.basedata.labels_in_group(group), tree, [group]
                    )
                    res = pe_cache[group] = _diversity.pe_group_results(
                        path,
                        self.inverse_range_weighted_lengths,
                        self._range_counts_hash(),
                    )
                group_results.append(res)
            return _diversity.pe_totals(group_results, tree.total_length)

        return self._memo(ns, "pe", compute)

    def _abc_side_path(self, elements: List, label_hash: Dict) -> Dict[str, float]:
        """**Private.**  Path of one side on the trimmed tree, memoized per group."""
        if not elements:
            return {}
        single = len(elements) == 1
        if single:
            cached = self.cache.abc_paths.get(elements[0])
            if cached is not None:
                return cached
        path = self.cache.paths.path_lengths(label_hash, self.trimmed_tree, elements)
        if single:
            self.cache.abc_paths[elements[0]] = path
        return path

    def _abc_paths(self, ns: NeighbourSets):
        return self._memo(ns, "abc_paths", lambda: (
            self._abc_side_path(ns.element_list1, ns.label_hash1),
            self._abc_side_path(ns.element_list2, ns.label_hash2),
        ))

    def _abc(self, ns: NeighbourSets):
        def compute():
            paths1, paths2 = self._abc_paths(ns)
            if self.pairwise_mode:
                return _abc.phylo_abc_pairwise(
                    paths1,
                    paths2,
                    ns.element_list1[0],
                    ns.element_list2[0],
                    self.cache.pairwise_branch_sums,
                )
            return _abc.phylo_abc(paths1, paths2)

        return self._memo(ns, "abc", compute)

    def _abc_lists(self, ns: NeighbourSets) -> Dict[str, Dict[str, float]]:
        return self._memo(ns, "abc_lists", lambda: _abc.phylo_abc_lists(*self._abc_paths(ns)))

    def _subtree(self, ns: NeighbourSets) -> Dict[str, List[str]]:
        """
        **Private.**  Subtree spanned by the labels on the tree.

        Warns with :class:`InconsistentSubtreeWarning` when its terminal
        count differs from the number of labels, which happens when labels
        name internal nodes.
        """
        def compute():
            labels = self._labels_on_tree(ns)
            subtree = sub_tree_as_hash(labels, self.tree.parent_name_hash())
            n_terminals = count_subtree_terminals(subtree)
            if subtree and n_terminals != len(labels):
                log_inconsistent_subtree(n_terminals, len(labels))
                warnings.warn(
                    f"Subtree has {n_terminals} terminal(s) for "
                    f"{len(labels)} label(s) on the tree.",
                    InconsistentSubtreeWarning,
                    stacklevel=4,
                )
            return subtree

        return self._memo(ns, "subtree", compute)

    def _last_shared_ancestor(self, ns: NeighbourSets) -> str:
        return self._memo(ns, "last_shared_ancestor", lambda: last_shared_ancestor(
            self._subtree(ns), self.tree.names[self.tree.root]
        ))

    def _clade_contributions(self, ns: NeighbourSets, prefix: str) -> Dict[str, Any]:
        """
        **Private.**  Clade scores for PD (``'PD_'``: branch lengths on the
        tree) or PE (``'PE_'``: endemism weights on the trimmed tree).
        """
        def compute():
            if prefix == "PD_":
                pd = self._calc_pd(ns)
                weights, total, tree = pd["PD_INCLUDED_NODE_LIST"], pd["PD"], self.tree
            else:
                pe = self._calc_pe(ns)
                weights, total, tree = pe["PE_WTLIST"], pe["PE_WE"], self.trimmed_tree
            return _clades.clade_contributions(
                weights,
                total,
                self._subtree(ns),
                tree.depth_hash(),
                tree.total_length,
                prefix,
            )

        return self._memo(ns, f"{prefix}clade_contributions", compute)

    def _clade_loss(self, ns: NeighbourSets, prefix: str) -> Dict[str, Any]:
        return self._memo(ns, f"{prefix}clade_loss", lambda: _clades.clade_loss(
            self._clade_contributions(ns, prefix),
            self._subtree(ns),
            self.trimmed_parent_name_hash,
            prefix,
        ))

    def _aed_lists(self, ns: NeighbourSets) -> Dict[str, Dict[str, float]]:
        return self._memo(ns, "aed_lists", lambda: _diversity.phylo_aed_lists(
            ns.label_hash_all, self.aed_scores
        ))

    def _aed_t(self, ns: NeighbourSets) -> Dict[str, Any]:
        return self._memo(ns, "aed_t", lambda: _diversity.phylo_aed_t(
            ns.label_hash_all, self._aed_lists(ns)["PHYLO_AED_LIST"]
        ))
