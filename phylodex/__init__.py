"""
phylodex
========

Phylogenetic diversity, endemism and turnover indices for groups of
labelled samples placed on a phylogeny.

Main Classes
------------
PhyloCalculator : Runs the ``calc_*`` indices for pairs of neighbour sets
Tree : Single phylogenetic tree with NEWICK parsing and trimming
BaseData : Group × label sample-count table
NodeRangeIndex : Groups in which each tree node occurs

Context Managers
----------------
quiet : Suppress logging during operations
suppress_logger : Suppress specific logger
suppress_warnings : Suppress specific warnings
use_backend : Force specific computational backend
silent_benchmark : Combine quiet + backend selection + warning suppression

Exceptions
----------
MissingArgumentError : A required argument was not supplied
InconsistentSubtreeWarning : Subtree terminals do not match the labels

Backend Information
-------------------
get_available_backends : Query available computational backends
get_backend_info : Get comprehensive backend status
check_numba_available : Check if numba is available

Examples
--------
Basic usage:

>>> from phylodex import PhyloCalculator
>>> calc = PhyloCalculator(
...     '((A:1,B:1)AB:1,(C:1,D:1)CD:1)root:0;',
...     {'g1': {'A': 1, 'B': 1}, 'g2': {'C': 1, 'D': 1}},
... )
>>> res = calc.calculate(['calc_pd', 'calc_phylo_sorenson'], ['g1'], ['g2'])
>>> res['PD'], res['PHYLO_SORENSON']
(6.0, 1.0)

With context managers:

>>> from phylodex import quiet, use_backend
>>> with quiet(), use_backend('python'):
...     calc = PhyloCalculator(tree, basedata)
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Main classes
from ._calculator import PhyloCalculator, NeighbourSets, CalculationCache
from ._tree import Tree, TreeNode
from ._basedata import BaseData
from ._ranges import NodeRangeIndex
from ._paths import PathLengthCache

# Exceptions and warnings
from ._errors import MissingArgumentError, InconsistentSubtreeWarning

# Context managers (user-facing utilities)
from ._context import (
    suppress_logger,
    quiet,
    suppress_warnings,
    use_backend,
    silent_benchmark,
)

# Backend information (useful for checking capabilities)
from ._backend import (
    get_available_backends,
    get_backend_info,
    check_numba_available,
)

# Public API
__all__ = [
    # Main classes
    "PhyloCalculator",
    "NeighbourSets",
    "CalculationCache",
    "Tree",
    "TreeNode",
    "BaseData",
    "NodeRangeIndex",
    "PathLengthCache",
    # Exceptions
    "MissingArgumentError",
    "InconsistentSubtreeWarning",
    # Context managers
    "suppress_logger",
    "quiet",
    "suppress_warnings",
    "use_backend",
    "silent_benchmark",
    # Backend information
    "get_available_backends",
    "get_backend_info",
    "check_numba_available",
    # Version info
    "__version__",
]
