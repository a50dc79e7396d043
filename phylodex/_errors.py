"""
_errors.py
==========
Exception and warning types raised by phylodex.

Most failures use the built-in types (``KeyError`` for unknown groups,
labels or calculation names; ``ValueError`` for malformed trees and
violated preconditions).  The types here cover the two cases callers
usually want to catch on their own.
"""


class MissingArgumentError(ValueError):
    """A required input (tree, basedata or element list) was not supplied."""


class InconsistentSubtreeWarning(UserWarning):
    """
    The subtree induced by a label set has a different number of terminals
    than there are labels on the tree.

    This happens when basedata labels name internal nodes of the tree.
    Indices are still computed; the warning flags that clade-based results
    may not mean what the caller expects.
    """
