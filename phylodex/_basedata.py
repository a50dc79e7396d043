"""
_basedata.py
============
The taxon-abundance table consumed by the index calculators: which labels
(taxa) were observed in which groups (sampling units), and how many samples
of each.

Public API
----------
  BaseData(groups)
      Constructor.  *groups* maps group identifier → {label: sample count}.

  BaseData.from_records(records)
      Alternate constructor from an iterable of (group, label, count).

Layout
------
Group and label identifiers are sorted deterministically and assigned
contiguous integer indices, in the same manner as a global taxon namespace:

  group_names    : list        group_names[g] = group identifier
  label_names    : list        label_names[l] = label
  sample_counts  : float64 ndarray (n_groups, n_labels)
  label_present  : bool ndarray    (n_groups, n_labels)

The dense layout gives O(1) presence checks and lets the node-range kernel
read one label's group column directly.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Hashable, Iterable, Set, Tuple

import numpy as np

from phylodex._logging import log_basedata_statistics

logger = logging.getLogger(__name__)


def _name_order(name):
    return (type(name).__name__, name)


class BaseData:
    """
    Groups × labels table of sample counts.

    Parameters
    ----------
    groups : dict
        ``{group: {label: count}}``.  Counts must be non-negative; a label
        listed with a count of zero is still recorded as present.

    Attributes (read-only after construction)
    -----------------------------------------
    n_groups, n_labels : int
    group_names, label_names : list
        Sorted by type name, then value, so int and str identifiers can mix.
    sample_counts : float64 (n_groups, n_labels)
    label_present : bool    (n_groups, n_labels)
    label_ranges  : int64   (n_labels,)   groups containing each label
    label_totals  : float64 (n_labels,)   sample count summed over groups

    Examples
    --------
    >>> bd = BaseData({'g1': {'A': 2, 'B': 1}, 'g2': {'B': 3}})
    >>> bd.get_group_count()
    2
    >>> sorted(bd.groups_with_label('B'))
    ['g1', 'g2']
    >>> bd.label_sample_count('B')
    4.0
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, groups: Dict[Hashable, Dict[Hashable, float]]) -> None:
        if not isinstance(groups, dict):
            raise TypeError(
                f"groups must be a dict of dicts, got {type(groups).__name__}"
            )

        label_set: set = set()
        for group, labels in groups.items():
            if not isinstance(labels, dict):
                raise TypeError(
                    f"Group {group!r} must map labels to counts, "
                    f"got {type(labels).__name__}"
                )
            label_set.update(labels)

        self.group_names = sorted(groups, key=_name_order)
        self.label_names = sorted(label_set, key=_name_order)
        self.n_groups = len(self.group_names)
        self.n_labels = len(self.label_names)
        self._group_index = {g: i for i, g in enumerate(self.group_names)}
        self._label_index = {l: i for i, l in enumerate(self.label_names)}

        self.sample_counts = np.zeros((self.n_groups, self.n_labels), dtype=np.float64)
        self.label_present = np.zeros((self.n_groups, self.n_labels), dtype=np.bool_)
        for group, labels in groups.items():
            gi = self._group_index[group]
            for label, count in labels.items():
                if count < 0:
                    raise ValueError(
                        f"Negative sample count {count} for label {label!r} "
                        f"in group {group!r}"
                    )
                li = self._label_index[label]
                self.sample_counts[gi, li] = count
                self.label_present[gi, li] = True

        self.label_ranges = self.label_present.sum(axis=0).astype(np.int64)
        self.label_totals = self.sample_counts.sum(axis=0)

        n_records = int(self.label_present.sum())
        log_basedata_statistics(
            self.n_groups,
            self.n_labels,
            n_records,
            n_records / self.n_groups if self.n_groups else 0.0,
            n_records / self.n_labels if self.n_labels else 0.0,
        )

    @classmethod
    def from_records(cls, records: Iterable[Tuple[Any, Any, float]]) -> "BaseData":
        """
        Build a table from ``(group, label, count)`` records.

        Counts for repeated (group, label) pairs are summed.
        """
        groups: Dict[Any, Dict[Any, float]] = defaultdict(dict)
        for group, label, count in records:
            groups[group][label] = groups[group].get(label, 0) + count
        return cls(dict(groups))

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def get_group_count(self) -> int:
        return self.n_groups

    def has_group(self, group) -> bool:
        return group in self._group_index

    def has_label(self, label) -> bool:
        return label in self._label_index

    def group_index(self, group) -> int:
        """Return the integer index of *group*; ``KeyError`` if unknown."""
        try:
            return self._group_index[group]
        except KeyError:
            raise KeyError(f"Group {group!r} not found in basedata.") from None

    def label_index(self, label) -> int:
        """Return the integer index of *label*; ``KeyError`` if unknown."""
        try:
            return self._label_index[label]
        except KeyError:
            raise KeyError(f"Label {label!r} not found in basedata.") from None

    def labels_in_group(self, group) -> Dict[Any, float]:
        """Return ``{label: count}`` for the labels observed in *group*."""
        gi = self.group_index(group)
        present = np.flatnonzero(self.label_present[gi])
        counts = self.sample_counts[gi]
        return {self.label_names[li]: float(counts[li]) for li in present}

    def groups_with_label(self, label) -> Set[Any]:
        """Return the set of groups in which *label* was observed."""
        li = self.label_index(label)
        return {self.group_names[g] for g in np.flatnonzero(self.label_present[:, li])}

    def label_range(self, label) -> int:
        """Number of groups in which *label* was observed."""
        return int(self.label_ranges[self.label_index(label)])

    def label_sample_count(self, label) -> float:
        """Total sample count of *label* across all groups."""
        return float(self.label_totals[self.label_index(label)])

    def label_hash(self, groups: Iterable) -> Dict[Any, float]:
        """
        Merge the label counts of several groups.

        Parameters
        ----------
        groups : iterable of group identifiers

        Returns
        -------
        dict
            ``{label: count summed over groups}`` for every label observed in
            at least one of *groups*.
        """
        idx = [self.group_index(g) for g in groups]
        if not idx:
            return {}
        present = self.label_present[idx].any(axis=0)
        totals = self.sample_counts[idx].sum(axis=0)
        return {self.label_names[li]: float(totals[li]) for li in np.flatnonzero(present)}

    def __repr__(self) -> str:
        return f"BaseData(n_groups={self.n_groups}, n_labels={self.n_labels})"
