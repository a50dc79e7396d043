"""
_tree.py
========
A rooted phylogenetic tree represented as a set of parallel numpy arrays,
with name lookup, depth ordering and the name-keyed hashes consumed by the
index calculators.

Public API
----------
  Tree(newick_string)
      Constructor.  Parses the NEWICK string and builds all data structures.

  Tree.from_arrays(names, parent, length, children=None)
      Alternate constructor from a parent-pointer representation.

  .node(x)                  -> TreeNode view
  .ancestor_ids(x)          -> node IDs from x to the root (inclusive)
  .path_names_to_root(x)    -> node names from x to the root (inclusive)
  .path_length_to_root(x)   -> summed branch length from x to the root
  .trim(keep)               -> new Tree restricted to the paths of *keep*
  .node_length_hash() / .parent_name_hash() / .child_name_hash() / .depth_hash()

Node identity
-------------
Every node has a unique name and a stable integer ID.  Caches elsewhere in
the package are keyed by integer ID; results handed back to callers are
keyed by name.  Unnamed nodes receive a generated name ``"<id>___"``.

Node-ID conventions (for trees built from NEWICK):
  Leaves   : 0 … n_leaves-1        (left-to-right in the NEWICK string)
  Internal : n_leaves … n_nodes-1  (post-order)
  Root     : n_nodes-1

Multifurcations are kept as they are.  The equal-splits distinctiveness
index depends on the true child count of every node, so no zero-length
binarisation is applied.

numba notes
-----------
All structure lives in contiguous arrays (``parent``, ``length``,
``depth``, ``child_offsets``/``child_ids`` in CSR form, ``depth_order``) so
kernels in ``_cpu_kernels.py`` can consume a tree without touching Python
objects.  Name resolution stays in Python and happens once in the host
wrapper before any kernel call.
"""

from typing import Dict, Iterable, List, Optional

import numpy as np


class TreeNode:
    """
    Read-only view of one node of a :class:`Tree`.

    Views are cheap to create and compare equal when they refer to the same
    node of the same tree object.
    """

    __slots__ = ("_tree", "id")

    def __init__(self, tree: "Tree", node_id: int) -> None:
        self._tree = tree
        self.id = int(node_id)

    @property
    def name(self) -> str:
        return self._tree.names[self.id]

    @property
    def length(self) -> float:
        return float(self._tree.length[self.id])

    @property
    def depth(self) -> int:
        return int(self._tree.depth[self.id])

    @property
    def parent(self) -> Optional["TreeNode"]:
        p = int(self._tree.parent[self.id])
        return None if p < 0 else TreeNode(self._tree, p)

    @property
    def children(self) -> List["TreeNode"]:
        return [TreeNode(self._tree, c) for c in self._tree.children(self.id)]

    @property
    def child_count(self) -> int:
        return int(self._tree.n_children[self.id])

    @property
    def is_terminal(self) -> bool:
        return bool(self._tree.is_terminal[self.id])

    @property
    def is_root(self) -> bool:
        return self.id == self._tree.root

    def path_lengths_to_root(self) -> Dict[str, float]:
        """Return ``{name: length}`` for this node and all of its ancestors."""
        t = self._tree
        return {t.names[i]: float(t.length[i]) for i in t.ancestor_ids(self.id)}

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, TreeNode)
            and other._tree is self._tree
            and other.id == self.id
        )

    def __hash__(self) -> int:
        return hash((id(self._tree), self.id))

    def __repr__(self) -> str:
        return f"TreeNode({self.name!r}, length={self.length}, depth={self.depth})"


class Tree:
    """
    A rooted phylogenetic tree with arbitrary (multifurcating) topology.

    Attributes (all read-only after construction)
    ----------------------------------------------
    n_nodes      : int        Total number of nodes.
    n_terminals  : int        Number of terminal (leaf) nodes.
    root         : int        Node ID of the root.
    max_depth    : int        Maximum node depth (edge count from root).
    total_length : float      Sum of all branch lengths, root included.
    names        : list[str]  Unique name for each node.

    Arrays
    ------
    parent        : int32  [n_nodes]     Parent ID; -1 for root.
    length        : float64[n_nodes]     Branch length (0.0 if absent).
    depth         : int32  [n_nodes]     Edge depth from root.
    child_offsets : int64  [n_nodes+1]   CSR offsets into child_ids.
    child_ids     : int32  [n_nodes-1]   Children, grouped by parent.
    n_children    : int32  [n_nodes]     Child count per node.
    is_terminal   : bool   [n_nodes]     True for leaves.
    depth_order   : int32  [n_nodes]     Node IDs by descending depth
                                         (terminals first, root last).
    terminal_ids  : int32  [n_terminals] Leaf IDs in ascending order.
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, newick_string: str) -> None:
        """
        Parse *newick_string* and build all tree data structures.

        Parameters
        ----------
        newick_string : str
            A NEWICK-formatted tree string (trailing ';' optional).  Labels
            after a closing ')' are read as internal node names.

        Raises
        ------
        ValueError   if the string is empty, malformed, or names repeat.
        """
        names, parent, length, children = Tree._parse_newick(newick_string)
        self._build_structure(names, parent, length, children)

    @classmethod
    def from_arrays(cls, names, parent, length, children=None) -> "Tree":
        """
        Build a tree from a parent-pointer representation.

        Parameters
        ----------
        names    : sequence of str     One unique name per node.
        parent   : sequence of int     Parent ID per node; -1 for the root.
        length   : sequence of float   Branch length per node.
        children : list[list[int]], optional
            Explicit child order per node.  Derived from *parent* (ordered
            by child ID) when omitted.

        Returns
        -------
        Tree
        """
        tree = cls.__new__(cls)
        tree._build_structure(
            list(names),
            np.asarray(parent, dtype=np.int32),
            np.asarray(length, dtype=np.float64),
            children,
        )
        return tree

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def node(self, node) -> TreeNode:
        """Return a :class:`TreeNode` view for a node ID or name."""
        return TreeNode(self, self._resolve_node(node))

    def node_id(self, node) -> int:
        """Return the integer node ID for a node ID or name."""
        return self._resolve_node(node)

    def children(self, node) -> List[int]:
        """Return the child IDs of *node* in their stored order."""
        node_id = self._resolve_node(node)
        start = int(self.child_offsets[node_id])
        end = int(self.child_offsets[node_id + 1])
        return [int(c) for c in self.child_ids[start:end]]

    def ancestor_ids(self, node) -> List[int]:
        """
        Return the IDs on the path from *node* to the root.

        The list starts with *node* itself and ends with the root.
        """
        node_id = self._resolve_node(node)
        parent = self.parent
        path = []
        while node_id >= 0:
            path.append(node_id)
            node_id = int(parent[node_id])
        return path

    def path_names_to_root(self, node) -> List[str]:
        """Return node names from *node* (inclusive) up to the root."""
        names = self.names
        return [names[i] for i in self.ancestor_ids(node)]

    def path_length_to_root(self, node) -> float:
        """Return the summed branch length from *node* (inclusive) to the root."""
        ids = self.ancestor_ids(node)
        return float(self.length[ids].sum())

    @property
    def terminal_names(self) -> List[str]:
        return [self.names[i] for i in self.terminal_ids]

    def trim(self, keep: Iterable[str]) -> "Tree":
        """
        Return a new tree containing only the nodes named in *keep* and
        their ancestors.

        Nodes whose names are not in the tree are ignored.  Internal nodes
        left with a single child are retained, so names, lengths and depths
        of every surviving node match the source tree.  A kept internal node
        with no kept descendants becomes a terminal of the new tree.

        Parameters
        ----------
        keep : iterable of str

        Returns
        -------
        Tree

        Raises
        ------
        ValueError   if none of *keep* names a node of this tree.
        """
        if self._name_index is None:
            self._build_name_index()
        index = self._name_index

        mask = np.zeros(self.n_nodes, dtype=np.bool_)
        for name in keep:
            node_id = index.get(name)
            if node_id is not None:
                mask[node_id] = True
        if not mask.any():
            raise ValueError("trim would remove every node of the tree.")

        # Terminals come first in depth_order, so every parent is marked
        # before it is visited.
        parent = self.parent
        for node_id in self.depth_order:
            if mask[node_id]:
                p = parent[node_id]
                if p >= 0:
                    mask[p] = True

        old_ids = np.flatnonzero(mask)
        remap = np.full(self.n_nodes, -1, dtype=np.int32)
        remap[old_ids] = np.arange(old_ids.shape[0], dtype=np.int32)

        old_parent = parent[old_ids]
        new_parent = np.where(old_parent >= 0, remap[old_parent], -1)
        children = [
            [int(remap[c]) for c in self.children(int(i)) if mask[c]]
            for i in old_ids
        ]
        return Tree.from_arrays(
            [self.names[i] for i in old_ids],
            new_parent,
            self.length[old_ids],
            children,
        )

    # ---- Name-keyed hashes (built once, then shared read-only) ---------- #

    def node_length_hash(self) -> Dict[str, float]:
        """``{name: branch_length}`` for every node."""
        if self._length_hash is None:
            self._length_hash = {
                name: float(ln) for name, ln in zip(self.names, self.length)
            }
        return self._length_hash

    def parent_name_hash(self) -> Dict[str, Optional[str]]:
        """``{name: parent_name}``; the root maps to ``None``."""
        if self._parent_hash is None:
            names = self.names
            self._parent_hash = {
                names[i]: (names[p] if p >= 0 else None)
                for i, p in enumerate(self.parent.tolist())
            }
        return self._parent_hash

    def child_name_hash(self) -> Dict[str, List[str]]:
        """``{name: [child names]}``; terminals map to an empty list."""
        if self._child_hash is None:
            names = self.names
            self._child_hash = {
                names[i]: [names[c] for c in self.children(i)]
                for i in range(self.n_nodes)
            }
        return self._child_hash

    def depth_hash(self) -> Dict[str, int]:
        """``{name: depth}`` for every node."""
        if self._depth_hash is None:
            self._depth_hash = dict(zip(self.names, self.depth.tolist()))
        return self._depth_hash

    def __contains__(self, name) -> bool:
        if self._name_index is None:
            self._build_name_index()
        return name in self._name_index

    def __len__(self) -> int:
        return self.n_nodes

    def __repr__(self) -> str:
        return (
            f"Tree(n_nodes={self.n_nodes}, n_terminals={self.n_terminals}, "
            f"total_length={self.total_length:g})"
        )

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _build_structure(self, names, parent, length, children=None) -> None:
        """
        **Private.**  Validate the parent-pointer arrays and derive every
        other structure array.

        Raises
        ------
        ValueError   on an empty tree, zero or several roots, out-of-range
                     parents, negative lengths, cycles, disconnected nodes
                     or duplicate names.
        """
        n_nodes = len(names)
        if n_nodes == 0:
            raise ValueError("A tree needs at least one node.")
        if parent.shape[0] != n_nodes or length.shape[0] != n_nodes:
            raise ValueError(
                f"names, parent and length must have equal sizes; got "
                f"{n_nodes}, {parent.shape[0]} and {length.shape[0]}."
            )
        if np.any(parent >= n_nodes) or np.any(parent < -1):
            raise ValueError("parent array contains out-of-range node IDs.")
        if np.any(length < 0):
            bad = int(np.flatnonzero(length < 0)[0])
            raise ValueError(
                f"Negative branch length {length[bad]} at node '{names[bad]}'."
            )

        roots = np.flatnonzero(parent < 0)
        if roots.shape[0] != 1:
            raise ValueError(
                f"A tree must have exactly one root; found {roots.shape[0]}."
            )
        root = int(roots[0])

        # ---- CSR child layout ---------------------------------------- #
        if children is None:
            non_root = np.flatnonzero(parent >= 0)
            order = non_root[np.argsort(parent[non_root], kind="stable")]
            counts = np.bincount(parent[non_root], minlength=n_nodes)
            child_ids = order.astype(np.int32)
        else:
            counts = np.array([len(c) for c in children], dtype=np.int64)
            child_ids = np.array(
                [c for group in children for c in group], dtype=np.int32
            )
        child_offsets = np.zeros(n_nodes + 1, dtype=np.int64)
        child_offsets[1:] = np.cumsum(counts)
        if child_offsets[-1] != n_nodes - 1:
            raise ValueError("Child lists do not match the parent array.")

        # ---- Depths via breadth-first walk from the root ------------- #
        depth = np.full(n_nodes, -1, dtype=np.int32)
        depth[root] = 0
        queue = [root]
        head = 0
        while head < len(queue):
            node = queue[head]
            head += 1
            for k in range(child_offsets[node], child_offsets[node + 1]):
                c = int(child_ids[k])
                if depth[c] >= 0 or parent[c] != node:
                    raise ValueError("Tree contains a cycle or inconsistent links.")
                depth[c] = depth[node] + 1
                queue.append(c)
        if len(queue) != n_nodes:
            raise ValueError(
                f"{n_nodes - len(queue)} node(s) are not connected to the root."
            )

        self.names = names
        self.parent = parent
        self.length = length
        self.child_offsets = child_offsets
        self.child_ids = child_ids
        self.n_children = np.diff(child_offsets).astype(np.int32)
        self.is_terminal = self.n_children == 0
        self.depth = depth
        self.depth_order = np.argsort(-depth, kind="stable").astype(np.int32)
        self.terminal_ids = np.flatnonzero(self.is_terminal).astype(np.int32)

        self.n_nodes: int = n_nodes
        self.n_terminals: int = int(self.terminal_ids.shape[0])
        self.root: int = root
        self.max_depth: int = int(np.max(depth))
        self.total_length: float = float(length.sum())

        self._name_index: dict = None  # type: ignore[assignment]
        self._build_name_index()

        # Name-keyed hashes, built on first use.
        self._length_hash = None
        self._parent_hash = None
        self._child_hash = None
        self._depth_hash = None

    def _resolve_node(self, node) -> int:
        """
        **Private.**  Return the integer node ID for *node*.

        Integers are returned as plain ``int``; strings are looked up in the
        name index.

        Raises
        ------
        KeyError     if *node* is a name not present in the tree.
        IndexError   if *node* is an out-of-range integer ID.
        """
        if isinstance(node, (int, np.integer)):
            node_id = int(node)
            if not 0 <= node_id < self.n_nodes:
                raise IndexError(f"Node ID {node_id} out of range.")
            return node_id
        if node not in self._name_index:
            raise KeyError(f"No node with name '{node}' found in tree.")
        return self._name_index[node]

    def _build_name_index(self) -> None:
        """
        **Private.**  Build ``self._name_index``: node name → node ID.

        Raises
        ------
        ValueError   if duplicate node names are found.
        """
        idx = {}
        for node_id, name in enumerate(self.names):
            if name in idx:
                raise ValueError(
                    f"Duplicate node name '{name}' at IDs "
                    f"{idx[name]} and {node_id}."
                )
            idx[name] = node_id
        self._name_index = idx

    # ================================================================== #
    # Private static methods                                               #
    # ================================================================== #

    @staticmethod
    def _parse_newick(newick_string: str):
        """
        **Private static.**  Parse a NEWICK string into parent-pointer form.

        Two-pass algorithm
        ------------------
        Pass 1  Count commas and open parens → exact node count.
        Pass 2  Iterative, stack-based character scan; no recursion.

        Returns
        -------
        (names, parent, length, children)
            names    : list[str]
            parent   : int32 ndarray
            length   : float64 ndarray
            children : list[list[int]]  child IDs in NEWICK order
        """
        s = newick_string.strip()
        n_chars = len(s)
        if n_chars > 0 and s[n_chars - 1] == ";":
            n_chars -= 1
        if n_chars == 0:
            raise ValueError("Empty NEWICK string.")

        # ---- Pass 1 ------------------------------------------------- #
        n_commas = 0
        n_parens = 0
        n_close = 0
        for k in range(n_chars):
            c = s[k]
            if c == ",":
                n_commas += 1
            elif c == "(":
                n_parens += 1
            elif c == ")":
                n_close += 1
        if n_parens != n_close:
            raise ValueError(
                f"Unbalanced parentheses in NEWICK string "
                f"({n_parens} '(' vs {n_close} ')')."
            )

        n_leaves = n_commas + 1
        n_nodes = n_leaves + n_parens

        parent = np.full(n_nodes, -1, dtype=np.int32)
        length = np.zeros(n_nodes, dtype=np.float64)
        names: List[Optional[str]] = [None] * n_nodes
        children: List[List[int]] = [[] for _ in range(n_nodes)]

        # ---- Pass 2 ------------------------------------------------- #
        OPEN_PAREN = -2
        stack: List[int] = []
        leaf_id = 0
        internal_id = n_leaves
        delimiters = ":,();"
        i = 0

        def read_token(i):
            j = i
            while j < n_chars and s[j] not in delimiters and s[j] not in " \t\r\n":
                j += 1
            return s[i:j], j

        def skip_ws(i):
            while i < n_chars and s[i] in " \t\r\n":
                i += 1
            return i

        def read_length(i, node_id):
            i = skip_ws(i)
            if i < n_chars and s[i] == ":":
                token, i = read_token(skip_ws(i + 1))
                try:
                    length[node_id] = float(token)
                except ValueError:
                    raise ValueError(
                        f"Invalid branch length {token!r} in NEWICK string."
                    ) from None
            return i

        while i < n_chars:
            c = s[i]

            if c in " \t\r\n" or c == ",":
                i += 1
                continue

            if c == "(":
                stack.append(OPEN_PAREN)
                i += 1
                continue

            if c == ";":
                raise ValueError(
                    f"Malformed NEWICK string: ';' at position {i} "
                    f"before the end of the tree."
                )

            if c == ")":
                i += 1
                group = []
                while stack and stack[-1] != OPEN_PAREN:
                    group.append(stack.pop())
                if not stack or not group:
                    raise ValueError("Malformed NEWICK string: empty clade.")
                stack.pop()
                group.reverse()

                node_id = internal_id
                internal_id += 1
                for child in group:
                    parent[child] = node_id
                children[node_id] = group

                i = skip_ws(i)
                if i < n_chars and s[i] not in delimiters:
                    token, i = read_token(i)
                    names[node_id] = token.strip("'\"") or None
                i = read_length(i, node_id)
                stack.append(node_id)
                continue

            # Leaf
            token, j = read_token(i)
            if leaf_id >= n_leaves:
                raise ValueError("Malformed NEWICK string: unexpected leaf.")
            node_id = leaf_id
            leaf_id += 1
            names[node_id] = token.strip("'\"") or None
            i = read_length(j, node_id)
            stack.append(node_id)

        if len(stack) != 1:
            raise ValueError(
                "Malformed NEWICK string: expected a single root clade."
            )

        final_names = [
            name if name is not None else f"{node_id}___"
            for node_id, name in enumerate(names)
        ]
        return final_names, parent, length, children
