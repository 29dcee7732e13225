"""Boundary regions and node classification

Classification follows a small state machine; a fixed value node has to be released to an
inner node before it can become a zero gradient node. Every check is carried out before
anything is written, so a rejected call leaves the registry exactly as it was.
"""
import enum
import logging

import numpy as np
import numpy_indexed as npi

from pylaplace.errors import DuplicateEntry, IllegalTransition, OutOfRange, UnknownName
from pylaplace.topology import index_dtype


logger = logging.getLogger(__name__)


class NodeType(enum.IntEnum):
    INNER = 0
    ZERO_GRADIENT = 1
    FIXED_VALUE = 2


# (current, requested) pairs that may be applied; staying put is always allowed
ALLOWED_TRANSITIONS = frozenset([
    (NodeType.INNER, NodeType.ZERO_GRADIENT),
    (NodeType.ZERO_GRADIENT, NodeType.INNER),
    (NodeType.INNER, NodeType.FIXED_VALUE),
    (NodeType.ZERO_GRADIENT, NodeType.FIXED_VALUE),
    (NodeType.FIXED_VALUE, NodeType.INNER),
])


def check_transition(current, requested):
    """Raise if any of the `current` node types may not move to `requested`

    Parameters
    ----------
    current : ndarray, [n], int
        node types of the nodes to be reclassified
    requested : NodeType
    """
    requested = NodeType(requested)
    for c in np.unique(current):
        c = NodeType(c)
        if c != requested and (c, requested) not in ALLOWED_TRANSITIONS:
            raise IllegalTransition(
                f'{c.name} nodes can not become {requested.name}; reclassify them as INNER first')


class BoundaryRegion(object):
    """Named set of node labels sharing a boundary condition"""

    def __init__(self, name, labels, node_type):
        self.name = name
        self.labels = labels
        self.node_type = NodeType(node_type)

    def __len__(self):
        return len(self.labels)

    def __repr__(self):
        return f'BoundaryRegion({self.name!r}, {self.node_type.name}, n_nodes={len(self)})'


class BoundaryRegistry(object):
    """Named boundary regions plus the resulting classification of every node

    Overlapping regions are allowed; a node takes the type that was applied to it last
    """

    def __init__(self, n_nodes):
        self.n_nodes = n_nodes
        self.regions = {}     # insertion ordered; registration order
        self._node_types = np.full(n_nodes, NodeType.INNER, dtype=np.int8)
        self.version = 0

    @property
    def node_types(self):
        """Read-only view on the type of each node

        Returns
        -------
        ndarray, [n_nodes], int8
            NodeType values
        """
        view = self._node_types.view()
        view.flags.writeable = False
        return view

    def node_type(self, label):
        if not 0 <= label < self.n_nodes:
            raise OutOfRange(f'node label {label} outside [0, {self.n_nodes})')
        return NodeType(self._node_types[label])

    def __getitem__(self, name):
        try:
            return self.regions[name]
        except KeyError:
            raise UnknownName(f'no boundary region named {name!r}') from None

    def __contains__(self, name):
        return name in self.regions

    def names(self):
        return sorted(self.regions)

    def validate_labels(self, labels):
        """Convert labels to a sorted label array, rejecting duplicates and out of range labels"""
        if not isinstance(labels, np.ndarray):
            labels = np.asarray(list(labels))
        labels = labels.reshape(-1)
        if len(labels) == 0:
            return np.empty(0, dtype=index_dtype)
        if not np.issubdtype(labels.dtype, np.integer):
            raise TypeError(f'node labels should be integers; got {labels.dtype}')
        if labels.min() < 0 or labels.max() >= self.n_nodes:
            raise OutOfRange(f'region references a node outside [0, {self.n_nodes})')
        unique, count = npi.count(labels)
        if np.any(count > 1):
            raise DuplicateEntry(f'node labels listed more than once: {unique[count > 1].tolist()}')
        return unique.astype(index_dtype)

    def _released(self, name):
        """Node types as they would be after removing region `name`"""
        types = self._node_types.copy()
        labels = self.regions[name].labels
        others = [r.labels for n, r in self.regions.items() if n != name]
        shared = np.zeros(len(labels), dtype=bool)
        for o in others:
            if len(o):
                shared |= npi.contains(o, labels)
        types[labels[~shared]] = NodeType.INNER
        return types

    def add(self, name, labels, node_type=NodeType.FIXED_VALUE, replace=False):
        """Register a new region, and classify its nodes as node_type

        Parameters
        ----------
        name : str
        labels : iterable of int
            unique node labels
        node_type : NodeType
        replace : bool
            if True, an existing region of the same name is removed first.
            Its fixed value nodes still count as fixed when checking the transition to node_type

        Returns
        -------
        BoundaryRegion
        """
        node_type = NodeType(node_type)
        if name in self.regions and not replace:
            raise DuplicateEntry(f'boundary region {name!r} already exists')
        labels = self.validate_labels(labels)
        # checked against the current types; replacing a region does not release its nodes first
        check_transition(self._node_types[labels], node_type)
        types = self._released(name) if name in self.regions else self._node_types.copy()

        types[labels] = node_type
        self.regions.pop(name, None)
        region = BoundaryRegion(name, labels, node_type)
        self.regions[name] = region
        self._commit(types)
        logger.debug('registered %r', region)
        return region

    def remove(self, name):
        """Remove a region

        Nodes not shared with any other region revert to INNER;
        shared nodes keep their current classification
        """
        self[name]  # raises UnknownName
        types = self._released(name)
        del self.regions[name]
        self._commit(types)

    def set_type(self, name, node_type):
        """Reclassify all nodes of a region

        Raises
        ------
        IllegalTransition
            if a node of the region is FIXED_VALUE and node_type is ZERO_GRADIENT
        """
        node_type = NodeType(node_type)
        region = self[name]
        check_transition(self._node_types[region.labels], node_type)
        region.node_type = node_type
        types = self._node_types.copy()
        types[region.labels] = node_type
        self._commit(types)

    def _commit(self, types):
        if not np.array_equal(types, self._node_types):
            self._node_types = types
            self.version += 1
