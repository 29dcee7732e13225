"""Undirected node adjacency of a volumetric mesh

The only connectivity the solver needs is which nodes share an edge;
element structure is discarded once the edges are known
"""
import collections

import numpy as np
import numpy_indexed as npi
import scipy.sparse
import scipy.sparse.csgraph
from cached_property import cached_property

from pylaplace.errors import OutOfRange, SizeMismatch
from pylaplace.topology import index_dtype


# corner pairs of a hexahedron with corners ordered as bottom face 0-1-2-3, top face 4-5-6-7,
# such that corner i + 4 sits on top of corner i
HEXAHEDRON_EDGES = np.array([
    [0, 1], [1, 2], [2, 3], [3, 0],
    [4, 5], [5, 6], [6, 7], [7, 4],
    [0, 4], [1, 5], [2, 6], [3, 7],
], dtype=index_dtype)


def hexahedron_edges(hexahedra):
    """Expand hexahedral elements into their edges

    Parameters
    ----------
    hexahedra : ndarray, [n_elements, 8], int
        corner labels of each hexahedron

    Returns
    -------
    ndarray, [n_elements * 12, 2], index_dtype
        corner pairs of all edges; edges shared between elements are repeated
    """
    hexahedra = np.asarray(hexahedra, dtype=index_dtype)
    if hexahedra.ndim != 2 or hexahedra.shape[1] != 8:
        raise SizeMismatch(f'hexahedra should have shape [n, 8]; got {hexahedra.shape}')
    return hexahedra[:, HEXAHEDRON_EDGES].reshape(-1, 2)


class SpatialGraph(object):
    """Undirected graph over node labels [0, n_nodes)

    Neighbors of each node are stored in ascending label order,
    which makes every traversal of the graph deterministic
    """

    def __init__(self, n_nodes, edges):
        """

        Parameters
        ----------
        n_nodes : int
        edges : ndarray, [n_edges, 2], int
            pairs of connected node labels; duplicates and orientation are ignored
        """
        self.n_nodes = int(n_nodes)
        edges = np.asarray(edges, dtype=index_dtype).reshape(-1, 2)
        if len(edges):
            if edges.min() < 0 or edges.max() >= self.n_nodes:
                raise OutOfRange(f'edge references a node outside [0, {self.n_nodes})')
            if np.any(edges[:, 0] == edges[:, 1]):
                raise ValueError('self-loops are not valid mesh edges')
            edges = npi.unique(np.sort(edges, axis=1))
        self.edges = edges

        i, j = edges.T
        adjacency = scipy.sparse.coo_matrix(
            (np.ones(2 * len(edges), dtype=np.int8), (np.concatenate([i, j]), np.concatenate([j, i]))),
            shape=(self.n_nodes, self.n_nodes)
        ).tocsr()
        adjacency.sort_indices()
        self.adjacency = adjacency

    @classmethod
    def from_hexahedra(cls, hexahedra, n_nodes=None):
        """Construct the graph of all hexahedron edges

        Parameters
        ----------
        hexahedra : ndarray, [n_elements, 8], int
            corner labels, ordered as in HEXAHEDRON_EDGES
        n_nodes : int, optional
            defaults to one more than the largest label in use

        Returns
        -------
        SpatialGraph
        """
        edges = hexahedron_edges(hexahedra)
        if n_nodes is None:
            n_nodes = edges.max() + 1 if len(edges) else 0
        return cls(n_nodes, edges)

    def __len__(self):
        return self.n_nodes

    @property
    def size(self):
        return self.n_nodes

    @property
    def n_edges(self):
        return len(self.edges)

    def _check(self, label):
        if not 0 <= label < self.n_nodes:
            raise OutOfRange(f'node label {label} outside [0, {self.n_nodes})')

    def neighbors(self, label):
        """Labels adjacent to `label`, ascending

        Returns
        -------
        ndarray, [n_neighbors], index_dtype
        """
        self._check(label)
        A = self.adjacency
        return A.indices[A.indptr[label]:A.indptr[label + 1]].astype(index_dtype)

    @cached_property
    def degree(self):
        """Number of neighbors of each node"""
        return np.diff(self.adjacency.indptr).astype(index_dtype)

    def traverse(self, start, visitor):
        """Breadth-first exploration from `start`, pruned by `visitor`

        Every node reachable from start is handed to visitor at most once;
        the neighbors of a node are only queued if visitor returned True for it.
        The start node itself is always expanded, but never visited.

        Parameters
        ----------
        start : int
        visitor : callable(int) -> bool
            returns whether to keep expanding from the visited node
        """
        self._check(start)
        A = self.adjacency
        seen = {start}
        queue = collections.deque([start])
        while queue:
            label = queue.popleft()
            for n in A.indices[A.indptr[label]:A.indptr[label + 1]]:
                n = int(n)
                if n in seen:
                    continue
                seen.add(n)
                if visitor(n):
                    queue.append(n)

    def connected_components(self):
        """Label all nodes with the connected component they are part of

        Returns
        -------
        n_components : int
        labels : ndarray, [n_nodes], int
        """
        return scipy.sparse.csgraph.connected_components(self.adjacency, directed=False)
