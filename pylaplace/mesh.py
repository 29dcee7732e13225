"""Mesh geometry; node positions on top of a spatial graph

Point location is done by greedy local search over the graph, rather than by any spatial
index; starting from a node near the query point makes it cheap, which is what the
`start` argument of the search functions is for.
"""
import collections
import logging

import numpy as np
from cached_property import cached_property

from pylaplace.boundary import BoundaryRegistry, NodeType
from pylaplace.errors import DegenerateGeometry, OutOfRange, SizeMismatch
from pylaplace.geometry import barycentric
from pylaplace.math import linalg


logger = logging.getLogger(__name__)

# tolerances are expressed as multiples of the float64 machine epsilon
DEFAULT_EPS_FACTOR = 100


class MeshGeometry(object):
    """Immutable node positions plus connectivity, and the boundary regions defined on them

    Parameters
    ----------
    graph : SpatialGraph
        adjacency over node labels [0, n_nodes)
    positions : ndarray, [n_nodes, 3], float
    eps_factor : float
        numeric tolerance of all degeneracy checks, in multiples of machine epsilon
    """

    def __init__(self, graph, positions, eps_factor=DEFAULT_EPS_FACTOR):
        positions = np.array(positions, dtype=np.float64).reshape(-1, 3)
        if len(positions) != len(graph):
            raise SizeMismatch(
                f'graph has {len(graph)} nodes, but {len(positions)} node positions were given')
        positions.flags.writeable = False
        self.graph = graph
        self.positions = positions
        self.set_eps(eps_factor)
        self.boundaries = BoundaryRegistry(len(positions))

        if len(self):
            n_components, _ = graph.connected_components()
            if n_components > 1:
                logger.warning(
                    'mesh consists of %i disconnected components; searches do not cross between them',
                    n_components)

    def __len__(self):
        return len(self.positions)

    @property
    def size(self):
        return len(self.positions)

    def set_eps(self, factor):
        """Set the tolerance to `factor` times the float64 machine epsilon"""
        self._eps = np.finfo(np.float64).eps * float(factor)

    @property
    def eps(self):
        return self._eps

    def _check(self, label):
        if not 0 <= label < len(self):
            raise OutOfRange(f'node label {label} outside [0, {len(self)})')

    def position(self, label):
        """Position of a single node

        Returns
        -------
        ndarray, [3], float
        """
        self._check(label)
        return self.positions[label]

    @cached_property
    def bounding_box(self):
        """Bounding box of the mesh

        Returns
        -------
        ndarray, [2, 3], float
            aabb; minimum and maximum corner
        """
        if len(self) == 0:
            raise DegenerateGeometry('an empty mesh has no bounding box')
        return np.array([
            self.positions.min(axis=0),
            self.positions.max(axis=0),
        ])

    @cached_property
    def length_scale(self):
        """Length of the bounding box diagonal; relative tolerances on lengths are taken against it"""
        if len(self) == 0:
            return 1.
        scale = np.linalg.norm(self.bounding_box[1] - self.bounding_box[0])
        return scale if scale > 0 else 1.

    def neighbors(self, label):
        """Labels adjacent to `label`, ascending"""
        return self.graph.neighbors(label)

    def iter_neighbors(self, label):
        """Generate the labels adjacent to `label`, in ascending order"""
        for n in self.graph.neighbors(label):
            yield int(n)

    @cached_property
    def edge_vectors(self):
        """Both orientations of every edge, grouped by their first node

        Returns
        -------
        head : ndarray, [2 * n_edges], int
        tail : ndarray, [2 * n_edges], int
        squared_length : ndarray, [2 * n_edges], float
        """
        A = self.graph.adjacency
        head = np.repeat(np.arange(len(self)), np.diff(A.indptr))
        tail = A.indices
        squared_length = linalg.squared_norm(self.positions[tail] - self.positions[head])
        return head, tail, squared_length

    def shortest_incident_edge(self, label):
        """Length of the shortest edge touching `label`"""
        neighbors = self.neighbors(label)
        if len(neighbors) == 0:
            raise DegenerateGeometry(f'node {label} has no neighbors')
        return np.sqrt(linalg.squared_norm(self.positions[neighbors] - self.positions[label]).min())

    def mesh_connections(self):
        """End points of all edges, for drawing the mesh as a set of line segments

        Returns
        -------
        ndarray, [n_edges, 2, 3], float
        """
        return self.positions[self.graph.edges]

    def plot(self, ax=None, field=None, plot_vertices=True, color='b'):
        """Draw mesh edges in 3d, and optionally color nodes by field value"""
        import matplotlib.pyplot as plt
        from mpl_toolkits.mplot3d.art3d import Line3DCollection

        if ax is None:
            fig = plt.figure()
            ax = fig.add_subplot(projection='3d')

        ax.add_collection3d(Line3DCollection(self.mesh_connections(), colors=color, alpha=0.3))
        if field is not None:
            ax.scatter(*self.positions.T, c=np.asarray(field), cmap='viridis')
        elif plot_vertices:
            ax.scatter(*self.positions.T, color=color)
        lo, hi = self.bounding_box
        ax.set_xlim(lo[0], hi[0])
        ax.set_ylim(lo[1], hi[1])
        ax.set_zlim(lo[2], hi[2])
        return ax

    # point location

    def _direction(self, start, label):
        d = self.positions[label] - self.positions[start]
        norm = np.linalg.norm(d)
        if norm == 0:
            raise DegenerateGeometry(f'edge between nodes {start} and {label} has zero length')
        return d / norm

    def _candidates(self, start, exclude=()):
        neighbors = [n for n in self.iter_neighbors(start) if n not in exclude]
        if not neighbors:
            raise DegenerateGeometry(
                f'node {start} has no neighbors left to extend the interpolation simplex with')
        return neighbors

    def find_closest(self, point, start=0):
        """Greedy search for the node closest to `point`

        Starting at `start`, the graph is explored outward from every node that comes at least as
        close to point as the best node found so far. The result is a local optimum, which on
        reasonably convex meshes is the global optimum.

        Parameters
        ----------
        point : ndarray, [3], float
        start : int
            node to start the search from

        Returns
        -------
        int
            label of the closest node found
        """
        self._check(start)
        point = np.asarray(point, dtype=np.float64)
        positions = self.positions
        best = [int(start), linalg.squared_norm(positions[start] - point)]
        if best[1] == 0:
            return best[0]

        def visitor(label):
            d = linalg.squared_norm(positions[label] - point)
            if d <= best[1]:
                best[:] = label, d
                return True
            return False

        self.graph.traverse(start, visitor)
        logger.debug('closest node to %s from %i is %i', point, start, best[0])
        return best[0]

    def find_line(self, point, start):
        """Neighbor of start with its direction best aligned with `point - start`"""
        d = np.asarray(point, dtype=np.float64) - self.positions[start]
        candidates = self._candidates(start)
        projection = [linalg.dot(d, self._direction(start, c)) for c in candidates]
        return candidates[int(np.argmax(projection))]

    def find_plane(self, point, start, line_node):
        """Neighbor of start that best completes the line (start, line_node) to a triangle around point

        Candidates colinear with the line are never picked

        Raises
        ------
        DegenerateGeometry
            if all candidates are colinear with the line
        """
        e0 = self._direction(start, line_node)
        residual = linalg.reject(np.asarray(point, dtype=np.float64) - self.positions[start], e0)

        best, best_projection = None, -np.inf
        for c in self._candidates(start, exclude=(line_node,)):
            e1 = self._direction(start, c)
            if barycentric.colinearity(e0, e1) < self.eps:
                continue
            projection = linalg.dot(residual, e1)
            if projection > best_projection:
                best, best_projection = c, projection
        if best is None:
            raise DegenerateGeometry(f'all neighbors of node {start} are colinear with node {line_node}')
        return best

    def find_tet(self, point, start, line_node, plane_node):
        """Neighbor of start that best completes the triangle (start, line_node, plane_node) to a tetrahedron

        Candidates spanning a proper volume with the triangle are preferred over flat ones,
        regardless of how well they are aligned with point
        """
        e0 = self._direction(start, line_node)
        e1 = self._direction(start, plane_node)
        normal = linalg.normalized(np.cross(e0, e1))
        d = np.asarray(point, dtype=np.float64) - self.positions[start]
        residual = linalg.dot(d, normal) * normal

        def key(c):
            e2 = self._direction(start, c)
            proper = np.abs(barycentric.orientation(e0, e1, e2)) >= self.eps
            return proper, linalg.dot(residual, e2)

        candidates = self._candidates(start, exclude=(line_node, plane_node))
        return max(candidates, key=key)

    def interpolation_coefficients(self, point, start=0):
        """Weights that interpolate node values at an arbitrary point

        The nodes are gathered one at a time; the closest node, the best line, triangle and
        tetrahedron through it. Whenever the point lies on the simplex found so far, up to
        tolerance, the search stops early.

        Parameters
        ----------
        point : ndarray, [3], float
        start : int
            node to start searching from; ideally a node close to point

        Returns
        -------
        OrderedDict
            node label -> weight. 1 to 4 entries, the first of which is the closest node.
            Weights sum to one, and reproduce the point from the node positions.

        Raises
        ------
        DegenerateGeometry
            if the simplex can not be completed around the point
        """
        point = np.asarray(point, dtype=np.float64)
        tolerance = self.eps * self.length_scale ** 2
        p = self.positions

        closest = self.find_closest(point, start)
        d = point - p[closest]
        if linalg.squared_norm(d) < tolerance:
            return collections.OrderedDict(zip([closest], barycentric.point().tolist()))

        line_node = self.find_line(point, closest)
        w, residual = barycentric.line(d, p[line_node] - p[closest], self.eps)
        if linalg.squared_norm(residual) < tolerance:
            logger.debug('point %s interpolated on a line', point)
            return collections.OrderedDict(zip([closest, line_node], w.tolist()))

        plane_node = self.find_plane(point, closest, line_node)
        w, residual = barycentric.triangle(d, p[line_node] - p[closest], p[plane_node] - p[closest], self.eps)
        if linalg.squared_norm(residual) < tolerance:
            logger.debug('point %s interpolated on a triangle', point)
            return collections.OrderedDict(zip([closest, line_node, plane_node], w.tolist()))

        tet_node = self.find_tet(point, closest, line_node, plane_node)
        w = barycentric.tetrahedron(
            d, p[line_node] - p[closest], p[plane_node] - p[closest], p[tet_node] - p[closest], self.eps)
        return collections.OrderedDict(zip([closest, line_node, plane_node, tet_node], w.tolist()))

    # boundary regions

    @property
    def node_types(self):
        """Classification of every node, as a read-only array of NodeType values"""
        return self.boundaries.node_types

    def node_type(self, label):
        return self.boundaries.node_type(label)

    @property
    def classification_version(self):
        """Counter incremented on every change to the node classification"""
        return self.boundaries.version

    def add_region(self, name, labels, node_type=NodeType.FIXED_VALUE, replace=False):
        """Register a named boundary region and classify its nodes

        Parameters
        ----------
        name : str
        labels : iterable of int
            labels of the region; each at most once
        node_type : NodeType
        replace : bool
            allow replacing an existing region of the same name

        Raises
        ------
        DuplicateEntry
            name already in use without replace, or a label given more than once
        OutOfRange
            label outside [0, n_nodes)
        IllegalTransition
            zero gradient region over nodes that currently have a fixed value,
            including the nodes of a region being replaced
        """
        self.boundaries.add(name, labels, node_type, replace=replace)

    def remove_region(self, name):
        self.boundaries.remove(name)

    def set_region_type(self, name, node_type):
        self.boundaries.set_type(name, node_type)

    def region_type(self, name):
        return self.boundaries[name].node_type

    def region_names(self):
        """Names of all regions, ascending"""
        return self.boundaries.names()

    def region_size(self, name):
        return len(self.boundaries[name])

    def region_labels(self, name):
        """Labels of a region, ascending"""
        return self.boundaries[name].labels
