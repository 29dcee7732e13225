"""Scalar potential fields on a mesh geometry"""
import logging

import numpy as np
import numpy_indexed as npi

from pylaplace.boundary import NodeType
from pylaplace.errors import DegenerateGeometry, PreconditionError, SizeMismatch


logger = logging.getLogger(__name__)


def relaxation_stencil(geometry):
    """Neighbor weights of a single relaxation sweep

    Every node is relaxed towards the inverse squared distance weighted average of its neighbors.
    Zero gradient nodes count their inner neighbors at half weight, which symmetrizes the stencil
    across the boundary; the mirror image of the inner neighbor is implied to sit outside the mesh.
    Fixed value nodes have a stencil too, but it is not used.

    Parameters
    ----------
    geometry : MeshGeometry

    Returns
    -------
    head : ndarray, [2 * n_edges], int
        node being relaxed
    tail : ndarray, [2 * n_edges], int
        neighbor contributing to it
    weight : ndarray, [2 * n_edges], float
        normalized, such that the weights of each head sum to one

    Raises
    ------
    PreconditionError
        if a node has no neighbors
    DegenerateGeometry
        if an edge has zero length
    """
    isolated = np.flatnonzero(geometry.graph.degree == 0)
    if len(isolated):
        raise PreconditionError(f'can not relax nodes without neighbors: {isolated[:10].tolist()}')
    head, tail, squared_length = geometry.edge_vectors
    if np.any(squared_length == 0):
        raise DegenerateGeometry('mesh contains edges of zero length')

    types = geometry.node_types
    weight = 1. / squared_length
    half = (types[head] == NodeType.ZERO_GRADIENT) & (types[tail] == NodeType.INNER)
    weight[half] *= 0.5
    # every node occurs in head, so the groups are exactly the node labels
    _, total = npi.group_by(head).sum(weight)
    weight /= total[head]
    return head, tail, weight


class Field(object):
    """Scalar value per mesh node, plus the boundary conditions imposed on them

    Boundary regions live on the geometry; fields sharing a geometry share their regions
    """

    def __init__(self, geometry, data=None):
        self.geometry = geometry
        self._data = np.zeros(len(geometry), dtype=np.float64)
        if data is not None:
            self.set_data(data)

    def __len__(self):
        return len(self._data)

    @property
    def data(self):
        """Node values; writing to them modifies the field"""
        return self._data

    def set_data(self, values):
        values = np.asarray(values, dtype=np.float64)
        if values.shape != self._data.shape:
            raise SizeMismatch(f'field has {len(self._data)} nodes; got values of shape {values.shape}')
        self._data = values.copy()

    def copy(self):
        return type(self)(self.geometry, self._data)

    # boundaries

    def add_boundary(self, name, labels, node_type=NodeType.FIXED_VALUE, replace=False):
        """Register a boundary region on the geometry; see MeshGeometry.add_region"""
        self.geometry.add_region(name, labels, node_type, replace=replace)

    def remove_boundary(self, name):
        self.geometry.remove_region(name)

    def set_boundary_type(self, name, node_type):
        """Change the condition imposed on a boundary region

        Raises
        ------
        IllegalTransition
            when asked to turn fixed value nodes into zero gradient nodes directly;
            set the region to NodeType.INNER first
        """
        self.geometry.set_region_type(name, node_type)

    def boundary_type(self, name):
        return self.geometry.region_type(name)

    def boundary_names(self):
        return self.geometry.region_names()

    def set_boundary_value(self, name, value):
        """Set the values on a boundary region

        Parameters
        ----------
        name : str
        value : float or ndarray, [region_size], float
            uniform value, or one value per node in ascending label order
        """
        labels = self.geometry.region_labels(name)
        value = np.asarray(value, dtype=np.float64)
        if value.ndim != 0 and value.shape != labels.shape:
            raise SizeMismatch(f'boundary {name!r} has {len(labels)} nodes; got {value.size} values')
        self._data[labels] = value

    def boundary_values(self, name):
        """Current values on a boundary region, in ascending label order"""
        return self._data[self.geometry.region_labels(name)]

    # relaxation

    def diffuse_step(self):
        """One Jacobi sweep of the discrete laplace equation

        All updates read from the current values only; the result is returned as a new field,
        leaving self as it was. Fixed value nodes keep their value.

        Returns
        -------
        Field
        """
        head, tail, weight = relaxation_stencil(self.geometry)
        _, relaxed = npi.group_by(head).sum(weight * self._data[tail])
        fixed = self.geometry.node_types == NodeType.FIXED_VALUE
        relaxed[fixed] = self._data[fixed]
        logger.debug('relaxation sweep; max change %g', np.abs(relaxed - self._data).max(initial=0))
        return type(self)(self.geometry, relaxed)

    # sampling

    def interpolate(self, point, start=0, return_label=False):
        """Sample the field at an arbitrary point

        Parameters
        ----------
        point : ndarray, [3], float
        start : int
            node to start the search from; passing the label returned by a previous nearby
            query saves searching the mesh from scratch
        return_label : bool
            if True, the closest node to point is returned as well

        Returns
        -------
        value : float
        label : int, optional
            closest node to point; pass it as start to the next query
        """
        coefficients = self.geometry.interpolation_coefficients(point, start)
        labels = np.fromiter(coefficients.keys(), dtype=int, count=len(coefficients))
        weights = np.fromiter(coefficients.values(), dtype=np.float64, count=len(coefficients))
        value = float(weights.dot(self._data[labels]))
        logger.debug('value %g at %s; closest node %i', value, point, labels[0])
        if return_label:
            return value, int(labels[0])
        return value

    def interpolate_points(self, points, start=0):
        """Sample the field along a sequence of points

        Each query starts searching from the closest node to the previous point,
        which makes sampling along a path or a dense set of probes cheap.

        Parameters
        ----------
        points : ndarray, [n_points, 3], float
        start : int
            start of the search for the first point

        Returns
        -------
        values : ndarray, [n_points], float
        labels : ndarray, [n_points], int
            closest node to each point
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        values = np.empty(len(points))
        labels = np.empty(len(points), dtype=int)
        for i, p in enumerate(points):
            values[i], start = self.interpolate(p, start, return_label=True)
            labels[i] = start
        return values, labels
