"""Sparse linear operators acting on fields

Rows are stored per node as label -> coefficient mappings, and assembled into a scipy
sparse matrix on first application. Operators derived from the node classification are tied
to the classification they were built for, and refuse to act once it has changed.
"""
import logging

import numpy as np
import scipy.sparse
from cached_property import cached_property

from pylaplace.boundary import NodeType
from pylaplace.errors import DegenerateGeometry, OutOfRange, PreconditionError, SizeMismatch
from pylaplace.field import Field, relaxation_stencil
from pylaplace.math import linalg


logger = logging.getLogger(__name__)


class LinearOperator(object):
    """Matrix free transformation of fields, defined by one sparse row per node

    Parameters
    ----------
    geometry : MeshGeometry
    rows : iterable of dict
        for each node, a mapping from node label to coefficient.
        Stored as a tuple of copies; the assembled matrix is cached, so rows are not to be edited
    version : int, optional
        classification version of geometry the rows were derived from;
        None for operators that do not depend on the classification
    """

    def __init__(self, geometry, rows, version=None):
        self.geometry = geometry
        self.rows = tuple(dict(r) for r in rows)
        self.version = version

    def __len__(self):
        return len(self.rows)

    @property
    def shape(self):
        return len(self.rows), len(self.rows)

    @property
    def is_stale(self):
        """True if the node classification changed after this operator was built"""
        return self.version is not None and self.version != self.geometry.classification_version

    @classmethod
    def identity(cls, geometry):
        return cls(geometry, [{i: 1.0} for i in range(len(geometry))])

    @classmethod
    def dirichlet_projection(cls, geometry):
        """Boundary projection; zero gradient nodes take the value found just inside the mesh

        Fixed value and inner nodes map onto themselves. The row of a zero gradient node
        interpolates the field at a ghost point, half the shortest incident edge length
        inward along the estimated surface normal; a first order neumann condition.

        Returns
        -------
        LinearOperator
        """
        types = geometry.node_types
        rows = []
        for i in range(len(geometry)):
            if types[i] == NodeType.ZERO_GRADIENT:
                normal = inward_normal(geometry, i)
                offset = 0.5 * geometry.shortest_incident_edge(i)
                ghost = geometry.positions[i] + normal * offset
                rows.append(geometry.interpolation_coefficients(ghost, start=i))
            else:
                rows.append({i: 1.0})
        return cls(geometry, rows, version=geometry.classification_version)

    @classmethod
    def relaxation(cls, geometry):
        """The stencil of Field.diffuse_step as an operator

        Inner rows form the inverse squared distance weighted neighbor average, which is the
        jacobi iteration matrix of the graph laplacian with those weights; the residual
        `relaxation(g) * f - f` vanishes exactly for a converged field.
        Fixed value rows are identity; zero gradient rows count inner neighbors at half weight.

        Returns
        -------
        LinearOperator
        """
        head, tail, weight = relaxation_stencil(geometry)
        types = geometry.node_types
        rows = [{} for _ in range(len(geometry))]
        for h, t, w in zip(head.tolist(), tail.tolist(), weight.tolist()):
            rows[h][t] = w
        for i in np.flatnonzero(types == NodeType.FIXED_VALUE).tolist():
            rows[i] = {i: 1.0}
        return cls(geometry, rows, version=geometry.classification_version)

    @cached_property
    def max_label(self):
        return max((max(r) for r in self.rows if r), default=-1)

    @cached_property
    def matrix(self):
        """Assembled rows

        Returns
        -------
        scipy.sparse.csr_matrix, [n_rows, n_columns], float
            n_columns is the larger of n_rows and one past the largest referenced label
        """
        row = np.repeat(np.arange(len(self.rows)), [len(r) for r in self.rows])
        col = np.fromiter((k for r in self.rows for k in r), dtype=int, count=len(row))
        data = np.fromiter((v for r in self.rows for v in r.values()), dtype=np.float64, count=len(row))
        n_columns = max(len(self.rows), self.max_label + 1)
        return scipy.sparse.csr_matrix((data, (row, col)), shape=(len(self.rows), n_columns))

    def apply(self, field):
        """Apply the operator to a field

        Parameters
        ----------
        field : Field

        Returns
        -------
        Field
            result[i] = sum_j row_i[j] * field.data[j]

        Raises
        ------
        OutOfRange
            if a row refers to a label beyond the end of the field
        SizeMismatch
            if the number of rows differs from the size of the field
        PreconditionError
            if the node classification has changed since the operator was built
        """
        if self.is_stale:
            raise PreconditionError('node classification changed since this operator was built; rebuild it')
        if self.max_label >= len(field):
            raise OutOfRange(f'operator refers to node {self.max_label}; field has {len(field)} nodes')
        if len(self.rows) != len(field):
            raise SizeMismatch(f'operator has {len(self.rows)} rows; field has {len(field)} nodes')
        A = self.matrix[:, :len(field)]
        return Field(field.geometry, A.dot(field.data))

    def __call__(self, field):
        return self.apply(field)

    def __mul__(self, other):
        if isinstance(other, LinearOperator):
            return self.compose(other)
        return self.apply(other)

    def compose(self, other):
        """Operator applying other first, then self"""
        if self.is_stale or other.is_stale:
            raise PreconditionError('node classification changed since these operators were built; rebuild them')
        if len(other) != len(self):
            raise SizeMismatch(f'can not compose operators of {len(self)} and {len(other)} rows')
        if self.max_label >= len(other):
            raise OutOfRange(f'operator refers to node {self.max_label}; other has {len(other)} rows')
        product = self.matrix[:, :len(other)].dot(other.matrix).tocsr()
        rows = [
            dict(zip(product.indices[s:e].tolist(), product.data[s:e].tolist()))
            for s, e in zip(product.indptr[:-1], product.indptr[1:])
        ]
        versions = [v for v in (self.version, other.version) if v is not None]
        version = versions[0] if versions else None
        return type(self)(self.geometry, rows, version=version)

    def to_dense(self):
        return self.matrix.toarray()


def inward_normal(geometry, label):
    """Estimate the unit normal of the mesh surface at a boundary node, pointing into the mesh

    The tangent plane is fitted to the inner neighbors of the node; its first axis is the direction
    of largest spread, and its second the direction of largest spread once the first is projected out.
    If the inner neighbors do not span a plane, as on a structured hexahedral boundary where each
    boundary node has a single inner neighbor, the plane is fitted to the node and its boundary
    neighbors instead.

    Parameters
    ----------
    geometry : MeshGeometry
    label : int

    Returns
    -------
    ndarray, [3], float
        unit normal
    """
    neighbors = geometry.neighbors(label)
    if len(neighbors) == 0:
        raise DegenerateGeometry(f'node {label} has no neighbors')
    types = geometry.node_types[neighbors]
    inner = neighbors[types == NodeType.INNER]
    boundary = neighbors[types != NodeType.INNER]
    p = geometry.positions

    def tangents(points):
        if len(points) < 3:
            return None
        variance, axes = linalg.principal_axes(points)
        total, first = variance.sum(), axes[0]
        variance, axes = linalg.principal_axes(linalg.reject(points, first))
        if variance[0] <= geometry.eps * total:
            return None
        return first, axes[0]

    axes = tangents(p[inner])
    if axes is None:
        axes = tangents(p[np.append(boundary, label)])
    if axes is None:
        raise DegenerateGeometry(f'neighbors of node {label} do not span a tangent plane')
    normal = linalg.normalized(np.cross(*axes))

    if len(inner):
        inward = p[inner[0]] - p[label]
    else:
        inward = p[neighbors].mean(axis=0) - p[label]
    if linalg.dot(normal, inward) < 0:
        normal = -normal
    logger.debug('inward normal at node %i: %s', label, normal)
    return normal
