"""Barycentric coordinates of a point relative to a line segment, triangle or tetrahedron

All simplices are described relative to their first vertex; that is, by the offset d
of the query point from vertex 0, and the edge vectors e_k from vertex 0 to vertex k.
The coordinates are those of the orthogonal projection of the point onto the affine hull
of the simplex, so they always sum to one, and the part of d that can not be represented
is returned as the residual.

Coordinates are not clipped to the simplex; points outside of it extrapolate linearly.
"""

import numpy as np

from pylaplace.errors import DegenerateGeometry
from pylaplace.math import linalg


def _solve_projection(d, edges, eps):
    """Least squares fit of d as a combination of edges

    Parameters
    ----------
    d : ndarray, [n_dim], float
    edges : ndarray, [k, n_dim], float
        edge vectors spanning the simplex
    eps : float
        relative tolerance on the singularity of the gram matrix

    Returns
    -------
    coefficients : ndarray, [k], float
    residual : ndarray, [n_dim], float
    """
    edges = np.asarray(edges, dtype=np.float64)
    gram = np.einsum('ij,kj->ik', edges, edges)
    scale = np.prod(np.diag(gram))
    if scale == 0:
        raise DegenerateGeometry('simplex has an edge of zero length')
    det = np.linalg.det(gram)
    if np.abs(det) < eps * scale:
        raise DegenerateGeometry('simplex is degenerate; its edges are (nearly) linearly dependent')
    c = np.linalg.solve(gram, edges.dot(d))
    residual = d - c.dot(edges)
    return c, residual


def _with_first(c):
    return np.concatenate([[1 - c.sum()], c])


def point():
    """A single vertex carries all weight"""
    return np.ones(1)


def line(d, e0, eps):
    """Barycentric coordinates on a line segment

    Parameters
    ----------
    d : ndarray, [n_dim], float
        offset of the query point from vertex 0
    e0 : ndarray, [n_dim], float
        vertex 1 minus vertex 0
    eps : float

    Returns
    -------
    weights : ndarray, [2], float
    residual : ndarray, [n_dim], float
        component of d orthogonal to the line

    Examples
    --------
    >>> line([0.25, 1, 0], [1, 0, 0], 1e-14)[0]
    array([0.75, 0.25])
    """
    c, r = _solve_projection(np.asarray(d, np.float64), [e0], eps)
    return _with_first(c), r


def triangle(d, e0, e1, eps):
    """Barycentric coordinates on a triangle

    Parameters
    ----------
    d : ndarray, [n_dim], float
        offset of the query point from vertex 0
    e0, e1 : ndarray, [n_dim], float
        vertex 1 and 2 minus vertex 0
    eps : float

    Returns
    -------
    weights : ndarray, [3], float
    residual : ndarray, [n_dim], float
        component of d orthogonal to the plane of the triangle
    """
    c, r = _solve_projection(np.asarray(d, np.float64), [e0, e1], eps)
    return _with_first(c), r


def tetrahedron(d, e0, e1, e2, eps):
    """Barycentric coordinates in a tetrahedron

    Parameters
    ----------
    d : ndarray, [3], float
        offset of the query point from vertex 0
    e0, e1, e2 : ndarray, [3], float
        vertex 1, 2 and 3 minus vertex 0
    eps : float

    Returns
    -------
    weights : ndarray, [4], float
    """
    E = np.array([e0, e1, e2], dtype=np.float64)
    scale = np.prod(np.linalg.norm(E, axis=1))
    if scale == 0:
        raise DegenerateGeometry('tetrahedron has an edge of zero length')
    det = np.linalg.det(E)
    if np.abs(det) < eps * scale:
        raise DegenerateGeometry('tetrahedron is flat')
    c = np.linalg.solve(E.T, np.asarray(d, np.float64))
    return _with_first(c)


def orientation(e0, e1, e2):
    """Determinant of three unit directions; zero for coplanar directions

    Parameters
    ----------
    e0, e1, e2 : ndarray, [..., 3], float

    Returns
    -------
    ndarray, [...], float
        signed volume spanned by the normalized directions, in [-1, 1]
    """
    e = linalg.normalized(np.stack(np.broadcast_arrays(e0, e1, e2), axis=-2), ignore_zeros=True)
    return np.linalg.det(e)


def colinearity(e0, e1):
    """Squared sine of the angle between two directions; zero when colinear

    Parameters
    ----------
    e0, e1 : ndarray, [..., 3], float

    Returns
    -------
    ndarray, [...], float
    """
    e0 = linalg.normalized(e0, ignore_zeros=True)
    e1 = linalg.normalized(e1, ignore_zeros=True)
    return linalg.squared_norm(np.cross(e0, e1))
