import numpy as np


def dot(a, b):
    """Compute the dot products over the last axes of two arrays of vectors

    Parameters
    ----------
    a : ndarray, [..., n], float
        array of vectors
    b : ndarray, [..., n], float
        array of vectors

    Returns
    -------
    ndarray, [...], float
        dot products over the last axes of a and b
    """
    return np.einsum('...i,...i->...', a, b)


def squared_norm(a):
    """Squared euclidian length over the last axis"""
    a = np.asarray(a)
    return dot(a, a)


def normalized(array_of_vectors, axis=-1, ignore_zeros=False, return_norm=False):
    """Return a copy of a, normalized along axis

    Parameters
    ----------
    array_of_vectors : ndarray, [..., n_dim]
        input data to be normalized
    axis : int, optional
        axis to perform normalization along
    ignore_zeros : bool
        if true, elements with norm zero are left zero
    return_norm : bool
        if true, the norms are returned

    Returns
    -------
    normalized : ndarray, [..., n_dim]
        normalized values; same shape as input array
    norms : ndarray, [...], float, optional
        the norms of the input vectors
    """
    array_of_vectors = np.asarray(array_of_vectors, dtype=np.float64)
    norm = np.linalg.norm(array_of_vectors, axis=axis, keepdims=True)
    zeros = norm == 0
    if ignore_zeros:
        norm[zeros] = 1
    normed = array_of_vectors / norm
    if ignore_zeros:
        norm[zeros] = 0
    if return_norm:
        return normed, np.take(norm, 0, axis)
    else:
        return normed


def reject(v, axis):
    """Remove the component along the unit vector `axis` from v

    Parameters
    ----------
    v : ndarray, [..., n], float
    axis : ndarray, [n], float
        unit vector

    Returns
    -------
    ndarray, [..., n], float
        the part of v orthogonal to axis
    """
    v = np.asarray(v)
    return v - dot(v, axis)[..., None] * axis


def principal_axes(points):
    """Eigen decomposition of the covariance of a point cloud about its centroid

    Parameters
    ----------
    points : ndarray, [n_points, n_dim], float

    Returns
    -------
    variance : ndarray, [n_dim], float
        descending
    axes : ndarray, [n_dim, n_dim], float
        unit axes as rows, in the order of variance
    """
    points = np.asarray(points, dtype=np.float64)
    centered = points - points.mean(axis=0, keepdims=True)
    covariance = np.einsum('ni,nj->ij', centered, centered) / len(points)
    v, w = np.linalg.eigh(covariance)
    return v[::-1], w.T[::-1]
