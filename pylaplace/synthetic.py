"""Generation of some simple hexahedral meshes"""

import numpy as np

from pylaplace.mesh import DEFAULT_EPS_FACTOR, MeshGeometry
from pylaplace.topology import index_dtype
from pylaplace.topology.graph import SpatialGraph


# position of each hexahedron corner in a [2, 2, 2] block of grid nodes, in HEXAHEDRON_EDGES order
_BLOCK_TO_HEXAHEDRON = [0, 4, 6, 2, 1, 5, 7, 3]


def hexahedral_grid_elements(shape):
    """Hexahedra of a regular grid

    Parameters
    ----------
    shape : tuple of 3 int
        number of hexahedra along each axis

    Returns
    -------
    ndarray, [n_elements, 8], index_dtype
        corner labels, into the C-ordered nodes of a grid of shape + 1
    """
    shape = tuple(int(s) for s in shape)
    if len(shape) != 3:
        raise ValueError('hexahedral grids are three dimensional')
    vshape = tuple(np.array(shape) + 1)
    idx = np.arange(np.prod(vshape), dtype=index_dtype).reshape(vshape)
    blocks = np.ndarray(
        buffer=idx,
        strides=idx.strides + idx.strides,  # step along the grid is the same as a step to the other side of the cube
        shape=shape + (2, 2, 2),
        dtype=idx.dtype
    )
    return blocks.reshape(-1, 8)[:, _BLOCK_TO_HEXAHEDRON]


def hexahedral_grid(shape, spacing=1.0, centering=False, eps_factor=DEFAULT_EPS_FACTOR):
    """Generate a regular grid of hexahedra

    Parameters
    ----------
    shape : tuple of 3 int
        number of hexahedra along each axis
    spacing : float or tuple of 3 float
        edge length along each axis
    centering : bool
        if True, centroid of the mesh is at the origin
        if False, minimum of the mesh is at the origin
    eps_factor : float

    Returns
    -------
    MeshGeometry
        node labels are C-ordered over the grid of nodes, with x the slowest varying axis
    """
    hexahedra = hexahedral_grid_elements(shape)
    vshape = tuple(np.array(shape) + 1)
    positions = np.indices(vshape, dtype=np.float64).reshape(3, -1).T * np.asarray(spacing, dtype=np.float64)
    if centering:
        positions = positions - positions.mean(axis=0, keepdims=True)
    graph = SpatialGraph.from_hexahedra(hexahedra, n_nodes=len(positions))
    return MeshGeometry(graph, positions, eps_factor=eps_factor)


def unit_cube():
    """A single hexahedron spanning [0, 1]^3"""
    return hexahedral_grid((1, 1, 1))


def box_faces(geometry, tol=1e-9):
    """Node labels on each of the six faces of the bounding box of a mesh

    Parameters
    ----------
    geometry : MeshGeometry
    tol : float
        tolerance relative to the size of the bounding box

    Returns
    -------
    dict
        names 'x-', 'x+', 'y-', 'y+', 'z-', 'z+' -> ndarray of labels, ascending
    """
    lo, hi = geometry.bounding_box
    tol = tol * geometry.length_scale
    p = geometry.positions
    faces = {}
    for axis, name in enumerate('xyz'):
        faces[name + '-'] = np.flatnonzero(np.abs(p[:, axis] - lo[axis]) <= tol).astype(index_dtype)
        faces[name + '+'] = np.flatnonzero(np.abs(p[:, axis] - hi[axis]) <= tol).astype(index_dtype)
    return faces
