"""
Steady-state potentials on unstructured hexahedral meshes

A mesh is built once from node positions and hexahedral connectivity; named boundary regions
impose fixed values or zero normal gradients, and the potential is relaxed by caller-driven
Jacobi sweeps. The resulting field can be sampled anywhere inside the mesh, by barycentric
interpolation over the point, edge, triangle or tetrahedron of mesh nodes found around the query.

Everything operates on plain numpy arrays; the mesh adjacency is held as a scipy sparse matrix

"""
import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())
