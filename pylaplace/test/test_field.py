import numpy as np
import numpy.testing as npt
import pytest

from pylaplace.boundary import NodeType
from pylaplace.errors import (
    DegenerateGeometry, IllegalTransition, OutOfRange, PreconditionError, SizeMismatch, UnknownName)
from pylaplace.field import Field
from pylaplace.mesh import MeshGeometry
from pylaplace.synthetic import box_faces, hexahedral_grid, unit_cube
from pylaplace.topology.graph import SpatialGraph


def path(positions):
    """Nodes connected in sequence"""
    n = len(positions)
    edges = np.array([np.arange(n - 1), np.arange(1, n)]).T
    return MeshGeometry(SpatialGraph(n, edges), positions)


def test_construct():
    mesh = unit_cube()
    field = Field(mesh)
    assert len(field) == 8
    assert np.all(field.data == 0)
    assert np.all(mesh.node_types == NodeType.INNER)
    with pytest.raises(SizeMismatch):
        field.set_data(np.ones(7))


def test_cube_scenario():
    """Two opposite faces fixed; nothing is left to relax"""
    field = Field(unit_cube())
    field.add_boundary('lo', [0, 1, 2, 3])
    field.add_boundary('hi', [4, 5, 6, 7])
    field.set_boundary_value('lo', 0.0)
    field.set_boundary_value('hi', 1.0)
    assert field.boundary_names() == ['hi', 'lo']
    assert field.data.tolist() == [0, 0, 0, 0, 1, 1, 1, 1]
    for i in range(10):
        field = field.diffuse_step()
    assert field.data.tolist() == [0, 0, 0, 0, 1, 1, 1, 1]


def test_set_boundary_values():
    field = Field(unit_cube())
    field.add_boundary('hi', {7, 5, 6, 4})
    field.set_boundary_value('hi', [1, 2, 3, 4])
    npt.assert_equal(field.data, [0, 0, 0, 0, 1, 2, 3, 4])
    npt.assert_equal(field.boundary_values('hi'), [1, 2, 3, 4])

    before = field.data.copy()
    with pytest.raises(SizeMismatch):
        field.set_boundary_value('hi', [1, 2, 3])
    assert field.data.tobytes() == before.tobytes()
    with pytest.raises(UnknownName):
        field.set_boundary_value('lo', 1)


def test_boundary_type_routing():
    field = Field(unit_cube())
    field.add_boundary('side', [0, 1, 2, 3])
    with pytest.raises(IllegalTransition):
        field.set_boundary_type('side', NodeType.ZERO_GRADIENT)
    assert field.boundary_type('side') == NodeType.FIXED_VALUE
    assert not np.any(field.geometry.node_types == NodeType.ZERO_GRADIENT)

    field.set_boundary_type('side', NodeType.INNER)
    field.set_boundary_type('side', NodeType.ZERO_GRADIENT)
    assert field.boundary_type('side') == NodeType.ZERO_GRADIENT
    assert field.geometry.node_types[:4].tolist() == [NodeType.ZERO_GRADIENT] * 4

    field.remove_boundary('side')
    assert field.boundary_names() == []


def test_fixed_values_unchanged():
    mesh = hexahedral_grid((3, 3, 3))
    field = Field(mesh, np.random.rand(len(mesh)))
    faces = box_faces(mesh)
    field.add_boundary('x-', faces['x-'])
    before = field.boundary_values('x-').copy()
    for i in range(20):
        field = field.diffuse_step()
    npt.assert_equal(field.boundary_values('x-'), before)


def test_jacobi_discipline():
    """Every update reads from the previous sweep only"""
    field = Field(path([[0, 0, 0], [1, 0, 0], [2, 0, 0], [3, 0, 0]]))
    field.add_boundary('left', [0])
    field.add_boundary('right', [3])
    field.set_boundary_value('left', 1)
    relaxed = field.diffuse_step()
    npt.assert_allclose(relaxed.data, [1, 0.5, 0, 0])
    # the original is left untouched
    npt.assert_equal(field.data, [1, 0, 0, 0])


def test_inverse_squared_distance_weights():
    field = Field(path([[0, 0, 0], [1, 0, 0], [3, 0, 0]]), [0, 0, 5])
    relaxed = field.diffuse_step()
    # node 1 is at distance 1 from node 0 and 2 from node 2
    assert relaxed.data[1] == pytest.approx((0 / 1 + 5 / 4) / (1 / 1 + 1 / 4))


def test_zero_gradient_half_weight():
    """A zero gradient node weighs inner neighbors at half the weight of boundary neighbors"""
    mesh = path([[-1, 0, 0], [0, 0, 0], [1, 0, 0]])
    field = Field(mesh, [1, 0, 0])
    field.add_boundary('wall', [1], NodeType.ZERO_GRADIENT)
    field.add_boundary('fixed', [2])
    relaxed = field.diffuse_step()
    assert relaxed.data[1] == pytest.approx((0.5 * 1 + 1 * 0) / 1.5)


def test_no_neighbors():
    positions = [[0, 0, 0], [1, 0, 0], [2, 0, 0]]
    field = Field(MeshGeometry(SpatialGraph(3, [[0, 1]]), positions))
    with pytest.raises(PreconditionError):
        field.diffuse_step()


def test_zero_length_edge():
    field = Field(path([[0, 0, 0], [0, 0, 0]]))
    with pytest.raises(DegenerateGeometry):
        field.diffuse_step()


def test_converges_to_linear():
    """Fixed ends and zero gradient sides; the solution is linear along x"""
    mesh = hexahedral_grid((4, 3, 3), spacing=(0.25, 0.3, 0.3))
    faces = box_faces(mesh)
    field = Field(mesh)
    # sides first; fixed value takes over the edges shared with the ends
    for name in ['y-', 'y+', 'z-', 'z+']:
        field.add_boundary(name, faces[name], NodeType.ZERO_GRADIENT)
    field.add_boundary('x-', faces['x-'])
    field.add_boundary('x+', faces['x+'])
    field.set_boundary_value('x+', 1.0)

    for i in range(500):
        field = field.diffuse_step()
    npt.assert_allclose(field.data, mesh.positions[:, 0], atol=1e-6)


def test_fixed_before_zero_gradient_rejected():
    mesh = hexahedral_grid((2, 2, 2))
    faces = box_faces(mesh)
    field = Field(mesh)
    field.add_boundary('x-', faces['x-'])
    with pytest.raises(IllegalTransition):
        field.add_boundary('y-', faces['y-'], NodeType.ZERO_GRADIENT)
    assert 'y-' not in field.boundary_names()


def test_interpolate_linear_field():
    mesh = hexahedral_grid((3, 3, 3), spacing=0.5)
    gradient = np.array([0.3, -1.2, 2.0])
    field = Field(mesh, mesh.positions.dot(gradient) + 4)
    for i in range(50):
        point = np.random.rand(3) * 1.5
        assert field.interpolate(point) == pytest.approx(point.dot(gradient) + 4)


def test_interpolate_at_nodes():
    mesh = hexahedral_grid((2, 2, 2))
    field = Field(mesh, np.random.rand(len(mesh)))
    for i in range(len(mesh)):
        assert field.interpolate(mesh.position(i)) == field.data[i]


def test_interpolate_locality():
    """Feeding the closest label back in keeps subsequent searches local"""
    mesh = hexahedral_grid((10, 10, 10))
    field = Field(mesh, mesh.positions[:, 2])
    points = np.linspace([9.1, 9.2, 0.3], [0.2, 0.1, 9.7], 40)

    label = 0
    for p in points:
        value, label = field.interpolate(p, start=label, return_label=True)
        d = np.linalg.norm(mesh.positions - p, axis=1)
        assert label == np.argmin(d)
        assert value == pytest.approx(p[2])

    visited = []
    traverse = mesh.graph.traverse
    def counting(start, visitor):
        def counted(l):
            visited.append(l)
            return visitor(l)
        traverse(start, counted)
    mesh.graph.traverse = counting

    p = points[-1] + [0.05, 0.05, 0.05]
    visited.clear()
    field.interpolate(p, start=label)
    local = len(visited)
    visited.clear()
    field.interpolate(p, start=0)
    assert local < len(visited)


def test_interpolate_points():
    mesh = hexahedral_grid((4, 4, 4))
    field = Field(mesh, mesh.positions.sum(axis=1))
    points = np.linspace([0.1, 0.2, 0.3], [3.9, 3.5, 3.7], 25)
    values, labels = field.interpolate_points(points)
    npt.assert_allclose(values, points.sum(axis=1))
    npt.assert_allclose(np.linalg.norm(mesh.positions[labels] - points, axis=1),
                        np.linalg.norm(mesh.positions[None] - points[:, None], axis=2).min(axis=1))


def test_shared_geometry():
    mesh = unit_cube()
    a, b = Field(mesh), Field(mesh)
    a.add_boundary('lo', [0, 1, 2, 3])
    assert b.boundary_names() == ['lo']
    with pytest.raises(OutOfRange):
        b.add_boundary('bad', [8])


def test_replace_fixed_boundary():
    field = Field(unit_cube())
    field.add_boundary('a', [0, 1, 2, 3])
    with pytest.raises(IllegalTransition):
        field.add_boundary('a', [0, 1, 2, 3], NodeType.ZERO_GRADIENT, replace=True)
    assert np.all(field.geometry.node_types[:4] == NodeType.FIXED_VALUE)
    assert field.boundary_type('a') == NodeType.FIXED_VALUE


def test_boundary_from_generator():
    field = Field(unit_cube())
    field.add_boundary('lo', (i for i in range(4)))
    field.set_boundary_value('lo', 2.0)
    npt.assert_equal(field.data, [2, 2, 2, 2, 0, 0, 0, 0])
