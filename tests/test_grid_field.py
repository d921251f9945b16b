"""Tests for GridField construction, layout and interpolation."""

import math

import numpy as np
import pytest

from cd3field.fields.errors import BadStructure, OutOfRange, QueryMiss
from cd3field.fields.field_tree import FieldTree
from cd3field.fields.grid_field import GridField, GridKind
from cd3field.fields.ranges import RangeInfo

from conftest import linear_field


class TestBuildFull3D:
    """Building full 3D fields from raw columns."""

    def test_layout(self, full_grid):
        assert full_grid.kind is GridKind.FULL_3D
        assert full_grid.counts == (3, 5, 4)
        assert full_grid.stride is None
        assert full_grid.components == 3
        assert len(full_grid.samples) == 3 * 5 * 4 * 3
        assert full_grid.samples_view().shape == (4, 5, 3, 3)

    def test_x_fastest(self, full_grid):
        # Sample (ix, iy, iz) sits at ((iz*ny + iy)*nx + ix)*3
        ix, iy, iz = 2, 3, 1
        k = full_grid.index_at(ix, iy, iz)
        assert k == (iz * 5 + iy) * 3 + ix
        x, y, z = 0.0 + ix * 1.0, -1.0 + iy * 0.5, 0.0 + iz * 1.0
        np.testing.assert_allclose(full_grid.samples[3 * k:3 * k + 3], linear_field(x, y, z))

    def test_index_at_large_grid_does_not_overflow(self):
        grid = GridField.__new__(GridField)
        grid.extents = (RangeInfo(0, 1, 1e-4, 5000, True),) * 3
        assert grid.index_at(4999, 4999, 4999) == 5000**3 - 1

    def test_wrong_names(self, make_full3d):
        grid = make_full3d()
        columns = [grid.samples_view()[..., c].ravel() for c in range(3)]
        with pytest.raises(BadStructure):
            GridField.build_full3d(grid.extents, columns, names=('es.Ex', 'es.Ez', 'es.Ey'))

    def test_wrong_column_length(self, full_grid):
        columns = [np.zeros(10)] * 3
        with pytest.raises(BadStructure) as info:
            GridField.build_full3d(full_grid.extents, columns)
        assert info.value.expected == 60
        assert info.value.actual == 10

    def test_inactive_axis_rejected(self):
        extents = [RangeInfo.spanning(0, 1, 2), RangeInfo.single(0.0), RangeInfo.spanning(0, 1, 2)]
        with pytest.raises(BadStructure):
            GridField.build_full3d(extents, [np.zeros(4)] * 3)

    def test_stride_rejected_for_full3d(self, full_grid):
        with pytest.raises(BadStructure):
            GridField(GridKind.FULL_3D, full_grid.extents, full_grid.samples, stride=3)


class TestBuildAxisymmetric:
    """Building axisymmetric fields from an (r, z) slice."""

    def test_bounding_box(self, axisym_grid):
        ex, ey, ez = axisym_grid.extents
        assert (ex.min, ex.max, ex.count) == (-2.0, 2.0, 5)
        assert (ey.min, ey.max, ey.count) == (-2.0, 2.0, 1)
        assert ey.step == 0.5
        assert ez == RangeInfo(0.0, 4.0, 1.0, 5, True)
        assert axisym_grid.stride == 5
        assert axisym_grid.radial_axis == 0
        assert axisym_grid.samples_view().shape == (5, 5, 2)

    def test_inactive_x(self):
        extents = [RangeInfo.single(0.0), RangeInfo(0.0, 1.0, 0.5, 3, True), RangeInfo(0.0, 1.0, 1.0, 2, True)]
        grid = GridField.build_axisymmetric2d(extents, [np.zeros(6), np.ones(6)], names=('Ey', 'Ez'))
        assert grid.radial_axis == 1
        assert grid.stride == 3
        assert grid.extents[0].count == 1

    def test_wrong_names_for_inactive_axis(self):
        extents = [RangeInfo.single(0.0), RangeInfo(0.0, 1.0, 0.5, 3, True), RangeInfo(0.0, 1.0, 1.0, 2, True)]
        with pytest.raises(BadStructure):
            GridField.build_axisymmetric2d(extents, [np.zeros(6), np.ones(6)], names=('Ex', 'Ez'))

    def test_nonzero_radius_min(self):
        extents = [RangeInfo(0.5, 1.5, 0.5, 3, True), RangeInfo.single(0.0), RangeInfo(0.0, 1.0, 1.0, 2, True)]
        with pytest.raises(BadStructure) as info:
            GridField.build_axisymmetric2d(extents, [np.zeros(6), np.ones(6)])
        assert info.value.axis == 0

    def test_inactive_z_rejected(self):
        extents = [RangeInfo(0.0, 1.0, 0.5, 3, True), RangeInfo(0.0, 1.0, 1.0, 2, True), RangeInfo.single(0.0)]
        with pytest.raises(BadStructure):
            GridField.build_axisymmetric2d(extents, [np.zeros(6), np.ones(6)])

    def test_stride_must_match_radial_count(self, axisym_grid):
        with pytest.raises(BadStructure):
            GridField(GridKind.AXISYMMETRIC_2D, axisym_grid.extents, axisym_grid.samples, stride=4)


class TestValueAt:
    """Point queries by multilinear interpolation."""

    def test_lattice_points_return_samples(self, full_grid):
        view = full_grid.samples_view()
        for ix, iy, iz in [(0, 0, 0), (2, 4, 3), (1, 2, 1), (2, 0, 3)]:
            coord = (ix * 1.0, -1.0 + iy * 0.5, iz * 1.0)
            np.testing.assert_array_equal(full_grid.value_at(coord), view[iz, iy, ix])

    @pytest.mark.parametrize("coord", [(0.3, -0.7, 0.1), (1.5, 0.25, 2.9), (1.999, 0.999, 2.5), (2.0, 1.0, 3.0)])
    def test_linear_field_is_exact(self, full_grid, coord):
        np.testing.assert_allclose(full_grid.value_at(coord), linear_field(*coord), atol=1e-12)

    @pytest.mark.parametrize("coord", [(-0.1, 0, 0), (0, 1.01, 0), (0, 0, 3.5)])
    def test_outside_raises(self, full_grid, coord):
        with pytest.raises(OutOfRange):
            full_grid.value_at(coord)

    def test_out_of_range_is_query_miss(self, full_grid):
        with pytest.raises(QueryMiss):
            full_grid.value_at((5, 5, 5))

    @pytest.mark.parametrize("coord", [(math.nan, 0.0, 1.0), (1.0, math.nan, 1.0), (1.0, 0.0, math.nan)])
    def test_nan_is_out_of_range(self, full_grid, coord):
        assert not full_grid.point_in_bounds(coord)
        assert full_grid.map_to_index(coord) is None
        with pytest.raises(OutOfRange):
            full_grid.value_at(coord)
        with pytest.raises(QueryMiss):
            FieldTree(full_grid).value_at(coord)
        with pytest.raises(QueryMiss):
            FieldTree(full_grid).source_name_at(coord)

    def test_axisymmetric_rotates_radial_component(self, axisym_grid):
        value = axisym_grid.value_at((0.6, 0.8, 1.5))
        np.testing.assert_allclose(value, (0.6, 0.8, 1.5), atol=1e-12)

    def test_axisymmetric_negative_quadrant(self, axisym_grid):
        value = axisym_grid.value_at((-1.0, -1.0, 2.0))
        np.testing.assert_allclose(value, (-1.0, -1.0, 2.0), atol=1e-12)

    def test_axisymmetric_on_axis(self, axisym_grid):
        value = axisym_grid.value_at((0.0, 0.0, 3.25))
        np.testing.assert_allclose(value, (0.0, 0.0, 3.25))

    def test_axisymmetric_beyond_rmax(self, axisym_grid):
        # Inside the bounding box corner but outside the revolved slice
        with pytest.raises(OutOfRange):
            axisym_grid.value_at((1.9, 1.9, 1.0))

    def test_values_at_matches_value_at(self, full_grid):
        points = np.array([[0.3, -0.7, 0.1], [1.5, 0.25, 2.9], [5.0, 0.0, 0.0]])
        values = full_grid.values_at(points)
        np.testing.assert_allclose(values[0], full_grid.value_at(points[0]))
        np.testing.assert_allclose(values[1], full_grid.value_at(points[1]))
        assert np.all(np.isnan(values[2]))

    def test_values_at_axisymmetric(self, axisym_grid):
        points = np.array([[0.6, 0.8, 1.5], [0.0, 0.0, 2.0]])
        np.testing.assert_allclose(axisym_grid.values_at(points), [[0.6, 0.8, 1.5], [0.0, 0.0, 2.0]], atol=1e-12)


class TestLocation:
    """Bounds checks and nearest lattice points."""

    def test_bounds_inclusive(self, full_grid):
        assert full_grid.point_in_bounds((0.0, -1.0, 0.0))
        assert full_grid.point_in_bounds((2.0, 1.0, 3.0))
        assert not full_grid.point_in_bounds((2.0001, 0.0, 0.0))

    def test_bounds(self, full_grid):
        mins, maxs = full_grid.bounds()
        np.testing.assert_array_equal(mins, [0.0, -1.0, 0.0])
        np.testing.assert_array_equal(maxs, [2.0, 1.0, 3.0])

    def test_clip(self, full_grid):
        np.testing.assert_array_equal(full_grid.clip((5.0, -3.0, 1.5)), [2.0, -1.0, 1.5])

    def test_map_to_index(self, full_grid):
        assert full_grid.map_to_index((0.4, -0.7, 2.6)) == (0, 1, 3)
        assert full_grid.map_to_index((3.0, 0.0, 0.0)) is None

    def test_map_to_index_axisymmetric(self, axisym_grid):
        assert axisym_grid.map_to_index((0.0, 1.0, 2.2)) == (2, 0, 2)
        assert axisym_grid.map_to_index((1.9, 1.9, 1.0)) is None


class TestCopyCompare:

    def test_copy_is_independent(self, full_grid):
        other = full_grid.copy()
        assert other.same_as(full_grid)
        other.samples[0] += 1.0
        assert not other.same_as(full_grid)

    def test_same_as_ignores_names_on_request(self, full_grid):
        other = full_grid.copy()
        other.name = 'renamed.bin'
        assert not other.same_as(full_grid)
        assert other.same_as(full_grid, names=False)

    def test_repr(self, full_grid):
        assert 'FULL_3D' in repr(full_grid)
        assert math.prod(full_grid.counts) == full_grid.npoint
