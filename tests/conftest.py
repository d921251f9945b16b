"""Pytest fixtures for cd3field tests."""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from cd3field.fields.grid_field import GridField
from cd3field.fields.ranges import RangeInfo


def linear_field(x, y, z):
    """A linear vector field, reproduced exactly by multilinear interpolation."""
    return (x + y, 2.0 * y - z, 3.0 * z + 1.0)


@pytest.fixture
def make_full3d():
    """Factory for full 3D grids sampled from func(x, y, z) -> (fx, fy, fz)."""

    def _make(xr=(0.0, 2.0, 3), yr=(-1.0, 1.0, 5), zr=(0.0, 3.0, 4), func=linear_field, name='grid.bin'):
        extents = [RangeInfo.spanning(*xr), RangeInfo.spanning(*yr), RangeInfo.spanning(*zr)]
        zz, yy, xx = np.meshgrid(extents[2].coords(), extents[1].coords(), extents[0].coords(), indexing='ij')
        columns = [np.broadcast_to(np.asarray(c, dtype=float), xx.shape).ravel() for c in func(xx, yy, zz)]
        return GridField.build_full3d(extents, columns, name=name, model_name='test.mph')

    return _make


@pytest.fixture
def full_grid(make_full3d):
    """3 x 5 x 4 grid of linear_field, steps 1.0, 0.5, 1.0."""
    return make_full3d()


@pytest.fixture
def constant_grid(make_full3d):
    """Factory for grids holding the same vector everywhere."""

    def _make(value, xr=(0.0, 4.0, 5), yr=(0.0, 4.0, 5), zr=(0.0, 4.0, 5), name='const.bin'):
        return make_full3d(xr, yr, zr, func=lambda x, y, z: value, name=name)

    return _make


@pytest.fixture
def axisym_grid():
    """(r, z) slice with Fr = r and Fz = z, r from 0 to 2 by 0.5, z from 0 to 4 by 1.

    Sampled along x with y inactive, so the radial axis is 0.
    """
    rc = np.linspace(0.0, 2.0, 5)
    zc = np.linspace(0.0, 4.0, 5)
    extents = [RangeInfo(0.0, 2.0, 0.5, 5, True), RangeInfo.single(0.0), RangeInfo(0.0, 4.0, 1.0, 5, True)]
    # Radius fastest, z slowest
    fr = np.tile(rc, len(zc))
    fz = np.repeat(zc, len(rc))
    return GridField.build_axisymmetric2d(extents, [fr, fz], names=('Ex', 'Ez'), name='axi.bin')
