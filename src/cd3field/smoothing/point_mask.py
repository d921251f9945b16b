# %% -*- coding: utf-8 -*-
"""
Classification of grid points into fixed (Dirichlet) and free points for relaxation.
"""

import logging

import numpy as np

from typing import Iterable, Type, TypeVar

from ..fields.grid_field import GridField
from .geometries import Geometry

logger = logging.getLogger(__name__)

T = TypeVar('T', bound='PointTypeMask')

FIXED = 0
FREE = 1

class PointTypeMask:
    """
    One flag per lattice point, stored as a uint8 array of shape (nz, ny, nx) to line up
    with GridField.samples_view().
    """

    def __init__(self, flags: np.ndarray):
        self.flags = np.asarray(flags, dtype=np.uint8)

    @classmethod
    def for_grid(cls: Type[T], grid: GridField) -> T:
        """
        Mask sized to grid, with the outer layer along every active axis fixed and the rest free.
        """
        nx, ny, nz = grid.counts
        flags = np.full((nz, ny, nx), FREE, dtype=np.uint8)
        # Array axes are (z, y, x), so extents run in reverse
        for arr_axis, e in zip((2, 1, 0), grid.extents):
            if e.count > 1:
                index = [slice(None)] * 3
                index[arr_axis] = 0
                flags[tuple(index)] = FIXED
                index[arr_axis] = -1
                flags[tuple(index)] = FIXED
        return cls(flags)

    @property
    def shape(self) -> tuple[int, ...]:
        return self.flags.shape

    @property
    def free(self) -> np.ndarray:
        return self.flags == FREE

    @property
    def n_free(self) -> int:
        return int(np.count_nonzero(self.flags == FREE))

    @property
    def n_fixed(self) -> int:
        return self.flags.size - self.n_free

    def refine(self, geometries: Iterable[Geometry], grid: GridField, tol: float) -> int:
        """
        Marks fixed every lattice point of grid that lies inside any of the geometries.

        Returns the number of points newly fixed.
        """
        ## Real-space coordinates of every lattice point, shape (nz, ny, nx, 3)
        xc, yc, zc = (e.coords() for e in grid.extents)
        zz, yy, xx = np.meshgrid(zc, yc, xc, indexing='ij')
        points = np.stack((xx, yy, zz), axis=-1)

        before = self.n_fixed
        for geom in geometries:
            inside = geom.contains_points(points, tol)
            self.flags[inside] = FIXED
            logger.debug('%s pins %d points', type(geom).__name__, int(np.count_nonzero(inside)))

        newly = self.n_fixed - before
        logger.info('Geometries fixed %d more points, %d free points left', newly, self.n_free)
        return newly
