# %% -*- coding: utf-8 -*-
"""
Red/black Gauss-Seidel relaxation of a full 3D vector field.

Every free point is replaced by the weighted average of its six neighbours, with weights
that account for unequal grid steps along x, y and z. Red points ((ix+iy+iz) even) only have
black neighbours and vice versa, so each colour can be updated as one array operation and the
result is the same as visiting the points one by one.
"""

import logging
import os

import numpy as np
from tqdm import tqdm

from typing import Iterable, NamedTuple, Sequence

from ..fields.errors import BadStructure, Not4Fold
from ..fields.field_codec import load_field, save_field
from ..fields.field_tree import FieldTree, as_leaf_grid
from ..fields.grid_field import GridField, GridKind
from .geometries import Geometry, read_geometry
from .point_mask import PointTypeMask

logger = logging.getLogger(__name__)

SMOOTHED_SUFFIX = '_sm'

# %% Stencil weights

class StencilWeights(NamedTuple):
    wx: float
    wy: float
    wz: float

def stencil_weights(dx: float, dy: float, dz: float) -> StencilWeights:
    """
    Weights of the anisotropic 7 point Laplacian stencil. With equal steps they reduce to 1/6.
    """
    ix2, iy2, iz2 = 1.0/(dx*dx), 1.0/(dy*dy), 1.0/(dz*dz)
    wa = 1.0 / (ix2 + iy2 + iz2)
    return StencilWeights(0.5*wa*ix2, 0.5*wa*iy2, 0.5*wa*iz2)

# %% Solver

class GaussSeidelSolver:
    """
    Relaxes the samples of a leaf full 3D field in place. Fixed points of the mask are only
    ever read, as neighbours of free points.
    """

    def __init__(self, target: FieldTree | GridField, mask: PointTypeMask | None = None,
                 geometries: Iterable[Geometry] = (), tol: float | None = None):
        grid = as_leaf_grid(target)
        if grid.kind is not GridKind.FULL_3D or grid.stride is not None:
            raise Not4Fold('Smoothing needs full 3D data', path=grid.name,
                           expected=GridKind.FULL_3D.name, actual=grid.kind.name)
        self.grid = grid

        nx, ny, nz = grid.counts
        if mask is None:
            mask = PointTypeMask.for_grid(grid)
        elif mask.shape != (nz, ny, nx):
            raise BadStructure('Point mask does not match the grid', path=grid.name,
                               expected=(nz, ny, nx), actual=mask.shape)
        self.mask = mask

        geometries = list(geometries)
        if geometries:
            self.mask.refine(geometries, grid, grid.extents[0].step if tol is None else tol)

        self.weights = stencil_weights(*(e.step for e in grid.extents))

        # Colour of each interior point, where the stencil fits
        iz, iy, ix = np.indices((nz, ny, nx))
        self.parity = ((ix + iy + iz) % 2)[1:-1, 1:-1, 1:-1]

    def colours(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Free interior points of each colour, red first
        """
        free = self.mask.free[1:-1, 1:-1, 1:-1]
        return free & (self.parity == 0), free & (self.parity == 1)

    def _neighbour_average(self, v: np.ndarray) -> np.ndarray:
        wx, wy, wz = self.weights
        c = slice(1, -1)
        return (wx * (v[c, c, 2:] + v[c, c, :-2])
                + wy * (v[c, 2:, c] + v[c, :-2, c])
                + wz * (v[2:, c, c] + v[:-2, c, c]))

    def sweep(self) -> float:
        """
        One pass: a red half-sweep followed by a black one. Returns the summed squared change
        over all components.
        """
        view = self.grid.samples_view()
        core = view[1:-1, 1:-1, 1:-1]
        err = 0.0
        for colour in self.colours():
            new = self._neighbour_average(view)[colour]
            diff = new - core[colour]
            err += float(np.sum(diff * diff))
            core[colour] = new
        return err

    def run(self, n_pass: int, progress: bool = False) -> list[float]:
        """
        Runs n_pass passes and returns the error of each. There is no convergence test.
        """
        errors = []
        for ipass in tqdm(range(n_pass), desc='Smoothing', disable=not progress):
            err = self.sweep()
            errors.append(err)
            logger.info('Pass %d err %g', ipass + 1, err)
        return errors

# %% File level session

def smoothed_path(path) -> str:
    stem, ext = os.path.splitext(os.fspath(path))
    return f'{stem}{SMOOTHED_SUFFIX}{ext or ".bin"}'

def smooth_field_file(path, n_pass: int, geometry_paths: Sequence = (), out_path=None,
                      progress: bool = False) -> tuple[list[float], str]:
    """
    Loads a binary field, pins the points inside the listed geometries, relaxes it for
    n_pass passes and saves the result next to the input as <stem>_sm.bin.

    Parameters
    ----------
    path : path-like
        Binary field file.
    n_pass : int
        Number of red/black passes.
    geometry_paths : sequence of path-like
        Geometry descriptor files. Points are tested with the x grid step as tolerance.
    out_path : path-like, optional
        Where to write the result instead of the default name.

    Returns
    -------
    (errors, out_path)
    """
    grid = load_field(path)
    geometries = [geom for gpath in geometry_paths for geom in read_geometry(gpath)]
    solver = GaussSeidelSolver(grid, geometries=geometries, tol=grid.extents[0].step)
    logger.info('Smoothing %s: %d free points', grid.name, solver.mask.n_free)

    errors = solver.run(n_pass, progress=progress)

    if out_path is None:
        out_path = smoothed_path(path)
    save_field(grid, out_path)
    return errors, os.fspath(out_path)
