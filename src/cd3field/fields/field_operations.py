# %% -*- coding: utf-8 -*-
"""
Operations that combine or symmetrize whole fields: stacking two full 3D fields along z,
and averaging a field over its four-fold mirror symmetry about the z axis.
"""

import logging
import os

import numpy as np

from .errors import Not4Fold, XYCompatFail
from .field_tree import FieldTree, as_leaf_grid
from .grid_field import GridField, GridKind
from .ranges import RangeInfo
from .utility import nearly_equal
from ..settings import DEFAULT_SETTINGS, FieldSettings

logger = logging.getLogger(__name__)

_AXES = 'xyz'

# %% Merging along z

def xy_compatible(a: GridField, b: GridField, settings: FieldSettings = DEFAULT_SETTINGS) -> tuple[GridField, GridField]:
    """
    Checks that two full 3D fields can be stacked along z: x and y ranges and steps must
    match, z steps must match, and the z ranges must touch or overlap.

    Returns (low, high), ordered by z min with b taken as the lower on ties. Raises
    XYCompatFail otherwise.
    """
    tol = settings.merge_tolerance
    for grid in (a, b):
        if grid.kind is not GridKind.FULL_3D:
            raise XYCompatFail('Only full 3D fields can be merged', path=grid.name,
                               expected=GridKind.FULL_3D.name, actual=grid.kind.name)

    ## x and y ranges and all steps
    for axis in (0, 1):
        ea, eb = a.extents[axis], b.extents[axis]
        for what in ('min', 'max', 'step'):
            va, vb = getattr(ea, what), getattr(eb, what)
            if not nearly_equal(va, vb, tol):
                raise XYCompatFail(f'{_AXES[axis]} {what}s do not match', axis=axis, expected=va, actual=vb)
    if not nearly_equal(a.extents[2].step, b.extents[2].step, tol):
        raise XYCompatFail('z steps do not match', axis=2, expected=a.extents[2].step, actual=b.extents[2].step)

    ## z coords have to touch or overlap
    low, high = (b, a) if b.extents[2].min <= a.extents[2].min else (a, b)
    if low.extents[2].max < high.extents[2].min:
        raise XYCompatFail('z ranges neither touch nor overlap', axis=2,
                           expected=f'zmin <= {low.extents[2].max}', actual=high.extents[2].min)
    return low, high

def zmerge_name(base: str, zmin: float, zmax: float) -> str:
    """
    Output name for a merged field, e.g. 'trap 0.00- 2.50.bin'
    """
    return f'{base}{zmin:5.2f}-{zmax:5.2f}.bin'

def z_merge(a: GridField, b: GridField, name: str | None = None, settings: FieldSettings = DEFAULT_SETTINGS) -> GridField:
    """
    Stacks two compatible full 3D fields along z. All planes of the lower field are kept,
    followed by the planes of the upper field that lie above it.
    """
    low, high = xy_compatible(a, b, settings)

    zlow, zhigh = low.extents[2], high.extents[2]
    dz = zlow.step

    # Planes of the upper field at or below the top of the lower one
    skip = int(np.floor((zlow.max - zhigh.min) / dz + 0.5)) + 1
    upper = high.samples_view()[skip:]
    samples = np.concatenate((low.samples_view(), upper), axis=0)

    nz = samples.shape[0]
    zmax = zlow.min + (nz - 1) * dz
    extents = (low.extents[0], low.extents[1], RangeInfo(zlow.min, zmax, dz, nz, True))

    if name is None:
        name = zmerge_name(os.path.splitext(low.name)[0], zlow.min, zmax)
    logger.info('Merged %s and %s into %d planes, z from %g to %g', low.name, high.name, nz, zlow.min, zmax)
    return GridField(GridKind.FULL_3D, extents, samples, None, name, low.model_name)

# %% Four-fold averaging

def quad_average(target: FieldTree | GridField, settings: FieldSettings = DEFAULT_SETTINGS) -> GridField:
    """
    Averages a full 3D field in place over the mirror planes x = 0 and y = 0.

    Ex is odd in x and even in y, Ey is even in x and odd in y, and Ez is even in both, so
    each of the four mirror images of a point contributes to the average with the matching
    sign. The grid has to be centred on the z axis with identical x and y ranges; the x and y
    sample counts may differ.
    """
    grid = as_leaf_grid(target)
    if grid.kind is not GridKind.FULL_3D or grid.stride is not None:
        raise Not4Fold('Averaging needs full 3D data', path=grid.name,
                       expected=GridKind.FULL_3D.name, actual=grid.kind.name)

    tol = settings.merge_tolerance
    ex, ey = grid.extents[0], grid.extents[1]
    for axis, e in ((0, ex), (1, ey)):
        if not nearly_equal(-e.min, e.max, tol):
            raise Not4Fold(f'{_AXES[axis]} range is not centred on zero', axis=axis, path=grid.name,
                           expected=-e.min, actual=e.max)
    if not nearly_equal(ex.max, ey.max, tol):
        raise Not4Fold('x and y ranges differ', path=grid.name, expected=ex.max, actual=ey.max)

    view = grid.samples_view()
    fx, fy, fz = view[..., 0], view[..., 1], view[..., 2]

    # Mirror images, axis 1 is y and axis 2 is x
    def images(f):
        return f, f[:, :, ::-1], f[:, ::-1, :], f[:, ::-1, ::-1]

    pp, mx, my, mm = images(fx)
    new_x = 0.25 * (pp - mx + my - mm)
    pp, mx, my, mm = images(fy)
    new_y = 0.25 * (pp + mx - my - mm)
    pp, mx, my, mm = images(fz)
    new_z = 0.25 * (pp + mx + my + mm)

    view[..., 0] = new_x
    view[..., 1] = new_y
    view[..., 2] = new_z

    logger.info('Averaged %s over four-fold symmetry', grid.name)
    return grid
