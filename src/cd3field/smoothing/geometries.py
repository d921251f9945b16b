# %% -*- coding: utf-8 -*-
"""
Analytic geometries that pin grid points during smoothing. Each geometry only answers
whether a point lies inside it; the point mask does the bookkeeping.

Geometry lists are read from a small text file:

    BCGeom <anything>
    # comment
    icyl  xmin ymin zmin xmax ymax zmax radius potential
    torus xmin ymin zmin xmax ymax zmax inner outer potential

The longitudinal axis of each shape is the single axis along which min and max differ. The
min point on the two transverse axes is the centre of the cross section.
"""

import logging

import numpy as np
from numpy.typing import ArrayLike

from typing import NamedTuple

from ..fields.errors import BadGeom, CantOpenIn
from ..fields.utility import tokenize

logger = logging.getLogger(__name__)

HEADER_TAG = 'BCGeom'

# (transverse0, transverse1, longitudinal) for each longitudinal axis
AXIS_TRIPLES = {0: (1, 2, 0), 1: (2, 0, 1), 2: (0, 1, 2)}

# %% Shapes

class InteriorCylinder(NamedTuple):
    """
    Solid cylinder of the given radius along one axis, from min to max on that axis.
    """
    axis: int
    mins: np.ndarray
    maxs: np.ndarray
    radius_sq: float
    potential: float = 0.0

    def contains(self, point: ArrayLike, tol: float) -> bool:
        t0, t1, lon = AXIS_TRIPLES[self.axis]
        if point[lon] < self.mins[lon] or point[lon] > self.maxs[lon]:
            return False
        rsq = (point[t0] - self.mins[t0])**2 + (point[t1] - self.mins[t1])**2
        return bool(rsq < self.radius_sq + tol*tol)

    def contains_points(self, points: np.ndarray, tol: float) -> np.ndarray:
        """
        Vectorized contains over the last axis of points, shape (..., 3)
        """
        t0, t1, lon = AXIS_TRIPLES[self.axis]
        inside = (points[..., lon] >= self.mins[lon]) & (points[..., lon] <= self.maxs[lon])
        rsq = (points[..., t0] - self.mins[t0])**2 + (points[..., t1] - self.mins[t1])**2
        return inside & (rsq < self.radius_sq + tol*tol)

class Torus(NamedTuple):
    """
    Thick-walled tube along one axis: the region between the inner and outer radii.
    """
    axis: int
    mins: np.ndarray
    maxs: np.ndarray
    inner_sq: float
    outer_sq: float
    potential: float = 0.0

    def contains(self, point: ArrayLike, tol: float) -> bool:
        t0, t1, lon = AXIS_TRIPLES[self.axis]
        if point[lon] < self.mins[lon] or point[lon] > self.maxs[lon]:
            return False
        rsq = (point[t0] - self.mins[t0])**2 + (point[t1] - self.mins[t1])**2
        tolsq = tol*tol
        return bool(self.inner_sq - tolsq < rsq < self.outer_sq + tolsq)

    def contains_points(self, points: np.ndarray, tol: float) -> np.ndarray:
        t0, t1, lon = AXIS_TRIPLES[self.axis]
        inside = (points[..., lon] >= self.mins[lon]) & (points[..., lon] <= self.maxs[lon])
        rsq = (points[..., t0] - self.mins[t0])**2 + (points[..., t1] - self.mins[t1])**2
        tolsq = tol*tol
        return inside & (rsq > self.inner_sq - tolsq) & (rsq < self.outer_sq + tolsq)

Geometry = InteriorCylinder | Torus

# %% Descriptor reader

def _longitudinal_axis(mins: np.ndarray, maxs: np.ndarray, lineno: int, path) -> int:
    """
    The one axis along which the shape extends. Every other axis must have min == max.
    """
    for axis in range(3):
        if maxs[axis] < mins[axis]:
            raise BadGeom(f'Geometry max < min at line {lineno}', path=path, axis=axis,
                          expected=f'>= {mins[axis]}', actual=maxs[axis])
    differ = [axis for axis in range(3) if maxs[axis] != mins[axis]]
    if len(differ) != 1:
        raise BadGeom(f'Geometry must extend along exactly one axis at line {lineno}', path=path,
                      expected=1, actual=len(differ))
    return differ[0]

def _numbers(tokens: list[str], nargs: int, lineno: int, path) -> np.ndarray:
    if len(tokens) - 1 != nargs:
        raise BadGeom(f'{tokens[0]} needs {nargs} arguments at line {lineno}', path=path,
                      expected=nargs, actual=len(tokens) - 1)
    try:
        return np.array([float(t) for t in tokens[1:]])
    except ValueError as err:
        raise BadGeom(f'Non-numeric argument to {tokens[0]} at line {lineno}', path=path,
                      actual=tokens[1:]) from err

def parse_geometry(lines, path='<geometry>') -> list[Geometry]:
    """
    Builds the geometry list from descriptor lines. Raises BadGeom on any malformed entry.
    """
    lines = iter(lines)
    first = next(lines, '')
    if not first.startswith(HEADER_TAG):
        raise BadGeom('Not a geometry file', path=path, expected=HEADER_TAG, actual=first.strip()[:16])

    geometries = []
    for lineno, line in enumerate(lines, 2):
        tokens = tokenize(line)
        if not tokens or tokens[0].startswith('#'):
            continue
        command = tokens[0]
        if command == 'icyl':
            args = _numbers(tokens, 8, lineno, path)
            mins, maxs = args[0:3], args[3:6]
            axis = _longitudinal_axis(mins, maxs, lineno, path)
            geometries.append(InteriorCylinder(axis, mins, maxs, args[6]**2, args[7]))
        elif command == 'torus':
            args = _numbers(tokens, 9, lineno, path)
            mins, maxs = args[0:3], args[3:6]
            axis = _longitudinal_axis(mins, maxs, lineno, path)
            geometries.append(Torus(axis, mins, maxs, args[6]**2, args[7]**2, args[8]))
        else:
            logger.warning('Unknown geometry command %s at line %d of %s', command, lineno, path)

    logger.info('Read %d geometries from %s', len(geometries), path)
    return geometries

def read_geometry(path) -> list[Geometry]:
    """
    Reads a geometry descriptor file
    """
    try:
        with open(path, 'rt') as f:
            lines = f.readlines()
    except OSError as err:
        raise CantOpenIn('Failed to open geometry file', path=path) from err
    return parse_geometry(lines, path)
