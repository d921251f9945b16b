# %% -*- coding: utf-8 -*-
"""
The GridField class, which holds one vector field sampled on a structured grid and answers
point queries by multilinear interpolation.

Two physical layouts are supported:
- Full 3D: three components sampled on an nx*ny*nz Cartesian lattice.
- Axisymmetric 2D: two components (Fr, Fz) sampled on an (r, z) slice, implicitly revolved
  about the z axis.

Samples are stored in a single flat float64 buffer, x fastest and z slowest, with the
components innermost, i.e. index = ((iz*ny + iy)*nx + ix)*ncomp + c. This is numpy's C order
for an array of shape (nz, ny, nx, ncomp).
"""

import logging
import math
from enum import IntEnum

import numpy as np
from numpy.typing import ArrayLike
import scipy.interpolate

from typing import Sequence, Type, TypeVar

from .errors import AllocFailed, BadStructure, OutOfRange
from .ranges import RangeInfo
from ..settings import DEFAULT_SETTINGS, FieldSettings

logger = logging.getLogger(__name__)

# Some static typing stuff to help with type hinting
T = TypeVar('T', bound='GridField')

# Expression names expected from the tabular export, in order
FULL3D_NAMES = ('es.Ex', 'es.Ey', 'es.Ez')
AXISYMMETRIC_NAMES = {0: ('Ey', 'Ez'), 1: ('Ex', 'Ez')}

# %% Basic types

class GridKind(IntEnum):
    """
    Storage layout of a GridField. The values double as the kind tag in binary files.
    """
    AXISYMMETRIC_2D = 0
    FULL_3D = 1

    @property
    def components(self) -> int:
        return 2 if self is GridKind.AXISYMMETRIC_2D else 3

def _allocate(shape) -> np.ndarray:
    try:
        return np.empty(shape, dtype=np.float64)
    except MemoryError as err:
        raise AllocFailed('Could not allocate sample buffer', expected=shape) from err

def _lower_index(c: float, vmin: float, step: float, count: int, axis: int, slop: float) -> tuple[int, float]:
    """
    Finds the lower corner index of the cell containing c along one axis, and the reduced
    coordinate of c within that cell.
    """
    idx = math.floor((c - vmin) / step)
    # Correct if at the top edge (or rounding pushed us past it)
    if idx >= count - 1:
        idx = count - 2
    if idx < 0:
        idx = 0
    rc = (c - (vmin + idx * step)) / step
    if rc < -slop or rc > 1.0 + slop:
        raise OutOfRange('Reduced coordinate out of range', axis=axis,
                         expected=f'[{-slop}, {1.0 + slop}]', actual=rc)
    return idx, rc

# %% Grid field class

class GridField:
    """
    A single vector field on a structured grid, plus the metadata needed to locate points
    in it. The extents always describe the 3D bounding box of the field; for axisymmetric
    fields the x and y extents span [-rmax, rmax] and the radial sampling is described by
    the stride (number of radial samples) together with the step of the radial axis.
    """

    is_leaf = True

    def __init__(self, kind: GridKind, extents: Sequence[RangeInfo], samples: ArrayLike,
                 stride: int | None = None, name: str = '', model_name: str = ''):
        self.kind = GridKind(kind)
        self.extents = tuple(RangeInfo(*e) for e in extents)
        self.stride = None if stride is None else int(stride)
        self.name = name
        self.model_name = model_name
        self.samples = np.ascontiguousarray(samples, dtype=np.float64).ravel()

        self._check_structure()

    def _check_structure(self):
        if len(self.extents) != 3:
            raise BadStructure('Grid needs exactly three extents', path=self.name,
                               expected=3, actual=len(self.extents))
        for axis, e in enumerate(self.extents):
            e.validate(axis, path=self.name)

        nactive = sum(1 for e in self.extents if e.count > 1)
        if self.kind is GridKind.FULL_3D:
            for axis, e in enumerate(self.extents):
                if e.count < 2:
                    raise BadStructure('Full 3D grid needs every axis active', axis=axis,
                                       path=self.name, expected='count >= 2', actual=e.count)
            if self.stride is not None:
                raise BadStructure('Full 3D grid cannot carry a stride', path=self.name,
                                   expected=None, actual=self.stride)
        else:
            if nactive != 2 or self.extents[2].count < 2:
                raise BadStructure('Axisymmetric grid needs exactly two active axes, one of them z',
                                   path=self.name, expected=2, actual=nactive)
            radial = self.radial_axis
            if self.stride != self.extents[radial].count:
                raise BadStructure('Axisymmetric stride must equal the radial count', axis=radial,
                                   path=self.name, expected=self.extents[radial].count, actual=self.stride)

        if len(self.samples) != self.npoint * self.components:
            raise BadStructure('Sample buffer does not match grid size', path=self.name,
                               expected=self.npoint * self.components, actual=len(self.samples))

    # %% Constructors from raw columns

    @classmethod
    def build_full3d(cls: Type[T], extents: Sequence[RangeInfo], columns: Sequence[ArrayLike],
                     names: Sequence[str] | None = None, name: str = '', model_name: str = '') -> T:
        """
        Builds a full 3D field from three component columns, each ordered x fastest, z slowest.

        Parameters
        ----------
        extents : three RangeInfo
            Range of each axis; all three must be active.
        columns : three 1D arrays
            The Ex, Ey, Ez samples.
        names : optional sequence of str
            Expression names from the source. If given they must read es.Ex, es.Ey, es.Ez.
        """
        if len(extents) != 3:
            raise BadStructure('Expected three dimensions', path=name, expected=3, actual=len(extents))
        if len(columns) != 3:
            raise BadStructure('Expected three expressions', path=name, expected=3, actual=len(columns))
        if names is not None:
            for k, (want, got) in enumerate(zip(FULL3D_NAMES, names)):
                if want != got:
                    raise BadStructure(f'Expression {k} has the wrong name', path=name, expected=want, actual=got)
        for axis, e in enumerate(extents):
            if e.count < 2:
                raise BadStructure('Full 3D data needs every axis active', axis=axis, path=name,
                                   expected='count >= 2', actual=e.count)

        npoint = extents[0].count * extents[1].count * extents[2].count
        samples = _allocate((npoint, 3))
        for c, col in enumerate(columns):
            col = np.asarray(col, dtype=np.float64).ravel()
            if len(col) != npoint:
                raise BadStructure(f'Column {c} has the wrong length', path=name, expected=npoint, actual=len(col))
            samples[:, c] = col

        logger.debug('Built full 3D field %s with %d points', name, npoint)
        return cls(GridKind.FULL_3D, extents, samples, None, name, model_name)

    @classmethod
    def build_axisymmetric2d(cls: Type[T], extents: Sequence[RangeInfo], columns: Sequence[ArrayLike],
                             inactive_axis: int | None = None, names: Sequence[str] | None = None,
                             name: str = '', model_name: str = '') -> T:
        """
        Builds an axisymmetric field from the two components of an (r, z) slice. The slice is
        sampled in the plane of one transverse axis (the radial axis) and z, with the other
        transverse axis inactive. Both transverse axes must start at 0.

        The stored extents are rewritten to the 3D bounding box of the revolved field.
        """
        if len(extents) != 3:
            raise BadStructure('Expected three dimensions', path=name, expected=3, actual=len(extents))
        if len(columns) != 2:
            raise BadStructure('Expected two expressions', path=name, expected=2, actual=len(columns))

        inactive = [axis for axis, e in enumerate(extents) if e.count <= 1]
        if len(inactive) != 1:
            raise BadStructure('Expected exactly one inactive axis', path=name, expected=1, actual=len(inactive))
        if inactive_axis is not None and inactive_axis != inactive[0]:
            raise BadStructure('Inactive axis does not match the data', path=name,
                               expected=inactive_axis, actual=inactive[0])
        inactive_axis = inactive[0]
        if inactive_axis > 1:
            raise BadStructure('Inactive axis must be x or y', axis=inactive_axis, path=name,
                               expected='0 or 1', actual=inactive_axis)
        for axis in (0, 1):
            if extents[axis].min != 0.0:
                raise BadStructure('Axisymmetric data must have min 0 on x and y', axis=axis, path=name,
                                   expected=0.0, actual=extents[axis].min)
        if names is not None:
            for k, (want, got) in enumerate(zip(AXISYMMETRIC_NAMES[inactive_axis], names)):
                if want != got:
                    raise BadStructure(f'Expression {k} has the wrong name', path=name, expected=want, actual=got)

        radial_axis = 1 - inactive_axis
        radial = extents[radial_axis]
        npoint = radial.count * extents[2].count
        samples = _allocate((npoint, 2))
        for c, col in enumerate(columns):
            col = np.asarray(col, dtype=np.float64).ravel()
            if len(col) != npoint:
                raise BadStructure(f'Column {c} has the wrong length', path=name, expected=npoint, actual=len(col))
            samples[:, c] = col

        ## Recompute the 3D bounding box
        rmax = radial.max
        box = [RangeInfo(-rmax, rmax, radial.step, extents[axis].count, extents[axis].count > 1) for axis in (0, 1)]
        box.append(extents[2])

        logger.debug('Built axisymmetric field %s, %d radial by %d axial', name, radial.count, extents[2].count)
        return cls(GridKind.AXISYMMETRIC_2D, box, samples, radial.count, name, model_name)

    # %% Basic properties

    @property
    def components(self) -> int:
        return self.kind.components

    @property
    def counts(self) -> tuple[int, int, int]:
        return tuple(e.count for e in self.extents)

    @property
    def npoint(self) -> int:
        # Python ints do not overflow
        nx, ny, nz = self.counts
        return nx * ny * nz

    @property
    def radial_axis(self) -> int:
        """
        For axisymmetric data, the transverse axis along which the slice is sampled
        """
        return 0 if self.extents[0].count > 1 else 1

    def bounds(self) -> tuple[np.ndarray, np.ndarray]:
        return (np.array([e.min for e in self.extents]), np.array([e.max for e in self.extents]))

    def samples_view(self) -> np.ndarray:
        """
        Returns the samples as a (nz, ny, nx, 3) array for full 3D data, or as a (nz, nr, 2)
        array for axisymmetric data. This is a view, so writes go to the field.
        """
        nx, ny, nz = self.counts
        if self.kind is GridKind.FULL_3D:
            return self.samples.reshape(nz, ny, nx, 3)
        return self.samples.reshape(nz, self.stride, 2)

    def index_at(self, ix: int, iy: int, iz: int) -> int:
        """
        Flat point index of a lattice point. Multiply by components to get the buffer offset.
        """
        nx, ny, _ = self.counts
        index = int(iz)
        index = index * ny + int(iy)
        index = index * nx + int(ix)
        return index

    def copy(self) -> 'GridField':
        return GridField(self.kind, self.extents, self.samples.copy(), self.stride, self.name, self.model_name)

    def same_as(self, other: 'GridField', names: bool = True) -> bool:
        """
        Exact comparison of metadata and samples
        """
        if self.kind != other.kind or self.extents != other.extents or self.stride != other.stride:
            return False
        if names and (self.name != other.name or self.model_name != other.model_name):
            return False
        return np.array_equal(self.samples, other.samples)

    def __repr__(self):
        return f'GridField({self.kind.name}, counts={self.counts}, name={self.name!r})'

    # %% Point location

    def point_in_bounds(self, coord: ArrayLike) -> bool:
        """
        Checks whether a point lies inside the bounding box, boundaries included. NaN
        coordinates are never in bounds.
        """
        for c, e in zip(coord, self.extents):
            if not (e.min <= c <= e.max):
                return False
        return True

    def clip(self, coord: ArrayLike) -> np.ndarray:
        """
        Clamps each coordinate to the range of its axis
        """
        mins, maxs = self.bounds()
        return np.clip(np.asarray(coord, dtype=float), mins, maxs)

    def map_to_index(self, coord: ArrayLike) -> tuple[int, int, int] | None:
        """
        Index of the lattice point nearest to coord, or None if coord lies outside the field.

        For axisymmetric data the index refers to the stored slice: the radial index sits on
        the radial axis, computed from r = hypot(x, y), and the inactive axis maps to 0.
        """
        if not self.point_in_bounds(coord):
            return None

        if self.kind is GridKind.FULL_3D:
            return tuple(int((c - e.min) / e.step + 0.5) for c, e in zip(coord, self.extents))

        r = math.hypot(coord[0], coord[1])
        ir = int(r / self.extents[self.radial_axis].step + 0.5)
        if ir > self.stride - 1:
            return None
        zext = self.extents[2]
        iz = int((coord[2] - zext.min) / zext.step + 0.5)
        index = [0, 0, iz]
        index[self.radial_axis] = ir
        return tuple(index)

    # %% Interpolation

    def value_at(self, coord: ArrayLike, settings: FieldSettings = DEFAULT_SETTINGS) -> np.ndarray:
        """
        Interpolates the field at a point, returning (Fx, Fy, Fz).

        Raises OutOfRange if the point lies outside the field.
        """
        coord = np.asarray(coord, dtype=float)
        if not self.point_in_bounds(coord):
            raise OutOfRange('Coordinate outside field bounds', path=self.name,
                             expected=[(e.min, e.max) for e in self.extents], actual=tuple(coord))

        slop = settings.reduced_coord_slop
        if self.kind is GridKind.FULL_3D:
            return self._value_3d(coord, slop)
        return self._value_axisymmetric(coord, slop)

    def _value_3d(self, coord: np.ndarray, slop: float) -> np.ndarray:
        ## Locate the lower corner of the surrounding cell
        lower = []
        for axis, (c, e) in enumerate(zip(coord, self.extents)):
            lower.append(_lower_index(c, e.min, e.step, e.count, axis, slop))
        (ix, rx), (iy, ry), (iz, rz) = lower

        # The 8 corners of the cell, shape (2, 2, 2, 3) indexed [z, y, x, comp]
        cell = self.samples_view()[iz:iz+2, iy:iy+2, ix:ix+2, :]

        ## Collapse one axis at a time
        c = cell[0] * (1.0 - rz) + cell[1] * rz
        c = c[0] * (1.0 - ry) + c[1] * ry
        return c[0] * (1.0 - rx) + c[1] * rx

    def _value_axisymmetric(self, coord: np.ndarray, slop: float) -> np.ndarray:
        x, y, z = coord

        ## Map the 3D point onto the (r, z) slice
        r = math.hypot(x, y)
        cosval = sinval = 0.0
        if r > 0.0:
            cosval = x / r
            sinval = y / r

        # Radial limits are 0 and rmax, independent of the 3D box
        ir, rr = _lower_index(r, 0.0, self.extents[self.radial_axis].step, self.stride, self.radial_axis, slop)
        zext = self.extents[2]
        iz, rz = _lower_index(z, zext.min, zext.step, zext.count, 2, slop)

        # The 4 corners, shape (2, 2, 2) indexed [z, r, comp]
        cell = self.samples_view()[iz:iz+2, ir:ir+2, :]
        c = cell[0] * (1.0 - rz) + cell[1] * rz
        fr, fz = c[0] * (1.0 - rr) + c[1] * rr

        ## Map back to 3D
        return np.array([fr * cosval, fr * sinval, fz])

    def values_at(self, points: ArrayLike) -> np.ndarray:
        """
        Vectorized linear interpolation at many points at once.

        Parameters
        ----------
        points : array_like of shape (n, 3)
            Cartesian points.

        Returns
        -------
        numpy array of shape (n, 3)
            Interpolated (Fx, Fy, Fz); rows for points outside the field are NaN.
        """
        points = np.atleast_2d(np.asarray(points, dtype=float))
        zc = self.extents[2].coords()

        if self.kind is GridKind.FULL_3D:
            yc = self.extents[1].coords()
            xc = self.extents[0].coords()
            interp = scipy.interpolate.RegularGridInterpolator((zc, yc, xc), self.samples_view(),
                                                               method='linear', bounds_error=False, fill_value=np.nan)
            return interp(points[:, ::-1])

        rc = np.arange(self.stride) * self.extents[self.radial_axis].step
        interp = scipy.interpolate.RegularGridInterpolator((zc, rc), self.samples_view(),
                                                           method='linear', bounds_error=False, fill_value=np.nan)
        r = np.hypot(points[:, 0], points[:, 1])
        cosval = np.divide(points[:, 0], r, out=np.zeros_like(r), where=r > 0)
        sinval = np.divide(points[:, 1], r, out=np.zeros_like(r), where=r > 0)

        f2d = interp(np.column_stack((points[:, 2], r)))
        return np.column_stack((f2d[:, 0] * cosval, f2d[:, 0] * sinval, f2d[:, 1]))

    # %% Serialization, delegated to field_codec

    def to_bytes(self, model_name: str | None = None, file_name: str | None = None) -> bytes:
        from .field_codec import to_bytes
        return to_bytes(self, model_name, file_name)

    @staticmethod
    def from_bytes(data: bytes) -> 'GridField':
        from .field_codec import from_bytes
        return from_bytes(data)
