# %% -*- coding: utf-8 -*-
"""
Ingestion of field data exported as text by the finite element packages.

Two formats are handled:
- The tabular COMSOL export: a block of '%' prefixed header lines, then one row per node
  holding the coordinates followed by the expression values. The grid shape is not stored
  and has to be recovered from the coordinate columns (see ranges.analyse_columns).
- The FEMM export written by Matlab/Octave: rows of 'x y Ex Ey' with y varying fastest and
  no header at all, describing an axisymmetric (r, z) slice.
"""

import logging
import os

import numpy as np

from typing import NamedTuple

from .errors import BadStructure, CantOpenIn, FieldError, ReadFailure
from .grid_field import GridField, GridKind
from .ranges import RangeInfo, analyse_columns
from .utility import run_length
from ..settings import DEFAULT_SETTINGS, FieldSettings

logger = logging.getLogger(__name__)

# Header line that carries the column names
NAME_LINE = 9

# %% Tabular export

class TabularExport(NamedTuple):
    """
    Raw contents of a tabular export: header information and one array per column,
    coordinates first.
    """
    model_name: str
    dimension: int
    nodes: int
    coord_names: list[str]
    expression_names: list[str]
    units: list[str]
    columns: list[np.ndarray]

    @property
    def coord_columns(self) -> list[np.ndarray]:
        return self.columns[:self.dimension]

    @property
    def expression_columns(self) -> list[np.ndarray]:
        return self.columns[self.dimension:]

def _parse_header(lines: list[str], path) -> tuple[dict, int]:
    """
    Parses the '%' header lines, returning the header info and the number of header lines.
    """
    info = {'model': '', 'names': None}
    nhead = 0
    for line in lines:
        if not line.startswith('%'):
            break
        nhead += 1
        tokens = line[1:].split()
        if not tokens:
            continue
        option = tokens[0]
        try:
            if option == 'Dimension:':
                info['dimension'] = int(tokens[1])
            elif option == 'Nodes:':
                info['nodes'] = int(tokens[1])
            elif option == 'Expressions:':
                info['expressions'] = int(tokens[1])
            elif option == 'Model:':
                info['model'] = tokens[1] if len(tokens) > 1 else ''
            elif nhead == NAME_LINE:
                info['names'] = tokens
        except (IndexError, ValueError) as err:
            raise BadStructure('Incomplete header', path=path, expected='option value', actual=nhead) from err

    for key in ('dimension', 'nodes', 'expressions'):
        if key not in info:
            raise BadStructure(f'Incomplete header, no {key} line', path=path, actual=nhead)
    return info, nhead

def read_comsol_text(path) -> TabularExport:
    """
    Reads a tabular text export into raw columns.
    """
    try:
        with open(path, 'rt') as f:
            lines = f.readlines()
    except OSError as err:
        raise CantOpenIn('Unable to open input file', path=path) from err

    info, nhead = _parse_header(lines, path)
    ndim, nexpr, nodes = info['dimension'], info['expressions'], info['nodes']

    ## Split the name line into coordinate names, then (expression, unit) pairs
    tokens = info['names'] or []
    coord_names = tokens[:ndim]
    pairs = tokens[ndim:]
    expression_names = pairs[0::2][:nexpr]
    units = pairs[1::2][:nexpr]
    if len(coord_names) != ndim or len(expression_names) != nexpr:
        logger.warning('Name line of %s lists %d names, expected %d', path, len(tokens), ndim + 2*nexpr)

    ## Read the data block
    body = [line for line in lines[nhead:] if line.strip()]
    if len(body) < nodes:
        raise ReadFailure('File holds fewer rows than the header promises', path=path,
                          expected=nodes, actual=len(body))
    try:
        data = np.loadtxt(body[:nodes], dtype=np.float64, ndmin=2)
    except ValueError as err:
        raise ReadFailure('Could not parse data rows', path=path) from err
    if data.shape[1] != ndim + nexpr:
        raise BadStructure('Wrong number of columns', path=path, expected=ndim + nexpr, actual=data.shape[1])

    logger.info('Read %d rows of %d columns from %s', nodes, ndim + nexpr, path)
    return TabularExport(info['model'], ndim, nodes, coord_names, expression_names, units,
                         [data[:, k].copy() for k in range(ndim + nexpr)])

def load_comsol_field(path) -> GridField:
    """
    Reads a tabular export and builds a full 3D or axisymmetric field from it, depending on
    how many coordinate axes actually vary.
    """
    export = read_comsol_text(path)
    name = os.path.basename(os.fspath(path))

    if export.dimension != 3:
        raise BadStructure('Expected three dimensions', path=path, expected=3, actual=export.dimension)

    ranges = analyse_columns(export.coord_columns)
    nactive = sum(1 for r in ranges if r.active)
    names = export.expression_names if len(export.expression_names) == len(export.expression_columns) else None
    try:
        if nactive == 3:
            return GridField.build_full3d(ranges, export.expression_columns, names=names,
                                          name=name, model_name=export.model_name)
        elif nactive == 2:
            return GridField.build_axisymmetric2d(ranges, export.expression_columns, names=names,
                                                  name=name, model_name=export.model_name)
    except FieldError as err:
        raise err.with_path(path)
    raise BadStructure('Expected two or three active dimensions', path=path, expected='2 or 3', actual=nactive)

# %% FEMM export

def build_femm2d(raw, name: str = '', model_name: str = '', settings: FieldSettings = DEFAULT_SETTINGS) -> GridField:
    """
    Builds an axisymmetric field from FEMM rows of (x, y, Ex, Ey), y varying fastest.

    The input x is the radius and maps to axis 1, the input y maps to axis 2 (z), and axis 0
    is the inactive one. The number of points along y is the length of the leading run of
    repeated x values; repeats are matched with numpy.isclose under the femm_run tolerances.

    Parameters
    ----------
    raw : array_like of shape (nrow, 4)
        The rows as read from the file.
    """
    raw = np.asarray(raw, dtype=np.float64)
    if raw.ndim != 2 or raw.shape[1] < 4:
        raise BadStructure('FEMM data needs rows of x y Ex Ey', path=name, expected=4,
                           actual=raw.shape[1] if raw.ndim == 2 else raw.ndim)
    x, y, ex, ey = raw[:, 0], raw[:, 1], raw[:, 2], raw[:, 3]
    nrow = len(x)

    ## Count the repeats of the first x to find the fast dimension
    nxcopy = run_length(x, rtol=settings.femm_run_rtol, atol=settings.femm_run_atol)
    if nxcopy == 0 or nrow % nxcopy != 0:
        raise BadStructure('Data is not a rectangular array', path=name,
                           expected=f'multiple of {nxcopy}', actual=nrow)
    if x.min() != 0.0:
        raise BadStructure('Axisymmetric data must have radius min 0', axis=1, path=name, expected=0.0, actual=x.min())

    nr = nrow // nxcopy
    nz = nxcopy
    if nr < 2 or nz < 2:
        raise BadStructure('Need at least two samples in r and z', path=name, expected='>= 2', actual=(nr, nz))

    rmax = float(x.max())
    zmin, zmax = float(y.min()), float(y.max())
    dr = rmax / (nr - 1)
    dz = (zmax - zmin) / (nz - 1)

    # Bounding box of the revolved field
    extents = [RangeInfo(-rmax, rmax, dr, 1, False),
               RangeInfo(-rmax, rmax, dr, nr, True),
               RangeInfo(zmin, zmax, dz, nz, True)]

    # Input index col*nz + row becomes slice index row*nr + col
    samples = np.stack((ex.reshape(nr, nz).T, ey.reshape(nr, nz).T), axis=-1)

    logger.debug('FEMM data %s: %d radial by %d axial', name, nr, nz)
    return GridField(GridKind.AXISYMMETRIC_2D, extents, samples, nr, name, model_name)

def read_femm_text(path, settings: FieldSettings = DEFAULT_SETTINGS) -> GridField:
    """
    Reads a FEMM text export and builds the axisymmetric field.
    """
    try:
        raw = np.loadtxt(path, dtype=np.float64, ndmin=2)
    except OSError as err:
        raise CantOpenIn('Failed to open file', path=path) from err
    except ValueError as err:
        raise ReadFailure('Could not parse FEMM rows', path=path) from err
    try:
        return build_femm2d(raw, name=os.path.basename(os.fspath(path)), settings=settings)
    except FieldError as err:
        raise err.with_path(path)
