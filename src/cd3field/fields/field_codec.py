# %% -*- coding: utf-8 -*-
"""
Reading and writing of GridFields in the CD3B binary format, plus a NetCDF export for
inspection with other tools.

The binary file is a fixed 512 byte header followed by the raw little-endian float64
samples. The header layout is

    offset  type         contents
    0       uint32       magic number 'CD3B'
    4       uint32       data offset (always the header length)
    8       char[64]     model name, UTF-8, NUL padded, at most 63 bytes
    72      char[64]     source file name, same convention
    136     int32        kind tag (0 axisymmetric, 1 full 3D, 2 unused, 3 error)
    140     uint32[3]    sample counts
    152     float64[3]   mins
    176     float64[3]   maxes
    200     float64[3]   steps
    224     int32        stride (axisymmetric only)

and zero padding up to the data offset.
"""

import io
import logging
import os
import struct

import numpy as np
import netCDF4

from .errors import AllocFailed, BadStructure, BadWrite, CantOpenIn, CantOpenOut, FieldError, ReadFailure
from .grid_field import GridField, GridKind
from .ranges import RangeInfo
from .utility import truncate_name
from ..settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

# %% Format constants

# Multi-character constant 'CD3B' as a C compiler lays it out
MAGIC = 0x43443342
HEADER_LENGTH = DEFAULT_SETTINGS.header_length

KIND_UNUSED = 2
KIND_ERROR = 3

_HEADER = struct.Struct('<II64s64si3I3d3d3di')

def _encode_name(name: str | None) -> bytes:
    return truncate_name(name).encode('utf-8')

def _decode_name(raw: bytes) -> str:
    return raw.split(b'\0', 1)[0].decode('utf-8', errors='replace')

# %% Binary writer/reader

def pack_header(grid: GridField, model_name: str | None = None, file_name: str | None = None) -> bytes:
    """
    Builds the fixed-size header block for grid. Names default to the ones the grid carries.
    """
    model_name = grid.model_name if model_name is None else model_name
    file_name = grid.name if file_name is None else file_name

    counts = [e.count for e in grid.extents]
    mins = [e.min for e in grid.extents]
    maxs = [e.max for e in grid.extents]
    steps = [e.step for e in grid.extents]

    head = _HEADER.pack(MAGIC, HEADER_LENGTH, _encode_name(model_name), _encode_name(file_name),
                        int(grid.kind), *counts, *mins, *maxs, *steps, grid.stride or 0)
    return head + bytes(HEADER_LENGTH - len(head))

def write(grid: GridField, sink, model_name: str | None = None, file_name: str | None = None):
    """
    Writes grid to a binary file-like object opened for writing.

    Raises BadWrite if either the header or the payload is not written completely.
    """
    head = pack_header(grid, model_name, file_name)
    payload = grid.samples.astype('<f8', copy=False).tobytes()

    logger.debug('Field type %d, stride %d', int(grid.kind), grid.stride or 0)
    for axis, e in enumerate(grid.extents):
        logger.debug('Dim %d: %d vals %f to %f by %f', axis, e.count, e.min, e.max, e.step)

    for what, block in (('header', head), ('data', payload)):
        try:
            nwritten = sink.write(block)
        except OSError as err:
            raise BadWrite(f'Failed to write {what}', expected=len(block)) from err
        if nwritten is not None and nwritten != len(block):
            raise BadWrite(f'Failed to write {what}', expected=len(block), actual=nwritten)

    logger.debug('Wrote %d data values', len(grid.samples))

def read(source) -> GridField:
    """
    Reads a GridField from a binary file-like object opened for reading.

    Raises BadStructure if the header does not describe a valid field, ReadFailure if the
    file is too short.
    """
    try:
        source.seek(0)
    except OSError as err:
        raise ReadFailure('Could not seek to start of file') from err

    head = source.read(HEADER_LENGTH)
    if len(head) != HEADER_LENGTH:
        raise ReadFailure('Could not read header', expected=HEADER_LENGTH, actual=len(head))

    (magic, offset, model_raw, file_raw, kind_tag,
     nx, ny, nz, xmin, ymin, zmin, xmax, ymax, zmax, dx, dy, dz, stride) = _HEADER.unpack_from(head)

    if magic != MAGIC:
        raise BadStructure('Header magic number does not match', expected=hex(MAGIC), actual=hex(magic))
    if kind_tag not in (GridKind.AXISYMMETRIC_2D, GridKind.FULL_3D):
        raise BadStructure('Invalid field type', expected=[int(k) for k in GridKind], actual=kind_tag)
    kind = GridKind(kind_tag)

    ## Copy the extents in, checking the active ones
    extents = []
    nactive = 0
    for axis, (n, lo, hi, step) in enumerate(zip((nx, ny, nz), (xmin, ymin, zmin), (xmax, ymax, zmax), (dx, dy, dz))):
        if n > 1:
            nactive += 1
            if hi <= lo:
                raise BadStructure('Dimension max <= min', axis=axis, expected=f'> {lo}', actual=hi)
            if step <= 0.0:
                raise BadStructure('Dimension step is not positive', axis=axis, expected='> 0', actual=step)
        extents.append(RangeInfo(lo, hi, step, n, n > 1))

    want_active = 2 if kind is GridKind.AXISYMMETRIC_2D else 3
    if nactive != want_active:
        raise BadStructure('Number of active dims does not match type', expected=want_active, actual=nactive)

    ## Now figure out how much data we have and read it in
    nvalue = nx * ny * nz * kind.components
    if offset != HEADER_LENGTH:
        source.seek(offset)
    payload = source.read(nvalue * 8)
    if len(payload) != nvalue * 8:
        raise ReadFailure('Failed to read data', expected=nvalue, actual=len(payload) // 8)
    try:
        samples = np.frombuffer(payload, dtype='<f8').astype(np.float64)
    except MemoryError as err:
        raise AllocFailed('Failed to allocate data', expected=nvalue) from err

    return GridField(kind, extents, samples,
                     stride if kind is GridKind.AXISYMMETRIC_2D else None,
                     name=_decode_name(file_raw), model_name=_decode_name(model_raw))

def to_bytes(grid: GridField, model_name: str | None = None, file_name: str | None = None) -> bytes:
    buf = io.BytesIO()
    write(grid, buf, model_name, file_name)
    return buf.getvalue()

def from_bytes(data: bytes) -> GridField:
    return read(io.BytesIO(data))

# %% File level helpers

def save_field(grid: GridField, path, model_name: str | None = None, file_name: str | None = None):
    """
    Saves grid to path in binary form. The file name recorded in the header defaults to the
    grid's provenance name.
    """
    try:
        ofp = open(path, 'wb')
    except OSError as err:
        raise CantOpenOut('Failed to open output file', path=path) from err
    with ofp:
        try:
            write(grid, ofp, model_name, file_name)
        except FieldError as err:
            raise err.with_path(path)
    logger.info('Saved field %s to %s', grid.name, path)

def load_field(path) -> GridField:
    """
    Loads a binary field from path. If the header carries no file name, the base name of
    path is used as the provenance.
    """
    try:
        ifp = open(path, 'rb')
    except OSError as err:
        raise CantOpenIn('Failed to open input file', path=path) from err
    with ifp:
        try:
            grid = read(ifp)
        except FieldError as err:
            raise err.with_path(path)
    if not grid.name:
        grid.name = os.path.basename(os.fspath(path))
    logger.debug('Loaded %r from %s', grid, path)
    return grid

# %% NetCDF export

def export_netcdf(grid: GridField, path):
    """
    Writes grid to a NetCDF4 file, with the samples as a variable 'field' of shape
    (z, y, x, component) for full 3D data or (z, r, component) for axisymmetric data.
    """
    with netCDF4.Dataset(os.fspath(path), 'w', format='NETCDF4') as ds:
        view = grid.samples_view()
        if grid.kind is GridKind.FULL_3D:
            dims = ('z', 'y', 'x', 'component')
        else:
            dims = ('z', 'r', 'component')
        for dim, n in zip(dims, view.shape):
            ds.createDimension(dim, n)
        var = ds.createVariable('field', 'f8', dims)
        var[:] = view

        ds.setncatts({
            'kind': int(grid.kind),
            'stride': grid.stride or 0,
            'counts': np.array(grid.counts, dtype=np.int64),
            'mins': np.array([e.min for e in grid.extents]),
            'maxs': np.array([e.max for e in grid.extents]),
            'steps': np.array([e.step for e in grid.extents]),
        })
        # Empty string attributes are not portable, so only write the names we have
        if grid.name:
            ds.setncattr('provenance', grid.name)
        if grid.model_name:
            ds.setncattr('model_name', grid.model_name)

def import_netcdf(path) -> GridField:
    """
    Reads back a field written by export_netcdf
    """
    try:
        ds = netCDF4.Dataset(os.fspath(path), 'r')
    except OSError as err:
        raise CantOpenIn('Failed to open NetCDF file', path=path) from err
    with ds:
        ds.set_auto_mask(False)
        attrs = {k: ds.getncattr(k) for k in ds.ncattrs()}
        samples = np.asarray(ds.variables['field'][:], dtype=np.float64)

    kind = GridKind(int(attrs['kind']))
    counts = np.atleast_1d(attrs['counts'])
    extents = [RangeInfo(float(lo), float(hi), float(step), int(n), int(n) > 1)
               for n, lo, hi, step in zip(counts, np.atleast_1d(attrs['mins']),
                                          np.atleast_1d(attrs['maxs']), np.atleast_1d(attrs['steps']))]
    stride = int(attrs['stride']) if kind is GridKind.AXISYMMETRIC_2D else None
    try:
        return GridField(kind, extents, samples, stride,
                         name=str(attrs.get('provenance', '')), model_name=str(attrs.get('model_name', '')))
    except FieldError as err:
        raise err.with_path(path)
