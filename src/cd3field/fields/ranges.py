# %% -*- coding: utf-8 -*-
"""
Per-axis range metadata for structured grids, plus the analysis that recovers the grid
structure from raw coordinate columns.
"""

import logging

import numpy as np

from typing import NamedTuple, Sequence

from .errors import BadStructure
from .utility import run_length

logger = logging.getLogger(__name__)

# %% Basic types

class RangeInfo(NamedTuple):
    """
    Range information for one axis of a grid: the min and max sampled values, the spacing
    between samples, the number of samples, and whether the axis varies at all.
    """
    min: float
    max: float
    step: float
    count: int
    active: bool

    @classmethod
    def spanning(cls, vmin: float, vmax: float, count: int) -> 'RangeInfo':
        """
        Builds an evenly sampled range with count points from vmin to vmax inclusive.
        """
        if count > 1:
            return cls(float(vmin), float(vmax), (vmax - vmin) / (count - 1), int(count), True)
        return cls(float(vmin), float(vmax), 0.0, 1, False)

    @classmethod
    def single(cls, value: float) -> 'RangeInfo':
        return cls(float(value), float(value), 0.0, 1, False)

    @property
    def is_active(self) -> bool:
        return self.count > 1

    def coords(self) -> np.ndarray:
        """
        Sample coordinates along this axis
        """
        return self.min + np.arange(self.count) * self.step

    def validate(self, axis: int, path=None):
        """
        Checks the consistency needed for interpolation on an active axis: max > min, step > 0.
        """
        if self.count < 1:
            raise BadStructure('Axis has no samples', axis=axis, path=path, expected='count >= 1', actual=self.count)
        if self.count > 1:
            if not self.max > self.min:
                raise BadStructure('Active axis has max <= min', axis=axis, path=path,
                                   expected=f'max > {self.min}', actual=self.max)
            if not self.step > 0.0:
                raise BadStructure('Active axis has non-positive step', axis=axis, path=path,
                                   expected='step > 0', actual=self.step)
        return self

# %% Grid structure analysis

def analyse_columns(columns: Sequence[np.ndarray]) -> list[RangeInfo]:
    """
    Recovers the grid structure from coordinate columns, where the first column varies fastest
    and the last slowest.

    An axis is active if its values are not all the same. For an active axis, the number of
    times its first value repeats gives the number of points in all faster axes combined,
    so working backward from the slowest axis we can split the total row count into per-axis
    sample counts.

    Parameters
    ----------
    columns : sequence of 1D arrays, all of the same length
        The coordinate columns, fastest varying first.

    Returns
    -------
    list of RangeInfo, one per column
    """
    nrow = len(columns[0])
    mins = [float(np.min(c)) for c in columns]
    maxs = [float(np.max(c)) for c in columns]

    ## Repeat counts of the leading value on each axis
    reps = []
    for c, vmin, vmax in zip(columns, mins, maxs):
        if vmax - vmin > 0:
            reps.append(run_length(c))
        else:
            reps.append(nrow)

    ## Work backward from the slowest axis
    counts = [1] * len(columns)
    remaining = nrow
    for d in reversed(range(len(columns))):
        if maxs[d] - mins[d] > 0:
            counts[d] = remaining // reps[d]
            remaining = reps[d]

    ranges = []
    for d in range(len(columns)):
        active = maxs[d] - mins[d] > 0
        step = (maxs[d] - mins[d]) / (counts[d] - 1) if counts[d] > 1 else 0.0
        ranges.append(RangeInfo(mins[d], maxs[d], step, counts[d], active))
        logger.debug('Axis %d has %d values from %g to %g by %g', d, counts[d], mins[d], maxs[d], step)

    return ranges
