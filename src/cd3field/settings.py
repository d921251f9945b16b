# %% -*- coding: utf-8 -*-
"""
Numerical tolerances and limits shared by the field modules. Functions that depend on one of
these take a settings argument defaulting to DEFAULT_SETTINGS, so a session can tighten or
relax them without touching module state.
"""

from dataclasses import dataclass, fields, replace

from typing import Any, Mapping

@dataclass(frozen=True)
class FieldSettings:
    """
    Tunables for field handling.

    Parameters
    ----------
    tree_capacity : int
        Maximum number of children a FieldTree node accepts.
    containment_tolerance : float
        Relative slack when checking that a child box nests inside its parent; absolute for
        coordinates smaller than one.
    reduced_coord_slop : float
        How far outside [0, 1] a reduced cell coordinate may fall before interpolation
        raises OutOfRange.
    merge_tolerance : float
        Relative tolerance for comparing extents in z merges and four-fold averaging.
    femm_run_rtol, femm_run_atol : float
        Tolerances for spotting repeats of the leading x value in FEMM tables.
    header_length : int
        Size in bytes of the binary field header.
    """
    tree_capacity: int = 20
    containment_tolerance: float = 1e-6
    reduced_coord_slop: float = 1e-3
    merge_tolerance: float = 1e-6
    femm_run_rtol: float = 1e-9
    femm_run_atol: float = 1e-12
    header_length: int = 512

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> 'FieldSettings':
        """
        Defaults overridden by values. Raises KeyError on names that are not settings.
        """
        unknown = set(values) - {f.name for f in fields(cls)}
        if unknown:
            raise KeyError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return replace(cls(), **dict(values))

DEFAULT_SETTINGS = FieldSettings()
