"""
A series of small helpers shared by the field modules: tolerant comparisons, box containment
and descriptor tokenizing.
"""

import re

import numpy as np

_DELIMITERS = re.compile(r'[\s,]+')

def nearly_equal(a: float, b: float, tol: float = 1e-6) -> bool:
    """
    Weak comparison of two floats: equal if they differ by no more than tol times the smaller
    magnitude. Exactly equal values (including two zeros) always compare equal.
    """
    if a == b:
        return True
    return abs(a - b) <= tol * min(abs(a), abs(b))

def soft_eps(c, tol: float = 1e-6):
    """
    Slack allowed around the coordinate c, tol*|c| but never less than tol.
    """
    return np.maximum(tol, tol * np.abs(c))

def soft_contains(outer_min, outer_max, inner_min, inner_max, tol: float = 1e-6) -> bool:
    """
    Checks that the box [inner_min, inner_max] lies inside [outer_min, outer_max] per axis,
    allowing each corner coordinate to stray by soft_eps of itself.
    """
    inner_min = np.asarray(inner_min, dtype=float)
    inner_max = np.asarray(inner_max, dtype=float)
    # Both corners of the inner box have to sit inside the outer box
    for corner in (inner_min, inner_max):
        eps = soft_eps(corner, tol)
        if np.any(corner < np.asarray(outer_min) - eps) or np.any(corner > np.asarray(outer_max) + eps):
            return False
    return True

def tokenize(line: str) -> list[str]:
    """
    Splits a descriptor line on whitespace, commas and tabs, dropping empty tokens.
    """
    return [tok for tok in _DELIMITERS.split(line.strip()) if tok]

def truncate_name(name: str | None, nbyte: int = 63) -> str:
    """
    Truncates a name so that its UTF-8 encoding fits a fixed-size NUL terminated slot. The
    limit is in bytes; a multi-byte character that would straddle it is dropped whole.
    """
    if name is None:
        return ''
    return name.encode('utf-8', errors='replace')[:nbyte].decode('utf-8', errors='ignore')

def run_length(values: np.ndarray, rtol: float = 0.0, atol: float = 0.0) -> int:
    """
    Number of leading entries of values that repeat the first one. With zero tolerances this
    is an exact equality test.
    """
    values = np.asarray(values)
    if len(values) == 0:
        return 0
    same = np.isclose(values, values[0], rtol=rtol, atol=atol)
    # Index of the first entry that differs, or the full length if none do
    differ = np.flatnonzero(~same)
    return int(differ[0]) if len(differ) > 0 else len(values)
