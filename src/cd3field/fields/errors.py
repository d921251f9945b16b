# %% -*- coding: utf-8 -*-
"""
Exception hierarchy for field loading, querying and smoothing.

Every exception carries optional context (the file, the axis, and expected/actual values) so
that a failure can be reproduced from the message alone.
"""

# %% Base class

class FieldError(Exception):
    """
    Root of all errors raised by cd3field.
    """
    def __init__(self, message: str, *, path=None, axis: int | None = None, expected=None, actual=None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.axis = axis
        self.expected = expected
        self.actual = actual

    def context(self) -> dict:
        ctx = {}
        for key in ('path', 'axis', 'expected', 'actual'):
            val = getattr(self, key)
            if val is not None:
                ctx[key] = val
        return ctx

    def with_path(self, path):
        """
        Attaches a file path if none was recorded yet, returning self so it can be re-raised.
        """
        if self.path is None:
            self.path = path
        return self

    def __str__(self):
        ctx = self.context()
        if not ctx:
            return self.message
        extra = ', '.join(f'{k}={v}' for k, v in ctx.items())
        return f'{self.message} [{extra}]'

# %% I/O boundary

class CantOpenIn(FieldError):
    pass

class CantOpenOut(FieldError):
    pass

class BadWrite(FieldError):
    pass

class ReadFailure(FieldError):
    pass

# %% Structural problems with the data

class BadStructure(FieldError):
    """
    Shape, ordering or count of the data does not match what the grid requires.
    """
    pass

class AllocFailed(FieldError):
    pass

class NameAllocFailed(FieldError):
    pass

# %% Preconditions for smoothing/averaging

class NotLeaf(FieldError):
    pass

class Not4Fold(FieldError):
    pass

class BadGeom(FieldError):
    pass

class XYCompatFail(FieldError):
    pass

# %% Query-time misses

class QueryMiss(FieldError):
    """
    A query that could not be answered. Never fatal, the caller decides what to do.
    """
    pass

class OutOfRange(QueryMiss):
    pass

class NotFound(QueryMiss):
    pass

# %% Field tree construction

class Overcapacity(FieldError):
    pass

class NotContained(FieldError):
    pass

class Malformed(FieldError):
    pass
