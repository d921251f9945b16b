# %% -*- coding: utf-8 -*-
"""
Hierarchies of fields. A FieldTree node optionally carries a GridField of its own plus an
ordered list of child nodes, each of which must lie inside the node's bounding box. Point
queries are handed to the first child that contains the point, so finer grids placed inside a
coarse one override it locally.

Trees are usually built from a small text descriptor:

    fields <directory>          where to find the following field files
    field <file>                a leaf field
    cfield [<file>]             open a group, optionally with its own field
        ...
    end [<file>]                close the group, name must match the opening one

Tokens are separated by whitespace, commas or tabs. Blank lines and lines starting with
'#' are skipped.
"""

import logging
import os

import numpy as np
from numpy.typing import ArrayLike

from typing import Callable, Iterator

from .errors import CantOpenIn, FieldError, Malformed, NotContained, NotFound, NotLeaf, Overcapacity
from .field_codec import load_field
from .grid_field import GridField
from .utility import soft_contains, tokenize
from ..settings import DEFAULT_SETTINGS, FieldSettings

logger = logging.getLogger(__name__)

# %% Tree node

class FieldTree:
    """
    A node in a field hierarchy. A node with no field of its own is a pure grouping node; it
    accepts any child and answers queries only through its children.
    """

    def __init__(self, field: GridField | None = None, name: str | None = None, bounds=None,
                 capacity: int | None = None, settings: FieldSettings = DEFAULT_SETTINGS):
        self.field = field
        self.children: list[FieldTree] = []
        self.capacity = settings.tree_capacity if capacity is None else int(capacity)
        self.tolerance = settings.containment_tolerance

        if name is None:
            name = field.name if field is not None else ''
        self.name = name

        if field is not None:
            self.mins, self.maxs = field.bounds()
        elif bounds is not None:
            self.mins = np.asarray(bounds[0], dtype=float)
            self.maxs = np.asarray(bounds[1], dtype=float)
        else:
            # Empty box until children arrive
            self.mins = np.full(3, np.inf)
            self.maxs = np.full(3, -np.inf)

    @property
    def has_samples(self) -> bool:
        return self.field is not None

    @property
    def is_leaf(self) -> bool:
        return len(self.children) == 0

    @property
    def is_empty_box(self) -> bool:
        return bool(np.any(self.mins > self.maxs))

    def __repr__(self):
        return f'FieldTree({self.name!r}, children={len(self.children)}, samples={self.has_samples})'

    def walk(self) -> Iterator['FieldTree']:
        """
        Iterates over this node and all its descendants, depth first, in insertion order.
        """
        yield self
        for child in self.children:
            yield from child.walk()

    def contains(self, coord: ArrayLike) -> bool:
        """
        Exact bounding box test, boundaries included
        """
        coord = np.asarray(coord, dtype=float)
        return bool(np.all(coord >= self.mins) and np.all(coord <= self.maxs))

    def fit_bounds(self):
        """
        For grouping nodes, sets the bounds to the union of the children's bounds.
        """
        boxes = [c for c in self.children if not c.is_empty_box]
        if self.field is None and boxes:
            self.mins = np.min([c.mins for c in boxes], axis=0)
            self.maxs = np.max([c.maxs for c in boxes], axis=0)

    # %% Construction

    def insert_child(self, child: 'FieldTree | GridField') -> 'FieldTree':
        """
        Appends child to this node, returning the child node.

        Raises Overcapacity if the node is full, and NotContained if this node carries samples
        and the child's box pokes out of ours by more than the soft tolerance.
        """
        if isinstance(child, GridField):
            child = FieldTree(child, capacity=self.capacity)

        if len(self.children) >= self.capacity:
            raise Overcapacity('No room for new field', path=child.name,
                               expected=self.capacity, actual=len(self.children) + 1)

        if self.has_samples and not child.is_empty_box:
            if not soft_contains(self.mins, self.maxs, child.mins, child.maxs, self.tolerance):
                raise NotContained(f'Field {child.name} not contained in field {self.name}', path=child.name,
                                   expected=(self.mins.tolist(), self.maxs.tolist()),
                                   actual=(child.mins.tolist(), child.maxs.tolist()))

        self.children.append(child)
        return child

    def leaf_field(self) -> GridField:
        """
        The field of a leaf node. Raises NotLeaf if the node has children or no samples.
        """
        if not self.is_leaf:
            raise NotLeaf(f"Field {self.name} has sub-fields", path=self.name, expected=0, actual=len(self.children))
        if self.field is None:
            raise NotLeaf(f"Node {self.name} carries no field", path=self.name)
        return self.field

    # %% Queries

    def _dispatch(self, coord) -> 'FieldTree | None':
        for child in self.children:
            if child.contains(coord):
                return child
        return None

    def value_at(self, coord: ArrayLike, settings: FieldSettings = DEFAULT_SETTINGS) -> np.ndarray:
        """
        Field value at coord from the most specific node containing it. The first child
        (in insertion order) whose box contains the point wins.
        """
        child = self._dispatch(coord)
        if child is not None:
            return child.value_at(coord, settings)
        if self.field is not None and self.field.point_in_bounds(coord):
            return self.field.value_at(coord, settings)
        raise NotFound('No field found at point', path=self.name, actual=tuple(np.asarray(coord, dtype=float)))

    def source_name_at(self, coord: ArrayLike) -> str:
        """
        Name of the field that would answer value_at(coord)
        """
        child = self._dispatch(coord)
        if child is not None:
            return child.source_name_at(coord)
        if self.field is not None and self.field.point_in_bounds(coord):
            return self.name
        raise NotFound('No field found at point', path=self.name, actual=tuple(np.asarray(coord, dtype=float)))

# %% Descriptor parser

class _DescriptorParser:
    """
    Recursive descent over the statements of a field hierarchy descriptor.
    """

    def __init__(self, path, loader: Callable[[str], GridField], capacity: int | None, settings: FieldSettings):
        self.path = os.fspath(path)
        self.loader = loader
        self.capacity = capacity
        self.settings = settings
        self.field_dir = os.path.dirname(self.path)
        self._stream = None

    def _statements(self, lines) -> Iterator[tuple[int, list[str]]]:
        for lineno, line in enumerate(lines, 1):
            tokens = tokenize(line)
            if not tokens or tokens[0].startswith('#'):
                continue
            yield lineno, tokens

    def _malformed(self, message, lineno, **kwargs) -> Malformed:
        return Malformed(f'{message} at line {lineno}', path=self.path, **kwargs)

    def _node(self, field: GridField | None, name: str) -> FieldTree:
        return FieldTree(field, name=name, capacity=self.capacity, settings=self.settings)

    def _load(self, fname: str) -> GridField:
        return self.loader(os.path.join(self.field_dir, fname))

    def _set_dir(self, tokens, lineno):
        if len(tokens) < 2:
            raise self._malformed('Missing directory after fields', lineno)
        self.field_dir = os.path.join(os.path.dirname(self.path), tokens[1])

    def _leaf(self, tokens, lineno) -> FieldTree:
        if len(tokens) < 2:
            raise self._malformed('Missing field file name', lineno)
        node = self._node(self._load(tokens[1]), tokens[1])
        logger.info('Loaded field %s', tokens[1])
        return node

    def _group(self, tokens, lineno) -> FieldTree:
        name = tokens[1] if len(tokens) > 1 else ''
        node = self._node(self._load(name) if name else None, name)

        for lineno, toks in self._stream:
            verb = toks[0]
            if verb == 'field':
                node.insert_child(self._leaf(toks, lineno))
            elif verb == 'cfield':
                node.insert_child(self._group(toks, lineno))
            elif verb == 'fields':
                self._set_dir(toks, lineno)
            elif verb == 'end':
                ename = toks[1] if len(toks) > 1 else ''
                if ename != name:
                    raise self._malformed('End name does not match start name', lineno, expected=name, actual=ename)
                node.fit_bounds()
                return node
            else:
                raise self._malformed("Expecting 'field', 'cfield' or 'end'", lineno, actual=verb)

        raise self._malformed('Unexpected end of input while parsing cfield', lineno, expected=f'end {name}')

    def parse(self, lines) -> FieldTree:
        root = self._node(None, os.path.basename(self.path))
        self._stream = self._statements(lines)

        for lineno, tokens in self._stream:
            verb = tokens[0]
            if verb == 'fields':
                self._set_dir(tokens, lineno)
            elif verb == 'field':
                root.insert_child(self._leaf(tokens, lineno))
            elif verb == 'cfield':
                root.insert_child(self._group(tokens, lineno))
            elif verb == 'end':
                raise self._malformed('end without matching cfield', lineno, actual=tokens[1:] or '')
            else:
                raise self._malformed("Expecting 'field' or 'cfield'", lineno, actual=verb)

        root.fit_bounds()
        return root

def parse_field_tree(lines, path='<descriptor>', loader: Callable[[str], GridField] = load_field,
                     capacity: int | None = None, settings: FieldSettings = DEFAULT_SETTINGS) -> FieldTree:
    """
    Builds a FieldTree from descriptor lines. Field file names are resolved relative to the
    directory of path, or to the last 'fields' directive.
    """
    return _DescriptorParser(path, loader, capacity, settings).parse(lines)

def load_field_tree(path, loader: Callable[[str], GridField] = load_field,
                    capacity: int | None = None, settings: FieldSettings = DEFAULT_SETTINGS) -> FieldTree:
    """
    Reads a descriptor file and builds the FieldTree it describes. The root is a grouping
    node named after the descriptor, holding the top level entries.
    """
    try:
        with open(path, 'rt') as f:
            lines = f.readlines()
    except OSError as err:
        raise CantOpenIn('Could not open field descriptor', path=path) from err
    try:
        return parse_field_tree(lines, path, loader, capacity, settings)
    except FieldError as err:
        raise err.with_path(path)

def as_leaf_grid(target: 'FieldTree | GridField') -> GridField:
    """
    Returns the GridField to operate on for anything that must be a leaf field.
    """
    if isinstance(target, FieldTree):
        return target.leaf_field()
    return target
