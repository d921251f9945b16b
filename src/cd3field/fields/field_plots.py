# %% -*- coding: utf-8 -*-
"""
Quick-look plots of fields and field hierarchies
"""

import numpy as np
from matplotlib import patches
import matplotlib.pyplot as plt

from .field_tree import FieldTree
from .grid_field import GridField, GridKind

_LABELS = 'xyz'

# %%

def plot_slice(ax: plt.Axes, grid: GridField, axis: int = 2, index: int | None = None, component: int = 0, **kwargs):
    """
    Plots one component of a field on the lattice plane normal to axis. Defaults to the
    middle plane. Axisymmetric fields always plot their (r, z) slice.

    Returns the QuadMesh so the caller can attach a colorbar.
    """
    kwargs.setdefault('shading', 'nearest')
    view = grid.samples_view()

    if grid.kind is GridKind.AXISYMMETRIC_2D:
        r = np.arange(grid.stride) * grid.extents[grid.radial_axis].step
        mesh = ax.pcolormesh(r, grid.extents[2].coords(), view[:, :, component], **kwargs)
        ax.set_xlabel('r')
        ax.set_ylabel('z')
        return mesh

    if index is None:
        index = grid.extents[axis].count // 2

    ## Pick out the plane, keeping the remaining axes in (vertical, horizontal) order
    if axis == 2:
        data, hor, ver = view[index, :, :, component], 0, 1
    elif axis == 1:
        data, hor, ver = view[:, index, :, component], 0, 2
    else:
        data, hor, ver = view[:, :, index, component], 1, 2

    mesh = ax.pcolormesh(grid.extents[hor].coords(), grid.extents[ver].coords(), data, **kwargs)
    ax.set_xlabel(_LABELS[hor])
    ax.set_ylabel(_LABELS[ver])
    ax.set_title(f'{grid.name} E{_LABELS[component]} at {_LABELS[axis]} index {index}')
    return mesh

def plot_tree_boxes(ax: plt.Axes, tree: FieldTree, axes: tuple[int, int] = (0, 2), **kwargs):
    """
    Outlines the bounding box of every node in the tree, projected onto the given pair of axes.
    """
    kwargs.setdefault('fill', False)
    drawn = []
    for depth, node in _walk_depth(tree):
        if node.is_empty_box:
            continue
        h, v = axes
        rect = patches.Rectangle((node.mins[h], node.mins[v]),
                                 node.maxs[h] - node.mins[h], node.maxs[v] - node.mins[v],
                                 edgecolor=f'C{depth % 10}', **kwargs)
        ax.add_patch(rect)
        drawn.append(rect)
    ax.autoscale_view()
    return drawn

def _walk_depth(node: FieldTree, depth: int = 0):
    yield depth, node
    for child in node.children:
        yield from _walk_depth(child, depth + 1)
