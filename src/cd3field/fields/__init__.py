"""
Module containing codes that load, store and query electrostatic field data sampled on
structured grids, either full 3D Cartesian grids or axisymmetric (r,z) slices.

The bulk of the tools here deal with point location and interpolation of fields, and with
composing several fields into a hierarchy where finer grids override coarser ones.
"""
