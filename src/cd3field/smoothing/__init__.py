"""
Relaxation of full 3D fields with Dirichlet points from the grid boundary and from simple
analytic geometries.
"""
