"""
Visualization module.

Usage:
    from mortarIGA.visualization import plot_parametric_polygons

    fig = plot_parametric_polygons(patch, polygons, save_path="polygons.png")
"""

from .polygons import plot_parametric_polygons

__all__ = [
    'plot_parametric_polygons',
]
