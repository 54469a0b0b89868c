"""
Plots of mortar polygons in the parameter plane of a patch.

Usage:
    from mortarIGA.visualization.polygons import plot_parametric_polygons
    fig = plot_parametric_polygons(patch, mapper.diagnostics.integrated_polygons[0],
                                   save_path='patch0.png', show=False)
"""

from typing import Optional, Sequence

import numpy as np

from ..geometry.patch import PatchSurface


def plot_parametric_polygons(
    patch: PatchSurface,
    polygons: Sequence[np.ndarray],
    title: Optional[str] = None,
    show_knot_lines: bool = True,
    show_trimming: bool = True,
    save_path: Optional[str] = None,
    show: bool = True
):
    """
    Draw polygons over the knot grid and trimming loops of a patch.

    Parameters:
        patch: Patch whose parameter plane is drawn
        polygons: (k, 2) polygons in (u, v)
        title: Optional figure title
        show_knot_lines: Draw the unique knots as grid lines
        show_trimming: Draw the trimming loops (outer solid, holes dashed)
        save_path: If provided, save figure to this path
        show: Whether to call plt.show()

    Returns:
        matplotlib Figure object
    """
    import matplotlib.pyplot as plt
    from matplotlib.patches import Polygon as PolygonPatch

    fig, ax = plt.subplots(figsize=(6, 6))
    (u0, u1), (v0, v1) = patch.domain

    if show_knot_lines:
        for u in patch.kv_u.unique_knots:
            ax.axvline(u, color='0.8', linewidth=0.8, zorder=0)
        for v in patch.kv_v.unique_knots:
            ax.axhline(v, color='0.8', linewidth=0.8, zorder=0)

    if show_trimming and patch.is_trimmed:
        for loop in patch.trimming.loops:
            p = loop.polyline()
            closed = np.vstack((p, p[:1]))
            style = '-' if loop.is_outer else '--'
            ax.plot(closed[:, 0], closed[:, 1], style, color='k', linewidth=1.2)

    colors = plt.cm.tab20(np.linspace(0.0, 1.0, max(len(polygons), 1)))
    for polygon, color in zip(polygons, colors):
        ax.add_patch(PolygonPatch(np.asarray(polygon), closed=True, facecolor=color,
                                  edgecolor='k', linewidth=0.5, alpha=0.6))

    ax.set_xlim(u0, u1)
    ax.set_ylim(v0, v1)
    ax.set_aspect('equal')
    ax.set_xlabel('u')
    ax.set_ylabel('v')
    ax.set_title(title or f'{len(polygons)} polygons')

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')

    if show:
        plt.show()

    return fig

