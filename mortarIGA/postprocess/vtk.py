"""
Diagnostic dumps of a mortar mapper run.

VTKDumpObserver writes, for a mapper named <name>:
- <name>_projectedNodes.csv: FE node index, patch, u, v, distance
- <name>_trimmedPolygons.vtk / <name>_integratedPolygons.vtk: parametric
  polygons mapped to Cartesian space, as VTK Legacy polydata
- <name>_GaussPointData.csv: one line per Gauss point (weight, Jacobian,
  FE node/value pairs, IGA DOF/value pairs), when enabled
- <name>_Cnn.mtx / <name>_Cnr.mtx: the operators in Matrix Market format

The VTK files open in ParaView together with the FE mesh to check the
projection and clipping.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, List, Union

import numpy as np
import scipy.io

from ..geometry.multipatch import PatchCollection
from ..mapping.mortar_mapper import MapperObserver

logger = logging.getLogger(__name__)


def export_polygons_vtk(filename: Union[str, Path], patches: PatchCollection,
                        polygons_by_patch: Dict[int, List[np.ndarray]],
                        n_subdivisions: int = 1):
    """
    Export parametric polygons as Cartesian VTK polydata.

    Parameters:
        filename: Output filename (.vtk extension added if missing)
        patches: Patch collection the polygons live on
        polygons_by_patch: patch index -> list of (k, 2) polygons in (u, v)
        n_subdivisions: Points inserted per polygon edge to follow curved patches
    """
    path = Path(filename)
    if path.suffix != '.vtk':
        path = path.with_suffix('.vtk')

    points = []
    cells = []
    patch_ids = []
    for patch_index in sorted(polygons_by_patch):
        patch = patches[patch_index]
        for polygon in polygons_by_patch[patch_index]:
            if len(polygon) < 3:
                continue
            cell = []
            for k in range(len(polygon)):
                a, b = polygon[k], polygon[(k + 1) % len(polygon)]
                for s in range(n_subdivisions):
                    u, v = patch.clamp(*(a + (b - a) * s / n_subdivisions))
                    cell.append(len(points))
                    points.append(patch.eval_point(u, v))
            cells.append(cell)
            patch_ids.append(patch_index)

    with open(path, 'w') as f:
        f.write("# vtk DataFile Version 3.0\n")
        f.write("Mortar polygons\n")
        f.write("ASCII\n")
        f.write("DATASET POLYDATA\n")
        f.write(f"POINTS {len(points)} float\n")
        for p in points:
            f.write(f"{p[0]} {p[1]} {p[2]}\n")

        size = sum(len(c) + 1 for c in cells)
        f.write(f"\nPOLYGONS {len(cells)} {size}\n")
        for cell in cells:
            f.write(f"{len(cell)} " + " ".join(str(i) for i in cell) + "\n")

        f.write(f"\nCELL_DATA {len(cells)}\n")
        f.write("SCALARS patch int 1\n")
        f.write("LOOKUP_TABLE default\n")
        for patch_index in patch_ids:
            f.write(f"{patch_index}\n")

    logger.info("Exported %d polygons to %s", len(cells), path)


class VTKDumpObserver(MapperObserver):
    """
    MapperObserver writing diagnostic files into output_dir.

    Parameters:
        output_dir: Directory for the dumps (created if missing)
        name: Prefix of the file names; defaults to the mapper name
        record_gauss_points: Also dump the Gauss point data stream
    """

    def __init__(self, output_dir: Union[str, Path], name: str = None,
                 record_gauss_points: bool = False):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.name = name
        self.record_gauss_points = record_gauss_points
        self.files: List[Path] = []

    def _path(self, mapper, suffix: str) -> Path:
        path = self.output_dir / f"{self.name or mapper.name}_{suffix}"
        self.files.append(path)
        return path

    def on_projection(self, mapper, result):
        path = self._path(mapper, "projectedNodes.csv")
        with open(path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(["node", "patch", "u", "v", "distance"])
            for node, record in enumerate(result.records):
                for patch_index, (u, v) in sorted(record.items()):
                    writer.writerow([node, patch_index, repr(u), repr(v),
                                     repr(float(result.min_distance[node]))])

    def on_polygons(self, mapper, kind, polygons_by_patch):
        export_polygons_vtk(self._path(mapper, f"{kind}Polygons.vtk"),
                            mapper.patches, polygons_by_patch)

    def on_gauss_points(self, mapper, data):
        path = self._path(mapper, "GaussPointData.csv")
        with open(path, 'w') as f:
            for gp in data:
                row = [gp['weight'], gp['jacobian'], len(gp['fe_nodes'])]
                for node, value in zip(gp['fe_nodes'], gp['fe_values']):
                    row.extend((node, value))
                row.append(len(gp['iga_dofs']))
                for dof, value in zip(gp['iga_dofs'], gp['iga_values']):
                    row.extend((dof, value))
                f.write(" ".join(f"{x:.12g}" for x in row) + "\n")

    def on_matrices(self, mapper, cnn, cnr):
        scipy.io.mmwrite(str(self._path(mapper, "Cnn.mtx")), cnn)
        scipy.io.mmwrite(str(self._path(mapper, "Cnr.mtx")), cnr)
