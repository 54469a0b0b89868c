#!/usr/bin/env python3
"""
Example: mortar mapping between a plate with a hole and an FE mesh.

This example demonstrates the complete mapper pipeline:
1. Create a trimmed NURBS plate (or two coupled patches)
2. Create a non-matching bilinear FE mesh of the same plate
3. Build the coupling matrices Cnn and Cnr
4. Map a displacement-like field FE -> IGA (consistent mapping)
5. Map IGA forces back to the FE mesh (conservative mapping)
6. Optionally dump the projected nodes, polygons and matrices

Field:
    f(x, y) = sin(πx) * sin(πy)

The consistent mapping is checked against f on a sample grid of the
trimmed region, the conservative mapping by the total force.

Usage:
    ./examples/src/plate_with_hole_mapping.py
    ./examples/src/plate_with_hole_mapping.py --two-patches --dump out/

Created: 2025-02-03
Author: Wataru Fukuda
"""

import logging
import numpy as np
import sys
from pathlib import Path

# Add project root to path (two levels up from examples/src/)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mortarIGA.geometry.primitives import make_plate_patch, make_nurbs_rectangle, make_fe_quad_mesh
from mortarIGA.geometry.multipatch import PatchCollection, WeakContinuityCondition
from mortarIGA.io.config import MapperConfig, load_config
from mortarIGA.logging_config import setup_logging
from mortarIGA.mapping import IGAMortarMapper
from mortarIGA.postprocess.vtk import VTKDumpObserver


def field(x, y):
    return np.sin(np.pi * x) * np.sin(np.pi * y)


def make_patches(two_patches: bool, degree: int, n_elements: int) -> PatchCollection:
    """Trimmed plate, or the untrimmed plate split at x = 0.5 into coupled halves."""
    if not two_patches:
        return PatchCollection([make_plate_patch(p=degree, n_elem_xi=n_elements,
                                                 n_elem_eta=n_elements)])

    left = make_nurbs_rectangle((0.0, 0.5), (0.0, 1.0), p=degree,
                                n_elem_xi=max(n_elements // 2, 1), n_elem_eta=n_elements)
    right = make_nurbs_rectangle((0.5, 1.0), (0.0, 1.0), p=degree,
                                 n_elem_xi=max(n_elements // 2, 1), n_elem_eta=n_elements)
    seam = WeakContinuityCondition(master=0, slave=1,
                                   master_curve=np.array([[1.0, 0.0], [1.0, 1.0]]),
                                   slave_curve=np.array([[0.0, 0.0], [0.0, 1.0]]))
    return PatchCollection.from_patches([left, right], continuity_conditions=[seam])


def iga_field_error(patches: PatchCollection, coefficients: np.ndarray, n_sample: int = 50) -> float:
    """Max |f_h - f| over a parametric grid of the trimmed region."""
    error = 0.0
    for patch in patches:
        for u in np.linspace(0.0, 1.0, n_sample):
            for v in np.linspace(0.0, 1.0, n_sample):
                if not patch.is_inside(u, v):
                    continue
                table, _, dofs = patch.local_basis(u, v)
                x, y, _ = patch.eval_point(u, v)
                error = max(error, abs(table[0, 0] @ coefficients[dofs] - field(x, y)))
    return error


def run(degree: int = 2,
        n_elements: int = 4,
        n_fe: int = 10,
        two_patches: bool = False,
        config: MapperConfig = None,
        dump_dir: str = None,
        verbose: bool = True):
    """
    Run the mapping example.

    Parameters:
        degree: Polynomial degree of the patches
        n_elements: Number of knot spans per direction
        n_fe: Number of FE elements per direction
        two_patches: Use two coupled patches instead of the trimmed plate
        config: Mapper configuration (defaults if None)
        dump_dir: Directory for diagnostic dumps (none if None)
        verbose: Print progress information

    Returns:
        Dictionary with results (mapped fields, errors, mapper)
    """
    if verbose:
        print("=" * 60)
        print("IGA Mortar Mapping Example")
        print("=" * 60)
        print(f"Geometry: {'two coupled patches' if two_patches else 'plate with hole'}")
        print(f"Degree: {degree}, knot spans: {n_elements} x {n_elements}")
        print(f"FE elements: {n_fe} x {n_fe}")
        print()

    # ==========================================================================
    # 1. Create geometry
    # ==========================================================================
    patches = make_patches(two_patches, degree, n_elements)
    mesh = make_fe_quad_mesh(nx=n_fe, ny=n_fe)

    if config is None:
        config = MapperConfig()
    if two_patches and not config.patch_coupling.is_active:
        config = MapperConfig.from_dict({**config.to_dict(),
                                         'patch_coupling': {'is_automatic_penalty_factors': True}})

    if verbose:
        print(f"  Patches: {len(patches)} (trimmed: {patches.is_trimmed})")
        print(f"  IGA DOFs: {patches.n_dofs}")
        print(f"  FE nodes: {mesh.n_nodes}")
        print()

    # ==========================================================================
    # 2. Build coupling matrices
    # ==========================================================================
    if verbose:
        print("Building coupling matrices...")

    observer = VTKDumpObserver(dump_dir, record_gauss_points=True) if dump_dir else None
    mapper = IGAMortarMapper(patches, mesh, is_mapping_iga2fem=False, config=config,
                             observer=observer, name='plate')
    mapper.build_coupling_matrices()

    if verbose:
        print(f"  Cnn: {mapper.matrices.cnn.shape}, nnz = {mapper.matrices.cnn.nnz}")
        print(f"  Cnr: {mapper.matrices.cnr.shape}, nnz = {mapper.matrices.cnr.nnz}")
        print(f"  Integrated FE elements: {len(mapper.diagnostics.integrated_elements)}"
              f" of {mesh.n_elements}")
        print()

    # ==========================================================================
    # 3. Consistent mapping FE -> IGA
    # ==========================================================================
    fe_values = field(mesh.nodes[:, 0], mesh.nodes[:, 1])
    iga_values = mapper.consistent_mapping(fe_values)
    error = iga_field_error(patches, iga_values)

    if verbose:
        print("Consistent mapping FE -> IGA")
        print(f"  Max error on the trimmed region: {error:.6e}")
        print()

    # ==========================================================================
    # 4. Conservative mapping IGA -> FE
    # ==========================================================================
    iga_forces = np.full(patches.n_dofs, 1.0 / patches.n_dofs)
    fe_forces = mapper.conservative_mapping(iga_forces)

    if verbose:
        print("Conservative mapping IGA -> FE")
        print(f"  Total IGA force: {iga_forces.sum():.12f}")
        print(f"  Total FE force:  {fe_forces.sum():.12f}")
        print()

    if verbose:
        print("=" * 60)
        if observer is not None:
            print(f"Dumped {len(observer.files)} files to {dump_dir}")
        print("Done")
        print("=" * 60)

    return {
        'iga_values': iga_values,
        'fe_forces': fe_forces,
        'error': error,
        'mapper': mapper,
    }


def refinement_study(degree: int = 2, n_fe_list: list = None, two_patches: bool = False):
    """
    Map the field on successively finer FE meshes.

    Parameters:
        degree: Polynomial degree of the patches
        n_fe_list: List of FE element counts per direction
        two_patches: Use two coupled patches instead of the trimmed plate
    """
    if n_fe_list is None:
        n_fe_list = [4, 8, 16, 32]

    print("=" * 50)
    print("Refinement Study: FE -> IGA consistent mapping")
    print("=" * 50)
    print(f"{'FE elements':>12} {'Max error':>15} {'Rate':>10}")
    print("-" * 50)

    errors = []
    for n_fe in n_fe_list:
        result = run(degree=degree, n_elements=8, n_fe=n_fe, two_patches=two_patches, verbose=False)
        errors.append(result['error'])
        if len(errors) > 1:
            rate = np.log(errors[-2] / errors[-1]) / np.log(2.0)
            print(f"{n_fe:>12} {errors[-1]:>15.6e} {rate:>10.2f}")
        else:
            print(f"{n_fe:>12} {errors[-1]:>15.6e} {'--':>10}")

    print()
    print("Expected rate: 2 (bilinear FE interpolation)")
    return errors


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="IGA mortar mapping example")
    parser.add_argument("--degree", "-p", type=int, default=2,
                        help="Polynomial degree (default: 2)")
    parser.add_argument("--elements", "-n", type=int, default=4,
                        help="Number of knot spans per direction (default: 4)")
    parser.add_argument("--fe-elements", "-m", type=int, default=10,
                        help="Number of FE elements per direction (default: 10)")
    parser.add_argument("--two-patches", action="store_true",
                        help="Use two patches coupled by penalty")
    parser.add_argument("--config", type=str, default=None,
                        help="Mapper configuration JSON file")
    parser.add_argument("--dump", type=str, default=None,
                        help="Directory for diagnostic dumps")
    parser.add_argument("--refinement", "-r", action="store_true",
                        help="Run FE refinement study")
    parser.add_argument("--debug", action="store_true",
                        help="Verbose logging")

    args = parser.parse_args()
    setup_logging(logging.DEBUG if args.debug else logging.WARNING)

    if args.refinement:
        refinement_study(degree=args.degree, two_patches=args.two_patches)
    else:
        config = load_config(args.config) if args.config else None
        run(degree=args.degree, n_elements=args.elements, n_fe=args.fe_elements,
            two_patches=args.two_patches, config=config, dump_dir=args.dump)
