"""
Mapper configuration.

All numerical settings of the mortar mapper are grouped into small
dataclasses collected by MapperConfig. A configuration can be built in
code or loaded from a JSON file:

    {
      "projection": {
        "max_projection_distance": 1e-2,
        "num_refinement_for_initial_guess": 10,
        "max_distance_for_multipatch_ambiguity": 1e-3
      },
      "newton_raphson": {"max_iterations": 20, "tolerance": 1e-6},
      "newton_raphson_boundary": {"max_iterations": 20, "tolerance": 1e-6},
      "bisection": {"max_iterations": 40, "tolerance": 1e-6},
      "integration": {"num_gp_triangle": 16, "num_gp_quad": 25},
      "patch_coupling": {"disp_penalty": 0.0, "rot_penalty": 0.0,
                         "is_automatic_penalty_factors": false},
      "dirichlet_bcs": {"is_dirichlet_bcs": false},
      "num_workers": 1
    }

Missing groups and keys take their defaults; unknown keys are rejected.
"""

import json
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, Union

from ..errors import ConfigurationError
from ..quadrature.gauss import is_supported_quad_rule, is_supported_triangle_rule


def _require_positive(name: str, value) -> None:
    if not value > 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")


@dataclass
class ProjectionSettings:
    """
    Attributes:
        max_projection_distance: Largest accepted node-to-surface distance,
            also the bounding box enlargement
        num_refinement_for_initial_guess: Grid samples per direction for
            the initial guess search
        max_distance_for_multipatch_ambiguity: Distance band within which
            projections on different patches are considered equivalent
    """
    max_projection_distance: float = 1e-2
    num_refinement_for_initial_guess: int = 10
    max_distance_for_multipatch_ambiguity: float = 1e-3

    def validate(self):
        _require_positive("max_projection_distance", self.max_projection_distance)
        _require_positive("num_refinement_for_initial_guess", self.num_refinement_for_initial_guess)
        if self.max_distance_for_multipatch_ambiguity < 0:
            raise ConfigurationError("max_distance_for_multipatch_ambiguity must be non-negative")


@dataclass
class NewtonRaphsonSettings:
    max_iterations: int = 20
    tolerance: float = 1e-6

    def validate(self):
        _require_positive("max_iterations", self.max_iterations)
        _require_positive("tolerance", self.tolerance)


@dataclass
class BisectionSettings:
    max_iterations: int = 40
    tolerance: float = 1e-6

    def validate(self):
        _require_positive("max_iterations", self.max_iterations)
        _require_positive("tolerance", self.tolerance)


@dataclass
class IntegrationSettings:
    """Number of Gauss points of the triangle and quadrilateral rules."""
    num_gp_triangle: int = 16
    num_gp_quad: int = 25

    def validate(self):
        if not is_supported_triangle_rule(self.num_gp_triangle):
            raise ConfigurationError(f"Unsupported triangle rule with {self.num_gp_triangle} points")
        if not is_supported_quad_rule(self.num_gp_quad):
            raise ConfigurationError(f"Unsupported quadrilateral rule with {self.num_gp_quad} points")


@dataclass
class PatchCouplingSettings:
    """
    Penalty factors of the weak continuity between patches.

    Coupling is active when a penalty is positive or the automatic mode is on.
    """
    disp_penalty: float = 0.0
    rot_penalty: float = 0.0
    is_automatic_penalty_factors: bool = False

    def validate(self):
        if self.disp_penalty < 0 or self.rot_penalty < 0:
            raise ConfigurationError("Penalty factors must be non-negative")

    @property
    def is_active(self) -> bool:
        return self.disp_penalty > 0 or self.rot_penalty > 0 or self.is_automatic_penalty_factors


@dataclass
class DirichletSettings:
    is_dirichlet_bcs: bool = False

    def validate(self):
        pass


_GROUPS = {
    'projection': ProjectionSettings,
    'newton_raphson': NewtonRaphsonSettings,
    'newton_raphson_boundary': NewtonRaphsonSettings,
    'bisection': BisectionSettings,
    'integration': IntegrationSettings,
    'patch_coupling': PatchCouplingSettings,
    'dirichlet_bcs': DirichletSettings,
}


@dataclass
class MapperConfig:
    """Complete mapper configuration."""
    projection: ProjectionSettings = field(default_factory=ProjectionSettings)
    newton_raphson: NewtonRaphsonSettings = field(default_factory=NewtonRaphsonSettings)
    newton_raphson_boundary: NewtonRaphsonSettings = field(default_factory=NewtonRaphsonSettings)
    bisection: BisectionSettings = field(default_factory=BisectionSettings)
    integration: IntegrationSettings = field(default_factory=IntegrationSettings)
    patch_coupling: PatchCouplingSettings = field(default_factory=PatchCouplingSettings)
    dirichlet_bcs: DirichletSettings = field(default_factory=DirichletSettings)
    num_workers: int = 1

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Check every group; raises ConfigurationError."""
        for name in _GROUPS:
            getattr(self, name).validate()
        if not isinstance(self.num_workers, int) or self.num_workers < 1:
            raise ConfigurationError(f"num_workers must be a positive integer, got {self.num_workers}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MapperConfig':
        unknown = set(data) - set(_GROUPS) - {'num_workers'}
        if unknown:
            raise ConfigurationError(f"Unknown configuration groups: {sorted(unknown)}")

        kwargs = {}
        for name, group_cls in _GROUPS.items():
            values = data.get(name, {})
            if not isinstance(values, dict):
                raise ConfigurationError(f"Configuration group '{name}' must be a mapping")
            known = {f.name for f in fields(group_cls)}
            bad = set(values) - known
            if bad:
                raise ConfigurationError(f"Unknown keys in '{name}': {sorted(bad)}")
            kwargs[name] = group_cls(**values)
        if 'num_workers' in data:
            kwargs['num_workers'] = data['num_workers']
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid configuration value: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(filename: Union[str, Path]) -> MapperConfig:
    """
    Load the mapper configuration from a JSON file.

    Raises:
        ConfigurationError: if the file is not valid JSON or has invalid settings
    """
    path = Path(filename)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {path} must be an object")
    return MapperConfig.from_dict(data)


def save_config(config: MapperConfig, filename: Union[str, Path]) -> None:
    """Write the configuration as JSON."""
    with open(filename, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)
