"""
Unit tests for the mapper configuration.
"""

import json

import pytest

from mortarIGA.errors import ConfigurationError
from mortarIGA.io.config import (
    MapperConfig, ProjectionSettings, IntegrationSettings, PatchCouplingSettings,
    load_config, save_config
)


class TestMapperConfig:
    """Tests for MapperConfig defaults and validation."""

    def test_defaults(self):
        """Test the default settings."""
        config = MapperConfig()

        assert config.projection.max_projection_distance == 1e-2
        assert config.projection.num_refinement_for_initial_guess == 10
        assert config.projection.max_distance_for_multipatch_ambiguity == 1e-3
        assert config.newton_raphson.max_iterations == 20
        assert config.integration.num_gp_triangle == 16
        assert config.integration.num_gp_quad == 25
        assert not config.patch_coupling.is_active
        assert not config.dirichlet_bcs.is_dirichlet_bcs
        assert config.num_workers == 1

    def test_from_dict_partial(self):
        """Test that missing groups and keys take their defaults."""
        config = MapperConfig.from_dict({
            'projection': {'max_projection_distance': 0.05},
            'patch_coupling': {'is_automatic_penalty_factors': True},
            'num_workers': 4,
        })

        assert config.projection.max_projection_distance == 0.05
        assert config.projection.num_refinement_for_initial_guess == 10
        assert config.patch_coupling.is_active
        assert config.num_workers == 4

    def test_unknown_group(self):
        """Test that unknown groups are rejected."""
        with pytest.raises(ConfigurationError, match="Unknown configuration groups"):
            MapperConfig.from_dict({'solver': {}})

    def test_unknown_key(self):
        """Test that unknown keys inside a group are rejected."""
        with pytest.raises(ConfigurationError, match="Unknown keys"):
            MapperConfig.from_dict({'bisection': {'max_iter': 10}})

    def test_group_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            MapperConfig.from_dict({'integration': 16})

    @pytest.mark.parametrize("data", [
        {'projection': {'max_projection_distance': -1.0}},
        {'projection': {'max_distance_for_multipatch_ambiguity': -1e-3}},
        {'newton_raphson': {'tolerance': 0.0}},
        {'integration': {'num_gp_quad': 5}},
        {'integration': {'num_gp_triangle': 12}},
        {'patch_coupling': {'disp_penalty': -1.0}},
        {'num_workers': 0},
    ])
    def test_invalid_values(self, data):
        """Test that invalid settings raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            MapperConfig.from_dict(data)

    def test_direct_construction_validates(self):
        """Test that groups are validated when building MapperConfig in code."""
        with pytest.raises(ConfigurationError):
            MapperConfig(integration=IntegrationSettings(num_gp_triangle=2))

        config = MapperConfig(projection=ProjectionSettings(max_projection_distance=0.1),
                              patch_coupling=PatchCouplingSettings(disp_penalty=1e3))
        assert config.patch_coupling.is_active


class TestConfigFile:
    """Tests for JSON loading and saving."""

    def test_round_trip(self, tmp_path):
        """Test that a saved configuration loads back unchanged."""
        config = MapperConfig.from_dict({
            'bisection': {'max_iterations': 60, 'tolerance': 1e-8},
            'dirichlet_bcs': {'is_dirichlet_bcs': True},
        })
        path = tmp_path / "mapper.json"
        save_config(config, path)

        loaded = load_config(path)
        assert loaded == config
        assert loaded.bisection.max_iterations == 60
        assert loaded.dirichlet_bcs.is_dirichlet_bcs

    def test_load_file(self, tmp_path):
        """Test loading a hand-written file."""
        path = tmp_path / "mapper.json"
        path.write_text(json.dumps({'integration': {'num_gp_triangle': 7, 'num_gp_quad': 9}}))

        config = load_config(path)
        assert config.integration.num_gp_triangle == 7
        assert config.integration.num_gp_quad == 9

    def test_invalid_json(self, tmp_path):
        """Test that malformed JSON raises ConfigurationError."""
        path = tmp_path / "broken.json"
        path.write_text("{'projection': ")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_config(path)

    def test_top_level_must_be_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ConfigurationError):
            load_config(path)
