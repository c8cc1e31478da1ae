"""Tests for mc_epidemic.config — configuration loading and validation."""

import warnings

import pytest
import yaml

from mc_epidemic.config import (
    DiseaseSection,
    EpidemicConfig,
    ExtensionsSection,
    PopulationSection,
    SimulationSection,
    config_from_dict,
    config_to_dict,
    deep_merge,
    default_config,
    load_config,
    requires_reinitialization,
    validate_config,
)


# ── deep_merge tests ──────────────────────────────────────────────────

class TestDeepMerge:
    def test_simple_override(self):
        assert deep_merge({'a': 1, 'b': 2}, {'b': 3}) == {'a': 1, 'b': 3}

    def test_nested_merge(self):
        base = {'x': {'a': 1, 'b': 2}, 'y': 10}
        override = {'x': {'b': 3, 'c': 4}}
        assert deep_merge(base, override) == {'x': {'a': 1, 'b': 3, 'c': 4}, 'y': 10}

    def test_override_dict_with_scalar(self):
        assert deep_merge({'a': {'nested': 1}}, {'a': 'replaced'}) == {'a': 'replaced'}

    def test_empty_override(self):
        assert deep_merge({'a': 1}, {}) == {'a': 1}


# ── default_config tests ─────────────────────────────────────────────

class TestDefaultConfig:
    def test_creates_valid_config(self):
        assert isinstance(default_config(), EpidemicConfig)

    def test_default_values(self):
        c = default_config()
        assert c.simulation.arena_width == 700.0
        assert c.simulation.arena_height == 500.0
        assert c.simulation.tick_ms == 16.0
        assert c.population.population_size == 200
        assert c.population.initial_infected_count == 3
        assert c.population.mobility_factor == 0.5
        assert c.disease.base_infection_probability == 0.3
        assert c.disease.base_recovery_duration == 5000.0
        assert c.disease.quarantine_delay == 3000.0
        assert c.disease.mask_enabled is False
        assert c.disease.immunity_duration == 15000.0

    def test_extensions_off_by_default(self):
        ext = default_config().extensions
        assert not ext.capacity_strain
        assert not ext.vaccination
        assert not ext.immunity_waning


# ── Validation ────────────────────────────────────────────────────────

class TestValidateConfig:
    def test_probability_out_of_range(self):
        c = EpidemicConfig(disease=DiseaseSection(base_infection_probability=1.5))
        with pytest.raises(ValueError, match="base_infection_probability"):
            validate_config(c)

    def test_mobility_out_of_range(self):
        c = EpidemicConfig(population=PopulationSection(mobility_factor=-0.1))
        with pytest.raises(ValueError, match="mobility_factor"):
            validate_config(c)

    def test_negative_population(self):
        c = EpidemicConfig(population=PopulationSection(population_size=-1))
        with pytest.raises(ValueError, match="population_size"):
            validate_config(c)

    def test_nonpositive_recovery(self):
        c = EpidemicConfig(disease=DiseaseSection(base_recovery_duration=0))
        with pytest.raises(ValueError, match="base_recovery_duration"):
            validate_config(c)

    def test_negative_quarantine_delay(self):
        c = EpidemicConfig(disease=DiseaseSection(quarantine_delay=-1))
        with pytest.raises(ValueError, match="quarantine_delay"):
            validate_config(c)

    def test_arena_too_small(self):
        c = EpidemicConfig(simulation=SimulationSection(arena_width=10.0))
        with pytest.raises(ValueError, match="arena"):
            validate_config(c)

    def test_nonpositive_tick(self):
        c = EpidemicConfig(simulation=SimulationSection(tick_ms=0))
        with pytest.raises(ValueError, match="tick_ms"):
            validate_config(c)

    def test_too_many_index_cases_warns(self):
        c = EpidemicConfig(population=PopulationSection(
            population_size=5, initial_infected_count=10))
        with pytest.warns(UserWarning, match="initial_infected_count"):
            validate_config(c)

    def test_zero_population_is_valid(self):
        c = EpidemicConfig(population=PopulationSection(
            population_size=0, initial_infected_count=0))
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            validate_config(c)


# ── YAML loading ──────────────────────────────────────────────────────

class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "base.yaml"
        path.write_text("")
        assert load_config(path) == EpidemicConfig()

    def test_partial_section(self, tmp_path):
        path = tmp_path / "base.yaml"
        path.write_text(yaml.safe_dump({'disease': {'mask_enabled': True}}))
        c = load_config(path)
        assert c.disease.mask_enabled is True
        assert c.disease.base_infection_probability == 0.3

    def test_scenario_then_overrides(self, tmp_path):
        base = tmp_path / "base.yaml"
        base.write_text(yaml.safe_dump({'population': {'population_size': 100}}))
        scenario = tmp_path / "scenario.yaml"
        scenario.write_text(yaml.safe_dump({
            'population': {'mobility_factor': 0.2},
            'disease': {'quarantine_delay': 1000.0},
        }))
        c = load_config(base, scenario, {'disease': {'quarantine_delay': 500.0}})
        assert c.population.population_size == 100
        assert c.population.mobility_factor == 0.2
        assert c.disease.quarantine_delay == 500.0

    def test_missing_scenario_is_skipped(self, tmp_path):
        base = tmp_path / "base.yaml"
        base.write_text("{}")
        assert load_config(base, tmp_path / "absent.yaml") == EpidemicConfig()

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "base.yaml"
        path.write_text(yaml.safe_dump({
            'disease': {'mask_enabled': True, 'not_a_field': 3},
            'rendering': {'colour': 'red'},
        }))
        assert load_config(path).disease.mask_enabled is True

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / "base.yaml"
        path.write_text(yaml.safe_dump({'disease': {'base_infection_probability': 2}}))
        with pytest.raises(ValueError):
            load_config(path)

    def test_shipped_default_yaml(self):
        from pathlib import Path
        path = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"
        assert load_config(path) == default_config()


class TestDictConversion:
    def test_dict_round_trip(self):
        c = EpidemicConfig(extensions=ExtensionsSection(vaccination=True))
        assert config_from_dict(config_to_dict(c)) == c


class TestRequiresReinitialization:
    def test_live_parameter_change(self):
        old = default_config()
        new = default_config()
        new.disease.base_recovery_duration = 8000.0
        new.population.mobility_factor = 0.9
        assert not requires_reinitialization(old, new)

    @pytest.mark.parametrize("field", ["population_size", "initial_infected_count"])
    def test_rebuild_parameter_change(self, field):
        old = default_config()
        new = default_config()
        setattr(new.population, field, getattr(new.population, field) + 1)
        assert requires_reinitialization(old, new)
