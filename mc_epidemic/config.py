"""Configuration system for mc_epidemic.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → programmatic overrides

Validation lives here, at load time. The simulation engine itself never
re-validates: it reads whatever values it is handed each tick.

Parameters split into two groups:
  - rebuild parameters (population_size, initial_infected_count): changing
    them requires a fresh initialize()
  - live parameters (everything else): read every tick, and recovery-related
    values are rescaled onto living agents by apply_config_update()
"""

from __future__ import annotations

import copy
import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run control and arena geometry."""
    seed: int = 42
    arena_width: float = 700.0     # spatial units
    arena_height: float = 500.0
    tick_ms: float = 16.0          # base tick length (ms)
    speed: float = 1.0             # tick multiplier; dt = tick_ms × speed
    record_interval_ms: float = 500.0  # time-series sampling interval


@dataclass
class PopulationSection:
    """Population size and mobility."""
    population_size: int = 200
    initial_infected_count: int = 3
    mobility_factor: float = 0.5   # 0 = frozen, 1 = fully mobile


@dataclass
class DiseaseSection:
    """Transmission, progression and intervention parameters (times in ms)."""
    base_infection_probability: float = 0.3
    base_recovery_duration: float = 5000.0
    quarantine_delay: float = 3000.0
    mask_enabled: bool = False
    healthcare_capacity_threshold: int = 30   # active cases
    vaccination_rate: float = 0.0             # persons per simulated second
    immunity_duration: float = 15000.0


@dataclass
class ExtensionsSection:
    """Optional behaviour on top of the base model. All off by default.

    capacity_strain: mortality ×1.5 when active cases exceed
        healthcare_capacity_threshold (otherwise the threshold is inert).
    vaccination: vaccinate healthy agents at vaccination_rate
        (otherwise the rate is inert).
    immunity_waning: RECOVERED → HEALTHY once immunity expires
        (otherwise immunity_expires_at is stored but never read).
    """
    capacity_strain: bool = False
    vaccination: bool = False
    immunity_waning: bool = False


@dataclass
class EpidemicConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    population: PopulationSection = field(default_factory=PopulationSection)
    disease: DiseaseSection = field(default_factory=DiseaseSection)
    extensions: ExtensionsSection = field(default_factory=ExtensionsSection)


REBUILD_FIELDS = (
    ('population', 'population_size'),
    ('population', 'initial_infected_count'),
)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Args:
        base: Base dictionary (modified in place).
        override: Override dictionary.

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


_SECTION_MAP = {
    'simulation': SimulationSection,
    'population': PopulationSection,
    'disease': DiseaseSection,
    'extensions': ExtensionsSection,
}


def config_from_dict(data: Dict) -> EpidemicConfig:
    """Build an EpidemicConfig from a (merged) nested dict. Not validated."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return EpidemicConfig(**sections)


def config_to_dict(config: EpidemicConfig) -> Dict:
    """Nested plain-dict form of a config (YAML-serializable)."""
    return dataclasses.asdict(config)


def _check_probability(name: str, value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise ValueError(f"{name} must be in [0, 1], got {value}")


def _check_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")


def validate_config(config: EpidemicConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Checks:
      - Arena is large enough to hold the boundary margin
      - Tick and recording intervals are positive
      - Population counts are non-negative
      - Probabilities/factors in [0, 1]
      - Durations and rates non-negative
    Warns (UserWarning) when more index cases are requested than agents exist.
    """
    from mc_epidemic.movement import BOUNDARY_MARGIN

    s = config.simulation
    if s.seed < 0:
        raise ValueError("simulation.seed must be non-negative")
    if s.arena_width <= 2 * BOUNDARY_MARGIN or s.arena_height <= 2 * BOUNDARY_MARGIN:
        raise ValueError(
            f"arena must exceed {2 * BOUNDARY_MARGIN} units per side, "
            f"got {s.arena_width}×{s.arena_height}"
        )
    if s.tick_ms <= 0:
        raise ValueError(f"simulation.tick_ms must be positive, got {s.tick_ms}")
    if s.speed <= 0:
        raise ValueError(f"simulation.speed must be positive, got {s.speed}")
    if s.record_interval_ms <= 0:
        raise ValueError(
            f"simulation.record_interval_ms must be positive, "
            f"got {s.record_interval_ms}"
        )

    p = config.population
    _check_non_negative('population.population_size', p.population_size)
    _check_non_negative('population.initial_infected_count', p.initial_infected_count)
    _check_probability('population.mobility_factor', p.mobility_factor)
    if p.initial_infected_count > p.population_size:
        warnings.warn(
            f"population.initial_infected_count ({p.initial_infected_count}) "
            f"exceeds population_size ({p.population_size}); "
            f"every agent will be an index case.",
            UserWarning,
            stacklevel=2,
        )

    d = config.disease
    _check_probability('disease.base_infection_probability', d.base_infection_probability)
    if d.base_recovery_duration <= 0:
        raise ValueError(
            f"disease.base_recovery_duration must be positive, "
            f"got {d.base_recovery_duration}"
        )
    _check_non_negative('disease.quarantine_delay', d.quarantine_delay)
    _check_non_negative('disease.healthcare_capacity_threshold',
                        d.healthcare_capacity_threshold)
    _check_non_negative('disease.vaccination_rate', d.vaccination_rate)
    _check_non_negative('disease.immunity_duration', d.immunity_duration)


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> EpidemicConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML (skipped if missing).
        overrides: Optional dict of parameter overrides.

    Returns:
        Validated EpidemicConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if overrides is not None:
        deep_merge(config_dict, copy.deepcopy(overrides))

    config = config_from_dict(config_dict)
    validate_config(config)
    return config


def default_config() -> EpidemicConfig:
    """Return an EpidemicConfig with all default values."""
    config = EpidemicConfig()
    validate_config(config)
    return config


def requires_reinitialization(old: EpidemicConfig, new: EpidemicConfig) -> bool:
    """True if going from *old* to *new* needs a full rebuild of the agents."""
    return any(
        getattr(getattr(old, section), name) != getattr(getattr(new, section), name)
        for section, name in REBUILD_FIELDS
    )
