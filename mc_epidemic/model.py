"""Simulation engine: state ownership, tick loop and headless runs.

Engine surface:
  - initialize(config)            → SimulationState (fresh agents, clock 0)
  - advance(state, dt_ms)         one atomic tick
  - apply_config_update(state, c) rescale live agents for new live parameters
  - snapshot(state)               read-only view for renderers / charts

Tick order (no suspension points inside a tick):
  clock += dt → movement → disease state machine (+ extensions) →
  contact scan with transmission in both directions → metrics → recording

Every run owns its SimulationState: agents, clock, event log and random
stream. There is no module-level simulation instance; rebuilding (new
population size or index-case count) means calling initialize() again.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from mc_epidemic.config import EpidemicConfig, default_config, requires_reinitialization
from mc_epidemic.disease import (
    DiseaseTransitions,
    attempt_transmission,
    draw_personal_parameters,
    is_over_capacity,
    progress_disease,
    rescale_recovery_durations,
    vaccinate,
    wane_immunity,
)
from mc_epidemic.metrics import EpidemicMetrics, StatusCounts, compute_metrics
from mc_epidemic.movement import resolve_contacts, update_movement
from mc_epidemic.perf import PerfMonitor
from mc_epidemic.rng import create_rng
from mc_epidemic.snapshots import SeriesRecorder
from mc_epidemic.types import Agent, Status, TransmissionEvent, allocate_agents


INITIAL_SPEED_RANGE = 1.0   # initial vx, vy ~ U(-1, 1)


# ═══════════════════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationState:
    """Everything one simulation run owns. Mutated only through advance()."""
    config: EpidemicConfig
    agents: np.ndarray
    rng: np.random.Generator
    metrics: EpidemicMetrics
    clock: float = 0.0
    tick: int = 0
    events: List[TransmissionEvent] = field(default_factory=list)
    recorder: Optional[SeriesRecorder] = None
    perf: PerfMonitor = field(default_factory=PerfMonitor)
    last_transitions: DiseaseTransitions = field(default_factory=DiseaseTransitions)
    last_contacts: int = 0

    @property
    def population_size(self) -> int:
        return len(self.agents)

    @property
    def initial_infected_count(self) -> int:
        return min(self.config.population.initial_infected_count, len(self.agents))


@dataclass(frozen=True)
class SimulationSnapshot:
    """Read-only view of a SimulationState at one instant.

    `agents` is a copy with the writeable flag cleared.
    """
    time_ms: float
    tick: int
    agents: np.ndarray
    counts: StatusCounts
    r0: Optional[float]
    rt: Optional[float]
    n_transmissions: int

    def agent(self, agent_id: int) -> Agent:
        return Agent.from_row(self.agents[agent_id])

    @property
    def positions(self) -> np.ndarray:
        """(n, 2) array of x, y."""
        return np.column_stack([self.agents['x'], self.agents['y']])


def tick_duration(config: EpidemicConfig) -> float:
    """Tick length: tick_ms × speed multiplier (16 ms × speed by default)."""
    return config.simulation.tick_ms * config.simulation.speed


# ═══════════════════════════════════════════════════════════════════════
# INITIALIZATION
# ═══════════════════════════════════════════════════════════════════════

def initialize_population(
    config: EpidemicConfig,
    rng: np.random.Generator,
) -> np.ndarray:
    """Create the agent array for a fresh run.

    Positions are uniform over the arena, velocity components uniform in
    [-1, 1). Agents 0 .. initial_infected_count-1 are index cases: they
    start SYMPTOMATIC with their infectious episode starting at t=0.

    Args:
        config: Simulation configuration.
        rng: Random source (consumed in a fixed field order).

    Returns:
        Structured array with AGENT_DTYPE.
    """
    n = config.population.population_size
    agents = allocate_agents(n)
    if n == 0:
        return agents

    sim = config.simulation
    base_recovery = config.disease.base_recovery_duration

    agents['x'] = rng.uniform(0.0, sim.arena_width, size=n)
    agents['y'] = rng.uniform(0.0, sim.arena_height, size=n)
    agents['vx'] = rng.uniform(-INITIAL_SPEED_RANGE, INITIAL_SPEED_RANGE, size=n)
    agents['vy'] = rng.uniform(-INITIAL_SPEED_RANGE, INITIAL_SPEED_RANGE, size=n)

    for name, values in draw_personal_parameters(n, base_recovery, rng).items():
        agents[name] = values
    agents['recovery_base'] = base_recovery

    n_index = min(config.population.initial_infected_count, n)
    agents['status'][:n_index] = Status.SYMPTOMATIC
    agents['infectious_at'][:n_index] = 0.0
    return agents


def initialize(
    config: Optional[EpidemicConfig] = None,
    rng: Optional[np.random.Generator] = None,
    recorder: Optional[SeriesRecorder] = None,
    perf: Optional[PerfMonitor] = None,
) -> SimulationState:
    """Build a fresh SimulationState: new agents, clock 0, empty event log.

    Args:
        config: Configuration (copied; later edits to the caller's object do
            not leak in). Defaults to default_config().
        rng: Injected random source. Defaults to create_rng(config seed).
        recorder: Optional time-series recorder; cleared and seeded with the
            t=0 counts.
        perf: Optional phase timer.

    Returns:
        The new SimulationState.
    """
    if config is None:
        config = default_config()
    config = copy.deepcopy(config)
    if rng is None:
        rng = create_rng(config.simulation.seed)

    agents = initialize_population(config, rng)
    n_index = min(config.population.initial_infected_count, len(agents))
    state = SimulationState(
        config=config,
        agents=agents,
        rng=rng,
        metrics=compute_metrics(agents, n_index),
        recorder=recorder,
        perf=perf if perf is not None else PerfMonitor(),
    )
    if recorder is not None:
        recorder.clear()
        recorder.record_initial(state.clock, state.metrics)
    return state


# ═══════════════════════════════════════════════════════════════════════
# TICK
# ═══════════════════════════════════════════════════════════════════════

def advance(state: SimulationState, dt_ms: float) -> None:
    """Advance the simulation by one tick of dt_ms simulated milliseconds.

    A state with no agents is left untouched.
    """
    agents = state.agents
    if len(agents) == 0:
        return

    cfg = state.config
    dis = cfg.disease
    ext = cfg.extensions
    rng = state.rng

    over_capacity = (
        ext.capacity_strain
        and is_over_capacity(state.metrics.counts.active,
                             dis.healthcare_capacity_threshold)
    )

    state.clock += dt_ms
    state.tick += 1
    clock = state.clock

    with state.perf.track("movement"):
        update_movement(
            agents,
            cfg.population.mobility_factor,
            cfg.simulation.arena_width,
            cfg.simulation.arena_height,
            rng,
        )

    with state.perf.track("disease"):
        transitions = progress_disease(
            agents, clock, dis.quarantine_delay, dis.immunity_duration,
            rng, over_capacity,
        )
        if ext.immunity_waning:
            transitions.waned = wane_immunity(agents, clock)
        if ext.vaccination:
            transitions.vaccinated = vaccinate(
                agents, clock, dt_ms, dis.vaccination_rate,
                dis.immunity_duration, rng,
            )

    def on_contact(i: int, j: int) -> None:
        attempt_transmission(agents, i, j, clock, dis.base_infection_probability,
                             dis.mask_enabled, rng, state.events)
        attempt_transmission(agents, j, i, clock, dis.base_infection_probability,
                             dis.mask_enabled, rng, state.events)

    with state.perf.track("contacts"):
        state.last_contacts = resolve_contacts(agents, on_contact)

    with state.perf.track("metrics"):
        state.metrics = compute_metrics(agents, state.initial_infected_count)
        if state.recorder is not None:
            state.recorder.record(clock, dt_ms, state.metrics)

    state.last_transitions = transitions


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION UPDATES & QUERIES
# ═══════════════════════════════════════════════════════════════════════

def apply_config_update(state: SimulationState, config: EpidemicConfig) -> int:
    """Adopt new live parameters without rebuilding the population.

    Recovery durations of living agents are rescaled to the new base
    recovery duration; status, position and velocity are untouched. All
    other live parameters simply take effect from the next tick.

    Args:
        state: Running simulation.
        config: New configuration.

    Returns:
        Number of agents whose personal recovery duration was recomputed.

    Raises:
        ValueError: If population_size or initial_infected_count changed;
            those require initialize().
    """
    if requires_reinitialization(state.config, config):
        raise ValueError(
            "population_size / initial_infected_count changed; "
            "call initialize() to rebuild the population"
        )
    n = rescale_recovery_durations(state.agents, config.disease.base_recovery_duration)
    state.config = copy.deepcopy(config)
    return n


def snapshot(state: SimulationState) -> SimulationSnapshot:
    """Read-only view of the current state for rendering and charting."""
    agents = state.agents.copy()
    agents.flags.writeable = False
    m = state.metrics
    return SimulationSnapshot(
        time_ms=state.clock,
        tick=state.tick,
        agents=agents,
        counts=m.counts,
        r0=m.r0,
        rt=m.rt,
        n_transmissions=len(state.events),
    )


# ═══════════════════════════════════════════════════════════════════════
# HEADLESS RUNS
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationResult:
    """Summary of a headless run."""
    ticks: int = 0
    final_time_ms: float = 0.0
    population_size: int = 0
    final_counts: StatusCounts = field(default_factory=StatusCounts)
    total_infections: int = 0       # index cases + transmissions
    total_transmissions: int = 0
    peak_active: int = 0
    peak_active_time_ms: float = 0.0
    attack_rate: float = 0.0        # infections per capita
    r0: Optional[float] = None
    rt: Optional[float] = None
    series: Dict[str, np.ndarray] = field(default_factory=dict)
    events: List[TransmissionEvent] = field(default_factory=list)


def epidemic_over(state: SimulationState) -> bool:
    """No agent is exposed or in an infectious episode."""
    c = state.metrics.counts
    return c.exposed + c.symptomatic + c.asymptomatic + c.quarantined == 0


def run_simulation(
    config: Optional[EpidemicConfig] = None,
    n_ticks: Optional[int] = None,
    duration_ms: Optional[float] = None,
    rng: Optional[np.random.Generator] = None,
    perf: Optional[PerfMonitor] = None,
    stop_when_over: bool = False,
) -> SimulationResult:
    """Run a simulation headless with a fixed tick length.

    The tick length is tick_duration(config). Exactly one of n_ticks /
    duration_ms may be given; with neither, runs until the epidemic is over
    (stop_when_over is then implied).

    Args:
        config: Configuration. Defaults to default_config().
        n_ticks: Number of ticks to run.
        duration_ms: Simulated duration to cover.
        rng: Injected random source.
        perf: Optional phase timer.
        stop_when_over: Stop early once no agent is exposed or infectious.

    Returns:
        SimulationResult with summary statistics and recorded series.
    """
    if n_ticks is not None and duration_ms is not None:
        raise ValueError("give n_ticks or duration_ms, not both")
    if config is None:
        config = default_config()

    dt = tick_duration(config)
    if duration_ms is not None:
        n_ticks = int(np.ceil(duration_ms / dt))
    if n_ticks is None:
        stop_when_over = True

    recorder = SeriesRecorder(interval_ms=config.simulation.record_interval_ms)
    state = initialize(config, rng=rng, recorder=recorder, perf=perf)

    peak_active = state.metrics.counts.active
    peak_time = 0.0
    while n_ticks is None or state.tick < n_ticks:
        if stop_when_over and epidemic_over(state):
            break
        advance(state, dt)
        if state.metrics.counts.active > peak_active:
            peak_active = state.metrics.counts.active
            peak_time = state.clock
        if len(state.agents) == 0:
            break

    n = len(state.agents)
    total_infections = state.initial_infected_count + len(state.events)
    return SimulationResult(
        ticks=state.tick,
        final_time_ms=state.clock,
        population_size=n,
        final_counts=state.metrics.counts,
        total_infections=total_infections,
        total_transmissions=len(state.events),
        peak_active=peak_active,
        peak_active_time_ms=peak_time,
        attack_rate=total_infections / n if n > 0 else 0.0,
        r0=state.metrics.r0,
        rt=state.metrics.rt,
        series=recorder.as_arrays(),
        events=list(state.events),
    )
