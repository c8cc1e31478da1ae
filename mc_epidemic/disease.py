"""Disease dynamics — per-agent state machine and Monte Carlo samplers.

Implements:
  - State machine: EXPOSED → SYMPTOMATIC|ASYMPTOMATIC → QUARANTINED →
    RECOVERED|DEAD, driven by elapsed time against the simulation clock
  - Transmission sampler: one uniform draw per directed contact
        p = base × mask_factor × asymptomatic_factor
  - Outcome sampler: age-dependent mortality, ×1.5 over healthcare capacity
  - Recovery-duration rescaling when the base recovery duration changes
  - Optional extensions: vaccination and immunity waning

All elapsed-time comparisons are strict (clock − t0 > duration). At most one
transition fires per agent per tick; an agent that just became infectious
cannot also quarantine or resolve in the same tick.

Times are in simulated milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .movement import pin_velocity
from .types import (
    AGE_GROUP_PROBS,
    IN_EPISODE_STATUSES,
    INFECTIOUS_STATUSES,
    NO_AGENT,
    AgeGroup,
    Status,
    TransmissionEvent,
)


# ═══════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

# Per-agent draws at creation
INCUBATION_RANGE = (1000.0, 3000.0)          # ms
INFECTION_RADIUS_RANGE = (8.0, 12.0)         # spatial units (rendering only)
RECOVERY_MULTIPLIER_RANGE = (0.7, 1.3)       # × base recovery duration

# Baseline assumed for agents with no recorded recovery base
ASSUMED_RECOVERY_BASE = 5000.0

ASYMPTOMATIC_FRACTION = 0.4
MASK_FACTOR = 0.5
ASYMPTOMATIC_TRANSMISSION_FACTOR = 0.5

# Mortality indexed by AgeGroup value. Children share the senior rate.
BASE_MORTALITY = np.array([0.20, 0.05, 0.20], dtype=np.float64)
#                          CHILD ADULT SENIOR
OVER_CAPACITY_MULTIPLIER = 1.5


# ═══════════════════════════════════════════════════════════════════════
# PURE HELPERS
# ═══════════════════════════════════════════════════════════════════════

def mortality_probability(age_group, over_capacity: bool = False):
    """Probability an agent dies when its infectious episode ends.

    Accepts a single AgeGroup or an array of age-group codes.
    """
    base = BASE_MORTALITY[np.asarray(age_group, dtype=np.intp)]
    if over_capacity:
        base = base * OVER_CAPACITY_MULTIPLIER
    return float(base) if np.ndim(base) == 0 else base


def transmission_probability(
    base_probability: float,
    mask_enabled: bool,
    source_asymptomatic: bool,
) -> float:
    """Effective per-contact infection probability."""
    mask_factor = MASK_FACTOR if mask_enabled else 1.0
    asymp_factor = ASYMPTOMATIC_TRANSMISSION_FACTOR if source_asymptomatic else 1.0
    return base_probability * mask_factor * asymp_factor


def can_transmit(source_status: int, target_status: int) -> bool:
    """Infectious (non-quarantined) source, healthy target."""
    return bool(
        source_status in INFECTIOUS_STATUSES and target_status == Status.HEALTHY
    )


def is_over_capacity(n_active: int, threshold: float) -> bool:
    """Active cases strictly exceed the healthcare capacity threshold."""
    return n_active > threshold


def draw_personal_parameters(n: int, base_recovery: float,
                             rng: np.random.Generator) -> dict:
    """Per-agent epidemiological draws made once at creation."""
    lo, hi = RECOVERY_MULTIPLIER_RANGE
    return {
        'age_group': rng.choice(len(AgeGroup), size=n, p=AGE_GROUP_PROBS).astype(np.int8),
        'incubation_duration': rng.uniform(*INCUBATION_RANGE, size=n),
        'infection_radius': rng.uniform(*INFECTION_RADIUS_RANGE, size=n),
        'personal_recovery': base_recovery * rng.uniform(lo, hi, size=n),
    }


# ═══════════════════════════════════════════════════════════════════════
# TRANSMISSION SAMPLER
# ═══════════════════════════════════════════════════════════════════════

def attempt_transmission(
    agents: np.ndarray,
    source: int,
    target: int,
    clock: float,
    base_probability: float,
    mask_enabled: bool,
    rng: np.random.Generator,
    events: List[TransmissionEvent],
) -> bool:
    """Try to infect *target* from *source*. Mutates agents and events.

    A uniform draw is consumed only when the preconditions hold.

    Returns:
        True if target became EXPOSED.
    """
    src_status = agents['status'][source]
    if not can_transmit(src_status, agents['status'][target]):
        return False

    p = transmission_probability(
        base_probability, mask_enabled, src_status == Status.ASYMPTOMATIC,
    )
    if rng.random() >= p:
        return False

    agents['status'][target] = Status.EXPOSED
    agents['exposed_at'][target] = clock
    if agents['infected_by'][target] == NO_AGENT:
        agents['infected_by'][target] = source
    agents['transmission_count'][source] += 1
    events.append(TransmissionEvent(int(source), int(target), float(clock)))
    return True


# ═══════════════════════════════════════════════════════════════════════
# OUTCOME SAMPLER
# ═══════════════════════════════════════════════════════════════════════

def resolve_outcomes(
    agents: np.ndarray,
    idx: np.ndarray,
    clock: float,
    immunity_duration: float,
    rng: np.random.Generator,
    over_capacity: bool = False,
) -> Tuple[int, int]:
    """End the infectious episode of agents *idx*: DEAD or RECOVERED.

    Dead agents get their velocity pinned to zero. Recovered agents get
    immunity_expires_at = clock + immunity_duration.

    Returns:
        (n_dead, n_recovered)
    """
    if len(idx) == 0:
        return 0, 0

    p_death = mortality_probability(agents['age_group'][idx], over_capacity)
    dies = rng.random(len(idx)) < p_death

    dead = idx[dies]
    recovered = idx[~dies]

    agents['status'][dead] = Status.DEAD
    pin_velocity(agents, dead)

    agents['status'][recovered] = Status.RECOVERED
    agents['immunity_expires_at'][recovered] = clock + immunity_duration

    return len(dead), len(recovered)


# ═══════════════════════════════════════════════════════════════════════
# STATE MACHINE
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class DiseaseTransitions:
    """Counts of transitions fired during one tick."""
    became_symptomatic: int = 0
    became_asymptomatic: int = 0
    quarantined: int = 0
    recovered: int = 0
    died: int = 0
    vaccinated: int = 0
    waned: int = 0

    @property
    def became_infectious(self) -> int:
        return self.became_symptomatic + self.became_asymptomatic


def progress_disease(
    agents: np.ndarray,
    clock: float,
    quarantine_delay: float,
    immunity_duration: float,
    rng: np.random.Generator,
    over_capacity: bool = False,
) -> DiseaseTransitions:
    """Advance every agent's status by at most one step (in-place).

    Transitions are evaluated in order against the status each agent held
    at the start of the call:
      1. EXPOSED → SYMPTOMATIC | ASYMPTOMATIC   (elapsed > incubation)
      2. SYMPTOMATIC → QUARANTINED              (elapsed > quarantine_delay)
      3. in-episode → RECOVERED | DEAD          (elapsed > personal_recovery)

    Args:
        agents: Structured array with AGENT_DTYPE fields.
        clock: Current simulation time (ms), already advanced for this tick.
        quarantine_delay: Detection delay for symptomatic agents (ms).
        immunity_duration: Immunity granted on recovery (ms).
        rng: NumPy random generator.
        over_capacity: Apply the over-capacity mortality multiplier.

    Returns:
        DiseaseTransitions with per-transition counts.
    """
    out = DiseaseTransitions()
    if len(agents) == 0:
        return out

    status = agents['status'].copy()

    # 1. Incubation ends
    incubated = np.flatnonzero(
        (status == Status.EXPOSED)
        & (clock - agents['exposed_at'] > agents['incubation_duration'])
    )
    if incubated.size:
        asymp = rng.random(incubated.size) < ASYMPTOMATIC_FRACTION
        agents['asymptomatic'][incubated] = asymp
        agents['status'][incubated] = np.where(
            asymp, Status.ASYMPTOMATIC, Status.SYMPTOMATIC,
        )
        agents['infectious_at'][incubated] = clock
        out.became_asymptomatic = int(asymp.sum())
        out.became_symptomatic = int(incubated.size - out.became_asymptomatic)

    elapsed = clock - agents['infectious_at']

    # 2. Detection → quarantine (asymptomatic agents are never detected)
    detected = (status == Status.SYMPTOMATIC) & (elapsed > quarantine_delay)
    q_idx = np.flatnonzero(detected)
    if q_idx.size:
        agents['status'][q_idx] = Status.QUARANTINED
        pin_velocity(agents, q_idx)
        out.quarantined = int(q_idx.size)

    # 3. Episode ends
    in_episode = np.isin(status, np.asarray(IN_EPISODE_STATUSES, dtype=np.int8))
    finished = np.flatnonzero(
        in_episode & ~detected & (elapsed > agents['personal_recovery'])
    )
    out.died, out.recovered = resolve_outcomes(
        agents, finished, clock, immunity_duration, rng, over_capacity,
    )
    return out


# ═══════════════════════════════════════════════════════════════════════
# PARAMETER RESCALING
# ═══════════════════════════════════════════════════════════════════════

def rescale_recovery_durations(agents: np.ndarray, new_base: float) -> int:
    """Re-derive personal recovery durations for a new base duration.

    For each living agent with a recovery duration:
        multiplier = personal_recovery / recovery_base
        personal_recovery = new_base × multiplier
        recovery_base = new_base
    Agents with no usable recovery_base fall back to ASSUMED_RECOVERY_BASE.
    Agents whose base already equals new_base are left bit-for-bit alone.

    Returns:
        Number of agents whose personal_recovery was recomputed.
    """
    if len(agents) == 0:
        return 0

    live = (agents['status'] != Status.DEAD) & ~np.isnan(agents['personal_recovery'])
    previous = agents['recovery_base']
    unknown = np.isnan(previous) | (previous <= 0)
    previous = np.where(unknown, ASSUMED_RECOVERY_BASE, previous)

    changed = np.flatnonzero(live & (previous != new_base))
    if changed.size:
        multiplier = agents['personal_recovery'][changed] / previous[changed]
        agents['personal_recovery'][changed] = new_base * multiplier

    agents['recovery_base'][np.flatnonzero(live)] = new_base
    return int(changed.size)


# ═══════════════════════════════════════════════════════════════════════
# EXTENSIONS (off by default)
# ═══════════════════════════════════════════════════════════════════════

def vaccinate(
    agents: np.ndarray,
    clock: float,
    dt_ms: float,
    rate_per_second: float,
    immunity_duration: float,
    rng: np.random.Generator,
) -> int:
    """Move healthy agents straight to RECOVERED (vaccination campaign).

    The number vaccinated this tick is Poisson(rate × dt / 1000), capped at
    the number of healthy agents; recipients are chosen uniformly. Vaccinated
    agents never have an infectious episode (infectious_at stays NaN), so
    they do not enter reproduction-number estimates.

    Returns:
        Number of agents vaccinated.
    """
    if rate_per_second <= 0 or dt_ms <= 0:
        return 0
    healthy = np.flatnonzero(agents['status'] == Status.HEALTHY)
    if healthy.size == 0:
        return 0

    n = min(int(rng.poisson(rate_per_second * dt_ms / 1000.0)), healthy.size)
    if n == 0:
        return 0
    chosen = rng.choice(healthy, size=n, replace=False)
    agents['status'][chosen] = Status.RECOVERED
    agents['immunity_expires_at'][chosen] = clock + immunity_duration
    return n


def wane_immunity(agents: np.ndarray, clock: float) -> int:
    """RECOVERED → HEALTHY once clock > immunity_expires_at.

    The agent becomes susceptible again: exposure and infectious timestamps
    are cleared. infected_by keeps the first recorded source.

    Returns:
        Number of agents whose immunity waned.
    """
    waned = np.flatnonzero(
        (agents['status'] == Status.RECOVERED)
        & (clock > agents['immunity_expires_at'])
    )
    if waned.size:
        agents['status'][waned] = Status.HEALTHY
        agents['asymptomatic'][waned] = False
        for name in ('exposed_at', 'infectious_at', 'immunity_expires_at'):
            agents[name][waned] = np.nan
    return int(waned.size)

