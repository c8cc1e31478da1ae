"""Core data types for mc_epidemic.

This module is the SINGLE SOURCE OF TRUTH for:
  - AGENT_DTYPE: NumPy structured array dtype for individual agents
  - Status and AgeGroup enumerations
  - Agent: read-only Python view of a single agent row
  - TransmissionEvent: one entry of the append-only transmission log

All modules import these types from here. No other module defines agent fields.

Null handling inside the structured array:
  - timestamps / durations that may be absent are NaN
  - infected_by is -1 for index cases and never-infected agents
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Status(IntEnum):
    """Epidemiological status of an agent.

    HEALTHY      → EXPOSED       (transmission sampler only)
    EXPOSED      → SYMPTOMATIC | ASYMPTOMATIC  (after incubation)
    SYMPTOMATIC  → QUARANTINED   (after quarantine delay)
    SYMPTOMATIC | ASYMPTOMATIC | QUARANTINED → RECOVERED | DEAD
    """
    HEALTHY      = 0
    EXPOSED      = 1
    SYMPTOMATIC  = 2   # Infectious, detected
    ASYMPTOMATIC = 3   # Infectious, never detected
    QUARANTINED  = 4   # Isolated: no movement, no transmission
    RECOVERED    = 5
    DEAD         = 6


class AgeGroup(IntEnum):
    """Age class, fixed at creation."""
    CHILD  = 0
    ADULT  = 1
    SENIOR = 2


# Creation probabilities indexed by AgeGroup value
AGE_GROUP_PROBS = np.array([0.25, 0.55, 0.20], dtype=np.float64)

# Status groupings used by several modules
INFECTIOUS_STATUSES = (Status.SYMPTOMATIC, Status.ASYMPTOMATIC)
IN_EPISODE_STATUSES = (Status.SYMPTOMATIC, Status.ASYMPTOMATIC, Status.QUARANTINED)
PINNED_STATUSES = (Status.QUARANTINED, Status.DEAD)
RESOLVED_STATUSES = (Status.RECOVERED, Status.DEAD)

NO_AGENT = -1


# ═══════════════════════════════════════════════════════════════════════
# AGENT_DTYPE — Canonical structured array for individual agents
# ═══════════════════════════════════════════════════════════════════════

AGENT_DTYPE = np.dtype([
    # --- Identity ---
    ('id',                  np.int32),    # stable, == row index

    # --- Kinematics (movement writes) ---
    ('x',                   np.float64),
    ('y',                   np.float64),
    ('vx',                  np.float64),
    ('vy',                  np.float64),

    # --- Epidemiology (disease writes) ---
    ('status',              np.int8),     # Status enum
    ('age_group',           np.int8),     # AgeGroup enum, immutable
    ('asymptomatic',        np.bool_),    # branch drawn on leaving EXPOSED
    ('exposed_at',          np.float64),  # NaN unless exposed
    ('incubation_duration', np.float64),  # U[1000, 3000] ms
    ('infectious_at',       np.float64),  # start of infectious chain; NaN if never
    ('infection_radius',    np.float64),  # U[8, 12]; rendering only
    ('personal_recovery',   np.float64),  # base × U[0.7, 1.3]
    ('recovery_base',       np.float64),  # base used for personal_recovery; NaN if unknown
    ('immunity_expires_at', np.float64),  # NaN unless recovered

    # --- Transmission bookkeeping ---
    ('infected_by',         np.int32),    # source agent id or -1
    ('transmission_count',  np.int32),    # secondary infections caused
])


def allocate_agents(n: int) -> np.ndarray:
    """Allocate an agent array with every nullable field nulled.

    Args:
        n: Number of agents.

    Returns:
        Structured array of shape (n,) with AGENT_DTYPE; ids are 0..n-1 and
        every agent is HEALTHY and at rest at the origin.
    """
    agents = np.zeros(n, dtype=AGENT_DTYPE)
    agents['id'] = np.arange(n, dtype=np.int32)
    agents['status'] = Status.HEALTHY
    for name in ('exposed_at', 'infectious_at', 'personal_recovery',
                 'recovery_base', 'immunity_expires_at'):
        agents[name] = np.nan
    agents['infected_by'] = NO_AGENT
    return agents


def status_mask(agents: np.ndarray, statuses) -> np.ndarray:
    """Boolean mask of agents whose status is in *statuses*."""
    return np.isin(agents['status'], np.asarray(statuses, dtype=np.int8))


def _nullable(value: float) -> Optional[float]:
    return None if np.isnan(value) else float(value)


# ═══════════════════════════════════════════════════════════════════════
# RECORDS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Agent:
    """Read-only view of one agent, with None for absent values."""
    id: int
    x: float
    y: float
    vx: float
    vy: float
    status: Status
    age_group: AgeGroup
    asymptomatic: bool
    exposed_at: Optional[float]
    incubation_duration: float
    infectious_at: Optional[float]
    infection_radius: float
    personal_recovery: Optional[float]
    recovery_base: Optional[float]
    immunity_expires_at: Optional[float]
    infected_by: Optional[int]
    transmission_count: int

    @classmethod
    def from_row(cls, row: np.void) -> "Agent":
        infected_by = int(row['infected_by'])
        return cls(
            id=int(row['id']),
            x=float(row['x']),
            y=float(row['y']),
            vx=float(row['vx']),
            vy=float(row['vy']),
            status=Status(int(row['status'])),
            age_group=AgeGroup(int(row['age_group'])),
            asymptomatic=bool(row['asymptomatic']),
            exposed_at=_nullable(row['exposed_at']),
            incubation_duration=float(row['incubation_duration']),
            infectious_at=_nullable(row['infectious_at']),
            infection_radius=float(row['infection_radius']),
            personal_recovery=_nullable(row['personal_recovery']),
            recovery_base=_nullable(row['recovery_base']),
            immunity_expires_at=_nullable(row['immunity_expires_at']),
            infected_by=None if infected_by == NO_AGENT else infected_by,
            transmission_count=int(row['transmission_count']),
        )

    @property
    def speed(self) -> float:
        return float(np.hypot(self.vx, self.vy))


@dataclass(frozen=True)
class TransmissionEvent:
    """One successful transmission: source infected target at time (ms)."""
    source_id: int
    target_id: int
    time: float
