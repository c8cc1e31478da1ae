"""Population statistics and reproduction-number estimation.

Recomputed from scratch every tick with O(n) masks over the agent array.

  R₀ = mean transmission_count over index cases (id < initial_infected_count)
       whose infectious episode has concluded (RECOVERED or DEAD)
  Rₜ = the same mean over ALL agents whose episode has concluded

Both are None until at least one tracked agent has concluded an episode.
Agents that reached RECOVERED without an episode (vaccinated) have no
infectious_at timestamp and are excluded.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Optional

import numpy as np

from .types import RESOLVED_STATUSES, Status, status_mask


@dataclass(frozen=True)
class StatusCounts:
    """Per-status head counts for one tick."""
    healthy: int = 0
    exposed: int = 0
    symptomatic: int = 0
    asymptomatic: int = 0
    quarantined: int = 0
    recovered: int = 0
    dead: int = 0

    @property
    def active(self) -> int:
        """Detected active cases: symptomatic + quarantined."""
        return self.symptomatic + self.quarantined

    @property
    def infectious(self) -> int:
        return self.symptomatic + self.asymptomatic

    @property
    def total(self) -> int:
        return (self.healthy + self.exposed + self.symptomatic + self.asymptomatic
                + self.quarantined + self.recovered + self.dead)

    def as_dict(self) -> Dict[str, int]:
        d = asdict(self)
        d['active'] = self.active
        return d


@dataclass(frozen=True)
class EpidemicMetrics:
    """Aggregate view of the population at one tick."""
    counts: StatusCounts
    r0: Optional[float]
    rt: Optional[float]
    n_index_resolved: int
    n_resolved: int


def count_statuses(agents: np.ndarray) -> StatusCounts:
    """Partition the population by status."""
    tally = np.bincount(agents['status'].astype(np.intp), minlength=len(Status))
    return StatusCounts(
        healthy=int(tally[Status.HEALTHY]),
        exposed=int(tally[Status.EXPOSED]),
        symptomatic=int(tally[Status.SYMPTOMATIC]),
        asymptomatic=int(tally[Status.ASYMPTOMATIC]),
        quarantined=int(tally[Status.QUARANTINED]),
        recovered=int(tally[Status.RECOVERED]),
        dead=int(tally[Status.DEAD]),
    )


def concluded_mask(agents: np.ndarray) -> np.ndarray:
    """Agents whose infectious episode has ended."""
    return (status_mask(agents, RESOLVED_STATUSES)
            & ~np.isnan(agents['infectious_at']))


def reproduction_number(
    agents: np.ndarray,
    initial_infected_count: Optional[int] = None,
) -> Optional[float]:
    """Mean secondary infections over concluded episodes.

    Args:
        agents: Structured array with AGENT_DTYPE fields.
        initial_infected_count: If given, restrict to index cases
            (id < initial_infected_count), giving R₀. If None, all
            concluded agents count, giving Rₜ.

    Returns:
        Mean transmission count, or None if no agent qualifies.
    """
    mask = concluded_mask(agents)
    if initial_infected_count is not None:
        mask &= agents['id'] < initial_infected_count
    if not mask.any():
        return None
    return float(agents['transmission_count'][mask].mean())


def compute_metrics(agents: np.ndarray, initial_infected_count: int) -> EpidemicMetrics:
    """Counts, R₀ and Rₜ for the current population."""
    concluded = concluded_mask(agents)
    index = concluded & (agents['id'] < initial_infected_count)
    return EpidemicMetrics(
        counts=count_statuses(agents),
        r0=reproduction_number(agents, initial_infected_count),
        rt=reproduction_number(agents),
        n_index_resolved=int(index.sum()),
        n_resolved=int(concluded.sum()),
    )
