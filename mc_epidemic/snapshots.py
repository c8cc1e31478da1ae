"""In-memory time-series recording for charting collaborators.

Samples the population counts at a fixed simulated-time interval, using
the sampling rule of the interactive front end: a tick records when

    clock % interval_ms < dt_ms

i.e. the first tick at or past every interval boundary. A second series
tracks R₀/Rₜ and only starts once an episode has concluded (before that
the estimates are undefined and are not plotted).

Nothing is written to disk; consumers pull NumPy arrays via as_arrays().

Usage:
    recorder = SeriesRecorder(interval_ms=500)
    state = initialize(config, recorder=recorder)
    for _ in range(1000):
        advance(state, 16)
    series = recorder.as_arrays()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .metrics import EpidemicMetrics, StatusCounts


@dataclass
class CountSample:
    """Population counts at one sampled instant."""
    time_ms: float
    counts: StatusCounts


@dataclass
class ReproductionSample:
    """Reproduction numbers at one sampled instant."""
    time_ms: float
    rt: float
    r0: Optional[float]


@dataclass
class SeriesRecorder:
    """Records count and reproduction-number series at a fixed interval.

    When enabled=False, record() is a no-op.
    """
    interval_ms: float = 500.0
    enabled: bool = True
    counts: List[CountSample] = field(default_factory=list)
    reproduction: List[ReproductionSample] = field(default_factory=list)

    def should_record(self, clock: float, dt_ms: float) -> bool:
        """True on the first tick at or past each interval boundary."""
        if not self.enabled:
            return False
        return (clock % self.interval_ms) < dt_ms

    def record_initial(self, clock: float, metrics: EpidemicMetrics) -> None:
        """Seed the count series so a chart has a point at t=0."""
        if self.enabled:
            self.counts.append(CountSample(clock, metrics.counts))

    def record(self, clock: float, dt_ms: float, metrics: EpidemicMetrics) -> bool:
        """Record a sample if this tick crosses an interval boundary.

        Returns:
            True if a count sample was taken.
        """
        if not self.should_record(clock, dt_ms):
            return False
        self.counts.append(CountSample(clock, metrics.counts))
        if metrics.rt is not None:
            self.reproduction.append(ReproductionSample(clock, metrics.rt, metrics.r0))
        return True

    def clear(self) -> None:
        self.counts.clear()
        self.reproduction.clear()

    def __len__(self) -> int:
        return len(self.counts)

    def as_arrays(self) -> Dict[str, np.ndarray]:
        """Column arrays for plotting.

        Keys: time_s plus one int array per status and 'active'; rt_time_s,
        rt, r0 (NaN where R₀ is still undefined).
        """
        out: Dict[str, np.ndarray] = {
            'time_s': np.array([s.time_ms / 1000.0 for s in self.counts], dtype=np.float64),
        }
        names = list(StatusCounts.__dataclass_fields__) + ['active']
        for name in names:
            out[name] = np.array(
                [getattr(s.counts, name) for s in self.counts], dtype=np.int64,
            )
        out['rt_time_s'] = np.array(
            [s.time_ms / 1000.0 for s in self.reproduction], dtype=np.float64,
        )
        out['rt'] = np.array([s.rt for s in self.reproduction], dtype=np.float64)
        out['r0'] = np.array(
            [np.nan if s.r0 is None else s.r0 for s in self.reproduction],
            dtype=np.float64,
        )
        return out
