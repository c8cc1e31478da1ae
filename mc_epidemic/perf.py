"""Per-phase timing of simulation ticks.

Off by default; when disabled track() yields immediately and nothing is
recorded.

Usage:
    from mc_epidemic.perf import PerfMonitor

    perf = PerfMonitor(enabled=True)
    state = initialize(config, perf=perf)
    for _ in range(500):
        advance(state, 16)
    print(perf.report())
"""

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict


@dataclass
class PhaseStats:
    """Accumulated wall-clock time of one tick phase."""
    total_time: float = 0.0
    call_count: int = 0
    max_time: float = 0.0

    @property
    def mean_time(self) -> float:
        return self.total_time / self.call_count if self.call_count > 0 else 0.0

    def add(self, elapsed: float) -> None:
        self.total_time += elapsed
        self.call_count += 1
        self.max_time = max(self.max_time, elapsed)


class PerfMonitor:
    """Collects wall-clock time per named tick phase."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._phases: Dict[str, PhaseStats] = defaultdict(PhaseStats)

    @contextmanager
    def track(self, phase: str):
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._phases[phase].add(time.perf_counter() - t0)

    @property
    def phases(self) -> Dict[str, PhaseStats]:
        return dict(self._phases)

    def total(self) -> float:
        return sum(s.total_time for s in self._phases.values())

    def summary(self) -> dict:
        """JSON-friendly dict, slowest phase first."""
        total = self.total()
        result = {}
        for name, stats in sorted(self._phases.items(), key=lambda kv: -kv[1].total_time):
            result[name] = {
                'total_s': round(stats.total_time, 4),
                'calls': stats.call_count,
                'mean_ms': round(stats.mean_time * 1000, 3),
                'max_ms': round(stats.max_time * 1000, 3),
                'pct': round(stats.total_time / total * 100, 1) if total > 0 else 0.0,
            }
        result['_total_s'] = round(total, 4)
        return result

    def report(self, title: str = "Tick phase timing") -> str:
        rows = self.summary()
        total = rows.pop('_total_s')
        lines = [
            f"{title}",
            f"{'Phase':<14} {'Total (s)':>10} {'Calls':>8} {'Mean (ms)':>10} {'%':>6}",
        ]
        for name, row in rows.items():
            lines.append(
                f"{name:<14} {row['total_s']:>10.4f} {row['calls']:>8} "
                f"{row['mean_ms']:>10.3f} {row['pct']:>5.1f}%"
            )
        lines.append(f"{'TOTAL':<14} {total:>10.4f}")
        return '\n'.join(lines)

    def reset(self) -> None:
        self._phases.clear()
