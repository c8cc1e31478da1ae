#!/usr/bin/env python3
"""Run an epidemic scenario headless and print a summary.

Loads the base YAML config, merges an optional scenario override and any
--set overrides, runs with the configured tick length (tick_ms × speed) and
prints the epidemic summary.

Usage:
    python scripts/run_scenario.py
    python scripts/run_scenario.py --scenario configs/lockdown.yaml
    python scripts/run_scenario.py --seconds 60 --set disease.mask_enabled=true
    python scripts/run_scenario.py --replicates 10 --json
"""

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
import yaml

# ── Project imports ──────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from mc_epidemic.config import load_config
from mc_epidemic.model import SimulationResult, run_simulation
from mc_epidemic.perf import PerfMonitor


def parse_overrides(pairs: List[str]) -> Dict[str, Any]:
    """Turn ['disease.mask_enabled=true', ...] into a nested dict."""
    overrides: Dict[str, Any] = {}
    for pair in pairs:
        if '=' not in pair:
            raise ValueError(f"--set expects section.key=value, got '{pair}'")
        dotted, raw = pair.split('=', 1)
        keys = dotted.split('.')
        node = overrides
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = yaml.safe_load(raw)
    return overrides


def result_summary(result: SimulationResult) -> Dict[str, Any]:
    c = result.final_counts
    return {
        'ticks': result.ticks,
        'time_s': round(result.final_time_ms / 1000.0, 2),
        'population': result.population_size,
        'final_counts': c.as_dict(),
        'transmissions': result.total_transmissions,
        'attack_rate': round(result.attack_rate, 4),
        'peak_active': result.peak_active,
        'peak_active_time_s': round(result.peak_active_time_ms / 1000.0, 2),
        'r0': None if result.r0 is None else round(result.r0, 3),
        'rt': None if result.rt is None else round(result.rt, 3),
    }


def print_summary(summary: Dict[str, Any], label: str = "") -> None:
    c = summary['final_counts']
    print(f"\n{'=' * 60}")
    print(f" {label or 'Epidemic summary'}")
    print(f"{'=' * 60}")
    print(f"  Simulated:     {summary['time_s']} s ({summary['ticks']} ticks)")
    print(f"  Population:    {summary['population']}")
    print(f"  Healthy:       {c['healthy']}")
    print(f"  Recovered:     {c['recovered']}")
    print(f"  Dead:          {c['dead']}")
    print(f"  Still active:  {c['active']} (+{c['asymptomatic']} asymptomatic, "
          f"{c['exposed']} exposed)")
    print(f"  Transmissions: {summary['transmissions']} "
          f"(attack rate {summary['attack_rate']:.1%})")
    print(f"  Peak active:   {summary['peak_active']} at {summary['peak_active_time_s']} s")
    r0 = summary['r0']
    rt = summary['rt']
    print(f"  R0:            {'n/a' if r0 is None else f'{r0:.2f}'}")
    print(f"  Rt:            {'n/a' if rt is None else f'{rt:.2f}'}")


def main():
    parser = argparse.ArgumentParser(
        description="Run a Monte Carlo epidemic scenario headless.",
        epilog="Example: python scripts/run_scenario.py --scenario configs/lockdown.yaml",
    )
    parser.add_argument(
        "--config", type=str, default=str(PROJECT_ROOT / "configs" / "default.yaml"),
        help="Base config YAML (default: configs/default.yaml)",
    )
    parser.add_argument(
        "--scenario", type=str, default=None,
        help="Scenario override YAML",
    )
    parser.add_argument(
        "--set", dest="overrides", action="append", default=[],
        metavar="SECTION.KEY=VALUE",
        help="Override a single parameter (repeatable)",
    )
    parser.add_argument(
        "--seconds", type=float, default=None,
        help="Simulated seconds to run (default: until no active infection)",
    )
    parser.add_argument(
        "--replicates", type=int, default=1,
        help="Independent replicates, seeds seed..seed+n-1 (default: 1)",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print summaries as JSON instead of text",
    )
    parser.add_argument(
        "--profile", action="store_true",
        help="Print per-phase tick timing",
    )
    args = parser.parse_args()

    config = load_config(args.config, args.scenario, parse_overrides(args.overrides))
    duration_ms = None if args.seconds is None else args.seconds * 1000.0
    perf = PerfMonitor(enabled=args.profile)

    summaries = []
    base_seed = config.simulation.seed
    t0 = time.perf_counter()
    for rep in range(args.replicates):
        config.simulation.seed = base_seed + rep
        result = run_simulation(config, duration_ms=duration_ms, perf=perf)
        summary = result_summary(result)
        summary['seed'] = config.simulation.seed
        summaries.append(summary)
        if not args.json:
            print_summary(summary, f"Replicate {rep + 1}/{args.replicates} "
                                   f"(seed {config.simulation.seed})")
    elapsed = time.perf_counter() - t0

    if args.json:
        print(json.dumps(summaries, indent=2))
    else:
        if args.replicates > 1:
            attack = np.array([s['attack_rate'] for s in summaries])
            dead = np.array([s['final_counts']['dead'] for s in summaries])
            print(f"\nAcross {args.replicates} replicates: attack rate "
                  f"{attack.mean():.1%} ± {attack.std():.1%}, "
                  f"deaths {dead.mean():.1f} ± {dead.std():.1f}")
        print(f"\nWall time: {elapsed:.2f}s")

    if args.profile:
        print(perf.report())


if __name__ == "__main__":
    main()
