"""mc_epidemic: Monte Carlo agent-based model of contagion in a mobile population.

A tick-driven, individual-based simulation coupling:
  - Random-walk movement in a walled arena with contact de-overlap
  - SEIQRD-style disease states (exposed, symptomatic / asymptomatic,
    quarantined, recovered, dead) with per-agent stage durations
  - Pairwise Monte Carlo transmission on contact (masks, asymptomatic spread)
  - Age-dependent mortality with healthcare-capacity strain
  - Live R₀ / Rₜ estimates from completed infectious episodes

Typical use:
    from mc_epidemic.config import default_config
    from mc_epidemic.model import initialize, advance, snapshot

    state = initialize(default_config())
    for _ in range(600):
        advance(state, 16.0)
    view = snapshot(state)
"""

__version__ = "0.1.0"
