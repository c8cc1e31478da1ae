"""Agent movement and contact detection.

Movement is a velocity random walk gated by the mobility factor m ∈ [0, 1]:
  - with probability m an agent's velocity gets a uniform kick
        dv ~ U(-0.5, 0.5) × PERTURBATION_SCALE × m   (per component)
  - a kicked agent's speed is then clamped to max_speed(m) = 0.2 + 1.8 m;
    agents that are not kicked keep their velocity
  - position += velocity × m

Boundary: reflecting walls. Crossing an edge negates that velocity
component and clamps the position to [margin, side − margin].

Quarantined and dead agents are pinned: they never move, never get
perturbed and are never displaced by contact separation.

Contact detection is an all-pairs scan in (i < j) row-major order. Each
pair closer than CONTACT_DISTANCE is pushed apart symmetrically along the
line joining them until exactly CONTACT_DISTANCE apart, then handed to the
caller's contact callback. Pairs later in the scan see the positions as
updated by earlier separations.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from .types import PINNED_STATUSES, status_mask

# ═══════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

CONTACT_DISTANCE = 10.0     # spatial units
BOUNDARY_MARGIN = 5.0       # spatial units
PERTURBATION_SCALE = 0.5
MIN_SPEED_LIMIT = 0.2
SPEED_LIMIT_SLOPE = 1.8


def max_speed(mobility: float) -> float:
    """Speed cap for a given mobility factor (0.2 at m=0, 2.0 at m=1)."""
    return MIN_SPEED_LIMIT + SPEED_LIMIT_SLOPE * mobility


def pin_velocity(agents: np.ndarray, idx) -> None:
    """Zero the velocity of the given agents (entering QUARANTINED/DEAD)."""
    agents['vx'][idx] = 0.0
    agents['vy'][idx] = 0.0


# ═══════════════════════════════════════════════════════════════════════
# BOUNDARY REFLECTION
# ═══════════════════════════════════════════════════════════════════════

def _reflect(pos: np.ndarray, vel: np.ndarray, side: float,
             margin: float = BOUNDARY_MARGIN) -> None:
    """Reflect off the walls of [margin, side − margin] (in-place).

    Unlike a modular fold this clamps: an agent that overshoots stops at the
    wall and heads back with the offending velocity component negated.
    """
    out = (pos < margin) | (pos > side - margin)
    vel[out] *= -1.0
    np.clip(pos, margin, side - margin, out=pos)


# ═══════════════════════════════════════════════════════════════════════
# RANDOM WALK
# ═══════════════════════════════════════════════════════════════════════

def update_movement(
    agents: np.ndarray,
    mobility: float,
    width: float,
    height: float,
    rng: np.random.Generator,
) -> None:
    """Move all mobile agents one tick (in-place).

    One gate draw and two kick components are taken for every agent,
    pinned or not, so the random stream consumed per tick depends only on
    the population size.

    Args:
        agents: Structured array with AGENT_DTYPE fields.
        mobility: Mobility factor in [0, 1].
        width: Arena width.
        height: Arena height.
        rng: NumPy random generator.
    """
    n = len(agents)
    if n == 0:
        return

    gate = rng.random(n)
    kicks = (rng.random((n, 2)) - 0.5) * PERTURBATION_SCALE * mobility

    mobile = ~status_mask(agents, PINNED_STATUSES)
    if not mobile.any():
        return
    idx = np.where(mobile)[0]

    vx = agents['vx'][idx]
    vy = agents['vy'][idx]

    # 1. Velocity perturbation, gated by mobility
    kicked = gate[idx] < mobility
    vx[kicked] += kicks[idx[kicked], 0]
    vy[kicked] += kicks[idx[kicked], 1]

    # 2. Speed limit, only for agents kicked this tick
    limit = max_speed(mobility)
    speed = np.hypot(vx, vy)
    fast = kicked & (speed > limit)
    vx[fast] *= limit / speed[fast]
    vy[fast] *= limit / speed[fast]

    # 3. Displacement scaled by mobility (0 => stop)
    x = agents['x'][idx] + vx * mobility
    y = agents['y'][idx] + vy * mobility

    # 4. Walls
    _reflect(x, vx, width)
    _reflect(y, vy, height)

    agents['x'][idx] = x
    agents['y'][idx] = y
    agents['vx'][idx] = vx
    agents['vy'][idx] = vy


# ═══════════════════════════════════════════════════════════════════════
# CONTACT DETECTION & SEPARATION
# ═══════════════════════════════════════════════════════════════════════

def _separate(agents: np.ndarray, i: int, j: int, distance: float,
              pinned: np.ndarray) -> None:
    """Push agents i and j apart to exactly CONTACT_DISTANCE."""
    dx = agents['x'][i] - agents['x'][j]
    dy = agents['y'][i] - agents['y'][j]
    angle = np.arctan2(dy, dx)   # coincident agents separate along +x
    overlap = CONTACT_DISTANCE - distance
    ux, uy = np.cos(angle), np.sin(angle)

    if pinned[i] and pinned[j]:
        return
    if pinned[j]:
        share_i, share_j = overlap, 0.0
    elif pinned[i]:
        share_i, share_j = 0.0, overlap
    else:
        share_i = share_j = overlap / 2.0

    agents['x'][i] += ux * share_i
    agents['y'][i] += uy * share_i
    agents['x'][j] -= ux * share_j
    agents['y'][j] -= uy * share_j


def resolve_contacts(
    agents: np.ndarray,
    on_contact: Callable[[int, int], None],
) -> int:
    """Scan all unordered pairs, separate and report every contact.

    Equivalent to the nested loop
        for i in range(n): for j in range(i + 1, n): ...
    but each row's distances are computed vectorised; after every hit the
    remainder of the row is re-measured from agent i's new position.

    Args:
        agents: Structured array with AGENT_DTYPE fields (positions mutated).
        on_contact: Called as on_contact(i, j) after each pair is separated.
            It may change statuses (e.g. infection); the pinned set is fixed
            at the start of the scan.

    Returns:
        Number of contact pairs found.
    """
    n = len(agents)
    if n < 2:
        return 0

    pinned = status_mask(agents, PINNED_STATUSES)
    xs = agents['x']
    ys = agents['y']
    n_contacts = 0

    for i in range(n - 1):
        start = i + 1
        while start < n:
            d = np.hypot(xs[i] - xs[start:], ys[i] - ys[start:])
            hits = np.flatnonzero(d < CONTACT_DISTANCE)
            if hits.size == 0:
                break
            j = start + int(hits[0])
            _separate(agents, i, j, float(d[hits[0]]), pinned)
            on_contact(i, j)
            n_contacts += 1
            start = j + 1

    return n_contacts
