#!/usr/bin/env python3
"""
Core Physics Engine for the galaxy disk simulator

Responsibilities
- Accumulate pairwise gravitational accelerations by direct summation (no tree).
- Advance every particle: full-step velocity, half-step position.
- Advance the per-star brightness counter.
- Provide small helpers for orbital speeds (circular and escape velocity).

Numerical notes
- Two softening constants are used. SOFTENING is added to the squared distance
  in the force denominator; DISTANCE_EPSILON is added to the distance after the
  square root and is used to normalise the direction vector and in the escape
  velocity. Both are kept for numerical parity with existing runs.
- Position advances by v * dt / 2 with the freshly updated velocity while the
  velocity advances by a * dt. This is not a symmetric leapfrog and must not be
  "fixed" without changing the integrator deliberately.
- Complexity: O(N^2) per tick. Rows are processed in blocks so the (rows, N)
  temporaries stay small enough to live in cache-friendly chunks.

Threading
- update() takes a snapshot of positions at tick start, then runs one unit of
  work per contiguous index slice on a ParallelFor. A slice reads the snapshot
  and the read-only masses and writes only its own rows of velocity, position
  and brightness, so no locks are needed. update() returns after every slice
  has finished.
"""

import logging
import math
from typing import Optional, TYPE_CHECKING

import numpy as np

from . import constants as C
from .parallel import ParallelFor

if TYPE_CHECKING:
    from .config import SimulationConfig
    from .particle_store import ParticleStore

logger = logging.getLogger("galaxy.physics")


class ForceIntegrator:
    """
    Brute-force N-body integrator with softened 2D gravity.

    For particle i and every j != i:

        d2     = |r_j - r_i|^2 + softening
        d'     = |r_j - r_i| + distance_epsilon
        F      = G * m_j * m_i / d2
        v_i   += (F / m_i) * (r_j - r_i) / d' * dt

    then r_i += v_i * dt / 2, and brightness_i gains brightness_step per partner,
    clamped to [0.1, 1.0].
    """

    def __init__(self, G: float = C.G, softening: float = C.SOFTENING,
                 distance_epsilon: float = C.DISTANCE_EPSILON,
                 brightness_step: float = C.BRIGHTNESS_STEP,
                 workers: Optional[int] = None,
                 track_escape_velocity: bool = False,
                 block_elements: int = C.KERNEL_BLOCK_ELEMENTS):
        self.G = float(G)
        self.softening = float(softening)
        self.distance_epsilon = float(distance_epsilon)
        self.brightness_step = float(brightness_step)
        self.track_escape_velocity = track_escape_velocity
        self.block_elements = max(1, int(block_elements))
        # Per-particle maximum escape velocity over all partners; only filled
        # when track_escape_velocity is set. Nothing downstream reads it yet.
        self.escape_velocities: Optional[np.ndarray] = None
        self._pool = ParallelFor(workers)
        logger.info("Force integrator ready with %d worker(s)", self._pool.workers)

    @classmethod
    def from_config(cls, config: "SimulationConfig") -> "ForceIntegrator":
        return cls(
            G=config.G,
            softening=config.softening,
            distance_epsilon=config.distance_epsilon,
            brightness_step=config.brightness_step,
            workers=config.workers,
            track_escape_velocity=config.track_escape_velocity,
        )

    @property
    def workers(self) -> int:
        return self._pool.workers

    def update(self, store: "ParticleStore", dt: float) -> None:
        """
        Advance every particle of the store by one step of size dt, in place.

        Blocks until all index slices are done. If a slice raises, the error is
        re-raised here and the store is left partially updated.
        """
        if not (math.isfinite(dt) and dt >= 0):
            raise ValueError(f"time step must be finite and non-negative, got {dt!r}")
        n = len(store)
        snapshot = store.positions.copy()
        if self.track_escape_velocity:
            if self.escape_velocities is None or len(self.escape_velocities) != n:
                self.escape_velocities = np.zeros(n, dtype=np.float64)
        rows_per_block = max(1, self.block_elements // n)

        def work(start: int, stop: int) -> None:
            for lo in range(start, stop, rows_per_block):
                self._integrate_block(store, snapshot, lo, min(lo + rows_per_block, stop), dt)

        self._pool.run(n, work)

    def _integrate_block(self, store: "ParticleStore", snapshot: np.ndarray,
                         lo: int, hi: int, dt: float) -> None:
        """Integrate rows [lo, hi) against every column of the snapshot."""
        masses = store.masses
        n = len(masses)
        rows = np.arange(hi - lo)
        own = lo + rows

        # Separation from each row particle to every particle: shape (rows, n)
        dx = snapshot[:, 0] - snapshot[lo:hi, 0:1]
        dy = snapshot[:, 1] - snapshot[lo:hi, 1:2]
        dist_raw_sq = dx * dx + dy * dy
        dist_sq = dist_raw_sq + self.softening
        dist = np.sqrt(dist_raw_sq)
        dist += self.distance_epsilon

        m_i = masses[lo:hi, None]
        force = self.G * masses * m_i / dist_sq
        scale = force / m_i / dist
        scale[rows, own] = 0.0  # j == i

        if self.track_escape_velocity:
            v_esc = escape_velocity(self.G, masses, dist)
            v_esc[rows, own] = 0.0
            self.escape_velocities[lo:hi] = v_esc.max(axis=1) if n > 1 else 0.0

        ax = np.einsum("ij,ij->i", scale, dx)
        ay = np.einsum("ij,ij->i", scale, dy)

        vel = store.velocities[lo:hi]
        vel[:, 0] += ax * dt
        vel[:, 1] += ay * dt
        store.positions[lo:hi] = snapshot[lo:hi] + vel * (dt / 2.0)

        accumulate_brightness(store.brightness[lo:hi], n - 1, self.brightness_step)

    def close(self) -> None:
        self._pool.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def accumulate_brightness(brightness: np.ndarray, partners: int, step: float) -> None:
    """
    Add `step` once per partner to each value, clamping to [0.1, 1.0] after
    every addition, in place.

    After the first clamped addition the value is inside the range and only
    grows, so the remaining additions only need the upper clamp.
    """
    if partners > 0:
        brightness += step
        np.clip(brightness, C.BRIGHTNESS_MIN, C.BRIGHTNESS_MAX, out=brightness)
        brightness += (partners - 1) * step
    np.clip(brightness, C.BRIGHTNESS_MIN, C.BRIGHTNESS_MAX, out=brightness)


def circular_orbit_velocity(G: float, central_mass: float, orbital_radius):
    """
    Calculate the velocity needed for a circular orbit.

    For a circular orbit, gravity provides exactly the centripetal force:
    G * M / r = v^2 / r, so v = sqrt(G * M / r).

    Accepts a scalar or an array of radii; non-positive radii give 0.0.
    """
    r = np.asarray(orbital_radius, dtype=np.float64)
    safe_r = np.where(r > 0, r, 1.0)
    v = np.where(r > 0, np.sqrt(G * central_mass / safe_r), 0.0)
    return float(v) if v.ndim == 0 else v


def escape_velocity(G: float, mass, distance):
    """
    Escape velocity v = sqrt(2 * G * M / d).

    Accepts scalars or broadcastable arrays; non-positive mass or distance
    gives 0.0.
    """
    m = np.asarray(mass, dtype=np.float64)
    d = np.asarray(distance, dtype=np.float64)
    valid = (m > 0) & (d > 0)
    safe_d = np.where(d > 0, d, 1.0)
    v = np.where(valid, np.sqrt(2.0 * G * np.maximum(m, 0.0) / safe_d), 0.0)
    return float(v) if v.ndim == 0 else v
