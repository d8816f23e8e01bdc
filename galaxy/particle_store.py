#!/usr/bin/env python3
"""
Particle storage for the galaxy disk simulator.

ParticleStore keeps the state of n stars as contiguous numpy buffers
(structure of arrays) so the force kernel and the renderer can traverse them in
bulk. Index 0 holds the dominant central mass by convention.

Lifecycle
- Created once at startup, either by the initial-condition generator
  (ParticleStore.generate) or from explicit Star records (ParticleStore.from_stars).
- n is fixed for the lifetime of the store; there is no insertion or removal.
- The ForceIntegrator mutates positions, velocities and brightness in place each
  tick. masses and opacity are read-only buffers after construction.
- The renderer only reads.
"""
import logging
import math
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional, Tuple

import numpy as np

from .config import SimulationConfig
from .constants import BRIGHTNESS_MAX, BRIGHTNESS_MIN
from .data_models import Star
from .physics import circular_orbit_velocity

logger = logging.getLogger("galaxy.store")


class ParticleStoreAllocationError(MemoryError):
    """The particle buffers could not be allocated; the simulation cannot start."""


@contextmanager
def _allocation_guard(count: int):
    try:
        yield
    except MemoryError as exc:
        logger.error("Unable to allocate particle buffers for %d particles", count)
        raise ParticleStoreAllocationError(
            f"cannot allocate particle buffers for {count} particles"
        ) from exc


class ParticleStore:
    """
    Fixed-size collection of Star records backed by numpy arrays.

    Attributes (all float64):
        positions: (n, 2) simulation-space coordinates.
        velocities: (n, 2) velocity vectors.
        masses: (n,) positive masses, read-only.
        brightness: (n,) visual accumulator in [0.1, 1.0].
        opacity: (n,) values in [0, 1], read-only.
    """

    def __init__(self, positions, velocities, masses, brightness, opacity):
        count = len(masses)
        with _allocation_guard(count):
            self.positions = np.array(positions, dtype=np.float64).reshape(count, 2)
            self.velocities = np.array(velocities, dtype=np.float64).reshape(count, 2)
            self.masses = np.array(masses, dtype=np.float64).reshape(count)
            self.brightness = np.array(brightness, dtype=np.float64).reshape(count)
            self.opacity = np.array(opacity, dtype=np.float64).reshape(count)
        self._validate()
        self.masses.flags.writeable = False
        self.opacity.flags.writeable = False

    def _validate(self) -> None:
        if len(self.masses) < 1:
            raise ValueError("a particle store needs at least one particle")
        if not np.all(np.isfinite(self.masses)) or np.any(self.masses <= 0):
            raise ValueError("every particle mass must be positive and finite")
        if not (np.all(np.isfinite(self.positions)) and np.all(np.isfinite(self.velocities))):
            raise ValueError("positions and velocities must be finite")
        if np.any(self.brightness < BRIGHTNESS_MIN) or np.any(self.brightness > BRIGHTNESS_MAX):
            raise ValueError(f"brightness must lie within [{BRIGHTNESS_MIN}, {BRIGHTNESS_MAX}]")
        if np.any(self.opacity < 0.0) or np.any(self.opacity > 1.0):
            raise ValueError("opacity must lie within [0, 1]")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_stars(cls, stars: Iterable[Star]) -> "ParticleStore":
        """Build a store from explicit Star records, in order."""
        stars = list(stars)
        return cls(
            positions=[s.position for s in stars],
            velocities=[s.velocity for s in stars],
            masses=[s.mass for s in stars],
            brightness=[s.brightness for s in stars],
            opacity=[s.opacity for s in stars],
        )

    @classmethod
    def generate(cls, config: SimulationConfig,
                 rng: Optional[np.random.Generator] = None) -> "ParticleStore":
        """
        Populate a differentially rotating disk around a central mass.

        Slot 0 is the central mass at config.center with zero velocity. Every
        other star gets a random radius and angle, the circular-orbit speed
        sqrt(G * M / r) perpendicular to its radius vector (counter-clockwise),
        and a mass drawn uniformly from config.mass_range. Radii below
        config.min_radius are re-sampled.
        """
        if rng is None:
            rng = np.random.default_rng(config.seed)
        n = config.particle_count
        orbiting = n - 1

        with _allocation_guard(n):
            radii = sample_radii(rng, orbiting, config.radius_range, config.min_radius)
            angles = rng.uniform(0.0, 2.0 * math.pi, orbiting)
            speeds = circular_orbit_velocity(config.G, config.central_mass, radii)

            cos_a = np.cos(angles)
            sin_a = np.sin(angles)
            positions = np.empty((n, 2), dtype=np.float64)
            velocities = np.empty((n, 2), dtype=np.float64)
            masses = np.empty(n, dtype=np.float64)
            brightness = np.empty(n, dtype=np.float64)
            opacity = np.empty(n, dtype=np.float64)

            cx, cy = config.center
            positions[0] = (cx, cy)
            velocities[0] = (0.0, 0.0)
            masses[0] = config.central_mass
            brightness[0] = BRIGHTNESS_MAX
            opacity[0] = 1.0

            positions[1:, 0] = cx + radii * cos_a
            positions[1:, 1] = cy + radii * sin_a
            velocities[1:, 0] = -speeds * sin_a
            velocities[1:, 1] = speeds * cos_a
            masses[1:] = rng.uniform(config.mass_range[0], config.mass_range[1], orbiting)
            brightness[1:] = rng.uniform(config.brightness_range[0], config.brightness_range[1], orbiting)
            opacity[1:] = rng.uniform(config.opacity_range[0], config.opacity_range[1], orbiting)

        logger.info(
            "Generated %d particles (central mass %.3g, radii %.1f..%.1f)",
            n, config.central_mass, config.radius_range[0], config.radius_range[1],
        )
        return cls(positions, velocities, masses, brightness, opacity)

    def copy(self) -> "ParticleStore":
        return ParticleStore(self.positions, self.velocities, self.masses,
                             self.brightness, self.opacity)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.masses)

    @property
    def count(self) -> int:
        return len(self.masses)

    def __getitem__(self, index: int) -> Star:
        x, y = self.positions[index]
        vx, vy = self.velocities[index]
        return Star(
            position=(float(x), float(y)),
            velocity=(float(vx), float(vy)),
            mass=float(self.masses[index]),
            brightness=float(self.brightness[index]),
            opacity=float(self.opacity[index]),
        )

    def __setitem__(self, index: int, star: Star) -> None:
        """Write position, velocity and brightness of one slot. Mass and opacity are fixed."""
        if star.mass != self.masses[index] or star.opacity != self.opacity[index]:
            raise ValueError("mass and opacity are fixed once a particle is stored")
        if not BRIGHTNESS_MIN <= star.brightness <= BRIGHTNESS_MAX:
            raise ValueError(f"brightness must lie within [{BRIGHTNESS_MIN}, {BRIGHTNESS_MAX}]")
        if not all(math.isfinite(v) for v in (*star.position, *star.velocity)):
            raise ValueError("positions and velocities must be finite")
        self.positions[index] = star.position
        self.velocities[index] = star.velocity
        self.brightness[index] = star.brightness

    def __iter__(self) -> Iterator[Star]:
        for i in range(len(self)):
            yield self[i]

    def view(self) -> Iterator[Tuple[float, float, float, float]]:
        """Yield (x, y, brightness, opacity) per particle for the renderer."""
        for (x, y), b, o in zip(self.positions, self.brightness, self.opacity):
            yield float(x), float(y), float(b), float(o)


def sample_radii(rng: np.random.Generator, count: int,
                 radius_range: Tuple[float, float], min_radius: float) -> np.ndarray:
    """Draw radii uniformly from radius_range, re-sampling any below min_radius."""
    lo, hi = radius_range
    radii = rng.uniform(lo, hi, count)
    low = radii < min_radius
    while np.any(low):
        radii[low] = rng.uniform(lo, hi, int(np.count_nonzero(low)))
        low = radii < min_radius
    return radii
