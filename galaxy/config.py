#!/usr/bin/env python3
"""
Run configuration.

SimulationConfig bundles the constants from galaxy.constants for one run. It is
built once at startup (optionally with command-line overrides) and is frozen;
nothing reconfigures a running simulation.
"""
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from . import constants as C


def _check_range(name: str, rng: Tuple[float, float], lo: float = -math.inf, hi: float = math.inf) -> None:
    a, b = rng
    if not (math.isfinite(a) and math.isfinite(b)) or a > b:
        raise ValueError(f"{name} must be a finite (low, high) pair, got {rng!r}")
    if a < lo or b > hi:
        raise ValueError(f"{name} must lie within [{lo}, {hi}], got {rng!r}")


@dataclass(frozen=True)
class SimulationConfig:
    """Container for the fixed parameters of one simulation run."""
    particle_count: int = C.PARTICLE_COUNT
    dt: float = C.DT
    G: float = C.G
    central_mass: float = C.CENTRAL_MASS
    softening: float = C.SOFTENING
    distance_epsilon: float = C.DISTANCE_EPSILON
    brightness_step: float = C.BRIGHTNESS_STEP
    center: Tuple[float, float] = (0.0, 0.0)
    radius_range: Tuple[float, float] = C.ORBIT_RADIUS_RANGE
    min_radius: float = C.MIN_ORBIT_RADIUS
    mass_range: Tuple[float, float] = C.PARTICLE_MASS_RANGE
    brightness_range: Tuple[float, float] = C.INITIAL_BRIGHTNESS_RANGE
    opacity_range: Tuple[float, float] = C.OPACITY_RANGE
    workers: Optional[int] = None  # None: one per CPU
    seed: Optional[int] = None
    track_escape_velocity: bool = False

    def __post_init__(self):
        if self.particle_count < 1:
            raise ValueError("particle_count must be at least 1 (the central mass)")
        if not (math.isfinite(self.dt) and self.dt > 0):
            raise ValueError(f"dt must be positive and finite, got {self.dt!r}")
        if not (self.central_mass > 0 and math.isfinite(self.central_mass)):
            raise ValueError("central_mass must be positive and finite")
        if self.softening <= 0 or self.distance_epsilon <= 0:
            raise ValueError("softening and distance_epsilon must be positive")
        if self.brightness_step < 0:
            raise ValueError("brightness_step must be non-negative")
        if self.workers is not None and self.workers < 1:
            raise ValueError("workers must be None or >= 1")
        if self.min_radius <= 0:
            raise ValueError("min_radius must be positive")
        _check_range("radius_range", self.radius_range, lo=0.0)
        if self.radius_range[1] <= self.min_radius:
            raise ValueError("radius_range must extend above min_radius")
        _check_range("mass_range", self.mass_range)
        if self.mass_range[0] <= 0:
            raise ValueError("particle masses must be positive")
        _check_range("brightness_range", self.brightness_range, C.BRIGHTNESS_MIN, C.BRIGHTNESS_MAX)
        _check_range("opacity_range", self.opacity_range, 0.0, 1.0)
