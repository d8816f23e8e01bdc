#!/usr/bin/env python3
"""
Data models for the galaxy disk simulator.

Star is the primary species and the record type exposed by ParticleStore for
indexed access. DarkMatter has the same kinematic shape without visual
attributes; no force law in this version drives it and ParticleStore never
holds it.

Units and usage
- position and velocity are 2D tuples in simulation units.
- brightness is a visual accumulator kept in [0.1, 1.0]; opacity in [0, 1] is
  fixed at creation.
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass
class Star:
    """
    A luminous point mass.

    Fields:
    - position: 2D position (x, y)
    - velocity: 2D velocity (vx, vy)
    - mass: positive mass
    - brightness: pulsing visual counter, clamped to [0.1, 1.0]
    - opacity: per-star opacity in [0, 1], immutable once stored
    """
    position: Tuple[float, float]
    velocity: Tuple[float, float]
    mass: float
    brightness: float = 0.1
    opacity: float = 1.0


@dataclass
class DarkMatter:
    """Inert secondary species: kinematics only, not coupled to Star."""
    position: Tuple[float, float]
    velocity: Tuple[float, float]
    mass: float
