#!/usr/bin/env python3
"""
Shared constants for the galaxy disk simulator (simulation units).

Positions are in simulation-space units centred on the origin, time in
simulation seconds. The values are fixed for a run; SimulationConfig gathers
them and the command line may override a few of them at startup only.
"""

# Physical constants
G = 6.674e-11  # gravitational constant in simulation units
CENTRAL_MASS = 1.0e13  # dominant mass at index 0

# Softening: SOFTENING is added to the squared distance, DISTANCE_EPSILON to the
# distance after the square root. Both are needed for numerical parity.
SOFTENING = 1.0e-2
DISTANCE_EPSILON = 1.0e-4

# Integration
DT = 0.5  # logical seconds per tick
PARTICLE_COUNT = 25_000

# Initial conditions
ORBIT_RADIUS_RANGE = (20.0, 380.0)
MIN_ORBIT_RADIUS = 1.0  # radii below this are re-sampled
PARTICLE_MASS_RANGE = (1.0e3, 1.0e5)
INITIAL_BRIGHTNESS_RANGE = (0.1, 0.5)
OPACITY_RANGE = (0.15, 1.0)

# Visual accumulator
BRIGHTNESS_MIN = 0.1
BRIGHTNESS_MAX = 1.0
BRIGHTNESS_STEP = 1.0e-6  # added once per pairwise interaction

# Kernel sizing: upper bound on elements in one (rows, n) temporary array
KERNEL_BLOCK_ELEMENTS = 1 << 18

# Rendering (viewport)
VIEW_WIDTH = 1100
VIEW_HEIGHT = 800
BACKGROUND_COLOR = (4, 5, 10)
STAR_COLOR = (255, 236, 210)
CENTRAL_COLOR = (255, 204, 0)
TARGET_FPS = 60

# Camera zoom bounds (pixels per simulation unit)
DEFAULT_ZOOM = 1.0
MIN_ZOOM = 0.05
MAX_ZOOM = 200.0
