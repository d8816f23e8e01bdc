#!/usr/bin/env python3
"""
Fixed-step simulation clock.

Each tick advances logical time by exactly dt, whatever the wall-clock time
spent, and runs one integrator update. tick() returns only after the update has
completed for every particle, so callers may read the store right after it.
"""
import logging
import math
import time

logger = logging.getLogger("galaxy.clock")


class SimulationClock:
    def __init__(self, integrator, store, dt: float):
        if not (math.isfinite(dt) and dt > 0):
            raise ValueError(f"dt must be positive and finite, got {dt!r}")
        self.integrator = integrator
        self.store = store
        self.dt = float(dt)
        self.ticks = 0
        self.last_tick_seconds = 0.0

    @property
    def elapsed(self) -> float:
        """Simulated time since the clock started."""
        return self.ticks * self.dt

    def tick(self) -> None:
        t0 = time.perf_counter()
        self.integrator.update(self.store, self.dt)
        self.last_tick_seconds = time.perf_counter() - t0
        self.ticks += 1
        logger.debug("tick %d took %.1f ms", self.ticks, self.last_tick_seconds * 1000.0)

    def run(self, ticks: int) -> None:
        for _ in range(ticks):
            self.tick()
