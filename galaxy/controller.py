#!/usr/bin/env python3
"""
Simulation controller shared by the renderer thread and the control panel.

The renderer thread is the only thread that ticks the clock and reads the
particle store, so ticks and frames never overlap. The control panel runs on
the main thread and only flips flags or reads statistics; those fields are
guarded by a re-entrant lock. A tick is never run while holding the lock, so
the panel stays responsive during long ticks.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .clock import SimulationClock
from .config import SimulationConfig
from .particle_store import ParticleStore
from .physics import ForceIntegrator

logger = logging.getLogger("galaxy.controller")


@dataclass
class SimulationStats:
    """Point-in-time view of the simulation for display."""
    ticks: int
    sim_time: float
    last_tick_ms: float
    particle_count: int
    playing: bool
    fps: float


class SimulationController:
    """
    Owns the store, integrator and clock for one run.
    Flag and statistics access is thread-safe.
    """

    def __init__(self, config: SimulationConfig,
                 store: Optional[ParticleStore] = None,
                 integrator: Optional[ForceIntegrator] = None):
        self.lock = threading.RLock()
        self.config = config
        self.store = store if store is not None else ParticleStore.generate(config)
        self.integrator = integrator if integrator is not None else ForceIntegrator.from_config(config)
        self.clock = SimulationClock(self.integrator, self.store, config.dt)
        self.running = True  # app running
        self.playing = True  # simulation running
        self.fps = 0.0
        self._pending_steps = 0

    def toggle_play(self) -> None:
        with self.lock:
            self.playing = not self.playing

    def set_playing(self, playing: bool) -> None:
        with self.lock:
            self.playing = bool(playing)

    def step_once(self) -> None:
        """Queue a single tick; honoured even while paused."""
        with self.lock:
            self._pending_steps += 1

    def stop(self) -> None:
        with self.lock:
            self.running = False

    def advance(self) -> bool:
        """
        Run one tick if playing or a single step is queued.

        Called from the renderer thread between frames. Returns True if a tick
        ran. Quit requests are observed here, never mid-tick.
        """
        with self.lock:
            if not self.running:
                return False
            if self._pending_steps > 0:
                self._pending_steps -= 1
            elif not self.playing:
                return False
        self.clock.tick()
        return True

    def set_fps(self, fps: float) -> None:
        with self.lock:
            self.fps = float(fps)

    def stats(self) -> SimulationStats:
        with self.lock:
            return SimulationStats(
                ticks=self.clock.ticks,
                sim_time=self.clock.elapsed,
                last_tick_ms=self.clock.last_tick_seconds * 1000.0,
                particle_count=len(self.store),
                playing=self.playing,
                fps=self.fps,
            )

    def close(self) -> None:
        self.stop()
        self.integrator.close()
