#!/usr/bin/env python3
"""
Galaxy disk simulator application entry point and UI/renderer coordination.

What this module does
- Builds the run configuration from constants and command-line overrides.
- Starts two event loops: a Pygame rendering thread (viewport) and the Dear PyGui
  control panel (running on the main thread).
- In headless mode, runs a fixed number of ticks without any window and logs
  timings.

Threading model
- PygameRenderer runs in a background thread and performs, in order: input
  handling, at most one simulation tick, drawing. Ticks and frames therefore
  never overlap and a frame always shows a fully updated store.
- The UI class runs in the main thread via Dear PyGui. It flips play/pause and
  single-step flags on the SimulationController and shows statistics; those
  accesses are lock-protected.

Running
1) Install the package: `pip install -e .`
2) Run: `galaxy-sim` (or `python galaxy_sim.py`), `galaxy-sim --headless --ticks 20`
   for a benchmark run without windows.
"""

import argparse
import logging
import sys
import threading
import time
from typing import List, Optional

import numpy as np

# GUI and Rendering libs
import pygame
from pygame import gfxdraw
import dearpygui.dearpygui as dpg

from galaxy.camera import Camera2D
from galaxy.config import SimulationConfig
from galaxy.constants import (
    BACKGROUND_COLOR,
    CENTRAL_COLOR,
    STAR_COLOR,
    TARGET_FPS,
    VIEW_HEIGHT,
    VIEW_WIDTH,
)
from galaxy.controller import SimulationController
from galaxy.particle_store import ParticleStoreAllocationError

logger = logging.getLogger("galaxy")


def setup_logging(log_level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


# ============================================================
# Pygame Renderer Thread
# ============================================================

class PygameRenderer(threading.Thread):
    """
    Pygame loop: ticks the simulation and draws the stars.
    Handles camera panning (drag, arrow keys) and zoom (mouse wheel).
    """
    def __init__(self, sim: SimulationController):
        super().__init__(daemon=True)
        self.sim = sim
        self.camera = Camera2D()
        self.surface = None
        self.clock = None
        self.dragging = False
        self.drag_start_screen = (0, 0)
        self.pan_speed_keys = 600  # pixels per second
        self.running = True
        self._star_color = np.array(STAR_COLOR, dtype=np.float64)

    def reset_view(self):
        r_max = self.sim.config.radius_range[1]
        self.camera.fit_extent(r_max)

    def run(self):
        pygame.init()
        pygame.display.set_caption("Galaxy Simulator - Viewport")
        self.surface = pygame.display.set_mode((VIEW_WIDTH, VIEW_HEIGHT), pygame.RESIZABLE)
        self.camera.set_viewport_size(VIEW_WIDTH, VIEW_HEIGHT)
        self.clock = pygame.time.Clock()
        self.reset_view()

        last_time = time.perf_counter()
        try:
            while self.running and self.sim.running:
                now = time.perf_counter()
                real_dt = now - last_time
                last_time = now

                self.handle_events(real_dt)
                self.sim.advance()
                self.draw()

                self.clock.tick(TARGET_FPS)
                self.sim.set_fps(self.clock.get_fps())
        except Exception:
            # A failed tick leaves the store partially updated; stop instead of drawing it.
            logger.exception("Simulation loop failed; stopping")
            self.sim.stop()
        finally:
            pygame.quit()

    def handle_events(self, real_dt):
        keys = pygame.key.get_pressed()
        if keys[pygame.K_LEFT]:
            self.camera.pan_pixels(self.pan_speed_keys * real_dt, 0)
        if keys[pygame.K_RIGHT]:
            self.camera.pan_pixels(-self.pan_speed_keys * real_dt, 0)
        if keys[pygame.K_UP]:
            self.camera.pan_pixels(0, self.pan_speed_keys * real_dt)
        if keys[pygame.K_DOWN]:
            self.camera.pan_pixels(0, -self.pan_speed_keys * real_dt)

        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.sim.stop()
                self.running = False

            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.sim.stop()
                    self.running = False
                elif event.key == pygame.K_SPACE:
                    self.sim.toggle_play()
                elif event.key == pygame.K_r:
                    self.reset_view()

            elif event.type == pygame.VIDEORESIZE:
                self.surface = pygame.display.set_mode((event.w, event.h), pygame.RESIZABLE)
                self.camera.set_viewport_size(event.w, event.h)

            elif event.type == pygame.MOUSEWHEEL:
                factor = 1.1 if event.y > 0 else 1.0 / 1.1
                self.camera.zoom(factor, pygame.mouse.get_pos())

            elif event.type == pygame.MOUSEBUTTONDOWN:
                if event.button in (1, 2, 3):
                    self.dragging = True
                    self.drag_start_screen = pygame.mouse.get_pos()

            elif event.type == pygame.MOUSEBUTTONUP:
                if event.button in (1, 2, 3):
                    self.dragging = False

            elif event.type == pygame.MOUSEMOTION:
                if self.dragging:
                    mouse = pygame.mouse.get_pos()
                    dx = mouse[0] - self.drag_start_screen[0]
                    dy = mouse[1] - self.drag_start_screen[1]
                    self.camera.pan_pixels(dx, dy)
                    self.drag_start_screen = mouse

    def draw_stars(self, surf):
        """Plot every orbiting star as one pixel with intensity brightness * opacity."""
        store = self.sim.store
        positions = store.positions[1:]
        finite = np.isfinite(positions).all(axis=1)
        screen = self.camera.world_to_screen_array(positions[finite])
        w, h = surf.get_size()
        inside = (screen[:, 0] >= 0) & (screen[:, 0] < w) & (screen[:, 1] >= 0) & (screen[:, 1] < h)
        if not inside.any():
            return
        intensity = (store.brightness[1:] * store.opacity[1:])[finite][inside]
        colors = np.outer(intensity, self._star_color).astype(np.uint8)
        xs, ys = screen[inside, 0], screen[inside, 1]

        pixels = pygame.surfarray.pixels3d(surf)
        pixels[xs, ys] = np.maximum(pixels[xs, ys], colors)
        del pixels  # unlock the surface

    def draw(self):
        surf = self.surface
        surf.fill(BACKGROUND_COLOR)
        self.draw_stars(surf)

        # Central mass
        cx, cy = self.sim.store.positions[0]
        if np.isfinite(cx) and np.isfinite(cy):
            sx, sy = self.camera.world_to_screen((cx, cy))
            vis_r = max(2, min(12, int(3 * self.camera.zoom_level)))
            if -vis_r <= sx <= surf.get_width() + vis_r and -vis_r <= sy <= surf.get_height() + vis_r:
                gfxdraw.filled_circle(surf, sx, sy, vis_r, CENTRAL_COLOR)

        stats = self.sim.stats()
        draw_text(surf, "Drag: pan | Wheel: zoom | Arrows: pan | Space: Pause/Play | R: reset view | Esc: quit",
                  10, 10, (200, 200, 200))
        draw_text(surf, f"Tick {stats.ticks}  t={stats.sim_time:.1f}  {stats.last_tick_ms:.0f} ms/tick  "
                        f"{stats.fps:.0f} fps  [{'Playing' if stats.playing else 'Paused'}]",
                  10, 30, (200, 200, 200))

        pygame.display.flip()


_cached_font = None


def draw_text(surface, text, x, y, color):
    global _cached_font
    if not pygame.font.get_init():
        pygame.font.init()
    if _cached_font is None:
        _cached_font = pygame.font.SysFont("consolas", 16)
    img = _cached_font.render(text, True, color)
    surface.blit(img, (x, y))


# ============================================================
# Dear PyGui UI
# ============================================================

class UI:
    """
    Dear PyGui control panel: play/pause, single step, view reset, statistics.
    """
    def __init__(self, sim: SimulationController, renderer: PygameRenderer):
        self.sim = sim
        self.renderer = renderer
        self.status_msg_id = None
        self.stats_ids = {}
        self._build_ui()
        self._schedule_sync()

    def _schedule_sync(self):
        """Reschedule the periodic sync callback (~every 6 frames)."""
        dpg.set_frame_callback(dpg.get_frame_count() + 6, self._sync_ui_with_sim)

    def _build_ui(self):
        dpg.create_context()
        dpg.create_viewport(title='Galaxy Simulator - Controls', width=380, height=300)

        with dpg.window(label="Controls", width=360, height=280, pos=(10, 10), tag="main_window"):
            dpg.add_text("Simulation Controls")
            with dpg.group(horizontal=True):
                dpg.add_button(label="Play/Pause", callback=self._toggle_play)
                dpg.add_button(label="Step", callback=self._step_once)
                dpg.add_button(label="Reset view", callback=self.renderer.reset_view)
            dpg.add_separator()
            cfg = self.sim.config
            dpg.add_text(f"Particles: {len(self.sim.store)}")
            dpg.add_text(f"dt: {cfg.dt}   workers: {self.sim.integrator.workers}")
            for key in ("ticks", "sim_time", "tick_ms", "fps"):
                self.stats_ids[key] = dpg.add_text("")
            dpg.add_separator()
            self.status_msg_id = dpg.add_text("", color=(180, 220, 180))

        dpg.setup_dearpygui()
        dpg.show_viewport()
        dpg.set_primary_window("main_window", True)

    def _set_status(self, msg: str):
        dpg.set_value(self.status_msg_id, msg)

    def _toggle_play(self):
        self.sim.toggle_play()
        state = "Playing" if self.sim.stats().playing else "Paused"
        self._set_status(f"Simulation {state}.")

    def _step_once(self):
        self.sim.step_once()
        self._set_status("Queued one tick.")

    def _sync_ui_with_sim(self):
        if not self.sim.running:
            dpg.stop_dearpygui()
            return
        stats = self.sim.stats()
        dpg.set_value(self.stats_ids["ticks"], f"Tick: {stats.ticks}")
        dpg.set_value(self.stats_ids["sim_time"], f"Simulated time: {stats.sim_time:.2f}")
        dpg.set_value(self.stats_ids["tick_ms"], f"Last tick: {stats.last_tick_ms:.1f} ms")
        dpg.set_value(self.stats_ids["fps"], f"Frame rate: {stats.fps:.1f} fps")
        self._schedule_sync()


# ============================================================
# Application Entry
# ============================================================

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Brute-force N-body galaxy disk simulator")
    parser.add_argument("--particles", type=int, default=None, help="number of particles, central mass included")
    parser.add_argument("--dt", type=float, default=None, help="simulation time per tick")
    parser.add_argument("--workers", type=int, default=None, help="kernel threads (default: one per CPU)")
    parser.add_argument("--seed", type=int, default=None, help="seed for the initial conditions")
    parser.add_argument("--headless", action="store_true", help="run without windows")
    parser.add_argument("--ticks", type=int, default=10, help="ticks to run in headless mode")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SimulationConfig:
    overrides = {}
    if args.particles is not None:
        overrides["particle_count"] = args.particles
    if args.dt is not None:
        overrides["dt"] = args.dt
    if args.workers is not None:
        overrides["workers"] = args.workers
    if args.seed is not None:
        overrides["seed"] = args.seed
    return SimulationConfig(**overrides)


def run_headless(sim: SimulationController, ticks: int) -> None:
    logger.info("Running %d ticks headless with %d particles", ticks, len(sim.store))
    durations = []
    for _ in range(ticks):
        sim.advance()
        durations.append(sim.clock.last_tick_seconds)
    if durations:
        logger.info(
            "Done: %d ticks, simulated time %.2f, mean %.1f ms/tick, max %.1f ms/tick",
            sim.clock.ticks, sim.clock.elapsed,
            1000.0 * sum(durations) / len(durations), 1000.0 * max(durations),
        )


def run_interactive(sim: SimulationController) -> None:
    renderer = PygameRenderer(sim)
    renderer.start()

    ui = UI(sim, renderer)

    with dpg.handler_registry():
        def key_down(sender, app_data):
            if app_data == dpg.mvKey_Spacebar:
                ui._toggle_play()
        dpg.add_key_press_handler(callback=key_down)

    try:
        dpg.start_dearpygui()
    finally:
        sim.stop()
        renderer.running = False
        renderer.join(timeout=2.0)
        dpg.destroy_context()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    try:
        config = build_config(args)
        sim = SimulationController(config)
    except ParticleStoreAllocationError as exc:
        logger.error("Cannot start simulation: %s", exc)
        return 1
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    try:
        if args.headless:
            run_headless(sim, args.ticks)
        else:
            run_interactive(sim)
    finally:
        sim.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
