#!/usr/bin/env python3
"""
Camera utilities for 2D simulation-to-screen transforms.

The camera is renderer state, not part of the particle data: a pan offset in
pixels and a zoom scalar in pixels per simulation unit. The simulation origin
sits at the viewport centre plus the pan offset.
"""
import math
from typing import Optional, Tuple

import numpy as np

from .constants import DEFAULT_ZOOM, MAX_ZOOM, MIN_ZOOM, VIEW_HEIGHT, VIEW_WIDTH


def clamp(x: float, a: float, b: float) -> float:
    """Clamp x to the inclusive range [a, b]."""
    return max(a, min(b, x))


class Camera2D:
    """
    Maps simulation coordinates to screen pixels.

    Attributes:
        offset: pan offset in pixels, as a mutable [x, y] list.
        zoom_level: pixels per simulation unit.
        viewport_size: (width, height) in pixels.
    """

    def __init__(self, offset=(0.0, 0.0), zoom=DEFAULT_ZOOM):
        self.offset = [float(offset[0]), float(offset[1])]
        self.zoom_level = clamp(float(zoom), MIN_ZOOM, MAX_ZOOM)
        self.viewport_size = (VIEW_WIDTH, VIEW_HEIGHT)

    def set_viewport_size(self, w: int, h: int) -> None:
        self.viewport_size = (w, h)

    def _origin(self) -> Tuple[float, float]:
        return (self.viewport_size[0] / 2 + self.offset[0],
                self.viewport_size[1] / 2 + self.offset[1])

    def world_to_screen(self, pos: Tuple[float, float]) -> Tuple[int, int]:
        ox, oy = self._origin()
        return (math.floor(pos[0] * self.zoom_level + ox), math.floor(pos[1] * self.zoom_level + oy))

    def world_to_screen_array(self, positions: np.ndarray) -> np.ndarray:
        """Vectorised world_to_screen for an (n, 2) array; returns int pixel coordinates."""
        ox, oy = self._origin()
        screen = positions * self.zoom_level
        screen[:, 0] += ox
        screen[:, 1] += oy
        return np.floor(screen).astype(np.int64)

    def screen_to_world(self, screen: Tuple[float, float]) -> Tuple[float, float]:
        ox, oy = self._origin()
        return ((screen[0] - ox) / self.zoom_level, (screen[1] - oy) / self.zoom_level)

    def zoom(self, factor: float, pivot_screen: Optional[Tuple[int, int]] = None) -> None:
        """Scale the zoom; the world point under pivot_screen stays under it."""
        factor = clamp(factor, 0.05, 20.0)
        before = self.screen_to_world(pivot_screen) if pivot_screen is not None else None
        self.zoom_level = clamp(self.zoom_level * factor, MIN_ZOOM, MAX_ZOOM)
        if before is not None:
            after = self.world_to_screen_float(before)
            self.offset[0] += pivot_screen[0] - after[0]
            self.offset[1] += pivot_screen[1] - after[1]

    def world_to_screen_float(self, pos: Tuple[float, float]) -> Tuple[float, float]:
        ox, oy = self._origin()
        return (pos[0] * self.zoom_level + ox, pos[1] * self.zoom_level + oy)

    def pan_pixels(self, dx_pixels: float, dy_pixels: float) -> None:
        self.offset[0] += dx_pixels
        self.offset[1] += dy_pixels

    def fit_extent(self, half_extent: float, margin: float = 1.1) -> None:
        """Reset the pan and choose a zoom that shows [-half_extent, half_extent] in both axes."""
        self.offset = [0.0, 0.0]
        if half_extent <= 0:
            self.zoom_level = DEFAULT_ZOOM
            return
        w, h = self.viewport_size
        self.zoom_level = clamp(min(w, h) / (2.0 * half_extent * margin), MIN_ZOOM, MAX_ZOOM)
