from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from .config import TrackConfig
from .rng import DeterministicRng

_LANES = 3


@dataclass(frozen=True)
class Pothole:
    x: int
    y: int


class PotholeRoad:
    """Three-lane road with barrier edges and randomly placed potholes.

    Coordinates are world pixels. Only the window currently covered by the
    viewport exists; everything outside it reads as clear road.
    """

    def __init__(self, config: TrackConfig, rng: DeterministicRng):
        self._config = config
        self._rng = rng
        lane = config.road_width // 4
        self._lane_width = float(lane)
        self._top_barrier = (0, 1)
        bottom = lane * 3 + 2
        self._bottom_barrier = (bottom - 1, bottom)
        self._semi_x = (config.pothole_width - 8) / 2.0
        self._semi_y = config.pothole_height / 2.0
        self._center_shift = config.pothole_width / 2.0 + 4.0 - self._semi_x
        self._potholes: List[Pothole] = []
        self._next_spawn_x = 0
        self._viewport_left = config.viewport_start

    @property
    def potholes(self) -> List[Pothole]:
        return self._potholes

    @property
    def viewport_left(self) -> int:
        return self._viewport_left

    def lane_center(self, lane: int) -> int:
        return int((1.0 + lane) * self._lane_width - self._lane_width / 2.0)

    def reset(self) -> None:
        self._potholes.clear()
        self._next_spawn_x = 0
        self._viewport_left = self._config.viewport_start
        self._rng.reset()

    def scroll(self, viewport_left: int) -> None:
        """Move the window to ``viewport_left``; call only between ticks."""

        self._viewport_left = int(viewport_left)
        if self._config.potholes and len(self._potholes) <= self._config.pothole_threshold:
            self._spawn_pothole()
        self._potholes = [hole for hole in self._potholes if hole.x >= self._viewport_left]

    def _spawn_pothole(self) -> None:
        config = self._config
        if self._next_spawn_x > self._viewport_left + config.visible_length:
            return
        spawn_x = config.pothole_width + config.visible_length + self._viewport_left
        lane = self._rng.next_int(_LANES)
        self._potholes.append(Pothole(spawn_x, self.lane_center(lane)))
        self._next_spawn_x = int(spawn_x + config.pothole_width + self._rng.next_int(5) - 3)

    def is_obstacle(self, x: int, y: int) -> bool:
        config = self._config
        if y < 0 or y >= config.field_height:
            return False
        if x < self._viewport_left or x >= self._viewport_left + config.visible_length:
            return False
        if self._top_barrier[0] <= y <= self._top_barrier[1]:
            return True
        if self._bottom_barrier[0] <= y <= self._bottom_barrier[1]:
            return True
        for hole in self._potholes:
            dx = (x - (hole.x - self._center_shift)) / self._semi_x
            dy = (y - hole.y) / self._semi_y
            if dx * dx + dy * dy <= 1.0:
                return True
        return False

    def export_obstacles(self) -> Dict[str, object]:
        return {
            "viewport_left": self._viewport_left,
            "visible_length": self._config.visible_length,
            "barriers": [list(self._top_barrier), list(self._bottom_barrier)],
            "potholes": [{"x": hole.x - self._center_shift, "y": hole.y} for hole in self._potholes],
            "pothole_size": [self._semi_x * 2.0, self._semi_y * 2.0],
        }
