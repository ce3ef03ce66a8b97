from __future__ import annotations

import math
from typing import Callable, List, Optional, Tuple

from pygame.math import Vector2

from ..core.config import SensorConfig
from ..core.field import ObstacleField
from ..utils.math2d import _clamp_value

SensorReading = Tuple[float, ...]
SampleHook = Callable[[int, int], None]

_SCAN_STEP = 2


def ray_angles(config: SensorConfig, heading: float) -> List[float]:
    step = config.angle_step
    start = heading + config.field_of_view_start
    return [start + index * step for index in range(config.sample_count)]


def ray_limit(config: SensorConfig, index: int) -> int:
    """Radius (exclusive) the scan of ray ``index`` stops at."""

    limit = config.depth_of_vision + config.body_radius
    if config.taper:
        half = config.sample_count / 2.0
        limit = int(limit * (half - abs(index - half)) / half)
    return limit


def cast_ray(
    position: Vector2,
    angle: float,
    min_radius: int,
    max_radius: int,
    field: ObstacleField,
    on_sample: Optional[SampleHook] = None,
) -> Optional[int]:
    """Return the first radius along ``angle`` that hits an obstacle, or None."""

    radians = math.radians(angle)
    cos = math.cos(radians)
    sin = math.sin(radians)
    for radius in range(min_radius, max_radius, _SCAN_STEP):
        x = int(position.x + round(cos * radius))
        y = int(position.y + round(sin * radius))
        if on_sample is not None:
            on_sample(x, y)
        if field.is_obstacle(x, y):
            return radius
    return None


def proximity(hit_radius: Optional[int], config: SensorConfig) -> float:
    if hit_radius is None:
        return 0.0
    distance = (hit_radius - config.body_radius) / config.depth_of_vision
    return 1.0 - _clamp_value(distance, 0.0, 1.0)


def sense(
    position: Vector2,
    heading: float,
    field: ObstacleField,
    config: SensorConfig,
    on_sample: Optional[SampleHook] = None,
) -> SensorReading:
    """Cast one ray per sample angle and map hits to 1 (touching) .. 0 (clear)."""

    reading = []
    for index, angle in enumerate(ray_angles(config, heading)):
        hit = cast_ray(position, angle, config.body_radius, ray_limit(config, index), field, on_sample)
        reading.append(proximity(hit, config))
    return tuple(reading)
