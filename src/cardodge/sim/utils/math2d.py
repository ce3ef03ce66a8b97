from __future__ import annotations

import math

from pygame.math import Vector2


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def _wrap_degrees(angle: float) -> float:
    wrapped = angle % 360.0
    # -1e-14 % 360.0 rounds to 360.0
    if wrapped >= 360.0:
        wrapped -= 360.0
    return wrapped


def _direction_from_degrees(angle: float) -> tuple[float, float]:
    radians = math.radians(angle)
    return math.cos(radians), math.sin(radians)


def _rotate_about(offset: Vector2, origin: Vector2, angle: float) -> Vector2:
    return origin + offset.rotate(angle)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
